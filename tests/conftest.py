"""Shared fakes and fixtures for the deskbridge test suite."""

from __future__ import annotations

from typing import Any

import pytest

from deskbridge.relay import Agent, AgentDirectory, Router


class FakeConnection:
    """Visitor connection that records every emitted event."""

    def __init__(self, connection_id: str = "conn-1"):
        self._connection_id = connection_id
        self.events: list[tuple[str, Any]] = []

    @property
    def connection_id(self) -> str:
        return self._connection_id

    def emit(self, event: str, payload: Any) -> None:
        self.events.append((event, payload))

    def of(self, event: str) -> list[Any]:
        return [payload for name, payload in self.events if name == event]


class FakeAgentChannel:
    """Agent channel that records (address, text) sends."""

    def __init__(self):
        self.sent: list[tuple[Any, str]] = []

    def send(self, address, text: str) -> None:
        self.sent.append((address, text))

    def to(self, address) -> list[str]:
        return [text for addr, text in self.sent if addr == address]

    @property
    def last(self) -> str:
        return self.sent[-1][1]


@pytest.fixture()
def directory() -> AgentDirectory:
    d = AgentDirectory()
    d.upsert(Agent(id="111", name="A", address=111))
    d.upsert(Agent(id="222", name="B", address=222))
    return d


@pytest.fixture()
def channel() -> FakeAgentChannel:
    return FakeAgentChannel()


@pytest.fixture()
def router(directory: AgentDirectory, channel: FakeAgentChannel) -> Router:
    return Router(directory=directory, agents=channel)
