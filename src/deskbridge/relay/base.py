"""
base.py — Value types and transport protocols shared by the relay core.

The Router never touches sockets or bot objects directly. Visitor-side
transports implement ``VisitorConnection`` and the agent-side transport
implements ``AgentChannel``; both are fire-and-forget.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class IdentityKind(str, Enum):
    """How a visitor is identified."""

    SESSION = "session"  # tab-scoped, gone after reconnect
    USER = "user"  # browser-scoped, survives reconnects
    CONNECTION = "connection"  # legacy socket tag, decode only


@dataclass(frozen=True)
class Identity:
    """A visitor identity as seen by the router."""

    kind: IdentityKind
    id: str

    @property
    def is_persistent(self) -> bool:
        return self.kind is IdentityKind.USER

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass
class Agent:
    """A human operator reachable through the agent channel."""

    id: str
    name: str
    address: int | str
    username: str | None = None

    def summary(self) -> dict:
        """Public form sent to visitors in directory snapshots."""
        return {"id": self.id, "name": self.name}


class Direction(str, Enum):
    VISITOR_TO_AGENT = "visitor"
    AGENT_TO_VISITOR = "agent"


@dataclass
class HistoryEntry:
    """One turn of a visitor/agent conversation."""

    direction: Direction
    speaker: str
    text: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class OfflineMessage:
    """An agent message waiting for a visitor to come back online."""

    agent_id: str
    agent_name: str
    text: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_event(self) -> dict:
        """Payload of the ``agent_message`` visitor event."""
        return agent_message_event(self.agent_id, self.agent_name, self.text, self.timestamp)


class RouteOutcome(str, Enum):
    """What happened to an agent message."""

    DELIVERED = "delivered"
    QUEUED = "queued"
    DROPPED = "dropped"
    UNROUTED = "unrouted"
    IGNORED = "ignored"


def agent_message_event(agent_id: str, agent_name: str, text: str, ts: datetime) -> dict:
    return {
        "agentId": agent_id,
        "agentName": agent_name,
        "text": text,
        "ts": int(ts.timestamp() * 1000),
    }


@runtime_checkable
class VisitorConnection(Protocol):
    """A live browser connection, owned by the web transport."""

    @property
    def connection_id(self) -> str:
        """Opaque, process-unique id of this connection."""
        ...

    def emit(self, event: str, payload: Any) -> None:
        """Queue an event for the browser. Must not block."""
        ...


@runtime_checkable
class AgentChannel(Protocol):
    """Outbound side of the external messaging channel."""

    def send(self, address: int | str, text: str) -> None:
        """Queue a text message to an agent address. Must not block."""
        ...
