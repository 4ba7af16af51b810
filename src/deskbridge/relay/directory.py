"""
directory.py — Agent Directory.

Agents are keyed by id in insertion order. The router only reads the
directory; the admin commands mutate it. Every mutation notifies the
subscribers so fresh snapshots can be pushed to all visitors.
"""

from __future__ import annotations

import logging
from typing import Callable

from .base import Agent


class AgentDirectory:
    """Registered agents and their channel addresses."""

    def __init__(self):
        self._agents: dict[str, Agent] = {}
        self._subscribers: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def list(self) -> list[dict]:
        """``{id, name}`` summaries in insertion order."""
        return [agent.summary() for agent in self._agents.values()]

    def get(self, agent_id) -> Agent | None:
        if agent_id is None:
            return None
        return self._agents.get(str(agent_id))

    def find_by_address(self, address) -> Agent | None:
        """Look up the agent that owns a channel address."""
        for agent in self._agents.values():
            if str(agent.address) == str(address):
                return agent
        return None

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self):
        return iter(list(self._agents.values()))

    # ------------------------------------------------------------------
    # Mutation side (admin commands)
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` after every mutation."""
        self._subscribers.append(callback)

    def upsert(self, agent: Agent) -> bool:
        """Add or replace an agent. Returns True if it already existed."""
        existed = agent.id in self._agents
        self._agents[agent.id] = agent
        logging.info(
            "%s support agent: %s (address %s)",
            "Updated" if existed else "Added",
            agent.name,
            agent.address,
        )
        self._notify()
        return existed

    def remove(self, agent_id) -> Agent | None:
        removed = self._agents.pop(str(agent_id), None)
        if removed is not None:
            logging.info("Removed support agent: %s (address %s)", removed.name, removed.address)
            self._notify()
        return removed

    def _notify(self) -> None:
        for callback in self._subscribers:
            callback()
