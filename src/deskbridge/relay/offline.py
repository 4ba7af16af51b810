"""
offline.py — Queue of agent messages for visitors who are not connected.

Only persistent user identities get a queue: a session id cannot be
trusted to come back after a reconnect.
"""

from __future__ import annotations

import logging

from .base import Direction, HistoryEntry, Identity, IdentityKind, OfflineMessage
from .history import HistoryStore
from .registry import IdentityRegistry


class OfflineQueue:
    """FIFO per user id, cleared in one step when flushed."""

    def __init__(self, registry: IdentityRegistry, history: HistoryStore):
        self._registry = registry
        self._history = history
        self._queues: dict[str, list[OfflineMessage]] = {}

    def enqueue(self, user_id: str, agent_id: str, agent_name: str, text: str) -> OfflineMessage:
        """Queue a message and record it in the visitor's history."""
        message = OfflineMessage(agent_id=agent_id, agent_name=agent_name, text=text)
        self._queues.setdefault(user_id, []).append(message)
        self._history.append(
            Identity(IdentityKind.USER, user_id),
            agent_id,
            HistoryEntry(
                direction=Direction.AGENT_TO_VISITOR,
                speaker=agent_name,
                text=text,
                timestamp=message.timestamp,
            ),
        )
        logging.info(
            "Queued offline message from %s for user:%s (%d pending)",
            agent_name,
            user_id,
            len(self._queues[user_id]),
        )
        return message

    def pending(self, user_id: str) -> list[OfflineMessage]:
        return list(self._queues.get(user_id, ()))

    def flush(self, user_id: str) -> int:
        """Hand every queued message to the user's live connection.

        No-op when the user is not connected. The queue is cleared once
        the messages are handed to the transport; nothing is retried.
        Returns the number of messages delivered.
        """
        connection = self._registry.resolve(IdentityKind.USER, user_id)
        if connection is None:
            return 0
        queue = self._queues.pop(user_id, [])
        if not queue:
            return 0
        for message in queue:
            connection.emit("agent_message", message.to_event())
        logging.info("Flushed %d offline message(s) to user:%s", len(queue), user_id)
        return len(queue)
