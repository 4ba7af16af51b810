"""
history.py — Bounded per (identity, agent) conversation log.

Used to build the short "recent conversation" block that gives agents
context when a visitor writes again.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime

from .base import Direction, HistoryEntry, Identity

HISTORY_LIMIT = 50
SNIPPET_COUNT = 5
SNIPPET_TRUNCATE = 200
ELLIPSIS = "…"

VISITOR_LABEL = "Visitor"
AGENT_LABEL = "Agent"


def format_ts(ts: datetime) -> str:
    """Render a timestamp as ``YYYY-MM-DD HH:MM`` local time."""
    return ts.strftime("%Y-%m-%d %H:%M")


class HistoryStore:
    """Append-only logs capped at ``limit`` entries, oldest evicted first."""

    def __init__(self, limit: int = HISTORY_LIMIT):
        self.limit = limit
        self._logs: dict[tuple[Identity, str], deque[HistoryEntry]] = {}

    def append(self, identity: Identity, agent_id: str, entry: HistoryEntry) -> None:
        key = (identity, str(agent_id))
        log = self._logs.get(key)
        if log is None:
            log = self._logs[key] = deque(maxlen=self.limit)
        log.append(entry)

    def entries(self, identity: Identity, agent_id: str) -> list[HistoryEntry]:
        return list(self._logs.get((identity, str(agent_id)), ()))

    def snippet(
        self,
        identity: Identity,
        agent_id: str,
        count: int = SNIPPET_COUNT,
        truncate: int = SNIPPET_TRUNCATE,
    ) -> str:
        """Render the last ``count`` entries, oldest first, one per line.

        Each text is cut to ``truncate`` characters with a trailing ellipsis.
        Returns an empty string when there is no history for the pair.
        """
        recent = self.entries(identity, agent_id)[-count:] if count > 0 else []
        lines = []
        for entry in recent:
            if entry.direction is Direction.AGENT_TO_VISITOR:
                who = entry.speaker or AGENT_LABEL
            else:
                who = VISITOR_LABEL
            text = str(entry.text or "")
            if truncate and len(text) > truncate:
                text = text[:truncate] + ELLIPSIS
            lines.append(f"[{format_ts(entry.timestamp)}] {who}: {text}")
        return "\n".join(lines)
