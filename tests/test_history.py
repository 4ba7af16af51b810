"""Tests for the bounded conversation history."""

from __future__ import annotations

from datetime import datetime

import pytest

from deskbridge.relay import Direction, HistoryEntry, HistoryStore, Identity, IdentityKind
from deskbridge.relay.history import format_ts

U1 = Identity(IdentityKind.USER, "u1")
TS = datetime(2026, 10, 18, 9, 5)


def visitor(text: str) -> HistoryEntry:
    return HistoryEntry(Direction.VISITOR_TO_AGENT, "Visitor", text, TS)


def agent(text: str, name: str = "Alice") -> HistoryEntry:
    return HistoryEntry(Direction.AGENT_TO_VISITOR, name, text, TS)


@pytest.fixture()
def store() -> HistoryStore:
    return HistoryStore()


class TestAppend:
    def test_cap_evicts_oldest(self, store):
        for i in range(51):
            store.append(U1, "111", visitor(f"m{i}"))
        entries = store.entries(U1, "111")
        assert len(entries) == 50
        assert entries[0].text == "m1"
        assert entries[-1].text == "m50"

    def test_never_exceeds_cap(self, store):
        for i in range(200):
            store.append(U1, "111", visitor(str(i)))
        assert len(store.entries(U1, "111")) == 50

    def test_pairs_are_independent(self, store):
        store.append(U1, "111", visitor("to A"))
        store.append(U1, "222", visitor("to B"))
        store.append(Identity(IdentityKind.SESSION, "u1"), "111", visitor("session"))
        assert [e.text for e in store.entries(U1, "111")] == ["to A"]
        assert [e.text for e in store.entries(U1, "222")] == ["to B"]


class TestSnippet:
    def test_empty(self, store):
        assert store.snippet(U1, "111") == ""

    @pytest.mark.parametrize("count", [1, 3, 5, 8, 50])
    def test_returns_most_recent_in_order(self, store, count):
        for i in range(count):
            store.append(U1, "111", visitor(f"m{i}"))
        lines = store.snippet(U1, "111").splitlines()
        expected = [f"m{i}" for i in range(count)][-5:]
        assert len(lines) == min(count, 5)
        assert [line.rsplit(": ", 1)[1] for line in lines] == expected

    def test_line_format(self, store):
        store.append(U1, "111", visitor("hello"))
        store.append(U1, "111", agent("hi there"))
        assert store.snippet(U1, "111") == (
            "[2026-10-18 09:05] Visitor: hello\n"
            "[2026-10-18 09:05] Alice: hi there"
        )

    def test_long_text_is_truncated_with_marker(self, store):
        store.append(U1, "111", visitor("x" * 250))
        line = store.snippet(U1, "111")
        assert line.endswith("x" * 200 + "…")
        assert "x" * 201 not in line

    def test_exactly_at_limit_is_not_truncated(self, store):
        store.append(U1, "111", visitor("y" * 200))
        assert not store.snippet(U1, "111").endswith("…")

    def test_agent_without_name(self, store):
        store.append(U1, "111", agent("hey", name=""))
        assert "Agent: hey" in store.snippet(U1, "111")


def test_format_ts():
    assert format_ts(datetime(2026, 1, 2, 3, 4)) == "2026-01-02 03:04"
