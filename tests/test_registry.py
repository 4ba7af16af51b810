"""Tests for the identity registry."""

from __future__ import annotations

import logging

import pytest
from conftest import FakeConnection

from deskbridge.relay import Identity, IdentityKind, IdentityRegistry

USER = IdentityKind.USER
SESSION = IdentityKind.SESSION


@pytest.fixture()
def registry() -> IdentityRegistry:
    return IdentityRegistry()


class TestRegister:
    def test_resolve_both_kinds(self, registry):
        conn = FakeConnection("c1")
        assert registry.register(SESSION, "s1", conn)
        assert registry.register(USER, "u1", conn)
        assert registry.resolve(SESSION, "s1") is conn
        assert registry.resolve(USER, "u1") is conn

    @pytest.mark.parametrize("bad", ["", None, 42, ["u1"]])
    def test_rejects_invalid_identity_without_side_effects(self, registry, bad):
        conn = FakeConnection("c1")
        assert registry.register(USER, bad, conn) is False
        assert registry.connections() == []
        assert registry.identities(conn) == []

    def test_cannot_register_connection_kind(self, registry):
        with pytest.raises(ValueError):
            registry.register(IdentityKind.CONNECTION, "x", FakeConnection())

    def test_last_writer_wins(self, registry):
        old, new = FakeConnection("old"), FakeConnection("new")
        registry.register(USER, "u1", old)
        registry.register(USER, "u1", new)
        assert registry.resolve(USER, "u1") is new
        assert registry.identities(old) == []

    def test_stale_disconnect_keeps_newer_mapping(self, registry):
        old, new = FakeConnection("old"), FakeConnection("new")
        registry.register(USER, "u1", old)
        registry.register(USER, "u1", new)
        registry.unregister(old)
        assert registry.resolve(USER, "u1") is new

    def test_connection_holds_one_identity_per_kind(self, registry):
        conn = FakeConnection("c1")
        registry.register(USER, "u1", conn)
        registry.register(USER, "u2", conn)
        assert registry.resolve(USER, "u1") is None
        assert registry.resolve(USER, "u2") is conn


class TestIdentities:
    def test_user_preferred_over_session(self, registry):
        conn = FakeConnection("c1")
        registry.register(SESSION, "s1", conn)
        registry.register(USER, "u1", conn)
        assert registry.preferred_identity(conn) == Identity(USER, "u1")
        assert registry.identities(conn) == [Identity(USER, "u1"), Identity(SESSION, "s1")]

    def test_session_only(self, registry):
        conn = FakeConnection("c1")
        registry.register(SESSION, "s1", conn)
        assert registry.preferred_identity(conn) == Identity(SESSION, "s1")

    def test_nothing_registered(self, registry):
        assert registry.preferred_identity(FakeConnection()) is None


class TestUnregister:
    def test_removes_every_mapping(self, registry):
        conn = FakeConnection("c1")
        registry.register(SESSION, "s1", conn)
        registry.register(USER, "u1", conn)
        registry.unregister(conn)
        assert registry.resolve(SESSION, "s1") is None
        assert registry.resolve(USER, "u1") is None
        assert registry.connections() == []

    def test_legacy_lookup_by_connection_id(self, registry):
        conn = FakeConnection("c1")
        registry.attach(conn)
        assert registry.resolve(IdentityKind.CONNECTION, "c1") is conn
        registry.unregister(conn)
        assert registry.resolve(IdentityKind.CONNECTION, "c1") is None


class TestMarkerCompatibility:
    @pytest.mark.parametrize("kind,bad", [(USER, "a)b"), (SESSION, "a.b")])
    def test_warns_on_ids_markers_cannot_carry(self, registry, caplog, kind, bad):
        conn = FakeConnection("c1")
        with caplog.at_level(logging.WARNING):
            assert registry.register(kind, bad, conn) is True
        assert "cannot be carried in a reply marker" in caplog.text
        assert registry.resolve(kind, bad) is conn

    @pytest.mark.parametrize("kind,good", [(USER, "jane@example.com"), (SESSION, "S-9_x")])
    def test_no_warning_for_round_tripping_ids(self, registry, caplog, kind, good):
        with caplog.at_level(logging.WARNING):
            registry.register(kind, good, FakeConnection("c1"))
        assert "reply marker" not in caplog.text
