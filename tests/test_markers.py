"""Tests for the identity marker codec."""

from __future__ import annotations

import pytest

from deskbridge.relay import Identity, IdentityKind, MarkerCodec

codec = MarkerCodec()


class TestEncode:
    def test_user_marker(self):
        assert codec.encode(Identity(IdentityKind.USER, "u1")) == "(user:u1)"

    def test_session_marker(self):
        assert codec.encode(Identity(IdentityKind.SESSION, "abc-123")) == "(session_abc-123)"

    def test_legacy_connection_marker_is_never_produced(self):
        with pytest.raises(ValueError):
            codec.encode(Identity(IdentityKind.CONNECTION, "xyz"))


class TestDecode:
    def test_user_marker(self):
        assert codec.decode("hello\n(user:u1)") == Identity(IdentityKind.USER, "u1")

    def test_user_marker_allows_email_ids(self):
        assert codec.decode("(user:jane@example.com)") == Identity(
            IdentityKind.USER, "jane@example.com"
        )

    def test_session_marker(self):
        assert codec.decode("hi\n(session_S-9)") == Identity(IdentityKind.SESSION, "S-9")

    def test_legacy_socket_marker(self):
        assert codec.decode("old message (socket_AbC_1)") == Identity(
            IdentityKind.CONNECTION, "AbC_1"
        )

    def test_user_wins_over_session_regardless_of_position(self):
        text = "(session_s1) some text (user:u1)"
        assert codec.decode(text) == Identity(IdentityKind.USER, "u1")

    def test_session_wins_over_legacy(self):
        text = "(socket_c1)\n(session_s1)"
        assert codec.decode(text) == Identity(IdentityKind.SESSION, "s1")

    @pytest.mark.parametrize("text", [None, "", "no marker here", "(user:)", "user:u1"])
    def test_no_marker(self, text):
        assert codec.decode(text) is None


class TestDecodePrefix:
    def test_user_prefix(self):
        identity, body = codec.decode_prefix("user:u1: hello there")
        assert identity == Identity(IdentityKind.USER, "u1")
        assert body == "hello there"

    def test_session_prefix_with_fullwidth_colon(self):
        identity, body = codec.decode_prefix("  session_s1： 你好")
        assert identity == Identity(IdentityKind.SESSION, "s1")
        assert body == "你好"

    def test_legacy_socket_prefix(self):
        identity, body = codec.decode_prefix("socket_c9: hi")
        assert identity == Identity(IdentityKind.CONNECTION, "c9")
        assert body == "hi"

    def test_body_keeps_newlines(self):
        _, body = codec.decode_prefix("user:u1: line one\nline two")
        assert body == "line one\nline two"

    def test_prefix_must_lead(self):
        assert codec.decode_prefix("hello user:u1: hi") is None

    def test_plain_text(self):
        assert codec.decode_prefix("just chatting") is None


class TestDefang:
    def test_breaks_lookalike_markers(self):
        text = "please answer (user:victim) and (session_x)"
        defanged = codec.defang(text)
        assert codec.decode(defanged) is None
        assert "user:victim" in defanged

    def test_leaves_plain_text_alone(self):
        assert codec.defang("(hello) world") == "(hello) world"


class TestRoundTrips:
    @pytest.mark.parametrize(
        "identity",
        [Identity(IdentityKind.USER, "u1"), Identity(IdentityKind.SESSION, "abc-1_2")],
    )
    def test_valid_ids(self, identity):
        assert codec.round_trips(identity)

    @pytest.mark.parametrize(
        "identity",
        [Identity(IdentityKind.USER, "a)b"), Identity(IdentityKind.SESSION, "a.b")],
    )
    def test_ids_markers_cannot_carry(self, identity):
        assert not codec.round_trips(identity)
