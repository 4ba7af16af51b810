"""
markers.py — Identity tags embedded in agent-facing text.

The agent channel has no structured back-reference, so every forwarded
visitor message ends with a tag like ``(user:<id>)`` or
``(session_<id>)``. When an agent replies, the tag in the quoted message
tells us who the reply is for. Agents may also start a fresh message with
``user:<id>: text`` or ``session_<id>: text``.

Decoding always prefers user over session over the legacy
``socket_<id>`` form, which is still accepted but never produced.
"""

from __future__ import annotations

import re

from .base import Identity, IdentityKind

# Marker patterns in decode precedence order
_MARKERS: list[tuple[IdentityKind, re.Pattern]] = [
    (IdentityKind.USER, re.compile(r"\(user:([^)]+)\)")),
    (IdentityKind.SESSION, re.compile(r"\(session_([\w-]+)\)")),
    (IdentityKind.CONNECTION, re.compile(r"\(socket_([\w-]+)\)")),
]

# Explicit prefix patterns; both ASCII and full-width colons are accepted
_PREFIXES: list[tuple[IdentityKind, re.Pattern]] = [
    (IdentityKind.USER, re.compile(r"^\s*user:([^\s:：]+)\s*[:：]\s*(.*)$", re.DOTALL)),
    (IdentityKind.SESSION, re.compile(r"^\s*session_([\w-]+)\s*[:：]\s*(.*)$", re.DOTALL)),
    (IdentityKind.CONNECTION, re.compile(r"^\s*socket_([\w-]+)\s*[:：]\s*(.*)$", re.DOTALL)),
]

_LOOKALIKE = re.compile(r"\((?=user:|session_|socket_)")


class MarkerCodec:
    """Encodes identities into text tags and recovers them from replies."""

    def tag(self, identity: Identity) -> str:
        """Bare tag without parentheses, e.g. ``user:u1``."""
        if identity.kind is IdentityKind.USER:
            return f"user:{identity.id}"
        if identity.kind is IdentityKind.SESSION:
            return f"session_{identity.id}"
        if identity.kind is IdentityKind.CONNECTION:
            return f"socket_{identity.id}"
        raise ValueError(f"Unknown identity kind: {identity.kind!r}")

    def encode(self, identity: Identity) -> str:
        """Marker appended to outbound text, e.g. ``(user:u1)``."""
        if identity.kind is IdentityKind.CONNECTION:
            raise ValueError("Connection markers are decode-only")
        return f"({self.tag(identity)})"

    def round_trips(self, identity: Identity) -> bool:
        """Whether a reply quoting this identity's marker decodes back to it."""
        return self.decode(self.encode(identity)) == identity

    def defang(self, text: str) -> str:
        """Break marker look-alikes in visitor-supplied text.

        ``(user:x)`` becomes ``( user:x)`` so a visitor cannot redirect
        an agent's reply to someone else.
        """
        return _LOOKALIKE.sub("( ", text)

    def decode(self, text: str | None) -> Identity | None:
        """Find the highest-precedence marker anywhere in ``text``."""
        if not text:
            return None
        for kind, pattern in _MARKERS:
            match = pattern.search(text)
            if match and match.group(1):
                return Identity(kind, match.group(1))
        return None

    def decode_prefix(self, text: str | None) -> tuple[Identity, str] | None:
        """Parse a leading ``<tag>: body`` and return ``(identity, body)``."""
        if not text:
            return None
        for kind, pattern in _PREFIXES:
            match = pattern.match(text)
            if match and match.group(1):
                return Identity(kind, match.group(1)), match.group(2) or ""
        return None
