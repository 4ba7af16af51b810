"""
registry.py — Identity Registry.

Bidirectional mapping between live visitor connections and the session
and user identities registered on them. The latest registration of an
identity wins; a stale connection going away never removes a newer
mapping.
"""

from __future__ import annotations

import logging

from .base import Identity, IdentityKind, VisitorConnection
from .markers import MarkerCodec

_REGISTRABLE = (IdentityKind.SESSION, IdentityKind.USER)
_codec = MarkerCodec()


class IdentityRegistry:
    """Tracks which connection currently speaks for which identity."""

    def __init__(self):
        self._connections: dict[str, VisitorConnection] = {}
        # (kind, identity id) -> connection id
        self._by_identity: dict[tuple[IdentityKind, str], str] = {}
        # connection id -> {kind: identity id}
        self._by_connection: dict[str, dict[IdentityKind, str]] = {}

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def attach(self, connection: VisitorConnection) -> None:
        """Record a live connection before any identity is registered."""
        self._connections[connection.connection_id] = connection

    def connections(self) -> list[VisitorConnection]:
        return list(self._connections.values())

    def connection_by_id(self, connection_id: str) -> VisitorConnection | None:
        return self._connections.get(connection_id)

    # ------------------------------------------------------------------
    # Identities
    # ------------------------------------------------------------------

    def register(
        self, kind: IdentityKind, identity: str, connection: VisitorConnection
    ) -> bool:
        """Map ``identity`` to ``connection`` in both directions.

        Returns False, changing nothing, for empty or non-string identities.
        """
        if kind not in _REGISTRABLE:
            raise ValueError(f"Cannot register identity kind {kind!r}")
        if not identity or not isinstance(identity, str):
            logging.warning(
                "Rejected %s registration on %s: %r",
                kind.value,
                connection.connection_id,
                identity,
            )
            return False
        if not _codec.round_trips(Identity(kind, identity)):
            logging.warning(
                "%s id %r cannot be carried in a reply marker; agent replies "
                "to it will not route back",
                kind.value,
                identity,
            )

        cid = connection.connection_id
        self._connections[cid] = connection

        # A connection holds at most one identity of each kind
        previous = self._by_connection.get(cid, {}).get(kind)
        if previous is not None and self._by_identity.get((kind, previous)) == cid:
            del self._by_identity[(kind, previous)]

        # Last writer wins: the old connection forgets this identity
        old_cid = self._by_identity.get((kind, identity))
        if old_cid is not None and old_cid != cid:
            self._by_connection.get(old_cid, {}).pop(kind, None)

        self._by_identity[(kind, identity)] = cid
        self._by_connection.setdefault(cid, {})[kind] = identity
        return True

    def resolve(self, kind: IdentityKind, identity: str) -> VisitorConnection | None:
        """Return the live connection for an identity, if any."""
        if kind is IdentityKind.CONNECTION:
            return self._connections.get(identity)
        cid = self._by_identity.get((kind, identity))
        if cid is None:
            return None
        return self._connections.get(cid)

    def identities(self, connection: VisitorConnection) -> list[Identity]:
        """Identities registered on a connection, user identity first."""
        mapping = self._by_connection.get(connection.connection_id, {})
        found = []
        for kind in (IdentityKind.USER, IdentityKind.SESSION):
            if kind in mapping:
                found.append(Identity(kind, mapping[kind]))
        return found

    def preferred_identity(self, connection: VisitorConnection) -> Identity | None:
        """The identity used for routing: user when registered, else session."""
        found = self.identities(connection)
        return found[0] if found else None

    def unregister(self, connection: VisitorConnection) -> None:
        """Drop every mapping that references ``connection``."""
        cid = connection.connection_id
        mapping = self._by_connection.pop(cid, {})
        for kind, identity in mapping.items():
            if self._by_identity.get((kind, identity)) == cid:
                del self._by_identity[(kind, identity)]
        self._connections.pop(cid, None)
