"""
relay — Message relay core between web visitors and support agents.

The Router composes four collaborators:

1. IdentityRegistry — live connections <-> session/user identities
2. AgentDirectory   — registered agents (read by the router)
3. HistoryStore     — bounded per (identity, agent) conversation log
4. OfflineQueue     — agent messages waiting for a returning user

MarkerCodec embeds and recovers the identity tag that lets an agent's
reply find its way back to the visitor.
"""

from .base import (
    Agent,
    AgentChannel,
    Direction,
    HistoryEntry,
    Identity,
    IdentityKind,
    OfflineMessage,
    RouteOutcome,
    VisitorConnection,
)
from .directory import AgentDirectory
from .errors import (
    PreconditionError,
    RelayError,
    RoutingError,
    SelectionError,
    UnroutableMessage,
    VisitorOffline,
)
from .history import HistoryStore
from .markers import MarkerCodec
from .offline import OfflineQueue
from .registry import IdentityRegistry
from .router import Router

__all__ = [
    "Agent",
    "AgentChannel",
    "AgentDirectory",
    "Direction",
    "HistoryEntry",
    "HistoryStore",
    "Identity",
    "IdentityKind",
    "IdentityRegistry",
    "MarkerCodec",
    "OfflineMessage",
    "OfflineQueue",
    "PreconditionError",
    "RelayError",
    "RouteOutcome",
    "Router",
    "RoutingError",
    "SelectionError",
    "UnroutableMessage",
    "VisitorConnection",
    "VisitorOffline",
]
