"""
router.py — Conversation Router.

Tracks which visitor identity is talking to which agent, forwards
visitor messages to the agent channel with a context snippet and an
identity marker, and routes agent replies back to the right visitor:
delivered live, queued for a returning user, or dropped with a notice.

Every handler runs to completion on the event loop without awaiting,
so the shared maps are never observed half-updated.
"""

from __future__ import annotations

import logging
from datetime import datetime

from .base import (
    Agent,
    AgentChannel,
    Direction,
    HistoryEntry,
    Identity,
    IdentityKind,
    RouteOutcome,
    VisitorConnection,
    agent_message_event,
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
from .history import VISITOR_LABEL, HistoryStore
from .markers import MarkerCodec
from .offline import OfflineQueue
from .registry import IdentityRegistry

# Visitor-facing event names
AGENT_DIRECTORY_SNAPSHOT = "agent_directory_snapshot"
SELECTION_ACKNOWLEDGED = "selection_acknowledged"
AGENT_MESSAGE = "agent_message"
ERROR_MESSAGE = "error_message"

DELIVERED_NOTICE = "Delivered to the visitor."

# Telegram rejects longer messages
MAX_PAYLOAD = 4096


class Router:
    """Owns all relay state for the lifetime of the process."""

    def __init__(
        self,
        directory: AgentDirectory,
        agents: AgentChannel,
        registry: IdentityRegistry | None = None,
        history: HistoryStore | None = None,
        codec: MarkerCodec | None = None,
    ):
        self.directory = directory
        self.agents = agents
        self.registry = registry or IdentityRegistry()
        self.history = history or HistoryStore()
        self.offline = OfflineQueue(self.registry, self.history)
        self.codec = codec or MarkerCodec()
        self._selections: dict[Identity, str] = {}

        directory.subscribe(self.broadcast_directory)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def on_connection_opened(self, connection: VisitorConnection) -> None:
        """Track a new browser connection and send it the agent list."""
        self.registry.attach(connection)
        logging.info("New web client connected: %s", connection.connection_id)
        self.send_directory(connection)

    def on_connection_established(
        self, connection: VisitorConnection, kind: IdentityKind, identity: str
    ) -> bool:
        """Register an identity, restore its selection and flush its queue."""
        if not self.registry.register(kind, identity, connection):
            return False
        logging.info(
            "Registered %s -> connection %s",
            self.codec.tag(Identity(kind, identity)),
            connection.connection_id,
        )

        agent = self.selected_agent(Identity(kind, identity))
        if agent is not None:
            connection.emit(SELECTION_ACKNOWLEDGED, agent.name)

        if kind is IdentityKind.USER:
            self.offline.flush(identity)
        return True

    def on_connection_closed(self, connection: VisitorConnection) -> None:
        """Forget the connection; selections, history and queues stay."""
        logging.info("Web client disconnected: %s", connection.connection_id)
        self.registry.unregister(connection)

    def send_directory(self, connection: VisitorConnection) -> None:
        connection.emit(AGENT_DIRECTORY_SNAPSHOT, self.directory.list())

    def broadcast_directory(self) -> None:
        """Push a fresh agent list to every live connection."""
        snapshot = self.directory.list()
        for connection in self.registry.connections():
            connection.emit(AGENT_DIRECTORY_SNAPSHOT, snapshot)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, identity: Identity, agent_id) -> Agent:
        """Bind ``identity`` to an agent, replacing any earlier choice."""
        agent = self.directory.get(agent_id)
        if agent is None:
            raise SelectionError(agent_id)
        self._selections[identity] = agent.id
        return agent

    def selected_agent(self, identity: Identity) -> Agent | None:
        """The selected agent, if it is still in the directory."""
        return self.directory.get(self._selections.get(identity))

    def handle_select(self, connection: VisitorConnection, agent_id) -> bool:
        """Visitor event: bind every identity on the connection to an agent."""
        identities = self.registry.identities(connection)
        try:
            agent = self.directory.get(agent_id)
            if agent is None:
                raise SelectionError(agent_id)
            for identity in identities:
                self.select(identity, agent.id)
        except SelectionError as e:
            logging.info("Selection of unknown agent %r on %s", agent_id, connection.connection_id)
            connection.emit(ERROR_MESSAGE, e.notice)
            return False

        if not identities:
            logging.warning(
                "Selection on %s before any identity was registered",
                connection.connection_id,
            )
        logging.info(
            "Selection bound: %s -> agent %s",
            ", ".join(str(i) for i in identities) or "-",
            agent.name,
        )
        connection.emit(SELECTION_ACKNOWLEDGED, agent.name)
        return True

    # ------------------------------------------------------------------
    # Visitor -> agent
    # ------------------------------------------------------------------

    def handle_visitor_message(self, connection: VisitorConnection, text: str) -> bool:
        """Visitor event: forward text to the selected agent."""
        if not isinstance(text, str) or not text.strip():
            logging.warning("Ignoring empty visitor message on %s", connection.connection_id)
            return False
        try:
            self.forward_to_agent(connection, text)
        except RelayError as e:
            connection.emit(ERROR_MESSAGE, e.notice)
            return False
        return True

    def forward_to_agent(self, connection: VisitorConnection, text: str) -> str:
        """Send ``text`` to the agent selected on this connection.

        Raises PreconditionError when no identity on the connection has a
        selected agent. Returns the payload handed to the agent channel.
        """
        identity, agent = self._selection_for(connection)

        now = datetime.now()
        snippet = self.history.snippet(identity, agent.id)
        self.history.append(
            identity,
            agent.id,
            HistoryEntry(
                direction=Direction.VISITOR_TO_AGENT,
                speaker=VISITOR_LABEL,
                text=text,
                timestamp=now,
            ),
        )

        payload = self.compose_payload(identity, text, snippet)
        self.agents.send(agent.address, payload)
        logging.info("Forwarding message from %s to agent %s", identity, agent.name)
        return payload

    def compose_payload(self, identity: Identity, text: str, snippet: str = "") -> str:
        """Agent-facing text of at most ``MAX_PAYLOAD`` characters.

        The visitor text is cut to whatever room the header, context
        block, hint and marker leave; the context block is dropped if it
        alone would not fit. The marker is always the last line.
        """
        body = self.codec.defang(text)
        block = self.codec.defang(snippet) if snippet else ""

        overhead = len(self._build_payload(identity, "", block))
        if overhead > MAX_PAYLOAD:
            block = ""
            overhead = len(self._build_payload(identity, "", block))

        room = MAX_PAYLOAD - overhead
        if len(body) > room:
            body = body[: room - 1] + "…" if room > 0 else ""
        return self._build_payload(identity, body, block)

    def _build_payload(self, identity: Identity, body: str, block: str) -> str:
        lines = [f"Message from web visitor {self.codec.tag(identity)}", body]
        if block:
            lines.append("--- Recent conversation ---")
            lines.append(block)
        lines.append("--- Reply to this message to answer the visitor ---")
        lines.append(self.codec.encode(identity))
        return "\n".join(lines)

    def _selection_for(self, connection: VisitorConnection) -> tuple[Identity, Agent]:
        # Routing identity: user when registered, else session
        identity = self.registry.preferred_identity(connection)
        if identity is None:
            raise PreconditionError()
        agent = self.selected_agent(identity)
        if agent is None:
            raise PreconditionError()
        return identity, agent

    # ------------------------------------------------------------------
    # Agent -> visitor
    # ------------------------------------------------------------------

    def handle_agent_message(
        self,
        address,
        reply_to_text: str | None,
        raw_text: str | None,
        ts: datetime | None = None,
    ) -> RouteOutcome:
        """Route a message written by an agent back to a visitor.

        A reply is routed by the marker in the quoted message; a fresh
        message must start with an explicit tag. Anything else is not
        routed and the agent is told how to address a visitor.
        """
        agent = self.directory.find_by_address(address)
        if agent is None or not isinstance(raw_text, str):
            return RouteOutcome.IGNORED

        try:
            identity, body = self._resolve_target(reply_to_text, raw_text)
            return self._deliver(agent, identity, body, ts or datetime.now())
        except RoutingError as e:
            if isinstance(e, UnroutableMessage):
                logging.warning("Agent %s sent a message without a visitor tag; not routed", agent.name)
                outcome = RouteOutcome.UNROUTED
            else:
                logging.info("Dropped message from agent %s: visitor offline", agent.name)
                outcome = RouteOutcome.DROPPED
            self.agents.send(agent.address, e.notice)
            return outcome

    def _resolve_target(self, reply_to_text: str | None, raw_text: str) -> tuple[Identity, str]:
        if reply_to_text:
            identity = self.codec.decode(reply_to_text)
            if identity is not None:
                return identity, raw_text
        parsed = self.codec.decode_prefix(raw_text)
        if parsed is not None:
            return parsed
        raise UnroutableMessage()

    def _deliver(self, agent: Agent, identity: Identity, text: str, ts: datetime) -> RouteOutcome:
        connection = self.registry.resolve(identity.kind, identity.id)

        if connection is None and identity.is_persistent:
            self.offline.enqueue(identity.id, agent.id, agent.name, text)
            self.agents.send(
                agent.address,
                "The visitor is offline. Your message was queued and will be "
                f"delivered when they return ({self.codec.tag(identity)}).",
            )
            return RouteOutcome.QUEUED

        # Legacy connection tags carry no identity to keep history for
        if identity.kind is not IdentityKind.CONNECTION:
            self.history.append(
                identity,
                agent.id,
                HistoryEntry(
                    direction=Direction.AGENT_TO_VISITOR,
                    speaker=agent.name,
                    text=text,
                    timestamp=ts,
                ),
            )

        if connection is None:
            if identity.kind is IdentityKind.SESSION:
                raise VisitorOffline(self.codec.tag(identity))
            raise VisitorOffline()

        connection.emit(AGENT_MESSAGE, agent_message_event(agent.id, agent.name, text, ts))
        self.agents.send(agent.address, DELIVERED_NOTICE)
        logging.info("Forwarding reply from agent %s to %s", agent.name, identity)
        return RouteOutcome.DELIVERED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Drop all in-memory state at shutdown."""
        for connection in self.registry.connections():
            self.registry.unregister(connection)
        self._selections.clear()
        logging.info("Router closed")
