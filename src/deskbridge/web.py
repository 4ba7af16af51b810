"""
web.py — Visitor-facing WebSocket channel.

Each browser tab holds one WebSocket at ``/ws``. Frames are JSON objects
``{"event": <name>, "data": <payload>}`` in both directions.

Inbound events: register_session, register_user, request_agents,
select_agent, visitor_message. Outbound events are emitted by the Router:
agent_directory_snapshot, selection_acknowledged, agent_message,
error_message.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from .outbox import Outbox
from .relay import IdentityKind, Router


class ClientEvent(BaseModel):
    """A frame sent by the browser widget."""

    event: str
    data: Any = None


class WebConnection:
    """A live browser connection, the router's opaque handle."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._connection_id = uuid.uuid4().hex
        self._outbox = Outbox(f"ws:{self._connection_id}", self._send)

    @property
    def connection_id(self) -> str:
        return self._connection_id

    def start(self) -> None:
        self._outbox.start()

    def emit(self, event: str, payload: Any) -> None:
        self._outbox.put({"event": event, "data": payload})

    async def _send(self, frame: dict) -> None:
        await self.websocket.send_json(frame)

    async def close(self) -> None:
        # Nothing more can reach a closed socket
        await self._outbox.close(timeout=0)


def dispatch_event(router: Router, connection: WebConnection, event: ClientEvent) -> None:
    """Hand one inbound visitor event to the router."""
    name, data = event.event, event.data

    if name == "register_session":
        router.on_connection_established(connection, IdentityKind.SESSION, data)
    elif name == "register_user":
        router.on_connection_established(connection, IdentityKind.USER, data)
    elif name == "request_agents":
        router.send_directory(connection)
    elif name == "select_agent":
        router.handle_select(connection, data)
    elif name == "visitor_message":
        text = data.get("text") if isinstance(data, dict) else None
        router.handle_visitor_message(connection, text)
    else:
        logging.warning("Unknown event %r from %s", name, connection.connection_id)


def create_app(router: Router) -> FastAPI:
    """Build the FastAPI app serving the visitor WebSocket."""
    app = FastAPI(title="deskbridge")
    app.state.router = router

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "agents": len(router.directory),
            "connections": len(router.registry.connections()),
        }

    @app.websocket("/ws")
    async def visitor_socket(websocket: WebSocket):
        await websocket.accept()
        connection = WebConnection(websocket)
        connection.start()
        router.on_connection_opened(connection)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                raw = message.get("text")
                if raw is None:
                    logging.warning("Ignoring non-text frame from %s", connection.connection_id)
                    continue
                try:
                    event = ClientEvent.model_validate_json(raw)
                except ValidationError as e:
                    logging.warning(
                        "Malformed frame from %s: %s",
                        connection.connection_id,
                        e.errors()[0]["msg"] if e.errors() else e,
                    )
                    continue
                dispatch_event(router, connection, event)
        except WebSocketDisconnect:
            pass
        finally:
            router.on_connection_closed(connection)
            await connection.close()

    return app
