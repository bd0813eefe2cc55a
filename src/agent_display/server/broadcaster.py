"""
Websocket fan-out of session snapshots, plus the inbound client event handler.

Delivery is best effort: a client that misses a snapshot simply receives the
next one. A freshly connected client is sent the current snapshot right away,
so nothing is replayed or queued.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Protocol, Set

from fastapi import FastAPI, WebSocket

from agent_display.session import DisplaySession, Snapshot

logger = logging.getLogger(__name__)


class ClientTransport(Protocol):
    async def send_text(self, data: str) -> None: ...


def utc_ts() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def state_message(snapshot: Snapshot) -> Dict[str, Any]:
    """Wrap a snapshot in the state_update envelope sent to clients."""
    return {"type": "state_update", "timestamp": utc_ts(), "data": snapshot}


class StateBroadcaster:
    """Pushes every session snapshot to all connected clients."""

    def __init__(self) -> None:
        self.clients: Set[ClientTransport] = set()
        self._tasks: Set[asyncio.Task[None]] = set()
        self._lock = asyncio.Lock()

    def connect(self, client: ClientTransport) -> None:
        self.clients.add(client)
        logger.info(f"Client connected ({len(self.clients)} total)")

    def disconnect(self, client: ClientTransport) -> None:
        if client in self.clients:
            self.clients.discard(client)
            logger.info(f"Client disconnected ({len(self.clients)} total)")

    async def send_snapshot(self, client: ClientTransport, snapshot: Snapshot) -> bool:
        """Send one snapshot to one client. Returns False if the send failed."""
        return await self._send(client, json.dumps(state_message(snapshot)))

    async def publish(self, snapshot: Snapshot) -> None:
        """Send ``snapshot`` to every connected client, dropping dead ones."""
        data = json.dumps(state_message(snapshot))
        async with self._lock:
            clients = list(self.clients)
            results = await asyncio.gather(*(self._send(c, data) for c in clients))
            for client, ok in zip(clients, results):
                if not ok:
                    self.disconnect(client)

    async def _send(self, client: ClientTransport, data: str) -> bool:
        try:
            await client.send_text(data)
            return True
        except Exception as e:
            logger.debug(f"Dropping client after failed send: {e!r}")
            return False

    def attach(self, session: DisplaySession) -> Callable[[], None]:
        """Publish every snapshot ``session`` produces. Returns an unsubscriber."""
        return session.subscribe(self._schedule)

    def _schedule(self, snapshot: Snapshot) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; snapshot not broadcast")
            return
        task = loop.create_task(self.publish(snapshot))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for scheduled publishes to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))


def handle_client_message(session: DisplaySession, raw: str) -> bool:
    """Apply one inbound client frame to ``session``.

    Frames look like ``{"type": ..., "payload": {...}}``. Anything that cannot be
    parsed or does not name a known event is dropped with a log message.

    Returns:
        True if the frame changed the session state.
    """
    try:
        message = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Dropping malformed client message ({e}): {raw[:200]!r}")
        return False

    if not isinstance(message, dict):
        logger.warning(f"Dropping non-object client message: {raw[:200]!r}")
        return False

    msg_type = message.get("type")
    payload = message.get("payload") or {}
    if not isinstance(payload, dict):
        logger.warning(f"Dropping {msg_type} message with invalid payload")
        return False

    request_id = payload.get("requestId")
    if not isinstance(request_id, str):
        logger.warning(f"Dropping {msg_type} message without a requestId")
        return False

    match msg_type:
        case "submit_input":
            if "value" not in payload:
                logger.warning(f"Dropping submit_input for {request_id}: no value")
                return False
            return session.submit_input(request_id, payload["value"])

        case "cancel_input":
            return session.cancel_input(request_id)

        case "submit_multi_form":
            values = payload.get("values")
            if not isinstance(values, dict):
                logger.warning(
                    f"Dropping submit_multi_form for {request_id}: bad values"
                )
                return False
            return session.submit_multi_form(request_id, values)

        case _:
            logger.warning(f"Dropping client message of unknown type {msg_type!r}")
            return False


def create_app(session: DisplaySession, broadcaster: StateBroadcaster) -> FastAPI:
    """Build the FastAPI app that serves the state websocket."""
    app = FastAPI(title="agent-display")

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "ok", "clients": len(broadcaster.clients)}

    async def state_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        broadcaster.connect(websocket)
        try:
            await broadcaster.send_snapshot(websocket, session.snapshot())
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    logger.warning("Dropping binary frame from client")
                    continue
                handle_client_message(session, text)
        finally:
            broadcaster.disconnect(websocket)

    app.add_api_websocket_route("/", state_socket)
    app.add_api_websocket_route("/ws", state_socket)

    return app
