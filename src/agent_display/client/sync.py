"""
Client-side mirror of the display session.

ClientSync keeps the latest snapshot (replaced wholesale on every message),
derives a bounded action log from it, and sends input answers back to the
server. The websocket is reconnected after a fixed delay whenever it drops;
on reconnect the server sends the current snapshot, nothing is replayed.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import websockets

from agent_display.client.action_log import ActionLogEntry, action_detail

logger = logging.getLogger(__name__)

Snapshot = Dict[str, Any]
SnapshotListener = Callable[[Snapshot], None]

DEFAULT_URL = "ws://localhost:8765"


def initial_state() -> Snapshot:
    """The mirror's contents before the first snapshot arrives."""
    return {
        "currentState": "idle",
        "text": "",
        "contentType": "text",
        "historyCount": 0,
        "lastAction": None,
        "lastError": None,
        "availableActions": [],
        "inputRequest": None,
        "inputStatus": "idle",
        "userInput": None,
        "multiFieldInput": None,
        "userContext": {},
    }


class ClientSync:
    """Mirror of the server state plus the action log shown to the human."""

    def __init__(
        self,
        url: str = DEFAULT_URL,
        reconnect_delay: float = 2.0,
        max_log_entries: int = 20,
    ) -> None:
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.max_log_entries = max_log_entries
        self.state: Snapshot = initial_state()
        self.action_log: List[ActionLogEntry] = []
        self.connected = False
        self.error: Optional[str] = None
        self._ws: Any = None
        self._closing = False
        self._listeners: List[SnapshotListener] = []

    def add_listener(self, listener: SnapshotListener) -> None:
        """Call ``listener`` after each applied snapshot and connection change."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception:
                logger.exception("Snapshot listener failed")

    def apply_message(self, raw: str) -> bool:
        """Apply one server frame. Returns True if it carried a snapshot."""
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse WebSocket message: {e}")
            return False

        if not isinstance(message, dict) or message.get("type") != "state_update":
            logger.debug(f"Ignoring message: {raw[:200]!r}")
            return False
        data = message.get("data")
        if not isinstance(data, dict):
            logger.error("state_update message without data")
            return False

        old_action = self.state.get("lastAction")
        self.state = data

        new_action = data.get("lastAction")
        if new_action and new_action != old_action:
            timestamp = message.get("timestamp") or datetime.now(
                timezone.utc
            ).isoformat(timespec="milliseconds")
            self.action_log.insert(
                0,
                ActionLogEntry(
                    action=new_action, timestamp=timestamp, detail=action_detail(data)
                ),
            )
            del self.action_log[self.max_log_entries :]

        self._notify()
        return True

    # ------------------------------------------------------------------
    # Outbound events
    # ------------------------------------------------------------------

    async def send_message(self, msg_type: str, payload: Dict[str, Any]) -> bool:
        if self._ws is None or not self.connected:
            logger.error(f"WebSocket not connected; dropping {msg_type}")
            return False
        try:
            await self._ws.send(json.dumps({"type": msg_type, "payload": payload}))
            return True
        except websockets.WebSocketException as e:
            logger.error(f"Failed to send {msg_type}: {e}")
            return False

    async def submit_input(self, value: Any, request_id: str) -> bool:
        return await self.send_message(
            "submit_input", {"value": value, "requestId": request_id}
        )

    async def cancel_input(self, request_id: str) -> bool:
        return await self.send_message("cancel_input", {"requestId": request_id})

    async def submit_multi_form(self, values: Dict[str, Any], request_id: str) -> bool:
        return await self.send_message(
            "submit_multi_form", {"values": values, "requestId": request_id}
        )

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Stay connected until close() is called."""
        self._closing = False
        while not self._closing:
            try:
                async with websockets.connect(self.url) as ws:
                    self._ws = ws
                    self.connected = True
                    self.error = None
                    logger.info(f"WebSocket connected to {self.url}")
                    self._notify()
                    async for message in ws:
                        if isinstance(message, bytes):
                            message = message.decode("utf-8", errors="replace")
                        self.apply_message(message)
            except (OSError, TimeoutError, websockets.WebSocketException) as e:
                self.error = "WebSocket error"
                logger.warning(f"WebSocket error: {e!r}")
            finally:
                self._ws = None
                if self.connected:
                    self.connected = False
                    self._notify()

            if self._closing:
                break
            logger.info(
                f"WebSocket disconnected, reconnecting in {self.reconnect_delay}s"
            )
            await asyncio.sleep(self.reconnect_delay)

    async def close(self) -> None:
        self._closing = True
        if self._ws is not None:
            await self._ws.close()
