import json
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
import websockets

from agent_display.client.sync import ClientSync, initial_state


TIMESTAMP = "2025-01-01T00:00:00.000+00:00"


def frame(timestamp: Optional[str] = TIMESTAMP, **data: Any) -> str:
    snapshot = {**initial_state(), **data}
    return json.dumps(
        {"type": "state_update", "timestamp": timestamp, "data": snapshot}
    )


def test_initial_state() -> None:
    sync = ClientSync()
    assert sync.state["currentState"] == "idle"
    assert sync.action_log == []
    assert sync.connected is False


def test_snapshot_replaces_state_and_logs_action() -> None:
    sync = ClientSync()
    assert sync.apply_message(frame(lastAction="set_text", text="hello")) is True

    assert sync.state["text"] == "hello"
    assert len(sync.action_log) == 1
    entry = sync.action_log[0]
    assert entry.action == "set_text"
    assert entry.detail == "hello"
    assert entry.timestamp == TIMESTAMP


def test_repeated_action_is_logged_once() -> None:
    sync = ClientSync()
    sync.apply_message(frame(lastAction="set_text", text="a"))
    sync.apply_message(frame(lastAction="set_text", text="b"))
    assert sync.state["text"] == "b"
    assert len(sync.action_log) == 1


def test_log_is_newest_first_and_bounded() -> None:
    sync = ClientSync()
    actions = ["set_text", "append_text"] * 15
    for i, action in enumerate(actions):
        sync.apply_message(frame(lastAction=action, text=str(i)))

    assert len(sync.action_log) == 20
    assert sync.action_log[0].action == "append_text"
    assert sync.action_log[0].detail == "Appended to text (now 2 chars)"


def test_missing_timestamp_is_filled_in() -> None:
    sync = ClientSync()
    sync.apply_message(frame(timestamp=None, lastAction="reset"))
    assert sync.action_log[0].timestamp


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        json.dumps({"type": "hello"}),
        json.dumps({"type": "state_update", "data": "oops"}),
    ],
)
def test_malformed_frames_leave_state_alone(raw: str) -> None:
    sync = ClientSync()
    sync.apply_message(frame(lastAction="set_text", text="kept"))
    assert sync.apply_message(raw) is False
    assert sync.state["text"] == "kept"
    assert len(sync.action_log) == 1


def test_listener_called_per_snapshot() -> None:
    seen: List[Dict[str, Any]] = []
    sync = ClientSync()
    sync.add_listener(seen.append)
    sync.apply_message(frame(text="a"))
    sync.apply_message("garbage")
    assert [s["text"] for s in seen] == ["a"]


@pytest.mark.asyncio
async def test_send_while_disconnected_is_dropped() -> None:
    sync = ClientSync()
    assert await sync.submit_input("x", "r1") is False


@pytest.mark.asyncio
async def test_outbound_messages() -> None:
    sync = ClientSync()
    sync._ws = AsyncMock()
    sync.connected = True

    assert await sync.submit_input("Alice", "r1") is True
    assert await sync.submit_multi_form({"a": 1}, "r2") is True
    assert await sync.cancel_input("r3") is True

    sent = [json.loads(c.args[0]) for c in sync._ws.send.await_args_list]
    assert sent == [
        {"type": "submit_input", "payload": {"value": "Alice", "requestId": "r1"}},
        {
            "type": "submit_multi_form",
            "payload": {"values": {"a": 1}, "requestId": "r2"},
        },
        {"type": "cancel_input", "payload": {"requestId": "r3"}},
    ]


class FakeConnection:
    def __init__(self, messages: List[str]):
        self.messages = messages

    async def __aenter__(self) -> "FakeConnection":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        pass

    def __aiter__(self) -> "FakeConnection":
        return self

    async def __anext__(self) -> str:
        if not self.messages:
            raise StopAsyncIteration
        return self.messages.pop(0)

    async def send(self, data: str) -> None:
        pass

    async def close(self) -> None:
        pass


@pytest.mark.asyncio
async def test_run_reconnects_after_drop(monkeypatch: pytest.MonkeyPatch) -> None:
    sync = ClientSync("ws://test", reconnect_delay=0.01)
    connection_states: List[bool] = []
    sync.add_listener(lambda _state: connection_states.append(sync.connected))
    attempts: List[str] = []

    def fake_connect(url: str) -> FakeConnection:
        attempts.append(url)
        if len(attempts) == 1:
            return FakeConnection([frame(lastAction="set_text", text="hello")])
        # Second attempt: server gone, stop the loop
        sync._closing = True
        raise OSError("connection refused")

    monkeypatch.setattr(websockets, "connect", fake_connect)
    await sync.run()

    assert attempts == ["ws://test", "ws://test"]
    assert sync.state["text"] == "hello"
    assert sync.connected is False
    assert sync.error == "WebSocket error"
    # connected, snapshot, disconnected
    assert connection_states == [True, True, False]
