import pytest
from conftest import SnapshotRecorder

from agent_display.machine.catalog import action_names
from agent_display.machine.display import NO_HISTORY_ERROR, SetText, Undo
from agent_display.machine.errors import (
    ActionNotAvailableError,
    AlreadyPendingError,
    InvalidArgumentsError,
    InvalidRequestError,
)
from agent_display.machine.input_request import FieldSpec
from agent_display.session import DisplaySession, build_event

SNAPSHOT_KEYS = {
    "currentState",
    "text",
    "contentType",
    "historyCount",
    "lastAction",
    "lastError",
    "availableActions",
    "inputRequest",
    "inputStatus",
    "userInput",
    "multiFieldInput",
    "userContext",
}


def test_initial_snapshot(session: DisplaySession) -> None:
    snapshot = session.snapshot()
    assert set(snapshot) == SNAPSHOT_KEYS
    assert snapshot["currentState"] == "idle"
    assert snapshot["text"] == ""
    assert snapshot["historyCount"] == 0
    assert snapshot["lastAction"] is None
    assert snapshot["inputRequest"] is None
    assert snapshot["inputStatus"] == "idle"
    assert snapshot["userContext"] == {}
    assert [a["name"] for a in snapshot["availableActions"]] == [
        "set_text",
        "set_markdown",
        "append_text",
        "reset",
    ]


def test_perform_notifies_with_snapshot(
    session: DisplaySession, recorder: SnapshotRecorder
) -> None:
    session.perform("set_text", {"text": "hello"})
    session.perform("append_text", {"text": " world"})

    assert len(recorder.snapshots) == 2
    assert recorder.last["text"] == "hello world"
    assert recorder.last["historyCount"] == 2
    assert recorder.last["lastAction"] == "append_text"
    assert recorder.last["currentState"] == "displaying"


def test_perform_rejects_unavailable_action(
    session: DisplaySession, recorder: SnapshotRecorder
) -> None:
    with pytest.raises(ActionNotAvailableError) as exc_info:
        session.perform("undo")
    assert exc_info.value.available == [
        "set_text",
        "set_markdown",
        "append_text",
        "reset",
    ]
    assert "not available" in str(exc_info.value)
    assert recorder.snapshots == []


def test_perform_requires_parameter(session: DisplaySession) -> None:
    with pytest.raises(InvalidArgumentsError):
        session.perform("set_text", {})
    with pytest.raises(InvalidArgumentsError):
        session.perform("set_markdown", {"markdown": 42})
    assert session.state.phase == "idle"


def test_build_event() -> None:
    assert build_event("set_text", {"text": "x"}) == SetText("x")
    assert build_event("undo", {"ignored": True}) == Undo()
    with pytest.raises(InvalidArgumentsError):
        build_event("explode", {})


def test_undo_error_keeps_last_action(
    session: DisplaySession, recorder: SnapshotRecorder
) -> None:
    session.perform("set_text", {"text": "a"})
    session.dispatch(Undo())
    session.dispatch(Undo())

    assert recorder.last["lastError"] == NO_HISTORY_ERROR
    assert recorder.last["lastAction"] == "undo"
    assert recorder.last["text"] == ""


def test_show_input_and_submit(
    session: DisplaySession, recorder: SnapshotRecorder
) -> None:
    request = session.show_input("Name?", placeholder="Your name")
    assert recorder.last["lastAction"] == "show_input"
    assert recorder.last["inputStatus"] == "pending"
    assert recorder.last["inputRequest"] == {
        "kind": "single",
        "requestId": request.request_id,
        "prompt": "Name?",
        "inputType": "text",
        "placeholder": "Your name",
    }

    assert session.submit_input("r1", "Alice") is True
    assert recorder.last["lastAction"] == "input_submitted"
    assert recorder.last["inputStatus"] == "submitted"
    assert recorder.last["userInput"] == "Alice"
    assert recorder.last["multiFieldInput"] is None


def test_stale_submit_does_not_notify(
    session: DisplaySession, recorder: SnapshotRecorder
) -> None:
    session.show_input("Name?")
    count = len(recorder.snapshots)
    assert session.submit_input("nope", "x") is False
    assert session.cancel_input("nope") is False
    assert len(recorder.snapshots) == count


def test_show_multi_form_from_mappings(
    session: DisplaySession, recorder: SnapshotRecorder
) -> None:
    form = session.show_multi_form(
        [
            {"key": "name", "label": "Name", "required": True},
            FieldSpec(key="subscribe", label="Subscribe", type="checkbox"),
        ],
        content="## Sign up",
    )
    assert [f.key for f in form.fields] == ["name", "subscribe"]
    assert recorder.last["lastAction"] == "show_multi_form"
    assert recorder.last["inputRequest"]["kind"] == "multi"
    assert recorder.last["inputRequest"]["content"] == "## Sign up"

    values = {"name": "Bob", "subscribe": True}
    assert session.submit_multi_form("r1", values) is True
    assert recorder.last["lastAction"] == "multi_form_submitted"
    assert recorder.last["multiFieldInput"] == values
    assert recorder.last["userInput"] is None

    # Snapshots hold copies
    recorder.last["multiFieldInput"]["name"] = "changed"
    assert session.snapshot()["multiFieldInput"]["name"] == "Bob"


def test_snapshot_catalog_is_a_copy(session: DisplaySession) -> None:
    snapshot = session.snapshot()
    snapshot["availableActions"][0]["inputSchema"]["required"].append("bogus")
    snapshot["availableActions"][-1]["inputSchema"]["properties"]["x"] = {}

    assert session.snapshot()["availableActions"][0]["inputSchema"]["required"] == [
        "text"
    ]
    fresh = DisplaySession().snapshot()["availableActions"]
    assert fresh[0]["inputSchema"]["required"] == ["text"]
    assert fresh[-1]["inputSchema"] == {"type": "object", "properties": {}}


def test_snapshot_user_input_is_a_copy(session: DisplaySession) -> None:
    session.show_input("Tags?")
    session.submit_input("r1", ["a", "b"])
    session.snapshot()["userInput"].append("c")
    assert session.snapshot()["userInput"] == ["a", "b"]


def test_malformed_form_field_rejected(session: DisplaySession) -> None:
    with pytest.raises(InvalidRequestError):
        session.show_multi_form(
            [{"key": "c", "label": "C", "type": "select", "options": 5}]
        )
    assert session.snapshot()["inputStatus"] == "idle"


def test_cancel_input(session: DisplaySession, recorder: SnapshotRecorder) -> None:
    session.show_input("Name?")
    assert session.cancel_input("r1") is True
    assert recorder.last["lastAction"] == "input_cancelled"
    assert recorder.last["inputStatus"] == "cancelled"
    assert recorder.last["userInput"] is None


def test_second_request_while_pending_raises(session: DisplaySession) -> None:
    session.show_input("First?")
    with pytest.raises(AlreadyPendingError):
        session.show_multi_form([{"key": "a", "label": "A"}])
    assert session.snapshot()["inputRequest"]["prompt"] == "First?"


def test_reset_clears_everything(
    session: DisplaySession, recorder: SnapshotRecorder
) -> None:
    session.perform("set_markdown", {"markdown": "# Hi"})
    session.update_user_context({"user": "alice"})
    session.show_input("Name?")

    session.perform("reset")

    snapshot = recorder.last
    assert snapshot["lastAction"] == "reset"
    assert snapshot["currentState"] == "idle"
    assert snapshot["text"] == ""
    assert snapshot["historyCount"] == 0
    assert snapshot["inputRequest"] is None
    assert snapshot["inputStatus"] == "idle"
    assert snapshot["userContext"] == {}
    assert session.submit_input("r1", "late") is False


def test_update_user_context_merges(
    session: DisplaySession, recorder: SnapshotRecorder
) -> None:
    session.update_user_context({"a": 1})
    session.update_user_context({"b": 2, "a": 3})
    assert recorder.last["userContext"] == {"a": 3, "b": 2}


def test_display_and_input_are_independent(session: DisplaySession) -> None:
    session.show_input("Name?")
    session.perform("set_text", {"text": "still works"})
    snapshot = session.snapshot()
    assert snapshot["text"] == "still works"
    assert snapshot["inputStatus"] == "pending"
    assert snapshot["lastAction"] == "set_text"


def test_unsubscribe(session: DisplaySession) -> None:
    recorder = SnapshotRecorder()
    unsubscribe = session.subscribe(recorder)
    session.perform("set_text", {"text": "a"})
    unsubscribe()
    session.perform("set_text", {"text": "b"})
    assert len(recorder.snapshots) == 1


def test_failing_listener_does_not_block_others(session: DisplaySession) -> None:
    def broken(_snapshot: dict) -> None:
        raise RuntimeError("boom")

    recorder = SnapshotRecorder()
    session.subscribe(broken)
    session.subscribe(recorder)
    session.perform("set_text", {"text": "a"})
    assert recorder.last["text"] == "a"


def test_sessions_are_independent() -> None:
    first = DisplaySession()
    second = DisplaySession()
    first.perform("set_text", {"text": "only here"})
    assert second.snapshot()["text"] == ""


def test_max_history_is_passed_through() -> None:
    session = DisplaySession(max_history=1)
    session.perform("set_text", {"text": "a"})
    session.perform("set_text", {"text": "b"})
    assert session.snapshot()["historyCount"] == 1


def test_action_names_follow_catalog(session: DisplaySession) -> None:
    assert session.action_names() == action_names(session.state)
    session.perform("set_text", {"text": "a"})
    session.perform("set_text", {"text": "b"})
    assert session.action_names() == action_names(session.state)
    assert "undo" in session.action_names()
