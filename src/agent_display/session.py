"""
Display session: the single owner of the display and input-request state.

A session is created explicitly and handed to whatever needs it (the MCP
tool server, the websocket broadcaster, tests). Every transition is applied
synchronously and followed by a snapshot notification to all subscribers.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .machine import catalog
from .machine.catalog import available_actions
from .machine.display import (
    AppendText,
    ClearText,
    DisplayEvent,
    DisplayMachine,
    DisplayState,
    Reset,
    SetMarkdown,
    SetText,
    Undo,
)
from .machine.errors import ActionNotAvailableError, InvalidArgumentsError
from .machine.input_request import (
    FieldSpec,
    InputRequestManager,
    InputType,
    MultiFieldRequest,
    SingleFieldRequest,
)

logger = logging.getLogger(__name__)

Snapshot = Dict[str, Any]
Listener = Callable[[Snapshot], None]

# Display action name -> (event factory, required string parameter)
_ACTION_EVENTS: Dict[str, tuple[Callable[..., DisplayEvent], Optional[str]]] = {
    "set_text": (lambda v: SetText(text=v), "text"),
    "set_markdown": (lambda v: SetMarkdown(markdown=v), "markdown"),
    "append_text": (lambda v: AppendText(text=v), "text"),
    "clear_text": (ClearText, None),
    "undo": (Undo, None),
    "reset": (Reset, None),
}
DISPLAY_ACTIONS = tuple(_ACTION_EVENTS)


def build_event(name: str, arguments: Mapping[str, Any]) -> DisplayEvent:
    """Turn an action name and its arguments into a display event."""
    try:
        factory, param = _ACTION_EVENTS[name]
    except KeyError:
        raise InvalidArgumentsError(f"Unknown display action '{name}'")
    if param is None:
        return factory()
    value = arguments.get(param)
    if not isinstance(value, str):
        raise InvalidArgumentsError(f"'{name}' requires a string '{param}' argument")
    return factory(value)


class DisplaySession:
    """Owns one DisplayMachine and one InputRequestManager."""

    def __init__(
        self,
        max_history: Optional[int] = None,
        inputs: Optional[InputRequestManager] = None,
    ) -> None:
        self.display = DisplayMachine(max_history=max_history)
        self.inputs = inputs or InputRequestManager()
        self.user_context: Dict[str, Any] = {}
        # Most recent session activity, reported as the snapshot's lastAction
        self.last_action: Optional[str] = None
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a fresh snapshot after every transition.

        Returns a callable that removes the listener again.
        """
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception(f"Snapshot listener {listener!r} failed")

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    @property
    def state(self) -> DisplayState:
        return self.display.state

    def action_names(self) -> List[str]:
        return catalog.action_names(self.display.state)

    def dispatch(self, event: DisplayEvent) -> DisplayState:
        """Apply a display event and notify subscribers."""
        before = self.display.state
        after = self.display.send(event)

        if isinstance(event, Reset):
            self.inputs.reset()
            self.user_context = {}
            self.last_action = "reset"
        elif after is not before and after.last_error is None:
            self.last_action = after.last_action

        self._notify()
        return after

    def perform(
        self, name: str, arguments: Optional[Mapping[str, Any]] = None
    ) -> DisplayState:
        """Apply the catalog action ``name`` with the given arguments.

        Raises:
            ActionNotAvailableError: If ``name`` is not in the current catalog.
            InvalidArgumentsError: If a required parameter is missing.
        """
        available = self.action_names()
        if name not in available:
            raise ActionNotAvailableError(name, available)
        return self.dispatch(build_event(name, arguments or {}))

    # ------------------------------------------------------------------
    # Input requests
    # ------------------------------------------------------------------

    def show_input(
        self,
        prompt: str,
        input_type: InputType = "text",
        placeholder: Optional[str] = None,
        default_value: Optional[str] = None,
        content: Optional[str] = None,
    ) -> SingleFieldRequest:
        request = self.inputs.issue(
            SingleFieldRequest(
                prompt=prompt,
                input_type=input_type,
                placeholder=placeholder,
                default_value=default_value,
                content=content,
            )
        )
        self.last_action = "show_input"
        self._notify()
        return request

    def show_multi_form(
        self,
        fields: Sequence[Union[FieldSpec, Mapping[str, Any]]],
        content: Optional[str] = None,
    ) -> MultiFieldRequest:
        specs = tuple(
            f if isinstance(f, FieldSpec) else FieldSpec.from_dict(f) for f in fields
        )
        request = self.inputs.issue(MultiFieldRequest(fields=specs, content=content))
        self.last_action = "show_multi_form"
        self._notify()
        return request

    def submit_input(self, request_id: str, value: Any) -> bool:
        return self._submit(request_id, value)

    def submit_multi_form(self, request_id: str, values: Mapping[str, Any]) -> bool:
        return self._submit(request_id, values)

    def _submit(self, request_id: str, value: Any) -> bool:
        is_form = isinstance(self.inputs.state.request, MultiFieldRequest)
        action = "multi_form_submitted" if is_form else "input_submitted"
        return self._apply_input(self.inputs.submit(request_id, value), action)

    def cancel_input(self, request_id: str) -> bool:
        return self._apply_input(self.inputs.cancel(request_id), "input_cancelled")

    def _apply_input(self, applied: bool, action: str) -> bool:
        if applied:
            self.last_action = action
            self._notify()
        return applied

    def update_user_context(self, values: Mapping[str, Any]) -> None:
        """Merge ``values`` into the context shared with the UI."""
        self.user_context.update(values)
        self._notify()

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> Snapshot:
        """Assemble the flattened state sent to clients.

        History contents are never included, only their count.
        """
        display = self.display.state
        inputs = self.inputs.state
        submitted = inputs.status == "submitted"
        is_form = isinstance(inputs.request, MultiFieldRequest)

        return {
            "currentState": display.phase,
            "text": display.text,
            "contentType": display.content_type,
            "historyCount": display.history_count,
            "lastAction": self.last_action,
            "lastError": display.last_error,
            "availableActions": [a.to_dict() for a in available_actions(display)],
            "inputRequest": inputs.request.to_dict() if inputs.request else None,
            "inputStatus": inputs.status,
            "userInput": copy.deepcopy(inputs.answer)
            if submitted and not is_form
            else None,
            "multiFieldInput": copy.deepcopy(inputs.answer)
            if submitted and is_form
            else None,
            "userContext": copy.deepcopy(self.user_context),
        }
