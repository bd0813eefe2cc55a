"""
Display state machine with a bounded-or-unbounded undo history.

The machine has two phases, ``idle`` and ``displaying``. Every content
mutation pushes the previous ``(text, content_type)`` pair onto the history
so it can be restored by ``Undo``. ``transition`` is a pure function;
``DisplayMachine`` only keeps track of the current state.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Literal, Optional, Tuple, Union

logger = logging.getLogger(__name__)

ContentType = Literal["text", "markdown"]
Phase = Literal["idle", "displaying"]

NO_HISTORY_ERROR = "No history to undo"


@dataclass(frozen=True)
class HistoryEntry:
    """A previously displayed value."""

    text: str
    content_type: ContentType


@dataclass(frozen=True)
class DisplayState:
    phase: Phase = "idle"
    text: str = ""
    content_type: ContentType = "text"
    history: Tuple[HistoryEntry, ...] = field(default_factory=tuple)
    last_action: Optional[str] = None
    last_error: Optional[str] = None

    @property
    def history_count(self) -> int:
        return len(self.history)

    def current_entry(self) -> HistoryEntry:
        return HistoryEntry(text=self.text, content_type=self.content_type)


INITIAL_STATE = DisplayState()


# Display events
@dataclass(frozen=True)
class SetText:
    text: str


@dataclass(frozen=True)
class SetMarkdown:
    markdown: str


@dataclass(frozen=True)
class AppendText:
    text: str


@dataclass(frozen=True)
class ClearText:
    pass


@dataclass(frozen=True)
class Undo:
    pass


@dataclass(frozen=True)
class Reset:
    pass


DisplayEvent = Union[SetText, SetMarkdown, AppendText, ClearText, Undo, Reset]


def _push(
    state: DisplayState, max_history: Optional[int]
) -> Tuple[HistoryEntry, ...]:
    history = state.history + (state.current_entry(),)
    if max_history is not None and len(history) > max_history:
        history = history[len(history) - max_history :]
    return history


def transition(
    state: DisplayState, event: DisplayEvent, max_history: Optional[int] = None
) -> DisplayState:
    """Return the state that follows ``state`` after ``event``.

    Args:
        state: The current display state.
        event: The display event to apply.
        max_history: Maximum number of undo entries to keep, or None for no limit.

    Returns:
        The next display state. Never raises for a well-typed event: undo on an
        empty history is reported through ``last_error`` instead.
    """
    match event:
        case SetText(text=text):
            return replace(
                state,
                phase="displaying",
                history=_push(state, max_history),
                text=text,
                content_type="text",
                last_action="set_text",
                last_error=None,
            )

        case SetMarkdown(markdown=markdown):
            return replace(
                state,
                phase="displaying",
                history=_push(state, max_history),
                text=markdown,
                content_type="markdown",
                last_action="set_markdown",
                last_error=None,
            )

        case AppendText(text=text):
            return replace(
                state,
                phase="displaying",
                history=_push(state, max_history),
                text=state.text + text,
                last_action="append_text",
                last_error=None,
            )

        case ClearText():
            if state.phase != "displaying":
                return state
            return replace(
                state,
                phase="idle",
                history=_push(state, max_history),
                text="",
                last_action="clear_text",
                last_error=None,
            )

        case Undo():
            if state.phase != "displaying" or not state.history:
                return replace(state, last_error=NO_HISTORY_ERROR)
            previous = state.history[-1]
            return replace(
                state,
                history=state.history[:-1],
                text=previous.text,
                content_type=previous.content_type,
                last_action="undo",
                last_error=None,
            )

        case Reset():
            return INITIAL_STATE

        case _:
            raise TypeError(f"Unknown display event: {event!r}")


class DisplayMachine:
    """Holds the current DisplayState and applies events to it."""

    def __init__(self, max_history: Optional[int] = None) -> None:
        if max_history is not None and max_history < 1:
            raise ValueError("max_history must be a positive integer or None")
        self.max_history = max_history
        self._state = INITIAL_STATE

    @property
    def state(self) -> DisplayState:
        return self._state

    def send(self, event: DisplayEvent) -> DisplayState:
        """Apply ``event`` and return the new state."""
        self._state = transition(self._state, event, self.max_history)
        if isinstance(event, Undo) and self._state.last_error:
            logger.info(f"{type(event).__name__} rejected: {self._state.last_error}")
        else:
            logger.debug(
                f"{type(event).__name__} -> {self._state.phase} "
                f"(history={self._state.history_count})"
            )
        return self._state
