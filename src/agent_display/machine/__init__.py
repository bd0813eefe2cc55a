"""Display core: display state machine, action catalog and input requests."""

from .catalog import ActionDescriptor, available_actions
from .display import (
    AppendText,
    ClearText,
    DisplayEvent,
    DisplayMachine,
    DisplayState,
    HistoryEntry,
    Reset,
    SetMarkdown,
    SetText,
    Undo,
)
from .errors import (
    ActionNotAvailableError,
    AgentDisplayError,
    AlreadyPendingError,
    InvalidArgumentsError,
    InvalidRequestError,
)
from .input_request import (
    FieldSpec,
    InputRequest,
    InputRequestManager,
    InputRequestState,
    MultiFieldRequest,
    SingleFieldRequest,
)

__all__ = [
    "ActionDescriptor",
    "ActionNotAvailableError",
    "AgentDisplayError",
    "AlreadyPendingError",
    "AppendText",
    "ClearText",
    "DisplayEvent",
    "DisplayMachine",
    "DisplayState",
    "FieldSpec",
    "HistoryEntry",
    "InputRequest",
    "InputRequestManager",
    "InputRequestState",
    "InvalidArgumentsError",
    "InvalidRequestError",
    "MultiFieldRequest",
    "Reset",
    "SetMarkdown",
    "SetText",
    "SingleFieldRequest",
    "Undo",
    "available_actions",
]
