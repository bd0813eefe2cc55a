"""
Human-readable action log derived from successive snapshots.
"""

from dataclasses import dataclass
from typing import Any, Dict

DETAIL_MAX_LENGTH = 100


@dataclass(frozen=True)
class ActionLogEntry:
    action: str
    timestamp: str
    detail: str


def truncate(text: str, max_length: int = DETAIL_MAX_LENGTH) -> str:
    """Truncate ``text`` with an ellipsis; blank text reads as ``(empty)``."""
    if len(text) <= max_length:
        return text or "(empty)"
    return text[:max_length] + "..."


def _is_form(request: Any) -> bool:
    return isinstance(request, dict) and request.get("kind") == "multi"


def action_detail(snapshot: Dict[str, Any]) -> str:
    """Describe the snapshot's last action in a few words."""
    text = snapshot.get("text") or ""
    request = snapshot.get("inputRequest")

    match snapshot.get("lastAction"):
        case "set_text" | "set_markdown":
            return truncate(text)
        case "append_text":
            return f"Appended to text (now {len(text)} chars)"
        case "show_input":
            if isinstance(request, dict) and not _is_form(request):
                return request.get("prompt") or "Input requested"
            return "Input requested"
        case "show_multi_form":
            if _is_form(request):
                return f"{len(request.get('fields') or [])} field form"
            return "Multi-field form"
        case "input_submitted":
            value = snapshot.get("userInput")
            return "(empty)" if value in (None, "") else str(value)
        case "multi_form_submitted":
            values = snapshot.get("multiFieldInput")
            if isinstance(values, dict):
                return f"{len(values)} values submitted"
            return "Form submitted"
        case "input_cancelled":
            return "User cancelled input"
        case "clear_text":
            return "Text cleared"
        case "undo":
            return "Restored previous state"
        case "reset":
            return "Reset to initial state"
        case _:
            return text or "(empty)"
