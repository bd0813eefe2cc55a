"""
Catalog of the display actions that are legal in a given state.

Descriptors and their schemas are built fresh on every call, so callers may
keep or modify what they receive.
"""

import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .display import DisplayState


@dataclass(frozen=True)
class ActionDescriptor:
    """An action an agent may invoke, with the JSON schema of its parameters."""

    name: str
    description: str
    input_schema: Dict[str, Any]
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": copy.deepcopy(self.input_schema),
        }
        if self.reason is not None:
            data["reason"] = self.reason
        return data


def _empty_schema() -> Dict[str, Any]:
    return {"type": "object", "properties": {}}


def _string_schema(param: str, description: str) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {param: {"type": "string", "description": description}},
        "required": [param],
    }


def available_actions(state: DisplayState) -> List[ActionDescriptor]:
    """Return the actions that are legal in ``state``, in display order."""
    actions = [
        ActionDescriptor(
            name="set_text",
            description="Set the displayed text to a new value",
            input_schema=_string_schema("text", "The text to display"),
        ),
        ActionDescriptor(
            name="set_markdown",
            description=(
                "Set the displayed content to markdown with Mermaid diagram support"
            ),
            input_schema=_string_schema("markdown", "The markdown content to display"),
        ),
        ActionDescriptor(
            name="append_text",
            description="Append text to the current display",
            input_schema=_string_schema("text", "The text to append"),
        ),
    ]

    if state.phase == "displaying":
        actions.append(
            ActionDescriptor(
                name="clear_text",
                description="Clear all text from the display",
                input_schema=_empty_schema(),
            )
        )
        if state.history:
            actions.append(
                ActionDescriptor(
                    name="undo",
                    description="Undo the last text change",
                    input_schema=_empty_schema(),
                    reason=f"Can undo {len(state.history)} change(s)",
                )
            )

    actions.append(
        ActionDescriptor(
            name="reset",
            description="Reset the display to initial state",
            input_schema=_empty_schema(),
        )
    )
    return actions


def action_names(state: DisplayState) -> List[str]:
    return [action.name for action in available_actions(state)]
