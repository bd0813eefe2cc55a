"""
MCP server exposing the display to an agent over stdio.

The tool list is dynamic: display actions are taken from the current action
catalog, followed by the input-request and inspection tools which are always
available. Clients are told when the catalog changes.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from mcp.server.lowlevel import Server
from mcp.types import TextContent, Tool

from agent_display.machine.catalog import available_actions
from agent_display.machine.errors import AgentDisplayError, InvalidArgumentsError
from agent_display.machine.input_request import (
    FIELD_TYPES,
    INPUT_TYPES,
    InputRequestState,
)
from agent_display.session import DISPLAY_ACTIONS, DisplaySession

logger = logging.getLogger(__name__)

DEFAULT_WAIT_TIMEOUT = 300.0

INPUT_TOOLS: List[Tool] = [
    Tool(
        name="show_input",
        description=(
            "Ask the human for a single value. Returns a requestId; "
            "use get_input to read the answer"
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "Question or instruction shown to the human",
                },
                "inputType": {
                    "type": "string",
                    "enum": list(INPUT_TYPES),
                    "description": "Kind of input control (default: text)",
                    "default": "text",
                },
                "placeholder": {
                    "type": "string",
                    "description": "Placeholder shown in the empty input",
                },
                "defaultValue": {
                    "type": "string",
                    "description": "Value the input starts with",
                },
                "content": {
                    "type": "string",
                    "description": "Optional markdown shown above the input",
                },
            },
            "required": ["prompt"],
        },
    ),
    Tool(
        name="show_multi_form",
        description=(
            "Ask the human to fill in a form with several fields. Returns a "
            "requestId; use get_input to read the answers"
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "fields": {
                    "type": "array",
                    "description": "Form fields, in display order",
                    "items": {
                        "type": "object",
                        "properties": {
                            "key": {"type": "string"},
                            "label": {"type": "string"},
                            "type": {"type": "string", "enum": list(FIELD_TYPES)},
                            "placeholder": {"type": "string"},
                            "defaultValue": {},
                            "required": {"type": "boolean"},
                            "options": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "Choices for select fields",
                            },
                        },
                        "required": ["key", "label"],
                    },
                },
                "content": {
                    "type": "string",
                    "description": "Optional markdown shown above the form",
                },
            },
            "required": ["fields"],
        },
    ),
    Tool(
        name="get_input",
        description=(
            "Get the status and answer of the current input request, "
            "optionally waiting for the human to respond"
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "requestId": {
                    "type": "string",
                    "description": "Request to check (default: the current one)",
                },
                "wait": {
                    "type": "boolean",
                    "description": "Wait until the request is answered or cancelled",
                    "default": False,
                },
                "timeoutSeconds": {
                    "type": "number",
                    "description": "Maximum time to wait when wait is true",
                },
            },
        },
    ),
    Tool(
        name="cancel_input",
        description="Withdraw the pending input request",
        inputSchema={
            "type": "object",
            "properties": {
                "requestId": {
                    "type": "string",
                    "description": "Request to cancel",
                }
            },
            "required": ["requestId"],
        },
    ),
    Tool(
        name="get_state",
        description="Get the current display state, actions and input status",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="set_user_context",
        description="Merge key/value pairs into the context shown with the display",
        inputSchema={
            "type": "object",
            "properties": {
                "context": {
                    "type": "object",
                    "description": "Values to merge into the user context",
                }
            },
            "required": ["context"],
        },
    ),
]


def list_session_tools(session: DisplaySession) -> List[Tool]:
    """Current display actions followed by the always-available tools."""
    catalog = [
        Tool(
            name=action.name,
            description=f"{action.description} ({action.reason})"
            if action.reason
            else action.description,
            inputSchema=action.input_schema,
        )
        for action in available_actions(session.state)
    ]
    return catalog + INPUT_TOOLS


def _display_summary(session: DisplaySession) -> Dict[str, Any]:
    state = session.state
    return {
        "currentState": state.phase,
        "contentType": state.content_type,
        "textLength": len(state.text),
        "historyCount": state.history_count,
        "lastAction": state.last_action,
        "lastError": state.last_error,
        "availableActions": session.action_names(),
    }


def _input_summary(state: InputRequestState) -> Dict[str, Any]:
    return {
        "requestId": state.request.request_id if state.request else None,
        "status": state.status,
        "value": state.answer,
    }


def _timeout(arguments: Dict[str, Any], default: float) -> float:
    value = arguments.get("timeoutSeconds")
    if value is None:
        return default
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise InvalidArgumentsError("'timeoutSeconds' must be a number")
    if timeout <= 0:
        raise InvalidArgumentsError("'timeoutSeconds' must be positive")
    return timeout


def _optional_str(arguments: Dict[str, Any], key: str) -> Optional[str]:
    value = arguments.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidArgumentsError(f"'{key}' must be a string")
    return value


async def wait_for_resolution(
    session: DisplaySession, request_id: str, timeout: float
) -> InputRequestState:
    """Wait until ``request_id`` stops being pending, or ``timeout`` elapses.

    The request itself is left pending on timeout.
    """
    resolved = asyncio.Event()

    def on_snapshot(_snapshot: Dict[str, Any]) -> None:
        if session.inputs.state.pending_id != request_id:
            resolved.set()

    unsubscribe = session.subscribe(on_snapshot)
    try:
        if session.inputs.state.pending_id == request_id:
            try:
                await asyncio.wait_for(resolved.wait(), timeout)
            except asyncio.TimeoutError:
                logger.info(f"Still waiting on input request {request_id}")
    finally:
        unsubscribe()
    return session.inputs.state


async def handle_tool_call(
    session: DisplaySession,
    name: str,
    arguments: Dict[str, Any],
    wait_timeout: float = DEFAULT_WAIT_TIMEOUT,
) -> str:
    """Run one tool call against ``session`` and return its text result.

    Raises:
        AgentDisplayError: If the call is rejected. The session is unchanged.
    """
    if name in DISPLAY_ACTIONS:
        session.perform(name, arguments)
        return json.dumps(_display_summary(session))

    if name == "show_input":
        prompt = arguments.get("prompt")
        if not isinstance(prompt, str):
            raise InvalidArgumentsError("'show_input' requires a string 'prompt'")
        request = session.show_input(
            prompt=prompt,
            input_type=arguments.get("inputType") or "text",
            placeholder=_optional_str(arguments, "placeholder"),
            default_value=_optional_str(arguments, "defaultValue"),
            content=_optional_str(arguments, "content"),
        )
        return json.dumps({"requestId": request.request_id, "status": "pending"})

    if name == "show_multi_form":
        fields = arguments.get("fields")
        if not isinstance(fields, list):
            raise InvalidArgumentsError("'show_multi_form' needs a 'fields' array")
        form = session.show_multi_form(
            fields, content=_optional_str(arguments, "content")
        )
        return json.dumps(
            {
                "requestId": form.request_id,
                "status": "pending",
                "fields": [f.key for f in form.fields],
            }
        )

    if name == "get_input":
        state = session.inputs.state
        request_id = _optional_str(arguments, "requestId") or (
            state.request.request_id if state.request else None
        )
        if request_id is None:
            return json.dumps({"requestId": None, "status": "idle", "value": None})
        if state.request is None or state.request.request_id != request_id:
            return json.dumps(
                {"requestId": request_id, "status": "unknown", "value": None}
            )
        if arguments.get("wait") and state.status == "pending":
            timeout = _timeout(arguments, wait_timeout)
            state = await wait_for_resolution(session, request_id, timeout)
            if state.request is None or state.request.request_id != request_id:
                # Superseded by a reset while waiting
                return json.dumps(
                    {"requestId": request_id, "status": "unknown", "value": None}
                )
        return json.dumps(_input_summary(state))

    if name == "cancel_input":
        request_id = _optional_str(arguments, "requestId")
        if request_id is None:
            raise InvalidArgumentsError("'cancel_input' requires a 'requestId'")
        cancelled = session.cancel_input(request_id)
        return json.dumps(
            {
                "requestId": request_id,
                "cancelled": cancelled,
                "status": session.inputs.state.status,
            }
        )

    if name == "get_state":
        return json.dumps(session.snapshot(), indent=2)

    if name == "set_user_context":
        context = arguments.get("context")
        if not isinstance(context, dict):
            raise InvalidArgumentsError("'set_user_context' needs a 'context' object")
        session.update_user_context(context)
        return json.dumps({"userContext": session.user_context})

    raise InvalidArgumentsError(f"Unknown tool: {name}")


def create_mcp_server(
    session: DisplaySession, wait_timeout: float = DEFAULT_WAIT_TIMEOUT
) -> Any:
    """Create the lowlevel MCP server bound to ``session``."""
    server: Any = Server("agent-display")

    @server.list_tools()  # type: ignore[misc]
    async def list_tools() -> List[Tool]:
        """List the tools available in the current state."""
        return list_session_tools(session)

    @server.call_tool()  # type: ignore[misc]
    async def call_tool(
        name: str, arguments: Dict[str, Any] | None = None
    ) -> List[TextContent]:
        """Execute a tool and return results."""
        before = session.action_names()
        try:
            text = await handle_tool_call(
                session, name, arguments or {}, wait_timeout
            )
        except AgentDisplayError as e:
            logger.info(f"Tool {name} rejected: {e}")
            text = f"Error: {e}"
        except Exception as e:
            logger.exception(f"Tool {name} failed")
            text = f"Error: {str(e)}"

        if session.action_names() != before:
            await _send_tool_list_changed(server)
        return [TextContent(type="text", text=text)]

    return server


async def _send_tool_list_changed(server: Any) -> None:
    try:
        await server.request_context.session.send_tool_list_changed()
    except LookupError:
        logger.debug("No request context; tool list change not announced")
