"""
Terminal watch console: renders every snapshot and answers input requests.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.document import Document
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.shortcuts import PromptSession
from prompt_toolkit.validation import ValidationError, Validator
from rich.console import Console

from agent_display.client.rendering import console as rich_console
from agent_display.client.rendering import render_snapshot
from agent_display.client.sync import ClientSync, Snapshot

logger = logging.getLogger(__name__)

YES = {"y", "yes", "true", "1", "on"}
NO = {"", "n", "no", "false", "0", "off"}


def parse_number(text: str) -> int | float:
    """Parse an int or float; raise ValueError otherwise."""
    text = text.strip()
    try:
        return int(text)
    except ValueError:
        return float(text)


class FieldValidator(Validator):
    """Validates a typed answer against the input type it was requested as."""

    def __init__(
        self,
        field_type: str,
        required: bool = False,
        options: Optional[List[str]] = None,
    ) -> None:
        self.field_type = field_type
        self.required = required
        self.options = options or []

    def validate(self, document: Document) -> None:
        text = document.text.strip()
        if not text:
            if self.required:
                raise ValidationError(message="A value is required")
            return
        if self.field_type == "number":
            try:
                parse_number(text)
            except ValueError:
                raise ValidationError(
                    message="Enter a number", cursor_position=len(document.text)
                )
        elif self.field_type == "checkbox":
            if text.lower() not in YES | NO:
                raise ValidationError(message="Answer yes or no")
        elif self.field_type == "select" and text not in self.options:
            raise ValidationError(message=f"Choose one of: {', '.join(self.options)}")


def convert_answer(field_type: str, text: str) -> Any:
    """Turn a validated form answer into the value sent to the server."""
    text = text.strip()
    if field_type == "checkbox":
        return text.lower() in YES
    if field_type == "number":
        return parse_number(text) if text else None
    return text


def _default_text(value: Any, field_type: str) -> str:
    if value is None:
        return ""
    if field_type == "checkbox":
        return "yes" if value is True or str(value).lower() in YES else "no"
    return str(value)


class WatchConsole:
    """Renders snapshots and prompts the human for pending input requests."""

    def __init__(self, sync: ClientSync, console: Optional[Console] = None) -> None:
        self.sync = sync
        self.console = console or rich_console
        self._prompt_session: Optional[PromptSession[str]] = None
        self._prompt_task: Optional[asyncio.Task[None]] = None
        self._prompt_request_id: Optional[str] = None

    @property
    def prompt_session(self) -> PromptSession[str]:
        if self._prompt_session is None:
            self._prompt_session = PromptSession()
        return self._prompt_session

    def on_snapshot(self, snapshot: Snapshot) -> None:
        render_snapshot(
            snapshot,
            self.sync.action_log,
            self.sync.connected,
            target=self.console,
            error=self.sync.error,
        )

        request = snapshot.get("inputRequest")
        pending_id = None
        if isinstance(request, dict) and snapshot.get("inputStatus") == "pending":
            pending_id = request.get("requestId")

        # Request answered elsewhere, cancelled or superseded
        if self._prompt_task is not None and self._prompt_request_id != pending_id:
            self._prompt_task.cancel()
            self._prompt_task = None
            self._prompt_request_id = None

        if pending_id and self._prompt_task is None and self.sync.connected:
            self._prompt_request_id = pending_id
            self._prompt_task = asyncio.get_running_loop().create_task(
                self._answer(request)
            )

    async def _answer(self, request: Dict[str, Any]) -> None:
        request_id = request["requestId"]
        try:
            if request.get("kind") == "multi":
                values = await self.ask_form(request.get("fields") or [])
                self._release(request_id)
                await self.sync.submit_multi_form(values, request_id)
            else:
                value = await self.ask_single(request)
                self._release(request_id)
                await self.sync.submit_input(value, request_id)
        except (KeyboardInterrupt, EOFError):
            self._release(request_id)
            await self.sync.cancel_input(request_id)

    def _release(self, request_id: str) -> None:
        if self._prompt_request_id == request_id:
            self._prompt_task = None
            self._prompt_request_id = None

    async def ask_single(self, request: Dict[str, Any]) -> str:
        input_type = request.get("inputType", "text")
        multiline = input_type == "textarea"
        message = request.get("prompt") or "Input"
        if multiline:
            message += " (Esc+Enter to submit)"
        return await self.prompt_session.prompt_async(
            f"{message}\n> ",
            default=_default_text(request.get("defaultValue"), input_type),
            placeholder=request.get("placeholder"),
            multiline=multiline,
            validator=FieldValidator(input_type),
            validate_while_typing=False,
        )

    async def ask_form(self, fields: List[Dict[str, Any]]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for field in fields:
            field_type = field.get("type", "text")
            options = [str(o) for o in field.get("options") or []]
            label = field.get("label") or field["key"]
            if field_type == "checkbox":
                label += " [y/n]"
            elif field_type == "select":
                label += f" ({' / '.join(options)})"
            if field.get("required"):
                label += " *"

            text = await self.prompt_session.prompt_async(
                f"{label}: ",
                default=_default_text(field.get("defaultValue"), field_type),
                placeholder=field.get("placeholder"),
                multiline=field_type == "textarea",
                completer=WordCompleter(options) if options else None,
                validator=FieldValidator(
                    field_type, bool(field.get("required")), options
                ),
                validate_while_typing=False,
            )
            values[field["key"]] = convert_answer(field_type, text)
        return values

    async def run(self) -> None:
        self.sync.add_listener(self.on_snapshot)
        with patch_stdout():
            try:
                await self.sync.run()
            finally:
                if self._prompt_task is not None:
                    self._prompt_task.cancel()
