from typing import Any, Dict, List, Optional

from rich.console import Console, ConsoleOptions, Group, RenderableType, RenderResult
from rich.markdown import Heading, Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from agent_display.client.action_log import ActionLogEntry


# Classes to override the default Markdown renderer
class PlainHeading(Heading):
    """Left-aligned, no panel."""

    def __rich_console__(
        self, console: Console, options: ConsoleOptions
    ) -> RenderResult:
        self.text.justify = "left"
        yield self.text


class PlainMarkdown(Markdown):
    elements = Markdown.elements.copy()
    elements["heading_open"] = PlainHeading


console = Console()


def _status_line(
    state: Dict[str, Any], connected: bool, error: Optional[str] = None
) -> Text:
    line = Text()
    if connected:
        line.append("● connected", style="bold green")
    else:
        line.append("○ disconnected", style="bold red")
        if error:
            line.append(f" ({error})", style="red")
    line.append(f"  state: {state.get('currentState', 'idle')}")
    line.append(f"  history: {state.get('historyCount', 0)}")
    if state.get("lastAction"):
        line.append(f"  last: {state['lastAction']}", style="dim")
    return line


def _display_panel(state: Dict[str, Any]) -> Panel:
    text = state.get("text") or ""
    body: RenderableType
    if not text:
        body = Text("(empty)", style="dim")
    elif state.get("contentType") == "markdown":
        body = PlainMarkdown(text, code_theme="nord", hyperlinks=True)
    else:
        body = Text(text)
    return Panel(body, title="Display", title_align="left")


def _input_panel(state: Dict[str, Any]) -> Optional[Panel]:
    request = state.get("inputRequest")
    status = state.get("inputStatus", "idle")
    if not isinstance(request, dict):
        return None

    parts: List[RenderableType] = []
    if request.get("content"):
        parts.append(PlainMarkdown(request["content"], code_theme="nord"))
    if request.get("kind") == "multi":
        for field in request.get("fields") or []:
            marker = "*" if field.get("required") else " "
            parts.append(
                Text(f"{marker} {field.get('label')} ({field.get('type', 'text')})")
            )
    else:
        parts.append(Text(request.get("prompt") or "", style="bold"))

    if status == "submitted":
        answer = state.get("multiFieldInput") or state.get("userInput")
        parts.append(Text(f"submitted: {answer}", style="green"))
    elif status == "cancelled":
        parts.append(Text("cancelled", style="yellow"))

    title = "Input requested" if status == "pending" else f"Input ({status})"
    return Panel(Group(*parts), title=title, title_align="left", border_style="cyan")


def _action_log_table(action_log: List[ActionLogEntry]) -> Table:
    table = Table(title="Action log", title_justify="left", expand=True)
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Action", style="cyan", no_wrap=True)
    table.add_column("Detail")
    for entry in action_log:
        table.add_row(entry.timestamp, entry.action, entry.detail)
    return table


def build_view(
    state: Dict[str, Any],
    action_log: List[ActionLogEntry],
    connected: bool,
    error: Optional[str] = None,
) -> Group:
    """Compose the full watch view for one snapshot."""
    parts: List[RenderableType] = [
        _status_line(state, connected, error),
        _display_panel(state),
    ]
    if state.get("lastError"):
        parts.append(Text(f"error: {state['lastError']}", style="bold red"))
    input_panel = _input_panel(state)
    if input_panel is not None:
        parts.append(input_panel)
    context = state.get("userContext") or {}
    if context:
        ctx_table = Table(title="Context", title_justify="left", show_header=False)
        for key, value in context.items():
            ctx_table.add_row(str(key), str(value))
        parts.append(ctx_table)
    if action_log:
        parts.append(_action_log_table(action_log))
    return Group(*parts)


def render_snapshot(
    state: Dict[str, Any],
    action_log: List[ActionLogEntry],
    connected: bool = True,
    target: Optional[Console] = None,
    error: Optional[str] = None,
) -> None:
    """Render a snapshot via Rich. ``error`` is the last connection error."""
    out = target or console
    out.rule()
    out.print(build_view(state, action_log, connected, error))
