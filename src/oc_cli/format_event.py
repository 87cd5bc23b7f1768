"""Pretty transcript formatter for the server's event stream.

How a conversation turn actually flows through the stream::

    message.updated (role=user)             metadata only, no text
    message.part.updated (type=text)        the user's prompt, full text
    message.updated (role=assistant)        metadata (provider, model)
    message.part.updated (type=text)        empty placeholder
    message.part.delta (field=text)         streamed chunks
    message.part.updated (type=text)        final full text (already streamed)
    message.part.updated (type=step-finish) cost/token bookkeeping

User text only ever arrives as a snapshot. Assistant text arrives as deltas,
and its snapshots are suppressed once a delta has been seen for the part.

``format_event`` returns rich markup lines for the caller to print, except for
streamed text, which is written straight to the state's console so chunks
show up as they arrive.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from rich.console import Console
from rich.markup import escape

from oc_cli.events import (
    Event,
    FileEdited,
    MessagePartDelta,
    MessagePartUpdated,
    MessageUpdated,
    Part,
    PermissionAsked,
    PermissionReplied,
    PermissionUpdated,
    QuestionAsked,
    QuestionRejected,
    QuestionReplied,
    ServerConnected,
    SessionCreated,
    SessionDeleted,
    SessionDiff,
    SessionError,
    SessionStatusChanged,
    TodoUpdated,
    parse_event,
)
from oc_cli.utils import truncate

MAX_DIFF_FILES = 8
MAX_DETAIL_LEN = 60
SEPARATOR_WIDTH = 50

# last_part_type while a delta stream has the cursor mid-line
STREAMING_PART_TYPE = "text-stream"

TODO_ICONS: dict[str, str] = {
    "completed": "[green]✓[/]",
    "in_progress": "[yellow]▸[/]",
    "cancelled": "[dim]✗[/]",
}
TODO_DEFAULT_ICON = "[dim]○[/]"


def _empty_str_map() -> dict[str, str]:
    return {}


def _empty_str_set() -> set[str]:
    return set()


@dataclass
class FormatterState:
    """Context carried across one stream subscription.

    Owned by a single watch/wait invocation and discarded with it.
    """

    console: Console = field(default_factory=Console)
    message_roles: dict[str, str] = field(default_factory=_empty_str_map)
    message_models: dict[str, str] = field(default_factory=_empty_str_map)
    message_sessions: dict[str, str] = field(default_factory=_empty_str_map)
    streamed_parts: set[str] = field(default_factory=_empty_str_set)
    tools_shown: set[str] = field(default_factory=_empty_str_set)
    last_part_type: str = ""
    has_output: bool = False
    assistant_header_shown: set[str] = field(default_factory=_empty_str_set)
    user_header_shown: set[str] = field(default_factory=_empty_str_set)

    def write(self, text: str) -> None:
        """Write raw text to the console immediately, without markup or newline."""
        self.console.out(text, end="", highlight=False)

    def emit(self, lines: list[str], prefix: str = "") -> None:
        """Print formatted lines to the console."""
        for line in lines:
            self.console.print(prefix + line, soft_wrap=True, highlight=False, emoji=False)


def create_formatter_state(console: Console | None = None) -> FormatterState:
    """Create a fresh formatter state.

    Args:
        console: Output sink for streamed text and emitted lines. Defaults to
            stdout; pass a stderr console to keep stdout free for JSON results.

    Returns:
        A state with empty identity maps and dedup sets.
    """
    return FormatterState(console=console if console is not None else Console())


def _separator() -> str:
    return f"[dim]{'─' * SEPARATOR_WIDTH}[/]"


def _end_streaming(state: FormatterState) -> None:
    """Terminate an in-progress text stream so block output starts on a fresh line."""
    if state.last_part_type == STREAMING_PART_TYPE:
        state.write("\n")
        state.last_part_type = ""


def _ensure_header(message_id: str, role: str, model: str, state: FormatterState, lines: list[str]) -> None:
    """Append a role header unless one is already showing for this session.

    Multi-step assistant turns share one header; the other role speaking
    resets it.
    """
    session_id = state.message_sessions.get(message_id, "")

    if role == "assistant":
        if session_id in state.assistant_header_shown:
            return
        state.assistant_header_shown.add(session_id)
        state.user_header_shown.discard(session_id)
        _end_streaming(state)
        if state.has_output:
            lines.append("")
        model_label = f"[dim] ({escape(model)})[/]" if model else ""
        lines.append(f"[bold magenta]Assistant[/]{model_label}")
    elif role == "user":
        if session_id in state.user_header_shown:
            return
        state.user_header_shown.add(session_id)
        state.assistant_header_shown.discard(session_id)
        _end_streaming(state)
        if state.has_output:
            lines.append("")
        lines.append("[bold blue]User[/]")


def _format_delta(event: MessagePartDelta, state: FormatterState) -> None:
    # Only the text channel is rendered; other fields (e.g. reasoning) are ignored.
    if event.field_name != "text" or not event.delta:
        return

    if event.part_id:
        state.streamed_parts.add(event.part_id)
    # message.updated may not have arrived yet
    if event.message_id and event.session_id:
        state.message_sessions[event.message_id] = event.session_id

    role = state.message_roles.get(event.message_id, "assistant")
    model = state.message_models.get(event.message_id, "")

    header: list[str] = []
    _ensure_header(event.message_id, role, model, state, header)
    state.emit(header)
    state.write(event.delta)
    state.last_part_type = STREAMING_PART_TYPE
    state.has_output = True


def _format_text_part(part: Part, role: str, model: str, state: FormatterState) -> list[str]:
    if part.id in state.streamed_parts:
        return []
    # assistant placeholder before any deltas
    if not part.text:
        return []

    lines: list[str] = []
    _ensure_header(part.message_id, role, model, state, lines)
    _end_streaming(state)

    if role == "user":
        lines.extend(f"[blue]>[/] {escape(line)}" for line in part.text.split("\n"))
        state.last_part_type = "user-text"
    else:
        # Assistant text is normally delta-streamed; this covers the rare unstreamed snapshot.
        lines.append(escape(part.text))
        state.last_part_type = "text"
    return lines


def _format_tool_part(part: Part, role: str, model: str, state: FormatterState) -> list[str]:
    status = part.state.status
    display_name = escape(part.state.title or part.tool)
    lines: list[str] = []

    if status == "running":
        if part.call_id in state.tools_shown:
            return []
        state.tools_shown.add(part.call_id)
        _ensure_header(part.message_id, role, model, state, lines)
        _end_streaming(state)
        lines.append(f"  [cyan]{display_name}[/]")
    elif status == "completed":
        if part.call_id not in state.tools_shown:
            state.tools_shown.add(part.call_id)
            _ensure_header(part.message_id, role, model, state, lines)
            _end_streaming(state)
            lines.append(f"  [cyan]{display_name}[/]")
    elif status == "error":
        excerpt = escape(truncate(part.state.error or "failed", MAX_DETAIL_LEN))
        _ensure_header(part.message_id, role, model, state, lines)
        _end_streaming(state)
        lines.append(f"  [red]{display_name}[/] [red]— {excerpt}[/]")
    else:
        # pending and unknown statuses
        return []

    state.last_part_type = "tool"
    return lines


def _format_part_updated(event: MessagePartUpdated, state: FormatterState) -> list[str]:
    part = event.part
    if part.message_id and part.session_id:
        state.message_sessions[part.message_id] = part.session_id
    role = state.message_roles.get(part.message_id, "unknown")
    model = state.message_models.get(part.message_id, "")

    if part.type == "text":
        return _format_text_part(part, role, model, state)
    if part.type == "tool":
        return _format_tool_part(part, role, model, state)
    if part.type == "subtask":
        lines: list[str] = []
        _ensure_header(part.message_id, role, model, state, lines)
        _end_streaming(state)
        lines.append(f"  [magenta]Subtask[/] [dim]{escape(truncate(part.description, MAX_DETAIL_LEN))}[/]")
        state.last_part_type = "subtask"
        return lines
    # step-start, step-finish and anything unrecognised
    return []


def _format_diff(event: SessionDiff) -> list[str]:
    lines: list[str] = []
    for diff in event.diff[:MAX_DIFF_FILES]:
        stats = " ".join(
            stat
            for stat in (
                f"[green]+{diff.additions}[/]" if diff.additions > 0 else "",
                f"[red]-{diff.deletions}[/]" if diff.deletions > 0 else "",
            )
            if stat
        )
        lines.append(f"  [dim]{escape(diff.path)}[/] {stats}")
    remaining = len(event.diff) - MAX_DIFF_FILES
    if remaining > 0:
        lines.append(f"[dim]  … and {remaining} more files[/]")
    return lines


def _format_permission_asked(event: PermissionAsked, state: FormatterState) -> list[str]:
    _end_streaming(state)
    lines = ["", f"[bold yellow]Permission required:[/] {escape(event.permission)}"]
    lines.extend(f"  [dim]{escape(pattern)}[/]" for pattern in event.patterns)
    lines.append(f"[dim]  oc-cli session permit {escape(event.id)} {escape('[once|always|reject]')}[/]")
    lines.append("")
    return lines


def _format_question_asked(event: QuestionAsked, state: FormatterState) -> list[str]:
    _end_streaming(state)
    lines = [""]
    for question in event.questions:
        lines.append(f"[bold yellow]Question:[/] {escape(question.question)}")
        if question.header:
            lines.append(f"  [dim]{escape(question.header)}[/]")
        for index, option in enumerate(question.options, start=1):
            desc = f"[dim] — {escape(option.description)}[/]" if option.description else ""
            lines.append(f"  [cyan]{index}.[/] {escape(option.label)}{desc}")
        if question.multiple:
            lines.append("[dim]  (multiple selections allowed)[/]")
    request_id = escape(event.id)
    lines.append(f'[dim]  oc-cli session answer {request_id} "your answer"[/]')
    lines.append(f"[dim]  oc-cli session reject {request_id}[/]")
    lines.append("")
    return lines


def format_event(event: Mapping[str, Any] | Event, state: FormatterState) -> list[str]:
    """Classify one event into transcript lines.

    Never raises: unrecognised or malformed events produce no lines and leave
    the state untouched.

    Args:
        event: Raw event mapping (or an already parsed Event).
        state: Formatter state for this subscription.

    Returns:
        Rich markup lines to print. Streamed text is written directly to
        ``state.console`` instead of being returned.
    """
    evt = event if isinstance(event, Event) else parse_event(event)
    lines: list[str] = []

    if isinstance(evt, ServerConnected):
        lines.append("[green]Connected[/]")

    elif isinstance(evt, SessionCreated):
        _end_streaming(state)
        if state.has_output:
            lines.append(_separator())
        name = escape(evt.info.title or evt.info.slug)
        lines.append(f"[green]+[/] Session [bold]{name}[/] [dim]{escape(evt.info.id)}[/]")

    elif isinstance(evt, SessionDeleted):
        _end_streaming(state)
        if state.has_output:
            lines.append(_separator())
        lines.append(f"[red]-[/] Session deleted [dim]{escape(evt.info.id)}[/]")

    elif isinstance(evt, SessionStatusChanged):
        if evt.status_type != "retry":
            return []
        _end_streaming(state)
        detail = f"[dim] — {escape(evt.message)}[/]" if evt.message else ""
        lines.append(f"[yellow]Retrying (#{evt.attempt})[/]{detail}")

    elif isinstance(evt, SessionError):
        _end_streaming(state)
        lines.append(f"[red]Error:[/] {escape(evt.message)}")

    elif isinstance(evt, MessageUpdated):
        info = evt.info
        if info.id and info.role:
            state.message_roles[info.id] = info.role
            if info.session_id:
                state.message_sessions[info.id] = info.session_id
            if info.role == "assistant" and info.model:
                state.message_models[info.id] = info.model
        return []

    elif isinstance(evt, MessagePartDelta):
        _format_delta(evt, state)
        return []

    elif isinstance(evt, MessagePartUpdated):
        lines = _format_part_updated(evt, state)

    elif isinstance(evt, FileEdited):
        lines.append(f"  [yellow]Edited[/] {escape(evt.file)}")

    elif isinstance(evt, SessionDiff):
        lines = _format_diff(evt)

    elif isinstance(evt, PermissionAsked):
        lines = _format_permission_asked(evt, state)

    elif isinstance(evt, PermissionUpdated):
        _end_streaming(state)
        lines.append(f"[yellow]Permission:[/] {escape(evt.title)}")

    elif isinstance(evt, PermissionReplied):
        if evt.reply == "reject":
            lines.append("[red]Rejected[/]")
        else:
            lines.append(f"[green]Permitted ({escape(evt.reply)})[/]")

    elif isinstance(evt, QuestionAsked):
        lines = _format_question_asked(evt, state)

    elif isinstance(evt, QuestionReplied):
        answers = json.dumps(evt.answers, separators=(",", ":"), ensure_ascii=False)
        lines.append(f"[green]Answered:[/] [dim]{escape(answers)}[/]")

    elif isinstance(evt, QuestionRejected):
        lines.append("[red]Question rejected[/]")

    elif isinstance(evt, TodoUpdated):
        for todo in evt.todos:
            icon = TODO_ICONS.get(todo.status, TODO_DEFAULT_ICON)
            lines.append(f"  {icon} {escape(todo.content)}")

    # session.updated/idle/compacted, message/part removals and unknown types print nothing

    if lines:
        _end_streaming(state)
        state.has_output = True
    return lines
