"""CLI entry point for oc-cli."""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable, Iterator
from contextlib import aclosing, contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, NoReturn, TypeVar

import typer
from rich.logging import RichHandler
from rich.markup import escape

from oc_cli import __version__
from oc_cli.client import OpencodeClient, PermissionReply
from oc_cli.config import (
    GLOBAL_CONFIG_KEYS,
    PROFILE_KEYS,
    CliOverrides,
    Profile,
    ResolvedConfig,
    display_config_warnings,
    get_global_config_source,
    get_profile,
    get_profiles,
    load_config_file,
    profile_not_found_message,
    remove_profile,
    resolve_config,
    resolve_global_prefix,
    save_profile,
    set_global_value,
)
from oc_cli.errors import ApiConnectionError, ApiError, ConfigError, ExitCode
from oc_cli.format_event import create_formatter_state, format_event
from oc_cli.output import (
    MESSAGE_COLUMNS,
    SESSION_COLUMNS,
    Column,
    console,
    err_console,
    print_data,
    print_error,
    print_json,
    to_json,
)
from oc_cli.text_extract import extract_text_output, validate_text_options
from oc_cli.utils import apply_title_prefix, build_run_title, parse_model_spec, split_csv
from oc_cli.wait import WaitResult, WaitStatus, check_session_status, event_matches_session, wait_for_session
from oc_cli.xdg_paths import get_config_file_path

T = TypeVar("T")

app = typer.Typer(
    name="oc-cli",
    help="Drive opencode servers from the command line.",
    no_args_is_help=True,
)

FieldsOption = Annotated[str | None, typer.Option("--fields", help="Comma-separated list of fields to include.")]
FilterOption = Annotated[
    list[str] | None,
    typer.Option("--filter", help="Filter rows by key=value (contains match, repeatable)."),
]
PrettyOption = Annotated[bool, typer.Option("--pretty", help="Human-readable output.")]


@dataclass
class AppState:
    """Global options shared with every subcommand through the click context."""

    overrides: CliOverrides = field(default_factory=CliOverrides)
    config_path: Path | None = None


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"oc-cli {__version__}")
        raise typer.Exit()


def _setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=debug)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)


@app.callback()
def main(
    ctx: typer.Context,
    profile: Annotated[
        str | None,
        typer.Option("--profile", "-p", help="Profile to use (required when several are configured)."),
    ] = None,
    base_url: Annotated[
        str | None,
        typer.Option("--base-url", help="Override the server URL."),
    ] = None,
    title_prefix: Annotated[
        str | None,
        typer.Option("--title-prefix", help="Override the global session title prefix."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-C", help="Config file path."),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", "-D", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool | None,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version."),
    ] = None,
) -> None:
    """Drive opencode servers from the command line.

    Output is compact JSON on stdout; errors are JSON on stderr.
    """
    _setup_logging(debug)
    ctx.obj = AppState(
        overrides=CliOverrides(base_url=base_url, title_prefix=title_prefix, profile=profile),
        config_path=config_path,
    )


def _state(ctx: typer.Context) -> AppState:
    state = ctx.find_object(AppState)
    return state if state is not None else AppState()


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Translate library errors into a JSON error message and exit code."""
    try:
        yield
    except ConfigError as e:
        print_error(str(e))
    except ApiConnectionError as e:
        print_error(str(e), ExitCode.CONNECTION)
    except ApiError as e:
        print_error(str(e))
    except ValueError as e:
        print_error(str(e))


def _resolve(ctx: typer.Context) -> ResolvedConfig:
    state = _state(ctx)
    config, warnings = load_config_file(state.config_path, project_dir=Path.cwd())
    if warnings:
        display_config_warnings(warnings, err_console)
    return resolve_config(config, state.overrides)


def _call(
    cfg: ResolvedConfig,
    fn: Callable[[OpencodeClient], Awaitable[T]],
    directory: str | None = None,
) -> T:
    """Run one async operation against the configured server."""

    async def runner() -> T:
        async with OpencodeClient(cfg.base_url, directory or cfg.directory) as client:
            return await fn(client)

    return asyncio.run(runner())


# ---------------------------------------------------------------------------
# session
# ---------------------------------------------------------------------------

session_app = typer.Typer(name="session", help="Manage opencode sessions.", no_args_is_help=True)
app.add_typer(session_app, name="session")


@session_app.command("list")
def session_list(
    ctx: typer.Context,
    mine: Annotated[
        bool,
        typer.Option("--mine", help="Only show sessions whose title starts with the configured prefix."),
    ] = False,
    pretty: PrettyOption = False,
    fields: FieldsOption = None,
    filters: FilterOption = None,
) -> None:
    """List all sessions."""
    with _handle_errors():
        cfg = _resolve(ctx)
        sessions = _call(cfg, lambda c: c.list_sessions())
        if mine:
            if not cfg.title_prefix:
                print_error(
                    "Cannot use --mine: no title prefix is configured. "
                    'Set one with: oc-cli config set title_prefix "[prefix] "'
                )
            sessions = [s for s in sessions if str(s.get("title") or "").startswith(cfg.title_prefix)]
        print_data(sessions, SESSION_COLUMNS, pretty=pretty, fields=fields, filters=filters)


@session_app.command("create")
def session_create(
    ctx: typer.Context,
    title: Annotated[str | None, typer.Option("--title", "-t", help="Session title.")] = None,
    directory: Annotated[
        str | None,
        typer.Option("--directory", "-d", help="Working directory for the session."),
    ] = None,
    pretty: PrettyOption = False,
    fields: FieldsOption = None,
) -> None:
    """Create a new session."""
    with _handle_errors():
        cfg = _resolve(ctx)
        full_title = apply_title_prefix(title, cfg.title_prefix)
        session = _call(cfg, lambda c: c.create_session(title=full_title, directory=directory))
        print_data([session], SESSION_COLUMNS, pretty=pretty, fields=fields)


@session_app.command("delete")
def session_delete(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID.")],
) -> None:
    """Delete a session by ID."""
    with _handle_errors():
        cfg = _resolve(ctx)
        _call(cfg, lambda c: c.delete_session(session_id))
    print_json({"deleted": session_id})


@session_app.command("messages")
def session_messages(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID.")],
    text: Annotated[bool, typer.Option("--text", help="Print only the last assistant reply as plain text.")] = False,
    all_messages: Annotated[bool, typer.Option("--all", help="With --text, print text from every message.")] = False,
    pretty: PrettyOption = False,
    fields: FieldsOption = None,
    filters: FilterOption = None,
) -> None:
    """List messages in a session."""
    problem = validate_text_options(text, all_messages, pretty)
    if problem:
        print_error(problem)

    with _handle_errors():
        cfg = _resolve(ctx)
        messages = _call(cfg, lambda c: c.session_messages(session_id))

        if text:
            for line in extract_text_output(messages, all_messages):
                console.out(line, highlight=False)
            return

        rows = [m.get("info", {}) for m in messages] if pretty else messages
        print_data(rows, MESSAGE_COLUMNS, pretty=pretty, fields=fields, filters=filters)


@session_app.command("status")
def session_status(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID.")],
) -> None:
    """Show whether a session is idle, busy or retrying.

    Exits 1 if the session does not exist and 3 if the server is unreachable.
    """
    with _handle_errors():
        cfg = _resolve(ctx)
        status = _call(cfg, lambda c: check_session_status(c, session_id))
    print_json({"sessionId": session_id, "status": status})


def _report_wait_failure(session_id: str, result: WaitResult, timeout: int | None) -> None:
    if result.status is WaitStatus.TIMEOUT:
        print_error(f"Timeout: session {session_id} did not complete within {timeout}s", ExitCode.TIMEOUT)
    if result.status is WaitStatus.ERROR:
        print_error(f"Session error: {result.error}")


@session_app.command("wait")
def session_wait(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID.")],
    timeout: Annotated[int | None, typer.Option("--timeout", help="Timeout in seconds.")] = None,
    stream: Annotated[bool, typer.Option("--stream", help="Stream events to stderr while waiting.")] = False,
    pretty: PrettyOption = False,
    auto_approve: Annotated[bool, typer.Option("--auto-approve", help="Auto-approve permission requests.")] = False,
) -> None:
    """Block until a session is idle.

    Exit codes: 0 idle, 1 session error or not found, 2 timeout, 3 unreachable.
    """

    async def wait(client: OpencodeClient) -> WaitResult:
        status = await check_session_status(client, session_id)
        if status.get("type") == "idle":
            return WaitResult(WaitStatus.IDLE)
        return await wait_for_session(
            client,
            session_id,
            timeout=timeout,
            stream=stream,
            pretty=pretty,
            auto_approve=auto_approve,
            stream_console=err_console,
        )

    with _handle_errors():
        cfg = _resolve(ctx)
        try:
            result = _call(cfg, wait)
        except (KeyboardInterrupt, asyncio.CancelledError):
            raise typer.Exit(ExitCode.OK) from None

    _report_wait_failure(session_id, result, timeout)
    print_json({"sessionId": session_id, "status": "idle"})


@session_app.command("prompt")
def session_prompt(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID.")],
    message: Annotated[str, typer.Argument(help="Prompt text.")],
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model override as provider/model (e.g. google/gemini-2.5-pro)."),
    ] = None,
    agent: Annotated[str | None, typer.Option("--agent", help="Agent to handle the prompt.")] = None,
) -> None:
    """Send a prompt to a session without waiting for the reply."""
    with _handle_errors():
        cfg = _resolve(ctx)
        model_spec = parse_model_spec(model) if model else None
        parts = [{"type": "text", "text": message}]
        _call(
            cfg,
            lambda c: c.prompt_async(session_id, parts, model=model_spec, agent=agent or cfg.default_agent),
        )
    print_json({"prompted": session_id})


@session_app.command("abort")
def session_abort(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID.")],
) -> None:
    """Abort a running session."""
    with _handle_errors():
        cfg = _resolve(ctx)
        _call(cfg, lambda c: c.abort_session(session_id))
    print_json({"aborted": session_id})


@session_app.command("permit")
def session_permit(
    ctx: typer.Context,
    request_id: Annotated[str, typer.Argument(help="Permission request ID.")],
    reply: Annotated[PermissionReply, typer.Argument(help="once, always or reject.")] = PermissionReply.ONCE,
) -> None:
    """Reply to a permission request."""
    with _handle_errors():
        cfg = _resolve(ctx)
        _call(cfg, lambda c: c.reply_permission(request_id, reply))
    print_json({"replied": request_id, "reply": str(reply)})


@session_app.command("answer")
def session_answer(
    ctx: typer.Context,
    request_id: Annotated[str, typer.Argument(help="Question request ID.")],
    answers: Annotated[list[str], typer.Argument(help="One answer per question, in order.")],
) -> None:
    """Answer a question asked by the agent."""
    with _handle_errors():
        cfg = _resolve(ctx)
        _call(cfg, lambda c: c.reply_question(request_id, [[answer] for answer in answers]))
    print_json({"answered": request_id, "answers": answers})


@session_app.command("reject")
def session_reject(
    ctx: typer.Context,
    request_id: Annotated[str, typer.Argument(help="Question request ID.")],
) -> None:
    """Reject a question asked by the agent."""
    with _handle_errors():
        cfg = _resolve(ctx)
        _call(cfg, lambda c: c.reject_question(request_id))
    print_json({"rejected": request_id})


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


def _read_prompt(message: str | None, file: Path | None, stdin: bool) -> str:
    sources = sum([message is not None, file is not None, stdin])
    if sources == 0:
        print_error('No message provided. Provide inline text, --file <path>, or --stdin.\nUsage: oc-cli run "message"')
    if sources > 1:
        print_error("Multiple message sources provided. Use only one of: inline text, --file, or --stdin.")

    if file is not None:
        try:
            text = file.read_text(encoding="utf-8")
        except OSError as e:
            print_error(f"Cannot read {file}: {e}")
    elif stdin:
        text = sys.stdin.read()
    else:
        text = message or ""

    text = text.strip()
    if not text:
        print_error("Message is empty after trimming whitespace.")
    return text


def _parse_tools(tools: str | None, allow_questions: bool) -> dict[str, bool] | None:
    parsed: dict[str, bool] | None = None
    if tools:
        try:
            value = json.loads(tools)
        except json.JSONDecodeError:
            value = None
        if not isinstance(value, dict):
            print_error(
                f'Invalid --tools JSON: "{tools}". '
                "Expected a JSON object like '{\"read\":true,\"write\":false}'."
            )
        parsed = value
    # A pending question blocks the session until answered.
    if not allow_questions:
        parsed = dict(parsed or {})
        parsed["question"] = False
    return parsed


@app.command("run")
def run(
    ctx: typer.Context,
    message: Annotated[str | None, typer.Argument(help="Prompt text.")] = None,
    file: Annotated[Path | None, typer.Option("--file", "-f", help="Read the prompt from a file.")] = None,
    stdin: Annotated[bool, typer.Option("--stdin", help="Read the prompt from stdin.")] = False,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model override as provider/model (e.g. google/gemini-2.5-pro)."),
    ] = None,
    agent: Annotated[str | None, typer.Option("--agent", help="Agent to handle the prompt.")] = None,
    timeout: Annotated[int | None, typer.Option("--timeout", help="Timeout in seconds.")] = None,
    stream: Annotated[bool, typer.Option("--stream", help="Stream events to stderr while waiting.")] = False,
    pretty: PrettyOption = False,
    auto_approve: Annotated[bool, typer.Option("--auto-approve", help="Auto-approve permission requests.")] = False,
    tools: Annotated[str | None, typer.Option("--tools", help="JSON map of tool name to enabled boolean.")] = None,
    allow_questions: Annotated[
        bool,
        typer.Option("--allow-questions", help="Allow the agent to ask questions (disabled by default)."),
    ] = False,
    directory: Annotated[str | None, typer.Option("--directory", "-d", help="Working directory.")] = None,
) -> None:
    """Create a session, send a prompt and wait for it to finish.

    Exit codes: 0 completed, 1 session error, 2 timeout, 3 unreachable.
    """
    text = _read_prompt(message, file, stdin)

    with _handle_errors():
        cfg = _resolve(ctx)
        model_spec = parse_model_spec(model) if model else None
        tool_map = _parse_tools(tools, allow_questions)
        workdir = directory or cfg.directory
        title = build_run_title(text, cfg.title_prefix)

        async def run_prompt(client: OpencodeClient) -> tuple[str, WaitResult, list[dict[str, Any]]]:
            session = await client.create_session(title=title, directory=workdir)
            session_id = str(session["id"])
            await client.prompt_async(
                session_id,
                [{"type": "text", "text": text}],
                model=model_spec,
                agent=agent or cfg.default_agent,
                tools=tool_map,
            )
            result = await wait_for_session(
                client,
                session_id,
                timeout=timeout,
                stream=stream,
                pretty=pretty,
                auto_approve=auto_approve,
                stream_console=err_console,
            )
            messages = await client.session_messages(session_id) if result.status is WaitStatus.IDLE else []
            return session_id, result, messages

        try:
            session_id, result, messages = _call(cfg, run_prompt, directory=workdir)
        except (KeyboardInterrupt, asyncio.CancelledError):
            raise typer.Exit(ExitCode.OK) from None

    _report_wait_failure(session_id, result, timeout)

    lines = extract_text_output(messages)
    last_text = "\n".join(lines) if lines else None
    if pretty and not stream:
        if last_text:
            console.out(last_text, highlight=False)
        return
    print_json(
        {
            "sessionId": session_id,
            "status": "completed",
            "messages": len(messages),
            "lastAssistantText": last_text,
        }
    )


# ---------------------------------------------------------------------------
# watch
# ---------------------------------------------------------------------------


@app.command("watch")
def watch(
    ctx: typer.Context,
    session: Annotated[str | None, typer.Option("--session", "-s", help="Only show events for this session.")] = None,
    global_: Annotated[
        bool,
        typer.Option("--global", help="Watch events from all instances, not just one directory."),
    ] = False,
    directory: Annotated[
        str | None,
        typer.Option("--directory", "-d", help="Directory to watch events for."),
    ] = None,
    pretty: PrettyOption = False,
    types: Annotated[
        str | None,
        typer.Option("--type", help="Comma-separated event types to show (e.g. session.status,message.part.updated)."),
    ] = None,
) -> None:
    """Watch live events from the server.

    Prints one JSON object per line, or a formatted transcript with --pretty.
    Runs until interrupted.
    """
    type_filter = set(split_csv(types))

    def wanted(event: dict[str, Any]) -> bool:
        if type_filter and event.get("type") not in type_filter:
            return False
        return session is None or event_matches_session(event, session)

    async def consume(client: OpencodeClient) -> None:
        fmt_state = create_formatter_state(console)
        events = client.global_events() if global_ else client.subscribe_events(directory)
        async with aclosing(events) as stream:
            async for item in stream:
                if global_:
                    payload = item.get("payload")
                    event = payload if isinstance(payload, dict) else {}
                    instance = str(item.get("directory") or "")
                else:
                    event, instance = item, ""

                if not wanted(event):
                    continue
                if not pretty:
                    print_json(item)
                    continue
                prefix = f"[dim]\\[{escape(instance)}][/] " if instance else ""
                fmt_state.emit(format_event(event, fmt_state), prefix=prefix)

    with _handle_errors():
        cfg = _resolve(ctx)
        if pretty:
            mode = "global" if global_ else "instance"
            label = f" (session: {escape(session)})" if session else ""
            console.print(f"[dim]Watching {mode} events from {escape(cfg.base_url)}{label}[/]")
            console.print("[dim]Press Ctrl+C to stop.[/]\n")
        try:
            _call(cfg, consume)
        except (KeyboardInterrupt, asyncio.CancelledError):
            if pretty:
                console.print("\n[dim]Disconnected.[/]")
            raise typer.Exit(ExitCode.OK) from None


# ---------------------------------------------------------------------------
# models
# ---------------------------------------------------------------------------


def _model_rows(providers: list[Any], defaults: dict[str, Any] | None) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for provider in providers:
        provider_id = provider.get("id", "")
        for model_id, info in (provider.get("models") or {}).items():
            row: dict[str, Any] = {
                "provider": provider_id,
                "model": model_id,
                "name": (info or {}).get("name") or model_id,
            }
            if defaults is not None:
                row["default"] = "yes" if defaults.get(provider_id) == model_id else ""
            rows.append(row)
    return rows


@app.command("models")
def models(
    ctx: typer.Context,
    show_all: Annotated[bool, typer.Option("--all", help="Show all providers, not just enabled ones.")] = False,
    pretty: PrettyOption = False,
    fields: FieldsOption = None,
    filters: FilterOption = None,
) -> None:
    """List available models (configured providers only unless --all)."""
    columns = [Column("provider", "PROVIDER", 15), Column("model", "MODEL", 35), Column("name", "NAME", 30)]
    with _handle_errors():
        cfg = _resolve(ctx)
        if show_all:
            result = _call(cfg, lambda c: c.list_providers())
            rows = _model_rows(result.get("all") or [], None)
        else:
            result = _call(cfg, lambda c: c.config_providers())
            rows = _model_rows(result.get("providers") or [], result.get("default") or {})
            columns.append(Column("default", "DEFAULT", 8))
        print_data(rows, columns, pretty=pretty, fields=fields, filters=filters)


# ---------------------------------------------------------------------------
# profile
# ---------------------------------------------------------------------------

profile_app = typer.Typer(name="profile", help="Manage connection profiles.", no_args_is_help=True)
app.add_typer(profile_app, name="profile")

PROFILE_COLUMNS = (
    Column("name", "NAME", 20),
    Column("base_url", "BASE URL", 35),
    Column("directory", "DIRECTORY", 35),
    Column("default_agent", "AGENT", 12),
    Column("description", "DESCRIPTION", 30),
)


def _profile_missing(name: str, config_path: Path | None) -> NoReturn:
    print_error(profile_not_found_message(name, list(get_profiles(config_path))))


@profile_app.command("list")
def profile_list(
    ctx: typer.Context,
    pretty: PrettyOption = False,
    fields: FieldsOption = None,
    filters: FilterOption = None,
) -> None:
    """List all configured profiles."""
    profiles = get_profiles(_state(ctx).config_path)
    if not profiles:
        print_error("No profiles configured. Run `oc-cli profile add <name>` to create one.")

    rows = [
        {
            "name": name,
            "base_url": p.base_url,
            "directory": p.directory or "",
            "default_agent": p.default_agent or "",
            "description": p.description or "",
            "tags": ", ".join(p.tags),
        }
        for name, p in profiles.items()
    ]
    with _handle_errors():
        print_data(rows, PROFILE_COLUMNS, pretty=pretty, fields=fields, filters=filters)


@profile_app.command("show")
def profile_show(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Profile name.")],
    pretty: PrettyOption = False,
) -> None:
    """Show details of a profile."""
    config_path = _state(ctx).config_path
    p = get_profile(name, config_path)
    if p is None:
        _profile_missing(name, config_path)

    if not pretty:
        print_json({"name": name, **p.model_dump(exclude_defaults=True)})
        return

    console.print(f"[bold]Name:[/]          {escape(name)}")
    console.print(f"[bold]Base URL:[/]      {escape(p.base_url)}")
    if p.directory:
        console.print(f"[bold]Directory:[/]     {escape(p.directory)}")
    if p.default_agent:
        console.print(f"[bold]Default Agent:[/] {escape(p.default_agent)}")
    if p.description:
        console.print(f"[bold]Description:[/]   {escape(p.description)}")
    if p.tags:
        console.print(f"[bold]Tags:[/]          {escape(', '.join(p.tags))}")


def _prompt_optional(label: str) -> str | None:
    answer: str = typer.prompt(f"{label} (optional, press Enter to skip)", default="", show_default=False, err=True)
    return answer.strip() or None


def _probe_server(base_url: str) -> None:
    """Warn on stderr when the server does not answer; never fails."""

    async def probe() -> None:
        async with OpencodeClient(base_url) as client:
            await client.list_sessions()

    try:
        asyncio.run(probe())
    except ApiError as e:
        warning = f"Could not connect to {base_url}: {e}. Profile saved anyway."
        err_console.out(to_json({"warning": warning}), highlight=False)


@profile_app.command("add")
def profile_add(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Profile name.")],
    url: Annotated[str | None, typer.Option("--url", help="opencode server URL.")] = None,
    directory: Annotated[str | None, typer.Option("--directory", "-d", help="Project directory.")] = None,
    agent: Annotated[str | None, typer.Option("--agent", help="Default agent for prompts.")] = None,
    description: Annotated[str | None, typer.Option("--description", help="Profile description.")] = None,
    tags: Annotated[str | None, typer.Option("--tags", help="Comma-separated tags.")] = None,
) -> None:
    """Add a profile from flags, or interactively when --url is omitted."""
    config_path = _state(ctx).config_path
    if get_profile(name, config_path) is not None:
        print_error(f'Profile "{name}" already exists. Use `oc-cli profile set {name} <key> <value>` to update it.')

    if url:
        base_url = url
        tag_list = split_csv(tags)
    elif sys.stdin.isatty():
        base_url = typer.prompt("Base URL (required)", default="", show_default=False, err=True).strip()
        if not base_url:
            print_error("Base URL is required.")
        directory = _prompt_optional("Directory")
        agent = _prompt_optional("Default agent")
        description = _prompt_optional("Description")
        tag_list = split_csv(_prompt_optional("Tags, comma-separated"))
    else:
        print_error(
            "No --url provided and stdin is not interactive. "
            "Usage: oc-cli profile add <name> --url <url> [--directory <path>] [--agent <name>]"
        )

    _probe_server(base_url)

    profile = Profile(
        base_url=base_url,
        directory=directory or None,
        default_agent=agent or None,
        description=description or None,
        tags=tag_list,
    )
    save_profile(name, profile, config_path)
    print_json({"added": name})


@profile_app.command("remove")
def profile_remove(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Profile name.")],
) -> None:
    """Remove a profile."""
    config_path = _state(ctx).config_path
    if not remove_profile(name, config_path):
        _profile_missing(name, config_path)
    print_json({"removed": name})


@profile_app.command("set")
def profile_set(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Profile name.")],
    key: Annotated[str, typer.Argument(help=f"One of: {', '.join(PROFILE_KEYS)}.")],
    value: Annotated[str, typer.Argument(help="New value (comma-separated for tags).")],
) -> None:
    """Set one field on an existing profile."""
    if key not in PROFILE_KEYS:
        print_error(f'Unknown profile key: "{key}". Valid keys: {", ".join(PROFILE_KEYS)}')

    config_path = _state(ctx).config_path
    existing = get_profile(name, config_path)
    if existing is None:
        print_error(f'Profile "{name}" not found.')

    parsed: str | list[str] = split_csv(value) if key == "tags" else value
    save_profile(name, existing.model_copy(update={key: parsed}), config_path)
    print_json({"updated": name, "key": key, "value": parsed})


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------

config_app = typer.Typer(name="config", help="Manage global configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")


def _check_global_key(key: str, hint: str) -> None:
    if key not in GLOBAL_CONFIG_KEYS:
        print_error(f'Unknown global config key: "{key}". Valid keys: {", ".join(GLOBAL_CONFIG_KEYS)}. {hint}')


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Global config key.")],
    value: Annotated[str, typer.Argument(help="Value to store.")],
) -> None:
    """Set a global config value."""
    _check_global_key(key, "For profile settings, use: oc-cli profile set <name> <key> <value>")
    with _handle_errors():
        set_global_value(key, value, _state(ctx).config_path)
    print_json({key: value})


@config_app.command("get")
def config_get(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Global config key.")],
    pretty: Annotated[bool, typer.Option("--pretty", help="Show where the value comes from.")] = False,
) -> None:
    """Get the resolved value of a global config key."""
    _check_global_key(key, "For profile settings, use: oc-cli profile show <name>")
    state = _state(ctx)
    config, _ = load_config_file(state.config_path, project_dir=Path.cwd())
    value = resolve_global_prefix(config, state.overrides)
    source = get_global_config_source(key, config, state.overrides)

    if pretty:
        console.print(f"[bold]{key}[/]: {escape(value)} [dim]({source})[/]")
    else:
        print_json({key: value, "source": source})


@config_app.command("list")
def config_list(
    ctx: typer.Context,
    pretty: PrettyOption = False,
    fields: FieldsOption = None,
) -> None:
    """Show all global config values."""
    state = _state(ctx)
    config, warnings = load_config_file(state.config_path, project_dir=Path.cwd())
    if warnings:
        display_config_warnings(warnings, err_console)

    rows = [
        {
            "key": key,
            "value": resolve_global_prefix(config, state.overrides),
            "source": get_global_config_source(key, config, state.overrides),
        }
        for key in GLOBAL_CONFIG_KEYS
    ]
    columns = (Column("key", "KEY", 15), Column("value", "VALUE", 55), Column("source", "SOURCE", 20))
    print_data(rows, columns, pretty=pretty, fields=fields)


@config_app.command("path")
def config_path_cmd(ctx: typer.Context) -> None:
    """Print the config file path."""
    path = _state(ctx).config_path or get_config_file_path()
    print_json({"path": str(path)})


if __name__ == "__main__":
    app()
