"""Block until a session reaches a terminal state.

Subscribes to the event stream, filters it to one session and resolves when
the session goes idle or reports an error. Optionally mirrors events to
stderr while waiting, so stdout stays clean for the final JSON result.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import aclosing
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from rich.console import Console

from oc_cli.client import PermissionReply
from oc_cli.errors import ApiError
from oc_cli.events import PermissionAsked, SessionError, SessionIdle, as_dict, parse_event
from oc_cli.format_event import FormatterState, create_formatter_state, format_event

logger = logging.getLogger(__name__)

STREAM_ENDED_ERROR = "SSE stream ended unexpectedly"


class WaitClient(Protocol):
    """The slice of the API client the wait engine relies on."""

    def subscribe_events(self, directory: str | None = None) -> AsyncIterator[dict[str, Any]]: ...

    async def reply_permission(self, request_id: str, reply: PermissionReply | str) -> Any: ...

    async def get_session(self, session_id: str) -> dict[str, Any]: ...

    async def session_status(self) -> dict[str, Any]: ...


class WaitStatus(StrEnum):
    """How a wait ended."""

    IDLE = "idle"
    ERROR = "error"
    TIMEOUT = "timeout"


class CancelReason(StrEnum):
    """Why the consumption task was cancelled; set once, when it happens."""

    NONE = "none"
    TIMEOUT = "timeout"
    EXTERNAL = "external"


@dataclass
class WaitResult:
    """Outcome of waiting on a session."""

    status: WaitStatus
    error: str | None = None
    event: dict[str, Any] | None = None


def event_matches_session(event: Mapping[str, Any], session_id: str) -> bool:
    """Check whether an event belongs to the given session.

    Events carry the session ID in different places depending on their type:
    ``properties.sessionID``, ``properties.info.id`` (session lifecycle),
    ``properties.info.sessionID`` (message.updated) and
    ``properties.part.sessionID`` (message.part.updated).
    ``server.connected`` has no session and always matches.
    """
    if event.get("type") == "server.connected":
        return True
    props = as_dict(event.get("properties"))
    if props.get("sessionID") == session_id:
        return True
    info = as_dict(props.get("info"))
    if info.get("id") == session_id:
        return True
    if info.get("sessionID") == session_id:
        return True
    part = as_dict(props.get("part"))
    return part.get("sessionID") == session_id


def _arm_timer(timeout: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    """Schedule ``callback`` after ``timeout`` seconds on the running loop."""
    return asyncio.get_running_loop().call_later(timeout, callback)


def _mirror_event(event: dict[str, Any], console: Console, fmt_state: FormatterState | None) -> None:
    if fmt_state is not None:
        fmt_state.emit(format_event(event, fmt_state))
    else:
        console.out(json.dumps(event, separators=(",", ":"), ensure_ascii=False), highlight=False)


async def _auto_approve(client: WaitClient, event: PermissionAsked) -> None:
    request_id = event.id
    if not request_id:
        return
    try:
        await client.reply_permission(request_id, PermissionReply.ALWAYS)
    except ApiError as e:
        logger.warning("Auto-approve failed for permission %s: %s", request_id, e)
        return
    logger.info("Auto-approved permission %s", request_id)


async def _consume(
    client: WaitClient,
    session_id: str,
    *,
    stream: bool,
    pretty: bool,
    auto_approve: bool,
    stream_console: Console | None,
) -> WaitResult:
    console = stream_console if stream_console is not None else Console(stderr=True)
    fmt_state = create_formatter_state(console) if stream and pretty else None

    async with aclosing(client.subscribe_events()) as events:
        async for event in events:
            if not event_matches_session(event, session_id):
                continue

            if stream:
                _mirror_event(event, console, fmt_state)

            parsed = parse_event(event)
            if isinstance(parsed, PermissionAsked) and auto_approve:
                await _auto_approve(client, parsed)

            if isinstance(parsed, SessionIdle):
                return WaitResult(WaitStatus.IDLE, event=event)
            if isinstance(parsed, SessionError):
                return WaitResult(WaitStatus.ERROR, error=parsed.message, event=event)

    return WaitResult(WaitStatus.ERROR, error=STREAM_ENDED_ERROR)


async def wait_for_session(
    client: WaitClient,
    session_id: str,
    *,
    timeout: float | None = None,
    cancel_event: asyncio.Event | None = None,
    stream: bool = False,
    pretty: bool = False,
    auto_approve: bool = False,
    stream_console: Console | None = None,
) -> WaitResult:
    """Wait for a session to go idle or fail.

    Args:
        client: API client used for the subscription and permission replies.
        session_id: The session to watch.
        timeout: Seconds to wait before giving up. ``None`` or 0 waits forever.
        cancel_event: Setting this event cancels the wait.
        stream: Mirror matching events to ``stream_console`` while waiting.
        pretty: Mirror through the transcript formatter instead of raw JSON lines.
        auto_approve: Reply "always" to every permission request seen.
        stream_console: Sink for mirrored events. Defaults to stderr.

    Returns:
        IDLE with the terminal event, ERROR with a message, or TIMEOUT.

    Raises:
        asyncio.CancelledError: On external cancellation, either through
            ``cancel_event`` or by cancelling the calling task.
        ApiError: If the subscription itself fails.
    """
    reason = CancelReason.NONE
    consumer = asyncio.create_task(
        _consume(
            client,
            session_id,
            stream=stream,
            pretty=pretty,
            auto_approve=auto_approve,
            stream_console=stream_console,
        )
    )

    def cancel(why: CancelReason) -> None:
        nonlocal reason
        if reason is CancelReason.NONE and not consumer.done():
            reason = why
            consumer.cancel()

    async def watch_cancel_event(event: asyncio.Event) -> None:
        await event.wait()
        cancel(CancelReason.EXTERNAL)

    timer = _arm_timer(timeout, lambda: cancel(CancelReason.TIMEOUT)) if timeout else None
    watcher = asyncio.create_task(watch_cancel_event(cancel_event)) if cancel_event is not None else None

    try:
        return await consumer
    except asyncio.CancelledError:
        current = asyncio.current_task()
        outer_cancelled = current is not None and current.cancelling() > 0
        if reason is CancelReason.TIMEOUT and not outer_cancelled:
            return WaitResult(WaitStatus.TIMEOUT)
        consumer.cancel()
        raise
    finally:
        if timer is not None:
            timer.cancel()
        if watcher is not None:
            watcher.cancel()


async def check_session_status(client: WaitClient, session_id: str) -> dict[str, Any]:
    """Probe a session's current status without opening a stream.

    The session is fetched first so a missing session or an unreachable
    server surfaces as an error rather than as "idle".

    Returns:
        ``{"type": "idle"}`` when the session has no status entry, otherwise
        the server's status mapping unchanged.

    Raises:
        NotFoundError: If the session does not exist.
        ApiConnectionError: If the server cannot be reached.
    """
    await client.get_session(session_id)
    statuses = await client.session_status()
    status = statuses.get(session_id) if isinstance(statuses, Mapping) else None
    if not status:
        return {"type": "idle"}
    return status
