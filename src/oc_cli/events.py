"""Typed views over the server's SSE event payloads.

Events arrive as loosely shaped ``{"type": ..., "properties": {...}}``
mappings. ``parse_event`` turns each one into a frozen dataclass variant that
declares only the fields that event type may carry. Missing or mistyped
fields fall back to empty values instead of raising, so a single odd event
never breaks a stream.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, cast

UNKNOWN_ERROR = "Unknown error"


def _empty_dict() -> dict[str, Any]:
    return {}


def as_dict(value: object) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(cast(Mapping[str, Any], value))
    return {}


def _as_list(value: object) -> list[Any]:
    if isinstance(value, list):
        return cast(list[Any], value)
    return []


def _as_str(value: object) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return str(value)


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int | float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return 0
    return 0


def extract_error_message(error: object) -> str:
    """Resolve a human-readable message from a session error payload.

    Looks at ``error.data.message``, then ``error.message``, then falls back
    to a generic placeholder.

    Args:
        error: The ``error`` value from a ``session.error`` event.

    Returns:
        The most specific message available.
    """
    err = as_dict(error)
    data = as_dict(err.get("data"))
    for candidate in (data.get("message"), err.get("message")):
        if candidate is not None and candidate != "":
            return _as_str(candidate)
    return UNKNOWN_ERROR


@dataclass(frozen=True)
class Event:
    """Base variant: the raw type tag and properties."""

    type: str
    properties: dict[str, Any] = field(default_factory=_empty_dict)


@dataclass(frozen=True)
class UnknownEvent(Event):
    """Any event type the client does not interpret."""


@dataclass(frozen=True)
class ServerConnected(Event):
    """Transport-level connect confirmation; carries no session."""


@dataclass(frozen=True)
class SessionInfo:
    """Session metadata embedded in session lifecycle events."""

    id: str = ""
    title: str = ""
    slug: str = ""


@dataclass(frozen=True)
class SessionCreated(Event):
    info: SessionInfo = field(default_factory=SessionInfo)


@dataclass(frozen=True)
class SessionDeleted(Event):
    info: SessionInfo = field(default_factory=SessionInfo)


@dataclass(frozen=True)
class SessionUpdated(Event):
    info: SessionInfo = field(default_factory=SessionInfo)


@dataclass(frozen=True)
class SessionStatusChanged(Event):
    """``session.status``: busy, idle or retry."""

    session_id: str = ""
    status_type: str = ""
    attempt: int = 0
    message: str = ""


@dataclass(frozen=True)
class SessionIdle(Event):
    session_id: str = ""


@dataclass(frozen=True)
class SessionCompacted(Event):
    session_id: str = ""


@dataclass(frozen=True)
class SessionError(Event):
    session_id: str = ""
    message: str = UNKNOWN_ERROR


@dataclass(frozen=True)
class MessageInfo:
    """Message metadata from ``message.updated``."""

    id: str = ""
    role: str = ""
    session_id: str = ""
    provider_id: str = ""
    model_id: str = ""

    @property
    def model(self) -> str:
        """Return ``provider/model`` when both halves are known."""
        if self.provider_id and self.model_id:
            return f"{self.provider_id}/{self.model_id}"
        return ""


@dataclass(frozen=True)
class MessageUpdated(Event):
    info: MessageInfo = field(default_factory=MessageInfo)


@dataclass(frozen=True)
class MessageRemoved(Event):
    pass


@dataclass(frozen=True)
class MessagePartDelta(Event):
    """An incremental fragment of one field of a streamed part."""

    session_id: str = ""
    message_id: str = ""
    part_id: str = ""
    field_name: str = ""
    delta: str = ""


@dataclass(frozen=True)
class ToolState:
    status: str = ""
    title: str = ""
    error: str = ""


@dataclass(frozen=True)
class Part:
    """A content fragment within a message."""

    id: str = ""
    type: str = ""
    message_id: str = ""
    session_id: str = ""
    text: str = ""
    tool: str = ""
    call_id: str = ""
    state: ToolState = field(default_factory=ToolState)
    description: str = ""


@dataclass(frozen=True)
class MessagePartUpdated(Event):
    part: Part = field(default_factory=Part)


@dataclass(frozen=True)
class MessagePartRemoved(Event):
    pass


@dataclass(frozen=True)
class FileEdited(Event):
    file: str = ""


@dataclass(frozen=True)
class FileDiff:
    path: str = ""
    additions: int = 0
    deletions: int = 0


@dataclass(frozen=True)
class SessionDiff(Event):
    diff: tuple[FileDiff, ...] = ()


@dataclass(frozen=True)
class PermissionAsked(Event):
    id: str = ""
    permission: str = ""
    patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class PermissionUpdated(Event):
    title: str = ""


@dataclass(frozen=True)
class PermissionReplied(Event):
    reply: str = ""


@dataclass(frozen=True)
class QuestionOption:
    label: str = ""
    description: str = ""


@dataclass(frozen=True)
class Question:
    question: str = ""
    header: str = ""
    options: tuple[QuestionOption, ...] = ()
    multiple: bool = False


@dataclass(frozen=True)
class QuestionAsked(Event):
    id: str = ""
    questions: tuple[Question, ...] = ()


@dataclass(frozen=True)
class QuestionReplied(Event):
    answers: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class QuestionRejected(Event):
    pass


@dataclass(frozen=True)
class Todo:
    content: str = ""
    status: str = ""


@dataclass(frozen=True)
class TodoUpdated(Event):
    todos: tuple[Todo, ...] = ()


def _session_info(props: dict[str, Any]) -> SessionInfo:
    info = as_dict(props.get("info"))
    return SessionInfo(
        id=_as_str(info.get("id")),
        title=_as_str(info.get("title")),
        slug=_as_str(info.get("slug")),
    )


def _parse_part(raw: object) -> Part:
    part = as_dict(raw)
    state = as_dict(part.get("state"))
    return Part(
        id=_as_str(part.get("id")),
        type=_as_str(part.get("type")),
        message_id=_as_str(part.get("messageID")),
        session_id=_as_str(part.get("sessionID")),
        text=_as_str(part.get("text")),
        tool=_as_str(part.get("tool")),
        call_id=_as_str(part.get("callID")),
        state=ToolState(
            status=_as_str(state.get("status")),
            title=_as_str(state.get("title")),
            error=_as_str(state.get("error")),
        ),
        description=_as_str(part.get("description")),
    )


def _parse_question(raw: object) -> Question:
    q = as_dict(raw)
    options = tuple(
        QuestionOption(label=_as_str(o.get("label")), description=_as_str(o.get("description")))
        for o in (as_dict(item) for item in _as_list(q.get("options")))
    )
    return Question(
        question=_as_str(q.get("question")),
        header=_as_str(q.get("header")),
        options=options,
        multiple=bool(q.get("multiple")),
    )


def parse_event(raw: Mapping[str, Any] | object) -> Event:
    """Parse a raw SSE payload into its typed variant.

    Args:
        raw: A decoded event mapping with ``type`` and ``properties``.

    Returns:
        The matching Event subclass, or UnknownEvent for unrecognised input.
    """
    data = as_dict(raw)
    event_type = _as_str(data.get("type"))
    props = as_dict(data.get("properties"))

    if event_type == "server.connected":
        return ServerConnected(event_type, props)

    if event_type == "session.created":
        return SessionCreated(event_type, props, info=_session_info(props))
    if event_type == "session.deleted":
        return SessionDeleted(event_type, props, info=_session_info(props))
    if event_type == "session.updated":
        return SessionUpdated(event_type, props, info=_session_info(props))

    if event_type == "session.status":
        status = as_dict(props.get("status"))
        return SessionStatusChanged(
            event_type,
            props,
            session_id=_as_str(props.get("sessionID")),
            status_type=_as_str(status.get("type")),
            attempt=_as_int(status.get("attempt")),
            message=_as_str(status.get("message")),
        )
    if event_type == "session.idle":
        return SessionIdle(event_type, props, session_id=_as_str(props.get("sessionID")))
    if event_type == "session.compacted":
        return SessionCompacted(event_type, props, session_id=_as_str(props.get("sessionID")))
    if event_type == "session.error":
        return SessionError(
            event_type,
            props,
            session_id=_as_str(props.get("sessionID")),
            message=extract_error_message(props.get("error")),
        )

    if event_type == "message.updated":
        info = as_dict(props.get("info"))
        return MessageUpdated(
            event_type,
            props,
            info=MessageInfo(
                id=_as_str(info.get("id")),
                role=_as_str(info.get("role")),
                session_id=_as_str(info.get("sessionID")),
                provider_id=_as_str(info.get("providerID")),
                model_id=_as_str(info.get("modelID")),
            ),
        )
    if event_type == "message.removed":
        return MessageRemoved(event_type, props)
    if event_type == "message.part.delta":
        return MessagePartDelta(
            event_type,
            props,
            session_id=_as_str(props.get("sessionID")),
            message_id=_as_str(props.get("messageID")),
            part_id=_as_str(props.get("partID")),
            field_name=_as_str(props.get("field")),
            delta=_as_str(props.get("delta")),
        )
    if event_type == "message.part.updated":
        return MessagePartUpdated(event_type, props, part=_parse_part(props.get("part")))
    if event_type == "message.part.removed":
        return MessagePartRemoved(event_type, props)

    if event_type == "file.edited":
        return FileEdited(event_type, props, file=_as_str(props.get("file")))
    if event_type == "session.diff":
        diffs = tuple(
            FileDiff(
                path=_as_str(d.get("path") or d.get("filename")),
                additions=_as_int(d.get("additions")),
                deletions=_as_int(d.get("deletions")),
            )
            for d in (as_dict(item) for item in _as_list(props.get("diff")))
        )
        return SessionDiff(event_type, props, diff=diffs)

    if event_type == "permission.asked":
        return PermissionAsked(
            event_type,
            props,
            id=_as_str(props.get("id")),
            permission=_as_str(props.get("permission")),
            patterns=tuple(_as_str(p) for p in _as_list(props.get("patterns"))),
        )
    if event_type == "permission.updated":
        return PermissionUpdated(event_type, props, title=_as_str(props.get("title")))
    if event_type == "permission.replied":
        reply = props.get("reply")
        if reply is None:
            reply = props.get("response")
        return PermissionReplied(event_type, props, reply=_as_str(reply))

    if event_type == "question.asked":
        return QuestionAsked(
            event_type,
            props,
            id=_as_str(props.get("id")),
            questions=tuple(_parse_question(q) for q in _as_list(props.get("questions"))),
        )
    if event_type == "question.replied":
        return QuestionReplied(event_type, props, answers=_as_list(props.get("answers")))
    if event_type == "question.rejected":
        return QuestionRejected(event_type, props)

    if event_type == "todo.updated":
        todos = tuple(
            Todo(content=_as_str(t.get("content")), status=_as_str(t.get("status")))
            for t in (as_dict(item) for item in _as_list(props.get("todos")))
        )
        return TodoUpdated(event_type, props, todos=todos)

    return UnknownEvent(event_type, props)
