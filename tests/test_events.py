"""Tests for oc_cli.events module."""

from oc_cli.events import (
    UNKNOWN_ERROR,
    MessagePartDelta,
    MessagePartUpdated,
    MessageUpdated,
    PermissionReplied,
    QuestionAsked,
    SessionCreated,
    SessionDiff,
    SessionError,
    SessionStatusChanged,
    TodoUpdated,
    UnknownEvent,
    extract_error_message,
    parse_event,
)


class TestExtractErrorMessage:
    """Tests for extract_error_message function."""

    def test_prefers_data_message(self) -> None:
        """Should use error.data.message first."""
        error = {"data": {"message": "Rate limited"}, "message": "outer"}
        assert extract_error_message(error) == "Rate limited"

    def test_falls_back_to_message(self) -> None:
        """Should use error.message when data has none."""
        assert extract_error_message({"data": {}, "message": "outer"}) == "outer"

    def test_placeholder_when_missing(self) -> None:
        """Should fall back to a generic message."""
        assert extract_error_message(None) == UNKNOWN_ERROR
        assert extract_error_message({}) == UNKNOWN_ERROR
        assert extract_error_message("not a mapping") == UNKNOWN_ERROR


class TestParseEvent:
    """Tests for parse_event function."""

    def test_unknown_type(self) -> None:
        """Should return UnknownEvent for unrecognised types."""
        event = parse_event({"type": "lsp.updated", "properties": {"x": 1}})
        assert isinstance(event, UnknownEvent)
        assert event.type == "lsp.updated"
        assert event.properties == {"x": 1}

    def test_garbage_input(self) -> None:
        """Should not raise on non-mapping input."""
        event = parse_event(None)
        assert isinstance(event, UnknownEvent)
        assert event.type == ""

    def test_session_created(self) -> None:
        """Should expose session info."""
        event = parse_event(
            {"type": "session.created", "properties": {"info": {"id": "ses_1", "title": "t", "slug": "brave-fox"}}}
        )
        assert isinstance(event, SessionCreated)
        assert event.info.id == "ses_1"
        assert event.info.slug == "brave-fox"

    def test_session_status_retry(self) -> None:
        """Should parse retry attempt and message."""
        event = parse_event(
            {
                "type": "session.status",
                "properties": {
                    "sessionID": "ses_1",
                    "status": {"type": "retry", "attempt": 3, "message": "overloaded"},
                },
            }
        )
        assert isinstance(event, SessionStatusChanged)
        assert event.status_type == "retry"
        assert event.attempt == 3
        assert event.message == "overloaded"

    def test_session_error_message(self) -> None:
        """Should resolve the error message at parse time."""
        event = parse_event(
            {"type": "session.error", "properties": {"sessionID": "s", "error": {"data": {"message": "boom"}}}}
        )
        assert isinstance(event, SessionError)
        assert event.message == "boom"

    def test_message_updated_model(self) -> None:
        """Should combine provider and model IDs."""
        event = parse_event(
            {
                "type": "message.updated",
                "properties": {
                    "info": {"id": "m1", "role": "assistant", "sessionID": "s", "providerID": "x", "modelID": "y"}
                },
            }
        )
        assert isinstance(event, MessageUpdated)
        assert event.info.model == "x/y"

    def test_message_updated_model_requires_both(self) -> None:
        """Should leave model empty when only one half is known."""
        event = parse_event({"type": "message.updated", "properties": {"info": {"id": "m1", "providerID": "x"}}})
        assert isinstance(event, MessageUpdated)
        assert event.info.model == ""

    def test_part_delta(self) -> None:
        """Should map the field key to field_name."""
        event = parse_event(
            {
                "type": "message.part.delta",
                "properties": {"sessionID": "s", "messageID": "m", "partID": "p", "field": "text", "delta": "hi"},
            }
        )
        assert isinstance(event, MessagePartDelta)
        assert event.field_name == "text"
        assert event.delta == "hi"

    def test_tool_part(self) -> None:
        """Should parse nested tool state."""
        event = parse_event(
            {
                "type": "message.part.updated",
                "properties": {
                    "part": {
                        "id": "p",
                        "type": "tool",
                        "messageID": "m",
                        "tool": "bash",
                        "callID": "c1",
                        "state": {"status": "error", "error": "exit 1"},
                    }
                },
            }
        )
        assert isinstance(event, MessagePartUpdated)
        assert event.part.tool == "bash"
        assert event.part.call_id == "c1"
        assert event.part.state.status == "error"
        assert event.part.state.error == "exit 1"

    def test_malformed_part(self) -> None:
        """Should default every field when part is not a mapping."""
        event = parse_event({"type": "message.part.updated", "properties": {"part": "oops"}})
        assert isinstance(event, MessagePartUpdated)
        assert event.part.id == ""
        assert event.part.state.status == ""

    def test_session_diff_filename_fallback(self) -> None:
        """Should use filename when path is missing."""
        event = parse_event(
            {"type": "session.diff", "properties": {"diff": [{"filename": "a.py", "additions": "2", "deletions": 1}]}}
        )
        assert isinstance(event, SessionDiff)
        assert event.diff[0].path == "a.py"
        assert event.diff[0].additions == 2

    def test_permission_replied_response_fallback(self) -> None:
        """Should read the legacy response key."""
        event = parse_event({"type": "permission.replied", "properties": {"response": "once"}})
        assert isinstance(event, PermissionReplied)
        assert event.reply == "once"

    def test_question_asked(self) -> None:
        """Should parse questions with options."""
        event = parse_event(
            {
                "type": "question.asked",
                "properties": {
                    "id": "q1",
                    "questions": [
                        {
                            "question": "Which?",
                            "header": "Pick",
                            "options": [{"label": "A", "description": "first"}, {"label": "B"}],
                            "multiple": True,
                        }
                    ],
                },
            }
        )
        assert isinstance(event, QuestionAsked)
        assert event.id == "q1"
        assert event.questions[0].options[1].label == "B"
        assert event.questions[0].multiple is True

    def test_todo_updated(self) -> None:
        """Should parse todos."""
        event = parse_event(
            {"type": "todo.updated", "properties": {"todos": [{"content": "write tests", "status": "in_progress"}]}}
        )
        assert isinstance(event, TodoUpdated)
        assert event.todos[0].status == "in_progress"
