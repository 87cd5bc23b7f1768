"""Plain-text extraction from session messages."""

from collections.abc import Mapping, Sequence
from typing import Any


def validate_text_options(text: bool, all_messages: bool, pretty: bool) -> str | None:
    """Check the --text/--all/--pretty combination.

    Returns:
        An error message, or None if the options are valid.
    """
    if all_messages and not text:
        return "--all requires --text. Usage: oc-cli session messages <id> --text --all"
    if text and pretty:
        return "--text and --pretty are mutually exclusive."
    return None


def _message_text(message: Mapping[str, Any]) -> str | None:
    parts = message.get("parts") or []
    texts = [str(p.get("text") or "") for p in parts if isinstance(p, Mapping) and p.get("type") == "text"]
    if not texts:
        return None
    return "\n".join(texts)


def _role(message: Mapping[str, Any]) -> str:
    info = message.get("info")
    return str(info.get("role", "")) if isinstance(info, Mapping) else ""


def extract_text_output(messages: Sequence[Mapping[str, Any]], all_messages: bool = False) -> list[str]:
    """Extract text content from messages.

    By default returns the text of the last assistant message that has any
    text parts. With ``all_messages``, returns one ``[role] text`` entry per
    message with text parts.
    """
    if all_messages:
        lines: list[str] = []
        for message in messages:
            text = _message_text(message)
            if text is not None:
                lines.append(f"[{_role(message)}] {text}")
        return lines

    for message in reversed(messages):
        if _role(message) != "assistant":
            continue
        text = _message_text(message)
        if text is not None:
            return [text]
    return []
