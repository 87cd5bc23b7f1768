"""Utility functions for oc-cli."""

import re

_WHITESPACE_RE = re.compile(r"\s+")

ELLIPSIS = "…"
RUN_TITLE_MAX_LEN = 50


def truncate(text: str, max_len: int) -> str:
    """Collapse whitespace and cut text to a character budget.

    The budget applies to the cleaned string, so runs of whitespace do not
    count against it.

    Args:
        text: The text to shorten.
        max_len: Maximum number of characters kept before the ellipsis.

    Returns:
        The cleaned text, ending in an ellipsis if it was cut.
    """
    cleaned = _WHITESPACE_RE.sub(" ", text).strip()
    if len(cleaned) > max_len:
        return cleaned[:max_len] + ELLIPSIS
    return cleaned


def parse_model_spec(spec: str) -> dict[str, str]:
    """Split a ``provider/model`` string into server model fields.

    Args:
        spec: Model spec such as ``google/gemini-2.5-pro``.

    Returns:
        Mapping with ``providerID`` and ``modelID``.

    Raises:
        ValueError: If the spec has no slash.
    """
    provider, sep, model = spec.partition("/")
    if not sep:
        raise ValueError(
            f'Invalid --model format: "{spec}". Expected provider/model (e.g. google/gemini-2.5-pro).'
        )
    return {"providerID": provider, "modelID": model}


def build_run_title(text: str, title_prefix: str = "") -> str:
    """Build the session title used by the run command.

    Args:
        text: The prompt text.
        title_prefix: Resolved profile title prefix.

    Returns:
        Title such as ``[proj] run: fix the failing test``.
    """
    body = text[:RUN_TITLE_MAX_LEN] + ELLIPSIS if len(text) > RUN_TITLE_MAX_LEN else text
    return f"{title_prefix}run: {body}"


def apply_title_prefix(title: str | None, title_prefix: str) -> str | None:
    """Prepend the configured title prefix to a session title.

    With no title, the prefix alone is used (without its trailing space).
    """
    if not title_prefix:
        return title
    if title:
        return title_prefix + title
    return title_prefix.rstrip()


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated option value, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]
