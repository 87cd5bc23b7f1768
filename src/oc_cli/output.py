"""Output helpers: compact JSON by default, rich tables with --pretty.

Results go to stdout, errors to stderr as ``{"error": "..."}`` so scripts
can tell success from failure without parsing prose.
"""

import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from oc_cli.errors import ExitCode

console = Console()
err_console = Console(stderr=True)

_MISSING = object()

# Per-column cell styles in pretty tables
COLUMN_STYLES: dict[str, str] = {
    "id": "dim",
    "title": "white",
    "name": "white",
    "slug": "green",
    "provider": "cyan",
}


@dataclass(frozen=True)
class Column:
    """A pretty-table column: data key, header label and max width."""

    key: str
    label: str
    width: int


SESSION_COLUMNS = (Column("id", "ID", 35), Column("slug", "SLUG", 20), Column("title", "TITLE", 45))
MESSAGE_COLUMNS = (Column("role", "ROLE", 12), Column("id", "ID", 35))


def to_json(value: Any) -> str:
    """Serialize to compact single-line JSON."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def print_json(value: Any, out: Console | None = None) -> None:
    """Print a value as compact JSON without any styling."""
    (out or console).out(to_json(value), highlight=False)


def print_error(message: str, code: int = ExitCode.ERROR) -> NoReturn:
    """Print ``{"error": message}`` to stderr and exit with ``code``."""
    err_console.out(to_json({"error": message}), highlight=False)
    raise typer.Exit(int(code))


def resolve_dot_path(obj: Any, path: str) -> Any:
    """Resolve a dot-separated path, e.g. ``summary.files``.

    Returns:
        The nested value, or ``_MISSING`` when any step is absent or not a mapping.
    """
    current = obj
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list | tuple):
        return ",".join(_stringify(v) for v in value)
    if isinstance(value, Mapping):
        return to_json(value)
    return str(value)


def parse_filters(filters: Iterable[str]) -> list[tuple[str, str]]:
    """Parse ``key=value`` filter expressions.

    Raises:
        ValueError: If an expression has no ``=``.
    """
    conditions: list[tuple[str, str]] = []
    for expr in filters:
        key, sep, value = expr.partition("=")
        if not sep:
            raise ValueError(f'Invalid filter format: "{expr}". Expected key=value')
        conditions.append((key.strip(), value.strip().lower()))
    return conditions


def filter_data(data: Sequence[Mapping[str, Any]], filters: Iterable[str]) -> list[Mapping[str, Any]]:
    """Keep rows where every filter's value is a case-insensitive substring of the field."""
    conditions = parse_filters(filters)

    def matches(item: Mapping[str, Any]) -> bool:
        for key, value in conditions:
            resolved = resolve_dot_path(item, key)
            if resolved is _MISSING or value not in _stringify(resolved).lower():
                return False
        return True

    return [item for item in data if matches(item)]


def filter_fields(data: Sequence[Mapping[str, Any]], fields: str) -> list[dict[str, Any]]:
    """Project each row onto the comma-separated ``fields``, skipping keys a row lacks."""
    keys = [f.strip() for f in fields.split(",")]
    return [{key: item[key] for key in keys if key in item} for item in data]


def build_table(data: Sequence[Mapping[str, Any]], columns: Sequence[Column]) -> Table:
    """Build a rich table, hiding columns projected away by --fields."""
    if data:
        present = set(data[0])
        columns = [c for c in columns if c.key in present]

    table = Table(show_edge=False, box=None, header_style="bold cyan", pad_edge=False)
    for column in columns:
        table.add_column(
            column.label,
            style=COLUMN_STYLES.get(column.key),
            max_width=column.width,
            no_wrap=True,
            overflow="ellipsis",
        )
    for item in data:
        cells: list[str] = []
        for column in columns:
            raw = escape(_stringify(item.get(column.key)))
            if column.key == "default" and raw == "yes":
                raw = f"[bold green]{raw}[/]"
            cells.append(raw)
        table.add_row(*cells)
    return table


def print_data(
    data: Sequence[Mapping[str, Any]],
    columns: Sequence[Column],
    *,
    pretty: bool = False,
    fields: str | None = None,
    filters: Iterable[str] | None = None,
    out: Console | None = None,
) -> None:
    """Print rows as compact JSON, or as a table with ``pretty``.

    Args:
        data: Rows to print.
        columns: Table columns for pretty mode.
        pretty: Render a rich table with a result count footer.
        fields: Comma-separated keys to keep.
        filters: ``key=value`` expressions, all of which must match.
        out: Console to print to. Defaults to stdout.

    Raises:
        ValueError: If a filter expression is malformed.
    """
    out = out or console
    rows: Sequence[Mapping[str, Any]] = filter_data(data, filters) if filters else data
    if fields:
        rows = filter_fields(rows, fields)

    if not pretty:
        print_json(list(rows), out)
        return

    out.print(build_table(rows, columns))
    out.print()
    out.print(f"[dim]{len(rows)} result{'' if len(rows) == 1 else 's'}[/]")
