"""Output format selection and writing for CLI commands."""

from __future__ import annotations

import sys
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TextIO

from wpdb_tool.core.models import QueryResult

if TYPE_CHECKING:
    from wpdb_tool.formatters.base import Formatter


class OutputFormat(StrEnum):
    TABLE = "table"
    JSON = "json"
    CSV = "csv"


# Formatter constructor options each format accepts.
_FORMAT_OPTIONS: dict[str, tuple[str, ...]] = {
    OutputFormat.TABLE: ("width",),
    OutputFormat.JSON: ("compact",),
    OutputFormat.CSV: ("no_header",),
}


def detect_tty() -> bool:
    return sys.stdout.isatty()


def resolve_format(format_flag: str | None) -> str:
    """Pick the output format: the explicit flag, else table on a TTY, csv in a pipe."""
    if format_flag is not None:
        return format_flag
    return OutputFormat.TABLE if detect_tty() else OutputFormat.CSV


def get_formatter(format_flag: str | None = None, **options: Any) -> Formatter:
    """Build the formatter for ``format_flag``, passing only the options it takes."""
    import wpdb_tool.formatters  # noqa: F401  (registers the built-in formatters)
    from wpdb_tool.formatters.base import registry

    fmt_name = resolve_format(format_flag)
    accepted = _FORMAT_OPTIONS.get(fmt_name, ())
    return registry.get(
        fmt_name, **{key: value for key, value in options.items() if key in accepted}
    )


def rows_result(rows: list[dict[str, Any]]) -> QueryResult:
    """Wrap plain dict rows (metadata listings) for the formatters."""
    return QueryResult(rows=rows, row_count=len(rows))


def write_output(
    formatter: Formatter, result: QueryResult, stream: TextIO | None = None
) -> None:
    out = stream or sys.stdout
    for line in formatter.format(result):
        out.write(line + "\n")
