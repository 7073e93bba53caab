"""Where the SQL for a command comes from.

An inline ``-e`` statement wins over a file argument, which wins over
piped stdin.
"""

from __future__ import annotations

import sys
from pathlib import Path

from wpdb_tool.core.exceptions import InputError


def _read_file(file_path: str) -> str:
    path = Path(file_path)
    if not path.is_file():
        raise InputError(
            f"Query file not found: {file_path}\n"
            "Use -e for inline queries or pipe query via stdin."
        )
    # utf-8-sig drops the BOM some editors put in front of exported SQL.
    return path.read_text(encoding="utf-8-sig")


def normalize_statement(sql: str) -> str:
    """Trim whitespace and one trailing semicolon.

    The driver runs a single statement per call, so the terminator a mysql
    client script would carry is not part of the query.
    """
    statement = sql.strip()
    if statement.endswith(";"):
        statement = statement[:-1].rstrip()
    return statement


def resolve_query_source(inline: str | None, file_path: str | None) -> str:
    """Return the SQL to run.

    Raises InputError when there is no source or the statement is blank.
    """
    if inline is not None:
        sql = inline
    elif file_path is not None:
        sql = _read_file(file_path)
    elif not sys.stdin.isatty():
        sql = sys.stdin.read()
    else:
        raise InputError("No query provided. Use -e, file path, or pipe to stdin.")

    statement = normalize_statement(sql)
    if not statement:
        raise InputError("Query is empty.")
    return statement
