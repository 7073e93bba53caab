from __future__ import annotations

import sys
from typing import Annotated

import typer

from wpdb_tool.cli.commands._shared import get_database, output_result
from wpdb_tool.core.exceptions import InputError, QueryExecutionError
from wpdb_tool.core.exit_codes import ExitCode
from wpdb_tool.core.models import QueryResult
from wpdb_tool.core.query_source import resolve_query_source


def query_command(
    ctx: typer.Context,
    file: Annotated[
        str | None,
        typer.Argument(help="SQL file to execute"),
    ] = None,
    execute: Annotated[
        str | None,
        typer.Option("--execute", "-e", help="Execute inline SQL query"),
    ] = None,
) -> None:
    """Execute a SQL query from file, inline (-e), or stdin."""
    try:
        is_tty = sys.stdin.isatty()
    except (ValueError, AttributeError):
        is_tty = False
    if execute is None and file is None and is_tty:
        typer.echo(ctx.get_help())
        raise typer.Exit()

    try:
        sql = resolve_query_source(inline=execute, file_path=file)
    except InputError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(ExitCode.INPUT_ERROR) from exc

    with get_database(ctx) as db:
        outcome = db.query(sql)
        if outcome is False:
            raise QueryExecutionError(db.last_error or "Query failed", query=sql)
        result = db.result or QueryResult()
        if result.columns:
            output_result(ctx, result)
        elif outcome is True:
            typer.echo("Query OK", err=True)
        else:
            typer.echo(f"Query OK, {outcome} rows affected", err=True)
