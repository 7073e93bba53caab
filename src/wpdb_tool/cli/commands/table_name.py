from __future__ import annotations

from typing import Annotated

import typer

from wpdb_tool.core.exit_codes import ExitCode
from wpdb_tool.core.query_source import resolve_query_source
from wpdb_tool.core.query_tables import get_table_from_query


def table_name_command(
    sql: Annotated[
        str | None,
        typer.Argument(help="SQL statement (reads stdin when omitted)"),
    ] = None,
) -> None:
    """Print the first table a SQL statement refers to."""
    table = get_table_from_query(resolve_query_source(inline=sql, file_path=None))
    if table is None:
        typer.echo("No table found", err=True)
        raise typer.Exit(ExitCode.INPUT_ERROR)
    typer.echo(table)
