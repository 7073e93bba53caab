from __future__ import annotations

from typing import Annotated, Any

import typer

from wpdb_tool.cli.commands._shared import get_database, output_result
from wpdb_tool.cli.output import rows_result


def charset_command(
    ctx: typer.Context,
    table: Annotated[str, typer.Argument(help="Table name (may be db.table)")],
    column: Annotated[
        str | None,
        typer.Argument(help="Column name; all columns when omitted"),
    ] = None,
) -> None:
    """Show the charset and length limits the write checks use."""
    with get_database(ctx) as db:
        table_charset = db.get_table_charset(table)
        if column is not None:
            columns = [column]
        else:
            columns = [
                row["Field"] for row in db.charsets.col_meta.get(table.lower(), {}).values()
            ]

        rows: list[dict[str, Any]] = []
        for name in columns:
            length = db.get_col_length(table, name)
            rows.append(
                {
                    "table": table,
                    "table_charset": table_charset or "",
                    "column": name,
                    "charset": db.get_col_charset(table, name) or "",
                    "length_type": length.type if length else "",
                    "length": length.length if length else None,
                }
            )

    output_result(ctx, rows_result(rows))
