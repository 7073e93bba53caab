from __future__ import annotations

from typing import Annotated

import typer

from wpdb_tool.cli.commands._shared import get_config, output_result
from wpdb_tool.cli.output import rows_result
from wpdb_tool.core.exceptions import InputError
from wpdb_tool.core.prefixes import SCOPES, TablePrefixResolver


def tables_command(
    ctx: typer.Context,
    scope: Annotated[
        str,
        typer.Option("--scope", help=f"Table scope: {'|'.join(SCOPES)}"),
    ] = "all",
    blog_id: Annotated[
        int | None,
        typer.Option("--blog-id", "-b", help="Tenant whose blog tables to list"),
    ] = None,
) -> None:
    """List tenant-scoped table names (no connection needed)."""
    if scope not in SCOPES:
        raise InputError(f"Unknown scope: '{scope}'. Expected one of: {', '.join(SCOPES)}")

    config = get_config(ctx)
    resolver = TablePrefixResolver(
        base_prefix=config.table_prefix,
        multisite=config.multisite,
        blog_id=config.blog_id,
        site_id=config.site_id,
        custom_user_table=config.custom_user_table,
        custom_user_meta_table=config.custom_user_meta_table,
    )
    names = resolver.tables(scope, prefix=True, blog_id=blog_id or 0)
    rows = [{"table": bare, "name": full} for bare, full in names.items()]
    output_result(ctx, rows_result(rows))
