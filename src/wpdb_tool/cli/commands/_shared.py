"""Shared CLI plumbing for command modules.

Config resolution, Database creation, and output helpers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from wpdb_tool.cli.output import get_formatter, write_output
from wpdb_tool.core.config import load_config, resolve_config
from wpdb_tool.core.database import Database

if TYPE_CHECKING:
    import typer

    from wpdb_tool.core.config import ResolvedConfig
    from wpdb_tool.core.models import QueryResult

_CLI_OVERRIDES = (
    "host",
    "port",
    "socket",
    "database",
    "user",
    "password",
    "charset",
    "prefix",
    "multisite",
    "blog_id",
    "show_errors",
)


def get_config(ctx: typer.Context) -> ResolvedConfig:
    obj = ctx.ensure_object(dict)
    config = load_config(obj.get("config_file"))

    cli_overrides: dict[str, Any] = {}
    for key in _CLI_OVERRIDES:
        val = obj.get(key)
        if val is not None:
            cli_overrides[key] = val

    return resolve_config(
        config,
        profile_name=obj.get("profile"),
        dsn=obj.get("dsn"),
        **cli_overrides,
    )


def get_database(ctx: typer.Context) -> Database:
    return Database(get_config(ctx))


def format_options(ctx: typer.Context) -> dict[str, Any]:
    obj = ctx.ensure_object(dict)
    return {
        "format_flag": obj.get("format"),
        "compact": obj.get("compact", False),
        "width": obj.get("width", 40),
        "no_header": obj.get("no_header", False),
    }


def output_result(ctx: typer.Context, result: QueryResult) -> None:
    opts = format_options(ctx)
    formatter = get_formatter(**opts)
    write_output(formatter, result)
