from __future__ import annotations

from typing import Annotated

import typer

from wpdb_tool.core.exit_codes import ExitCode
from wpdb_tool.core.placeholders import PlaceholderCompiler


def prepare_command(
    template: Annotated[str, typer.Argument(help="Query template with placeholders")],
    args: Annotated[
        list[str] | None,
        typer.Argument(help="Values substituted into the template, in order"),
    ] = None,
    unsafe_unquoted: Annotated[
        bool,
        typer.Option(
            "--unsafe-unquoted",
            help="Legacy quoting: leave formatted %s placeholders unquoted",
        ),
    ] = False,
    no_backslash_escapes: Annotated[
        bool,
        typer.Option(
            "--no-backslash-escapes",
            help="Escape as for a session running with NO_BACKSLASH_ESCAPES",
        ),
    ] = False,
) -> None:
    """Compile a query template offline and print the final SQL."""
    compiler = PlaceholderCompiler(
        allow_unsafe_unquoted_parameters=unsafe_unquoted,
        backslash_escapes=not no_backslash_escapes,
    )
    sql = compiler.prepare(template, *(args or []))

    if not sql:
        message = compiler.last_error.message if compiler.last_error else "Empty result"
        typer.echo(f"Error: {message}", err=True)
        raise typer.Exit(ExitCode.INPUT_ERROR)

    if compiler.last_error is not None:
        typer.echo(f"Warning: {compiler.last_error.message}", err=True)
    typer.echo(compiler.remove_placeholder_escape(sql))
