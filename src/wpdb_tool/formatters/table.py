"""Rich table formatter for QueryResult output."""

from __future__ import annotations

import shutil
from io import StringIO
from typing import TYPE_CHECKING

from pymysql.constants import FIELD_TYPE
from rich.console import Console
from rich.table import Table
from rich.text import Text

from wpdb_tool.formatters.base import cell_text, column_names, registry

if TYPE_CHECKING:
    from collections.abc import Iterator

    from wpdb_tool.core.models import QueryResult

_NO_RESULTS = "No results"

_NUMERIC_TYPES = frozenset(
    {
        FIELD_TYPE.DECIMAL,
        FIELD_TYPE.NEWDECIMAL,
        FIELD_TYPE.TINY,
        FIELD_TYPE.SHORT,
        FIELD_TYPE.INT24,
        FIELD_TYPE.LONG,
        FIELD_TYPE.LONGLONG,
        FIELD_TYPE.FLOAT,
        FIELD_TYPE.DOUBLE,
        FIELD_TYPE.YEAR,
    }
)


def _shorten(value: str, width: int) -> str:
    return value if len(value) <= width else value[: width - 1] + "…"


class TableFormatter:
    """Box table in the style of the mysql client.

    Numeric columns are right-aligned and NULL is shown dimmed. Cells
    longer than ``width`` characters are cut with an ellipsis.
    """

    def __init__(self, width: int = 40) -> None:
        self.width = width

    def format(self, result: QueryResult) -> Iterator[str]:
        if not result.rows:
            yield _NO_RESULTS
            return

        numeric = {col.name for col in result.columns if col.type_code in _NUMERIC_TYPES}
        names = column_names(result)

        table = Table(show_edge=True, pad_edge=True)
        for name in names:
            table.add_column(
                name, no_wrap=True, justify="right" if name in numeric else "left"
            )
        for row in result.rows:
            cells: list[Text] = []
            for name in names:
                value = row.get(name)
                if value is None:
                    cells.append(Text("NULL", style="dim"))
                else:
                    cells.append(Text(_shorten(cell_text(value), self.width)))
            table.add_row(*cells)

        buf = StringIO()
        console = Console(
            file=buf,
            force_terminal=True,
            width=shutil.get_terminal_size((120, 24)).columns,
        )
        console.print(table)
        yield buf.getvalue().rstrip("\n")


registry.register("table", TableFormatter)
