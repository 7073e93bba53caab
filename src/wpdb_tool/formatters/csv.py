"""CSV formatter for QueryResult output (RFC 4180 compliant)."""

from __future__ import annotations

import csv
from io import StringIO
from typing import TYPE_CHECKING

from wpdb_tool.formatters.base import cell_text, column_names, registry

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from wpdb_tool.core.models import QueryResult


class CSVFormatter:
    """One CSV record per row.

    NULL cells are written as ``null_text``; the empty default keeps NULL
    and the empty string indistinguishable, ``\\N`` matches what
    ``LOAD DATA INFILE`` reads back as NULL.
    """

    def __init__(self, no_header: bool = False, null_text: str = "") -> None:
        self.no_header = no_header
        self.null_text = null_text

    def format(self, result: QueryResult) -> Iterator[str]:
        buf = StringIO()
        writer = csv.writer(buf, lineterminator="\n")

        def record(values: Sequence[str]) -> str:
            buf.seek(0)
            buf.truncate()
            writer.writerow(values)
            return buf.getvalue()[:-1]

        names = column_names(result)
        if not self.no_header:
            yield record(names)

        for row in result.rows:
            yield record(
                [
                    self.null_text if row.get(name) is None else cell_text(row[name])
                    for name in names
                ]
            )


registry.register("csv", CSVFormatter)
