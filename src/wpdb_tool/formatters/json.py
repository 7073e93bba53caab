"""JSON formatter for QueryResult output."""

from __future__ import annotations

import datetime
import json
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from wpdb_tool.formatters.base import cell_text, column_names, registry

if TYPE_CHECKING:
    from collections.abc import Iterator

    from wpdb_tool.core.models import QueryResult


def _json_default(value: Any) -> Any:
    # DECIMAL columns stay strings so no precision is lost.
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return cell_text(value)


class JSONFormatter:
    """The whole result as one JSON array of row objects."""

    def __init__(self, compact: bool = False) -> None:
        self.compact = compact

    def format(self, result: QueryResult) -> Iterator[str]:
        names = column_names(result)
        records = [{name: row.get(name) for name in names} for row in result.rows]
        yield json.dumps(
            records,
            default=_json_default,
            ensure_ascii=False,
            indent=None if self.compact else 2,
        )


registry.register("json", JSONFormatter)
