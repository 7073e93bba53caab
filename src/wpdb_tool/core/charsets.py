"""Per-table charset, collation and length metadata.

Column metadata is read with ``SHOW FULL COLUMNS FROM`` the first time a
table is looked at and cached for the lifetime of the cache. Schema changes
are not detected; call clear() after altering a table.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

import structlog

from wpdb_tool.core.exceptions import CharsetResolutionError
from wpdb_tool.core.models import ColumnLength

BINARY_TYPES = frozenset(
    {"BINARY", "VARBINARY", "TINYBLOB", "MEDIUMBLOB", "BLOB", "LONGBLOB"}
)

_BYTE_CEILINGS: dict[str, int] = {
    "tinyblob": 255,
    "tinytext": 255,
    "blob": 65535,
    "text": 65535,
    "mediumblob": 16777215,
    "mediumtext": 16777215,
    "longblob": 4294967295,
    "longtext": 4294967295,
}

FetchColumns = Callable[[str], "list[dict[str, Any]] | None"]


def quote_table(table: str) -> str:
    """Backtick-quote each dotted part of a table name."""
    return ".".join(f"`{part}`" for part in table.split("."))


def collation_charset(collation: str) -> str:
    return collation.split("_", 1)[0].lower()


class SchemaCharsetCache:
    """Lazily introspected column metadata, keyed by lower-cased table name.

    ``fetch_columns`` runs a statement and returns its rows as dicts (or
    None on failure). Lookups on a table never seen before run one
    introspection query under a lock; cached reads take no lock.
    """

    def __init__(self, fetch_columns: FetchColumns) -> None:
        self._fetch_columns = fetch_columns
        self._lock = threading.RLock()
        self.table_charset: dict[str, str | None] = {}
        self.col_meta: dict[str, dict[str, dict[str, Any]]] = {}

    def clear(self, table: str | None = None) -> None:
        with self._lock:
            if table is None:
                self.table_charset.clear()
                self.col_meta.clear()
            else:
                key = table.lower()
                self.table_charset.pop(key, None)
                self.col_meta.pop(key, None)

    def get_table_charset(self, table: str) -> str | None:
        """Charset shared by the table's text columns.

        Returns "binary" when any column is binary, None when no column has
        a collation, and "ascii" when the charsets cannot be reconciled.
        Raises CharsetResolutionError when introspection fails.
        """
        key = table.lower()
        if key in self.table_charset:
            return self.table_charset[key]

        with self._lock:
            if key in self.table_charset:
                return self.table_charset[key]
            charset = self._introspect(table, key)
            self.table_charset[key] = charset
            return charset

    def _introspect(self, table: str, key: str) -> str | None:
        log = structlog.get_logger()
        rows = self._fetch_columns(f"SHOW FULL COLUMNS FROM {quote_table(table)}")
        if not rows:
            raise CharsetResolutionError(
                f"Could not retrieve table charset for {table}."
            )

        columns = {str(row["Field"]).lower(): row for row in rows}
        self.col_meta[key] = columns

        charsets: set[str] = set()
        for column in columns.values():
            if column.get("Collation"):
                charsets.add(collation_charset(column["Collation"]))
            column_type = str(column.get("Type", "")).split("(", 1)[0]
            if column_type.upper() in BINARY_TYPES:
                log.debug("table charset resolved", table=table, charset="binary")
                return "binary"

        if "utf8mb3" in charsets:
            charsets.discard("utf8mb3")
            charsets.add("utf8")

        if len(charsets) == 1:
            charset: str | None = next(iter(charsets))
        elif not charsets:
            charset = None
        else:
            charsets.discard("latin1")
            if len(charsets) == 1:
                charset = next(iter(charsets))
            elif charsets == {"utf8", "utf8mb4"}:
                charset = "utf8"
            else:
                charset = "ascii"

        log.debug("table charset resolved", table=table, charset=charset)
        return charset

    def _columns(self, table: str) -> dict[str, dict[str, Any]] | None:
        key = table.lower()
        if key not in self.col_meta:
            self.get_table_charset(table)
        return self.col_meta.get(key)

    def get_col_charset(self, table: str, column: str) -> str | None:
        """Charset of one column.

        Falls back to the table charset for unknown columns and returns None
        for columns without a collation (numbers, dates, blobs).
        """
        charset = self.get_table_charset(table)
        columns = self.col_meta.get(table.lower())
        if not columns or column.lower() not in columns:
            return charset

        collation = columns[column.lower()].get("Collation")
        if not collation:
            return None
        return collation_charset(collation)

    def get_col_length(self, table: str, column: str) -> ColumnLength | None:
        """Length ceiling for a column, or None when it has none."""
        columns = self._columns(table)
        if not columns or column.lower() not in columns:
            return None

        type_info = str(columns[column.lower()].get("Type", "")).split("(", 1)
        column_type = type_info[0].lower()
        length: int | None = None
        if len(type_info) > 1:
            digits = type_info[1].split(")", 1)[0].split(",", 1)[0]
            length = int(digits) if digits.isdigit() else None

        if column_type in ("char", "varchar"):
            return ColumnLength(type="char", length=length)
        if column_type in ("binary", "varbinary"):
            return ColumnLength(type="byte", length=length)
        if column_type in _BYTE_CEILINGS:
            return ColumnLength(type="byte", length=_BYTE_CEILINGS[column_type])
        return None
