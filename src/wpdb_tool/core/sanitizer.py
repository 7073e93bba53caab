"""Validation and truncation of text against column charsets and lengths."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

import structlog

from wpdb_tool.core.exceptions import CharsetResolutionError, InvalidDataError
from wpdb_tool.core.query_tables import get_table_from_query

if TYPE_CHECKING:
    from wpdb_tool.core.charsets import SchemaCharsetCache
    from wpdb_tool.core.models import ColumnLength
    from wpdb_tool.core.placeholders import PlaceholderCompiler

UTF8_CHARSETS = frozenset({"utf8", "utf8mb3", "utf8mb4"})

SAFE_COLLATIONS = frozenset(
    {
        "utf8_bin",
        "utf8_general_ci",
        "utf8mb3_bin",
        "utf8mb3_general_ci",
        "utf8mb4_bin",
        "utf8mb4_general_ci",
    }
)

_INTROSPECTION_RE = re.compile(r"^(?:SHOW|DESCRIBE|DESC|EXPLAIN|CREATE)\s", re.IGNORECASE)
_CHARSET_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass
class FieldValue:
    """A value on its way into a column, with the metadata used to check it."""

    value: Any
    format: str = "%s"
    charset: str | None = None
    length: ColumnLength | None = None
    ascii: bool | None = None


def check_ascii(text: str) -> bool:
    return text.isascii()


def _utf8_filter(text: str, allow_4byte: bool) -> str:
    """Drop code points the charset cannot store.

    Lone surrogates are never valid; characters outside the BMP are only
    valid in utf8mb4.
    """
    return "".join(
        ch
        for ch in text
        if not 0xD800 <= ord(ch) <= 0xDFFF and (allow_4byte or ord(ch) <= 0xFFFF)
    )


def truncate_bytes(text: str, length: int) -> str:
    """Cut ``text`` to at most ``length`` UTF-8 bytes on a code point boundary."""
    encoded = text.encode("utf-8")
    if len(encoded) <= length:
        return text
    return encoded[:length].decode("utf-8", errors="ignore")


class TextSanitizer:
    """Strips characters a column cannot store and enforces length ceilings.

    utf8-family and latin1 values are handled locally. Values in any other
    charset are converted by the server: all of them go out in one
    ``SELECT CONVERT(...)`` statement through ``fetch_row``.
    """

    def __init__(
        self,
        charsets: SchemaCharsetCache,
        compiler: PlaceholderCompiler,
        fetch_row: Callable[[str], dict[str, Any] | None],
        connection_charset: Callable[[], str],
    ) -> None:
        self.charsets = charsets
        self.compiler = compiler
        self._fetch_row = fetch_row
        self._connection_charset = connection_charset
        self._checking_collation = False

    def strip_invalid_text(self, data: dict[str, FieldValue]) -> dict[str, FieldValue]:
        """Return a copy of ``data`` with every string value made storable.

        Raises InvalidDataError when the server-side conversion fails.
        """
        result = {field: replace(fv) for field, fv in data.items()}
        needs_db: list[str] = []

        for field, fv in result.items():
            if fv.charset is None or not isinstance(fv.value, str):
                continue

            length = fv.length.length if fv.length is not None else None
            by_bytes = fv.length is not None and fv.length.type == "byte"

            is_ascii = fv.ascii if fv.ascii is not None else check_ascii(fv.value)
            if fv.charset == "latin1" or is_ascii:
                # One byte per character in both cases.
                if length is not None and len(fv.value) > length:
                    fv.value = fv.value[:length]
                continue

            if fv.charset in UTF8_CHARSETS:
                fv.value = _utf8_filter(fv.value, fv.charset == "utf8mb4")
                if length is not None:
                    if by_bytes:
                        fv.value = truncate_bytes(fv.value, length)
                    elif len(fv.value) > length:
                        fv.value = fv.value[:length]
                continue

            needs_db.append(field)

        if needs_db:
            self._convert_on_server(result, needs_db)
        return result

    def _convert_on_server(self, data: dict[str, FieldValue], fields: list[str]) -> None:
        log = structlog.get_logger()
        connection_charset = self._connection_charset()
        selects: list[str] = []
        aliases: dict[str, str] = {}

        for i, field in enumerate(fields):
            fv = data[field]
            charset = fv.charset or ""
            if fv.length is not None and fv.length.type == "byte":
                charset = "binary"
            for name in (charset, connection_charset):
                if not _CHARSET_NAME_RE.match(name):
                    raise InvalidDataError(f"Invalid charset name: {name!r}")

            alias = f"x_{i}"
            if fv.length is not None and fv.length.length is not None:
                expr = self.compiler.prepare(
                    f"CONVERT(LEFT(CONVERT(%s USING {charset}), %d) "
                    f"USING {connection_charset})",
                    fv.value,
                    fv.length.length,
                )
            elif charset != "binary":
                expr = self.compiler.prepare(
                    f"CONVERT(CONVERT(%s USING {charset}) USING {connection_charset})",
                    fv.value,
                )
            else:
                continue
            selects.append(f"{expr} AS {alias}")
            aliases[alias] = field

        if not selects:
            return

        log.debug("converting values on server", fields=list(aliases.values()))
        row = self._fetch_row("SELECT " + ", ".join(selects))
        if not row:
            raise InvalidDataError("Could not strip invalid text.")
        for alias, field in aliases.items():
            if alias in row:
                data[field].value = row[alias]

    def strip_invalid_text_from_query(self, query: str) -> str:
        """Strip the query text with the charset of the table it targets.

        Raises CharsetResolutionError when the table charset is unknown.
        """
        if _INTROSPECTION_RE.match(query.lstrip()):
            return query

        table = get_table_from_query(query)
        if table:
            charset = self.charsets.get_table_charset(table)
            if charset == "binary":
                return query
        else:
            charset = self._connection_charset()

        data = {"query": FieldValue(value=query, charset=charset, ascii=False)}
        return self.strip_invalid_text(data)["query"].value

    def strip_invalid_text_for_column(self, table: str, column: str, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        charset = self.charsets.get_col_charset(table, column)
        if not charset:
            return value
        data = {
            column: FieldValue(
                value=value,
                charset=charset,
                length=self.charsets.get_col_length(table, column),
            )
        }
        return self.strip_invalid_text(data)[column].value

    def check_safe_collation(self, query: str) -> bool:
        """True when the query needs no charset stripping before it runs."""
        if self._checking_collation:
            return True

        query = re.sub(r"^\s*\(+\s*", "", query.strip())
        if _INTROSPECTION_RE.match(query):
            return True
        if check_ascii(query):
            return True

        table = get_table_from_query(query)
        if not table:
            return False

        self._checking_collation = True
        try:
            charset = self.charsets.get_table_charset(table)
        except CharsetResolutionError:
            return False
        finally:
            self._checking_collation = False

        if charset is None or charset == "latin1":
            return True

        columns = self.charsets.col_meta.get(table.lower())
        if not columns:
            return False
        return all(
            not col.get("Collation") or col["Collation"] in SAFE_COLLATIONS
            for col in columns.values()
        )
