"""Database facade: raw queries, result helpers and CRUD helpers.

A Database owns one ConnectionManager, one PlaceholderCompiler, one
SchemaCharsetCache/TextSanitizer pair, one TablePrefixResolver and one
ErrorReporter. Per-query state (last query, last result, last error,
insert id) lives on the instance, so an instance must not be shared between
threads without external locking. Use one instance per worker instead.
"""

from __future__ import annotations

import re
import time
import traceback
from pathlib import Path
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

import structlog

from wpdb_tool.core.charsets import SchemaCharsetCache
from wpdb_tool.core.connection import ConnectionManager
from wpdb_tool.core.exceptions import (
    CharsetResolutionError,
    ConnectionLost,
    InvalidDataError,
    QueryExecutionError,
    WpdbError,
)
from wpdb_tool.core.models import ErrorRecord, OutputType, QueryLogEntry
from wpdb_tool.core.placeholders import PlaceholderCompiler
from wpdb_tool.core.prefixes import TablePrefixResolver
from wpdb_tool.core.reporter import ErrorReporter
from wpdb_tool.core.sanitizer import FieldValue, TextSanitizer, check_ascii

if TYPE_CHECKING:
    from wpdb_tool.core.config import ResolvedConfig
    from wpdb_tool.core.models import ColumnMeta, QueryResult
    from wpdb_tool.core.prefixes import TableNames

_DDL_RE = re.compile(r"^\s*(?:create|alter|truncate|drop)\s", re.IGNORECASE)
_DML_RE = re.compile(r"^\s*(?:insert|delete|update|replace)\s", re.IGNORECASE)
_INSERT_RE = re.compile(r"^\s*(?:insert|replace)\s", re.IGNORECASE)

_NUMERIC_FORMATS = frozenset({"%d", "%f", "%F"})

INVALID_QUERY_MESSAGE = "Could not perform query because it contains invalid data."


def _output_type(output: OutputType | str) -> OutputType | None:
    try:
        return OutputType(str(output).upper())
    except ValueError:
        return None


class Database:
    """Connection-backed query interface.

    ``query()`` and the CRUD helpers return False on failure and keep the
    reason on ``last_error`` / ``error_record``. Only unrecoverable
    connection failures go through the fatal ErrorReporter path.
    """

    def __init__(self, config: ResolvedConfig, connect: bool = True) -> None:
        self.config = config
        self.reporter = ErrorReporter(
            show_errors=config.show_errors,
            suppress_errors=config.suppress_errors,
            fatal=not config.setup_config,
        )
        self.connection = ConnectionManager(config, self.reporter)
        self.compiler = PlaceholderCompiler(
            allow_unsafe_unquoted_parameters=config.allow_unsafe_unquoted_parameters,
            placeholder_salt=config.placeholder_salt,
        )
        self.charsets = SchemaCharsetCache(self._fetch_columns)
        self.sanitizer = TextSanitizer(
            self.charsets,
            self.compiler,
            self._fetch_conversion_row,
            self._connection_charset,
        )
        self.prefixes = TablePrefixResolver(
            base_prefix=config.table_prefix,
            multisite=config.multisite,
            blog_id=config.blog_id,
            site_id=config.site_id,
            custom_user_table=config.custom_user_table,
            custom_user_meta_table=config.custom_user_meta_table,
        )

        self.field_types: dict[str, str] = {}
        self.check_current_query = True
        self.save_queries = config.save_queries
        self.queries: list[QueryLogEntry] = []

        self._last_query: str | None = None
        self._last_result: list[dict[str, Any]] = []
        self._last_error = ""
        self._error_record: ErrorRecord | None = None
        self._result: QueryResult | None = None
        self._col_info: list[ColumnMeta] | None = None
        self._insert_id = 0
        self._num_rows = 0
        self._rows_affected = 0
        self._num_queries = 0
        self._time_start = 0.0

        if connect:
            self.connect()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- read-only state --

    @property
    def last_query(self) -> str | None:
        return self._last_query

    @property
    def last_result(self) -> list[dict[str, Any]]:
        return self._last_result

    @property
    def result(self) -> QueryResult | None:
        """Full result of the last statement, columns included."""
        return self._result

    @property
    def last_error(self) -> str:
        return self._last_error

    @property
    def error_record(self) -> ErrorRecord | None:
        return self._error_record

    @property
    def insert_id(self) -> int:
        return self._insert_id

    @property
    def num_rows(self) -> int:
        return self._num_rows

    @property
    def rows_affected(self) -> int:
        return self._rows_affected

    @property
    def num_queries(self) -> int:
        return self._num_queries

    @property
    def ready(self) -> bool:
        return self.connection.ready

    @property
    def prefix(self) -> str:
        return self.prefixes.prefix

    @property
    def base_prefix(self) -> str:
        return self.prefixes.base_prefix

    @property
    def blog_id(self) -> int:
        return self.prefixes.blog_id

    @property
    def site_id(self) -> int:
        return self.prefixes.site_id

    @property
    def tables_names(self) -> TableNames:
        return self.prefixes.names

    @property
    def charset(self) -> str:
        return self.connection.charset

    @property
    def collate(self) -> str:
        return self.connection.collate

    @property
    def error(self) -> ErrorRecord | None:
        """Failure recorded by a non-fatal bail()."""
        return self.reporter.error

    # -- connection --

    def connect(self, allow_bail: bool = True) -> bool:
        connected = self.connection.connect(allow_bail=allow_bail)
        self._sync_escaping()
        return connected

    def check_connection(self, allow_bail: bool = True) -> bool:
        connected = self.connection.check_connection(allow_bail=allow_bail)
        self._sync_escaping()
        return connected

    def _sync_escaping(self) -> None:
        self.compiler.backslash_escapes = not self.connection.no_backslash_escapes

    def close(self) -> bool:
        return self.connection.close()

    def select(self, dbname: str) -> bool:
        return self.connection.select(dbname)

    def has_cap(self, capability: str) -> bool:
        return self.connection.has_cap(capability)

    def db_version(self) -> str | None:
        return self.connection.db_version()

    def db_server_info(self) -> str | None:
        return self.connection.db_server_info()

    def get_charset_collate(self) -> str:
        charset_collate = ""
        if self.charset:
            charset_collate = f"DEFAULT CHARACTER SET {self.charset}"
        if self.collate:
            charset_collate += f" COLLATE {self.collate}"
        return charset_collate

    def _connection_charset(self) -> str:
        return self.connection.charset or self.connection.character_set_name()

    # -- tenants and table names --

    def set_prefix(self, prefix: str, set_table_names: bool = True) -> str:
        return self.prefixes.set_prefix(prefix, set_table_names)

    def set_blog_id(self, blog_id: int, network_id: int = 0) -> int:
        return self.prefixes.set_blog_id(blog_id, network_id)

    def get_blog_prefix(self, blog_id: int | None = None) -> str:
        return self.prefixes.get_blog_prefix(blog_id)

    def tables(
        self, scope: str = "all", prefix: bool = True, blog_id: int = 0
    ) -> dict[str, str] | list[str]:
        return self.prefixes.tables(scope, prefix, blog_id)

    # -- escaping --

    def prepare(self, query: str | None, *args: Any) -> str | None:
        return self.compiler.prepare(query, *args)

    def esc_like(self, text: str) -> str:
        return self.compiler.esc_like(text)

    def escape(self, data: Any) -> Any:
        return self.compiler.escape(data)

    def quote_identifier(self, identifier: str) -> str:
        return self.compiler.quote_identifier(identifier)

    def remove_placeholder_escape(self, query: str) -> str:
        return self.compiler.remove_placeholder_escape(query)

    # -- errors --

    def print_error(self, message: str = "") -> bool:
        return self.reporter.print_error(message, self._last_query, self.get_caller())

    def show_errors(self, show: bool = True) -> bool:
        return self.reporter.show_errors(show)

    def hide_errors(self) -> bool:
        return self.reporter.hide_errors()

    def suppress_errors(self, suppress: bool = True) -> bool:
        return self.reporter.suppress_errors(suppress)

    def bail(self, message: str, code: str = "500") -> bool:
        return self.reporter.bail(message, code)

    def _record_error(self, exc: WpdbError, query: str | None) -> None:
        self._last_error = exc.message
        self._error_record = ErrorRecord.from_exception(
            exc, query=query, caller=self.get_caller()
        )

    # -- query execution --

    def flush(self) -> None:
        """Forget everything about the previous statement."""
        self._last_result = []
        self._col_info = None
        self._last_query = None
        self._rows_affected = 0
        self._num_rows = 0
        self._last_error = ""
        self._error_record = None
        self._result = None

    def timer_start(self) -> bool:
        self._time_start = time.time()
        return True

    def timer_stop(self) -> float:
        return time.time() - self._time_start

    def get_caller(self) -> str:
        """Comma-separated call chain leading into this module, outermost first."""
        this_file = Path(__file__).resolve()
        names = [
            f"{Path(frame.filename).stem}.{frame.name}"
            for frame in traceback.extract_stack()[:-1]
            if Path(frame.filename).resolve() != this_file
        ]
        return ", ".join(names[-5:])

    def log_query(
        self,
        query: str,
        elapsed: float,
        caller: str,
        started_at: float,
        data: dict[str, Any] | None = None,
    ) -> None:
        self.queries.append(
            QueryLogEntry(
                query=query,
                elapsed=elapsed,
                caller=caller,
                started_at=started_at,
                data=data or {},
            )
        )

    def _run(self, sql: str) -> QueryResult:
        if self.save_queries:
            self.timer_start()
        try:
            return self.connection.execute(sql)
        finally:
            self._num_queries += 1
            if self.save_queries:
                self.log_query(sql, self.timer_stop(), self.get_caller(), self._time_start)

    def _do_query(self, sql: str) -> QueryResult:
        try:
            return self._run(sql)
        except ConnectionLost:
            if not self.check_connection():
                raise
            return self._run(sql)

    def query(self, query: str | None) -> bool | int:
        """Run one statement.

        Returns True for CREATE/ALTER/TRUNCATE/DROP, the number of affected
        rows for INSERT/DELETE/UPDATE/REPLACE, the number of selected rows
        otherwise, and False on failure.
        """
        log = structlog.get_logger()
        if not self.ready:
            self.check_current_query = True
            return False

        if not query:
            self._insert_id = 0
            return False

        query = self.compiler.remove_placeholder_escape(query)
        self.flush()

        if self.check_current_query and not check_ascii(query):
            try:
                stripped = self.sanitizer.strip_invalid_text_from_query(query)
            except (CharsetResolutionError, InvalidDataError) as e:
                log.warning("query charset check failed", error=e.message)
                stripped = None
            self.flush()
            if stripped != query:
                self._insert_id = 0
                self._last_query = query
                self._record_error(InvalidDataError(INVALID_QUERY_MESSAGE), query)
                log.error("query rejected", error=INVALID_QUERY_MESSAGE, query=query)
                return False

        self.check_current_query = True
        self._last_query = query

        try:
            result = self._do_query(query)
        except ConnectionLost as e:
            self._insert_id = 0
            self._record_error(e, query)
            return False
        except QueryExecutionError as e:
            if self._insert_id and _INSERT_RE.match(query):
                self._insert_id = 0
            self._record_error(e, query)
            self.reporter.print_error(e.message, query, self._error_record.caller)
            return False

        self._result = result
        self._col_info = result.columns

        if _DDL_RE.match(query):
            return True
        if _DML_RE.match(query):
            self._rows_affected = result.rows_affected
            if _INSERT_RE.match(query):
                self._insert_id = result.insert_id
            return self._rows_affected

        self._last_result = list(result.rows)
        self._num_rows = len(self._last_result)
        return self._num_rows

    # -- result helpers --

    def _run_read(self, query: str) -> None:
        if self.check_current_query and self.sanitizer.check_safe_collation(query):
            self.check_current_query = False
        self.query(query)

    def get_var(self, query: str | None = None, x: int = 0, y: int = 0) -> Any:
        """One value from the result, by column ``x`` and row ``y``.

        Without ``query`` the previous result is used. Empty strings come
        back as None.
        """
        if query:
            self._run_read(query)

        if y < len(self._last_result):
            values = list(self._last_result[y].values())
            if x < len(values) and values[x] != "":
                return values[x]
        return None

    def get_row(
        self,
        query: str | None = None,
        output: OutputType | str = OutputType.OBJECT,
        y: int = 0,
    ) -> Any:
        if not query:
            return None
        self._run_read(query)

        if y >= len(self._last_result):
            return None

        row = self._last_result[y]
        shape = _output_type(output)
        if shape is OutputType.OBJECT:
            return SimpleNamespace(**row)
        if shape is OutputType.ARRAY_A:
            return dict(row)
        if shape is OutputType.ARRAY_N:
            return list(row.values())

        self.print_error(
            "get_row(query, output, y) -- Output type must be one of: "
            "OBJECT, ARRAY_A, ARRAY_N"
        )
        return None

    def get_col(self, query: str | None = None, x: int = 0) -> list[Any]:
        if query:
            self._run_read(query)
        return [self.get_var(None, x, i) for i in range(len(self._last_result))]

    def get_results(
        self, query: str | None = None, output: OutputType | str = OutputType.OBJECT
    ) -> Any:
        """The whole result in the requested shape.

        ``OBJECT_K`` keys rows by their first column; later rows replace
        earlier rows with the same key.
        """
        if not query:
            return None
        self._run_read(query)

        shape = _output_type(output)
        rows = self._last_result
        if shape is OutputType.OBJECT:
            return [SimpleNamespace(**row) for row in rows]
        if shape is OutputType.OBJECT_K:
            keyed: dict[Any, SimpleNamespace] = {}
            for row in rows:
                key = next(iter(row.values()), None)
                keyed[key] = SimpleNamespace(**row)
            return keyed
        if shape is OutputType.ARRAY_A:
            return [dict(row) for row in rows]
        if shape is OutputType.ARRAY_N:
            return [list(row.values()) for row in rows]
        return None

    def get_col_info(self, info_type: str = "name", col_offset: int = -1) -> Any:
        """Metadata of the last result's columns (see ColumnMeta fields)."""
        if not self._col_info:
            return None
        if col_offset == -1:
            return [getattr(col, info_type, None) for col in self._col_info]
        if col_offset >= len(self._col_info):
            return None
        return getattr(self._col_info[col_offset], info_type, None)

    # -- charset helpers --

    def _fetch_columns(self, sql: str) -> list[dict[str, Any]] | None:
        return self.get_results(sql, OutputType.ARRAY_A)

    def _fetch_conversion_row(self, sql: str) -> dict[str, Any] | None:
        self.check_current_query = False
        return self.get_row(sql, OutputType.ARRAY_A)

    def get_table_charset(self, table: str) -> str | None:
        return self.charsets.get_table_charset(table)

    def get_col_charset(self, table: str, column: str) -> str | None:
        return self.charsets.get_col_charset(table, column)

    def get_col_length(self, table: str, column: str) -> Any:
        return self.charsets.get_col_length(table, column)

    def strip_invalid_text_for_column(self, table: str, column: str, value: Any) -> Any:
        return self.sanitizer.strip_invalid_text_for_column(table, column, value)

    # -- field processing --

    def process_field_formats(
        self, data: dict[str, Any], format: list[str] | str | None = None
    ) -> dict[str, FieldValue]:
        """Pair every value with its placeholder.

        Explicit formats are used in order, reusing the first one once they
        run out. Without formats ``field_types`` is consulted, then ``%s``.
        """
        formats = [format] if isinstance(format, str) else list(format or [])
        original = list(formats)

        fields: dict[str, FieldValue] = {}
        for field, value in data.items():
            fmt = "%s"
            if original:
                fmt = formats.pop(0) if formats else original[0]
            elif field in self.field_types:
                fmt = self.field_types[field]
            fields[field] = FieldValue(value=value, format=fmt)
        return fields

    def process_field_charsets(
        self, fields: dict[str, FieldValue], table: str
    ) -> dict[str, FieldValue]:
        for field, fv in fields.items():
            if fv.format in _NUMERIC_FORMATS:
                fv.charset = None
            else:
                fv.charset = self.charsets.get_col_charset(table, field)
        return fields

    def process_field_lengths(
        self, fields: dict[str, FieldValue], table: str
    ) -> dict[str, FieldValue]:
        for field, fv in fields.items():
            if fv.format in _NUMERIC_FORMATS:
                fv.length = None
            else:
                fv.length = self.charsets.get_col_length(table, field)
        return fields

    def process_fields(
        self,
        table: str,
        data: dict[str, Any],
        format: list[str] | str | None = None,
    ) -> dict[str, FieldValue] | None:
        """Attach formats, charsets and lengths to ``data`` and check it.

        Returns None (with ``last_error`` set) when the metadata cannot be
        read or when any value would be altered to fit its column.
        """
        try:
            fields = self.process_field_formats(data, format)
            fields = self.process_field_charsets(fields, table)
            fields = self.process_field_lengths(fields, table)
            converted = self.sanitizer.strip_invalid_text(fields)
        except (CharsetResolutionError, InvalidDataError) as e:
            self._record_error(e, self._last_query)
            return None

        problems = [f for f, fv in fields.items() if fv.value != converted[f].value]
        if not problems:
            return fields

        if len(problems) == 1:
            message = (
                "Processing the value for the following field failed: "
                f"{problems[0]}. The supplied value may be too long or contains "
                "invalid data."
            )
        else:
            message = (
                "Processing the values for the following fields failed: "
                f"{', '.join(problems)}. The supplied values may be too long or "
                "contain invalid data."
            )
        self._record_error(InvalidDataError(message), self._last_query)
        structlog.get_logger().warning("field processing failed", fields=problems)
        return None

    # -- CRUD --

    def insert(
        self, table: str, data: dict[str, Any], format: list[str] | str | None = None
    ) -> bool | int:
        """INSERT a row. None values are written as NULL."""
        return self._insert_replace_helper(table, data, format, "INSERT")

    def replace(
        self, table: str, data: dict[str, Any], format: list[str] | str | None = None
    ) -> bool | int:
        """REPLACE a row. None values are written as NULL."""
        return self._insert_replace_helper(table, data, format, "REPLACE")

    def _insert_replace_helper(
        self,
        table: str,
        data: dict[str, Any],
        format: list[str] | str | None = None,
        type: str = "INSERT",
    ) -> bool | int:
        self._insert_id = 0
        type = type.upper()
        if type not in ("INSERT", "REPLACE"):
            return False

        fields = self.process_fields(table, data, format)
        if fields is None:
            return False

        placeholders: list[str] = []
        values: list[Any] = []
        for fv in fields.values():
            if fv.value is None:
                placeholders.append("NULL")
                continue
            placeholders.append(fv.format)
            values.append(fv.value)

        columns = ", ".join(self.quote_identifier(field) for field in fields)
        sql = (
            f"{type} INTO {self.quote_identifier(table)} ({columns}) "
            f"VALUES ({', '.join(placeholders)})"
        )
        self.check_current_query = False
        return self.query(self.compiler.prepare(sql, values))

    def update(
        self,
        table: str,
        data: dict[str, Any],
        where: dict[str, Any],
        format: list[str] | str | None = None,
        where_format: list[str] | str | None = None,
    ) -> bool | int:
        """UPDATE rows matching ``where``.

        None in ``data`` is written as NULL; None in ``where`` matches with
        IS NULL.
        """
        if not isinstance(data, dict) or not isinstance(where, dict):
            return False

        data_fields = self.process_fields(table, data, format)
        if data_fields is None:
            return False
        where_fields = self.process_fields(table, where, where_format)
        if where_fields is None:
            return False

        assignments: list[str] = []
        values: list[Any] = []
        for field, fv in data_fields.items():
            if fv.value is None:
                assignments.append(f"{self.quote_identifier(field)} = NULL")
                continue
            assignments.append(f"{self.quote_identifier(field)} = {fv.format}")
            values.append(fv.value)

        conditions, where_values = self._where_clause(where_fields)
        values.extend(where_values)

        sql = (
            f"UPDATE {self.quote_identifier(table)} SET {', '.join(assignments)} "
            f"WHERE {' AND '.join(conditions)}"
        )
        self.check_current_query = False
        return self.query(self.compiler.prepare(sql, values))

    def delete(
        self,
        table: str,
        where: dict[str, Any],
        where_format: list[str] | str | None = None,
    ) -> bool | int:
        """DELETE rows matching ``where``. None matches with IS NULL."""
        if not isinstance(where, dict):
            return False

        where_fields = self.process_fields(table, where, where_format)
        if where_fields is None:
            return False

        conditions, values = self._where_clause(where_fields)
        sql = (
            f"DELETE FROM {self.quote_identifier(table)} "
            f"WHERE {' AND '.join(conditions)}"
        )
        self.check_current_query = False
        return self.query(self.compiler.prepare(sql, values))

    def _where_clause(self, fields: dict[str, FieldValue]) -> tuple[list[str], list[Any]]:
        conditions: list[str] = []
        values: list[Any] = []
        for field, fv in fields.items():
            if fv.value is None:
                conditions.append(f"{self.quote_identifier(field)} IS NULL")
                continue
            conditions.append(f"{self.quote_identifier(field)} = {fv.format}")
            values.append(fv.value)
        return conditions, values
