"""MySQL connection lifecycle for wpdb-tool.

Wraps one PyMySQL connection: connect, session setup (charset, SQL mode,
schema), liveness checks with bounded fixed-interval reconnects, and
statement execution with driver errors mapped onto the WpdbError hierarchy.
"""

from __future__ import annotations

import re
import time
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import pymysql
import pymysql.cursors
import sentry_sdk
import structlog
from pymysql.constants import FIELD_TYPE

from wpdb_tool.core.config import parse_db_host
from wpdb_tool.core.exceptions import (
    AuthenticationFailure,
    ConnectionLost,
    QueryExecutionError,
)
from wpdb_tool.core.models import ColumnMeta, QueryResult

if TYPE_CHECKING:
    from wpdb_tool.core.config import ResolvedConfig
    from wpdb_tool.core.reporter import ErrorReporter

AUTH_ERROR_CODES = frozenset({1044, 1045, 1698})
CONNECTION_LOST_CODES = frozenset({2006, 2013, 2055})

DEFAULT_PORT = 3306

_TYPE_NAMES: dict[int, str] = {
    value: name.lower() for name, value in vars(FIELD_TYPE).items() if name.isupper()
}

# Minimum server versions per capability.
_CAPABILITY_VERSIONS: dict[str, tuple[int, ...]] = {
    "collation": (4, 1),
    "group_concat": (4, 1),
    "subqueries": (4, 1),
    "set_charset": (5, 0, 7),
    "utf8mb4": (5, 5, 3),
    "utf8mb4_520": (5, 6),
}

_SQL_MODE_RE = re.compile(r"^[A-Z0-9_]+$")


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


def _error_parts(exc: pymysql.err.MySQLError) -> tuple[int, str]:
    args = exc.args
    if len(args) >= 2 and isinstance(args[0], int):
        return args[0], str(args[1])
    return 0, str(exc)


def _version_tuple(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split(".") if part.isdigit())


class ConnectionManager:
    """Owns the single database link of a Database instance."""

    def __init__(self, config: ResolvedConfig, reporter: ErrorReporter) -> None:
        self.config = config
        self.reporter = reporter
        self._connection: pymysql.connections.Connection | None = None
        self.state = ConnectionState.DISCONNECTED
        self.ready = False
        self.has_connected = False
        self.charset = config.charset
        self.collate = config.collate
        self.no_backslash_escapes = False

    @property
    def connected(self) -> bool:
        return self._connection is not None

    def _connect_params(self) -> dict[str, Any]:
        host, port, socket = self.config.host, self.config.port, self.config.socket
        parsed = parse_db_host(self.config.host)
        if parsed is not None:
            host, parsed_port, parsed_socket, _ = parsed
            port = parsed_port or port
            socket = parsed_socket or socket

        params: dict[str, Any] = {
            "host": host or "localhost",
            "port": port or DEFAULT_PORT,
            "user": self.config.user,
            "password": self.config.password or "",
            "charset": self.charset or "utf8mb4",
            "connect_timeout": self.config.connect_timeout,
            "client_flag": self.config.client_flags,
            "cursorclass": pymysql.cursors.DictCursor,
            "autocommit": True,
        }
        if socket:
            params["unix_socket"] = socket
        return params

    def connect(self, allow_bail: bool = True) -> bool:
        """Open the link and prepare the session.

        With ``allow_bail`` a failure goes through ErrorReporter.bail();
        without it, failures return False and authentication failures raise
        AuthenticationFailure.
        """
        log = structlog.get_logger()
        params = self._connect_params()
        if self.state != ConnectionState.RECONNECTING:
            self.state = ConnectionState.CONNECTING

        try:
            self._connection = pymysql.connect(**params)
        except pymysql.err.MySQLError as e:
            self._connection = None
            code, message = _error_parts(e)
            self.reporter.last_driver_error = message
            log.error(
                "connection failed",
                host=params["host"],
                port=params["port"],
                code=code,
                error=message,
            )
            if code in AUTH_ERROR_CODES:
                self.state = ConnectionState.FAILED
                if allow_bail:
                    self.reporter.bail(
                        f"Access denied for user '{self.config.user}' "
                        f"on {params['host']}: {message}",
                        "db_connect_auth",
                    )
                    return False
                raise AuthenticationFailure(message) from e
            if allow_bail:
                self.state = ConnectionState.FAILED
                self.reporter.bail(
                    "Error establishing a database connection to "
                    f"{params['host']}:{params['port']}",
                    "db_connect_fail",
                )
            return False

        log.debug("connected", host=params["host"], port=params["port"])
        try:
            if not self.has_connected:
                self.init_charset()
            self.set_charset()
            self.set_sql_mode()
        except (ConnectionLost, QueryExecutionError) as e:
            # Half-open link: drop it so the next attempt starts clean.
            log.warning("session setup failed", host=params["host"], error=e.message)
            self.reporter.last_driver_error = e.message
            state = self.state
            self.close()
            self.state = state
            if allow_bail:
                self.state = ConnectionState.FAILED
                self.reporter.bail(
                    "Error establishing a database connection to "
                    f"{params['host']}:{params['port']}",
                    "db_connect_fail",
                )
            return False

        self.has_connected = True
        self.ready = True
        self.select(self.config.dbname, allow_bail=allow_bail)
        if self.ready:
            self.state = ConnectionState.READY
        return self.ready

    def ping(self) -> bool:
        if self._connection is None:
            return False
        try:
            self._connection.ping(reconnect=False)
        except pymysql.err.Error:
            return False
        return True

    def check_connection(self, allow_bail: bool = True) -> bool:
        """Make sure the link is up, reconnecting if it is not.

        Tries ``reconnect_retries`` times, sleeping ``reconnect_delay``
        seconds after every failed attempt. Authentication failures stop
        the loop at once.
        """
        if self.ping():
            return True

        log = structlog.get_logger()
        retries = self.config.reconnect_retries
        self.ready = False
        self.state = ConnectionState.RECONNECTING
        log.warning("database connection lost", retries=retries)

        for attempt in range(1, retries + 1):
            try:
                if self.connect(allow_bail=False):
                    log.info("reconnected", attempt=attempt)
                    return True
            except AuthenticationFailure as e:
                self.state = ConnectionState.FAILED
                if allow_bail:
                    self.reporter.bail(e.message, "db_connect_auth")
                return False
            log.warning("reconnect attempt failed", attempt=attempt, retries=retries)
            time.sleep(self.config.reconnect_delay)

        self.state = ConnectionState.FAILED
        if not allow_bail:
            return False

        self.reporter.bail(
            "Error reconnecting to the database. The connection to the "
            f"database server at {self.config.host} was lost.",
            "db_connect_fail",
        )
        return False

    def execute(self, sql: str) -> QueryResult:
        """Run one statement.

        Raises ConnectionLost when the link is gone and QueryExecutionError
        for any other driver error.
        """
        log = structlog.get_logger()
        if self._connection is None:
            raise ConnectionLost("No database connection")

        sql_normalized = " ".join(sql.split())
        log.debug("executing query", sql=sql_normalized)
        with sentry_sdk.start_span(
            op="db.query", description=sql_normalized[:100]
        ) as span:
            start_time = time.monotonic()
            try:
                with self._connection.cursor() as cur:
                    cur.execute(sql)

                    columns: list[ColumnMeta] = []
                    rows: list[dict[str, Any]] = []
                    if cur.description:
                        for desc in cur.description:
                            columns.append(
                                ColumnMeta(
                                    name=desc[0],
                                    type_code=desc[1],
                                    type_name=_TYPE_NAMES.get(desc[1], "unknown"),
                                    max_length=desc[3],
                                    precision=desc[4],
                                    scale=desc[5],
                                    not_null=not desc[6],
                                )
                            )
                        rows = list(cur.fetchall())

                    duration_ms = (time.monotonic() - start_time) * 1000
                    span.set_data("row_count", len(rows))
                    span.set_data("duration_ms", duration_ms)
                    log.debug(
                        "query complete",
                        duration_ms=f"{duration_ms:.1f}",
                        row_count=len(rows),
                    )
                    return QueryResult(
                        columns=columns,
                        rows=rows,
                        row_count=len(rows),
                        rows_affected=0 if cur.description else max(cur.rowcount, 0),
                        insert_id=cur.lastrowid or 0,
                    )

            except pymysql.err.InterfaceError as e:
                span.set_status("unavailable")
                self.reporter.last_driver_error = str(e)
                raise ConnectionLost(f"Connection lost: {e}") from e
            except pymysql.err.MySQLError as e:
                code, message = _error_parts(e)
                self.reporter.last_driver_error = message
                if code in CONNECTION_LOST_CODES:
                    span.set_status("unavailable")
                    log.warning("connection lost during query", code=code)
                    raise ConnectionLost(message) from e
                span.set_status("internal_error")
                log.debug("query failed", sql=sql_normalized, code=code, error=message)
                raise QueryExecutionError(message, query=sql) from e

    def _fetch_scalar(self, sql: str) -> Any:
        result = self.execute(sql)
        if not result.rows:
            return None
        return next(iter(result.rows[0].values()), None)

    def init_charset(self) -> None:
        charset = self.config.charset or "utf8mb4"
        collate = self.config.collate
        self.charset, self.collate = self.determine_charset(charset, collate)

    def determine_charset(self, charset: str, collate: str) -> tuple[str, str]:
        """Pick the best charset/collation pair the server supports."""
        if self._connection is None:
            return charset, collate

        if charset == "utf8" and self.has_cap("utf8mb4"):
            charset = "utf8mb4"

        if charset == "utf8mb4" and not self.has_cap("utf8mb4"):
            charset = "utf8"
            collate = collate.replace("utf8mb4_", "utf8_")

        if charset == "utf8mb4":
            if not collate or collate == "utf8_general_ci":
                collate = "utf8mb4_unicode_ci"
            else:
                collate = collate.replace("utf8_", "utf8mb4_")

        if self.has_cap("utf8mb4_520") and collate == "utf8mb4_unicode_ci":
            collate = "utf8mb4_unicode_520_ci"

        return charset, collate

    def set_charset(self, charset: str | None = None, collate: str | None = None) -> None:
        charset = charset or self.charset
        collate = collate or self.collate
        if not (charset and self.has_cap("collation")):
            return

        query = "SET NAMES '{}'".format(charset.replace("'", "''"))
        if collate:
            query += " COLLATE '{}'".format(collate.replace("'", "''"))
        self.execute(query)

    def set_sql_mode(self, modes: list[str] | None = None) -> None:
        """Drop the incompatible modes from the session SQL mode."""
        if not modes:
            current = self._fetch_scalar("SELECT @@SESSION.sql_mode")
            if not current:
                self.no_backslash_escapes = False
                return
            modes = str(current).split(",")

        incompatible = {mode.upper() for mode in self.config.incompatible_modes}
        modes = [mode.strip().upper() for mode in modes]
        malformed = [m for m in modes if m and not _SQL_MODE_RE.match(m)]
        if malformed:
            structlog.get_logger().warning("dropping malformed sql modes", modes=malformed)
        modes = [m for m in modes if m and m not in incompatible and _SQL_MODE_RE.match(m)]
        self.no_backslash_escapes = "NO_BACKSLASH_ESCAPES" in modes
        self.execute(f"SET SESSION sql_mode='{','.join(modes)}'")

    def select(self, dbname: str, allow_bail: bool = True) -> bool:
        """Select the schema; failure clears ``ready`` and bails when allowed."""
        if self._connection is None:
            return False
        try:
            self._connection.select_db(dbname)
        except pymysql.err.MySQLError as e:
            code, message = _error_parts(e)
            self.ready = False
            self.reporter.last_driver_error = message
            structlog.get_logger().error(
                "cannot select database", dbname=dbname, code=code, error=message
            )
            if allow_bail:
                self.state = ConnectionState.FAILED
                self.reporter.bail(
                    f"Cannot select database '{dbname}': {message}", "db_select_fail"
                )
            return False
        return True

    def db_server_info(self) -> str | None:
        if self._connection is None:
            return None
        return self._connection.get_server_info()

    def db_version(self) -> str | None:
        """Numeric server version, with MariaDB's 5.5.5- prefix removed."""
        info = self.db_server_info()
        if info is None:
            return None
        if info.startswith("5.5.5-") and "MariaDB" in info:
            info = info[len("5.5.5-") :]
        return re.sub(r"[^0-9.].*", "", info)

    def has_cap(self, capability: str) -> bool:
        capability = capability.lower()
        if capability == "identifier_placeholders":
            return True
        minimum = _CAPABILITY_VERSIONS.get(capability)
        version = self.db_version()
        if minimum is None or not version:
            return False
        return _version_tuple(version) >= minimum

    def character_set_name(self) -> str:
        if self._connection is None:
            return self.charset
        return self._connection.character_set_name()

    def close(self) -> bool:
        if self._connection is None:
            return False
        log = structlog.get_logger()
        try:
            self._connection.close()
        except pymysql.err.Error as e:
            log.debug("connection already closed", error=str(e))
        self._connection = None
        self.ready = False
        self.has_connected = False
        self.state = ConnectionState.DISCONNECTED
        return True

