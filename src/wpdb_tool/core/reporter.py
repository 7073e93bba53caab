"""Central sink for database errors.

print_error() is the recoverable path used after a failed statement. bail()
is the path for setup and connectivity failures: in fatal mode it ends the
process, otherwise it records an ErrorRecord and returns False.
"""

from __future__ import annotations

import sys
from typing import Any, TextIO

import structlog

from wpdb_tool.core.exit_codes import ExitCode
from wpdb_tool.core.models import ErrorRecord

BAIL_EXIT_CODES: dict[str, int] = {
    "db_connect_fail": ExitCode.NETWORK_ERROR,
    "db_connect_auth": ExitCode.AUTH_ERROR,
    "db_select_fail": ExitCode.CONFIG_ERROR,
}


class ErrorReporter:
    def __init__(
        self,
        show_errors: bool = False,
        suppress_errors: bool = False,
        fatal: bool = True,
        stream: TextIO | None = None,
    ) -> None:
        self._show_errors = show_errors
        self._suppress_errors = suppress_errors
        self.fatal = fatal
        self._stream = stream
        self.error: ErrorRecord | None = None
        self.errors: list[dict[str, Any]] = []
        self.last_driver_error: str = ""

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    @property
    def showing_errors(self) -> bool:
        return self._show_errors

    @property
    def suppressing_errors(self) -> bool:
        return self._suppress_errors

    def show_errors(self, show: bool = True) -> bool:
        """Turn the stderr echo on or off. Returns the previous setting."""
        previous = self._show_errors
        self._show_errors = show
        return previous

    def hide_errors(self) -> bool:
        return self.show_errors(False)

    def suppress_errors(self, suppress: bool = True) -> bool:
        previous = self._suppress_errors
        self._suppress_errors = bool(suppress)
        return previous

    def set_fatal(self, fatal: bool) -> bool:
        previous = self.fatal
        self.fatal = fatal
        return previous

    def print_error(
        self,
        message: str = "",
        query: str | None = None,
        caller: str | None = None,
    ) -> bool:
        """Record a statement error; log and echo it unless suppressed.

        Always returns False so callers can ``return reporter.print_error()``.
        """
        if not message:
            message = self.last_driver_error or "Unknown error"

        self.errors.append({"query": query, "error_str": message})
        if self._suppress_errors:
            return False

        log = structlog.get_logger()
        log.error("database error", error=message, query=query, caller=caller)

        if self._show_errors:
            self.stream.write(f"Database error: [{message}]\n{query or ''}\n")
        return False

    def bail(self, message: str, code: str = "500") -> bool:
        """Report an unrecoverable failure.

        Fatal mode raises SystemExit with the exit code mapped from
        ``code``. Otherwise the failure is kept on ``self.error`` and False
        is returned.
        """
        log = structlog.get_logger()
        if self.fatal:
            log.critical("bailing out", code=code, error=message)
            if self.last_driver_error:
                self.stream.write(f"{self.last_driver_error}\n{message}\n")
            else:
                self.stream.write(f"{message}\n")
            raise SystemExit(BAIL_EXIT_CODES.get(code, ExitCode.GENERAL_ERROR))

        log.warning("bail recorded", code=code, error=message)
        self.error = ErrorRecord(kind="bail", message=message, code=code)
        return False
