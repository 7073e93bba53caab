"""Exception hierarchy for wpdb-tool.

All exceptions carry an exit_code for CLI return value mapping and a
``kind`` string that is copied into ErrorRecord values.
"""

from __future__ import annotations

from wpdb_tool.core.exit_codes import ExitCode


class WpdbError(Exception):
    """Base exception for all wpdb-tool errors."""

    exit_code: int = ExitCode.GENERAL_ERROR
    kind: str = "error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NetworkError(WpdbError):
    """Connection failures, unreachable host."""

    exit_code: int = ExitCode.NETWORK_ERROR
    kind: str = "network_error"


class ConnectionLost(NetworkError):
    """Server went away or the link dropped mid-session. Retryable."""

    kind: str = "connection_lost"


class AuthenticationFailure(WpdbError):
    """Credentials rejected by the server. Never retried."""

    exit_code: int = ExitCode.AUTH_ERROR
    kind: str = "authentication_failure"


class PrepareError(WpdbError):
    """A query template could not be compiled."""

    exit_code: int = ExitCode.INPUT_ERROR
    kind: str = "prepare_error"


class ArgumentCountMismatch(PrepareError):
    """Placeholder count and argument count disagree."""

    kind: str = "argument_count_mismatch"


class DualRoleConflict(PrepareError):
    """One argument used both as an identifier and as a value."""

    kind: str = "dual_role_conflict"

    def __init__(self, message: str, conflicts: list[str] | None = None) -> None:
        super().__init__(message)
        self.conflicts = conflicts or []


class MissingPlaceholder(PrepareError):
    """Template passed to prepare() has no placeholder."""

    kind: str = "missing_placeholder"


class CharsetResolutionError(WpdbError):
    """Table or column charset could not be determined."""

    exit_code: int = ExitCode.QUERY_ERROR
    kind: str = "charset_resolution"


class QueryExecutionError(WpdbError):
    """Driver reported an error for a statement."""

    exit_code: int = ExitCode.QUERY_ERROR
    kind: str = "query_execution"

    def __init__(self, message: str, query: str | None = None) -> None:
        super().__init__(message)
        self.query = query


class InvalidDataError(WpdbError):
    """Values or query text were rejected by the charset checks."""

    exit_code: int = ExitCode.INPUT_ERROR
    kind: str = "invalid_data"


class InputError(WpdbError):
    """File not found, invalid parameters."""

    exit_code: int = ExitCode.INPUT_ERROR
    kind: str = "input_error"


class ConfigError(WpdbError):
    """Malformed config, missing profile."""

    exit_code: int = ExitCode.CONFIG_ERROR
    kind: str = "config_error"


class InvalidPrefixError(ConfigError):
    """Table prefix contains characters outside [A-Za-z0-9_]."""

    kind: str = "invalid_prefix"
