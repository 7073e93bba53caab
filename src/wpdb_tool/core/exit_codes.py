"""Standard exit codes for wpdb-tool.

Exit codes follow Unix conventions.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes for wpdb-tool commands and fatal bails."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    USAGE_ERROR = 2
    INPUT_ERROR = 3
    OUTPUT_ERROR = 4
    NETWORK_ERROR = 5
    AUTH_ERROR = 6
    CONFIG_ERROR = 7
    QUERY_ERROR = 8
