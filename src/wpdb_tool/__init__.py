"""wpdb-tool: MySQL access layer with safe query preparation."""

from wpdb_tool.__about__ import __version__

__all__ = ["__version__"]
