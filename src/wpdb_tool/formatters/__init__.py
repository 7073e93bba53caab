"""Output formatters for wpdb-tool."""

from wpdb_tool.formatters.base import Formatter, FormatterRegistry, registry
from wpdb_tool.formatters.csv import CSVFormatter
from wpdb_tool.formatters.json import JSONFormatter
from wpdb_tool.formatters.table import TableFormatter
