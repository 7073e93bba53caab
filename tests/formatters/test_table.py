"""Tests for TableFormatter."""

import pytest
from pymysql.constants import FIELD_TYPE

from wpdb_tool.core.models import ColumnMeta, QueryResult
from wpdb_tool.formatters.base import Formatter
from wpdb_tool.formatters.table import TableFormatter

TABLES = [
    {"table": "posts", "name": "wp_7_posts"},
    {"table": "users", "name": "wp_users"},
]


@pytest.mark.unit
def test_table_formatter_implements_protocol():
    assert isinstance(TableFormatter(), Formatter)


@pytest.mark.unit
def test_headers_and_values():
    output = "\n".join(TableFormatter().format(QueryResult(rows=TABLES)))
    assert "table" in output
    assert "wp_7_posts" in output
    assert "wp_users" in output


@pytest.mark.unit
def test_empty_result_shows_no_results():
    assert list(TableFormatter().format(QueryResult())) == ["No results"]


@pytest.mark.unit
def test_long_values_truncated():
    result = QueryResult(rows=[{"option_value": "x" * 100}])
    output = "\n".join(TableFormatter(width=10).format(result))
    assert "x" * 9 + "…" in output
    assert "x" * 11 not in output


@pytest.mark.unit
def test_null_shown_as_null():
    result = QueryResult(rows=[{"post_parent": None}])
    assert "NULL" in "\n".join(TableFormatter().format(result))


@pytest.mark.unit
def test_markup_in_values_printed_literally():
    result = QueryResult(rows=[{"post_title": "[b]bold[/b]"}])
    assert "[b]bold[/b]" in "\n".join(TableFormatter().format(result))


@pytest.mark.unit
def test_numeric_columns_right_aligned():
    result = QueryResult(
        columns=[
            ColumnMeta(name="ID", type_code=FIELD_TYPE.LONGLONG, type_name="longlong"),
            ColumnMeta(name="post_name", type_code=253, type_name="var_string"),
        ],
        rows=[{"ID": 7, "post_name": "hello-world-post"}, {"ID": 12345, "post_name": "x"}],
    )
    lines = "\n".join(TableFormatter().format(result)).splitlines()
    row_7 = next(line for line in lines if "hello-world-post" in line)
    assert "    7 " in row_7
