"""Tests for CSVFormatter."""

import csv
from io import StringIO

import pytest

from wpdb_tool.core.models import QueryResult
from wpdb_tool.formatters.base import Formatter
from wpdb_tool.formatters.csv import CSVFormatter

OPTIONS = [
    {"option_name": "siteurl", "option_value": "https://example.org"},
    {"option_name": "blogname", "option_value": "Tea, and more"},
]


@pytest.mark.unit
def test_csv_formatter_implements_protocol():
    assert isinstance(CSVFormatter(), Formatter)


@pytest.mark.unit
def test_header_and_rows():
    lines = list(CSVFormatter().format(QueryResult(rows=OPTIONS)))
    assert lines[0] == "option_name,option_value"
    assert lines[1] == "siteurl,https://example.org"


@pytest.mark.unit
def test_no_header():
    lines = list(CSVFormatter(no_header=True).format(QueryResult(rows=OPTIONS)))
    assert len(lines) == 2


@pytest.mark.unit
def test_commas_quoted():
    lines = list(CSVFormatter().format(QueryResult(rows=OPTIONS)))
    assert lines[2] == 'blogname,"Tea, and more"'


@pytest.mark.unit
def test_null_is_empty_field():
    lines = list(CSVFormatter().format(QueryResult(rows=[{"a": None, "b": 1}])))
    assert lines[1] == ",1"


@pytest.mark.unit
def test_output_parses_back():
    text = "\n".join(CSVFormatter().format(QueryResult(rows=OPTIONS)))
    parsed = list(csv.DictReader(StringIO(text)))
    assert parsed[1]["option_value"] == "Tea, and more"


@pytest.mark.unit
def test_null_text_marker():
    result = QueryResult(rows=[{"post_parent": None, "post_title": ""}])
    lines = list(CSVFormatter(no_header=True, null_text="\\N").format(result))
    assert lines == ["\\N,"]


@pytest.mark.unit
def test_embedded_newline_kept_inside_quotes():
    result = QueryResult(rows=[{"post_content": "line one\nline two"}])
    lines = list(CSVFormatter(no_header=True).format(result))
    assert lines == ['"line one\nline two"']
