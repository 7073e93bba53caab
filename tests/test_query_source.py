"""Tests for query source resolution."""

import io
from unittest.mock import patch

import pytest

from wpdb_tool.core.exceptions import InputError
from wpdb_tool.core.query_source import normalize_statement, resolve_query_source


@pytest.fixture
def sql_file(temp_dir):
    path = temp_dir / "recent_posts.sql"
    path.write_text("SELECT ID FROM wp_posts ORDER BY post_date DESC LIMIT 5;\n")
    return str(path)


@pytest.mark.unit
class TestPrecedence:
    def test_inline_wins_over_file(self, sql_file):
        assert resolve_query_source(inline="SELECT 1", file_path=sql_file) == "SELECT 1"

    def test_file(self, sql_file):
        assert resolve_query_source(inline=None, file_path=sql_file) == (
            "SELECT ID FROM wp_posts ORDER BY post_date DESC LIMIT 5"
        )

    def test_file_wins_over_stdin(self, sql_file):
        with patch("sys.stdin", new=io.StringIO("SELECT 2")):
            result = resolve_query_source(inline=None, file_path=sql_file)
        assert result.startswith("SELECT ID FROM wp_posts")

    def test_stdin(self):
        with (
            patch("sys.stdin", new=io.StringIO("SELECT option_value FROM wp_options\n")),
            patch("sys.stdin.isatty", return_value=False),
        ):
            result = resolve_query_source(inline=None, file_path=None)
        assert result == "SELECT option_value FROM wp_options"


@pytest.mark.unit
class TestErrors:
    def test_missing_file(self, temp_dir):
        with pytest.raises(InputError, match="Query file not found"):
            resolve_query_source(inline=None, file_path=str(temp_dir / "nope.sql"))

    def test_no_source_on_terminal(self):
        with (
            patch("sys.stdin.isatty", return_value=True),
            pytest.raises(InputError, match="No query provided"),
        ):
            resolve_query_source(inline=None, file_path=None)

    @pytest.mark.parametrize("sql", ["  \n", ";", " ; "])
    def test_blank_statement(self, sql):
        with pytest.raises(InputError, match="Query is empty"):
            resolve_query_source(inline=sql, file_path=None)


@pytest.mark.unit
class TestNormalize:
    def test_file_bom_removed(self, temp_dir):
        path = temp_dir / "export.sql"
        path.write_bytes("\ufeffSELECT 1;".encode())
        assert resolve_query_source(inline=None, file_path=str(path)) == "SELECT 1"

    @pytest.mark.parametrize(
        ("sql", "expected"),
        [
            ("SELECT 1;", "SELECT 1"),
            ("SELECT 1 ;\n", "SELECT 1"),
            ("SELECT ';'", "SELECT ';'"),
            ("SELECT 1;;", "SELECT 1;"),
        ],
    )
    def test_trailing_terminator(self, sql, expected):
        assert normalize_statement(sql) == expected
