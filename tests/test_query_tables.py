"""Tests for table name extraction from SQL text."""

import pytest

from wpdb_tool.core.query_tables import get_table_from_query


@pytest.mark.unit
class TestCommonStatements:
    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ("SELECT * FROM wp_posts WHERE ID = 1", "wp_posts"),
            ("select id from `wp_posts`", "wp_posts"),
            ("SELECT COUNT(*) FROM wp_posts;", "wp_posts"),
            ("SELECT * FROM db.wp_posts", "db.wp_posts"),
            ("INSERT INTO wp_users (user_login) VALUES ('a')", "wp_users"),
            ("INSERT IGNORE INTO wp_usermeta VALUES (1)", "wp_usermeta"),
            ("REPLACE INTO wp_options VALUES (1, 'a')", "wp_options"),
            ("UPDATE LOW_PRIORITY wp_options SET option_value = 1", "wp_options"),
            ("DELETE FROM `wp_comments` WHERE comment_ID = 4", "wp_comments"),
        ],
    )
    def test_extracts_table(self, query, expected):
        assert get_table_from_query(query) == expected

    def test_nested_select_resolves_inner_table(self):
        query = "SELECT * FROM (SELECT * FROM wp_posts) AS p"
        assert get_table_from_query(query) == "wp_posts"

    def test_leading_parenthesis_uses_first_select(self):
        query = "(SELECT * FROM wp_a) UNION (SELECT * FROM wp_b)"
        assert get_table_from_query(query) == "wp_a"

    def test_non_ascii_table_name(self):
        assert get_table_from_query("SELECT * FROM wp_tëst") == "wp_tëst"


@pytest.mark.unit
class TestShowStatements:
    def test_show_tables_like_unescapes_underscore(self):
        assert get_table_from_query("SHOW TABLES LIKE 'wp\\_options%'") == "wp_options"

    def test_show_table_status_where_name(self):
        query = "SHOW TABLE STATUS WHERE Name = 'wp_links'"
        assert get_table_from_query(query) == "wp_links"

    def test_show_columns_from(self):
        assert get_table_from_query("SHOW FULL COLUMNS FROM `wp_posts`") == "wp_posts"


@pytest.mark.unit
class TestTableStatements:
    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ("DESCRIBE wp_terms", "wp_terms"),
            ("ALTER TABLE wp_postmeta ADD INDEX meta_key (meta_key)", "wp_postmeta"),
            ("CREATE TABLE IF NOT EXISTS `wp_new` (id int)", "wp_new"),
            ("CREATE TEMPORARY TABLE wp_tmp (id int)", "wp_tmp"),
            ("DROP TABLE IF EXISTS wp_old", "wp_old"),
            ("TRUNCATE TABLE wp_x", "wp_x"),
            ("CREATE INDEX idx ON wp_posts (post_name)", "wp_posts"),
            ("LOAD DATA LOCAL INFILE '/tmp/x' INTO TABLE wp_y", "wp_y"),
            ("OPTIMIZE TABLE wp_options", "wp_options"),
        ],
    )
    def test_extracts_table(self, query, expected):
        assert get_table_from_query(query) == expected


@pytest.mark.unit
class TestUnrecognised:
    @pytest.mark.parametrize("query", ["SET NAMES utf8mb4", "SELECT 1", "BEGIN"])
    def test_returns_none(self, query):
        assert get_table_from_query(query) is None
