"""In-memory stand-ins for the MySQL server used by unit tests."""

import re

from wpdb_tool.core.exceptions import QueryExecutionError
from wpdb_tool.core.models import ColumnMeta, QueryResult

_SHOW_COLUMNS_RE = re.compile(r"^SHOW FULL COLUMNS FROM `([^`]+)`")


def column(field, type_, collation=None):
    """One row of SHOW FULL COLUMNS output."""
    return {
        "Field": field,
        "Type": type_,
        "Collation": collation,
        "Null": "YES",
        "Key": "",
        "Default": None,
        "Extra": "",
        "Privileges": "select,insert,update,references",
        "Comment": "",
    }


WP_POSTS_COLUMNS = [
    column("ID", "bigint(20) unsigned"),
    column("post_author", "bigint(20) unsigned"),
    column("post_title", "text", "utf8mb4_unicode_ci"),
    column("post_name", "varchar(5)", "utf8mb4_unicode_ci"),
    column("post_excerpt", "text", "utf8mb4_unicode_ci"),
    column("post_parent", "bigint(20) unsigned"),
]

WP_LEGACY_COLUMNS = [
    column("id", "int(11)"),
    column("title", "varchar(255)", "utf8_general_ci"),
]


def rows_result(rows):
    names = list(rows[0]) if rows else []
    return QueryResult(
        columns=[ColumnMeta(name=n, type_code=253, type_name="var_string") for n in names],
        rows=rows,
        row_count=len(rows),
    )


class FakeServer:
    """Stands in for ConnectionManager.execute().

    Answers SHOW FULL COLUMNS from ``tables``, write statements with
    ``rows_affected``/``insert_id`` and everything else from ``responses``
    (in order), falling back to an empty result.
    """

    def __init__(self):
        self.executed = []
        self.tables = {"wp_posts": WP_POSTS_COLUMNS, "wp_legacy": WP_LEGACY_COLUMNS}
        self.responses = []
        self.rows_affected = 1
        self.insert_id = 42

    def __call__(self, sql):
        self.executed.append(sql)
        m = _SHOW_COLUMNS_RE.match(sql)
        if m:
            rows = self.tables.get(m.group(1))
            if rows is None:
                raise QueryExecutionError(
                    f"Table 'wordpress.{m.group(1)}' doesn't exist", query=sql
                )
            return rows_result([dict(r) for r in rows])

        verb = sql.split(None, 1)[0].upper()
        if verb in ("INSERT", "REPLACE"):
            return QueryResult(rows_affected=self.rows_affected, insert_id=self.insert_id)
        if verb in ("UPDATE", "DELETE"):
            return QueryResult(rows_affected=self.rows_affected)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return QueryResult()

    @property
    def statements(self):
        """Executed statements other than column introspection."""
        return [s for s in self.executed if not _SHOW_COLUMNS_RE.match(s)]
