"""Best-effort extraction of the first table a SQL statement touches.

Used by the sanitizer to pick the charset a statement will be checked
against. This is pattern matching, not SQL parsing: statements the
patterns do not recognise simply yield None.
"""

from __future__ import annotations

import re

_NAME = r"(?:[0-9a-zA-Z$_.`-]|[\u0080-\u07ff])+"

_SUBEXPRESSION_RE = re.compile(r"\((?!\s*select)[^(]*?\)", re.IGNORECASE | re.DOTALL)

_COMMON_RE = re.compile(
    r"^(?:SELECT.*?\s+FROM"
    r"|INSERT(?:\s+LOW_PRIORITY|\s+DELAYED|\s+HIGH_PRIORITY)?(?:\s+IGNORE)?(?:\s+INTO)?"
    r"|REPLACE(?:\s+LOW_PRIORITY|\s+DELAYED)?(?:\s+INTO)?"
    r"|UPDATE(?:\s+LOW_PRIORITY)?(?:\s+IGNORE)?"
    r"|DELETE(?:\s+LOW_PRIORITY|\s+QUICK|\s+IGNORE)*(?:.+?FROM)?"
    rf")\s+({_NAME})",
    re.IGNORECASE | re.DOTALL,
)

_SHOW_WHERE_RE = re.compile(
    r"^\s*SHOW\s+(?:TABLE\s+STATUS|(?:FULL\s+)?TABLES)"
    r".+WHERE\s+Name\s*=\s*([\"'])([0-9a-zA-Z$_.-]+)\1",
    re.IGNORECASE | re.DOTALL,
)

_SHOW_LIKE_RE = re.compile(
    r"^\s*SHOW\s+(?:TABLE\s+STATUS|(?:FULL\s+)?TABLES)"
    r"\s+(?:WHERE\s+Name\s+)?LIKE\s*([\"'])([\\0-9a-zA-Z$_.-]+)%?\1",
    re.IGNORECASE | re.DOTALL,
)

_TABLE_STATEMENT_RE = re.compile(
    r"^(?:(?:EXPLAIN\s+(?:EXTENDED\s+)?)?SELECT.*?\s+FROM"
    r"|DESCRIBE|DESC|EXPLAIN|HANDLER"
    r"|(?:LOCK|UNLOCK)\s+TABLE(?:S)?"
    r"|(?:RENAME|OPTIMIZE|BACKUP|RESTORE|CHECK|CHECKSUM|ANALYZE|REPAIR).*\s+TABLE"
    r"|TRUNCATE(?:\s+TABLE)?"
    r"|CREATE(?:\s+TEMPORARY)?\s+TABLE(?:\s+IF\s+NOT\s+EXISTS)?"
    r"|ALTER(?:\s+IGNORE)?\s+TABLE"
    r"|DROP\s+TABLE(?:\s+IF\s+EXISTS)?"
    r"|CREATE(?:\s+\w+)?\s+INDEX.*\s+ON"
    r"|DROP\s+INDEX.*\s+ON"
    r"|LOAD\s+DATA.*INFILE.*INTO\s+TABLE"
    r"|(?:GRANT|REVOKE).*ON\s+TABLE"
    r"|SHOW\s+(?:.*FROM|.*TABLE)"
    rf")\s+\(*\s*({_NAME})",
    re.IGNORECASE | re.DOTALL,
)


def get_table_from_query(query: str) -> str | None:
    """Return the first table name referenced by ``query``, or None.

    >>> get_table_from_query("SELECT * FROM `wp_posts` WHERE ID = 1")
    'wp_posts'
    """
    query = query.rstrip(";/-#").lstrip()
    query = re.sub(r"^\(+\s*", "", query)

    # Nested SELECTs survive, any other parenthesised text is emptied.
    query = _SUBEXPRESSION_RE.sub("()", query)

    m = _COMMON_RE.match(query)
    if m:
        return m.group(1).replace("`", "")

    m = _SHOW_WHERE_RE.match(query)
    if m:
        return m.group(2)

    m = _SHOW_LIKE_RE.match(query)
    if m:
        return m.group(2).replace("\\_", "_")

    m = _TABLE_STATEMENT_RE.match(query)
    if m:
        return m.group(1).replace("`", "")

    return None
