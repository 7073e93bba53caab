"""Tenant-scoped table names.

Global tables (users, usermeta and the multisite network tables) always use
the base prefix. Blog tables use the prefix of the active tenant, which on
multisite installs is ``base_prefix + blog_id + "_"`` for every tenant other
than 0 and 1.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields, replace

from wpdb_tool.core.exceptions import InvalidPrefixError

BLOG_TABLES: tuple[str, ...] = (
    "posts",
    "comments",
    "links",
    "options",
    "postmeta",
    "terms",
    "term_taxonomy",
    "term_relationships",
    "termmeta",
    "commentmeta",
)
OLD_TABLES: tuple[str, ...] = ("categories", "post2cat", "link2cat")
GLOBAL_TABLES: tuple[str, ...] = ("users", "usermeta")
MS_GLOBAL_TABLES: tuple[str, ...] = (
    "blogs",
    "blogmeta",
    "signups",
    "site",
    "sitemeta",
    "registration_log",
)
OLD_MS_GLOBAL_TABLES: tuple[str, ...] = ("sitecategories",)

SCOPES: tuple[str, ...] = ("all", "blog", "global", "ms_global", "old")

_PREFIX_RE = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass(frozen=True)
class TableNames:
    """Fully prefixed name of every known table.

    Tables outside the active scope (e.g. the network tables on a
    single-site install) are empty strings.
    """

    posts: str = ""
    comments: str = ""
    links: str = ""
    options: str = ""
    postmeta: str = ""
    terms: str = ""
    term_taxonomy: str = ""
    term_relationships: str = ""
    termmeta: str = ""
    commentmeta: str = ""
    categories: str = ""
    post2cat: str = ""
    link2cat: str = ""
    users: str = ""
    usermeta: str = ""
    blogs: str = ""
    blogmeta: str = ""
    signups: str = ""
    site: str = ""
    sitemeta: str = ""
    registration_log: str = ""
    sitecategories: str = ""

    def as_dict(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class TablePrefixResolver:
    def __init__(
        self,
        base_prefix: str = "wp_",
        multisite: bool = False,
        blog_id: int = 0,
        site_id: int = 0,
        custom_user_table: str | None = None,
        custom_user_meta_table: str | None = None,
    ) -> None:
        self.multisite = multisite
        self.blog_id = blog_id
        self.site_id = site_id
        self.custom_user_table = custom_user_table
        self.custom_user_meta_table = custom_user_meta_table
        self.base_prefix = ""
        self.prefix = ""
        self.names = TableNames()
        self.set_prefix(base_prefix)

    @staticmethod
    def validate_prefix(prefix: str) -> str:
        if not isinstance(prefix, str) or not _PREFIX_RE.match(prefix):
            raise InvalidPrefixError(f"Invalid database prefix: {prefix!r}")
        return prefix

    def set_prefix(self, prefix: str, set_table_names: bool = True) -> str:
        """Change the base prefix and return the previous one."""
        self.validate_prefix(prefix)
        old_prefix = self.base_prefix or ("" if self.multisite else prefix)
        self.base_prefix = prefix

        if set_table_names:
            names = self.tables("global")
            self.prefix = self.get_blog_prefix()
            # Multisite blog tables wait for set_blog_id().
            if not (self.multisite and not self.blog_id):
                names.update(self.tables("blog"))
                names.update(self.tables("old"))
            self.names = replace(self.names, **names)
        return old_prefix

    def set_blog_id(self, blog_id: int, network_id: int = 0) -> int:
        """Switch the active tenant and return the previous tenant id."""
        if network_id:
            self.site_id = network_id

        old_blog_id = self.blog_id
        self.blog_id = int(blog_id)
        self.prefix = self.get_blog_prefix()
        names = self.tables("blog")
        names.update(self.tables("old"))
        self.names = replace(self.names, **names)
        return old_blog_id

    def get_blog_prefix(self, blog_id: int | None = None) -> str:
        if not self.multisite:
            return self.base_prefix
        if blog_id is None:
            blog_id = self.blog_id
        blog_id = int(blog_id)
        if blog_id in (0, 1):
            return self.base_prefix
        return f"{self.base_prefix}{blog_id}_"

    def table_list(self, scope: str = "all") -> list[str]:
        """Bare table names in ``scope``; unknown scopes yield an empty list."""
        if scope == "all":
            tables = [*GLOBAL_TABLES, *BLOG_TABLES]
            if self.multisite:
                tables.extend(MS_GLOBAL_TABLES)
        elif scope == "blog":
            tables = list(BLOG_TABLES)
        elif scope == "global":
            tables = list(GLOBAL_TABLES)
            if self.multisite:
                tables.extend(MS_GLOBAL_TABLES)
        elif scope == "ms_global":
            tables = list(MS_GLOBAL_TABLES)
        elif scope == "old":
            tables = list(OLD_TABLES)
            if self.multisite:
                tables.extend(OLD_MS_GLOBAL_TABLES)
        else:
            tables = []
        return tables

    def tables(
        self, scope: str = "all", prefix: bool = True, blog_id: int = 0
    ) -> dict[str, str] | list[str]:
        """Known tables in ``scope``.

        With ``prefix`` a mapping of bare name to prefixed name is returned,
        otherwise the bare names. ``blog_id`` selects the tenant used for the
        blog tables (defaults to the active tenant).
        """
        tables = self.table_list(scope)
        if not prefix:
            return tables

        blog_prefix = self.get_blog_prefix(blog_id or self.blog_id)
        global_tables = set(GLOBAL_TABLES) | set(MS_GLOBAL_TABLES) | set(
            OLD_MS_GLOBAL_TABLES
        )
        result: dict[str, str] = {}
        for table in tables:
            if table in global_tables:
                result[table] = self.base_prefix + table
            else:
                result[table] = blog_prefix + table

        if "users" in result and self.custom_user_table:
            result["users"] = self.custom_user_table
        if "usermeta" in result and self.custom_user_meta_table:
            result["usermeta"] = self.custom_user_meta_table
        return result
