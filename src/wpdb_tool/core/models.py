"""Value models for wpdb-tool.

Pydantic models for query results, column metadata, length limits and
error records shared between the core components.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class OutputType(StrEnum):
    """Row shapes returned by the result helpers."""

    OBJECT = "OBJECT"
    OBJECT_K = "OBJECT_K"
    ARRAY_A = "ARRAY_A"
    ARRAY_N = "ARRAY_N"


class ColumnMeta(BaseModel):
    """Metadata for a single result column."""

    name: str
    type_code: int
    type_name: str
    max_length: int | None = None
    precision: int | None = None
    scale: int | None = None
    not_null: bool = False


class QueryResult(BaseModel):
    """Result of one executed statement."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    columns: list[ColumnMeta] = []
    rows: list[dict[str, Any]] = []
    row_count: int = 0
    rows_affected: int = 0
    insert_id: int = 0
    status_message: str = ""


class ColumnLength(BaseModel):
    """Storage ceiling for a text or binary column.

    ``type`` is "char" when the ceiling counts characters and "byte" when it
    counts stored bytes.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["char", "byte"]
    length: int | None = None


class ErrorRecord(BaseModel):
    """Structured copy of the last failure."""

    kind: str
    message: str
    query: str | None = None
    caller: str | None = None
    code: str | None = None

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        query: str | None = None,
        caller: str | None = None,
    ) -> ErrorRecord:
        return cls(
            kind=getattr(exc, "kind", type(exc).__name__),
            message=getattr(exc, "message", str(exc)),
            query=query if query is not None else getattr(exc, "query", None),
            caller=caller,
        )


class QueryLogEntry(BaseModel):
    """One saved query when ``save_queries`` is enabled."""

    query: str
    elapsed: float
    caller: str
    started_at: float
    data: dict[str, Any] = {}
