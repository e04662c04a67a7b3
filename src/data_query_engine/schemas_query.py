"""Pydantic schemas for backend call descriptors and engine output.

A backend call is a tagged variant: either ``RawExecute`` (generic path)
or ``StructuredQuery`` (fallback path). The ``kind`` field is the tag, so
``BackendCall`` validates as a discriminated union.
"""
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, ConfigDict


Scalar = Union[str, int, float, bool, None]
Row = dict[str, Any]


class Predicate(BaseModel):
    """Single equality filter ``column = value``."""
    column: str = Field(..., min_length=1)
    op: Literal["="] = "="
    value: Union[str, int, float]

    model_config = ConfigDict(frozen=True)


class OrderBy(BaseModel):
    column: str = Field(..., min_length=1)
    ascending: bool = True

    model_config = ConfigDict(frozen=True)


class RawExecute(BaseModel):
    """Generic path: hand the cleaned text to the backend as-is."""
    kind: Literal["raw"] = "raw"
    sql: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)


class StructuredQuery(BaseModel):
    """Fallback path: a call against the capability-limited query API.

    ``aggregate`` selects how the rows are produced:
    - ``rows``: plain select with optional filter/order/limit
    - ``count``: backend count of the table, one row ``{result_alias: n}``
    - ``group_count``: fetch ``group_by`` values and count them client-side
    """
    kind: Literal["structured"] = "structured"
    table: str = Field(..., min_length=1)
    columns: Union[Literal["*"], tuple[str, ...]] = "*"
    predicate: Optional[Predicate] = None
    order_by: Optional[OrderBy] = None
    limit: Optional[int] = Field(default=None, ge=0)
    aggregate: Literal["rows", "count", "group_count"] = "rows"
    group_by: Optional[str] = None
    result_alias: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "kind": "structured",
                    "table": "users",
                    "columns": "*",
                    "predicate": {"column": "city", "op": "=", "value": "Chicago"},
                    "limit": 10,
                    "aggregate": "rows"
                }
            ]
        }
    )


BackendCall = Annotated[Union[RawExecute, StructuredQuery], Field(discriminator="kind")]


class QueryResultSchema(BaseModel):
    """Structured output for a successful execution.

    Rows are flat records whose values are JSON scalars.
    """
    rows: list[Row] = Field(
        ...,
        description="Result rows as column -> value records",
        examples=[[{"id": 1, "city": "Chicago"}]]
    )
    row_count: int = Field(..., ge=0)
    path: Literal["generic", "fallback"] = Field(
        ...,
        description="Execution path that produced the rows"
    )
    rule: Optional[str] = Field(
        default=None,
        description="Fallback rule that matched, if the fallback path was used"
    )

    model_config = ConfigDict(frozen=True)


class QueryErrorSchema(BaseModel):
    """Schema for engine errors (validation, backend, unsupported pattern)."""
    error: str = Field(
        ...,
        description="Error message describing what went wrong",
        examples=["Only SELECT statements are allowed"]
    )
    kind: str = Field(..., examples=["NotReadOnly"])
    details: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)
