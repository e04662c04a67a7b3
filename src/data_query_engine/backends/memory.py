"""In-memory backend for tests and local demos.

Serves the structured capabilities from a ``dict[str, list[dict]]`` and
lets the caller decide how the generic path behaves: canned results per
query text, or a configured classified error.

Example:
    >>> backend = InMemoryBackend(
    ...     tables={"users": [{"id": 1, "city": "Chicago"}]},
    ...     raw_error=BackendCapabilityAbsentError("function execute_sql(text) does not exist")
    ... )
    >>> backend.count("users")
    1
"""
from typing import Optional, Sequence, Union

from .base import BackendAdapter
from ..cancellation import CancellationToken, check
from ..errors import BackendCapabilityAbsentError, BackendError, BackendExecutionError
from ..schemas_query import Predicate, OrderBy, Row, Scalar


class InMemoryBackend(BackendAdapter):
    """Mapping-backed adapter that records every call it receives.

    Args:
        tables: Table name -> list of row records
        raw_results: Canned generic-path results keyed by exact query text.
                     If None, the generic capability is absent.
        raw_error: If set, every generic-path call raises this error
    """

    name = "memory"

    def __init__(
        self,
        tables: Optional[dict[str, list[Row]]] = None,
        raw_results: Optional[dict[str, list[Row]]] = None,
        raw_error: Optional[BackendError] = None
    ):
        self._tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self._raw_results = raw_results
        self._raw_error = raw_error
        self.calls: list[tuple] = []

    def raw_execute(self, text: str, cancel_token: Optional[CancellationToken] = None) -> list[Row]:
        check(cancel_token, "raw_execute")
        self.calls.append(("raw_execute", text))
        if self._raw_error is not None:
            raise self._raw_error
        if self._raw_results is None:
            raise BackendCapabilityAbsentError("function execute_sql(text) does not exist")
        if text not in self._raw_results:
            raise BackendExecutionError(f"No result registered for query: {text}")
        return [dict(r) for r in self._raw_results[text]]

    def structured_query(
        self,
        table: str,
        columns: Union[str, Sequence[str]] = "*",
        predicate: Optional[Predicate] = None,
        limit: Optional[int] = None,
        order_by: Optional[OrderBy] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> list[Row]:
        check(cancel_token, "structured_query")
        self.calls.append(("structured_query", table, columns, predicate, limit))
        rows = self._rows(table)

        if predicate is not None:
            self._require_column(table, rows, predicate.column)
            rows = [r for r in rows if r.get(predicate.column) == predicate.value]
        if order_by is not None:
            self._require_column(table, rows, order_by.column)
            rows = sorted(
                rows,
                key=lambda r: (r.get(order_by.column) is None, r.get(order_by.column)),
                reverse=not order_by.ascending
            )
        if limit is not None:
            rows = rows[:limit]

        if columns == "*":
            return [dict(r) for r in rows]
        for column in columns:
            self._require_column(table, rows, column)
        return [{c: r.get(c) for c in columns} for r in rows]

    def count(self, table: str, cancel_token: Optional[CancellationToken] = None) -> int:
        check(cancel_token, "count")
        self.calls.append(("count", table))
        return len(self._rows(table))

    def column_values(
        self,
        table: str,
        column: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> list[Scalar]:
        check(cancel_token, "column_values")
        self.calls.append(("column_values", table, column))
        rows = self._rows(table)
        self._require_column(table, rows, column)
        return [r.get(column) for r in rows]

    def _rows(self, table: str) -> list[Row]:
        if table not in self._tables:
            raise BackendExecutionError(
                f'relation "{table}" does not exist',
                retryable=False,
                details={"table": table}
            )
        return self._tables[table]

    def _require_column(self, table: str, rows: list[Row], column: str) -> None:
        # Empty tables have no known columns; accept anything
        if rows and not any(column in r for r in rows):
            raise BackendExecutionError(
                f'column {table}.{column} does not exist',
                retryable=False,
                details={"table": table, "column": column}
            )
