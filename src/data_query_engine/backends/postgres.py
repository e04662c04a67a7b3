"""Postgres backend over psycopg.

Generic path: calls a server-side function ``<rpc_function>(text) -> json``
(see sql/001_init.sql). If that function is not installed the call fails
with an undefined-function error, which is reported as capability absent.
When no function is configured the text runs directly inside a read-only
transaction.

Structured path: statements are composed with ``psycopg.sql`` so table and
column names are always quoted identifiers and values are bound parameters.
"""
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence, Union

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from .base import (
    BackendAdapter,
    BackendErrorKind,
    backend_error,
    classify_backend_error,
    to_row,
    to_scalar,
)
from ..cancellation import CancellationToken, abort_on_cancel, check
from ..db import DatabaseConfig, get_connection
from ..errors import QueryCancelledError
from ..schema import ColumnDescriptor, SchemaDescriptor, TableDescriptor
from ..schemas_query import OrderBy, Predicate, Row, Scalar

logger = logging.getLogger(__name__)


SCHEMA_QUERY = """
    SELECT c.table_name, c.column_name, c.data_type, c.is_nullable, c.column_default
    FROM information_schema.columns c
    JOIN information_schema.tables t
      ON t.table_schema = c.table_schema AND t.table_name = c.table_name
    WHERE c.table_schema = %s AND t.table_type = 'BASE TABLE'
    ORDER BY c.table_name, c.ordinal_position
"""


class PostgresBackend(BackendAdapter):
    """psycopg adapter. One short-lived connection per backend call."""

    name = "postgres"

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self._config = config or DatabaseConfig()
        self._rpc_function = self._config.rpc_function

    def raw_execute(self, text: str, cancel_token: Optional[CancellationToken] = None) -> list[Row]:
        check(cancel_token, "raw_execute")
        with self._session("raw_execute", cancel_token, classify=True) as cur:
            if self._rpc_function:
                cur.execute(
                    sql.SQL("SELECT {}(%s) AS result").format(sql.Identifier(self._rpc_function)),
                    (text,)
                )
                record = cur.fetchone()
                return _rows_from_json(record["result"] if record else None)

            cur.execute(text)
            if cur.description is None:
                return []
            return [to_row(r) for r in cur.fetchall()]

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
        statement, params = build_select(table, columns, predicate, limit, order_by)
        with self._session("structured_query", cancel_token) as cur:
            cur.execute(statement, params)
            return [to_row(r) for r in cur.fetchall()]

    def count(self, table: str, cancel_token: Optional[CancellationToken] = None) -> int:
        check(cancel_token, "count")
        statement = sql.SQL("SELECT COUNT(*) AS n FROM {}").format(sql.Identifier(table))
        with self._session("count", cancel_token) as cur:
            cur.execute(statement)
            return int(cur.fetchone()["n"])

    def column_values(
        self,
        table: str,
        column: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> list[Scalar]:
        check(cancel_token, "column_values")
        statement = sql.SQL("SELECT {} AS v FROM {}").format(sql.Identifier(column), sql.Identifier(table))
        with self._session("column_values", cancel_token) as cur:
            cur.execute(statement)
            return [to_scalar(r["v"]) for r in cur.fetchall()]

    def fetch_schema(self, schema_name: str = "public") -> SchemaDescriptor:
        """Read table/column descriptors from information_schema."""
        with self._session("fetch_schema", None) as cur:
            cur.execute(SCHEMA_QUERY, (schema_name,))
            records = cur.fetchall()

        columns: dict[str, list[ColumnDescriptor]] = {}
        for r in records:
            columns.setdefault(r["table_name"], []).append(ColumnDescriptor(
                name=r["column_name"],
                type=r["data_type"],
                nullable=r["is_nullable"] == "YES",
                default=r["column_default"],
            ))
        return SchemaDescriptor(tables={
            name: TableDescriptor(name=name, description=f"Table: {name}", columns=cols)
            for name, cols in columns.items()
        })

    @contextmanager
    def _session(
        self,
        operation: str,
        cancel_token: Optional[CancellationToken],
        classify: bool = False
    ) -> Iterator[psycopg.Cursor]:
        """Open a connection + dict cursor and translate driver errors.

        While the block runs, cancelling the token cancels the statement
        on the server.
        """
        try:
            with get_connection(self._config) as conn:
                with abort_on_cancel(cancel_token, conn.cancel):
                    with conn.cursor(row_factory=dict_row) as cur:
                        yield cur
        except psycopg.errors.QueryCanceled as e:
            if cancel_token is not None and cancel_token.cancelled:
                raise QueryCancelledError(
                    f"Query cancelled during {operation}",
                    details={"stage": operation}
                ) from e
            raise backend_error(str(e).strip(), BackendErrorKind.OTHER, self._details(operation, e)) from e
        except psycopg.Error as e:
            message = str(e).strip()
            kind = (
                classify_backend_error(message, e.sqlstate, self._rpc_function)
                if classify else BackendErrorKind.OTHER
            )
            logger.debug("Postgres %s failed (%s): %s", operation, kind.value, message)
            raise backend_error(message, kind, self._details(operation, e)) from e

    def _details(self, operation: str, error: psycopg.Error) -> dict[str, Any]:
        return {"backend": self.name, "operation": operation, "sqlstate": error.sqlstate}


def build_select(
    table: str,
    columns: Union[str, Sequence[str]] = "*",
    predicate: Optional[Predicate] = None,
    limit: Optional[int] = None,
    order_by: Optional[OrderBy] = None
) -> tuple[sql.Composed, list[Any]]:
    """Compose ``SELECT ... FROM ... [WHERE] [ORDER BY] [LIMIT]``."""
    projection = (
        sql.SQL("*") if columns == "*"
        else sql.SQL(", ").join(sql.Identifier(c) for c in columns)
    )
    parts = [sql.SQL("SELECT {} FROM {}").format(projection, sql.Identifier(table))]
    params: list[Any] = []

    if predicate is not None:
        parts.append(sql.SQL("WHERE {} = %s").format(sql.Identifier(predicate.column)))
        params.append(predicate.value)
    if order_by is not None:
        direction = sql.SQL("ASC" if order_by.ascending else "DESC")
        parts.append(sql.SQL("ORDER BY {} {}").format(sql.Identifier(order_by.column), direction))
    if limit is not None:
        parts.append(sql.SQL("LIMIT %s"))
        params.append(limit)

    return sql.SQL(" ").join(parts), params


def _rows_from_json(result: Any) -> list[Row]:
    """The execution function returns a JSON array, a single object or null."""
    if result is None:
        return []
    if isinstance(result, list):
        return [to_row(r) if isinstance(r, dict) else {"value": r} for r in result]
    if isinstance(result, dict):
        return [to_row(result)]
    return [{"value": to_scalar(result)}]
