"""PostgREST (Supabase REST) backend over requests.

Generic path: ``POST {url}/rest/v1/rpc/{function}`` with ``{"sql_query": text}``.
If the function is not exposed PostgREST answers with code PGRST202, which
is reported as capability absent.

Structured path maps onto the REST query API:
    GET  /rest/v1/users?select=*&city=eq.Chicago&limit=1000&offset=0
         (paged with Prefer: count=exact until the Content-Range total)
    HEAD /rest/v1/users?select=*        (Prefer: count=exact -> Content-Range)
"""
import logging
import os
from typing import Any, Optional, Sequence, Union

import requests

from .base import (
    BackendAdapter,
    backend_error,
    classify_backend_error,
    to_row,
    to_scalar,
)
from ..cancellation import CancellationToken, check
from ..errors import BackendExecutionError, ConfigurationError
from ..schema import ColumnDescriptor, SchemaDescriptor, TableDescriptor
from ..schemas_query import OrderBy, Predicate, Row, Scalar

logger = logging.getLogger(__name__)


class PostgrestConfig:
    """PostgREST configuration from environment variables."""

    def __init__(self) -> None:
        self.url = os.getenv("SUPABASE_URL", "").rstrip("/")
        self.api_key = os.getenv("SUPABASE_ANON_KEY", "")
        self.rpc_function = os.getenv("POSTGREST_RPC_FUNCTION", "execute_sql")
        self.schema_function = os.getenv("POSTGREST_SCHEMA_FUNCTION", "get_table_schema")
        self.timeout = float(os.getenv("POSTGREST_TIMEOUT", "30"))
        # Rows per GET; PostgREST max-rows may cap a page below this
        self.page_size = int(os.getenv("POSTGREST_PAGE_SIZE", "1000"))


class PostgrestBackend(BackendAdapter):
    """Adapter for a PostgREST endpoint.

    Args:
        config: Endpoint settings (default: from environment)
        session: Optional requests.Session to reuse connections

    Raises:
        ConfigurationError: If the URL or API key is missing
    """

    name = "postgrest"

    def __init__(self, config: Optional[PostgrestConfig] = None, session: Optional[requests.Session] = None):
        self._config = config or PostgrestConfig()
        if not self._config.url or not self._config.api_key:
            raise ConfigurationError(
                "SUPABASE_URL and SUPABASE_ANON_KEY are required for the postgrest backend",
                details={"backend": self.name}
            )
        self._http = session or requests.Session()

    def raw_execute(self, text: str, cancel_token: Optional[CancellationToken] = None) -> list[Row]:
        check(cancel_token, "raw_execute")
        response = self._request(
            "POST",
            f"rpc/{self._config.rpc_function}",
            operation="raw_execute",
            json={"sql_query": text}
        )
        if not response.ok:
            message, code = _error_payload(response)
            kind = classify_backend_error(message, code, self._config.rpc_function)
            raise backend_error(message, kind, self._details("raw_execute", response, code))

        data = self._json("raw_execute", response) if response.content else None
        if data is None:
            return []
        if isinstance(data, list):
            return [to_row(r) if isinstance(r, dict) else {"value": to_scalar(r)} for r in data]
        if isinstance(data, dict):
            return [to_row(data)]
        return [{"value": to_scalar(data)}]

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
        params = build_params(columns, predicate, limit, order_by)
        return [to_row(r) for r in self._select_all(table, params, "structured_query", cancel_token)]

    def count(self, table: str, cancel_token: Optional[CancellationToken] = None) -> int:
        check(cancel_token, "count")
        response = self._request(
            "HEAD",
            table,
            operation="count",
            params={"select": "*"},
            headers={"Prefer": "count=exact"}
        )
        self._raise_for_status("count", response)
        return parse_content_range(response.headers.get("Content-Range", ""))

    def column_values(
        self,
        table: str,
        column: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> list[Scalar]:
        check(cancel_token, "column_values")
        records = self._select_all(table, {"select": column}, "column_values", cancel_token)
        return [to_scalar(r.get(column)) for r in records]

    def fetch_schema(self, tables: Sequence[str] = ()) -> SchemaDescriptor:
        """Schema via the ``get_table_schema`` RPC.

        If the function is not installed, infer columns from one sample row
        of each table in ``tables``.
        """
        response = self._request(
            "POST",
            f"rpc/{self._config.schema_function}",
            operation="fetch_schema",
            json={"schema_name": "public"}
        )
        if response.ok:
            descriptors = {}
            for entry in self._json("fetch_schema", response) or []:
                descriptors[entry["table_name"]] = TableDescriptor(
                    name=entry["table_name"],
                    description=f"Table: {entry['table_name']}",
                    columns=[
                        ColumnDescriptor(
                            name=c["column_name"],
                            type=c["data_type"],
                            nullable=c.get("is_nullable") == "YES",
                            default=c.get("column_default"),
                        )
                        for c in entry.get("columns") or []
                    ],
                )
            return SchemaDescriptor(tables=descriptors)

        logger.info("Schema function not available, sampling %d tables", len(tables))
        descriptors = {}
        for table in tables:
            sample = self.structured_query(table, "*", limit=1)
            columns = [
                ColumnDescriptor(name=key, type=type(value).__name__ if value is not None else "unknown")
                for key, value in (sample[0].items() if sample else [])
            ]
            descriptors[table] = TableDescriptor(name=table, description=f"Table: {table}", columns=columns)
        return SchemaDescriptor(tables=descriptors)

    def _select_all(
        self,
        table: str,
        params: dict[str, str],
        operation: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> list[dict[str, Any]]:
        """GET a row select page by page until the exact total is reached.

        PostgREST silently caps each response at its ``max-rows`` setting,
        so a single GET can return only a prefix of the result.
        """
        params = dict(params)
        limit = int(params.pop("limit")) if "limit" in params else None
        records: list[dict[str, Any]] = []
        total: Optional[int] = None

        while limit is None or len(records) < limit:
            check(cancel_token, operation)
            wanted = self._config.page_size if limit is None else min(self._config.page_size, limit - len(records))
            page_params = dict(params, limit=str(wanted), offset=str(len(records)))
            response = self._request(
                "GET",
                table,
                operation=operation,
                params=page_params,
                headers={"Prefer": "count=exact"}
            )
            self._raise_for_status(operation, response)
            page = self._json(operation, response) or []
            if total is None:
                total = parse_content_range(response.headers.get("Content-Range", ""))
            records.extend(page)
            if not page or len(records) >= total:
                break

        logger.debug("Fetched %d of %s rows from %s", len(records), total, table)
        return records

    def _json(self, operation: str, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise BackendExecutionError(
                f"PostgREST returned a body that is not valid JSON: {e}",
                retryable=False,
                details=self._details(operation, response, None)
            ) from e

    def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> requests.Response:
        headers = {
            "apikey": self._config.api_key,
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(kwargs.pop("headers", {}))
        try:
            return self._http.request(
                method,
                f"{self._config.url}/rest/v1/{path}",
                headers=headers,
                timeout=self._config.timeout,
                **kwargs
            )
        except requests.exceptions.Timeout as e:
            raise BackendExecutionError(
                f"PostgREST request exceeded timeout of {self._config.timeout}s: {e}",
                details={"backend": self.name, "operation": operation}
            ) from e
        except requests.exceptions.RequestException as e:
            raise BackendExecutionError(
                f"PostgREST request failed: {e}",
                details={"backend": self.name, "operation": operation}
            ) from e

    def _raise_for_status(self, operation: str, response: requests.Response) -> None:
        if response.ok:
            return
        message, code = _error_payload(response)
        raise BackendExecutionError(
            message,
            retryable=response.status_code >= 500,
            details=self._details(operation, response, code)
        )

    def _details(self, operation: str, response: requests.Response, code: Optional[str]) -> dict[str, Any]:
        return {
            "backend": self.name,
            "operation": operation,
            "status_code": response.status_code,
            "code": code,
        }


def build_params(
    columns: Union[str, Sequence[str]] = "*",
    predicate: Optional[Predicate] = None,
    limit: Optional[int] = None,
    order_by: Optional[OrderBy] = None
) -> dict[str, str]:
    """Translate structured query parts into PostgREST query parameters."""
    params = {"select": "*" if columns == "*" else ",".join(columns)}
    if predicate is not None:
        params[predicate.column] = f"eq.{predicate.value}"
    if order_by is not None:
        params["order"] = f"{order_by.column}.{'asc' if order_by.ascending else 'desc'}"
    if limit is not None:
        params["limit"] = str(limit)
    return params


def parse_content_range(header: str) -> int:
    """Total from ``Content-Range: 0-9/42`` or ``*/42``."""
    _, _, total = header.partition("/")
    if not total or total == "*":
        raise BackendExecutionError(
            f"PostgREST did not return an exact count (Content-Range: {header!r})",
            retryable=False
        )
    return int(total)


def _error_payload(response: requests.Response) -> tuple[str, Optional[str]]:
    """Extract ``(message, code)`` from a PostgREST error response."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or response.reason or ""
        if body.get("details"):
            message = f"{message} ({body['details']})"
        return message, body.get("code")
    return f"HTTP {response.status_code}: {response.text or response.reason}", None
