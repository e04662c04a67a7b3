"""Backend adapter contract.

The engine assumes exactly four capabilities from the remote store:

- ``raw_execute(text)``: generic read-only execution; may be absent
- ``structured_query(table, columns, predicate, limit)``: always available
- ``count(table)``
- ``column_values(table, column)``: used only by the group-count fallback

Generic-path failures must be raised as one of
BackendCapabilityAbsentError / BackendSyntaxError / BackendExecutionError
so the dispatcher can decide whether to fall back.
"""
import datetime
import uuid
from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Sequence, Union

from ..cancellation import CancellationToken
from ..errors import (
    BackendError,
    BackendCapabilityAbsentError,
    BackendSyntaxError,
    BackendExecutionError,
)
from ..schemas_query import Predicate, OrderBy, Row, Scalar


SYNTAX_ERROR_SQLSTATE = "42601"
UNDEFINED_FUNCTION_SQLSTATE = "42883"


class BackendErrorKind(Enum):
    CAPABILITY_ABSENT = "capability_absent"
    SYNTAX = "syntax"
    OTHER = "other"


def classify_backend_error(
    message: str,
    code: Optional[str] = None,
    function_name: Optional[str] = None
) -> BackendErrorKind:
    """Classify a generic-path failure from its code and message.

    Capability-absent is only reported for the generic execution function
    itself, so a user query that calls some unknown function, or touches a
    missing table, is reported as OTHER and never triggers the fallback.

    Args:
        message: Backend diagnostic text
        code: SQLSTATE or REST error code, if the backend returned one
        function_name: Name of the server-side execution function, if any
    """
    lowered = (message or "").lower()

    if code == "PGRST202" or "could not find the function" in lowered:
        return BackendErrorKind.CAPABILITY_ABSENT
    if function_name:
        name = function_name.lower()
        if code == UNDEFINED_FUNCTION_SQLSTATE and name in lowered:
            return BackendErrorKind.CAPABILITY_ABSENT
        if "function" in lowered and "does not exist" in lowered and name in lowered:
            return BackendErrorKind.CAPABILITY_ABSENT

    if code == SYNTAX_ERROR_SQLSTATE or "syntax error" in lowered:
        return BackendErrorKind.SYNTAX

    return BackendErrorKind.OTHER


def backend_error(
    message: str,
    kind: BackendErrorKind,
    details: Optional[dict[str, Any]] = None
) -> BackendError:
    """Build the typed exception for a classified generic-path failure."""
    if kind is BackendErrorKind.CAPABILITY_ABSENT:
        return BackendCapabilityAbsentError(message, details=details)
    if kind is BackendErrorKind.SYNTAX:
        return BackendSyntaxError(message, details=details)
    return BackendExecutionError(message, details=details)


def to_scalar(value: Any) -> Scalar:
    """Convert driver values into JSON scalars.

    No raw driver objects (Decimal, datetime, UUID) leak into row records.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, memoryview)):
        return bytes(value).hex()
    return str(value)


def to_row(record: dict[str, Any]) -> Row:
    """Flatten one record; nested JSON values are kept as-is."""
    return {
        key: value if isinstance(value, (dict, list)) else to_scalar(value)
        for key, value in record.items()
    }


class BackendAdapter(ABC):
    """Capability interface over the remote relational store.

    Implementations are constructed once at startup and shared by all
    concurrent execution calls, so they must not hold per-call state.
    """

    name: str = "backend"

    @abstractmethod
    def raw_execute(
        self,
        text: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> list[Row]:
        """Execute arbitrary read-only query text.

        Raises:
            BackendCapabilityAbsentError: The generic capability does not exist
            BackendSyntaxError: The generic path rejected the text's syntax
            BackendExecutionError: Any other failure
        """

    @abstractmethod
    def structured_query(
        self,
        table: str,
        columns: Union[str, Sequence[str]] = "*",
        predicate: Optional[Predicate] = None,
        limit: Optional[int] = None,
        order_by: Optional[OrderBy] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> list[Row]:
        """Select columns from one table with an optional equality filter."""

    @abstractmethod
    def count(
        self,
        table: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> int:
        """Exact row count of a table."""

    @abstractmethod
    def column_values(
        self,
        table: str,
        column: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> list[Scalar]:
        """All values of one column, one entry per row (unbounded fetch)."""
