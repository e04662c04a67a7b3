"""Execution dispatcher: the single ``execute(text)`` entry point.

Flow per call (no state kept across calls):
  1. Validate the raw text; a rejection ends the call with no backend I/O
  2. Try the generic path (RawExecute) with the cleaned text
  3. If the backend reports the generic capability absent, or a syntax
     incompatibility, switch once to the fallback: translate the text and
     issue the StructuredQuery. Its outcome is final.
  4. Any other backend error is propagated verbatim

There are no retries at this layer. Repeating a call is safe because only
read operations can pass validation.
"""
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Literal, Optional, Union

from .audit import AuditSink, NullAuditSink
from .backends.base import BackendAdapter
from .cancellation import CancellationToken, check
from .errors import (
    BackendCapabilityAbsentError,
    BackendError,
    BackendSyntaxError,
    QueryCancelledError,
    QueryValidationError,
    StructuredError,
    UnsupportedPatternError,
)
from .schema import SchemaDescriptor
from .schemas_query import QueryErrorSchema, QueryResultSchema, RawExecute, Row, StructuredQuery
from .translator import execute_structured, translate, unsupported_pattern_error
from .validator import validate

logger = logging.getLogger(__name__)


# Query text length in log lines
LOG_QUERY_CHARS = 100

# Audit and serialized kind for exceptions outside the error taxonomy
UNKNOWN_ERROR_KIND = "Unknown"

ExecutionPath = Literal["generic", "fallback"]


@dataclass(frozen=True)
class ExecutionResult:
    """Rows from one completed call. Never partial."""
    rows: list[Row]
    path: ExecutionPath
    rule: Optional[str] = None
    elapsed_ms: float = 0.0

    def to_schema(self) -> QueryResultSchema:
        return QueryResultSchema(rows=self.rows, row_count=len(self.rows), path=self.path, rule=self.rule)


@dataclass(frozen=True)
class QueryOutcome:
    """Serialized result of ``QueryEngine.run``: result or error, never raised."""
    data: dict
    notes: str = ""
    path: Optional[ExecutionPath] = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return "error" not in self.data


class QueryEngine:
    """Constrained read-only query execution over a backend adapter.

    The backend handle is created once at startup and shared; the engine
    holds no per-call state, so one instance serves concurrent callers.
    """

    def __init__(
        self,
        backend: BackendAdapter,
        audit_sink: Optional[AuditSink] = None,
        schema: Optional[SchemaDescriptor] = None
    ):
        """Initialize the engine.

        Args:
            backend: Adapter for the remote store
            audit_sink: Receives outcome metadata per call; failures are
                        logged and never affect the result
            schema: Optional descriptor, consulted only to warn when a
                    fallback references an unknown table
        """
        self._backend = backend
        self._audit_sink = audit_sink or NullAuditSink()
        self._schema = schema

    @property
    def backend(self) -> BackendAdapter:
        return self._backend

    def execute(
        self,
        raw_text: str,
        cancel_token: Optional[CancellationToken] = None,
        correlation_id: Optional[str] = None
    ) -> ExecutionResult:
        """Validate and execute one query.

        Returns:
            ExecutionResult with all rows and the path that produced them

        Raises:
            QueryValidationError: EmptyQuery / NotReadOnly / ForbiddenKeyword /
                                  MultipleStatements (no backend call made)
            UnsupportedPatternError: Fallback needed but no rule matched
            BackendExecutionError: Any other backend failure, verbatim
            QueryCancelledError: The token was cancelled
        """
        correlation_id = correlation_id or str(uuid.uuid4())
        start = time.perf_counter()
        cleaned: Optional[str] = None
        try:
            cleaned = validate(raw_text)
            rows, path, rule = self._dispatch(cleaned, cancel_token, correlation_id)
        except Exception as e:
            # Every call is audited, including failures outside the taxonomy
            self._report(correlation_id, raw_text, cleaned, start, error=e)
            raise

        elapsed = (time.perf_counter() - start) * 1000
        result = ExecutionResult(rows=rows, path=path, rule=rule, elapsed_ms=elapsed)
        self._report(correlation_id, raw_text, cleaned, start, result=result)
        return result

    def run(
        self,
        raw_text: str,
        cancel_token: Optional[CancellationToken] = None,
        correlation_id: Optional[str] = None
    ) -> QueryOutcome:
        """Like ``execute`` but every failure becomes a serialized error.

        Returns:
            QueryOutcome with QueryResultSchema data on success or
            QueryErrorSchema data on failure
        """
        start = time.perf_counter()
        try:
            result = self.execute(raw_text, cancel_token=cancel_token, correlation_id=correlation_id)
            return QueryOutcome(
                data=result.to_schema().model_dump(),
                path=result.path,
                elapsed_ms=result.elapsed_ms
            )
        except StructuredError as e:
            error_schema = QueryErrorSchema(error=e.message, kind=e.kind, details=e.details)
            return QueryOutcome(
                data=error_schema.model_dump(),
                notes=outcome_note(e),
                elapsed_ms=(time.perf_counter() - start) * 1000
            )
        except Exception as e:
            logger.exception("Unexpected failure executing query")
            error_schema = QueryErrorSchema(error=f"Query failed: {e}", kind=UNKNOWN_ERROR_KIND)
            return QueryOutcome(
                data=error_schema.model_dump(),
                notes="execution_error",
                elapsed_ms=(time.perf_counter() - start) * 1000
            )

    def _dispatch(
        self,
        cleaned: str,
        cancel_token: Optional[CancellationToken],
        correlation_id: str
    ) -> tuple[list[Row], ExecutionPath, Optional[str]]:
        check(cancel_token, "generic execution")
        try:
            rows = self._issue(RawExecute(sql=cleaned), cancel_token)
            logger.debug("[%s] generic path returned %d rows", correlation_id, len(rows))
            return rows, "generic", None
        except (BackendCapabilityAbsentError, BackendSyntaxError) as e:
            logger.info(
                "[%s] generic path unavailable (%s), falling back to pattern translation: %s",
                correlation_id, e.kind, e.message
            )
        except BackendError as e:
            logger.warning("[%s] backend error on generic path: %s", correlation_id, e.message)
            raise

        check(cancel_token, "fallback translation")
        translated = translate(cleaned)
        if translated is None:
            logger.warning("[%s] no fallback rule matches: %s", correlation_id, _truncate(cleaned))
            raise unsupported_pattern_error(cleaned)

        rule, query = translated
        logger.info("[%s] fallback rule '%s' matched table '%s'", correlation_id, rule.name, query.table)
        if self._schema is not None and not self._schema.has_table(query.table):
            logger.warning("[%s] table '%s' is not in the known schema; attempting anyway", correlation_id, query.table)

        try:
            rows = self._issue(query, cancel_token)
        except BackendError as e:
            logger.warning("[%s] backend error on fallback path: %s", correlation_id, e.message)
            raise
        return rows, "fallback", rule.name

    def _issue(self, call: Union[RawExecute, StructuredQuery], cancel_token: Optional[CancellationToken]) -> list[Row]:
        if isinstance(call, RawExecute):
            return self._backend.raw_execute(call.sql, cancel_token=cancel_token)
        if isinstance(call, StructuredQuery):
            return execute_structured(call, self._backend, cancel_token)
        raise TypeError(f"Unknown backend call: {type(call).__name__}")

    def _report(
        self,
        correlation_id: str,
        raw_text: str,
        cleaned: Optional[str],
        start: float,
        result: Optional[ExecutionResult] = None,
        error: Optional[Exception] = None
    ) -> None:
        if isinstance(error, QueryValidationError):
            logger.info("[%s] query rejected (%s): %s", correlation_id, error.kind, _truncate(raw_text or ""))
        try:
            self._audit_sink.record(
                correlation_id=correlation_id,
                query=cleaned if cleaned is not None else (raw_text or ""),
                success=error is None,
                row_count=len(result.rows) if result else None,
                path=result.path if result else None,
                error_kind=getattr(error, "kind", UNKNOWN_ERROR_KIND) if error else None,
                duration_ms=int((time.perf_counter() - start) * 1000),
            )
        except Exception as e:
            # Audit failures never change the execution outcome
            logger.warning("[%s] audit logging failed: %s", correlation_id, e)


def outcome_note(error: StructuredError) -> str:
    if isinstance(error, QueryValidationError):
        return "validation_error"
    if isinstance(error, UnsupportedPatternError):
        return "unsupported_pattern"
    if isinstance(error, QueryCancelledError):
        return "cancelled"
    if isinstance(error, BackendError):
        return "backend_error"
    return "execution_error"


def _truncate(text: str) -> str:
    return text if len(text) <= LOG_QUERY_CHARS else text[:LOG_QUERY_CHARS] + "..."
