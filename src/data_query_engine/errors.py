"""Structured error taxonomy for the query engine.

Every failure the engine can produce is a StructuredError subclass with:
- a machine-distinguishable ``kind`` (EmptyQuery, NotReadOnly, ...)
- a category and severity for monitoring
- a retryability hint for the caller / generation layer
- a ``to_dict()`` serialization with a predictable schema

Validation errors never reach the backend. Capability-absent and syntax
errors from the generic path trigger the structured fallback and are only
surfaced when they cannot be recovered. Everything else is reported verbatim.

Example:
    >>> try:
    ...     raise NotReadOnlyError("Only SELECT statements are allowed")
    ... except StructuredError as e:
    ...     error_json = e.to_dict()
    ...     print(error_json["kind"])
    NotReadOnly
"""
from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ErrorCategory(Enum):
    """Error categories for classification."""
    VALIDATION = "validation"         # Rejected before any backend call
    EXECUTION = "execution"           # Backend reported a failure
    TRANSLATION = "translation"       # Fallback could not express the query
    CANCELLATION = "cancellation"     # Caller cancelled the pipeline
    CONFIGURATION = "configuration"   # Configuration/setup errors
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class StructuredError(Exception):
    """Base class for all structured errors.

    Attributes:
        message: Human-readable error message
        category: ErrorCategory classification
        severity: ErrorSeverity level
        retryable: Whether the operation can be retried
        details: Additional context (dict)
        timestamp: When the error occurred
    """

    kind = "Unknown"

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.retryable = retryable
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to structured dictionary.

        Returns:
            {
                "error_type": "ErrorClassName",
                "kind": "NotReadOnly",
                "message": "Human-readable message",
                "category": "validation|execution|translation|...",
                "severity": "info|warning|error|critical",
                "retryable": true|false,
                "details": {...},
                "timestamp": "2024-01-01T12:00:00.000000+00:00"
            }
        """
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }


class QueryValidationError(StructuredError):
    """A query was rejected by the validator.

    Validation errors are terminal and local: no backend call is made.
    The caller has to change the query text, so they are never retryable.
    """

    kind = "Validation"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.ERROR,
            retryable=False,
            details=details
        )


class EmptyQueryError(QueryValidationError):
    """The query is empty after trimming and terminator stripping."""
    kind = "EmptyQuery"


class NotReadOnlyError(QueryValidationError):
    """The query does not start with the read-only keyword."""
    kind = "NotReadOnly"


class ForbiddenKeywordError(QueryValidationError):
    """A mutating keyword appears as a whole word in the query."""
    kind = "ForbiddenKeyword"

    def __init__(self, message: str, keyword: str, details: Optional[Dict[str, Any]] = None):
        merged = {"keyword": keyword}
        merged.update(details or {})
        super().__init__(message, details=merged)
        self.keyword = keyword


class MultipleStatementsError(QueryValidationError):
    """An internal terminator is followed by more statement text."""
    kind = "MultipleStatements"


class BackendError(StructuredError):
    """Base class for failures reported by a backend adapter.

    The message carries the backend's own diagnostic text unmodified.
    """

    kind = "BackendError"

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.EXECUTION,
            severity=ErrorSeverity.ERROR,
            retryable=retryable,
            details=details
        )


class BackendCapabilityAbsentError(BackendError):
    """The generic read-execution capability does not exist on the backend.

    Recovered by the dispatcher through the structured fallback.
    """
    kind = "BackendCapabilityAbsent"


class BackendSyntaxError(BackendError):
    """The generic path rejected the query text as a syntax error.

    Recovered by the dispatcher through the structured fallback.
    """
    kind = "BackendSyntaxError"


class BackendExecutionError(BackendError):
    """Any other backend failure (missing table, permission, network...).

    Surfaced to the caller verbatim; the AI layer needs the diagnostic
    text to correct and retry its query.
    """

    kind = "BackendExecutionError"

    def __init__(self, message: str, retryable: bool = True, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, retryable=retryable, details=details)


class UnsupportedPatternError(StructuredError):
    """The fallback translator recognized none of the supported shapes.

    The message enumerates the supported shapes so the generation layer
    can be informed without inspecting source.
    """

    kind = "UnsupportedPattern"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.TRANSLATION,
            severity=ErrorSeverity.WARNING,
            retryable=False,
            details=details
        )


class QueryCancelledError(StructuredError):
    """The caller cancelled the pipeline before it completed."""

    kind = "Cancelled"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.CANCELLATION,
            severity=ErrorSeverity.INFO,
            retryable=True,
            details=details
        )


class ConfigurationError(StructuredError):
    """Error in system configuration.

    Raised when required configuration is missing or invalid.
    Usually requires admin intervention.

    Example:
        >>> raise ConfigurationError(
        ...     "SUPABASE_URL and SUPABASE_ANON_KEY are required",
        ...     details={"backend": "postgrest"}
        ... )
    """

    kind = "Configuration"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            retryable=False,
            details=details
        )
