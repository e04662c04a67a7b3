"""Audit logging for query executions (append-only JSON lines)."""
import hashlib
import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

from .schemas_audit import AuditRecordSchema


# Query text kept in audit records
DEFAULT_QUERY_MAX_CHARS = 200

# Matches AuditRecordSchema.correlation_id; longer caller-supplied IDs are cut
CORRELATION_ID_MAX_CHARS = 64


def hash_data(data: Any) -> str:
    """Generate SHA256 hash of data for audit trail.

    Args:
        data: Any JSON-serializable data (dict, list, str, etc.)

    Returns:
        Hexadecimal SHA256 hash string.
    """
    # Sorted keys for deterministic hashing
    json_str = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(json_str.encode()).hexdigest()


class AuditSink(Protocol):
    def record(
        self,
        correlation_id: str,
        query: str,
        success: bool,
        row_count: Optional[int],
        path: Optional[str],
        error_kind: Optional[str],
        duration_ms: int
    ) -> None:
        """Report the outcome of one execution call."""
        ...


class NullAuditSink:
    """Discards audit records."""

    def record(self, **kwargs: Any) -> None:
        return None


class JsonlAuditSink:
    """Appends one JSON line per execution to a log file.

    Thread-safe: concurrent calls serialize on a lock around the append.
    Query text is truncated; the full text is kept only as a hash.
    """

    def __init__(self, path: str | Path, query_max_chars: int = DEFAULT_QUERY_MAX_CHARS):
        self._path = Path(path)
        self._query_max_chars = query_max_chars
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def record(
        self,
        correlation_id: str,
        query: str,
        success: bool,
        row_count: Optional[int] = None,
        path: Optional[str] = None,
        error_kind: Optional[str] = None,
        duration_ms: int = 0
    ) -> None:
        """Write an audit record (append-only).

        Raises:
            OSError: If the file cannot be written.
        """
        record = AuditRecordSchema(
            ts=datetime.now(timezone.utc),
            correlation_id=correlation_id[:CORRELATION_ID_MAX_CHARS],
            query=query[:self._query_max_chars],
            query_hash=hash_data(query),
            success=success,
            row_count=row_count,
            path=path,
            error_kind=error_kind,
            duration_ms=max(duration_ms, 0),
        )
        line = record.model_dump_json() + "\n"
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)


def read_audit_records(
    path: str | Path,
    correlation_id: Optional[str] = None,
    limit: int = 100
) -> list[AuditRecordSchema]:
    """Read the most recent audit records, newest first.

    Args:
        path: Audit log file.
        correlation_id: Optional filter by correlation ID.
        limit: Maximum number of records to return.
    """
    path = Path(path)
    if not path.exists():
        return []

    records = []
    with path.open(encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            record = AuditRecordSchema.model_validate_json(line)
            if correlation_id is None or record.correlation_id == correlation_id:
                records.append(record)
    return list(reversed(records))[:limit]
