"""Pydantic schemas for audit log records."""
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Literal, Optional


class AuditRecordSchema(BaseModel):
    """Schema for audit log records.

    Represents a single execution call. Records are append-only.
    """
    ts: datetime = Field(..., description="Timestamp of the call")
    correlation_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Request correlation ID for tracing"
    )
    query: str = Field(..., description="Query text, truncated")
    query_hash: str = Field(
        ...,
        min_length=64,
        max_length=64,
        description="SHA256 hash of the full query text"
    )
    success: bool = Field(..., description="Whether the call returned rows")
    row_count: Optional[int] = Field(None, ge=0)
    path: Optional[Literal["generic", "fallback"]] = Field(
        None,
        description="Execution path that produced the rows"
    )
    error_kind: Optional[str] = Field(None, description="Error kind on failure")
    duration_ms: int = Field(..., ge=0, description="Call duration in milliseconds")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "ts": "2024-01-15T10:30:00Z",
                    "correlation_id": "trace-abc-123",
                    "query": "SELECT COUNT(*) as total FROM products",
                    "query_hash": "a" * 64,
                    "success": True,
                    "row_count": 1,
                    "path": "fallback",
                    "error_kind": None,
                    "duration_ms": 125
                }
            ]
        }
    )
