from pydantic import BaseModel, Field
from typing import Any, Literal, Optional

class QueryRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=4000)
    role: Optional[str] = None

class QueryResponse(BaseModel):
    rows: list[dict[str, Any]]
    row_count: int = Field(..., ge=0)
    path: Literal["generic", "fallback"]
    rule: Optional[str] = None
    masked_summary: str
    trace_id: str

class ErrorResponse(BaseModel):
    error: str
    kind: str
    details: dict[str, Any] = Field(default_factory=dict)
    trace_id: str
    notes: Optional[str] = None
