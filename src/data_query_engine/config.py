import json
import os
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .audit import JsonlAuditSink
from .backends import BackendAdapter, InMemoryBackend, PostgresBackend, PostgrestBackend
from .dispatcher import QueryEngine
from .errors import ConfigurationError


def _env_json(name: str, default: dict) -> dict:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{name} is not valid JSON: {e}", details={"variable": name}) from e


class Settings(BaseModel):
    service_name: str = "data-query-engine"
    environment: str = Field(default_factory=lambda: os.getenv("ENVIRONMENT", "dev"))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    backend: Literal["postgres", "postgrest", "memory"] = Field(
        default_factory=lambda: os.getenv("QUERY_BACKEND", "postgres")
    )

    # Empty path disables the audit log
    audit_log_path: str = Field(default_factory=lambda: os.getenv("AUDIT_LOG_PATH", "logs/audit.log"))
    audit_query_max_chars: int = Field(default_factory=lambda: int(os.getenv("AUDIT_QUERY_MAX_CHARS", "200")))

    # Role -> fields masked in display summaries
    redact_fields_for_roles: dict[str, list[str]] = Field(
        default_factory=lambda: _env_json("REDACT_FIELDS_FOR_ROLES", {"guest": ["email", "phone"]})
    )
    default_role: str = "guest"

    def redact_fields(self, role: Optional[str]) -> list[str]:
        return self.redact_fields_for_roles.get(role or self.default_role, [])


def build_backend(settings: Settings) -> BackendAdapter:
    """Construct the process-wide backend handle for the configured store."""
    if settings.backend == "postgres":
        return PostgresBackend()
    if settings.backend == "postgrest":
        return PostgrestBackend()
    return InMemoryBackend(tables={})


def build_engine(settings: Settings) -> QueryEngine:
    """Backend + audit sink wired into a QueryEngine."""
    sink = (
        JsonlAuditSink(settings.audit_log_path, settings.audit_query_max_chars)
        if settings.audit_log_path else None
    )
    return QueryEngine(build_backend(settings), audit_sink=sink)


settings = Settings()
