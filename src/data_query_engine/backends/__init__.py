from .base import BackendAdapter, BackendErrorKind, classify_backend_error
from .memory import InMemoryBackend
from .postgres import PostgresBackend
from .postgrest import PostgrestBackend, PostgrestConfig

__all__ = [
    "BackendAdapter",
    "BackendErrorKind",
    "classify_backend_error",
    "InMemoryBackend",
    "PostgresBackend",
    "PostgrestBackend",
    "PostgrestConfig",
]
