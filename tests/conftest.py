"""Pytest fixtures and configuration.

Provides an in-memory backend seeded with the sample tables, plus engine
fixtures for both the generic and the fallback path.
"""
import sys
from pathlib import Path
import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


USERS = [
    {"id": 1, "first_name": "John", "email": "john.doe@email.com", "city": "New York"},
    {"id": 2, "first_name": "Jane", "email": "jane.smith@email.com", "city": "Los Angeles"},
    {"id": 3, "first_name": "Mike", "email": "mike.johnson@email.com", "city": "Chicago"},
    {"id": 4, "first_name": "Sarah", "email": "sarah.williams@email.com", "city": "Houston"},
    {"id": 5, "first_name": "David", "email": "david.brown@email.com", "city": "Chicago"},
]

PRODUCTS = [
    {"id": 1, "name": "Laptop Pro", "category": "Electronics", "price": 1299.99},
    {"id": 2, "name": "Wireless Mouse", "category": "Electronics", "price": 29.99},
    {"id": 3, "name": "Keyboard", "category": "Electronics", "price": 89.99},
    {"id": 4, "name": "Phone Case", "category": "Accessories", "price": 19.99},
    {"id": 5, "name": "Monitor Stand", "category": "Accessories", "price": 34.99},
    {"id": 6, "name": "Desk Lamp", "category": "Office", "price": 24.99},
]


@pytest.fixture
def tables() -> dict:
    return {"users": [dict(r) for r in USERS], "products": [dict(r) for r in PRODUCTS]}


@pytest.fixture
def fallback_backend(tables):
    """Backend whose generic execution capability is absent."""
    from data_query_engine.backends.memory import InMemoryBackend
    return InMemoryBackend(tables=tables)


@pytest.fixture
def fallback_engine(fallback_backend):
    from data_query_engine.dispatcher import QueryEngine
    return QueryEngine(fallback_backend)
