"""Database connection helper for Postgres."""
import os
from contextlib import contextmanager
from typing import Generator, Optional

import psycopg


class DatabaseConfig:
    """Database configuration from environment variables."""

    def __init__(self) -> None:
        self.host = os.getenv("DB_HOST", "localhost")
        self.port = int(os.getenv("DB_PORT", "5432"))
        self.name = os.getenv("DB_NAME", "postgres")
        self.user = os.getenv("DB_USER", "postgres")
        self.password = os.getenv("DB_PASSWORD", "postgres")
        self.connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", "10"))
        # Server-side generic execution function; empty means run the text directly
        self.rpc_function = os.getenv("DB_RPC_FUNCTION", "execute_sql") or None

    def connection_string(self) -> str:
        """Return PostgreSQL connection string."""
        return (
            f"host={self.host} "
            f"port={self.port} "
            f"dbname={self.name} "
            f"user={self.user} "
            f"password={self.password} "
            f"connect_timeout={self.connect_timeout}"
        )


@contextmanager
def get_connection(config: Optional[DatabaseConfig] = None) -> Generator[psycopg.Connection, None, None]:
    """Get a read-only database connection as a context manager.

    Usage:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT ...")
    """
    config = config or DatabaseConfig()
    conn = psycopg.connect(config.connection_string())
    try:
        conn.read_only = True
        yield conn
    finally:
        conn.close()


def test_connection(config: Optional[DatabaseConfig] = None) -> bool:
    """Test if database connection works.

    Returns:
        True if connection succeeds, False otherwise.
    """
    try:
        with get_connection(config) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False
