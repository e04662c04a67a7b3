#!/usr/bin/env python3
"""
Initialize the sample schema, seed data and read functions for data_query_engine.
This script is used by CI to set up the database before running integration tests.
"""
import sys
from pathlib import Path

import psycopg

# Add src to path so we can import from data_query_engine
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from data_query_engine.db import DatabaseConfig


def init_database():
    """Execute the SQL schema initialization script."""
    sql_file = Path(__file__).parent.parent / "sql" / "001_init.sql"

    if not sql_file.exists():
        print(f"Error: SQL file not found at {sql_file}")
        sys.exit(1)

    sql_content = sql_file.read_text(encoding="utf-8")

    try:
        # get_connection() is read-only; setup needs a writable session
        with psycopg.connect(DatabaseConfig().connection_string()) as conn:
            with conn.cursor() as cur:
                cur.execute(sql_content)
                conn.commit()
                print("[OK] Database schema initialized successfully")
                print(f"   - Executed: {sql_file}")

                cur.execute("""
                    SELECT table_name
                    FROM information_schema.tables
                    WHERE table_schema = 'public'
                    ORDER BY table_name
                """)
                tables = [row[0] for row in cur.fetchall()]
                print(f"   - Tables: {', '.join(tables)}")

    except psycopg.Error as e:
        print(f"[ERROR] Database initialization failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    init_database()
