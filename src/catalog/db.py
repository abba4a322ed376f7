"""
Database connection and query utilities.

Provides a ``Database`` client object wrapping psycopg. Every store receives
one at construction time; nothing in the package reaches for a global handle.

For testing, use set_connection_override() to inject a connection
that will be used instead of creating new ones. This enables
transaction rollback between tests.
"""

import logging
from contextlib import contextmanager
from importlib import resources
from typing import Any

import psycopg
from psycopg.rows import dict_row

from catalog.errors import storage_errors

logger = logging.getLogger(__name__)

SCHEMA_FILE = "001_initial_schema.sql"


class Database:
    """PostgreSQL client shared by the record and blob stores."""

    def __init__(self, url: str, connect_timeout: int = 5):
        self.url = url
        self.connect_timeout = connect_timeout
        self._connection_override: psycopg.Connection | None = None

    # =========================================================================
    # Connection Override (for testing)
    # =========================================================================

    def set_connection_override(self, conn: psycopg.Connection) -> None:
        """
        Set a connection to use instead of creating new ones.

        Used by test fixtures to ensure all database operations run
        within a single transaction that can be rolled back.

        Args:
            conn: The connection to use for all subsequent operations
        """
        self._connection_override = conn

    def clear_connection_override(self) -> None:
        """Clear the connection override, restoring normal behavior."""
        self._connection_override = None

    # =========================================================================
    # Connection Management
    # =========================================================================

    def connect(self) -> psycopg.Connection:
        return psycopg.connect(self.url, connect_timeout=self.connect_timeout)

    @contextmanager
    def connection(self):
        """
        Context manager for database connections.

        In normal operation:
            - Opens a new connection
            - Commits on successful exit
            - Rolls back on exception
            - Closes connection when done

        With override set (testing):
            - Returns the override connection
            - Does NOT commit, rollback, or close
            - Caller (test fixture) manages the transaction

        Usage:
            with database.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT ...")
        """
        if self._connection_override is not None:
            yield self._connection_override
            return

        conn = self.connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def cursor(self):
        """
        Context manager for a cursor with dict rows.

        Usage:
            with database.cursor() as cur:
                cur.execute("SELECT * FROM instruments")
                rows = cur.fetchall()  # List of dicts
        """
        with self.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                yield cur

    def is_connected(self) -> bool:
        """Report whether the database currently accepts connections."""
        if self._connection_override is not None:
            return not self._connection_override.closed
        try:
            with self.connect() as conn:
                conn.execute("SELECT 1")
            return True
        except psycopg.Error as e:
            logger.warning("Database readiness check failed: %s", type(e).__name__)
            return False

    # =========================================================================
    # Query Helpers
    # =========================================================================

    def execute(self, query: str, params: tuple = None) -> int:
        """
        Execute a query without returning results.

        Returns:
            Number of rows affected
        """
        with self.cursor() as cur:
            cur.execute(query, params)
            return cur.rowcount

    def fetch_one(self, query: str, params: tuple = None) -> dict[str, Any] | None:
        """
        Execute a query and return a single row as dict.

        Returns:
            Dict of column names to values, or None if no row found
        """
        with self.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchone()

    def fetch_all(self, query: str, params: tuple = None) -> list[dict[str, Any]]:
        """
        Execute a query and return all rows as list of dicts.

        Returns:
            List of dicts, empty list if no rows found
        """
        with self.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    # =========================================================================
    # Schema
    # =========================================================================

    def apply_schema(self) -> None:
        """Apply the bundled schema. Statements are idempotent."""
        sql = read_schema()
        with storage_errors(), self.connection() as conn:
            conn.execute(sql)
        logger.info("Applied schema %s", SCHEMA_FILE)


def read_schema() -> str:
    schema = resources.files("catalog") / "migrations" / SCHEMA_FILE
    return schema.read_text(encoding="utf-8")
