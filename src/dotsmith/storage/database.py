"""
Simple database wrapper for dotsmith.

This module provides a thin wrapper around sqlite3 for database operations.
Every sqlite3 failure is re-raised as a StoreError naming the database and
the operation that failed.
"""

import sqlite3
from pathlib import Path
from typing import Optional, List, Union

from ..utils.errors import StoreError
from ..utils.logging import get_logger

logger = get_logger(__name__)

MEMORY = ":memory:"


class Database:
    """SQLite database wrapper running in autocommit mode."""

    def __init__(
        self,
        db_path: Union[Path, str],
        timeout: float = 5.0,
        journal_mode: str = "WAL",
        synchronous: str = "NORMAL",
    ):
        """
        Initialize database wrapper.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
            timeout: Seconds a writer waits for a competing writer's lock
            journal_mode: SQLite journal mode
            synchronous: SQLite synchronous level
        """
        self.db_path = db_path if str(db_path) == MEMORY else Path(db_path)
        self.timeout = timeout
        self.journal_mode = journal_mode
        self.synchronous = synchronous
        self._connection: Optional[sqlite3.Connection] = None

    @property
    def is_memory(self) -> bool:
        return str(self.db_path) == MEMORY

    def connect(self) -> None:
        """Open database connection."""
        if self._connection is not None:
            return
        try:
            self._connection = sqlite3.connect(
                str(self.db_path),
                timeout=self.timeout,
                isolation_level=None  # Autocommit mode
            )
            if not self.is_memory:
                # WAL lets readers proceed while a writer holds the lock
                self._connection.execute(f"PRAGMA journal_mode={self.journal_mode}")
            self._connection.execute(f"PRAGMA synchronous={self.synchronous}")
        except sqlite3.Error as e:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
            raise StoreError(self.db_path, "open", cause=e) from e

        logger.debug("database_connected", db_path=str(self.db_path), journal_mode=self.journal_mode)

    def close(self) -> None:
        """Close database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None

    def execute(self, sql: str, parameters: tuple = (), operation: str = "execute") -> sqlite3.Cursor:
        """
        Execute SQL statement.

        Args:
            sql: SQL statement
            parameters: Query parameters
            operation: Human readable operation name used in errors

        Returns:
            Cursor object
        """
        if not self._connection:
            self.connect()
        try:
            return self._connection.execute(sql, parameters)
        except sqlite3.Error as e:
            raise StoreError(self.db_path, operation, cause=e) from e

    def executescript(self, script: str, operation: str = "execute script") -> None:
        """Execute several statements at once."""
        if not self._connection:
            self.connect()
        try:
            self._connection.executescript(script)
        except sqlite3.Error as e:
            raise StoreError(self.db_path, operation, cause=e) from e

    def fetchone(self, sql: str, parameters: tuple = (), operation: str = "query") -> Optional[tuple]:
        """
        Execute query and fetch one result.

        Returns:
            Single row or None
        """
        cursor = self.execute(sql, parameters, operation)
        try:
            return cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError(self.db_path, operation, cause=e) from e

    def fetchall(self, sql: str, parameters: tuple = (), operation: str = "query") -> List[tuple]:
        """
        Execute query and fetch all results.

        Returns:
            List of rows
        """
        cursor = self.execute(sql, parameters, operation)
        try:
            return cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreError(self.db_path, operation, cause=e) from e

    @property
    def connection(self) -> Optional[sqlite3.Connection]:
        """Get raw connection object."""
        return self._connection

    def __enter__(self) -> "Database":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


__all__ = ["Database", "MEMORY"]
