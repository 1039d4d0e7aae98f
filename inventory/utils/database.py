"""
Database connection and query utilities

Owns the single SQLite connection of the store and provides helper
methods for queries, writes and explicit transactions.
"""

import sqlite3
from typing import Optional, List, Dict, Any, Tuple, Set
from contextlib import contextmanager
import logging

from inventory.utils.errors import (
    NotInitializedError,
    StorageError,
    UniquenessViolation,
    ReferentialIntegrityError,
)

logger = logging.getLogger(__name__)


def translate_error(error: sqlite3.Error) -> Exception:
    """Map a sqlite3 error onto the store's error taxonomy"""
    message = str(error)
    if isinstance(error, sqlite3.IntegrityError):
        if "UNIQUE" in message:
            return UniquenessViolation(message)
        if "FOREIGN KEY" in message:
            return ReferentialIntegrityError(message)
    return StorageError(message)


class Database:
    """Single-connection manager for the embedded inventory database"""

    def __init__(self, path: str):
        """
        Create an unopened database handle

        Args:
            path: SQLite file path, or ":memory:"
        """
        self.path = path
        self.conn: Optional[sqlite3.Connection] = None

    def connect(self):
        """Open the connection and enable foreign-key enforcement"""
        if self.conn is not None:
            return
        try:
            # Autocommit mode: transactions are opened explicitly so DDL
            # inside a migration rolls back with everything else.
            conn = sqlite3.connect(self.path, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            logger.error(f"Failed to open database {self.path}: {e}")
            raise StorageError(str(e)) from e
        self.conn = conn
        logger.info(f"Database connection opened: {self.path}")

    @property
    def is_connected(self) -> bool:
        return self.conn is not None

    def _connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise NotInitializedError("Database connection is not open")
        return self.conn

    @contextmanager
    def _translated(self):
        try:
            yield
        except sqlite3.Error as e:
            logger.error(f"Database error: {e}")
            raise translate_error(e) from e

    @contextmanager
    def transaction(self):
        """
        Context manager for an atomic unit of work

        Commits on success and rolls back on any exception. Nested use
        joins the outer transaction.

        Usage:
            with db.transaction():
                db.execute_update("UPDATE ...", (...))
                db.execute_insert("INSERT ...", (...))
        """
        conn = self._connection()
        if conn.in_transaction:
            yield conn
            return

        with self._translated():
            conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            with self._translated():
                conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
                logger.debug("Transaction rolled back")
            raise

    def execute_query(
        self,
        query: str,
        params: Tuple = (),
        fetch_one: bool = False
    ) -> Optional[Any]:
        """
        Execute a SELECT query and return results

        Args:
            query: SQL query string
            params: Query parameters
            fetch_one: If True, return single row; otherwise return all rows

        Returns:
            A dict, a list of dicts, or None when fetch_one finds nothing
        """
        conn = self._connection()
        with self._translated():
            cursor = conn.execute(query, params)
            if fetch_one:
                row = cursor.fetchone()
                return dict(row) if row is not None else None
            return [dict(row) for row in cursor.fetchall()]

    def execute_scalar(self, query: str, params: Tuple = ()) -> Any:
        """Execute a query and return the first column of the first row"""
        conn = self._connection()
        with self._translated():
            row = conn.execute(query, params).fetchone()
        return row[0] if row is not None else None

    def execute_update(self, query: str, params: Tuple = ()) -> int:
        """
        Execute an UPDATE/DELETE/DDL statement

        Returns:
            Number of rows affected
        """
        conn = self._connection()
        with self._translated():
            return conn.execute(query, params).rowcount

    def execute_insert(self, query: str, params: Tuple = ()) -> int:
        """
        Execute an INSERT statement

        Returns:
            The rowid of the inserted row
        """
        conn = self._connection()
        with self._translated():
            return conn.execute(query, params).lastrowid

    def execute_many(self, query: str, params_list: List[Tuple]) -> int:
        """
        Execute a statement once per parameter tuple

        Returns:
            Total number of rows affected
        """
        conn = self._connection()
        with self._translated():
            return conn.executemany(query, params_list).rowcount

    def table_exists(self, table: str) -> bool:
        return self.execute_scalar(
            "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table,)
        ) > 0

    def table_columns(self, table: str) -> Set[str]:
        rows = self.execute_query("SELECT name FROM pragma_table_info(?)", (table,))
        return {row["name"] for row in rows}

    def close(self):
        """Close the connection"""
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            logger.info("Database connection closed")
