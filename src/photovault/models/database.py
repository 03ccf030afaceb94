"""
Database connection and transaction management for photovault.

This module wraps a DuckDB database file. Short reads go through
``execute_query``; anything that mutates state runs inside ``transaction()``,
which gives the caller its own cursor for the lifetime of one transaction.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import duckdb

from ..logging_config import get_logger

logger = get_logger(__name__)

# Columns that must be present once every shipped migration has run.
REQUIRED_PHOTO_COLUMNS = {
    "id",
    "original_filename",
    "date_taken",
    "file_size",
    "width",
    "height",
    "mime_type",
    "created_at",
    "deleted_at",
}


class DatabaseManager:
    """
    Manages DuckDB database connections and transactions.
    """

    def __init__(self, db_path: str):
        """
        Initialize DatabaseManager.

        Args:
            db_path: Path to the DuckDB database file, or ":memory:"
        """
        self.db_path = db_path
        self._connection: duckdb.DuckDBPyConnection | None = None
        self._connect_lock = threading.Lock()

    def connect(self) -> duckdb.DuckDBPyConnection:
        """
        Get or create the shared database connection.

        Returns:
            DuckDB connection object
        """
        if self._connection is None:
            with self._connect_lock:
                if self._connection is None:
                    if self.db_path != ":memory:":
                        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                    self._connection = duckdb.connect(self.db_path)
                    logger.info("database_connected", db_path=self.db_path)

        return self._connection

    def close(self) -> None:
        """Close the database connection."""
        with self._connect_lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.info("database_connection_closed", db_path=self.db_path)

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Run a block inside one transaction on a dedicated cursor.

        The transaction begins before the block runs. It commits when the
        block returns and rolls back when the block raises, including when
        COMMIT itself fails. The cursor is closed either way.

        Yields:
            Cursor bound to the open transaction

        Raises:
            duckdb.Error: If BEGIN, any statement, or COMMIT fails
        """
        cursor = self.connect().cursor()
        try:
            cursor.execute("BEGIN TRANSACTION")
            try:
                yield cursor
                cursor.execute("COMMIT")
            except BaseException:
                self._rollback(cursor)
                raise
        finally:
            cursor.close()

    def _rollback(self, cursor: duckdb.DuckDBPyConnection) -> None:
        try:
            cursor.execute("ROLLBACK")
            logger.debug("transaction_rolled_back", db_path=self.db_path)
        except duckdb.Error as e:
            # DuckDB ends the transaction itself when COMMIT fails.
            logger.debug("transaction_rollback_skipped", db_path=self.db_path, error=str(e))

    def execute_query(self, query: str, parameters: tuple | None = None) -> list[tuple]:
        """
        Execute a SQL query on a fresh cursor and return results.

        Args:
            query: SQL query string
            parameters: Optional query parameters

        Returns:
            List of result tuples

        Raises:
            duckdb.Error: If query execution fails
        """
        cursor = self.connect().cursor()

        try:
            if parameters:
                result = cursor.execute(query, parameters)
            else:
                result = cursor.execute(query)

            return result.fetchall()

        except duckdb.Error as e:
            logger.error("query_failed", query=query, error=str(e))
            raise
        finally:
            cursor.close()

    def table_exists(self, table_name: str) -> bool:
        """Check whether a table exists in the main schema."""
        result = self.execute_query(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = 'main' AND table_name = ?",
            (table_name,),
        )
        return bool(result)

    def get_table_info(self, table_name: str = "photos") -> list[dict]:
        """
        Get information about a table's structure.

        Returns:
            List of dictionaries containing column information
        """
        try:
            columns = self.execute_query(f"PRAGMA table_info('{table_name}')")
            return [
                {
                    "cid": col[0],
                    "name": col[1],
                    "type": col[2],
                    "notnull": bool(col[3]),
                    "default_value": col[4],
                    "pk": bool(col[5]),
                }
                for col in columns
            ]
        except duckdb.Error as e:
            logger.error("table_info_failed", table=table_name, error=str(e))
            return []

    def verify_schema(self) -> bool:
        """
        Verify that the photos table carries every column the stores rely on.

        Returns:
            True if schema is valid, False otherwise
        """
        try:
            if not self.table_exists("photos"):
                logger.warning("photos_table_missing", db_path=self.db_path)
                return False

            column_names = {column["name"] for column in self.get_table_info("photos")}
            missing_columns = REQUIRED_PHOTO_COLUMNS - column_names
            if missing_columns:
                logger.warning("photos_columns_missing", missing_columns=sorted(missing_columns))
                return False

            logger.info("schema_verification_successful", db_path=self.db_path)
            return True

        except duckdb.Error as e:
            logger.error("schema_verification_failed", error=str(e))
            return False

    def __enter__(self) -> "DatabaseManager":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()
