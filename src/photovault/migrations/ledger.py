"""
Durable record of applied schema migrations.

The ledger is the ``schema_migrations`` table. Rows are only ever inserted,
one per migration, inside the same transaction that ran the migration's
script, so a row exists if and only if that script committed.
"""

from datetime import datetime

import duckdb

from ..errors import DatabaseError
from ..logging_config import get_logger
from ..models.database import DatabaseManager
from ..models.migration import LedgerEntry, Migration, version_key
from ..models.photo import format_timestamp, parse_timestamp, utc_now

logger = get_logger(__name__)

LEDGER_TABLE = "schema_migrations"

LEDGER_TABLE_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} (
    version TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    applied_at TEXT NOT NULL
);
"""


class VersionLedger:
    """Reads and appends rows of the schema_migrations table."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def initialize(self) -> None:
        """
        Create the ledger table if it does not exist.

        Raises:
            DatabaseError: If the table cannot be created
        """
        try:
            with self.db_manager.transaction() as cursor:
                cursor.execute(LEDGER_TABLE_SCHEMA)
            logger.info("migration_ledger_initialized", table=LEDGER_TABLE)
        except duckdb.Error as e:
            raise DatabaseError(
                f"Failed to create {LEDGER_TABLE} table: {e}",
                code="ledger_init_failed",
                original_exception=e,
            ) from e

    def entries(self) -> list[LedgerEntry]:
        """
        All applied migrations, ascending by numeric version.

        A database without the ledger table has nothing applied; reading does
        not create it.

        Raises:
            DatabaseError: If the ledger cannot be read
        """
        try:
            if not self.db_manager.table_exists(LEDGER_TABLE):
                return []
            rows = self.db_manager.execute_query(f"SELECT version, name, applied_at FROM {LEDGER_TABLE}")
        except duckdb.Error as e:
            raise DatabaseError(
                f"Failed to query applied migrations: {e}",
                code="ledger_read_failed",
                original_exception=e,
            ) from e

        entries = [LedgerEntry(version=row[0], name=row[1], applied_at=parse_timestamp(row[2])) for row in rows]
        return sorted(entries, key=lambda entry: entry.sort_key)

    def applied_versions(self) -> list[str]:
        """Applied version strings, ascending by numeric version."""
        return [entry.version for entry in self.entries()]

    def is_applied(self, version: str) -> bool:
        key = version_key(version)
        return any(entry.sort_key == key for entry in self.entries())

    def record(
        self, cursor: duckdb.DuckDBPyConnection, migration: Migration, applied_at: datetime | None = None
    ) -> None:
        """
        Append a ledger row using the caller's open transaction.

        Raises:
            duckdb.Error: If the insert fails; the caller's transaction decides the outcome
        """
        cursor.execute(
            f"INSERT INTO {LEDGER_TABLE} (version, name, applied_at) VALUES (?, ?, ?)",
            (migration.version, migration.name, format_timestamp(applied_at or utc_now())),
        )
