"""
Versioned schema migrator.

``SchemaMigrator.run_all`` brings the relational schema up to date at
startup. Pending migrations are derived from the ledger on every call and
applied in ascending numeric version order, each in its own transaction:

    BEGIN -> execute script -> insert ledger row -> COMMIT

A failure in either step rolls the whole migration back, so the ledger never
names a migration whose script did not fully succeed. Scripts must not contain
their own transaction control (BEGIN, COMMIT, ROLLBACK); such a script is
rejected before any of it runs. The first failure is raised as
``MigrationApplyError`` and nothing after it is attempted.
"""

import time
from dataclasses import dataclass, field
from typing import Any

import duckdb

from ..errors import MigrationApplyError, MigrationError, MigrationParseWarning
from ..logging_config import get_logger, log_performance
from ..models.migration import Migration
from .ledger import VersionLedger
from .source import DirectoryMigrationSource, StaticMigrationSource

# Sources expose load() -> list[Migration] and a warnings list.
MigrationSource = DirectoryMigrationSource | StaticMigrationSource


@dataclass
class MigrationReport:
    """Outcome of one successful ``run_all`` call."""

    discovered: list[str] = field(default_factory=list)
    already_applied: list[str] = field(default_factory=list)
    applied: list[str] = field(default_factory=list)
    warnings: list[MigrationParseWarning] = field(default_factory=list)

    @property
    def up_to_date(self) -> bool:
        """True when this run had nothing to apply."""
        return not self.applied

    def to_dict(self) -> dict[str, Any]:
        return {
            "discovered": self.discovered,
            "already_applied": self.already_applied,
            "applied": self.applied,
            "warnings": [warning.to_dict() for warning in self.warnings],
        }


class SchemaMigrator:
    """Applies pending migrations from a source against a ledger."""

    def __init__(self, ledger: VersionLedger, logger: Any = None):
        self.ledger = ledger
        self.logger = logger or get_logger(__name__)

    def plan(self, migrations: list[Migration]) -> tuple[list[Migration], list[str]]:
        """
        Work out which migrations still need to run.

        Args:
            migrations: Discovered migrations, in any order

        Returns:
            (pending migrations in numeric order, versions already applied)

        Raises:
            MigrationError: On duplicate versions, or when an applied version
                sits after a pending one
        """
        ordered = sorted(migrations, key=lambda migration: migration.sort_key)

        seen: dict[int, Migration] = {}
        for migration in ordered:
            if migration.sort_key in seen:
                other = seen[migration.sort_key]
                raise MigrationError(
                    f"Duplicate migration version: {other.label} and {migration.label}",
                    code="migration_version_duplicate",
                    details={"version": migration.version},
                )
            seen[migration.sort_key] = migration

        applied_entries = self.ledger.entries()
        applied_keys = {entry.sort_key for entry in applied_entries}

        for entry in applied_entries:
            if entry.sort_key not in seen:
                self.logger.warning("applied_migration_not_discovered", version=entry.version, name=entry.name)

        pending: list[Migration] = []
        already_applied: list[str] = []
        for migration in ordered:
            if migration.sort_key in applied_keys:
                if pending:
                    raise MigrationError(
                        f"Migration {pending[0].label} is pending but later migration "
                        f"{migration.label} is already applied",
                        code="migration_out_of_order",
                        details={"pending_version": pending[0].version, "applied_version": migration.version},
                    )
                already_applied.append(migration.version)
            else:
                pending.append(migration)

        return pending, already_applied

    def apply(self, migration: Migration) -> None:
        """
        Apply a single migration in its own transaction.

        Raises:
            MigrationApplyError: If the script or the ledger insert fails, or the
                script contains transaction control statements
        """
        self.logger.info("migration_applying", version=migration.version, name=migration.name)
        start_time = time.perf_counter()
        step = "begin"

        try:
            with self.ledger.db_manager.transaction() as cursor:
                step = "script"
                if migration.script.strip():
                    self._reject_transaction_control(cursor, migration)
                    cursor.execute(migration.script)
                step = "ledger"
                self.ledger.record(cursor, migration)
                step = "commit"
        except duckdb.Error as e:
            messages = {
                "begin": "Failed to begin transaction",
                "script": "Migration SQL failed",
                "ledger": "Failed to record migration",
                "commit": "Failed to commit migration",
            }
            raise MigrationApplyError(
                f"{messages[step]} for {migration.label}: {e}",
                version=migration.version,
                name=migration.name,
                original_exception=e,
            ) from e

        duration = time.perf_counter() - start_time
        log_performance("apply_migration", duration, version=migration.version, name=migration.name)
        self.logger.info("migration_applied", version=migration.version, name=migration.name)

    @staticmethod
    def _reject_transaction_control(cursor: duckdb.DuckDBPyConnection, migration: Migration) -> None:
        # A COMMIT inside the script would end the migration's transaction early.
        for statement in cursor.extract_statements(migration.script):
            if statement.type == duckdb.StatementType.TRANSACTION:
                raise MigrationApplyError(
                    f"Migration SQL for {migration.label} must not contain transaction control statements",
                    version=migration.version,
                    name=migration.name,
                )

    def run_all(self, source: MigrationSource) -> MigrationReport:
        """
        Apply every pending migration from ``source``.

        Running this twice in a row is a no-op the second time.

        Returns:
            Report of what was discovered, skipped and applied

        Raises:
            MigrationError: If discovery or planning fails
            MigrationApplyError: On the first migration that fails to apply
        """
        self.logger.info("migrations_checking")
        self.ledger.initialize()

        migrations = source.load()
        pending, already_applied = self.plan(migrations)

        report = MigrationReport(
            discovered=[migration.version for migration in sorted(migrations, key=lambda m: m.sort_key)],
            already_applied=already_applied,
            warnings=list(getattr(source, "warnings", [])),
        )

        self.logger.info("migrations_already_applied", count=len(already_applied))

        if not pending:
            self.logger.info("database_up_to_date")
            return report

        self.logger.info("migrations_pending", count=len(pending), versions=[m.version for m in pending])

        for migration in pending:
            self.apply(migration)
            report.applied.append(migration.version)

        self.logger.info("migrations_complete", applied=report.applied)
        return report


def run_all(ledger: VersionLedger, source: MigrationSource, logger: Any = None) -> MigrationReport:
    """Apply every pending migration from ``source`` to the ledger's database."""
    return SchemaMigrator(ledger, logger=logger).run_all(source)
