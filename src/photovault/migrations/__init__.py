"""
Schema migrations for photovault.

- DirectoryMigrationSource: discovers ``<digits>_<name>.<ext>`` scripts
- VersionLedger: the append-only schema_migrations table
- SchemaMigrator / run_all: applies pending migrations in numeric order
"""

from .ledger import LEDGER_TABLE, VersionLedger
from .migrator import MigrationReport, MigrationSource, SchemaMigrator, run_all
from .source import DirectoryMigrationSource, StaticMigrationSource, parse_migration_filename

__all__ = [
    "LEDGER_TABLE",
    "DirectoryMigrationSource",
    "MigrationReport",
    "MigrationSource",
    "SchemaMigrator",
    "StaticMigrationSource",
    "VersionLedger",
    "parse_migration_filename",
    "run_all",
]
