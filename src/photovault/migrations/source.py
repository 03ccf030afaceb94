"""
Migration discovery.

A migration source yields ``Migration`` objects in whatever order it finds
them; the migrator never relies on that order. Filenames must look like
``<digits>_<name>.<ext>`` (for example ``002_add_deleted_at.sql``). Anything
else is skipped and reported as a ``MigrationParseWarning``.
"""

import re
from pathlib import Path

from ..errors import MigrationError, MigrationParseWarning
from ..logging_config import get_logger
from ..models.migration import Migration

logger = get_logger(__name__)

MIGRATION_FILENAME_PATTERN = re.compile(r"^(?P<version>\d+)_(?P<name>.+)\.(?P<ext>[A-Za-z0-9]+)$")


def parse_migration_filename(filename: str) -> tuple[str, str] | None:
    """
    Split a migration filename into ``(version, name)``.

    Returns:
        The version and name, or None if the filename does not match
    """
    match = MIGRATION_FILENAME_PATTERN.match(filename)
    if match is None:
        return None
    return match.group("version"), match.group("name")


class DirectoryMigrationSource:
    """Loads migration scripts from a directory of files."""

    def __init__(self, migrations_dir: str | Path, encoding: str = "utf-8"):
        self.migrations_dir = Path(migrations_dir)
        self.encoding = encoding
        self.warnings: list[MigrationParseWarning] = []

    def load(self) -> list[Migration]:
        """
        Read every well-formed migration file in the directory.

        Warnings from the previous call are discarded.

        Returns:
            Migrations in directory enumeration order

        Raises:
            MigrationError: If the directory is missing or a file cannot be read
        """
        if not self.migrations_dir.is_dir():
            raise MigrationError(
                f"Migrations directory not found: {self.migrations_dir}",
                code="migrations_dir_missing",
                details={"migrations_dir": str(self.migrations_dir)},
            )

        self.warnings = []
        migrations = []

        for path in self.migrations_dir.iterdir():
            if not path.is_file():
                continue

            parsed = parse_migration_filename(path.name)
            if parsed is None:
                warning = MigrationParseWarning(filename=path.name)
                self.warnings.append(warning)
                logger.warning("migration_file_skipped", **warning.to_dict())
                continue

            version, name = parsed
            try:
                script = path.read_text(encoding=self.encoding)
            except (OSError, UnicodeDecodeError) as e:
                raise MigrationError(
                    f"Failed to read migration file {path.name}: {e}",
                    code="migration_read_failed",
                    details={"filename": path.name},
                    original_exception=e,
                ) from e

            migrations.append(Migration(version=version, name=name, script=script))

        logger.info(
            "migrations_discovered",
            migrations_dir=str(self.migrations_dir),
            count=len(migrations),
            skipped=len(self.warnings),
        )
        return migrations


class StaticMigrationSource:
    """Serves a fixed list of migrations, for embedding or testing."""

    def __init__(self, migrations: list[Migration], warnings: list[MigrationParseWarning] | None = None):
        self._migrations = list(migrations)
        self.warnings = list(warnings or [])

    def load(self) -> list[Migration]:
        return list(self._migrations)
