"""
Command line tasks for photovault.

Run through the ``photovault`` console script, for example:

    photovault migrate --env-file .env
    photovault status
    photovault delete 3f0c2a52-7c6e-4f5e-9a55-1f3f1b9d8f10
"""

import os

from dotenv import load_dotenv
from invoke import Collection, Context, Program, task
from invoke.exceptions import Exit

from .. import __version__
from ..bootstrap import initialize_application
from ..config import get_config, reset_config
from ..errors import ConfigurationError, DatabaseError, MigrationError, StorageError
from ..logging_config import configure_structured_logging, get_logger
from ..migrations import DirectoryMigrationSource, SchemaMigrator, VersionLedger
from ..models.database import DatabaseManager

logger = get_logger(__name__)


def _load_environment(env_file: str) -> None:
    """Load a dotenv file if present, then (re)configure logging and settings."""
    if env_file and os.path.exists(env_file):
        load_dotenv(dotenv_path=env_file)
        env_loaded = True
    else:
        env_loaded = False

    reset_config()
    configure_structured_logging()

    if env_loaded:
        logger.info("environment_loaded", env_file=env_file)
    else:
        logger.warning("environment_file_not_found", env_file=env_file)


@task(help={"env_file": "Path to the environment file. Default is '.env'."})
def migrate(c: Context, env_file: str = ".env"):
    """
    Apply all pending database migrations.

    Exits with status 1 if any migration fails; nothing after the failing
    migration is attempted.
    """
    _load_environment(env_file)

    try:
        with initialize_application() as app:
            report = app.migration_report
    except (ConfigurationError, DatabaseError, MigrationError, StorageError) as e:
        raise Exit(f"Migration failed: {e}", code=1) from e

    logger.info("migrate_finished", **report.to_dict())


@task(help={"env_file": "Path to the environment file. Default is '.env'."})
def status(c: Context, env_file: str = ".env"):
    """Show applied migrations and any that are still pending, without applying them."""
    _load_environment(env_file)
    config = get_config()

    try:
        with DatabaseManager(config.database_path) as db_manager:
            ledger = VersionLedger(db_manager)
            source = DirectoryMigrationSource(config.migrations_dir)
            pending, _ = SchemaMigrator(ledger).plan(source.load())
            entries = ledger.entries()
    except (ConfigurationError, DatabaseError, MigrationError) as e:
        raise Exit(f"Status check failed: {e}", code=1) from e

    for entry in entries:
        logger.info("migration_status", version=entry.version, name=entry.name, applied_at=entry.applied_at.isoformat())
    for migration in pending:
        logger.info("migration_status", version=migration.version, name=migration.name, applied_at=None)
    for warning in source.warnings:
        logger.warning("migration_status_skipped_file", **warning.to_dict())

    logger.info("migration_status_summary", applied=len(entries), pending=len(pending))


@task(help={"photo_id": "ID of the photo to delete.", "env_file": "Path to the environment file. Default is '.env'."})
def delete(c: Context, photo_id: str, env_file: str = ".env"):
    """
    Soft delete one photo.

    Exits with status 1 when the photo is not found or the delete was rolled
    back. A delete whose final cleanup was deferred still counts as success.
    """
    _load_environment(env_file)

    try:
        with initialize_application() as app:
            outcome = app.coordinator.delete(photo_id)
    except (ConfigurationError, DatabaseError, MigrationError, StorageError) as e:
        raise Exit(f"Delete failed: {e}", code=1) from e

    logger.info("delete_finished", **outcome.to_dict())
    if not outcome.succeeded:
        raise Exit(f"Delete failed: {outcome.error}", code=1)


namespace = Collection(migrate, status, delete)
program = Program(namespace=namespace, version=__version__, name="photovault", binary="photovault")
