"""
Application startup for photovault.

Startup is strictly ordered: storage directories are prepared, then every
pending migration is applied. Only after the schema is current are the stores
and the delete coordinator handed out. A migration failure aborts startup.
"""

from dataclasses import dataclass

from .config import Config, get_config
from .errors import DatabaseError, MigrationError
from .logging_config import get_logger
from .migrations import DirectoryMigrationSource, MigrationReport, VersionLedger, run_all
from .models.database import DatabaseManager
from .services import ConsistencyCoordinator, MetadataStore, ObjectStore

logger = get_logger(__name__)


@dataclass
class Application:
    """Wired stores for a running service."""

    db_manager: DatabaseManager
    ledger: VersionLedger
    object_store: ObjectStore
    metadata_store: MetadataStore
    coordinator: ConsistencyCoordinator
    migration_report: MigrationReport

    def close(self) -> None:
        self.db_manager.close()

    def __enter__(self) -> "Application":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def migrate_database(db_manager: DatabaseManager, migrations_dir: str) -> MigrationReport:
    """
    Bring the database schema up to date.

    Raises:
        MigrationError: If any migration fails or the resulting schema is incomplete
    """
    ledger = VersionLedger(db_manager)
    report = run_all(ledger, DirectoryMigrationSource(migrations_dir))

    if not db_manager.verify_schema():
        raise MigrationError(
            "Database schema is incomplete after migrations",
            code="schema_incomplete",
            details={"db_path": db_manager.db_path, "migrations_dir": migrations_dir},
        )
    return report


def initialize_application(
    config: Config | None = None,
    photo_storage_path: str | None = None,
    database_path: str | None = None,
    migrations_dir: str | None = None,
) -> Application:
    """
    Prepare storage, migrate the database and wire the services.

    Explicit arguments override the corresponding configuration values.

    Raises:
        ConfigurationError: If required configuration is missing
        StorageError: If the storage directories cannot be prepared
        MigrationError: If the schema cannot be brought up to date
    """
    config = config or get_config()
    photo_storage_path = photo_storage_path or config.photo_storage_path
    database_path = database_path or config.database_path
    migrations_dir = migrations_dir or config.migrations_dir

    logger.info(
        "application_initializing",
        photo_storage_path=photo_storage_path,
        database_path=database_path,
        migrations_dir=migrations_dir,
    )

    object_store = ObjectStore(photo_storage_path)
    db_manager = DatabaseManager(database_path)

    try:
        report = migrate_database(db_manager, migrations_dir)
    except (MigrationError, DatabaseError) as e:
        logger.critical("startup_aborted", reason="migration_failed", error=str(e))
        db_manager.close()
        raise

    metadata_store = MetadataStore(db_manager)
    application = Application(
        db_manager=db_manager,
        ledger=VersionLedger(db_manager),
        object_store=object_store,
        metadata_store=metadata_store,
        coordinator=ConsistencyCoordinator(object_store, metadata_store),
        migration_report=report,
    )

    logger.info("application_initialized", migrations_applied=report.applied)
    return application
