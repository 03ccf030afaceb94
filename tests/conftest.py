"""
Pytest configuration and fixtures for photovault tests.
"""

from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from photovault.config import reset_config
from photovault.migrations import DirectoryMigrationSource, VersionLedger, run_all
from photovault.models.database import DatabaseManager
from photovault.models.photo import PhotoRecord
from photovault.services import ConsistencyCoordinator, MetadataStore, ObjectStore

REPO_MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"

# Simple 1x1 pixel PNG image data
SAMPLE_PNG = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010802000000907753de"
    "0000000c4944415408d763f80000000001000100000000004945ae426082"
)


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Set up test environment variables."""
    monkeypatch.setenv("TESTING", "true")
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("PHOTO_STORAGE_PATH", str(tmp_path / "photos"))
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "photos.db"))
    monkeypatch.setenv("MIGRATION_DIR", str(REPO_MIGRATIONS_DIR))
    reset_config()
    yield
    reset_config()


@pytest.fixture
def sample_image_data() -> bytes:
    """Provide sample image data for testing."""
    return SAMPLE_PNG


@pytest.fixture
def repo_migrations_dir() -> Path:
    """The migrations shipped with the repository."""
    return REPO_MIGRATIONS_DIR


@pytest.fixture
def migrations_dir(tmp_path: Path) -> Path:
    """An empty directory for test-specific migration files."""
    directory = tmp_path / "migrations"
    directory.mkdir()
    return directory


@pytest.fixture
def db_manager(tmp_path: Path) -> Generator[DatabaseManager, None, None]:
    """A DatabaseManager on a fresh database file."""
    manager = DatabaseManager(str(tmp_path / "test.db"))
    yield manager
    manager.close()


@pytest.fixture
def ledger(db_manager: DatabaseManager) -> VersionLedger:
    return VersionLedger(db_manager)


@pytest.fixture
def migrated_db(db_manager: DatabaseManager) -> DatabaseManager:
    """A database with every shipped migration applied."""
    run_all(VersionLedger(db_manager), DirectoryMigrationSource(REPO_MIGRATIONS_DIR))
    return db_manager


@pytest.fixture
def object_store(tmp_path: Path) -> ObjectStore:
    return ObjectStore(tmp_path / "photos")


@pytest.fixture
def metadata_store(migrated_db: DatabaseManager) -> MetadataStore:
    return MetadataStore(migrated_db)


@pytest.fixture
def coordinator(object_store: ObjectStore, metadata_store: MetadataStore) -> ConsistencyCoordinator:
    return ConsistencyCoordinator(object_store, metadata_store)


@pytest.fixture
def add_photo(
    object_store: ObjectStore, metadata_store: MetadataStore, sample_image_data: bytes
) -> Callable[..., PhotoRecord]:
    """Factory that stores an Active photo in both stores."""

    def _add_photo(
        photo_id: str | None = None, content: bytes | None = None, filename: str = "photo.png"
    ) -> PhotoRecord:
        content = sample_image_data if content is None else content
        record = PhotoRecord.create_new(
            original_filename=filename,
            file_size=len(content),
            mime_type="image/png",
            width=1,
            height=1,
            photo_id=photo_id,
        )
        object_store.save_photo(record.id, content)
        metadata_store.insert_photo(record)
        return record

    return _add_photo
