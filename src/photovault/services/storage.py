"""Storage service for flat-file photo blobs.

Layout under the storage root:

    <root>/<id>                          active blobs
    <root>/backups/<id>.backup.<ts>      staging for deletes in flight
    <root>/deleted/<id>                  resting place of deleted blobs

Every relocation is a single ``os.replace`` call, which is atomic only when
source and destination share a filesystem. All three locations therefore live
under one root.
"""

import errno
import glob
import os
import time
import uuid
from pathlib import Path

from ..errors import StorageError
from ..logging_config import get_logger

logger = get_logger(__name__)

BACKUP_DIR_NAME = "backups"
DELETED_DIR_NAME = "deleted"


class ObjectStore:
    """Service for blob operations on the local filesystem."""

    def __init__(self, storage_path: str | Path, create_directories: bool = True) -> None:
        """
        Initialize the object store.

        Args:
            storage_path: Root directory holding active blobs
            create_directories: Create the root, staging and deleted directories if absent

        Raises:
            StorageError: If a required path exists but is not a directory
        """
        self.root = Path(storage_path)
        self.backup_dir = self.root / BACKUP_DIR_NAME
        self.deleted_dir = self.root / DELETED_DIR_NAME

        if create_directories:
            self.ensure_directories()

        logger.info(
            "object_store_initialized",
            root=str(self.root),
            backup_dir=str(self.backup_dir),
            deleted_dir=str(self.deleted_dir),
        )

    def ensure_directories(self) -> None:
        """Create the storage root and its staging and deleted subdirectories."""
        for directory in (self.root, self.backup_dir, self.deleted_dir):
            if directory.exists() and not directory.is_dir():
                raise StorageError(
                    f"Path exists but is not a directory: {directory}",
                    code="not_a_directory",
                    details={"path": str(directory)},
                )
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(
                    f"Failed to create directory '{directory}': {e}",
                    code="directory_create_failed",
                    details={"path": str(directory)},
                    original_exception=e,
                ) from e

    @staticmethod
    def generate_id() -> str:
        """Generate a new photo ID."""
        return str(uuid.uuid4())

    def _validate_id(self, photo_id: str) -> str:
        """
        Reject IDs that could escape the storage root or collide with store internals.

        Returns:
            str: The validated ID
        """
        if (
            not photo_id
            or photo_id.startswith(".")
            or Path(photo_id).name != photo_id
            or photo_id in (BACKUP_DIR_NAME, DELETED_DIR_NAME)
        ):
            raise StorageError(
                f"Invalid photo id: {photo_id!r}", code="invalid_photo_id", details={"photo_id": photo_id}
            )
        return photo_id

    def get_file_path(self, photo_id: str) -> Path:
        """Primary location of an active blob."""
        return self.root / self._validate_id(photo_id)

    def get_backup_path(self, photo_id: str, timestamp: float) -> Path:
        """Staging location for a blob whose delete is in flight."""
        return self.backup_dir / f"{self._validate_id(photo_id)}.backup.{timestamp:.6f}"

    def get_deleted_path(self, photo_id: str) -> Path:
        """Terminal location of a deleted blob."""
        return self.deleted_dir / self._validate_id(photo_id)

    def save_photo(self, photo_id: str, content: bytes) -> Path:
        """
        Write blob bytes to the primary location.

        The bytes go to a temporary file first and are renamed into place, so
        readers never see a partially written blob.

        Raises:
            StorageError: If the write fails
        """
        file_path = self.get_file_path(photo_id)
        temp_path = self.root / f".{photo_id}.{uuid.uuid4().hex}.tmp"

        try:
            with open(temp_path, "wb") as f:
                f.write(content)
            os.replace(temp_path, file_path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StorageError(
                f"Failed to save photo '{photo_id}': {e}",
                code="save_failed",
                details={"photo_id": photo_id},
                original_exception=e,
            ) from e

        logger.info("photo_saved", photo_id=photo_id, file_size=len(content))
        return file_path

    def read_photo(self, photo_id: str) -> bytes:
        """
        Read blob bytes from the primary location.

        Raises:
            StorageError: If the blob is missing or unreadable
        """
        file_path = self.get_file_path(photo_id)
        try:
            return file_path.read_bytes()
        except FileNotFoundError as e:
            raise StorageError(
                f"Photo file not found: {photo_id}",
                code="photo_file_not_found",
                details={"photo_id": photo_id},
                original_exception=e,
            ) from e
        except OSError as e:
            raise StorageError(
                f"Failed to read photo '{photo_id}': {e}",
                code="read_failed",
                details={"photo_id": photo_id},
                original_exception=e,
            ) from e

    def photo_exists(self, photo_id: str) -> bool:
        """Check whether an active blob exists for ``photo_id``."""
        return self.get_file_path(photo_id).is_file()

    def deleted_photo_exists(self, photo_id: str) -> bool:
        """Check whether a finalized deleted blob exists for ``photo_id``."""
        return self.get_deleted_path(photo_id).is_file()

    def get_file_size(self, photo_id: str) -> int:
        """Size in bytes of the active blob."""
        try:
            return self.get_file_path(photo_id).stat().st_size
        except OSError as e:
            raise StorageError(
                f"Failed to stat photo '{photo_id}': {e}",
                code="stat_failed",
                details={"photo_id": photo_id},
                original_exception=e,
            ) from e

    def _relocate(self, source: Path, destination: Path, photo_id: str, operation: str) -> None:
        try:
            os.replace(source, destination)
        except FileNotFoundError as e:
            raise StorageError(
                f"Failed to {operation} photo '{photo_id}': source missing: {source}",
                code="source_missing",
                details={"photo_id": photo_id, "source": str(source), "destination": str(destination)},
                original_exception=e,
            ) from e
        except OSError as e:
            code = "cross_device" if e.errno == errno.EXDEV else f"{operation}_failed"
            raise StorageError(
                f"Failed to {operation} photo '{photo_id}': {e}",
                code=code,
                details={"photo_id": photo_id, "source": str(source), "destination": str(destination)},
                original_exception=e,
            ) from e

        logger.debug(
            "photo_relocated", photo_id=photo_id, operation=operation, source=str(source), destination=str(destination)
        )

    def backup_for_delete(self, photo_id: str, timestamp: float | None = None) -> Path:
        """
        Move an active blob into staging.

        Args:
            photo_id: ID of the blob to stage
            timestamp: Seconds since the epoch embedded in the staging filename

        Returns:
            Path: The staging path now holding the blob

        Raises:
            StorageError: ``source_missing`` if there is no active blob, or
                another code if the rename fails
        """
        backup_path = self.get_backup_path(photo_id, time.time() if timestamp is None else timestamp)
        self._relocate(self.get_file_path(photo_id), backup_path, photo_id, "backup")
        logger.info("photo_backed_up", photo_id=photo_id, backup_path=str(backup_path))
        return backup_path

    def restore_from_backup(self, backup_path: Path, photo_id: str) -> Path:
        """
        Move a staged blob back to its primary location.

        Raises:
            StorageError: If the rename fails
        """
        file_path = self.get_file_path(photo_id)
        self._relocate(Path(backup_path), file_path, photo_id, "restore")
        logger.info("photo_restored", photo_id=photo_id, backup_path=str(backup_path))
        return file_path

    def move_to_deleted(self, backup_path: Path, photo_id: str) -> Path:
        """
        Move a staged blob to the deleted-objects directory.

        Raises:
            StorageError: If the rename fails
        """
        deleted_path = self.get_deleted_path(photo_id)
        self._relocate(Path(backup_path), deleted_path, photo_id, "finalize")
        logger.info("photo_moved_to_deleted", photo_id=photo_id, deleted_path=str(deleted_path))
        return deleted_path

    def find_backups(self, photo_id: str) -> list[Path]:
        """
        Staged blobs for ``photo_id``, oldest first.

        A blob stays here when a delete committed but could not be finalized.
        """
        pattern = f"{glob.escape(self._validate_id(photo_id))}.backup.*"
        backups = []
        for path in self.backup_dir.glob(pattern):
            try:
                timestamp = float(path.name.rsplit(".backup.", 1)[1])
            except ValueError:
                continue
            if path.is_file():
                backups.append((timestamp, path))
        return [path for _, path in sorted(backups)]
