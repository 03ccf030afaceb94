"""
Soft-delete saga across the object store and the metadata store.

The two stores share no transaction, so a delete is sequenced as:

1. Precondition: the record must be active, otherwise NotFoundError.
2. Prepare: rename the blob into staging. On failure nothing has changed
   and the outcome carries a BackupError.
3. Commit: flip ``deleted_at`` with the conditional update. This is the
   consistency boundary. If the update raises, the stored record is read
   back: still active means the staged blob is renamed back to its primary
   path and the outcome carries a CommitFailure; already deleted means the
   commit went through and the saga carries on. An interrupt gets the same
   read-back before it propagates.
4. Finalize: rename the staged blob into the deleted directory. Failure here
   is only a FinalizeWarning; the record is already deleted and the blob is
   still findable in staging by id.
5. Emit a ``photo_soft_deleted`` event.

Each step reports an explicit value and ``delete`` returns a DeleteOutcome
instead of raising, so callers can tell "nothing happened", "rolled back" and
"deleted with cleanup deferred" apart. ``DeleteOutcome.raise_for_error`` turns
a failed outcome back into its exception.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from ..errors import (
    BackupError,
    CommitFailure,
    DatabaseError,
    FinalizeWarning,
    NotFoundError,
    PhotoVaultError,
    StorageError,
)
from ..logging_config import get_logger, log_performance
from ..models.photo import PhotoRecord, format_timestamp, parse_timestamp, utc_now
from .metadata import MetadataStore
from .storage import ObjectStore


class SagaState(Enum):
    """Where a delete left the photo."""

    ACTIVE = "active"
    BACKED_UP = "backed_up"
    COMMITTED = "committed"
    FINALIZED = "finalized"
    ROLLED_BACK = "rolled_back"


@dataclass
class DeleteOutcome:
    """Result of one ``ConsistencyCoordinator.delete`` call."""

    photo_id: str
    state: SagaState
    original_filename: str | None = None
    deleted_at: datetime | None = None
    backup_path: Path | None = None
    deleted_path: Path | None = None
    error: PhotoVaultError | None = None
    warning: FinalizeWarning | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.state in (SagaState.COMMITTED, SagaState.FINALIZED)

    @property
    def cleanup_deferred(self) -> bool:
        return self.warning is not None

    def raise_for_error(self) -> "DeleteOutcome":
        """Raise the outcome's error, if any; otherwise return self."""
        if self.error is not None:
            raise self.error
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "photo_id": self.photo_id,
            "state": self.state.value,
            "succeeded": self.succeeded,
            "original_filename": self.original_filename,
            "deleted_at": format_timestamp(self.deleted_at) if self.deleted_at else None,
            "backup_path": str(self.backup_path) if self.backup_path else None,
            "deleted_path": str(self.deleted_path) if self.deleted_path else None,
            "error": self.error.get_error_info().to_dict() if self.error else None,
            "warning": self.warning.to_dict() if self.warning else None,
        }


class ConsistencyCoordinator:
    """
    Drives the soft-delete saga.

    Holds no state between calls. Deletes of different ids share nothing but
    the database; deletes of the same id are resolved by the conditional
    update alone.
    """

    def __init__(self, object_store: ObjectStore, metadata_store: MetadataStore, logger: Any = None):
        self.object_store = object_store
        self.metadata_store = metadata_store
        self.logger = logger or get_logger(__name__)

    def delete(self, photo_id: str) -> DeleteOutcome:
        """
        Soft delete a photo across both stores.

        Args:
            photo_id: ID of the photo to delete

        Returns:
            DeleteOutcome describing the terminal state

        Raises:
            DatabaseError: If the precondition lookup itself fails; nothing was touched
        """
        log = self.logger.bind(photo_id=photo_id, operation="soft_delete")
        start_time = time.perf_counter()

        photo = self.metadata_store.get_photo_by_id(photo_id)
        if photo is None:
            log.info("photo_delete_not_found")
            return DeleteOutcome(photo_id=photo_id, state=SagaState.ACTIVE, error=NotFoundError(photo_id))

        backup_path, prepare_error = self._prepare(photo_id, log)
        if prepare_error is not None:
            return DeleteOutcome(
                photo_id=photo_id,
                state=SagaState.ACTIVE,
                original_filename=photo.original_filename,
                error=prepare_error,
            )

        outcome = self._commit(photo, backup_path, log)
        if outcome.state is not SagaState.COMMITTED:
            return outcome

        self._finalize(outcome, log)

        log_performance("soft_delete", time.perf_counter() - start_time, photo_id=photo_id, state=outcome.state.value)
        log.info(
            "photo_soft_deleted",
            original_filename=photo.original_filename,
            deleted_at=format_timestamp(outcome.deleted_at),
            cleanup_deferred=outcome.cleanup_deferred,
        )
        return outcome

    def _prepare(self, photo_id: str, log: Any) -> tuple[Path | None, PhotoVaultError | None]:
        """Move the blob into staging. Returns (backup_path, None) or (None, error)."""
        try:
            backup_path = self.object_store.backup_for_delete(photo_id)
        except StorageError as e:
            if e.code == "source_missing" and self._blob_claimed_by_other_delete(photo_id):
                # Another delete for this id already staged or finalized the blob.
                log.info("photo_delete_lost_race")
                return None, NotFoundError(photo_id)

            log.error("photo_backup_failed", error=str(e), code=e.code)
            return None, BackupError(photo_id, f"Failed to backup photo: {e}", original_exception=e)

        log.debug("photo_delete_prepared", backup_path=str(backup_path))
        return backup_path, None

    def _blob_claimed_by_other_delete(self, photo_id: str) -> bool:
        return bool(self.object_store.find_backups(photo_id)) or self.object_store.deleted_photo_exists(photo_id)

    def _commit(self, photo: PhotoRecord, backup_path: Path, log: Any) -> DeleteOutcome:
        """Run the conditional update, compensating if it does not commit."""
        # Stored timestamps carry millisecond precision.
        deleted_at = parse_timestamp(format_timestamp(utc_now()))

        try:
            changed = self.metadata_store.mark_deleted(photo.id, deleted_at)
        except Exception as e:
            log.error("photo_delete_commit_failed", error=str(e), error_type=type(e).__name__)
            return self._resolve_commit_error(photo, backup_path, e, log)
        except BaseException:
            # The interrupt may land before or after COMMIT; the record decides.
            self._settle_interrupted(photo, backup_path, log)
            raise

        if not changed:
            # Someone else deleted the record between the precondition and now.
            restored = self._restore(photo, backup_path, log)
            return DeleteOutcome(
                photo_id=photo.id,
                state=SagaState.ROLLED_BACK if restored else SagaState.BACKED_UP,
                original_filename=photo.original_filename,
                backup_path=None if restored else backup_path,
                error=NotFoundError(photo.id),
            )

        log.debug("photo_delete_committed", deleted_at=format_timestamp(deleted_at))
        return DeleteOutcome(
            photo_id=photo.id,
            state=SagaState.COMMITTED,
            original_filename=photo.original_filename,
            deleted_at=deleted_at,
            backup_path=backup_path,
        )

    def _resolve_commit_error(
        self, photo: PhotoRecord, backup_path: Path, cause: Exception, log: Any
    ) -> DeleteOutcome:
        """
        Decide the outcome of a commit that raised.

        The error may surface after COMMIT went through, so the stored record
        is read back before the blob is moved anywhere.
        """
        try:
            current = self.metadata_store.get_photo_by_id(photo.id, include_deleted=True)
        except DatabaseError as e:
            log.critical("photo_delete_commit_unresolved", backup_path=str(backup_path), error=str(e))
            return DeleteOutcome(
                photo_id=photo.id,
                state=SagaState.BACKED_UP,
                original_filename=photo.original_filename,
                backup_path=backup_path,
                error=CommitFailure(
                    photo.id,
                    f"Failed to delete photo {photo.id}; outcome unknown, "
                    f"blob left in staging at {backup_path}: {cause}",
                    restored=False,
                    backup_path=str(backup_path),
                    original_exception=cause,
                ),
            )

        if current is not None and current.is_deleted:
            log.warning("photo_delete_committed_despite_error", error=str(cause))
            return DeleteOutcome(
                photo_id=photo.id,
                state=SagaState.COMMITTED,
                original_filename=photo.original_filename,
                deleted_at=current.deleted_at,
                backup_path=backup_path,
            )

        return self._compensate(photo, backup_path, cause, log)

    def _compensate(self, photo: PhotoRecord, backup_path: Path, cause: Exception, log: Any) -> DeleteOutcome:
        restored = self._restore(photo, backup_path, log)
        if restored:
            message = f"Failed to delete photo {photo.id}; blob restored: {cause}"
        else:
            message = f"Failed to delete photo {photo.id}; blob left in staging at {backup_path}: {cause}"

        return DeleteOutcome(
            photo_id=photo.id,
            state=SagaState.ROLLED_BACK if restored else SagaState.BACKED_UP,
            original_filename=photo.original_filename,
            backup_path=None if restored else backup_path,
            error=CommitFailure(
                photo.id,
                message,
                restored=restored,
                backup_path=None if restored else str(backup_path),
                original_exception=cause,
            ),
        )

    def _settle_interrupted(self, photo: PhotoRecord, backup_path: Path, log: Any) -> None:
        """
        Bring the blob in line with the committed record before an interrupt unwinds.

        Deleted record: finalize the blob. Active record: restore it. If the
        record cannot be read the blob stays in staging, findable by id.
        """
        try:
            current = self.metadata_store.get_photo_by_id(photo.id, include_deleted=True)
        except DatabaseError as e:
            log.critical("photo_delete_interrupted_unresolved", backup_path=str(backup_path), error=str(e))
            return

        if current is not None and current.is_deleted:
            outcome = DeleteOutcome(
                photo_id=photo.id,
                state=SagaState.COMMITTED,
                original_filename=photo.original_filename,
                deleted_at=current.deleted_at,
                backup_path=backup_path,
            )
            self._finalize(outcome, log)
            log.warning("photo_delete_interrupted_after_commit", state=outcome.state.value)
            return

        self._restore(photo, backup_path, log)

    def _restore(self, photo: PhotoRecord, backup_path: Path, log: Any) -> bool:
        try:
            self.object_store.restore_from_backup(backup_path, photo.id)
        except StorageError as e:
            log.critical("photo_restore_failed", backup_path=str(backup_path), error=str(e))
            return False

        log.warning("photo_delete_rolled_back", backup_path=str(backup_path))
        return True

    def _finalize(self, outcome: DeleteOutcome, log: Any) -> None:
        """Move the staged blob to the deleted directory, downgrading failure to a warning."""
        try:
            outcome.deleted_path = self.object_store.move_to_deleted(outcome.backup_path, outcome.photo_id)
        except StorageError as e:
            outcome.warning = FinalizeWarning(
                photo_id=outcome.photo_id,
                backup_path=str(outcome.backup_path),
                message=f"Failed to move to deleted dir: {e}",
            )
            log.warning("photo_finalize_deferred", **outcome.warning.to_dict())
            return

        outcome.backup_path = None
        outcome.state = SagaState.FINALIZED
