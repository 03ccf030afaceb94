"""
Unit tests for the soft-delete coordinator.
"""

from unittest.mock import MagicMock, patch

import pytest

from photovault.errors import (
    BackupError,
    CommitFailure,
    DatabaseError,
    FinalizeWarning,
    NotFoundError,
    StorageError,
)
from photovault.services.coordinator import ConsistencyCoordinator, DeleteOutcome, SagaState


class TestDeleteSuccess:
    """Test cases for deletes that run to completion."""

    def test_delete_finalizes(self, coordinator, add_photo, object_store, metadata_store, sample_image_data):
        """A clean delete moves the blob to deleted/ and hides the record."""
        add_photo("abc", filename="beach.png")

        outcome = coordinator.delete("abc")

        assert outcome.succeeded is True
        assert outcome.state is SagaState.FINALIZED
        assert outcome.error is None
        assert outcome.warning is None
        assert outcome.original_filename == "beach.png"
        assert outcome.backup_path is None
        assert outcome.deleted_path == object_store.get_deleted_path("abc")
        assert outcome.deleted_path.read_bytes() == sample_image_data
        assert object_store.photo_exists("abc") is False
        assert object_store.find_backups("abc") == []
        assert metadata_store.get_photo_by_id("abc") is None

    def test_deleted_at_matches_stored_value(self, coordinator, add_photo, metadata_store):
        """The outcome reports the timestamp that was committed."""
        add_photo("abc")

        outcome = coordinator.delete("abc")

        stored = metadata_store.get_photo_by_id("abc", include_deleted=True)
        assert stored.deleted_at == outcome.deleted_at
        assert outcome.deleted_at.microsecond % 1000 == 0

    def test_delete_leaves_other_photos(self, coordinator, add_photo, object_store, metadata_store):
        """Deleting one photo does not touch another."""
        add_photo("abc")
        add_photo("def")

        coordinator.delete("abc")

        assert object_store.photo_exists("def") is True
        assert metadata_store.get_photo_by_id("def") is not None

    def test_completion_event_logged(self, object_store, metadata_store, add_photo):
        """The injected logger receives the completion event."""
        logger = MagicMock()
        coordinator = ConsistencyCoordinator(object_store, metadata_store, logger=logger)
        add_photo("abc", filename="beach.png")

        outcome = coordinator.delete("abc")

        logger.bind.assert_called_once_with(photo_id="abc", operation="soft_delete")
        bound = logger.bind.return_value
        bound.info.assert_any_call(
            "photo_soft_deleted",
            original_filename="beach.png",
            deleted_at=outcome.to_dict()["deleted_at"],
            cleanup_deferred=False,
        )

    def test_to_dict(self, coordinator, add_photo):
        """The outcome serializes to plain values."""
        add_photo("abc")

        data = coordinator.delete("abc").to_dict()

        assert data["state"] == "finalized"
        assert data["succeeded"] is True
        assert data["deleted_at"].endswith("Z")
        assert data["error"] is None


class TestDeleteNotFound:
    """Test cases for deletes of absent or already deleted photos."""

    def test_unknown_id(self, coordinator, object_store):
        """Nothing is mutated for an id that was never stored."""
        outcome = coordinator.delete("zzz")

        assert outcome.state is SagaState.ACTIVE
        assert isinstance(outcome.error, NotFoundError)
        assert outcome.succeeded is False
        assert list(object_store.backup_dir.iterdir()) == []
        assert list(object_store.deleted_dir.iterdir()) == []

    def test_second_delete(self, coordinator, add_photo, object_store):
        """Deleting twice reports NotFound the second time without moving anything."""
        add_photo("abc")
        coordinator.delete("abc")

        outcome = coordinator.delete("abc")

        assert isinstance(outcome.error, NotFoundError)
        assert outcome.state is SagaState.ACTIVE
        assert object_store.deleted_photo_exists("abc") is True

    def test_raise_for_error(self, coordinator):
        """A failed outcome can be turned back into its exception."""
        outcome = coordinator.delete("zzz")

        with pytest.raises(NotFoundError) as exc_info:
            outcome.raise_for_error()

        assert exc_info.value.code == "photo_not_found"

    def test_raise_for_error_on_success(self, coordinator, add_photo):
        """A successful outcome returns itself."""
        add_photo("abc")
        outcome = coordinator.delete("abc")

        assert outcome.raise_for_error() is outcome

    def test_lost_race_during_prepare(self, coordinator, add_photo, object_store, metadata_store):
        """When another delete already staged the blob, this one reports NotFound."""
        add_photo("abc")
        staged = object_store.backup_for_delete("abc")

        outcome = coordinator.delete("abc")

        assert isinstance(outcome.error, NotFoundError)
        assert outcome.state is SagaState.ACTIVE
        assert staged.exists()
        assert metadata_store.get_photo_by_id("abc") is not None

    def test_lost_race_during_commit(self, coordinator, add_photo, object_store, metadata_store, sample_image_data):
        """If the conditional update changes nothing, the blob is restored."""
        add_photo("abc")

        with patch.object(metadata_store, "mark_deleted", return_value=False):
            outcome = coordinator.delete("abc")

        assert isinstance(outcome.error, NotFoundError)
        assert outcome.state is SagaState.ROLLED_BACK
        assert object_store.read_photo("abc") == sample_image_data
        assert object_store.find_backups("abc") == []


class TestDeleteFailures:
    """Test cases for failures at each step of the saga."""

    def test_backup_failure(self, coordinator, add_photo, object_store, metadata_store):
        """A blob missing from its primary path without a competing delete is a BackupError."""
        add_photo("abc")
        object_store.get_file_path("abc").unlink()

        outcome = coordinator.delete("abc")

        assert isinstance(outcome.error, BackupError)
        assert outcome.error.code == "backup_failed"
        assert outcome.state is SagaState.ACTIVE
        assert metadata_store.get_photo_by_id("abc") is not None

    def test_backup_rename_failure(self, coordinator, add_photo, object_store, metadata_store):
        """Rename failures during prepare leave both stores untouched."""
        add_photo("abc")

        with patch.object(
            object_store, "backup_for_delete", side_effect=StorageError("denied", code="backup_failed")
        ):
            outcome = coordinator.delete("abc")

        assert isinstance(outcome.error, BackupError)
        assert object_store.photo_exists("abc") is True
        assert metadata_store.get_photo_by_id("abc") is not None

    def test_commit_failure_restores_blob(
        self, coordinator, add_photo, object_store, metadata_store, sample_image_data
    ):
        """A failed commit puts back byte-identical content and keeps the record active."""
        add_photo("abc")

        with patch.object(metadata_store, "mark_deleted", side_effect=DatabaseError("disk I/O error")):
            outcome = coordinator.delete("abc")

        assert isinstance(outcome.error, CommitFailure)
        assert outcome.error.restored is True
        assert outcome.error.code == "commit_failed"
        assert outcome.state is SagaState.ROLLED_BACK
        assert object_store.read_photo("abc") == sample_image_data
        assert object_store.find_backups("abc") == []
        assert metadata_store.get_photo_by_id("abc").is_deleted is False

    def test_commit_failure_with_failed_restore(self, coordinator, add_photo, object_store, metadata_store):
        """If the blob cannot be restored it stays in staging and the outcome says so."""
        add_photo("abc")

        with (
            patch.object(metadata_store, "mark_deleted", side_effect=DatabaseError("disk I/O error")),
            patch.object(object_store, "restore_from_backup", side_effect=StorageError("denied")),
        ):
            outcome = coordinator.delete("abc")

        assert isinstance(outcome.error, CommitFailure)
        assert outcome.error.restored is False
        assert outcome.error.code == "commit_failed_restore_failed"
        assert outcome.state is SagaState.BACKED_UP
        assert outcome.backup_path == object_store.find_backups("abc")[0]
        assert metadata_store.get_photo_by_id("abc") is not None

    def test_interrupted_commit_restores_and_reraises(self, coordinator, add_photo, object_store):
        """An interruption during commit still puts the blob back."""
        add_photo("abc")

        with patch.object(coordinator.metadata_store, "mark_deleted", side_effect=KeyboardInterrupt):
            with pytest.raises(KeyboardInterrupt):
                coordinator.delete("abc")

        assert object_store.photo_exists("abc") is True
        assert object_store.find_backups("abc") == []

    def test_interrupt_after_commit_finalizes_and_reraises(self, coordinator, add_photo, object_store, metadata_store):
        """An interruption after the update committed moves the blob to deleted/, not back."""
        add_photo("abc")

        with patch("photovault.services.metadata.logger") as metadata_logger:
            metadata_logger.debug.side_effect = KeyboardInterrupt
            with pytest.raises(KeyboardInterrupt):
                coordinator.delete("abc")

        assert metadata_store.get_photo_by_id("abc", include_deleted=True).is_deleted is True
        assert object_store.photo_exists("abc") is False
        assert object_store.deleted_photo_exists("abc") is True
        assert object_store.find_backups("abc") == []

    def test_interrupt_with_unreadable_record_leaves_blob_staged(
        self, coordinator, add_photo, object_store, metadata_store
    ):
        """If the record cannot be read back after an interruption the blob stays in staging."""
        record = add_photo("abc")

        with patch.object(metadata_store, "mark_deleted", side_effect=KeyboardInterrupt), patch.object(
            metadata_store, "get_photo_by_id", side_effect=[record, DatabaseError("database is locked")]
        ):
            with pytest.raises(KeyboardInterrupt):
                coordinator.delete("abc")

        assert object_store.photo_exists("abc") is False
        assert len(object_store.find_backups("abc")) == 1

    def test_error_after_commit_finalizes(self, coordinator, add_photo, object_store, metadata_store):
        """An error raised once the update has committed does not roll the blob back."""
        add_photo("abc")

        with patch("photovault.services.metadata.logger") as metadata_logger:
            metadata_logger.debug.side_effect = RuntimeError("log sink closed")
            outcome = coordinator.delete("abc")

        assert outcome.error is None
        assert outcome.state is SagaState.FINALIZED
        assert outcome.deleted_at == metadata_store.get_photo_by_id("abc", include_deleted=True).deleted_at
        assert object_store.photo_exists("abc") is False
        assert object_store.deleted_photo_exists("abc") is True

    def test_commit_error_with_unreadable_record(self, coordinator, add_photo, object_store, metadata_store):
        """A commit error that cannot be resolved leaves the blob staged and says so."""
        record = add_photo("abc")

        with patch.object(metadata_store, "mark_deleted", side_effect=DatabaseError("disk I/O error")), patch.object(
            metadata_store, "get_photo_by_id", side_effect=[record, DatabaseError("disk I/O error")]
        ):
            outcome = coordinator.delete("abc")

        assert outcome.state is SagaState.BACKED_UP
        assert isinstance(outcome.error, CommitFailure)
        assert outcome.error.restored is False
        assert "outcome unknown" in str(outcome.error)
        assert object_store.find_backups("abc") == [outcome.backup_path]

    def test_finalize_failure_is_a_warning(self, coordinator, add_photo, object_store, metadata_store):
        """A failed move to deleted/ leaves the delete committed and the blob findable."""
        add_photo("abc")

        with patch.object(object_store, "move_to_deleted", side_effect=StorageError("no space")):
            outcome = coordinator.delete("abc")

        assert outcome.succeeded is True
        assert outcome.error is None
        assert outcome.state is SagaState.COMMITTED
        assert outcome.cleanup_deferred is True
        assert isinstance(outcome.warning, FinalizeWarning)
        assert outcome.warning.backup_path == str(outcome.backup_path)
        assert metadata_store.get_photo_by_id("abc") is None
        assert object_store.find_backups("abc") == [outcome.backup_path]

    def test_precondition_database_error_propagates(self, coordinator, metadata_store, object_store):
        """A failing lookup is raised before anything moves."""
        with patch.object(metadata_store, "get_photo_by_id", side_effect=DatabaseError("unavailable")):
            with pytest.raises(DatabaseError):
                coordinator.delete("abc")


class TestDeleteOutcome:
    """Test cases for DeleteOutcome."""

    def test_not_succeeded_without_commit(self):
        """Only committed or finalized outcomes without an error count as success."""
        assert DeleteOutcome(photo_id="abc", state=SagaState.ACTIVE).succeeded is False
        assert DeleteOutcome(photo_id="abc", state=SagaState.ROLLED_BACK).succeeded is False
        assert DeleteOutcome(photo_id="abc", state=SagaState.COMMITTED).succeeded is True
