"""
Metadata service for photo records stored in DuckDB.

Every read here filters ``deleted_at IS NULL`` unless the caller asks for
deleted rows explicitly, so soft-deleted photos never surface through the
normal read paths.

Soft deletion is a conditional update:

    UPDATE photos SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL

The predicate acts as a compare-and-swap. Of any number of concurrent
deletes for one id, exactly one changes a row; the rest change nothing and
are reported as not found. No lock is taken beyond the transaction itself.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import duckdb

from ..errors import DatabaseError
from ..logging_config import get_logger, log_error
from ..models.database import DatabaseManager
from ..models.photo import PHOTO_COLUMNS, PhotoRecord, format_timestamp

logger = get_logger(__name__)

SELECT_PHOTO_COLUMNS = ", ".join(PHOTO_COLUMNS)

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100
PLAYLIST_LIMIT = 1000
SORT_FIELDS = ("date_taken", "created_at")
SORT_ORDERS = {"asc": "ASC", "desc": "DESC"}


@dataclass
class PhotoPage:
    """One page of active photos plus pagination details."""

    photos: list[PhotoRecord] = field(default_factory=list)
    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "photos": [photo.to_dict() for photo in self.photos],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "total_pages": self.total_pages,
                "has_next": self.has_next,
                "has_prev": self.has_prev,
            },
        }


def normalize_pagination(
    page: Any = 1, limit: Any = DEFAULT_PAGE_LIMIT, order: str = "desc", sort_by: str = "date_taken"
) -> tuple[int, int, str, str]:
    """
    Coerce listing parameters into safe values.

    Pages below 1 become 1. Limits outside 1..100 fall back to 50 when too
    small and cap at 100 when too large. Unknown orders and sort fields fall
    back to ``desc`` and ``date_taken``.

    Returns:
        (page, limit, order, sort_by)
    """
    try:
        page = max(int(page), 1)
    except (TypeError, ValueError):
        page = 1

    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = DEFAULT_PAGE_LIMIT
    if limit < 1:
        limit = DEFAULT_PAGE_LIMIT
    elif limit > MAX_PAGE_LIMIT:
        limit = MAX_PAGE_LIMIT

    order = order if order in SORT_ORDERS else "desc"
    sort_by = sort_by if sort_by in SORT_FIELDS else "date_taken"
    return page, limit, order, sort_by


class MetadataStore:
    """
    Relational CRUD for photo records.

    Each method scopes its own cursor or transaction; nothing is held open
    between calls.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def insert_photo(self, photo: PhotoRecord) -> None:
        """
        Insert a new photo record.

        Raises:
            DatabaseError: If the record is invalid or the insert fails
        """
        if not photo.validate():
            raise DatabaseError("Invalid photo record", code="invalid_photo_record", details={"photo_id": photo.id})

        placeholders = ", ".join("?" for _ in PHOTO_COLUMNS)
        try:
            with self.db_manager.transaction() as cursor:
                cursor.execute(f"INSERT INTO photos ({SELECT_PHOTO_COLUMNS}) VALUES ({placeholders})", photo.to_row())
        except duckdb.ConstraintException as e:
            raise DatabaseError(
                f"Photo already exists: {photo.id}",
                code="photo_already_exists",
                details={"photo_id": photo.id},
                original_exception=e,
            ) from e
        except duckdb.Error as e:
            log_error(e, {"operation": "insert_photo", "photo_id": photo.id})
            raise DatabaseError(
                f"Failed to insert photo: {e}", details={"photo_id": photo.id}, original_exception=e
            ) from e

        logger.info("photo_metadata_saved", photo_id=photo.id, original_filename=photo.original_filename)

    def get_photo_by_id(self, photo_id: str, include_deleted: bool = False) -> PhotoRecord | None:
        """
        Get a photo record by ID.

        Args:
            photo_id: Photo ID to retrieve
            include_deleted: Also return soft-deleted records

        Returns:
            PhotoRecord, or None if absent (or deleted, unless include_deleted)

        Raises:
            DatabaseError: If the query fails
        """
        query = f"SELECT {SELECT_PHOTO_COLUMNS} FROM photos WHERE id = ?"
        if not include_deleted:
            query += " AND deleted_at IS NULL"

        try:
            result = self.db_manager.execute_query(query, (photo_id,))
        except duckdb.Error as e:
            raise DatabaseError(
                f"Failed to get photo by ID: {e}", details={"photo_id": photo_id}, original_exception=e
            ) from e

        if not result:
            return None
        return PhotoRecord.from_row(result[0])

    def get_photo_count(self) -> int:
        """Count active photos."""
        try:
            result = self.db_manager.execute_query("SELECT COUNT(*) FROM photos WHERE deleted_at IS NULL")
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to count photos: {e}", original_exception=e) from e
        return result[0][0] if result else 0

    def get_photos_paginated(
        self, page: Any = 1, limit: Any = DEFAULT_PAGE_LIMIT, order: str = "desc", sort_by: str = "date_taken"
    ) -> PhotoPage:
        """
        Get one page of active photos.

        Parameters are normalized by ``normalize_pagination`` before use; the
        sort column and direction are only ever taken from fixed allow-lists.

        Raises:
            DatabaseError: If the query fails
        """
        page, limit, order, sort_by = normalize_pagination(page, limit, order, sort_by)
        offset = (page - 1) * limit

        query = (
            f"SELECT {SELECT_PHOTO_COLUMNS} FROM photos WHERE deleted_at IS NULL "
            f"ORDER BY {sort_by} {SORT_ORDERS[order]}, id ASC LIMIT ? OFFSET ?"
        )

        try:
            rows = self.db_manager.execute_query(query, (limit, offset))
        except duckdb.Error as e:
            log_error(e, {"operation": "get_photos_paginated", "page": page, "limit": limit})
            raise DatabaseError(f"Failed to list photos: {e}", original_exception=e) from e

        photos = [PhotoRecord.from_row(row) for row in rows]
        total = self.get_photo_count()

        logger.debug("photos_listed", page=page, limit=limit, order=order, sort_by=sort_by, count=len(photos))
        return PhotoPage(photos=photos, page=page, limit=limit, total=total)

    def get_random_playlist(self, limit: int = PLAYLIST_LIMIT) -> list[PhotoRecord]:
        """Up to ``limit`` active photos in random order."""
        try:
            rows = self.db_manager.execute_query(
                f"SELECT {SELECT_PHOTO_COLUMNS} FROM photos WHERE deleted_at IS NULL ORDER BY random() LIMIT ?",
                (limit,),
            )
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to build playlist: {e}", original_exception=e) from e
        return [PhotoRecord.from_row(row) for row in rows]

    def mark_deleted(self, photo_id: str, deleted_at: datetime) -> bool:
        """
        Soft delete a photo if, and only if, it is still active.

        Runs the conditional update in its own transaction and commits it.

        Args:
            photo_id: Photo to delete
            deleted_at: Timestamp to record

        Returns:
            True if this call flipped the record to deleted, False if no active
            record matched

        Raises:
            DatabaseError: If the transaction fails; nothing was committed
        """
        try:
            with self.db_manager.transaction() as cursor:
                changed = cursor.execute(
                    "UPDATE photos SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL RETURNING id",
                    (format_timestamp(deleted_at), photo_id),
                ).fetchall()
        except duckdb.Error as e:
            raise DatabaseError(
                f"Failed to soft delete photo: {e}",
                code="soft_delete_failed",
                details={"photo_id": photo_id},
                original_exception=e,
            ) from e

        if changed:
            logger.debug("photo_marked_deleted", photo_id=photo_id)
        else:
            logger.info("photo_not_active_for_delete", photo_id=photo_id)
        return bool(changed)
