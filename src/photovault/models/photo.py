"""
Photo record model for photovault.

This module contains the PhotoRecord dataclass that represents a row of the
photos table, plus the timestamp helpers shared by everything that writes
timestamps into the relational store.
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

# Column order used by every SELECT that builds a PhotoRecord.
PHOTO_COLUMNS = (
    "id",
    "original_filename",
    "date_taken",
    "file_size",
    "width",
    "height",
    "mime_type",
    "created_at",
    "deleted_at",
)


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(UTC)


def format_timestamp(value: datetime) -> str:
    """
    Format a datetime as ISO 8601 UTC with millisecond precision.

    Example: 2025-12-20T09:30:00.123Z
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp back into an aware datetime."""
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass
class PhotoRecord:
    """
    Represents metadata for a photo in the photovault system.

    The blob location is implied by ``id``. ``deleted_at`` is unset for an
    Active photo and set once the photo has been soft deleted.
    """

    id: str
    original_filename: str
    date_taken: datetime
    file_size: int
    mime_type: str
    created_at: datetime
    width: int | None = None
    height: int | None = None
    deleted_at: datetime | None = None

    @classmethod
    def create_new(
        cls,
        original_filename: str,
        file_size: int,
        mime_type: str,
        date_taken: datetime | None = None,
        width: int | None = None,
        height: int | None = None,
        photo_id: str | None = None,
    ) -> "PhotoRecord":
        """
        Create a new Active PhotoRecord with a generated ID and current timestamp.

        Args:
            original_filename: Filename the photo was uploaded with
            file_size: Size of the blob in bytes
            mime_type: MIME type of the photo (e.g., 'image/jpeg')
            date_taken: When the photo was taken; defaults to the creation time
            width: Pixel width, if known
            height: Pixel height, if known
            photo_id: Explicit ID; a UUID4 is generated when omitted

        Returns:
            New PhotoRecord instance
        """
        created_at = utc_now()
        return cls(
            id=photo_id or str(uuid.uuid4()),
            original_filename=original_filename,
            date_taken=date_taken or created_at,
            file_size=file_size,
            mime_type=mime_type,
            created_at=created_at,
            width=width,
            height=height,
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_row(self) -> tuple:
        """Values in PHOTO_COLUMNS order, ready to bind into an INSERT."""
        return (
            self.id,
            self.original_filename,
            format_timestamp(self.date_taken),
            self.file_size,
            self.width,
            self.height,
            self.mime_type,
            format_timestamp(self.created_at),
            format_timestamp(self.deleted_at) if self.deleted_at else None,
        )

    @classmethod
    def from_row(cls, row: tuple) -> "PhotoRecord":
        """Build a PhotoRecord from a row selected in PHOTO_COLUMNS order."""
        return cls.from_dict(dict(zip(PHOTO_COLUMNS, row)))

    def to_dict(self) -> dict[str, Any]:
        """
        Convert PhotoRecord to a JSON-friendly dictionary.

        Returns:
            Dictionary representation of the photo record
        """
        return {
            "id": self.id,
            "original_filename": self.original_filename,
            "date_taken": format_timestamp(self.date_taken),
            "file_size": self.file_size,
            "width": self.width,
            "height": self.height,
            "mime_type": self.mime_type,
            "created_at": format_timestamp(self.created_at),
            "deleted_at": format_timestamp(self.deleted_at) if self.deleted_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PhotoRecord":
        """
        Create PhotoRecord from dictionary (e.g., from database).

        Timestamps may be ISO strings or datetimes.
        """
        return cls(
            id=data["id"],
            original_filename=data["original_filename"],
            date_taken=parse_timestamp(data["date_taken"]),
            file_size=int(data["file_size"]),
            mime_type=data["mime_type"],
            created_at=parse_timestamp(data["created_at"]),
            width=data.get("width"),
            height=data.get("height"),
            deleted_at=parse_timestamp(data.get("deleted_at")),
        )

    def validate(self) -> bool:
        """
        Validate the PhotoRecord instance.

        Returns:
            True if valid, False otherwise
        """
        if not self.id or not self.original_filename:
            return False

        if self.file_size < 0:
            return False

        if not self.mime_type:
            return False

        return True
