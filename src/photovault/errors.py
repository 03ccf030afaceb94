"""
Centralized error classification for photovault.

Every failure the consistency core can report is a PhotoVaultError carrying a
category, a severity and structured details. Non-fatal outcomes that callers
still need to see (a skipped migration file, a deferred finalize step) are
plain dataclasses rather than exceptions.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .logging_config import log_error


class ErrorCategory(Enum):
    """Error categories for classification and handling."""

    CONFIGURATION = "configuration"
    DATABASE = "database"
    STORAGE = "storage"
    MIGRATION = "migration"
    NOT_FOUND = "not_found"
    CONSISTENCY = "consistency"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_SEVERITY_LOG_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


@dataclass
class ErrorInfo:
    """Structured error information."""

    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    message: str
    details: dict[str, Any]
    timestamp: datetime
    recoverable: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert error info to dictionary."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
        }


class PhotoVaultError(Exception):
    """Base exception class for photovault."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.category = category
        self.severity = severity
        self.code = code or f"{category.value}_error"
        self.details = details or {}
        self.recoverable = recoverable
        self.original_exception = original_exception
        self.timestamp = datetime.now(UTC)

        self._log_error()

    def _log_error(self) -> None:
        """Log the error at a level matching its severity."""
        error_context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "recoverable": self.recoverable,
            **self.details,
        }

        if self.original_exception:
            error_context["original_exception"] = str(self.original_exception)

        log_error(self, error_context, level=_SEVERITY_LOG_LEVELS[self.severity])

    def get_error_info(self) -> ErrorInfo:
        """Get structured error information."""
        return ErrorInfo(
            category=self.category,
            severity=self.severity,
            code=self.code,
            message=str(self),
            details=self.details,
            timestamp=self.timestamp,
            recoverable=self.recoverable,
        )


class ConfigurationError(PhotoVaultError):
    """Missing or invalid configuration."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            code="invalid_configuration",
            details=details,
            recoverable=False,
        )


class DatabaseError(PhotoVaultError):
    """Relational store failures."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.DATABASE,
            severity=ErrorSeverity.HIGH,
            code=code or "database_error",
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )


class StorageError(PhotoVaultError):
    """Blob store failures."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            code=code or "storage_error",
            details=details,
            recoverable=True,
            original_exception=original_exception,
        )


class MigrationError(PhotoVaultError):
    """Schema migration failures. Always fatal to startup."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.MIGRATION,
            severity=ErrorSeverity.CRITICAL,
            code=code or "migration_error",
            details=details,
            recoverable=False,
            original_exception=original_exception,
        )


class MigrationApplyError(MigrationError):
    """A pending migration could not be applied and was rolled back."""

    def __init__(
        self,
        message: str,
        version: str,
        name: str,
        original_exception: Exception | None = None,
    ):
        self.version = version
        self.name = name
        super().__init__(
            message=message,
            code="migration_apply_failed",
            details={"version": version, "migration_name": name},
            original_exception=original_exception,
        )


class NotFoundError(PhotoVaultError):
    """The photo does not exist or is already deleted."""

    def __init__(self, photo_id: str, message: str | None = None):
        self.photo_id = photo_id
        super().__init__(
            message=message or f"Photo not found or already deleted: {photo_id}",
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.LOW,
            code="photo_not_found",
            details={"photo_id": photo_id},
            recoverable=True,
        )


class BackupError(PhotoVaultError):
    """The blob could not be moved to staging; nothing was mutated."""

    def __init__(self, photo_id: str, message: str, original_exception: Exception | None = None):
        self.photo_id = photo_id
        super().__init__(
            message=message,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            code="backup_failed",
            details={"photo_id": photo_id},
            recoverable=True,
            original_exception=original_exception,
        )


class CommitFailure(PhotoVaultError):
    """The relational commit failed and the staged blob was moved back."""

    def __init__(
        self,
        photo_id: str,
        message: str,
        restored: bool = True,
        backup_path: str | None = None,
        original_exception: Exception | None = None,
    ):
        self.photo_id = photo_id
        self.restored = restored
        self.backup_path = backup_path
        super().__init__(
            message=message,
            category=ErrorCategory.CONSISTENCY,
            # An unrestored blob leaves an Active record without its bytes.
            severity=ErrorSeverity.HIGH if restored else ErrorSeverity.CRITICAL,
            code="commit_failed" if restored else "commit_failed_restore_failed",
            details={"photo_id": photo_id, "restored": restored, "backup_path": backup_path},
            recoverable=restored,
            original_exception=original_exception,
        )


@dataclass(frozen=True)
class MigrationParseWarning:
    """A migration source entry that was skipped because its name did not parse."""

    filename: str
    reason: str = "filename does not match <digits>_<name>.<ext>"

    def to_dict(self) -> dict[str, str]:
        return {"filename": self.filename, "reason": self.reason}


@dataclass(frozen=True)
class FinalizeWarning:
    """The deleted blob could not leave staging after a successful commit."""

    photo_id: str
    backup_path: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, str]:
        return {
            "photo_id": self.photo_id,
            "backup_path": self.backup_path,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
