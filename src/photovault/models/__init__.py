"""
Models module for photovault.

This module contains data models and database access:
- PhotoRecord: Data class for photo metadata rows
- Migration, LedgerEntry: Schema migration records
- DatabaseManager: Database connection and transaction management
"""

from .database import DatabaseManager
from .migration import LedgerEntry, Migration, version_key
from .photo import PhotoRecord, format_timestamp, parse_timestamp, utc_now

__all__ = [
    "DatabaseManager",
    "LedgerEntry",
    "Migration",
    "PhotoRecord",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
    "version_key",
]
