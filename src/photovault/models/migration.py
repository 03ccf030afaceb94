"""
Migration and ledger models for photovault.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Migration:
    """
    A single schema migration.

    ``version`` is a zero-padded numeric string such as ``"002"``. Ordering is
    always numeric, so ``"10"`` sorts after ``"9"``.
    """

    version: str
    name: str
    script: str

    @property
    def sort_key(self) -> int:
        return version_key(self.version)

    @property
    def label(self) -> str:
        return f"{self.version}_{self.name}"


@dataclass(frozen=True)
class LedgerEntry:
    """One row of the schema_migrations ledger."""

    version: str
    name: str
    applied_at: datetime

    @property
    def sort_key(self) -> int:
        return version_key(self.version)


def version_key(version: str) -> int:
    """Numeric sort key for a migration version string."""
    return int(version)
