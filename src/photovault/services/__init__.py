"""
Services module for photovault.

This module contains the service classes that handle business logic:
- ObjectStore: Flat-file blob storage with atomic relocation
- MetadataStore: DuckDB photo records, including the soft-delete primitive
- ConsistencyCoordinator: Soft-delete saga spanning both stores
"""

from .coordinator import ConsistencyCoordinator, DeleteOutcome, SagaState
from .metadata import MetadataStore, PhotoPage, normalize_pagination
from .storage import ObjectStore

__all__ = [
    "ConsistencyCoordinator",
    "DeleteOutcome",
    "MetadataStore",
    "ObjectStore",
    "PhotoPage",
    "SagaState",
    "normalize_pagination",
]
