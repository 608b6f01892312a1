"""
Storage abstractions.

Integration Points:
- MetadataStorage → document store with unique indexes and transactions
- CacheStorage → Redis
"""

from teamhub.storage.base import (
    MetadataStorage,
    CacheStorage,
    Transaction,
    StorageProvider,
    Collections,
    DuplicateKeyError,
    UNIQUE_INDEXES,
)
from teamhub.storage.local import create_local_storage

__all__ = [
    "MetadataStorage",
    "CacheStorage",
    "Transaction",
    "StorageProvider",
    "Collections",
    "DuplicateKeyError",
    "UNIQUE_INDEXES",
    "create_local_storage",
]
