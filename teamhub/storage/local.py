"""
Local storage implementations for development and tests.

In-memory implementations that work without any external services. None
of the write paths await between checking a unique index and writing, so
under asyncio each write is atomic with respect to other requests without
holding any lock.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from teamhub.storage.base import (
    CacheStorage,
    DuplicateKeyError,
    MetadataStorage,
    StorageProvider,
    Transaction,
    UNIQUE_INDEXES,
)


Docs = dict[str, dict[str, Any]]


# =============================================================================
# In-Memory Metadata Storage
# =============================================================================


class InMemoryTransaction(Transaction):
    """Collects writes; InMemoryMetadataStorage applies them on commit."""

    def __init__(self):
        self.ops: list[tuple[str, str, str, dict[str, Any]]] = []

    def insert(self, collection: str, id: str, data: dict[str, Any]) -> None:
        self.ops.append(("insert", collection, id, data))

    def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        self.ops.append(("save", collection, id, data))


class InMemoryMetadataStorage(MetadataStorage):
    """In-memory document storage with unique indexes."""

    def __init__(self, unique_indexes: dict[str, list[tuple[str, ...]]] | None = None):
        self._data: dict[str, Docs] = {}
        self._unique: dict[str, list[tuple[str, ...]]] = {
            collection: list(indexes)
            for collection, indexes in (unique_indexes or {}).items()
        }

    # -------------------------------------------------------------------------
    # Internal helpers (synchronous on purpose)
    # -------------------------------------------------------------------------

    @staticmethod
    def _stamp(id: str, data: dict[str, Any]) -> dict[str, Any]:
        return {
            **data,
            "_id": id,
            "_updated_at": datetime.now(timezone.utc).isoformat(),
        }

    def _check_unique(self, collection: str, docs: Docs, id: str, doc: dict[str, Any]) -> None:
        for fields in self._unique.get(collection, []):
            key = tuple(doc.get(f) for f in fields)
            if any(v is None for v in key):
                continue  # sparse: missing values never collide
            for other_id, other in docs.items():
                if other_id != id and tuple(other.get(f) for f in fields) == key:
                    raise DuplicateKeyError(collection, fields, key)

    def _write(
        self,
        collection: str,
        docs: Docs,
        id: str,
        data: dict[str, Any],
        must_not_exist: bool,
    ) -> None:
        if must_not_exist and id in docs:
            raise DuplicateKeyError(collection, ("_id",), (id,))
        doc = self._stamp(id, data)
        self._check_unique(collection, docs, id, doc)
        docs[id] = doc

    @staticmethod
    def _matches(doc: dict[str, Any], filters: dict[str, Any] | None) -> bool:
        if not filters:
            return True
        return all(doc.get(key) == value for key, value in filters.items())

    # -------------------------------------------------------------------------
    # MetadataStorage
    # -------------------------------------------------------------------------

    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        docs = self._data.setdefault(collection, {})
        self._write(collection, docs, id, data, must_not_exist=False)

    async def insert(self, collection: str, id: str, data: dict[str, Any]) -> None:
        docs = self._data.setdefault(collection, {})
        self._write(collection, docs, id, data, must_not_exist=True)

    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        doc = self._data.get(collection, {}).get(id)
        return dict(doc) if doc is not None else None

    async def find_one(
        self,
        collection: str,
        filters: dict[str, Any],
    ) -> dict[str, Any] | None:
        for doc in self._data.get(collection, {}).values():
            if self._matches(doc, filters):
                return dict(doc)
        return None

    async def delete(self, collection: str, id: str) -> bool:
        if collection in self._data and id in self._data[collection]:
            del self._data[collection][id]
            return True
        return False

    async def delete_many(self, collection: str, filters: dict[str, Any]) -> int:
        docs = self._data.get(collection, {})
        doomed = [id for id, doc in docs.items() if self._matches(doc, filters)]
        for id in doomed:
            del docs[id]
        return len(doomed)

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        if collection not in self._data:
            return []

        results = [
            dict(doc) for doc in self._data[collection].values()
            if self._matches(doc, filters)
        ]

        # Apply pagination
        return results[offset:offset + limit]

    async def update(self, collection: str, id: str, updates: dict[str, Any]) -> bool:
        docs = self._data.get(collection, {})
        if id not in docs:
            return False
        merged = {**docs[id], **updates}
        self._write(collection, docs, id, merged, must_not_exist=False)
        return True

    async def ensure_unique_index(self, collection: str, fields: tuple[str, ...]) -> None:
        indexes = self._unique.setdefault(collection, [])
        if fields in indexes:
            return
        indexes.append(fields)
        try:
            docs = self._data.get(collection, {})
            for id, doc in docs.items():
                self._check_unique(collection, docs, id, doc)
        except DuplicateKeyError:
            indexes.remove(fields)
            raise

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        tx = InMemoryTransaction()
        yield tx
        self._commit(tx)

    def _commit(self, tx: InMemoryTransaction) -> None:
        # Apply to copies of the touched collections, then swap them in.
        staged: dict[str, Docs] = {}
        for kind, collection, id, data in tx.ops:
            if collection not in staged:
                staged[collection] = dict(self._data.get(collection, {}))
            self._write(collection, staged[collection], id, data, must_not_exist=kind == "insert")
        self._data.update(staged)


# =============================================================================
# In-Memory Cache Storage
# =============================================================================


class InMemoryCacheStorage(CacheStorage):
    """In-memory cache for development."""

    def __init__(self):
        self._cache: dict[str, tuple[Any, float | None]] = {}

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = None
        if ttl:
            expires_at = datetime.now(timezone.utc).timestamp() + ttl
        self._cache[key] = (value, expires_at)

    async def get(self, key: str) -> Any | None:
        if key not in self._cache:
            return None

        value, expires_at = self._cache[key]
        if expires_at and datetime.now(timezone.utc).timestamp() > expires_at:
            del self._cache[key]
            return None

        return value

    async def delete(self, key: str) -> bool:
        if key in self._cache:
            del self._cache[key]
            return True
        return False

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None


# =============================================================================
# Factory
# =============================================================================


def create_local_storage() -> StorageProvider:
    """Create a StorageProvider with in-memory implementations and indexes."""
    return StorageProvider(
        metadata=InMemoryMetadataStorage(unique_indexes=UNIQUE_INDEXES),
        cache=InMemoryCacheStorage(),
    )
