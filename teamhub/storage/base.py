"""
Storage abstraction layer.

All persistence goes through these interfaces. This allows swapping
implementations (in-memory → MongoDB, DynamoDB, PostgreSQL JSONB, etc.)
without changing application code.

The auth core relies on exactly two guarantees from a backend:

- unique-key inserts: ``insert()`` (and every other write) must reject a
  document that collides with another on a registered unique index, raising
  ``DuplicateKeyError``. Concurrent invite redemptions and registrations are
  arbitrated here, not in process memory.
- all-or-nothing multi-document writes via ``transaction()``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any

from pydantic import BaseModel


class DuplicateKeyError(Exception):
    """A write collided with an existing document on a unique key."""

    def __init__(self, collection: str, fields: tuple[str, ...], values: tuple[Any, ...]):
        self.collection = collection
        self.fields = fields
        self.values = values
        super().__init__(f"Duplicate key in {collection} on {fields}: {values}")


# =============================================================================
# Storage Interfaces
# =============================================================================


class Transaction(ABC):
    """
    Staged writes, applied together when the transaction block exits cleanly.

    Nothing is visible to other readers until commit; if the block raises,
    or any staged write violates a unique index, no write is applied.
    """

    @abstractmethod
    def insert(self, collection: str, id: str, data: dict[str, Any]) -> None:
        """Stage an insert that must not collide with existing documents."""
        pass

    @abstractmethod
    def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        """Stage an upsert."""
        pass


class MetadataStorage(ABC):
    """
    Storage for structured documents (users, workspaces, members, ...).

    Production Implementation: any document store with unique indexes and
    multi-document transactions
    Local Implementation: in-memory
    """

    @abstractmethod
    async def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        """Save (upsert) a document to a collection."""
        pass

    @abstractmethod
    async def insert(self, collection: str, id: str, data: dict[str, Any]) -> None:
        """Insert a new document. Raises DuplicateKeyError on any unique clash."""
        pass

    @abstractmethod
    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        """Get a document by ID."""
        pass

    @abstractmethod
    async def find_one(
        self,
        collection: str,
        filters: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Get the first document matching all filters."""
        pass

    @abstractmethod
    async def delete(self, collection: str, id: str) -> bool:
        """Delete a document."""
        pass

    @abstractmethod
    async def delete_many(self, collection: str, filters: dict[str, Any]) -> int:
        """Delete every document matching filters, return how many."""
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Query documents with optional filters."""
        pass

    @abstractmethod
    async def update(self, collection: str, id: str, updates: dict[str, Any]) -> bool:
        """Partial update of a document. Unique indexes still apply."""
        pass

    @abstractmethod
    async def ensure_unique_index(self, collection: str, fields: tuple[str, ...]) -> None:
        """Register a unique constraint over one or more fields."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[Transaction]:
        """
        Open an all-or-nothing write batch.

        Usage:
            async with storage.transaction() as tx:
                tx.insert(Collections.WORKSPACES, ws.id, ws.to_doc())
                tx.insert(Collections.MEMBERS, member.id, member.to_doc())
        """
        pass


class CacheStorage(ABC):
    """
    Fast key-value cache for short-lived values (OAuth state).

    Production Implementation: Redis
    Local Implementation: In-memory dict
    """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set a value with optional TTL in seconds."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key exists."""
        pass


# =============================================================================
# Storage Provider (dependency injection container)
# =============================================================================


class StorageProvider(BaseModel):
    """
    Container for all storage backends.

    Initialize once at app startup with appropriate implementations.
    Services receive this (or just its ``metadata``) and use the interfaces
    without knowing the underlying implementation.
    """

    model_config = {"arbitrary_types_allowed": True}

    metadata: MetadataStorage
    cache: CacheStorage


# =============================================================================
# Collection Names (for MetadataStorage)
# =============================================================================


class Collections:
    """Standard collection/table names."""

    USERS = "users"
    ACCOUNTS = "accounts"
    WORKSPACES = "workspaces"
    ROLES = "roles"
    MEMBERS = "members"
    PROJECTS = "projects"
    TASKS = "tasks"


# Unique constraints every backend must enforce
UNIQUE_INDEXES: dict[str, list[tuple[str, ...]]] = {
    Collections.USERS: [("email",)],
    Collections.ACCOUNTS: [("provider", "provider_id"), ("user_id", "provider")],
    Collections.WORKSPACES: [("invite_code",)],
    Collections.ROLES: [("name",)],
    Collections.MEMBERS: [("user_id", "workspace_id")],
}
