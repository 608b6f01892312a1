"""
Core data models.

Users authenticate through Accounts, and reach everything else through a
Member record binding them to a Workspace with a Role. Projects and Tasks are
workspace-scoped content guarded by that membership.

Models are persisted as plain dicts via ``to_doc()`` / ``from_doc()``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from teamhub.core.utils import generate_id, utc_now


# =============================================================================
# Enums
# =============================================================================


class ProviderKind(str, Enum):
    """Where an Account's identity comes from."""

    LOCAL = "local"    # email + password
    GOOGLE = "google"  # Google OAuth


class RoleName(str, Enum):
    """Role a user has within a specific workspace."""

    OWNER = "owner"    # Full control, can delete workspace
    ADMIN = "admin"    # Manages members and projects
    MEMBER = "member"  # Works on tasks


class TaskStatus(str, Enum):
    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Document(BaseModel):
    """Base for models stored in MetadataStorage."""

    def to_doc(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_doc(cls, doc: dict[str, Any]):
        # Storage bookkeeping fields start with "_"
        return cls.model_validate({k: v for k, v in doc.items() if not k.startswith("_")})


# =============================================================================
# Identity
# =============================================================================


class User(Document):
    """
    A person. Never hard-deleted.

    ``current_workspace_id`` is only a "last active workspace" hint for the
    frontend. Authorization never reads it; every workspace-scoped call names
    its workspace explicitly.
    """

    id: str = Field(default_factory=lambda: generate_id("user"))
    email: str
    name: str
    password_hash: str | None = None  # None for federated-only accounts
    profile_picture: str | None = None
    current_workspace_id: str | None = None
    is_active: bool = True

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_login_at: datetime | None = None

    def public(self) -> dict[str, Any]:
        """Client-facing view (no credential material)."""
        data = self.to_doc()
        data.pop("password_hash", None)
        return data


class Account(Document):
    """
    Links a User to one provider identity.

    Unique on (provider, provider_id). For LOCAL accounts the provider id is
    the normalized email.
    """

    id: str = Field(default_factory=lambda: generate_id("acct"))
    user_id: str
    provider: ProviderKind
    provider_id: str
    created_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# Tenancy
# =============================================================================


class Workspace(Document):
    id: str = Field(default_factory=lambda: generate_id("ws"))
    name: str
    description: str = ""
    owner_id: str
    invite_code: str

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Role(Document):
    """A seeded role document. The name doubles as the document id."""

    name: RoleName
    permissions: list[str] = Field(default_factory=list)


class Member(Document):
    """Exactly one per (user, workspace)."""

    id: str = Field(default_factory=lambda: generate_id("mem"))
    user_id: str
    workspace_id: str
    role: RoleName = RoleName.MEMBER
    joined_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# Workspace content
# =============================================================================


class Project(Document):
    id: str = Field(default_factory=lambda: generate_id("proj"))
    workspace_id: str
    name: str
    emoji: str = "📊"
    description: str = ""
    created_by: str

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Task(Document):
    id: str = Field(default_factory=lambda: generate_id("task"))
    workspace_id: str
    project_id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: str | None = None
    created_by: str
    due_date: datetime | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("due_date")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
