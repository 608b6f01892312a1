"""
Permissions and roles.

This defines WHAT each workspace role can do, not HOW we check it.
The actual checking happens in policies.py.
"""

from __future__ import annotations

import logging
from enum import Enum

from teamhub.core.models import Role, RoleName
from teamhub.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    """
    Fine-grained permissions.

    These are the actual identifiers checked by the authorization guard.
    A user's permissions in a workspace are derived from their role there.
    """

    # Workspace
    VIEW_ONLY = "workspace.view"
    EDIT_WORKSPACE = "workspace.edit"
    DELETE_WORKSPACE = "workspace.delete"
    MANAGE_WORKSPACE_SETTINGS = "workspace.manage_settings"

    # Members
    INVITE_MEMBER = "member.invite"
    CHANGE_ROLE = "member.change_role"
    REMOVE_MEMBER = "member.remove"

    # Projects
    CREATE_PROJECT = "project.create"
    EDIT_PROJECT = "project.edit"
    DELETE_PROJECT = "project.delete"

    # Tasks
    CREATE_TASK = "task.create"
    EDIT_TASK = "task.edit"
    DELETE_TASK = "task.delete"


# =============================================================================
# Role Mappings
# =============================================================================


# Written out in full. Each role must contain every permission of the role
# below it (MEMBER ⊆ ADMIN ⊆ OWNER); tests assert this over the whole table.
ROLE_PERMISSIONS: dict[RoleName, frozenset[Permission]] = {
    RoleName.OWNER: frozenset({
        Permission.VIEW_ONLY,
        Permission.EDIT_WORKSPACE,
        Permission.DELETE_WORKSPACE,
        Permission.MANAGE_WORKSPACE_SETTINGS,
        Permission.INVITE_MEMBER,
        Permission.CHANGE_ROLE,
        Permission.REMOVE_MEMBER,
        Permission.CREATE_PROJECT,
        Permission.EDIT_PROJECT,
        Permission.DELETE_PROJECT,
        Permission.CREATE_TASK,
        Permission.EDIT_TASK,
        Permission.DELETE_TASK,
    }),
    RoleName.ADMIN: frozenset({
        Permission.VIEW_ONLY,
        Permission.MANAGE_WORKSPACE_SETTINGS,
        Permission.INVITE_MEMBER,
        Permission.CREATE_PROJECT,
        Permission.EDIT_PROJECT,
        Permission.DELETE_PROJECT,
        Permission.CREATE_TASK,
        Permission.EDIT_TASK,
        Permission.DELETE_TASK,
    }),
    RoleName.MEMBER: frozenset({
        Permission.VIEW_ONLY,
        Permission.CREATE_TASK,
        Permission.EDIT_TASK,
    }),
}


def permissions_for(role: RoleName | str) -> frozenset[Permission]:
    """Get the permission set granted by a role. Unknown roles grant nothing."""
    try:
        role = RoleName(role)
    except ValueError:
        return frozenset()
    return ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(role: RoleName | str, permission: Permission | str) -> bool:
    """Check if a role grants a specific permission."""
    try:
        permission = Permission(permission)
    except ValueError:
        return False
    return permission in permissions_for(role)


def missing_permissions(
    role: RoleName | str | None,
    permissions: tuple[Permission | str, ...],
) -> list[str]:
    """Return the required permissions the role does not grant, in order."""
    missing = []
    for permission in permissions:
        if role is None or not has_permission(role, permission):
            missing.append(getattr(permission, "value", permission))
    return missing


# =============================================================================
# Bootstrap
# =============================================================================


def role_document(name: RoleName) -> Role:
    return Role(
        name=name,
        permissions=sorted(p.value for p in ROLE_PERMISSIONS[name]),
    )


async def seed_roles(storage: MetadataStorage) -> int:
    """
    Write the role documents, all-or-nothing.

    Safe to run on every startup: roles already stored with the right
    permissions are left alone, and a stored role whose permissions drifted
    from ROLE_PERMISSIONS is rewritten to match.

    Returns:
        Number of role documents written
    """
    written = 0
    async with storage.transaction() as tx:
        for name in RoleName:
            expected = role_document(name).to_doc()
            existing = await storage.get(Collections.ROLES, name.value)
            if existing is None:
                tx.insert(Collections.ROLES, name.value, expected)
            elif sorted(existing.get("permissions", [])) != expected["permissions"]:
                logger.warning(f"Role {name.value} drifted from policy table, rewriting")
                tx.save(Collections.ROLES, name.value, expected)
            else:
                continue
            written += 1

    logger.info(f"Role seeding complete ({written} written)")
    return written
