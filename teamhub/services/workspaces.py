"""
Workspace management.

Creating a workspace makes the creator its owner: the Workspace document
and the OWNER Member record are written in one transaction. Everything
else is guarded by ``authorize()`` against the workspace named in the call.
"""

from __future__ import annotations

import logging

from teamhub.auth.capabilities import Permission
from teamhub.auth.invites import generate_invite_code, redeem, regenerate_invite_code
from teamhub.auth.membership import (
    delete_member,
    get_member,
    list_members,
    list_user_workspace_ids,
    resolve_role,
    set_member_role,
    stage_workspace,
)
from teamhub.auth.policies import authorize
from teamhub.core.errors import CodeGenerationError, ForbiddenOperationError, NotFoundError
from teamhub.core.models import Member, RoleName, Workspace
from teamhub.core.utils import utc_now
from teamhub.storage.base import Collections, DuplicateKeyError, MetadataStorage

logger = logging.getLogger(__name__)


class WorkspaceService:
    """Workspace lifecycle and membership administration."""

    def __init__(self, storage: MetadataStorage):
        self.storage = storage

    async def _get(self, workspace_id: str) -> Workspace:
        doc = await self.storage.get(Collections.WORKSPACES, workspace_id)
        if not doc:
            raise NotFoundError("Workspace not found")
        return Workspace.from_doc(doc)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def create_workspace(self, user_id: str, name: str, description: str = "") -> Workspace:
        invite_code = await generate_invite_code(self.storage)
        try:
            async with self.storage.transaction() as tx:
                workspace = stage_workspace(tx, user_id, name, invite_code, description)
        except DuplicateKeyError:
            raise CodeGenerationError()

        await self.storage.update(
            Collections.USERS, user_id, {"current_workspace_id": workspace.id}
        )
        logger.info(f"User {user_id} created workspace {workspace.id}")
        return workspace

    async def get_workspace(self, user_id: str, workspace_id: str) -> Workspace:
        await authorize(self.storage, user_id, workspace_id, Permission.VIEW_ONLY)
        return await self._get(workspace_id)

    async def list_user_workspaces(self, user_id: str) -> list[Workspace]:
        workspaces = []
        for workspace_id in await list_user_workspace_ids(self.storage, user_id):
            doc = await self.storage.get(Collections.WORKSPACES, workspace_id)
            if doc:
                workspaces.append(Workspace.from_doc(doc))
        return workspaces

    async def update_workspace(
        self,
        user_id: str,
        workspace_id: str,
        name: str | None = None,
        description: str | None = None,
    ) -> Workspace:
        await authorize(self.storage, user_id, workspace_id, Permission.EDIT_WORKSPACE)
        workspace = await self._get(workspace_id)

        # Partial write; invite_code belongs to regenerate_invite_code
        now = utc_now()
        updates: dict = {"updated_at": now.isoformat()}
        if name:
            updates["name"] = name
        if description is not None:
            updates["description"] = description

        await self.storage.update(Collections.WORKSPACES, workspace_id, updates)
        return workspace.model_copy(update={**updates, "updated_at": now})

    async def delete_workspace(self, user_id: str, workspace_id: str) -> None:
        """Delete a workspace with its memberships, projects and tasks."""
        await authorize(self.storage, user_id, workspace_id, Permission.DELETE_WORKSPACE)
        await self._get(workspace_id)

        # Memberships first: access is gone before content is
        members = await self.storage.delete_many(Collections.MEMBERS, {"workspace_id": workspace_id})
        tasks = await self.storage.delete_many(Collections.TASKS, {"workspace_id": workspace_id})
        projects = await self.storage.delete_many(Collections.PROJECTS, {"workspace_id": workspace_id})
        await self.storage.delete(Collections.WORKSPACES, workspace_id)

        remaining = await list_user_workspace_ids(self.storage, user_id)
        await self.storage.update(
            Collections.USERS,
            user_id,
            {"current_workspace_id": remaining[0] if remaining else None},
        )
        logger.info(
            f"Workspace {workspace_id} deleted by {user_id} "
            f"({members} members, {projects} projects, {tasks} tasks)"
        )

    async def switch_workspace(self, user_id: str, workspace_id: str) -> Workspace:
        """Record the user's last active workspace. Members only."""
        await resolve_role(self.storage, user_id, workspace_id)
        workspace = await self._get(workspace_id)
        await self.storage.update(
            Collections.USERS, user_id, {"current_workspace_id": workspace_id}
        )
        return workspace

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    async def get_members(self, user_id: str, workspace_id: str) -> list[Member]:
        await authorize(self.storage, user_id, workspace_id, Permission.VIEW_ONLY)
        return await list_members(self.storage, workspace_id)

    async def _get_target(self, workspace_id: str, target_user_id: str) -> Member:
        member = await get_member(self.storage, target_user_id, workspace_id)
        if member is None:
            raise NotFoundError("Member not found in this workspace")
        if member.role == RoleName.OWNER:
            raise ForbiddenOperationError("The workspace owner cannot be changed or removed")
        return member

    async def change_member_role(
        self,
        actor_id: str,
        workspace_id: str,
        target_user_id: str,
        role: RoleName,
    ) -> Member:
        await authorize(self.storage, actor_id, workspace_id, Permission.CHANGE_ROLE)
        if role == RoleName.OWNER:
            raise ForbiddenOperationError("Ownership cannot be granted by role change")

        member = await self._get_target(workspace_id, target_user_id)
        member = await set_member_role(self.storage, member, role)
        logger.info(f"User {target_user_id} is now {role.value} in workspace {workspace_id}")
        return member

    async def remove_member(self, actor_id: str, workspace_id: str, target_user_id: str) -> None:
        await authorize(self.storage, actor_id, workspace_id, Permission.REMOVE_MEMBER)
        member = await self._get_target(workspace_id, target_user_id)
        await delete_member(self.storage, member)
        await self._clear_pointer(target_user_id, workspace_id)

    async def leave_workspace(self, user_id: str, workspace_id: str) -> None:
        role = await resolve_role(self.storage, user_id, workspace_id)
        if role == RoleName.OWNER:
            raise ForbiddenOperationError("The workspace owner cannot leave; delete the workspace instead")

        member = await get_member(self.storage, user_id, workspace_id)
        if member:
            await delete_member(self.storage, member)
        await self._clear_pointer(user_id, workspace_id)

    async def _clear_pointer(self, user_id: str, workspace_id: str) -> None:
        doc = await self.storage.get(Collections.USERS, user_id)
        if doc and doc.get("current_workspace_id") == workspace_id:
            await self.storage.update(Collections.USERS, user_id, {"current_workspace_id": None})

    # -------------------------------------------------------------------------
    # Invites
    # -------------------------------------------------------------------------

    async def regenerate_invite_code(self, user_id: str, workspace_id: str) -> Workspace:
        return await regenerate_invite_code(self.storage, user_id, workspace_id)

    async def join(self, user_id: str, invite_code: str) -> Member:
        return await redeem(self.storage, invite_code, user_id)
