"""
Membership directory - (user, workspace) → role.

Every workspace-scoped authorization decision goes through
``resolve_role()``. Nothing here is cached: a role change or removal takes
effect on the very next request.
"""

from __future__ import annotations

import logging

from teamhub.core.errors import AlreadyMemberError, NotAMemberError
from teamhub.core.models import Member, RoleName, Workspace
from teamhub.storage.base import Collections, DuplicateKeyError, MetadataStorage, Transaction

logger = logging.getLogger(__name__)

# Upper bound for listing queries
MAX_LIST = 10_000


async def get_member(
    storage: MetadataStorage,
    user_id: str,
    workspace_id: str,
) -> Member | None:
    doc = await storage.find_one(
        Collections.MEMBERS,
        {"user_id": user_id, "workspace_id": workspace_id},
    )
    return Member.from_doc(doc) if doc else None


async def resolve_role(
    storage: MetadataStorage,
    user_id: str,
    workspace_id: str,
) -> RoleName:
    """
    Resolve the user's role in a workspace.

    Raises:
        NotAMemberError: No Member record exists for the pair
    """
    member = await get_member(storage, user_id, workspace_id)
    if member is None:
        raise NotAMemberError()
    return member.role


async def add_member(
    storage: MetadataStorage,
    user_id: str,
    workspace_id: str,
    role: RoleName = RoleName.MEMBER,
) -> Member:
    """
    Create the Member record for a pair.

    The store's unique index on (user_id, workspace_id) is the arbiter: if
    two requests race past any earlier "already a member?" check, exactly
    one insert wins and the other gets AlreadyMemberError.
    """
    member = Member(user_id=user_id, workspace_id=workspace_id, role=role)
    try:
        await storage.insert(Collections.MEMBERS, member.id, member.to_doc())
    except DuplicateKeyError:
        raise AlreadyMemberError()

    logger.info(f"User {user_id} joined workspace {workspace_id} as {role.value}")
    return member


async def list_members(storage: MetadataStorage, workspace_id: str) -> list[Member]:
    docs = await storage.query(
        Collections.MEMBERS, {"workspace_id": workspace_id}, limit=MAX_LIST
    )
    return [Member.from_doc(d) for d in docs]


async def list_user_workspace_ids(storage: MetadataStorage, user_id: str) -> list[str]:
    """Workspaces the user belongs to, in any role."""
    docs = await storage.query(Collections.MEMBERS, {"user_id": user_id}, limit=MAX_LIST)
    return [d["workspace_id"] for d in docs]


async def set_member_role(storage: MetadataStorage, member: Member, role: RoleName) -> Member:
    await storage.update(Collections.MEMBERS, member.id, {"role": role.value})
    return member.model_copy(update={"role": role})


async def delete_member(storage: MetadataStorage, member: Member) -> bool:
    deleted = await storage.delete(Collections.MEMBERS, member.id)
    if deleted:
        logger.info(f"User {member.user_id} left workspace {member.workspace_id}")
    return deleted


def stage_workspace(
    tx: Transaction,
    owner_id: str,
    name: str,
    invite_code: str,
    description: str = "",
) -> Workspace:
    """Stage a new workspace and its owner's OWNER membership in ``tx``."""
    workspace = Workspace(
        name=name,
        description=description,
        owner_id=owner_id,
        invite_code=invite_code,
    )
    owner = Member(user_id=owner_id, workspace_id=workspace.id, role=RoleName.OWNER)
    tx.insert(Collections.WORKSPACES, workspace.id, workspace.to_doc())
    tx.insert(Collections.MEMBERS, owner.id, owner.to_doc())
    return workspace
