"""
Invite codes and joining a workspace.

Codes are short and human-shareable (``XJ29Q7``), drawn from a uuid4 and
encoded in an alphabet without look-alike characters. Each code must be
unique across workspaces: a candidate that already exists is retried a
bounded number of times before giving up with CodeGenerationError.

Leaving a workspace deletes the Member record, so redeeming the code again
later simply re-joins with the default role.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from teamhub.auth.capabilities import Permission
from teamhub.auth.membership import add_member, get_member
from teamhub.auth.policies import authorize
from teamhub.config import get_settings
from teamhub.core.errors import (
    AlreadyMemberError,
    CodeGenerationError,
    InvalidInviteCodeError,
    NotFoundError,
)
from teamhub.core.models import Member, RoleName, Workspace
from teamhub.core.utils import utc_now
from teamhub.storage.base import Collections, DuplicateKeyError, MetadataStorage

logger = logging.getLogger(__name__)

# No 0/O, 1/I/L
INVITE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"


class InviteCodeCollision(Exception):
    """Candidate code is already taken."""


def new_invite_code(length: int | None = None) -> str:
    """Encode a fresh uuid4 in INVITE_ALPHABET and keep the first ``length`` chars."""
    length = length or get_settings().invite_code_length
    value = uuid.uuid4().int
    chars = []
    while value and len(chars) < length:
        value, index = divmod(value, len(INVITE_ALPHABET))
        chars.append(INVITE_ALPHABET[index])
    return "".join(chars).ljust(length, INVITE_ALPHABET[0])


def normalize_invite_code(code: str) -> str:
    return code.strip().upper()


async def generate_invite_code(
    storage: MetadataStorage,
    length: int | None = None,
    max_attempts: int | None = None,
    code_factory: Callable[[], str] | None = None,
) -> str:
    """
    Produce an invite code no workspace currently uses.

    Raises:
        CodeGenerationError: every attempt collided
    """
    settings = get_settings()
    max_attempts = max_attempts or settings.invite_code_max_attempts
    code_factory = code_factory or (lambda: new_invite_code(length))

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            retry=retry_if_exception_type(InviteCodeCollision),
            reraise=True,
        ):
            with attempt:
                code = code_factory()
                if await storage.find_one(Collections.WORKSPACES, {"invite_code": code}):
                    raise InviteCodeCollision(code)
                return code
    except InviteCodeCollision:
        logger.error(f"Invite code generation failed after {max_attempts} attempts")
        raise CodeGenerationError()


async def regenerate_invite_code(
    storage: MetadataStorage,
    user_id: str,
    workspace_id: str,
    code_factory: Callable[[], str] | None = None,
) -> Workspace:
    """Replace a workspace's invite code. The old code stops working at once."""
    await authorize(storage, user_id, workspace_id, Permission.INVITE_MEMBER)

    doc = await storage.get(Collections.WORKSPACES, workspace_id)
    if not doc:
        raise NotFoundError("Workspace not found")

    code = await generate_invite_code(storage, code_factory=code_factory)
    now = utc_now()
    try:
        await storage.update(
            Collections.WORKSPACES,
            workspace_id,
            {"invite_code": code, "updated_at": now.isoformat()},
        )
    except DuplicateKeyError:
        raise CodeGenerationError()

    logger.info(f"Invite code regenerated for workspace {workspace_id}")
    workspace = Workspace.from_doc(doc)
    return workspace.model_copy(update={"invite_code": code, "updated_at": now})


async def get_workspace_by_invite_code(storage: MetadataStorage, code: str) -> Workspace:
    doc = await storage.find_one(
        Collections.WORKSPACES, {"invite_code": normalize_invite_code(code)}
    )
    if not doc:
        raise InvalidInviteCodeError()
    return Workspace.from_doc(doc)


async def redeem(storage: MetadataStorage, code: str, user_id: str) -> Member:
    """
    Join the workspace an invite code belongs to, as MEMBER.

    Raises:
        InvalidInviteCodeError: no workspace has this code
        AlreadyMemberError: the user is already in the workspace; a second
            redemption is rejected, not silently accepted
    """
    workspace = await get_workspace_by_invite_code(storage, code)

    if await get_member(storage, user_id, workspace.id):
        raise AlreadyMemberError()

    member = await add_member(storage, user_id, workspace.id, RoleName.MEMBER)

    await storage.update(
        Collections.USERS, user_id, {"current_workspace_id": workspace.id}
    )
    return member
