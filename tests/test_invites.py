"""
Tests for invite codes and joining a workspace.
"""

import asyncio

import pytest

from teamhub.auth.capabilities import Permission
from teamhub.auth.invites import (
    INVITE_ALPHABET,
    generate_invite_code,
    new_invite_code,
    redeem,
    regenerate_invite_code,
)
from teamhub.auth.membership import add_member, list_members, resolve_role
from teamhub.auth.policies import authorize
from teamhub.core.errors import (
    AlreadyMemberError,
    CodeGenerationError,
    InvalidInviteCodeError,
    UnauthorizedError,
)
from teamhub.core.models import RoleName
from teamhub.services.workspaces import WorkspaceService
from teamhub.storage.base import Collections


async def _workspace_with_code(storage, owner, code):
    service = WorkspaceService(storage)
    workspace = await service.create_workspace(owner.id, "Design Team")
    await regenerate_invite_code(storage, owner.id, workspace.id, code_factory=lambda: code)
    return workspace


def _factory(*codes):
    it = iter(codes)
    calls = []

    def factory():
        code = next(it)
        calls.append(code)
        return code

    return factory, calls


# =============================================================================
# Code generation
# =============================================================================


class TestInviteCodes:
    def test_shape(self):
        code = new_invite_code()
        assert len(code) == 6
        assert set(code) <= set(INVITE_ALPHABET)

    def test_custom_length(self):
        assert len(new_invite_code(10)) == 10

    def test_no_lookalikes(self):
        for ch in "0O1IL":
            assert ch not in INVITE_ALPHABET

    @pytest.mark.asyncio
    async def test_retries_past_collision(self, storage, register):
        owner = await register("owner@example.com")
        await _workspace_with_code(storage, owner, "TAKEN2")

        factory, calls = _factory("TAKEN2", "FRESH3")
        assert await generate_invite_code(storage, code_factory=factory) == "FRESH3"
        assert calls == ["TAKEN2", "FRESH3"]

    @pytest.mark.asyncio
    async def test_exhaustion(self, storage, register):
        owner = await register("owner@example.com")
        await _workspace_with_code(storage, owner, "TAKEN2")

        factory, calls = _factory(*["TAKEN2"] * 3)
        with pytest.raises(CodeGenerationError):
            await generate_invite_code(storage, max_attempts=3, code_factory=factory)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_regenerate_invalidates_old_code(self, storage, register):
        owner = await register("owner@example.com")
        joiner = await register("joiner@example.com")
        workspace = await _workspace_with_code(storage, owner, "OLD234")

        updated = await regenerate_invite_code(storage, owner.id, workspace.id, code_factory=lambda: "NEW567")
        assert updated.invite_code == "NEW567"

        with pytest.raises(InvalidInviteCodeError):
            await redeem(storage, "OLD234", joiner.id)
        assert (await redeem(storage, "NEW567", joiner.id)).workspace_id == workspace.id

    @pytest.mark.asyncio
    async def test_regenerate_requires_invite_permission(self, storage, register):
        owner = await register("owner@example.com")
        member = await register("member@example.com")
        workspace = await _workspace_with_code(storage, owner, "XJ29Q7")
        await redeem(storage, "XJ29Q7", member.id)

        with pytest.raises(UnauthorizedError):
            await regenerate_invite_code(storage, member.id, workspace.id)


# =============================================================================
# Redemption
# =============================================================================


class TestRedeem:
    @pytest.mark.asyncio
    async def test_join_as_member(self, storage, register):
        owner = await register("owner@example.com")
        joiner = await register("joiner@example.com")
        workspace = await _workspace_with_code(storage, owner, "XJ29Q7")

        member = await redeem(storage, "XJ29Q7", joiner.id)

        assert member.workspace_id == workspace.id
        assert member.role == RoleName.MEMBER
        assert await resolve_role(storage, joiner.id, workspace.id) == RoleName.MEMBER
        user = await storage.get(Collections.USERS, joiner.id)
        assert user["current_workspace_id"] == workspace.id

    @pytest.mark.asyncio
    async def test_code_is_case_insensitive(self, storage, register):
        owner = await register("owner@example.com")
        joiner = await register("joiner@example.com")
        workspace = await _workspace_with_code(storage, owner, "XJ29Q7")

        assert (await redeem(storage, " xj29q7 ", joiner.id)).workspace_id == workspace.id

    @pytest.mark.asyncio
    async def test_second_redeem_rejected(self, storage, register):
        owner = await register("owner@example.com")
        joiner = await register("joiner@example.com")
        workspace = await _workspace_with_code(storage, owner, "XJ29Q7")

        await redeem(storage, "XJ29Q7", joiner.id)
        with pytest.raises(AlreadyMemberError):
            await redeem(storage, "XJ29Q7", joiner.id)

        members = [m for m in await list_members(storage, workspace.id) if m.user_id == joiner.id]
        assert len(members) == 1

    @pytest.mark.asyncio
    async def test_owner_cannot_redeem_own_code(self, storage, register):
        owner = await register("owner@example.com")
        await _workspace_with_code(storage, owner, "XJ29Q7")

        with pytest.raises(AlreadyMemberError):
            await redeem(storage, "XJ29Q7", owner.id)

    @pytest.mark.asyncio
    async def test_invalid_code(self, storage, register):
        joiner = await register("joiner@example.com")
        with pytest.raises(InvalidInviteCodeError):
            await redeem(storage, "NOPE99", joiner.id)

    @pytest.mark.asyncio
    async def test_concurrent_redeem(self, storage, register):
        owner = await register("owner@example.com")
        joiner = await register("joiner@example.com")
        workspace = await _workspace_with_code(storage, owner, "XJ29Q7")

        results = await asyncio.gather(
            *[redeem(storage, "XJ29Q7", joiner.id) for _ in range(5)],
            return_exceptions=True,
        )

        joined = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(joined) == 1
        assert all(isinstance(r, AlreadyMemberError) for r in rejected)
        members = await storage.query(
            Collections.MEMBERS, {"workspace_id": workspace.id, "user_id": joiner.id}
        )
        assert len(members) == 1

    @pytest.mark.asyncio
    async def test_store_is_the_arbiter(self, storage):
        await add_member(storage, "user_1", "ws_1")
        with pytest.raises(AlreadyMemberError):
            await add_member(storage, "user_1", "ws_1", RoleName.ADMIN)

    @pytest.mark.asyncio
    async def test_rejoin_after_leaving(self, storage, register):
        owner = await register("owner@example.com")
        joiner = await register("joiner@example.com")
        workspace = await _workspace_with_code(storage, owner, "XJ29Q7")
        service = WorkspaceService(storage)

        await redeem(storage, "XJ29Q7", joiner.id)
        await service.leave_workspace(joiner.id, workspace.id)
        member = await redeem(storage, "XJ29Q7", joiner.id)

        assert member.role == RoleName.MEMBER


class TestJoinScenario:
    @pytest.mark.asyncio
    async def test_joined_member_gets_member_permissions_only(self, storage, register):
        a = await register("a@x.com")
        b = await register("b@x.com")

        workspace = await WorkspaceService(storage).create_workspace(a.id, "W")
        assert await resolve_role(storage, a.id, workspace.id) == RoleName.OWNER

        await regenerate_invite_code(storage, a.id, workspace.id, code_factory=lambda: "XJ29Q7")
        member = await redeem(storage, "XJ29Q7", b.id)
        assert (member.user_id, member.workspace_id, member.role) == (b.id, workspace.id, RoleName.MEMBER)

        with pytest.raises(UnauthorizedError):
            await authorize(storage, b.id, workspace.id, Permission.DELETE_TASK)
        ctx = await authorize(storage, a.id, workspace.id, Permission.DELETE_TASK)
        assert ctx.is_owner
