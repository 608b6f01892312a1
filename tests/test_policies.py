"""
Tests for the permission table, role seeding and the authorization guard.
"""

import pytest

from teamhub.auth.capabilities import (
    ROLE_PERMISSIONS,
    Permission,
    RoleName,
    has_permission,
    permissions_for,
    seed_roles,
)
from teamhub.auth.context import AuthContext
from teamhub.auth.membership import add_member, resolve_role
from teamhub.auth.policies import authorize, check
from teamhub.core.errors import NotAMemberError, UnauthorizedError
from teamhub.storage.base import Collections


# =============================================================================
# Permission table
# =============================================================================


class TestRolePermissions:
    def test_every_role_has_an_entry(self):
        assert set(ROLE_PERMISSIONS) == set(RoleName)

    def test_owner_has_everything(self):
        assert permissions_for(RoleName.OWNER) == frozenset(Permission)

    def test_roles_are_nested(self):
        member = permissions_for(RoleName.MEMBER)
        admin = permissions_for(RoleName.ADMIN)
        owner = permissions_for(RoleName.OWNER)
        assert member < admin < owner

    @pytest.mark.parametrize("permission", list(Permission))
    def test_monotonic(self, permission):
        if has_permission(RoleName.MEMBER, permission):
            assert has_permission(RoleName.ADMIN, permission)
        if has_permission(RoleName.ADMIN, permission):
            assert has_permission(RoleName.OWNER, permission)

    def test_owner_only(self):
        for permission in (Permission.DELETE_WORKSPACE, Permission.CHANGE_ROLE, Permission.REMOVE_MEMBER):
            assert not has_permission(RoleName.ADMIN, permission)
            assert has_permission(RoleName.OWNER, permission)

    def test_member_cannot_delete_tasks(self):
        assert not has_permission(RoleName.MEMBER, Permission.DELETE_TASK)
        assert has_permission(RoleName.MEMBER, Permission.EDIT_TASK)

    def test_accepts_plain_strings(self):
        assert has_permission("admin", "project.create")
        assert not has_permission("member", "no.such.permission")

    def test_unknown_role_grants_nothing(self):
        assert permissions_for("superuser") == frozenset()
        assert not has_permission("superuser", Permission.VIEW_ONLY)


class TestSeedRoles:
    @pytest.mark.asyncio
    async def test_seeds_all_roles(self, storage):
        assert await seed_roles(storage) == len(RoleName)

        doc = await storage.get(Collections.ROLES, "member")
        assert sorted(doc["permissions"]) == sorted(p.value for p in ROLE_PERMISSIONS[RoleName.MEMBER])

    @pytest.mark.asyncio
    async def test_idempotent(self, storage):
        await seed_roles(storage)
        before = await storage.query(Collections.ROLES)

        assert await seed_roles(storage) == 0
        assert await storage.query(Collections.ROLES) == before

    @pytest.mark.asyncio
    async def test_rewrites_drift(self, storage):
        await seed_roles(storage)
        await storage.update(Collections.ROLES, "admin", {"permissions": ["workspace.view"]})

        assert await seed_roles(storage) == 1
        doc = await storage.get(Collections.ROLES, "admin")
        assert len(doc["permissions"]) == len(ROLE_PERMISSIONS[RoleName.ADMIN])


# =============================================================================
# Guard
# =============================================================================


class TestCheck:
    def test_allows(self):
        check(RoleName.ADMIN, Permission.CREATE_PROJECT, Permission.DELETE_TASK)

    def test_no_permissions_required(self):
        check(RoleName.MEMBER)

    def test_all_required(self):
        with pytest.raises(UnauthorizedError) as exc:
            check(RoleName.MEMBER, Permission.CREATE_TASK, Permission.DELETE_TASK)
        assert "task.delete" in exc.value.message
        assert "task.create" not in exc.value.message

    def test_unknown_permission_denied(self):
        with pytest.raises(UnauthorizedError):
            check(RoleName.OWNER, "workspace.destroy_everything")

    def test_unknown_role_denied(self):
        with pytest.raises(UnauthorizedError):
            check("superuser", Permission.VIEW_ONLY)


class TestAuthContext:
    def test_identity_only(self):
        ctx = AuthContext(user_id="user_1")
        assert ctx.permissions == frozenset()
        assert not ctx.can(Permission.VIEW_ONLY)

    def test_role_permissions(self):
        ctx = AuthContext(user_id="user_1", workspace_id="ws_1", role=RoleName.MEMBER)
        assert ctx.can(Permission.EDIT_TASK)
        assert ctx.can_all(Permission.VIEW_ONLY, Permission.CREATE_TASK)
        assert not ctx.can_all(Permission.VIEW_ONLY, Permission.DELETE_TASK)
        assert not ctx.is_owner

    def test_require(self):
        ctx = AuthContext(user_id="user_1", workspace_id="ws_1", role=RoleName.ADMIN)
        ctx.require(Permission.INVITE_MEMBER)
        with pytest.raises(UnauthorizedError):
            ctx.require(Permission.CHANGE_ROLE)


class TestAuthorize:
    @pytest.mark.asyncio
    async def test_member_role_resolved(self, storage):
        await add_member(storage, "user_1", "ws_1", RoleName.ADMIN)

        ctx = await authorize(storage, "user_1", "ws_1", Permission.CREATE_PROJECT)
        assert ctx.role == RoleName.ADMIN
        assert ctx.workspace_id == "ws_1"

    @pytest.mark.asyncio
    async def test_not_a_member(self, storage):
        await add_member(storage, "user_1", "ws_1", RoleName.OWNER)

        with pytest.raises(NotAMemberError):
            await authorize(storage, "user_1", "ws_2", Permission.VIEW_ONLY)
        with pytest.raises(NotAMemberError):
            await authorize(storage, "user_2", "ws_1")

    @pytest.mark.asyncio
    async def test_role_lacks_permission(self, storage):
        await add_member(storage, "user_1", "ws_1", RoleName.MEMBER)

        with pytest.raises(UnauthorizedError):
            await authorize(storage, "user_1", "ws_1", Permission.DELETE_TASK)

    @pytest.mark.asyncio
    async def test_role_change_takes_effect_immediately(self, storage):
        member = await add_member(storage, "user_1", "ws_1", RoleName.MEMBER)
        with pytest.raises(UnauthorizedError):
            await authorize(storage, "user_1", "ws_1", Permission.CREATE_PROJECT)

        await storage.update(Collections.MEMBERS, member.id, {"role": "admin"})
        assert await resolve_role(storage, "user_1", "ws_1") == RoleName.ADMIN
        await authorize(storage, "user_1", "ws_1", Permission.CREATE_PROJECT)
