"""
Policies - the single authorization guard and its route-facing interface.

Every protected operation goes through the same sequence, stopping at the
first failure:

    token → user id → role in the target workspace → permission check

``check()`` is the guard itself: pure, no I/O. ``authorize()`` adds the
membership lookup. ``require()`` wraps both as a FastAPI dependency so
route handlers never re-implement any of it:

    @router.delete("/workspaces/{workspace_id}/tasks/{task_id}")
    async def delete_task(ctx: AuthContext = Depends(require(Permission.DELETE_TASK))):
        ...
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from teamhub.auth.capabilities import Permission, RoleName, missing_permissions
from teamhub.auth.context import AuthContext
from teamhub.auth.jwt import validate_token
from teamhub.auth.membership import resolve_role
from teamhub.core.errors import TokenInvalidError, UnauthorizedError
from teamhub.storage.base import MetadataStorage, StorageProvider


# =============================================================================
# Guard
# =============================================================================


def check(role: RoleName | str, *permissions: Permission | str) -> None:
    """
    Allow or deny. Every listed permission must be granted by the role.

    Raises:
        UnauthorizedError: naming the missing permission(s)
    """
    missing = missing_permissions(role, permissions)
    if missing:
        raise UnauthorizedError(f"Missing permissions: {', '.join(missing)}")


# =============================================================================
# Core entry points
# =============================================================================


def authenticate(token: str) -> str:
    """Validate a bearer token and return the user id."""
    return validate_token(token)


async def authorize(
    storage: MetadataStorage,
    user_id: str,
    workspace_id: str,
    *permissions: Permission | str,
) -> AuthContext:
    """
    Resolve the user's role in ``workspace_id`` and check permissions.

    Raises:
        NotAMemberError: user has no Member record in the workspace
        UnauthorizedError: role lacks a required permission
    """
    role = await resolve_role(storage, user_id, workspace_id)
    check(role, *permissions)
    return AuthContext(user_id=user_id, workspace_id=workspace_id, role=role)


# =============================================================================
# FastAPI dependencies
# =============================================================================


bearer = HTTPBearer(auto_error=False)


def get_storage(request: Request) -> StorageProvider:
    """The StorageProvider created in the app lifespan."""
    return request.app.state.storage


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
) -> str:
    """Extract and validate the bearer token. Missing token is invalid."""
    if not credentials:
        raise TokenInvalidError("Authentication required")
    return authenticate(credentials.credentials)


def require(*permissions: Permission | str) -> Callable:
    """
    Require permissions in the workspace named by the ``workspace_id`` path
    parameter.

    Returns:
        FastAPI Depends that resolves to AuthContext
    """

    async def dependency(
        request: Request,
        user_id: str = Depends(get_current_user_id),
    ) -> AuthContext:
        workspace_id = request.path_params["workspace_id"]
        return await authorize(get_storage(request).metadata, user_id, workspace_id, *permissions)

    return dependency


def require_auth() -> Callable:
    """Just require authentication, no workspace or permission."""

    async def dependency(user_id: str = Depends(get_current_user_id)) -> AuthContext:
        return AuthContext(user_id=user_id)

    return dependency
