"""
Auth context - the "who can do what, where" for each request.

This is the lightweight object passed to route handlers and services once
a request has been authenticated and, for workspace-scoped calls, had its
role resolved from membership.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from teamhub.auth.capabilities import (
    Permission,
    RoleName,
    missing_permissions,
    permissions_for,
)
from teamhub.core.errors import UnauthorizedError


@dataclass(frozen=True)
class AuthContext:
    """
    Authorization context for a request.

    Usage in routes:
        async def my_route(ctx: AuthContext = Depends(require(Permission.CREATE_TASK))):
            print(f"User {ctx.user_id} in workspace {ctx.workspace_id} as {ctx.role}")
            if ctx.can(Permission.DELETE_TASK):
                ...
    """

    user_id: str
    workspace_id: str | None = None
    role: RoleName | None = None

    _permissions: frozenset[Permission] = field(default=frozenset(), init=False, repr=False)

    def __post_init__(self):
        """Compute permissions from the resolved role."""
        if self.role is not None:
            object.__setattr__(self, "_permissions", permissions_for(self.role))

    @property
    def is_owner(self) -> bool:
        return self.role == RoleName.OWNER

    @property
    def permissions(self) -> frozenset[Permission]:
        return self._permissions

    def can(self, permission: Permission | str) -> bool:
        """Check if the user holds a permission in this workspace."""
        try:
            permission = Permission(permission)
        except ValueError:
            return False
        return permission in self._permissions

    def can_all(self, *permissions: Permission | str) -> bool:
        return all(self.can(p) for p in permissions)

    def require(self, *permissions: Permission | str) -> None:
        """Raise UnauthorizedError unless every permission is held."""
        missing = missing_permissions(self.role, permissions)
        if missing:
            raise UnauthorizedError(f"Missing permissions: {', '.join(missing)}")
