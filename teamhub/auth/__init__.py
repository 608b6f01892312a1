"""
Authentication and workspace-scoped authorization.

Design principles:
1. Identity comes from a stateless signed token, nothing else
2. Permissions come from the caller's role in the named workspace, resolved
   fresh on every request
3. One guard (``check``) for every protected operation
4. Zero boilerplate in route handlers: ``Depends(require(...))``
"""

from teamhub.auth.capabilities import (
    Permission,
    RoleName,
    ROLE_PERMISSIONS,
    permissions_for,
    seed_roles,
)
from teamhub.auth.context import AuthContext
from teamhub.auth.jwt import (
    TokenClaims,
    TokenResponse,
    issue_token,
    validate_token,
)
from teamhub.auth.passwords import hash_password, verify_password
from teamhub.auth.membership import resolve_role
from teamhub.auth.policies import (
    authenticate,
    authorize,
    check,
    require,
    require_auth,
)
from teamhub.auth.invites import generate_invite_code, redeem
from teamhub.auth.identity import (
    FederatedLogin,
    FederatedOutcome,
    login_federated,
    login_local,
    register_local,
)
from teamhub.auth.routes import router as auth_router

__all__ = [
    # Main interface
    "authenticate",
    "authorize",
    "check",
    "require",
    "require_auth",
    "AuthContext",
    # Policy
    "Permission",
    "RoleName",
    "ROLE_PERMISSIONS",
    "permissions_for",
    "seed_roles",
    "resolve_role",
    # Tokens
    "TokenClaims",
    "TokenResponse",
    "issue_token",
    "validate_token",
    # Credentials and identity
    "hash_password",
    "verify_password",
    "register_local",
    "login_local",
    "login_federated",
    "FederatedLogin",
    "FederatedOutcome",
    # Invites
    "generate_invite_code",
    "redeem",
    # Router
    "auth_router",
]
