# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST  /auth/register    - Create account, get a token
#   POST  /auth/login       - Get a token
#   POST  /auth/logout      - Client discards its token
#   GET   /auth/me          - Get current user
#   PATCH /auth/me          - Update profile
#
# OAuth:
#   GET  /auth/providers            - List available OAuth providers
#   GET  /auth/{provider}/authorize - Get OAuth redirect URL
#   GET  /auth/{provider}/callback  - Complete OAuth flow, redirect to frontend
#
# =============================================================================

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, EmailStr, Field

from teamhub.auth.context import AuthContext
from teamhub.auth.identity import (
    get_user,
    login_federated,
    login_local,
    register_local,
    update_profile,
)
from teamhub.auth.jwt import TokenResponse, issue_token
from teamhub.auth.policies import get_storage, require_auth
from teamhub.config import get_settings
from teamhub.core.errors import NotFoundError, TeamhubError
from teamhub.integrations.oauth import OAuthError, OAuthManager
from teamhub.storage.base import StorageProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================================================================
# Request/Response Models
# =============================================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: str = Field(min_length=1, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UpdateProfileRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    profile_picture: str | None = None


class AuthResponse(TokenResponse):
    user: dict


def get_oauth_manager(storage: StorageProvider = Depends(get_storage)) -> OAuthManager:
    return OAuthManager(storage.cache)


# =============================================================================
# Public Endpoints
# =============================================================================

@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(data: RegisterRequest, storage: StorageProvider = Depends(get_storage)):
    """Create a new account (and its personal workspace)."""
    user = await register_local(storage.metadata, data.email, data.password, data.name)
    token = issue_token(user.id)
    return AuthResponse(**token.model_dump(), user=user.public())


@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, storage: StorageProvider = Depends(get_storage)):
    """Authenticate and get a token."""
    user = await login_local(storage.metadata, data.email, data.password)
    token = issue_token(user.id)
    return AuthResponse(**token.model_dump(), user=user.public())


@router.post("/logout")
async def logout(ctx: AuthContext = Depends(require_auth())):
    """
    Logout (client should discard its token).

    Tokens are stateless; they stop working when they expire.
    """
    return {"message": "Logged out successfully"}


# =============================================================================
# Protected Endpoints
# =============================================================================

@router.get("/me")
async def get_current_user(
    ctx: AuthContext = Depends(require_auth()),
    storage: StorageProvider = Depends(get_storage),
):
    """Get the current authenticated user."""
    user = await get_user(storage.metadata, ctx.user_id)
    if not user:
        raise NotFoundError("User not found")
    return {"user": user.public()}


@router.patch("/me")
async def update_current_user(
    data: UpdateProfileRequest,
    ctx: AuthContext = Depends(require_auth()),
    storage: StorageProvider = Depends(get_storage),
):
    """Update the current user's profile."""
    user = await update_profile(storage.metadata, ctx.user_id, data.name, data.profile_picture)
    return {"user": user.public()}


# =============================================================================
# OAuth Endpoints
# =============================================================================

@router.get("/providers")
async def list_oauth_providers(oauth: OAuthManager = Depends(get_oauth_manager)):
    """List OAuth providers that are configured."""
    return {"providers": oauth.get_available_providers()}


@router.get("/{provider}/authorize")
async def oauth_authorize(provider: str, oauth: OAuthManager = Depends(get_oauth_manager)):
    """
    Get the OAuth authorization URL.

    Redirect the user to this URL to start the OAuth flow.
    """
    if provider not in oauth.get_available_providers():
        raise OAuthError(f"Provider '{provider}' not available")

    return {"authorize_url": await oauth.get_authorize_url(provider)}


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    oauth: OAuthManager = Depends(get_oauth_manager),
    storage: StorageProvider = Depends(get_storage),
):
    """
    Complete the OAuth flow and hand off to the frontend.

    The browser is redirected to FRONTEND_GOOGLE_CALLBACK_URL with
    ``status=success`` and the session token in the URL fragment, or with
    ``status=failure``. A denied consent screen comes back with ``error``
    and no ``code``, and also ends in ``status=failure``.
    """
    target = get_settings().frontend_google_callback_url
    failure = f"{target}?{urlencode({'status': 'failure'})}"

    if error or not code:
        logger.info(f"OAuth callback for {provider} without code: {error or 'missing code'}")
        if state:
            await oauth.validate_state(state)
        return RedirectResponse(failure)

    try:
        profile = await oauth.authenticate(provider, code, state)
        result = await login_federated(
            storage.metadata,
            profile.provider,
            profile.provider_user_id,
            profile.email,
            name=profile.name,
            picture=profile.picture_url,
            email_verified=profile.email_verified,
        )
    except TeamhubError as e:
        logger.warning(f"OAuth callback for {provider} failed: {e.code}")
        return RedirectResponse(failure)

    token = issue_token(result.user.id)
    query = urlencode({
        "status": "success",
        "current_workspace": result.user.current_workspace_id or "",
    })
    fragment = urlencode({"access_token": token.access_token})
    return RedirectResponse(f"{target}?{query}#{fragment}")
