# =============================================================================
# OAuth Integration (Google)
# =============================================================================
#
# Setup:
#   1. Go to https://console.cloud.google.com/apis/credentials
#   2. Create OAuth 2.0 Client ID (Web application)
#   3. Add authorized redirect URI: GOOGLE_OAUTH_CALLBACK_URL
#   4. Set env vars:
#      - GOOGLE_OAUTH_CLIENT_ID=...
#      - GOOGLE_OAUTH_CLIENT_SECRET=...
#      - GOOGLE_OAUTH_CALLBACK_URL=https://api.yourdomain.com/auth/google/callback
#
# This module only does the provider round-trip. What comes out of it is an
# OAuthUserInfo; turning that into a User is teamhub.auth.identity's job.
#
# =============================================================================

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from teamhub.config import Settings, get_settings
from teamhub.core.errors import TeamhubError
from teamhub.core.models import ProviderKind
from teamhub.core.utils import generate_id
from teamhub.storage.base import CacheStorage

logger = logging.getLogger(__name__)

STATE_TTL_SECONDS = 600


# =============================================================================
# Models
# =============================================================================

class OAuthUserInfo(BaseModel):
    """User info retrieved from OAuth provider."""
    provider: ProviderKind
    provider_user_id: str
    email: str
    name: str
    picture_url: str | None = None
    email_verified: bool = False


class OAuthError(TeamhubError):
    """OAuth flow error."""

    code = "OAUTH_ERROR"
    http_status = 400
    default_message = "OAuth sign-in failed"


# =============================================================================
# Google OAuth
# =============================================================================

class GoogleOAuth:
    """
    Google sign-in: authorize URL, code → access token, access token → profile.

    ``transport`` lets tests swap in ``httpx.MockTransport``.
    """

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
    SCOPES = "openid email profile"

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or get_settings()
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.settings.google_oauth_enabled

    @property
    def redirect_uri(self) -> str:
        return self.settings.google_oauth_callback_url

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise OAuthError("Google OAuth not configured")

    async def _call(self, method: str, url: str, step: str, **kwargs: Any) -> dict[str, Any]:
        async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
            response = await client.request(method, url, **kwargs)
        if response.status_code != 200:
            # Body may echo the code or token back; log the status only
            logger.error(f"Google {step} failed: HTTP {response.status_code}")
            raise OAuthError(f"Google {step} failed")
        return response.json()

    def get_authorize_url(self, state: str | None = None) -> str:
        """URL that starts the consent screen; ``state`` is echoed back to the callback."""
        self._ensure_configured()
        params = {
            "client_id": self.settings.google_oauth_client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.SCOPES,
            "prompt": "select_account",
        }
        if state:
            params["state"] = state
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict[str, Any]:
        self._ensure_configured()
        return await self._call(
            "POST",
            self.TOKEN_URL,
            "token exchange",
            data={
                "client_id": self.settings.google_oauth_client_id,
                "client_secret": self.settings.google_oauth_client_secret,
                "code": code,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
        )

    async def get_user_info(self, access_token: str) -> OAuthUserInfo:
        data = await self._call(
            "GET",
            self.USERINFO_URL,
            "userinfo",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        email = data.get("email")
        if not email:
            raise OAuthError("Google account has no email address")

        return OAuthUserInfo(
            provider=ProviderKind.GOOGLE,
            provider_user_id=str(data["id"]),
            email=email,
            name=data.get("name") or email.split("@")[0],
            picture_url=data.get("picture"),
            email_verified=data.get("verified_email", False) is True,
        )

    async def authenticate(self, code: str) -> OAuthUserInfo:
        tokens = await self.exchange_code(code)
        if "access_token" not in tokens:
            raise OAuthError("Google token response had no access token")
        return await self.get_user_info(tokens["access_token"])


# =============================================================================
# OAuth Manager
# =============================================================================

class OAuthManager:
    """Configured providers plus CSRF state bookkeeping."""

    def __init__(self, cache: CacheStorage, google: GoogleOAuth | None = None):
        self.cache = cache
        self.google = google or GoogleOAuth()

    def get_available_providers(self) -> list[str]:
        """Get list of configured OAuth providers."""
        providers = []
        if self.google.is_configured:
            providers.append(ProviderKind.GOOGLE.value)
        return providers

    async def create_state(self, provider: str) -> str:
        """Create a single-use state token for CSRF protection."""
        state = generate_id("oauth")
        await self.cache.set(f"oauth_state:{state}", provider, ttl=STATE_TTL_SECONDS)
        return state

    async def validate_state(self, state: str) -> str | None:
        """Validate and consume a state token. Returns provider if valid."""
        key = f"oauth_state:{state}"
        provider = await self.cache.get(key)
        if provider is not None:
            await self.cache.delete(key)
        return provider

    async def get_authorize_url(self, provider: str) -> str:
        """Get authorization URL for a provider."""
        if provider != ProviderKind.GOOGLE.value:
            raise OAuthError(f"Unknown provider: {provider}")
        state = await self.create_state(provider)
        return self.google.get_authorize_url(state)

    async def authenticate(self, provider: str, code: str, state: str | None) -> OAuthUserInfo:
        """Check state, then complete authentication for a provider."""
        if not state or await self.validate_state(state) != provider:
            raise OAuthError("Invalid state parameter")

        if provider == ProviderKind.GOOGLE.value:
            return await self.google.authenticate(code)
        raise OAuthError(f"Unknown provider: {provider}")
