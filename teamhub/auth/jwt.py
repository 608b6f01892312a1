# =============================================================================
# Session Tokens
# =============================================================================
#
# Stateless, signed bearer tokens (JWT, HS256 by default):
#   - issue_token()     mint a token for a user id
#   - validate_token()  verify signature + expiry, return the user id
#
# Claims are a fixed, versioned shape: {ver, sub, iat, exp, jti}. Nothing
# about roles or workspaces goes in the token; authorization is resolved
# fresh from membership on every request. Expiry is the only way a token
# ends, there is no server-side revocation list.
#
# =============================================================================

from __future__ import annotations

import logging
from datetime import timedelta

import jwt
from pydantic import BaseModel, ConfigDict, ValidationError

from teamhub.config import get_settings
from teamhub.core.errors import TokenExpiredError, TokenInvalidError
from teamhub.core.utils import generate_id, utc_now

logger = logging.getLogger(__name__)

CLAIMS_VERSION = 1


# =============================================================================
# Models
# =============================================================================

class TokenClaims(BaseModel):
    """JWT token payload. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    ver: int
    sub: str  # user_id
    iat: int
    exp: int
    jti: str  # unique token ID


class TokenResponse(BaseModel):
    """Token handed to the client."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until the token expires


# =============================================================================
# Token Creation
# =============================================================================

def create_access_token(user_id: str, ttl_seconds: int | None = None) -> str:
    """Create a signed access token for ``user_id``."""
    settings = get_settings()
    ttl = settings.access_token_ttl_seconds if ttl_seconds is None else ttl_seconds
    now = utc_now()

    payload = {
        "ver": CLAIMS_VERSION,
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(seconds=ttl),
        "jti": generate_id("tok"),
    }

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def issue_token(user_id: str, ttl_seconds: int | None = None) -> TokenResponse:
    """Mint a token and wrap it for the client."""
    settings = get_settings()
    ttl = settings.access_token_ttl_seconds if ttl_seconds is None else ttl_seconds
    return TokenResponse(
        access_token=create_access_token(user_id, ttl),
        expires_in=ttl,
    )


# =============================================================================
# Token Validation
# =============================================================================

def decode_token(token: str) -> TokenClaims:
    """
    Decode and validate a JWT token.

    Args:
        token: The JWT string

    Returns:
        TokenClaims with validated claims

    Raises:
        TokenExpiredError: Signature is valid but the token has expired
        TokenInvalidError: Bad signature, malformed, or unexpected claims
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected token: {e}")
        raise TokenInvalidError()

    try:
        claims = TokenClaims.model_validate(payload)
    except ValidationError:
        raise TokenInvalidError("Malformed token claims")

    if claims.ver != CLAIMS_VERSION:
        raise TokenInvalidError(f"Unsupported token version {claims.ver}")

    return claims


def validate_token(token: str) -> str:
    """Validate a token and return the user id it was issued to."""
    return decode_token(token).sub
