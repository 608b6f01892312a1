"""
Error hierarchy - typed, expected failures of the auth and workspace core.

Every error carries a stable ``code`` and an ``http_status``; the API layer
turns them into the same ``{"error": {"code", "message"}}`` envelope. Anything
that is not a ``TeamhubError`` is an unexpected failure and is reported as a
generic internal error, so clients can tell "not allowed" from "broken".
"""

from __future__ import annotations


class TeamhubError(Exception):
    """Base exception for all expected failures."""

    code: str = "TEAMHUB_ERROR"
    http_status: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_response(self) -> dict:
        """Convert to the REST error envelope."""
        return {"error": {"code": self.code, "message": self.message}}


# =============================================================================
# Authentication
# =============================================================================


class InvalidCredentialsError(TeamhubError):
    """Unknown email or wrong password. Deliberately indistinguishable."""

    code = "INVALID_CREDENTIALS"
    http_status = 401
    default_message = "Invalid email or password"


class ConflictError(TeamhubError):
    """Duplicate registration."""

    code = "CONFLICT"
    http_status = 409
    default_message = "Email already registered"


class EmailNotVerifiedError(TeamhubError):
    """A provider profile whose email the provider has not verified."""

    code = "EMAIL_NOT_VERIFIED"
    http_status = 403
    default_message = "The sign-in provider has not verified this email address"


class TokenError(TeamhubError):
    """Base exception for token errors."""

    code = "TOKEN_ERROR"
    http_status = 401


class TokenExpiredError(TokenError):
    """Token has expired."""

    code = "TOKEN_EXPIRED"
    default_message = "Token has expired"


class TokenInvalidError(TokenError):
    """Token is invalid, tampered with or malformed."""

    code = "TOKEN_INVALID"
    default_message = "Invalid token"


# =============================================================================
# Authorization
# =============================================================================


class NotAMemberError(TeamhubError):
    code = "NOT_A_MEMBER"
    http_status = 403
    default_message = "You are not a member of this workspace"


class UnauthorizedError(TeamhubError):
    """The caller's role lacks a required permission."""

    code = "UNAUTHORIZED"
    http_status = 403
    default_message = "You do not have the necessary permissions to perform this action"


# =============================================================================
# Invites
# =============================================================================


class InvalidInviteCodeError(TeamhubError):
    code = "INVALID_INVITE_CODE"
    http_status = 404
    default_message = "Invalid invite code or workspace not found"


class AlreadyMemberError(TeamhubError):
    code = "ALREADY_MEMBER"
    http_status = 409
    default_message = "You are already a member of this workspace"


class CodeGenerationError(TeamhubError):
    code = "CODE_GENERATION_FAILED"
    http_status = 503
    default_message = "Could not generate a unique invite code"


# =============================================================================
# General
# =============================================================================


class NotFoundError(TeamhubError):
    code = "NOT_FOUND"
    http_status = 404
    default_message = "Resource not found"


class ForbiddenOperationError(TeamhubError):
    """An allowed caller asked for something the workspace rules forbid."""

    code = "FORBIDDEN_OPERATION"
    http_status = 400
    default_message = "Operation not allowed"
