"""
Core module - data models, errors and shared helpers.
"""

from teamhub.core.errors import (
    TeamhubError,
    InvalidCredentialsError,
    ConflictError,
    EmailNotVerifiedError,
    TokenError,
    TokenInvalidError,
    TokenExpiredError,
    NotAMemberError,
    UnauthorizedError,
    InvalidInviteCodeError,
    AlreadyMemberError,
    CodeGenerationError,
    NotFoundError,
    ForbiddenOperationError,
)
from teamhub.core.models import (
    Document,
    User,
    Account,
    Workspace,
    Role,
    Member,
    Project,
    Task,
    ProviderKind,
    RoleName,
    TaskStatus,
    TaskPriority,
)
from teamhub.core.utils import generate_id, utc_now, normalize_email

__all__ = [
    # Errors
    "TeamhubError",
    "InvalidCredentialsError",
    "ConflictError",
    "EmailNotVerifiedError",
    "TokenError",
    "TokenInvalidError",
    "TokenExpiredError",
    "NotAMemberError",
    "UnauthorizedError",
    "InvalidInviteCodeError",
    "AlreadyMemberError",
    "CodeGenerationError",
    "NotFoundError",
    "ForbiddenOperationError",
    # Models
    "Document",
    "User",
    "Account",
    "Workspace",
    "Role",
    "Member",
    "Project",
    "Task",
    "ProviderKind",
    "RoleName",
    "TaskStatus",
    "TaskPriority",
    # Utils
    "generate_id",
    "utc_now",
    "normalize_email",
]
