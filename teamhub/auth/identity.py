"""
Identity resolution - credentials or a provider profile in, a User out.

Three entry points:
    register_local()   email + password → new User + LOCAL Account
    login_local()      email + password → existing User
    login_federated()  provider profile → existing, linked, or new User

New users get a personal workspace (and OWNER membership in it) in the same
transaction that creates them.
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import lru_cache

from pydantic import BaseModel

from teamhub.auth.invites import generate_invite_code
from teamhub.auth.membership import stage_workspace
from teamhub.auth.passwords import hash_password, verify_password
from teamhub.core.errors import (
    CodeGenerationError,
    ConflictError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    NotFoundError,
)
from teamhub.core.models import Account, ProviderKind, User
from teamhub.core.utils import normalize_email, utc_now
from teamhub.storage.base import Collections, DuplicateKeyError, MetadataStorage

logger = logging.getLogger(__name__)

PERSONAL_WORKSPACE_NAME = "My Workspace"


class FederatedOutcome(str, Enum):
    """Which branch a federated login took."""

    REUSED = "reused"    # Account existed
    LINKED = "linked"    # User existed by email, Account added
    CREATED = "created"  # Neither existed, both created


class FederatedLogin(BaseModel):
    user: User
    outcome: FederatedOutcome


# =============================================================================
# Lookups
# =============================================================================


async def get_user(storage: MetadataStorage, user_id: str) -> User | None:
    doc = await storage.get(Collections.USERS, user_id)
    return User.from_doc(doc) if doc else None


async def get_user_by_email(storage: MetadataStorage, email: str) -> User | None:
    doc = await storage.find_one(Collections.USERS, {"email": normalize_email(email)})
    return User.from_doc(doc) if doc else None


async def get_account(
    storage: MetadataStorage,
    provider: ProviderKind,
    provider_id: str,
) -> Account | None:
    doc = await storage.find_one(
        Collections.ACCOUNTS,
        {"provider": provider.value, "provider_id": provider_id},
    )
    return Account.from_doc(doc) if doc else None


async def get_user_account(
    storage: MetadataStorage,
    user_id: str,
    provider: ProviderKind,
) -> Account | None:
    """The User's Account with ``provider``; there is at most one."""
    doc = await storage.find_one(
        Collections.ACCOUNTS,
        {"user_id": user_id, "provider": provider.value},
    )
    return Account.from_doc(doc) if doc else None


async def _create_user_with_account(
    storage: MetadataStorage,
    user: User,
    provider: ProviderKind,
    provider_id: str,
) -> User:
    """User + Account + personal workspace, all-or-nothing."""
    invite_code = await generate_invite_code(storage)
    account = Account(user_id=user.id, provider=provider, provider_id=provider_id)

    try:
        async with storage.transaction() as tx:
            workspace = stage_workspace(tx, user.id, PERSONAL_WORKSPACE_NAME, invite_code)
            user = user.model_copy(update={"current_workspace_id": workspace.id})
            tx.insert(Collections.USERS, user.id, user.to_doc())
            tx.insert(Collections.ACCOUNTS, account.id, account.to_doc())
    except DuplicateKeyError as e:
        if e.collection == Collections.WORKSPACES:
            raise CodeGenerationError()
        raise

    return user


async def _touch_login(storage: MetadataStorage, user: User) -> User:
    now = utc_now()
    await storage.update(Collections.USERS, user.id, {"last_login_at": now.isoformat()})
    return user.model_copy(update={"last_login_at": now})


# =============================================================================
# Local
# =============================================================================


async def register_local(
    storage: MetadataStorage,
    email: str,
    password: str,
    name: str,
) -> User:
    """
    Register an email + password user.

    Raises:
        ConflictError: the email already belongs to a user
    """
    email = normalize_email(email)

    if await get_account(storage, ProviderKind.LOCAL, email) or await get_user_by_email(storage, email):
        raise ConflictError()

    user = User(email=email, name=name, password_hash=hash_password(password))
    try:
        user = await _create_user_with_account(storage, user, ProviderKind.LOCAL, email)
    except DuplicateKeyError as e:
        # Lost a race with a concurrent registration
        if e.collection in (Collections.USERS, Collections.ACCOUNTS):
            raise ConflictError()
        raise

    logger.info(f"Registered local user {user.id}")
    return user


@lru_cache
def _dummy_hash() -> str:
    return hash_password("not-a-real-password")


async def login_local(storage: MetadataStorage, email: str, password: str) -> User:
    """
    Verify email + password.

    Raises:
        InvalidCredentialsError: for an unknown email and for a wrong
            password alike, with the same message
    """
    email = normalize_email(email)
    account = await get_account(storage, ProviderKind.LOCAL, email)
    user = await get_user(storage, account.user_id) if account else None

    if user is None or not user.password_hash:
        # Burn the same work as a real check
        verify_password(password, _dummy_hash())
        raise InvalidCredentialsError()

    if not verify_password(password, user.password_hash):
        raise InvalidCredentialsError()

    return await _touch_login(storage, user)


# =============================================================================
# Federated
# =============================================================================


async def login_federated(
    storage: MetadataStorage,
    provider: ProviderKind,
    provider_id: str,
    email: str,
    name: str | None = None,
    picture: str | None = None,
    email_verified: bool = False,
) -> FederatedLogin:
    """
    Resolve a provider profile to a User, creating what is missing.

    1. Account(provider, provider_id) exists → reuse its User
    2. a User with this email exists → link a new Account to it, only if the
       provider verified the email and the User has no Account with this
       provider yet
    3. neither → create User + Account (+ personal workspace)

    First contact never fails; if a concurrent login wins a unique insert,
    the winner's records are re-read and reused.

    Raises:
        EmailNotVerifiedError: linking was needed but ``email_verified`` is False
        ConflictError: the User already has a different Account for ``provider``
    """
    email = normalize_email(email)

    for _ in range(2):
        account = await get_account(storage, provider, provider_id)
        if account:
            user = await get_user(storage, account.user_id)
            if user is None:
                raise NotFoundError(f"User for {provider.value} account not found")
            return FederatedLogin(user=await _touch_login(storage, user), outcome=FederatedOutcome.REUSED)

        try:
            existing = await get_user_by_email(storage, email)
            if existing:
                if not email_verified:
                    logger.warning(f"Refused to link unverified {provider.value} email to user {existing.id}")
                    raise EmailNotVerifiedError()
                if await get_user_account(storage, existing.id, provider):
                    raise ConflictError(f"A {provider.value} account is already linked to this user")
                account = Account(user_id=existing.id, provider=provider, provider_id=provider_id)
                await storage.insert(Collections.ACCOUNTS, account.id, account.to_doc())
                logger.info(f"Linked {provider.value} account to user {existing.id}")
                return FederatedLogin(user=await _touch_login(storage, existing), outcome=FederatedOutcome.LINKED)

            user = User(
                email=email,
                name=name or email.split("@")[0],
                profile_picture=picture,
            )
            user = await _create_user_with_account(storage, user, provider, provider_id)
            logger.info(f"Created user {user.id} from {provider.value} login")
            return FederatedLogin(user=await _touch_login(storage, user), outcome=FederatedOutcome.CREATED)
        except DuplicateKeyError as e:
            if e.collection not in (Collections.USERS, Collections.ACCOUNTS):
                raise
            logger.info(f"Concurrent {provider.value} first login for {provider_id}, retrying lookup")

    raise NotFoundError(f"Could not resolve {provider.value} identity")


# =============================================================================
# Profile
# =============================================================================


async def update_profile(
    storage: MetadataStorage,
    user_id: str,
    name: str | None = None,
    picture: str | None = None,
) -> User:
    user = await get_user(storage, user_id)
    if user is None:
        raise NotFoundError("User not found")

    updates: dict = {}
    if name:
        updates["name"] = name
    if picture is not None:
        updates["profile_picture"] = picture
    if not updates:
        return user

    now = utc_now()
    updates["updated_at"] = now.isoformat()
    await storage.update(Collections.USERS, user_id, updates)
    return user.model_copy(update={**updates, "updated_at": now})
