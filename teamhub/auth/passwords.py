"""
Password hashing.

PBKDF2-HMAC-SHA256 with a per-password random salt. The iteration count is
stored in the digest, so raising PASSWORD_HASH_ITERATIONS applies to new
hashes without invalidating existing ones.

Digest format: ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``
"""

from __future__ import annotations

import hashlib
import secrets

from teamhub.config import get_settings

ALGORITHM = "pbkdf2_sha256"


def _derive(password: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        iterations=iterations,
    ).hex()


def hash_password(password: str, iterations: int | None = None) -> str:
    """Hash a password. Returns the self-describing digest string."""
    iterations = iterations or get_settings().password_hash_iterations
    salt = secrets.token_hex(16)
    return f"{ALGORITHM}${iterations}${salt}${_derive(password, salt, iterations)}"


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify a password against its digest.

    Fails closed: a missing, truncated or otherwise malformed digest is a
    mismatch, never an exception.
    """
    try:
        algorithm, iterations, salt, stored = password_hash.split("$")
        if algorithm != ALGORITHM:
            return False
        candidate = _derive(password, salt, int(iterations))
        return secrets.compare_digest(candidate, stored)
    except (ValueError, AttributeError, TypeError, OverflowError):
        return False
