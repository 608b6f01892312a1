"""Shared test configuration."""

import os

# Settings are read on first use; set them before anything imports teamhub
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("PASSWORD_HASH_ITERATIONS", "1000")
os.environ.setdefault("SENTRY_DSN", "")

import pytest

from teamhub.auth.identity import register_local
from teamhub.storage import create_local_storage


PASSWORD = "correct-horse-battery"


@pytest.fixture
def provider():
    """Fresh in-memory storage (metadata + cache)."""
    return create_local_storage()


@pytest.fixture
def storage(provider):
    return provider.metadata


@pytest.fixture
def register(storage):
    """Register a local user: ``await register("ana@example.com")``."""

    async def _register(email: str, name: str = "Test User", password: str = PASSWORD):
        return await register_local(storage, email, password, name)

    return _register
