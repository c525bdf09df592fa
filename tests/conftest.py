"""
tests/conftest.py -- Shared test fixtures for Assure Health.

This module provides:
  - make_directory(): an isolated in-memory AccountDirectory
  - make_account() / account_factory: insert an account with a known password
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - api: an ApiHarness (TestClient + the directory, token service and mailer
    behind it) for integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process.

Required settings must be in the environment before any api/ import, because
api/main.py reads Settings when it configures CORS.
"""

from __future__ import annotations

import functools
import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from typing import NamedTuple
from unittest.mock import MagicMock

# CRITICAL: set before any core/auth/api import so get_settings() validates.
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_KEY"] = "test-signing-key-0123456789abcdef0123456789abcdef"
os.environ["SENDGRID_API_KEY"] = "SG.test-key"
os.environ["SENDGRID_EMAIL"] = "no-reply@assure-health.com"
os.environ["BCRYPT_ROUNDS"] = "10"

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Account, Role, TokenClaim
from auth.service import AuthFlow
from auth.store import AccountDirectory
from auth.tokens import TokenService, hash_password
from core.config import get_settings
from core.mailer import SendGridMailer

TEST_PASSWORD = "Str0ng!pass"

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_directory() -> AccountDirectory:
    """Create an isolated named shared-memory AccountDirectory.

    A fresh uuid per call keeps test modules (and individual tests) from
    seeing each other's rows.
    """
    name = f"test_accounts_{uuid.uuid4().hex}"
    return AccountDirectory(f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")


def make_account(
    directory: AccountDirectory,
    email: str = "ada@example.com",
    role: str = Role.USER.value,
    verified: bool = True,
    password: str = TEST_PASSWORD,
) -> Account:
    return directory.create(
        email=email,
        first_name="ada",
        last_name="lovelace",
        password_hash=hash_password(password, rounds=10),
        role=role,
        verified=verified,
    )


def _patch_lifespan(directory: AccountDirectory, tokens: TokenService, mailer: MagicMock):
    """Return an async context manager that replaces the real lifespan.

    Wires the test directory and a mocked mailer into app.state so routes
    see isolated data and no request ever reaches SendGrid.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.settings = settings
        app.state.directory = directory
        app.state.token_service = tokens
        app.state.mailer = mailer
        app.state.auth_flow = AuthFlow(directory, tokens, mailer, bcrypt_rounds=settings.bcrypt_rounds)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class ApiHarness(NamedTuple):
    client: TestClient
    directory: AccountDirectory
    tokens: TokenService
    mailer: MagicMock

    def bearer(self, account: Account) -> dict[str, str]:
        """Authorization header carrying a fresh session token for account."""
        token = self.tokens.issue(TokenClaim.for_account(account))
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def directory() -> Generator[AccountDirectory, None, None]:
    d = make_directory()
    yield d
    d.close()


@pytest.fixture
def account_factory(directory: AccountDirectory) -> Callable[..., Account]:
    """make_account() bound to the test's directory. Default password: Str0ng!pass."""
    return functools.partial(make_account, directory)


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(get_settings().jwt_key)


@pytest.fixture
def mailer() -> MagicMock:
    return MagicMock(spec=SendGridMailer)


@pytest.fixture
def api(directory: AccountDirectory, token_service: TokenService, mailer: MagicMock) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness wired to a fresh directory.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers, guards and exception handlers.
    """
    app.router.lifespan_context = _patch_lifespan(directory, token_service, mailer)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client, directory, token_service, mailer)
