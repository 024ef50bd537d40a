"""
tests/conftest.py -- Shared test fixtures for Aria Creative integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + portfolio
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus admin and editor JWTs
  - reset_rate_limits: clears slowapi and login limiter counters between tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG and ALLOWED_HOSTS must be set before any api/auth/core import:
get_settings() auto-generates SECRET_KEY only in dev mode, and TestClient
sends Host: testserver.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: Set env before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["*"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import LoginRateLimiter, limiter
from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from core.errors import UpstreamFailure
from portfolio.mailer import ContactMailer
from portfolio.store import PortfolioStore
from portfolio.uploads import ImageStorage

ADMIN_EMAIL = "admin@ariacreative.test"
ADMIN_PASSWORD = "adminpass123"
EDITOR_EMAIL = "editor@ariacreative.test"
EDITOR_PASSWORD = "editorpass123"

# Smallest byte strings filetype recognizes as each image type.
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 100
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 100

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, PortfolioStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   never share state.
    """
    url = f"sqlite:///file:test_aria_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), PortfolioStore(db_url=url)


def _failing_mailer() -> MagicMock:
    """A configured mailer whose transport is unreachable."""
    mailer = MagicMock(spec=ContactMailer)
    mailer.configured = True
    mailer.send_contact_notifications.side_effect = UpstreamFailure("Email delivery failed.", code="email_failed")
    mailer.verify.side_effect = UpstreamFailure("Email transport verification failed.", code="email_failed")
    return mailer


def _patch_lifespan(user_store: UserStore, portfolio: PortfolioStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database. The mailer is a
    mock so no test ever opens an SMTP connection.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.portfolio = portfolio
        app.state.image_storage = ImageStorage(portfolio, backend="database")
        app.state.mailer = _failing_mailer()
        app.state.login_limiter = LoginRateLimiter("5 per 15 minutes")
        app.state.start_time = 0.0
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, editor_token) for API integration tests.

    Seeds one ADMIN and one EDITOR account. The EDITOR exists so tests can
    check that a valid token for a non-admin role is refused.
    """
    user_store, portfolio = _make_test_stores(uuid.uuid4().hex)

    admin = User(email=ADMIN_EMAIL, name="Aria Admin", role="ADMIN", hashed_password=hash_password(ADMIN_PASSWORD))
    admin.id = user_store.create_user(admin)
    editor = User(email=EDITOR_EMAIL, name="Aria Editor", role="EDITOR", hashed_password=hash_password(EDITOR_PASSWORD))
    editor.id = user_store.create_user(editor)

    admin_token = create_access_token(admin)
    editor_token = create_access_token(editor)

    app.router.lifespan_context = _patch_lifespan(user_store, portfolio)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, admin_token, editor_token

    portfolio.close()
    user_store.close()


@pytest.fixture(autouse=True)
def reset_rate_limits() -> Generator[None, None, None]:
    """Start every test with empty rate-limit counters."""
    limiter.reset()
    login_limiter = getattr(app.state, "login_limiter", None)
    if login_limiter is not None:
        login_limiter.reset()
    yield


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
