"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. Authorization: Bearer <token> header -- the admin SPA and scripts.
  2. "auth_token" cookie -- set by POST /admin/login for browser clients.

get_current_claims() verifies the token and re-fetches the account by the
email claim, so a deleted account holding a still-valid token is refused.
require_admin() wraps it and additionally demands role == ADMIN.

Both raise core.errors exceptions; api/main.py renders them.

Layer rule: no imports from api/ or portfolio/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import ADMIN_ROLE, SessionClaims
from auth.store import UserStore
from auth.tokens import AUTH_COOKIE_NAME, decode_access_token
from core.errors import Forbidden, Unauthorized


def extract_token(request: Request) -> str | None:
    """Return the raw session token from the Bearer header or cookie, if any."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(AUTH_COOKIE_NAME) or None


def get_current_claims(request: Request) -> SessionClaims:
    """Require a valid session token for a still-existing account.

    Use as a FastAPI dependency:
        @router.post("/admin/verify")
        def route(claims: SessionClaims = Depends(get_current_claims)): ...

    Raises:
        Unauthorized:  no token supplied.
        TokenExpired:  token past its exp.
        TokenInvalid:  bad signature, issuer, audience or shape.
        Forbidden:     the account named by the token no longer exists.
    """
    token = extract_token(request)
    if token is None:
        raise Unauthorized("Missing access token.", code="missing_token")

    claims = decode_access_token(token)

    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_email(claims.email)
    if user is None:
        raise Forbidden("Account is no longer valid.", code="account_invalid")
    # Role and name come from the database, not the (possibly stale) token.
    claims.sub = user.id
    claims.role = user.role
    claims.name = user.name
    return claims


def require_admin(request: Request) -> SessionClaims:
    """Require a verified ADMIN session. 401 if unauthenticated, 403 if not admin.

    Use as a FastAPI dependency:
        @router.post("/projects")
        def route(admin: SessionClaims = Depends(require_admin)): ...
    """
    claims = get_current_claims(request)
    if claims.role != ADMIN_ROLE:
        raise Forbidden("Admin access required.", code="admin_only")
    return claims
