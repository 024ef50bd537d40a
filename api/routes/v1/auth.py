"""
api/routes/v1/auth.py -- Back-office authentication endpoints.

Routes:
  POST /api/v1/admin/login    -- email/password login; returns JWT and sets cookie
  POST /api/v1/admin/verify   -- validate the presented token; returns user + expiry
  POST /api/v1/admin/refresh  -- re-issue a token with a fresh expiry
  POST /api/v1/admin/logout   -- clear the cookie
  GET  /api/v1/admin/profile  -- full profile of the token's account

Security:
  Login attempts are limited per (client IP, submitted email), and the limiter
      is hit before the body is validated so malformed attempts count too.
  authenticate_admin() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on every response that carries a token.
  Logout is stateless: a token copied before logout stays valid until exp.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from slowapi.util import get_remote_address
from starlette.concurrency import run_in_threadpool

from api.limiter import LoginRateLimiter
from api.models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RefreshResponse,
    UserResponse,
    VerifyResponse,
)
from auth.dependencies import get_current_claims
from auth.models import SessionClaims
from auth.store import UserStore
from auth.tokens import (
    authenticate_admin,
    clear_auth_cookie,
    create_access_token,
    decode_access_token,
    refresh_access_token,
    set_auth_cookie,
)
from core.config import get_settings
from core.errors import BadRequest, NotFound

logger = logging.getLogger("ariacreative.auth")

_settings = get_settings()

# Auth policy:
# - POST /api/v1/admin/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/admin/logout:   public -- clearing a cookie needs no prior auth
# - POST /api/v1/admin/verify:   requires a valid token for an existing account
# - POST /api/v1/admin/refresh:  requires a valid token for an existing account
# - GET  /api/v1/admin/profile:  requires a valid token for an existing account
router = APIRouter()


def _expires_at(exp: int) -> str:
    return datetime.fromtimestamp(exp, tz=timezone.utc).isoformat()


def _claims_user(claims: SessionClaims) -> UserResponse:
    return UserResponse(id=claims.sub, email=claims.email, name=claims.name, role=claims.role)


@router.post(
    "/admin/login",
    response_model=LoginResponse,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": LoginRequest.model_json_schema()}},
        }
    },
)
async def login(request: Request) -> JSONResponse:
    """Authenticate an administrator; return the JWT and set the auth cookie.

    The body is parsed by hand so the rate limiter sees every attempt,
    including ones that would fail validation.

    Check order: rate limit -> validation -> unknown email (404) ->
    non-admin role (403) -> wrong password (401).
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise BadRequest("Request body must be valid JSON.", code="invalid_json") from exc

    raw_email = payload.get("email") if isinstance(payload, dict) else None
    login_limiter: LoginRateLimiter = request.app.state.login_limiter
    login_limiter.hit(get_remote_address(request), str(raw_email or ""))

    try:
        body = LoginRequest.model_validate(payload)
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc

    user_store: UserStore = request.app.state.user_store
    user = await run_in_threadpool(authenticate_admin, user_store, body.email, body.password)

    token = create_access_token(user)
    logger.info("Admin login: %s (%s)", user.email, user.id)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=token,
            expires_in=_settings.token_expire_seconds,
            user=UserResponse(id=user.id, email=user.email, name=user.name, role=user.role),
        ).model_dump(by_alias=True),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/admin/verify", response_model=VerifyResponse)
def verify(claims: SessionClaims = Depends(get_current_claims)) -> VerifyResponse:
    """Confirm the presented token is valid and its account still exists."""
    return VerifyResponse(user=_claims_user(claims), expires_at=_expires_at(claims.exp))


@router.post("/admin/refresh", response_model=RefreshResponse)
def refresh(claims: SessionClaims = Depends(get_current_claims)) -> JSONResponse:
    """Issue a new token for the same identity and reset the cookie."""
    token = refresh_access_token(claims)
    new_claims = decode_access_token(token)
    logger.info("Token refreshed for %s", claims.email)
    resp = JSONResponse(
        content=RefreshResponse(token=token, expires_at=_expires_at(new_claims.exp)).model_dump(by_alias=True),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/admin/logout", response_model=MessageResponse)
def logout() -> JSONResponse:
    """Clear the auth cookie. The token itself is not revoked."""
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump(by_alias=True))
    clear_auth_cookie(resp)
    return resp


@router.get("/admin/profile", response_model=ProfileResponse)
def profile(request: Request, claims: SessionClaims = Depends(get_current_claims)) -> ProfileResponse:
    """Return the stored profile of the authenticated account."""
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_email(claims.email)
    if user is None:
        raise NotFound("User not found.", code="user_not_found")
    return ProfileResponse.from_domain(user)
