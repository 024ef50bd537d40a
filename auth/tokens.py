"""
auth/tokens.py -- JWT, password hashing, and session cookie utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id), email, name, role, iss, aud, iat and exp. Verification
       distinguishes expired tokens (TokenExpired) from every other failure
       (TokenInvalid) so clients can tell "log in again" from "bad token".

  Passwords: bcrypt, used directly. The _DUMMY_HASH constant enables timing
       equalization in authenticate_admin() so response time does not reveal
       whether an email exists.

  Revocation: none. Logout clears the cookie only; a token already handed out
       stays valid until exp.

Layer rule: no imports from api/ or portfolio/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import SessionClaims, User
from core.config import get_settings
from core.errors import Forbidden, NotFound, TokenExpired, TokenInvalid, Unauthorized

if TYPE_CHECKING:
    from auth.store import UserStore

logger = logging.getLogger("ariacreative.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

AUTH_COOKIE_NAME = "auth_token"

_REQUIRED_CLAIMS = ("sub", "email", "name", "role", "exp")

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt silently truncates past 72 bytes; the API layer caps password
    length at 128 characters.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("ariacreative_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user: User, expire_seconds: int = 0, now: datetime | None = None) -> str:
    """Encode a signed JWT carrying the user's identity and role.

    Args:
        user:           The authenticated user. user.id becomes the sub claim.
        expire_seconds: Session duration. 0 (default) uses
                        Settings.token_expire_seconds (4 hours).
        now:            Issue time; defaults to the current UTC time.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "iss": _settings.jwt_issuer,
        "aud": _settings.jwt_audience,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def refresh_access_token(claims: SessionClaims) -> str:
    """Re-issue a token for the same identity with a fresh expiry.

    The password is not re-checked; holding a valid token is sufficient.
    """
    user = User(id=claims.sub, email=claims.email, name=claims.name, role=claims.role)
    return create_access_token(user)


def decode_access_token(token: str) -> SessionClaims:
    """Verify signature, issuer, audience and expiry, then return the claims.

    Raises:
        TokenExpired: the signature is valid but exp is in the past.
        TokenInvalid: any other signature, claim or shape problem.
    """
    try:
        payload = jwt.decode(
            token,
            _settings.secret_key,
            algorithms=[_ALGORITHM],
            audience=_settings.jwt_audience,
            issuer=_settings.jwt_issuer,
        )
    except ExpiredSignatureError as exc:
        raise TokenExpired(expired_at=_unverified_expiry(token)) from exc
    except JWTError as exc:
        raise TokenInvalid("Invalid token.") from exc

    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        raise TokenInvalid("Invalid token.")
    return SessionClaims(
        sub=str(payload["sub"]),
        email=payload["email"],
        name=payload["name"],
        role=payload["role"],
        exp=int(payload["exp"]),
        iat=payload.get("iat"),
    )


def _unverified_expiry(token: str) -> datetime | None:
    try:
        exp = jwt.get_unverified_claims(token).get("exp")
    except JWTError:
        return None
    if exp is None:
        return None
    return datetime.fromtimestamp(int(exp), tz=timezone.utc)


# ---------------------------------------------------------------------------
# Login (constant-time for unknown emails)
# ---------------------------------------------------------------------------


def authenticate_admin(store: UserStore, email: str, password: str) -> User:
    """Check a back-office login and return the User on success.

    Check order:
      1. Unknown email          -> NotFound
      2. Role other than ADMIN  -> Forbidden, whatever the password
      3. Wrong password         -> Unauthorized

    bcrypt still runs against _DUMMY_HASH for unknown emails and non-admin
    accounts so every failure costs the same.
    """
    user = store.get_by_email(email)
    if user is None or not user.hashed_password:
        verify_password(password, _DUMMY_HASH)
        raise NotFound("No account found for this email.", code="user_not_found")
    if not user.is_admin:
        verify_password(password, _DUMMY_HASH)
        raise Forbidden("This area is reserved for administrators.", code="admin_only")
    if not verify_password(password, user.hashed_password):
        raise Unauthorized("Incorrect password.", code="bad_credentials")
    return user


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str) -> None:
    """Write the JWT as an httpOnly cookie on the response.

    The same token is also returned in the response body; browsers use the
    cookie, programmatic clients the Bearer header.

    httponly=True: JS cannot read the cookie.
    samesite="lax": not sent on cross-site POSTs.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=_settings.token_expire_seconds,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(
        AUTH_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )
