"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in portfolio/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/ or portfolio/.
"""

from __future__ import annotations

from dataclasses import dataclass

ADMIN_ROLE = "ADMIN"


@dataclass
class User:
    """A back-office account.

    email is the login identifier and is matched case-sensitively. Only
    role == "ADMIN" may use the back office; other roles exist in the table
    (provisioned by hand) but are refused at login.

    id is None before the record is written to the database.
    """

    email: str
    name: str
    role: str  # "ADMIN", "EDITOR", ...
    hashed_password: str | None = None
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


@dataclass
class SessionClaims:
    """Decoded, verified contents of a session token.

    Not persisted -- the token is stateless. exp/iat are UTC epoch seconds as
    emitted by the JWT library.
    """

    sub: str
    email: str
    name: str
    role: str
    exp: int
    iat: int | None = None
