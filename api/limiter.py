"""
api/limiter.py -- Shared rate limiters.

limiter: the slowapi instance. Import it in api/main.py (to mount as
middleware) and in route modules (to apply per-route limits with
@limiter.limit()). Its application limit (Settings.api_rate_limit) is one
per-IP counter shared by every undecorated route; @limiter.exempt opts a
route out.

LoginRateLimiter: login attempts are keyed by (client IP, submitted email).
slowapi's key_func only sees the Request, not the parsed body, so the login
limiter drives the limits library (slowapi's own backend) directly and is
called from inside the login route once the body is parsed.

Counters live in process memory. They reset on restart and are not shared
between workers.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings
from core.errors import RateLimited

logger = logging.getLogger("ariacreative.api")

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    application_limits=[get_settings().api_rate_limit],
)


class LoginRateLimiter:
    """Fixed-window limiter for login attempts keyed by (ip, email).

    Every attempt counts, successful or not; the window resets purely on time.
    The email is keyed as submitted, trimmed like LoginRequest trims it, so
    the budget follows the same case-sensitive identity the account lookup uses.

    Usage:
        login_limiter = LoginRateLimiter("5 per 15 minutes")
        login_limiter.hit(client_ip, body.email)  # raises RateLimited
    """

    def __init__(self, limit: str = "5 per 15 minutes") -> None:
        self.item = parse(limit)
        self.storage = MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)

    def hit(self, ip: str, email: str) -> None:
        """Record one attempt. Raises RateLimited once the window is exhausted."""
        key = email.strip()
        if not self.strategy.hit(self.item, "login", ip, key):
            reset_at, _remaining = self.strategy.get_window_stats(self.item, "login", ip, key)
            retry_after = datetime.fromtimestamp(reset_at, tz=timezone.utc)
            logger.warning("Login rate limit reached for %s from %s", key, ip)
            raise RateLimited(
                "Too many login attempts. Try again later.",
                retry_after=retry_after,
            )

    def reset(self) -> None:
        self.storage.reset()
