"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the Aria Creative API happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, max_file_size -> MAX_FILE_SIZE).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. Dev mode generates a SECRET_KEY with a warning, production mode
      refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing relies on
  key entropy -- a short key weakens every issued token.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a hard
  startup failure.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or portfolio/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("ariacreative.config")

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    app_version: str = "1.0.0"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = f"sqlite:///{_PROJECT_ROOT / 'ariacreative.db'}"

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost:8081", "http://localhost:5173"]

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    token_expire_seconds: int = 4 * 60 * 60
    jwt_issuer: str = "aria-creative-api"
    jwt_audience: str = "aria-creative-client"

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    # Keyed by (client IP, submitted email) -- see api/limiter.LoginRateLimiter.
    login_rate_limit: str = "5 per 15 minutes"
    contact_rate_limit: str = "5/hour"
    # Per client IP, shared by every route except health and the contact form.
    api_rate_limit: str = "100 per 15 minutes"

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    upload_storage: Literal["database", "disk"] = "database"
    upload_dir: Path = _PROJECT_ROOT / "uploads" / "projects"
    max_file_size: int = 10 * 1024 * 1024
    max_files: int = 5

    # ------------------------------------------------------------------
    # Outbound email (contact form notifications)
    # ------------------------------------------------------------------

    email_host: str = ""
    email_port: int = 587
    email_secure: bool = False  # True = implicit TLS (port 465), False = STARTTLS
    email_user: str = ""
    email_password: str = ""
    admin_email: str = ""
    email_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def email_configured(self) -> bool:
        """True when enough SMTP settings are present to attempt delivery."""
        return bool(self.email_host and self.email_user and self.email_password)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
