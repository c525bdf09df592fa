"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Assure Health happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_key -> JWT_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. A process with a missing signing secret or email credentials
      must never accept connections, so the validator raises and the lifespan
      aborts startup.

Security notes:
  [M6] JWT_KEY shorter than 32 chars is rejected outright. HS256 signing relies
       on key entropy -- a short key weakens every issued session token.

  [M7] JWT_KEY, SENDGRID_API_KEY and SENDGRID_EMAIL are required in every
       environment. There is no auto-generated fallback key.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("assurehealth.config")

_ENVIRONMENTS = ("development", "test", "production")

# bcrypt work factor floor. 2^10 rounds is the lowest cost still considered
# acceptable for password storage.
MIN_BCRYPT_ROUNDS = 10


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `sendgrid_api_key` reads from SENDGRID_API_KEY.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    environment: str = "development"
    port: int = 4000
    database_url: str = "sqlite:///./assure_health.db"

    # Public base URL used in outbound email links when running in production.
    public_url: str = "https://assure-health.com"

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://localhost:4000",
    ]

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The validator below
    # raises, so callers never see "".
    jwt_key: str = ""
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Email (SendGrid)
    # ------------------------------------------------------------------

    sendgrid_api_key: str = ""
    sendgrid_email: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_required(self) -> "Settings":
        """Refuse to build a Settings object that cannot serve requests [M6][M7]."""
        self.environment = self.environment.strip().lower()
        if self.environment not in _ENVIRONMENTS:
            raise ValueError(f"ENVIRONMENT must be one of {', '.join(_ENVIRONMENTS)}.")

        missing = [
            name
            for name, value in (
                ("JWT_KEY", self.jwt_key),
                ("SENDGRID_API_KEY", self.sendgrid_api_key),
                ("SENDGRID_EMAIL", self.sendgrid_email),
            )
            if not value
        ]
        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}. "
                "Set them in your environment or .env file."
            )
        if len(self.jwt_key) < 32:
            raise ValueError("JWT_KEY must be at least 32 characters.")
        if self.bcrypt_rounds < MIN_BCRYPT_ROUNDS:
            raise ValueError(f"BCRYPT_ROUNDS must be at least {MIN_BCRYPT_ROUNDS}.")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def host_url(self) -> str:
        """Base URL that verification and reset links point at."""
        if self.is_production:
            return self.public_url.rstrip("/")
        return f"http://localhost:{self.port}"


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
