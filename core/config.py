"""
core/config.py -- Portal configuration, read once from the environment.

Every setting the server, the client and the CLI need lives on Settings.
Modules never touch os.environ themselves; they call get_settings(), which
builds Settings on first use and hands back the same instance afterwards.

Field name -> environment variable is upper-casing (token_file -> TOKEN_FILE).
A .env file in the working directory is read too; real environment variables
win over it.

SECRET_KEY signs every session token. Only the server needs it, so it is
checked when a token is signed or verified (Settings.signing_key()) and at
API startup, not when Settings is built:
  - shorter than 32 characters: rejected
  - unset with DEBUG=true: a random key is generated and a warning logged;
    tokens die with the process
  - unset otherwise: ConfigError

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
homework/, client/, or cache/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("lukamath.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'lukamath.db'}"
_DEFAULT_TOKEN_FILE = Path.home() / ".lukamath" / "storage.json"
_MIN_SECRET_LEN = 32


class ConfigError(RuntimeError):
    """A setting the current operation depends on is missing or unusable."""


class Settings(BaseSettings):
    """Server, client and CLI settings. Every field has a usable default;
    SECRET_KEY is only demanded where tokens are signed or verified."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Server
    debug: bool = False
    secret_key: str = ""  # "" means unset
    database_url: str = _DEFAULT_DB_URL
    # JSON list in the environment: CORS_ORIGINS=["https://lukamath.com"]
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Sessions
    token_expire_seconds: int = 7 * 24 * 3600
    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"

    # Client / CLI
    api_base_url: str = "http://localhost:8000"
    token_file: Path = _DEFAULT_TOKEN_FILE
    request_timeout: float = 10.0

    @field_validator("token_expire_seconds")
    @classmethod
    def positive_expiry(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return value

    @field_validator("request_timeout")
    @classmethod
    def positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive.")
        return value

    def signing_key(self) -> str:
        """Return the HS256 key, generating a throwaway one in debug mode.

        Raises ConfigError when the key is unset outside debug mode or
        shorter than 32 characters.
        """
        if not self.secret_key:
            if not self.debug:
                raise ConfigError(
                    "SECRET_KEY is not set. Put it in the environment or .env, "
                    "or set DEBUG=true for a throwaway development key."
                )
            self.secret_key = secrets.token_urlsafe(48)
            logger.warning("DEBUG mode: generated a temporary SECRET_KEY; sessions end when the process exits.")
        if len(self.secret_key) < _MIN_SECRET_LEN:
            raise ConfigError(f"SECRET_KEY is too short ({len(self.secret_key)} < {_MIN_SECRET_LEN} characters).")
        return self.secret_key


@lru_cache
def get_settings() -> Settings:
    """Settings singleton. Tests that change the environment call
    get_settings.cache_clear() first."""
    return Settings()
