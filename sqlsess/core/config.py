"""
Session store configuration using Pydantic Settings.

Configuration values can be set via environment variables (prefixed with
``SQLSESS_``) or a .env file. Nothing here is module-level mutable state:
a ``Settings`` instance is passed to the store when it is opened.
"""

import base64
import binascii
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqlsess.core.exceptions import ConfigurationError

DEFAULT_TABLE_NAME = "sess_session"
DEFAULT_COOKIE_NAME = "sess_sessionid"
DEFAULT_LAST_UPDATED_KEY = "__sess_last_updated"


class Settings(BaseSettings):
    """Session store settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="SQLSESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "sqlsess"
    host: str = "0.0.0.0"
    port: int = 8500
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./data/sqlsess.db"
    table_name: str = DEFAULT_TABLE_NAME
    scan_batch_size: int = 500

    # Identity cookie
    cookie_name: str = DEFAULT_COOKIE_NAME
    cookie_path: str = "/"
    cookie_domain: Optional[str] = None
    cookie_max_age: int = 86400 * 30
    cookie_secure: bool = False
    cookie_samesite: Optional[str] = "lax"

    # Reserved attribute holding the time of the last save
    last_updated_key: str = DEFAULT_LAST_UPDATED_KEY

    # Cookie keys as base64url text. When unset, random keys are generated
    # at startup and every existing session is invalidated on restart.
    hash_key: Optional[str] = None
    block_key: Optional[str] = None

    # Staleness sweep run by the host application
    inactive_threshold_seconds: int = 86400 * 7
    clean_interval_seconds: int = 3600

    # Logging
    log_level: str = "INFO"
    enable_json_logging: bool = False

    @field_validator("cookie_samesite")
    @classmethod
    def validate_samesite(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.lower()
        if v not in ("lax", "strict", "none"):
            raise ValueError("cookie_samesite must be one of: lax, strict, none")
        return v

    @field_validator("cookie_max_age")
    @classmethod
    def validate_cookie_max_age(cls, v: int) -> int:
        # A negative max age deletes the session on save; only sessions may opt in
        if v < 0:
            raise ValueError("cookie_max_age cannot be negative")
        return v

    @field_validator("scan_batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("scan_batch_size must be positive")
        return v

    @field_validator("table_name", "cookie_name", "last_updated_key")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v

    def decoded_keys(self) -> tuple[Optional[bytes], Optional[bytes]]:
        """
        Decode the configured cookie keys.

        Returns:
            (hash_key, block_key), either of which may be None when unset

        Raises:
            ConfigurationError: If a key is not valid base64url text
        """
        return _decode_key("hash_key", self.hash_key), _decode_key("block_key", self.block_key)


def _decode_key(field: str, value: Optional[str]) -> Optional[bytes]:
    if not value:
        return None
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ConfigurationError(f"{field} is not valid base64url text") from e
