"""SQL-backed server-side sessions with signed, encrypted identity cookies."""

__version__ = "1.0.0"

from sqlsess.core.config import Settings  # noqa: E402
from sqlsess.core.exceptions import (  # noqa: E402
    ConfigurationError,
    CookieAuthenticationError,
    CookieDecodeError,
    CookieEncodeError,
    CookieExpiredError,
    CookieFormatError,
    SessionStoreError,
    TimestampParseError,
)
from sqlsess.core.session import CookieOptions, Session  # noqa: E402
from sqlsess.core.utils.encryption import SecureCookie  # noqa: E402
from sqlsess.core.utils.locks import KeyedLockTable  # noqa: E402
from sqlsess.core.utils.session_store import SessionStore  # noqa: E402

__all__ = [
    "ConfigurationError",
    "CookieAuthenticationError",
    "CookieDecodeError",
    "CookieEncodeError",
    "CookieExpiredError",
    "CookieFormatError",
    "CookieOptions",
    "KeyedLockTable",
    "SecureCookie",
    "Session",
    "SessionStore",
    "SessionStoreError",
    "Settings",
    "TimestampParseError",
]
