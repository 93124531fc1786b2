"""
Exception hierarchy for the session store.

Persistence failures are not wrapped: SQLAlchemy exceptions reach the caller
unchanged so hosts can keep their existing database error handling.
"""


class SessionStoreError(Exception):
    """Base class for all session store errors"""
    pass


class ConfigurationError(SessionStoreError, ValueError):
    """Raised when keys or settings are unusable"""
    pass


class CookieError(SessionStoreError):
    """Base class for identity cookie errors"""
    pass


class CookieEncodeError(CookieError):
    """Raised when a value cannot be turned into a cookie token"""
    pass


class CookieDecodeError(CookieError):
    """Raised when a cookie token cannot be turned back into a value"""
    pass


class CookieFormatError(CookieDecodeError):
    """The token is not structurally valid"""
    pass


class CookieAuthenticationError(CookieDecodeError):
    """The token signature does not match (tampered, wrong key or wrong name)"""
    pass


class CookieExpiredError(CookieDecodeError):
    """The token timestamp is older than the configured max age"""
    pass


class TimestampParseError(SessionStoreError, ValueError):
    """Raised when a stored last-updated marker cannot be parsed"""
    pass
