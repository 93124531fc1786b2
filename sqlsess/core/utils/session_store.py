"""Server-side session storage on a SQL database.

Session attributes live in one table (see ``sqlsess.db.relation``); the
client only carries an authenticated, encrypted cookie holding the session
id. Reads of one session id take a shared lock, saves and deletes take an
exclusive lock, so concurrent requests sharing a session never observe a
half-written attribute set.
"""
from __future__ import annotations

import base64
import binascii
import logging
import threading
from datetime import timedelta
from typing import Any, Optional, Tuple, Union

from sqlalchemy.engine import Engine

from sqlsess.core.config import Settings
from sqlsess.core.exceptions import ConfigurationError, CookieDecodeError, TimestampParseError
from sqlsess.core.security import (
    DEFAULT_BLOCK_KEY_LENGTH,
    DEFAULT_HASH_KEY_LENGTH,
    generate_random_key,
)
from sqlsess.core.session import CookieOptions, Session
from sqlsess.core.utils.encryption import SecureCookie
from sqlsess.core.utils.locks import KeyedLockTable
from sqlsess.core.utils.timestamps import (
    format_timestamp,
    parse_timestamp,
    to_nanoseconds,
    utc_now_ns,
)
from sqlsess.db.relation import SessionRelation
from sqlsess.web.registry import get_registry

logger = logging.getLogger(__name__)

SESSION_ID_LENGTH = 64


def _id_to_text(session_id: bytes) -> str:
    return base64.urlsafe_b64encode(session_id).decode("ascii")


def _id_from_text(value: Any) -> Optional[bytes]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return base64.urlsafe_b64decode(value.encode("ascii")) or None
    except (binascii.Error, UnicodeEncodeError, ValueError):
        return None


class SessionStore:
    """SQL-backed session store keyed by an identity cookie."""

    def __init__(
        self,
        engine: Engine,
        settings: Optional[Settings] = None,
        hash_key: Optional[bytes] = None,
        block_key: Optional[bytes] = None,
        lock_table: Optional[KeyedLockTable] = None,
    ):
        """
        Initialize the store. Use ``SessionStore.open`` to also create the table.

        Args:
            engine: SQLAlchemy engine for the session table
            settings: Store settings, defaults to ``Settings()``
            hash_key: HMAC key for the identity cookie, overrides settings
            block_key: AES key for the identity cookie, overrides settings
            lock_table: Per-session lock table, a private one by default

        Raises:
            ConfigurationError: If the configured keys or cookie max age are invalid

        When no hash key is given or configured, random hash and block keys
        are generated and every session issued by a previous process becomes
        unreadable.
        """
        self.settings = settings if settings is not None else Settings()
        if self.settings.cookie_max_age < 0:
            raise ConfigurationError("cookie_max_age cannot be negative")
        self.relation = SessionRelation(
            engine,
            table_name=self.settings.table_name,
            last_updated_key=self.settings.last_updated_key,
            scan_batch_size=self.settings.scan_batch_size,
        )
        self.locks = lock_table if lock_table is not None else KeyedLockTable()
        self.options = CookieOptions.from_settings(self.settings)
        self._clean_lock = threading.Lock()

        configured_hash, configured_block = self.settings.decoded_keys()
        if hash_key is None:
            hash_key = configured_hash
            if block_key is None:
                block_key = configured_block
        if hash_key is None:
            logger.warning(
                "No cookie keys configured, generating random keys; "
                "sessions will not survive a restart"
            )
            hash_key = generate_random_key(DEFAULT_HASH_KEY_LENGTH)
            if block_key is None:
                block_key = generate_random_key(DEFAULT_BLOCK_KEY_LENGTH)
        self.set_keys(hash_key, block_key)

    @classmethod
    def open(
        cls,
        engine: Engine,
        settings: Optional[Settings] = None,
        **kwargs: Any,
    ) -> SessionStore:
        """Create the session table if needed and return a ready store."""
        store = cls(engine, settings, **kwargs)
        store.relation.create_table()
        return store

    @property
    def cookie_name(self) -> str:
        return self.settings.cookie_name

    @property
    def last_updated_key(self) -> str:
        return self.settings.last_updated_key

    def set_keys(self, hash_key: bytes, block_key: Optional[bytes] = None) -> None:
        """
        Set the keys used to read and write the identity cookie.

        The hash key authenticates the cookie with HMAC and is required; 32 or
        64 bytes is recommended. The block key is optional and enables AES
        encryption; it must be 16, 24 or 32 bytes. Stores sharing keys (and a
        database) can read each other's cookies, which lets sessions survive
        restarts and span several instances.

        Raises:
            ConfigurationError: If either key is invalid; the old keys stay in place
        """
        self._codec = SecureCookie(
            hash_key,
            block_key,
            max_age=self.settings.cookie_max_age,
        )

    def resolve_identity(self, request: Any) -> Tuple[bytes, bool]:
        """
        Return the session id carried by the request cookie, or a fresh one.

        Returns:
            (session_id, is_new). A missing, tampered, expired or malformed
            cookie never raises; it just yields a newly minted id.
        """
        token = request.cookies.get(self.cookie_name)
        if token:
            try:
                session_id = _id_from_text(self._codec.decode(self.cookie_name, token))
            except CookieDecodeError as e:
                logger.warning(
                    "Discarding invalid session cookie",
                    extra={"error_type": type(e).__name__},
                )
            else:
                if session_id:
                    return session_id, False
                logger.warning("Discarding session cookie with an empty identity")
        else:
            logger.debug("No session cookie on request, minting a new identity")
        return generate_random_key(SESSION_ID_LENGTH), True

    def new(self, request: Any, name: str) -> Session:
        """
        Load the named session for the request.

        Always returns a fresh ``Session``; use ``get`` to share one object
        across a request. Database errors propagate.
        """
        session_id, is_new = self.resolve_identity(request)
        session = Session(self, name, session_id, is_new=is_new, options=self.options.copy())
        with self.locks.read(session_id):
            session.values = self.relation.load_attributes(session_id, name)
        return session

    def get(self, request: Any, name: str) -> Session:
        """Return the request's cached session for ``name``, loading it on first use."""
        return get_registry(request).get(self, name)

    def save(self, request: Any, response: Any, session: Session) -> None:
        """
        Persist the session and send its identity cookie.

        The stored attributes are replaced by ``session.values`` plus a fresh
        last-updated marker in one transaction. The cookie is only written
        once that transaction has committed, so a failed save leaves neither
        rows nor a cookie behind. A negative ``options.max_age`` deletes the
        session instead.
        """
        if session.options.max_age is not None and session.options.max_age < 0:
            self.delete(session, response)
            return

        with self.locks.write(session.id):
            stamp = format_timestamp()
            values = {**session.values, self.last_updated_key: stamp}
            self.relation.replace_attributes(session.id, session.name, values)
            session.values[self.last_updated_key] = stamp
            self._write_cookie(response, session)
        session.is_new = False

    def delete(self, session: Session, response: Any = None) -> None:
        """
        Remove the session's rows and, when a response is given, its cookie.

        Other names sharing the same id are left alone; see ``delete_identity``.
        """
        with self.locks.write(session.id):
            self.relation.delete_attributes(session.id, session.name)
        session.values.clear()
        if response is not None:
            response.delete_cookie(
                self.cookie_name,
                path=session.options.path,
                domain=session.options.domain,
            )

    def delete_identity(self, session_id: bytes) -> None:
        """Remove every named session stored under ``session_id``."""
        with self.locks.write(session_id):
            self.relation.delete_all(session_id)

    def clean(self, inactive: Union[timedelta, int, float]) -> int:
        """
        Delete sessions whose last save is older than ``inactive``.

        Sweeps are serialised by their own lock. Each stale session is
        deleted in its own transaction under its exclusive session lock, and
        its marker is re-read under that lock so a session saved after the
        scan saw it survives. A parse or database error aborts the sweep;
        sessions deleted before the error stay deleted.

        Args:
            inactive: Inactivity threshold as a timedelta or in seconds

        Returns:
            Number of sessions deleted
        """
        if not isinstance(inactive, timedelta):
            inactive = timedelta(seconds=inactive)

        with self._clean_lock:
            cutoff = utc_now_ns() - to_nanoseconds(inactive)
            removed = 0
            try:
                for session_id, name, text in self.relation.scan_last_updated():
                    if parse_timestamp(text) >= cutoff:
                        continue
                    with self.locks.write(session_id):
                        current = self.relation.load_attributes(session_id, name).get(
                            self.last_updated_key
                        )
                        if current is None or parse_timestamp(current) >= cutoff:
                            continue
                        self.relation.delete_attributes(session_id, name)
                    removed += 1
            except TimestampParseError as e:
                logger.error(
                    f"Session sweep aborted after removing {removed} sessions: {e}",
                    extra={"error_type": type(e).__name__},
                )
                raise

        logger.info(
            f"Session sweep removed {removed} sessions inactive for more than {inactive}",
            extra={"removed": removed},
        )
        return removed

    def _write_cookie(self, response: Any, session: Session) -> None:
        token = self._codec.encode(self.cookie_name, _id_to_text(session.id))
        options = session.options
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            max_age=options.max_age or None,
            path=options.path,
            domain=options.domain,
            secure=options.secure,
            httponly=options.http_only,
            samesite=options.same_site,
        )
