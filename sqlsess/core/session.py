"""The session value handed to request handlers."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from sqlsess.core.config import Settings
    from sqlsess.core.utils.session_store import SessionStore


@dataclass
class CookieOptions:
    """Attributes of the identity cookie. ``max_age`` < 0 deletes the session on save."""

    path: str = "/"
    domain: Optional[str] = None
    max_age: Optional[int] = 86400 * 30
    secure: bool = False
    http_only: bool = True
    same_site: Optional[str] = "lax"

    @classmethod
    def from_settings(cls, settings: Settings) -> CookieOptions:
        return cls(
            path=settings.cookie_path,
            domain=settings.cookie_domain,
            max_age=settings.cookie_max_age,
            secure=settings.cookie_secure,
            http_only=True,
            same_site=settings.cookie_samesite,
        )

    def copy(self) -> CookieOptions:
        return replace(self)


class Session:
    """
    One named session for one identity.

    ``values`` is a plain dict the caller mutates freely; nothing reaches the
    database until the session is saved.
    """

    def __init__(
        self,
        store: SessionStore,
        name: str,
        session_id: bytes,
        values: Optional[Dict[str, str]] = None,
        is_new: bool = True,
        options: Optional[CookieOptions] = None,
    ):
        self.store = store
        self.name = name
        self.id = session_id
        self.values: Dict[str, str] = values if values is not None else {}
        self.is_new = is_new
        self.options = options if options is not None else CookieOptions()

    @property
    def last_updated(self) -> Optional[str]:
        """Timestamp text of the last successful save, if any."""
        return self.values.get(self.store.last_updated_key)

    def public_values(self) -> Dict[str, str]:
        """Attributes without the reserved last-updated marker."""
        key = self.store.last_updated_key
        return {k: v for k, v in self.values.items() if k != key}

    def save(self, request: Any, response: Any) -> None:
        self.store.save(request, response, self)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Session(name={self.name!r}, keys={len(self.values)}, is_new={self.is_new})>"
