"""
Per-request session cache.

``SessionStore.new`` loads a fresh session every time it is called. Handlers
that touch a session more than once per request go through the registry
instead, which keeps one ``Session`` per name on ``request.state``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Tuple

if TYPE_CHECKING:
    from sqlsess.core.session import Session
    from sqlsess.core.utils.session_store import SessionStore

_STATE_ATTR = "sqlsess_registry"


class SessionRegistry:
    """Sessions loaded during one request, keyed by name."""

    def __init__(self, request: Any):
        self.request = request
        self._sessions: Dict[str, Tuple[SessionStore, Session]] = {}

    def get(self, store: SessionStore, name: str) -> Session:
        cached = self._sessions.get(name)
        if cached is not None:
            return cached[1]
        session = store.new(self.request, name)
        self._sessions[name] = (store, session)
        return session

    def save_all(self, response: Any) -> None:
        """Save every session loaded through this registry."""
        for store, session in self._sessions.values():
            store.save(self.request, response, session)


def get_registry(request: Any) -> SessionRegistry:
    """Return the registry bound to ``request``, creating it on first use."""
    registry = getattr(request.state, _STATE_ATTR, None)
    if registry is None:
        registry = SessionRegistry(request)
        setattr(request.state, _STATE_ATTR, registry)
    return registry
