"""
Test helper functions for common testing operations

Request/response doubles expose only what the session store touches:
``request.cookies``, ``request.state`` and ``response.set_cookie`` /
``response.delete_cookie``.
"""

import time
from datetime import timedelta
from types import SimpleNamespace
from typing import Any, Callable, Dict, Optional

from sqlsess.core.utils.timestamps import format_timestamp, to_nanoseconds, utc_now_ns


class FakeRequest:
    """Request exposing cookies and a per-request state namespace"""

    def __init__(self, cookies: Optional[Dict[str, str]] = None):
        self.cookies = dict(cookies or {})
        self.state = SimpleNamespace()


class FakeResponse:
    """Response recording the cookies the store sets and deletes"""

    def __init__(self):
        self.cookies: Dict[str, Dict[str, Any]] = {}
        self.deleted: list[str] = []

    def set_cookie(self, key: str, value: str = "", **kwargs: Any) -> None:
        self.cookies[key] = {"value": value, **kwargs}

    def delete_cookie(self, key: str, **kwargs: Any) -> None:
        self.deleted.append(key)
        self.cookies.pop(key, None)

    def next_request(self) -> FakeRequest:
        """A request carrying back every cookie this response set"""
        return FakeRequest({name: c["value"] for name, c in self.cookies.items()})


def save_new_session(store, name: str = "app", **values: str):
    """Save a new session holding ``values``; returns (session, response)"""
    session = store.new(FakeRequest(), name)
    session.values.update(values)
    response = FakeResponse()
    store.save(FakeRequest(), response, session)
    return session, response


def stamp_ago(age: timedelta) -> str:
    """Last-updated marker text for a save ``age`` in the past"""
    return format_timestamp(utc_now_ns() - to_nanoseconds(age))


def wait_for_condition(condition: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Wait for a condition to become true with timeout"""
    start_time = time.time()
    while time.time() - start_time < timeout:
        if condition():
            return True
        time.sleep(interval)
    return False


def assert_no_sensitive_data_in_logs(caplog, sensitive_patterns: list[str]):
    """Assert that sensitive data patterns don't appear in logs"""
    all_logs = " ".join(
        [record.getMessage() for record in caplog.records]
        + [str(record.__dict__) for record in caplog.records]
    )

    for pattern in sensitive_patterns:
        assert pattern not in all_logs, f"Sensitive pattern '{pattern}' found in logs"
