from pathlib import Path
from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool


def _is_memory_sqlite(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:") or ":memory:" in database_url


# Determine database-specific connection arguments
def get_connect_args(database_url: str) -> Dict[str, Any]:
    """Get database-specific connection arguments"""
    if database_url.startswith("sqlite"):
        # Request handlers run on a threadpool, connections move between threads
        return {"check_same_thread": False}
    # PostgreSQL and other databases don't need special args
    return {}


def create_db_engine(database_url: str, **kwargs: Any) -> Engine:
    """
    Create a database engine with appropriate connection args.

    In-memory SQLite databases share one connection through ``StaticPool``,
    otherwise every pooled connection would see its own empty database.
    """
    options: Dict[str, Any] = {"connect_args": get_connect_args(database_url)}
    if database_url.startswith("sqlite") and _is_memory_sqlite(database_url):
        options["poolclass"] = StaticPool
    options.update(kwargs)
    return create_engine(database_url, **options)


def ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or _is_memory_sqlite(database_url):
        return
    Path(url.database).resolve().parent.mkdir(parents=True, exist_ok=True)
