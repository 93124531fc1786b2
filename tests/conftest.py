"""
Global test configuration and fixtures for sqlsess

Provides a temporary SQLite database per test plus store and application
fixtures. Request/response doubles live in ``tests.utils.helpers``.
"""

import os
import tempfile

import pytest
from fastapi.testclient import TestClient

from sqlsess.core.config import Settings
from sqlsess.core.security import encode_key
from sqlsess.core.utils.session_store import SessionStore
from sqlsess.db.session import create_db_engine
from sqlsess.main import create_app

TEST_HASH_KEY = bytes(range(64))
TEST_BLOCK_KEY = bytes(range(100, 132))


# ============================================================================
# Settings and Database Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def db_url():
    """Temporary SQLite database file for each test function"""
    db_fd, db_path = tempfile.mkstemp(suffix='.db')
    os.close(db_fd)

    yield f"sqlite:///{db_path}"

    try:
        os.unlink(db_path)
    except FileNotFoundError:
        pass


@pytest.fixture(scope="function")
def test_settings(db_url):
    """Settings with fixed keys, no .env lookup and no background sweep"""
    return Settings(
        _env_file=None,
        database_url=db_url,
        hash_key=encode_key(TEST_HASH_KEY),
        block_key=encode_key(TEST_BLOCK_KEY),
        clean_interval_seconds=0,
    )


@pytest.fixture(scope="function")
def engine(db_url):
    """Engine bound to the temporary database"""
    db_engine = create_db_engine(db_url)
    yield db_engine
    db_engine.dispose()


@pytest.fixture(scope="function")
def store(engine, test_settings):
    """Session store with its table created"""
    return SessionStore.open(engine, test_settings)


@pytest.fixture(scope="function")
def relation(store):
    return store.relation


# ============================================================================
# Application Client Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def client(test_settings, engine):
    """FastAPI test client running the application lifespan"""
    app = create_app(test_settings, engine=engine)
    with TestClient(app) as test_client:
        yield test_client

