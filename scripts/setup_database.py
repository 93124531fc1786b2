#!/usr/bin/env python3
"""
Database setup script for sqlsess.

Creates the session table for the configured database, optionally prints a
fresh pair of cookie keys, and can run a one-off sweep of stale sessions.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import inspect  # noqa: E402
from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

from sqlsess.core.config import Settings  # noqa: E402
from sqlsess.core.exceptions import SessionStoreError  # noqa: E402
from sqlsess.core.security import (  # noqa: E402
    DEFAULT_BLOCK_KEY_LENGTH,
    DEFAULT_HASH_KEY_LENGTH,
    encode_key,
    generate_random_key,
)
from sqlsess.core.utils.session_store import SessionStore  # noqa: E402
from sqlsess.db.session import create_db_engine, ensure_sqlite_directory  # noqa: E402


def print_new_keys():
    """Print environment lines for a freshly generated key pair"""
    print(f"SQLSESS_HASH_KEY={encode_key(generate_random_key(DEFAULT_HASH_KEY_LENGTH))}")
    print(f"SQLSESS_BLOCK_KEY={encode_key(generate_random_key(DEFAULT_BLOCK_KEY_LENGTH))}")


def main(argv=None, settings=None):
    """Initialize the session table based on configuration"""
    parser = argparse.ArgumentParser(description="Set up the sqlsess session table")
    parser.add_argument("--generate-keys", action="store_true", help="print a new cookie key pair and exit")
    parser.add_argument("--clean", action="store_true", help="sweep inactive sessions after setup")
    args = parser.parse_args(argv)

    if args.generate_keys:
        print_new_keys()
        return True

    settings = settings if settings is not None else Settings()
    print("🗄️  sqlsess Database Setup")
    print("=" * 40)
    print(f"Session table: {settings.table_name}")

    if settings.hash_key is None:
        print("⚠️  No SQLSESS_HASH_KEY configured; run with --generate-keys to create one")

    ensure_sqlite_directory(settings.database_url)
    engine = create_db_engine(settings.database_url)
    try:
        print("\n🔧 Initializing session table...")
        store = SessionStore.open(engine, settings)
        print("✅ Session table ready!")
        print(f"Existing Tables: {', '.join(sorted(inspect(engine).get_table_names()))}")

        if args.clean:
            removed = store.clean(settings.inactive_threshold_seconds)
            print(f"🧹 Removed {removed} inactive sessions")
        return True

    except (SQLAlchemyError, SessionStoreError) as e:
        print(f"❌ Database setup failed: {e}")
        return False
    finally:
        engine.dispose()


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
