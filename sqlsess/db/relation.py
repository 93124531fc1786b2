"""
SQL operations over the session attribute table.

Every operation runs in its own connection and, for writes, its own
transaction. Database errors are logged and re-raised unchanged.
"""

import logging
from typing import Dict, Iterator, Mapping, Tuple

from sqlalchemy import and_, delete, insert, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from sqlsess.core.config import DEFAULT_LAST_UPDATED_KEY, DEFAULT_TABLE_NAME
from sqlsess.db.base import new_metadata
from sqlsess.db.models.session_store import build_session_table

logger = logging.getLogger(__name__)


class SessionRelation:
    """Load, replace, delete and scan session attribute rows."""

    def __init__(
        self,
        engine: Engine,
        table_name: str = DEFAULT_TABLE_NAME,
        last_updated_key: str = DEFAULT_LAST_UPDATED_KEY,
        scan_batch_size: int = 500,
    ):
        if scan_batch_size <= 0:
            raise ValueError("scan_batch_size must be positive")
        self.engine = engine
        self.metadata = new_metadata()
        self.table = build_session_table(table_name, self.metadata)
        self.last_updated_key = last_updated_key
        self.scan_batch_size = scan_batch_size

    def create_table(self) -> None:
        """Create the table if it does not exist yet."""
        try:
            self.metadata.create_all(bind=self.engine, tables=[self.table], checkfirst=True)
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to initialize session table {self.table.name}: {e}",
                extra={"error_type": type(e).__name__},
            )
            raise
        logger.debug(f"Session table {self.table.name} initialized")

    def load_attributes(self, session_id: bytes, name: str) -> Dict[str, str]:
        """
        Return every attribute stored for (session_id, name).

        An empty dict means either an empty or an unknown session; the two
        cannot be told apart.
        """
        t = self.table
        stmt = select(t.c.key, t.c.value).where(t.c.id == session_id, t.c.name == name)
        try:
            with self.engine.connect() as conn:
                return {key: value for key, value in conn.execute(stmt)}
        except SQLAlchemyError as e:
            self._log_failure("load", e)
            raise

    def replace_attributes(self, session_id: bytes, name: str, values: Mapping[str, str]) -> None:
        """
        Replace the attributes of (session_id, name) with ``values``.

        Runs as one transaction: existing rows are deleted and one row per
        entry is inserted. On any failure the transaction is rolled back and
        the previous rows remain.

        Raises:
            TypeError: If a key or value is not a string
        """
        for key, value in values.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise TypeError(
                    f"session attributes must be str -> str, got {type(key).__name__} -> "
                    f"{type(value).__name__}"
                )

        t = self.table
        rows = [
            {"id": session_id, "name": name, "key": key, "value": value}
            for key, value in values.items()
        ]
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(t).where(t.c.id == session_id, t.c.name == name))
                if rows:
                    conn.execute(insert(t), rows)
        except SQLAlchemyError as e:
            self._log_failure("replace", e)
            raise

    def delete_attributes(self, session_id: bytes, name: str) -> int:
        """Delete every row for (session_id, name). Deleting nothing is not an error."""
        t = self.table
        return self._delete(delete(t).where(t.c.id == session_id, t.c.name == name))

    def delete_all(self, session_id: bytes) -> int:
        """Delete every row for ``session_id`` under any name. Deleting nothing is not an error."""
        t = self.table
        return self._delete(delete(t).where(t.c.id == session_id))

    def scan_last_updated(self) -> Iterator[Tuple[bytes, str, str]]:
        """
        Yield (id, name, timestamp text) for every last-updated marker.

        Rows are read in primary key order, ``scan_batch_size`` at a time,
        each page in a short-lived connection. No cursor stays open between
        pages, so the consumer may delete rows while iterating. The iterator
        is one-shot.
        """
        t = self.table
        last = None
        while True:
            stmt = select(t.c.id, t.c.name, t.c.value).where(t.c.key == self.last_updated_key)
            if last is not None:
                last_id, last_name = last
                stmt = stmt.where(
                    or_(t.c.id > last_id, and_(t.c.id == last_id, t.c.name > last_name))
                )
            stmt = stmt.order_by(t.c.id, t.c.name).limit(self.scan_batch_size)

            try:
                with self.engine.connect() as conn:
                    rows = conn.execute(stmt).all()
            except SQLAlchemyError as e:
                self._log_failure("scan", e)
                raise

            for session_id, name, value in rows:
                yield bytes(session_id), name, value

            if len(rows) < self.scan_batch_size:
                return
            last = (rows[-1][0], rows[-1][1])

    def _delete(self, stmt) -> int:
        try:
            with self.engine.begin() as conn:
                return conn.execute(stmt).rowcount
        except SQLAlchemyError as e:
            self._log_failure("delete", e)
            raise

    def _log_failure(self, operation: str, error: SQLAlchemyError) -> None:
        # Session ids never go to the log
        logger.error(
            f"Session {operation} failed on table {self.table.name}",
            extra={"operation": operation, "error_type": type(error).__name__},
        )
