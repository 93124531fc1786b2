from typing import Optional

from sqlalchemy import Column, LargeBinary, MetaData, String, Table, Text

from sqlsess.db.base import new_metadata


def build_session_table(name: str, metadata: Optional[MetaData] = None) -> Table:
    """
    Build the session attribute table.

    One row per (id, name, key). There is no separate session row: a session
    exists as long as at least one attribute row carries its id.
    """
    if metadata is None:
        metadata = new_metadata()
    return Table(
        name,
        metadata,
        Column("id", LargeBinary, primary_key=True, nullable=False),
        Column("name", String(255), primary_key=True, nullable=False),
        Column("key", Text, primary_key=True, nullable=False),
        Column("value", Text, nullable=False),
    )
