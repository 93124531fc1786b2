"""Database models"""

from sqlsess.db.models.session_store import build_session_table

__all__ = [
    "build_session_table",
]
