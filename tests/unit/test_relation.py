"""
Unit tests for the session attribute table operations
"""

import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.exc import OperationalError

from sqlsess.db.relation import SessionRelation

pytestmark = pytest.mark.unit

SID = b"\x01" * 64
OTHER = b"\x02" * 64
MARKER = "__sess_last_updated"


def _row_count(relation, session_id=None):
    t = relation.table
    stmt = select(func.count()).select_from(t)
    if session_id is not None:
        stmt = stmt.where(t.c.id == session_id)
    with relation.engine.connect() as conn:
        return conn.execute(stmt).scalar_one()


class TestSchema:

    def test_table_created_with_composite_primary_key(self, relation):
        inspector = inspect(relation.engine)
        assert "sess_session" in inspector.get_table_names()
        pk = inspector.get_pk_constraint("sess_session")
        assert pk["constrained_columns"] == ["id", "name", "key"]

    def test_create_table_is_idempotent(self, relation):
        relation.replace_attributes(SID, "app", {"a": "1"})
        relation.create_table()
        assert relation.load_attributes(SID, "app") == {"a": "1"}

    def test_custom_table_name(self, engine):
        relation = SessionRelation(engine, table_name="custom_sessions")
        relation.create_table()
        assert "custom_sessions" in inspect(engine).get_table_names()


class TestLoadAndReplace:

    def test_unknown_session_loads_empty(self, relation):
        assert relation.load_attributes(SID, "app") == {}

    def test_replace_is_not_a_merge(self, relation):
        relation.replace_attributes(SID, "app", {"a": "1", "b": "2"})
        relation.replace_attributes(SID, "app", {"b": "3", "c": "4"})
        assert relation.load_attributes(SID, "app") == {"b": "3", "c": "4"}

    def test_replace_with_empty_mapping_clears(self, relation):
        relation.replace_attributes(SID, "app", {"a": "1"})
        relation.replace_attributes(SID, "app", {})
        assert _row_count(relation, SID) == 0

    def test_replace_is_scoped_by_name(self, relation):
        relation.replace_attributes(SID, "app", {"a": "1"})
        relation.replace_attributes(SID, "admin", {"b": "2"})
        relation.replace_attributes(SID, "app", {"a": "9"})

        assert relation.load_attributes(SID, "app") == {"a": "9"}
        assert relation.load_attributes(SID, "admin") == {"b": "2"}

    def test_sessions_are_isolated_by_id(self, relation):
        relation.replace_attributes(SID, "app", {"a": "1"})
        relation.replace_attributes(OTHER, "app", {"a": "2"})
        assert relation.load_attributes(SID, "app") == {"a": "1"}
        assert relation.load_attributes(OTHER, "app") == {"a": "2"}

    def test_non_string_values_rejected(self, relation):
        with pytest.raises(TypeError):
            relation.replace_attributes(SID, "app", {"a": 1})
        with pytest.raises(TypeError):
            relation.replace_attributes(SID, "app", {2: "b"})

    def test_failed_replace_rolls_back(self, relation, monkeypatch):
        relation.replace_attributes(SID, "app", {"a": "1"})

        def broken_insert(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr("sqlsess.db.relation.insert", broken_insert)
        with pytest.raises(OperationalError):
            relation.replace_attributes(SID, "app", {"a": "2"})

        # The delete that ran inside the failed transaction was rolled back
        assert relation.load_attributes(SID, "app") == {"a": "1"}


class TestDelete:

    def test_delete_all_is_idempotent(self, relation):
        assert relation.delete_all(SID) == 0
        assert relation.delete_all(SID) == 0

    def test_delete_all_removes_every_name(self, relation):
        relation.replace_attributes(SID, "app", {"a": "1"})
        relation.replace_attributes(SID, "admin", {"b": "2"})
        relation.replace_attributes(OTHER, "app", {"c": "3"})

        assert relation.delete_all(SID) == 2
        assert _row_count(relation, SID) == 0
        assert relation.load_attributes(OTHER, "app") == {"c": "3"}
        assert relation.delete_all(SID) == 0

    def test_delete_attributes_keeps_other_names(self, relation):
        relation.replace_attributes(SID, "app", {"a": "1", "b": "2"})
        relation.replace_attributes(SID, "admin", {"c": "3"})

        assert relation.delete_attributes(SID, "app") == 2
        assert relation.load_attributes(SID, "app") == {}
        assert relation.load_attributes(SID, "admin") == {"c": "3"}
        assert relation.delete_attributes(SID, "app") == 0


class TestScan:

    def test_scan_yields_only_markers(self, relation):
        relation.replace_attributes(SID, "app", {"a": "1", MARKER: "t1"})
        relation.replace_attributes(OTHER, "app", {"b": "2"})
        relation.replace_attributes(OTHER, "admin", {MARKER: "t2"})

        assert sorted(relation.scan_last_updated()) == [
            (SID, "app", "t1"),
            (OTHER, "admin", "t2"),
        ]

    def test_scan_pages_through_every_row(self, engine):
        relation = SessionRelation(engine, scan_batch_size=2)
        relation.create_table()
        ids = [bytes([i]) * 8 for i in range(1, 8)]
        for session_id in ids:
            relation.replace_attributes(session_id, "app", {MARKER: "t"})
            relation.replace_attributes(session_id, "admin", {MARKER: "t"})

        seen = [(session_id, name) for session_id, name, _ in relation.scan_last_updated()]
        assert len(seen) == 14
        assert len(set(seen)) == 14

    def test_scan_tolerates_deletes_while_iterating(self, engine):
        relation = SessionRelation(engine, scan_batch_size=2)
        relation.create_table()
        ids = [bytes([i]) * 8 for i in range(1, 6)]
        for session_id in ids:
            relation.replace_attributes(session_id, "app", {MARKER: "t"})

        visited = []
        for session_id, name, _ in relation.scan_last_updated():
            visited.append(session_id)
            relation.delete_all(session_id)

        assert visited == ids
        assert _row_count(relation) == 0

    def test_scan_is_lazy(self, relation):
        relation.replace_attributes(SID, "app", {MARKER: "t"})
        scan = relation.scan_last_updated()
        assert next(scan) == (SID, "app", "t")
        with pytest.raises(StopIteration):
            next(scan)

    def test_invalid_batch_size(self, engine):
        with pytest.raises(ValueError):
            SessionRelation(engine, scan_batch_size=0)
