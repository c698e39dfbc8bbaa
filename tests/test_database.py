"""Tests for the SQLite key-value store."""

import pytest

from gradescope_due.utils.database import Database, PersistenceError


class TestDatabase:
    """Tests for Database get/set/remove."""

    def test_missing_key_returns_default(self, temp_db):
        assert temp_db.get("gs_courses") is None
        assert temp_db.get("gs_courses", {}) == {}

    def test_set_and_get(self, temp_db):
        temp_db.set({"gs_courses": {"101": {"id": "101", "name": "Algorithms"}}})
        assert temp_db.get("gs_courses") == {"101": {"id": "101", "name": "Algorithms"}}

    def test_set_many_keys(self, temp_db):
        temp_db.set({"a": [1, 2], "b": {"x": True}})
        assert temp_db.get("a") == [1, 2]
        assert temp_db.get("b") == {"x": True}

    def test_set_replaces_whole_value(self, temp_db):
        temp_db.set({"a": {"x": 1, "y": 2}})
        temp_db.set({"a": {"x": 3}})
        assert temp_db.get("a") == {"x": 3}

    def test_remove(self, temp_db):
        temp_db.set({"a": 1, "b": 2, "c": 3})
        temp_db.remove(["a", "b", "missing"])
        assert temp_db.get("a") is None
        assert temp_db.get("b") is None
        assert temp_db.get("c") == 3

    def test_bytes_in_use(self, temp_db):
        assert temp_db.bytes_in_use() == 0
        temp_db.set({"key": "value"})
        assert temp_db.bytes_in_use() == len("key") + len('"value"')

    def test_persists_across_connections(self, tmp_path):
        path = str(tmp_path / "store.db")
        first = Database(path)
        first.set({"gs_settings": {"window_days": 7}})
        first.close()

        second = Database(path)
        assert second.get("gs_settings") == {"window_days": 7}
        second.close()

    def test_reopens_after_close(self, temp_db):
        temp_db.set({"a": 1})
        temp_db.close()
        assert temp_db.get("a") == 1


class TestPersistenceErrors:
    """Storage failures surface as PersistenceError."""

    def test_unserialisable_value(self, temp_db):
        with pytest.raises(PersistenceError):
            temp_db.set({"a": object()})

    def test_corrupt_value(self, temp_db):
        conn = temp_db._get_connection()
        conn.execute(
            "INSERT INTO kv_store (key, value, updated_at) VALUES ('bad', '{not json', '')"
        )
        conn.commit()
        with pytest.raises(PersistenceError):
            temp_db.get("bad")

    def test_unusable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises((PersistenceError, OSError)):
            Database(str(blocker / "nested" / "store.db"))
