"""Tests for checkpoint module."""

import sqlite3

import pytest

from src.changefeed.checkpoint import (
    MemoryCheckpointStore,
    SQLiteCheckpointStore,
    load_position,
    save_position,
)
from src.changefeed.exceptions import CheckpointReadError, CheckpointWriteError
from src.changefeed.models import SENTINEL_TXID, Scope


class TestMemoryCheckpointStore:
    """Tests for MemoryCheckpointStore class."""

    def test_empty(self):
        store = MemoryCheckpointStore()
        assert store.get(Scope.CLUSTER) == {}

    def test_set_replaces_state(self):
        store = MemoryCheckpointStore()
        store.set({"a": "1", "b": "2"}, Scope.CLUSTER)
        store.set({"a": "3"}, Scope.CLUSTER)
        assert store.get(Scope.CLUSTER) == {"a": "3"}

    def test_scopes_are_separate(self):
        store = MemoryCheckpointStore()
        store.set({"a": "1"}, Scope.CLUSTER)
        assert store.get(Scope.LOCAL) == {}

    def test_get_returns_copy(self):
        store = MemoryCheckpointStore({Scope.CLUSTER: {"a": "1"}})
        state = store.get(Scope.CLUSTER)
        state["a"] = "changed"
        assert store.get(Scope.CLUSTER) == {"a": "1"}


class TestSQLiteCheckpointStore:
    """Tests for SQLiteCheckpointStore class."""

    def test_creates_database(self, tmp_path):
        db_path = tmp_path / "state.db"
        SQLiteCheckpointStore(db_path)
        assert db_path.exists()

    def test_set_and_get(self, tmp_path):
        store = SQLiteCheckpointStore(tmp_path / "state.db")
        store.set({"last.tx.id": "42", "other": "x"}, Scope.CLUSTER)
        assert store.get(Scope.CLUSTER) == {"last.tx.id": "42", "other": "x"}

    def test_set_replaces_whole_mapping(self, tmp_path):
        store = SQLiteCheckpointStore(tmp_path / "state.db")
        store.set({"a": "1", "b": "2"}, Scope.CLUSTER)
        store.set({"a": "5"}, Scope.CLUSTER)
        assert store.get(Scope.CLUSTER) == {"a": "5"}

    def test_persists_across_instances(self, tmp_path):
        db_path = tmp_path / "state.db"
        SQLiteCheckpointStore(db_path).set({"a": "1"}, Scope.CLUSTER)
        assert SQLiteCheckpointStore(db_path).get(Scope.CLUSTER) == {"a": "1"}

    def test_scopes_are_separate(self, tmp_path):
        store = SQLiteCheckpointStore(tmp_path / "state.db")
        store.set({"a": "cluster"}, Scope.CLUSTER)
        store.set({"a": "local"}, Scope.LOCAL)
        assert store.get(Scope.CLUSTER) == {"a": "cluster"}
        assert store.get(Scope.LOCAL) == {"a": "local"}

    def test_read_failure(self, tmp_path):
        db_path = tmp_path / "state.db"
        store = SQLiteCheckpointStore(db_path)
        conn = sqlite3.connect(str(db_path))
        conn.execute("DROP TABLE poller_state")
        conn.commit()
        conn.close()

        with pytest.raises(CheckpointReadError):
            store.get(Scope.CLUSTER)

    def test_write_failure(self, tmp_path):
        db_path = tmp_path / "state.db"
        store = SQLiteCheckpointStore(db_path)
        conn = sqlite3.connect(str(db_path))
        conn.execute("DROP TABLE poller_state")
        conn.commit()
        conn.close()

        with pytest.raises(CheckpointWriteError):
            store.set({"a": "1"}, Scope.CLUSTER)


class TestPositionHelpers:
    """Tests for load_position and save_position."""

    def test_missing_is_sentinel(self):
        assert load_position(MemoryCheckpointStore(), "last.tx.id", Scope.CLUSTER) == SENTINEL_TXID

    def test_empty_is_sentinel(self):
        store = MemoryCheckpointStore({Scope.CLUSTER: {"last.tx.id": ""}})
        assert load_position(store, "last.tx.id", Scope.CLUSTER) == SENTINEL_TXID

    def test_load_value(self):
        store = MemoryCheckpointStore({Scope.CLUSTER: {"last.tx.id": "100"}})
        assert load_position(store, "last.tx.id", Scope.CLUSTER) == 100

    def test_load_garbage_fails_closed(self):
        store = MemoryCheckpointStore({Scope.CLUSTER: {"last.tx.id": "abc"}})
        with pytest.raises(CheckpointReadError):
            load_position(store, "last.tx.id", Scope.CLUSTER)

    def test_save_preserves_unrelated_keys(self):
        store = MemoryCheckpointStore({Scope.CLUSTER: {"owner": "node-1", "last.tx.id": "5"}})
        save_position(store, 12, "last.tx.id", Scope.CLUSTER)
        assert store.get(Scope.CLUSTER) == {"owner": "node-1", "last.tx.id": "12"}

    def test_save_sentinel(self, tmp_path):
        store = SQLiteCheckpointStore(tmp_path / "state.db")
        save_position(store, SENTINEL_TXID, "last.tx.id", Scope.CLUSTER)
        assert store.get(Scope.CLUSTER) == {"last.tx.id": "-1"}
        assert load_position(store, "last.tx.id", Scope.CLUSTER) == SENTINEL_TXID
