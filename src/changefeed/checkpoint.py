"""Durable storage of the poller's resume position."""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict

from .exceptions import CheckpointReadError, CheckpointWriteError
from .models import SENTINEL_TXID, Scope

logger = logging.getLogger(__name__)


class CheckpointStore(ABC):
    """
    String-keyed state shared by every instance in a scope.

    Writers always replace the whole mapping. The store offers no
    compare-and-swap; a single active writer per scope must be ensured by
    the deployment (leader election or a singleton instance).
    """

    @abstractmethod
    def get(self, scope: Scope) -> Dict[str, str]:
        """
        Return a copy of the state stored under a scope.

        Raises:
            CheckpointReadError: If the state cannot be read
        """

    @abstractmethod
    def set(self, state: Dict[str, str], scope: Scope) -> None:
        """
        Replace the state stored under a scope.

        Raises:
            CheckpointWriteError: If the state cannot be written
        """


class MemoryCheckpointStore(CheckpointStore):
    """In-process checkpoint store, mainly for tests and one-shot runs."""

    def __init__(self, initial: Dict[Scope, Dict[str, str]] = None):
        self._states: Dict[Scope, Dict[str, str]] = {
            scope: dict(state) for scope, state in (initial or {}).items()
        }
        self._lock = threading.Lock()

    def get(self, scope: Scope) -> Dict[str, str]:
        with self._lock:
            return dict(self._states.get(scope, {}))

    def set(self, state: Dict[str, str], scope: Scope) -> None:
        with self._lock:
            self._states[scope] = dict(state)


class SQLiteCheckpointStore(CheckpointStore):
    """
    Checkpoint store backed by a SQLite key-value table.

    Each scope's mapping is replaced inside one transaction, so readers
    never observe a half-written state.
    """

    def __init__(self, db_path: Path, table_name: str = "poller_state"):
        """
        Initialize the store.

        Args:
            db_path: Path to the SQLite database file
            table_name: Name of the table holding the state
        """
        self.db_path = Path(db_path)
        self.table_name = table_name
        self._lock = threading.Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path), isolation_level=None)

    def _init_db(self) -> None:
        """Initialize the database schema."""
        conn = self._connect()
        try:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table_name} (
                    scope TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (scope, key)
                )
            """)
        finally:
            conn.close()

    def get(self, scope: Scope) -> Dict[str, str]:
        try:
            with self._lock:
                conn = self._connect()
                try:
                    rows = conn.execute(
                        f"SELECT key, value FROM {self.table_name} WHERE scope = ?",
                        (scope.value,)
                    ).fetchall()
                finally:
                    conn.close()
        except sqlite3.Error as e:
            raise CheckpointReadError(f"Failed to read {scope.value} state: {e}") from e
        return {key: value for key, value in rows}

    def set(self, state: Dict[str, str], scope: Scope) -> None:
        try:
            with self._lock:
                conn = self._connect()
                try:
                    conn.execute("BEGIN")
                    try:
                        conn.execute(
                            f"DELETE FROM {self.table_name} WHERE scope = ?",
                            (scope.value,)
                        )
                        conn.executemany(
                            f"INSERT INTO {self.table_name} (scope, key, value) VALUES (?, ?, ?)",
                            [(scope.value, key, value) for key, value in state.items()]
                        )
                        conn.execute("COMMIT")
                    except Exception:
                        conn.execute("ROLLBACK")
                        raise
                finally:
                    conn.close()
        except sqlite3.Error as e:
            raise CheckpointWriteError(f"Failed to write {scope.value} state: {e}") from e


def load_position(store: CheckpointStore, key: str, scope: Scope) -> int:
    """
    Read the checkpointed transaction id.

    A missing or empty field yields ``SENTINEL_TXID``.

    Raises:
        CheckpointReadError: If the store fails or the field is not an integer
    """
    value = store.get(scope).get(key)
    if value is None or value == "":
        return SENTINEL_TXID
    try:
        return int(value)
    except ValueError:
        raise CheckpointReadError(f"Stored {key!r} is not a transaction id: {value!r}") from None


def save_position(store: CheckpointStore, position: int, key: str, scope: Scope) -> None:
    """
    Write the transaction id back, preserving unrelated fields.

    Raises:
        CheckpointReadError: If the current state cannot be read
        CheckpointWriteError: If the new state cannot be written
    """
    state = dict(store.get(scope))
    state[key] = str(position)
    store.set(state, scope)
    logger.debug(f"Persisted {key}={position} ({scope.value})")
