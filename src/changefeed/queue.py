"""SQLite-backed durable queue of emitted records."""

import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple

from .exceptions import QueueClosedError
from .models import EVENT_PATH_ATTR, EVENT_TYPE_ATTR, EmittedRecord


class RecordQueue:
    """
    Durable FIFO of emitted records.

    Dequeued records stay in the table as 'processing' until acked, so a
    consumer that crashes can recover them with ``requeue_unacked``.
    """

    def __init__(self, db_path: Path, table_name: str = "records"):
        """
        Initialize the record queue.

        Args:
            db_path: Path to the SQLite database file
            table_name: Name of the table for this queue
        """
        self.db_path = Path(db_path)
        self.table_name = table_name
        self._lock = threading.Lock()
        self._local = threading.local()
        self._closed = False

        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a thread-local database connection."""
        if getattr(self._local, "conn", None) is None:
            self._local.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,
            )
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.execute("PRAGMA synchronous=NORMAL")
        return self._local.conn

    def _init_db(self) -> None:
        conn = self._get_connection()
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_type TEXT NOT NULL,
                event_path TEXT NOT NULL,
                attributes TEXT NOT NULL,
                body BLOB NOT NULL,
                status TEXT DEFAULT 'pending',
                created_at REAL NOT NULL,
                updated_at REAL NOT NULL
            )
        """)
        conn.execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{self.table_name}_status
            ON {self.table_name}(status)
        """)

    def _check_open(self) -> None:
        if self._closed:
            raise QueueClosedError("Record queue is closed")

    @staticmethod
    def _row_values(record: EmittedRecord, now: float) -> tuple:
        return (
            record.attributes[EVENT_TYPE_ATTR],
            record.attributes[EVENT_PATH_ATTR],
            json.dumps(record.attributes),
            record.body,
            now,
            now,
        )

    def enqueue(self, record: EmittedRecord) -> int:
        """
        Append a record.

        Returns:
            The id of the stored record
        """
        return self.enqueue_batch([record])[0]

    def enqueue_batch(self, records: List[EmittedRecord]) -> List[int]:
        """
        Append records atomically, preserving their order.

        Returns:
            Ids of the stored records
        """
        self._check_open()
        if not records:
            return []

        now = time.time()
        with self._lock:
            conn = self._get_connection()
            conn.execute("BEGIN")
            try:
                ids = []
                for record in records:
                    cursor = conn.execute(
                        f"INSERT INTO {self.table_name} "
                        f"(event_type, event_path, attributes, body, status, created_at, updated_at) "
                        f"VALUES (?, ?, ?, ?, 'pending', ?, ?)",
                        self._row_values(record, now)
                    )
                    ids.append(cursor.lastrowid)
                conn.execute("COMMIT")
                return ids
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def dequeue(self, batch_size: int = 1) -> List[Tuple[int, EmittedRecord]]:
        """
        Take pending records, marking them 'processing' until acked.

        Returns:
            List of (id, record) tuples in enqueue order
        """
        self._check_open()
        now = time.time()

        with self._lock:
            conn = self._get_connection()
            conn.execute("BEGIN")
            try:
                rows = conn.execute(
                    f"SELECT id, attributes, body FROM {self.table_name} "
                    f"WHERE status = 'pending' ORDER BY id LIMIT ?",
                    (batch_size,)
                ).fetchall()

                if rows:
                    ids = [row[0] for row in rows]
                    placeholders = ",".join("?" * len(ids))
                    conn.execute(
                        f"UPDATE {self.table_name} SET status = 'processing', updated_at = ? "
                        f"WHERE id IN ({placeholders})",
                        [now] + ids
                    )

                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        return [
            (row[0], EmittedRecord(attributes=json.loads(row[1]), body=bytes(row[2])))
            for row in rows
        ]

    def ack(self, ids: List[int]) -> None:
        """Delete records that were processed successfully."""
        self._check_open()
        if not ids:
            return

        with self._lock:
            conn = self._get_connection()
            placeholders = ",".join("?" * len(ids))
            conn.execute(f"DELETE FROM {self.table_name} WHERE id IN ({placeholders})", ids)

    def nack(self, ids: List[int]) -> None:
        """Return records to the pending state."""
        self._check_open()
        if not ids:
            return

        with self._lock:
            conn = self._get_connection()
            placeholders = ",".join("?" * len(ids))
            conn.execute(
                f"UPDATE {self.table_name} SET status = 'pending', updated_at = ? "
                f"WHERE id IN ({placeholders})",
                [time.time()] + ids
            )

    def requeue_unacked(self) -> int:
        """
        Return every 'processing' record to pending (crash recovery).

        Returns:
            Number of records requeued
        """
        self._check_open()
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                f"UPDATE {self.table_name} SET status = 'pending', updated_at = ? "
                f"WHERE status = 'processing'",
                (time.time(),)
            )
            return cursor.rowcount

    def size(self, event_type: Optional[str] = None) -> int:
        """Number of pending records, optionally of one event type."""
        self._check_open()
        query = f"SELECT COUNT(*) FROM {self.table_name} WHERE status = 'pending'"
        params: tuple = ()
        if event_type is not None:
            query += " AND event_type = ?"
            params = (event_type,)

        with self._lock:
            return self._get_connection().execute(query, params).fetchone()[0]

    def total_size(self) -> int:
        """Number of records in the table, including those being processed."""
        self._check_open()
        with self._lock:
            conn = self._get_connection()
            return conn.execute(f"SELECT COUNT(*) FROM {self.table_name}").fetchone()[0]

    def close(self) -> None:
        """Close the queue and release resources."""
        if self._closed:
            return

        self._closed = True
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
