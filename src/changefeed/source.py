"""Event source interfaces and an in-process journal implementation."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Iterable, List, Optional, Tuple

from .exceptions import MissingEventsError, TransientSourceError
from .models import SENTINEL_TXID, Event, EventBatch

logger = logging.getLogger(__name__)


class EventStream(ABC):
    """An open cursor into an ordered change-notification log."""

    @abstractmethod
    def poll(self, timeout: float) -> Optional[EventBatch]:
        """
        Wait up to ``timeout`` seconds for the next batch.

        Returns:
            The next batch, or None if nothing arrived in time

        Raises:
            TransientSourceError: On an I/O failure that may be retried
            MissingEventsError: If history at the stream position was pruned
        """


class EventSource(ABC):
    """Something that can open a change stream at a position."""

    @abstractmethod
    def open_stream(self, position: int = SENTINEL_TXID) -> EventStream:
        """
        Open a stream.

        Args:
            position: Transaction id to resume strictly after, or
                SENTINEL_TXID to only see events generated from now on
        """


class EventJournal:
    """
    Thread-safe, append-only log of events stamped with transaction ids.

    Transaction ids increase by one per appended event. When ``retention``
    is set, only the newest ``retention`` entries are kept; readers
    positioned before the oldest retained entry get MissingEventsError.
    """

    def __init__(self, retention: Optional[int] = None, start_txid: int = 0):
        """
        Initialize the journal.

        Args:
            retention: Maximum number of entries to keep (None for unbounded)
            start_txid: Transaction id of the (virtual) entry before the first
        """
        if retention is not None and retention < 1:
            raise ValueError("retention must be at least 1")
        self.retention = retention
        self._entries: Deque[Tuple[int, Event]] = deque()
        self._last_txid = start_txid
        self._pruned_through = start_txid
        self._cond = threading.Condition()

    @property
    def last_txid(self) -> int:
        """Transaction id of the newest entry."""
        with self._cond:
            return self._last_txid

    @property
    def pruned_through(self) -> int:
        """Highest transaction id no longer held by the journal."""
        with self._cond:
            return self._pruned_through

    def append(self, event: Event) -> int:
        """
        Append one event.

        Returns:
            The transaction id assigned to the event
        """
        return self.append_all([event])

    def append_all(self, events: Iterable[Event]) -> int:
        """
        Append events in order.

        Returns:
            The transaction id of the last appended event
        """
        with self._cond:
            for event in events:
                self._last_txid += 1
                self._entries.append((self._last_txid, event))
            self._trim()
            self._cond.notify_all()
            return self._last_txid

    def prune(self, through_txid: int) -> int:
        """
        Drop every entry up to and including a transaction id.

        Returns:
            Number of entries dropped
        """
        with self._cond:
            dropped = 0
            while self._entries and self._entries[0][0] <= through_txid:
                self._entries.popleft()
                dropped += 1
            self._pruned_through = max(self._pruned_through, min(through_txid, self._last_txid))
            return dropped

    def _trim(self) -> None:
        if self.retention is None:
            return
        while len(self._entries) > self.retention:
            txid, _ = self._entries.popleft()
            self._pruned_through = txid

    def read_after(
        self,
        position: int,
        timeout: float = 0.0,
        max_events: Optional[int] = None,
    ) -> Optional[EventBatch]:
        """
        Return events with transaction ids greater than ``position``.

        Blocks up to ``timeout`` seconds for new entries.

        Raises:
            MissingEventsError: If entries after ``position`` were pruned
        """
        deadline = time.monotonic() + max(timeout, 0.0)
        with self._cond:
            while True:
                if position < self._pruned_through:
                    raise MissingEventsError(
                        f"Events after txid {position} were pruned; "
                        f"oldest available is {self._pruned_through + 1}",
                        expected_txid=position + 1,
                        actual_txid=self._pruned_through + 1,
                    )
                if self._last_txid > position:
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._cond.wait(remaining)

            selected: List[Tuple[int, Event]] = [
                entry for entry in self._entries if entry[0] > position
            ]
            if max_events is not None:
                selected = selected[:max_events]
            return EventBatch(
                txid=selected[-1][0],
                events=[event for _, event in selected],
            )


class JournalStream(EventStream):
    """Stream reading from an EventJournal."""

    def __init__(self, source: "JournalEventSource", position: int):
        self._source = source
        self.position = position

    def poll(self, timeout: float) -> Optional[EventBatch]:
        self._source._maybe_fail()
        batch = self._source.journal.read_after(
            self.position,
            timeout=timeout,
            max_events=self._source.max_batch_size,
        )
        if batch is not None:
            self.position = batch.txid
        return batch


class JournalEventSource(EventSource):
    """
    EventSource over an in-process EventJournal.

    Supports failure injection so callers can exercise retry and
    recovery paths without a remote service.
    """

    def __init__(self, journal: Optional[EventJournal] = None, max_batch_size: Optional[int] = None):
        self.journal = journal or EventJournal()
        self.max_batch_size = max_batch_size
        self.poll_count = 0
        self._failures: Deque[Exception] = deque()
        self._lock = threading.Lock()

    def inject_failures(self, count: int, error: Optional[Exception] = None) -> None:
        """Make the next ``count`` polls raise ``error`` (a transient I/O error by default)."""
        with self._lock:
            for _ in range(count):
                self._failures.append(error or TransientSourceError("Injected poll failure"))

    def _maybe_fail(self) -> None:
        with self._lock:
            self.poll_count += 1
            if self._failures:
                raise self._failures.popleft()

    def open_stream(self, position: int = SENTINEL_TXID) -> EventStream:
        if position == SENTINEL_TXID:
            position = self.journal.last_txid
        logger.debug(f"Opened journal stream after txid {position}")
        return JournalStream(self, position)
