"""Output sinks that receive emitted records."""

import threading
from abc import ABC, abstractmethod
from typing import Callable, List

from .models import EmittedRecord
from .queue import RecordQueue


class RecordSink(ABC):
    """Destination for records produced by the poller."""

    @abstractmethod
    def emit(self, record: EmittedRecord) -> None:
        """Hand one record downstream. Raising fails the current cycle."""


class ListSink(RecordSink):
    """Collects records in memory."""

    def __init__(self):
        self.records: List[EmittedRecord] = []
        self._lock = threading.Lock()

    def emit(self, record: EmittedRecord) -> None:
        with self._lock:
            self.records.append(record)

    def __len__(self) -> int:
        with self._lock:
            return len(self.records)


class CallbackSink(RecordSink):
    """Passes each record to a callable."""

    def __init__(self, callback: Callable[[EmittedRecord], None]):
        self.callback = callback

    def emit(self, record: EmittedRecord) -> None:
        self.callback(record)


class QueueSink(RecordSink):
    """Writes records to a durable RecordQueue."""

    def __init__(self, queue: RecordQueue):
        self.queue = queue

    def emit(self, record: EmittedRecord) -> None:
        self.queue.enqueue(record)
