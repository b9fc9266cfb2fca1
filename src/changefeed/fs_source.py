"""Local filesystem event source using the watchdog library."""

import logging
import os
import stat
import threading
import time
from pathlib import Path
from typing import Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .models import (
    SENTINEL_TXID,
    AppendEvent,
    CloseEvent,
    CreateEvent,
    INodeType,
    MetadataType,
    MetadataUpdateEvent,
    RenameEvent,
    UnlinkEvent,
)
from .source import EventJournal, EventSource, EventStream, JournalEventSource

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _normalize(path) -> str:
    return Path(os.fsdecode(path)).as_posix()


class JournalingEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events into journal entries."""

    def __init__(self, journal: EventJournal):
        super().__init__()
        self.journal = journal

    def on_created(self, event):
        path = _normalize(event.src_path)
        try:
            st = os.lstat(path)
        except OSError:
            st = None

        if event.is_directory:
            inode_type = INodeType.DIRECTORY
        elif st is not None and stat.S_ISLNK(st.st_mode):
            inode_type = INodeType.SYMLINK
        else:
            inode_type = INodeType.FILE

        symlink_target = None
        if inode_type is INodeType.SYMLINK:
            try:
                symlink_target = os.readlink(path)
            except OSError:
                symlink_target = None

        self.journal.append(CreateEvent(
            path=path,
            inode_type=inode_type,
            ctime=int(st.st_ctime * 1000) if st else _now_ms(),
            replication=0 if event.is_directory else 1,
            perms=stat.S_IMODE(st.st_mode) if st else None,
            symlink_target=symlink_target,
        ))

    def on_modified(self, event):
        path = _normalize(event.src_path)
        if event.is_directory:
            self.journal.append(MetadataUpdateEvent(
                path=path,
                metadata_type=MetadataType.TIMES,
                mtime=_now_ms(),
            ))
        else:
            self.journal.append(AppendEvent(path=path))

    def on_closed(self, event):
        path = _normalize(event.src_path)
        try:
            size = os.stat(path).st_size
        except OSError:
            size = 0
        self.journal.append(CloseEvent(path=path, file_size=size, timestamp=_now_ms()))

    def on_deleted(self, event):
        self.journal.append(UnlinkEvent(path=_normalize(event.src_path), timestamp=_now_ms()))

    def on_moved(self, event):
        self.journal.append(RenameEvent(
            src_path=_normalize(event.src_path),
            dst_path=_normalize(event.dest_path),
            timestamp=_now_ms(),
        ))


class LocalFSEventSource(EventSource):
    """
    EventSource fed by a watchdog observer on a local directory.

    Notifications are journaled as they arrive; streams opened on this
    source read from that journal, so positions behave like upstream
    transaction ids for as long as the process lives.
    """

    def __init__(
        self,
        root: Path,
        recursive: bool = True,
        retention: Optional[int] = 100_000,
        max_batch_size: Optional[int] = 1000,
        start_txid: int = 0,
    ):
        """
        Initialize the source.

        Args:
            root: Directory to observe
            recursive: Whether to observe subdirectories
            retention: Journal entries kept for resuming streams
            max_batch_size: Maximum events returned by one poll
            start_txid: Transaction id preceding the first journaled event
        """
        self.root = Path(root).resolve()
        self.recursive = recursive
        self.journal = EventJournal(retention=retention, start_txid=start_txid)
        self._source = JournalEventSource(self.journal, max_batch_size=max_batch_size)
        self._observer: Optional[Observer] = None
        self._lock = threading.Lock()

    def start(self) -> bool:
        """
        Start observing the root directory.

        Returns:
            True if observing started, False if already running
        """
        with self._lock:
            if self._observer is not None:
                return False

            observer = Observer()
            observer.schedule(
                JournalingEventHandler(self.journal),
                str(self.root),
                recursive=self.recursive,
            )
            observer.start()
            self._observer = observer
            logger.info(f"Observing {self.root} (recursive={self.recursive})")
            return True

    def stop(self) -> bool:
        """
        Stop observing.

        Returns:
            True if the observer was stopped, False if it was not running
        """
        with self._lock:
            if self._observer is None:
                return False
            observer, self._observer = self._observer, None

        observer.stop()
        observer.join(timeout=5.0)
        logger.info(f"Stopped observing {self.root}")
        return True

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._observer is not None

    def open_stream(self, position: int = SENTINEL_TXID) -> EventStream:
        return self._source.open_stream(position)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
