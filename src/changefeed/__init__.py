"""
Changefeed Package

Consumes an ordered filesystem change-notification stream, filters events
by type and path, and emits each accepted event downstream as a
self-contained JSON record while keeping a durable resume position.

Features:
- Six event kinds: APPEND, CLOSE, CREATE, METADATA, RENAME, UNLINK
- Type allow-list and watch-path filtering (exact or recursive)
- Checkpointed transaction ids with read-modify-write persistence
- Bounded retry of transient poll failures
- Reset to the current tip when history has been pruned
- Local watchdog-backed event source and SQLite-backed record queue
"""

from .models import (
    SENTINEL_TXID,
    EventType,
    Scope,
    INodeType,
    MetadataType,
    AppendEvent,
    CloseEvent,
    CreateEvent,
    MetadataUpdateEvent,
    RenameEvent,
    UnlinkEvent,
    Event,
    EventBatch,
    EmittedRecord,
    event_type_of,
    resolve_path,
)

from .config import PollerConfig, parse_duration, parse_event_types, validate_event_types

from .exceptions import (
    ChangefeedError,
    ConfigError,
    CheckpointError,
    CheckpointReadError,
    CheckpointWriteError,
    SourceError,
    TransientSourceError,
    MissingEventsError,
    PollRetriesExhaustedError,
    UnsupportedEventError,
    QueueError,
    QueueClosedError,
    PollerAlreadyRunningError,
)

from .filters import EventFilter, should_emit
from .serializer import (
    serialize_event,
    deserialize_event,
    event_to_json,
    event_from_json,
    build_record,
)
from .checkpoint import (
    CheckpointStore,
    MemoryCheckpointStore,
    SQLiteCheckpointStore,
    load_position,
    save_position,
)
from .source import EventSource, EventStream, EventJournal, JournalEventSource
from .fs_source import LocalFSEventSource
from .queue import RecordQueue
from .sink import RecordSink, ListSink, CallbackSink, QueueSink
from .poller import EventPoller, CycleOutcome, CycleResult, PollerStats, poll_with_retry
from .process import PollerProcess


__all__ = [
    # Models
    "SENTINEL_TXID",
    "EventType",
    "Scope",
    "INodeType",
    "MetadataType",
    "AppendEvent",
    "CloseEvent",
    "CreateEvent",
    "MetadataUpdateEvent",
    "RenameEvent",
    "UnlinkEvent",
    "Event",
    "EventBatch",
    "EmittedRecord",
    "event_type_of",
    "resolve_path",
    # Config
    "PollerConfig",
    "parse_duration",
    "parse_event_types",
    "validate_event_types",
    # Exceptions
    "ChangefeedError",
    "ConfigError",
    "CheckpointError",
    "CheckpointReadError",
    "CheckpointWriteError",
    "SourceError",
    "TransientSourceError",
    "MissingEventsError",
    "PollRetriesExhaustedError",
    "UnsupportedEventError",
    "QueueError",
    "QueueClosedError",
    "PollerAlreadyRunningError",
    # Components
    "EventFilter",
    "should_emit",
    "serialize_event",
    "deserialize_event",
    "event_to_json",
    "event_from_json",
    "build_record",
    "CheckpointStore",
    "MemoryCheckpointStore",
    "SQLiteCheckpointStore",
    "load_position",
    "save_position",
    "EventSource",
    "EventStream",
    "EventJournal",
    "JournalEventSource",
    "LocalFSEventSource",
    "RecordQueue",
    "RecordSink",
    "ListSink",
    "CallbackSink",
    "QueueSink",
    # Poller
    "EventPoller",
    "CycleOutcome",
    "CycleResult",
    "PollerStats",
    "poll_with_retry",
    "PollerProcess",
]

__version__ = "0.1.0"
