"""Data models for the changefeed package."""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, Iterator, List, Optional, Tuple, Union

from .exceptions import UnsupportedEventError


# Reserved checkpoint position: no reliable resume point, start from the tip.
SENTINEL_TXID = -1


class EventType(Enum):
    """The six kinds of filesystem change notification."""
    APPEND = "append"
    CLOSE = "close"
    CREATE = "create"
    METADATA = "metadata"
    RENAME = "rename"
    UNLINK = "unlink"


class Scope(Enum):
    """Visibility of persisted poller state."""
    LOCAL = "local"
    CLUSTER = "cluster"


class INodeType(Enum):
    """Kind of inode created by a CREATE event."""
    FILE = "FILE"
    DIRECTORY = "DIRECTORY"
    SYMLINK = "SYMLINK"


class MetadataType(Enum):
    """Which piece of metadata a METADATA event updated."""
    TIMES = "TIMES"
    REPLICATION = "REPLICATION"
    OWNER = "OWNER"
    PERMS = "PERMS"
    ACLS = "ACLS"
    XATTRS = "XATTRS"


@dataclass(frozen=True)
class CreateEvent:
    """
    A file, directory or symlink was created.

    Attributes:
        path: Path of the new inode
        inode_type: FILE, DIRECTORY or SYMLINK
        ctime: Creation time in epoch milliseconds
        replication: Replication factor (0 for directories)
        owner_name: Owning user
        group_name: Owning group
        perms: Permission bits as an integer mode (e.g. 0o644)
        symlink_target: Target path for SYMLINK creates
        overwrite: Whether an existing file was overwritten
        default_block_size: Block size of the new file in bytes
    """
    event_type: ClassVar[EventType] = EventType.CREATE

    path: str
    inode_type: INodeType = INodeType.FILE
    ctime: int = 0
    replication: int = 0
    owner_name: Optional[str] = None
    group_name: Optional[str] = None
    perms: Optional[int] = None
    symlink_target: Optional[str] = None
    overwrite: bool = False
    default_block_size: int = 0


@dataclass(frozen=True)
class CloseEvent:
    """
    A file was closed after being written.

    Attributes:
        path: Path of the closed file
        file_size: Size of the file after close, in bytes
        timestamp: Close time in epoch milliseconds
    """
    event_type: ClassVar[EventType] = EventType.CLOSE

    path: str
    file_size: int = 0
    timestamp: int = 0


@dataclass(frozen=True)
class AppendEvent:
    """An existing file was opened for append."""
    event_type: ClassVar[EventType] = EventType.APPEND

    path: str
    new_block: bool = False


@dataclass(frozen=True)
class RenameEvent:
    """
    A path was renamed.

    Only ``src_path`` is used for filtering and for the event-path
    attribute; ``dst_path`` is carried through serialization untouched.
    """
    event_type: ClassVar[EventType] = EventType.RENAME

    src_path: str
    dst_path: str
    timestamp: int = 0


@dataclass(frozen=True)
class MetadataUpdateEvent:
    """
    Metadata of a path changed.

    Only the fields relevant to ``metadata_type`` are meaningful; the
    others keep their defaults.
    """
    event_type: ClassVar[EventType] = EventType.METADATA

    path: str
    metadata_type: MetadataType = MetadataType.TIMES
    mtime: int = 0
    atime: int = 0
    replication: int = 0
    owner_name: Optional[str] = None
    group_name: Optional[str] = None
    perms: Optional[int] = None
    acls: Optional[Tuple[str, ...]] = None
    xattrs: Optional[Tuple[Tuple[str, str], ...]] = None
    xattrs_removed: bool = False


@dataclass(frozen=True)
class UnlinkEvent:
    """A path was deleted."""
    event_type: ClassVar[EventType] = EventType.UNLINK

    path: str
    timestamp: int = 0


Event = Union[
    AppendEvent,
    CloseEvent,
    CreateEvent,
    MetadataUpdateEvent,
    RenameEvent,
    UnlinkEvent,
]

EVENT_CLASSES: Dict[EventType, type] = {
    EventType.APPEND: AppendEvent,
    EventType.CLOSE: CloseEvent,
    EventType.CREATE: CreateEvent,
    EventType.METADATA: MetadataUpdateEvent,
    EventType.RENAME: RenameEvent,
    EventType.UNLINK: UnlinkEvent,
}


def event_type_of(event) -> EventType:
    """
    Return the kind of a known event.

    Raises:
        UnsupportedEventError: If the object is not one of the six event classes
    """
    if event is None:
        raise UnsupportedEventError("Event must not be None")
    event_type = getattr(type(event), "event_type", None)
    if EVENT_CLASSES.get(event_type) is not type(event):
        raise UnsupportedEventError(f"Unsupported event type: {type(event).__name__}")
    return event_type


def resolve_path(event) -> str:
    """
    Return the path an event is attributed to.

    This is the source path for renames and the event's own path for
    every other kind.
    """
    event_type = event_type_of(event)
    if event_type is EventType.RENAME:
        return event.src_path
    return event.path


@dataclass
class EventBatch:
    """
    An ordered batch of events returned by a single poll.

    Attributes:
        txid: Terminal transaction id; every event up to and including
            it has been observed once this batch is handled
        events: Events in upstream order (may be empty)
    """
    txid: int
    events: List[Event] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self.events)


CONTENT_TYPE_ATTR = "content-type"
EVENT_TYPE_ATTR = "event-type"
EVENT_PATH_ATTR = "event-path"
JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class EmittedRecord:
    """
    A self-contained record handed downstream for one accepted event.

    Attributes:
        attributes: content-type, event-type and event-path attributes
        body: The serialized event (UTF-8 JSON)
    """
    attributes: Dict[str, str]
    body: bytes

    @property
    def event_type(self) -> str:
        return self.attributes[EVENT_TYPE_ATTR]

    @property
    def event_path(self) -> str:
        return self.attributes[EVENT_PATH_ATTR]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "attributes": dict(self.attributes),
            "body": self.body.decode("utf-8"),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EmittedRecord":
        """Create from dictionary."""
        return cls(
            attributes=dict(data["attributes"]),
            body=data["body"].encode("utf-8"),
        )
