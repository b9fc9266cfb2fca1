"""Serialization of events to structured records and JSON."""

import json
from dataclasses import fields
from enum import Enum
from typing import Any, Dict

from .exceptions import UnsupportedEventError
from .models import (
    CONTENT_TYPE_ATTR,
    EVENT_CLASSES,
    EVENT_PATH_ATTR,
    EVENT_TYPE_ATTR,
    JSON_CONTENT_TYPE,
    EmittedRecord,
    EventType,
    INodeType,
    MetadataType,
    event_type_of,
    resolve_path,
)


# Field names in serialized records are a contract with downstream consumers.
EVENT_TYPE_FIELD = "event_type"

_ENUM_FIELDS = {
    "inode_type": INodeType,
    "metadata_type": MetadataType,
}


def _to_primitive(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, list)):
        return [_to_primitive(v) for v in value]
    return value


def _from_primitive(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _ENUM_FIELDS:
        return _ENUM_FIELDS[name](value)
    if name == "acls":
        return tuple(value)
    if name == "xattrs":
        return tuple(tuple(pair) for pair in value)
    return value


def serialize_event(event) -> Dict[str, Any]:
    """
    Map an event to a structured record of its native fields.

    The record holds the upper-case kind name under ``event_type`` followed
    by every field of the event, unchanged apart from enums becoming their
    values and tuples becoming lists.

    Raises:
        UnsupportedEventError: If the event is not one of the known kinds
    """
    event_type = event_type_of(event)
    record: Dict[str, Any] = {EVENT_TYPE_FIELD: event_type.name}
    for f in fields(event):
        record[f.name] = _to_primitive(getattr(event, f.name))
    return record


def deserialize_event(record: Dict[str, Any]):
    """
    Rebuild an event from a record produced by ``serialize_event``.

    Raises:
        UnsupportedEventError: If the record names an unknown kind
    """
    name = record.get(EVENT_TYPE_FIELD)
    try:
        event_type = EventType[name]
    except (KeyError, TypeError):
        raise UnsupportedEventError(f"Unsupported event type: {name!r}") from None

    event_cls = EVENT_CLASSES[event_type]
    kwargs = {
        f.name: _from_primitive(f.name, record[f.name])
        for f in fields(event_cls)
        if f.name in record
    }
    return event_cls(**kwargs)


def event_to_json(event) -> bytes:
    """Serialize an event to UTF-8 JSON bytes."""
    return json.dumps(serialize_event(event)).encode("utf-8")


def event_from_json(data: bytes):
    """Parse JSON produced by ``event_to_json`` back into an event."""
    return deserialize_event(json.loads(data.decode("utf-8")))


def build_record(event) -> EmittedRecord:
    """Create the downstream record for an accepted event."""
    return EmittedRecord(
        attributes={
            CONTENT_TYPE_ATTR: JSON_CONTENT_TYPE,
            EVENT_TYPE_ATTR: event_type_of(event).name,
            EVENT_PATH_ATTR: resolve_path(event),
        },
        body=event_to_json(event),
    )
