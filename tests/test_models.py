"""Tests for models module."""

import pytest

from src.changefeed.exceptions import UnsupportedEventError
from src.changefeed.models import (
    SENTINEL_TXID,
    EVENT_CLASSES,
    AppendEvent,
    CloseEvent,
    CreateEvent,
    EmittedRecord,
    EventBatch,
    EventType,
    INodeType,
    MetadataType,
    MetadataUpdateEvent,
    RenameEvent,
    UnlinkEvent,
    event_type_of,
    resolve_path,
)


class TestEventType:
    """Tests for EventType enum."""

    def test_six_kinds(self):
        assert {t.name for t in EventType} == {
            "APPEND", "CLOSE", "CREATE", "METADATA", "RENAME", "UNLINK",
        }

    def test_values_are_lower_case_names(self):
        for event_type in EventType:
            assert event_type.value == event_type.name.lower()

    def test_every_kind_has_a_class(self):
        assert set(EVENT_CLASSES) == set(EventType)
        for event_type, cls in EVENT_CLASSES.items():
            assert cls.event_type is event_type


class TestEvents:
    """Tests for the event dataclasses."""

    def test_events_are_immutable(self):
        event = CreateEvent(path="/data/a")
        with pytest.raises(AttributeError):
            event.path = "/data/b"

    def test_create_defaults(self):
        event = CreateEvent(path="/data/a")
        assert event.inode_type is INodeType.FILE
        assert event.symlink_target is None
        assert event.overwrite is False

    def test_metadata_defaults(self):
        event = MetadataUpdateEvent(path="/data/a")
        assert event.metadata_type is MetadataType.TIMES
        assert event.acls is None
        assert event.xattrs is None

    def test_rename_keeps_both_paths(self):
        event = RenameEvent(src_path="/a", dst_path="/b", timestamp=5)
        assert event.src_path == "/a"
        assert event.dst_path == "/b"

    def test_equality(self):
        assert UnlinkEvent(path="/x", timestamp=1) == UnlinkEvent(path="/x", timestamp=1)
        assert UnlinkEvent(path="/x") != CloseEvent(path="/x")


class TestResolvePath:
    """Tests for event kind and path resolution."""

    @pytest.mark.parametrize("event", [
        AppendEvent(path="/p"),
        CloseEvent(path="/p"),
        CreateEvent(path="/p"),
        MetadataUpdateEvent(path="/p"),
        UnlinkEvent(path="/p"),
    ])
    def test_path_events(self, event):
        assert resolve_path(event) == "/p"

    def test_rename_resolves_to_source(self):
        assert resolve_path(RenameEvent(src_path="/src", dst_path="/dst")) == "/src"

    def test_event_type_of(self):
        assert event_type_of(AppendEvent(path="/p")) is EventType.APPEND
        assert event_type_of(RenameEvent(src_path="/a", dst_path="/b")) is EventType.RENAME

    def test_unknown_object_raises(self):
        with pytest.raises(UnsupportedEventError):
            resolve_path(object())

    def test_none_raises(self):
        with pytest.raises(UnsupportedEventError):
            event_type_of(None)

    def test_subclass_is_not_a_known_kind(self):
        class OddAppend(AppendEvent):
            pass

        with pytest.raises(UnsupportedEventError):
            event_type_of(OddAppend(path="/p"))

    def test_unsupported_event_error_is_type_error(self):
        with pytest.raises(TypeError):
            resolve_path("not an event")


class TestEventBatch:
    """Tests for EventBatch."""

    def test_empty_batch(self):
        batch = EventBatch(txid=10)
        assert len(batch) == 0
        assert list(batch) == []

    def test_iterates_in_order(self):
        events = [CreateEvent(path="/a"), CloseEvent(path="/a")]
        batch = EventBatch(txid=2, events=events)
        assert len(batch) == 2
        assert list(batch) == events

    def test_sentinel(self):
        assert SENTINEL_TXID == -1


class TestEmittedRecord:
    """Tests for EmittedRecord."""

    def test_to_from_dict(self):
        record = EmittedRecord(
            attributes={"content-type": "application/json", "event-type": "CREATE", "event-path": "/a"},
            body=b'{"event_type": "CREATE"}',
        )
        restored = EmittedRecord.from_dict(record.to_dict())
        assert restored == record
        assert restored.event_type == "CREATE"
        assert restored.event_path == "/a"
