"""Tests for config module."""

import pytest
from pathlib import Path

from src.changefeed.config import (
    DEFAULT_EVENT_TYPES,
    PollerConfig,
    parse_duration,
    parse_event_types,
    validate_event_types,
)
from src.changefeed.exceptions import ConfigError
from src.changefeed.models import Scope


class TestPollerConfig:
    """Tests for PollerConfig class."""

    def test_default_values(self):
        config = PollerConfig(watch_path="/data")
        assert config.recursive is True
        assert config.event_types == DEFAULT_EVENT_TYPES
        assert config.poll_duration == 1.0
        assert config.max_poll_attempts == 4
        assert config.checkpoint_key == "last.tx.id"
        assert config.scope is Scope.CLUSTER
        assert config.state_db_path == Path("changefeed.db")

    def test_string_fields_are_converted(self):
        config = PollerConfig(
            watch_path="/data",
            poll_duration="500 millis",
            trigger_interval="2 sec",
            state_db_path="state.db",
            scope="local",
        )
        assert config.poll_duration == pytest.approx(0.5)
        assert config.trigger_interval == 2.0
        assert config.state_db_path == Path("state.db")
        assert config.scope is Scope.LOCAL

    def test_accepted_types_default(self):
        config = PollerConfig(watch_path="/data")
        assert config.accepted_types() == {
            "append", "close", "create", "metadata", "rename", "unlink",
        }

    def test_accepted_types_not_cached(self):
        config = PollerConfig(watch_path="/data", event_types="create")
        assert config.accepted_types() == {"create"}
        config.event_types = "unlink"
        assert config.accepted_types() == {"unlink"}

    def test_validate_ok(self):
        PollerConfig(watch_path="/data", event_types="Create, APPEND").validate()

    def test_validate_empty_watch_path(self):
        with pytest.raises(ConfigError, match="Watch path"):
            PollerConfig(watch_path="").validate()

    def test_validate_unknown_event_type(self):
        with pytest.raises(ConfigError, match="not a valid event type"):
            PollerConfig(watch_path="/data", event_types="create, delete").validate()

    def test_validate_attempts(self):
        with pytest.raises(ConfigError):
            PollerConfig(watch_path="/data", max_poll_attempts=0).validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CHANGEFEED_WATCH_PATH", "/logs")
        monkeypatch.setenv("CHANGEFEED_RECURSIVE", "false")
        monkeypatch.setenv("CHANGEFEED_EVENT_TYPES", "create,append")
        monkeypatch.setenv("CHANGEFEED_POLL_DURATION", "2 seconds")
        monkeypatch.setenv("CHANGEFEED_STATE_DB", "/tmp/state.db")

        config = PollerConfig.from_env()

        assert config.watch_path == "/logs"
        assert config.recursive is False
        assert config.accepted_types() == {"create", "append"}
        assert config.poll_duration == 2.0
        assert config.state_db_path == Path("/tmp/state.db")

    def test_from_env_overrides_win(self, monkeypatch):
        monkeypatch.setenv("CHANGEFEED_WATCH_PATH", "/logs")
        config = PollerConfig.from_env(watch_path="/other", recursive=None)
        assert config.watch_path == "/other"
        assert config.recursive is True

    def test_from_env_bad_boolean(self, monkeypatch):
        monkeypatch.setenv("CHANGEFEED_RECURSIVE", "maybe")
        with pytest.raises(ConfigError):
            PollerConfig.from_env()


class TestParseEventTypes:
    """Tests for event type list parsing."""

    def test_whitespace_and_case(self):
        assert parse_event_types("  Create ,APPEND,  unlink ") == {"create", "append", "unlink"}

    def test_empty(self):
        assert parse_event_types("") == frozenset()
        assert parse_event_types(None) == frozenset()

    def test_unknown_names_dropped(self):
        assert parse_event_types("create, bogus") == {"create"}

    def test_validate_blank_entry(self):
        with pytest.raises(ConfigError, match="Empty event type"):
            validate_event_types("create,,append")

    def test_validate_empty(self):
        with pytest.raises(ConfigError):
            validate_event_types("   ")


class TestParseDuration:
    """Tests for time period parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("1 second", 1.0),
        ("1 sec", 1.0),
        ("500 millis", 0.5),
        ("250ms", 0.25),
        ("2 mins", 120.0),
        ("1 hour", 3600.0),
        ("3", 3.0),
        (1.5, 1.5),
    ])
    def test_valid(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "soon", "1 fortnight", "-1 sec"])
    def test_invalid(self, value):
        with pytest.raises(ConfigError):
            parse_duration(value)

    def test_negative_number(self):
        with pytest.raises(ConfigError):
            parse_duration(-2)
