"""Configuration for the changefeed package."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Optional

from .exceptions import ConfigError
from .models import EventType, Scope


DEFAULT_EVENT_TYPES = "append, close, create, metadata, rename, unlink"

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")

_DURATION_UNITS = {
    "": 1.0,
    "ns": 1e-9, "nano": 1e-9, "nanos": 1e-9, "nanosecond": 1e-9, "nanoseconds": 1e-9,
    "us": 1e-6, "micro": 1e-6, "micros": 1e-6, "microsecond": 1e-6, "microseconds": 1e-6,
    "ms": 1e-3, "milli": 1e-3, "millis": 1e-3, "millisecond": 1e-3, "milliseconds": 1e-3,
    "s": 1.0, "sec": 1.0, "secs": 1.0, "second": 1.0, "seconds": 1.0,
    "m": 60.0, "min": 60.0, "mins": 60.0, "minute": 60.0, "minutes": 60.0,
    "h": 3600.0, "hr": 3600.0, "hrs": 3600.0, "hour": 3600.0, "hours": 3600.0,
}


def parse_duration(value) -> float:
    """
    Parse a time period such as ``"1 second"`` or ``"500 millis"``.

    Bare numbers are taken as seconds.

    Returns:
        Duration in seconds

    Raises:
        ConfigError: If the value is not a non-negative time period
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        match = _DURATION_PATTERN.match(str(value))
        if not match or match.group(2).lower() not in _DURATION_UNITS:
            raise ConfigError(f"Invalid time period: {value!r}")
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2).lower()]

    if seconds < 0:
        raise ConfigError(f"Time period must not be negative: {value!r}")
    return seconds


def parse_event_types(value: Optional[str]) -> FrozenSet[str]:
    """
    Parse a comma-separated event type list into lower-case names.

    Entries are trimmed and compared case-insensitively. Blank entries
    and unknown names are dropped; use ``validate_event_types`` to reject
    them instead.
    """
    if not value:
        return frozenset()
    known = {t.value for t in EventType}
    names = (name.strip().lower() for name in value.split(","))
    return frozenset(name for name in names if name in known)


def validate_event_types(value: Optional[str]) -> None:
    """
    Check that every entry of an event type list is a known kind.

    Raises:
        ConfigError: On an empty list, a blank entry or an unknown name
    """
    if value is None or not value.strip():
        raise ConfigError("Event types must not be empty")
    known = {t.value for t in EventType}
    for name in value.split(","):
        name = name.strip().lower()
        if not name:
            raise ConfigError(f"Empty event type in list: {value!r}")
        if name not in known:
            raise ConfigError(
                f"{name!r} is not a valid event type; valid types are: "
                f"{', '.join(sorted(known))}"
            )


def _parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"Invalid boolean value: {value!r}")


@dataclass
class PollerConfig:
    """
    Configuration options for the event poller.

    Attributes:
        watch_path: Root of the subtree whose events are emitted
        recursive: Prefix-match under watch_path instead of exact match
        event_types: Comma-separated, case-insensitive list of event kinds
        poll_duration: Upper bound on each blocking poll call, in seconds
        max_poll_attempts: Total poll attempts per cycle on transient errors
        checkpoint_key: State field holding the last transaction id
        scope: Scope the checkpoint is stored under
        trigger_interval: Seconds between cycles when run by PollerProcess
        state_db_path: SQLite file for the checkpoint store and record queue
    """
    watch_path: str = ""
    recursive: bool = True
    event_types: str = DEFAULT_EVENT_TYPES
    poll_duration: float = 1.0
    max_poll_attempts: int = 4
    checkpoint_key: str = "last.tx.id"
    scope: Scope = Scope.CLUSTER
    trigger_interval: float = 1.0
    state_db_path: Path = field(default_factory=lambda: Path("changefeed.db"))

    def __post_init__(self):
        if isinstance(self.state_db_path, str):
            self.state_db_path = Path(self.state_db_path)
        if isinstance(self.scope, str):
            self.scope = Scope(self.scope)
        if isinstance(self.poll_duration, str):
            self.poll_duration = parse_duration(self.poll_duration)
        if isinstance(self.trigger_interval, str):
            self.trigger_interval = parse_duration(self.trigger_interval)

    def accepted_types(self) -> FrozenSet[str]:
        """Parse the configured event type list; not cached between calls."""
        return parse_event_types(self.event_types)

    def validate(self) -> None:
        """
        Check the configuration for errors.

        Raises:
            ConfigError: If any option is invalid
        """
        if not self.watch_path:
            raise ConfigError("Watch path must not be empty")
        validate_event_types(self.event_types)
        if self.poll_duration < 0:
            raise ConfigError("Poll duration must not be negative")
        if self.max_poll_attempts < 1:
            raise ConfigError("At least one poll attempt is required")
        if self.trigger_interval < 0:
            raise ConfigError("Trigger interval must not be negative")
        if not self.checkpoint_key:
            raise ConfigError("Checkpoint key must not be empty")

    @classmethod
    def from_env(cls, prefix: str = "CHANGEFEED_", **overrides) -> "PollerConfig":
        """
        Build a configuration from environment variables.

        Recognized variables (with the default prefix): CHANGEFEED_WATCH_PATH,
        CHANGEFEED_RECURSIVE, CHANGEFEED_EVENT_TYPES, CHANGEFEED_POLL_DURATION,
        CHANGEFEED_TRIGGER_INTERVAL, CHANGEFEED_STATE_DB. Keyword overrides
        win over the environment.
        """
        env = os.environ
        values = {}
        if f"{prefix}WATCH_PATH" in env:
            values["watch_path"] = env[f"{prefix}WATCH_PATH"]
        if f"{prefix}RECURSIVE" in env:
            values["recursive"] = _parse_bool(env[f"{prefix}RECURSIVE"])
        if f"{prefix}EVENT_TYPES" in env:
            values["event_types"] = env[f"{prefix}EVENT_TYPES"]
        if f"{prefix}POLL_DURATION" in env:
            values["poll_duration"] = parse_duration(env[f"{prefix}POLL_DURATION"])
        if f"{prefix}TRIGGER_INTERVAL" in env:
            values["trigger_interval"] = parse_duration(env[f"{prefix}TRIGGER_INTERVAL"])
        if f"{prefix}STATE_DB" in env:
            values["state_db_path"] = Path(env[f"{prefix}STATE_DB"])
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
