"""Event filtering by type allow-list and watch path."""

from typing import Optional

from .config import PollerConfig
from .models import event_type_of, resolve_path


def strip_trailing_separator(path: Optional[str]) -> Optional[str]:
    """Remove one trailing '/' from a non-empty path."""
    if path and path.endswith("/"):
        return path[:-1]
    return path


def matches_type(event, config: PollerConfig) -> bool:
    """Check the event's kind against the configured allow-list."""
    return event_type_of(event).value in config.accepted_types()


def matches_path(path: Optional[str], watch_path: Optional[str], recursive: bool) -> bool:
    """
    Check a resolved event path against the watch path.

    Both sides lose one trailing separator before comparing. Recursive
    matching is a plain string prefix test, so a watch path of "/a/b"
    also matches "/a/bc".
    """
    path = strip_trailing_separator(path)
    if not path or not watch_path:
        return False

    watch_path = strip_trailing_separator(watch_path)
    if recursive:
        return path.startswith(watch_path)
    return path == watch_path


class EventFilter:
    """
    Decides whether an event should be emitted.

    Stateless: the accepted type set is re-derived from the config on
    every call, so a filter always reflects the config it was given.
    """

    def __init__(self, config: PollerConfig):
        self.config = config

    def __call__(self, event) -> bool:
        return should_emit(event, self.config)


def should_emit(event, config: PollerConfig) -> bool:
    """
    Return True if the event passes both the type and the path check.

    Raises:
        UnsupportedEventError: If the event is not one of the known kinds
    """
    if not matches_type(event, config):
        return False
    return matches_path(resolve_path(event), config.watch_path, config.recursive)
