"""Custom exceptions for the changefeed package."""

from typing import Optional


class ChangefeedError(Exception):
    """Base exception for all changefeed errors."""
    pass


class ConfigError(ChangefeedError):
    """Poller configuration is invalid."""
    pass


class CheckpointError(ChangefeedError):
    """Error related to the checkpoint store."""
    pass


class CheckpointReadError(CheckpointError):
    """The persisted checkpoint state could not be read."""
    pass


class CheckpointWriteError(CheckpointError):
    """The checkpoint state could not be written back."""
    pass


class SourceError(ChangefeedError):
    """Error raised by an event source or stream."""
    pass


class TransientSourceError(SourceError):
    """I/O failure while polling; the same poll may be retried."""
    pass


class MissingEventsError(SourceError):
    """
    The requested resume position is no longer available upstream.

    History before the position has been pruned, so the events between
    the checkpoint and the oldest retained transaction cannot be replayed.
    """

    def __init__(
        self,
        message: str,
        expected_txid: Optional[int] = None,
        actual_txid: Optional[int] = None,
        attempts: Optional[int] = None,
    ):
        super().__init__(message)
        self.expected_txid = expected_txid
        self.actual_txid = actual_txid
        self.attempts = attempts


class PollRetriesExhaustedError(SourceError):
    """Every poll attempt of a cycle failed with a transient error."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class UnsupportedEventError(ChangefeedError, TypeError):
    """An event outside the known kinds reached the poller."""
    pass


class QueueError(ChangefeedError):
    """Error related to the record queue."""
    pass


class QueueClosedError(QueueError):
    """Operation attempted on a closed record queue."""
    pass


class PollerAlreadyRunningError(ChangefeedError):
    """Poller process is already running."""
    pass
