"""
The checkpointed poll-filter-emit cycle.

One cycle loads the last transaction id, polls the source once (with
bounded retries), emits every accepted event of the batch in order and
persists the batch's terminal transaction id. Delivery is at-least-once:
records emitted before a checkpoint write that never became durable are
emitted again after a restart.
"""

import logging
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from .checkpoint import CheckpointStore, load_position, save_position
from .config import PollerConfig
from .exceptions import (
    CheckpointError,
    MissingEventsError,
    PollRetriesExhaustedError,
    TransientSourceError,
)
from .filters import should_emit
from .models import SENTINEL_TXID, EventBatch
from .serializer import build_record
from .sink import RecordSink
from .source import EventSource, EventStream

logger = logging.getLogger(__name__)


class CycleOutcome(Enum):
    """How a poll cycle ended."""
    PROCESSED = "processed"
    TIMED_OUT = "timed_out"
    GAP_RESET = "gap_reset"
    ABORTED = "aborted"


@dataclass
class CycleResult:
    """
    Result of one poll cycle.

    Attributes:
        outcome: How the cycle ended
        position: Working position after the cycle
        previous_position: Position the cycle started from
        emitted: Records handed to the sink
        filtered: Events rejected by the filter
        attempts: Poll attempts made
        persisted: Whether the position was written back durably
    """
    outcome: CycleOutcome
    position: Optional[int]
    previous_position: Optional[int] = None
    emitted: int = 0
    filtered: int = 0
    attempts: int = 0
    persisted: bool = False

    @property
    def advanced(self) -> bool:
        """Whether the cycle produced a position to persist."""
        return self.outcome in (CycleOutcome.PROCESSED, CycleOutcome.GAP_RESET)


@dataclass
class PollerStats:
    """Counters accumulated over the poller's lifetime."""
    cycles: int = 0
    processed: int = 0
    timed_out: int = 0
    gap_resets: int = 0
    aborted: int = 0
    failures: int = 0
    emitted: int = 0
    filtered: int = 0
    checkpoint_write_failures: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def poll_with_retry(
    stream: EventStream,
    timeout: float,
    max_attempts: int = 4,
) -> Tuple[Optional[EventBatch], int]:
    """
    Poll a stream, retrying immediately on transient I/O errors.

    Args:
        stream: Stream to poll
        timeout: Seconds each poll may block
        max_attempts: Total attempts, including the first

    Returns:
        (batch, attempts) where batch is None if the poll timed out

    Raises:
        PollRetriesExhaustedError: If every attempt failed
        MissingEventsError: Passed through without retrying, with ``attempts`` set
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return stream.poll(timeout), attempt
        except MissingEventsError as e:
            e.attempts = attempt
            raise
        except (TransientSourceError, OSError) as e:
            if attempt >= max_attempts:
                logger.debug("Failed to poll for event batch. Reached max retry times.", exc_info=True)
                raise PollRetriesExhaustedError(
                    f"Unable to poll for events after {attempt} attempts: {e}",
                    attempts=attempt,
                ) from e
            logger.debug(f"Attempt {attempt} failed to poll for event batch. Retrying.")


class EventPoller:
    """
    Runs poll cycles against an event source.

    ``run_cycle`` is the pure state transition: it takes a position and
    returns the next one without touching the checkpoint store.
    ``trigger`` wraps it with loading and persisting the checkpoint.
    Cycles must not overlap; the caller serializes triggers.
    """

    def __init__(
        self,
        source: EventSource,
        sink: RecordSink,
        config: PollerConfig,
        store: Optional[CheckpointStore] = None,
        event_filter: Optional[Callable[[object], bool]] = None,
    ):
        """
        Initialize the poller.

        Args:
            source: Where events are read from
            sink: Where accepted records are written to
            config: Poller configuration
            store: Checkpoint store used by ``trigger``
            event_filter: Predicate overriding the configured filter
        """
        self.source = source
        self.sink = sink
        self.config = config
        self.store = store
        self._filter = event_filter or (lambda event: should_emit(event, self.config))
        self._stats = PollerStats()
        self._stats_lock = threading.Lock()

    @property
    def stats(self) -> PollerStats:
        with self._stats_lock:
            return PollerStats(**self._stats.to_dict())

    def run_cycle(self, position: int) -> CycleResult:
        """
        Poll once from ``position`` and emit accepted events.

        Returns:
            The cycle result; ``result.position`` is the position to persist

        Raises:
            PollRetriesExhaustedError: If polling failed on every attempt
            UnsupportedEventError: If the batch holds an unknown event kind
        """
        stream = self.source.open_stream(position)
        try:
            batch, attempts = poll_with_retry(
                stream,
                self.config.poll_duration,
                self.config.max_poll_attempts,
            )
        except MissingEventsError as e:
            logger.error(
                f"Unable to get notification information. Setting transaction id to "
                f"{SENTINEL_TXID}. This may cause some events to get missed: {e}"
            )
            return CycleResult(
                outcome=CycleOutcome.GAP_RESET,
                position=SENTINEL_TXID,
                previous_position=position,
                attempts=e.attempts or 1,
            )

        if batch is None:
            return CycleResult(
                outcome=CycleOutcome.TIMED_OUT,
                position=position,
                previous_position=position,
                attempts=attempts,
            )

        if position != SENTINEL_TXID and batch.txid < position:
            logger.warning(
                f"Source returned transaction id {batch.txid} behind position {position}; "
                f"the checkpoint will move backwards"
            )

        emitted = 0
        filtered = 0
        for event in batch.events:
            if not self._filter(event):
                filtered += 1
                continue
            record = build_record(event)
            logger.debug(f"Emitting record for {record.event_type} {record.event_path}")
            self.sink.emit(record)
            emitted += 1

        return CycleResult(
            outcome=CycleOutcome.PROCESSED,
            position=batch.txid,
            previous_position=position,
            emitted=emitted,
            filtered=filtered,
            attempts=attempts,
        )

    def trigger(self) -> CycleResult:
        """
        Run one full cycle: load the checkpoint, poll, emit, persist.

        A checkpoint that cannot be read aborts the cycle without polling.
        A failed checkpoint write is logged and otherwise ignored.

        Raises:
            PollRetriesExhaustedError: If polling failed on every attempt;
                the checkpoint is left untouched
            UnsupportedEventError: If the batch holds an unknown event kind
        """
        if self.store is None:
            raise RuntimeError("EventPoller.trigger requires a checkpoint store")

        key, scope = self.config.checkpoint_key, self.config.scope

        try:
            position = load_position(self.store, key, scope)
        except CheckpointError as e:
            logger.error(
                "Unable to retrieve last transaction ID. Must retrieve last processed "
                f"transaction ID before processing can occur: {e}"
            )
            result = CycleResult(outcome=CycleOutcome.ABORTED, position=None)
            self._record(result)
            return result

        try:
            result = self.run_cycle(position)
        except Exception:
            with self._stats_lock:
                self._stats.cycles += 1
                self._stats.failures += 1
            raise

        if result.advanced:
            try:
                save_position(self.store, result.position, key, scope)
                result.persisted = True
            except CheckpointError as e:
                logger.warning(
                    f"Failed to update {scope.value} state for last txid {result.position}. "
                    f"Events may be emitted again after a restart: {e}"
                )

        logger.debug(
            f"Cycle {result.outcome.value}: {result.previous_position} -> {result.position}, "
            f"emitted={result.emitted} filtered={result.filtered}"
        )
        self._record(result)
        return result

    def _record(self, result: CycleResult) -> None:
        with self._stats_lock:
            stats = self._stats
            stats.cycles += 1
            stats.emitted += result.emitted
            stats.filtered += result.filtered
            if result.outcome is CycleOutcome.PROCESSED:
                stats.processed += 1
            elif result.outcome is CycleOutcome.TIMED_OUT:
                stats.timed_out += 1
            elif result.outcome is CycleOutcome.GAP_RESET:
                stats.gap_resets += 1
            elif result.outcome is CycleOutcome.ABORTED:
                stats.aborted += 1
            if result.advanced and not result.persisted:
                stats.checkpoint_write_failures += 1
