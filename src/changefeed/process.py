"""Serial trigger loop driving the event poller."""

import logging
import threading
from typing import List, Optional

from .exceptions import (
    PollRetriesExhaustedError,
    PollerAlreadyRunningError,
    UnsupportedEventError,
)
from .poller import CycleResult, EventPoller, PollerStats

logger = logging.getLogger(__name__)


class PollerProcess:
    """
    Runs poller cycles one after another at a fixed interval.

    A single worker thread issues triggers, so cycles never overlap.
    A failed cycle is logged and the next trigger retries from the last
    persisted checkpoint. Stopping only prevents future triggers; a cycle
    in progress finishes its bounded poll first.
    """

    def __init__(self, poller: EventPoller, interval: Optional[float] = None):
        """
        Initialize the process.

        Args:
            poller: The poller to trigger
            interval: Seconds between triggers (defaults to the poller config)
        """
        self.poller = poller
        self.interval = poller.config.trigger_interval if interval is None else interval

        self._running = False
        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self.last_result: Optional[CycleResult] = None
        self.last_error: Optional[BaseException] = None

    def run_once(self) -> Optional[CycleResult]:
        """
        Trigger a single cycle, logging instead of raising cycle failures.

        Returns:
            The cycle result, or None if the cycle failed
        """
        try:
            result = self.poller.trigger()
        except PollRetriesExhaustedError as e:
            logger.error(f"Unable to get notification information: {e}")
            self.last_error = e
            return None
        except UnsupportedEventError:
            logger.exception("Cycle failed on an unsupported event")
            raise
        except Exception as e:
            logger.exception(f"Cycle failed: {e}")
            self.last_error = e
            return None

        self.last_result = result
        self.last_error = None
        return result

    def start(self) -> None:
        """
        Run the trigger loop in the calling thread until ``stop`` is called.

        Raises:
            PollerAlreadyRunningError: If already running
        """
        self._mark_running()
        logger.info(f"Poller started, interval={self.interval}s")
        try:
            self._trigger_loop()
        except KeyboardInterrupt:
            pass
        finally:
            self._shutdown()

    def start_async(self) -> None:
        """
        Run the trigger loop in a background thread.

        Raises:
            PollerAlreadyRunningError: If already running
        """
        self._mark_running()
        thread = threading.Thread(target=self._trigger_loop, name="PollerTrigger")
        thread.daemon = True
        self._threads = [thread]
        thread.start()
        logger.info(f"Poller started in background, interval={self.interval}s")

    def _mark_running(self) -> None:
        with self._lock:
            if self._running:
                raise PollerAlreadyRunningError("Poller is already running")
            self._running = True
            self._stop_event.clear()

    def _trigger_loop(self) -> None:
        logger.debug("Trigger loop started")
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except UnsupportedEventError as e:
                # Logged by run_once; the next trigger retries the same position.
                self.last_error = e
            self._stop_event.wait(timeout=self.interval)
        logger.debug("Trigger loop stopped")

    def stop(self) -> None:
        """Stop triggering and wait for the cycle in progress to finish."""
        self._stop_event.set()
        self._shutdown()

    def _shutdown(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False

        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current and thread.is_alive():
                thread.join(timeout=self.poller.config.poll_duration * self.poller.config.max_poll_attempts + 5.0)
        self._threads.clear()
        logger.info("Poller stopped")

    @property
    def is_running(self) -> bool:
        """Check if the trigger loop is running."""
        return self._running

    @property
    def stats(self) -> PollerStats:
        return self.poller.stats

    def close(self) -> None:
        """Stop the process."""
        self.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
