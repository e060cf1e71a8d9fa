"""Fixed-rate scheduling of snapshot sampling and delivery."""

import logging
import threading
import time
from collections.abc import Callable, Sequence

from sysmonitor.errors import HostReadError, InvalidMemoryTotalError
from sysmonitor.models import Snapshot
from sysmonitor.sampling import SnapshotBuilder

logger = logging.getLogger(__name__)

TICK_PERIOD = 1.0

Consumer = Callable[[Snapshot], None]


class Scheduler:
    """
    Samples the host at a fixed rate and hands each Snapshot to consumers.

    Runs in a separate daemon thread. Ticks are scheduled against a monotonic
    clock, so a slow tick does not shift the cadence; ticks missed while a
    tick overran are skipped. A failing tick or consumer is logged and never
    ends the loop.
    """

    def __init__(
        self,
        builder: SnapshotBuilder,
        consumers: Sequence[Consumer],
        period: float = TICK_PERIOD,
    ) -> None:
        """
        Initialize the Scheduler.

        Args:
            builder: Produces one Snapshot per tick.
            consumers: Callables receiving every Snapshot, in order.
            period: Seconds between ticks.
        """
        self._builder = builder
        self._consumers = list(consumers)
        self._period = period
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._ticks = 0

    @property
    def period(self) -> float:
        return self._period

    @property
    def ticks(self) -> int:
        """Number of snapshots built and delivered so far."""
        return self._ticks

    @property
    def is_running(self) -> bool:
        """Check if the scheduler thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the scheduler thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="Scheduler",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the scheduler and wait for an in-flight tick to finish.

        Args:
            timeout: How long to wait for the thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Scheduler thread did not stop within %.1fs", timeout)
            self._thread = None

    def _run(self) -> None:
        """Main loop running in the scheduler thread."""
        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            self.tick()

            next_tick += self._period
            now = time.monotonic()
            if next_tick < now:
                skipped = int((now - next_tick) // self._period) + 1
                logger.debug("Tick overran, skipping %d tick(s)", skipped)
                next_tick += skipped * self._period

            self._stop_event.wait(timeout=next_tick - now)

    def tick(self) -> Snapshot | None:
        """Build one Snapshot and deliver it; returns None if the tick was skipped."""
        if self._stop_event.is_set():
            return None

        try:
            snapshot = self._builder.build()
        except (HostReadError, InvalidMemoryTotalError) as exc:
            logger.warning("Skipping tick: %s", exc)
            return None
        except Exception:
            logger.exception("Unexpected error while sampling, skipping tick")
            return None

        for consumer in self._consumers:
            try:
                consumer(snapshot)
            except Exception:
                logger.exception("Snapshot consumer %r failed", consumer)

        self._ticks += 1
        return snapshot
