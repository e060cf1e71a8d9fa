"""Tests for the Scheduler class."""

import logging
import threading
import time

from sysmonitor.errors import HostReadError
from sysmonitor.monitor import TICK_PERIOD, Scheduler
from sysmonitor.sampling import SnapshotBuilder


class ScriptedBuilder:
    """Builder that raises or returns according to a script, then repeats the last step."""

    def __init__(self, steps):
        self._steps = list(steps)
        self.calls = 0

    def build(self):
        step = self._steps[min(self.calls, len(self._steps) - 1)]
        self.calls += 1
        if isinstance(step, Exception):
            raise step
        return step


class Collector:
    """Consumer recording snapshots and signalling after a given count."""

    def __init__(self, wanted: int = 1):
        self.snapshots = []
        self._wanted = wanted
        self.done = threading.Event()

    def __call__(self, snapshot):
        self.snapshots.append(snapshot)
        if len(self.snapshots) >= self._wanted:
            self.done.set()


class TestScheduler:
    """Tests for Scheduler class."""

    def test_scheduler_creation(self, fake_source):
        """Test Scheduler can be instantiated with the fixed period."""
        scheduler = Scheduler(SnapshotBuilder(fake_source), [])

        assert scheduler.period == TICK_PERIOD == 1.0
        assert not scheduler.is_running
        assert scheduler.ticks == 0

    def test_scheduler_start_stop(self, fake_source):
        """Test Scheduler can be started and stopped."""
        scheduler = Scheduler(SnapshotBuilder(fake_source), [], period=0.05)

        scheduler.start()
        assert scheduler.is_running

        scheduler.stop()
        assert not scheduler.is_running

    def test_scheduler_start_idempotent(self, fake_source):
        """Test starting an already running scheduler is safe."""
        scheduler = Scheduler(SnapshotBuilder(fake_source), [], period=0.05)

        scheduler.start()
        thread1 = scheduler._thread

        scheduler.start()  # Should not create a new thread
        thread2 = scheduler._thread

        assert thread1 is thread2
        scheduler.stop()

    def test_daemon_thread(self, fake_source):
        """Test scheduler thread is a daemon thread."""
        scheduler = Scheduler(SnapshotBuilder(fake_source), [], period=0.05)

        scheduler.start()

        try:
            assert scheduler._thread is not None
            assert scheduler._thread.daemon is True
            assert scheduler._thread.name == "Scheduler"
        finally:
            scheduler.stop()

    def test_delivers_to_every_consumer(self, fake_source):
        """Test each snapshot reaches every consumer."""
        first = Collector(wanted=2)
        second = Collector(wanted=2)
        scheduler = Scheduler(SnapshotBuilder(fake_source), [first, second], period=0.05)

        scheduler.start()
        try:
            assert first.done.wait(timeout=2.0)
            assert second.done.wait(timeout=2.0)
        finally:
            scheduler.stop()

        assert first.snapshots[:2] == second.snapshots[:2]
        assert first.snapshots[0] is second.snapshots[0]

    def test_first_tick_is_immediate(self, fake_source):
        """Test the first snapshot does not wait a full period."""
        collector = Collector()
        scheduler = Scheduler(SnapshotBuilder(fake_source), [collector])

        scheduler.start()
        try:
            assert collector.done.wait(timeout=0.5)
        finally:
            scheduler.stop()

    def test_failed_read_skips_tick(self, snapshot, caplog):
        """Test a read fault skips that tick and the loop keeps going."""
        builder = ScriptedBuilder([HostReadError("boom"), snapshot])
        collector = Collector(wanted=2)
        scheduler = Scheduler(builder, [collector], period=0.05)

        with caplog.at_level(logging.WARNING, logger="sysmonitor.monitor"):
            scheduler.start()
            try:
                assert collector.done.wait(timeout=2.0)
            finally:
                scheduler.stop()

        assert builder.calls >= 3
        assert "Skipping tick" in caplog.text

    def test_unexpected_error_does_not_stop_loop(self, snapshot, caplog):
        """Test an unexpected fault is logged and the next tick still runs."""
        builder = ScriptedBuilder([RuntimeError("unexpected"), snapshot])
        collector = Collector()
        scheduler = Scheduler(builder, [collector], period=0.05)

        with caplog.at_level(logging.ERROR, logger="sysmonitor.monitor"):
            scheduler.start()
            try:
                assert collector.done.wait(timeout=2.0)
            finally:
                scheduler.stop()

        assert "Unexpected error while sampling" in caplog.text

    def test_consumer_failure_is_isolated(self, fake_source):
        """Test one failing consumer does not keep others from receiving."""

        def broken(snapshot):
            raise RuntimeError("render failed")

        collector = Collector(wanted=2)
        scheduler = Scheduler(SnapshotBuilder(fake_source), [broken, collector], period=0.05)

        scheduler.start()
        try:
            assert collector.done.wait(timeout=2.0)
        finally:
            scheduler.stop()

    def test_no_ticks_after_stop(self, fake_source):
        """Test nothing is delivered once stop() returns."""
        collector = Collector(wanted=2)
        scheduler = Scheduler(SnapshotBuilder(fake_source), [collector], period=0.02)

        scheduler.start()
        assert collector.done.wait(timeout=2.0)
        scheduler.stop()

        delivered = len(collector.snapshots)
        time.sleep(0.1)
        assert len(collector.snapshots) == delivered
        assert scheduler.tick() is None

    def test_stop_waits_for_in_flight_tick(self, fake_source):
        """Test stop() lets a running tick finish before returning."""
        started = threading.Event()
        finished = threading.Event()

        def slow(snapshot):
            started.set()
            time.sleep(0.3)
            finished.set()

        scheduler = Scheduler(SnapshotBuilder(fake_source), [slow], period=0.05)

        scheduler.start()
        assert started.wait(timeout=2.0)
        scheduler.stop()

        assert finished.is_set()

    def test_tick_counts_delivered_snapshots(self, snapshot):
        """Test tick() delivers synchronously and counts only successes."""
        collector = Collector()
        scheduler = Scheduler(ScriptedBuilder([HostReadError("x"), snapshot]), [collector])

        assert scheduler.tick() is None
        assert scheduler.tick() is snapshot
        assert scheduler.ticks == 1
        assert collector.snapshots == [snapshot]

    def test_overrun_skips_missed_ticks(self, snapshot):
        """Test a tick longer than the period skips missed ticks instead of bunching them."""
        period = 0.2
        build_times = []
        enough = threading.Event()

        class TimedBuilder:
            def build(self):
                build_times.append(time.monotonic())
                if len(build_times) >= 4:
                    enough.set()
                return snapshot

        def slow(snapshot):
            time.sleep(2.5 * period)

        scheduler = Scheduler(TimedBuilder(), [slow], period=period)

        scheduler.start()
        try:
            assert enough.wait(timeout=5.0)
        finally:
            scheduler.stop()

        gaps = [later - earlier for earlier, later in zip(build_times, build_times[1:])]
        for gap in gaps:
            # Never bunched: the next build waits past the overrunning tick
            assert gap >= 2.5 * period
            # Still on the original grid: a whole number of periods
            periods = gap / period
            assert abs(periods - round(periods)) < 0.25
