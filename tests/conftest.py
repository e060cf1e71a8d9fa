"""Shared fakes for sysmonitor tests."""

from collections import namedtuple

import pytest

from sysmonitor.errors import HostReadError
from sysmonitor.models import GIB, MemoryInfo, NetworkInfo, ProcessEntry, Snapshot
from sysmonitor.source import NetworkCounters, RawProcess, cpu_percent_between

Ticks = namedtuple("Ticks", ["user", "system", "idle", "iowait"])


class FakeHostStats:
    """In-memory HostStatsSource with scripted readings."""

    def __init__(
        self,
        total: int = 16 * GIB,
        available: int = 8 * GIB,
        ticks: list | None = None,
        interfaces: list[NetworkCounters] | None = None,
        processes: list[RawProcess] | None = None,
    ) -> None:
        self.total = total
        self.available = available
        self.ticks = list(ticks or [Ticks(0, 0, 0, 0)])
        self.interfaces = list(interfaces or [])
        self.process_list = list(processes or [])
        self.fail_processes = False
        self.fail_ticks = False
        self.memory_calls = 0
        self.tick_calls = 0

    def memory_totals(self) -> tuple[int, int]:
        self.memory_calls += 1
        return self.total, self.available

    def cpu_ticks(self):
        if self.fail_ticks:
            raise HostReadError("cpu times unavailable")
        index = min(self.tick_calls, len(self.ticks) - 1)
        self.tick_calls += 1
        return self.ticks[index]

    def cpu_percent_between(self, prev, curr) -> float:
        return cpu_percent_between(prev, curr)

    def network_interfaces(self) -> list[NetworkCounters]:
        return list(self.interfaces)

    def processes(self) -> list[RawProcess]:
        if self.fail_processes:
            raise HostReadError("process table unavailable")
        return list(self.process_list)


def make_processes(count: int) -> list[RawProcess]:
    """Processes with distinct memory and CPU figures in shuffled order."""
    return [
        RawProcess(
            pid=1000 + i,
            name=f"proc-{i}",
            cpu_load_cumulative_percent=float((i * 7) % count),
            resident_set_size=((i * 11) % count + 1) * 1024**2,
        )
        for i in range(count)
    ]


@pytest.fixture
def fake_source() -> FakeHostStats:
    return FakeHostStats(
        ticks=[Ticks(0, 0, 0, 0), Ticks(30, 10, 60, 0)],
        interfaces=[
            NetworkCounters(bytes_recv=1000, packets_recv=10, bytes_sent=500, packets_sent=5),
            NetworkCounters(bytes_recv=2000, packets_recv=20, bytes_sent=700, packets_sent=7),
        ],
        processes=make_processes(25),
    )


@pytest.fixture
def snapshot() -> Snapshot:
    init = ProcessEntry(pid=1, name="init", cpu_percent=0.5, memory_percent=0.1, memory_rss=12 * 1024**2)
    browser = ProcessEntry(
        pid=4242,
        name="a-very-long-browser-process-name",
        cpu_percent=37.5,
        memory_percent=12.5,
        memory_rss=2 * GIB,
    )
    return Snapshot(
        memory_info=MemoryInfo.from_totals(16 * GIB, 8 * GIB),
        cpu_usage=42.0,
        network_info=NetworkInfo(
            bytes_received=3 * 1024**2, packets_received=30, bytes_sent=1024**2, packets_sent=12
        ),
        top_processes_by_memory=(browser, init),
        top_processes_by_cpu=(browser, init),
    )
