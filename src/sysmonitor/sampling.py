"""Sampling pipeline: CPU deltas, process ranking and snapshot assembly."""

import logging
from collections.abc import Iterable

from sysmonitor.errors import InvalidMemoryTotalError
from sysmonitor.models import MemoryInfo, NetworkInfo, ProcessEntry, Snapshot
from sysmonitor.source import HostStatsSource, RawProcess

logger = logging.getLogger(__name__)

TOP_N = 10


class CpuDeltaTracker:
    """
    Converts successive CPU tick snapshots into a busy percentage.

    Owns the previous-ticks baseline. Not thread-safe: only the thread that
    drives sampling may call sample().
    """

    def __init__(self, source: HostStatsSource) -> None:
        """
        Initialize the tracker and take the initial baseline.

        Args:
            source: Host statistics source to read CPU ticks from.
        """
        self._source = source
        self._prev_ticks = source.cpu_ticks()

    def sample(self) -> float:
        """Return busy percent since the previous call and advance the baseline."""
        ticks = self._source.cpu_ticks()
        percent = self._source.cpu_percent_between(self._prev_ticks, ticks)
        self._prev_ticks = ticks
        return percent


def rank_processes(
    processes: Iterable[RawProcess],
    total_memory: int,
    limit: int = TOP_N,
) -> tuple[list[ProcessEntry], list[ProcessEntry]]:
    """
    Rank processes by resident memory and by CPU load.

    Ties keep the order of the input enumeration.

    Args:
        processes: Raw process records from one read of the process table.
        total_memory: Host total memory in bytes, must be positive.
        limit: Maximum length of each returned list.

    Returns:
        (by_memory_desc, by_cpu_desc)
    """
    if total_memory <= 0:
        raise InvalidMemoryTotalError(total_memory)

    entries = [
        ProcessEntry(
            pid=proc.pid,
            name=proc.name,
            cpu_percent=proc.cpu_load_cumulative_percent,
            memory_percent=100.0 * proc.resident_set_size / total_memory,
            memory_rss=proc.resident_set_size,
        )
        for proc in processes
    ]

    by_memory = sorted(entries, key=lambda p: p.memory_rss, reverse=True)[:limit]
    by_cpu = sorted(entries, key=lambda p: p.cpu_percent, reverse=True)[:limit]
    return by_memory, by_cpu


class SnapshotBuilder:
    """Runs one sampling pass and assembles a Snapshot."""

    def __init__(
        self,
        source: HostStatsSource,
        cpu_tracker: CpuDeltaTracker | None = None,
        limit: int = TOP_N,
    ) -> None:
        self._source = source
        self._cpu_tracker = cpu_tracker or CpuDeltaTracker(source)
        self._limit = limit

    def build(self) -> Snapshot:
        """
        Sample the host once.

        Raises:
            HostReadError: A host query failed.
            InvalidMemoryTotalError: The host reported no memory.
        """
        total, available = self._source.memory_totals()
        if total <= 0:
            raise InvalidMemoryTotalError(total)
        memory_info = MemoryInfo.from_totals(total, available)

        cpu_usage = self._cpu_tracker.sample()
        network_info = self._collect_network()

        # Same total for every process so percentages agree within a snapshot
        processes = self._source.processes()
        by_memory, by_cpu = rank_processes(processes, total, self._limit)
        logger.debug(
            "Sampled %d processes, cpu %.1f%%, memory %.1f%%",
            len(processes),
            cpu_usage,
            memory_info.used_percent,
        )

        return Snapshot(
            memory_info=memory_info,
            cpu_usage=cpu_usage,
            network_info=network_info,
            top_processes_by_memory=tuple(by_memory),
            top_processes_by_cpu=tuple(by_cpu),
        )

    def _collect_network(self) -> NetworkInfo | None:
        interfaces = self._source.network_interfaces()
        if not interfaces:
            return None
        return NetworkInfo(
            bytes_received=sum(nic.bytes_recv for nic in interfaces),
            packets_received=sum(nic.packets_recv for nic in interfaces),
            bytes_sent=sum(nic.bytes_sent for nic in interfaces),
            packets_sent=sum(nic.packets_sent for nic in interfaces),
        )
