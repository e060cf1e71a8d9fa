"""Host statistics queries backed by psutil."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

import psutil

from sysmonitor.errors import HostReadError

logger = logging.getLogger(__name__)

# Fields of psutil.cpu_times() that are not busy time
IDLE_FIELDS = ("idle", "iowait")
# On Linux guest time is already included in user/nice
GUEST_FIELDS = ("guest", "guest_nice")


@dataclass(slots=True, frozen=True)
class NetworkCounters:
    """Cumulative counters of one network interface."""

    bytes_recv: int
    packets_recv: int
    bytes_sent: int
    packets_sent: int


@dataclass(slots=True, frozen=True)
class RawProcess:
    """Unranked per-process counters as read from the OS."""

    pid: int
    name: str
    cpu_load_cumulative_percent: float
    resident_set_size: int  # Bytes


class HostStatsSource(Protocol):
    """Point-in-time reads of host resource counters."""

    def memory_totals(self) -> tuple[int, int]:
        """Return (total, available) memory in bytes."""
        ...

    def cpu_ticks(self) -> Any:
        """Return an opaque CPU time counter snapshot."""
        ...

    def cpu_percent_between(self, prev: Any, curr: Any) -> float:
        """Return system-wide busy percent between two tick snapshots."""
        ...

    def network_interfaces(self) -> list[NetworkCounters]:
        """Return counters for every non-loopback interface."""
        ...

    def processes(self) -> list[RawProcess]:
        """Return the live process table."""
        ...


def cpu_percent_between(prev: Any, curr: Any) -> float:
    """
    Compute busy percent from two CPU time snapshots.

    Both arguments are named tuples of cumulative per-category CPU times,
    such as the ones returned by psutil.cpu_times(). Idle and iowait count
    as not busy; guest fields are left out of the total.

    Returns 0.0 when no time has elapsed between the snapshots.
    """
    prev_fields = prev._asdict()
    curr_fields = curr._asdict()

    total_delta = 0.0
    idle_delta = 0.0
    for field, value in curr_fields.items():
        if field in GUEST_FIELDS:
            continue
        delta = value - prev_fields.get(field, 0)
        total_delta += delta
        if field in IDLE_FIELDS:
            idle_delta += delta

    if total_delta <= 0:
        return 0.0
    return (total_delta - idle_delta) / total_delta * 100


class PsutilHostStats:
    """
    HostStatsSource implementation using psutil.

    Handles NoSuchProcess, AccessDenied and ZombieProcess for individual
    processes by skipping them. Any other failure is raised as HostReadError.
    """

    PROCESS_ATTRS = ["pid", "name", "cpu_times", "create_time", "memory_info"]

    def memory_totals(self) -> tuple[int, int]:
        try:
            mem = psutil.virtual_memory()
        except (psutil.Error, OSError) as exc:
            raise HostReadError(f"memory query failed: {exc}") from exc
        return mem.total, mem.available

    def cpu_ticks(self) -> Any:
        try:
            return psutil.cpu_times()
        except (psutil.Error, OSError) as exc:
            raise HostReadError(f"cpu times query failed: {exc}") from exc

    def cpu_percent_between(self, prev: Any, curr: Any) -> float:
        return cpu_percent_between(prev, curr)

    def network_interfaces(self) -> list[NetworkCounters]:
        try:
            counters = psutil.net_io_counters(pernic=True)
            stats = psutil.net_if_stats()
        except (psutil.Error, OSError) as exc:
            raise HostReadError(f"network query failed: {exc}") from exc

        interfaces: list[NetworkCounters] = []
        for name, nic in counters.items():
            nic_stats = stats.get(name)
            if nic_stats is not None and "loopback" in nic_stats.flags.split(","):
                continue
            interfaces.append(
                NetworkCounters(
                    bytes_recv=nic.bytes_recv,
                    packets_recv=nic.packets_recv,
                    bytes_sent=nic.bytes_sent,
                    packets_sent=nic.packets_sent,
                )
            )
        return interfaces

    def processes(self) -> list[RawProcess]:
        """
        Collect raw counters of all running processes.

        The CPU figure is the process's lifetime CPU time divided by its
        wall-clock age, not a delta against a previous sample.
        """
        now = time.time()
        processes: list[RawProcess] = []
        skipped = 0

        try:
            proc_iter = psutil.process_iter(attrs=self.PROCESS_ATTRS)
            for proc in proc_iter:
                try:
                    info = proc.info
                    mem_info = info.get("memory_info")
                    if mem_info is None:
                        # Access to this process was denied
                        skipped += 1
                        continue

                    processes.append(
                        RawProcess(
                            pid=info["pid"],
                            name=info.get("name") or "",
                            cpu_load_cumulative_percent=_cumulative_cpu_percent(
                                info.get("cpu_times"), info.get("create_time"), now
                            ),
                            resident_set_size=mem_info.rss,
                        )
                    )
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    skipped += 1
                    continue
        except (psutil.Error, OSError) as exc:
            raise HostReadError(f"process enumeration failed: {exc}") from exc

        if skipped:
            logger.debug("Skipped %d inaccessible or vanished processes", skipped)
        return processes


def _cumulative_cpu_percent(cpu_times: Any, create_time: float | None, now: float) -> float:
    if cpu_times is None or not create_time:
        return 0.0
    elapsed = now - create_time
    if elapsed <= 0:
        return 0.0
    return (cpu_times.user + cpu_times.system) / elapsed * 100
