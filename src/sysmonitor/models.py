"""Data models for sysmonitor."""

from dataclasses import dataclass
from typing import Any

GIB = 1024**3
MIB = 1024**2


@dataclass(slots=True, frozen=True)
class MemoryInfo:
    """Whole-host memory totals."""

    total: int  # Bytes
    used: int
    available: int
    used_percent: float

    @classmethod
    def from_totals(cls, total: int, available: int) -> "MemoryInfo":
        """Derive used bytes and used percent from total and available."""
        used = total - available
        return cls(
            total=total,
            used=used,
            available=available,
            used_percent=used / total * 100,
        )

    def __str__(self) -> str:
        return (
            f"Total: {self.total / GIB:.2f}GB "
            f"Used: {self.used / GIB:.2f}GB "
            f"Free: {self.available / GIB:.2f}GB "
            f"({self.used_percent:.1f}%)"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "used": self.used,
            "available": self.available,
            "usedPercent": self.used_percent,
        }


@dataclass(slots=True, frozen=True)
class NetworkInfo:
    """Lifetime network counters summed across interfaces."""

    bytes_received: int
    packets_received: int
    bytes_sent: int
    packets_sent: int

    def __str__(self) -> str:
        return (
            f"Network - Received: {self.bytes_received / MIB:.2f}MB "
            f"({self.packets_received} pkts) "
            f"Sent: {self.bytes_sent / MIB:.2f}MB ({self.packets_sent} pkts)"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "bytesReceived": self.bytes_received,
            "packetsReceived": self.packets_received,
            "bytesSent": self.bytes_sent,
            "packetsSent": self.packets_sent,
        }


@dataclass(slots=True, frozen=True)
class ProcessEntry:
    """One row of a ranked process list."""

    pid: int
    name: str
    cpu_percent: float  # Cumulative load since process start
    memory_percent: float  # RSS / host total memory
    memory_rss: int  # Bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "pid": self.pid,
            "name": self.name,
            "cpu": self.cpu_percent,
            "memory": self.memory_percent,
            "memSize": self.memory_rss,
        }


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable bundle of all metrics from one sampling pass."""

    memory_info: MemoryInfo
    cpu_usage: float
    network_info: NetworkInfo | None
    top_processes_by_memory: tuple[ProcessEntry, ...]
    top_processes_by_cpu: tuple[ProcessEntry, ...]

    def to_dict(self) -> dict[str, Any]:
        """Return the push-channel wire representation."""
        return {
            "memoryInfo": self.memory_info.to_dict(),
            "cpuUsage": self.cpu_usage,
            "networkInfo": self.network_info.to_dict() if self.network_info else None,
            "topProcessesByMemory": [p.to_dict() for p in self.top_processes_by_memory],
            "topProcessesByCpu": [p.to_dict() for p in self.top_processes_by_cpu],
        }
