"""Tests for sysmonitor data models."""

import json

import pytest

from sysmonitor.models import GIB, MemoryInfo, NetworkInfo, ProcessEntry, Snapshot


def test_memory_info_from_totals():
    """Test used bytes and percent are derived from total and available."""
    info = MemoryInfo.from_totals(total=16 * GIB, available=4 * GIB)

    assert info.total == 16 * GIB
    assert info.used == 12 * GIB
    assert info.available == 4 * GIB
    assert info.used_percent == 75.0


def test_memory_info_str():
    """Test MemoryInfo renders as the dashboard label."""
    info = MemoryInfo.from_totals(total=16 * GIB, available=8 * GIB)

    assert str(info) == "Total: 16.00GB Used: 8.00GB Free: 8.00GB (50.0%)"


def test_network_info_str():
    """Test NetworkInfo renders totals in MB and packets."""
    info = NetworkInfo(
        bytes_received=3 * 1024**2,
        packets_received=30,
        bytes_sent=1024**2 // 2,
        packets_sent=12,
    )

    assert str(info) == "Network - Received: 3.00MB (30 pkts) Sent: 0.50MB (12 pkts)"


def test_process_entry_is_frozen():
    """Test that ProcessEntry is immutable (frozen)."""
    entry = ProcessEntry(pid=1, name="init", cpu_percent=0.1, memory_percent=0.5, memory_rss=10000)

    with pytest.raises(AttributeError):
        entry.pid = 999


def test_snapshot_uses_slots(snapshot):
    """Test that Snapshot uses __slots__ for memory efficiency."""
    assert not hasattr(snapshot, "__dict__")


def test_snapshot_is_frozen(snapshot):
    """Test that Snapshot cannot be mutated after construction."""
    with pytest.raises(AttributeError):
        snapshot.cpu_usage = 1.0


class TestWireFormat:
    """Tests for Snapshot.to_dict()."""

    def test_top_level_fields(self, snapshot):
        """Test the wire object carries exactly the published fields."""
        data = snapshot.to_dict()

        assert set(data) == {
            "memoryInfo",
            "cpuUsage",
            "networkInfo",
            "topProcessesByMemory",
            "topProcessesByCpu",
        }
        assert data["cpuUsage"] == 42.0

    def test_memory_info_fields(self, snapshot):
        """Test memoryInfo uses camelCase field names."""
        assert snapshot.to_dict()["memoryInfo"] == {
            "total": 16 * GIB,
            "used": 8 * GIB,
            "available": 8 * GIB,
            "usedPercent": 50.0,
        }

    def test_network_info_fields(self, snapshot):
        """Test networkInfo field names."""
        assert snapshot.to_dict()["networkInfo"] == {
            "bytesReceived": 3 * 1024**2,
            "packetsReceived": 30,
            "bytesSent": 1024**2,
            "packetsSent": 12,
        }

    def test_process_fields(self, snapshot):
        """Test process entries carry pid, name, cpu, memory and memSize."""
        first = snapshot.to_dict()["topProcessesByMemory"][0]

        assert first == {
            "pid": 4242,
            "name": "a-very-long-browser-process-name",
            "cpu": 37.5,
            "memory": 12.5,
            "memSize": 2 * GIB,
        }

    def test_network_info_null_when_absent(self):
        """Test networkInfo is null when no interfaces were found."""
        snapshot = Snapshot(
            memory_info=MemoryInfo.from_totals(GIB, GIB // 2),
            cpu_usage=0.0,
            network_info=None,
            top_processes_by_memory=(),
            top_processes_by_cpu=(),
        )

        data = json.loads(json.dumps(snapshot.to_dict()))
        assert data["networkInfo"] is None
        assert data["topProcessesByMemory"] == []
        assert data["topProcessesByCpu"] == []
