"""Exception types for sysmonitor."""


class SysMonitorError(Exception):
    """Base class for sysmonitor errors."""


class HostReadError(SysMonitorError):
    """A host statistics query failed; the current tick is skipped."""


class InvalidMemoryTotalError(SysMonitorError, ValueError):
    """Total memory was reported as zero or negative."""

    def __init__(self, total: int) -> None:
        super().__init__(f"total memory must be positive, got {total}")
        self.total = total


class DeliveryError(SysMonitorError):
    """A snapshot could not be delivered to one subscriber."""
