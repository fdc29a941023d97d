"""Error taxonomy shared by the counter drivers, the acquisition loop and the controller.

Only ``DeviceConfigError`` and ``DeviceFaultError`` are meant to reach the
control surface. Timeouts, capacity and checkpoint failures are handled
inside the acquisition loop.
"""
from __future__ import annotations

from typing import Optional


class MuonCollectorError(Exception):
    """Base class for all errors raised by this package."""


class DeviceError(MuonCollectorError):
    """Base class for failures reported by a counter driver."""

    def __init__(self, message: str, *, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class DeviceConfigError(DeviceError):
    """The counter channel could not be configured; the run never starts."""


class DeviceFaultError(DeviceError):
    """The counter failed mid-run; acquisition drains and ends."""


class DeviceTimeoutError(DeviceError):
    """No edge arrived within the read timeout. Expected and retried."""


class CapacityExceeded(MuonCollectorError):
    """The event log is full. Signals normal run completion."""

    def __init__(self, capacity: int) -> None:
        super().__init__(f"event log capacity of {capacity} reached")
        self.capacity = capacity


class CheckpointIoError(MuonCollectorError):
    """A checkpoint file could not be written. Logged and retried later."""

    def __init__(self, path: str, cause: BaseException) -> None:
        super().__init__(f"failed to write checkpoint {path}: {cause}")
        self.path = path
        self.cause = cause


class IllegalCommandError(RuntimeError):
    """A control command is not allowed in the current run state."""


__all__ = [
    "MuonCollectorError",
    "DeviceError",
    "DeviceConfigError",
    "DeviceFaultError",
    "DeviceTimeoutError",
    "CapacityExceeded",
    "CheckpointIoError",
    "IllegalCommandError",
]
