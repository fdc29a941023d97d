from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from .errors import DeviceError

DEFAULT_MIN_SEPARATION = 5e-7  # seconds
DEFAULT_MAX_SEPARATION = 1e-5  # seconds


class TaskMode(str, enum.Enum):
    """What the counter channel is measuring for a run."""

    RECORD_DECAYS = "record_decays"
    CALIBRATE = "calibrate"


class RunState(str, enum.Enum):
    """Run Controller state published to the control surface."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    STOP_REQUESTED = "stop_requested"
    STOPPED = "stopped"


class LoopState(str, enum.Enum):
    """Internal state of the acquisition loop."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    DRAINING = "draining"


class StopReason(str, enum.Enum):
    STOP_REQUESTED = "stop_requested"
    TARGET_REACHED = "target_reached"
    CAPACITY_REACHED = "capacity_reached"
    DEVICE_FAULT = "device_fault"


# ----------------------------
# Acquisition data
# ----------------------------

@dataclass(frozen=True)
class AcceptanceWindow:
    """Open interval ``(min_separation, max_separation)`` in seconds."""

    min_separation: float = DEFAULT_MIN_SEPARATION
    max_separation: float = DEFAULT_MAX_SEPARATION

    def __post_init__(self) -> None:
        lo = float(self.min_separation)
        hi = float(self.max_separation)
        if not (math.isfinite(lo) and math.isfinite(hi)):
            raise ValueError("acceptance window bounds must be finite")
        if lo <= 0 or hi <= 0:
            raise ValueError("acceptance window bounds must be positive")
        if lo >= hi:
            raise ValueError("min_separation must be smaller than max_separation")
        object.__setattr__(self, "min_separation", lo)
        object.__setattr__(self, "max_separation", hi)


@dataclass(frozen=True)
class DecayEvent:
    """A single accepted edge separation.

    ``timestamp`` is the run-elapsed monotonic time at detection and
    ``interval`` the measured separation, both in seconds.
    """

    timestamp: float
    interval: float

    def __post_init__(self) -> None:
        if not self.timestamp >= 0:
            raise ValueError("timestamp must be non-negative")
        if not self.interval > 0:
            raise ValueError("interval must be positive")


@dataclass(frozen=True)
class EventLogSnapshot:
    """Point-in-time copy of an EventLog, safe to hand to a writer."""

    events: Tuple[DecayEvent, ...]
    total_attempts: int
    total_accepted: int


@dataclass(frozen=True)
class RateSample:
    """Pulse count over one calibration window."""

    elapsed_s: float
    count: int
    rate_hz: float

    @property
    def counts_per_minute(self) -> float:
        return self.rate_hz * 60.0


@dataclass(frozen=True)
class CheckpointRecord:
    sequence: int
    path: Path
    n_events: int
    final: bool = False


@dataclass(frozen=True)
class CounterConfig:
    """Configuration achieved after a driver configures the counter channel."""

    mode: TaskMode
    channel: str
    window: Optional[AcceptanceWindow] = None


@dataclass(frozen=True)
class AcquisitionResult:
    """Outcome of one pass through the acquisition loop."""

    mode: TaskMode
    reason: StopReason
    snapshot: EventLogSnapshot
    checkpoints: Tuple[CheckpointRecord, ...] = ()
    rate_samples: Tuple[RateSample, ...] = ()
    error: Optional[DeviceError] = None

    @property
    def faulted(self) -> bool:
        return self.reason is StopReason.DEVICE_FAULT


# ----------------------------
# Status surface
# ----------------------------

@dataclass(frozen=True)
class RunStatus:
    """Everything the control surface needs to render the current run."""

    state: RunState
    mode: TaskMode
    elapsed_s: float = 0.0
    attempts: int = 0
    accepted: int = 0
    counts_per_minute: Optional[float] = None
    acceptance_ratio: Optional[float] = None  # decays per coincident pulse, decay mode only
    message: str = "Status: Idle"
    severity: str = "info"  # "info" | "ok" | "error"
    extra: dict = field(default_factory=dict, compare=False)

    @property
    def running(self) -> bool:
        return self.state in (RunState.RUNNING, RunState.STOP_REQUESTED)

    @property
    def run_button_label(self) -> str:
        return "Stop Running" if self.running else "Run"


__all__ = [
    "DEFAULT_MIN_SEPARATION",
    "DEFAULT_MAX_SEPARATION",
    "TaskMode",
    "RunState",
    "LoopState",
    "StopReason",
    "AcceptanceWindow",
    "DecayEvent",
    "EventLogSnapshot",
    "RateSample",
    "CheckpointRecord",
    "CounterConfig",
    "AcquisitionResult",
    "RunStatus",
]
