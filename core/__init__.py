"""Core acquisition utilities."""

from .acquisition import AcquisitionLoop
from .classifier import Classification, acceptance_ratio, classify
from .controller import Command, RunController
from .run_context import LiveCounters, RunContext, StopSignal
from shared.models import (
    AcceptanceWindow,
    AcquisitionResult,
    DecayEvent,
    EventLogSnapshot,
    LoopState,
    RunState,
    RunStatus,
    StopReason,
    TaskMode,
)

__all__ = [
    "AcceptanceWindow",
    "AcquisitionLoop",
    "AcquisitionResult",
    "Classification",
    "Command",
    "DecayEvent",
    "EventLogSnapshot",
    "LiveCounters",
    "LoopState",
    "RunContext",
    "RunController",
    "RunState",
    "RunStatus",
    "StopReason",
    "StopSignal",
    "TaskMode",
    "acceptance_ratio",
    "classify",
]
