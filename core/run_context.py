from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from typing import Optional

from shared.event_log import EventLog
from shared.models import AcceptanceWindow, TaskMode


class StopSignal:
    """
    Cooperative cancellation token for one run.

    The acquisition loop checks ``requested`` after every blocking read.
    A request cannot be withdrawn; each run gets a new token from its
    RunContext.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def request(self) -> None:
        self._event.set()

    @property
    def requested(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until a stop is requested or ``timeout`` elapses; return ``requested``."""
        return self._event.wait(timeout)


@dataclass(frozen=True)
class LiveCounters:
    """Numbers the acquisition thread publishes for the status surface."""

    attempts: int = 0
    accepted: int = 0
    counts_per_minute: Optional[float] = None


class RunContext:
    """
    Per-run state handed from the Run Controller to the acquisition worker.

    The worker owns ``event_log`` exclusively. The control thread only
    touches ``stop``, ``finished`` and the published live counters.
    """

    def __init__(
        self,
        mode: TaskMode,
        window: AcceptanceWindow,
        *,
        capacity: int,
        run_id: int = 0,
    ) -> None:
        self.run_id = run_id
        self.mode = mode
        self.window = window
        self.stop = StopSignal()
        self.finished = threading.Event()
        self.event_log = EventLog(capacity=capacity)
        self._counters_lock = threading.Lock()
        self._counters = LiveCounters()
        self._started_at: Optional[float] = None
        self._ended_at: Optional[float] = None

    def mark_started(self, now: Optional[float] = None) -> float:
        self._started_at = time.monotonic() if now is None else now
        return self._started_at

    def mark_finished(self, now: Optional[float] = None) -> None:
        self._ended_at = time.monotonic() if now is None else now
        self.finished.set()

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    def elapsed(self, now: Optional[float] = None) -> float:
        if self._started_at is None:
            return 0.0
        end = self._ended_at
        if end is None:
            end = time.monotonic() if now is None else now
        return max(0.0, end - self._started_at)

    def publish(self, **changes) -> None:
        with self._counters_lock:
            self._counters = replace(self._counters, **changes)

    def counters(self) -> LiveCounters:
        with self._counters_lock:
            return self._counters


__all__ = ["StopSignal", "LiveCounters", "RunContext"]
