from __future__ import annotations

from typing import List

from .errors import CapacityExceeded
from .models import DecayEvent, EventLogSnapshot


class EventLog:
    """
    Bounded, append-only record of accepted decays for one run.

    The log is owned by the acquisition thread: it is appended to and
    snapshotted on that thread only, so no locking is done here. Unlike a
    ring buffer it never drops old entries; a full log refuses the append
    and the caller ends the run.
    """

    def __init__(self, capacity: int = 1024) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = int(capacity)
        self._events: List[DecayEvent] = []
        self._total_attempts = 0
        self._checkpoint_counter = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def total_attempts(self) -> int:
        return self._total_attempts

    @property
    def total_accepted(self) -> int:
        return len(self._events)

    @property
    def checkpoint_counter(self) -> int:
        """Accepted events since the last successful checkpoint."""
        return self._checkpoint_counter

    @property
    def is_full(self) -> bool:
        return len(self._events) >= self._capacity

    def record_attempt(self, n: int = 1) -> None:
        """Count coincident pulses seen by the counter, whatever their classification.

        Decay recording counts one per read; calibration adds the pulses
        counted since the previous read.
        """
        if n < 0:
            raise ValueError("attempt count cannot decrease")
        self._total_attempts += n

    def append(self, event: DecayEvent) -> None:
        """
        Append an accepted event.

        Raises CapacityExceeded when the log already holds ``capacity`` events.
        """
        if len(self._events) >= self._capacity:
            raise CapacityExceeded(self._capacity)
        self._events.append(event)
        self._checkpoint_counter += 1

    def checkpoint_due(self, threshold: int) -> bool:
        return self._checkpoint_counter >= threshold

    def mark_checkpointed(self) -> None:
        self._checkpoint_counter = 0

    def snapshot(self) -> EventLogSnapshot:
        return EventLogSnapshot(
            events=tuple(self._events),
            total_attempts=self._total_attempts,
            total_accepted=len(self._events),
        )

    def __len__(self) -> int:
        return len(self._events)
