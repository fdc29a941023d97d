"""
Unit tests for the bounded EventLog.

Invariants checked here:
1. total_accepted never exceeds capacity; a full log refuses appends
2. total_attempts counts every coincident pulse, accepted or not, and never decreases
3. checkpoint_counter counts accepted events since the last checkpoint
4. Snapshots are immutable copies
"""
from __future__ import annotations

import pytest

from shared.errors import CapacityExceeded
from shared.event_log import EventLog
from shared.models import DecayEvent


def _event(i: int) -> DecayEvent:
    return DecayEvent(timestamp=float(i), interval=1e-6 * (i + 1))


class TestEventLogCapacity:
    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            EventLog(capacity=0)

    def test_append_until_full(self):
        log = EventLog(capacity=3)
        for i in range(3):
            log.append(_event(i))
        assert log.is_full
        assert log.total_accepted == 3

    def test_append_when_full_raises(self):
        log = EventLog(capacity=2)
        log.append(_event(0))
        log.append(_event(1))

        with pytest.raises(CapacityExceeded) as info:
            log.append(_event(2))

        assert info.value.capacity == 2
        assert len(log) == 2

    def test_default_capacity(self):
        assert EventLog().capacity == 1024


class TestEventLogCounters:
    def test_attempts_are_independent_of_appends(self):
        log = EventLog(capacity=8)
        for _ in range(4):
            log.record_attempt()
        log.append(_event(0))

        assert log.total_attempts == 4
        assert log.total_accepted == 1

    def test_record_attempt_adds_pulse_batches(self):
        log = EventLog(capacity=8)
        log.record_attempt(3)
        log.record_attempt(0)
        log.record_attempt()
        assert log.total_attempts == 4

    def test_attempts_never_decrease(self):
        log = EventLog(capacity=8)
        log.record_attempt(2)
        with pytest.raises(ValueError):
            log.record_attempt(-1)
        assert log.total_attempts == 2

    def test_checkpoint_counter(self):
        log = EventLog(capacity=8)
        log.append(_event(0))
        assert not log.checkpoint_due(2)

        log.append(_event(1))
        assert log.checkpoint_counter == 2
        assert log.checkpoint_due(2)

        log.mark_checkpointed()
        assert log.checkpoint_counter == 0
        assert not log.checkpoint_due(2)

    def test_checkpoint_counter_keeps_growing_until_marked(self):
        """A failed checkpoint leaves the counter above the threshold."""
        log = EventLog(capacity=8)
        for i in range(3):
            log.append(_event(i))
        assert log.checkpoint_due(1)
        assert log.checkpoint_counter == 3


class TestEventLogSnapshot:
    def test_snapshot_is_a_copy(self):
        log = EventLog(capacity=4)
        log.record_attempt()
        log.append(_event(0))
        snap = log.snapshot()

        log.record_attempt()
        log.append(_event(1))

        assert snap.events == (_event(0),)
        assert snap.total_attempts == 1
        assert snap.total_accepted == 1

