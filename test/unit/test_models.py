"""Unit tests for the value types in shared.models."""
from __future__ import annotations

import math

import pytest

from shared.models import (
    AcceptanceWindow,
    RateSample,
    RunState,
    RunStatus,
    DecayEvent,
    TaskMode,
)


class TestAcceptanceWindow:
    def test_defaults(self):
        window = AcceptanceWindow()
        assert window.min_separation == 5e-7
        assert window.max_separation == 1e-5

    @pytest.mark.parametrize(
        "lo, hi",
        [
            (1e-5, 5e-7),
            (1e-6, 1e-6),
            (0.0, 1e-5),
            (-1e-6, 1e-5),
            (math.nan, 1e-5),
            (5e-7, math.inf),
        ],
    )
    def test_invalid_windows_rejected(self, lo, hi):
        with pytest.raises(ValueError):
            AcceptanceWindow(lo, hi)

    def test_bounds_coerced_to_float(self):
        window = AcceptanceWindow(1, 2)
        assert isinstance(window.min_separation, float)


class TestDecayEvent:
    def test_rejects_negative_timestamp(self):
        with pytest.raises(ValueError):
            DecayEvent(timestamp=-0.1, interval=1e-6)

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            DecayEvent(timestamp=0.0, interval=0.0)


def test_rate_sample_counts_per_minute():
    sample = RateSample(elapsed_s=60.0, count=120, rate_hz=2.0)
    assert sample.counts_per_minute == pytest.approx(120.0)


class TestRunStatus:
    def test_run_button_label_tracks_state(self):
        idle = RunStatus(state=RunState.IDLE, mode=TaskMode.RECORD_DECAYS)
        running = RunStatus(state=RunState.RUNNING, mode=TaskMode.RECORD_DECAYS)
        stopping = RunStatus(state=RunState.STOP_REQUESTED, mode=TaskMode.RECORD_DECAYS)

        assert idle.run_button_label == "Run"
        assert running.run_button_label == "Stop Running"
        assert stopping.running

    def test_default_message(self):
        assert RunStatus(state=RunState.IDLE, mode=TaskMode.CALIBRATE).message == "Status: Idle"
