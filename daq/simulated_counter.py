# daq/simulated_counter.py
import logging
import time
from typing import List, Optional

import numpy as np

from .base_counter import BaseCounter, Measurement
from shared.errors import DeviceFaultError, DeviceTimeoutError
from shared.models import AcceptanceWindow, CounterConfig, TaskMode

_LOGGER = logging.getLogger(__name__)

MUON_LIFETIME_S = 2.197e-6


class SimulatedMuonCounter(BaseCounter):
    """
    Simulates a scintillator stack feeding a counter channel.

    Decay recording: coincident pulse pairs arrive as a Poisson process
    (``pair_rate_hz``). A fraction ``decay_fraction`` of pairs are stopped
    muons whose separation is exponential with the muon lifetime; the rest
    are accidental coincidences spread uniformly over the window. Like the
    real two-edge channel, pairs whose separation falls outside the
    configured window are never reported.

    Calibration: single pulses arrive at ``pulse_rate_hz`` and each read
    returns the cumulative count.

    ``time_scale`` > 1 compresses wall-clock waiting so bench runs and
    tests finish quickly.
    """

    @classmethod
    def device_class_name(cls) -> str:
        return "Simulated"

    @classmethod
    def list_available_devices(cls) -> List[str]:
        return ["sim0 (virtual scintillator stack)"]

    def __init__(
        self,
        *,
        pair_rate_hz: float = 0.5,
        decay_fraction: float = 0.4,
        pulse_rate_hz: float = 20.0,
        time_scale: float = 1.0,
        seed: Optional[int] = None,
    ) -> None:
        super().__init__()
        if pair_rate_hz <= 0 or pulse_rate_hz <= 0:
            raise ValueError("rates must be positive")
        if not 0.0 <= decay_fraction <= 1.0:
            raise ValueError("decay_fraction must be within [0, 1]")
        if time_scale <= 0:
            raise ValueError("time_scale must be positive")
        self._pair_rate = float(pair_rate_hz)
        self._decay_fraction = float(decay_fraction)
        self._pulse_rate = float(pulse_rate_hz)
        self._time_scale = float(time_scale)
        self._rng = np.random.default_rng(seed)
        self._pending_wait: Optional[float] = None  # simulated seconds until next edge
        self._count = 0
        self._fault_after: Optional[int] = None
        self._reads_since_start = 0

    # ---- Test hooks -----------------------------------------------------------

    def inject_fault_after(self, n_reads: int) -> None:
        """Make the read following ``n_reads`` successful reads fail."""
        self._fault_after = int(n_reads)

    # ------------- BaseCounter overrides -------------

    def _configure_impl(self, mode: TaskMode, channel: str, window: Optional[AcceptanceWindow]) -> CounterConfig:
        _LOGGER.info("Simulated counter configured for %s on %s", mode.value, channel)
        return CounterConfig(mode=mode, channel=channel, window=window)

    def _start_impl(self) -> None:
        self._pending_wait = None
        self._count = 0
        self._reads_since_start = 0

    def _stop_impl(self) -> None:
        self._pending_wait = None

    def _clear_impl(self) -> None:
        # Nothing reserved for the simulator
        pass

    def _close_impl(self) -> None:
        pass

    def _read_impl(self, timeout: float) -> Measurement:
        if self._fault_after is not None and self._reads_since_start >= self._fault_after:
            self._fault_after = None
            raise DeviceFaultError("Simulated counter disconnect")
        mode = self.config.mode if self.config is not None else TaskMode.RECORD_DECAYS
        if mode is TaskMode.CALIBRATE:
            self._wait_for_edge(self._pulse_rate, timeout)
            self._count += 1
            value: Measurement = self._count
        else:
            value = self._next_separation(timeout)
        self._reads_since_start += 1
        return value

    # ------------- Generation helpers -------------

    def _next_separation(self, timeout: float) -> float:
        window = self.config.window if self.config is not None else None
        if window is None:
            window = AcceptanceWindow()
        remaining = timeout
        while True:
            remaining = self._wait_for_edge(self._pair_rate, remaining)
            interval = self._draw_interval(window)
            if window.min_separation <= interval <= window.max_separation:
                return interval

    def _draw_interval(self, window: AcceptanceWindow) -> float:
        if self._rng.random() < self._decay_fraction:
            return float(self._rng.exponential(MUON_LIFETIME_S))
        return float(self._rng.uniform(window.min_separation, window.max_separation))

    def _wait_for_edge(self, rate_hz: float, timeout: float) -> float:
        """Sleep until the next simulated edge; return the unused part of ``timeout``."""
        if self._pending_wait is None:
            self._pending_wait = float(self._rng.exponential(1.0 / rate_hz))
        wait = self._pending_wait
        if wait > timeout:
            self._pending_wait = wait - timeout
            self._sleep(timeout)
            raise DeviceTimeoutError(f"no edge within {timeout:.3g} s")
        self._pending_wait = None
        self._sleep(wait)
        return timeout - wait

    def _sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds / self._time_scale)
