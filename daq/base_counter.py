from __future__ import annotations

"""
Base class for hardware edge-timing counter channels.

Goals:
- Small, stable contract for the acquisition loop: configure → start →
  read(timeout) … → stop → clear, and close() to discard the task.
- Uniform error taxonomy: drivers translate their native failures into
  DeviceConfigError / DeviceFaultError / DeviceTimeoutError.
- Lifecycle bookkeeping (state, configured mode, diagnostics) lives here so
  drivers only implement the *_impl() hooks.

A counter is owned by one thread at a time: the control thread while the
run is idle or initializing, the acquisition thread while it is running.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Literal, Optional, Union

from shared.errors import DeviceConfigError, DeviceError, DeviceFaultError, DeviceTimeoutError
from shared.models import AcceptanceWindow, CounterConfig, TaskMode

State = Literal["unconfigured", "configured", "running"]

Measurement = Union[float, int]


class BaseCounter(ABC):
    """
    Abstract base for counter-channel drivers (real hardware or simulators).

    Typical flow:
        counter = Driver()
        counter.configure(TaskMode.RECORD_DECAYS, "/Dev1/ctr0", AcceptanceWindow())
        counter.start()
        interval = counter.read(timeout=1.0)   # seconds between the two edges
        counter.stop()
        counter.clear()
        counter.close()
    """

    @classmethod
    @abstractmethod
    def device_class_name(cls) -> str:
        """Return the human-friendly category name for this driver type."""
        raise NotImplementedError

    @classmethod
    def list_available_devices(cls) -> List[str]:
        """Return the names of devices this driver can reach (empty if none)."""
        return []

    def __init__(self) -> None:
        self._state_lock = threading.RLock()
        self._state: State = "unconfigured"
        self.config: Optional[CounterConfig] = None

        # Run-level counters (reset at each start)
        self._reads = 0
        self._timeouts = 0
        self._faults = 0

    # -------------
    # Configuration
    # -------------

    def configure(
        self,
        mode: TaskMode,
        channel: str,
        window: Optional[AcceptanceWindow] = None,
    ) -> CounterConfig:
        """
        Build the counting channel for ``mode``. Any previous task is discarded.

        Decay recording needs the acceptance window: the two-edge separation
        channel is bounded by it.
        """
        with self._state_lock:
            self._assert_state(expected=("unconfigured", "configured"))
            if mode is TaskMode.RECORD_DECAYS and window is None:
                raise DeviceConfigError("decay recording requires an acceptance window")
            if self._state == "configured":
                self._close_impl_safe()
            try:
                actual = self._configure_impl(mode, channel, window)
            except DeviceError:
                self._mark_unconfigured()
                raise
            except Exception as exc:
                self._mark_unconfigured()
                raise DeviceConfigError(f"failed to configure {channel}: {exc}") from exc
            self.config = actual
            self._state = "configured"
            return actual

    @abstractmethod
    def _configure_impl(
        self,
        mode: TaskMode,
        channel: str,
        window: Optional[AcceptanceWindow],
    ) -> CounterConfig:
        """Driver-specific channel creation. Must not start counting."""
        raise NotImplementedError

    # ---- Run control ----

    def start(self) -> None:
        with self._state_lock:
            self._assert_state(expected=("configured",))
            self._reads = 0
            self._timeouts = 0
            self._faults = 0
            try:
                self._start_impl()
            except DeviceError:
                raise
            except Exception as exc:
                raise DeviceFaultError(f"failed to start counter: {exc}") from exc
            self._state = "running"

    @abstractmethod
    def _start_impl(self) -> None:
        raise NotImplementedError

    def read(self, timeout: float) -> Measurement:
        """
        Block for up to ``timeout`` seconds for the next measurement.

        Returns the edge separation in seconds (decay recording) or the
        cumulative edge count since start (calibration).
        """
        if self._state != "running":
            raise DeviceFaultError(f"read() while counter is {self._state}")
        try:
            value = self._read_impl(timeout)
        except DeviceTimeoutError:
            self._timeouts += 1
            raise
        except DeviceError:
            self._faults += 1
            raise
        except Exception as exc:
            self._faults += 1
            raise DeviceFaultError(f"counter read failed: {exc}") from exc
        self._reads += 1
        return value

    @abstractmethod
    def _read_impl(self, timeout: float) -> Measurement:
        """Driver-specific blocking read. Raise DeviceTimeoutError when no edge arrives."""
        raise NotImplementedError

    def stop(self) -> None:
        """Stop counting; the task stays configured and can be restarted."""
        with self._state_lock:
            if self._state == "running":
                self._state = "configured"
                self._stop_impl()

    @abstractmethod
    def _stop_impl(self) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        """Release the hardware reservation held by the task, keeping its configuration."""
        with self._state_lock:
            self._assert_state(expected=("unconfigured", "configured"))
            if self._state == "configured":
                self._clear_impl()

    @abstractmethod
    def _clear_impl(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Discard the task entirely; configure() is needed before the next start."""
        with self._state_lock:
            if self._state == "running":
                # Still counting: stop before discarding the task.
                try:
                    self._stop_impl()
                finally:
                    self._state = "configured"
            if self._state == "configured":
                self._close_impl_safe()
            self._mark_unconfigured()

    @abstractmethod
    def _close_impl(self) -> None:
        raise NotImplementedError

    # --------------
    # Introspection
    # --------------

    @property
    def state(self) -> State:
        with self._state_lock:
            return self._state

    @property
    def running(self) -> bool:
        return self.state == "running"

    @property
    def configured_mode(self) -> Optional[TaskMode]:
        with self._state_lock:
            return None if self.config is None else self.config.mode

    def stats(self) -> dict[str, Any]:
        """Lightweight diagnostics the GUI can poll occasionally."""
        return {
            "state": self.state,
            "mode": None if self.config is None else self.config.mode.value,
            "channel": None if self.config is None else self.config.channel,
            "reads": self._reads,
            "timeouts": self._timeouts,
            "faults": self._faults,
        }

    # -------------
    # Base helpers
    # -------------

    def _close_impl_safe(self) -> None:
        try:
            self._close_impl()
        finally:
            self.config = None

    def _mark_unconfigured(self) -> None:
        self.config = None
        self._state = "unconfigured"

    def _assert_state(self, expected: Iterable[State]) -> None:
        expected = tuple(expected)
        if self._state not in expected:
            raise RuntimeError(f"Invalid state: {self._state}; expected one of {expected}.")
