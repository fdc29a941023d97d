from __future__ import annotations

import logging
import time
from typing import List, Optional

import nidaqmx
from nidaqmx.constants import CountDirection, Edge, TimeUnits
from nidaqmx.constants import TaskMode as DAQmxTaskMode
from nidaqmx.error_codes import DAQmxErrors
from nidaqmx.errors import DaqError

from daq.base_counter import BaseCounter, Measurement
from shared.errors import DeviceConfigError, DeviceTimeoutError
from shared.models import AcceptanceWindow, CounterConfig, TaskMode

_LOGGER = logging.getLogger(__name__)

# A two-edge separation read with no pulse pair reports OperationTimedOut;
# buffered reads report SamplesNotYetAvailable. Both mean "no edge yet".
_DAQMX_TIMEOUT_ERRORS = frozenset(
    {
        DAQmxErrors.OPERATION_TIMED_OUT.value,
        DAQmxErrors.SAMPLES_NOT_YET_AVAILABLE.value,
    }
)
# Count-edges channels use on-demand timing, so reads return at once; poll instead.
_COUNT_POLL_INTERVAL_S = 0.01


class NIDAQmxCounter(BaseCounter):
    """
    NI-DAQmx counter input (e.g. ``/Dev1/ctr0``).

    Decay recording uses a two-edge separation channel (rising → rising)
    bounded by the acceptance window; the driver only returns a value once a
    valid pulse pair has been seen. Calibration uses a rising-edge count
    channel and reports the cumulative count.
    """

    @classmethod
    def device_class_name(cls) -> str:
        return "NI-DAQmx Counter"

    def __init__(self, task_name: str = "Muon Collection") -> None:
        super().__init__()
        self._task_name = task_name
        self._task: Optional[nidaqmx.Task] = None
        self._last_count = 0

    @classmethod
    def list_available_devices(cls) -> List[str]:
        """Names of the DAQmx devices visible on this machine (empty without the driver)."""
        try:
            from nidaqmx.system import System

            return [dev.name for dev in System.local().devices]
        except Exception as exc:
            _LOGGER.debug("DAQmx device enumeration failed: %s", exc)
            return []

    # ------------- BaseCounter overrides -------------

    def _configure_impl(
        self,
        mode: TaskMode,
        channel: str,
        window: Optional[AcceptanceWindow],
    ) -> CounterConfig:
        task = nidaqmx.Task(self._task_name)
        try:
            if mode is TaskMode.CALIBRATE:
                _LOGGER.info("Initializing calibration task on %s", channel)
                task.ci_channels.add_ci_count_edges_chan(
                    channel,
                    name_to_assign_to_channel="Rising Edge Counter",
                    edge=Edge.RISING,
                    initial_count=0,
                    count_direction=CountDirection.COUNT_UP,
                )
            else:
                if window is None:
                    raise DeviceConfigError("decay recording requires an acceptance window")
                _LOGGER.info(
                    "Initializing decay recording task on %s (window %.3g..%.3g s)",
                    channel,
                    window.min_separation,
                    window.max_separation,
                )
                task.ci_channels.add_ci_two_edge_sep_chan(
                    channel,
                    name_to_assign_to_channel="Edge Separation",
                    min_val=window.min_separation,
                    max_val=window.max_separation,
                    units=TimeUnits.SECONDS,
                    first_edge=Edge.RISING,
                    second_edge=Edge.RISING,
                )
        except Exception:
            task.close()
            raise
        self._task = task
        return CounterConfig(mode=mode, channel=channel, window=window)

    def _start_impl(self) -> None:
        self._last_count = 0
        self._require_task().start()

    def _read_impl(self, timeout: float) -> Measurement:
        task = self._require_task()
        if self.config is not None and self.config.mode is TaskMode.CALIBRATE:
            return self._read_count(task, timeout)
        try:
            return float(task.read(timeout=timeout))
        except DaqError as exc:
            if exc.error_code in _DAQMX_TIMEOUT_ERRORS:
                raise DeviceTimeoutError(str(exc), code=exc.error_code) from exc
            raise

    def _read_count(self, task: nidaqmx.Task, timeout: float) -> int:
        deadline = time.monotonic() + timeout
        while True:
            count = int(task.read())
            if count != self._last_count:
                self._last_count = count
                return count
            if time.monotonic() >= deadline:
                raise DeviceTimeoutError(f"no edges counted within {timeout:.3g} s")
            time.sleep(_COUNT_POLL_INTERVAL_S)

    def _stop_impl(self) -> None:
        if self._task is not None:
            self._task.stop()

    def _clear_impl(self) -> None:
        if self._task is not None:
            self._task.control(DAQmxTaskMode.TASK_UNRESERVE)

    def _close_impl(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.close()

    def _require_task(self) -> nidaqmx.Task:
        if self._task is None:
            raise RuntimeError("DAQmx task not created; call configure() first.")
        return self._task
