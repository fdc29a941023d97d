"""
Unit tests for the NI-DAQmx counter driver against a fake DAQmx task.

No NI hardware or runtime is needed: ``nidaqmx.Task`` is replaced by a
scripted stand-in, so these tests check how the driver maps DAQmx errors
onto the counter error taxonomy and how it drives the task lifecycle.
"""
from __future__ import annotations

from typing import List

import pytest

pytest.importorskip("nidaqmx")

from nidaqmx.constants import TaskMode as DAQmxTaskMode  # noqa: E402
from nidaqmx.error_codes import DAQmxErrors  # noqa: E402
from nidaqmx.errors import DaqError  # noqa: E402

from daq.nidaqmx_counter import NIDAQmxCounter  # noqa: E402
from shared.errors import DeviceConfigError, DeviceFaultError, DeviceTimeoutError  # noqa: E402
from shared.models import TaskMode  # noqa: E402

CHANNEL = "/Dev1/ctr0"


class FakeChannels:
    def __init__(self, task: "FakeTask") -> None:
        self._task = task

    def add_ci_two_edge_sep_chan(self, counter, **kwargs):
        self._task.calls.append("add_ci_two_edge_sep_chan")
        self._task.channel_kwargs = kwargs
        if self._task.fail_channel is not None:
            raise self._task.fail_channel

    def add_ci_count_edges_chan(self, counter, **kwargs):
        self._task.calls.append("add_ci_count_edges_chan")
        self._task.channel_kwargs = kwargs


class FakeTask:
    """Stands in for ``nidaqmx.Task``; ``read()`` replays ``FakeTask.script``."""

    instances: List["FakeTask"] = []
    script: list = []
    fail_channel = None

    def __init__(self, new_task_name: str = "") -> None:
        self.name = new_task_name
        self.calls: List[str] = []
        self.channel_kwargs: dict = {}
        self.ci_channels = FakeChannels(self)
        FakeTask.instances.append(self)

    def start(self) -> None:
        self.calls.append("start")

    def stop(self) -> None:
        self.calls.append("stop")

    def control(self, action) -> None:
        self.calls.append(f"control:{action.name}")

    def close(self) -> None:
        self.calls.append("close")

    def read(self, timeout: float = 10.0):
        item = FakeTask.script.pop(0) if len(FakeTask.script) > 1 else FakeTask.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


def _daq_error(code: int) -> DaqError:
    return DaqError("DAQmx call failed", code)


@pytest.fixture
def fake_task(monkeypatch):
    FakeTask.instances = []
    FakeTask.script = [0]
    FakeTask.fail_channel = None
    monkeypatch.setattr("daq.nidaqmx_counter.nidaqmx.Task", FakeTask)
    return FakeTask


@pytest.fixture
def decay_counter(fake_task, window):
    counter = NIDAQmxCounter()
    counter.configure(TaskMode.RECORD_DECAYS, CHANNEL, window)
    yield counter
    counter.close()


class TestReadErrorMapping:
    @pytest.mark.parametrize(
        "error",
        [DAQmxErrors.OPERATION_TIMED_OUT, DAQmxErrors.SAMPLES_NOT_YET_AVAILABLE],
        ids=["operation_timed_out", "samples_not_yet_available"],
    )
    def test_timeouts_are_recoverable(self, fake_task, decay_counter, error):
        fake_task.script = [_daq_error(error.value), 2.5e-6]
        decay_counter.start()

        with pytest.raises(DeviceTimeoutError) as info:
            decay_counter.read(1.0)

        assert info.value.code == error.value
        assert decay_counter.running
        assert decay_counter.stats()["timeouts"] == 1
        assert decay_counter.read(1.0) == pytest.approx(2.5e-6)

    def test_other_daqmx_errors_are_faults(self, fake_task, decay_counter):
        fake_task.script = [_daq_error(-201003)]
        decay_counter.start()

        with pytest.raises(DeviceFaultError):
            decay_counter.read(1.0)
        assert decay_counter.stats()["faults"] == 1

    def test_separation_returned_as_float(self, fake_task, decay_counter):
        fake_task.script = [3e-6]
        decay_counter.start()
        value = decay_counter.read(1.0)
        assert isinstance(value, float)
        assert value == 3e-6


class TestTaskLifecycle:
    def test_decay_channel_bounded_by_window(self, fake_task, decay_counter, window):
        task = fake_task.instances[-1]
        assert task.calls == ["add_ci_two_edge_sep_chan"]
        assert task.channel_kwargs["min_val"] == window.min_separation
        assert task.channel_kwargs["max_val"] == window.max_separation

    def test_clear_unreserves_and_keeps_task(self, fake_task, decay_counter):
        decay_counter.start()
        decay_counter.stop()
        decay_counter.clear()

        task = fake_task.instances[-1]
        assert task.calls[-2:] == ["stop", f"control:{DAQmxTaskMode.TASK_UNRESERVE.name}"]
        assert "close" not in task.calls
        assert decay_counter.state == "configured"

    def test_close_destroys_task(self, fake_task, decay_counter):
        decay_counter.close()
        assert fake_task.instances[-1].calls[-1] == "close"
        assert decay_counter.state == "unconfigured"

    def test_channel_failure_closes_task(self, fake_task, window):
        fake_task.fail_channel = _daq_error(-200220)
        counter = NIDAQmxCounter()

        with pytest.raises(DeviceConfigError):
            counter.configure(TaskMode.RECORD_DECAYS, CHANNEL, window)

        assert fake_task.instances[-1].calls[-1] == "close"
        assert counter.state == "unconfigured"

    def test_decay_task_without_window_is_a_config_error(self, fake_task):
        counter = NIDAQmxCounter()

        with pytest.raises(DeviceConfigError):
            counter._configure_impl(TaskMode.RECORD_DECAYS, CHANNEL, None)

        assert fake_task.instances[-1].calls == ["close"]


class TestCountMode:
    def test_count_read_waits_for_change(self, fake_task):
        fake_task.script = [0, 0, 4]
        counter = NIDAQmxCounter()
        counter.configure(TaskMode.CALIBRATE, CHANNEL)
        counter.start()

        assert counter.read(1.0) == 4
        counter.close()

    def test_count_read_times_out_without_edges(self, fake_task):
        fake_task.script = [0]
        counter = NIDAQmxCounter()
        counter.configure(TaskMode.CALIBRATE, CHANNEL)
        counter.start()

        with pytest.raises(DeviceTimeoutError):
            counter.read(0.03)
        counter.close()
