"""Unit tests for counter driver discovery."""
from __future__ import annotations

import sys

import pytest

from daq.registry import create_driver, find_driver, list_drivers, scan_drivers, unavailable_modules
from daq.simulated_counter import SimulatedMuonCounter


def test_simulator_is_discovered():
    scan_drivers(force=True)
    names = {d.name for d in list_drivers()}
    assert "Simulated" in names


def test_find_driver_by_name_or_key():
    by_name = find_driver("simulated")
    by_key = find_driver(by_name.key)
    assert by_name is by_key
    assert by_name.cls is SimulatedMuonCounter
    assert by_name.description


def test_create_driver_passes_kwargs():
    counter = create_driver("Simulated", seed=3, time_scale=10.0)
    assert isinstance(counter, SimulatedMuonCounter)
    assert counter.state == "unconfigured"


def test_unknown_driver():
    with pytest.raises(KeyError):
        find_driver("no such driver")


def test_ni_driver_registered_when_nidaqmx_available():
    pytest.importorskip("nidaqmx")
    assert find_driver("NI-DAQmx Counter").name == "NI-DAQmx Counter"


def test_unavailable_modules_reported(monkeypatch):
    """A driver whose vendor library is missing is reported, not registered."""
    monkeypatch.setitem(sys.modules, "nidaqmx", None)
    monkeypatch.delitem(sys.modules, "daq.nidaqmx_counter", raising=False)
    scan_drivers(force=True)
    try:
        assert "daq.nidaqmx_counter" in unavailable_modules()
        assert all(d.module != "daq.nidaqmx_counter" for d in list_drivers())
    finally:
        monkeypatch.undo()
        scan_drivers(force=True)


def test_simulator_lists_its_virtual_device():
    devices = find_driver("Simulated").cls.list_available_devices()
    assert len(devices) == 1
    assert devices[0].startswith("sim0")


def test_drivers_without_enumeration_list_no_devices():
    from fixtures.scripted_counter import ScriptedCounter

    assert ScriptedCounter.list_available_devices() == []
