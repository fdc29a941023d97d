"""Qt signal adapter for RunController status updates.

The controller notifies subscribers from whichever thread changed the run
(control, acquisition worker or status ticker). Emitting a Qt signal from
those callbacks hands the status to the GUI thread through a queued
connection, keeping PySide6 out of the core package.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from PySide6 import QtCore

if TYPE_CHECKING:
    from core.controller import RunController


class RunStatusSignals(QtCore.QObject):
    """Qt signals for run status changes."""
    statusChanged = QtCore.Signal(object)  # RunStatus


def connect_status_signals(controller: "RunController") -> tuple[RunStatusSignals, Callable[[], None]]:
    """Create Qt signal bridge for controller status updates.

    Args:
        controller: The run controller to subscribe to.

    Returns:
        A tuple of (signals object, unsubscribe function).
    """
    signals = RunStatusSignals()
    unsubscribe = controller.subscribe(signals.statusChanged.emit, replay=False)
    return signals, unsubscribe
