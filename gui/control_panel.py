"""ControlPanel - the instrument's single window.

Presents the run controls (mode selector, acceptance window, target count,
Run/Stop, Quit) and the status read-outs (status line, elapsed time,
accepted and attempted counts, accepted fraction, counts per minute). All actions are routed
to the RunController as commands; the widgets merely mirror its state.
"""

from __future__ import annotations

import logging
from typing import Optional

from PySide6 import QtCore, QtWidgets

from core.controller import Command, RunController
from shared.errors import DeviceConfigError, IllegalCommandError
from shared.models import AcceptanceWindow, RunState, RunStatus, TaskMode

from .status_bridge import connect_status_signals

logger = logging.getLogger(__name__)

_US = 1e-6
_SEVERITY_COLORS = {
    "ok": "rgb(46,204,113)",
    "error": "rgb(220, 20, 60)",
    "info": "palette(window-text)",
}
_MODE_LABELS = [
    (TaskMode.RECORD_DECAYS, "Record muon decays"),
    (TaskMode.CALIBRATE, "Calibrate scintillators"),
]


class ControlPanel(QtWidgets.QWidget):
    """Main panel wired to a RunController."""

    quitRequested = QtCore.Signal()

    def __init__(self, controller: RunController, parent: Optional[QtWidgets.QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Muon Collector")
        self._controller = controller
        self._build_ui()
        self._load_settings()
        self._signals, self._unsubscribe = connect_status_signals(controller)
        self._signals.statusChanged.connect(self._on_status, QtCore.Qt.QueuedConnection)
        self._on_status(controller.status())

    def _build_ui(self) -> None:
        layout = QtWidgets.QVBoxLayout(self)

        config_group = QtWidgets.QGroupBox("Acquisition")
        form = QtWidgets.QFormLayout(config_group)

        self.mode_combo = QtWidgets.QComboBox()
        for mode, label in _MODE_LABELS:
            self.mode_combo.addItem(label, mode)
        self.mode_combo.activated.connect(self._on_mode_selected)
        form.addRow("Task", self.mode_combo)

        self.min_spin = self._separation_spin()
        self.max_spin = self._separation_spin()
        self.min_spin.editingFinished.connect(self._on_window_edited)
        self.max_spin.editingFinished.connect(self._on_window_edited)
        form.addRow("Min separation (µs)", self.min_spin)
        form.addRow("Max separation (µs)", self.max_spin)

        self.target_spin = QtWidgets.QSpinBox()
        self.target_spin.setRange(1, 1_000_000)
        self.target_spin.editingFinished.connect(self._on_target_edited)
        form.addRow("Decays to collect", self.target_spin)
        layout.addWidget(config_group)

        button_row = QtWidgets.QHBoxLayout()
        self.run_btn = QtWidgets.QPushButton("Run")
        self.run_btn.clicked.connect(self._on_run_clicked)
        button_row.addWidget(self.run_btn)
        self.quit_btn = QtWidgets.QPushButton("Quit")
        self.quit_btn.clicked.connect(self.quitRequested.emit)
        button_row.addWidget(self.quit_btn)
        layout.addLayout(button_row)

        readout = QtWidgets.QGridLayout()
        self.status_label = QtWidgets.QLabel("Status: Idle")
        readout.addWidget(self.status_label, 0, 0, 1, 2)
        readout.addWidget(QtWidgets.QLabel("Run time (s)"), 1, 0)
        self.time_label = QtWidgets.QLabel("0.0")
        readout.addWidget(self.time_label, 1, 1)
        readout.addWidget(QtWidgets.QLabel("Decays"), 2, 0)
        self.accepted_label = QtWidgets.QLabel("0")
        readout.addWidget(self.accepted_label, 2, 1)
        readout.addWidget(QtWidgets.QLabel("Coincident pulses"), 3, 0)
        self.attempts_label = QtWidgets.QLabel("0")
        readout.addWidget(self.attempts_label, 3, 1)
        readout.addWidget(QtWidgets.QLabel("Counts/min"), 4, 0)
        self.rate_label = QtWidgets.QLabel("-")
        readout.addWidget(self.rate_label, 4, 1)
        readout.addWidget(QtWidgets.QLabel("Accepted fraction"), 5, 0)
        self.ratio_label = QtWidgets.QLabel("-")
        readout.addWidget(self.ratio_label, 5, 1)
        layout.addLayout(readout)

    @staticmethod
    def _separation_spin() -> QtWidgets.QDoubleSpinBox:
        spin = QtWidgets.QDoubleSpinBox()
        spin.setDecimals(3)
        spin.setRange(0.001, 1_000_000.0)
        spin.setSingleStep(0.1)
        return spin

    def _load_settings(self) -> None:
        settings = self._controller.settings
        self.mode_combo.setCurrentIndex(self.mode_combo.findData(settings.mode))
        self.min_spin.setValue(settings.window.min_separation / _US)
        self.max_spin.setValue(settings.window.max_separation / _US)
        self.target_spin.setValue(settings.target_decays)

    # -------------------------------------------------------------------------
    # Event handlers
    # -------------------------------------------------------------------------

    def _on_run_clicked(self) -> None:
        command = Command.STOP if self._controller.running else Command.START
        try:
            self._controller.dispatch(command)
        except DeviceConfigError as exc:
            # Status line already shows the failure; keep the details in the log.
            logger.error("Counter initialization failed: %s", exc)
        except IllegalCommandError as exc:
            logger.info("Ignored %s: %s", command.value, exc)

    def _on_mode_selected(self, index: int) -> None:
        mode = self.mode_combo.itemData(index)
        try:
            self._controller.dispatch(Command.MODE_CHANGED, mode)
        except IllegalCommandError as exc:
            logger.info("Ignored mode change: %s", exc)
            self._load_settings()

    def _on_window_edited(self) -> None:
        try:
            window = AcceptanceWindow(self.min_spin.value() * _US, self.max_spin.value() * _US)
            self._controller.dispatch(Command.THRESHOLD_CHANGED, window)
        except (ValueError, IllegalCommandError) as exc:
            self._show_message(f"Status: Invalid window: {exc}", "error")
            self._load_settings()

    def _on_target_edited(self) -> None:
        try:
            self._controller.dispatch(Command.TARGET_CHANGED, self.target_spin.value())
        except (ValueError, IllegalCommandError) as exc:
            self._show_message(f"Status: Invalid target: {exc}", "error")
            self._load_settings()

    def _on_status(self, status: RunStatus) -> None:
        self._show_message(status.message, status.severity)
        self.run_btn.setText(status.run_button_label)
        self.run_btn.setEnabled(status.state is not RunState.INITIALIZING)
        self._set_inputs_enabled(not status.running)
        self.time_label.setText(f"{status.elapsed_s:.1f}")
        self.accepted_label.setText(str(status.accepted))
        self.attempts_label.setText(str(status.attempts))
        if status.counts_per_minute is None:
            self.rate_label.setText("-")
        else:
            self.rate_label.setText(f"{status.counts_per_minute:.1f}")
        if status.acceptance_ratio is None:
            self.ratio_label.setText("-")
        else:
            self.ratio_label.setText(f"{status.acceptance_ratio:.1%}")

    def _set_inputs_enabled(self, enabled: bool) -> None:
        for widget in (self.mode_combo, self.min_spin, self.max_spin, self.target_spin):
            widget.setEnabled(enabled)

    def _show_message(self, text: str, severity: str) -> None:
        self.status_label.setText(text)
        color = _SEVERITY_COLORS.get(severity, _SEVERITY_COLORS["info"])
        self.status_label.setStyleSheet(f"color: {color}; font-weight: bold;")

    def closeEvent(self, event) -> None:  # noqa: N802 - Qt override
        self._unsubscribe()
        super().closeEvent(event)


__all__ = ["ControlPanel"]
