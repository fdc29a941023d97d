"""Muon Collector entry point: pick a counter driver and open the control panel."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from PySide6.QtWidgets import QApplication

from core import RunController
from daq.registry import create_driver, list_drivers, unavailable_modules
from gui import ControlPanel
from shared.app_settings import AcquisitionSettings, AppSettingsStore

logger = logging.getLogger(__name__)

DEFAULT_DRIVER = "NI-DAQmx Counter"


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Record muon decays from a counter channel.")
    parser.add_argument("--driver", default=DEFAULT_DRIVER, help="counter driver name or key")
    parser.add_argument("--simulate", action="store_true", help="use the simulated counter")
    parser.add_argument("--channel", default=AcquisitionSettings.channel, help="counter channel, e.g. /Dev1/ctr0")
    parser.add_argument("--checkpoint-dir", default=AcquisitionSettings.checkpoint_dir)
    parser.add_argument("--time-scale", type=float, default=1.0, help="simulator speed-up factor")
    parser.add_argument("--list-drivers", action="store_true", help="print the available drivers and exit")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_drivers:
        for driver in list_drivers():
            print(f"{driver.name}\t{driver.key}")
            devices = driver.cls.list_available_devices()
            if not devices:
                print("    (no devices found)")
            for device in devices:
                print(f"    {device}")
        for module, error in unavailable_modules().items():
            print(f"(unavailable) {module}: {error}")
        return 0

    if args.simulate:
        counter = create_driver("Simulated", time_scale=args.time_scale)
    else:
        try:
            counter = create_driver(args.driver)
        except KeyError as exc:
            logger.error("%s (try --list-drivers or --simulate)", exc)
            return 2

    settings = AcquisitionSettings(channel=args.channel, checkpoint_dir=args.checkpoint_dir)
    controller = RunController(counter, AppSettingsStore(settings))

    app = QApplication(sys.argv[:1])
    app.setApplicationName("Muon Collector")
    panel = ControlPanel(controller)
    panel.quitRequested.connect(app.quit)
    app.aboutToQuit.connect(controller.shutdown)
    panel.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
