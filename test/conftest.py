from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
TEST_DIR = Path(__file__).resolve().parent
for path in (str(TEST_DIR), str(ROOT)):
    if path not in sys.path:
        sys.path.insert(0, path)

from shared.app_settings import AcquisitionSettings  # noqa: E402
from shared.models import AcceptanceWindow  # noqa: E402


@pytest.fixture
def window() -> AcceptanceWindow:
    """The default muon window: 0.5 µs to 10 µs."""
    return AcceptanceWindow(5e-7, 1e-5)


@pytest.fixture
def fast_settings(tmp_path, window) -> AcquisitionSettings:
    """Settings with short timeouts and a per-test checkpoint directory."""
    return AcquisitionSettings(
        window=window,
        read_timeout_s=0.01,
        checkpoint_threshold=1,
        target_decays=1000,
        capacity=1024,
        checkpoint_dir=str(tmp_path / "checkpoints"),
        status_interval_s=0.01,
    )
