"""
Property-based configuration fuzzing tests.

Random, often invalid, window and settings values must either be accepted
as valid or rejected with ValueError; nothing else may escape.
"""
from __future__ import annotations

import math

import pytest
from hypothesis import given, settings, strategies as st

from shared.app_settings import READ_TIMEOUT_MARGIN, AcquisitionSettings
from shared.models import AcceptanceWindow

any_float = st.floats(allow_nan=True, allow_infinity=True)


class TestAcceptanceWindowFuzzing:
    @given(lo=any_float, hi=any_float)
    @settings(max_examples=200, deadline=None)
    def test_window_valid_or_value_error(self, lo: float, hi: float):
        valid = math.isfinite(lo) and math.isfinite(hi) and 0 < lo < hi
        if valid:
            window = AcceptanceWindow(lo, hi)
            assert window.min_separation < window.max_separation
        else:
            with pytest.raises(ValueError):
                AcceptanceWindow(lo, hi)


class TestSettingsFuzzing:
    @given(timeout=st.floats(min_value=1e-6, max_value=10.0), hi=st.floats(min_value=1e-6, max_value=1.0))
    @settings(max_examples=100, deadline=None)
    def test_read_timeout_margin(self, timeout: float, hi: float):
        config = AcquisitionSettings(window=AcceptanceWindow(hi / 2, hi), read_timeout_s=timeout)
        if timeout > hi * READ_TIMEOUT_MARGIN:
            assert config.validate() is config
        else:
            with pytest.raises(ValueError):
                config.validate()

    @given(threshold=st.integers(min_value=-5, max_value=5))
    @settings(max_examples=30, deadline=None)
    def test_checkpoint_threshold(self, threshold: int):
        config = AcquisitionSettings(checkpoint_threshold=threshold)
        if threshold > 0:
            config.validate()
        else:
            with pytest.raises(ValueError):
                config.validate()
