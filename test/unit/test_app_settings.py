"""Unit tests for AcquisitionSettings validation and the AppSettingsStore."""
from __future__ import annotations

import pytest

from shared.app_settings import AcquisitionSettings, AppSettingsStore
from shared.models import AcceptanceWindow, TaskMode


class TestAcquisitionSettings:
    def test_defaults_are_valid(self):
        settings = AcquisitionSettings().validate()
        assert settings.mode is TaskMode.RECORD_DECAYS
        assert settings.window == AcceptanceWindow(5e-7, 1e-5)
        assert settings.checkpoint_threshold == 1
        assert settings.capacity == 1024

    def test_read_timeout_must_exceed_window(self):
        """The read timeout has to be well above the longest accepted separation."""
        with pytest.raises(ValueError):
            AcquisitionSettings(window=AcceptanceWindow(1e-6, 0.2), read_timeout_s=1.0).validate()

    @pytest.mark.parametrize(
        "field, value",
        [
            ("checkpoint_threshold", 0),
            ("target_decays", 0),
            ("capacity", -1),
            ("rate_window_s", 0.0),
            ("status_interval_s", 0.0),
            ("channel", ""),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValueError):
            AcquisitionSettings(**{field: value}).validate()


class TestAppSettingsStore:
    def test_update_replaces_fields(self):
        store = AppSettingsStore()
        updated = store.update(target_decays=5, mode=TaskMode.CALIBRATE)
        assert updated.target_decays == 5
        assert store.get().mode is TaskMode.CALIBRATE

    def test_invalid_update_keeps_previous_settings(self):
        store = AppSettingsStore()
        before = store.get()
        with pytest.raises(ValueError):
            store.update(checkpoint_threshold=0)
        assert store.get() is before

    def test_subscribe_replays_and_notifies(self):
        store = AppSettingsStore()
        seen = []
        unsubscribe = store.subscribe(seen.append)
        store.update(target_decays=7)
        unsubscribe()
        store.update(target_decays=8)

        assert [s.target_decays for s in seen] == [1000, 7]

    def test_failing_subscriber_does_not_break_update(self):
        store = AppSettingsStore()

        def broken(_settings):
            raise RuntimeError("subscriber bug")

        store.subscribe(broken, replay=False)
        assert store.update(target_decays=2).target_decays == 2
