from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
import threading
from typing import Callable, Dict

from .models import AcceptanceWindow, TaskMode

logger = logging.getLogger(__name__)

# The read timeout must exceed the longest accepted interval by this factor.
READ_TIMEOUT_MARGIN = 10.0


@dataclass(frozen=True)
class AcquisitionSettings:
    mode: TaskMode = TaskMode.RECORD_DECAYS
    window: AcceptanceWindow = field(default_factory=AcceptanceWindow)
    channel: str = "/Dev1/ctr0"
    read_timeout_s: float = 1.0
    checkpoint_threshold: int = 1  # decays
    target_decays: int = 1000
    capacity: int = 1024
    rate_window_s: float = 60.0
    checkpoint_dir: str = "checkpoints"
    status_interval_s: float = 0.1

    def validate(self) -> "AcquisitionSettings":
        if not isinstance(self.mode, TaskMode):
            raise ValueError(f"unknown task mode {self.mode!r}")
        if not isinstance(self.window, AcceptanceWindow):
            raise ValueError("window must be an AcceptanceWindow")
        if not self.channel:
            raise ValueError("channel must not be empty")
        if self.read_timeout_s <= self.window.max_separation * READ_TIMEOUT_MARGIN:
            raise ValueError(
                f"read_timeout_s {self.read_timeout_s} must exceed "
                f"{READ_TIMEOUT_MARGIN:g} x max_separation ({self.window.max_separation:g} s)"
            )
        if self.checkpoint_threshold <= 0:
            raise ValueError("checkpoint_threshold must be positive")
        if self.target_decays <= 0:
            raise ValueError("target_decays must be positive")
        if self.capacity <= 0:
            raise ValueError("capacity must be positive")
        if self.rate_window_s <= 0:
            raise ValueError("rate_window_s must be positive")
        if self.status_interval_s <= 0:
            raise ValueError("status_interval_s must be positive")
        return self


class AppSettingsStore:
    """Thread-safe in-memory settings store with change subscriptions."""

    def __init__(self, settings: AcquisitionSettings | None = None) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Callable[[AcquisitionSettings], None]] = {}
        self._next_token = 0
        self._settings = (settings or AcquisitionSettings()).validate()

    def get(self) -> AcquisitionSettings:
        with self._lock:
            return self._settings

    def update(self, **kwargs) -> AcquisitionSettings:
        with self._lock:
            new_settings = replace(self._settings, **kwargs).validate()
            self._settings = new_settings
            callbacks = list(self._subscribers.values())
        for callback in callbacks:
            try:
                callback(new_settings)
            except Exception as exc:
                logger.debug("Settings subscriber callback failed: %s", exc)
                continue
        return new_settings

    def subscribe(self, callback: Callable[[AcquisitionSettings], None], *, replay: bool = True) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback
            snapshot = self._settings
        if replay:
            callback(snapshot)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe


__all__ = ["AcquisitionSettings", "AppSettingsStore", "READ_TIMEOUT_MARGIN"]
