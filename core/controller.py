from __future__ import annotations

import enum
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

from daq.base_counter import BaseCounter
from recording.checkpoint_writer import CheckpointSequence, CheckpointWriter
from shared.app_settings import AcquisitionSettings, AppSettingsStore
from shared.errors import DeviceConfigError, IllegalCommandError
from shared.models import (
    AcceptanceWindow,
    AcquisitionResult,
    RunState,
    RunStatus,
    StopReason,
    TaskMode,
)

from .acquisition import AcquisitionLoop
from .classifier import acceptance_ratio
from .run_context import RunContext

logger = logging.getLogger(__name__)


class Command(enum.Enum):
    """Control-surface commands accepted by the RunController."""

    START = "start"
    STOP = "stop"
    MODE_CHANGED = "mode_changed"
    THRESHOLD_CHANGED = "threshold_changed"
    TARGET_CHANGED = "target_changed"


_LEGAL_STATES: Dict[Command, FrozenSet[RunState]] = {
    Command.START: frozenset({RunState.IDLE}),
    Command.STOP: frozenset({RunState.RUNNING, RunState.STOP_REQUESTED}),
    Command.MODE_CHANGED: frozenset({RunState.IDLE}),
    Command.THRESHOLD_CHANGED: frozenset({RunState.IDLE}),
    Command.TARGET_CHANGED: frozenset({RunState.IDLE}),
}

# (mode, window, channel) the counter is currently configured for
_ConfigKey = Tuple[TaskMode, Optional[AcceptanceWindow], str]


class RunController:
    """
    Owns the instrument: the counter, the run state and the acquisition worker.

    Commands arrive on the control thread (GUI or script). A run is executed
    by an AcquisitionLoop on a single-worker thread pool; completion is
    reconciled from the future's done callback. Status changes are pushed to
    subscribers, which may be called from any of the controller's threads.
    """

    def __init__(
        self,
        counter: BaseCounter,
        settings_store: Optional[AppSettingsStore] = None,
        *,
        checkpoint_sequence: Optional[CheckpointSequence] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._counter = counter
        self._settings_store = settings_store or AppSettingsStore()
        self._sequence = checkpoint_sequence or CheckpointSequence()
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="Acquisition")

        self._lock = threading.RLock()
        self._state = RunState.IDLE
        self._idle = threading.Event()
        self._idle.set()
        self._message = "Status: Idle"
        self._severity = "info"
        self._configured_for: Optional[_ConfigKey] = None
        self._run_id = 0
        self._context: Optional[RunContext] = None
        self._future: Optional[Future] = None
        self._ticker: Optional[threading.Thread] = None
        self._last_result: Optional[AcquisitionResult] = None
        self._last_error: Optional[BaseException] = None

        self._subscribers: Dict[int, Callable[[RunStatus], None]] = {}
        self._next_token = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    @property
    def running(self) -> bool:
        return self.state in (RunState.RUNNING, RunState.STOP_REQUESTED)

    @property
    def counter(self) -> BaseCounter:
        return self._counter

    @property
    def settings(self) -> AcquisitionSettings:
        return self._settings_store.get()

    @property
    def settings_store(self) -> AppSettingsStore:
        return self._settings_store

    @property
    def configured_mode(self) -> Optional[TaskMode]:
        with self._lock:
            return None if self._configured_for is None else self._configured_for[0]

    @property
    def last_result(self) -> Optional[AcquisitionResult]:
        with self._lock:
            return self._last_result

    @property
    def last_error(self) -> Optional[BaseException]:
        with self._lock:
            return self._last_error

    @property
    def context(self) -> Optional[RunContext]:
        with self._lock:
            return self._context

    def dispatch(self, command: Command, value: Any = None) -> Any:
        """Route a control-surface command; raises IllegalCommandError if not allowed now."""
        if command is Command.START:
            return self.start()
        if command is Command.STOP:
            return self.stop(wait=False)
        if command is Command.MODE_CHANGED:
            return self.set_mode(TaskMode(value))
        if command is Command.THRESHOLD_CHANGED:
            if not isinstance(value, AcceptanceWindow):
                value = AcceptanceWindow(*value)
            return self.set_window(value)
        if command is Command.TARGET_CHANGED:
            return self.set_target(int(value))
        raise IllegalCommandError(f"Unknown command {command!r}")

    def start(self) -> RunContext:
        """Configure the counter if needed and launch a run on the worker pool.

        Raises DeviceConfigError (state returns to IDLE) when the counter cannot
        be configured.
        """
        with self._lock:
            self._require(Command.START)
            settings = self._settings_store.get()
            self._run_id += 1
            context = RunContext(
                settings.mode,
                settings.window,
                capacity=settings.capacity,
                run_id=self._run_id,
            )
            self._context = context
            self._last_error = None
            self._idle.clear()
            self._set_state(RunState.INITIALIZING, "Status: Initializing", "info")
            key: _ConfigKey = (
                settings.mode,
                settings.window if settings.mode is TaskMode.RECORD_DECAYS else None,
                settings.channel,
            )
            reconfigure = key != self._configured_for or self._counter.state == "unconfigured"
        self._notify()

        writer = None
        if settings.mode is TaskMode.RECORD_DECAYS:
            writer = CheckpointWriter(settings.checkpoint_dir, self._sequence)
        loop = AcquisitionLoop(self._counter, context, settings, writer, clock=self._clock)

        try:
            loop.initialize(reconfigure=reconfigure)
        except Exception as exc:
            logger.error("Failed to initialize counter for %s: %s", settings.mode.value, exc)
            with self._lock:
                self._configured_for = None
                self._last_error = exc
                self._context = None
                self._set_state(RunState.IDLE, "Status: Failed to Initialize", "error")
                self._idle.set()
            self._notify()
            raise

        with self._lock:
            self._configured_for = key
            future = self._executor.submit(loop.run)
            self._future = future
            self._set_state(RunState.RUNNING, "Status: Initialized", "ok")
        future.add_done_callback(self._on_run_finished)
        self._start_ticker(context, settings.status_interval_s)
        self._notify()
        return context

    def stop(self, *, wait: bool = True, timeout: Optional[float] = 10.0) -> Optional[AcquisitionResult]:
        """Request a cooperative stop; optionally wait for the run to drain."""
        with self._lock:
            self._require(Command.STOP)
            context = self._context
            if self._state is RunState.RUNNING:
                self._set_state(RunState.STOP_REQUESTED, "Status: Stopping", "ok")
                changed = True
            else:
                changed = False
        if context is not None:
            context.stop.request()
        if changed:
            self._notify()
        if not wait:
            return None
        if not self.wait_until_idle(timeout):
            logger.warning("Acquisition did not stop within %.1f s", timeout or 0.0)
            return None
        return self.last_result

    def set_mode(self, mode: TaskMode) -> AcquisitionSettings:
        with self._lock:
            self._require(Command.MODE_CHANGED)
            settings = self._settings_store.update(mode=TaskMode(mode))
            if self._configured_for is not None and self._configured_for[0] is not settings.mode:
                # Task type changed: the existing counter task is useless now.
                self._counter.close()
                self._configured_for = None
        self._notify()
        return settings

    def set_window(self, window: AcceptanceWindow) -> AcquisitionSettings:
        with self._lock:
            self._require(Command.THRESHOLD_CHANGED)
            return self._settings_store.update(window=window)

    def set_target(self, target_decays: int) -> AcquisitionSettings:
        with self._lock:
            self._require(Command.TARGET_CHANGED)
            return self._settings_store.update(target_decays=target_decays)

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        return self._idle.wait(timeout)

    def status(self) -> RunStatus:
        with self._lock:
            context = self._context
            state = self._state
            message = self._message
            severity = self._severity
        mode = context.mode if context is not None else self._settings_store.get().mode
        if context is None:
            return RunStatus(state=state, mode=mode, message=message, severity=severity)
        counters = context.counters()
        ratio = None
        if context.mode is TaskMode.RECORD_DECAYS:
            ratio = acceptance_ratio(counters.accepted, counters.attempts)
        return RunStatus(
            state=state,
            mode=mode,
            elapsed_s=context.elapsed(),
            attempts=counters.attempts,
            accepted=counters.accepted,
            counts_per_minute=counters.counts_per_minute,
            acceptance_ratio=ratio,
            message=message,
            severity=severity,
            extra={"run_id": context.run_id},
        )

    def subscribe(self, callback: Callable[[RunStatus], None], *, replay: bool = True) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback
        if replay:
            callback(self.status())

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def shutdown(self) -> None:
        """Stop any active run, discard the counter task and retire the worker pool."""
        if self.running:
            try:
                self.stop(wait=True)
            except IllegalCommandError:
                # The run finished on its own in the meantime.
                pass
        self._executor.shutdown(wait=True)
        ticker = self._ticker
        if ticker is not None:
            ticker.join(timeout=1.0)
        try:
            self._counter.close()
        except Exception as exc:
            logger.warning("Failed to close counter: %s", exc)
        with self._lock:
            self._configured_for = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require(self, command: Command) -> None:
        if self._state not in _LEGAL_STATES[command]:
            raise IllegalCommandError(f"{command.value} is not allowed while {self._state.value}")

    def _set_state(self, state: RunState, message: str, severity: str) -> None:
        logger.debug("Run state %s -> %s", self._state.value, state.value)
        self._state = state
        self._message = message
        self._severity = severity

    def _on_run_finished(self, future: Future) -> None:
        exc = future.exception()
        result: Optional[AcquisitionResult] = None
        if exc is not None:
            logger.error("Acquisition worker crashed: %s", exc, exc_info=exc)
            message, severity = f"Status: Acquisition error: {exc}", "error"
        else:
            result = future.result()
            if result.reason is StopReason.DEVICE_FAULT:
                exc = result.error
                message, severity = f"Status: Device fault: {result.error}", "error"
            else:
                message = f"Status: Stopped ({result.reason.value.replace('_', ' ')})"
                severity = "info"

        with self._lock:
            self._last_result = result
            self._last_error = exc
            if exc is not None:
                self._configured_for = None
            self._set_state(RunState.STOPPED, message, severity)
        self._notify()
        with self._lock:
            self._state = RunState.IDLE
            self._idle.set()
        self._notify()

    def _start_ticker(self, context: RunContext, interval: float) -> None:
        ticker = threading.Thread(
            target=self._tick_loop,
            args=(context, interval),
            name="StatusTicker",
            daemon=True,
        )
        self._ticker = ticker
        ticker.start()

    def _tick_loop(self, context: RunContext, interval: float) -> None:
        # Shares the run's stop signal; also ends when the run finishes on its own.
        while not context.finished.is_set():
            if context.stop.wait(interval):
                break
            self._notify()

    def _notify(self) -> None:
        with self._lock:
            callbacks = list(self._subscribers.values())
        if not callbacks:
            return
        status = self.status()
        for callback in callbacks:
            try:
                callback(status)
            except Exception as exc:
                logger.debug("Status subscriber callback failed: %s", exc)
                continue


__all__ = ["Command", "RunController"]
