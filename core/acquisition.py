"""Acquisition loop: read → classify → log → checkpoint → poll stop.

One AcquisitionLoop drives one run on the acquisition thread. It owns the
counter from ``run()`` entry until the device has been stopped and cleared
in the draining phase, and it is the only writer of the run's EventLog.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from daq.base_counter import BaseCounter
from recording.checkpoint_writer import CheckpointWriter
from shared.app_settings import AcquisitionSettings
from shared.errors import CapacityExceeded, CheckpointIoError, DeviceFaultError, DeviceTimeoutError
from shared.models import (
    AcquisitionResult,
    CheckpointRecord,
    DecayEvent,
    LoopState,
    RateSample,
    StopReason,
    TaskMode,
)

from .classifier import Classification, classify
from .run_context import RunContext

logger = logging.getLogger(__name__)


class AcquisitionLoop:
    """State machine ``IDLE → INITIALIZING → RUNNING → DRAINING → IDLE`` for one run."""

    def __init__(
        self,
        counter: BaseCounter,
        context: RunContext,
        settings: AcquisitionSettings,
        writer: Optional[CheckpointWriter] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if context.mode is TaskMode.RECORD_DECAYS and writer is None:
            raise ValueError("decay recording needs a CheckpointWriter")
        self._counter = counter
        self._context = context
        self._settings = settings
        self._writer = writer
        self._clock = clock
        self._state = LoopState.IDLE
        self._checkpoints: List[CheckpointRecord] = []
        self._rate_samples: List[RateSample] = []
        self._error: Optional[DeviceFaultError] = None

    @property
    def state(self) -> LoopState:
        return self._state

    # ------------------------------------------------------------------
    # Initializing
    # ------------------------------------------------------------------

    def initialize(self, *, reconfigure: bool = True) -> None:
        """Configure the counter for this run's mode and window.

        On DeviceConfigError the loop returns to IDLE and the error propagates;
        no acquisition should be started.
        """
        self._state = LoopState.INITIALIZING
        ctx = self._context
        if not reconfigure:
            logger.debug("Reusing existing %s counter configuration", ctx.mode.value)
            return
        window = ctx.window if ctx.mode is TaskMode.RECORD_DECAYS else None
        try:
            self._counter.configure(ctx.mode, self._settings.channel, window)
        except Exception:
            self._state = LoopState.IDLE
            raise

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def run(self) -> AcquisitionResult:
        """Acquire until stopped, complete or faulted, then drain. Always ends IDLE."""
        ctx = self._context
        reason = StopReason.STOP_REQUESTED
        self._state = LoopState.RUNNING
        ctx.mark_started(self._clock())
        logger.info("Run %d: starting %s acquisition", ctx.run_id, ctx.mode.value)
        try:
            self._counter.start()
            if ctx.mode is TaskMode.CALIBRATE:
                reason = self._run_calibration()
            else:
                reason = self._run_decay_recording()
        except DeviceFaultError as exc:
            logger.warning("Run %d: counter fault, draining: %s", ctx.run_id, exc)
            self._error = exc
            reason = StopReason.DEVICE_FAULT
        finally:
            self._drain()

        logger.info(
            "Run %d finished (%s): %d decays / %d coincident pulses",
            ctx.run_id,
            reason.value,
            ctx.event_log.total_accepted,
            ctx.event_log.total_attempts,
        )
        return AcquisitionResult(
            mode=ctx.mode,
            reason=reason,
            snapshot=ctx.event_log.snapshot(),
            checkpoints=tuple(self._checkpoints),
            rate_samples=tuple(self._rate_samples),
            error=self._error,
        )

    def _run_decay_recording(self) -> StopReason:
        ctx = self._context
        log = ctx.event_log
        window = ctx.window
        timeout = self._settings.read_timeout_s
        threshold = self._settings.checkpoint_threshold
        target = self._settings.target_decays

        while True:
            try:
                interval = float(self._counter.read(timeout))
            except DeviceTimeoutError:
                pass
            else:
                log.record_attempt()
                if classify(interval, window) is Classification.ACCEPTED:
                    event = DecayEvent(timestamp=ctx.elapsed(self._clock()), interval=interval)
                    try:
                        log.append(event)
                    except CapacityExceeded:
                        ctx.publish(attempts=log.total_attempts)
                        return StopReason.CAPACITY_REACHED
                    logger.debug("(%.2f) Detected decay of separation %r s", event.timestamp, interval)
                    if log.checkpoint_due(threshold):
                        self._checkpoint(final=False)
                ctx.publish(attempts=log.total_attempts, accepted=log.total_accepted)
                if log.total_accepted >= target:
                    return StopReason.TARGET_REACHED
                if log.is_full:
                    return StopReason.CAPACITY_REACHED

            if ctx.stop.requested:
                logger.info("Run %d: received request to stop", ctx.run_id)
                return StopReason.STOP_REQUESTED

    def _run_calibration(self) -> StopReason:
        ctx = self._context
        timeout = self._settings.read_timeout_s
        rate_window = self._settings.rate_window_s

        count = 0
        window_count = 0
        window_start = self._clock()

        while True:
            try:
                count = int(self._counter.read(timeout))
            except DeviceTimeoutError:
                pass
            else:
                # Cumulative since start: the log carries the pulse count itself.
                ctx.event_log.record_attempt(max(0, count - ctx.event_log.total_attempts))
                ctx.publish(attempts=ctx.event_log.total_attempts)

            now = self._clock()
            elapsed = now - window_start
            if elapsed >= rate_window:
                if elapsed > 0:
                    pulses = count - window_count
                    sample = RateSample(elapsed_s=elapsed, count=pulses, rate_hz=pulses / elapsed)
                    self._rate_samples.append(sample)
                    ctx.publish(counts_per_minute=sample.counts_per_minute)
                    logger.info("Run %d: %.1f counts/min", ctx.run_id, sample.counts_per_minute)
                window_count = count
                window_start = now

            if ctx.stop.requested:
                logger.info("Run %d: received request to stop", ctx.run_id)
                return StopReason.STOP_REQUESTED

    # ------------------------------------------------------------------
    # Checkpointing and draining
    # ------------------------------------------------------------------

    def _checkpoint(self, *, final: bool) -> bool:
        if self._writer is None:
            raise RuntimeError("checkpoint requested without a CheckpointWriter")
        log = self._context.event_log
        try:
            record = self._writer.write(log.snapshot(), final=final)
        except CheckpointIoError as exc:
            logger.warning("Checkpoint failed, keeping %d decays in memory: %s", log.total_accepted, exc)
            return False
        log.mark_checkpointed()
        self._checkpoints.append(record)
        return True

    def _drain(self) -> None:
        self._state = LoopState.DRAINING
        ctx = self._context
        logger.debug("Run %d: stopping collection task", ctx.run_id)
        try:
            self._counter.stop()
        except Exception as exc:
            logger.warning("Run %d: counter stop failed: %s", ctx.run_id, exc)
        try:
            self._counter.clear()
        except Exception as exc:
            logger.warning("Run %d: counter clear failed: %s", ctx.run_id, exc)
        if ctx.mode is TaskMode.RECORD_DECAYS:
            self._checkpoint(final=True)
        ctx.mark_finished(self._clock())
        self._state = LoopState.IDLE


__all__ = ["AcquisitionLoop"]
