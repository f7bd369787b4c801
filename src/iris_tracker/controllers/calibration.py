import asyncio
import logging
from typing import Any, Callable, Optional

from ..configs import CalibrationSettings
from ..core.connection import ConnectionManager
from ..core.events import EventChannel, TrackerEvent
from ..core.state import CalibrationState, DeviceStatus
from ..errors import EyeTrackerError, ProtocolSequenceError, TrackerStateError
from ..models.calibration import PLACEHOLDER_ACCURACY, CalibrationPoint, CalibrationResult
from ..models.events import CalibrationProgress, CalibrationStarted
from ..protocol import commands

logger = logging.getLogger(__name__)


class CalibrationController:
    """
    Drives the device's point-by-point calibration handshake.

    The device cannot be asked whether it is ready for the next target, so
    the host shows one target at a time and waits fixed delays between
    them. The point index always comes from the device's ``nFinishedNum``
    report, never from a local counter.

    At most one delayed action (next point, verify, auto-track) is pending
    at any time; cancelling or resetting clears it.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        channel: EventChannel,
        settings: CalibrationSettings,
        on_complete: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            connection: Sends commands and owns the device status.
            channel: Where calibration events are published.
            settings: Target pattern and delays.
            on_complete: Invoked after a successful run when ``auto_track``
                is enabled (normally starts tracking).
        """
        self._connection = connection
        self._channel = channel
        self._settings = settings
        self._on_complete = on_complete

        self._state = CalibrationState.IDLE
        self._requested_point: Optional[int] = None
        self._finished = 0  # Last nFinishedNum acted upon.
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> CalibrationState:
        return self._state

    @property
    def total(self) -> int:
        return len(self._settings.points)

    @property
    def requested_point(self) -> Optional[int]:
        """Index of the target most recently scheduled for display."""
        return self._requested_point

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    # --- Commands ---

    def start(self) -> None:
        """
        Begins a calibration run. The first target is shown after the
        initial delay, giving the user time to prepare.

        Raises:
            TrackerStateError: The device is not in the connected state.
        """
        status = self._connection.status
        if status is not DeviceStatus.CONNECTED:
            raise TrackerStateError(f"Device must be connected before calibration (current: {status})")

        self._cancel_timer()
        self._state = CalibrationState.AWAITING_POINT
        self._requested_point = None
        self._finished = 0

        logger.info(f"Starting {self.total}-point calibration.")
        self._connection.set_status(DeviceStatus.CALIBRATING)
        self._channel.emit(TrackerEvent.CALIBRATION_STARTED, CalibrationStarted(points=self.total))
        self._schedule_point(0, self._settings.initial_delay_s)

    def cancel(self) -> bool:
        """
        Aborts a running calibration. Calling it while idle or after the run
        has finished does nothing.

        Returns:
            True if a running calibration was cancelled.
        """
        if not self._state.is_active:
            logger.debug(f"Cancel ignored: calibration is {self._state.name}.")
            return False

        self._cancel_timer()
        self._state = CalibrationState.CANCELLED
        self._requested_point = None
        self._finished = 0
        self._connection.send(commands.simple(commands.STOP_CALIBRATION))

        if self._connection.status is DeviceStatus.CALIBRATING:
            self._connection.set_status(DeviceStatus.CONNECTED)
        logger.info("Calibration cancelled.")
        self._channel.emit(TrackerEvent.CALIBRATION_CANCELLED)
        return True

    def restart(self) -> bool:
        """Asks the device to discard collected points and starts over from the first target."""
        if not self._state.is_active:
            logger.warning(f"Restart ignored: calibration is {self._state.name}.")
            return False

        self._cancel_timer()
        self._state = CalibrationState.AWAITING_POINT
        self._requested_point = None
        self._finished = 0
        self._connection.send(commands.simple(commands.RESTART_CALIBRATION))

        logger.info("Calibration restarted.")
        self._channel.emit(TrackerEvent.CALIBRATION_RESTARTED)
        self._schedule_point(0, self._settings.initial_delay_s)
        return True

    def reset(self) -> None:
        """Drops the run and any pending action without talking to the device."""
        self._cancel_timer()
        self._state = CalibrationState.IDLE
        self._requested_point = None
        self._finished = 0

    # --- Device reports ---

    def on_progress(self, finished: int) -> None:
        """Handles an ``nFinishedNum`` report: ``finished`` targets are done."""
        if not self._state.is_active:
            logger.debug(f"Ignoring calibration progress {finished}: no calibration running.")
            return

        total = self.total
        if not 0 <= finished <= total:
            # Logged, not raised.
            logger.warning("%s", ProtocolSequenceError(f"Progress {finished} is outside 0..{total}; ignored."))
            return

        # A repeated count (including the initial 0) carries no news.
        if finished == self._finished:
            logger.debug(f"Progress {finished} already handled.")
            return
        self._finished = finished

        logger.info(f"Calibration progress: {finished}/{total}")
        self._channel.emit(TrackerEvent.CALIBRATION_PROGRESS, CalibrationProgress(current=finished, total=total))

        if finished < total:
            self._state = CalibrationState.AWAITING_POINT
            self._schedule_point(finished, self._settings.point_delay_s)
        else:
            self._state = CalibrationState.VERIFYING
            self._requested_point = None
            self._schedule(self._settings.verify_delay_s, self._verify)

    def on_finished(self) -> None:
        """Handles ``cablicFinished``: the device accepted the calibration."""
        if not self._state.is_active:
            logger.debug("Ignoring calibration-finished report: no calibration running.")
            return

        self._cancel_timer()
        self._state = CalibrationState.COMPLETE
        self._requested_point = None
        self._finished = 0

        result = CalibrationResult(
            success=True,
            points=tuple(CalibrationPoint(x, y) for x, y in self._settings.points),
            accuracy=PLACEHOLDER_ACCURACY,
        )
        if self._connection.status is DeviceStatus.CALIBRATING:
            self._connection.set_status(DeviceStatus.CONNECTED)

        logger.info("Calibration complete.")
        self._channel.emit(TrackerEvent.CALIBRATION_COMPLETE, result)

        if self._settings.auto_track and self._on_complete:
            self._schedule(self._settings.auto_track_delay_s, self._auto_track)

    # --- Timed steps ---

    def _schedule_point(self, index: int, delay: float) -> None:
        self._requested_point = index
        self._schedule(delay, self._show_point, index)

    def _show_point(self, index: int) -> None:
        if self._state is not CalibrationState.AWAITING_POINT:
            return
        x, y = self._settings.points[index]
        logger.info(f"Showing calibration point {index + 1}/{self.total} at ({x:.2f}, {y:.2f}).")
        self._connection.send(commands.show_calibration_point(x, y))

    def _verify(self) -> None:
        if self._state is CalibrationState.VERIFYING:
            logger.info("All points collected; requesting verification.")
            self._connection.send(commands.simple(commands.CHECK_CALIBRATION))

    def _auto_track(self) -> None:
        try:
            self._on_complete()
        except EyeTrackerError as e:
            logger.warning(f"Could not start tracking after calibration: {e}")
            self._channel.emit(TrackerEvent.ERROR, e)

    def _schedule(self, delay: float, callback: Callable[..., None], *args: Any) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._fire, callback, args)

    def _fire(self, callback: Callable[..., None], args: tuple) -> None:
        self._timer = None
        callback(*args)

    def _cancel_timer(self) -> None:
        if self._timer:
            self._timer.cancel()
            self._timer = None
