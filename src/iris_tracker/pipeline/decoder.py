import logging
import time
from typing import Callable, Optional

from .buffer import SampleBuffer
from ..controllers.calibration import CalibrationController
from ..core.connection import ConnectionManager
from ..core.events import EventChannel, TrackerEvent
from ..core.state import DeviceStatus
from ..errors import DecodeError, DeviceError
from ..models.events import CameraFrame
from ..models.frame import DeviceFrame, TrackerOutput
from ..models.gaze import DEFAULT_CONFIDENCE, GazeSample
from ..protocol import codec
from ..utils.logging import ThrottledLogger

logger = logging.getLogger(__name__)

STATUS_DEVICE_OK = "5000"
STATUS_DEVICE_NOT_ATTACHED = "5001"

# Statuses from which a sign of life (camera frame, OK code) returns us to CONNECTED.
_RECOVERABLE = (DeviceStatus.ERROR, DeviceStatus.CONNECTING)


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def fuse(output: TrackerOutput, timestamp: int) -> Optional[GazeSample]:
    """
    Averages whichever eye points the device reported into one sample.

    Returns None when neither eye has a screen point; that is the device's
    "no data" case, not an error.
    """
    eyes = [p for p in (output.left_screen_point, output.right_screen_point) if p is not None]
    if not eyes:
        return None

    x = sum(p.x for p in eyes) / len(eyes)
    y = sum(p.y for p in eyes) / len(eyes)
    return GazeSample(
        timestamp=timestamp,
        x=x,
        y=y,
        confidence=DEFAULT_CONFIDENCE,
        left_eye=output.left_screen_point.to_eye_point() if output.left_screen_point else None,
        right_eye=output.right_screen_point.to_eye_point() if output.right_screen_point else None,
    )


class TelemetryDecoder:
    """
    Interprets inbound device frames.

    A frame may carry several payloads at once; each one present is handled
    independently, in a fixed order: calibration progress, calibration
    completion, tracker output, camera image, status code.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        channel: EventChannel,
        buffer: SampleBuffer,
        calibration: CalibrationController,
        clock: Callable[[], int] = now_ms,
    ):
        self._connection = connection
        self._channel = channel
        self._buffer = buffer
        self._calibration = calibration
        self._clock = clock

        # Stats
        self.frames_received = 0
        self.frames_dropped = 0
        self.payloads_rejected = 0
        self.samples_produced = 0
        self._drop_logger = ThrottledLogger(logger, interval_sec=5.0)

    def handle_frame(self, raw: str) -> None:
        """Decodes and dispatches one frame. Undecodable frames and malformed payloads are logged and skipped."""
        self.frames_received += 1
        try:
            frame = DeviceFrame.from_payload(codec.decode(raw))
        except DecodeError as e:
            self.frames_dropped += 1
            self._drop_logger.warning("Discarding undecodable frame: %s", e)
            return

        if frame.rejected:
            # The rest of the frame is still dispatched.
            self.payloads_rejected += len(frame.rejected)
            self._drop_logger.warning("Ignoring malformed payload(s): %s", ", ".join(frame.rejected))

        self.dispatch(frame)

    def dispatch(self, frame: DeviceFrame) -> None:
        if frame.finished_count is not None:
            self._calibration.on_progress(frame.finished_count)

        if frame.calibration_finished:
            self._calibration.on_finished()

        if frame.tracker_output is not None:
            self._handle_tracker_output(frame.tracker_output)

        if frame.background_image:
            self._handle_camera_frame(frame.background_image)

        if frame.status_code:
            self._handle_status_code(frame.status_code)

    def _handle_tracker_output(self, output: TrackerOutput) -> None:
        sample = fuse(output, self._clock())
        if sample is None:
            return
        self.samples_produced += 1
        self._buffer.add(sample)
        self._channel.emit(TrackerEvent.GAZE_DATA, sample)

    def _handle_camera_frame(self, image_data: str) -> None:
        self._channel.emit(TrackerEvent.CAMERA_FRAME, CameraFrame(image_data=image_data, timestamp=self._clock()))
        if self._connection.status in _RECOVERABLE:
            self._connection.set_status(DeviceStatus.CONNECTED)

    def _handle_status_code(self, code: str) -> None:
        if code == STATUS_DEVICE_NOT_ATTACHED:
            logger.error("Device reports that the eye tracking hardware is not attached.")
            self._connection.set_status(DeviceStatus.DISCONNECTED)
            self._channel.emit(TrackerEvent.ERROR, DeviceError("Eye tracking hardware not connected"))
        elif code == STATUS_DEVICE_OK:
            if self._connection.status in _RECOVERABLE:
                self._connection.set_status(DeviceStatus.CONNECTED)
        else:
            logger.debug(f"Ignoring unknown status code {code}.")
