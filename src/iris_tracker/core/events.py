import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class TrackerEvent(str, Enum):
    """Names of everything the tracker publishes, with their payload types."""
    CONNECTED = "connected"  # None
    DISCONNECTED = "disconnected"  # None
    READY = "ready"  # Ready
    ERROR = "error"  # EyeTrackerError
    STATUS_CHANGED = "statusChanged"  # DeviceStatus
    GAZE_DATA = "gazeData"  # GazeSample
    CALIBRATION_STARTED = "calibrationStarted"  # CalibrationStarted
    CALIBRATION_PROGRESS = "calibrationProgress"  # CalibrationProgress
    CALIBRATION_COMPLETE = "calibrationComplete"  # CalibrationResult
    CALIBRATION_CANCELLED = "calibrationCancelled"  # None
    CALIBRATION_RESTARTED = "calibrationRestarted"  # None
    CAMERA_FRAME = "cameraFrame"  # CameraFrame
    CAMERA_STARTED = "cameraStarted"  # None
    CAMERA_STOPPED = "cameraStopped"  # None
    CAMERA_FLIPPED = "cameraFlipped"  # None

    def __str__(self) -> str:
        return self.value


EventName = Union[TrackerEvent, str]


class EventChannel:
    """
    Synchronous publish/subscribe hub between the protocol client and its
    consumers (calibration UI, recording host, experiment adapters).

    Listeners are called in subscription order on the publishing task. A
    listener that raises is logged and skipped; it never breaks delivery to
    the others or the frame that triggered the event.
    """

    def __init__(self) -> None:
        self._listeners: Dict[TrackerEvent, List[Listener]] = {}

    @staticmethod
    def _key(event: EventName) -> TrackerEvent:
        return TrackerEvent(event)

    def on(self, event: EventName, listener: Listener) -> Listener:
        """Subscribes ``listener`` and returns it, for a later ``off()``."""
        listeners = self._listeners.setdefault(self._key(event), [])
        if listener not in listeners:
            listeners.append(listener)
        return listener

    def off(self, event: EventName, listener: Listener) -> None:
        key = self._key(event)
        listeners = self._listeners.get(key)
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            return
        if not listeners:
            del self._listeners[key]

    def once(self, event: EventName, listener: Listener) -> Listener:
        """Subscribes a listener that is removed after its first call."""
        def _once(payload: Any) -> None:
            self.off(event, _once)
            listener(payload)

        return self.on(event, _once)

    def emit(self, event: EventName, payload: Any = None) -> None:
        key = self._key(event)
        # Copy so listeners may unsubscribe while being notified.
        for listener in list(self._listeners.get(key, ())):
            try:
                listener(payload)
            except Exception:
                logger.exception("Error in event listener for '%s'.", key)

    def remove_all_listeners(self, event: Optional[EventName] = None) -> None:
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(self._key(event), None)

    def listener_count(self, event: EventName) -> int:
        return len(self._listeners.get(self._key(event), ()))
