from enum import Enum, auto


class DeviceStatus(str, Enum):
    """
    Lifecycle status of the eye tracker as seen by the host.

    Exactly one value is live at a time; every change is published through
    the ``statusChanged`` event. ``ERROR`` can be entered from any state.
    """
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"  # Transport open, device brought up.
    CALIBRATING = "calibrating"
    TRACKING = "tracking"  # Gaze frames are streaming.
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class CalibrationState(Enum):
    """Internal state of a single calibration run."""
    IDLE = auto()
    AWAITING_POINT = auto()  # A target was (or is about to be) shown.
    VERIFYING = auto()  # All points done, waiting for the device verdict.
    COMPLETE = auto()
    CANCELLED = auto()

    @property
    def is_active(self) -> bool:
        return self in (CalibrationState.AWAITING_POINT, CalibrationState.VERIFYING)
