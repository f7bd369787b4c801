from importlib.metadata import PackageNotFoundError, version

from .configs import TrackerSettings
from .core.events import EventChannel, TrackerEvent
from .core.state import CalibrationState, DeviceStatus
from .core.tracker import EyeTracker
from .errors import (
    DecodeError,
    DeviceError,
    EyeTrackerError,
    ProtocolSequenceError,
    TrackerStateError,
    TransportError,
)
from .models import CalibrationPoint, CalibrationResult, EyePoint, GazeSample

try:
    __version__ = version("iris-tracker")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "CalibrationPoint",
    "CalibrationResult",
    "CalibrationState",
    "DecodeError",
    "DeviceError",
    "DeviceStatus",
    "EventChannel",
    "EyePoint",
    "EyeTracker",
    "EyeTrackerError",
    "GazeSample",
    "ProtocolSequenceError",
    "TrackerEvent",
    "TrackerSettings",
    "TrackerStateError",
    "TransportError",
]
