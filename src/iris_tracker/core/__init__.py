from .events import EventChannel, TrackerEvent
from .state import CalibrationState, DeviceStatus

__all__ = ["CalibrationState", "DeviceStatus", "EventChannel", "TrackerEvent"]
