from .calibration import CALIBRATION_POINTS, PLACEHOLDER_ACCURACY, CalibrationPoint, CalibrationResult
from .events import CalibrationProgress, CalibrationStarted, CameraFrame, DeviceInfo, Ready
from .frame import DeviceFrame, ScreenPoint, TrackerOutput
from .gaze import DEFAULT_CONFIDENCE, EyePoint, GazeSample

__all__ = [
    "CALIBRATION_POINTS",
    "DEFAULT_CONFIDENCE",
    "PLACEHOLDER_ACCURACY",
    "CalibrationPoint",
    "CalibrationProgress",
    "CalibrationResult",
    "CalibrationStarted",
    "CameraFrame",
    "DeviceFrame",
    "DeviceInfo",
    "EyePoint",
    "GazeSample",
    "Ready",
    "ScreenPoint",
    "TrackerOutput",
]
