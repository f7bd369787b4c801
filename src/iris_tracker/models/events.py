from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Ready:
    initialized: bool


@dataclass(slots=True, frozen=True)
class CalibrationStarted:
    points: int


@dataclass(slots=True, frozen=True)
class CalibrationProgress:
    current: int
    total: int


@dataclass(slots=True, frozen=True)
class CameraFrame:
    """A camera image as sent by the device, republished verbatim."""
    image_data: str  # Base64 image payload from ``bg_img``.
    timestamp: int  # Receipt time, milliseconds since the epoch.


@dataclass(slots=True, frozen=True)
class DeviceInfo:
    provider: str = "HH Eye Tracker"
    model: str = "HH Hardware Device"
    sampling_rate: int = 60
