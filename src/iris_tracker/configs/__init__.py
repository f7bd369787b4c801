from .app import (
    CalibrationSettings,
    ConnectionSettings,
    DeviceSettings,
    RunnerConfig,
    TrackerSettings,
    ZmqSinkConfig,
)
from .utils import LoggingConfig

__all__ = [
    "CalibrationSettings",
    "ConnectionSettings",
    "DeviceSettings",
    "LoggingConfig",
    "RunnerConfig",
    "TrackerSettings",
    "ZmqSinkConfig",
]
