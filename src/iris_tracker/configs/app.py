import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, NonNegativeFloat, PositiveFloat, PositiveInt, field_validator, model_validator, Field

from .utils import LoggingConfig
from ..models.calibration import CALIBRATION_POINTS

logger = logging.getLogger(__name__)

class ConnectionSettings(BaseModel):
    """Where the device WebSocket lives and how hard we try to reach it."""
    endpoints: list[str] = Field(
        default_factory=lambda: ["wss://localhost:8443", "ws://localhost:9000"],
        description="WebSocket URLs tried in order until one opens.",
    )
    connect_timeout_s: PositiveFloat = Field(5.0, description="Per-endpoint timeout for opening the socket.")
    reconnect_attempts: int = Field(3, ge=0, description="Retries after a failed connect or an abnormal close.")
    reconnect_delay_s: NonNegativeFloat = Field(1.0, description="Wait before each retry.")
    verify_ssl: bool = Field(False, description="Verify certificates on wss:// endpoints (the device uses a self-signed one).")

    @field_validator("endpoints", mode="before")
    @classmethod
    def _single_endpoint(cls, value):
        if isinstance(value, str):
            return [value]
        return value

    @model_validator(mode='after')
    def validate_endpoints(self) -> "ConnectionSettings":
        if not self.endpoints:
            raise ValueError('At least one endpoint is required.')
        return self

class DeviceSettings(BaseModel):
    """Parameters of the bring-up sequence sent after every connect."""
    eye_type: int = 0
    resolution: str = Field("640x368x30", description="Camera mode, WIDTHxHEIGHTxFPS.")
    screen_type_index: int = 1
    ir_brightness: int = Field(80, ge=0, le=100, description="Infrared illumination level.")
    bring_up_step_delay_s: NonNegativeFloat = Field(0.1, description="Settling time between bring-up commands.")

class CalibrationSettings(BaseModel):
    """Settings for the calibration procedure."""
    points: list[tuple[float, float]] = Field(
        default_factory=lambda: [(p.x, p.y) for p in CALIBRATION_POINTS],
        description="List of normalized (0-1) screen coordinates to use as calibration targets."
    )
    initial_delay_s: NonNegativeFloat = Field(3.0, description="Time given to the user before the first target.")
    point_delay_s: NonNegativeFloat = Field(3.0, description="Wait before showing the next target.")
    verify_delay_s: NonNegativeFloat = Field(1.0, description="Wait before asking the device to verify.")
    auto_track: bool = Field(True, description="Start tracking as soon as calibration completes.")
    auto_track_delay_s: NonNegativeFloat = 0.5

    @model_validator(mode='after')
    def validate_points(self) -> "CalibrationSettings":
        if not self.points:
            raise ValueError('Calibration needs at least one point.')
        for x, y in self.points:
            if not (0.0 <= x <= 1.0 and 0.0 <= y <= 1.0):
                raise ValueError(f'Calibration point ({x}, {y}) is outside the unit square.')
        return self

class ZmqSinkConfig(BaseModel):
    enabled: bool = False
    host: str = "tcp://*:5556"

class RunnerConfig(BaseModel):
    queue_size: PositiveInt = 60 * 20 # 20 seconds of data at 60 Hz

class TrackerSettings(BaseSettings):
    """
    Main tracker settings, loaded from environment variables and defaults.
    """
    # Device
    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)
    device: DeviceSettings = Field(default_factory=DeviceSettings)
    calibration: CalibrationSettings = Field(default_factory=CalibrationSettings)

    # Client
    buffer_capacity: PositiveInt = Field(10_000, description="Number of gaze samples kept in history.")
    auto_connect: bool = Field(False, description="Connect as soon as the tracker is constructed.")
    debug: bool = Field(False, description="Log protocol traffic at DEBUG level.")

    # Sinks
    zmq: ZmqSinkConfig = Field(default_factory=ZmqSinkConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)

    # Logging
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="IRIS__",
        env_file=".env",
        env_nested_delimiter='__',
        case_sensitive=False
    )
