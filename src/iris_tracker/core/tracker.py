import asyncio
import logging
from functools import wraps
from typing import Any, List, Mapping, Optional

from .connection import ConnectionManager
from .events import EventChannel, EventName, Listener, TrackerEvent
from .protocols import TransportFactory
from .state import CalibrationState, DeviceStatus
from ..configs import TrackerSettings
from ..controllers.calibration import CalibrationController
from ..controllers.sequencer import DeviceSequencer
from ..errors import TrackerStateError, TransportError
from ..models.events import DeviceInfo
from ..models.gaze import GazeSample
from ..pipeline.buffer import SampleBuffer
from ..pipeline.decoder import TelemetryDecoder
from ..protocol import commands

logger = logging.getLogger(__name__)

def require_connection(func):
    """
    Guards device commands that only make sense on an open socket.
    Logs and returns False instead of sending into the void.
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        if not self.connection.is_open:
            logger.warning(f"Device action '{func.__name__}' aborted: Tracker disconnected.")
            return False
        return func(self, *args, **kwargs)
    return wrapper

class EyeTracker:
    """
    Client for the HH WebSocket eye tracker.

    Composes the connection manager, bring-up sequencer, calibration
    controller, telemetry decoder and sample buffer behind one object. Create
    a single instance in the host application and pass it to every consumer
    (calibration UI, recorders, experiment adapters).

    Apart from ``connect()``/``disconnect()``, operations return immediately;
    their effects are reported through events (see ``TrackerEvent``).
    """

    def __init__(
        self,
        settings: Optional[TrackerSettings] = None,
        transport_factory: Optional[TransportFactory] = None,
        channel: Optional[EventChannel] = None,
    ):
        """
        Args:
            settings: Client configuration; loaded from the environment when omitted.
            transport_factory: Overrides how sockets are opened (tests, custom transports).
            channel: Event channel to publish on; a private one is created when omitted.
        """
        self.settings = settings or TrackerSettings()
        if self.settings.debug:
            logging.getLogger("iris_tracker").setLevel(logging.DEBUG)

        self.events = channel or EventChannel()
        self.buffer = SampleBuffer(self.settings.buffer_capacity)

        self.connection = ConnectionManager(
            self.settings.connection,
            self.events,
            transport_factory=transport_factory,
            on_open=self._on_open,
            on_close=self._on_close,
        )
        self.sequencer = DeviceSequencer(
            self.connection.send,
            self.settings.device,
            num_points=len(self.settings.calibration.points),
        )
        self.calibration = CalibrationController(
            self.connection,
            self.events,
            self.settings.calibration,
            on_complete=self.start_tracking,
        )
        self.decoder = TelemetryDecoder(self.connection, self.events, self.buffer, self.calibration)
        self.connection.frame_handler = self.decoder.handle_frame

        self._device_info = DeviceInfo()
        self._auto_connect_task: Optional[asyncio.Task] = None
        if self.settings.auto_connect:
            self._schedule_auto_connect()

    async def __aenter__(self) -> "EyeTracker":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.dispose()

    # --- Properties ---

    @property
    def status(self) -> DeviceStatus:
        return self.connection.status

    @property
    def is_connected(self) -> bool:
        return self.connection.is_open

    @property
    def calibration_state(self) -> CalibrationState:
        return self.calibration.state

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    # --- Events ---

    def on(self, event: EventName, listener: Listener) -> Listener:
        return self.events.on(event, listener)

    def off(self, event: EventName, listener: Listener) -> None:
        self.events.off(event, listener)

    def once(self, event: EventName, listener: Listener) -> Listener:
        return self.events.once(event, listener)

    # --- Connection ---

    async def connect(self) -> None:
        """Connects and brings the device up. Raises TransportError on failure."""
        await self.connection.connect()

    async def disconnect(self) -> None:
        if self._auto_connect_task and not self._auto_connect_task.done():
            self._auto_connect_task.cancel()
        await self.connection.disconnect()

    def _schedule_auto_connect(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("auto_connect is set but no event loop is running; call connect() explicitly.")
            return
        self._auto_connect_task = loop.create_task(self._auto_connect())

    async def _auto_connect(self) -> None:
        try:
            await self.connect()
        except TransportError as e:
            logger.error(f"Automatic connection failed: {e}")
            self.events.emit(TrackerEvent.ERROR, e)

    def _on_open(self) -> None:
        self.sequencer.start()

    def _on_close(self) -> None:
        self.sequencer.cancel()
        self.calibration.reset()

    # --- Calibration ---

    def start_calibration(self) -> None:
        """Starts the 5-point calibration. Raises TrackerStateError unless connected."""
        self.calibration.start()

    def cancel_calibration(self) -> bool:
        return self.calibration.cancel()

    def restart_calibration(self) -> bool:
        return self.calibration.restart()

    # --- Tracking ---

    def start_tracking(self) -> None:
        """
        Asks the device to stream gaze data. The device does not acknowledge
        this; the status is set optimistically.

        Raises:
            TrackerStateError: The device is neither connected nor calibrating.
        """
        status = self.connection.status
        if status is DeviceStatus.TRACKING:
            return
        if status not in (DeviceStatus.CONNECTED, DeviceStatus.CALIBRATING):
            raise TrackerStateError(f"Device must be connected or calibrated to start tracking (current: {status})")

        self.connection.send(commands.simple(commands.START_TRACKER))
        self.connection.set_status(DeviceStatus.TRACKING)
        logger.info("Tracking started.")

    def stop_tracking(self) -> None:
        self.connection.send(commands.simple(commands.STOP_TRACKER))
        if self.connection.status is DeviceStatus.TRACKING:
            self.connection.set_status(DeviceStatus.CONNECTED)
            logger.info("Tracking stopped.")

    # --- Device utilities ---

    def send_command(self, command: Mapping[str, Any]) -> bool:
        """Sends a raw command object; dropped silently when disconnected."""
        return self.connection.send(command)

    def set_brightness(self, brightness: int) -> bool:
        if not 0 <= brightness <= 100:
            raise ValueError("Brightness must be between 0 and 100")
        return self.connection.send(commands.set_brightness(brightness))

    @require_connection
    def start_camera(self) -> bool:
        self.connection.send(commands.simple(commands.START_CAMERA))
        self.events.emit(TrackerEvent.CAMERA_STARTED)
        return True

    @require_connection
    def stop_camera(self) -> bool:
        self.connection.send(commands.simple(commands.STOP_CAMERA))
        self.events.emit(TrackerEvent.CAMERA_STOPPED)
        return True

    @require_connection
    def flip_camera(self) -> bool:
        self.connection.send(commands.simple(commands.FLIP_CAMERA))
        self.events.emit(TrackerEvent.CAMERA_FLIPPED)
        return True

    @require_connection
    def request_timestamp(self) -> bool:
        """Asks the device for its current clock value."""
        return self.connection.send(commands.simple(commands.GET_TIMESTAMP))

    # --- Data access ---

    def get_data(self) -> List[GazeSample]:
        return self.buffer.get_all()

    def get_recent_data(self, count: int) -> List[GazeSample]:
        return self.buffer.get_recent(count)

    def get_data_in_time_range(self, start: int, end: int) -> List[GazeSample]:
        return self.buffer.get_time_range(start, end)

    def clear_data(self) -> None:
        self.buffer.clear()

    # --- Cleanup ---

    async def dispose(self) -> None:
        """Disconnects, drops every listener and clears the history."""
        await self.disconnect()
        self.events.remove_all_listeners()
        self.buffer.clear()
