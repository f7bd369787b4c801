import asyncio
import logging
import math
import time
from typing import Any, Dict, List, Optional, Set

from aiohttp import WSMsgType, web

from ..errors import DecodeError
from ..protocol import codec, commands

logger = logging.getLogger(__name__)

# A 1x1 grey JPEG, enough for consumers that only display the latest frame.
_PLACEHOLDER_IMAGE = (
    "/9j/4AAQSkZJRgABAQEASABIAAD/2wBDAP//////////////////////////////////////////////////////////"
    "////////////////////////////wAALCAABAAEBAREA/8QAFAABAAAAAAAAAAAAAAAAAAAAA//EABQQAQAAAAAAAAAA"
    "AAAAAAAAAAD/2gAIAQEAAD8AN//Z"
)


class SimulatedDevice:
    """
    An in-process stand-in for the HH tracker's WebSocket server.

    It speaks the same base64/JSON protocol and follows the device's
    observable behavior closely enough for development and integration
    tests without hardware:

    - ``init_et10c`` is answered with status ``5000`` (or ``5001`` when the
      hardware is configured as unplugged);
    - every ``startCalibration`` is answered with ``nFinishedNum`` after
      ``point_duration_s``; ``checkCabliration`` with ``cablicFinished``;
    - ``startTracker`` streams a binocular gaze point moving on a circle;
    - ``startCamera`` streams placeholder camera frames.
    """

    def __init__(
        self,
        frequency: int = 60,
        radius: float = 0.2,
        center: tuple[float, float] = (0.5, 0.5),
        speed: float = 0.5,
        point_duration_s: float = 0.5,
        camera_interval_s: float = 1.0,
        hardware_attached: bool = True,
    ):
        """
        Args:
            frequency: Gaze samples per second while tracking.
            radius: The radius of the circular gaze path.
            center: The (x, y) center of the circular path.
            speed: Revolutions per second along the circle.
            point_duration_s: Time the "device" spends on each calibration target.
            camera_interval_s: Seconds between camera frames; 0 disables them.
            hardware_attached: When False the device reports status 5001.
        """
        if frequency <= 0:
            raise ValueError("Frequency must be positive.")

        self.frequency = frequency
        self.radius = radius
        self.center = center
        self.speed = speed
        self.point_duration_s = point_duration_s
        self.camera_interval_s = camera_interval_s
        self.hardware_attached = hardware_attached

        self.received: List[Dict[str, Any]] = []
        self.url: Optional[str] = None

        self._app = web.Application()
        self._app.router.add_get("/", self._handle)
        self._runner: Optional[web.AppRunner] = None
        self._sessions: Set["_DeviceSession"] = set()

    def commands_named(self, req_cmd: str) -> List[Dict[str, Any]]:
        return [c for c in self.received if c.get("req_cmd") == req_cmd]

    async def start(self, host: str = "127.0.0.1", port: int = 0) -> str:
        """Starts serving and returns the ``ws://`` URL to connect to."""
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()

        bound_host, bound_port = self._runner.addresses[0][:2]
        self.url = f"ws://{bound_host}:{bound_port}/"
        logger.info(f"Simulated eye tracker listening on {self.url}")
        return self.url

    async def stop(self) -> None:
        for session in list(self._sessions):
            await session.close()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        logger.info("Simulated eye tracker stopped.")

    async def drop_connections(self, code: int = 1011) -> None:
        """Closes every client socket with ``code``, as a crashing device would."""
        for session in list(self._sessions):
            await session.close(code=code)

    async def _handle(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        session = _DeviceSession(self, ws)
        self._sessions.add(session)
        logger.info("Client connected to simulated eye tracker.")
        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await session.handle(msg.data)
                elif msg.type == WSMsgType.ERROR:
                    logger.warning(f"Simulated device socket error: {ws.exception()}")
        finally:
            session.stop_streams()
            self._sessions.discard(session)
            logger.info("Client disconnected from simulated eye tracker.")
        return ws


class _DeviceSession:
    """Protocol state for one connected client."""

    def __init__(self, device: SimulatedDevice, ws: web.WebSocketResponse):
        self._device = device
        self._ws = ws
        self._finished = 0
        self._gaze_task: Optional[asyncio.Task] = None
        self._camera_task: Optional[asyncio.Task] = None
        self._point_task: Optional[asyncio.Task] = None

    async def handle(self, text: str) -> None:
        try:
            command = codec.decode(text)
        except DecodeError as e:
            logger.warning(f"Simulated device ignored a bad frame: {e}")
            return

        self._device.received.append(command)
        name = command.get("req_cmd")
        logger.debug(f"Simulated device received: {name}")

        if name == commands.INIT:
            code = "5000" if self._device.hardware_attached else "5001"
            await self.send({"statusCode": code})
        elif name == commands.START_CAMERA:
            if self._device.camera_interval_s > 0 and not _running(self._camera_task):
                self._camera_task = asyncio.create_task(self._stream_camera())
        elif name == commands.STOP_CAMERA:
            _cancel(self._camera_task)
        elif name == commands.START_CALIBRATION:
            _cancel(self._point_task)
            self._point_task = asyncio.create_task(self._collect_point())
        elif name == commands.CHECK_CALIBRATION:
            await self.send({"cablicFinished": True})
        elif name in (commands.STOP_CALIBRATION, commands.RESTART_CALIBRATION):
            _cancel(self._point_task)
            self._finished = 0
        elif name == commands.START_TRACKER:
            if not _running(self._gaze_task):
                self._gaze_task = asyncio.create_task(self._stream_gaze())
        elif name == commands.STOP_TRACKER:
            _cancel(self._gaze_task)
        else:
            logger.debug(f"Simulated device has no behavior for '{name}'.")

    async def send(self, payload: Dict[str, Any]) -> None:
        if not self._ws.closed:
            await self._ws.send_str(codec.encode(payload))

    async def close(self, code: int = 1000) -> None:
        self.stop_streams()
        await self._ws.close(code=code)

    def stop_streams(self) -> None:
        for task in (self._gaze_task, self._camera_task, self._point_task):
            _cancel(task)

    async def _collect_point(self) -> None:
        await asyncio.sleep(self._device.point_duration_s)
        self._finished += 1
        await self.send({"nFinishedNum": self._finished})

    async def _stream_camera(self) -> None:
        while not self._ws.closed:
            await self.send({"bg_img": _PLACEHOLDER_IMAGE})
            await asyncio.sleep(self._device.camera_interval_s)

    async def _stream_gaze(self) -> None:
        device = self._device
        interval_s = 1.0 / device.frequency
        center_x, center_y = device.center
        start_time = time.monotonic()
        frame_counter = 0

        while not self._ws.closed:
            # --- Calculate precise timing for this frame ---
            target_time = start_time + (frame_counter * interval_s)
            elapsed = time.monotonic() - start_time

            # Calculate position in a circular path
            angle = elapsed * device.speed * 2 * math.pi
            gaze_x = center_x + device.radius * math.cos(angle)
            gaze_y = center_y + device.radius * math.sin(angle)

            # Slightly offset eyes for realism
            await self.send({
                "trakcerOutput": {
                    "haveLeftScreenPoint": True,
                    "haveRightScreenPoint": True,
                    "tLeftScreenPoint": {"f32X": gaze_x - 0.01, "f32Y": gaze_y},
                    "tRightScreenPoint": {"f32X": gaze_x + 0.01, "f32Y": gaze_y},
                }
            })

            frame_counter += 1
            sleep_duration = target_time + interval_s - time.monotonic()
            await asyncio.sleep(max(sleep_duration, 0))


def _running(task: Optional[asyncio.Task]) -> bool:
    return task is not None and not task.done()


def _cancel(task: Optional[asyncio.Task]) -> None:
    if task is not None and not task.done():
        task.cancel()
