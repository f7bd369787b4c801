import asyncio
import logging
from typing import Callable, List, Optional

from ..configs import DeviceSettings
from ..protocol import commands
from ..protocol.commands import Command

logger = logging.getLogger(__name__)


class DeviceSequencer:
    """
    Sends the fixed bring-up sequence after a connection opens:
    device init -> infrared illumination -> camera start.

    The device acknowledges none of these, so the only pacing is a short
    settling delay before each command.
    """

    def __init__(self, send: Callable[[Command], bool], settings: DeviceSettings, num_points: int):
        self._send = send
        self._settings = settings
        self._num_points = num_points
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def bring_up_commands(self) -> List[Command]:
        cfg = self._settings
        return [
            commands.init_device(cfg.eye_type, cfg.resolution, self._num_points, cfg.screen_type_index),
            commands.set_brightness(cfg.ir_brightness),
            commands.simple(commands.START_CAMERA),
        ]

    def start(self) -> None:
        """(Re)starts the sequence; a sequence already in flight is replaced."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(), name="iris-tracker-bring-up")

    def cancel(self) -> None:
        if self._task and not self._task.done():
            logger.debug("Cancelling bring-up sequence.")
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        delay = self._settings.bring_up_step_delay_s
        for command in self.bring_up_commands():
            await asyncio.sleep(delay)
            self._send(command)
        logger.info("Device bring-up sequence sent.")
