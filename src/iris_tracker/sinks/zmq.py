import logging
import struct
from typing import Final

import zmq
import zmq.asyncio

from .base import GazeSink
from ..models.gaze import GazeSample

logger = logging.getLogger(__name__)

class ZMQSink(GazeSink):
    """
    Real-time broadcast sink using ZMQ PUB/SUB.
    Lets recorders and experiment code in other processes follow the gaze
    stream without holding a reference to the tracker.

    Wire Format (29 bytes + 4 byte topic):
    - Topic: 'gaze' (4 bytes)
    - Timestamp: int64 (8 bytes, epoch ms)
    - X: float64 (8 bytes)
    - Y: float64 (8 bytes)
    - Confidence: float32 (4 bytes)
    - Binocular: bool (1 byte)
    """

    # ! = Network (Big Endian)
    # q = int64 (timestamp)
    # d = float64 (x)
    # d = float64 (y)
    # f = float32 (confidence)
    # ? = bool (both eyes present)
    _PACKER: Final[struct.Struct] = struct.Struct("!qddf?")
    _TOPIC: Final[bytes] = b"gaze"

    def __init__(self, host: str = "tcp://*:5556", context: zmq.asyncio.Context | None = None):
        """
        Args:
            host: The ZMQ binding address. Default binds to all interfaces on port 5556.
            context: Shared context; a private one is created (and terminated on close) otherwise.
        """
        self.host = host

        self._owns_ctx = context is None
        self._ctx = context or zmq.asyncio.Context()
        self._sock = self._ctx.socket(zmq.PUB)

        # Set High Water Mark to prevent memory bloating if subscribers are slow
        # Buffer of 10 seconds at 60Hz
        self._sock.setsockopt(zmq.SNDHWM, 60 * 10)

    @classmethod
    def pack(cls, sample: GazeSample) -> bytes:
        """Topic plus binary payload for one sample."""
        return cls._TOPIC + cls._PACKER.pack(
            sample.timestamp,
            sample.x,
            sample.y,
            sample.confidence,
            sample.is_binocular,
        )

    @classmethod
    def unpack(cls, message: bytes) -> tuple[int, float, float, float, bool]:
        """Inverse of ``pack`` for subscribers."""
        if not message.startswith(cls._TOPIC):
            raise ValueError("Not a gaze message.")
        return cls._PACKER.unpack(message[len(cls._TOPIC):])

    async def start(self) -> None:
        """Bind the publisher socket."""
        try:
            self._sock.bind(self.host)
            logger.info(f"ZMQSink bound to {self.host}")
        except zmq.ZMQError as e:
            logger.error(f"Failed to bind ZMQSink to {self.host}: {e}")
            raise

    async def send(self, sample: GazeSample) -> None:
        """
        Serializes and broadcasts one sample.
        Non-blocking in practice: ZMQ hands off to its internal buffer.
        """
        try:
            await self._sock.send(self.pack(sample))
        except zmq.ZMQError as e:
            # Broadcast failures are logged only.
            logger.error(f"ZMQ broadcast failed: {e}")

    async def close(self) -> None:
        """Shut down the socket (and the context, if we created it)."""
        logger.info("Closing ZMQSink...")
        # Close immediately, don't wait for unsent messages
        self._sock.close(linger=0)
        if self._owns_ctx:
            self._ctx.term()
