import asyncio
import logging
from typing import Optional, Sequence, Union

from .events import EventChannel, TrackerEvent
from ..models.gaze import GazeSample
from ..sinks import GazeSink
from ..utils.logging import ThrottledLogger

logger = logging.getLogger(__name__)


class EndToken:
    """Sentinel type to signal the end of a stream."""
    __slots__ = ()

    def __repr__(self) -> str:
        return "<EndToken>"

_END = EndToken()


class GazeRunner:
    """
    Relays the ``gazeData`` event stream to a set of sinks.

    Event listeners run synchronously on the frame-handling path, so the
    listener only enqueues; a single task drains the queue into the sinks.
    When the queue is full, samples are dropped rather than stalling frame
    handling. Created fresh for every session.
    """
    def __init__(self, channel: EventChannel, sinks: Sequence[GazeSink], queue_size: int = 1200):
        self.channel = channel
        self.sinks = sinks
        self._queue: asyncio.Queue[Union[GazeSample, EndToken]] = asyncio.Queue(maxsize=queue_size)
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None

        # Stats
        self.samples_relayed = 0
        self.samples_dropped = 0
        self._drop_logger = ThrottledLogger(logger, interval_sec=1)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return

        logger.info("Starting GazeRunner...")
        self._running = True

        # Start sinks
        await asyncio.gather(*(s.start() for s in self.sinks))

        # Start data loop, then subscribe
        self._loop_task = asyncio.create_task(self._process_loop())
        self.channel.on(TrackerEvent.GAZE_DATA, self._on_sample)
        logger.info(f"GazeRunner active with {len(self.sinks)} sink(s).")

    async def stop(self) -> None:
        if not self._running:
            return

        logger.info("Stopping GazeRunner...")
        self._running = False
        self.channel.off(TrackerEvent.GAZE_DATA, self._on_sample)

        # Drain and stop data loop
        if self._loop_task:
            await self._queue.put(_END)
            await self._loop_task
            self._loop_task = None

        # Close sinks
        await asyncio.gather(*(s.close() for s in self.sinks))

        logger.info(f"GazeRunner stopped. Relayed: {self.samples_relayed:,}, Dropped: {self.samples_dropped:,}")

    def _on_sample(self, sample: GazeSample) -> None:
        try:
            self._queue.put_nowait(sample)
        except asyncio.QueueFull:
            self.samples_dropped += 1
            self._drop_logger.warning("Runner queue is full, dropping gaze sample.")

    async def _process_loop(self) -> None:
        """Hot loop."""
        queue = self._queue

        try:
            while True:
                item = await queue.get()

                if item is _END:
                    break

                results = await asyncio.gather(*(s.send(item) for s in self.sinks), return_exceptions=True)
                for sink, result in zip(self.sinks, results):
                    if isinstance(result, Exception):
                        logger.error(f"{type(sink).__name__} failed to accept a sample: {result}")
                self.samples_relayed += 1

        except asyncio.CancelledError:
            logger.info("Runner loop cancelled unexpectedly.")
            raise
