import logging
from collections import deque
from typing import Deque, List

from ..models.gaze import GazeSample

logger = logging.getLogger(__name__)


class SampleBuffer:
    """
    Fixed-capacity ring of the most recent gaze samples.

    Once full, every insertion evicts the oldest sample. All read methods
    return copies, so callers never see the buffer change under them.
    """

    def __init__(self, capacity: int = 10_000):
        if capacity <= 0:
            raise ValueError("capacity must be a positive integer.")
        self._samples: Deque[GazeSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen

    @property
    def size(self) -> int:
        return len(self._samples)

    @property
    def is_full(self) -> bool:
        return len(self._samples) == self._samples.maxlen

    def __len__(self) -> int:
        return len(self._samples)

    def add(self, sample: GazeSample) -> None:
        self._samples.append(sample)

    def get_all(self) -> List[GazeSample]:
        """Returns every held sample, oldest first."""
        return list(self._samples)

    def get_recent(self, count: int) -> List[GazeSample]:
        """Returns up to ``count`` of the newest samples, oldest first."""
        if count <= 0:
            return []
        if count >= len(self._samples):
            return list(self._samples)
        return list(self._samples)[-count:]

    def get_time_range(self, start: int, end: int) -> List[GazeSample]:
        """Returns the samples whose timestamp lies in ``[start, end]``."""
        return [s for s in self._samples if start <= s.timestamp <= end]

    def clear(self) -> None:
        logger.debug("Clearing %d buffered samples.", len(self._samples))
        self._samples.clear()
