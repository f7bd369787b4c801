from abc import ABC, abstractmethod

from ..models.gaze import GazeSample


class GazeSink(ABC):
    """
    Abstract Base Class for consumers of the live gaze stream.

    A sink is started once, receives every fused sample through ``send()``
    in arrival order, and is closed when the stream ends.
    """

    async def start(self) -> None:
        """Acquires whatever the sink needs (sockets, files). Optional."""

    @abstractmethod
    async def send(self, sample: GazeSample) -> None:
        """Delivers one sample. Must not block the stream for long."""
        raise NotImplementedError

    async def close(self) -> None:
        """Releases resources. Optional."""
