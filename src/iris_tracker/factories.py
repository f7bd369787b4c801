from typing import List

from .configs import TrackerSettings
from .sinks import GazeSink, ZMQSink

def create_sinks(settings: TrackerSettings) -> List[GazeSink]:
    """
    Creates fresh sink instances for a new tracking session.
    """
    sinks: List[GazeSink] = []

    # ZMQ
    if settings.zmq.enabled:
        sinks.append(ZMQSink(host=settings.zmq.host))

    return sinks
