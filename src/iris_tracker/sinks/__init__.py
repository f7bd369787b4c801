from .base import GazeSink
from .zmq import ZMQSink

__all__ = ["GazeSink", "ZMQSink"]
