from .buffer import SampleBuffer
from .decoder import TelemetryDecoder, fuse

__all__ = ["SampleBuffer", "TelemetryDecoder", "fuse"]
