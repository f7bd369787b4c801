class EyeTrackerError(Exception):
    """Base class for every error raised by the tracker client."""


class TransportError(EyeTrackerError):
    """The WebSocket could not be opened or was lost."""


class DecodeError(EyeTrackerError):
    """An inbound frame is not a base64/JSON object."""


class DeviceError(EyeTrackerError):
    """The device reported a fault, e.g. the hardware is not attached."""


class ProtocolSequenceError(EyeTrackerError):
    """A calibration progress report arrived outside the expected range."""


class TrackerStateError(EyeTrackerError):
    """An operation was requested in a device state that does not allow it."""
