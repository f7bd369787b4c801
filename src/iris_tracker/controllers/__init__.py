from .calibration import CalibrationController
from .sequencer import DeviceSequencer

__all__ = ["CalibrationController", "DeviceSequencer"]
