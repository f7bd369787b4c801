"""
Command vocabulary understood by the device.

The ``req_cmd`` values and parameter names are fixed by the device firmware
and are reproduced literally, including their misspellings.
"""

from typing import Any, Final

Command = dict[str, Any]

INIT: Final = "init_et10c"
SET_BRIGHT: Final = "setBright"
START_CAMERA: Final = "startCamera"
STOP_CAMERA: Final = "stopCamera"
FLIP_CAMERA: Final = "filpCamera"
START_CALIBRATION: Final = "startCalibration"
STOP_CALIBRATION: Final = "stopCalibration"
CHECK_CALIBRATION: Final = "checkCabliration"
RESTART_CALIBRATION: Final = "restartCalibration"
START_TRACKER: Final = "startTracker"
STOP_TRACKER: Final = "stopTracker"
GET_TIMESTAMP: Final = "getCurrTimeStamp"


def init_device(eye_type: int, resolution: str, num_points: int, screen_type_index: int) -> Command:
    return {
        "req_cmd": INIT,
        "eyeType": eye_type,
        "resType": resolution,
        "numpoint": num_points,
        "sceenTypeIndex": screen_type_index,
    }


def set_brightness(level: int) -> Command:
    return {"req_cmd": SET_BRIGHT, "irBrights": level}


def show_calibration_point(x: float, y: float) -> Command:
    return {"req_cmd": START_CALIBRATION, "point_x": x, "point_y": y}


def simple(req_cmd: str) -> Command:
    """Builds a command that carries no parameters."""
    return {"req_cmd": req_cmd}
