from unittest.mock import MagicMock

import pytest

from iris_tracker.core.events import EventChannel, TrackerEvent
from iris_tracker.core.state import DeviceStatus
from iris_tracker.errors import DeviceError
from iris_tracker.models import CameraFrame, EyePoint, TrackerOutput
from iris_tracker.pipeline.buffer import SampleBuffer
from iris_tracker.pipeline.decoder import TelemetryDecoder, fuse
from iris_tracker.protocol import codec
from tests.fakes import Recorder

NOW = 1_700_000_000_000


def make_decoder(status=DeviceStatus.TRACKING):
    connection = MagicMock()
    connection.status = status
    calibration = MagicMock()
    channel = EventChannel()
    buffer = SampleBuffer(capacity=100)
    decoder = TelemetryDecoder(connection, channel, buffer, calibration, clock=lambda: NOW)
    return decoder, connection, calibration, channel, buffer


def gaze_frame(left=None, right=None) -> dict:
    output = {
        "haveLeftScreenPoint": left is not None,
        "haveRightScreenPoint": right is not None,
    }
    if left is not None:
        output["tLeftScreenPoint"] = {"f32X": left[0], "f32Y": left[1]}
    if right is not None:
        output["tRightScreenPoint"] = {"f32X": right[0], "f32Y": right[1]}
    return {"trakcerOutput": output}


# --- Fusion ---

def test_fuse_binocular_takes_the_mean():
    output = TrackerOutput.model_validate(gaze_frame(left=(0.4, 0.5), right=(0.6, 0.7))["trakcerOutput"])
    sample = fuse(output, NOW)

    assert sample.timestamp == NOW
    assert sample.x == pytest.approx(0.5)
    assert sample.y == pytest.approx(0.6)
    assert sample.confidence == pytest.approx(0.9)
    assert sample.left_eye == EyePoint(0.4, 0.5)
    assert sample.right_eye == EyePoint(0.6, 0.7)
    assert sample.is_binocular


def test_fuse_single_eye_passes_through():
    output = TrackerOutput.model_validate(gaze_frame(right=(0.3, 0.2))["trakcerOutput"])
    sample = fuse(output, NOW)

    assert (sample.x, sample.y) == (0.3, 0.2)
    assert sample.left_eye is None
    assert sample.right_eye == EyePoint(0.3, 0.2)
    assert not sample.is_binocular


def test_fuse_without_points_yields_nothing():
    output = TrackerOutput.model_validate({"haveLeftEyeInfo": True, "haveRightEyeInfo": True})
    assert fuse(output, NOW) is None


# --- Frame handling ---

def test_gaze_frame_is_buffered_and_published():
    decoder, _, _, channel, buffer = make_decoder()
    recorder = channel.on(TrackerEvent.GAZE_DATA, Recorder())

    decoder.handle_frame(codec.encode(gaze_frame(left=(0.4, 0.4), right=(0.6, 0.6))))

    assert recorder.count == 1
    assert buffer.get_all() == recorder.payloads
    assert decoder.samples_produced == 1


def test_empty_tracker_output_is_not_an_error():
    decoder, _, _, channel, buffer = make_decoder()
    recorder = channel.on(TrackerEvent.GAZE_DATA, Recorder())

    decoder.handle_frame(codec.encode({"trakcerOutput": {}}))

    assert recorder.count == 0
    assert len(buffer) == 0
    assert decoder.frames_dropped == 0


def test_plain_json_frames_are_accepted():
    decoder, _, calibration, _, _ = make_decoder()
    decoder.handle_frame('{"nFinishedNum": 1}')
    calibration.on_progress.assert_called_once_with(1)


def test_undecodable_frame_is_dropped():
    decoder, _, calibration, channel, _ = make_decoder()
    errors = channel.on(TrackerEvent.ERROR, Recorder())

    decoder.handle_frame("%%%")

    assert decoder.frames_received == 1
    assert decoder.frames_dropped == 1
    assert errors.count == 0
    calibration.on_progress.assert_not_called()


def test_malformed_payload_is_skipped():
    decoder, _, calibration, channel, _ = make_decoder()
    errors = channel.on(TrackerEvent.ERROR, Recorder())

    decoder.handle_frame(codec.encode({"nFinishedNum": "three"}))

    assert decoder.frames_dropped == 0
    assert decoder.payloads_rejected == 1
    assert errors.count == 0
    calibration.on_progress.assert_not_called()


def test_progress_survives_malformed_gaze_in_same_frame():
    decoder, _, calibration, channel, buffer = make_decoder(DeviceStatus.CALIBRATING)
    gaze = channel.on(TrackerEvent.GAZE_DATA, Recorder())

    decoder.handle_frame(codec.encode({
        "nFinishedNum": 3,
        "trakcerOutput": {"tLeftScreenPoint": {"f32X": None, "f32Y": None}},
    }))

    calibration.on_progress.assert_called_once_with(3)
    assert decoder.payloads_rejected == 1
    assert gaze.count == 0
    assert len(buffer) == 0


def test_status_code_survives_malformed_gaze_in_same_frame():
    decoder, connection, _, channel, _ = make_decoder(DeviceStatus.CONNECTED)
    errors = channel.on(TrackerEvent.ERROR, Recorder())

    decoder.handle_frame(codec.encode({
        "statusCode": 5001,
        "trakcerOutput": {"tRightScreenPoint": {"f32X": 0.5}},
    }))

    assert errors.count == 1
    assert isinstance(errors.payloads[0], DeviceError)
    connection.set_status.assert_called_once_with(DeviceStatus.DISCONNECTED)


def test_calibration_reports_are_routed():
    decoder, _, calibration, _, _ = make_decoder(DeviceStatus.CALIBRATING)

    decoder.handle_frame(codec.encode({"nFinishedNum": 3}))
    decoder.handle_frame(codec.encode({"cablicFinished": False}))
    calibration.on_finished.assert_not_called()

    decoder.handle_frame(codec.encode({"cablicFinished": True}))
    calibration.on_progress.assert_called_once_with(3)
    calibration.on_finished.assert_called_once_with()


def test_combined_frame_handles_every_payload():
    decoder, _, calibration, channel, _ = make_decoder()
    gaze = channel.on(TrackerEvent.GAZE_DATA, Recorder())

    payload = gaze_frame(left=(0.1, 0.1))
    payload["nFinishedNum"] = 2
    decoder.handle_frame(codec.encode(payload))

    calibration.on_progress.assert_called_once_with(2)
    assert gaze.count == 1


def test_camera_frame_publishes_and_recovers():
    decoder, connection, _, channel, _ = make_decoder(DeviceStatus.ERROR)
    frames = channel.on(TrackerEvent.CAMERA_FRAME, Recorder())

    decoder.handle_frame(codec.encode({"bg_img": "aGVsbG8="}))

    assert frames.payloads == [CameraFrame(image_data="aGVsbG8=", timestamp=NOW)]
    connection.set_status.assert_called_once_with(DeviceStatus.CONNECTED)


def test_camera_frame_leaves_tracking_alone():
    decoder, connection, _, _, _ = make_decoder(DeviceStatus.TRACKING)
    decoder.handle_frame(codec.encode({"bg_img": "aGVsbG8="}))
    connection.set_status.assert_not_called()


@pytest.mark.parametrize("code", [5001, "5001"])
def test_hardware_not_attached(code):
    decoder, connection, _, channel, _ = make_decoder(DeviceStatus.CONNECTED)
    errors = channel.on(TrackerEvent.ERROR, Recorder())

    decoder.handle_frame(codec.encode({"statusCode": code}))

    connection.set_status.assert_called_once_with(DeviceStatus.DISCONNECTED)
    assert errors.count == 1
    assert isinstance(errors.payloads[0], DeviceError)
    assert str(errors.payloads[0]) == "Eye tracking hardware not connected"


def test_status_ok_recovers_from_connecting():
    decoder, connection, _, _, _ = make_decoder(DeviceStatus.CONNECTING)
    decoder.handle_frame(codec.encode({"statusCode": 5000}))
    connection.set_status.assert_called_once_with(DeviceStatus.CONNECTED)


def test_status_ok_while_tracking_is_a_no_op():
    decoder, connection, _, _, _ = make_decoder(DeviceStatus.TRACKING)
    decoder.handle_frame(codec.encode({"statusCode": "5000"}))
    decoder.handle_frame(codec.encode({"statusCode": "4242"}))
    connection.set_status.assert_not_called()


@pytest.mark.parametrize(
    "left, right, expected",
    [
        ((0.2, 0.3), (0.4, 0.5), (0.3, 0.4)),
        ((0.2, 0.3), None, (0.2, 0.3)),
        (None, (0.4, 0.5), (0.4, 0.5)),
    ],
)
def test_fused_point_is_mean_of_present_eyes(left, right, expected):
    output = TrackerOutput.model_validate(gaze_frame(left=left, right=right)["trakcerOutput"])
    sample = fuse(output, NOW)
    assert (sample.x, sample.y) == pytest.approx(expected)


def test_valid_frame_after_garbage_is_processed():
    decoder, _, _, _, buffer = make_decoder()

    decoder.handle_frame("\x00\x01 definitely not a frame")
    decoder.handle_frame(codec.encode(gaze_frame(left=(0.2, 0.3))))

    assert decoder.frames_dropped == 1
    assert len(buffer) == 1
