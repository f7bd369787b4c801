"""
Typed view of one inbound device frame.

A frame carries any combination of optional payloads; the field aliases are
the device's own names and are matched literally, misspellings included.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .gaze import EyePoint


class _DeviceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class ScreenPoint(_DeviceModel):
    x: float = Field(alias="f32X")
    y: float = Field(alias="f32Y")

    def to_eye_point(self) -> EyePoint:
        return EyePoint(self.x, self.y)


class TrackerOutput(_DeviceModel):
    """Binocular tracker output (``trakcerOutput``)."""
    have_left_eye_info: bool = Field(False, alias="haveLeftEyeInfo")
    have_left_screen_point: bool = Field(False, alias="haveLeftScreenPoint")
    have_right_eye_info: bool = Field(False, alias="haveRightEyeInfo")
    have_right_screen_point: bool = Field(False, alias="haveRightScreenPoint")
    left_screen_point: Optional[ScreenPoint] = Field(None, alias="tLeftScreenPoint")
    right_screen_point: Optional[ScreenPoint] = Field(None, alias="tRightScreenPoint")


class DeviceFrame(_DeviceModel):
    finished_count: Optional[int] = Field(None, alias="nFinishedNum")
    calibration_finished: Optional[bool] = Field(None, alias="cablicFinished")
    tracker_output: Optional[TrackerOutput] = Field(None, alias="trakcerOutput")
    background_image: Optional[str] = Field(None, alias="bg_img")
    status_code: Optional[str] = Field(None, alias="statusCode")

    # Wire names of payloads present in the frame but dropped as malformed.
    rejected: tuple[str, ...] = ()

    @field_validator("status_code", mode="before")
    @classmethod
    def _code_as_text(cls, value: Union[int, str, None]) -> Optional[str]:
        # The device sends the code either as a number or as a string.
        if value is None or value == "":
            return None
        return str(value)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "DeviceFrame":
        """
        Builds a frame, validating each payload on its own.

        A malformed payload is left out and named in ``rejected``; the
        others in the same frame are kept.
        """
        accepted: dict[str, Any] = {}
        rejected = []
        for field in cls.model_fields.values():
            alias = field.alias
            if alias is None or alias not in payload:
                continue
            try:
                cls.model_validate({alias: payload[alias]})
            except ValidationError:
                rejected.append(alias)
            else:
                accepted[alias] = payload[alias]

        return cls.model_validate({**accepted, "rejected": tuple(rejected)})
