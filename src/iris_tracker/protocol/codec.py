"""
Wire codec for the device WebSocket.

Every frame in both directions is a JSON object, serialized compactly and
wrapped in standard base64 text.
"""

import base64
import binascii
import json
from typing import Any, Mapping, Union

from ..errors import DecodeError


def encode(command: Mapping[str, Any]) -> str:
    """Serializes a command object into one outbound text frame."""
    payload = json.dumps(command, separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode(frame: Union[str, bytes]) -> dict[str, Any]:
    """
    Decodes one inbound frame into a JSON object.

    Frames that are not valid base64 are parsed as plain JSON, which is what
    some firmware versions send.

    Raises:
        DecodeError: The frame is not a JSON object in either form.
    """
    raw = frame.encode("utf-8") if isinstance(frame, str) else frame
    try:
        text = base64.b64decode(raw, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError("Frame is neither base64 nor UTF-8 text.") from e

    try:
        message = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Frame is not valid JSON: {e.msg}") from e

    if not isinstance(message, dict):
        raise DecodeError(f"Expected a JSON object, got {type(message).__name__}.")
    return message
