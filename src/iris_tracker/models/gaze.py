from dataclasses import dataclass
from typing import Optional

# The device gives no quality signal per sample; every fused sample carries
# this value until one is derived from the binocular data.
DEFAULT_CONFIDENCE = 0.9


@dataclass(slots=True, frozen=True)
class EyePoint:
    """One eye's gaze point as reported by the device."""
    x: float
    y: float


@dataclass(slots=True, frozen=True)
class GazeSample:
    """
    A standardized, immutable container for a single fused gaze sample.

    ``x``/``y`` are the mean of whichever eye points the device reported for
    the frame. They are passed through in the device's own screen-point
    units; no normalization is applied here.
    """
    timestamp: int  # Wall clock, milliseconds since the epoch, taken on receipt.
    x: float
    y: float
    confidence: float = DEFAULT_CONFIDENCE
    left_eye: Optional[EyePoint] = None
    right_eye: Optional[EyePoint] = None

    @property
    def is_binocular(self) -> bool:
        return self.left_eye is not None and self.right_eye is not None
