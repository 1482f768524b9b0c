"""
Sensitivity mapping.

A single user-facing control (low / medium / high) is translated into the
internal thresholds used by segmentation, extraction and classification.
Three coarse presets, nothing in between.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union


class Sensitivity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class SensitivityParams:
    # Classification (Canny hysteresis band)
    canny_low: int
    canny_high: int

    # Segmentation
    min_area_ratio: float
    morph_kernel_size: int

    # Extraction filters
    min_solidity: float
    max_aspect_ratio: float

    blur_kernel_size: int = 5


_PRESETS: Dict[Sensitivity, SensitivityParams] = {
    # Stricter: fewer, cleaner candidates
    Sensitivity.LOW: SensitivityParams(
        canny_low=80,
        canny_high=160,
        min_area_ratio=0.0020,
        morph_kernel_size=5,
        min_solidity=0.85,
        max_aspect_ratio=3.5,
    ),
    Sensitivity.MEDIUM: SensitivityParams(
        canny_low=60,
        canny_high=120,
        min_area_ratio=0.0015,
        morph_kernel_size=5,
        min_solidity=0.80,
        max_aspect_ratio=4.0,
    ),
    # Looser: more candidates, more noise
    Sensitivity.HIGH: SensitivityParams(
        canny_low=40,
        canny_high=80,
        min_area_ratio=0.0010,
        morph_kernel_size=7,
        min_solidity=0.75,
        max_aspect_ratio=5.0,
    ),
}


def to_params(level: Union[Sensitivity, str]) -> SensitivityParams:
    """
    Map a sensitivity level to its parameter bundle.

    Args:
        level: Sensitivity enum member or its string value

    Returns:
        The (immutable) parameters for that level

    Raises:
        ValueError: If level is not one of low, medium, high
    """
    return _PRESETS[Sensitivity(level)]
