"""
Bitmap comparison module.

Provides exact and perceptual (CIE-Lab deltaE) comparison strategies,
diff image generation, and a verification facade combining both.
"""

from screendiff.compare.colorspace import (
    ColorSample,
    LabColor,
    calculate_delta_e,
    pixel_delta_e,
    pixel_to_lab,
    rgb_to_lab,
)
from screendiff.compare.diff import DiffColor, count_mismatches, generate_diff
from screendiff.compare.engine import ComparisonResult, ScreenshotVerifier
from screendiff.compare.strategies import (
    BitmapCompare,
    ComparisonMode,
    ExactCompare,
    FuzzyCompare,
    create_comparator,
    create_comparator_from_config,
)

__all__ = [
    # Color distance
    "ColorSample",
    "LabColor",
    "calculate_delta_e",
    "pixel_delta_e",
    "pixel_to_lab",
    "rgb_to_lab",
    # Strategies
    "BitmapCompare",
    "ComparisonMode",
    "ExactCompare",
    "FuzzyCompare",
    "create_comparator",
    "create_comparator_from_config",
    # Diff
    "DiffColor",
    "count_mismatches",
    "generate_diff",
    # Verification
    "ComparisonResult",
    "ScreenshotVerifier",
]
