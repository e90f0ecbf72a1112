"""
CIE-Lab conversion and color distance.

Converts packed sRGB pixels to CIE-Lab (D65) and measures the CIE76 color
difference between them. Alpha is ignored.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from screendiff.processor.buffers import unpack_argb

# Linear sRGB -> XYZ (D65)
_SRGB_TO_XYZ: tuple[tuple[float, float, float], ...] = (
    (0.4124564, 0.3575761, 0.1804375),
    (0.2126729, 0.7151522, 0.0721750),
    (0.0193339, 0.1191920, 0.9503041),
)

# Reference white, derived from the matrix so that sRGB white maps to L=100, a=b=0
_WHITE: tuple[float, float, float] = tuple(  # type: ignore[assignment]
    row[0] * 1.0 + row[1] * 1.0 + row[2] * 1.0 for row in _SRGB_TO_XYZ
)

_EPSILON = 216.0 / 24389.0
_KAPPA = 24389.0 / 27.0


@dataclass(frozen=True)
class ColorSample:
    """An 8-bit RGB triple taken from a packed pixel."""

    red: int
    green: int
    blue: int

    @classmethod
    def from_pixel(cls, pixel: int) -> ColorSample:
        red, green, blue, _ = unpack_argb(pixel)
        return cls(red, green, blue)


@dataclass(frozen=True)
class LabColor:
    """A CIE-Lab color: lightness plus the a/b chromaticity axes."""

    l: float  # noqa: E741
    a: float
    b: float


def _linearize(channel: int) -> float:
    value = channel / 255.0
    if value <= 0.04045:
        return value / 12.92
    return ((value + 0.055) / 1.055) ** 2.4


def _lab_f(t: float) -> float:
    if t > _EPSILON:
        return t ** (1.0 / 3.0)
    return (_KAPPA * t + 16.0) / 116.0


def rgb_to_lab(sample: ColorSample) -> LabColor:
    """Convert an sRGB sample to CIE-Lab."""
    r = _linearize(sample.red)
    g = _linearize(sample.green)
    b = _linearize(sample.blue)

    xr, yr, zr = (
        (row[0] * r + row[1] * g + row[2] * b) / white
        for row, white in zip(_SRGB_TO_XYZ, _WHITE)
    )

    fx, fy, fz = _lab_f(xr), _lab_f(yr), _lab_f(zr)
    lightness = 116.0 * fy - 16.0 if yr > _EPSILON else _KAPPA * yr

    return LabColor(
        l=lightness,
        a=500.0 * (fx - fy),
        b=200.0 * (fy - fz),
    )


def pixel_to_lab(pixel: int) -> LabColor:
    """Convert a packed ARGB pixel to CIE-Lab."""
    return rgb_to_lab(ColorSample.from_pixel(pixel))


def calculate_delta_e(
    l1: float, a1: float, b1: float, l2: float, a2: float, b2: float
) -> float:
    """
    CIE76 color difference between two Lab colors.

    0 means identical; values around 2.3 are a just-noticeable difference.
    """
    return math.sqrt((l1 - l2) ** 2 + (a1 - a2) ** 2 + (b1 - b2) ** 2)


def pixel_delta_e(baseline_pixel: int, current_pixel: int) -> float:
    """Color difference between two packed pixels."""
    baseline = pixel_to_lab(baseline_pixel)
    current = pixel_to_lab(current_pixel)
    return calculate_delta_e(baseline.l, baseline.a, baseline.b, current.l, current.a, current.b)
