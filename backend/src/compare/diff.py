"""Diff image generation for failed comparisons."""

from __future__ import annotations

from enum import IntEnum

import structlog

from screendiff.errors import InvalidBufferError
from screendiff.processor.buffers import ImagePair, PixelBuffer
from screendiff.processor.parallel import ParallelPixelProcessor, Position

logger = structlog.get_logger(__name__)


class DiffColor(IntEnum):
    """Packed ARGB sentinels written into a diff buffer."""

    MATCH = 0xFF000000  # opaque black
    MISMATCH = 0xFFFF0000  # opaque red


def _diff_pixel(baseline_pixel: int, current_pixel: int, position: Position) -> int:
    if baseline_pixel == current_pixel:
        return DiffColor.MATCH.value
    return DiffColor.MISMATCH.value


def generate_diff(
    baseline: PixelBuffer,
    current: PixelBuffer,
    processor: ParallelPixelProcessor | None = None,
) -> PixelBuffer:
    """
    Build a diff buffer: black where pixels are identical, red where they differ.

    Every pixel is visited. Both buffers must have the same dimensions.
    """
    if not baseline.same_size(current):
        raise InvalidBufferError(
            f"Cannot diff {baseline.width}x{baseline.height} against "
            f"{current.width}x{current.height}"
        )

    processor = processor or ParallelPixelProcessor()
    diff = processor.transform(ImagePair(baseline, current), _diff_pixel)

    logger.debug(
        "Diff generated",
        size=f"{diff.width}x{diff.height}",
        mismatched=count_mismatches(diff),
    )
    return diff


def count_mismatches(diff: PixelBuffer) -> int:
    """Number of mismatch sentinels in a diff buffer."""
    return int((diff.pixels == DiffColor.MISMATCH.value).sum())
