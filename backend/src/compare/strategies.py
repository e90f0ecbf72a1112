"""
Bitmap comparison strategies.

Two policies share the ``compare_bitmaps(baseline, current) -> bool`` contract:
- Exact: every packed pixel must be bit-identical
- Fuzzy: pixels may drift by a perceptual (CIE-Lab deltaE) tolerance

Buffers with different dimensions never match; that is reported as False.
"""

from __future__ import annotations

import math
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

import numpy as np
import structlog

from screendiff.compare.colorspace import pixel_delta_e
from screendiff.errors import InvalidConfigurationError
from screendiff.processor.buffers import ImagePair, PixelBuffer
from screendiff.processor.parallel import ParallelPixelProcessor, Position

if TYPE_CHECKING:
    from screendiff.config import ComparisonConfig

logger = structlog.get_logger(__name__)

DEFAULT_EXACTNESS = 0.95


class ComparisonMode(StrEnum):
    """Available comparison strategies."""

    EXACT = "exact"
    FUZZY = "fuzzy"


class BitmapCompare(Protocol):
    """Capability shared by all comparison strategies."""

    mode: ComparisonMode

    def compare_bitmaps(self, baseline: PixelBuffer, current: PixelBuffer) -> bool:
        ...


def dimensions_match(baseline: PixelBuffer, current: PixelBuffer) -> bool:
    """Check dimensions, logging a warning when they differ."""
    if baseline.same_size(current):
        return True
    logger.warning(
        "Image size mismatch",
        baseline=f"{baseline.width}x{baseline.height}",
        current=f"{current.width}x{current.height}",
    )
    return False


class ExactCompare:
    """Passes only when every pixel is bit-identical."""

    mode = ComparisonMode.EXACT

    def __init__(self, processor: ParallelPixelProcessor | None = None) -> None:
        self._processor = processor or ParallelPixelProcessor()
        self._log = logger.bind(component="exact_compare")

    def compare_bitmaps(self, baseline: PixelBuffer, current: PixelBuffer) -> bool:
        if not dimensions_match(baseline, current):
            return False

        if np.array_equal(baseline.pixels, current.pixels):
            self._log.debug("Buffers identical", size=f"{current.width}x{current.height}")
            return True

        passed = self._processor.analyze(
            ImagePair(baseline, current),
            lambda baseline_pixel, current_pixel, position: baseline_pixel == current_pixel,
        )
        self._log.info("Exact comparison finished", passed=passed)
        return passed

    def __repr__(self) -> str:
        return "ExactCompare()"


class FuzzyCompare:
    """
    Passes when every pixel is perceptually close enough.

    Identical packed values always pass. Otherwise both pixels are converted to
    CIE-Lab and the pixel passes when ``(100 - deltaE) / 100 >= exactness``.
    An exactness of 1.0 only tolerates a deltaE of 0; lower values accept more
    drift.
    """

    mode = ComparisonMode.FUZZY

    def __init__(
        self,
        exactness: float = DEFAULT_EXACTNESS,
        processor: ParallelPixelProcessor | None = None,
    ) -> None:
        """
        Initialize the comparison.

        Args:
            exactness: Required similarity in [0, 1]
            processor: Processor to run the per-pixel scan on

        Raises:
            InvalidConfigurationError: If exactness is outside [0, 1]
        """
        if not isinstance(exactness, (int, float)) or isinstance(exactness, bool):
            raise InvalidConfigurationError(f"exactness must be a number, got {exactness!r}")
        if not math.isfinite(exactness) or not 0.0 <= exactness <= 1.0:
            raise InvalidConfigurationError(
                f"exactness must be between 0.0 and 1.0, got {exactness}"
            )

        self._exactness = float(exactness)
        self._processor = processor or ParallelPixelProcessor()
        self._log = logger.bind(component="fuzzy_compare", exactness=self._exactness)

    @property
    def exactness(self) -> float:
        return self._exactness

    def pixels_match(self, baseline_pixel: int, current_pixel: int, position: Position | None = None) -> bool:
        """Per-pixel tolerance check used by ``compare_bitmaps``."""
        if baseline_pixel == current_pixel:
            return True
        delta_e = pixel_delta_e(baseline_pixel, current_pixel)
        return (100.0 - delta_e) / 100.0 >= self._exactness

    def compare_bitmaps(self, baseline: PixelBuffer, current: PixelBuffer) -> bool:
        if not dimensions_match(baseline, current):
            return False

        passed = self._processor.analyze(ImagePair(baseline, current), self.pixels_match)
        self._log.info("Fuzzy comparison finished", passed=passed)
        return passed

    def __repr__(self) -> str:
        return f"FuzzyCompare(exactness={self._exactness})"


def create_comparator(
    mode: ComparisonMode | str = ComparisonMode.EXACT,
    exactness: float = DEFAULT_EXACTNESS,
    processor: ParallelPixelProcessor | None = None,
) -> ExactCompare | FuzzyCompare:
    """
    Build a comparison strategy.

    Args:
        mode: "exact" or "fuzzy"
        exactness: Similarity threshold, only used for fuzzy comparison
        processor: Shared processor (a default one is created if omitted)

    Returns:
        The selected strategy
    """
    try:
        resolved_mode = ComparisonMode(mode)
    except ValueError as e:
        raise InvalidConfigurationError(f"Unknown comparison mode: {mode}") from e

    match resolved_mode:
        case ComparisonMode.EXACT:
            return ExactCompare(processor=processor)
        case ComparisonMode.FUZZY:
            return FuzzyCompare(exactness=exactness, processor=processor)
        case _:
            raise InvalidConfigurationError(f"Unknown comparison mode: {mode}")


def create_comparator_from_config(config: ComparisonConfig) -> ExactCompare | FuzzyCompare:
    """Build the strategy described by a ``ComparisonConfig``."""
    return create_comparator(
        mode=config.mode,
        exactness=config.exactness,
        processor=ParallelPixelProcessor.from_config(config.processor),
    )
