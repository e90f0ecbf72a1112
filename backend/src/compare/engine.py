"""
Screenshot verification facade.

Ties a comparison strategy to diff generation: compare the baseline and
current buffers, and when they differ build a diff buffer for the reporting
layer to persist.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from PIL import Image

from screendiff.compare.diff import count_mismatches
from screendiff.compare.diff import generate_diff as build_diff
from screendiff.compare.strategies import (
    BitmapCompare,
    ComparisonMode,
    create_comparator_from_config,
)
from screendiff.processor.buffers import PixelBuffer
from screendiff.processor.parallel import ParallelPixelProcessor

if TYPE_CHECKING:
    from screendiff.config import ComparisonConfig

logger = structlog.get_logger(__name__)

ImageSource = PixelBuffer | Image.Image


@dataclass
class ComparisonResult:
    """Outcome of verifying a current capture against its baseline."""

    passed: bool
    message: str
    mode: ComparisonMode
    diff: PixelBuffer | None = None
    mismatched_pixel_count: int = 0
    total_pixel_count: int = 0
    dimension_mismatch: bool = False

    @property
    def diff_percentage(self) -> float:
        """Share of bit-different pixels (0.0 to 1.0), when a diff was built."""
        if self.total_pixel_count == 0:
            return 0.0
        return self.mismatched_pixel_count / self.total_pixel_count


class ScreenshotVerifier:
    """
    Compares captures with a strategy and builds diffs for failures.

    Usage:
        verifier = ScreenshotVerifier(FuzzyCompare(exactness=0.99))
        result = verifier.verify(baseline, current)
        if not result.passed and result.diff is not None:
            result.diff.to_image().save("login.diff.png")
    """

    def __init__(
        self,
        comparator: BitmapCompare,
        processor: ParallelPixelProcessor | None = None,
        generate_diff: bool = True,
    ) -> None:
        """
        Initialize the verifier.

        Args:
            comparator: Strategy that decides whether two buffers match
            processor: Processor used for diff generation
            generate_diff: Build a diff buffer when a comparison fails
        """
        self._comparator = comparator
        self._processor = processor or ParallelPixelProcessor()
        self._generate_diff = generate_diff
        self._log = logger.bind(component="screenshot_verifier", mode=str(comparator.mode))

    @classmethod
    def from_config(cls, config: ComparisonConfig) -> ScreenshotVerifier:
        """Create a verifier from a ``ComparisonConfig``."""
        return cls(
            comparator=create_comparator_from_config(config),
            processor=ParallelPixelProcessor.from_config(config.processor),
            generate_diff=config.generate_diff,
        )

    @property
    def comparator(self) -> BitmapCompare:
        return self._comparator

    def verify(
        self,
        baseline: ImageSource,
        current: ImageSource,
        generate_diff: bool | None = None,
    ) -> ComparisonResult:
        """
        Verify ``current`` against ``baseline``.

        Args:
            baseline: Reference capture
            current: Capture under test
            generate_diff: Override the verifier's diff setting for this call

        Returns:
            ComparisonResult; ``diff`` is only set for failed comparisons of
            equally sized buffers
        """
        baseline_buffer = self._to_buffer(baseline)
        current_buffer = self._to_buffer(current)
        mode = self._comparator.mode

        if not baseline_buffer.same_size(current_buffer):
            return ComparisonResult(
                passed=False,
                message=(
                    f"Image size mismatch: baseline {baseline_buffer.width}x{baseline_buffer.height}, "
                    f"current {current_buffer.width}x{current_buffer.height}"
                ),
                mode=mode,
                dimension_mismatch=True,
            )

        passed = self._comparator.compare_bitmaps(baseline_buffer, current_buffer)
        result = ComparisonResult(
            passed=passed,
            message=f"{mode.capitalize()} comparison " + ("passed" if passed else "failed"),
            mode=mode,
            total_pixel_count=current_buffer.size,
        )

        want_diff = self._generate_diff if generate_diff is None else generate_diff
        if not passed and want_diff:
            result.diff = build_diff(baseline_buffer, current_buffer, self._processor)
            result.mismatched_pixel_count = count_mismatches(result.diff)
            result.message += (
                f" ({result.mismatched_pixel_count} of {result.total_pixel_count} pixels differ)"
            )

        self._log.info(
            "Screenshot verified",
            passed=passed,
            size=f"{current_buffer.width}x{current_buffer.height}",
            mismatched=result.mismatched_pixel_count,
        )
        return result

    @staticmethod
    def _to_buffer(image: ImageSource) -> PixelBuffer:
        if isinstance(image, PixelBuffer):
            return image
        if isinstance(image, Image.Image):
            return PixelBuffer.from_image(image)
        raise TypeError(f"Unsupported image type: {type(image)}")
