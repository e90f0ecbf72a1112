"""
Parallel pixel processor.

Runs a per-pixel function over two equally sized buffers, split into
contiguous chunks that execute concurrently on a thread pool:
- ``analyze`` reduces per-pixel booleans to a single verdict
- ``transform`` maps every pixel pair into a new buffer

Both operations block until every chunk has finished (fork-join). Async
callers can use ``analyze_async`` / ``transform_async``.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from enum import StrEnum
from functools import partial
from typing import TYPE_CHECKING, TypeVar

import numpy as np
import structlog

from screendiff.errors import (
    ComputationFaultError,
    InvalidConfigurationError,
    PixelProcessingError,
)
from screendiff.processor.buffers import (
    MAX_PIXEL_VALUE,
    PIXEL_DTYPE,
    ChunkLayout,
    ImagePair,
    PixelBuffer,
)

if TYPE_CHECKING:
    from screendiff.config import ProcessorConfig

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Position = tuple[int, int]
PixelPredicate = Callable[[int, int, Position], bool]
PixelMapper = Callable[[int, int, Position], int]


class CoordinateMapping(StrEnum):
    """How a flat offset is turned back into an ``(x, y)`` position."""

    LEGACY = "legacy"  # y = offset // height
    ROW_MAJOR = "row_major"  # y = offset // width


def default_worker_count() -> int:
    """Number of workers to use when none is configured."""
    return os.cpu_count() or 1


class ParallelPixelProcessor:
    """
    Concurrent map/reduce over the pixels of an ``ImagePair``.

    The flat index space is cut into ``ceil(total / chunk_size)`` chunks where
    ``chunk_size = total // worker_count`` (at least 1). Each chunk reads a
    disjoint slice of the input buffers and, for ``transform``, writes a
    disjoint slice of the output buffer, so no locking is needed.

    Positions handed to callbacks use ``x = offset % width`` and, by default,
    ``y = offset // height``. Pass ``CoordinateMapping.ROW_MAJOR`` for
    ``y = offset // width``.

    The processor assumes both buffers have the same dimensions; comparison
    strategies check this before calling in.

    Usage:
        processor = ParallelPixelProcessor(worker_count=4)
        same = processor.analyze(ImagePair(a, b), lambda b, c, pos: b == c)
    """

    def __init__(
        self,
        worker_count: int | None = None,
        coordinate_mapping: CoordinateMapping | str = CoordinateMapping.LEGACY,
    ) -> None:
        """
        Initialize the processor.

        Args:
            worker_count: Number of chunks/threads to aim for (defaults to CPU count)
            coordinate_mapping: Offset to position mapping passed to callbacks
        """
        if worker_count is not None and worker_count < 1:
            raise InvalidConfigurationError(
                f"worker_count must be at least 1, got {worker_count}"
            )
        self._worker_count = worker_count or default_worker_count()
        try:
            self._coordinate_mapping = CoordinateMapping(coordinate_mapping)
        except ValueError as e:
            raise InvalidConfigurationError(
                f"Unknown coordinate mapping: {coordinate_mapping}"
            ) from e

        self._log = logger.bind(component="parallel_pixel_processor")

    @classmethod
    def from_config(cls, config: ProcessorConfig) -> ParallelPixelProcessor:
        """Create a processor from a ``ProcessorConfig``."""
        return cls(
            worker_count=config.worker_count,
            coordinate_mapping=config.coordinate_mapping,
        )

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def coordinate_mapping(self) -> CoordinateMapping:
        return self._coordinate_mapping

    def layout_for(self, pair: ImagePair) -> ChunkLayout:
        """Chunk layout used for ``pair``."""
        return ChunkLayout.for_size(pair.total, self._worker_count)

    def position(self, offset: int, width: int, height: int) -> Position:
        """Map a flat offset to the ``(x, y)`` position passed to callbacks."""
        x = offset % width
        if self._coordinate_mapping == CoordinateMapping.LEGACY:
            y = offset // height
        else:
            y = offset // width
        return x, y

    # =========================================================================
    # Analyze
    # =========================================================================

    def analyze(self, pair: ImagePair, predicate: PixelPredicate) -> bool:
        """
        Check ``predicate`` against every pixel pair.

        Each chunk stops at its first failing pixel; other chunks run to
        completion. Returns True only if every chunk passed.
        """
        layout = self.layout_for(pair)
        self._log_layout("analyze", pair, layout)

        verdicts = self._run_chunks(
            layout, partial(self._analyze_chunk, pair, layout, predicate)
        )
        passed = all(verdicts)

        self._log.debug(
            "Pixel analysis finished",
            passed=passed,
            failed_chunks=sum(1 for verdict in verdicts if not verdict),
        )
        return passed

    async def analyze_async(self, pair: ImagePair, predicate: PixelPredicate) -> bool:
        """Run ``analyze`` without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.analyze, pair, predicate)

    def _analyze_chunk(
        self,
        pair: ImagePair,
        layout: ChunkLayout,
        predicate: PixelPredicate,
        chunk: int,
    ) -> bool:
        start, end = layout.bounds(chunk)
        baseline, current = self._read_chunk(pair, start, end)
        width, height = pair.width, pair.height

        for index, (baseline_pixel, current_pixel) in enumerate(zip(baseline, current)):
            offset = chunk * layout.chunk_size + index
            if not predicate(baseline_pixel, current_pixel, self.position(offset, width, height)):
                return False
        return True

    # =========================================================================
    # Transform
    # =========================================================================

    def transform(self, pair: ImagePair, mapper: PixelMapper) -> PixelBuffer:
        """
        Map every pixel pair to a packed color and collect the results.

        All pixels are visited. The result has the dimensions of ``pair``.
        """
        layout = self.layout_for(pair)
        self._log_layout("transform", pair, layout)

        output = np.zeros(layout.total, dtype=PIXEL_DTYPE)
        self._run_chunks(
            layout, partial(self._transform_chunk, pair, layout, mapper, output)
        )
        return PixelBuffer(pair.width, pair.height, output)

    async def transform_async(self, pair: ImagePair, mapper: PixelMapper) -> PixelBuffer:
        """Run ``transform`` without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.transform, pair, mapper)

    def _transform_chunk(
        self,
        pair: ImagePair,
        layout: ChunkLayout,
        mapper: PixelMapper,
        output: np.ndarray,
        chunk: int,
    ) -> None:
        start, end = layout.bounds(chunk)
        baseline, current = self._read_chunk(pair, start, end)
        width, height = pair.width, pair.height

        values: list[int] = []
        for index, (baseline_pixel, current_pixel) in enumerate(zip(baseline, current)):
            offset = chunk * layout.chunk_size + index
            values.append(mapper(baseline_pixel, current_pixel, self.position(offset, width, height)))
        if not values:
            return

        mapped = np.array(values, dtype=np.int64)
        if mapped.min() < 0 or mapped.max() > MAX_PIXEL_VALUE:
            raise ComputationFaultError(
                f"Mapper produced a value outside the packed pixel range in [{start}, {end})"
            )
        output[start:end] = mapped

    # =========================================================================
    # Chunk execution
    # =========================================================================

    @staticmethod
    def _read_chunk(pair: ImagePair, start: int, end: int) -> tuple[list[int], list[int]]:
        baseline = pair.baseline.pixels[start:end].tolist()
        current = pair.current.pixels[start:end].tolist()
        if len(baseline) != end - start or len(current) != end - start:
            raise ComputationFaultError(
                f"Chunk range [{start}, {end}) exceeds buffer of "
                f"{min(pair.baseline.size, pair.current.size)} pixels"
            )
        return baseline, current

    def _run_chunks(self, layout: ChunkLayout, work: Callable[[int], T]) -> list[T]:
        """Run ``work`` for every chunk and wait for all of them."""
        if layout.chunks == 0:
            return []

        max_workers = min(self._worker_count, layout.chunks)
        with ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="screendiff-chunk"
        ) as executor:
            futures: list[Future[T]] = [
                executor.submit(work, chunk) for chunk in range(layout.chunks)
            ]

            results: list[T] = []
            for chunk, future in enumerate(futures):
                try:
                    results.append(future.result())
                except Exception as e:
                    for pending in futures:
                        pending.cancel()
                    self._log.error("Pixel chunk failed", chunk=chunk, error=str(e))
                    raise PixelProcessingError(
                        f"Chunk {chunk} failed: {e}", chunk=chunk
                    ) from e

        return results

    def _log_layout(self, operation: str, pair: ImagePair, layout: ChunkLayout) -> None:
        self._log.debug(
            "Processing pixel chunks",
            operation=operation,
            size=f"{pair.width}x{pair.height}",
            chunk_size=layout.chunk_size,
            chunks=layout.chunks,
            workers=min(self._worker_count, layout.chunks),
        )
