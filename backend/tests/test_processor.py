"""
Unit tests for the parallel pixel processor.

Tests cover:
- analyze verdicts and per-chunk short-circuiting
- transform visiting every pixel exactly once
- Offset to position mapping
- Fault propagation from chunk workers
- Async entry points
"""

from __future__ import annotations

import threading
from collections import Counter
from unittest.mock import patch

import numpy as np
import pytest

from screendiff.config import ProcessorConfig
from screendiff.errors import (
    ComputationFaultError,
    InvalidConfigurationError,
    PixelProcessingError,
)
from screendiff.processor import (
    CoordinateMapping,
    ImagePair,
    ParallelPixelProcessor,
    PixelBuffer,
    Position,
    default_worker_count,
)


def indexed_buffer(width: int, height: int) -> PixelBuffer:
    """Buffer whose pixel values equal their flat offsets."""
    return PixelBuffer(width, height, np.arange(width * height, dtype=np.uint32))


class TestProcessorConfiguration:
    """Tests for processor construction."""

    def test_explicit_worker_count(self) -> None:
        """Test a fixed worker count is kept."""
        assert ParallelPixelProcessor(worker_count=3).worker_count == 3

    def test_default_worker_count_uses_cpu_count(self) -> None:
        """Test the CPU count is used when no worker count is given."""
        with patch("screendiff.processor.parallel.os.cpu_count", return_value=6):
            assert ParallelPixelProcessor().worker_count == 6

    def test_default_worker_count_falls_back_to_one(self) -> None:
        """Test an unknown CPU count falls back to a single worker."""
        with patch("screendiff.processor.parallel.os.cpu_count", return_value=None):
            assert default_worker_count() == 1

    def test_invalid_worker_count(self) -> None:
        """Test worker counts below 1 are rejected."""
        with pytest.raises(InvalidConfigurationError, match="worker_count"):
            ParallelPixelProcessor(worker_count=0)

    def test_invalid_coordinate_mapping(self) -> None:
        """Test unknown coordinate mappings are rejected."""
        with pytest.raises(InvalidConfigurationError, match="coordinate mapping"):
            ParallelPixelProcessor(coordinate_mapping="column_major")

    def test_from_config(self) -> None:
        """Test building a processor from ProcessorConfig."""
        config = ProcessorConfig(worker_count=2, coordinate_mapping=CoordinateMapping.ROW_MAJOR)
        processor = ParallelPixelProcessor.from_config(config)

        assert processor.worker_count == 2
        assert processor.coordinate_mapping == CoordinateMapping.ROW_MAJOR


class TestAnalyze:
    """Tests for ParallelPixelProcessor.analyze."""

    def test_identical_buffers_pass(
        self, processor: ParallelPixelProcessor, random_buffer: PixelBuffer
    ) -> None:
        """Test an equality predicate passes for identical buffers."""
        pair = ImagePair(random_buffer, random_buffer)
        assert processor.analyze(pair, lambda b, c, pos: b == c) is True

    def test_single_difference_fails(
        self, processor: ParallelPixelProcessor, random_buffer: PixelBuffer
    ) -> None:
        """Test one failing pixel fails the whole analysis."""
        current = random_buffer.with_pixel(12, 6, random_buffer.pixel_at(12, 6) ^ 0x1)
        pair = ImagePair(random_buffer, current)

        assert processor.analyze(pair, lambda b, c, pos: b == c) is False

    def test_failure_in_every_chunk_position(self) -> None:
        """Test a difference is caught whichever chunk it falls in."""
        processor = ParallelPixelProcessor(worker_count=3)
        baseline = indexed_buffer(5, 2)
        for offset in range(10):
            data = baseline.pixels.copy()
            data[offset] = 999
            pair = ImagePair(baseline, PixelBuffer(5, 2, data))
            assert processor.analyze(pair, lambda b, c, pos: b == c) is False

    def test_chunk_stops_at_first_failure(self) -> None:
        """Test a chunk stops scanning after its first failing pixel, siblings keep going."""
        processor = ParallelPixelProcessor(worker_count=2)
        baseline = indexed_buffer(4, 2)
        data = baseline.pixels.copy()
        data[1] = 999
        pair = ImagePair(baseline, PixelBuffer(4, 2, data))

        visited: list[int] = []
        lock = threading.Lock()

        def predicate(baseline_pixel: int, current_pixel: int, position: Position) -> bool:
            with lock:
                visited.append(baseline_pixel)
            return baseline_pixel == current_pixel

        assert processor.analyze(pair, predicate) is False
        assert sorted(visited) == [0, 1, 4, 5, 6, 7]

    def test_empty_buffers_pass(self, processor: ParallelPixelProcessor) -> None:
        """Test zero pixels trivially pass."""
        empty = PixelBuffer(0, 0, [])
        assert processor.analyze(ImagePair(empty, empty), lambda b, c, pos: False) is True

    def test_inputs_not_mutated(
        self, processor: ParallelPixelProcessor, random_buffer: PixelBuffer
    ) -> None:
        """Test the input buffers are left unchanged."""
        before = random_buffer.pixels.copy()
        processor.analyze(ImagePair(random_buffer, random_buffer), lambda b, c, pos: True)

        assert np.array_equal(random_buffer.pixels, before)


class TestTransform:
    """Tests for ParallelPixelProcessor.transform."""

    @pytest.mark.parametrize("worker_count", [1, 2, 3, 4, 5, 8, 64])
    def test_every_pixel_visited_exactly_once(self, worker_count: int) -> None:
        """Test pixel counts not divisible by the worker count leave no gaps or repeats."""
        processor = ParallelPixelProcessor(worker_count=worker_count)
        baseline = indexed_buffer(7, 3)

        seen: Counter[int] = Counter()
        lock = threading.Lock()

        def mapper(baseline_pixel: int, current_pixel: int, position: Position) -> int:
            with lock:
                seen[baseline_pixel] += 1
            return baseline_pixel

        result = processor.transform(ImagePair(baseline, baseline), mapper)

        assert seen == Counter(range(21))
        assert result == baseline

    def test_result_has_input_dimensions(self, processor: ParallelPixelProcessor) -> None:
        """Test the output buffer has the dimensions of the inputs."""
        buffer = indexed_buffer(5, 3)
        result = processor.transform(ImagePair(buffer, buffer), lambda b, c, pos: 0)

        assert (result.width, result.height) == (5, 3)
        assert set(result.pixels.tolist()) == {0}

    def test_results_written_to_matching_offsets(self, processor: ParallelPixelProcessor) -> None:
        """Test each chunk writes its own slice of the output."""
        baseline = indexed_buffer(9, 5)
        current = PixelBuffer(9, 5, np.full(45, 100, dtype=np.uint32))

        result = processor.transform(ImagePair(baseline, current), lambda b, c, pos: b + c)

        assert result.pixels.tolist() == [i + 100 for i in range(45)]

    def test_empty_buffers(self, processor: ParallelPixelProcessor) -> None:
        """Test zero pixels produce an empty buffer."""
        empty = PixelBuffer(0, 0, [])
        result = processor.transform(ImagePair(empty, empty), lambda b, c, pos: 1)

        assert result.size == 0

    def test_mapper_out_of_range_is_fault(self, processor: ParallelPixelProcessor) -> None:
        """Test a mapper returning a non-pixel value fails the operation."""
        buffer = indexed_buffer(4, 4)
        with pytest.raises(PixelProcessingError) as exc_info:
            processor.transform(ImagePair(buffer, buffer), lambda b, c, pos: -1)

        assert isinstance(exc_info.value.__cause__, ComputationFaultError)


class TestPositions:
    """Tests for the flat offset to (x, y) mapping."""

    def collect_positions(self, processor: ParallelPixelProcessor, width: int, height: int) -> dict[int, Position]:
        positions: dict[int, Position] = {}
        lock = threading.Lock()
        buffer = indexed_buffer(width, height)

        def predicate(baseline_pixel: int, current_pixel: int, position: Position) -> bool:
            with lock:
                positions[baseline_pixel] = position
            return True

        processor.analyze(ImagePair(buffer, buffer), predicate)
        return positions

    def test_legacy_mapping_divides_by_height(self) -> None:
        """
        Test the default mapping computes y as offset // height.

        This differs from row-major addressing on non-square buffers and is
        kept for compatibility with existing position consumers.
        """
        processor = ParallelPixelProcessor(worker_count=3)
        positions = self.collect_positions(processor, width=4, height=2)

        assert positions[5] == (1, 2)
        assert positions[7] == (3, 3)
        assert len(positions) == 8

    def test_row_major_mapping(self) -> None:
        """Test ROW_MAJOR computes y as offset // width."""
        processor = ParallelPixelProcessor(worker_count=3, coordinate_mapping=CoordinateMapping.ROW_MAJOR)
        positions = self.collect_positions(processor, width=4, height=2)

        assert positions[5] == (1, 1)
        assert positions == {offset: (offset % 4, offset // 4) for offset in range(8)}

    def test_mappings_agree_on_square_buffers(self) -> None:
        """Test both mappings give the same positions when width == height."""
        legacy = self.collect_positions(ParallelPixelProcessor(worker_count=4), 4, 4)
        row_major = self.collect_positions(
            ParallelPixelProcessor(worker_count=4, coordinate_mapping=CoordinateMapping.ROW_MAJOR), 4, 4
        )

        assert legacy == row_major

    def test_positions_account_for_chunk_offset(self) -> None:
        """Test positions use the global offset, not the index within the chunk."""
        processor = ParallelPixelProcessor(worker_count=3, coordinate_mapping=CoordinateMapping.ROW_MAJOR)
        positions = self.collect_positions(processor, width=5, height=5)

        assert positions[24] == (4, 4)
        assert positions[8] == (3, 1)


class TestFaultPropagation:
    """Tests for failures raised inside chunk workers."""

    def test_predicate_exception_fails_whole_operation(self, processor: ParallelPixelProcessor) -> None:
        """Test an exception in one chunk is raised to the caller."""
        buffer = indexed_buffer(4, 4)

        def predicate(baseline_pixel: int, current_pixel: int, position: Position) -> bool:
            if baseline_pixel == 9:
                raise KeyError("boom")
            return True

        with pytest.raises(PixelProcessingError) as exc_info:
            processor.analyze(ImagePair(buffer, buffer), predicate)

        assert exc_info.value.chunk == 2
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_processing_error_is_computation_fault(self, processor: ParallelPixelProcessor) -> None:
        """Test chunk failures can be caught as ComputationFaultError."""
        buffer = indexed_buffer(2, 2)

        def mapper(baseline_pixel: int, current_pixel: int, position: Position) -> int:
            raise ZeroDivisionError

        with pytest.raises(ComputationFaultError):
            processor.transform(ImagePair(buffer, buffer), mapper)

    def test_short_baseline_is_fault(self, single_worker_processor: ParallelPixelProcessor) -> None:
        """Test reading past the end of an undersized buffer fails instead of skipping pixels."""
        pair = ImagePair(indexed_buffer(2, 2), indexed_buffer(3, 3))

        with pytest.raises(PixelProcessingError, match="exceeds buffer"):
            single_worker_processor.analyze(pair, lambda b, c, pos: True)


class TestAsync:
    """Tests for the async entry points."""

    @pytest.mark.asyncio
    async def test_analyze_async(self, processor: ParallelPixelProcessor, random_buffer: PixelBuffer) -> None:
        """Test analyze_async returns the same verdict as analyze."""
        pair = ImagePair(random_buffer, random_buffer)
        assert await processor.analyze_async(pair, lambda b, c, pos: b == c) is True

    @pytest.mark.asyncio
    async def test_transform_async(self, processor: ParallelPixelProcessor) -> None:
        """Test transform_async builds the full output buffer."""
        buffer = indexed_buffer(6, 5)
        result = await processor.transform_async(ImagePair(buffer, buffer), lambda b, c, pos: b)

        assert result == buffer
