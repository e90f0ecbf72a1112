"""Pytest fixtures for screendiff tests."""

from __future__ import annotations

import numpy as np
import pytest

from screendiff.processor import ParallelPixelProcessor, PixelBuffer, pack_argb


@pytest.fixture
def processor() -> ParallelPixelProcessor:
    """Processor with a fixed worker count so chunk layouts are predictable."""
    return ParallelPixelProcessor(worker_count=4)


@pytest.fixture
def single_worker_processor() -> ParallelPixelProcessor:
    """Processor that runs everything in a single chunk."""
    return ParallelPixelProcessor(worker_count=1)


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded random generator for reproducible pixel data."""
    return np.random.default_rng(20191105)


@pytest.fixture
def random_buffer(rng: np.random.Generator) -> PixelBuffer:
    """A 13x7 buffer of opaque random colors (91 pixels, not a multiple of 4)."""
    channels = rng.integers(0, 256, size=(7, 13, 3), dtype=np.uint8)
    return PixelBuffer.from_array(channels)


@pytest.fixture
def red_square() -> PixelBuffer:
    """A 4x4 buffer of opaque red."""
    return PixelBuffer.filled(4, 4, pack_argb(255, 0, 0))
