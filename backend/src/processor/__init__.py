"""
Pixel processing module.

Provides:
- PixelBuffer and ImagePair value types
- ChunkLayout for partitioning the flat pixel index space
- ParallelPixelProcessor for concurrent analyze/transform passes
"""

from screendiff.processor.buffers import (
    ChunkLayout,
    ImagePair,
    PixelBuffer,
    pack_argb,
    unpack_argb,
)
from screendiff.processor.parallel import (
    CoordinateMapping,
    ParallelPixelProcessor,
    PixelMapper,
    PixelPredicate,
    Position,
    default_worker_count,
)

__all__ = [
    # Buffers
    "ChunkLayout",
    "ImagePair",
    "PixelBuffer",
    "pack_argb",
    "unpack_argb",
    # Processor
    "CoordinateMapping",
    "ParallelPixelProcessor",
    "PixelMapper",
    "PixelPredicate",
    "Position",
    "default_worker_count",
]
