"""
screendiff - screenshot regression verification core.

Compares a baseline capture against a current one, either exactly or with a
perceptual CIE-Lab tolerance, on a parallel chunked pixel processor, and
builds red/black diff images for failed comparisons.
"""

__version__ = "1.0.0"

from screendiff.compare import (
    BitmapCompare,
    ComparisonMode,
    ComparisonResult,
    DiffColor,
    ExactCompare,
    FuzzyCompare,
    ScreenshotVerifier,
    calculate_delta_e,
    create_comparator,
    generate_diff,
)
from screendiff.config import (
    ComparisonConfig,
    ComparisonSettings,
    ProcessorConfig,
    load_comparison_config,
)
from screendiff.errors import (
    ComputationFaultError,
    InvalidBufferError,
    InvalidConfigurationError,
    PixelProcessingError,
    ScreenDiffError,
)
from screendiff.logs import configure_logging
from screendiff.processor import (
    ChunkLayout,
    CoordinateMapping,
    ImagePair,
    ParallelPixelProcessor,
    PixelBuffer,
    pack_argb,
    unpack_argb,
)

__all__ = [
    "__version__",
    # Compare
    "BitmapCompare",
    "ComparisonMode",
    "ComparisonResult",
    "DiffColor",
    "ExactCompare",
    "FuzzyCompare",
    "ScreenshotVerifier",
    "calculate_delta_e",
    "create_comparator",
    "generate_diff",
    # Config
    "ComparisonConfig",
    "ComparisonSettings",
    "ProcessorConfig",
    "load_comparison_config",
    # Errors
    "ComputationFaultError",
    "InvalidBufferError",
    "InvalidConfigurationError",
    "PixelProcessingError",
    "ScreenDiffError",
    # Logging
    "configure_logging",
    # Processor
    "ChunkLayout",
    "CoordinateMapping",
    "ImagePair",
    "ParallelPixelProcessor",
    "PixelBuffer",
    "pack_argb",
    "unpack_argb",
]
