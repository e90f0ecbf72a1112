"""
Pixel buffers and chunk partitioning.

A ``PixelBuffer`` is an immutable, flat sequence of packed ARGB samples
(``alpha << 24 | red << 16 | green << 8 | blue``) with its width and height.
Buffers are produced by a capture layer (or converted from Pillow images) and
handed to the processor as an ``ImagePair``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import numpy as np
from PIL import Image

from screendiff.errors import ComputationFaultError, InvalidBufferError

PIXEL_DTYPE = np.uint32
MAX_PIXEL_VALUE = 0xFFFFFFFF


def _is_integer_data(data: np.ndarray) -> bool:
    # Python ints beyond int64 arrive as an object array.
    if data.dtype == object:
        return all(
            isinstance(value, (int, np.integer)) and not isinstance(value, bool)
            for value in data
        )
    return np.issubdtype(data.dtype, np.integer)


def _check_color(color: int) -> None:
    if isinstance(color, bool) or not isinstance(color, (int, np.integer)):
        raise InvalidBufferError(f"Packed color must be an integer, got {color!r}")
    if not 0 <= color <= MAX_PIXEL_VALUE:
        raise InvalidBufferError(f"Packed color {color:#x} does not fit in an unsigned 32-bit integer")


def pack_argb(red: int, green: int, blue: int, alpha: int = 255) -> int:
    """Pack four 8-bit channels into a single ARGB integer."""
    for name, value in (("red", red), ("green", green), ("blue", blue), ("alpha", alpha)):
        if not 0 <= value <= 255:
            raise InvalidBufferError(f"{name} channel must be between 0 and 255, got {value}")
    return (alpha << 24) | (red << 16) | (green << 8) | blue


def unpack_argb(pixel: int) -> tuple[int, int, int, int]:
    """Split a packed pixel into ``(red, green, blue, alpha)``."""
    return (
        (pixel >> 16) & 0xFF,
        (pixel >> 8) & 0xFF,
        pixel & 0xFF,
        (pixel >> 24) & 0xFF,
    )


def _pack_channels(channels: np.ndarray) -> np.ndarray:
    """Pack an ``(h, w, 3|4)`` uint8 array into a flat ARGB uint32 array."""
    data = channels.astype(PIXEL_DTYPE)
    if channels.shape[2] == 4:
        alpha = data[..., 3]
    else:
        alpha = np.full(channels.shape[:2], 255, dtype=PIXEL_DTYPE)
    packed = (alpha << 24) | (data[..., 0] << 16) | (data[..., 1] << 8) | data[..., 2]
    return packed.reshape(-1)


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """Immutable packed-pixel image data with its declared dimensions."""

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise InvalidBufferError(
                f"Dimensions must be non-negative, got {self.width}x{self.height}"
            )

        data = np.asarray(self.pixels).reshape(-1)
        if data.size != self.width * self.height:
            raise InvalidBufferError(
                f"Expected {self.width * self.height} pixels for "
                f"{self.width}x{self.height}, got {data.size}"
            )
        if data.size == 0:
            data = np.zeros(0, dtype=PIXEL_DTYPE)
        elif not _is_integer_data(data):
            raise InvalidBufferError(f"Pixel values must be integers, got {data.dtype}")

        try:
            in_range = data.size == 0 or (data.min() >= 0 and data.max() <= MAX_PIXEL_VALUE)
        except (OverflowError, TypeError, ValueError) as e:
            raise InvalidBufferError(f"Unreadable pixel values: {e}") from e
        if not in_range:
            raise InvalidBufferError("Pixel values must fit in an unsigned 32-bit integer")

        data = data.astype(PIXEL_DTYPE)
        data.flags.writeable = False
        object.__setattr__(self, "pixels", data)

    @classmethod
    def filled(cls, width: int, height: int, color: int) -> PixelBuffer:
        """Create a buffer where every pixel has the same packed color."""
        _check_color(color)
        size = width * height if width >= 0 and height >= 0 else 0
        return cls(width, height, np.full(size, color, dtype=PIXEL_DTYPE))

    @classmethod
    def from_array(cls, array: np.ndarray) -> PixelBuffer:
        """
        Create a buffer from a numpy array.

        Accepts ``(height, width)`` arrays of packed pixels, or
        ``(height, width, 3)`` RGB / ``(height, width, 4)`` RGBA uint8 arrays.
        """
        arr = np.asarray(array)
        if arr.ndim == 2:
            height, width = arr.shape
            return cls(width, height, arr.reshape(-1))
        if arr.ndim == 3 and arr.shape[2] in (3, 4):
            height, width = arr.shape[:2]
            return cls(width, height, _pack_channels(arr))
        raise InvalidBufferError(f"Unsupported array shape: {arr.shape}")

    @classmethod
    def from_image(cls, image: Image.Image) -> PixelBuffer:
        """Create a buffer from a Pillow image (converted through RGBA)."""
        rgba = np.asarray(image.convert("RGBA"), dtype=np.uint8)
        return cls(image.width, image.height, _pack_channels(rgba))

    def to_array(self) -> np.ndarray:
        """Return an ``(height, width, 4)`` RGBA uint8 copy of the pixel data."""
        flat = self.pixels
        channels = np.stack(
            [
                (flat >> 16) & 0xFF,
                (flat >> 8) & 0xFF,
                flat & 0xFF,
                (flat >> 24) & 0xFF,
            ],
            axis=-1,
        ).astype(np.uint8)
        return channels.reshape(self.height, self.width, 4)

    def to_image(self) -> Image.Image:
        """Convert the buffer into an RGBA Pillow image."""
        return Image.fromarray(self.to_array())

    @property
    def size(self) -> int:
        """Total number of pixels."""
        return self.width * self.height

    def same_size(self, other: PixelBuffer) -> bool:
        """Check whether both buffers declare identical dimensions."""
        return self.width == other.width and self.height == other.height

    def pixel_at(self, x: int, y: int) -> int:
        """Read the packed pixel at row-major position ``(x, y)``."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} buffer")
        return int(self.pixels[y * self.width + x])

    def with_pixel(self, x: int, y: int, color: int) -> PixelBuffer:
        """Return a copy of this buffer with one pixel replaced."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} buffer")
        _check_color(color)
        data = self.pixels.copy()
        data[y * self.width + x] = color
        return PixelBuffer(self.width, self.height, data)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.same_size(other) and bool(np.array_equal(self.pixels, other.pixels))

    def __repr__(self) -> str:
        return f"PixelBuffer(width={self.width}, height={self.height})"


@dataclass(frozen=True)
class ImagePair:
    """The two operands of a processor run, staged together."""

    baseline: PixelBuffer
    current: PixelBuffer

    @property
    def width(self) -> int:
        return self.current.width

    @property
    def height(self) -> int:
        return self.current.height

    @property
    def total(self) -> int:
        return self.current.size

    @property
    def same_size(self) -> bool:
        return self.baseline.same_size(self.current)


@dataclass(frozen=True)
class ChunkLayout:
    """
    Partition of a flat pixel index space into contiguous chunks.

    ``chunk_size`` is ``total // worker_count`` clamped to at least 1, and
    ``chunks`` is ``ceil(total / chunk_size)``. The nominal end of the last
    chunk may pass ``total``; ``bounds`` clips it.
    """

    total: int
    chunk_size: int
    chunks: int

    @classmethod
    def for_size(cls, total: int, worker_count: int) -> ChunkLayout:
        """Compute the layout for ``total`` pixels spread over ``worker_count`` workers."""
        if worker_count < 1:
            raise ComputationFaultError(f"worker_count must be at least 1, got {worker_count}")
        chunk_size = max(1, total // worker_count)
        chunks = math.ceil(total / chunk_size)
        return cls(total=total, chunk_size=chunk_size, chunks=chunks)

    def bounds(self, chunk: int) -> tuple[int, int]:
        """Half-open ``[start, end)`` range for ``chunk``, clipped to ``total``."""
        if not 0 <= chunk < self.chunks:
            raise ComputationFaultError(f"Chunk {chunk} outside layout of {self.chunks} chunks")
        start = chunk * self.chunk_size
        end = min(start + self.chunk_size, self.total)
        return start, end

    def ranges(self) -> list[tuple[int, int]]:
        """All chunk bounds in order."""
        return [self.bounds(chunk) for chunk in range(self.chunks)]
