"""
Exception hierarchy for screendiff.

A dimension mismatch between baseline and current is a legitimate
comparison outcome and is reported as a ``False`` verdict, not raised.
"""

from __future__ import annotations


class ScreenDiffError(Exception):
    """Base exception for screendiff errors."""


class InvalidConfigurationError(ScreenDiffError, ValueError):
    """Raised when a comparison or processor is configured with illegal values."""


class InvalidBufferError(ScreenDiffError, ValueError):
    """Raised when pixel data does not match its declared dimensions."""


class ComputationFaultError(ScreenDiffError, RuntimeError):
    """Raised when an internal invariant is violated during pixel processing."""


class PixelProcessingError(ComputationFaultError):
    """Raised when a chunk worker fails; the whole operation fails with it."""

    def __init__(self, message: str, chunk: int | None = None) -> None:
        super().__init__(message)
        self.chunk = chunk
