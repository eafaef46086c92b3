"""Exceptions raised by the processing pipeline."""

from __future__ import annotations


class ImageToolError(Exception):
    """Base class for every error raised by pixpress."""

    label = "Image tool error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.label}: {self.message}"


class InvalidParameter(ImageToolError):
    """Bad configuration, or a missing/invalid path supplied by the user."""

    label = "Invalid parameter"


class UnsupportedFormat(ImageToolError):
    label = "Unsupported format"


class ProcessingError(ImageToolError):
    """Decode, encode or optimization failure inside the codec."""

    label = "Processing error"


class ProcessingCancelled(ProcessingError):
    label = "Cancelled"


class SecurityError(ImageToolError):
    """A path contains a parent-directory traversal segment."""

    label = "Security error"


class MemoryLimitExceeded(ImageToolError):
    """File size or decoded dimensions exceed the configured limits."""

    label = "Memory limit exceeded"
