"""Global configuration for the pixpress image batch tool.

This module centralizes defaults and user-tunable settings for:
- which files count as images when walking a directory
- resize algorithm and output format choices
- the validated processing configuration shared by every pipeline stage

All values can be overridden via CLI flags or direct construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.pixpress.errors import InvalidParameter


# Supported file extensions for images (lowercase, without the dot)
IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "bmp", "tiff", "tif", "webp")

# Largest width/height a user may request as a resize target.
MAX_TARGET_DIMENSION = 100_000

# Largest decoded width/height accepted by the loader (decompression bomb guard).
DEFAULT_MAX_DIMENSION = 100_000

DEFAULT_QUALITY = 85

RESAMPLE_METHOD = "lanczos3"  # one of {nearest, bilinear, bicubic, lanczos3}


class ResizeAlgorithm(Enum):
    """Resampling filter used when an image is resized."""

    NEAREST = "nearest"
    BILINEAR = "bilinear"
    BICUBIC = "bicubic"
    LANCZOS3 = "lanczos3"


class ImageFormat(Enum):
    """Formats the codec can write. Values are Pillow format names."""

    JPEG = "JPEG"
    PNG = "PNG"
    WEBP = "WEBP"
    GIF = "GIF"
    BMP = "BMP"
    TIFF = "TIFF"


class OutputFormat(Enum):
    """Output format requested by the user; ``SAME_AS_INPUT`` defers to detection."""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"
    GIF = "gif"
    BMP = "bmp"
    TIFF = "tiff"
    SAME_AS_INPUT = "same"

    @property
    def image_format(self) -> Optional[ImageFormat]:
        """Concrete format to encode with, or None to keep the input's format."""

        if self is OutputFormat.SAME_AS_INPUT:
            return None
        return ImageFormat[self.name]


@dataclass(frozen=True)
class ProcessConfig:
    """Validated, immutable processing parameters.

    Instances validate themselves on construction, so every ``ProcessConfig``
    that exists satisfies the rules in :meth:`validate`. Use
    ``dataclasses.replace`` to derive a modified copy; it is validated again.

    Attributes
    ----------
    width, height
        Target dimensions in pixels. ``0`` leaves the axis unspecified.
    scale
        Percentage scale factor. ``0`` leaves it unspecified. Mutually
        exclusive with ``width``/``height``.
    quality
        Encoder quality from 1 to 100 (JPEG and WebP).
    keep_aspect
        Fit within the requested box instead of stretching to it.
    strip_metadata
        Drop EXIF and similar metadata from the output.
    algorithm
        Resampling filter.
    max_file_size
        Inputs larger than this many bytes are rejected before decoding.
    format
        Explicit output format, or ``OutputFormat.SAME_AS_INPUT``.
    max_dimension
        Decoded images wider or taller than this are rejected.
    optimize_png
        Run a lossless recompression pass over PNG output.
    progressive_jpeg
        Write progressive JPEGs.
    """

    width: int = 0
    height: int = 0
    scale: float = 0.0
    quality: int = DEFAULT_QUALITY
    keep_aspect: bool = True
    strip_metadata: bool = False
    algorithm: ResizeAlgorithm = ResizeAlgorithm(RESAMPLE_METHOD)
    max_file_size: Optional[int] = None
    format: OutputFormat = OutputFormat.SAME_AS_INPUT
    max_dimension: int = DEFAULT_MAX_DIMENSION
    optimize_png: bool = True
    progressive_jpeg: bool = False

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check parameter combinations.

        Raises
        ------
        InvalidParameter
            If scale is combined with width/height, a dimension is negative or
            exceeds ``MAX_TARGET_DIMENSION``, quality is outside 1..100, or a
            size limit is not positive.
        """

        if self.scale > 0 and (self.width > 0 or self.height > 0):
            raise InvalidParameter("Cannot specify both scale and width/height")

        if self.width < 0 or self.height < 0 or self.scale < 0:
            raise InvalidParameter("Width, height and scale must not be negative")

        if self.width > MAX_TARGET_DIMENSION or self.height > MAX_TARGET_DIMENSION:
            raise InvalidParameter(
                f"Dimensions too large (max {MAX_TARGET_DIMENSION:,} pixels)"
            )

        if self.quality < 1 or self.quality > 100:
            raise InvalidParameter("Quality must be between 1 and 100")

        if self.max_file_size is not None and self.max_file_size <= 0:
            raise InvalidParameter("Maximum file size must be positive")

        if self.max_dimension < 1:
            raise InvalidParameter("Maximum dimension must be at least 1 pixel")

    @property
    def wants_resize(self) -> bool:
        """True when any of width, height or scale is set."""

        return self.width > 0 or self.height > 0 or self.scale > 0


# Default config instance used by the CLI for option defaults
DEFAULTS = ProcessConfig()
