"""Single image pipeline.

``ImageProcessor.process`` runs validate, size gate, load, strip, resize,
format selection, encode and stat collection for one input/output pair. Each
step is a hard gate: the first failure propagates and later steps never run.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image

from config import MAX_TARGET_DIMENSION, ImageFormat, ProcessConfig
from .codec import ImageCodec, PillowCodec
from .errors import (
    InvalidParameter,
    MemoryLimitExceeded,
    ProcessingCancelled,
    ProcessingError,
    SecurityError,
)
from .io_utils import ensure_dir, is_path_traversal
from .metadata import MetadataHandler, PiexifMetadata
from .models import ImageMetadata, ProcessingStats
from .resize import compute_target_dimensions, mode_from_config, resize_image

logger = logging.getLogger(__name__)


class ImageProcessor:
    """Resize, recompress and optionally strip metadata from single images.

    Parameters
    ----------
    config
        Processing parameters. ``ProcessConfig`` validates itself on
        construction, so any instance passed here is already valid.
    codec
        Decode/encode collaborator. Defaults to :class:`PillowCodec`.
    metadata
        Metadata collaborator. Defaults to :class:`PiexifMetadata`.
    """

    def __init__(
        self,
        config: ProcessConfig,
        codec: Optional[ImageCodec] = None,
        metadata: Optional[MetadataHandler] = None,
    ) -> None:
        if not isinstance(config, ProcessConfig):
            raise TypeError(f"Expected ProcessConfig, got {type(config).__name__}")
        self.config = config
        self.codec = codec if codec is not None else PillowCodec()
        self.metadata = metadata if metadata is not None else PiexifMetadata()

    def process(
        self,
        input_path: Path,
        output_path: Path,
        cancel: Optional[threading.Event] = None,
    ) -> ProcessingStats:
        """Process one image and write the result.

        Parameters
        ----------
        input_path
            Source image.
        output_path
            Destination file. Parent directories are created as needed.
        cancel
            Optional event checked between steps; when set the call stops
            with :class:`ProcessingCancelled`.

        Returns
        -------
        ProcessingStats
            Count of 1 with the input and output file sizes.

        Raises
        ------
        SecurityError
            Either path contains a ``..`` segment.
        InvalidParameter
            The input does not exist.
        MemoryLimitExceeded
            The file size, decoded dimensions or resize target exceed the
            configured limits.
        ProcessingError
            The codec failed to decode or encode.
        OSError
            Filesystem failures.
        """

        input_path = Path(input_path)
        output_path = Path(output_path)

        self.validate_paths(input_path, output_path)
        logger.debug("Processing %s -> %s", input_path, output_path)

        original_size = input_path.stat().st_size
        max_size = self.config.max_file_size
        if max_size is not None and original_size > max_size:
            raise MemoryLimitExceeded(f"File size {original_size} exceeds limit {max_size}")

        self._check_cancel(cancel, input_path)
        image = self.codec.load(input_path, self.config.max_dimension)
        try:
            self._check_dimensions(image)

            if self.config.strip_metadata:
                image = self._replace(image, self.metadata.strip_metadata(image, input_path))

            if self.config.wants_resize:
                self._check_cancel(cancel, input_path)
                image = self._replace(image, self._resize(image))

            output_format = self.select_format(input_path)

            self._check_cancel(cancel, input_path)
            self.codec.encode(
                image,
                output_path,
                output_format,
                self.config.quality,
                progressive=self.config.progressive_jpeg,
            )
        finally:
            image.close()

        if output_format is ImageFormat.PNG and self.config.optimize_png:
            self._optimize_output(output_path, output_format)

        new_size = output_path.stat().st_size
        return ProcessingStats(
            processed_count=1,
            total_size_before=original_size,
            total_size_after=new_size,
        )

    def select_format(self, input_path: Path) -> ImageFormat:
        """Explicit configured format, otherwise the format detected from the input."""

        explicit = self.config.format.image_format
        if explicit is not None:
            return explicit
        return self.codec.detect_format(input_path)

    def get_metadata(self, path: Path) -> ImageMetadata:
        """Snapshot of dimensions, format, EXIF presence and size for ``path``."""

        path = Path(path)
        if not path.exists():
            raise InvalidParameter(f"File does not exist: {path}")

        file_size = path.stat().st_size
        width, height, label = self.codec.probe(path)
        has_exif = self.metadata.has_metadata(path)
        return ImageMetadata(
            width=width,
            height=height,
            format=label,
            has_exif=has_exif,
            file_size=file_size,
        )

    def validate_paths(self, input_path: Path, output_path: Path) -> None:
        if is_path_traversal(input_path):
            raise SecurityError("Path traversal detected in input path")
        if is_path_traversal(output_path):
            raise SecurityError("Path traversal detected in output path")
        if not input_path.exists():
            raise InvalidParameter(f"Input file does not exist: {input_path}")
        ensure_dir(output_path.parent)

    def _check_dimensions(self, image: Image.Image) -> None:
        limit = self.config.max_dimension
        if image.width > limit or image.height > limit:
            raise MemoryLimitExceeded(
                f"Image dimensions {image.width}x{image.height} exceed maximum {limit}x{limit}"
            )

    def _resize(self, image: Image.Image) -> Image.Image:
        mode = mode_from_config(self.config.width, self.config.height, self.config.scale)
        target = compute_target_dimensions(image.size, mode, self.config.keep_aspect)
        self._check_target(target)
        return resize_image(image, target, self.config.algorithm, self.codec)

    def _check_target(self, target: Tuple[int, int]) -> None:
        """Reject resize targets larger than the decode limits before allocating them."""

        limit = min(MAX_TARGET_DIMENSION, self.config.max_dimension)
        width, height = target
        if width > limit or height > limit:
            raise MemoryLimitExceeded(
                f"Target dimensions {width}x{height} exceed maximum {limit}x{limit}"
            )

    def _optimize_output(self, output_path: Path, output_format: ImageFormat) -> None:
        """Replace the written file with optimized bytes when they are smaller.

        The encoded output is already complete, so an optimizer failure keeps
        it as is.
        """

        data = output_path.read_bytes()
        try:
            optimized = self.codec.optimize_lossless(data, output_format)
        except ProcessingError as e:
            logger.warning("Keeping unoptimized output %s: %s", output_path, e)
            return
        if len(optimized) < len(data):
            output_path.write_bytes(optimized)

    @staticmethod
    def _replace(current: Image.Image, new: Image.Image) -> Image.Image:
        """Hand ownership to ``new``, closing ``current`` if it was replaced."""

        if new is not current:
            current.close()
        return new

    @staticmethod
    def _check_cancel(cancel: Optional[threading.Event], input_path: Path) -> None:
        if cancel is not None and cancel.is_set():
            raise ProcessingCancelled(f"Processing of {input_path} was cancelled")
