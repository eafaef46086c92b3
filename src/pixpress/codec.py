"""Decode, resample and encode images.

``ImageCodec`` is the interface the pipeline depends on. ``PillowCodec`` is the
implementation backed by Pillow. Encoders run into memory first so that codec
failures surface as :class:`ProcessingError` while filesystem failures
propagate as ``OSError``.
"""

from __future__ import annotations

import logging
import threading
import warnings
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Protocol, Tuple

from PIL import Image, UnidentifiedImageError

from config import DEFAULT_MAX_DIMENSION, ImageFormat, ResizeAlgorithm
from .errors import InvalidParameter, MemoryLimitExceeded, ProcessingError, UnsupportedFormat

logger = logging.getLogger(__name__)


EXTENSION_FORMATS: Dict[str, ImageFormat] = {
    "jpg": ImageFormat.JPEG,
    "jpeg": ImageFormat.JPEG,
    "png": ImageFormat.PNG,
    "webp": ImageFormat.WEBP,
    "gif": ImageFormat.GIF,
    "bmp": ImageFormat.BMP,
    "tif": ImageFormat.TIFF,
    "tiff": ImageFormat.TIFF,
}

# Pillow format names that are written as one of ours. MPO is what Pillow
# reports for many camera JPEGs.
SIGNATURE_FORMATS: Dict[str, ImageFormat] = {
    **{fmt.value: fmt for fmt in ImageFormat},
    "MPO": ImageFormat.JPEG,
}

# Formats whose Pillow encoder accepts an ``exif`` argument.
EXIF_FORMATS = (ImageFormat.JPEG, ImageFormat.PNG, ImageFormat.WEBP)

JPEG_MODES = ("1", "L", "RGB", "CMYK")
BMP_MODES = ("1", "L", "P", "RGB", "RGBA")

# Guards the temporary change to Image.MAX_IMAGE_PIXELS, a process-wide setting
_OPEN_LOCK = threading.Lock()


def open_image(path: Path) -> Image.Image:
    """``Image.open`` without Pillow's total pixel cap.

    Only the header is read here. Callers enforce the configured per-axis
    limit from ``img.size`` before decoding any pixel data.
    """

    with _OPEN_LOCK:
        saved = Image.MAX_IMAGE_PIXELS
        Image.MAX_IMAGE_PIXELS = None
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", Image.DecompressionBombWarning)
                return Image.open(path)
        finally:
            Image.MAX_IMAGE_PIXELS = saved


class ImageCodec(Protocol):
    """Protocol for the decode/encode collaborator used by the pipeline."""

    def detect_format(self, path: Path) -> ImageFormat: ...
    def probe(self, path: Path) -> Tuple[int, int, str]: ...
    def load(self, path: Path, max_dimension: int = DEFAULT_MAX_DIMENSION) -> Image.Image: ...
    def resample(
        self, image: Image.Image, width: int, height: int, algorithm: ResizeAlgorithm
    ) -> Image.Image: ...
    def encode(
        self,
        image: Image.Image,
        path: Path,
        format: ImageFormat,
        quality: int,
        progressive: bool = False,
    ) -> None: ...
    def optimize_lossless(self, data: bytes, format: ImageFormat) -> bytes: ...


def map_resample(algorithm: ResizeAlgorithm) -> Image.Resampling:
    """Map a resize algorithm to a Pillow resampling constant.

    Parameters
    ----------
    algorithm
        One of the :class:`config.ResizeAlgorithm` members.

    Returns
    -------
    Image.Resampling
        Pillow resampling filter.
    """

    if algorithm is ResizeAlgorithm.NEAREST:
        return Image.Resampling.NEAREST
    if algorithm is ResizeAlgorithm.BILINEAR:
        return Image.Resampling.BILINEAR
    if algorithm is ResizeAlgorithm.BICUBIC:
        return Image.Resampling.BICUBIC
    return Image.Resampling.LANCZOS


def flatten_to_rgb(image: Image.Image) -> Image.Image:
    """Composite transparent images onto white and return an RGB image."""

    has_alpha = image.mode in ("RGBA", "LA") or (
        image.mode == "P" and "transparency" in image.info
    )
    if not has_alpha:
        return image.convert("RGB")

    rgba = image.convert("RGBA")
    background = Image.new("RGB", rgba.size, (255, 255, 255))
    background.paste(rgba, mask=rgba.split()[3])  # 3 is the alpha channel
    rgba.close()
    return background


def prepare_for_format(image: Image.Image, format: ImageFormat) -> Image.Image:
    """Convert ``image`` to a mode the target encoder accepts.

    Returns the same object when no conversion is needed.
    """

    if format is ImageFormat.JPEG and image.mode not in JPEG_MODES:
        return flatten_to_rgb(image)
    if format is ImageFormat.PNG and image.mode == "CMYK":
        return image.convert("RGB")
    if format is ImageFormat.BMP and image.mode not in BMP_MODES:
        return image.convert("RGBA" if "A" in image.getbands() else "RGB")
    return image


def save_params(
    image: Image.Image, format: ImageFormat, quality: int, progressive: bool
) -> Dict[str, Any]:
    """Encoder keyword arguments for ``format``.

    EXIF bytes still present in ``image.info`` are carried over for formats
    that support them, so a stripped image writes none.
    """

    params: Dict[str, Any] = {}
    if format is ImageFormat.JPEG:
        params.update({"quality": quality, "optimize": True, "progressive": progressive})
    elif format is ImageFormat.PNG:
        params.update({"compress_level": 6})
    elif format is ImageFormat.WEBP:
        params.update({"quality": quality, "method": 4})
    elif format is ImageFormat.GIF:
        params.update({"optimize": True})
    elif format is ImageFormat.BMP:
        pass
    elif format is ImageFormat.TIFF:
        params.update({"compression": "tiff_deflate"})
    else:
        raise UnsupportedFormat(f"No encoder for {format}")

    exif = image.info.get("exif")
    if exif and format in EXIF_FORMATS:
        params["exif"] = exif
    return params


class PillowCodec:
    """Pillow implementation of :class:`ImageCodec`."""

    def detect_format(self, path: Path) -> ImageFormat:
        """Infer the format from the extension, falling back to the file signature.

        Raises
        ------
        UnsupportedFormat
            If neither the extension nor the signature is recognized.
        """

        path = Path(path)
        by_extension = EXTENSION_FORMATS.get(path.suffix.lower().lstrip("."))
        if by_extension is not None:
            return by_extension

        try:
            with open_image(path) as img:
                signature = img.format
        except (UnidentifiedImageError, OSError) as exc:
            raise UnsupportedFormat(f"Failed to detect format for: {path}") from exc

        fmt = SIGNATURE_FORMATS.get(signature or "")
        if fmt is None:
            raise UnsupportedFormat(f"Failed to detect format for: {path}")
        return fmt

    def probe(self, path: Path) -> Tuple[int, int, str]:
        """Read width, height and format label from the header only."""

        try:
            with open_image(path) as img:
                return img.width, img.height, img.format or "Unknown"
        except UnidentifiedImageError as exc:
            raise ProcessingError(f"Failed to read image header: {exc}") from exc

    def load(self, path: Path, max_dimension: int = DEFAULT_MAX_DIMENSION) -> Image.Image:
        """Fully decode ``path`` into memory.

        Parameters
        ----------
        path
            Image file to decode.
        max_dimension
            Largest width or height accepted. Checked against the header
            before any pixel data is decoded; this replaces Pillow's own
            total pixel cap.

        Raises
        ------
        InvalidParameter
            If the file does not exist or is empty.
        MemoryLimitExceeded
            If either axis exceeds ``max_dimension``.
        ProcessingError
            If the file cannot be decoded.
        """

        path = Path(path)
        logger.debug("Loading image from: %s", path)

        if not path.exists():
            raise InvalidParameter(f"File does not exist: {path}")
        if path.stat().st_size == 0:
            raise InvalidParameter(f"File is empty: {path}")

        try:
            img = open_image(path)
        except (UnidentifiedImageError, SyntaxError) as exc:
            raise ProcessingError(f"Failed to decode image: {exc}") from exc

        if img.width > max_dimension or img.height > max_dimension:
            img.close()
            raise MemoryLimitExceeded(
                f"Image dimensions {img.width}x{img.height} exceed maximum "
                f"{max_dimension}x{max_dimension}"
            )

        try:
            img.load()
        except (OSError, SyntaxError, ValueError) as exc:
            img.close()
            raise ProcessingError(f"Failed to decode image: {exc}") from exc

        logger.info(
            "Loaded image: %dx%d pixels, mode: %s", img.width, img.height, img.mode
        )
        return img

    def resample(
        self, image: Image.Image, width: int, height: int, algorithm: ResizeAlgorithm
    ) -> Image.Image:
        size = (max(1, width), max(1, height))
        logger.debug(
            "Resizing image from %dx%d to %dx%d", image.width, image.height, *size
        )
        return image.resize(size, map_resample(algorithm))

    def encode_to_bytes(
        self,
        image: Image.Image,
        format: ImageFormat,
        quality: int,
        progressive: bool = False,
    ) -> bytes:
        """Encode ``image`` in memory.

        Raises
        ------
        ProcessingError
            If the encoder rejects the image.
        """

        params = save_params(image, format, quality, progressive)
        prepared = prepare_for_format(image, format)
        buffer = BytesIO()
        try:
            prepared.save(buffer, format=format.value, **params)
        except (OSError, ValueError, KeyError) as exc:
            raise ProcessingError(f"Failed to encode image as {format.value}: {exc}") from exc
        finally:
            if prepared is not image:
                prepared.close()
        return buffer.getvalue()

    def encode(
        self,
        image: Image.Image,
        path: Path,
        format: ImageFormat,
        quality: int,
        progressive: bool = False,
    ) -> None:
        logger.debug(
            "Saving image to %s with format %s, quality: %d", path, format.value, quality
        )
        data = self.encode_to_bytes(image, format, quality, progressive)
        Path(path).write_bytes(data)
        logger.info("Saved image: %s (%d bytes)", path, len(data))

    def optimize_lossless(self, data: bytes, format: ImageFormat) -> bytes:
        """Recompress PNG bytes at maximum effort; other formats pass through.

        The smaller of the input and the recompressed bytes is returned.
        """

        if format is not ImageFormat.PNG:
            return data

        out = BytesIO()
        try:
            with Image.open(BytesIO(data)) as img:
                img.load()
                params: Dict[str, Any] = {"optimize": True}
                if img.info.get("exif"):
                    params["exif"] = img.info["exif"]
                img.save(out, format="PNG", **params)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise ProcessingError(f"PNG optimization failed: {exc}") from exc

        optimized = out.getvalue()
        if len(optimized) < len(data):
            logger.debug("PNG optimized from %d to %d bytes", len(data), len(optimized))
            return optimized
        return data
