"""Resize modes and target dimension computation.

The dimension functions are pure: they take the original dimensions and a
resize mode and decide the output size. :func:`resize_image` hands the
actual resample to the codec (see :mod:`src.pixpress.codec`).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Tuple, Union

from PIL import Image

from config import ResizeAlgorithm
from .codec import ImageCodec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Absolute:
    """Fit within (or stretch to) a ``width`` x ``height`` box. ``0`` means unset."""

    width: int
    height: int


@dataclass(frozen=True)
class Scale:
    """Scale both axes by ``percent``."""

    percent: float


@dataclass(frozen=True)
class Width:
    width: int


@dataclass(frozen=True)
class Height:
    height: int


ResizeMode = Union[Absolute, Scale, Width, Height]


def _round(value: float) -> int:
    """Round half away from zero."""

    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def _scaled(length: int, ratio: float) -> int:
    return max(1, _round(length * ratio))


def mode_from_config(width: int, height: int, scale: float) -> ResizeMode:
    """Pick the resize mode implied by the configured width, height and scale.

    Precedence is scale, then both dimensions, then width only, then height
    only. With nothing set the result is ``Absolute(0, 0)``, which is a no-op.
    """

    if scale > 0:
        return Scale(scale)
    if width > 0 and height > 0:
        return Absolute(width, height)
    if width > 0:
        return Width(width)
    if height > 0:
        return Height(height)
    return Absolute(0, 0)


def fit_to_width(original: Tuple[int, int], width: int) -> Tuple[int, int]:
    orig_w, orig_h = original
    if width <= 0 or width == orig_w or orig_w <= 0:
        return original
    return width, _scaled(orig_h, width / orig_w)


def fit_to_height(original: Tuple[int, int], height: int) -> Tuple[int, int]:
    orig_w, orig_h = original
    if height <= 0 or height == orig_h or orig_h <= 0:
        return original
    return _scaled(orig_w, height / orig_h), height


def fit_within_box(original: Tuple[int, int], box: Tuple[int, int]) -> Tuple[int, int]:
    """Largest aspect-preserving size that fits inside ``box``.

    Parameters
    ----------
    original
        Source size (width, height).
    box
        Bounding size (width, height). A zero on one axis leaves that axis
        unconstrained.

    Returns
    -------
    tuple
        Target (width, height), each at least 1 pixel.
    """

    orig_w, orig_h = original
    box_w, box_h = box

    if box_w == 0 and box_h == 0:
        return original
    if box_w == 0:
        return fit_to_height(original, box_h)
    if box_h == 0:
        return fit_to_width(original, box_w)
    if orig_w <= 0 or orig_h <= 0:
        return max(1, orig_w), max(1, orig_h)

    ratio = min(box_w / orig_w, box_h / orig_h)
    return _scaled(orig_w, ratio), _scaled(orig_h, ratio)


def compute_target_dimensions(
    original: Tuple[int, int], mode: ResizeMode, keep_aspect: bool
) -> Tuple[int, int]:
    """Compute output dimensions for ``original`` under ``mode``.

    Total function: degenerate inputs clamp instead of raising.

    Parameters
    ----------
    original
        Source size (width, height).
    mode
        One of :class:`Absolute`, :class:`Scale`, :class:`Width`,
        :class:`Height`.
    keep_aspect
        Only affects :class:`Absolute`. When True the image is fit within the
        box; when False each set axis is stretched to the requested value.

    Returns
    -------
    tuple
        Target (width, height).
    """

    orig_w, orig_h = original

    if isinstance(mode, Absolute):
        if mode.width == 0 and mode.height == 0:
            return original
        if keep_aspect:
            return fit_within_box(original, (mode.width, mode.height))
        return mode.width or orig_w, mode.height or orig_h

    if isinstance(mode, Scale):
        if mode.percent <= 0:
            return original
        ratio = mode.percent / 100.0
        return _scaled(orig_w, ratio), _scaled(orig_h, ratio)

    if isinstance(mode, Width):
        return fit_to_width(original, mode.width)

    if isinstance(mode, Height):
        return fit_to_height(original, mode.height)

    raise TypeError(f"Unknown resize mode: {mode!r}")


def needs_resize(original: Tuple[int, int], target: Tuple[int, int]) -> bool:
    """False when the target equals the original, so the resample is skipped."""

    return tuple(original) != tuple(target)


def resize_image(
    image: Image.Image,
    target: Tuple[int, int],
    algorithm: ResizeAlgorithm,
    codec: ImageCodec,
) -> Image.Image:
    """Resample ``image`` to ``target`` through ``codec``.

    Returns ``image`` itself when it already has the target size.
    """

    if not needs_resize(image.size, target):
        logger.debug("Image dimensions unchanged, skipping resize")
        return image
    logger.debug("Resizing %dx%d -> %dx%d", image.width, image.height, target[0], target[1])
    return codec.resample(image, target[0], target[1], algorithm)
