"""I/O utilities and helpers for image processing.

This module provides helpers to check paths for traversal segments, enumerate
input images, name output files and format sizes for display.
"""

from __future__ import annotations

import math
import time
from pathlib import Path, PurePath
from typing import Generator, Optional, Union

from config import IMAGE_EXTENSIONS

PathLike = Union[str, Path]

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")

INVALID_FILENAME_CHARS = '/\\:*?"<>|'


def is_path_traversal(path: PathLike) -> bool:
    """Return True if ``path`` contains a parent-directory (``..``) segment.

    Parameters
    ----------
    path
        Path to check. Only its textual form is inspected; the filesystem is
        not touched.
    """

    return ".." in PurePath(str(path)).parts


def ensure_dir(path: Path) -> None:
    """Create a directory (and parents) if it does not exist.

    Parameters
    ----------
    path
        Directory path to create.
    """

    Path(path).mkdir(parents=True, exist_ok=True)


def get_file_extension(path: PathLike) -> Optional[str]:
    suffix = Path(path).suffix
    if not suffix:
        return None
    return suffix[1:].lower()


def is_supported_format(path: PathLike) -> bool:
    """True if the extension is on the recognized image allow-list (case-insensitive)."""

    return get_file_extension(path) in IMAGE_EXTENSIONS


def iter_image_paths(
    input_path: Path, recursive: bool = True, exclude: Optional[Path] = None
) -> Generator[Path, None, None]:
    """Yield image file paths from a file or directory, sorted.

    Parameters
    ----------
    input_path
        A path to a single image or a directory containing images.
    recursive
        Walk subdirectories at any depth when True, only the top level
        otherwise.
    exclude
        Directory whose contents are skipped (for example an output directory
        nested inside the input tree).

    Yields
    ------
    Path
        Individual image file paths.
    """

    path = Path(input_path)
    if path.is_file():
        if is_supported_format(path):
            yield path
        return
    if not path.is_dir():
        return

    excluded = Path(exclude).resolve() if exclude is not None else None
    candidates = path.rglob("*") if recursive else path.iterdir()
    for p in sorted(candidates):
        if not p.is_file() or not is_supported_format(p):
            continue
        if excluded is not None and excluded in p.resolve().parents:
            continue
        yield p


def generate_output_path(
    input_path: Path,
    output: Optional[Path] = None,
    suffix: str = "processed",
    timestamp: Optional[int] = None,
) -> Path:
    """Return ``output`` or build a non-colliding name beside the input.

    The generated name is ``<stem>_<suffix>_<timestamp>.<ext>``. If that file
    exists, ``_<n>`` is appended with ``n`` counting up from 1 until the name
    is free.

    Parameters
    ----------
    input_path
        Source image path.
    output
        Explicit output path. Returned unchanged when given.
    suffix
        Label describing the operation, e.g. ``"resized"``.
    timestamp
        Unix seconds to embed. Defaults to the current time.

    Returns
    -------
    Path
        Output path.
    """

    if output is not None:
        return Path(output)

    input_path = Path(input_path)
    stem = input_path.stem or "image"
    extension = input_path.suffix[1:] or "jpg"
    if timestamp is None:
        timestamp = int(time.time())

    suffix = sanitize_filename(suffix)
    candidate = input_path.with_name(f"{stem}_{suffix}_{timestamp}.{extension}")
    counter = 1
    while candidate.exists():
        candidate = input_path.with_name(f"{stem}_{suffix}_{timestamp}_{counter}.{extension}")
        counter += 1
    return candidate


def format_file_size(size: int) -> str:
    """Human-readable file size with two decimals, e.g. ``"1.50 MB"``."""

    if size <= 0:
        return "0 B"
    exponent = min(int(math.floor(math.log(size, 1024))), len(SIZE_UNITS) - 1)
    # log() can land just below an exact power of 1024
    if exponent + 1 < len(SIZE_UNITS) and size >= 1024 ** (exponent + 1):
        exponent += 1
    value = size / 1024 ** exponent
    return f"{value:.2f} {SIZE_UNITS[exponent]}"


def sanitize_filename(filename: str) -> str:
    return "".join("_" if c in INVALID_FILENAME_CHARS else c for c in filename)
