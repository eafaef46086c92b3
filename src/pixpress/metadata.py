"""EXIF inspection and stripping.

Metadata is read from the raw EXIF block Pillow exposes in ``Image.info`` and
parsed with piexif. Stripping works on the decoded image: removing the
metadata entries from ``info`` means the encoder has nothing to write back.
"""

from __future__ import annotations

import logging
import struct
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple

import piexif
from PIL import Image, UnidentifiedImageError

from .codec import open_image
from .errors import ProcessingError

logger = logging.getLogger(__name__)


ExifDict = Dict[str, Any]

IFD_NAMES = ("0th", "Exif", "GPS", "Interop", "1st")

# ``Image.info`` keys that carry descriptive metadata. ICC profiles are kept
# because dropping them changes how colors render.
METADATA_INFO_KEYS = ("exif", "xmp", "XML:com.adobe.xmp", "comment", "photoshop")

# (ifd, tag) -> human readable label, in display order
COMMON_FIELDS: Dict[Tuple[str, int], str] = {
    ("0th", piexif.ImageIFD.ImageDescription): "Description",
    ("0th", piexif.ImageIFD.Make): "Camera Make",
    ("0th", piexif.ImageIFD.Model): "Camera Model",
    ("0th", piexif.ImageIFD.DateTime): "Date/Time",
    ("Exif", piexif.ExifIFD.DateTimeOriginal): "Original Date/Time",
    ("Exif", piexif.ExifIFD.DateTimeDigitized): "Digitized Date/Time",
    ("Exif", piexif.ExifIFD.ExposureTime): "Exposure Time",
    ("Exif", piexif.ExifIFD.FNumber): "Aperture",
    ("Exif", piexif.ExifIFD.FocalLength): "Focal Length",
    ("Exif", piexif.ExifIFD.ISOSpeedRatings): "ISO",
    ("Exif", piexif.ExifIFD.ExposureProgram): "Exposure Program",
    ("Exif", piexif.ExifIFD.MeteringMode): "Metering Mode",
    ("Exif", piexif.ExifIFD.Flash): "Flash",
    ("Exif", piexif.ExifIFD.WhiteBalance): "White Balance",
    ("0th", piexif.ImageIFD.Orientation): "Orientation",
    ("0th", piexif.ImageIFD.XResolution): "X Resolution",
    ("0th", piexif.ImageIFD.YResolution): "Y Resolution",
    ("0th", piexif.ImageIFD.Software): "Software",
    ("0th", piexif.ImageIFD.Artist): "Artist",
    ("0th", piexif.ImageIFD.Copyright): "Copyright",
    ("GPS", piexif.GPSIFD.GPSLatitude): "GPS Latitude",
    ("GPS", piexif.GPSIFD.GPSLongitude): "GPS Longitude",
    ("GPS", piexif.GPSIFD.GPSAltitude): "GPS Altitude",
}

RATIONAL_TYPES = (piexif.TYPES.Rational, piexif.TYPES.SRational)


class MetadataHandler(Protocol):
    """Protocol for the metadata collaborator used by the pipeline."""

    def has_metadata(self, path: Path) -> bool: ...
    def strip_metadata(self, image: Image.Image, path: Path) -> Image.Image: ...
    def read_metadata(self, path: Path) -> Optional[ExifDict]: ...


def tag_name(ifd: str, tag: int) -> str:
    info = piexif.TAGS.get(ifd, {}).get(tag)
    if info is None:
        return f"Tag 0x{tag:04X}"
    return info["name"]


def _format_rational(value: Tuple[int, int]) -> str:
    num, den = value
    if den == 0:
        return str(num)
    if num % den == 0:
        return str(num // den)
    if num == 1:
        return f"1/{den}"
    return f"{num / den:.2f}"


def display_value(ifd: str, tag: int, value: Any) -> str:
    """Render a raw piexif value as text.

    Parameters
    ----------
    ifd
        IFD name the tag lives in (``"0th"``, ``"Exif"``, ...).
    tag
        Numeric tag id.
    value
        Value as returned by ``piexif.load``.

    Returns
    -------
    str
        Display string. Long binary blobs are summarized by length.
    """

    if isinstance(value, bytes):
        if len(value) > 64:
            return f"<{len(value)} bytes>"
        return value.decode("ascii", errors="replace").rstrip("\x00").strip()

    info = piexif.TAGS.get(ifd, {}).get(tag)
    if info is not None and info["type"] in RATIONAL_TYPES:
        if value and isinstance(value[0], tuple):
            return ", ".join(_format_rational(v) for v in value)
        return _format_rational(value)

    if isinstance(value, tuple):
        return ", ".join(str(v) for v in value)
    return str(value)


def _rational_to_float(value: Tuple[int, int]) -> float:
    num, den = value
    return num / den if den else 0.0


def _degrees_to_decimal(dms: Any, ref: Any) -> Optional[float]:
    if not dms or len(dms) < 3:
        return None
    deg, minutes, sec = (_rational_to_float(v) for v in dms[:3])
    decimal = deg + minutes / 60.0 + sec / 3600.0
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if isinstance(ref, str) and ref.strip("\x00 ") in ("S", "W"):
        return -decimal
    return decimal


class PiexifMetadata:
    """piexif implementation of :class:`MetadataHandler`."""

    def read_metadata(self, path: Path) -> Optional[ExifDict]:
        """Parse the EXIF block of ``path``.

        Returns
        -------
        dict or None
            piexif IFD dictionary, or None when the file carries no EXIF.

        Raises
        ------
        ProcessingError
            If the file is not an image or the EXIF block is malformed.
        """

        path = Path(path)
        try:
            with open_image(path) as img:
                raw = img.info.get("exif")
                if raw is None and img.format == "PNG":
                    # eXIf chunks after the image data are only seen on load
                    img.load()
                    raw = img.info.get("exif")
        except UnidentifiedImageError as exc:
            raise ProcessingError(f"EXIF read error: {exc}") from exc

        if not raw:
            logger.debug("No EXIF data found in %s", path)
            return None

        try:
            exif = piexif.load(raw)
        except (ValueError, OSError, struct.error) as exc:
            logger.warning("Failed to read EXIF from %s: %s", path, exc)
            raise ProcessingError(f"EXIF read error: {exc}") from exc

        if not any(exif.get(ifd) for ifd in IFD_NAMES) and not exif.get("thumbnail"):
            logger.debug("Empty EXIF block in %s", path)
            return None

        logger.debug("Found EXIF data in %s", path)
        return exif

    def has_metadata(self, path: Path) -> bool:
        return self.read_metadata(path) is not None

    def strip_metadata(self, image: Image.Image, path: Path) -> Image.Image:
        """Remove descriptive metadata from ``image`` so the encoder omits it."""

        removed = [key for key in METADATA_INFO_KEYS if image.info.pop(key, None) is not None]
        logger.debug("Stripped metadata from %s: %s", path, ", ".join(removed) or "none")
        return image

    def extract_common_metadata(self, exif: ExifDict) -> List[Tuple[str, str]]:
        """Return ``(tag name, value)`` pairs for the well-known tags present."""

        fields = []
        for (ifd, tag) in COMMON_FIELDS:
            value = exif.get(ifd, {}).get(tag)
            if value is not None:
                fields.append((tag_name(ifd, tag), display_value(ifd, tag, value)))
        return fields

    def format_metadata(self, exif: ExifDict) -> str:
        """Human-readable report of every tag, using friendly labels for common ones."""

        lines = ["=== EXIF Metadata ==="]
        for ifd in IFD_NAMES:
            for tag, value in sorted(exif.get(ifd, {}).items()):
                label = COMMON_FIELDS.get((ifd, tag), tag_name(ifd, tag))
                lines.append(f"{label:25}: {display_value(ifd, tag, value)}")
        return "\n".join(lines) + "\n"

    def extract_gps_coordinates(
        self, exif: ExifDict
    ) -> Optional[Tuple[float, float, Optional[float]]]:
        """Decimal (latitude, longitude, altitude); altitude may be None."""

        gps = exif.get("GPS") or {}
        latitude = _degrees_to_decimal(
            gps.get(piexif.GPSIFD.GPSLatitude), gps.get(piexif.GPSIFD.GPSLatitudeRef)
        )
        longitude = _degrees_to_decimal(
            gps.get(piexif.GPSIFD.GPSLongitude), gps.get(piexif.GPSIFD.GPSLongitudeRef)
        )
        if latitude is None or longitude is None:
            return None

        altitude = None
        raw_alt = gps.get(piexif.GPSIFD.GPSAltitude)
        if raw_alt is not None:
            altitude = _rational_to_float(raw_alt)
            # ref 1 means below sea level
            if gps.get(piexif.GPSIFD.GPSAltitudeRef) == 1:
                altitude = -altitude
        return latitude, longitude, altitude

    def get_camera_info(self, exif: ExifDict) -> Optional[Tuple[str, str]]:
        zeroth = exif.get("0th") or {}
        make = zeroth.get(piexif.ImageIFD.Make)
        model = zeroth.get(piexif.ImageIFD.Model)
        if make is None or model is None:
            return None
        return (
            display_value("0th", piexif.ImageIFD.Make, make),
            display_value("0th", piexif.ImageIFD.Model, model),
        )

    def get_exposure_info(self, exif: ExifDict) -> Optional[Tuple[str, str, str, str]]:
        """(exposure time, aperture, ISO, focal length), only when all are present."""

        tags = (
            piexif.ExifIFD.ExposureTime,
            piexif.ExifIFD.FNumber,
            piexif.ExifIFD.ISOSpeedRatings,
            piexif.ExifIFD.FocalLength,
        )
        sub = exif.get("Exif") or {}
        values = [sub.get(tag) for tag in tags]
        if any(v is None for v in values):
            return None
        exposure, aperture, iso, focal = (
            display_value("Exif", tag, value) for tag, value in zip(tags, values)
        )
        return exposure, aperture, iso, focal
