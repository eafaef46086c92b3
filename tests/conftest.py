"""Shared fixtures: generated images and call-recording collaborators."""

from pathlib import Path

import piexif
import pytest
from PIL import Image

from config import DEFAULT_MAX_DIMENSION
from src.pixpress.codec import PillowCodec
from src.pixpress.metadata import PiexifMetadata


def sample_exif() -> bytes:
    """EXIF block with camera, exposure and GPS tags."""
    exif = {
        "0th": {
            piexif.ImageIFD.Make: b"Canon",
            piexif.ImageIFD.Model: b"EOS 5D",
            piexif.ImageIFD.Software: b"pixpress-tests",
        },
        "Exif": {
            piexif.ExifIFD.ExposureTime: (1, 250),
            piexif.ExifIFD.FNumber: (28, 10),
            piexif.ExifIFD.ISOSpeedRatings: 200,
            piexif.ExifIFD.FocalLength: (50, 1),
        },
        "GPS": {
            piexif.GPSIFD.GPSLatitudeRef: b"N",
            piexif.GPSIFD.GPSLatitude: ((52, 1), (30, 1), (0, 1)),
            piexif.GPSIFD.GPSLongitudeRef: b"W",
            piexif.GPSIFD.GPSLongitude: ((13, 1), (24, 1), (0, 1)),
            piexif.GPSIFD.GPSAltitudeRef: 1,
            piexif.GPSIFD.GPSAltitude: (100, 1),
        },
        "1st": {},
        "thumbnail": None,
    }
    return piexif.dump(exif)


@pytest.fixture
def make_image(tmp_path):
    """Factory writing a generated image and returning its path."""

    def _make(name="image.jpg", size=(400, 200), mode="RGB", exif=None, fmt=None, directory=None):
        directory = Path(directory) if directory is not None else tmp_path
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        color = {"RGB": (200, 80, 40), "RGBA": (200, 80, 40, 128), "L": 128}.get(mode, 0)
        img = Image.new(mode, size, color)
        if mode == "RGB":
            # A gradient strip so encoders have some real content to compress
            for x in range(min(size[0], 64)):
                img.putpixel((x, 0), (x * 4, 0, 255 - x * 4))
        params = {}
        if exif is not None:
            params["exif"] = exif
        img.save(path, format=fmt, **params)
        return path

    return _make


@pytest.fixture
def corrupt_image(tmp_path):
    def _make(name="broken.jpg", directory=None):
        directory = Path(directory) if directory is not None else tmp_path
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(b"this is not an image at all")
        return path

    return _make


class SpyCodec(PillowCodec):
    """PillowCodec that records which operations were invoked."""

    def __init__(self):
        self.calls = []

    def load(self, path, max_dimension=DEFAULT_MAX_DIMENSION):
        self.calls.append("load")
        return super().load(path, max_dimension)

    def resample(self, image, width, height, algorithm):
        self.calls.append("resample")
        return super().resample(image, width, height, algorithm)

    def encode(self, image, path, format, quality, progressive=False):
        self.calls.append("encode")
        return super().encode(image, path, format, quality, progressive)

    def optimize_lossless(self, data, format):
        self.calls.append("optimize")
        return super().optimize_lossless(data, format)


class SpyMetadata(PiexifMetadata):
    def __init__(self):
        self.strip_calls = 0

    def strip_metadata(self, image, path):
        self.strip_calls += 1
        return super().strip_metadata(image, path)


@pytest.fixture
def spy_codec():
    return SpyCodec()


@pytest.fixture
def spy_metadata():
    return SpyMetadata()


@pytest.fixture
def exif_bytes():
    return sample_exif()
