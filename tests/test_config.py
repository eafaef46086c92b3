"""Tests for ProcessConfig validation and the format/algorithm enums."""

import dataclasses

import pytest

from config import (
    DEFAULTS,
    MAX_TARGET_DIMENSION,
    ImageFormat,
    OutputFormat,
    ProcessConfig,
    ResizeAlgorithm,
)
from src.pixpress.errors import InvalidParameter


class TestProcessConfigValidation:
    """Validation runs on construction."""

    def test_defaults_are_valid(self):
        assert DEFAULTS.quality == 85
        assert DEFAULTS.keep_aspect is True
        assert DEFAULTS.algorithm is ResizeAlgorithm.LANCZOS3
        assert DEFAULTS.format is OutputFormat.SAME_AS_INPUT
        assert DEFAULTS.max_file_size is None

    def test_scale_with_width_rejected(self):
        with pytest.raises(InvalidParameter, match="both scale and width/height"):
            ProcessConfig(scale=50, width=100)

    def test_scale_with_height_rejected(self):
        with pytest.raises(InvalidParameter):
            ProcessConfig(scale=50, height=100)

    def test_width_too_large(self):
        with pytest.raises(InvalidParameter, match="too large"):
            ProcessConfig(width=MAX_TARGET_DIMENSION + 1)

    def test_height_at_limit_is_allowed(self):
        assert ProcessConfig(height=MAX_TARGET_DIMENSION).height == MAX_TARGET_DIMENSION

    @pytest.mark.parametrize("quality", [0, 101, -5])
    def test_quality_out_of_range(self, quality):
        with pytest.raises(InvalidParameter, match="Quality"):
            ProcessConfig(quality=quality)

    @pytest.mark.parametrize("quality", [1, 100])
    def test_quality_bounds_accepted(self, quality):
        assert ProcessConfig(quality=quality).quality == quality

    def test_negative_dimension_rejected(self):
        with pytest.raises(InvalidParameter, match="negative"):
            ProcessConfig(width=-1)

    def test_non_positive_max_file_size_rejected(self):
        with pytest.raises(InvalidParameter, match="file size"):
            ProcessConfig(max_file_size=0)

    def test_max_dimension_must_be_positive(self):
        with pytest.raises(InvalidParameter):
            ProcessConfig(max_dimension=0)

    def test_error_message_has_category_prefix(self):
        with pytest.raises(InvalidParameter) as excinfo:
            ProcessConfig(quality=0)
        assert str(excinfo.value).startswith("Invalid parameter: ")

    def test_replace_revalidates(self):
        config = ProcessConfig(width=100)
        with pytest.raises(InvalidParameter):
            dataclasses.replace(config, scale=25)

    def test_config_is_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULTS.quality = 10


class TestDerivedValues:
    def test_wants_resize(self):
        assert not ProcessConfig().wants_resize
        assert ProcessConfig(width=10).wants_resize
        assert ProcessConfig(height=10).wants_resize
        assert ProcessConfig(scale=10).wants_resize

    def test_same_as_input_has_no_image_format(self):
        assert OutputFormat.SAME_AS_INPUT.image_format is None

    def test_output_format_maps_to_image_format(self):
        assert OutputFormat.JPEG.image_format is ImageFormat.JPEG
        assert OutputFormat.WEBP.image_format is ImageFormat.WEBP
        assert OutputFormat.TIFF.image_format is ImageFormat.TIFF
