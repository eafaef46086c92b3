"""Tests for resize mode selection and target dimension computation."""

import pytest
from PIL import Image

from config import ResizeAlgorithm
from src.pixpress.resize import (
    Absolute,
    Height,
    Scale,
    Width,
    compute_target_dimensions,
    fit_within_box,
    mode_from_config,
    needs_resize,
    resize_image,
)

ORIGINALS = [(400, 200), (200, 400), (1920, 1080), (3, 7), (1, 1), (1000, 1)]
BOXES = [(100, 100), (50, 300), (1, 1), (640, 480), (5000, 10)]


class TestModeFromConfig:
    """Precedence: scale > both dimensions > width > height > no-op."""

    def test_scale_wins(self):
        assert mode_from_config(100, 100, 50) == Scale(50)

    def test_both_dimensions(self):
        assert mode_from_config(100, 80, 0) == Absolute(100, 80)

    def test_width_only(self):
        assert mode_from_config(100, 0, 0) == Width(100)

    def test_height_only(self):
        assert mode_from_config(0, 80, 0) == Height(80)

    def test_nothing_set(self):
        assert mode_from_config(0, 0, 0) == Absolute(0, 0)


class TestAbsoluteKeepAspect:
    def test_fit_within_square_box(self):
        """400x200 into 100x100 keeps 2:1."""
        assert compute_target_dimensions((400, 200), Absolute(100, 100), True) == (100, 50)

    def test_zero_box_is_noop(self):
        assert compute_target_dimensions((400, 200), Absolute(0, 0), True) == (400, 200)

    def test_width_only_box(self):
        assert compute_target_dimensions((400, 200), Absolute(100, 0), True) == (100, 50)

    def test_height_only_box(self):
        assert compute_target_dimensions((400, 200), Absolute(0, 50), True) == (100, 50)

    def test_upscale_fits_box(self):
        assert compute_target_dimensions((100, 50), Absolute(400, 400), True) == (400, 200)

    @pytest.mark.parametrize("original", ORIGINALS)
    @pytest.mark.parametrize("box", BOXES)
    def test_never_exceeds_box(self, original, box):
        width, height = compute_target_dimensions(original, Absolute(*box), True)
        assert 1 <= width <= box[0]
        assert 1 <= height <= box[1]

    @pytest.mark.parametrize("original", [(400, 200), (1920, 1080), (1000, 750)])
    def test_both_axes_use_the_smaller_ratio(self, original):
        box = (300, 300)
        ratio = min(box[0] / original[0], box[1] / original[1])
        width, height = fit_within_box(original, box)
        assert abs(width - original[0] * ratio) <= 0.5
        assert abs(height - original[1] * ratio) <= 0.5


class TestAbsoluteStretch:
    def test_exact_stretch(self):
        assert compute_target_dimensions((400, 200), Absolute(100, 100), False) == (100, 100)

    def test_unset_axis_keeps_original(self):
        assert compute_target_dimensions((400, 200), Absolute(100, 0), False) == (100, 200)
        assert compute_target_dimensions((400, 200), Absolute(0, 30), False) == (400, 30)


class TestScale:
    def test_half(self):
        assert compute_target_dimensions((400, 200), Scale(50), True) == (200, 100)

    @pytest.mark.parametrize("percent", [0, -10])
    def test_non_positive_is_noop(self, percent):
        assert compute_target_dimensions((400, 200), Scale(percent), True) == (400, 200)

    def test_rounds_half_away_from_zero(self):
        """2.5 -> 3 and 1.5 -> 2, unlike banker's rounding."""
        assert compute_target_dimensions((5, 3), Scale(50), True) == (3, 2)

    def test_tiny_scale_clamps_to_one_pixel(self):
        assert compute_target_dimensions((400, 200), Scale(0.1), True) == (1, 1)

    def test_keep_aspect_ignored(self):
        assert compute_target_dimensions((400, 200), Scale(25), False) == (100, 50)


class TestSingleAxis:
    def test_width(self):
        assert compute_target_dimensions((400, 200), Width(200), True) == (200, 100)

    def test_width_equal_to_original_is_noop(self):
        assert compute_target_dimensions((400, 200), Width(400), True) == (400, 200)

    def test_width_zero_is_noop(self):
        assert compute_target_dimensions((400, 200), Width(0), True) == (400, 200)

    def test_width_clamps_height(self):
        assert compute_target_dimensions((1000, 1), Width(3), True) == (3, 1)

    def test_height(self):
        assert compute_target_dimensions((400, 200), Height(100), True) == (200, 100)

    def test_height_equal_to_original_is_noop(self):
        assert compute_target_dimensions((400, 200), Height(200), False) == (400, 200)

    def test_zero_sized_original_does_not_divide_by_zero(self):
        assert compute_target_dimensions((0, 0), Width(10), True) == (0, 0)


class TestResizeImage:
    def test_resamples_to_target(self, spy_codec):
        img = Image.new("RGB", (400, 200))
        result = resize_image(img, (100, 50), ResizeAlgorithm.BILINEAR, spy_codec)
        assert result.size == (100, 50)
        assert spy_codec.calls == ["resample"]

    def test_same_size_returns_input(self, spy_codec):
        img = Image.new("RGB", (40, 20))
        assert resize_image(img, (40, 20), ResizeAlgorithm.LANCZOS3, spy_codec) is img
        assert spy_codec.calls == []


class TestNeedsResize:
    def test_same_size(self):
        assert not needs_resize((400, 200), (400, 200))

    def test_different_size(self):
        assert needs_resize((400, 200), (200, 100))

    def test_unknown_mode_type(self):
        with pytest.raises(TypeError):
            compute_target_dimensions((10, 10), "big", True)
