"""Tests for result and metadata models."""

from src.pixpress.models import ImageMetadata, ItemResult, ProcessingStats


def test_savings_percent():
    stats = ProcessingStats(processed_count=1, total_size_before=1000, total_size_after=250)
    assert stats.bytes_saved == 750
    assert stats.savings_percent == 75.0


def test_savings_clamped_when_output_grows():
    stats = ProcessingStats(processed_count=1, total_size_before=100, total_size_after=150)
    assert stats.bytes_saved == -50
    assert stats.savings_percent == 0.0


def test_savings_with_nothing_processed():
    assert ProcessingStats().savings_percent == 0.0


def test_merge_and_failures():
    total = ProcessingStats()
    total.merge(ProcessingStats(1, 100, 50))
    total.merge(ProcessingStats(1, 200, 100))
    total.add_failure("bad.jpg", "Processing error: Failed to decode image")
    assert total.processed_count == 2
    assert total.total_size_before == 300
    assert total.total_size_after == 150
    assert total.failed_count == 1


def test_item_result_success():
    assert ItemResult("a.jpg", stats=ProcessingStats(1, 1, 1)).success
    assert not ItemResult("a.jpg", error="nope").success


def test_aspect_ratio():
    assert ImageMetadata(400, 200, "JPEG", False, 10).aspect_ratio == 2.0
    assert ImageMetadata(400, 0, "JPEG", False, 10).aspect_ratio == 0.0
