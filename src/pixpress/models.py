"""Data models for processing results and image inspection."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple


@dataclass
class ProcessingStats:
    """Aggregate counters for one or more processed images.

    Attributes
    ----------
    processed_count
        Number of images written successfully.
    total_size_before, total_size_after
        Summed input and output file sizes in bytes.
    errors
        ``(context, message)`` records for items that failed.
    """

    processed_count: int = 0
    total_size_before: int = 0
    total_size_after: int = 0
    errors: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.errors)

    @property
    def bytes_saved(self) -> int:
        return self.total_size_before - self.total_size_after

    @property
    def savings_percent(self) -> float:
        """Size reduction as a percentage, clamped to 0..100."""

        if self.total_size_before == 0:
            return 0.0
        savings = self.bytes_saved / self.total_size_before * 100.0
        return max(0.0, min(100.0, savings))

    def merge(self, other: "ProcessingStats") -> None:
        """Fold ``other`` into this accumulator."""

        self.processed_count += other.processed_count
        self.total_size_before += other.total_size_before
        self.total_size_after += other.total_size_after
        self.errors.extend(other.errors)

    def add_failure(self, context: str, message: str) -> None:
        self.errors.append((context, message))


@dataclass
class ItemResult:
    """Outcome of processing a single file inside a batch."""

    input_path: Path
    output_path: Optional[Path] = None
    stats: Optional[ProcessingStats] = None
    error: str = ""

    @property
    def success(self) -> bool:
        return self.stats is not None


@dataclass(frozen=True)
class ImageMetadata:
    """Read-only snapshot of an image file's basic properties."""

    width: int
    height: int
    format: str
    has_exif: bool
    file_size: int

    @property
    def aspect_ratio(self) -> float:
        if self.height == 0:
            return 0.0
        return self.width / self.height
