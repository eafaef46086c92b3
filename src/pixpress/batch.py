"""Batch processing of image directories.

The driver discovers images, submits one :class:`ImageProcessor` call per
file to an executor and folds the per-item results into a single
:class:`ProcessingStats` once every future has completed. Item failures are
recorded, never raised.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Dict, List, Optional

from config import ProcessConfig
from .errors import ImageToolError, InvalidParameter, SecurityError
from .io_utils import ensure_dir, is_path_traversal, iter_image_paths
from .models import ItemResult, ProcessingStats
from .processor import ImageProcessor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ItemResult], None]


class BatchProcessor:
    """Process every image in a directory across a bounded worker pool.

    Parameters
    ----------
    config
        Processing parameters shared read-only by all workers.
    max_workers
        Pool size for the run. ``0`` lets ``ThreadPoolExecutor`` pick its
        default. Ignored when ``executor`` is given.
    executor
        Executor to submit work to. It is left open after a run; when None a
        pool is created per run and shut down afterwards.
    processor
        Single image pipeline to use. Defaults to ``ImageProcessor(config)``.
    """

    def __init__(
        self,
        config: ProcessConfig,
        max_workers: int = 0,
        executor: Optional[Executor] = None,
        processor: Optional[ImageProcessor] = None,
    ) -> None:
        if max_workers < 0:
            raise InvalidParameter("Worker count must not be negative")
        self.config = config
        self.max_workers = max_workers
        self.executor = executor
        self.processor = processor if processor is not None else ImageProcessor(config)
        self._cancel = threading.Event()

    def request_cancel(self) -> None:
        """Stop processing: pending items are skipped, running ones stop at the next step.

        The request is sticky; later runs on this instance skip every item.
        """

        self._cancel.set()
        logger.warning("Cancellation requested, finishing in-flight steps...")

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def validate_paths(self, input_dir: Path, output_dir: Path) -> None:
        """Reject unsafe or unusable input/output directory pairs.

        Raises
        ------
        SecurityError
            Either path contains a ``..`` segment.
        InvalidParameter
            The input is missing or not a directory, the output exists but is
            not a directory, or both resolve to the same directory.
        """

        if is_path_traversal(input_dir):
            raise SecurityError("Path traversal detected in input path")
        if is_path_traversal(output_dir):
            raise SecurityError("Path traversal detected in output path")

        input_dir = Path(input_dir)
        output_dir = Path(output_dir)

        if not input_dir.exists():
            raise InvalidParameter(f"Input directory does not exist: {input_dir}")
        if not input_dir.is_dir():
            raise InvalidParameter(f"Input path is not a directory: {input_dir}")
        if output_dir.exists() and not output_dir.is_dir():
            raise InvalidParameter(
                f"Output path exists but is not a directory: {output_dir}"
            )
        if input_dir.resolve() == output_dir.resolve():
            raise InvalidParameter("Input and output directories cannot be the same")

    def collect_image_paths(
        self, input_dir: Path, recursive: bool, output_dir: Optional[Path] = None
    ) -> List[Path]:
        """Sorted image paths under ``input_dir``, skipping anything in ``output_dir``."""

        return list(iter_image_paths(Path(input_dir), recursive=recursive, exclude=output_dir))

    def process_directory(
        self,
        input_dir: Path,
        output_dir: Path,
        recursive: bool = False,
        progress: Optional[ProgressCallback] = None,
    ) -> ProcessingStats:
        """Process all images in ``input_dir`` into ``output_dir``.

        Outputs are written flat as ``output_dir / input.name``. When a
        recursive walk finds several files with the same name, the first in
        sorted order is processed and the others are recorded as failures.

        Parameters
        ----------
        input_dir
            Directory to read images from.
        output_dir
            Directory to write results to. Created if missing.
        recursive
            Descend into subdirectories.
        progress
            Called on the calling thread once per finished item.

        Returns
        -------
        ProcessingStats
            Summed counts and sizes of successful items plus one
            ``(input path, message)`` record per failed item.
        """

        input_dir = Path(input_dir)
        output_dir = Path(output_dir)
        self.validate_paths(input_dir, output_dir)

        image_paths = self.collect_image_paths(input_dir, recursive, output_dir)
        if not image_paths:
            logger.warning("No image files found in %s", input_dir)
            return ProcessingStats()

        logger.info("Processing %d images from %s", len(image_paths), input_dir)
        ensure_dir(output_dir)

        planned, collisions = self._plan_outputs(image_paths, output_dir)
        results = list(collisions)
        for result in collisions:
            if progress is not None:
                progress(result)

        results.extend(self._run(planned, progress))
        stats = self.aggregate(results)

        logger.info(
            "Processed %d images (%.1f%% size reduction), %d failed",
            stats.processed_count,
            stats.savings_percent,
            stats.failed_count,
        )
        return stats

    @staticmethod
    def aggregate(results: List[ItemResult]) -> ProcessingStats:
        """Fold item results (sorted by input path) into one stats value."""

        stats = ProcessingStats()
        for result in sorted(results, key=lambda r: str(r.input_path)):
            if result.stats is not None:
                stats.merge(result.stats)
            else:
                stats.add_failure(str(result.input_path), result.error)
        return stats

    def process_item(self, input_path: Path, output_path: Path) -> ItemResult:
        """Run the pipeline for one file, capturing library and OS errors."""

        if self.cancelled:
            return ItemResult(input_path, output_path, error="Cancelled before processing")
        try:
            stats = self.processor.process(input_path, output_path, cancel=self._cancel)
        except (ImageToolError, OSError) as e:
            return ItemResult(input_path, output_path, error=str(e))
        return ItemResult(input_path, output_path, stats=stats)

    def _plan_outputs(self, image_paths: List[Path], output_dir: Path):
        planned: Dict[Path, Path] = {}
        claimed: Dict[str, Path] = {}
        collisions: List[ItemResult] = []

        for input_path in image_paths:
            name = input_path.name
            output_path = output_dir / name
            if name in claimed:
                collisions.append(
                    ItemResult(
                        input_path,
                        output_path,
                        error=f"Output name collision with {claimed[name]}",
                    )
                )
                continue
            claimed[name] = input_path
            planned[input_path] = output_path

        for result in collisions:
            logger.error("Skipped %s: %s", result.input_path, result.error)
        return planned, collisions

    def _run(
        self, planned: Dict[Path, Path], progress: Optional[ProgressCallback]
    ) -> List[ItemResult]:
        if self.executor is not None:
            return self._run_with(self.executor, planned, progress)

        with ThreadPoolExecutor(max_workers=self.max_workers or None) as pool:
            return self._run_with(pool, planned, progress)

    def _run_with(
        self,
        executor: Executor,
        planned: Dict[Path, Path],
        progress: Optional[ProgressCallback],
    ) -> List[ItemResult]:
        futures: Dict[Future, Path] = {
            executor.submit(self.process_item, input_path, output_path): input_path
            for input_path, output_path in planned.items()
        }

        results = []
        for future in as_completed(futures):
            input_path = futures[future]
            try:
                result = future.result()
            except Exception as e:
                result = ItemResult(
                    input_path, planned[input_path], error=f"Worker exception: {e}"
                )

            if result.success:
                logger.debug("Processed: %s", input_path)
            else:
                logger.error("Failed: %s - %s", input_path, result.error)

            results.append(result)
            if progress is not None:
                progress(result)
        return results
