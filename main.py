"""CLI for pixpress image batch processing.

Commands:
  - resize: Resize a single image
  - batch: Resize/recompress every image in a directory
  - optimize: Recompress a single image without resizing
  - info: Show dimensions, format and EXIF metadata of an image
"""

from __future__ import annotations

import logging
import signal
from pathlib import Path
from typing import Optional

import click
from tqdm import tqdm

from config import DEFAULTS, OutputFormat, ProcessConfig, ResizeAlgorithm
from src.pixpress.batch import BatchProcessor
from src.pixpress.errors import ImageToolError
from src.pixpress.io_utils import format_file_size, generate_output_path
from src.pixpress.models import ItemResult, ProcessingStats
from src.pixpress.processor import ImageProcessor

ALGORITHM_CHOICES = [a.value for a in ResizeAlgorithm]
FORMAT_CHOICES = [f.value for f in OutputFormat]


def setup_logging(verbose: bool) -> None:
    """Configure logging."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def _build_config(**kwargs) -> ProcessConfig:
    try:
        return ProcessConfig(**kwargs)
    except ImageToolError as e:
        raise click.BadParameter(str(e)) from e


def _process_single(config: ProcessConfig, input_path: Path, output_path: Path) -> ProcessingStats:
    try:
        return ImageProcessor(config).process(input_path, output_path)
    except (ImageToolError, OSError) as e:
        raise click.ClickException(str(e)) from e


def _echo_sizes(stats: ProcessingStats) -> None:
    click.echo(
        f"Size: {format_file_size(stats.total_size_before)} -> "
        f"{format_file_size(stats.total_size_after)} "
        f"({stats.savings_percent:.1f}% reduction)"
    )


def print_summary(stats: ProcessingStats, output_dir: Path) -> None:
    """Print batch totals and the first failures."""

    click.echo(
        f"Batch processing complete. Processed {stats.processed_count} images "
        f"to: {output_dir}"
    )
    _echo_sizes(stats)

    if stats.errors:
        click.echo(f"\nFailed files ({stats.failed_count}):")
        for context, message in stats.errors[:10]:
            click.echo(f"  {context}: {message}")
        if stats.failed_count > 10:
            click.echo(f"  ... and {stats.failed_count - 10} more")


algorithm_option = click.option(
    "--algorithm",
    type=click.Choice(ALGORITHM_CHOICES, case_sensitive=False),
    default=DEFAULTS.algorithm.value,
    show_default=True,
    help="Resampling filter",
)
format_option = click.option(
    "--format",
    "output_format",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    default=DEFAULTS.format.value,
    show_default=True,
    help="Output format",
)
quality_option = click.option(
    "--quality", "-q", type=int, default=DEFAULTS.quality, show_default=True
)
strip_option = click.option(
    "--strip-metadata/--keep-metadata",
    default=DEFAULTS.strip_metadata,
    help="Remove EXIF and similar metadata from the output",
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def cli(verbose: bool) -> None:
    """Resize, recompress and strip metadata from images."""

    setup_logging(verbose)


@cli.command(name="resize")
@click.argument("input_path", type=click.Path(path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None)
@click.option("--width", "-w", type=int, default=0, help="Target width (0 = unset)")
@click.option("--height", "-h", type=int, default=0, help="Target height (0 = unset)")
@click.option("--scale", "-s", type=float, default=0.0, help="Scale in percent")
@quality_option
@click.option("--keep-aspect/--no-keep-aspect", default=DEFAULTS.keep_aspect)
@strip_option
@algorithm_option
@format_option
@click.option(
    "--max-file-size", type=int, default=None, help="Reject inputs larger than this (bytes)"
)
def cmd_resize(
    input_path: Path,
    output: Optional[Path],
    width: int,
    height: int,
    scale: float,
    quality: int,
    keep_aspect: bool,
    strip_metadata: bool,
    algorithm: str,
    output_format: str,
    max_file_size: Optional[int],
) -> None:
    """Resize a single image."""

    config = _build_config(
        width=width,
        height=height,
        scale=scale,
        quality=quality,
        keep_aspect=keep_aspect,
        strip_metadata=strip_metadata,
        algorithm=ResizeAlgorithm(algorithm.lower()),
        format=OutputFormat(output_format.lower()),
        max_file_size=max_file_size,
    )
    output_path = generate_output_path(input_path, output, "resized")
    stats = _process_single(config, input_path, output_path)
    click.echo(f"Resized image saved to: {output_path}")
    _echo_sizes(stats)


@cli.command(name="batch")
@click.argument("input_dir", type=click.Path(path_type=Path))
@click.argument("output_dir", type=click.Path(path_type=Path))
@click.option("--width", "-w", type=int, default=0)
@click.option("--height", "-h", type=int, default=0)
@click.option("--scale", "-s", type=float, default=0.0)
@quality_option
@click.option("--threads", "-t", type=int, default=0, help="Worker threads (0 = auto)")
@click.option("--recursive", "-r", is_flag=True, help="Descend into subdirectories")
@strip_option
@algorithm_option
@format_option
@click.option("--progress/--no-progress", default=True)
@click.pass_context
def cmd_batch(
    ctx: click.Context,
    input_dir: Path,
    output_dir: Path,
    width: int,
    height: int,
    scale: float,
    quality: int,
    threads: int,
    recursive: bool,
    strip_metadata: bool,
    algorithm: str,
    output_format: str,
    progress: bool,
) -> None:
    """Process every image in INPUT_DIR and write results to OUTPUT_DIR."""

    config = _build_config(
        width=width,
        height=height,
        scale=scale,
        quality=quality,
        strip_metadata=strip_metadata,
        algorithm=ResizeAlgorithm(algorithm.lower()),
        format=OutputFormat(output_format.lower()),
    )

    try:
        processor = BatchProcessor(config, max_workers=threads)
        processor.validate_paths(input_dir, output_dir)
        total = len(processor.collect_image_paths(input_dir, recursive, output_dir))
    except ImageToolError as e:
        raise click.ClickException(str(e)) from e

    pbar = tqdm(total=total, desc="Processing", unit="img", disable=not progress)

    def on_item(result: ItemResult) -> None:
        pbar.set_postfix_str(result.input_path.name[:40])
        pbar.update(1)
        if not result.success:
            pbar.write(f"FAILED: {result.input_path.name} - {result.error}")

    def on_interrupt(signum, frame):
        processor.request_cancel()

    previous_handler = signal.signal(signal.SIGINT, on_interrupt)
    try:
        stats = processor.process_directory(input_dir, output_dir, recursive, progress=on_item)
    except (ImageToolError, OSError) as e:
        raise click.ClickException(str(e)) from e
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        pbar.close()

    print_summary(stats, output_dir)
    if stats.errors:
        ctx.exit(1)


@cli.command(name="optimize")
@click.argument("input_path", type=click.Path(path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None)
@quality_option
@strip_option
@format_option
def cmd_optimize(
    input_path: Path,
    output: Optional[Path],
    quality: int,
    strip_metadata: bool,
    output_format: str,
) -> None:
    """Recompress a single image without resizing it."""

    config = _build_config(
        quality=quality,
        strip_metadata=strip_metadata,
        format=OutputFormat(output_format.lower()),
    )
    output_path = generate_output_path(input_path, output, "optimized")
    stats = _process_single(config, input_path, output_path)
    click.echo(f"Optimized image saved to: {output_path}")
    _echo_sizes(stats)


@cli.command(name="info")
@click.argument("input_path", type=click.Path(path_type=Path))
def cmd_info(input_path: Path) -> None:
    """Show dimensions, format and EXIF metadata of an image."""

    processor = ImageProcessor(DEFAULTS)
    try:
        info = processor.get_metadata(input_path)
        exif = processor.metadata.read_metadata(input_path) if info.has_exif else None
    except (ImageToolError, OSError) as e:
        raise click.ClickException(str(e)) from e

    click.echo("=== Image Information ===")
    click.echo(f"File: {input_path}")
    click.echo(f"Size: {format_file_size(info.file_size)}")
    click.echo(f"Dimensions: {info.width} x {info.height} pixels")
    click.echo(f"Aspect Ratio: {info.aspect_ratio:.2f}:1")
    click.echo(f"Format: {info.format}")
    click.echo(f"Has EXIF metadata: {info.has_exif}")

    if exif is None:
        return

    handler = processor.metadata
    camera = handler.get_camera_info(exif)
    if camera:
        click.echo(f"Camera: {camera[0]} {camera[1]}")
    exposure = handler.get_exposure_info(exif)
    if exposure:
        click.echo("Exposure: {} s, f/{}, ISO {}, {} mm".format(*exposure))
    gps = handler.extract_gps_coordinates(exif)
    if gps:
        lat, lon, alt = gps
        location = f"GPS: {lat:.6f}, {lon:.6f}"
        if alt is not None:
            location += f", {alt:.1f} m"
        click.echo(location)
    click.echo("")
    click.echo(handler.format_metadata(exif), nl=False)


if __name__ == "__main__":
    cli()
