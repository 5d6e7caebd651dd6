"""
Batch processing of image directories.

Responsibility:
    Enumerate the images in a directory, run the single-image pipeline on
    each one, and tally successes, skips and failures.

Robustness:
    - A failing image is counted and reported; it never stops the batch.
    - Cancellation is checked between files only. An image that has
      started always runs to completion.
    - With max_workers > 1 images are processed on a thread pool. The
      engine is shared read-only; each call owns its image buffers.

Non-goals:
    - No recursion into sub-directories.
    - No output naming schemes: results keep their input file names.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

from watermark_tool.config import OutputConfig
from watermark_tool.engine import SizeArg, WatermarkEngine
from watermark_tool.pipeline import PathLike, ProcessResult, detect_image, process_image

logger = logging.getLogger(__name__)

# Image extensions recognized in batch mode
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".bmp"}


@dataclass
class BatchSummary:
    """Running tally of a batch.

    Attributes:
        success: Images processed (or inspected) successfully.
        skipped: Images left alone because no watermark was detected.
        failed: Images that could not be processed.
    """

    success: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, result: ProcessResult) -> None:
        """Count one result."""
        if result.skipped:
            self.skipped += 1
        elif result.success:
            self.success += 1
        else:
            self.failed += 1

    @property
    def total(self) -> int:
        return self.success + self.skipped + self.failed

    @property
    def exit_code(self) -> int:
        """Process exit status: 1 if anything failed."""
        return 1 if self.failed > 0 else 0

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "success": self.success,
            "skipped": self.skipped,
            "failed": self.failed,
            "total": self.total,
        }


def iter_images(directory: PathLike) -> Iterator[Path]:
    """Yield the image files directly inside directory, sorted by name.

    Raises:
        FileNotFoundError: If directory does not exist.
        NotADirectoryError: If directory is a file.
    """
    directory = Path(directory)
    if not directory.exists():
        raise FileNotFoundError(f"Input directory not found: '{directory}'.")
    if not directory.is_dir():
        raise NotADirectoryError(f"Input path is not a directory: '{directory}'.")

    for path in sorted(directory.iterdir()):
        if path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS:
            yield path


def run_batch(
    engine: WatermarkEngine,
    input_dir: PathLike,
    output_dir: Optional[PathLike],
    remove: bool = True,
    size: SizeArg = None,
    use_detection: bool = True,
    detection_threshold: float = 0.25,
    output: Optional[OutputConfig] = None,
    max_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
    on_result: Optional[Callable[[ProcessResult], None]] = None,
    detect_only: bool = False,
) -> Tuple[BatchSummary, List[ProcessResult]]:
    """Process every image in input_dir into output_dir.

    Args:
        engine: Calibrated engine, shared by all workers.
        input_dir: Directory to scan (non-recursive).
        output_dir: Destination directory, created if missing. Ignored
                    when detect_only is set.
        remove: True to remove the watermark, False to add it.
        size: Forced watermark size, or None/AUTO.
        use_detection: Run the detector before removing.
        detection_threshold: Skip threshold passed to process_image.
        output: Encoder settings.
        max_workers: Number of images processed concurrently.
        cancel_event: When set, no further images are started.
        on_result: Called with each ProcessResult as it completes.
        detect_only: Only run the detector; nothing is written.

    Returns:
        (summary, results) with results in input order.
    """
    images = list(iter_images(input_dir))
    logger.info("Batch processing directory: %s (%d images)", input_dir, len(images))

    if not detect_only:
        if output_dir is None:
            raise ValueError("output_dir is required unless detect_only is set.")
        Path(output_dir).mkdir(parents=True, exist_ok=True)

    def _run_one(path: Path) -> Optional[ProcessResult]:
        if cancel_event is not None and cancel_event.is_set():
            return None
        if detect_only:
            result = detect_image(path, engine, size)
        else:
            result = process_image(
                path, Path(output_dir) / path.name, remove, engine,
                size, use_detection, detection_threshold, output,
            )
        if on_result is not None:
            on_result(result)
        return result

    if max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(pool.map(_run_one, images))
    else:
        outcomes = [_run_one(path) for path in images]

    summary = BatchSummary()
    results = [r for r in outcomes if r is not None]
    for result in results:
        summary.record(result)

    if len(results) < len(images):
        logger.info("Batch cancelled after %d of %d images.", len(results), len(images))

    return summary, results
