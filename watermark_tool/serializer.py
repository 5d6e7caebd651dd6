"""
Serialization of processing reports.

Responsibility:
    Export per-image processing results, including the detector's
    component scores, to JSON or CSV for offline review.

Non-goals:
    - No image I/O or processing logic.
    - No streaming output; writes complete files at the end of a run.
"""

import csv
import json
import logging
from pathlib import Path
from typing import List, Optional

from watermark_tool.batch import BatchSummary
from watermark_tool.pipeline import ProcessResult

logger = logging.getLogger(__name__)

CSV_FIELDS = [
    "input_path", "output_path", "success", "skipped", "confidence", "message",
    "detected", "spatial", "gradient", "variance", "mask_size_used",
]


def save_json(
    results: List[ProcessResult],
    output_path: str,
    summary: Optional[BatchSummary] = None,
) -> None:
    """Export results to a JSON file.

    Output schema:
        {
            "results": [
                {"input_path": ..., "success": ..., "detection": {...} | null, ...}
            ],
            "summary": {"success": N, "skipped": N, "failed": N, "total": N}
        }

    Args:
        results: ProcessResult objects, in processing order.
        output_path: Path to the output JSON file.
        summary: Batch tally; computed from results when omitted.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    if summary is None:
        summary = BatchSummary()
        for result in results:
            summary.record(result)

    payload = {
        "results": [r.to_dict() for r in results],
        "summary": summary.to_dict(),
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)

    logger.info("JSON report saved: %s (%d images)", output_path, len(results))


def save_csv(results: List[ProcessResult], output_path: str) -> None:
    """Export results to a CSV file, one row per image.

    Columns: see CSV_FIELDS. Detection columns are empty when the
    detector did not run.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()

        for result in results:
            row = result.to_dict()
            detection = row.pop("detection") or {}
            detection.pop("region", None)
            detection.pop("confidence", None)
            writer.writerow({**row, **detection})

    logger.info("CSV report saved: %s (%d rows)", output_path, len(results))


def save_report(
    results: List[ProcessResult],
    output_path: str,
    summary: Optional[BatchSummary] = None,
) -> None:
    """Write a report, choosing JSON or CSV from the file extension.

    Raises:
        ValueError: If the extension is neither .json nor .csv.
    """
    ext = Path(output_path).suffix.lower()
    if ext == ".json":
        save_json(results, output_path, summary)
    elif ext == ".csv":
        save_csv(results, output_path)
    else:
        raise ValueError(
            f"Unsupported report format: '{ext}'. Use a .json or .csv path."
        )


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
