"""
Single-image processing pipeline.

Responsibility:
    decode → (optional) detect → skip or add/remove → encode → write,
    for one file. This is the boundary consumed by the CLI and the batch
    driver.

Robustness:
    - Every failure (decode, processing, encode, write) is reported as a
      ProcessResult with success=False; nothing is raised to the caller.
    - Skipping an image with no detected watermark is a success, not a
      failure.
    - Output is encoded in memory and moved into place atomically, so a
      failed run never leaves a partial file behind.

Non-goals:
    - No directory walking (see batch).
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import cv2
import numpy as np

from watermark_tool.config import OutputConfig
from watermark_tool.detection import DetectionResult
from watermark_tool.engine import SizeArg, WatermarkEngine

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of processing one image.

    Attributes:
        success: False only when something went wrong.
        skipped: True when detection found no watermark and nothing was written.
        confidence: Detection confidence, 0.0 when detection did not run.
        message: Human-readable summary.
        detection: The detector result consulted, if any.
        input_path: Source file.
        output_path: Destination file.
    """

    success: bool = False
    skipped: bool = False
    confidence: float = 0.0
    message: str = ""
    detection: Optional[DetectionResult] = None
    input_path: str = ""
    output_path: str = ""

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "input_path": self.input_path,
            "output_path": self.output_path,
            "success": self.success,
            "skipped": self.skipped,
            "confidence": round(self.confidence, 4),
            "message": self.message,
            "detection": self.detection.to_dict() if self.detection is not None else None,
        }


# ---------------------------------------------------------------------------
# Codec boundary
# ---------------------------------------------------------------------------

def read_image(path: PathLike) -> Optional[np.ndarray]:
    """Decode an image file into a BGR array, or None if it cannot be read.

    Bytes are read with numpy and decoded with cv2.imdecode, so non-ASCII
    paths work on every platform.
    """
    try:
        data = np.fromfile(str(path), dtype=np.uint8)
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return None

    if data.size == 0:
        return None
    return cv2.imdecode(data, cv2.IMREAD_COLOR)


def encode_params(path: PathLike, output: Optional[OutputConfig] = None) -> List[int]:
    """Encoder flags for the output file extension."""
    if output is None:
        output = OutputConfig()

    ext = Path(path).suffix.lower()
    if ext in (".jpg", ".jpeg"):
        return [cv2.IMWRITE_JPEG_QUALITY, output.jpeg_quality]
    if ext == ".png":
        return [cv2.IMWRITE_PNG_COMPRESSION, output.png_compression]
    if ext == ".webp":
        return [cv2.IMWRITE_WEBP_QUALITY, output.webp_quality]
    return []


def write_image(
    path: PathLike,
    image: np.ndarray,
    output: Optional[OutputConfig] = None,
) -> bool:
    """Encode image by extension and write it atomically.

    Returns:
        True on success, False if encoding or writing failed.
    """
    path = Path(path)
    ext = path.suffix.lower() or ".png"

    try:
        ok, encoded = cv2.imencode(ext, image, encode_params(path, output))
    except cv2.error as e:
        logger.debug("No encoder for %s: %s", path, e)
        return False
    if not ok:
        logger.debug("Encoder rejected %s", path)
        return False

    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=".", suffix=ext, dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(encoded.tobytes())
        os.replace(tmp_name, path)
    except OSError as e:
        logger.debug("Write failed for %s: %s", path, e)
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        return False

    return True


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def process_image(
    input_path: PathLike,
    output_path: PathLike,
    remove: bool,
    engine: WatermarkEngine,
    size: SizeArg = None,
    use_detection: bool = True,
    detection_threshold: float = 0.25,
    output: Optional[OutputConfig] = None,
) -> ProcessResult:
    """Add or remove the watermark in one file.

    Args:
        input_path: Image to read.
        output_path: Where to write the result (may equal input_path).
        remove: True to remove the watermark, False to add it.
        engine: Calibrated engine.
        size: Forced watermark size, or None/AUTO.
        use_detection: Run the detector first (removal only).
        detection_threshold: Skip when not detected and confidence is below this.
        output: Encoder settings.

    Returns:
        A ProcessResult. Never raises.
    """
    name = Path(input_path).name
    base = {"input_path": str(input_path), "output_path": str(output_path)}

    try:
        image = read_image(input_path)
        if image is None or image.size == 0:
            logger.error("Failed to load image: %s", input_path)
            return ProcessResult(message="Failed to load image", **base)

        h, w = image.shape[:2]
        logger.info("Processing: %s (%dx%d)", name, w, h)

        detection = None
        confidence = 0.0
        if use_detection and remove:
            detection = engine.detect_watermark(image, size)
            confidence = detection.confidence

            if not detection.detected and detection.confidence < detection_threshold:
                message = f"No watermark detected ({detection.confidence * 100.0:.0f}%), skipped"
                logger.info(
                    "%s: %s (spatial=%.2f, grad=%.2f, var=%.2f)",
                    name, message, detection.spatial, detection.gradient, detection.variance,
                )
                return ProcessResult(
                    success=True, skipped=True, confidence=confidence,
                    message=message, detection=detection, **base,
                )

            logger.info(
                "Watermark detected (%.0f%% confidence), processing...",
                detection.confidence * 100.0,
            )

        if remove:
            image = engine.remove_watermark(image, size)
        else:
            image = engine.add_watermark(image, size)

        if not write_image(output_path, image, output):
            logger.error("Failed to write image: %s", output_path)
            return ProcessResult(
                confidence=confidence, message="Failed to write image",
                detection=detection, **base,
            )

        logger.info("Saved: %s", Path(output_path).name)
        return ProcessResult(
            success=True,
            confidence=confidence,
            message="Watermark removed" if remove else "Watermark added",
            detection=detection,
            **base,
        )

    except Exception as e:
        logger.error("Error processing %s: %s", input_path, e)
        return ProcessResult(message=f"Error: {e}", **base)


def detect_image(
    input_path: PathLike,
    engine: WatermarkEngine,
    size: SizeArg = None,
) -> ProcessResult:
    """Run only the detector on one file; nothing is written.

    Returns:
        A ProcessResult carrying the DetectionResult. Never raises.
    """
    base = {"input_path": str(input_path)}

    try:
        image = read_image(input_path)
        if image is None or image.size == 0:
            logger.error("Failed to load image: %s", input_path)
            return ProcessResult(message="Failed to load image", **base)

        detection = engine.detect_watermark(image, size)
        verdict = "Watermark detected" if detection.detected else "No watermark detected"
        return ProcessResult(
            success=True,
            confidence=detection.confidence,
            message=f"{verdict} ({detection.confidence * 100.0:.0f}%)",
            detection=detection,
            **base,
        )

    except Exception as e:
        logger.error("Error inspecting %s: %s", input_path, e)
        return ProcessResult(message=f"Error: {e}", **base)
