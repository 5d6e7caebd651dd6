"""
Watermark Tool: alpha-mask watermark removal and insertion using OpenCV.

Public API:
    - WatermarkEngine: Calibrated engine (add / remove / detect).
    - process_image: Single-file pipeline with detection-guarded removal.
    - DetectionResult, ProcessResult: Result data transfer objects.
    - Region, WatermarkSize: Geometry inputs.
    - CalibrationError: Raised when calibration captures are unusable.

Usage:
    from watermark_tool import WatermarkEngine, process_image

    engine = WatermarkEngine.from_files("assets/bg_48.png", "assets/bg_96.png")
    result = engine.detect_watermark(image)
    if result.detected:
        engine.remove_watermark(image)
"""

from watermark_tool.alpha_mask import AlphaMask, CalibrationError
from watermark_tool.detection import DetectionResult
from watermark_tool.engine import WatermarkEngine
from watermark_tool.geometry import (
    MIN_CUSTOM_REGION,
    MIN_RESIZABLE_REGION,
    Placement,
    Region,
    WatermarkSize,
    select_placement,
)
from watermark_tool.pipeline import ProcessResult, process_image

__version__ = "1.0.0"

__all__ = [
    "AlphaMask",
    "CalibrationError",
    "DetectionResult",
    "MIN_CUSTOM_REGION",
    "MIN_RESIZABLE_REGION",
    "Placement",
    "ProcessResult",
    "Region",
    "WatermarkEngine",
    "WatermarkSize",
    "process_image",
    "select_placement",
]
