"""
Detection result data transfer object.

This module defines DetectionResult, the value returned by
WatermarkEngine.detect_watermark(). It is a frozen, serializable
container with no behavior beyond data access.

Non-goals:
    - No scoring logic (that belongs in detector).
    - No file I/O.
"""

from dataclasses import dataclass
from typing import Optional

from watermark_tool.geometry import Region


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """Outcome of the three-stage watermark detector.

    Attributes:
        detected: True when confidence reaches the detection threshold.
        confidence: Fused score. In [0.0, 1.0] after fusion; on the early
            exit it is spatial * 0.5.
        spatial: Normalized cross-correlation of luminance against the mask.
        gradient: Normalized cross-correlation of gradient magnitudes.
            0.0 when the early exit skipped it.
        variance: Texture dampening score in [0.0, 1.0]. 0.0 when skipped
            or when no usable reference patch exists.
        mask_size_used: Edge length of the mask that was tested.
        region: The tested rectangle, clipped to the image (None for an
            empty image).
    """

    detected: bool = False
    confidence: float = 0.0
    spatial: float = 0.0
    gradient: float = 0.0
    variance: float = 0.0
    mask_size_used: int = 0
    region: Optional[Region] = None

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "detected": self.detected,
            "confidence": round(self.confidence, 4),
            "spatial": round(self.spatial, 4),
            "gradient": round(self.gradient, 4),
            "variance": round(self.variance, 4),
            "mask_size_used": self.mask_size_used,
            "region": self.region.to_dict() if self.region is not None else None,
        }
