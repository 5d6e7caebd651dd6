"""
Three-stage watermark detector.

Decides whether the expected watermark is present in an image before a
destructive removal is attempted. The stages run in strict order:

    1. Spatial correlation: NCC between region luminance and the mask.
       Below SPATIAL_THRESHOLD the detector stops early and reports
       confidence = spatial * 0.5 (circuit breaker).
    2. Gradient correlation: NCC between Sobel gradient magnitudes of
       the region and of the mask (edge signature, brightness-invariant).
    3. Variance dampening: the watermark flattens local texture, so the
       region's std-dev is compared with a reference patch directly above.

    confidence = clamp(0.50 * spatial + 0.30 * gradient + 0.20 * variance, 0, 1)
    detected   = confidence >= DETECTION_THRESHOLD

The weights and thresholds are calibrated constants and must not change.

Constraints:
    - Input is a BGR (or grayscale) uint8 numpy array; it is never modified.
    - Degenerate geometry yields a neutral "not detected" result, never an
      exception.
"""

import logging

import cv2
import numpy as np

from watermark_tool.alpha_mask import AlphaMask
from watermark_tool.detection import DetectionResult
from watermark_tool.geometry import Placement

logger = logging.getLogger(__name__)

SPATIAL_THRESHOLD = 0.25
CIRCUIT_BREAKER_DAMPING = 0.5
DETECTION_THRESHOLD = 0.35

SPATIAL_WEIGHT = 0.50
GRADIENT_WEIGHT = 0.30
VARIANCE_WEIGHT = 0.20

# Reference patch must be taller than this to be used
REFERENCE_MIN_HEIGHT = 8
# Reference std-dev (8-bit scale) at or below this carries no information
REFERENCE_NOISE_FLOOR = 5.0

# Std-dev below this is treated as a flat plane with no shape to correlate
_FLAT_STD = 1e-6


def ncc(a: np.ndarray, b: np.ndarray) -> float:
    """Zero-mean normalized cross-correlation of two equal-size arrays.

    Returns a coefficient in [-1, 1]. Flat inputs (zero variance) have no
    shape to compare and score 0.0.
    """
    a = np.ascontiguousarray(a, dtype=np.float32)
    b = np.ascontiguousarray(b, dtype=np.float32)

    if _std(a) < _FLAT_STD or _std(b) < _FLAT_STD:
        return 0.0

    # Equal-size image and template give a single 1x1 score
    score = cv2.matchTemplate(a, b, cv2.TM_CCOEFF_NORMED)
    return float(np.clip(score[0, 0], -1.0, 1.0))


def _to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    if image.ndim == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image.copy()


def _gradient_magnitude(plane: np.ndarray) -> np.ndarray:
    gx = cv2.Sobel(plane, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(plane, cv2.CV_32F, 0, 1, ksize=3)
    return cv2.magnitude(gx, gy)


def _std(gray: np.ndarray) -> float:
    _, stddev = cv2.meanStdDev(gray)
    return float(stddev[0][0])


def detect_watermark(
    image: np.ndarray,
    mask: AlphaMask,
    placement: Placement,
) -> DetectionResult:
    """Score how likely the watermark described by mask is present.

    Args:
        image: BGR uint8 array (H, W, 3). Grayscale and BGRA are accepted.
        mask: Alpha mask of the size being tested.
        placement: Placement giving the expected position and margins.

    Returns:
        A DetectionResult. Never raises for empty or tiny images.
    """
    if image is None or image.size == 0:
        return DetectionResult(mask_size_used=mask.width)

    img_h, img_w = image.shape[:2]
    expected = placement.region(img_w, img_h)
    region = expected.clip(img_w, img_h)

    if region.is_empty:
        logger.debug("Detection: ROI out of bounds")
        return DetectionResult(mask_size_used=mask.width, region=region)

    gray_region = _to_gray(image[region.y:region.y2, region.x:region.x2])
    gray_f = gray_region.astype(np.float32) / 255.0
    alpha_region = np.array(
        mask.crop(region.x - expected.x, region.y - expected.y, region.width, region.height),
        dtype=np.float32,
    )

    # Stage 1: spatial structural correlation
    spatial = ncc(gray_f, alpha_region)

    if spatial < SPATIAL_THRESHOLD:
        logger.debug(
            "Detection: spatial=%.3f < %.2f, rejected", spatial, SPATIAL_THRESHOLD
        )
        return DetectionResult(
            detected=False,
            confidence=spatial * CIRCUIT_BREAKER_DAMPING,
            spatial=spatial,
            mask_size_used=mask.width,
            region=region,
        )

    # Stage 2: gradient-domain correlation (needs a full 3x3 neighbourhood)
    gradient = 0.0
    if min(region.width, region.height) >= 3:
        gradient = ncc(_gradient_magnitude(gray_f), _gradient_magnitude(alpha_region))

    # Stage 3: texture dampening against the patch directly above
    variance = 0.0
    ref_h = min(region.y, placement.mask_size)
    if ref_h > REFERENCE_MIN_HEIGHT:
        gray_ref = _to_gray(image[region.y - ref_h:region.y, region.x:region.x2])
        ref_std = _std(gray_ref)
        if ref_std > REFERENCE_NOISE_FLOOR:
            variance = float(np.clip(1.0 - _std(gray_region) / ref_std, 0.0, 1.0))

    confidence = float(np.clip(
        spatial * SPATIAL_WEIGHT + gradient * GRADIENT_WEIGHT + variance * VARIANCE_WEIGHT,
        0.0, 1.0,
    ))
    detected = confidence >= DETECTION_THRESHOLD

    logger.debug(
        "Detection: spatial=%.3f, grad=%.3f, var=%.3f -> conf=%.3f (%s)",
        spatial, gradient, variance, confidence,
        "DETECTED" if detected else "not detected",
    )

    return DetectionResult(
        detected=detected,
        confidence=confidence,
        spatial=spatial,
        gradient=gradient,
        variance=variance,
        mask_size_used=mask.width,
        region=region,
    )
