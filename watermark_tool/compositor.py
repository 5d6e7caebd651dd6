"""
Forward and reverse alpha compositing of the watermark.

Responsibility:
    Blend a flat-colour watermark into a rectangle of a BGR image
    ("over" compositing with a per-pixel alpha mask) and invert that
    blend to recover the original pixels.

        add:    out  = alpha * logo + (1 - alpha) * orig
        remove: orig = (out - alpha * logo) / (1 - alpha)

Numeric policy:
    - Arithmetic is float32; results are clipped to [0, 255] and quantized
      with round-half-to-even (numpy.rint), matching OpenCV's saturating
      conversions.
    - Removal leaves pixels with alpha < ALPHA_THRESHOLD untouched and caps
      alpha at MAX_ALPHA so the divisor never drops below 0.01. Where the
      real alpha is near 1 the original is unrecoverable; the result is a
      bounded estimate, never NaN or Inf.

Edge policy:
    - Rectangles overhanging the image are clipped together with the
      matching mask sub-region. An empty intersection is a no-op.

Both operations mutate the image in place.
"""

from typing import Tuple

import numpy as np

from watermark_tool.alpha_mask import AlphaMask
from watermark_tool.geometry import Region

ALPHA_THRESHOLD = 0.002
MAX_ALPHA = 0.99


def _overlap(
    image: np.ndarray,
    mask: AlphaMask,
    position: Tuple[int, int],
) -> Tuple[Region, np.ndarray]:
    """Clip the mask rectangle to the image.

    Returns:
        The clipped image Region and the matching (h, w, 1) float32 alpha.
    """
    img_h, img_w = image.shape[:2]
    x, y = position
    region = Region(x, y, mask.width, mask.height).clip(img_w, img_h)

    alpha = mask.crop(region.x - x, region.y - y, region.width, region.height)
    return region, alpha[:, :, np.newaxis]


def _quantize(values: np.ndarray) -> np.ndarray:
    return np.rint(np.clip(values, 0.0, 255.0)).astype(np.uint8)


def add_watermark_blend(
    image: np.ndarray,
    mask: AlphaMask,
    position: Tuple[int, int],
    logo_value: float,
) -> Region:
    """Alpha-blend the watermark into image at position (top-left x, y).

    Args:
        image: BGR uint8 array (H, W, 3), modified in place.
        mask: Alpha mask; its size is the size of the blended rectangle.
        position: Top-left corner of the mask in image coordinates.
            May be negative or overhang the image.
        logo_value: Constant foreground intensity of the watermark.

    Returns:
        The clipped Region that was modified (empty if none).
    """
    region, alpha = _overlap(image, mask, position)
    if region.is_empty:
        return region

    roi = image[region.y:region.y2, region.x:region.x2]
    blended = alpha * np.float32(logo_value) + (1.0 - alpha) * roi.astype(np.float32)
    roi[...] = _quantize(blended)

    return region


def remove_watermark_blend(
    image: np.ndarray,
    mask: AlphaMask,
    position: Tuple[int, int],
    logo_value: float,
) -> Region:
    """Invert add_watermark_blend over the same rectangle.

    Args:
        image: BGR uint8 array (H, W, 3), modified in place.
        mask: Alpha mask the watermark was blended with (standard or resampled).
        position: Top-left corner of the mask in image coordinates.
        logo_value: Constant foreground intensity of the watermark.

    Returns:
        The clipped Region that was processed (empty if none).
    """
    region, alpha = _overlap(image, mask, position)
    if region.is_empty:
        return region

    roi = image[region.y:region.y2, region.x:region.x2]
    watermarked = roi.astype(np.float32)

    capped = np.minimum(alpha, np.float32(MAX_ALPHA))
    restored = (watermarked - capped * np.float32(logo_value)) / (1.0 - capped)

    restored = np.where(alpha >= ALPHA_THRESHOLD, restored, watermarked)
    roi[...] = _quantize(restored)

    return region
