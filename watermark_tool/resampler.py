"""
Alpha mask resampling for custom watermark regions.

Responsibility:
    Produce an alpha mask at an arbitrary resolution by interpolating a
    source mask. The engine always passes its 96x96 mask, the highest
    fidelity capture, whatever the target size.

Non-goals:
    - No caching. Interactive callers may resample on every resize.
"""

import logging

import cv2

from watermark_tool.alpha_mask import AlphaMask

logger = logging.getLogger(__name__)


def resample_alpha(source: AlphaMask, target_width: int, target_height: int) -> AlphaMask:
    """Interpolate an alpha mask to (target_width x target_height).

    Bilinear when enlarging along either axis, area averaging otherwise.
    A same-size request returns an equal copy.

    Raises:
        ValueError: If either target dimension is not positive.
    """
    if target_width <= 0 or target_height <= 0:
        raise ValueError(
            f"Resample target must be positive, got {target_width}x{target_height}."
        )

    if (target_width, target_height) == (source.width, source.height):
        return AlphaMask(source.values)

    enlarging = target_width > source.width or target_height > source.height
    interpolation = cv2.INTER_LINEAR if enlarging else cv2.INTER_AREA

    resized = cv2.resize(
        source.values.copy(), (target_width, target_height), interpolation=interpolation
    )

    logger.debug(
        "Created interpolated alpha map: %dx%d -> %dx%d (method: %s)",
        source.width, source.height, target_width, target_height,
        "bilinear" if enlarging else "area",
    )

    # Interpolation can overshoot by float error only; keep the [0, 1] invariant
    return AlphaMask(resized.clip(0.0, 1.0))
