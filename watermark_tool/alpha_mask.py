"""
Alpha mask model and calibration loading.

Responsibility:
    Decode the two calibration captures (the watermark photographed over
    a black backdrop at 48x48 and 96x96) and derive the immutable
    per-pixel opacity planes used by the compositor and the detector.

Non-goals:
    - No blending or detection.
    - No automatic capture downloading.

Failure behavior:
    - Missing capture files raise FileNotFoundError with the expected path.
    - Undecodable capture data raises CalibrationError. The engine cannot
      run without calibration data, so neither is recoverable.
    - A capture at the wrong resolution is resized and logged, not rejected.
"""

import logging
from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np

from watermark_tool.geometry import LARGE_PLACEMENT, SMALL_PLACEMENT

logger = logging.getLogger(__name__)

SMALL_MASK_SIZE = SMALL_PLACEMENT.mask_size
LARGE_MASK_SIZE = LARGE_PLACEMENT.mask_size


class CalibrationError(RuntimeError):
    """Raised when a calibration capture cannot be turned into an alpha mask."""


class AlphaMask:
    """Immutable opacity plane with values in [0.0, 1.0].

    The values are held as a read-only float32 array of shape
    (height, width). Instances never change after construction and can
    be shared freely between threads.
    """

    __slots__ = ("_values",)

    def __init__(self, values: np.ndarray) -> None:
        """Wrap a copy of a 2-D opacity array.

        Raises:
            ValueError: If the array is not 2-D, is empty, or holds values
                        outside [0, 1] (or NaN).
        """
        values = np.array(values, dtype=np.float32, copy=True)

        if values.ndim != 2:
            raise ValueError(
                f"Alpha mask must be 2-dimensional, got shape {values.shape}."
            )
        if values.size == 0:
            raise ValueError("Alpha mask must not be empty.")
        if np.isnan(values).any():
            raise ValueError("Alpha mask values must not contain NaN.")
        if not np.all((values >= 0.0) & (values <= 1.0)):
            raise ValueError(
                f"Alpha mask values must lie in [0, 1], got range "
                f"[{float(values.min()):.4f}, {float(values.max()):.4f}]."
            )

        values.setflags(write=False)
        self._values = values

    @property
    def values(self) -> np.ndarray:
        """Read-only (height, width) float32 array."""
        return self._values

    @property
    def width(self) -> int:
        return self._values.shape[1]

    @property
    def height(self) -> int:
        return self._values.shape[0]

    @property
    def shape(self) -> Tuple[int, int]:
        return self._values.shape

    def crop(self, x: int, y: int, width: int, height: int) -> np.ndarray:
        """Return the read-only sub-plane starting at (x, y)."""
        return self._values[y:y + height, x:x + width]

    def __eq__(self, other) -> bool:
        if not isinstance(other, AlphaMask):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self._values, other._values)

    def __hash__(self) -> int:
        return hash((self.shape, self._values.tobytes()))

    def __repr__(self) -> str:
        return (
            f"AlphaMask({self.width}x{self.height}, "
            f"range={float(self._values.min()):.4f}-{float(self._values.max()):.4f})"
        )


def decode_capture(data: bytes, label: str = "capture") -> np.ndarray:
    """Decode encoded calibration image bytes into a BGR array.

    Raises:
        CalibrationError: If the data is empty or cannot be decoded.
    """
    if not data:
        raise CalibrationError(f"Failed to decode {label} background capture: no data")

    buf = np.frombuffer(data, dtype=np.uint8)
    capture = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if capture is None or capture.size == 0:
        raise CalibrationError(f"Failed to decode {label} background capture")

    return capture


def alpha_from_capture(capture: np.ndarray, size: int, label: str = "capture") -> AlphaMask:
    """Derive a size x size alpha mask from a BGR (or grayscale) capture.

    alpha = channel-averaged intensity / 255. Captures at another
    resolution are resized first (area when shrinking, bilinear when
    enlarging).
    """
    h, w = capture.shape[:2]
    if (w, h) != (size, size):
        logger.warning(
            "%s capture is %dx%d, expected %dx%d. Resizing.",
            label.capitalize(), w, h, size, size,
        )
        interpolation = cv2.INTER_LINEAR if (w < size or h < size) else cv2.INTER_AREA
        capture = cv2.resize(capture, (size, size), interpolation=interpolation)

    capture = capture.astype(np.float32)
    if capture.ndim == 3:
        capture = capture.mean(axis=2)

    return AlphaMask(np.clip(capture / 255.0, 0.0, 1.0))


def load_alpha_masks(small_data: bytes, large_data: bytes) -> Tuple[AlphaMask, AlphaMask]:
    """Build the (small, large) alpha masks from encoded calibration captures.

    Args:
        small_data: Encoded image of the 48x48 watermark over black.
        large_data: Encoded image of the 96x96 watermark over black.

    Returns:
        A (small, large) tuple of AlphaMask instances.

    Raises:
        CalibrationError: If either capture cannot be decoded.
    """
    small = alpha_from_capture(decode_capture(small_data, "small"), SMALL_MASK_SIZE, "small")
    large = alpha_from_capture(decode_capture(large_data, "large"), LARGE_MASK_SIZE, "large")

    logger.debug(
        "Alpha map small: %dx%d, large: %dx%d",
        small.width, small.height, large.width, large.height,
    )
    logger.debug(
        "Large alpha map range: %.4f - %.4f",
        float(large.values.min()), float(large.values.max()),
    )
    return small, large


def read_capture_file(path: Union[str, Path]) -> bytes:
    """Read a calibration capture from disk.

    Raises:
        FileNotFoundError: If the capture file does not exist.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(
            f"Background capture not found.\n"
            f"  Expected: {path}\n"
            f"  Provide the file or update 'engine.small_capture_path' / "
            f"'engine.large_capture_path' in your config."
        )
    return path.read_bytes()
