"""
WatermarkEngine: the public API for adding, removing and detecting the
watermark.

Public contract:
    WatermarkEngine.add_watermark(image, size=None) -> np.ndarray
    WatermarkEngine.remove_watermark(image, size=None) -> np.ndarray
    WatermarkEngine.add_watermark_custom(image, region) -> np.ndarray
    WatermarkEngine.remove_watermark_custom(image, region) -> np.ndarray
    WatermarkEngine.detect_watermark(image, size=None) -> DetectionResult

Image contract:
    - uint8 numpy array: BGR (H, W, 3), BGRA (H, W, 4) or grayscale (H, W).
    - BGR input is edited in place and the same array is returned; the
      caller grants exclusive mutable access for the duration of the call.
    - BGRA/grayscale input is converted to a new BGR array, which is
      edited and returned. The caller's array is left untouched.

Constraints:
    - The engine holds only the two immutable alpha masks and the logo
      value. Concurrent calls are safe as long as each uses its own image.

Non-goals:
    - No file reading or writing (see pipeline).
"""

import logging
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from watermark_tool.alpha_mask import (
    LARGE_MASK_SIZE,
    SMALL_MASK_SIZE,
    AlphaMask,
    load_alpha_masks,
    read_capture_file,
)
from watermark_tool.compositor import add_watermark_blend, remove_watermark_blend
from watermark_tool.config import EngineConfig, resolve_path
from watermark_tool.detection import DetectionResult
from watermark_tool.detector import detect_watermark
from watermark_tool.geometry import (
    Region,
    WatermarkSize,
    placement_for_size,
    resolve_size,
    validate_custom_region,
)
from watermark_tool.resampler import resample_alpha

logger = logging.getLogger(__name__)

SizeArg = Optional[Union[WatermarkSize, str]]


class WatermarkEngine:
    """Alpha-mask watermark engine calibrated from two background captures.

    Usage:
        engine = WatermarkEngine(small_png_bytes, large_png_bytes)
        engine = WatermarkEngine.from_files("bg_48.png", "bg_96.png")
        engine = WatermarkEngine.from_config(config.engine)

        result = engine.detect_watermark(image)
        if result.detected:
            engine.remove_watermark(image)

    The constructor decodes the captures once. Subsequent calls reuse the
    masks; there is no per-image setup cost beyond the blend itself.
    """

    def __init__(
        self,
        small_capture: bytes,
        large_capture: bytes,
        logo_value: float = 255.0,
    ) -> None:
        """Decode the calibration captures and derive the alpha masks.

        Args:
            small_capture: Encoded image of the 48x48 watermark over black.
            large_capture: Encoded image of the 96x96 watermark over black.
            logo_value: Constant foreground intensity of the watermark.

        Raises:
            CalibrationError: If either capture cannot be decoded.
            ValueError: If logo_value is outside [0, 255].
        """
        if not (0.0 <= logo_value <= 255.0):
            raise ValueError(f"logo_value must be in [0, 255], got {logo_value}.")

        self._logo_value = float(logo_value)
        self._small, self._large = load_alpha_masks(small_capture, large_capture)

        logger.info(
            "WatermarkEngine initialized (logo_value=%.1f, masks=%dx%d/%dx%d)",
            self._logo_value,
            self._small.width, self._small.height,
            self._large.width, self._large.height,
        )

    @classmethod
    def from_files(
        cls,
        small_path: Union[str, Path],
        large_path: Union[str, Path],
        logo_value: float = 255.0,
    ) -> "WatermarkEngine":
        """Build an engine from capture files on disk.

        Raises:
            FileNotFoundError: If either capture file is missing.
            CalibrationError: If either capture cannot be decoded.
        """
        engine = cls(read_capture_file(small_path), read_capture_file(large_path), logo_value)
        logger.info("Loaded background captures from files")
        return engine

    @classmethod
    def from_config(cls, config: Optional[EngineConfig] = None) -> "WatermarkEngine":
        """Build an engine from EngineConfig (relative paths resolve to the project root)."""
        if config is None:
            config = EngineConfig()
        return cls.from_files(
            resolve_path(config.small_capture_path),
            resolve_path(config.large_capture_path),
            config.logo_value,
        )

    # ----------------------------------------------------------------- masks

    @property
    def logo_value(self) -> float:
        return self._logo_value

    @property
    def small_mask(self) -> AlphaMask:
        return self._small

    @property
    def large_mask(self) -> AlphaMask:
        return self._large

    def alpha_mask(self, size: WatermarkSize) -> AlphaMask:
        """Return the precomputed mask for SMALL or LARGE.

        Raises:
            ValueError: If size is AUTO (it has no mask of its own).
        """
        size = WatermarkSize.parse(size)
        if size is WatermarkSize.AUTO:
            raise ValueError("AUTO has no fixed alpha mask; resolve it against an image first.")
        return self._small if size is WatermarkSize.SMALL else self._large

    def create_interpolated_alpha(self, width: int, height: int) -> AlphaMask:
        """Resample the 96x96 mask to an arbitrary size for custom regions."""
        return resample_alpha(self._large, width, height)

    # ------------------------------------------------------ standard placement

    def add_watermark(self, image: np.ndarray, size: SizeArg = None) -> np.ndarray:
        """Blend the watermark into its standard bottom-right position.

        Args:
            image: uint8 image (see module docstring for the buffer contract).
            size: AUTO/None picks from the image dimensions; SMALL/LARGE force
                  a mask and its standard margins.

        Returns:
            The watermarked BGR image.
        """
        image = self._prepare(image)
        mask, position = self._standard_target(image, size, "Adding")
        add_watermark_blend(image, mask, position, self._logo_value)
        return image

    def remove_watermark(self, image: np.ndarray, size: SizeArg = None) -> np.ndarray:
        """Reverse the watermark blend at its standard bottom-right position.

        Args:
            image: uint8 image (see module docstring for the buffer contract).
            size: AUTO/None picks from the image dimensions; SMALL/LARGE force
                  a mask and its standard margins.

        Returns:
            The restored BGR image.
        """
        image = self._prepare(image)
        mask, position = self._standard_target(image, size, "Removing")
        remove_watermark_blend(image, mask, position, self._logo_value)
        return image

    def detect_watermark(self, image: np.ndarray, size: SizeArg = None) -> DetectionResult:
        """Score whether the watermark is present at its standard position.

        The image is never modified. Empty images give a neutral result.

        Raises:
            TypeError: If image is not a numpy ndarray.
        """
        self._validate_image(image, allow_empty=True)
        if image.size == 0:
            return DetectionResult()

        h, w = image.shape[:2]
        resolved = resolve_size(size, w, h)
        return detect_watermark(
            image, self.alpha_mask(resolved), placement_for_size(resolved, w, h)
        )

    # ---------------------------------------------------------- custom regions

    def add_watermark_custom(self, image: np.ndarray, region: Region) -> np.ndarray:
        """Blend the watermark into an arbitrary rectangle.

        Raises:
            ValueError: If the region is smaller than MIN_CUSTOM_REGION.
        """
        image = self._prepare(image)
        mask = self._custom_mask(region)
        logger.info(
            "Adding watermark at (%d,%d) with %dx%d alpha map",
            region.x, region.y, mask.width, mask.height,
        )
        add_watermark_blend(image, mask, (region.x, region.y), self._logo_value)
        return image

    def remove_watermark_custom(self, image: np.ndarray, region: Region) -> np.ndarray:
        """Reverse the watermark blend over an arbitrary rectangle.

        Raises:
            ValueError: If the region is smaller than MIN_CUSTOM_REGION.
        """
        image = self._prepare(image)
        mask = self._custom_mask(region)
        logger.info(
            "Removing watermark at (%d,%d) with %dx%d alpha map",
            region.x, region.y, mask.width, mask.height,
        )
        remove_watermark_blend(image, mask, (region.x, region.y), self._logo_value)
        return image

    # --------------------------------------------------------------- internals

    def _custom_mask(self, region: Region) -> AlphaMask:
        """Exact 48x48/96x96 regions reuse the calibrated masks; others are resampled."""
        validate_custom_region(region)
        if (region.width, region.height) == (SMALL_MASK_SIZE, SMALL_MASK_SIZE):
            return self._small
        if (region.width, region.height) == (LARGE_MASK_SIZE, LARGE_MASK_SIZE):
            return self._large
        return self.create_interpolated_alpha(region.width, region.height)

    def _standard_target(self, image: np.ndarray, size: SizeArg, action: str):
        h, w = image.shape[:2]
        resolved = resolve_size(size, w, h)
        mask = self.alpha_mask(resolved)
        position = placement_for_size(resolved, w, h).position(w, h)

        logger.debug(
            "%s watermark at (%d, %d) with %dx%d alpha map (size: %s)",
            action, position[0], position[1], mask.width, mask.height,
            resolved.value,
        )
        return mask, position

    def _prepare(self, image: np.ndarray) -> np.ndarray:
        """Validate and return a BGR image to edit (the input itself when already BGR)."""
        self._validate_image(image)

        if image.ndim == 2:
            return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        if image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
        return image

    @staticmethod
    def _validate_image(image: np.ndarray, allow_empty: bool = False) -> None:
        """Validate that the input image meets the API contract.

        Raises:
            TypeError: If image is not a numpy ndarray.
            ValueError: If image is empty, has the wrong dtype, or an
                        unsupported shape.
        """
        if not isinstance(image, np.ndarray):
            raise TypeError(
                f"Expected image to be a numpy ndarray, "
                f"got {type(image).__name__}. "
                f"Use cv2.imread() or cv2.imdecode() to obtain images."
            )

        if image.size == 0:
            if allow_empty:
                return
            raise ValueError("Empty image provided.")

        if image.dtype != np.uint8:
            raise ValueError(
                f"Expected a uint8 image, got dtype {image.dtype}."
            )

        if image.ndim == 2:
            return

        if image.ndim != 3 or image.shape[2] not in (3, 4):
            raise ValueError(
                f"Expected a BGR (H, W, 3), BGRA (H, W, 4) or grayscale (H, W) "
                f"image, got shape {image.shape}."
            )
