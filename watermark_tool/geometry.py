"""
Watermark geometry: mask sizes, placement and rectangles.

Responsibility:
    Map image dimensions to the watermark placement (mask size and
    bottom-right margins) and provide the rectangle arithmetic used by
    the compositor and the detector.

Non-goals:
    - No pixel access.
    - No I/O or logging.

Hard-coded:
    - Large placement (96x96 mask, 64px margins) only when BOTH image
      dimensions strictly exceed 1024 pixels. 1024x1024 is small.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

# Side length above which (exclusive, on both axes) the large mask applies
LARGE_IMAGE_THRESHOLD = 1024

# Smallest custom region worth drawing, and smallest one that can be resized
MIN_CUSTOM_REGION = 4
MIN_RESIZABLE_REGION = 8


class WatermarkSize(Enum):
    """Requested watermark size.

    AUTO lets the placement rule choose from the image dimensions.
    SMALL and LARGE force the 48x48 or 96x96 mask.
    """

    AUTO = "auto"
    SMALL = "small"
    LARGE = "large"

    @classmethod
    def parse(cls, value) -> "WatermarkSize":
        """Accept an enum member, its string value, or None (AUTO)."""
        if value is None:
            return cls.AUTO
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Invalid watermark size: '{value}'. "
                f"Must be one of {[s.value for s in cls]}."
            ) from None


@dataclass(frozen=True, slots=True)
class Region:
    """An axis-aligned rectangle in image pixel coordinates.

    Attributes:
        x: Left edge (may be negative before clipping).
        y: Top edge (may be negative before clipping).
        width: Width in pixels.
        height: Height in pixels.
    """

    x: int
    y: int
    width: int
    height: int

    @property
    def x2(self) -> int:
        """Exclusive right edge."""
        return self.x + self.width

    @property
    def y2(self) -> int:
        """Exclusive bottom edge."""
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def clip(self, image_width: int, image_height: int) -> "Region":
        """Return the intersection with a (image_width x image_height) image.

        An empty intersection is returned as a zero-size region anchored
        at the clamped corner.
        """
        x1 = max(0, self.x)
        y1 = max(0, self.y)
        x2 = min(image_width, self.x2)
        y2 = min(image_height, self.y2)
        return Region(x1, y1, max(0, x2 - x1), max(0, y2 - y1))

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True, slots=True)
class Placement:
    """Where a square watermark sits relative to the bottom-right corner.

    Attributes:
        margin_right: Gap between the mask and the right image edge.
        margin_bottom: Gap between the mask and the bottom image edge.
        mask_size: Edge length of the square mask.
    """

    margin_right: int
    margin_bottom: int
    mask_size: int

    def position(self, image_width: int, image_height: int) -> Tuple[int, int]:
        """Top-left corner of the mask for an image of the given size."""
        return (
            image_width - self.margin_right - self.mask_size,
            image_height - self.margin_bottom - self.mask_size,
        )

    def region(self, image_width: int, image_height: int) -> Region:
        """Unclipped mask rectangle for an image of the given size."""
        x, y = self.position(image_width, image_height)
        return Region(x, y, self.mask_size, self.mask_size)


SMALL_PLACEMENT = Placement(margin_right=32, margin_bottom=32, mask_size=48)
LARGE_PLACEMENT = Placement(margin_right=64, margin_bottom=64, mask_size=96)


def select_placement(image_width: int, image_height: int) -> Placement:
    """Pick the placement for an image purely from its dimensions."""
    if image_width > LARGE_IMAGE_THRESHOLD and image_height > LARGE_IMAGE_THRESHOLD:
        return LARGE_PLACEMENT
    return SMALL_PLACEMENT


def resolve_size(
    size: Optional[WatermarkSize],
    image_width: int,
    image_height: int,
) -> WatermarkSize:
    """Turn AUTO (or None) into the concrete SMALL/LARGE size for an image."""
    size = WatermarkSize.parse(size)
    if size is not WatermarkSize.AUTO:
        return size
    if select_placement(image_width, image_height) is LARGE_PLACEMENT:
        return WatermarkSize.LARGE
    return WatermarkSize.SMALL


def placement_for_size(
    size: Optional[WatermarkSize],
    image_width: int,
    image_height: int,
) -> Placement:
    """Standard placement for a requested size (forced sizes keep their margins)."""
    if resolve_size(size, image_width, image_height) is WatermarkSize.LARGE:
        return LARGE_PLACEMENT
    return SMALL_PLACEMENT


def validate_custom_region(region: Region) -> None:
    """Reject user-drawn regions too small to carry a watermark.

    Raises:
        ValueError: If either side is below MIN_CUSTOM_REGION pixels.
    """
    if region.width < MIN_CUSTOM_REGION or region.height < MIN_CUSTOM_REGION:
        raise ValueError(
            f"Custom region too small: {region.width}x{region.height}. "
            f"Both sides must be at least {MIN_CUSTOM_REGION} pixels."
        )
