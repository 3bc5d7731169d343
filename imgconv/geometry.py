"""
Geometry - Contain/cover resize plans and derivative filename suffixes.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class ResizePlan:
    """
    How to turn a source image into one derivative.

    Attributes:
        resize_width: Width to resample the source to
        resize_height: Height to resample the source to
        crop_box: (left, top, right, bottom) applied after resizing, or None
    """
    resize_width: int
    resize_height: int
    crop_box: Optional[Tuple[int, int, int, int]] = None

    @property
    def width(self) -> int:
        """Final output width."""
        if self.crop_box:
            return self.crop_box[2] - self.crop_box[0]
        return self.resize_width

    @property
    def height(self) -> int:
        """Final output height."""
        if self.crop_box:
            return self.crop_box[3] - self.crop_box[1]
        return self.resize_height


def round_half_up(value: float) -> int:
    """Round .5 away from zero (for positive values) instead of to even."""
    return int(math.floor(value + 0.5))


def compute_resize_plan(
    orig_width: int,
    orig_height: int,
    width: int,
    height: int,
    crop: bool = False
) -> Optional[ResizePlan]:
    """
    Compute the resize (and optional crop) for a target box.

    Args:
        orig_width: Source width in pixels
        orig_height: Source height in pixels
        width: Target width bound (0 = unbounded)
        height: Target height bound (0 = unbounded)
        crop: Cover the box exactly instead of fitting inside it

    Returns:
        ResizePlan, or None when both bounds are zero

    Raises:
        ValueError: If the source dimensions are not positive
    """
    if orig_width <= 0 or orig_height <= 0:
        raise ValueError(f"Invalid source dimensions {orig_width}x{orig_height}")

    width = max(0, int(width))
    height = max(0, int(height))

    if width == 0 and height == 0:
        return None

    if width and height and crop:
        return _cover_plan(orig_width, orig_height, width, height)

    if width and height:
        scale = min(width / orig_width, height / orig_height)
        new_width = min(width, max(1, round_half_up(orig_width * scale)))
        new_height = min(height, max(1, round_half_up(orig_height * scale)))
        return ResizePlan(new_width, new_height)

    if width:
        new_height = max(1, round_half_up(orig_height * width / orig_width))
        return ResizePlan(width, new_height)

    new_width = max(1, round_half_up(orig_width * height / orig_height))
    return ResizePlan(new_width, height)


def _cover_plan(orig_width: int, orig_height: int, width: int, height: int) -> ResizePlan:
    """Scale to cover width x height, then crop the centre to exactly that size."""
    ratio_src = orig_width / orig_height
    ratio_dst = width / height

    if ratio_src > ratio_dst:
        new_height = height
        new_width = max(width, round_half_up(height * ratio_src))
    else:
        new_width = width
        new_height = max(height, round_half_up(width / ratio_src))

    left = (new_width - width) // 2
    top = (new_height - height) // 2
    return ResizePlan(
        resize_width=new_width,
        resize_height=new_height,
        crop_box=(left, top, left + width, top + height),
    )


def suffix(width: int, height: int, crop: bool = False) -> str:
    """
    Filename suffix for a derivative.

    Examples: '150x150-c', '300x200', '768w', '400h'.
    """
    if width and height:
        return f"{width}x{height}" + ("-c" if crop else "")
    if width:
        return f"{width}w"
    return f"{height}h"
