from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from core.errors import InvalidGeometry
from core.state import CropRect, CropSelection, FitMode, Offset, ProcessOptions, ViewportTransform


@dataclass(frozen=True)
class Placement:
    """Where the (cropped) source lands on the target canvas, in canvas pixels.

    x/y may be negative and width/height may exceed the canvas for COVER; the
    canvas bounds clip the overflow.
    """

    x: float
    y: float
    width: float
    height: float


def compute_target_size(src_w: float, src_h: float, options: ProcessOptions) -> Tuple[int, int]:
    if src_w <= 0 or src_h <= 0:
        raise InvalidGeometry(f"source region must be positive, got {src_w}x{src_h}")

    tw = options.target_width
    th = options.target_height
    if tw is None and th is None:
        out = (int(round(src_w)), int(round(src_h)))
    elif th is None:
        out = (int(tw), int(round(src_h / src_w * tw)))
    elif tw is None:
        out = (int(round(src_w / src_h * th)), int(th))
    else:
        out = (int(tw), int(th))

    if out[0] <= 0 or out[1] <= 0:
        raise InvalidGeometry(f"target size must be positive, got {out[0]}x{out[1]}")
    return out


def compute_placement(
    src_w: float,
    src_h: float,
    target_w: int,
    target_h: int,
    fit: FitMode,
    offset: Optional[Offset] = None,
) -> Placement:
    if src_w <= 0 or src_h <= 0 or target_w <= 0 or target_h <= 0:
        raise InvalidGeometry(f"cannot place {src_w}x{src_h} into {target_w}x{target_h}")

    if fit == FitMode.FILL:
        x, y, w, h = 0.0, 0.0, float(target_w), float(target_h)
    elif fit in (FitMode.COVER, FitMode.CONTAIN):
        sx = target_w / float(src_w)
        sy = target_h / float(src_h)
        scale = max(sx, sy) if fit == FitMode.COVER else min(sx, sy)
        w = src_w * scale
        h = src_h * scale
        x = (target_w - w) / 2.0
        y = (target_h - h) / 2.0
    else:
        raise ValueError(f"unknown fit mode: {fit!r}")

    if offset is not None:
        x += offset.x
        y += offset.y
    return Placement(x, y, w, h)


def clamp_crop(crop: Optional[CropRect], src_w: int, src_h: int) -> CropRect:
    """Intersect a crop with the source bounds; a missing crop means the full source."""
    if src_w <= 0 or src_h <= 0:
        raise InvalidGeometry(f"source must be positive, got {src_w}x{src_h}")
    if crop is None:
        return CropRect(0, 0, int(src_w), int(src_h))

    x0 = max(0, min(int(src_w), int(math.floor(crop.x))))
    y0 = max(0, min(int(src_h), int(math.floor(crop.y))))
    x1 = max(0, min(int(src_w), int(math.floor(crop.x + crop.width))))
    y1 = max(0, min(int(src_h), int(math.floor(crop.y + crop.height))))
    if x1 <= x0 or y1 <= y0:
        raise InvalidGeometry(f"crop {crop} does not intersect {src_w}x{src_h} source")
    return CropRect(x0, y0, x1 - x0, y1 - y0)


def normalize_selection(ax: float, ay: float, bx: float, by: float) -> CropSelection:
    return CropSelection(min(ax, bx), min(ay, by), abs(bx - ax), abs(by - ay))


def screen_to_image(x: float, y: float, viewport: ViewportTransform) -> Tuple[float, float]:
    return ((x - viewport.pan_x) / viewport.scale, (y - viewport.pan_y) / viewport.scale)


def map_screen_rect_to_image_rect(
    selection: CropSelection,
    viewport: ViewportTransform,
    source_size: Tuple[int, int],
    min_screen_size: float = 5.0,
) -> Optional[CropRect]:
    """Map an on-screen selection to a source crop.

    Returns None for selections too small to be intentional (a click, a jitter)
    or ones that fall entirely outside the image.
    """
    if selection.width <= min_screen_size or selection.height <= min_screen_size:
        return None
    if viewport.scale <= 0:
        raise InvalidGeometry("viewport scale must be positive")

    src_w, src_h = source_size
    x0, y0 = screen_to_image(selection.x, selection.y, viewport)
    x1, y1 = screen_to_image(selection.x + selection.width, selection.y + selection.height, viewport)

    x0 = max(0.0, min(float(src_w), x0))
    x1 = max(0.0, min(float(src_w), x1))
    y0 = max(0.0, min(float(src_h), y0))
    y1 = max(0.0, min(float(src_h), y1))

    w = int(math.floor(x1 - x0))
    h = int(math.floor(y1 - y0))
    if w <= 0 or h <= 0:
        return None
    return CropRect(int(math.floor(x0)), int(math.floor(y0)), w, h)
