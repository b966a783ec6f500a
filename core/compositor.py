from __future__ import annotations

from typing import Tuple

import numpy as np
from PIL import Image

from core.errors import SourceDecodeFailure
from core.geometry import Placement, clamp_crop, compute_placement, compute_target_size
from core.state import MaskShape, ProcessOptions, SourceImage

# Nearest neighbour is never used: exports must be smoothed.
RESAMPLE = Image.Resampling.LANCZOS


def pil_to_np_rgba(img: Image.Image) -> np.ndarray:
    arr = np.array(img.convert("RGBA"), dtype=np.uint8)
    if arr.ndim != 3 or arr.shape[2] != 4:
        raise ValueError("Expected RGBA image")
    return arr


def np_rgba_to_pil(arr: np.ndarray) -> Image.Image:
    if arr.dtype != np.uint8 or arr.ndim != 3 or arr.shape[2] != 4:
        raise ValueError("arr must be HxWx4 uint8")
    return Image.fromarray(arr)


def _paste_clipped(base: np.ndarray, region: Image.Image, placement: Placement) -> None:
    out_h, out_w = base.shape[:2]
    new_w = max(1, int(round(placement.width)))
    new_h = max(1, int(round(placement.height)))
    x = int(round(placement.x))
    y = int(round(placement.y))

    x0 = max(0, x)
    y0 = max(0, y)
    x1 = min(out_w, x + new_w)
    y1 = min(out_h, y + new_h)
    if x1 <= x0 or y1 <= y0:
        # Offset pushed the content fully off-canvas
        return

    scaled = region if region.size == (new_w, new_h) else region.resize((new_w, new_h), resample=RESAMPLE)
    arr = pil_to_np_rgba(scaled)

    sx0 = x0 - x
    sy0 = y0 - y
    sx1 = sx0 + (x1 - x0)
    sy1 = sy0 + (y1 - y0)
    base[y0:y1, x0:x1] = arr[sy0:sy1, sx0:sx1]


def mask_keep_region(size: Tuple[int, int], mask: MaskShape) -> np.ndarray:
    """Boolean HxW array of the pixels a mask keeps, tested at pixel centres."""
    w, h = size
    if mask == MaskShape.NONE:
        return np.ones((h, w), dtype=bool)

    yy, xx = np.ogrid[:h, :w]
    px = xx.astype(np.float64) + 0.5
    py = yy.astype(np.float64) + 0.5
    side = float(min(w, h))

    if mask == MaskShape.CIRCLE:
        r = side / 2.0
        return (px - w / 2.0) ** 2 + (py - h / 2.0) ** 2 <= r * r
    if mask == MaskShape.SQUARE:
        left = (w - side) / 2.0
        top = (h - side) / 2.0
        in_x = (px >= left) & (px < left + side)
        in_y = (py >= top) & (py < top + side)
        return in_x & in_y
    raise ValueError(f"unknown mask shape: {mask!r}")


def apply_mask(rgba: np.ndarray, mask: MaskShape) -> np.ndarray:
    if rgba.dtype != np.uint8 or rgba.ndim != 3 or rgba.shape[2] != 4:
        raise ValueError("rgba must be HxWx4 uint8")
    if mask == MaskShape.NONE:
        return rgba
    keep = mask_keep_region((rgba.shape[1], rgba.shape[0]), mask)
    out = rgba.copy()
    out[..., 3] = np.where(keep, out[..., 3], 0).astype(np.uint8)
    return out


def composite(source: SourceImage, options: ProcessOptions) -> Image.Image:
    """Render the source into a target-sized RGBA canvas: crop, fit, offset, mask."""
    if source is None or source.image is None:
        raise SourceDecodeFailure("no source image")

    crop = clamp_crop(options.crop, source.width, source.height)
    out_w, out_h = compute_target_size(crop.width, crop.height, options)
    placement = compute_placement(crop.width, crop.height, out_w, out_h, options.fit, options.offset)

    try:
        if (crop.width, crop.height) == source.image.size:
            region = source.image
        else:
            region = source.image.crop(crop.as_box())
        if region.mode != "RGBA":
            region = region.convert("RGBA")
    except OSError as exc:
        raise SourceDecodeFailure(f"cannot read source pixels: {exc}") from exc

    base = np.zeros((out_h, out_w, 4), dtype=np.uint8)
    _paste_clipped(base, region, placement)
    base = apply_mask(base, options.mask)
    return np_rgba_to_pil(base)
