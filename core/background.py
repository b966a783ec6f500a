from __future__ import annotations

from io import BytesIO
from typing import Protocol, Tuple

import numpy as np
from PIL import Image, ImageFilter

from core.compositor import np_rgba_to_pil, pil_to_np_rgba
from core.errors import BackgroundRemovalFailed, SourceDecodeFailure
from core.io import decode_source
from core.logger import get_logger

_logger = get_logger("background")


class BackgroundRemover(Protocol):
    def remove_background(self, data: bytes) -> bytes:
        """Return PNG bytes of the same image with the background alpha-matted out."""
        ...


def run_background_removal(remover: BackgroundRemover, data: bytes) -> bytes:
    try:
        out = remover.remove_background(data)
    except BackgroundRemovalFailed:
        raise
    except Exception as e:
        _logger.error("background removal failed: %s", e)
        raise BackgroundRemovalFailed(str(e)) from e
    if not out:
        raise BackgroundRemovalFailed("background removal returned no data")
    return out


def border_color(rgba: np.ndarray) -> Tuple[int, int, int]:
    """Median colour of the one-pixel frame around the image."""
    border = np.concatenate([rgba[0, :, :3], rgba[-1, :, :3], rgba[:, 0, :3], rgba[:, -1, :3]], axis=0)
    med = np.median(border.astype(np.float32), axis=0)
    return (int(med[0]), int(med[1]), int(med[2]))


class BorderColorKeyRemover:
    """Local background remover for flat backdrops (studio shots, screenshots, logos).

    Pixels within `tolerance` (RGB euclidean) of the border colour become
    transparent; the alpha edge is softened with a Gaussian feather.
    """

    def __init__(self, tolerance: int = 30, feather_radius: int = 1) -> None:
        self.tolerance = int(tolerance)
        self.feather_radius = int(feather_radius)

    def remove_background(self, data: bytes) -> bytes:
        try:
            source = decode_source(data)
        except SourceDecodeFailure as e:
            raise BackgroundRemovalFailed(str(e)) from e

        rgba = pil_to_np_rgba(source.image)
        r, g, b = border_color(rgba)
        rgb = rgba[..., :3].astype(np.int32)
        d2 = (rgb[..., 0] - r) ** 2 + (rgb[..., 1] - g) ** 2 + (rgb[..., 2] - b) ** 2
        remove = d2 <= self.tolerance * self.tolerance

        alpha = rgba[..., 3].copy()
        alpha[remove] = 0
        if self.feather_radius > 0 and np.any(remove):
            alpha_img = Image.fromarray(alpha)
            alpha_img = alpha_img.filter(ImageFilter.GaussianBlur(radius=float(self.feather_radius)))
            # Feather never brings back a keyed-out pixel or adds opacity
            alpha = np.minimum(alpha, np.array(alpha_img, dtype=np.uint8))

        out = rgba.copy()
        out[..., 3] = alpha
        buf = BytesIO()
        np_rgba_to_pil(out).save(buf, format="PNG")
        _logger.debug("keyed out %d px of border colour %s", int(remove.sum()), (r, g, b))
        return buf.getvalue()
