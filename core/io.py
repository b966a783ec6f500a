from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from core.errors import SourceDecodeFailure
from core.state import SourceImage


def decode_source(data: bytes, name: str = "image", mime_type: Optional[str] = None) -> SourceImage:
    try:
        img = Image.open(BytesIO(data))
        img.load()
        fmt = img.format
        # Honour camera orientation, then convert to RGBA for consistent alpha work
        img = ImageOps.exif_transpose(img).convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise SourceDecodeFailure(f"cannot decode {name}: {exc}") from exc

    if img.width <= 0 or img.height <= 0:
        raise SourceDecodeFailure(f"{name} has no pixels")

    mime = mime_type or Image.MIME.get(fmt or "", "image/png")
    return SourceImage(image=img, width=img.width, height=img.height, name=name, mime_type=mime)


def load_source(path: str) -> SourceImage:
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as exc:
        raise SourceDecodeFailure(f"cannot read {path}: {exc}") from exc
    return decode_source(data, name=p.name)


def save_bytes(path: str, data: bytes) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)
