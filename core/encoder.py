from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Any, Dict, Optional, Union

from PIL import Image

from core.errors import EncodeFailure, UnsupportedFormat
from core.logger import get_logger
from core.state import OutputFormat

_logger = get_logger("encoder")

# Canvas exports flatten transparency onto black for formats without alpha.
JPEG_MATTE = (0, 0, 0)

NativeQuality = Optional[Union[int, float]]


@dataclass(frozen=True)
class Codec:
    pil_format: str
    extension: str
    supports_alpha: bool


CODECS: Dict[OutputFormat, Codec] = {
    OutputFormat.PNG: Codec("PNG", "png", True),
    OutputFormat.JPEG: Codec("JPEG", "jpg", False),
    OutputFormat.WEBP: Codec("WEBP", "webp", True),
    OutputFormat.AVIF: Codec("AVIF", "avif", True),
}


def resolve_format(fmt: Union[OutputFormat, str]) -> OutputFormat:
    if isinstance(fmt, OutputFormat):
        return fmt
    resolved = OutputFormat.from_mime(str(fmt))
    if resolved is None:
        raise UnsupportedFormat(f"unsupported output format: {fmt!r}")
    return resolved


def codec_for(fmt: Union[OutputFormat, str]) -> Codec:
    resolved = resolve_format(fmt)
    codec = CODECS.get(resolved)
    if codec is None:
        raise UnsupportedFormat(f"no codec registered for {resolved.value}")
    return codec


def extension_for(fmt: Union[OutputFormat, str]) -> str:
    return codec_for(fmt).extension


def native_quality(fmt: Union[OutputFormat, str], quality: float) -> NativeQuality:
    """Translate a normalized [0, 1] quality into the codec's own convention.

    PNG: None (lossless), JPEG/AVIF: int 0..100, WEBP: the float unchanged.
    """
    resolved = resolve_format(fmt)
    q = max(0.0, min(1.0, float(quality)))
    if resolved == OutputFormat.PNG:
        return None
    if resolved in (OutputFormat.JPEG, OutputFormat.AVIF):
        return int(round(q * 100))
    if resolved == OutputFormat.WEBP:
        return q
    raise UnsupportedFormat(f"no quality mapping for {resolved.value}")


def save_params(fmt: Union[OutputFormat, str], native: NativeQuality) -> Dict[str, Any]:
    """Pillow writer arguments for a codec-native quality value."""
    resolved = resolve_format(fmt)
    if resolved == OutputFormat.PNG:
        return {}
    if resolved in (OutputFormat.JPEG, OutputFormat.AVIF):
        return {"quality": int(native)}
    if resolved == OutputFormat.WEBP:
        # Pillow's WebP writer takes the libwebp 0..100 quality factor
        return {"quality": float(native) * 100.0}
    raise UnsupportedFormat(f"no writer parameters for {resolved.value}")


def _flatten(img: Image.Image, matte: tuple) -> Image.Image:
    rgba = img.convert("RGBA")
    bg = Image.new("RGBA", rgba.size, matte + (255,))
    bg.alpha_composite(rgba)
    return bg.convert("RGB")


def encode(buffer: Image.Image, fmt: Union[OutputFormat, str], quality: float) -> bytes:
    codec = codec_for(fmt)
    params = save_params(fmt, native_quality(fmt, quality))

    img = buffer if codec.supports_alpha else _flatten(buffer, JPEG_MATTE)
    out = BytesIO()
    try:
        img.save(out, format=codec.pil_format, **params)
    except (OSError, ValueError, KeyError) as exc:
        _logger.error("encode %s failed: %s", codec.pil_format, exc)
        raise EncodeFailure(f"{codec.pil_format} encode failed: {exc}") from exc
    return out.getvalue()
