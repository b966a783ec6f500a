from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from core.state import CropRect, FitMode, MaskShape, Offset, OutputFormat, ProcessOptions


OPTIONS_VERSION = 1


def _dimension_from_raw(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        v = int(value)
    except (TypeError, ValueError):
        return None
    return v if v > 0 else None


def _crop_from_raw(raw: Any) -> Optional[CropRect]:
    if not isinstance(raw, dict):
        return None
    try:
        crop = CropRect(
            x=int(raw.get("x", 0)),
            y=int(raw.get("y", 0)),
            width=int(raw["width"]),
            height=int(raw["height"]),
        )
    except (KeyError, TypeError, ValueError):
        return None
    if crop.width <= 0 or crop.height <= 0:
        return None
    return crop


def _enum_from_raw(enum_cls, value: Any, default):
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        return default


def options_to_raw(options: ProcessOptions) -> dict:
    crop = options.crop
    return {
        "target_width": options.target_width,
        "target_height": options.target_height,
        "quality": options.quality,
        "format": options.format.value,
        "fit": options.fit.value,
        "mask": options.mask.value,
        "rotation": options.rotation,
        "crop": None if crop is None else {"x": crop.x, "y": crop.y, "width": crop.width, "height": crop.height},
        "offset": {"x": options.offset.x, "y": options.offset.y},
    }


def options_from_raw(raw: dict) -> ProcessOptions:
    defaults = ProcessOptions()
    # "width"/"height" are accepted for snapshots written by older exports
    width = raw.get("target_width", raw.get("width"))
    height = raw.get("target_height", raw.get("height"))

    fmt = OutputFormat.from_mime(raw.get("format")) or defaults.format
    offset_raw = raw.get("offset") if isinstance(raw.get("offset"), dict) else {}
    try:
        quality = max(0.0, min(1.0, float(raw.get("quality", defaults.quality))))
    except (TypeError, ValueError):
        quality = defaults.quality

    return ProcessOptions(
        target_width=_dimension_from_raw(width),
        target_height=_dimension_from_raw(height),
        quality=quality,
        format=fmt,
        fit=_enum_from_raw(FitMode, raw.get("fit", defaults.fit.value), defaults.fit),
        mask=_enum_from_raw(MaskShape, raw.get("mask", defaults.mask.value), defaults.mask),
        rotation=int(raw.get("rotation", 0) or 0),
        crop=_crop_from_raw(raw.get("crop")),
        offset=Offset(float(offset_raw.get("x", 0.0)), float(offset_raw.get("y", 0.0))),
    )


def save_options(path: str, options: ProcessOptions) -> None:
    payload = {"version": OPTIONS_VERSION, "options": options_to_raw(options)}
    Path(path).write_text(json.dumps(payload, indent=2), encoding="utf-8")


def load_options(path: str) -> ProcessOptions:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    options_raw = raw.get("options", raw) if isinstance(raw, dict) else {}
    return options_from_raw(options_raw if isinstance(options_raw, dict) else {})
