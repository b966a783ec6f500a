from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

from core.logger import get_logger

_logger = get_logger("config")


@dataclass
class EditorConfig:
    # History
    history_capacity: int = 20

    # Recompute debounce (milliseconds)
    interactive_delay_ms: int = 10
    settle_delay_ms: int = 300

    # Viewport
    min_zoom: float = 0.1
    max_zoom: float = 5.0
    wheel_zoom_step: float = 0.001

    # Crop drags at or below this many screen pixels are ignored
    min_crop_screen_px: float = 5.0

    # Export
    default_quality: float = 0.9
    filename_template: str = "{name}"
    batch_suffix: str = "-processed"
    output_dir: Optional[str] = None


def _int(raw: dict, key: str, default: int, minimum: int = 0) -> int:
    try:
        return max(minimum, int(raw.get(key, default)))
    except (TypeError, ValueError):
        _logger.warning("config key %s invalid, using %s", key, default)
        return default


def _float(raw: dict, key: str, default: float) -> float:
    try:
        return float(raw.get(key, default))
    except (TypeError, ValueError):
        _logger.warning("config key %s invalid, using %s", key, default)
        return default


def config_from_raw(raw: dict[str, Any]) -> EditorConfig:
    defaults = EditorConfig()
    min_zoom = _float(raw, "min_zoom", defaults.min_zoom)
    max_zoom = _float(raw, "max_zoom", defaults.max_zoom)
    if min_zoom <= 0 or max_zoom < min_zoom:
        _logger.warning("zoom bounds invalid (%s, %s), using defaults", min_zoom, max_zoom)
        min_zoom, max_zoom = defaults.min_zoom, defaults.max_zoom

    output_dir = raw.get("output_dir")
    return EditorConfig(
        history_capacity=_int(raw, "history_capacity", defaults.history_capacity, minimum=1),
        interactive_delay_ms=_int(raw, "interactive_delay_ms", defaults.interactive_delay_ms),
        settle_delay_ms=_int(raw, "settle_delay_ms", defaults.settle_delay_ms),
        min_zoom=min_zoom,
        max_zoom=max_zoom,
        wheel_zoom_step=_float(raw, "wheel_zoom_step", defaults.wheel_zoom_step),
        min_crop_screen_px=_float(raw, "min_crop_screen_px", defaults.min_crop_screen_px),
        default_quality=max(0.0, min(1.0, _float(raw, "default_quality", defaults.default_quality))),
        filename_template=str(raw.get("filename_template", defaults.filename_template)) or defaults.filename_template,
        batch_suffix=str(raw.get("batch_suffix", defaults.batch_suffix)),
        output_dir=str(output_dir) if output_dir else None,
    )


def load_config(path: str) -> EditorConfig:
    config_file = Path(path)
    if not config_file.exists():
        return EditorConfig()
    try:
        raw = json.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        _logger.warning("config load failed: %s", e)
        return EditorConfig()
    if not isinstance(raw, dict):
        _logger.warning("config file %s is not an object", path)
        return EditorConfig()
    _logger.debug("config loaded: %s", path)
    return config_from_raw(raw)


def save_config(path: str, config: EditorConfig) -> None:
    config_file = Path(path)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(asdict(config), indent=2), encoding="utf-8")
    _logger.debug("config saved: %s", path)
