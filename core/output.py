from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from core.encoder import extension_for
from core.logger import get_logger
from core.state import OutputFormat

_logger = get_logger("output")


class OutputSink(Protocol):
    def deliver(self, filename: str, data: bytes) -> str: ...


class FolderSink:
    """Writes files into a previously chosen folder."""

    def __init__(self, folder: str) -> None:
        self.folder = Path(folder)

    def deliver(self, filename: str, data: bytes) -> str:
        self.folder.mkdir(parents=True, exist_ok=True)
        out = self.folder / filename
        out.write_bytes(data)
        _logger.info("wrote %s (%d bytes)", out, len(data))
        return str(out)


class DownloadSink:
    """Hands bytes to a caller-supplied save callback (a save dialog, a browser download)."""

    def __init__(self, save: Callable[[str, bytes], None]) -> None:
        self._save = save

    def deliver(self, filename: str, data: bytes) -> str:
        self._save(filename, data)
        return filename


class FallbackSink:
    def __init__(self, primary: OutputSink, fallback: OutputSink) -> None:
        self.primary = primary
        self.fallback = fallback

    def deliver(self, filename: str, data: bytes) -> str:
        try:
            return self.primary.deliver(filename, data)
        except OSError as e:
            _logger.warning("save to folder failed (%s), falling back", e)
            return self.fallback.deliver(filename, data)


def _safe(part: str) -> str:
    return part.replace("/", "_").replace("\\", "_").strip() or "image"


def render_filename(
    template: str,
    name: str,
    width: Optional[int],
    height: Optional[int],
    quality: float,
    when: Optional[date] = None,
) -> str:
    """Substitute {name} {width} {height} {date} {q} in a filename stem template."""
    day = when or date.today()
    values = {
        "{name}": name,
        "{width}": str(width) if width else "auto",
        "{height}": str(height) if height else "auto",
        "{date}": day.isoformat(),
        "{q}": str(int(round(float(quality) * 100))),
    }
    out = template
    for token, value in values.items():
        out = out.replace(token, value)
    return _safe(out)


def smart_name(base: str, width: Optional[int], height: Optional[int], quality: float) -> str:
    return render_filename("{name}-{width}x{height}-q{q}", base, width, height, quality)


def output_filename(stem: str, fmt: Union[OutputFormat, str]) -> str:
    return f"{_safe(stem)}.{extension_for(fmt)}"
