from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from PIL import Image


class OutputFormat(str, Enum):
    PNG = "image/png"
    JPEG = "image/jpeg"
    WEBP = "image/webp"
    AVIF = "image/avif"

    @classmethod
    def from_mime(cls, mime_type: Optional[str]) -> Optional["OutputFormat"]:
        mime = (mime_type or "").strip().lower()
        if mime == "image/jpg":
            mime = cls.JPEG.value
        for fmt in cls:
            if fmt.value == mime:
                return fmt
        return None


class FitMode(str, Enum):
    COVER = "cover"
    CONTAIN = "contain"
    FILL = "fill"


class MaskShape(str, Enum):
    NONE = "none"
    CIRCLE = "circle"
    SQUARE = "square"


@dataclass(frozen=True)
class CropRect:
    # Source-image pixel space
    x: int
    y: int
    width: int
    height: int

    def as_box(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)


@dataclass(frozen=True)
class Offset:
    # Target-canvas pixel space
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class ProcessOptions:
    target_width: Optional[int] = None
    target_height: Optional[int] = None
    quality: float = 0.9
    format: OutputFormat = OutputFormat.PNG
    fit: FitMode = FitMode.COVER
    mask: MaskShape = MaskShape.NONE
    # Reserved; the compositor never applies it.
    rotation: int = 0
    crop: Optional[CropRect] = None
    offset: Offset = field(default_factory=Offset)

    def __post_init__(self) -> None:
        for name in ("target_width", "target_height"):
            value = getattr(self, name)
            if value is not None and int(value) <= 0:
                raise ValueError(f"{name} must be a positive integer or None")
        if not 0.0 <= float(self.quality) <= 1.0:
            raise ValueError("quality must be within [0.0, 1.0]")


@dataclass(frozen=True)
class ViewportTransform:
    pan_x: float = 0.0
    pan_y: float = 0.0
    scale: float = 1.0


@dataclass(frozen=True)
class CropSelection:
    # On-screen pixel space, only alive during a crop drag
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True, eq=False)
class SourceImage:
    image: Image.Image
    width: int
    height: int
    name: str = "image"
    mime_type: str = OutputFormat.PNG.value

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def base_name(self) -> str:
        stem, dot, _ = self.name.rpartition(".")
        return stem if dot and stem else self.name


@dataclass(frozen=True)
class HistoryEntry:
    options: ProcessOptions
    label: str
