from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Union

from core.presets import Preset
from core.state import CropRect, FitMode, MaskShape, Offset, OutputFormat, ProcessOptions


@dataclass(frozen=True)
class ResizeWidth:
    width: Optional[int]


@dataclass(frozen=True)
class ResizeHeight:
    height: Optional[int]


@dataclass(frozen=True)
class SetFit:
    fit: FitMode


@dataclass(frozen=True)
class SetMask:
    mask: MaskShape


@dataclass(frozen=True)
class SetFormat:
    format: OutputFormat


@dataclass(frozen=True)
class SetQuality:
    quality: float


@dataclass(frozen=True)
class SetCrop:
    crop: Optional[CropRect]


@dataclass(frozen=True)
class SetOffset:
    offset: Offset


@dataclass(frozen=True)
class ApplyPreset:
    preset: Preset


EditAction = Union[
    ResizeWidth, ResizeHeight, SetFit, SetMask, SetFormat, SetQuality, SetCrop, SetOffset, ApplyPreset
]


def _dimension(value: Optional[int]) -> Optional[int]:
    # 0 / empty input means "auto"
    if value is None or int(value) <= 0:
        return None
    return int(value)


def apply_action(options: ProcessOptions, action: EditAction) -> ProcessOptions:
    if isinstance(action, ResizeWidth):
        return replace(options, target_width=_dimension(action.width))
    if isinstance(action, ResizeHeight):
        return replace(options, target_height=_dimension(action.height))
    if isinstance(action, SetFit):
        return replace(options, fit=FitMode(action.fit))
    if isinstance(action, SetMask):
        return replace(options, mask=MaskShape(action.mask))
    if isinstance(action, SetFormat):
        return replace(options, format=OutputFormat(action.format))
    if isinstance(action, SetQuality):
        return replace(options, quality=max(0.0, min(1.0, float(action.quality))))
    if isinstance(action, SetCrop):
        return replace(options, crop=action.crop)
    if isinstance(action, SetOffset):
        return replace(options, offset=action.offset)
    if isinstance(action, ApplyPreset):
        return action.preset.apply(options)
    raise TypeError(f"unknown edit action: {action!r}")


def label_for(action: EditAction) -> str:
    if isinstance(action, (ResizeWidth, ResizeHeight)):
        return "Resize"
    if isinstance(action, SetFit):
        return "Fit"
    if isinstance(action, SetMask):
        return "Mask"
    if isinstance(action, SetFormat):
        return "Format"
    if isinstance(action, SetQuality):
        return "Quality"
    if isinstance(action, SetCrop):
        return "Crop"
    if isinstance(action, SetOffset):
        return "Move Image"
    if isinstance(action, ApplyPreset):
        return action.preset.label
    raise TypeError(f"unknown edit action: {action!r}")
