from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple

from core.geometry import map_screen_rect_to_image_rect, normalize_selection
from core.state import CropSelection, Offset, ProcessOptions, ViewportTransform

MOVE_IMAGE_LABEL = "Move Image"
CROP_LABEL = "Crop"

MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
WHEEL_ZOOM_STEP = 0.001


class ToolMode(str, Enum):
    PAN = "pan"
    MOVE_IMAGE = "move_image"
    CROP = "crop"


@dataclass(frozen=True)
class InteractionState:
    mode: ToolMode = ToolMode.PAN
    viewport: ViewportTransform = field(default_factory=ViewportTransform)
    dragging: bool = False
    # PAN: pointer - pan at press. MOVE_IMAGE / CROP: pointer at press.
    anchor: Tuple[float, float] = (0.0, 0.0)
    start_offset: Offset = field(default_factory=Offset)
    selection: Optional[CropSelection] = None

    @property
    def moving_image(self) -> bool:
        return self.dragging and self.mode == ToolMode.MOVE_IMAGE


@dataclass(frozen=True)
class Transition:
    state: InteractionState
    options: ProcessOptions
    commit_label: Optional[str] = None
    # True: commit only when options differ from the current history entry
    commit_if_changed: bool = False


def _idle(state: InteractionState, mode: ToolMode) -> InteractionState:
    return replace(state, mode=mode, dragging=False, selection=None)


def toggle_move_image(state: InteractionState) -> InteractionState:
    if state.mode == ToolMode.PAN:
        return _idle(state, ToolMode.MOVE_IMAGE)
    if state.mode == ToolMode.MOVE_IMAGE:
        return _idle(state, ToolMode.PAN)
    # The crop tool is left through cancel_crop or a successful crop
    return state


def enter_crop(state: InteractionState) -> InteractionState:
    return _idle(state, ToolMode.CROP)


def cancel_crop(state: InteractionState) -> InteractionState:
    if state.mode != ToolMode.CROP:
        return state
    return _idle(state, ToolMode.PAN)


def pointer_down(state: InteractionState, options: ProcessOptions, x: float, y: float) -> Transition:
    if state.mode == ToolMode.CROP:
        nxt = replace(state, dragging=True, anchor=(x, y), selection=CropSelection(x, y, 0.0, 0.0))
    elif state.mode == ToolMode.MOVE_IMAGE:
        nxt = replace(state, dragging=True, anchor=(x, y), start_offset=options.offset)
    else:
        vp = state.viewport
        nxt = replace(state, dragging=True, anchor=(x - vp.pan_x, y - vp.pan_y))
    return Transition(nxt, options)


def pointer_move(state: InteractionState, options: ProcessOptions, x: float, y: float) -> Transition:
    if not state.dragging:
        return Transition(state, options)

    ax, ay = state.anchor
    if state.mode == ToolMode.CROP:
        return Transition(replace(state, selection=normalize_selection(ax, ay, x, y)), options)

    if state.mode == ToolMode.MOVE_IMAGE:
        # Screen delta -> target-canvas delta
        scale = state.viewport.scale
        offset = Offset(state.start_offset.x + (x - ax) / scale, state.start_offset.y + (y - ay) / scale)
        return Transition(state, replace(options, offset=offset))

    viewport = replace(state.viewport, pan_x=x - ax, pan_y=y - ay)
    return Transition(replace(state, viewport=viewport), options)


def pointer_up(
    state: InteractionState,
    options: ProcessOptions,
    source_size: Tuple[int, int],
    min_crop_screen_px: float = 5.0,
) -> Transition:
    if not state.dragging:
        return Transition(state, options)

    if state.mode == ToolMode.MOVE_IMAGE:
        return Transition(replace(state, dragging=False), options, MOVE_IMAGE_LABEL, commit_if_changed=True)

    if state.mode == ToolMode.CROP:
        crop = None
        if state.selection is not None:
            crop = map_screen_rect_to_image_rect(state.selection, state.viewport, source_size, min_crop_screen_px)
        if crop is None:
            return Transition(replace(state, dragging=False, selection=None), options)
        cropped = replace(options, crop=crop, target_width=crop.width, target_height=crop.height)
        return Transition(_idle(state, ToolMode.PAN), cropped, CROP_LABEL)

    return Transition(replace(state, dragging=False), options)


def clamp_scale(scale: float, min_zoom: float = MIN_ZOOM, max_zoom: float = MAX_ZOOM) -> float:
    return max(min_zoom, min(max_zoom, scale))


def zoom(
    state: InteractionState,
    delta_y: float,
    step: float = WHEEL_ZOOM_STEP,
    min_zoom: float = MIN_ZOOM,
    max_zoom: float = MAX_ZOOM,
) -> InteractionState:
    scale = clamp_scale(state.viewport.scale - delta_y * step, min_zoom, max_zoom)
    return replace(state, viewport=replace(state.viewport, scale=scale))


def reset_view(state: InteractionState) -> InteractionState:
    return replace(state, viewport=ViewportTransform())
