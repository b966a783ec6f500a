from __future__ import annotations

from concurrent.futures import Executor
from io import BytesIO
from typing import Callable, Optional

from core import interaction
from core.actions import EditAction, apply_action, label_for
from core.background import BackgroundRemover, run_background_removal
from core.config import EditorConfig
from core.errors import BackgroundRemovalFailed, SourceDecodeFailure
from core.history import EditHistory
from core.interaction import InteractionState, ToolMode, Transition
from core.io import decode_source
from core.logger import get_logger
from core.output import OutputSink, output_filename, render_filename
from core.pipeline import PipelineOrchestrator, RenderResult, Scheduler
from core.presets import Preset
from core.state import FitMode, MaskShape, Offset, OutputFormat, ProcessOptions, SourceImage, ViewportTransform

_logger = get_logger("session")


def initial_options(source: SourceImage, config: Optional[EditorConfig] = None) -> ProcessOptions:
    cfg = config or EditorConfig()
    return ProcessOptions(
        target_width=source.width,
        target_height=source.height,
        quality=cfg.default_quality,
        format=OutputFormat.from_mime(source.mime_type) or OutputFormat.PNG,
        fit=FitMode.COVER,
        mask=MaskShape.NONE,
        rotation=0,
        crop=None,
        offset=Offset(0.0, 0.0),
    )


class EditorSession:
    """One image being edited: options, history, tool state and the preview pipeline.

    All mutation happens on the caller's (interaction) thread. The pipeline only
    ever sees immutable option snapshots.
    """

    def __init__(
        self,
        source: SourceImage,
        config: Optional[EditorConfig] = None,
        executor: Optional[Executor] = None,
        scheduler: Optional[Scheduler] = None,
        on_result: Optional[Callable[[RenderResult], None]] = None,
    ) -> None:
        self.config = config or EditorConfig()
        self._source = source
        self._initial = initial_options(source, self.config)
        self._options = self._initial
        self.history = EditHistory(self._initial, capacity=self.config.history_capacity)
        self._interaction = InteractionState()
        self.pipeline = PipelineOrchestrator(
            source,
            executor=executor,
            scheduler=scheduler,
            on_result=on_result,
            interactive_delay_ms=self.config.interactive_delay_ms,
            settle_delay_ms=self.config.settle_delay_ms,
        )
        self.pipeline.request(self._options)

    # ---- state ----
    @property
    def source(self) -> SourceImage:
        return self._source

    @property
    def options(self) -> ProcessOptions:
        return self._options

    @property
    def original_options(self) -> ProcessOptions:
        return self._initial

    @property
    def interaction(self) -> InteractionState:
        return self._interaction

    @property
    def mode(self) -> ToolMode:
        return self._interaction.mode

    @property
    def viewport(self) -> ViewportTransform:
        return self._interaction.viewport

    def _set_options(self, options: ProcessOptions, interactive: bool = False) -> None:
        if options == self._options:
            return
        self._options = options
        self.pipeline.request(options, interactive=interactive)

    # ---- option edits ----
    def edit(self, action: EditAction) -> ProcessOptions:
        """Apply an edit live, without recording it (slider drags, typing)."""
        self._set_options(apply_action(self._options, action))
        return self._options

    def commit(self, label: str) -> bool:
        return self.history.commit_if_changed(self._options, label)

    def apply(self, action: EditAction) -> bool:
        self.edit(action)
        return self.commit(label_for(action))

    def apply_options(self, options: ProcessOptions, label: str) -> None:
        """Replace every option at once as a single history entry."""
        self.history.push(options, label)
        self._set_options(options)

    def apply_preset(self, preset: Preset) -> None:
        self._interaction = interaction.reset_view(self._interaction)
        self.apply_options(preset.apply(self._options), preset.label)

    # ---- history ----
    def undo(self) -> bool:
        entry = self.history.undo()
        if entry is None:
            return False
        self._set_options(entry.options)
        return True

    def redo(self) -> bool:
        entry = self.history.redo()
        if entry is None:
            return False
        self._set_options(entry.options)
        return True

    def jump_to(self, index: int) -> None:
        entry = self.history.jump_to(index)
        self._set_options(entry.options)

    def reset(self) -> None:
        self.history.reset(self._initial)
        self._interaction = InteractionState()
        self._set_options(self._initial)

    # ---- tools ----
    def toggle_move_image(self) -> ToolMode:
        self._interaction = interaction.toggle_move_image(self._interaction)
        return self.mode

    def enter_crop(self) -> None:
        self._interaction = interaction.enter_crop(self._interaction)

    def cancel_crop(self) -> None:
        self._interaction = interaction.cancel_crop(self._interaction)

    def zoom(self, delta_y: float) -> float:
        cfg = self.config
        self._interaction = interaction.zoom(
            self._interaction, delta_y, cfg.wheel_zoom_step, cfg.min_zoom, cfg.max_zoom
        )
        return self._interaction.viewport.scale

    def reset_view(self) -> None:
        self._interaction = interaction.reset_view(self._interaction)

    # ---- pointer ----
    def pointer_down(self, x: float, y: float) -> None:
        self._apply_transition(interaction.pointer_down(self._interaction, self._options, x, y))

    def pointer_move(self, x: float, y: float) -> None:
        self._apply_transition(interaction.pointer_move(self._interaction, self._options, x, y))

    def pointer_up(self) -> None:
        was_cropping = self._interaction.mode == ToolMode.CROP and self._interaction.dragging
        transition = interaction.pointer_up(
            self._interaction, self._options, self._source.size, self.config.min_crop_screen_px
        )
        if was_cropping and transition.commit_label is None:
            _logger.debug("crop selection too small, discarded")
        self._apply_transition(transition)

    def _apply_transition(self, transition: Transition) -> None:
        self._interaction = transition.state
        self._set_options(transition.options, interactive=transition.state.moving_image)
        if transition.commit_label is None:
            return
        if transition.commit_if_changed:
            self.history.commit_if_changed(transition.options, transition.commit_label)
        else:
            self.history.push(transition.options, transition.commit_label)
            _logger.info("%s committed: %s", transition.commit_label, transition.options.crop)

    # ---- source ----
    def source_png_bytes(self) -> bytes:
        buf = BytesIO()
        self._source.image.save(buf, format="PNG")
        return buf.getvalue()

    def remove_background(self, remover: BackgroundRemover) -> None:
        """Swap the source for its background-matted version.

        Raises BackgroundRemovalFailed and leaves the session untouched on failure.
        """
        data = run_background_removal(remover, self.source_png_bytes())
        try:
            matted = decode_source(data, name=self._source.name, mime_type=self._source.mime_type)
        except SourceDecodeFailure as e:
            raise BackgroundRemovalFailed(f"background removal returned unreadable data: {e}") from e
        self.replace_source(matted)

    def replace_source(self, source: SourceImage) -> None:
        same_size = source.size == self._source.size
        self._source = source
        self.pipeline.set_source(source)
        if same_size:
            self.pipeline.request(self._options)
            return
        # Crops and sizes of the old raster no longer apply
        self._initial = initial_options(source, self.config)
        self.history.reset(self._initial)
        self._interaction = InteractionState()
        self._options = self._initial
        self.pipeline.request(self._options)

    # ---- export ----
    def export(
        self, sink: OutputSink, template: Optional[str] = None, result: Optional[RenderResult] = None
    ) -> str:
        """Hand the rendered output to sink and return where it went.

        Uses result when given, else the preview if it matches the current
        options. Otherwise the render runs on the pipeline executor and this
        call waits for it.
        """
        if result is None:
            result = self.pipeline.current_result(self._options)
        if result is None:
            result = self.pipeline.render_async(self._options).result()
        if not result.ok:
            raise result.error
        rendered = result.image
        stem = render_filename(
            template or self.config.filename_template,
            self._source.base_name,
            rendered.width,
            rendered.height,
            result.options.quality,
        )
        location = sink.deliver(output_filename(stem, result.options.format), rendered.data)
        _logger.info("exported %s (%dx%d)", location, rendered.width, rendered.height)
        return location

    def close(self) -> None:
        self.pipeline.shutdown()
