from __future__ import annotations

import tempfile
import unittest
from io import BytesIO
from pathlib import Path
from unittest import mock

try:
    from PIL import Image
except ImportError as exc:  # pragma: no cover - environment dependency
    raise unittest.SkipTest(f"missing runtime dependency: {exc}")

from core.actions import ResizeWidth, SetFormat, SetQuality
from core.config import EditorConfig
from core.errors import BackgroundRemovalFailed, EncodeFailure
from core.history import ORIGINAL_LABEL
from core.interaction import ToolMode
from core.output import FolderSink
from core.pipeline import RenderResult
from core.presets import find_preset
from core.session import EditorSession, initial_options
from core.state import CropRect, FitMode, Offset, OutputFormat, SourceImage
from fakes import ImmediateExecutor, ManualScheduler, solid_png, solid_source


class _FailingRemover:
    def remove_background(self, data: bytes) -> bytes:
        raise ConnectionError("service unavailable")


class _ResizingRemover:
    def remove_background(self, data: bytes) -> bytes:
        return solid_png((10, 10), (0, 0, 0, 0))


class _CountingExecutor(ImmediateExecutor):
    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        return super().submit(fn, *args, **kwargs)


class EditorSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.scheduler = ManualScheduler()
        self.results = []
        self.session = EditorSession(
            solid_source((1000, 500), name="beach.jpg"),
            executor=ImmediateExecutor(),
            scheduler=self.scheduler,
            on_result=self.results.append,
        )

    def tearDown(self) -> None:
        self.session.close()

    def test_initial_options_follow_source(self) -> None:
        opts = self.session.options
        self.assertEqual((opts.target_width, opts.target_height), (1000, 500))
        self.assertEqual(opts.fit, FitMode.COVER)
        self.assertEqual(opts.format, OutputFormat.PNG)
        self.assertEqual(self.session.history.current.label, ORIGINAL_LABEL)
        # Construction schedules the first preview
        self.assertEqual(self.scheduler.run_all(), 1)
        self.assertTrue(self.results[0].ok)

    def test_initial_format_follows_mime_type(self) -> None:
        source = solid_source((4, 4))
        jpeg = SourceImage(source.image, 4, 4, "a.jpg", "image/jpeg")
        self.assertEqual(initial_options(jpeg).format, OutputFormat.JPEG)

    def test_slider_drag_commits_once(self) -> None:
        s = self.session
        s.edit(SetFormat(OutputFormat.JPEG))
        for q in (0.5, 0.6, 0.7):
            s.edit(SetQuality(q))
        self.assertEqual(len(s.history), 1)
        self.assertTrue(s.commit("Quality"))
        self.assertFalse(s.commit("Quality"))
        self.assertEqual(len(s.history), 2)
        self.assertEqual(s.history.current.options.quality, 0.7)

    def test_apply_records_and_undo_restores(self) -> None:
        s = self.session
        self.assertTrue(s.apply(ResizeWidth(200)))
        self.assertEqual(s.history.current.label, "Resize")
        self.assertTrue(s.undo())
        self.assertEqual(s.options.target_width, 1000)
        self.assertTrue(s.redo())
        self.assertEqual(s.options.target_width, 200)
        self.assertFalse(s.redo())

    def test_preset_is_one_history_entry(self) -> None:
        s = self.session
        s.zoom(-500)
        s.apply_preset(find_preset("avatar"))
        self.assertEqual(s.history.current.label, "Circle Avatar 256")
        self.assertEqual((s.options.target_width, s.options.target_height), (256, 256))
        self.assertEqual(s.viewport.scale, 1.0)

    def test_width_only_preset_clears_height(self) -> None:
        s = self.session
        s.apply_preset(find_preset("thumb"))
        self.assertEqual((s.options.target_width, s.options.target_height), (400, None))

    def test_move_image_drag_is_interactive_and_committed_once(self) -> None:
        s = self.session
        self.assertEqual(s.toggle_move_image(), ToolMode.MOVE_IMAGE)
        s.pointer_down(0, 0)
        s.pointer_move(10, 0)
        s.pointer_move(20, 5)
        self.assertEqual(self.scheduler.calls[-1].delay_ms, s.config.interactive_delay_ms)
        s.pointer_up()
        self.assertEqual(s.options.offset, Offset(20, 5))
        self.assertEqual([e.label for e in s.history.entries], [ORIGINAL_LABEL, "Move Image"])

    def test_click_without_moving_does_not_commit(self) -> None:
        s = self.session
        s.toggle_move_image()
        s.pointer_down(5, 5)
        s.pointer_up()
        self.assertEqual(len(s.history), 1)

    def test_crop_drag_pushes_crop(self) -> None:
        s = self.session
        s.enter_crop()
        s.pointer_down(0, 0)
        s.pointer_move(500, 500)
        s.pointer_up()
        self.assertEqual(s.options.crop, CropRect(0, 0, 500, 500))
        self.assertEqual(s.history.current.label, "Crop")
        self.assertEqual(s.mode, ToolMode.PAN)

    def test_tiny_crop_drag_changes_nothing(self) -> None:
        s = self.session
        s.enter_crop()
        s.pointer_down(100, 100)
        s.pointer_move(103, 300)
        s.pointer_up()
        self.assertIsNone(s.options.crop)
        self.assertEqual(len(s.history), 1)
        self.assertEqual(s.mode, ToolMode.CROP)

    def test_reset_restores_original(self) -> None:
        s = self.session
        s.apply(ResizeWidth(10))
        s.apply(SetFormat(OutputFormat.WEBP))
        s.reset()
        self.assertEqual(s.options, s.original_options)
        self.assertEqual(len(s.history), 1)

    def test_jump_to_entry(self) -> None:
        s = self.session
        s.apply(ResizeWidth(10))
        s.apply(ResizeWidth(20))
        s.jump_to(1)
        self.assertEqual(s.options.target_width, 10)

    def test_background_failure_leaves_session_untouched(self) -> None:
        s = self.session
        before = s.source
        with self.assertRaises(BackgroundRemovalFailed):
            s.remove_background(_FailingRemover())
        self.assertIs(s.source, before)

    def test_background_result_of_new_size_reseeds_history(self) -> None:
        s = self.session
        s.apply(ResizeWidth(10))
        s.remove_background(_ResizingRemover())
        self.assertEqual(s.source.size, (10, 10))
        self.assertEqual(len(s.history), 1)
        self.assertEqual((s.options.target_width, s.options.target_height), (10, 10))

    def test_export_writes_templated_file(self) -> None:
        s = self.session
        s.apply(ResizeWidth(100))
        s.apply(SetFormat(OutputFormat.JPEG))
        with tempfile.TemporaryDirectory() as tmp:
            location = s.export(FolderSink(tmp), template="{name}-{width}x{height}")
            self.assertEqual(Path(location).name, "beach-100x500.jpg")
            with Image.open(BytesIO(Path(location).read_bytes())) as img:
                self.assertEqual(img.size, (100, 500))

    def test_export_reuses_matching_preview(self) -> None:
        s = self.session
        self.scheduler.run_all()
        preview = s.pipeline.last_good
        self.assertEqual(preview.options, s.options)
        with mock.patch.object(s.pipeline, "render_async", side_effect=AssertionError("rendered again")):
            with tempfile.TemporaryDirectory() as tmp:
                location = s.export(FolderSink(tmp))
                self.assertEqual(Path(location).read_bytes(), preview.image.data)

    def test_export_with_stale_preview_renders_on_executor(self) -> None:
        executor = _CountingExecutor()
        s = EditorSession(solid_source((40, 20)), executor=executor, scheduler=self.scheduler)
        self.addCleanup(s.close)
        self.scheduler.run_all()
        s.apply(ResizeWidth(10))
        with tempfile.TemporaryDirectory() as tmp:
            location = s.export(FolderSink(tmp))
            with Image.open(location) as img:
                self.assertEqual(img.size, (10, 5))
        self.assertEqual(executor.submitted, 2)

    def test_export_of_failed_render_raises(self) -> None:
        s = self.session
        failed = RenderResult(seq=0, options=s.options, error=EncodeFailure("codec exploded"))
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(EncodeFailure):
                s.export(FolderSink(tmp), result=failed)
            self.assertEqual(list(Path(tmp).iterdir()), [])

    def test_config_capacity_is_used(self) -> None:
        s = EditorSession(
            solid_source((8, 8)),
            config=EditorConfig(history_capacity=3),
            executor=ImmediateExecutor(),
            scheduler=ManualScheduler(),
        )
        for w in (1, 2, 3, 4):
            s.apply(ResizeWidth(w))
        self.assertEqual(len(s.history), 3)
        s.close()


if __name__ == "__main__":
    unittest.main()
