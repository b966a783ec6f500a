from __future__ import annotations

from datetime import date
from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

from core.errors import SourceDecodeFailure
from core.output import DownloadSink, FallbackSink, FolderSink, output_filename, render_filename, smart_name
from core.state import OutputFormat
from core.storage import FolderImageStore, record_from_bytes
from fakes import solid_png


class _BrokenSink:
    def deliver(self, filename: str, data: bytes) -> str:
        raise PermissionError("folder access revoked")


class FilenameTests(unittest.TestCase):
    def test_template_tokens(self) -> None:
        name = render_filename("{name}_{width}x{height}_{date}_q{q}", "cat", 800, None, 0.85, when=date(2024, 3, 1))
        self.assertEqual(name, "cat_800xauto_2024-03-01_q85")

    def test_path_separators_are_neutralised(self) -> None:
        self.assertEqual(render_filename("../{name}", "x", 1, 1, 1.0), ".._x")

    def test_smart_name(self) -> None:
        self.assertEqual(smart_name("cat", 100, 50, 0.9), "cat-100x50-q90")

    def test_output_filename_uses_format_extension(self) -> None:
        self.assertEqual(output_filename("cat", OutputFormat.JPEG), "cat.jpg")
        self.assertEqual(output_filename("cat", "image/avif"), "cat.avif")


class SinkTests(unittest.TestCase):
    def test_folder_sink_writes(self) -> None:
        with TemporaryDirectory() as td:
            location = FolderSink(str(Path(td) / "nested")).deliver("a.png", b"abc")
            self.assertEqual(Path(location).read_bytes(), b"abc")

    def test_fallback_on_folder_error(self) -> None:
        saved = []
        sink = FallbackSink(_BrokenSink(), DownloadSink(lambda name, data: saved.append((name, data))))
        self.assertEqual(sink.deliver("a.png", b"abc"), "a.png")
        self.assertEqual(saved, [("a.png", b"abc")])


class FolderImageStoreTests(unittest.TestCase):
    def test_save_list_delete(self) -> None:
        with TemporaryDirectory() as td:
            store = FolderImageStore(td)
            first = record_from_bytes(solid_png((4, 3)), "first.png")
            second = record_from_bytes(solid_png((2, 2)), "second.png")
            store.save_image(first)
            store.save_image(second)

            listed = FolderImageStore(td).list_images()
            self.assertEqual({r.id for r in listed}, {first.id, second.id})
            by_id = {r.id: r for r in listed}
            self.assertEqual((by_id[first.id].width, by_id[first.id].height), (4, 3))
            self.assertEqual(by_id[first.id].data, first.data)

            store.delete_image(first.id)
            self.assertEqual([r.id for r in store.list_images()], [second.id])

    def test_output_location_persists(self) -> None:
        with TemporaryDirectory() as td:
            store = FolderImageStore(td)
            self.assertIsNone(store.get_output_location())
            store.set_output_location("/tmp/exports")
            self.assertEqual(FolderImageStore(td).get_output_location(), "/tmp/exports")

    def test_record_from_non_image_raises(self) -> None:
        with self.assertRaises(SourceDecodeFailure):
            record_from_bytes(b"hello", "hello.txt")

    def test_corrupt_index_starts_empty(self) -> None:
        with TemporaryDirectory() as td:
            Path(td, "index.json").write_text("{broken", encoding="utf-8")
            self.assertEqual(FolderImageStore(td).list_images(), [])


if __name__ == "__main__":
    unittest.main()
