from __future__ import annotations

import os
from pathlib import Path
from tempfile import TemporaryDirectory
import unittest
from unittest import mock


class MainWindowLibraryTests(unittest.TestCase):
    def setUp(self) -> None:
        os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
        try:
            from PySide6.QtWidgets import QApplication
            from core.storage import FolderImageStore, record_from_bytes
            from fakes import solid_png
            from ui.main_window import MainWindow
        except Exception as exc:  # pragma: no cover - environment dependency
            self.skipTest(f"missing runtime dependency: {exc}")
        self.app = QApplication.instance() or QApplication([])
        if not isinstance(self.app, QApplication):
            self.skipTest("a non-widget Qt application is already running")

        self._tmp = TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.store = FolderImageStore(str(Path(self._tmp.name) / "library"))
        self.red = record_from_bytes(solid_png((30, 20)), "red.png")
        self.blue = record_from_bytes(solid_png((8, 8), (0, 0, 255, 255)), "blue.png")
        self.store.save_image(self.red)
        self.store.save_image(self.blue)

        self.window = MainWindow(store=self.store)
        self.addCleanup(self.window.deleteLater)
        self.addCleanup(self.window.close)

    def _select(self, *names: str) -> None:
        lst = self.window.library_list
        for row in range(lst.count()):
            item = lst.item(row)
            item.setSelected(any(item.text().startswith(n) for n in names))

    def test_library_lists_stored_images(self) -> None:
        lst = self.window.library_list
        labels = sorted(lst.item(row).text() for row in range(lst.count()))
        self.assertEqual(labels, ["blue.png (8x8)", "red.png (30x20)"])

    def test_open_from_library_starts_a_session(self) -> None:
        self._select("red.png")
        self.window.open_from_library()
        session = self.window.session
        self.assertIsNotNone(session)
        self.assertEqual(session.source.size, (30, 20))
        self.assertEqual(session.source.name, "red.png")

    def test_delete_from_library_removes_record(self) -> None:
        self._select("blue.png")
        self.window.delete_from_library()
        self.assertEqual([r.id for r in self.store.list_images()], [self.red.id])
        self.assertEqual(self.window.library_list.count(), 1)

    def test_batch_export_selected_writes_each_image(self) -> None:
        self._select("red.png", "blue.png")
        with TemporaryDirectory() as out_dir:
            with mock.patch("ui.main_window.QFileDialog") as dialog, \
                    mock.patch("ui.main_window.QMessageBox") as box:
                dialog.getExistingDirectory.return_value = out_dir
                self.window.batch_export_selected()
            names = sorted(p.name for p in Path(out_dir).iterdir())
        self.assertEqual(names, ["blue-processed.png", "red-processed.png"])
        self.assertIn("2 of 2", box.information.call_args[0][2])


if __name__ == "__main__":
    unittest.main()
