from __future__ import annotations
from pathlib import Path
from typing import Optional
from PIL import Image

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction, QImage, QKeySequence, QIcon, QPixmap
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QFileDialog, QVBoxLayout, QHBoxLayout, QLabel, QLineEdit,
    QSpinBox, QSlider, QPushButton, QMessageBox, QDockWidget, QComboBox, QListWidget,
    QGroupBox, QScrollArea, QAbstractItemView, QListWidgetItem
)

from core.actions import ResizeHeight, ResizeWidth, SetFit, SetFormat, SetMask, SetQuality
from core.background import BorderColorKeyRemover
from core.batch import batch_export, batch_export_folder
from core.config import EditorConfig, save_config
from core.errors import BackgroundRemovalFailed, ImageStudioError, SourceDecodeFailure
from core.interaction import ToolMode
from core.io import decode_source, load_source, save_bytes
from core.logger import get_logger
from core.output import DownloadSink, FallbackSink, FolderSink
from core.pipeline import RenderResult
from core.presets import CATEGORIES, presets_by_category
from core.project_io import load_options, save_options
from core.session import EditorSession
from core.state import FitMode, MaskShape, OutputFormat, ProcessOptions
from core.storage import ImageStore, record_from_bytes
from ui.canvas_widget import CanvasWidget
from ui.qt_scheduler import QtScheduler, ResultBridge

_logger = get_logger("ui")

_CATEGORY_TITLES = {"social": "Social", "icon": "Icons", "format": "Formats", "dev": "Dev Sizes"}


def pil_rgba_to_qimage(img: Image.Image) -> QImage:
    img = img.convert("RGBA")
    w, h = img.size
    data = img.tobytes("raw", "RGBA")
    qimg = QImage(data, w, h, QImage.Format_RGBA8888)
    # Important: keep a copy because Python-owned bytes may be freed
    return qimg.copy()


class MainWindow(QMainWindow):
    def __init__(
        self,
        config: Optional[EditorConfig] = None,
        config_path: Optional[Path] = None,
        logo_path: Optional[Path] = None,
        store: Optional[ImageStore] = None,
    ):
        super().__init__()
        self._logo_path = logo_path
        if self._logo_path is not None and self._logo_path.exists():
            self.setWindowIcon(QIcon(str(self._logo_path)))
        self.setWindowTitle("Image Studio")

        self.config = config or EditorConfig()
        self._config_path = config_path
        self.store = store
        self.session: Optional[EditorSession] = None
        self._last_result: Optional[RenderResult] = None

        self._scheduler = QtScheduler(self)
        self._bridge = ResultBridge(self)
        self._bridge.result_ready.connect(self._on_render_result)
        self._export_bridge = ResultBridge(self)
        self._export_bridge.result_ready.connect(self._on_export_rendered)

        self._act_undo: Optional[QAction] = None
        self._act_redo: Optional[QAction] = None

        # Central
        self.canvas = CanvasWidget(on_interaction=self._sync_ui_from_state)
        central = QWidget()
        lay = QVBoxLayout()
        lay.addWidget(self.canvas)
        central.setLayout(lay)
        self.setCentralWidget(central)

        self._build_menu()
        self._build_controls_dock()
        if self.store is not None:
            self._build_library_dock()

        self.setAcceptDrops(True)
        self.resize(1200, 800)
        self._sync_ui_from_state()

    # ---------------------------
    # Menu / Actions
    # ---------------------------
    def _build_menu(self) -> None:
        open_act = QAction("Open...", self)
        open_act.setShortcut(QKeySequence.StandardKey.Open)
        open_act.triggered.connect(self.open_file)

        export_act = QAction("Export As...", self)
        export_act.setShortcut(QKeySequence.StandardKey.SaveAs)
        export_act.triggered.connect(self.export_as)

        export_folder_act = QAction("Export to Folder", self)
        export_folder_act.setShortcut(QKeySequence.StandardKey.Save)
        export_folder_act.triggered.connect(self.export_to_folder)

        load_opts_act = QAction("Load Options...", self)
        load_opts_act.triggered.connect(self.load_options_file)

        save_opts_act = QAction("Save Options As...", self)
        save_opts_act.triggered.connect(self.save_options_file)

        batch_export_act = QAction("Batch Export...", self)
        batch_export_act.triggered.connect(self.batch_export)

        quit_act = QAction("Quit", self)
        quit_act.setShortcut(QKeySequence.StandardKey.Quit)
        quit_act.triggered.connect(self.close)

        self._act_undo = QAction("Undo", self)
        self._act_undo.setShortcut(QKeySequence.StandardKey.Undo)
        self._act_undo.triggered.connect(self._undo)

        self._act_redo = QAction("Redo", self)
        self._act_redo.setShortcut(QKeySequence.StandardKey.Redo)
        self._act_redo.triggered.connect(self._redo)

        reset_act = QAction("Reset All Edits", self)
        reset_act.triggered.connect(self._reset_edits)

        reset_view = QAction("Reset View", self)
        reset_view.setShortcut("0")
        reset_view.triggered.connect(self._reset_view)

        move_act = QAction("Move Image", self)
        move_act.setShortcut("M")
        move_act.triggered.connect(self._toggle_move_image)

        crop_act = QAction("Crop", self)
        crop_act.setShortcut("C")
        crop_act.triggered.connect(self._enter_crop)

        cancel_crop_act = QAction("Cancel Crop", self)
        cancel_crop_act.setShortcut(QKeySequence(Qt.Key_Escape))
        cancel_crop_act.triggered.connect(self._cancel_crop)

        mfile = self.menuBar().addMenu("File")
        mfile.addAction(open_act)
        mfile.addAction(export_act)
        mfile.addAction(export_folder_act)
        mfile.addSeparator()
        mfile.addAction(load_opts_act)
        mfile.addAction(save_opts_act)
        mfile.addAction(batch_export_act)
        mfile.addSeparator()
        mfile.addAction(quit_act)

        medit = self.menuBar().addMenu("Edit")
        medit.addAction(self._act_undo)
        medit.addAction(self._act_redo)
        medit.addAction(reset_act)

        mview = self.menuBar().addMenu("View")
        mview.addAction(reset_view)
        mview.addSeparator()
        mview.addAction(move_act)
        mview.addAction(crop_act)
        mview.addAction(cancel_crop_act)

        mpresets = self.menuBar().addMenu("Presets")
        for category in CATEGORIES:
            sub = mpresets.addMenu(_CATEGORY_TITLES.get(category, category.title()))
            for preset in presets_by_category(category):
                act = QAction(preset.label, self)
                act.triggered.connect(lambda _=False, p=preset: self._apply_preset(p))
                sub.addAction(act)

    # ---------------------------
    # Controls dock
    # ---------------------------
    def _build_controls_dock(self) -> None:
        dock = QDockWidget("Controls", self)
        dock.setAllowedAreas(Qt.LeftDockWidgetArea | Qt.RightDockWidgetArea)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        panel = QWidget()
        v = QVBoxLayout(panel)

        if self._logo_path is not None and self._logo_path.exists():
            logo_label = QLabel()
            logo_label.setAlignment(Qt.AlignCenter)
            logo_pm = QPixmap(str(self._logo_path))
            if not logo_pm.isNull():
                logo_label.setPixmap(logo_pm.scaled(180, 64, Qt.KeepAspectRatio, Qt.SmoothTransformation))
                v.addWidget(logo_label)

        g_size, gl_size = self._make_group("Output Size")
        size_row = QHBoxLayout()
        size_row.addWidget(QLabel("W"))
        self.out_w = self._make_dimension_spin()
        self.out_w.editingFinished.connect(lambda: self._apply(ResizeWidth(self.out_w.value())))
        size_row.addWidget(self.out_w)
        size_row.addWidget(QLabel("H"))
        self.out_h = self._make_dimension_spin()
        self.out_h.editingFinished.connect(lambda: self._apply(ResizeHeight(self.out_h.value())))
        size_row.addWidget(self.out_h)
        gl_size.addLayout(size_row)

        self.fit_combo = QComboBox()
        for label, fit in (("Cover", FitMode.COVER), ("Contain", FitMode.CONTAIN), ("Fill", FitMode.FILL)):
            self.fit_combo.addItem(label, fit)
        self.fit_combo.currentIndexChanged.connect(lambda _: self._apply(SetFit(self.fit_combo.currentData())))
        self._add_labeled_row(gl_size, "Fit", self.fit_combo)

        self.mask_combo = QComboBox()
        for label, mask in (("None", MaskShape.NONE), ("Circle", MaskShape.CIRCLE), ("Square", MaskShape.SQUARE)):
            self.mask_combo.addItem(label, mask)
        self.mask_combo.currentIndexChanged.connect(lambda _: self._apply(SetMask(self.mask_combo.currentData())))
        self._add_labeled_row(gl_size, "Mask", self.mask_combo)
        v.addWidget(g_size)

        g_fmt, gl_fmt = self._make_group("Format")
        self.format_combo = QComboBox()
        for label, fmt in (
            ("PNG", OutputFormat.PNG),
            ("JPEG", OutputFormat.JPEG),
            ("WebP", OutputFormat.WEBP),
            ("AVIF", OutputFormat.AVIF),
        ):
            self.format_combo.addItem(label, fmt)
        self.format_combo.currentIndexChanged.connect(
            lambda _: self._apply(SetFormat(self.format_combo.currentData()))
        )
        self._add_labeled_row(gl_fmt, "Type", self.format_combo)

        q_row = QHBoxLayout()
        q_row.addWidget(QLabel("Quality"))
        self.quality_slider = QSlider(Qt.Horizontal)
        self.quality_slider.setRange(0, 100)
        self.quality_slider.valueChanged.connect(self._on_quality_changed)
        self.quality_slider.sliderReleased.connect(self._on_quality_released)
        q_row.addWidget(self.quality_slider, 1)
        self.quality_label = QLabel("")
        q_row.addWidget(self.quality_label)
        gl_fmt.addLayout(q_row)
        v.addWidget(g_fmt)

        g_tools, gl_tools = self._make_group("Tools")
        tool_row = QHBoxLayout()
        self.move_btn = QPushButton("Move Image")
        self.move_btn.setCheckable(True)
        self.move_btn.clicked.connect(lambda _=False: self._toggle_move_image())
        tool_row.addWidget(self.move_btn)
        self.crop_btn = QPushButton("Crop")
        self.crop_btn.setCheckable(True)
        self.crop_btn.clicked.connect(self._on_crop_clicked)
        tool_row.addWidget(self.crop_btn)
        gl_tools.addLayout(tool_row)
        tool_row2 = QHBoxLayout()
        self.reset_view_btn = QPushButton("Reset View")
        self.reset_view_btn.clicked.connect(self._reset_view)
        tool_row2.addWidget(self.reset_view_btn)
        self.remove_bg_btn = QPushButton("Remove Background")
        self.remove_bg_btn.clicked.connect(self._remove_background)
        tool_row2.addWidget(self.remove_bg_btn)
        gl_tools.addLayout(tool_row2)
        v.addWidget(g_tools)

        g_hist, gl_hist = self._make_group("History")
        self.history_list = QListWidget()
        self.history_list.itemClicked.connect(lambda item: self._jump_to(self.history_list.row(item)))
        gl_hist.addWidget(self.history_list)
        hist_row = QHBoxLayout()
        self.undo_btn = QPushButton("Undo")
        self.undo_btn.clicked.connect(self._undo)
        hist_row.addWidget(self.undo_btn)
        self.redo_btn = QPushButton("Redo")
        self.redo_btn.clicked.connect(self._redo)
        hist_row.addWidget(self.redo_btn)
        self.reset_btn = QPushButton("Reset")
        self.reset_btn.clicked.connect(self._reset_edits)
        hist_row.addWidget(self.reset_btn)
        gl_hist.addLayout(hist_row)
        v.addWidget(g_hist)

        g_out, gl_out = self._make_group("Export")
        self.template_edit = QLineEdit(self.config.filename_template)
        self.template_edit.setToolTip("Tokens: {name} {width} {height} {date} {q}")
        self.template_edit.editingFinished.connect(self._on_template_changed)
        self._add_labeled_row(gl_out, "File name", self.template_edit)
        self.folder_label = QLabel("")
        self.folder_label.setWordWrap(True)
        gl_out.addWidget(self.folder_label)
        out_row = QHBoxLayout()
        self.choose_folder_btn = QPushButton("Choose Folder...")
        self.choose_folder_btn.clicked.connect(self.choose_output_folder)
        out_row.addWidget(self.choose_folder_btn)
        self.export_btn = QPushButton("Export")
        self.export_btn.clicked.connect(self.export_to_folder)
        out_row.addWidget(self.export_btn)
        gl_out.addLayout(out_row)
        v.addWidget(g_out)

        v.addStretch(1)
        scroll.setWidget(panel)
        dock.setWidget(scroll)
        self.addDockWidget(Qt.RightDockWidgetArea, dock)

    def _make_dimension_spin(self) -> QSpinBox:
        spin = QSpinBox()
        spin.setRange(0, 16384)
        # 0 lets the other dimension drive the aspect ratio
        spin.setSpecialValueText("Auto")
        return spin

    # ---------------------------
    # Library dock
    # ---------------------------
    def _build_library_dock(self) -> None:
        dock = QDockWidget("Library", self)
        dock.setAllowedAreas(Qt.LeftDockWidgetArea | Qt.RightDockWidgetArea)

        panel = QWidget()
        v = QVBoxLayout(panel)
        self.library_list = QListWidget()
        self.library_list.setSelectionMode(QAbstractItemView.ExtendedSelection)
        self.library_list.itemDoubleClicked.connect(lambda _: self.open_from_library())
        v.addWidget(self.library_list, 1)

        row = QHBoxLayout()
        add_btn = QPushButton("Add...")
        add_btn.clicked.connect(self.add_to_library)
        row.addWidget(add_btn)
        open_btn = QPushButton("Open")
        open_btn.clicked.connect(self.open_from_library)
        row.addWidget(open_btn)
        delete_btn = QPushButton("Delete")
        delete_btn.clicked.connect(self.delete_from_library)
        row.addWidget(delete_btn)
        v.addLayout(row)

        batch_btn = QPushButton("Batch Export Selected...")
        batch_btn.clicked.connect(self.batch_export_selected)
        v.addWidget(batch_btn)

        dock.setWidget(panel)
        self.addDockWidget(Qt.LeftDockWidgetArea, dock)
        self._refresh_library()

    def _refresh_library(self) -> None:
        self._library = {r.id: r for r in self.store.list_images()}
        self.library_list.clear()
        for record in self._library.values():
            item = QListWidgetItem(f"{record.name} ({record.width}x{record.height})")
            item.setData(Qt.UserRole, record.id)
            self.library_list.addItem(item)

    def _selected_records(self) -> list:
        ids = [item.data(Qt.UserRole) for item in self.library_list.selectedItems()]
        return [self._library[i] for i in ids if i in self._library]

    def add_to_library(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(
            self, "Add Images", "", "Images (*.png *.jpg *.jpeg *.bmp *.webp *.avif *.gif *.tif *.tiff)"
        )
        if not paths:
            return
        skipped = []
        for path in paths:
            try:
                record = record_from_bytes(Path(path).read_bytes(), name=Path(path).name)
                self.store.save_image(record)
            except (SourceDecodeFailure, OSError) as e:
                _logger.warning("library import of %s failed: %s", path, e)
                skipped.append(Path(path).name)
        self._refresh_library()
        if skipped:
            QMessageBox.warning(self, "Add Images", "Skipped unreadable files:\n" + "\n".join(skipped))

    def open_from_library(self) -> None:
        records = self._selected_records()
        if not records:
            return
        try:
            source = records[0].to_source()
        except SourceDecodeFailure as e:
            QMessageBox.critical(self, "Open failed", str(e))
            return
        self._open_source(source)

    def delete_from_library(self) -> None:
        records = self._selected_records()
        if not records:
            return
        for record in records:
            self.store.delete_image(record.id)
        self._refresh_library()

    def batch_export_selected(self) -> None:
        records = self._selected_records()
        if not records:
            QMessageBox.information(self, "Batch Export", "Select images in the library first.")
            return
        out_dir = QFileDialog.getExistingDirectory(self, "Batch Output Folder", self.config.output_dir or "")
        if not out_dir:
            return
        options = self.session.options if self.session is not None else ProcessOptions()
        count = batch_export(records, options, FolderSink(out_dir), suffix=self.config.batch_suffix)
        QMessageBox.information(self, "Batch Export", f"Exported {count} of {len(records)} images.")

    # ---------------------------
    # File IO
    # ---------------------------
    def open_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(
            self, "Open Image", "", "Images (*.png *.jpg *.jpeg *.bmp *.webp *.avif *.gif *.tif *.tiff)"
        )
        if not path:
            return
        self.load_path(path)

    def load_path(self, path: str) -> None:
        try:
            source = load_source(path)
        except SourceDecodeFailure as e:
            QMessageBox.critical(self, "Open failed", str(e))
            return
        self._open_source(source)
        _logger.info("opened %s (%dx%d)", path, source.width, source.height)

    def _open_source(self, source) -> None:
        if self.session is not None:
            self.session.close()
        self._last_result = None
        self.session = EditorSession(
            source,
            config=self.config,
            scheduler=self._scheduler,
            on_result=self._bridge.post,
        )
        self.canvas.set_session(self.session, pil_rgba_to_qimage(source.image))
        self.setWindowTitle(f"Image Studio - {source.name}")
        self._sync_ui_from_state()

    def _save_with_dialog(self, filename: str, data: bytes) -> None:
        start = str(Path(self.config.output_dir or "") / filename)
        path, _ = QFileDialog.getSaveFileName(self, "Export As", start)
        if not path:
            self.statusBar().showMessage("Export cancelled", 3000)
            return
        save_bytes(path, data)

    def export_as(self) -> None:
        self._export(DownloadSink(self._save_with_dialog))

    def export_to_folder(self) -> None:
        if not self.config.output_dir:
            self.export_as()
            return
        self._export(FallbackSink(FolderSink(self.config.output_dir), DownloadSink(self._save_with_dialog)))

    def _export(self, sink) -> None:
        if self.session is None:
            QMessageBox.information(self, "Nothing to export", "Load an image first.")
            return
        session = self.session
        result = session.pipeline.current_result(session.options)
        if result is not None:
            self._finish_export(sink, result)
            return
        self.statusBar().showMessage("Rendering export...")
        future = session.pipeline.render_async(session.options)
        future.add_done_callback(lambda f: self._export_bridge.post((session, sink, f)))

    def _on_export_rendered(self, payload) -> None:
        session, sink, future = payload
        if session is not self.session:
            return
        exc = future.exception()
        if exc is not None:
            _logger.error("export render crashed: %r", exc)
            QMessageBox.critical(self, "Export failed", str(exc))
            return
        self._finish_export(sink, future.result())

    def _finish_export(self, sink, result: RenderResult) -> None:
        try:
            location = self.session.export(sink, template=self.template_edit.text() or None, result=result)
        except (ImageStudioError, OSError) as e:
            QMessageBox.critical(self, "Export failed", str(e))
            return
        self.statusBar().showMessage(f"Exported {location}", 5000)

    def choose_output_folder(self) -> None:
        folder = QFileDialog.getExistingDirectory(self, "Output Folder", self.config.output_dir or "")
        if not folder:
            return
        self.config.output_dir = folder
        self._persist_config()
        self._sync_ui_from_state()

    def _on_template_changed(self) -> None:
        template = self.template_edit.text().strip()
        if template and template != self.config.filename_template:
            self.config.filename_template = template
            self._persist_config()

    def _persist_config(self) -> None:
        if self._config_path is None:
            return
        try:
            save_config(str(self._config_path), self.config)
        except OSError as e:
            _logger.warning("could not save settings: %s", e)

    def load_options_file(self) -> None:
        if self.session is None:
            return
        path, _ = QFileDialog.getOpenFileName(self, "Load Options", "", "Options (*.json)")
        if not path:
            return
        try:
            options = load_options(path)
        except (OSError, ValueError) as e:
            QMessageBox.critical(self, "Load options failed", str(e))
            return
        self.session.apply_options(options, "Load Options")
        self._sync_ui_from_state()

    def save_options_file(self) -> None:
        if self.session is None:
            return
        path, _ = QFileDialog.getSaveFileName(self, "Save Options As", "", "Options (*.json)")
        if not path:
            return
        if not path.lower().endswith(".json"):
            path += ".json"
        try:
            save_options(path, self.session.options)
        except OSError as e:
            QMessageBox.critical(self, "Save options failed", str(e))

    def batch_export(self) -> None:
        in_dir = QFileDialog.getExistingDirectory(self, "Batch Input Folder")
        if not in_dir:
            return
        out_dir = QFileDialog.getExistingDirectory(self, "Batch Output Folder", self.config.output_dir or "")
        if not out_dir:
            return
        options = self.session.options if self.session is not None else ProcessOptions()
        count = batch_export_folder(in_dir, out_dir, options, suffix=self.config.batch_suffix)
        QMessageBox.information(self, "Batch Export", f"Exported {count} images.")

    # ---------------------------
    # Drag & drop support
    # ---------------------------
    def dragEnterEvent(self, e) -> None:
        if e.mimeData().hasUrls():
            e.acceptProposedAction()

    def dropEvent(self, e) -> None:
        urls = e.mimeData().urls()
        if not urls:
            return
        path = urls[0].toLocalFile()
        if path:
            self.load_path(path)

    # ---------------------------
    # Edits
    # ---------------------------
    def _apply(self, action) -> None:
        if self.session is None:
            return
        self.session.apply(action)
        self._sync_ui_from_state()

    def _on_quality_changed(self, value: int) -> None:
        self.quality_label.setText(f"{value}%")
        if self.session is None:
            return
        if self.quality_slider.isSliderDown():
            self.session.edit(SetQuality(value / 100.0))
        else:
            # Keyboard and click steps are single edits
            self._apply(SetQuality(value / 100.0))

    def _on_quality_released(self) -> None:
        if self.session is None:
            return
        self.session.commit("Quality")
        self._sync_ui_from_state()

    def _apply_preset(self, preset) -> None:
        if self.session is None:
            return
        self.session.apply_preset(preset)
        self._sync_ui_from_state()

    def _undo(self) -> None:
        if self.session is not None and self.session.undo():
            self._sync_ui_from_state()

    def _redo(self) -> None:
        if self.session is not None and self.session.redo():
            self._sync_ui_from_state()

    def _jump_to(self, index: int) -> None:
        if self.session is None:
            return
        self.session.jump_to(index)
        self._sync_ui_from_state()

    def _reset_edits(self) -> None:
        if self.session is None:
            return
        self.session.reset()
        self._sync_ui_from_state()

    def _toggle_move_image(self) -> None:
        if self.session is not None:
            self.session.toggle_move_image()
        self._sync_ui_from_state()

    def _on_crop_clicked(self, checked: bool) -> None:
        if checked:
            self._enter_crop()
        else:
            self._cancel_crop()

    def _enter_crop(self) -> None:
        if self.session is not None:
            self.session.enter_crop()
        self._sync_ui_from_state()

    def _cancel_crop(self) -> None:
        if self.session is not None:
            self.session.cancel_crop()
        self._sync_ui_from_state()

    def _reset_view(self) -> None:
        if self.session is not None:
            self.session.reset_view()
        self._sync_ui_from_state()

    def _remove_background(self) -> None:
        if self.session is None:
            return
        try:
            self.session.remove_background(BorderColorKeyRemover())
        except BackgroundRemovalFailed as e:
            QMessageBox.critical(self, "Background removal failed", str(e))
            return
        self.canvas.set_source(pil_rgba_to_qimage(self.session.source.image))
        self._sync_ui_from_state()

    # ---------------------------
    # Rendering
    # ---------------------------
    def _on_render_result(self, result: RenderResult) -> None:
        if self.session is None or self.session.pipeline.latest is not result:
            # Superseded, or from a session that has since been replaced
            return
        self._last_result = result
        if result.ok:
            try:
                preview = decode_source(result.image.data, mime_type=result.image.format.value)
            except SourceDecodeFailure as e:
                _logger.warning("preview decode failed: %s", e)
            else:
                self.canvas.set_preview(pil_rgba_to_qimage(preview.image))
        self._update_status()

    # ---------------------------
    # UI sync
    # ---------------------------
    def _sync_ui_from_state(self) -> None:
        s = self.session
        widgets = (
            self.out_w, self.out_h, self.fit_combo, self.mask_combo, self.format_combo,
            self.quality_slider, self.move_btn, self.crop_btn, self.history_list,
        )
        for w in widgets:
            w.blockSignals(True)
        try:
            if s is not None:
                o = s.options
                self.out_w.setValue(o.target_width or 0)
                self.out_h.setValue(o.target_height or 0)
                self.fit_combo.setCurrentIndex(self.fit_combo.findData(o.fit))
                self.mask_combo.setCurrentIndex(self.mask_combo.findData(o.mask))
                self.format_combo.setCurrentIndex(self.format_combo.findData(o.format))
                if not self.quality_slider.isSliderDown():
                    self.quality_slider.setValue(int(round(o.quality * 100)))
                self.quality_label.setText(f"{int(round(o.quality * 100))}%")
                self.quality_slider.setEnabled(o.format != OutputFormat.PNG)
                self.move_btn.setChecked(s.mode == ToolMode.MOVE_IMAGE)
                self.crop_btn.setChecked(s.mode == ToolMode.CROP)
                self.move_btn.setEnabled(s.mode != ToolMode.CROP)

                self.history_list.clear()
                for i, entry in enumerate(s.history.entries):
                    self.history_list.addItem(f"{i + 1}. {entry.label}")
                self.history_list.setCurrentRow(s.history.index)
        finally:
            for w in widgets:
                w.blockSignals(False)

        folder = self.config.output_dir
        self.folder_label.setText(f"Folder: {folder}" if folder else "Folder: not set (asks on export)")
        self._update_undo_redo_actions()
        self._update_status()
        self.canvas.update()

    def _update_undo_redo_actions(self) -> None:
        can_undo = self.session is not None and self.session.history.can_undo
        can_redo = self.session is not None and self.session.history.can_redo
        if self._act_undo is not None:
            self._act_undo.setEnabled(can_undo)
        if self._act_redo is not None:
            self._act_redo.setEnabled(can_redo)
        self.undo_btn.setEnabled(can_undo)
        self.redo_btn.setEnabled(can_redo)

    def _update_status(self) -> None:
        if self.session is None:
            self.statusBar().showMessage("No image")
            return
        src = self.session.source
        vp = self.session.viewport
        msg = f"Source: {src.width}x{src.height} | Zoom: {vp.scale * 100:.0f}% | Tool: {self.session.mode.value}"
        result = self._last_result
        if result is not None:
            if result.ok:
                img = result.image
                msg += f" | Output: {img.width}x{img.height} {img.format.name} {len(img.data) / 1024:.1f} KB"
            else:
                msg += f" | Render failed: {result.error}"
        self.statusBar().showMessage(msg)

    def _make_group(self, title: str) -> tuple[QGroupBox, QVBoxLayout]:
        g = QGroupBox(title)
        gl = QVBoxLayout()
        g.setLayout(gl)
        return g, gl

    def _add_labeled_row(self, layout: QVBoxLayout, label: str, widget: Optional[QWidget]) -> None:
        row = QHBoxLayout()
        row.addWidget(QLabel(label))
        if widget is not None:
            row.addWidget(widget, 1)
        layout.addLayout(row)

    def closeEvent(self, e) -> None:
        if self.session is not None:
            self.session.close()
        super().closeEvent(e)
