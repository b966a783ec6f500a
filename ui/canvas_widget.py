from __future__ import annotations
from typing import Callable, Optional

from PySide6.QtCore import Qt, QRectF, QTimer
from PySide6.QtGui import QPainter, QImage, QPixmap, QColor, QPen
from PySide6.QtWidgets import QWidget

from core.interaction import ToolMode
from core.session import EditorSession


class CanvasWidget(QWidget):
    """
    Shows the encoded preview (or the full source while cropping) under the
    session's viewport transform.
      - left-drag: pan / move image / crop selection, depending on the tool
      - wheel: view zoom
    Widget pixels are the screen space the session's viewport maps from.
    """
    def __init__(
        self,
        on_interaction: Optional[Callable[[], None]] = None,
        parent: Optional[QWidget] = None,
    ):
        super().__init__(parent)
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.StrongFocus)

        self.session: Optional[EditorSession] = None
        self._preview: Optional[QPixmap] = None
        self._source: Optional[QPixmap] = None
        self._on_interaction = on_interaction

        self._ants_phase = 0.0
        self._ants_timer = QTimer(self)
        self._ants_timer.setInterval(120)
        self._ants_timer.timeout.connect(self._advance_ants)

    def set_session(self, session: Optional[EditorSession], source: Optional[QImage]) -> None:
        self.session = session
        self._source = None if source is None else QPixmap.fromImage(source)
        self._preview = None
        self.update()

    def set_source(self, source: Optional[QImage]) -> None:
        self._source = None if source is None else QPixmap.fromImage(source)
        self.update()

    def set_preview(self, qimg: Optional[QImage]) -> None:
        self._preview = None if qimg is None else QPixmap.fromImage(qimg)
        self.update()

    def paintEvent(self, _) -> None:
        p = QPainter(self)
        p.setRenderHint(QPainter.Antialiasing, True)
        p.fillRect(self.rect(), QColor(30, 30, 30))

        if self.session is None:
            p.setPen(QPen(QColor(220, 220, 220)))
            p.drawText(self.rect(), Qt.AlignCenter, "Drop an image or File > Open...")
            return

        cropping = self.session.mode == ToolMode.CROP
        # The crop tool works on the untransformed source so selections map exactly
        pm = self._source if cropping else self._preview
        if pm is None:
            p.setPen(QPen(QColor(220, 220, 220)))
            p.drawText(self.rect(), Qt.AlignCenter, "Rendering...")
            return

        vp = self.session.viewport
        r = QRectF(vp.pan_x, vp.pan_y, pm.width() * vp.scale, pm.height() * vp.scale)
        self._draw_checkerboard(p, r, max(4, int(16 * vp.scale)))
        p.drawPixmap(r.toRect(), pm)

        p.setPen(QPen(QColor(240, 240, 240), 1))
        p.drawRect(r)

        selection = self.session.interaction.selection
        if cropping and selection is not None:
            self._draw_selection_overlay(p, r, QRectF(selection.x, selection.y, selection.width, selection.height))

        p.setPen(QPen(QColor(220, 220, 220)))
        msg = {
            ToolMode.PAN: "Drag: pan view | Wheel: zoom | M: move image | C: crop",
            ToolMode.MOVE_IMAGE: "Move image ON: drag to reposition | M: back to pan",
            ToolMode.CROP: "Crop: drag a rectangle | Esc: cancel",
        }[self.session.mode]
        p.drawText(10, self.height() - 10, msg)

    def _draw_checkerboard(self, p: QPainter, r: QRectF, cell: int) -> None:
        c1 = QColor(60, 60, 60)
        c2 = QColor(90, 90, 90)
        x0 = max(0, int(r.left()))
        y0 = max(0, int(r.top()))
        x1 = min(self.width(), int(r.right()))
        y1 = min(self.height(), int(r.bottom()))
        for y in range(y0, y1, cell):
            for x in range(x0, x1, cell):
                use_c1 = ((x // cell) + (y // cell)) % 2 == 0
                p.fillRect(x, y, cell, cell, c1 if use_c1 else c2)

    def _draw_selection_overlay(self, p: QPainter, image_rect: QRectF, sel: QRectF) -> None:
        if sel.width() <= 0 or sel.height() <= 0:
            return
        shade = QColor(0, 0, 0, 100)
        x0, y0 = image_rect.left(), image_rect.top()
        w, h = image_rect.width(), image_rect.height()
        # Shade outside selection
        p.fillRect(QRectF(x0, y0, w, max(0.0, sel.top() - y0)), shade)
        p.fillRect(QRectF(x0, sel.bottom(), w, max(0.0, y0 + h - sel.bottom())), shade)
        p.fillRect(QRectF(x0, sel.top(), max(0.0, sel.left() - x0), sel.height()), shade)
        p.fillRect(QRectF(sel.right(), sel.top(), max(0.0, x0 + w - sel.right()), sel.height()), shade)

        outer = QPen(QColor(255, 255, 255), 2)
        outer.setDashPattern([4, 4])
        outer.setDashOffset(self._ants_phase)
        p.setPen(outer)
        p.drawRect(sel)

        inner = QPen(QColor(0, 0, 0), 2)
        inner.setDashPattern([4, 4])
        inner.setDashOffset(self._ants_phase + 4.0)
        p.setPen(inner)
        p.drawRect(sel)

    def _changed(self) -> None:
        selecting = self.session is not None and self.session.interaction.selection is not None
        if selecting and not self._ants_timer.isActive():
            self._ants_timer.start()
        elif not selecting and self._ants_timer.isActive():
            self._ants_timer.stop()
        self.update()
        if self._on_interaction is not None:
            self._on_interaction()

    def wheelEvent(self, e) -> None:
        delta = e.angleDelta().y()
        if self.session is None or delta == 0:
            return
        # Qt reports wheel-up as positive; the session zooms in on negative delta
        self.session.zoom(-float(delta))
        self._changed()
        e.accept()

    def mousePressEvent(self, e) -> None:
        if self.session is None or e.button() != Qt.LeftButton:
            return
        pos = e.position()
        self.session.pointer_down(pos.x(), pos.y())
        self._changed()

    def mouseMoveEvent(self, e) -> None:
        if self.session is None or not self.session.interaction.dragging:
            return
        pos = e.position()
        self.session.pointer_move(pos.x(), pos.y())
        self._changed()

    def mouseReleaseEvent(self, e) -> None:
        if self.session is None or e.button() != Qt.LeftButton:
            return
        self.session.pointer_up()
        self._changed()

    def _advance_ants(self) -> None:
        self._ants_phase = (self._ants_phase + 1.0) % 8.0
        self.update()
