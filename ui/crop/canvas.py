# ui/crop/canvas.py
"""Qt widget hosting the selection controller over a scaled image.

The widget only translates between Qt and the pure selection code:
- mouse/keyboard events become SelectionController calls (positions are made relative
  to the image's top-left corner first);
- every resize recomputes the DisplayFrame and tells the controller about the new
  container size;
- painting is delegated to CropPainter.
"""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QRectF, Qt, Signal
from PySide6.QtGui import QColor, QCursor, QPainter, QPixmap
from PySide6.QtWidgets import QSizePolicy, QWidget

from selection.controller import SelectionController
from selection.hit_test import CursorHint
from selection.models import DisplayFrame, Point, Rect
from selection.state import SelectionConfig
from ui.crop.layout import fit_size
from ui.crop.paint import CropPainter, PaintConfig


# Padding between the widget border and the image, in logical pixels.
_PAD_PX = 16

_CURSORS: dict[str, Qt.CursorShape] = {
    "nw-resize": Qt.CursorShape.SizeFDiagCursor,
    "se-resize": Qt.CursorShape.SizeFDiagCursor,
    "ne-resize": Qt.CursorShape.SizeBDiagCursor,
    "sw-resize": Qt.CursorShape.SizeBDiagCursor,
    "move": Qt.CursorShape.SizeAllCursor,
    "crosshair": Qt.CursorShape.CrossCursor,
}


class CropCanvas(QWidget):
    """
    Displays one image and lets the user draw, move and resize a crop selection.

    Signals:
    - selectionChanged: emitted whenever the selection rectangle or its presence changes.
    """

    selectionChanged = Signal()

    def __init__(
        self,
        *,
        selection_cfg: SelectionConfig,
        max_display_width: int,
        max_display_height: int,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._max_w = int(max_display_width)
        self._max_h = int(max_display_height)

        self._pixmap: Optional[QPixmap] = None
        self._scaled: Optional[QPixmap] = None
        self._frame: Optional[DisplayFrame] = None
        self._controller = SelectionController(0, 0, cfg=selection_cfg)

        self._painter = CropPainter(
            cfg=PaintConfig(
                border_px=2,
                handle_px=int(selection_cfg.handle_px),
                shade=QColor(0, 0, 0, 77),
                accent=QColor(59, 130, 246),
                background=QColor(241, 245, 249),
            )
        )

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMinimumSize(200, 150)

    # ----------------------------
    # Public API
    # ----------------------------

    @property
    def controller(self) -> SelectionController:
        return self._controller

    @property
    def frame(self) -> Optional[DisplayFrame]:
        return self._frame

    @property
    def display_pixmap(self) -> Optional[QPixmap]:
        """The image as currently drawn (scaled to the display frame), or None."""
        return self._scaled

    def set_image(self, pixmap: Optional[QPixmap]) -> None:
        """Show a new image (or none); any previous selection is discarded."""
        self._pixmap = pixmap if pixmap is not None and not pixmap.isNull() else None
        self._controller.reset()
        self._relayout()
        self.selectionChanged.emit()
        self.update()

    def clear_selection(self) -> None:
        self._controller.reset()
        self.selectionChanged.emit()
        self.update()

    # ----------------------------
    # Layout
    # ----------------------------

    def _image_rect(self) -> QRectF:
        if self._frame is None:
            return QRectF()
        return QRectF(_PAD_PX, _PAD_PX, self._frame.display_width, self._frame.display_height)

    def _relayout(self) -> None:
        """Recompute the display frame from the current widget size."""
        if self._pixmap is None:
            self._frame = None
            self._scaled = None
            self._controller.set_container_size(0, 0)
            return

        avail_w = min(self._max_w, self.width() - 2 * _PAD_PX)
        avail_h = min(self._max_h, self.height() - 2 * _PAD_PX)
        dw, dh = fit_size(self._pixmap.width(), self._pixmap.height(), avail_w, avail_h)

        self._frame = DisplayFrame(
            display_width=dw,
            display_height=dh,
            natural_width=self._pixmap.width(),
            natural_height=self._pixmap.height(),
        )
        self._controller.set_container_size(dw, dh)
        self._scaled = None
        if dw >= 1 and dh >= 1:
            self._scaled = self._pixmap.scaled(
                int(round(dw)),
                int(round(dh)),
                Qt.AspectRatioMode.IgnoreAspectRatio,
                Qt.TransformationMode.SmoothTransformation,
            )

    def _to_image_point(self, event) -> Point:
        pos = event.position()
        return Point(float(pos.x()) - _PAD_PX, float(pos.y()) - _PAD_PX)

    def _inside_image(self, p: Point) -> bool:
        if self._frame is None or not self._frame.is_ready:
            return False
        return Rect(0.0, 0.0, self._frame.display_width, self._frame.display_height).contains(p)

    def _set_cursor(self, hint: CursorHint) -> None:
        self.setCursor(QCursor(_CURSORS.get(hint, Qt.CursorShape.ArrowCursor)))

    # ----------------------------
    # Qt events
    # ----------------------------

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        had = self._controller.rect
        self._relayout()
        if had is not None:
            self.selectionChanged.emit()

    def paintEvent(self, event) -> None:  # type: ignore[override]
        _ = event
        p = QPainter(self)
        try:
            self._painter.paint(
                p,
                widget_rect=QRectF(self.rect()),
                image_rect=self._image_rect(),
                pixmap=self._scaled,
                selection=self._controller.rect,
            )
        finally:
            p.end()

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if event.button() != Qt.MouseButton.LeftButton:
            return
        p = self._to_image_point(event)
        # Gestures start only over the image (or on a handle that pokes out of it).
        if not self._inside_image(p) and self._controller.cursor_for(p) == "crosshair":
            return
        self.setFocus()
        self._controller.on_pointer_down(p)
        self.selectionChanged.emit()
        self.update()

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        p = self._to_image_point(event)
        if self._controller.on_pointer_move(p):
            self.selectionChanged.emit()
            self.update()
            return
        if self._controller.mode == "idle":
            self._set_cursor(self._controller.cursor_for(p) if self._inside_image(p) else "crosshair")

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        _ = event
        self._controller.on_pointer_up()
        self.selectionChanged.emit()

    def leaveEvent(self, event) -> None:  # type: ignore[override]
        # Leaving ends the gesture like a release; the geometry is kept.
        super().leaveEvent(event)
        if self._controller.mode != "idle":
            self._controller.on_pointer_leave()
            self.selectionChanged.emit()

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        if event.key() == Qt.Key.Key_Escape and self._controller.rect is not None:
            self._controller.on_cancel()
            self.selectionChanged.emit()
            self.update()
            return
        super().keyPressEvent(event)
