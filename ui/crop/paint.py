# ui/crop/paint.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QColor, QPainter, QPainterPath, QPen, QPixmap

from selection.models import HANDLES, Rect


@dataclass(frozen=True)
class PaintConfig:
    """
    Rendering configuration for the crop canvas.

    - border_px: selection outline thickness.
    - handle_px: diameter of the round corner handles (matches the hit zone size).
    - shade: translucent fill drawn over the image outside the selection.
    - accent: outline and handle color.
    - background: canvas color around the image.
    """
    border_px: int
    handle_px: int
    shade: QColor
    accent: QColor
    background: QColor


class CropPainter:
    """
    Paints the crop canvas: image, dimmed surroundings, selection outline and handles.

    Inputs to paint() are precomputed by the canvas:
    - image_rect: where the scaled pixmap sits inside the widget (widget coords).
    - selection: current selection in display space (relative to image_rect's top-left),
      or None. Empty selections are not drawn.
    """

    def __init__(self, *, cfg: PaintConfig) -> None:
        self._cfg = cfg

    def paint(
        self,
        p: QPainter,
        *,
        widget_rect: QRectF,
        image_rect: QRectF,
        pixmap: Optional[QPixmap],
        selection: Optional[Rect],
    ) -> None:
        p.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        p.fillRect(widget_rect, self._cfg.background)

        if pixmap is None or pixmap.isNull():
            p.setPen(QColor(100, 116, 139))
            p.drawText(widget_rect, Qt.AlignmentFlag.AlignCenter, "Open an image to start cropping")
            return

        p.drawPixmap(image_rect, pixmap, QRectF(pixmap.rect()))

        if selection is None or selection.is_empty:
            return

        sel = QRectF(
            image_rect.left() + selection.x,
            image_rect.top() + selection.y,
            selection.width,
            selection.height,
        )

        # Dim everything on the image except the selection (even-odd fill).
        shade = QPainterPath()
        shade.setFillRule(Qt.FillRule.OddEvenFill)
        shade.addRect(image_rect)
        shade.addRect(sel)
        p.fillPath(shade, self._cfg.shade)

        pen = QPen(self._cfg.accent)
        pen.setWidth(int(self._cfg.border_px))
        p.setPen(pen)
        p.setBrush(Qt.BrushStyle.NoBrush)
        p.drawRect(sel)

        self._draw_handles(p, image_rect=image_rect, selection=selection)

    def _draw_handles(self, p: QPainter, *, image_rect: QRectF, selection: Rect) -> None:
        r = float(self._cfg.handle_px) / 2.0
        p.save()
        p.setPen(QPen(QColor(255, 255, 255), 1))
        p.setBrush(self._cfg.accent)
        for h in HANDLES:
            c = selection.corner(h)
            p.drawEllipse(QPointF(image_rect.left() + c.x, image_rect.top() + c.y), r, r)
        p.restore()
