# ui/crop/layout.py
"""Qt-free sizing helpers for the crop canvas and its preview."""

from __future__ import annotations

from typing import Optional

from selection.models import Rect, round_half_up


def fit_size(natural_w: int, natural_h: int, max_w: float, max_h: float) -> tuple[float, float]:
    """
    Largest size with the image's aspect ratio that fits in (max_w, max_h).

    Images are only ever scaled down, never enlarged.
    """
    if natural_w <= 0 or natural_h <= 0 or max_w <= 0 or max_h <= 0:
        return 0.0, 0.0
    s = min(1.0, float(max_w) / natural_w, float(max_h) / natural_h)
    return natural_w * s, natural_h * s


def preview_box(selection: Optional[Rect], pixmap_w: int, pixmap_h: int) -> Optional[tuple[int, int, int, int]]:
    """
    Integer (x, y, w, h) of `selection` inside the on-screen pixmap, or None.

    The preview is cut from the pixmap the canvas already scaled for display, so the
    selection (display space) is used as is and only snapped and clamped to its pixels.
    """
    if selection is None or selection.is_empty or pixmap_w <= 0 or pixmap_h <= 0:
        return None
    x = min(max(0, round_half_up(selection.x)), pixmap_w - 1)
    y = min(max(0, round_half_up(selection.y)), pixmap_h - 1)
    w = min(max(1, round_half_up(selection.width)), pixmap_w - x)
    h = min(max(1, round_half_up(selection.height)), pixmap_h - y)
    return x, y, w, h
