# selection/mapper.py
"""Display-space -> source-space conversion for crop rectangles.

The crop endpoint works on the original image pixels, while the selection is made on a
scaled rendering. Each field is scaled independently and rounded half-up, which can
drift by at most one source pixel per edge from the exact scaled value. That drift is
accepted; `clamp_to_source` removes the rare case where it pushes the rectangle one
pixel past the natural bounds.
"""

from __future__ import annotations

from selection.models import DisplayFrame, Rect, round_half_up


class LayoutNotReadyError(ValueError):
    """Raised when mapping is attempted before the image has a laid-out size."""


def _require_ready(frame: DisplayFrame) -> None:
    if frame.display_width <= 0 or frame.display_height <= 0:
        raise LayoutNotReadyError(
            f"display size is {frame.display_width}x{frame.display_height}; image not laid out yet"
        )
    if frame.natural_width <= 0 or frame.natural_height <= 0:
        raise LayoutNotReadyError(
            f"natural size is {frame.natural_width}x{frame.natural_height}; image not loaded yet"
        )


def to_source_space(rect: Rect, frame: DisplayFrame) -> Rect:
    """
    Convert a display-space rectangle into integer source-space pixels.

    Callers gate on `frame.is_ready`; this raises LayoutNotReadyError otherwise.
    """
    _require_ready(frame)
    sx = frame.scale_x
    sy = frame.scale_y
    return Rect(
        x=round_half_up(rect.x * sx),
        y=round_half_up(rect.y * sy),
        width=round_half_up(rect.width * sx),
        height=round_half_up(rect.height * sy),
    )


def clamp_to_source(rect: Rect, frame: DisplayFrame) -> Rect:
    """
    Force an integer rectangle inside [0, natural_w] x [0, natural_h] with size >= 1.

    Applied right before a rectangle is handed to the crop endpoint, which rejects
    anything outside the source image.
    """
    nw = int(frame.natural_width)
    nh = int(frame.natural_height)

    x = min(max(0, int(rect.x)), nw - 1)
    y = min(max(0, int(rect.y)), nh - 1)
    w = min(max(1, int(rect.width)), nw - x)
    h = min(max(1, int(rect.height)), nh - y)
    return Rect(x=x, y=y, width=w, height=h)
