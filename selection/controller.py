# selection/controller.py
"""Pointer-driven state machine for the crop selection rectangle.

`SelectionController` turns a serial stream of pointer events (down/move/up/leave) plus
cancel/reset requests into a bounds-clamped rectangle in display space. It has no UI
toolkit dependency: the hosting window translates its native events into `Point`s and
repaints when a handler reports a change.
"""

from __future__ import annotations

from typing import Optional

from selection.hit_test import CursorHint, cursor_for_hit, hit_test
from selection.models import Handle, InteractionMode, Point, Rect, clamp
from selection.state import SelectionConfig, SelectionState


def _resize_axis(
    start: float,
    size: float,
    delta: float,
    *,
    move_low_edge: bool,
    minimum: float,
    limit: float,
) -> tuple[float, float]:
    """
    Move one edge of a 1-D span by `delta`, keeping the other edge fixed.

    The moving edge stops at `minimum` distance from the fixed edge and never crosses
    the container range [0, limit]. Only when the fixed edge sits closer than `minimum`
    to the container boundary is it pushed back to make room.

    Returns (start, size).
    """
    if move_low_edge:
        high = start + size
        low = min(start + delta, high - minimum)
        low = max(low, 0.0)
        if high - low < minimum:
            high = min(low + minimum, limit)
        return low, high - low

    low = start
    high = max(start + size + delta, low + minimum)
    high = min(high, limit)
    if high - low < minimum:
        low = max(high - minimum, 0.0)
    return low, high - low


class SelectionController:
    """
    Owns the selection rectangle and the interaction mode.

    State machine:
      idle --down--> selecting | dragging | resizing(handle)
      selecting/dragging/resizing --move--> (same mode, rect updated)
      any --up/leave--> idle (rect kept)
      any --cancel/reset--> idle (rect cleared)

    Invariant after every handler: when a rect exists,
      0 <= x, 0 <= y, x + width <= container_width, y + height <= container_height.
    """

    def __init__(
        self,
        container_width: float,
        container_height: float,
        *,
        cfg: SelectionConfig = SelectionConfig(),
    ) -> None:
        self._cw = max(0.0, float(container_width))
        self._ch = max(0.0, float(container_height))
        self._cfg = cfg
        self._state = SelectionState()

    # ----------------------------
    # Read-only views
    # ----------------------------

    @property
    def rect(self) -> Optional[Rect]:
        return self._state.rect

    @property
    def mode(self) -> InteractionMode:
        return self._state.mode

    @property
    def handle(self) -> Optional[Handle]:
        return self._state.handle

    @property
    def anchor(self) -> Point:
        return self._state.anchor

    @property
    def state(self) -> SelectionState:
        return self._state.snapshot()

    @property
    def container_size(self) -> tuple[float, float]:
        return self._cw, self._ch

    @property
    def has_selection(self) -> bool:
        """True when a non-empty rectangle is available for commit."""
        r = self._state.rect
        return r is not None and not r.is_empty

    def cursor_for(self, p: Point) -> CursorHint:
        """Cursor shape to show while hovering `p` (same precedence as pointer-down)."""
        return cursor_for_hit(hit_test(self._state.rect, p, handle_px=self._cfg.handle_px))

    # ----------------------------
    # Pointer events
    # ----------------------------

    def on_pointer_down(self, p: Point) -> None:
        """
        Begin a gesture.

        Priority: a corner handle starts a resize, the interior starts a drag, anything
        else (including having no rectangle) starts a new selection anchored at `p`.
        """
        s = self._state
        hit = hit_test(s.rect, p, handle_px=self._cfg.handle_px)

        if hit == "outside":
            a = Point(clamp(p.x, 0.0, self._cw), clamp(p.y, 0.0, self._ch))
            s.mode = "selecting"
            s.handle = None
            s.anchor = a
            s.rect = Rect(a.x, a.y, 0.0, 0.0)
            return

        if hit == "inside":
            s.mode = "dragging"
            s.handle = None
        else:
            s.mode = "resizing"
            s.handle = hit
        s.anchor = p

    def on_pointer_move(self, p: Point) -> bool:
        """
        Update the rectangle for the active gesture.

        Returns:
            bool: True if the rectangle changed (caller should repaint).
        """
        s = self._state
        if s.mode == "idle" or s.rect is None:
            return False

        before = s.rect
        if s.mode == "selecting":
            s.rect = self._selecting_rect(s.anchor, p)
        elif s.mode == "dragging":
            s.rect = self._dragged_rect(before, p.x - s.anchor.x, p.y - s.anchor.y)
            s.anchor = p
        elif s.mode == "resizing" and s.handle is not None:
            s.rect = self._resized_rect(before, s.handle, p.x - s.anchor.x, p.y - s.anchor.y)
            s.anchor = p

        return s.rect != before

    def on_pointer_up(self) -> None:
        """End the gesture; the rectangle stays in place for review or commit."""
        self._state.mode = "idle"
        self._state.handle = None

    def on_pointer_leave(self) -> None:
        """Pointer left the container: same as release, so a drag cannot get stuck."""
        self.on_pointer_up()

    def on_cancel(self) -> None:
        """Escape: drop the rectangle and return to idle from any mode."""
        self._state.rect = None
        self._state.mode = "idle"
        self._state.handle = None

    def reset(self) -> None:
        self.on_cancel()

    # ----------------------------
    # Container changes
    # ----------------------------

    def set_container_size(self, width: float, height: float) -> None:
        """
        Adopt a new rendered image size (e.g. the window was resized).

        The current rectangle is scaled by the same factors so it keeps covering the same
        part of the image, then clamped to the new bounds.
        """
        new_w = max(0.0, float(width))
        new_h = max(0.0, float(height))
        r = self._state.rect
        if r is not None and self._cw > 0 and self._ch > 0:
            fx = new_w / self._cw
            fy = new_h / self._ch
            self._cw, self._ch = new_w, new_h
            self._state.rect = self._clamp_rect(Rect(r.x * fx, r.y * fy, r.width * fx, r.height * fy))
            return
        self._cw, self._ch = new_w, new_h
        if r is not None:
            self._state.rect = self._clamp_rect(r)

    # ----------------------------
    # Geometry rules
    # ----------------------------

    def _clamp_rect(self, r: Rect) -> Rect:
        """
        Fit a rectangle into the container.

        Position is adjusted before size: an overhanging rectangle is shifted back inside,
        and only shrunk when it is larger than the container itself.
        """
        w = min(r.width, self._cw)
        h = min(r.height, self._ch)
        x = clamp(r.x, 0.0, self._cw - r.width)
        y = clamp(r.y, 0.0, self._ch - r.height)
        return Rect(x, y, w, h)

    def _selecting_rect(self, anchor: Point, p: Point) -> Rect:
        raw = Rect(
            min(anchor.x, p.x),
            min(anchor.y, p.y),
            abs(p.x - anchor.x),
            abs(p.y - anchor.y),
        )
        return self._clamp_rect(raw)

    def _dragged_rect(self, r: Rect, dx: float, dy: float) -> Rect:
        x = clamp(r.x + dx, 0.0, self._cw - r.width)
        y = clamp(r.y + dy, 0.0, self._ch - r.height)
        return Rect(x, y, r.width, r.height)

    def _resized_rect(self, r: Rect, handle: Handle, dx: float, dy: float) -> Rect:
        m = float(self._cfg.min_size_px)
        x, w = _resize_axis(
            r.x, r.width, dx,
            move_low_edge=handle in ("nw", "sw"),
            minimum=min(m, self._cw),
            limit=self._cw,
        )
        y, h = _resize_axis(
            r.y, r.height, dy,
            move_low_edge=handle in ("nw", "ne"),
            minimum=min(m, self._ch),
            limit=self._ch,
        )
        return Rect(x, y, w, h)
