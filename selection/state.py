# selection/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from selection.models import Handle, InteractionMode, Point, Rect


@dataclass(frozen=True)
class SelectionConfig:
    """
    Tuning knobs for pointer interaction, in display pixels.

    - handle_px: side of the square hit zone centred on each corner.
    - min_size_px: minimum width/height enforced while resizing.
    """
    handle_px: float = 8.0
    min_size_px: float = 20.0


@dataclass
class SelectionState:
    """
    Mutable interaction state owned by one SelectionController.

    Fields:
    - rect: current selection in display space, or None when nothing is selected.
    - mode: active interaction mode ("idle" between gestures).
    - handle: corner being dragged while mode == "resizing", otherwise None.
    - anchor: pointer position at gesture start. Dragging and resizing move it along
      with the pointer after each step so deltas are incremental.
    """
    rect: Optional[Rect] = None
    mode: InteractionMode = "idle"
    handle: Optional[Handle] = None
    anchor: Point = field(default_factory=lambda: Point(0.0, 0.0))

    def snapshot(self) -> "SelectionState":
        return SelectionState(rect=self.rect, mode=self.mode, handle=self.handle, anchor=self.anchor)
