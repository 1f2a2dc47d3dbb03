# selection/commit.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from selection.controller import SelectionController
from selection.mapper import clamp_to_source, to_source_space
from selection.models import DisplayFrame


@dataclass(frozen=True)
class CropRequest:
    """
    Body of a crop call: a stored filename plus an integer source-space rectangle.

    Shared by the client (which builds it from a selection) and the server (which
    parses it from JSON).
    """
    filename: str
    x: int
    y: int
    width: int
    height: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "x": int(self.x),
            "y": int(self.y),
            "width": int(self.width),
            "height": int(self.height),
        }


def can_commit(controller: SelectionController, frame: Optional[DisplayFrame]) -> bool:
    """Commit is enabled only for a non-empty selection on a laid-out image."""
    return controller.has_selection and frame is not None and frame.is_ready


def build_crop_request(
    filename: str,
    controller: SelectionController,
    frame: Optional[DisplayFrame],
) -> Optional[CropRequest]:
    """
    Turn the current selection into a crop request, or None when commit is disabled.

    The mapped rectangle is re-clamped to the natural image bounds so rounding drift
    cannot produce a request the server would reject.
    """
    if not can_commit(controller, frame):
        return None
    assert frame is not None
    rect = controller.rect
    assert rect is not None

    src = clamp_to_source(to_source_space(rect, frame), frame)
    return CropRequest(
        filename=filename,
        x=int(src.x),
        y=int(src.y),
        width=int(src.width),
        height=int(src.height),
    )
