"""Tests for the pointer-driven SelectionController."""

import random

import pytest

from selection.controller import SelectionController
from selection.models import Point, Rect
from selection.state import SelectionConfig


def _within(rect: Rect, cw: float, ch: float) -> bool:
    eps = 1e-9
    return (
        rect.x >= -eps
        and rect.y >= -eps
        and rect.width >= -eps
        and rect.height >= -eps
        and rect.x + rect.width <= cw + eps
        and rect.y + rect.height <= ch + eps
    )


@pytest.fixture
def ctl():
    """A 400x300 container with default handle/min-size settings."""
    return SelectionController(400, 300)


def _select(ctl, start, end):
    ctl.on_pointer_down(Point(*start))
    ctl.on_pointer_move(Point(*end))
    ctl.on_pointer_up()


def test_starts_idle_without_selection(ctl):
    assert ctl.mode == "idle"
    assert ctl.rect is None
    assert not ctl.has_selection


def test_pointer_down_on_empty_container_starts_selecting(ctl):
    ctl.on_pointer_down(Point(50, 60))
    assert ctl.mode == "selecting"
    assert ctl.rect == Rect(50, 60, 0, 0)
    assert ctl.anchor == Point(50, 60)
    # A zero-size rectangle exists but is not committable.
    assert not ctl.has_selection


def test_create_selection_scenario(ctl):
    ctl.on_pointer_down(Point(50, 50))
    changed = ctl.on_pointer_move(Point(150, 150))
    assert changed
    assert ctl.rect == Rect(50, 50, 100, 100)
    ctl.on_pointer_up()
    assert ctl.mode == "idle"
    assert ctl.rect == Rect(50, 50, 100, 100)
    assert ctl.has_selection


def test_selecting_backwards_normalizes_rectangle(ctl):
    ctl.on_pointer_down(Point(200, 200))
    ctl.on_pointer_move(Point(120, 150))
    assert ctl.rect == Rect(120, 150, 80, 50)


def test_selecting_past_container_shifts_position_before_shrinking(ctl):
    ctl.on_pointer_down(Point(350, 250))
    ctl.on_pointer_move(Point(450, 320))
    r = ctl.rect
    assert r.width == 100
    assert r.height == 70
    assert r.x == 300
    assert r.y == 230
    assert _within(r, 400, 300)


def test_selecting_larger_than_container_is_truncated(ctl):
    ctl.on_pointer_down(Point(10, 10))
    ctl.on_pointer_move(Point(-500, -500))
    assert ctl.rect == Rect(0, 0, 400, 300)


def test_pointer_down_outside_container_anchor_is_clamped(ctl):
    ctl.on_pointer_down(Point(-12, 310))
    assert ctl.rect == Rect(0, 300, 0, 0)
    assert _within(ctl.rect, 400, 300)


def test_zero_size_selection_is_not_committable(ctl):
    _select(ctl, (80, 80), (80, 140))
    assert ctl.rect.width == 0
    assert not ctl.has_selection


def test_pointer_down_inside_enters_dragging(ctl):
    _select(ctl, (50, 50), (150, 150))
    ctl.on_pointer_down(Point(100, 100))
    assert ctl.mode == "dragging"
    assert ctl.handle is None


def test_drag_translates_incrementally(ctl):
    _select(ctl, (50, 50), (150, 150))
    ctl.on_pointer_down(Point(100, 100))
    ctl.on_pointer_move(Point(110, 105))
    assert ctl.rect == Rect(60, 55, 100, 100)
    assert ctl.anchor == Point(110, 105)
    ctl.on_pointer_move(Point(120, 110))
    assert ctl.rect == Rect(70, 60, 100, 100)


def test_drag_clamps_at_right_edge():
    ctl = SelectionController(400, 300)
    _select(ctl, (380, 0), (400, 20))
    assert ctl.rect == Rect(380, 0, 20, 20)

    ctl.on_pointer_down(Point(390, 10))
    assert ctl.mode == "dragging"
    ctl.on_pointer_move(Point(440, 10))
    assert ctl.rect.x == 380
    assert ctl.rect.y == 0


def test_drag_clamps_at_top_left(ctl):
    _select(ctl, (20, 20), (120, 120))
    ctl.on_pointer_down(Point(70, 70))
    ctl.on_pointer_move(Point(-100, -100))
    assert ctl.rect == Rect(0, 0, 100, 100)


def test_handle_wins_over_interior(ctl):
    _select(ctl, (50, 50), (150, 150))
    # (148, 148) is both interior and inside the SE handle zone.
    ctl.on_pointer_down(Point(148, 148))
    assert ctl.mode == "resizing"
    assert ctl.handle == "se"


@pytest.mark.parametrize(
    "point, handle",
    [
        ((50, 50), "nw"),
        ((150, 50), "ne"),
        ((50, 150), "sw"),
        ((150, 150), "se"),
        ((46, 154), "sw"),
    ],
)
def test_each_corner_handle_is_hit(ctl, point, handle):
    _select(ctl, (50, 50), (150, 150))
    ctl.on_pointer_down(Point(*point))
    assert ctl.mode == "resizing"
    assert ctl.handle == handle


def test_pointer_down_outside_starts_new_selection(ctl):
    _select(ctl, (50, 50), (150, 150))
    ctl.on_pointer_down(Point(300, 250))
    assert ctl.mode == "selecting"
    assert ctl.rect == Rect(300, 250, 0, 0)


def test_resize_se_pinned_at_minimum(ctl):
    _select(ctl, (50, 50), (80, 80))
    assert ctl.rect == Rect(50, 50, 30, 30)
    ctl.on_pointer_down(Point(80, 80))
    assert ctl.handle == "se"
    ctl.on_pointer_move(Point(60, 60))
    assert ctl.rect == Rect(50, 50, 20, 20)


def test_resize_nw_keeps_opposite_corner_fixed(ctl):
    _select(ctl, (100, 100), (200, 180))
    ctl.on_pointer_down(Point(100, 100))
    assert ctl.handle == "nw"
    ctl.on_pointer_move(Point(90, 120))
    r = ctl.rect
    assert (r.x, r.y) == (90, 120)
    assert (r.right, r.bottom) == (200, 180)


def test_resize_nw_pinned_at_minimum_keeps_opposite_corner(ctl):
    _select(ctl, (100, 100), (200, 200))
    ctl.on_pointer_down(Point(100, 100))
    ctl.on_pointer_move(Point(250, 250))
    r = ctl.rect
    assert r.width == 20
    assert r.height == 20
    assert (r.right, r.bottom) == (200, 200)


def test_resize_ne_moves_top_and_right(ctl):
    _select(ctl, (100, 100), (200, 200))
    ctl.on_pointer_down(Point(200, 100))
    assert ctl.handle == "ne"
    ctl.on_pointer_move(Point(230, 80))
    assert ctl.rect == Rect(100, 80, 130, 120)


def test_resize_sw_moves_bottom_and_left(ctl):
    _select(ctl, (100, 100), (200, 200))
    ctl.on_pointer_down(Point(100, 200))
    assert ctl.handle == "sw"
    ctl.on_pointer_move(Point(70, 240))
    assert ctl.rect == Rect(70, 100, 130, 140)


def test_resize_growing_side_is_clamped_to_container(ctl):
    _select(ctl, (300, 200), (380, 280))
    ctl.on_pointer_down(Point(380, 280))
    ctl.on_pointer_move(Point(500, 400))
    r = ctl.rect
    assert r.x == 300 and r.y == 200
    assert r.right == 400
    assert r.bottom == 300


def test_resize_nw_clamped_at_origin(ctl):
    _select(ctl, (30, 30), (100, 100))
    ctl.on_pointer_down(Point(30, 30))
    ctl.on_pointer_move(Point(-50, -50))
    assert ctl.rect == Rect(0, 0, 100, 100)


def test_pointer_up_returns_to_idle_and_keeps_rect(ctl):
    _select(ctl, (50, 50), (150, 150))
    ctl.on_pointer_down(Point(100, 100))
    ctl.on_pointer_move(Point(120, 100))
    ctl.on_pointer_up()
    assert ctl.mode == "idle"
    assert ctl.rect == Rect(70, 50, 100, 100)


def test_pointer_leave_behaves_like_pointer_up(ctl):
    ctl.on_pointer_down(Point(10, 10))
    ctl.on_pointer_move(Point(60, 60))
    ctl.on_pointer_leave()
    assert ctl.mode == "idle"
    assert ctl.rect == Rect(10, 10, 50, 50)
    # Further moves are ignored once the gesture ended.
    assert not ctl.on_pointer_move(Point(200, 200))
    assert ctl.rect == Rect(10, 10, 50, 50)


def test_move_while_idle_is_noop(ctl):
    assert not ctl.on_pointer_move(Point(10, 10))
    assert ctl.rect is None


@pytest.mark.parametrize("mode_setup", ["idle", "selecting", "dragging", "resizing"])
def test_cancel_clears_in_any_mode(ctl, mode_setup):
    _select(ctl, (50, 50), (150, 150))
    if mode_setup == "selecting":
        ctl.on_pointer_down(Point(300, 250))
    elif mode_setup == "dragging":
        ctl.on_pointer_down(Point(100, 100))
    elif mode_setup == "resizing":
        ctl.on_pointer_down(Point(150, 150))
    assert ctl.mode == mode_setup

    ctl.on_cancel()
    assert ctl.rect is None
    assert ctl.mode == "idle"


def test_reset_matches_cancel(ctl):
    _select(ctl, (50, 50), (150, 150))
    ctl.reset()
    assert ctl.rect is None
    assert ctl.mode == "idle"
    assert not ctl.has_selection


def test_clicking_an_empty_rect_starts_new_selection(ctl):
    _select(ctl, (80, 80), (80, 80))
    ctl.on_pointer_down(Point(80, 80))
    assert ctl.mode == "selecting"


def test_cursor_hints(ctl):
    assert ctl.cursor_for(Point(10, 10)) == "crosshair"
    _select(ctl, (50, 50), (150, 150))
    assert ctl.cursor_for(Point(50, 50)) == "nw-resize"
    assert ctl.cursor_for(Point(150, 50)) == "ne-resize"
    assert ctl.cursor_for(Point(100, 100)) == "move"
    assert ctl.cursor_for(Point(300, 250)) == "crosshair"


def test_container_resize_rescales_selection(ctl):
    _select(ctl, (40, 30), (140, 130))
    ctl.set_container_size(200, 150)
    assert ctl.container_size == (200, 150)
    assert ctl.rect == Rect(20, 15, 50, 50)


def test_custom_minimum_size():
    ctl = SelectionController(400, 300, cfg=SelectionConfig(handle_px=8, min_size_px=50))
    _select(ctl, (100, 100), (200, 200))
    ctl.on_pointer_down(Point(200, 200))
    ctl.on_pointer_move(Point(100, 100))
    assert ctl.rect.width == 50
    assert ctl.rect.height == 50


def test_random_gestures_keep_invariants():
    rng = random.Random(1234)
    cw, ch = 400.0, 300.0
    ctl = SelectionController(cw, ch)
    for _ in range(300):
        ctl.on_pointer_down(Point(rng.uniform(-30, cw + 30), rng.uniform(-30, ch + 30)))
        mode = ctl.mode
        for _ in range(rng.randint(1, 8)):
            before = ctl.rect
            ctl.on_pointer_move(Point(rng.uniform(-100, cw + 100), rng.uniform(-100, ch + 100)))
            r = ctl.rect
            assert r is not None
            assert _within(r, cw, ch)
            if mode == "dragging":
                assert r.width == before.width
                assert r.height == before.height
            if mode == "resizing":
                assert r.width >= 20 - 1e-9
                assert r.height >= 20 - 1e-9
        ctl.on_pointer_up()
