"""Tests for frames and overlay placement."""

from calculate import LAYOUTS, Rect
from frames import FRAMES, Anchor, Decoration, Shape, get_frame


def test_unknown_frame_falls_back_to_none() -> None:
    assert get_frame("sparkles").id == "none"


def test_overlays_cover_every_layout() -> None:
    for number in range(1, 9):
        frame = FRAMES[f"overlay{number}"]
        assert frame.is_overlay
        for layout_id in LAYOUTS:
            assert frame.decorations_for(layout_id)


def test_overlay_sizes_come_from_the_per_layout_table() -> None:
    frame = FRAMES["overlay1"]
    assert frame.decorations_for("single")[0].size == 80
    assert frame.decorations_for("strip")[0].size == 48
    assert frame.decorations_for("grid")[0].size == 56
    assert frame.decorations_for("collage")[0].size == 56


def test_plain_frames_have_no_decorations() -> None:
    for frame_id in ("none", "strip", "polaroid", "vintage", "modern"):
        assert not FRAMES[frame_id].is_overlay
    assert FRAMES["polaroid"].padding == 16
    assert FRAMES["vintage"].border_width == 4


def test_star_overlay_has_four_corners() -> None:
    stars = FRAMES["overlay6"].decorations_for("strip")
    assert {d.anchor for d in stars} == {
        Anchor.TOP_LEFT, Anchor.TOP_RIGHT, Anchor.BOTTOM_LEFT, Anchor.BOTTOM_RIGHT,
    }


def test_place_resolves_anchors() -> None:
    assert Decoration(Shape.CIRCLE, Anchor.TOP_RIGHT, 20, 5).place(100, 80) == Rect(75, 5, 20, 20)
    assert Decoration(Shape.CIRCLE, Anchor.BOTTOM_LEFT, 20, 5).place(100, 80) == Rect(5, 55, 20, 20)
    assert Decoration(Shape.CIRCLE, Anchor.CENTER, 20).place(100, 80) == Rect(40, 30, 20, 20)
    assert Decoration(Shape.BORDER, Anchor.FILL, inset=8).place(100, 80) == Rect(8, 8, 84, 64)
