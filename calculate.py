#!/usr/bin/env python3
"""
Layout Rects Calculator
Functions that compute slot positions and sizes for each layout,
plus the layout catalogue built from them.

Rects are expressed as percentages of the photo area (leftPct, topPct,
widthPct, heightPct) and converted to pixels once the area size is known.
"""

from dataclasses import dataclass
from typing import List, Dict, Any, NamedTuple, Tuple


class Rect(NamedTuple):
    x: int
    y: int
    w: int
    h: int

    @property
    def right(self) -> int:
        return self.x + self.w

    @property
    def bottom(self) -> int:
        return self.y + self.h

    def offset(self, dx: int, dy: int) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.w, self.h)

    def scale(self, factor: int) -> "Rect":
        return Rect(self.x * factor, self.y * factor, self.w * factor, self.h * factor)


def calculate_single_slot_rects(
    left_pct: float = 0.0,
    top_pct: float = 0.0,
    width_pct: float = 100.0,
    height_pct: float = 100.0
) -> List[Dict[str, float]]:
    """
    Rects for a layout with one slot

    Args:
        left_pct: left position in percent (default: 0.0)
        top_pct: top position in percent (default: 0.0)
        width_pct: width in percent (default: 100.0)
        height_pct: height in percent (default: 100.0)

    Returns:
        List of rect objects
    """
    return [{
        "leftPct": left_pct,
        "topPct": top_pct,
        "widthPct": width_pct,
        "heightPct": height_pct
    }]


def calculate_strip_rects(
    slots: int = 4,
    left_pct: float = 0.0,
    width_pct: float = 100.0,
    vertical_gap_pct: float = 2.0
) -> List[Dict[str, float]]:
    """
    Rects for a vertical strip, stacked top to bottom

    Args:
        slots: number of slots (default: 4)
        left_pct: left position in percent (default: 0.0)
        width_pct: width in percent (default: 100.0)
        vertical_gap_pct: gap between slots in percent (default: 2.0)

    Returns:
        List of rect objects
    """
    height_pct = (100.0 - vertical_gap_pct * (slots - 1)) / slots
    rects = []
    for i in range(slots):
        rects.append({
            "leftPct": left_pct,
            "topPct": i * (height_pct + vertical_gap_pct),
            "widthPct": width_pct,
            "heightPct": height_pct
        })
    return rects


def calculate_four_slots_rects(
    horizontal_gap_pct: float = 2.0,
    vertical_gap_pct: float = 3.0
) -> List[Dict[str, float]]:
    """
    Rects for a 2x2 grid, row-major

    Args:
        horizontal_gap_pct: gap between columns in percent (default: 2.0)
        vertical_gap_pct: gap between rows in percent (default: 3.0)

    Returns:
        List of rect objects
    """
    width_pct = (100.0 - horizontal_gap_pct) / 2
    height_pct = (100.0 - vertical_gap_pct) / 2

    # second column / second row
    second_left = width_pct + horizontal_gap_pct
    second_top = height_pct + vertical_gap_pct

    rects = []
    for top in (0.0, second_top):
        for left in (0.0, second_left):
            rects.append({
                "leftPct": left,
                "topPct": top,
                "widthPct": width_pct,
                "heightPct": height_pct
            })
    return rects


def calculate_collage_rects(gap_pct: float = 1.0) -> List[Dict[str, float]]:
    """
    Rects for the collage: a 3x3 cell grid where the first slot spans the
    top-left 2x2 cells and five small slots fill the rest

    Args:
        gap_pct: gap between cells in percent (default: 1.0)

    Returns:
        List of rect objects
    """
    cell = (100.0 - 2 * gap_pct) / 3
    step = cell + gap_pct

    rects = [{
        "leftPct": 0.0,
        "topPct": 0.0,
        "widthPct": 2 * cell + gap_pct,
        "heightPct": 2 * cell + gap_pct
    }]
    # right column top to bottom, then the bottom row left to right
    for col, row in ((2, 0), (2, 1), (0, 2), (1, 2), (2, 2)):
        rects.append({
            "leftPct": col * step,
            "topPct": row * step,
            "widthPct": cell,
            "heightPct": cell
        })
    return rects


def to_rect(r: Dict[str, float], width: int, height: int) -> Rect:
    x = int(round((r["leftPct"] / 100) * width))
    y = int(round((r["topPct"] / 100) * height))
    w = int(round((r["widthPct"] / 100) * width))
    h = int(round((r["heightPct"] / 100) * height))
    return Rect(x, y, w, h)


@dataclass(frozen=True)
class Layout:
    id: str
    name: str
    slot_count: int
    description: str
    size: Tuple[int, int]  # photo area, base pixels
    arrangement: Tuple[Rect, ...]


def _layout(layout_id: str, name: str, description: str, size: Tuple[int, int],
            rects: List[Dict[str, float]]) -> Layout:
    w, h = size
    arrangement = tuple(to_rect(r, w, h) for r in rects)
    return Layout(layout_id, name, len(arrangement), description, size, arrangement)


LAYOUTS: Dict[str, Layout] = {
    "single": _layout("single", "Single", "One large photo", (400, 400),
                      calculate_single_slot_rects()),
    "strip": _layout("strip", "Strip", "Vertical photo strip", (320, 408),
                     calculate_strip_rects(slots=4, vertical_gap_pct=2.0)),
    "grid": _layout("grid", "Grid", "2x2 grid layout", (400, 264),
                    calculate_four_slots_rects(horizontal_gap_pct=2.0, vertical_gap_pct=3.0)),
    "collage": _layout("collage", "Collage", "Mixed size collage", (420, 420),
                       calculate_collage_rects(gap_pct=1.0)),
}


def get_layout(layout_id: str) -> Layout:
    if layout_id not in LAYOUTS:
        raise ValueError(f"Layout ID '{layout_id}' not found. Available: {list(LAYOUTS.keys())}")
    return LAYOUTS[layout_id]


def print_rects_info(rects: List[Dict[str, Any]], layout_name: str = ""):
    """
    Print rect details for inspection

    Args:
        rects: list of rect objects
        layout_name: layout name (optional)
    """
    if layout_name:
        print(f"\n=== {layout_name} ===")

    for i, rect in enumerate(rects, 1):
        print(f"Slot {i}:")
        print(f"  leftPct: {rect['leftPct']:.2f}%")
        print(f"  topPct: {rect['topPct']:.2f}%")
        print(f"  widthPct: {rect['widthPct']:.2f}%")
        print(f"  heightPct: {rect['heightPct']:.2f}%")

        right = rect['leftPct'] + rect['widthPct']
        bottom = rect['topPct'] + rect['heightPct']
        print(f"  right edge: {right:.2f}%")
        print(f"  bottom edge: {bottom:.2f}%")


def main():
    for layout in LAYOUTS.values():
        w, h = layout.size
        rects = [{
            "leftPct": r.x / w * 100,
            "topPct": r.y / h * 100,
            "widthPct": r.w / w * 100,
            "heightPct": r.h / h * 100,
        } for r in layout.arrangement]
        print_rects_info(rects, f"{layout.name} ({layout.slot_count} slots, {w}x{h})")


if __name__ == "__main__":
    main()
