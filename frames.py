"""Frame styles and overlay decorations.

Every overlay carries its own size/inset table per layout; sizes are never
derived by scaling another layout's entry.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Tuple

from calculate import Rect, LAYOUTS

RGB = Tuple[int, int, int]

PINK_400 = (244, 114, 182)
PURPLE_600 = (147, 51, 234)
YELLOW_400 = (250, 204, 21)
ORANGE_500 = (249, 115, 22)
BLUE_400 = (96, 165, 250)
CYAN_500 = (6, 182, 212)
GREEN_400 = (74, 222, 128)
TEAL_500 = (20, 184, 166)
PURPLE_500 = (168, 85, 247)
RED_500 = (239, 68, 68)
WHITE = (255, 255, 255)


class Shape(str, Enum):
    CIRCLE = "circle"
    BORDER = "border"
    STAR = "star"
    HEART = "heart"
    DIAMOND = "diamond"


class Anchor(str, Enum):
    TOP_LEFT = "top_left"
    TOP_RIGHT = "top_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_RIGHT = "bottom_right"
    CENTER = "center"
    FILL = "fill"


@dataclass(frozen=True)
class Decoration:
    shape: Shape
    anchor: Anchor
    size: int = 0
    inset: int = 0
    colors: Tuple[RGB, ...] = (WHITE,)
    opacity: float = 0.9
    stroke: int = 0
    radius: int = 0
    rotation: float = 0.0

    def place(self, width: int, height: int) -> Rect:
        """Resolve the decoration box inside a panel of the given size."""
        if self.anchor == Anchor.FILL:
            return Rect(self.inset, self.inset, width - 2 * self.inset, height - 2 * self.inset)
        s = self.size
        if self.anchor == Anchor.CENTER:
            return Rect((width - s) // 2, (height - s) // 2, s, s)
        left = self.anchor in (Anchor.TOP_LEFT, Anchor.BOTTOM_LEFT)
        top = self.anchor in (Anchor.TOP_LEFT, Anchor.TOP_RIGHT)
        x = self.inset if left else width - self.inset - s
        y = self.inset if top else height - self.inset - s
        return Rect(x, y, s, s)


@dataclass(frozen=True)
class Frame:
    id: str
    name: str
    padding: int = 12
    border_width: int = 2
    decorations: Dict[str, Tuple[Decoration, ...]] = field(default_factory=dict)

    @property
    def is_overlay(self) -> bool:
        return bool(self.decorations)

    def decorations_for(self, layout_id: str) -> Tuple[Decoration, ...]:
        return self.decorations.get(layout_id, ())


def _stars(inset: int, size: int) -> Tuple[Decoration, ...]:
    corners = (Anchor.TOP_LEFT, Anchor.TOP_RIGHT, Anchor.BOTTOM_LEFT, Anchor.BOTTOM_RIGHT)
    return tuple(Decoration(Shape.STAR, a, size=size, inset=inset, colors=(YELLOW_400,)) for a in corners)


# overlay number -> layout group -> decorations
# groups: "single", "strip", and "compact" (grid and collage)
_OVERLAY_TABLE: Dict[int, Dict[str, Tuple[Decoration, ...]]] = {
    1: {
        "single": (Decoration(Shape.CIRCLE, Anchor.TOP_RIGHT, 80, 16, (PINK_400, PURPLE_600)),),
        "strip": (Decoration(Shape.CIRCLE, Anchor.TOP_RIGHT, 48, 8, (PINK_400, PURPLE_600)),),
        "compact": (Decoration(Shape.CIRCLE, Anchor.TOP_RIGHT, 56, 8, (PINK_400, PURPLE_600)),),
    },
    2: {
        "single": (Decoration(Shape.CIRCLE, Anchor.TOP_LEFT, 64, 16, (YELLOW_400, ORANGE_500)),),
        "strip": (Decoration(Shape.CIRCLE, Anchor.TOP_LEFT, 40, 8, (YELLOW_400, ORANGE_500)),),
        "compact": (Decoration(Shape.CIRCLE, Anchor.TOP_LEFT, 48, 8, (YELLOW_400, ORANGE_500)),),
    },
    3: {
        "single": (Decoration(Shape.CIRCLE, Anchor.BOTTOM_RIGHT, 96, 16, (BLUE_400, CYAN_500)),),
        "strip": (Decoration(Shape.CIRCLE, Anchor.BOTTOM_RIGHT, 56, 8, (BLUE_400, CYAN_500)),),
        "compact": (Decoration(Shape.CIRCLE, Anchor.BOTTOM_RIGHT, 64, 8, (BLUE_400, CYAN_500)),),
    },
    4: {
        "single": (Decoration(Shape.CIRCLE, Anchor.CENTER, 128, 0, (GREEN_400, TEAL_500)),),
        "strip": (Decoration(Shape.CIRCLE, Anchor.CENTER, 64, 0, (GREEN_400, TEAL_500)),),
        "compact": (Decoration(Shape.CIRCLE, Anchor.CENTER, 80, 0, (GREEN_400, TEAL_500)),),
    },
    5: {
        "single": (Decoration(Shape.BORDER, Anchor.FILL, inset=16, opacity=0.6, stroke=4, radius=16),),
        "strip": (Decoration(Shape.BORDER, Anchor.FILL, inset=8, opacity=0.6, stroke=3, radius=8),),
        "compact": (Decoration(Shape.BORDER, Anchor.FILL, inset=8, opacity=0.6, stroke=3, radius=8),),
    },
    6: {
        "single": _stars(8, 32),
        "strip": _stars(4, 24),
        "compact": _stars(4, 28),
    },
    7: {
        "single": (Decoration(Shape.HEART, Anchor.TOP_RIGHT, 64, 8, (RED_500,)),),
        "strip": (Decoration(Shape.HEART, Anchor.TOP_RIGHT, 48, 4, (RED_500,)),),
        "compact": (Decoration(Shape.HEART, Anchor.TOP_RIGHT, 56, 4, (RED_500,)),),
    },
    8: {
        "single": (Decoration(Shape.DIAMOND, Anchor.FILL, inset=8, colors=(PURPLE_500,), opacity=0.8,
                              stroke=4, rotation=45.0),),
        "strip": (Decoration(Shape.DIAMOND, Anchor.FILL, inset=4, colors=(PURPLE_500,), opacity=0.8,
                             stroke=3, rotation=45.0),),
        "compact": (Decoration(Shape.DIAMOND, Anchor.FILL, inset=4, colors=(PURPLE_500,), opacity=0.8,
                               stroke=3, rotation=45.0),),
    },
}

_LAYOUT_GROUP = {"single": "single", "strip": "strip", "grid": "compact", "collage": "compact"}


def _overlay(number: int, name: str) -> Frame:
    table = _OVERLAY_TABLE[number]
    decorations = {layout_id: table[_LAYOUT_GROUP[layout_id]] for layout_id in LAYOUTS}
    return Frame(f"overlay{number}", name, decorations=decorations)


NO_FRAME = "none"

FRAMES: Dict[str, Frame] = {f.id: f for f in (
    Frame("none", "None"),
    _overlay(1, "Pink Corner Circle"),
    _overlay(2, "Yellow Corner Circle"),
    _overlay(3, "Blue Bottom Circle"),
    _overlay(4, "Green Center Circle"),
    _overlay(5, "White Border Frame"),
    _overlay(6, "Corner Stars"),
    _overlay(7, "Heart Corner"),
    _overlay(8, "Diamond Frame"),
    Frame("strip", "Photo Strip"),
    Frame("polaroid", "Polaroid", padding=16),
    Frame("vintage", "Vintage", border_width=4),
    Frame("modern", "Modern", padding=8),
)}


def get_frame(frame_id: str) -> Frame:
    """Unknown frame ids fall back to the plain panel."""
    return FRAMES.get(frame_id, FRAMES[NO_FRAME])
