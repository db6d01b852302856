"""
Composition model

compose() turns a photo set and the user's customization into a plain
description of the composite: where each photo goes, which decorations sit on
top, and what the caption says. The live preview and the final export both
draw from the same description, so the layout math lives only here.
"""

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Tuple, Union

from PIL import ImageColor

from calculate import Rect, get_layout
from config import (
    DEFAULT_COLOR,
    DEFAULT_FILTER,
    DEFAULT_FRAME,
    DEFAULT_LAYOUT,
    DEFAULT_WATERMARK,
    FILTER_WORKERS,
)
from filters import DEFAULT_ENGINE, FilterEngine
from frames import Decoration, get_frame
from session import Photo

logger = logging.getLogger("photobooth.compose")

RGB = Tuple[int, int, int]

LIGHT_TEXT: RGB = (255, 255, 255)
DARK_TEXT: RGB = (55, 65, 81)  # gray-700

PHOTO_TOP_MARGIN = 16
CAPTION_GAP = 8
CAPTION_BOTTOM = 16
DATE_OPACITY = 0.8

# (title px, date px) per layout
CAPTION_FONTS = {"single": (16, 14), "strip": (14, 14), "grid": (14, 14), "collage": (14, 14)}
SLOT_RADIUS = {"single": 16, "strip": 12, "grid": 12, "collage": 8}


def parse_color(value: Union[str, Sequence[int]]) -> RGB:
    """Accept '#RRGGBB', colour names or an RGB triple."""
    if isinstance(value, str):
        return ImageColor.getrgb(value)[:3]
    r, g, b = (int(c) for c in tuple(value)[:3])
    for c in (r, g, b):
        if not 0 <= c <= 255:
            raise ValueError(f"colour component out of range: {value!r}")
    return r, g, b


def brightness(color: RGB) -> float:
    r, g, b = color
    return 0.299 * r + 0.587 * g + 0.114 * b


def is_dark(color: RGB) -> bool:
    return brightness(color) < 128


def caption_color(frame_color: RGB) -> RGB:
    return LIGHT_TEXT if is_dark(frame_color) else DARK_TEXT


def shade(color: RGB, factor: float) -> RGB:
    return tuple(max(0, min(255, int(round(c * factor)))) for c in color)


def format_timestamp(dt: datetime) -> str:
    """'Oct 18, 2026, 01:02:03 PM'"""
    return f"{dt:%b} {dt.day}, {dt:%Y, %I:%M:%S %p}"


def format_date(text: str) -> str:
    """Format ISO timestamps for display; any other text is shown as given."""
    text = (text or "").strip()
    if not text:
        return ""
    try:
        return format_timestamp(datetime.fromisoformat(text))
    except ValueError:
        return text


@dataclass(frozen=True)
class Customization:
    layout_id: str = DEFAULT_LAYOUT
    filter_id: str = DEFAULT_FILTER
    frame_id: str = DEFAULT_FRAME
    frame_color: RGB = parse_color(DEFAULT_COLOR)
    watermark_text: str = DEFAULT_WATERMARK
    show_date: bool = True
    date_text: str = ""

    def __post_init__(self):
        object.__setattr__(self, "frame_color", parse_color(self.frame_color))


@dataclass(frozen=True)
class Slot:
    index: int
    rect: Rect
    photo: Photo
    filter_id: str


@dataclass(frozen=True)
class PlacedDecoration:
    decoration: Decoration
    rect: Rect


@dataclass(frozen=True)
class Caption:
    text: str
    date_text: Optional[str]
    color: RGB
    rect: Rect
    font_size: int
    date_font_size: int
    date_opacity: float = DATE_OPACITY


@dataclass(frozen=True)
class CompositionDescription:
    layout_id: str
    frame_id: str
    filter_id: str
    size: Tuple[int, int]
    background: RGB
    border_width: int
    border_color: RGB
    slot_radius: int
    slots: Tuple[Slot, ...]
    empty_slots: Tuple[Rect, ...]
    decorations: Tuple[PlacedDecoration, ...]
    caption: Caption


def filter_photos(photos: Sequence[Photo], filter_id: str, engine: Optional[FilterEngine] = None,
                  workers: int = FILTER_WORKERS) -> Tuple[Photo, ...]:
    """Filter every photo; the result keeps the input order."""
    engine = engine or DEFAULT_ENGINE

    def run(photo: Photo) -> Photo:
        return Photo(engine.apply(photo.data, filter_id), photo.format, photo.index)

    if workers <= 1 or len(photos) <= 1:
        return tuple(run(p) for p in photos)
    with ThreadPoolExecutor(max_workers=min(workers, len(photos))) as pool:
        return tuple(pool.map(run, photos))


def compose(photos: Sequence[Photo], customization: Customization,
            engine: Optional[FilterEngine] = None, workers: int = FILTER_WORKERS) -> CompositionDescription:
    layout = get_layout(customization.layout_id)
    frame = get_frame(customization.frame_id)

    selected = list(photos)[:layout.slot_count]
    filtered = filter_photos(selected, customization.filter_id, engine, workers)

    pad = frame.padding + frame.border_width
    area_w, area_h = layout.size
    area_x, area_y = pad, pad + PHOTO_TOP_MARGIN

    rects = [r.offset(area_x, area_y) for r in layout.arrangement]
    slots = tuple(Slot(i, rects[i], photo, customization.filter_id) for i, photo in enumerate(filtered))
    empty = tuple(rects[len(slots):])

    title_px, date_px = CAPTION_FONTS.get(layout.id, (14, 14))
    date_text = format_date(customization.date_text) if customization.show_date else ""
    caption_h = title_px + 6 + (date_px + 4 if date_text else 0) + CAPTION_BOTTOM
    caption_y = area_y + area_h + CAPTION_GAP
    width = area_w + 2 * pad
    height = caption_y + caption_h + pad

    caption = Caption(
        text=customization.watermark_text,
        date_text=date_text or None,
        color=caption_color(customization.frame_color),
        rect=Rect(area_x, caption_y, area_w, caption_h),
        font_size=title_px,
        date_font_size=date_px,
    )
    decorations = tuple(PlacedDecoration(d, d.place(width, height)) for d in frame.decorations_for(layout.id))

    logger.debug("Composed %s: %d/%d slots, frame=%s, filter=%s",
                 layout.id, len(slots), layout.slot_count, frame.id, customization.filter_id)
    return CompositionDescription(
        layout_id=layout.id,
        frame_id=frame.id,
        filter_id=customization.filter_id,
        size=(width, height),
        background=customization.frame_color,
        border_width=frame.border_width,
        border_color=shade(customization.frame_color, 0.85),
        slot_radius=SLOT_RADIUS.get(layout.id, 12),
        slots=slots,
        empty_slots=empty,
        decorations=decorations,
        caption=caption,
    )


class EditSession:
    """Preview-screen state: a confirmed photo set plus editable customization."""

    def __init__(self, photos: Sequence[Photo], customization: Optional[Customization] = None,
                 engine: Optional[FilterEngine] = None, now: Optional[datetime] = None):
        self.photos: Tuple[Photo, ...] = tuple(photos)
        self.engine = engine
        customization = customization or Customization()
        if customization.show_date and not customization.date_text:
            customization = dataclasses.replace(customization,
                                                date_text=format_timestamp(now or datetime.now()))
        self.customization = customization
        self._description: Optional[CompositionDescription] = None

    @property
    def description(self) -> CompositionDescription:
        if self._description is None:
            self._description = compose(self.photos, self.customization, self.engine)
        return self._description

    def update(self, **changes) -> CompositionDescription:
        self.customization = dataclasses.replace(self.customization, **changes)
        self._description = None
        return self.description

    def confirm(self, now: Optional[datetime] = None) -> Tuple[Tuple[Photo, ...], Customization]:
        """Freeze the customization; the date line is stamped at confirmation."""
        date_text = format_timestamp(now or datetime.now()) if self.customization.show_date else ""
        self.customization = dataclasses.replace(self.customization, date_text=date_text)
        self._description = None
        return self.photos, self.customization
