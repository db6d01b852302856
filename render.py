"""Flatten a composition description into the exported image."""

import io
import logging
import math
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont, ImageOps

from calculate import Rect
from compose import CompositionDescription, PlacedDecoration
from config import APP_TAG, EXPORT_FORMAT, EXPORT_SCALE, FONT_PATH, PHOTO_DIR
from frames import Shape

logger = logging.getLogger("photobooth.render")

EXPORT_JPEG_QUALITY = 95


class RenderTargetUnavailable(Exception):
    pass


class ExportFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    PDF = "pdf"

    @classmethod
    def _missing_(cls, value):
        # "jpg" and upper-case ids are accepted as well
        if isinstance(value, str):
            value = value.strip().lower()
            if value == "jpg":
                return cls.JPEG
            for member in cls:
                if member.value == value:
                    return member
        return None


# format -> (Pillow format, extension, mime type)
FORMAT_INFO = {
    ExportFormat.PNG: ("PNG", "png", "image/png"),
    ExportFormat.JPEG: ("JPEG", "jpg", "image/jpeg"),
    ExportFormat.PDF: ("PDF", "pdf", "application/pdf"),
}


@dataclass(frozen=True)
class ExportResult:
    data: bytes
    filename: str
    mime_type: str
    format: ExportFormat


def _gradient(size: Tuple[int, int], start: Tuple[int, int, int], end: Tuple[int, int, int]) -> Image.Image:
    """Top-left to bottom-right linear gradient."""
    w, h = size
    xs = np.linspace(0.0, 1.0, w, dtype=np.float32)[None, :]
    ys = np.linspace(0.0, 1.0, h, dtype=np.float32)[:, None]
    t = ((xs + ys) / 2.0)[..., None]
    a = np.array(start, dtype=np.float32)
    b = np.array(end, dtype=np.float32)
    arr = a * (1.0 - t) + b * t
    return Image.fromarray(np.round(arr).astype(np.uint8))


def _star_points(box: Rect, points: int = 5) -> List[Tuple[float, float]]:
    cx, cy = box.x + box.w / 2, box.y + box.h / 2
    outer = min(box.w, box.h) / 2
    inner = outer * 0.4
    out = []
    for i in range(points * 2):
        r = outer if i % 2 == 0 else inner
        a = -math.pi / 2 + i * math.pi / points
        out.append((cx + r * math.cos(a), cy + r * math.sin(a)))
    return out


def _heart_points(box: Rect, steps: int = 96) -> List[Tuple[float, float]]:
    cx, cy = box.x + box.w / 2, box.y + box.h / 2
    s = min(box.w, box.h) / 34.0
    out = []
    for i in range(steps):
        t = 2 * math.pi * i / steps
        x = 16 * math.sin(t) ** 3
        y = 13 * math.cos(t) - 5 * math.cos(2 * t) - 2 * math.cos(3 * t) - math.cos(4 * t)
        out.append((cx + x * s, cy - y * s + s))
    return out


def _rotated_rect_points(box: Rect, degrees: float) -> List[Tuple[float, float]]:
    cx, cy = box.x + box.w / 2, box.y + box.h / 2
    rad = math.radians(degrees)
    c, s = math.cos(rad), math.sin(rad)
    corners = [(-box.w / 2, -box.h / 2), (box.w / 2, -box.h / 2), (box.w / 2, box.h / 2), (-box.w / 2, box.h / 2)]
    return [(cx + x * c - y * s, cy + x * s + y * c) for x, y in corners]


class Renderer:
    def __init__(self, scale: int = EXPORT_SCALE, font_path: str = FONT_PATH,
                 max_pixels: Optional[int] = None):
        if scale < 2:
            raise ValueError("export scale must be at least 2")
        self.scale = scale
        self.font_path = font_path
        self.max_pixels = max_pixels or Image.MAX_IMAGE_PIXELS or 89_478_485
        self._fonts: Dict[int, ImageFont.ImageFont] = {}

    def _font(self, px: int):
        font = self._fonts.get(px)
        if font is None:
            if self.font_path and Path(self.font_path).exists():
                font = ImageFont.truetype(self.font_path, px)
            else:
                font = ImageFont.load_default(size=px)
            self._fonts[px] = font
        return font

    def _surface(self, size: Tuple[int, int], color) -> Image.Image:
        w, h = size
        if w <= 0 or h <= 0 or w * h > self.max_pixels:
            raise RenderTargetUnavailable(f"cannot allocate a {w}x{h} drawing surface")
        try:
            return Image.new("RGBA", (w, h), color)
        except (MemoryError, ValueError) as e:
            raise RenderTargetUnavailable(str(e)) from e

    def render(self, description: CompositionDescription) -> Image.Image:
        k = self.scale
        w, h = description.size
        canvas = self._surface((w * k, h * k), description.background + (255,))
        draw = ImageDraw.Draw(canvas)

        if description.border_width:
            draw.rectangle((0, 0, w * k - 1, h * k - 1), outline=description.border_color,
                           width=description.border_width * k)

        radius = description.slot_radius * k
        for slot in description.slots:
            r = slot.rect.scale(k)
            with Image.open(io.BytesIO(slot.photo.data)) as src:
                photo = src.convert("RGB")
            # stored in sensor orientation; this is the only mirror
            photo = ImageOps.fit(ImageOps.mirror(photo), (r.w, r.h), Image.LANCZOS)
            mask = Image.new("L", (r.w, r.h), 0)
            ImageDraw.Draw(mask).rounded_rectangle((0, 0, r.w - 1, r.h - 1), radius=radius, fill=255)
            canvas.paste(photo, (r.x, r.y), mask)

        for placed in description.decorations:
            canvas.alpha_composite(self._decoration_layer(canvas.size, placed))

        self._draw_caption(canvas, description)
        return canvas.convert("RGB")

    def _decoration_layer(self, size: Tuple[int, int], placed: PlacedDecoration) -> Image.Image:
        k = self.scale
        deco = placed.decoration
        box = placed.rect.scale(k)
        layer = Image.new("RGBA", size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        color = deco.colors[0]
        stroke = max(1, deco.stroke * k)

        if deco.shape == Shape.CIRCLE:
            start = deco.colors[0]
            end = deco.colors[-1]
            fill = _gradient((box.w, box.h), start, end).convert("RGBA")
            mask = Image.new("L", (box.w, box.h), 0)
            ImageDraw.Draw(mask).ellipse((0, 0, box.w - 1, box.h - 1), fill=255)
            layer.paste(fill, (box.x, box.y), mask)
        elif deco.shape == Shape.BORDER:
            draw.rounded_rectangle((box.x, box.y, box.right - 1, box.bottom - 1),
                                   radius=deco.radius * k, outline=color, width=stroke)
        elif deco.shape == Shape.STAR:
            draw.polygon(_star_points(box), fill=color)
        elif deco.shape == Shape.HEART:
            draw.polygon(_heart_points(box), fill=color)
        elif deco.shape == Shape.DIAMOND:
            draw.polygon(_rotated_rect_points(box, deco.rotation), outline=color, width=stroke)

        alpha = layer.getchannel("A").point(lambda v: int(round(v * deco.opacity)))
        layer.putalpha(alpha)
        return layer

    def _draw_caption(self, canvas: Image.Image, description: CompositionDescription):
        k = self.scale
        caption = description.caption
        r = caption.rect.scale(k)
        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        cx = r.x + r.w / 2
        y = r.y

        if caption.text:
            font = self._font(caption.font_size * k)
            draw.text((cx, y), caption.text, font=font, fill=caption.color + (255,), anchor="ma")
        y += (caption.font_size + 6) * k

        if caption.date_text:
            font = self._font(caption.date_font_size * k)
            alpha = int(round(255 * caption.date_opacity))
            draw.text((cx, y), caption.date_text, font=font, fill=caption.color + (alpha,), anchor="ma")

        canvas.alpha_composite(layer)


def suggested_filename(layout_id: str, fmt: ExportFormat, captured_at: Optional[datetime] = None) -> str:
    when = captured_at or datetime.now()
    ext = FORMAT_INFO[ExportFormat(fmt)][1]
    return f"{APP_TAG}-{layout_id}-{int(when.timestamp() * 1000)}.{ext}"


def export(description: CompositionDescription, fmt=EXPORT_FORMAT, renderer: Optional[Renderer] = None,
           captured_at: Optional[datetime] = None) -> ExportResult:
    """Render and encode; the format only changes the final encoding."""
    fmt = ExportFormat(fmt)
    renderer = renderer or Renderer()
    img = renderer.render(description)

    pil_format, _, mime = FORMAT_INFO[fmt]
    buf = io.BytesIO()
    if fmt == ExportFormat.JPEG:
        img.save(buf, format=pil_format, quality=EXPORT_JPEG_QUALITY)
    elif fmt == ExportFormat.PDF:
        img.save(buf, format=pil_format, resolution=72.0 * renderer.scale)
    else:
        img.save(buf, format=pil_format)

    result = ExportResult(buf.getvalue(), suggested_filename(description.layout_id, fmt, captured_at), mime, fmt)
    logger.info("Exported %s (%d bytes)", result.filename, len(result.data))
    return result


def save(result: ExportResult, directory: Path = PHOTO_DIR) -> Path:
    """Write the artifact atomically: either the whole file appears or nothing does."""
    directory = Path(directory)
    out_path = directory / result.filename
    tmp_name = None
    try:
        directory.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=directory, prefix=".", suffix=".part", delete=False) as tmp:
            tmp_name = tmp.name
            tmp.write(result.data)
        os.replace(tmp_name, out_path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise RenderTargetUnavailable(f"cannot write {out_path}: {e}") from e
    logger.info("Saved %s", out_path)
    return out_path
