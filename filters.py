"""
Photo filters

The catalogue mirrors the looks offered on the capture and preview screens.
Each filter is a short chain of pixel steps; the colour steps use the same
matrices as CSS filter effects so a look matches what the live preview shows.
"""

import io
import hashlib
import logging
import math
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
from PIL import Image, ImageChops, ImageFilter

from config import JPEG_QUALITY

logger = logging.getLogger("photobooth.filters")

STEP_KINDS = ("grayscale", "sepia", "brightness", "contrast", "saturate", "hue_rotate", "glow")

Step = Tuple[str, float]


class FilterNotFound(KeyError):
    pass


@dataclass(frozen=True)
class Filter:
    id: str
    name: str
    operation: Tuple[Step, ...] = ()

    @property
    def is_identity(self) -> bool:
        return not self.operation


def _catalog(*filters: Filter) -> Dict[str, Filter]:
    for f in filters:
        for kind, _ in f.operation:
            if kind not in STEP_KINDS:
                raise ValueError(f"filter {f.id!r} uses unknown step {kind!r}")
    return {f.id: f for f in filters}


FILTERS: Dict[str, Filter] = _catalog(
    Filter("normal", "Normal"),
    Filter("grayscale", "Grayscale", (("grayscale", 1.0),)),
    Filter("blackwhite", "B&W", (("grayscale", 1.0),)),
    Filter("sepia", "Sepia", (("sepia", 1.0),)),
    Filter("vintage", "Vintage", (("sepia", 0.8), ("hue_rotate", 30.0))),
    Filter("warm", "Warm", (("sepia", 0.5), ("brightness", 1.1), ("saturate", 1.2))),
    Filter("cool", "Cool", (("hue_rotate", 180.0), ("saturate", 1.2))),
    Filter("dark", "Dark", (("brightness", 0.6), ("contrast", 1.2))),
    Filter("light", "Light", (("brightness", 1.4), ("contrast", 0.8), ("saturate", 1.2))),
    Filter("glow", "Glow", (("brightness", 1.3), ("saturate", 1.5), ("glow", 0.8))),
)

# Capture screen order (the preview screen offers the full catalogue)
CAPTURE_FILTERS = ["normal", "vintage", "blackwhite", "warm", "cool", "glow"]


def get_filter(filter_id: str) -> Filter:
    try:
        return FILTERS[filter_id]
    except KeyError:
        raise FilterNotFound(filter_id) from None


def _grayscale_matrix(a: float) -> np.ndarray:
    k = 1.0 - a
    return np.array([
        [0.2126 + 0.7874 * k, 0.7152 - 0.7152 * k, 0.0722 - 0.0722 * k],
        [0.2126 - 0.2126 * k, 0.7152 + 0.2848 * k, 0.0722 - 0.0722 * k],
        [0.2126 - 0.2126 * k, 0.7152 - 0.7152 * k, 0.0722 + 0.9278 * k],
    ])


def _sepia_matrix(a: float) -> np.ndarray:
    k = 1.0 - a
    return np.array([
        [0.393 + 0.607 * k, 0.769 - 0.769 * k, 0.189 - 0.189 * k],
        [0.349 - 0.349 * k, 0.686 + 0.314 * k, 0.168 - 0.168 * k],
        [0.272 - 0.272 * k, 0.534 - 0.534 * k, 0.131 + 0.869 * k],
    ])


def _saturate_matrix(s: float) -> np.ndarray:
    return np.array([
        [0.213 + 0.787 * s, 0.715 - 0.715 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 + 0.285 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 - 0.715 * s, 0.072 + 0.928 * s],
    ])


def _hue_rotate_matrix(degrees: float) -> np.ndarray:
    rad = math.radians(degrees)
    c, s = math.cos(rad), math.sin(rad)
    return np.array([
        [0.213 + c * 0.787 - s * 0.213, 0.715 - c * 0.715 - s * 0.715, 0.072 - c * 0.072 + s * 0.928],
        [0.213 - c * 0.213 + s * 0.143, 0.715 + c * 0.285 + s * 0.140, 0.072 - c * 0.072 - s * 0.283],
        [0.213 - c * 0.213 - s * 0.787, 0.715 - c * 0.715 + s * 0.715, 0.072 + c * 0.928 + s * 0.072],
    ])


_MATRICES = {
    "grayscale": _grayscale_matrix,
    "sepia": _sepia_matrix,
    "saturate": _saturate_matrix,
    "hue_rotate": _hue_rotate_matrix,
}


def _glow(img: Image.Image, strength: float) -> Image.Image:
    """Screen a blurred copy over the photo so highlights bleed outwards."""
    radius = max(2, min(img.size) // 48)
    halo = ImageChops.screen(img, img.filter(ImageFilter.GaussianBlur(radius=radius)))
    return Image.blend(img, halo, max(0.0, min(1.0, strength)))


def apply_steps(img: Image.Image, operation: Tuple[Step, ...]) -> Image.Image:
    """Run a filter chain over an RGB image and return a new RGB image."""
    arr = np.asarray(img.convert("RGB"), dtype=np.float32) / 255.0
    for kind, amount in operation:
        if kind in _MATRICES:
            m = _MATRICES[kind](amount).astype(np.float32)
            arr = arr @ m.T
        elif kind == "brightness":
            arr = arr * amount
        elif kind == "contrast":
            arr = (arr - 0.5) * amount + 0.5
        elif kind == "glow":
            out = Image.fromarray(np.round(np.clip(arr, 0.0, 1.0) * 255.0).astype(np.uint8))
            arr = np.asarray(_glow(out, amount), dtype=np.float32) / 255.0
        # each CSS filter function clamps its output
        arr = np.clip(arr, 0.0, 1.0)
    return Image.fromarray(np.round(arr * 255.0).astype(np.uint8))


class FilterEngine:
    """Apply catalogue filters to encoded photos.

    Unknown filter ids behave as the identity filter. The identity filter
    returns the input bytes as-is, every other filter decodes, transforms and
    re-encodes in the input's format at a fixed quality.
    """

    def __init__(self, catalog: Optional[Dict[str, Filter]] = None, quality: int = JPEG_QUALITY,
                 cache_size: int = 64):
        self.catalog = FILTERS if catalog is None else catalog
        self.quality = quality
        self.cache_size = cache_size
        self._cache: "OrderedDict[Tuple[bytes, str], bytes]" = OrderedDict()
        self._lock = threading.Lock()

    def lookup(self, filter_id: str) -> Filter:
        try:
            return self.catalog[filter_id]
        except KeyError:
            raise FilterNotFound(filter_id) from None

    def apply(self, data: bytes, filter_id: str) -> bytes:
        try:
            filt = self.lookup(filter_id)
        except FilterNotFound:
            logger.debug("Filter %r not found, using identity", filter_id)
            return data
        if filt.is_identity:
            return data

        key = (hashlib.sha1(data).digest(), filt.id)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                return cached

        out = self._render(data, filt)

        with self._lock:
            self._cache[key] = out
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return out

    def _render(self, data: bytes, filt: Filter) -> bytes:
        with Image.open(io.BytesIO(data)) as src:
            fmt = src.format or "JPEG"
            src.load()
            alpha = src.getchannel("A") if src.mode in ("RGBA", "LA") else None
            img = apply_steps(src, filt.operation)
        if alpha is not None and fmt != "JPEG":
            img.putalpha(alpha)
        return encode_image(img, fmt, self.quality)


def encode_image(img: Image.Image, fmt: str, quality: int = JPEG_QUALITY) -> bytes:
    buf = io.BytesIO()
    if fmt in ("JPEG", "WEBP"):
        img.convert("RGB").save(buf, format=fmt, quality=quality)
    else:
        img.save(buf, format=fmt)
    return buf.getvalue()


DEFAULT_ENGINE = FilterEngine()


def apply_filter(data: bytes, filter_id: str) -> bytes:
    return DEFAULT_ENGINE.apply(data, filter_id)
