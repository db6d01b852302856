import logging
import os
from pathlib import Path

PHOTO_DIR = Path(os.environ.get("PHOTOBOOTH_PHOTOS_DIR", str(Path.home() / "photobooth/data/photos")))
FONT_PATH = os.environ.get("PHOTOBOOTH_FONT_PATH", "")
LOG_LEVEL = os.environ.get("PHOTOBOOTH_LOG_LEVEL", "INFO").upper()

APP_TAG = "Snapify"

# "auto" tries Picamera2 first and falls back to OpenCV once
CAMERA_BACKEND = os.environ.get("PHOTOBOOTH_CAMERA", "auto")
CAMERA_INDEX = int(os.environ.get("PHOTOBOOTH_CAMERA_INDEX", "0"))
CAMERA_VIDEO_W, CAMERA_VIDEO_H = 1280, 720
CAMERA_READY_TIMEOUT = float(os.environ.get("PHOTOBOOTH_CAMERA_READY_TIMEOUT", "3.0"))
# consecutive empty or failed preview reads before the feed counts as lost
CAMERA_MAX_FAILED_READS = int(os.environ.get("PHOTOBOOTH_CAMERA_MAX_FAILED_READS", "30"))

COUNTDOWN_CHOICES = (3, 5, 10)
COUNTDOWN_SECONDS = int(os.environ.get("PHOTOBOOTH_COUNTDOWN_SECONDS", "3"))

JPEG_QUALITY = int(os.environ.get("PHOTOBOOTH_JPEG_QUALITY", "90"))
FILTER_WORKERS = int(os.environ.get("PHOTOBOOTH_FILTER_WORKERS", "4"))

EXPORT_SCALE = max(2, int(os.environ.get("PHOTOBOOTH_EXPORT_SCALE", "2")))
EXPORT_FORMAT = os.environ.get("PHOTOBOOTH_EXPORT_FORMAT", "png")

DEFAULT_LAYOUT = "strip"
DEFAULT_FILTER = "normal"
DEFAULT_FRAME = "strip"
DEFAULT_COLOR = "#FFFFFF"
DEFAULT_WATERMARK = "Snapify"

# Frame color swatches offered by the preview screen
COLORS = [
    "#E63946", "#FFB703", "#2B2D42", "#FF6B6B",
    "#4ECDC4", "#45B7D1", "#96CEB4", "#FFEAA7",
    "#FFFFFF", "#000000", "#8B4513", "#FF69B4",
]


def configure_logging() -> None:
    """Attach a single stream handler to the photobooth logger."""
    logger = logging.getLogger("photobooth")
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
