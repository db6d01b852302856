import logging
import platform
from enum import Enum
from typing import Optional

from PIL import Image

from kivy.config import Config
# Don't force fullscreen on macOS during development
if platform.system() != 'Darwin':
    Config.set('graphics', 'fullscreen', 'auto')
Config.set('kivy', 'log_enable', '0')
Config.set('input', 'mouse', 'mouse,disable_multitouch')

from kivy.app import App
from kivy.clock import Clock
from kivy.core.window import Window
from kivy.graphics.texture import Texture
from kivy.uix.boxlayout import BoxLayout
from kivy.uix.floatlayout import FloatLayout
from kivy.uix.image import Image as KivyImage
from kivy.uix.label import Label
from kivy.uix.modalview import ModalView
from kivy.uix.textinput import TextInput
from kivy.uix.button import Button
from kivy.graphics import Color, RoundedRectangle
from kivy.animation import Animation

from calculate import LAYOUTS
from camera import mirror_frame, open_camera
from compose import Customization, EditSession
from config import (
    COLORS,
    COUNTDOWN_CHOICES,
    DEFAULT_FILTER,
    DEFAULT_LAYOUT,
    EXPORT_FORMAT,
    PHOTO_DIR,
    configure_logging,
)
from filters import CAPTURE_FILTERS, FILTERS
from frames import FRAMES
from render import ExportFormat, Renderer, RenderTargetUnavailable, export, save
from session import CaptureSession, SessionSnapshot, SessionState

logger = logging.getLogger("photobooth.kiosk")

SCREEN_W, SCREEN_H = 1080, 1920
PREVIEW_FPS = 30

# Simple theme
PANEL_BG = (0, 0, 0, 0.35)
PANEL_BORDER = (1, 1, 1, 0.12)
RADIUS = 12

LAYOUT_IDS = list(LAYOUTS)
FRAME_IDS = list(FRAMES)
FILTER_IDS = list(FILTERS)
EXPORT_FORMATS = {ord('1'): ExportFormat.PNG, ord('2'): ExportFormat.JPEG, ord('3'): ExportFormat.PDF}


class Screen(str, Enum):
    CAPTURE = "capture"
    PREVIEW = "preview"
    DOWNLOAD = "download"


def pil_to_texture(img: Image.Image) -> Texture:
    img = img.convert("RGB")
    tex = Texture.create(size=img.size, colorfmt="rgb")
    tex.blit_buffer(img.tobytes(), colorfmt="rgb", bufferfmt="ubyte")
    tex.flip_vertical()
    return tex


class PreviewWidget(KivyImage):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.allow_stretch = True
        self.keep_ratio = True

    def show_frame(self, frame_rgb):
        h, w, _ = frame_rgb.shape
        if not self.texture or self.texture.size != (w, h):
            self.texture = Texture.create(size=(w, h), colorfmt="rgb")
            self.texture.flip_vertical()
        self.texture.blit_buffer(frame_rgb.tobytes(), colorfmt="rgb", bufferfmt="ubyte")
        self.canvas.ask_update()


class WatermarkModal(ModalView):
    def __init__(self, initial_text: str, on_save, **kwargs):
        super().__init__(**kwargs)
        self.size_hint = (0.6, 0.3)
        layout = BoxLayout(orientation="vertical", padding=16, spacing=8)
        layout.add_widget(Label(text="Watermark text", font_size=20))
        self.input = TextInput(text=initial_text or "", multiline=False, size_hint=(1, 0.4))
        layout.add_widget(self.input)
        btns = BoxLayout(orientation="horizontal", size_hint=(1, 0.3), spacing=8)
        btns.add_widget(Button(text="Cancel", on_press=lambda *_: self.dismiss()))
        btns.add_widget(Button(text="Save", on_press=lambda *_: (on_save(self.input.text.strip()), self.dismiss())))
        layout.add_widget(btns)
        self.add_widget(layout)


class PhotoboothRoot(FloatLayout):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        # Camera preview (capture screen)
        self.preview = PreviewWidget(size_hint=(1, 0.7), pos_hint={'center_x': 0.5, 'top': 0.92})
        self.add_widget(self.preview)

        # Composite preview (preview + download screens)
        self.composite = KivyImage(allow_stretch=True, keep_ratio=True, opacity=0,
                                   size_hint=(0.9, 0.75), pos_hint={'center_x': 0.5, 'top': 0.92})
        self.add_widget(self.composite)

        self.hud = Label(text="", font_size=18, color=(1, 1, 1, 1), size_hint=(None, None),
                         pos_hint={'x': 0.01, 'top': 0.99}, halign='left', valign='top')
        self.hud.bind(texture_size=self.hud.setter('size'))
        self.add_widget(self.hud)
        self._decorate_panel(self.hud)

        # Countdown number display
        self.countdown = Label(text="3", font_size=280, bold=True, color=(1, 1, 1, 1),
                               pos_hint={'center_x': 0.5, 'center_y': 0.55})
        self.countdown.opacity = 0
        self.add_widget(self.countdown)

        self.title = Label(text="", font_size=40, bold=True, color=(1, 1, 1, 1),
                           pos_hint={'center_x': 0.5, 'center_y': 0.12})
        self.add_widget(self.title)
        self.subtitle = Label(text="", font_size=20, color=(1, 1, 1, 1),
                              pos_hint={'center_x': 0.5, 'center_y': 0.07})
        self.add_widget(self.subtitle)
        self.footer = Label(text="", font_size=18, color=(1, 1, 1, 0.8),
                            pos_hint={'center_x': 0.5, 'y': 0.01})
        self.add_widget(self.footer)

    def show_countdown(self, n: int):
        self.countdown.text = str(n)
        self.countdown.opacity = 1
        # pop animation each tick
        Animation.cancel_all(self.countdown)
        self.countdown.font_size = 180
        Animation(font_size=140, d=0.25, t='out_quad').start(self.countdown)

    def hide_countdown(self):
        self.countdown.opacity = 0

    def set_overlay(self, title: str = "", subtitle: str = "", footer: str = ""):
        self.title.text = title
        self.subtitle.text = subtitle
        self.footer.text = footer

    def show_capture(self):
        self.preview.opacity = 1
        self.composite.opacity = 0

    def show_composite(self, img: Image.Image):
        self.composite.texture = pil_to_texture(img)
        self.composite.opacity = 1
        self.preview.opacity = 0
        self.hide_countdown()

    def _decorate_panel(self, widget, pad=(10, 8), radius=RADIUS, bg_rgba=PANEL_BG, border_rgba=PANEL_BORDER):
        # Draw rounded translucent panel behind widget and keep it synced
        with widget.canvas.before:
            Color(*bg_rgba)
            widget._bg = RoundedRectangle(radius=[radius])
            Color(*border_rgba)
            widget._border = RoundedRectangle(radius=[radius])

        def _sync(*_):
            pos = (widget.x - pad[0], widget.y - pad[1])
            size = (widget.width + pad[0] * 2, widget.height + pad[1] * 2)
            widget._bg.pos = widget._border.pos = pos
            widget._bg.size = widget._border.size = size

        widget.bind(pos=_sync, size=_sync)


class PhotoboothApp(App):
    def build(self):
        configure_logging()
        if platform.system() == 'Darwin':
            Window.size = (SCREEN_W, SCREEN_H)
        else:
            Window.fullscreen = True

        self.screen = Screen.CAPTURE
        self.layout_id = DEFAULT_LAYOUT
        self.filter_id = DEFAULT_FILTER
        self.session: Optional[CaptureSession] = None
        self.edit: Optional[EditSession] = None
        self.modal: Optional[WatermarkModal] = None
        self.export_format = ExportFormat(EXPORT_FORMAT)
        self.preview_renderer = Renderer(scale=2)
        self.renderer = Renderer()

        self.root_widget = PhotoboothRoot()
        self._open_capture()

        Clock.schedule_interval(self._update_preview, 1 / PREVIEW_FPS)
        Window.bind(on_key_down=self._on_key)
        return self.root_widget

    # ---------- capture screen ----------
    def _open_capture(self):
        self._close_capture()
        self.screen = Screen.CAPTURE
        self.edit = None
        self.session = CaptureSession(Clock, camera_factory=open_camera,
                                      layout_id=self.layout_id, filter_id=self.filter_id)
        self.session.bind(self._on_session_change)
        self.root_widget.show_capture()
        self.session.start()

    def _close_capture(self):
        if self.session is not None:
            self.session.close()
            self.session = None

    def _update_preview(self, *_):
        if self.screen != Screen.CAPTURE or self.session is None:
            return
        frame = self.session.poll_frame()
        if frame is not None:
            self.root_widget.preview.show_frame(mirror_frame(frame))

    def _on_session_change(self, snap: SessionSnapshot):
        self.root_widget.hud.text = (
            f"Layout: {LAYOUTS[snap.layout_id].name} • Filter: {snap.filter_id} • "
            f"Captures left: {snap.remaining_count}"
        )
        if snap.state == SessionState.COUNTDOWN and snap.countdown_value:
            self.root_widget.show_countdown(snap.countdown_value)
        else:
            self.root_widget.hide_countdown()

        if snap.state == SessionState.CAMERA_ERROR:
            self.root_widget.set_overlay("Camera unavailable", snap.error.message, "Press Space to retry")
        elif snap.state == SessionState.STARTING:
            self.root_widget.set_overlay("Starting camera...")
        elif snap.can_proceed:
            self.root_widget.set_overlay("All photos taken!", "Backspace to retake the last photo • R to start over",
                                         "Press Enter to edit photos & customize")
        else:
            self.root_widget.set_overlay(
                f"{len(snap.photos)} / {LAYOUTS[snap.layout_id].slot_count}",
                "Left/Right layout • Up/Down filter • T countdown",
                "Press Space to take a photo",
            )

    def _capture_key(self, key: int):
        session = self.session
        if key == 32:
            if session.state == SessionState.CAMERA_ERROR:
                session.start()
            else:
                session.start_capture()
        elif key in (276, 275):
            step = 1 if key == 275 else -1
            self.layout_id = LAYOUT_IDS[(LAYOUT_IDS.index(self.layout_id) + step) % len(LAYOUT_IDS)]
            session.select_layout(self.layout_id)
        elif key in (273, 274):
            step = 1 if key == 274 else -1
            self.filter_id = CAPTURE_FILTERS[(CAPTURE_FILTERS.index(self.filter_id) + step) % len(CAPTURE_FILTERS)]
            session.select_filter(self.filter_id)
        elif key == ord('t'):
            i = COUNTDOWN_CHOICES.index(session.countdown_seconds) if session.countdown_seconds in COUNTDOWN_CHOICES else -1
            session.set_countdown(COUNTDOWN_CHOICES[(i + 1) % len(COUNTDOWN_CHOICES)])
        elif key == 8 and session.photos:
            session.retake(len(session.photos) - 1)
        elif key == ord('r'):
            session.reset_all()
        elif key in (13, 65293):
            photos = session.proceed()
            if photos is not None:
                self._open_preview(photos)

    # ---------- preview screen ----------
    def _open_preview(self, photos):
        customization = Customization(layout_id=self.layout_id, filter_id=self.filter_id)
        # the capture session ends before the photos move on
        self._close_capture()
        self.edit = EditSession(photos, customization)
        self.screen = Screen.PREVIEW
        self._refresh_composite()

    def _refresh_composite(self):
        img = self.preview_renderer.render(self.edit.description)
        self.root_widget.show_composite(img)
        c = self.edit.customization
        self.root_widget.hud.text = f"Filter: {c.filter_id} • Frame: {FRAMES[c.frame_id].name}"
        if self.screen == Screen.PREVIEW:
            self.root_widget.set_overlay("Customize", "Left/Right filter • F frame • C colour • D date • O watermark",
                                         "Enter to confirm • Esc to retake")
        else:
            self.root_widget.set_overlay(f"Download as {self.export_format.value.upper()}", "1 PNG • 2 JPEG • 3 PDF",
                                         "Enter to save • S to start over")

    def _cycle(self, options, current, step=1):
        return options[(options.index(current) + step) % len(options)] if current in options else options[0]

    def _preview_key(self, key: int):
        c = self.edit.customization
        if key in (276, 275):
            self.edit.update(filter_id=self._cycle(FILTER_IDS, c.filter_id, 1 if key == 275 else -1))
        elif key == ord('f'):
            self.edit.update(frame_id=self._cycle(FRAME_IDS, c.frame_id))
        elif key == ord('c'):
            hexes = [h.upper() for h in COLORS]
            current = "#%02X%02X%02X" % c.frame_color
            self.edit.update(frame_color=self._cycle(hexes, current))
        elif key == ord('d'):
            self.edit.update(show_date=not c.show_date)
        elif key == ord('o'):
            self.modal = WatermarkModal(c.watermark_text, on_save=self._save_watermark)
            self.modal.bind(on_dismiss=self._on_modal_dismiss)
            self.modal.open()
            return
        elif key in (13, 65293):
            self.edit.confirm()
            self.screen = Screen.DOWNLOAD
        elif key == 27:
            self._open_capture()
            return
        else:
            return
        self._refresh_composite()

    def _on_modal_dismiss(self, *_):
        self.modal = None

    def _save_watermark(self, text: str):
        self.edit.update(watermark_text=text)
        self._refresh_composite()

    # ---------- download screen ----------
    def _download_key(self, key: int):
        if key in EXPORT_FORMATS:
            self.export_format = EXPORT_FORMATS[key]
            self._refresh_composite()
        elif key in (13, 65293):
            try:
                result = export(self.edit.description, self.export_format, renderer=self.renderer)
                path = save(result, PHOTO_DIR)
            except RenderTargetUnavailable as e:
                logger.error("Export failed: %s", e)
                self.root_widget.set_overlay("Export failed", str(e), "Enter to try again • S to start over")
                return
            self.root_widget.set_overlay("Saved!", str(path), "S to start over")
        elif key == ord('s'):
            self._open_capture()
        elif key == 27:
            self.screen = Screen.PREVIEW
            self._refresh_composite()

    def _on_key(self, window, key, scancode, codepoint, modifier):
        logger.debug("Key pressed: %s on %s", key, self.screen.value)
        if self.modal is not None:
            # let the text input have the keyboard
            return False
        if self.screen == Screen.CAPTURE and self.session is not None:
            self._capture_key(key)
        elif self.screen == Screen.PREVIEW:
            self._preview_key(key)
        elif self.screen == Screen.DOWNLOAD:
            self._download_key(key)
        return True

    def on_stop(self):
        """Release the camera when the app stops"""
        self._close_capture()


if __name__ == "__main__":
    PhotoboothApp().run()
