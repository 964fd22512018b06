# interface.py
# On-screen HUD + keyboard controls for the particle field.
from __future__ import annotations
import time
import cv2

from params import (
    DEFAULT_CONFIG,
    MAX_COUNT,
    TEMPLATES,
    DistributionType,
    ParticleConfig,
    ParticleShape,
)
from smoothing import clamp

COUNT_STEP = 500
MESSAGE_SECONDS = 6.0

# Swatches cycled with C
PALETTE = ["#00ffff", "#ff0055", "#E0B0FF", "#ffd700", "#ff69b4", "#7CFC00", "#ffffff"]

TEMPLATE_KEYS = {ord(str(i + 1)): name for i, name in enumerate(TEMPLATES)}


def _cycle(values, current):
    values = list(values)
    try:
        i = values.index(current)
    except ValueError:
        return values[0]
    return values[(i + 1) % len(values)]


class Interface:
    """
    Holds the active ParticleConfig and draws the overlay.

    Every change replaces the config object wholesale; the app loop compares
    identity to know when to reconfigure the simulator.
    """

    def __init__(self, config: ParticleConfig = DEFAULT_CONFIG, clock=time.monotonic):
        self.config = config
        self.clock = clock

        self._message = ""
        self._message_until = 0.0
        self.show_help = True

        # ---- UI styling / scaling ----
        self.ui_scale = 1.0   # resized per frame in draw()
        self.panel_alpha = 0.55
        self.panel_col = (18, 18, 22)   # dark glass
        self.panel_edge = (90, 115, 135)
        self.col_text = (235, 245, 255)
        self.col_shadow = (25, 25, 25)
        self.col_error = (90, 90, 255)

        self.font = cv2.FONT_HERSHEY_SIMPLEX
        self.font_base = 0.62
        self.font_small_base = 0.48

    # ---------- config ----------
    def set_config(self, config: ParticleConfig):
        self.config = config

    def load_template(self, name: str):
        self.set_config(TEMPLATES[name])

    def handle_key(self, key: int) -> bool:
        cfg = self.config
        if key in TEMPLATE_KEYS:
            self.load_template(TEMPLATE_KEYS[key])
        elif key == ord("0"):
            self.set_config(DEFAULT_CONFIG)
        elif key in (ord("+"), ord("=")):
            self.set_config(cfg.with_changes(count=min(MAX_COUNT, cfg.count + COUNT_STEP)))
        elif key in (ord("-"), ord("_")):
            self.set_config(cfg.with_changes(count=max(1, cfg.count - COUNT_STEP)))
        elif key == ord("d"):
            self.set_config(cfg.with_changes(distribution=_cycle(DistributionType, cfg.distribution)))
        elif key == ord("s"):
            self.set_config(cfg.with_changes(shape=_cycle(ParticleShape, cfg.shape)))
        elif key == ord("c"):
            self.set_config(cfg.with_changes(color=_cycle(PALETTE, cfg.color)))
        elif key == ord("x"):
            self.dismiss()
        elif key == ord("h"):
            self.show_help = not self.show_help
        else:
            return False
        return True

    def apply_command(self, cmd) -> bool:
        kind, arg = cmd
        if kind == "template":
            self.load_template(arg)
        elif kind == "reset":
            self.set_config(DEFAULT_CONFIG)
        else:
            return False
        return True

    def apply_suggestion(self, result):
        """result: (config, None) or (None, error message)."""
        config, error = result
        if config is not None:
            self.set_config(config)
            self.dismiss()
        else:
            self.show_error("Failed to generate. " + (error or ""))

    # ---------- messages ----------
    def show_error(self, text: str, seconds: float = MESSAGE_SECONDS):
        self._message = text.strip()
        self._message_until = self.clock() + float(seconds)

    def dismiss(self):
        self._message = ""
        self._message_until = 0.0

    @property
    def message(self) -> str:
        if self._message and self.clock() >= self._message_until:
            self.dismiss()
        return self._message

    # ---------- drawing ----------
    def draw(self, frame, ready=True, reason="", ai_available=True, busy=False, fps=0.0):
        H, W = frame.shape[:2]
        self.ui_scale = float(clamp(min(W, H) / 720.0, 0.85, 1.8))
        pad = int(14 * self.ui_scale)

        if not ready:
            self._draw_not_ready(frame, reason)
            return frame

        # Title + gesture hints
        top_h = int(84 * self.ui_scale)
        top_w = int(300 * self.ui_scale)
        self._panel(frame, pad, pad, top_w, top_h)
        self._text(frame, "Particle Flow", (pad + 14, pad + 26), self.font_base)
        self._text(frame, "Open hand to Expel", (pad + 14, pad + 50), self.font_small_base)
        self._text(frame, "Pinch to Attract", (pad + 14, pad + 72), self.font_small_base)

        # Current config
        cfg = self.config
        msg = (f"{cfg.distribution.value}  {cfg.shape.value}  n={cfg.count}  "
               f"size={cfg.size:.2f}  speed={cfg.speed:.2f}  noise={cfg.noise_strength:.2f}  {cfg.color}")
        if busy:
            msg += "   | generating..."
        elif not ai_available:
            msg += "   | AI off (no API key)"
        bottom_h = int(38 * self.ui_scale)
        self._panel(frame, pad, H - pad - bottom_h, W - 2 * pad, bottom_h)
        self._text(frame, msg, (pad + 16, H - pad - int(12 * self.ui_scale)), self.font_small_base)

        if self.show_help:
            hint = "1-4 templates  0 default  +/- count  D dist  S shape  C color  X dismiss  H help  ESC quit"
            self._text(frame, hint, (pad + 16, H - pad - bottom_h - 10), self.font_small_base)

        if fps > 0:
            self._text(frame, f"FPS: {fps:5.1f}", (W - pad - int(110 * self.ui_scale), pad + 26), self.font_small_base)

        text = self.message
        if text:
            box_w = min(W - 2 * pad, int(24 + 9.5 * len(text)))
            y = pad + top_h + 12
            self._panel(frame, pad, y, box_w, int(34 * self.ui_scale))
            self._text(frame, text, (pad + 12, y + 23), self.font_small_base, self.col_error)
        return frame

    def _draw_not_ready(self, frame, reason):
        cy = frame.shape[0] // 2
        self._centered(frame, "Initializing Vision...", cy - 10, self.font_base)
        self._centered(frame, reason or "Please allow camera access", cy + 20, self.font_small_base)

    def _centered(self, frame, s, y, scale):
        sc = float(scale) * self.ui_scale
        (tw, _), _ = cv2.getTextSize(s, self.font, sc, 1)
        self._text(frame, s, ((frame.shape[1] - tw) // 2, y), scale)

    def _panel(self, frame, x, y, w, h):
        x0 = max(0, int(x))
        y0 = max(0, int(y))
        x1 = min(frame.shape[1], int(x + w))
        y1 = min(frame.shape[0], int(y + h))
        if x1 <= x0 or y1 <= y0:
            return
        overlay = frame.copy()
        cv2.rectangle(overlay, (x0, y0), (x1, y1), self.panel_col, -1)
        cv2.addWeighted(overlay, self.panel_alpha, frame, 1.0 - self.panel_alpha, 0, frame)
        cv2.rectangle(frame, (x0, y0), (x1, y1), self.panel_edge, 1, cv2.LINE_AA)

    def _text(self, frame, s, org, scale, color=None):
        sc = float(scale) * self.ui_scale
        thick = 1 if sc < 0.9 else 2

        # subtle shadow
        cv2.putText(frame, s, (org[0] + 1, org[1] + 1),
                    self.font, sc, self.col_shadow, thick + 1, cv2.LINE_AA)
        cv2.putText(frame, s, org, self.font, sc,
                    color or self.col_text, thick, cv2.LINE_AA)
