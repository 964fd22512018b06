# smoothing.py
from __future__ import annotations

from dataclasses import dataclass
import math

MIN_ALPHA = 0.1
MAX_ALPHA = 0.8
# Planar displacement (scene units) at which the filter stops damping.
VELOCITY_THRESHOLD = 0.5

PINCH_ALPHA = 0.2


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def map_linear(x: float, a1: float, a2: float, b1: float, b2: float) -> float:
    return b1 + (x - a1) * (b2 - b1) / (a2 - a1)


def motion_alpha(displacement: float) -> float:
    """Fast motion is tracked tightly, slow motion is heavily damped."""
    a = map_linear(displacement, 0.0, VELOCITY_THRESHOLD, MIN_ALPHA, MAX_ALPHA)
    return clamp(a, MIN_ALPHA, MAX_ALPHA)


def ema(prev: float, curr: float, alpha: float) -> float:
    return prev + (curr - prev) * alpha


@dataclass
class _State:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    pinch: float = 1.0
    present: bool = False


class AdaptiveSmoother:
    """
    Per-hand exponential smoother.

    - Snaps to the first sample after the hand (re)appears
    - Blend weight grows with planar displacement (see motion_alpha)
    - Pinch uses a fixed weight
    - Keeps the last smoothed values while the hand is missing
    """

    def __init__(self):
        self.s = _State()

    @property
    def present(self) -> bool:
        return self.s.present

    def position(self) -> tuple[float, float, float]:
        return (self.s.x, self.s.y, self.s.z)

    @property
    def pinch(self) -> float:
        return self.s.pinch

    def update(self, pos: tuple[float, float, float], pinch: float) -> float:
        """Feed one raw sample. Returns the position blend weight that was used."""
        x_m, y_m, z_m = float(pos[0]), float(pos[1]), float(pos[2])

        if not self.s.present:
            self.s.x, self.s.y, self.s.z = x_m, y_m, z_m
            a = 1.0
        else:
            d = math.hypot(x_m - self.s.x, y_m - self.s.y)
            a = motion_alpha(d)
            self.s.x = ema(self.s.x, x_m, a)
            self.s.y = ema(self.s.y, y_m, a)
            self.s.z = ema(self.s.z, z_m, a)

        self.s.pinch = ema(self.s.pinch, float(pinch), PINCH_ALPHA)
        self.s.present = True
        return a

    def lose(self) -> None:
        self.s.present = False
