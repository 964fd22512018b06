"""
Hand signal conditioning.

Turns one raw detector result into a stable two-hand state:
  - anchor position in scene units (mirrored, z = 0)
  - pinch distance 0..1 (0 = pinched, 1 = open)
  - open/closed flag

Pure python, no detector or camera imports, so it runs headless with
synthetic landmarks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Sequence

from smoothing import AdaptiveSmoother, clamp

# MediaPipe hand landmark indices
WRIST = 0
THUMB_TIP = 4
INDEX_TIP = 8
MIDDLE_MCP = 9
MIDDLE_TIP = 12

NUM_LANDMARKS = 21

# Normalized image -> scene units
SCENE_W = 24.0
SCENE_H = 16.0

PINCH_MIN = 0.02
PINCH_RANGE = 0.12

OPEN_RATIO = 1.5


@dataclass(frozen=True)
class HandState:
    present: bool = False
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    pinch_distance: float = 1.0
    is_open: bool = True


@dataclass(frozen=True)
class HandFrame:
    left: HandState = field(default_factory=HandState)
    right: HandState = field(default_factory=HandState)

    def side(self, name: str) -> HandState:
        return self.right if name == "right" else self.left

    def present_hands(self) -> list[tuple[str, HandState]]:
        return [(s, h) for s, h in (("left", self.left), ("right", self.right)) if h.present]


@dataclass
class DetectedHand:
    """landmarks: 21 normalized (x, y[, z]) points; handedness: detector's top-1 label."""
    landmarks: Sequence[Sequence[float]]
    handedness: str


@dataclass
class Detection:
    hands: list[DetectedHand] = field(default_factory=list)


def _dist2d(a, b) -> float:
    return math.hypot(float(a[0]) - float(b[0]), float(a[1]) - float(b[1]))


def anchor_position(lms) -> tuple[float, float, float]:
    ax = (float(lms[WRIST][0]) + float(lms[MIDDLE_MCP][0])) / 2.0
    ay = (float(lms[WRIST][1]) + float(lms[MIDDLE_MCP][1])) / 2.0
    # Mirror x so the field behaves like a mirror of the user
    return ((ax - 0.5) * -SCENE_W, -(ay - 0.5) * SCENE_H, 0.0)


def pinch_from_distance(d: float) -> float:
    return clamp((d - PINCH_MIN) / PINCH_RANGE, 0.0, 1.0)


def pinch_from_landmarks(lms) -> float:
    return pinch_from_distance(_dist2d(lms[THUMB_TIP], lms[INDEX_TIP]))


def is_open_ratio(ratio: float) -> bool:
    return ratio > OPEN_RATIO


def open_ratio(lms) -> float:
    full = _dist2d(lms[WRIST], lms[MIDDLE_TIP])
    palm = _dist2d(lms[WRIST], lms[MIDDLE_MCP])
    if palm <= 0.0:
        return 0.0
    return full / palm


def side_for_label(label: str) -> str:
    return "right" if label == "Right" else "left"


class HandSignalProcessor:
    """
    Keeps one AdaptiveSmoother per side for the lifetime of the process.

    process() returns a fresh immutable HandFrame on every call, so the result
    can be handed to another thread as-is.
    """

    SIDES = ("left", "right")

    def __init__(self):
        self.smoothers = {s: AdaptiveSmoother() for s in self.SIDES}
        self._is_open = {s: True for s in self.SIDES}
        self.last_alpha = {s: 0.0 for s in self.SIDES}

    def process(self, detection: Detection | None) -> HandFrame:
        raw = {}
        hands = detection.hands if detection is not None else []
        for hand in hands:
            lms = hand.landmarks
            if lms is None or len(lms) < NUM_LANDMARKS:
                continue
            raw[side_for_label(hand.handedness)] = (
                anchor_position(lms),
                pinch_from_landmarks(lms),
                is_open_ratio(open_ratio(lms)),
            )

        for s in self.SIDES:
            sm = self.smoothers[s]
            if s in raw:
                pos, pinch, is_open = raw[s]
                self.last_alpha[s] = sm.update(pos, pinch)
                self._is_open[s] = is_open
            else:
                sm.lose()

        return self.snapshot()

    def snapshot(self) -> HandFrame:
        return HandFrame(left=self._state("left"), right=self._state("right"))

    def _state(self, s: str) -> HandState:
        sm = self.smoothers[s]
        return HandState(
            present=sm.present,
            position=sm.position(),
            pinch_distance=sm.pinch,
            is_open=self._is_open[s],
        )
