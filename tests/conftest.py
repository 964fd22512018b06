"""Shared pytest fixtures for particle field tests."""

import numpy as np
import pytest

from hand_signal import (
    INDEX_TIP,
    MIDDLE_MCP,
    MIDDLE_TIP,
    NUM_LANDMARKS,
    THUMB_TIP,
    WRIST,
    Detection,
    DetectedHand,
)
from params import DEFAULT_CONFIG


def make_landmarks(
    wrist=(0.5, 0.6),
    middle_mcp=(0.5, 0.5),
    middle_tip=(0.5, 0.3),
    thumb_tip=(0.45, 0.45),
    index_tip=(0.55, 0.45),
):
    """21 landmarks parked at the image centre, with the ones we read overridden."""
    pts = [(0.5, 0.5, 0.0)] * NUM_LANDMARKS
    for idx, (x, y) in (
        (WRIST, wrist),
        (MIDDLE_MCP, middle_mcp),
        (MIDDLE_TIP, middle_tip),
        (THUMB_TIP, thumb_tip),
        (INDEX_TIP, index_tip),
    ):
        pts[idx] = (float(x), float(y), 0.0)
    return pts


def detection(*hands):
    """detection(("Right", landmarks), ("Left", landmarks), ...)"""
    return Detection(hands=[DetectedHand(landmarks=lms, handedness=label) for label, lms in hands])


@pytest.fixture
def quiet_config():
    """Default config with turbulence switched off."""
    return DEFAULT_CONFIG.with_changes(noise_strength=0.0)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
