"""
Particle field simulation.

State (fixed pool of MAX_COUNT slots, allocated once):
- pos:  Nx3 current positions
- vel:  Nx3 velocities (scene units / tick)
- base: Nx3 spawn anchors the spring pulls back to

Per tick, for the active slots [0, count):
- turbulence: direct position wobble, not a force
- spring back to base
- damping
- hand field: pinch => pull, open => push, plus a drag along the hand's motion
- integrate and emit transforms

Slots >= count are frozen, not reset, so raising count again brings back
whatever they were doing.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

import numpy as np

from hand_signal import HandFrame
from params import MAX_COUNT, DistributionType, ParticleConfig

logger = logging.getLogger(__name__)

# Physics
RETURN_FORCE = 0.03
DAMPING = 0.9
NOISE_SCALE = 0.02

# Hand interaction
HAND_RADIUS = 5.0
NEUTRAL_TENSION = 0.4   # pinch distance with no radial force
TENSION_GAIN = 2.5
RADIAL_GAIN = 0.8
DRAG_GAIN = 0.15
HAND_VEL_SCALE = 5.0

# Transform
SPIN_RATE = 0.2
SCALE_BONUS = 0.05

# Spawn shapes
BALL_RADIUS = 5.0
CUBE_HALF = 4.0
RING_INNER = 3.0
RING_WIDTH = 2.0
RING_THICKNESS = 1.0
HEART_SCALE = 0.2
FLOWER_PETALS = 5
FLOWER_BASE = 3.0
DEPTH_JITTER = 1.0


# ========================= Spawn sampling =========================

def _sample_ball(rng, n):
    u = rng.random(n)
    v = rng.random(n)
    w = rng.random(n)
    theta = 2.0 * np.pi * u
    phi = np.arccos(2.0 * v - 1.0)
    r = np.cbrt(w) * BALL_RADIUS
    return np.stack([
        r * np.sin(phi) * np.cos(theta),
        r * np.sin(phi) * np.sin(theta),
        r * np.cos(phi),
    ], axis=1)


def _sample_cube(rng, n):
    return (rng.random((n, 3)) * 2.0 - 1.0) * CUBE_HALF


def _sample_ring(rng, n):
    theta = rng.random(n) * 2.0 * np.pi
    r = RING_INNER + rng.random(n) * RING_WIDTH
    y = (rng.random(n) - 0.5) * RING_THICKNESS
    return np.stack([np.cos(theta) * r, y, np.sin(theta) * r], axis=1)


def _sample_heart(rng, n):
    t = rng.random(n) * 2.0 * np.pi
    s = HEART_SCALE
    x = 16.0 * np.sin(t) ** 3 * s
    y = (13.0 * np.cos(t) - 5.0 * np.cos(2 * t) - 2.0 * np.cos(3 * t) - np.cos(4 * t)) * s
    z = (rng.random(n) - 0.5) * 2.0 * DEPTH_JITTER
    return np.stack([x, y, z], axis=1)


def _sample_flower(rng, n):
    t = rng.random(n) * 2.0 * np.pi
    radial = np.sin(t * FLOWER_PETALS) + FLOWER_BASE
    # Jittered radius fills the petals instead of tracing their outline
    x = np.cos(t) * radial * rng.random(n)
    y = np.sin(t) * radial * rng.random(n)
    z = (rng.random(n) - 0.5) * 2.0 * DEPTH_JITTER
    return np.stack([x, y, z], axis=1)


_SAMPLERS = {
    DistributionType.SPHERE: _sample_ball,
    DistributionType.EXPLOSION: _sample_ball,
    DistributionType.CUBE: _sample_cube,
    DistributionType.RING: _sample_ring,
    DistributionType.HEART: _sample_heart,
    DistributionType.FLOWER: _sample_flower,
}


def sample_distribution(distribution: DistributionType, n: int, rng) -> np.ndarray:
    """Draw n independent spawn points (n x 3, float32)."""
    n = int(n)
    if n <= 0:
        return np.zeros((0, 3), dtype=np.float32)
    return _SAMPLERS[DistributionType(distribution)](rng, n).astype(np.float32)


# ========================= Hand field =========================

def hand_impulse(pos, hand_pos, hand_vel, tension):
    """
    Velocity change and scale bonus one hand applies to every particle.

    pos: Nx3; hand_pos, hand_vel: 3-vectors; tension: smoothed pinch distance.
    Returns (dv Nx3, extra_scale N).
    """
    delta = pos - np.asarray(hand_pos, dtype=pos.dtype)[None, :]
    dist = np.linalg.norm(delta, axis=1)
    inside = dist < HAND_RADIUS

    dv = np.zeros_like(pos)
    extra = np.zeros(len(pos), dtype=pos.dtype)
    if not np.any(inside):
        return dv, extra

    d_in = dist[inside]
    influence = 1.0 - d_in / HAND_RADIUS
    force_dir = (float(tension) - NEUTRAL_TENSION) * TENSION_GAIN

    # A particle sitting exactly on the hand has no direction to be pushed in
    dirn = np.zeros_like(delta[inside])
    nz = d_in > 0.0
    dirn[nz] = delta[inside][nz] / d_in[nz][:, None]

    hv = np.asarray(hand_vel, dtype=pos.dtype)[None, :]
    dv[inside] = (dirn * (force_dir * influence * RADIAL_GAIN)[:, None]
                  + hv * (influence * DRAG_GAIN)[:, None])
    extra[inside] = influence * (SCALE_BONUS + float(tension) * SCALE_BONUS)
    return dv, extra


# ========================= Simulator =========================

@dataclass
class Transforms:
    """Per active particle: position Nx3, rotation Nx3 (euler xyz), uniform scale N."""
    position: np.ndarray
    rotation: np.ndarray
    scale: np.ndarray

    def __len__(self):
        return len(self.position)


class ParticleSimulator:
    def __init__(self, rng=None, seed=None, capacity: int = MAX_COUNT):
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.capacity = int(capacity)

        self.pos = np.zeros((self.capacity, 3), dtype=np.float32)
        self.vel = np.zeros((self.capacity, 3), dtype=np.float32)
        self.base = np.zeros((self.capacity, 3), dtype=np.float32)

        self.config: ParticleConfig | None = None
        self.count = 0
        self.high_water = 0   # leading slots initialized for the current distribution
        self._distribution: DistributionType | None = None

        # Hand velocity is measured per render tick, not per detection.
        # The last seen position survives while the hand is away.
        self._prev_hand = {s: np.zeros(3, dtype=np.float32) for s in ("left", "right")}

    # ---------------- configuration ----------------

    def configure(self, config: ParticleConfig) -> None:
        count = int(max(1, min(self.capacity, config.count)))
        dist = DistributionType(config.distribution)

        if dist != self._distribution:
            self._spawn(0, count, dist)
            self.high_water = count
            logger.info("spawned %d particles (%s)", count, dist.value)
        elif count > self.high_water:
            self._spawn(self.high_water, count, dist)
            logger.debug("grew pool %d -> %d", self.high_water, count)
            self.high_water = count

        self._distribution = dist
        self.count = count
        self.config = config

    def _spawn(self, start: int, stop: int, dist: DistributionType) -> None:
        pts = sample_distribution(dist, stop - start, self.rng)
        self.base[start:stop] = pts
        self.pos[start:stop] = pts
        self.vel[start:stop] = 0.0
        self._on_spawn(start, stop)

    def _on_spawn(self, start: int, stop: int) -> None:
        pass

    # ---------------- stepping ----------------

    def hand_velocities(self, hands: HandFrame) -> dict:
        out = {}
        for s in ("left", "right"):
            h = hands.side(s)
            if not h.present:
                out[s] = np.zeros(3, dtype=np.float32)
                continue
            now = np.asarray(h.position, dtype=np.float32)
            out[s] = (now - self._prev_hand[s]) * HAND_VEL_SCALE
            self._prev_hand[s] = now
        return out

    def tick(self, hands: HandFrame, t: float) -> Transforms:
        if self.config is None:
            raise RuntimeError("configure() must be called before tick()")

        cfg = self.config
        n = self.count
        t = float(t)
        hand_vel = self.hand_velocities(hands)

        p = self.pos[:n]
        v = self.vel[:n]

        # --- Turbulence (x first, then y sees the new x) ---
        noise = cfg.noise_strength * NOISE_SCALE
        phase = t * cfg.speed
        p[:, 0] += np.sin(phase + p[:, 1] * 0.5) * noise
        p[:, 1] += np.cos(phase + p[:, 0] * 0.5) * noise
        p[:, 2] += np.sin(phase + p[:, 2] * 0.5) * noise

        # --- Spring + damping ---
        v += (self.base[:n] - p) * RETURN_FORCE
        v *= DAMPING

        # --- Hands ---
        extra = np.zeros(n, dtype=np.float32)
        for s, h in hands.present_hands():
            dv, ex = hand_impulse(p, h.position, hand_vel[s], h.pinch_distance)
            v += dv
            extra += ex

        # --- Integrate ---
        p += v

        rot = np.empty((n, 3), dtype=np.float32)
        rot[:, 0] = t * SPIN_RATE + p[:, 0]
        rot[:, 1] = t * SPIN_RATE + p[:, 1]
        rot[:, 2] = 0.0
        scale = cfg.size + extra

        return Transforms(position=p.copy(), rotation=rot, scale=scale.astype(np.float32))
