# pyright: reportInvalidTypeForm=false
import numpy as np
import taichi as ti

from hand_signal import HandFrame
from params import MAX_COUNT
from sim import (
    DAMPING, DRAG_GAIN, HAND_RADIUS, NEUTRAL_TENSION, NOISE_SCALE, RADIAL_GAIN,
    RETURN_FORCE, SCALE_BONUS, SPIN_RATE, TENSION_GAIN,
    ParticleSimulator, Transforms,
)

_TAICHI_READY = False


def ensure_ti(arch=None):
    global _TAICHI_READY
    if _TAICHI_READY:
        return
    if arch is not None:
        ti.init(arch=arch)
        print(f"✅ Taichi {arch} (particles)")
    else:
        try:
            ti.init(arch=ti.gpu)
            print("✅ Taichi GPU (particles)")
        except Exception:
            ti.init(arch=ti.cpu)
            print("⚠️ Taichi CPU fallback (particles)")
    _TAICHI_READY = True


@ti.data_oriented
class ParticleSimTaichi(ParticleSimulator):
    """
    Same field as ParticleSimulator, stepped in a Taichi kernel.

    Spawning still happens on the numpy side (shared samplers + RNG), then the
    touched slots are uploaded. After each tick the active slots are read back
    so pos/vel stay the single source of truth for inspection.
    """

    def __init__(self, rng=None, seed=None, capacity: int = MAX_COUNT, arch=None):
        ensure_ti(arch)
        super().__init__(rng=rng, seed=seed, capacity=capacity)

        n = self.capacity
        self.f_pos = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.f_vel = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.f_base = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.f_rot = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.f_scale = ti.field(dtype=ti.f32, shape=n)

        # Hand inputs (left, right)
        self.hand_pos = ti.Vector.field(3, dtype=ti.f32, shape=(2,))
        self.hand_vel = ti.Vector.field(3, dtype=ti.f32, shape=(2,))
        self.hand_pinch = ti.field(dtype=ti.f32, shape=(2,))
        self.hand_present = ti.field(dtype=ti.i32, shape=(2,))

        self._upload()

    def _upload(self):
        self.f_pos.from_numpy(self.pos)
        self.f_vel.from_numpy(self.vel)
        self.f_base.from_numpy(self.base)

    def _on_spawn(self, start, stop):
        self._upload()

    def set_hand_input(self, hands: HandFrame, hand_vel: dict):
        for hid, s in enumerate(("left", "right")):
            h = hands.side(s)
            self.hand_present[hid] = 1 if h.present else 0
            self.hand_pos[hid] = ti.Vector([float(c) for c in h.position])
            self.hand_vel[hid] = ti.Vector([float(c) for c in hand_vel[s]])
            self.hand_pinch[hid] = float(h.pinch_distance)

    def tick(self, hands: HandFrame, t: float) -> Transforms:
        if self.config is None:
            raise RuntimeError("configure() must be called before tick()")

        cfg = self.config
        n = self.count
        self.set_hand_input(hands, self.hand_velocities(hands))
        self._step(n, float(t), float(cfg.speed), float(cfg.noise_strength * NOISE_SCALE), float(cfg.size))

        self.pos[:] = self.f_pos.to_numpy()
        self.vel[:] = self.f_vel.to_numpy()
        return Transforms(
            position=self.pos[:n].copy(),
            rotation=self.f_rot.to_numpy()[:n],
            scale=self.f_scale.to_numpy()[:n],
        )

    # ========================= Kernel =========================

    @ti.kernel
    def _step(self, n: ti.i32, t: ti.f32, speed: ti.f32, noise: ti.f32, size: ti.f32):
        for i in range(n):
            p = self.f_pos[i]
            v = self.f_vel[i]

            # turbulence (x first, then y sees the new x)
            p[0] += ti.sin(t * speed + p[1] * 0.5) * noise
            p[1] += ti.cos(t * speed + p[0] * 0.5) * noise
            p[2] += ti.sin(t * speed + p[2] * 0.5) * noise

            v += (self.f_base[i] - p) * RETURN_FORCE
            v *= DAMPING

            extra = 0.0
            for h in ti.static(range(2)):
                if self.hand_present[h] == 1:
                    d = p - self.hand_pos[h]
                    dist = d.norm()
                    if dist < HAND_RADIUS:
                        tension = self.hand_pinch[h]
                        force_dir = (tension - NEUTRAL_TENSION) * TENSION_GAIN
                        influence = 1.0 - dist / HAND_RADIUS
                        if dist > 0.0:
                            v += d / dist * (force_dir * influence * RADIAL_GAIN)
                        v += self.hand_vel[h] * (influence * DRAG_GAIN)
                        extra += influence * (SCALE_BONUS + tension * SCALE_BONUS)

            p += v
            self.f_pos[i] = p
            self.f_vel[i] = v
            self.f_rot[i] = ti.Vector([t * SPIN_RATE + p[0], t * SPIN_RATE + p[1], 0.0])
            self.f_scale[i] = size + extra
