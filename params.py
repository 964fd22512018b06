"""
All tunable knobs live here so you don't hunt through code.

ParticleConfig is what the interface and the AI suggestion service hand to the
simulator. It is always replaced wholesale, never patched field by field.
"""

from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Mapping, Optional

# Pool capacity. The simulator allocates this many slots once and never resizes.
MAX_COUNT = 10000


class DistributionType(str, Enum):
    SPHERE = "SPHERE"
    CUBE = "CUBE"
    RING = "RING"
    EXPLOSION = "EXPLOSION"
    HEART = "HEART"
    FLOWER = "FLOWER"


class ParticleShape(str, Enum):
    SPHERE = "SPHERE"
    CUBE = "CUBE"
    STAR = "STAR"
    TETRAHEDRON = "TETRAHEDRON"
    ICOSAHEDRON = "ICOSAHEDRON"


class ConfigValidationError(ValueError):
    """Raised when a candidate configuration cannot be accepted as a whole."""


@dataclass(frozen=True)
class ParticleConfig:
    color: str
    count: int
    size: float
    speed: float
    distribution: DistributionType
    noise_strength: float
    shape: ParticleShape

    def with_changes(self, **changes) -> "ParticleConfig":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "color": self.color,
            "count": self.count,
            "size": self.size,
            "speed": self.speed,
            "distribution": self.distribution.value,
            "noiseStrength": self.noise_strength,
            "shape": self.shape.value,
        }


DEFAULT_CONFIG = ParticleConfig(
    color="#00ffff",
    count=3000,
    size=0.05,
    speed=0.5,
    distribution=DistributionType.SPHERE,
    noise_strength=0.2,
    shape=ParticleShape.SPHERE,
)

TEMPLATES = {
    "HEARTS": ParticleConfig(
        color="#ff0055",
        count=4000,
        size=0.04,
        speed=0.3,
        distribution=DistributionType.HEART,
        noise_strength=0.1,
        shape=ParticleShape.SPHERE,
    ),
    "SATURN": ParticleConfig(
        color="#E0B0FF",
        count=5000,
        size=0.03,
        speed=1.2,
        distribution=DistributionType.RING,
        noise_strength=0.05,
        shape=ParticleShape.STAR,
    ),
    "FIREWORKS": ParticleConfig(
        color="#ffd700",
        count=2500,
        size=0.08,
        speed=2.0,
        distribution=DistributionType.EXPLOSION,
        noise_strength=0.8,
        shape=ParticleShape.CUBE,
    ),
    "FLOWERS": ParticleConfig(
        color="#ff69b4",
        count=3500,
        size=0.06,
        speed=0.4,
        distribution=DistributionType.FLOWER,
        noise_strength=0.15,
        shape=ParticleShape.SPHERE,
    ),
}

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# Accepts both the wire spelling (noiseStrength) and the python one.
_FIELD_ALIASES = {
    "color": ("color",),
    "count": ("count",),
    "size": ("size",),
    "speed": ("speed",),
    "distribution": ("distribution",),
    "noise_strength": ("noiseStrength", "noise_strength"),
    "shape": ("shape",),
}


def _field(data: Mapping, name: str):
    for key in _FIELD_ALIASES[name]:
        if key in data:
            return data[key]
    raise ConfigValidationError(f"missing field: {name}")


def _number(data: Mapping, name: str) -> float:
    value = _field(data, name)
    # bool is an int subclass; "true" is not a particle size
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigValidationError(f"{name} must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise ConfigValidationError(f"{name} must be finite, got {value!r}")
    return value


def _enum(data: Mapping, name: str, enum_cls):
    value = _field(data, name)
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigValidationError(f"{name} must be one of {allowed}, got {value!r}") from None


def validate_config(data: Mapping) -> ParticleConfig:
    """
    Check every field of a candidate configuration and build a ParticleConfig.

    count is clamped to [1, MAX_COUNT]; everything else must already be in
    range. Any failure rejects the whole configuration.
    """
    if not isinstance(data, Mapping):
        raise ConfigValidationError(f"configuration must be an object, got {type(data).__name__}")

    color = _field(data, "color")
    if not isinstance(color, str) or not _HEX_COLOR.match(color.strip()):
        raise ConfigValidationError(f"color must be a hex string like #00ffff, got {color!r}")

    count = _number(data, "count")
    count = int(max(1, min(MAX_COUNT, round(count))))

    size = _number(data, "size")
    if size <= 0.0:
        raise ConfigValidationError(f"size must be > 0, got {size}")

    speed = _number(data, "speed")
    if speed <= 0.0:
        raise ConfigValidationError(f"speed must be > 0, got {speed}")

    noise_strength = _number(data, "noise_strength")
    if noise_strength < 0.0:
        raise ConfigValidationError(f"noise_strength must be >= 0, got {noise_strength}")

    return ParticleConfig(
        color=color.strip(),
        count=count,
        size=size,
        speed=speed,
        distribution=_enum(data, "distribution", DistributionType),
        noise_strength=noise_strength,
        shape=_enum(data, "shape", ParticleShape),
    )


def hex_to_bgr(color: str) -> tuple[int, int, int]:
    h = color.strip().lstrip("#")
    if len(h) == 3:
        h = "".join(c * 2 for c in h)
    r, g, b = int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    return (b, g, r)


# ---------------- startup settings ----------------

DEFAULT_MODEL = "gemini-2.5-flash"
API_KEY_VARS = ("GEMINI_API_KEY", "API_KEY")


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL

    @property
    def has_api_key(self) -> bool:
        return self.api_key is not None


def load_settings(environ: Optional[Mapping[str, str]] = None, api_key: Optional[str] = None) -> Settings:
    """
    Resolve the AI credential once at startup.

    An explicit api_key wins, then the first non-empty variable in API_KEY_VARS.
    Blank values count as absent.
    """
    env = os.environ if environ is None else environ

    key = (api_key or "").strip()
    if not key:
        for name in API_KEY_VARS:
            key = (env.get(name) or "").strip()
            if key:
                break

    model = (env.get("GEMINI_MODEL") or "").strip() or DEFAULT_MODEL
    return Settings(api_key=key or None, model=model)
