from __future__ import annotations
import math
import numpy as np
import cv2

from params import ParticleShape, hex_to_bgr

BACKGROUND = (5, 5, 5)  # BGR, #050505
FOV_DEG = 45.0
BASE_DISTANCE = 12.0
NEAR = 0.1


def _unit_polygon(sides: int, phase: float = 0.0):
    a = phase + np.arange(sides) * (2.0 * math.pi / sides)
    return np.stack([np.cos(a), np.sin(a)], axis=1).astype(np.float32)


def _unit_star(points: int = 5, inner: float = 0.45):
    a = -math.pi / 2 + np.arange(points * 2) * (math.pi / points)
    r = np.where(np.arange(points * 2) % 2 == 0, 1.0, inner)
    return np.stack([np.cos(a) * r, np.sin(a) * r], axis=1).astype(np.float32)


# Screen-space silhouettes (None = filled circle)
_SILHOUETTES = {
    ParticleShape.SPHERE: None,
    ParticleShape.CUBE: _unit_polygon(4, math.pi / 4),
    ParticleShape.STAR: _unit_star(),
    ParticleShape.TETRAHEDRON: _unit_polygon(3, -math.pi / 2),
    ParticleShape.ICOSAHEDRON: _unit_polygon(6),
}


def camera_distance(width: int, height: int) -> float:
    """Portrait windows push the camera back so the field still fits."""
    aspect = float(width) / float(max(1, height))
    if aspect < 1.0:
        return max(BASE_DISTANCE, 14.0 / aspect)
    return BASE_DISTANCE


class ParticleRenderer:
    """Projects particle transforms into a BGR image with a pinhole camera on +z."""

    def __init__(self, width: int = 1280, height: int = 720, glow: bool = True):
        self.width = int(width)
        self.height = int(height)
        self.glow = bool(glow)

    def resize(self, width: int, height: int):
        self.width = int(width)
        self.height = int(height)

    def focal_px(self) -> float:
        return (self.height * 0.5) / math.tan(math.radians(FOV_DEG) * 0.5)

    def project(self, points):
        """Nx3 scene points -> (Nx2 pixel coords, N depth). Depth <= NEAR is behind the camera."""
        pts = np.asarray(points, dtype=np.float32).reshape(-1, 3)
        cam_z = camera_distance(self.width, self.height)
        depth = cam_z - pts[:, 2]
        f = self.focal_px()
        safe = np.where(depth > NEAR, depth, 1.0)
        sx = self.width * 0.5 + pts[:, 0] * f / safe
        sy = self.height * 0.5 - pts[:, 1] * f / safe
        return np.stack([sx, sy], axis=1), depth

    def render(self, transforms, config, frame=None):
        if frame is None:
            img = np.empty((self.height, self.width, 3), dtype=np.uint8)
            img[:] = BACKGROUND
        else:
            img = frame
            self.resize(img.shape[1], img.shape[0])

        if transforms is None or len(transforms) == 0:
            return img

        color = hex_to_bgr(config.color)
        silhouette = _SILHOUETTES.get(ParticleShape(config.shape))

        xy, depth = self.project(transforms.position)
        f = self.focal_px()
        # Geometry is unit-sized at scale 1 (radius 0.5)
        radius = 0.5 * transforms.scale * f / np.where(depth > NEAR, depth, 1.0)
        spin = transforms.rotation[:, 0]

        # Far to near so closer particles land on top
        order = np.argsort(-depth)
        for i in order:
            if depth[i] <= NEAR:
                continue
            x, y = float(xy[i, 0]), float(xy[i, 1])
            if x < -8 or y < -8 or x > self.width + 8 or y > self.height + 8:
                continue
            r = max(1.0, float(radius[i]))
            if silhouette is None:
                cv2.circle(img, (int(x), int(y)), int(round(r)), color, -1, cv2.LINE_AA)
                continue
            c, s = math.cos(spin[i]), math.sin(spin[i])
            rot = np.array([[c, -s], [s, c]], dtype=np.float32)
            poly = (silhouette @ rot.T) * r + np.array([x, y], dtype=np.float32)
            cv2.fillPoly(img, [poly.astype(np.int32)], color, cv2.LINE_AA)

        if self.glow:
            blur = cv2.GaussianBlur(img, (0, 0), 3)
            img = cv2.addWeighted(img, 0.8, blur, 0.6, 0)

        return img
