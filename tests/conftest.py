from __future__ import annotations

from collections import namedtuple

import cv2
import numpy as np
import pytest

from rgbdvo.geom.camera import Camera
from rgbdvo.system.state import Frame

H, W = 480, 640

Match = namedtuple("Match", ["queryIdx", "trainIdx", "distance"])


class SceneDetector:
    """Hands back the keypoints/descriptors registered for an image."""

    def __init__(self):
        self.features = {}

    def register(self, image, keypoints, descriptors):
        self.features[id(image)] = (keypoints, descriptors)

    def detect(self, image):
        return list(self.features[id(image)][0])

    def describe(self, image, keypoints):
        return keypoints, self.features[id(image)][1]


class BruteHammingMatcher:
    def __init__(self):
        self.calls = 0

    def match(self, query, train):
        self.calls += 1
        q = np.unpackbits(np.asarray(query, dtype=np.uint8), axis=1)
        t = np.unpackbits(np.asarray(train, dtype=np.uint8), axis=1)
        dist = (q[:, None, :] != t[None, :, :]).sum(-1)
        best = dist.argmin(axis=1)
        return [Match(i, int(best[i]), float(dist[i, best[i]])) for i in range(len(query))]


class Scene:
    """Landmarks with fixed descriptors, rendered into synthetic RGB-D frames."""

    def __init__(self, points: np.ndarray, camera: Camera, seed: int = 0):
        self.points = np.asarray(points, dtype=np.float64)
        self.camera = camera
        rng = np.random.default_rng(seed)
        self.descriptors = rng.integers(0, 256, size=(len(points), 32), dtype=np.uint8)
        self.detector = SceneDetector()
        self._ts = 0.0

    def render(self, T_c_w: np.ndarray, *, background_depth: float | None = None,
               with_depth: bool = True, point_ids=None) -> Frame:
        color = np.zeros((H, W, 3), np.uint8)
        depth = np.zeros((H, W), np.uint16)
        if background_depth is not None:
            depth[:] = int(round(background_depth * self.camera.depth_scale))

        ids = range(len(self.points)) if point_ids is None else point_ids
        kps, des = [], []
        for i in ids:
            p_c = self.camera.world2camera(self.points[i], T_c_w)
            if p_c[2] <= 0:
                continue
            u, v = self.camera.camera2pixel(p_c)
            if not (1 <= u < W - 1 and 1 <= v < H - 1):
                continue
            depth[int(round(v)), int(round(u))] = int(round(p_c[2] * self.camera.depth_scale))
            kps.append(cv2.KeyPoint(float(u), float(v), 7.0))
            des.append(self.descriptors[i])

        self.detector.register(color, kps, np.array(des, dtype=np.uint8).reshape(-1, 32))
        self._ts += 0.033
        return Frame.create(self._ts, color, self.camera, depth if with_depth else None)


@pytest.fixture
def camera():
    return Camera(fx=500.0, fy=500.0, cx=320.0, cy=240.0, depth_scale=5000.0)


def grid_points(nx: int = 8, ny: int = 6, z0: float = 4.0) -> np.ndarray:
    pts = []
    for i, x in enumerate(np.linspace(-1.0, 1.0, nx)):
        for j, y in enumerate(np.linspace(-0.75, 0.75, ny)):
            pts.append((x, y, z0 + 0.3 * ((i + 2 * j) % 3)))
    return np.array(pts, dtype=np.float64)


@pytest.fixture
def scene(camera):
    return Scene(grid_points(), camera)
