from __future__ import annotations

import enum
import itertools
from dataclasses import dataclass, field
from typing import ClassVar

import numpy as np

from ..geom.camera import Camera
from ..geom.se3 import inv_T

# 4-neighbourhood probed when the keypoint's own depth pixel is empty
_DEPTH_OFFSETS = ((0, 0), (-1, 0), (0, -1), (1, 0), (0, 1))


class TrackingState(enum.IntEnum):
    INITIALIZING = 0
    TRACKING = 1
    LOST = 2


@dataclass(eq=False)
class Frame:
    id: int
    ts: float
    color: np.ndarray
    camera: Camera
    depth: np.ndarray | None = None  # raw uint16, scaled by camera.depth_scale
    T_c_w: np.ndarray = field(default_factory=lambda: np.eye(4, dtype=np.float64))

    # filled in by the tracker once features are extracted
    keypoints: list = field(default_factory=list)
    descriptors: np.ndarray | None = None

    _ids: ClassVar = itertools.count()

    @classmethod
    def create(cls, ts: float, color: np.ndarray, camera: Camera, depth: np.ndarray | None = None) -> "Frame":
        return cls(id=next(cls._ids), ts=ts, color=color, camera=camera, depth=depth)

    @property
    def width(self) -> int:
        return int(self.color.shape[1])

    @property
    def height(self) -> int:
        return int(self.color.shape[0])

    def find_depth(self, kp) -> float:
        """Metric depth under a keypoint, or -1.0 if neither it nor a 4-neighbour has a reading."""
        if self.depth is None:
            return -1.0
        x = int(round(kp.pt[0]))
        y = int(round(kp.pt[1]))
        rows, cols = self.depth.shape[:2]
        for dx, dy in _DEPTH_OFFSETS:
            u, v = x + dx, y + dy
            if not (0 <= u < cols and 0 <= v < rows):
                continue
            d = self.depth[v, u]
            if d != 0:
                return float(d) / self.camera.depth_scale
        return -1.0

    def camera_center(self) -> np.ndarray:
        return inv_T(self.T_c_w)[:3, 3]

    def is_in_frame(self, p_w: np.ndarray) -> bool:
        p_c = self.camera.world2camera(p_w, self.T_c_w)
        if p_c[2] <= 0:
            return False
        u, v = self.camera.camera2pixel(p_c)
        return 0 < u < self.width and 0 < v < self.height
