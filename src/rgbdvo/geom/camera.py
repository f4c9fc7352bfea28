from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .se3 import inv_T, transform_points


@dataclass
class Camera:
    """Pinhole RGB-D camera. Poses passed in are T_c_w (world -> camera)."""
    fx: float
    fy: float
    cx: float
    cy: float
    depth_scale: float = 5000.0

    @property
    def K(self) -> np.ndarray:
        return np.array([
            [self.fx, 0.0, self.cx],
            [0.0, self.fy, self.cy],
            [0.0, 0.0, 1.0],
        ], dtype=np.float64)

    def world2camera(self, p_w: np.ndarray, T_c_w: np.ndarray) -> np.ndarray:
        return transform_points(T_c_w, p_w)

    def camera2world(self, p_c: np.ndarray, T_c_w: np.ndarray) -> np.ndarray:
        return transform_points(inv_T(T_c_w), p_c)

    def camera2pixel(self, p_c: np.ndarray) -> np.ndarray:
        p_c = np.asarray(p_c, dtype=np.float64)
        x, y, z = p_c[..., 0], p_c[..., 1], p_c[..., 2]
        return np.stack([self.fx * x / z + self.cx, self.fy * y / z + self.cy], axis=-1)

    def pixel2camera(self, p_p: np.ndarray, depth: float = 1.0) -> np.ndarray:
        u, v = float(p_p[0]), float(p_p[1])
        return np.array([
            (u - self.cx) * depth / self.fx,
            (v - self.cy) * depth / self.fy,
            depth,
        ], dtype=np.float64)

    def world2pixel(self, p_w: np.ndarray, T_c_w: np.ndarray) -> np.ndarray:
        return self.camera2pixel(self.world2camera(p_w, T_c_w))

    def pixel2world(self, p_p: np.ndarray, T_c_w: np.ndarray, depth: float = 1.0) -> np.ndarray:
        return self.camera2world(self.pixel2camera(p_p, depth), T_c_w)

    @classmethod
    def from_cfg(cls, cfg: dict) -> "Camera":
        return cls(
            fx=float(cfg["fx"]),
            fy=float(cfg["fy"]),
            cx=float(cfg["cx"]),
            cy=float(cfg["cy"]),
            depth_scale=float(cfg.get("depth_scale", 5000.0)),
        )
