# src/rgbdvo/modules/refine.py
from __future__ import annotations

import numpy as np
from scipy.optimize import least_squares

from ..geom.camera import Camera
from ..geom.se3 import se3_exp


def reprojection_residuals(T_c_w: np.ndarray, points3d: np.ndarray, points2d: np.ndarray, camera: Camera) -> np.ndarray:
    """(2N,) pixel residuals, projection minus observation."""
    return (camera.world2pixel(points3d, T_c_w) - points2d).reshape(-1)


class PoseRefiner:
    """
    Single-pose bundle adjustment: only T_c_w is free, the 3D points are fixed
    and each inlier contributes one unit-weight reprojection term. The pose is
    updated as exp(xi) * T_init.
    """

    def __init__(self, *, method: str = "trf"):
        self.method = method

    def optimize_pose(
        self,
        T_init: np.ndarray,
        points3d: np.ndarray,
        points2d: np.ndarray,
        camera: Camera,
        iterations: int = 10,
    ) -> np.ndarray:
        if points3d.shape[0] == 0:
            return T_init.copy()

        p3 = np.asarray(points3d, dtype=np.float64)
        p2 = np.asarray(points2d, dtype=np.float64)

        def fun(xi):
            return reprojection_residuals(se3_exp(xi) @ T_init, p3, p2, camera)

        x0 = np.zeros(6, dtype=np.float64)
        if not np.all(np.isfinite(fun(x0))):
            return T_init.copy()

        result = least_squares(fun, x0, method=self.method, max_nfev=iterations)
        return se3_exp(result.x) @ T_init
