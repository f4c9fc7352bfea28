# src/rgbdvo/modules/pnp.py
from __future__ import annotations

import cv2
import numpy as np


class RansacPnPSolver:
    def __init__(
        self,
        *,
        iterations: int = 100,
        reproj_thresh_px: float = 4.0,
        confidence: float = 0.99,
    ):
        self.iterations = iterations
        self.reproj_thresh_px = reproj_thresh_px
        self.confidence = confidence

    def solve(
        self, points3d: np.ndarray, points2d: np.ndarray, K: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Estimate T_c_w from world points and their pixels.

        Args:
            points3d: (N,3) world points
            points2d: (N,2) pixels
            K: (3,3) intrinsics, no distortion

        Returns:
            R: (3,3), t: (3,), inliers: (M,) indices into the inputs.
            On failure R=I, t=0 and inliers is empty.
        """
        I = np.eye(3, dtype=np.float64)
        none = np.zeros((0,), np.int64)
        if points3d.shape[0] < 4 or points3d.shape[0] != points2d.shape[0]:
            return I, np.zeros(3), none

        # Ensure float64 for OpenCV numerical stability
        p3 = np.ascontiguousarray(points3d, dtype=np.float64).reshape(-1, 1, 3)
        p2 = np.ascontiguousarray(points2d, dtype=np.float64).reshape(-1, 1, 2)
        K64 = np.asarray(K, dtype=np.float64)

        ok, rvec, tvec, inliers = cv2.solvePnPRansac(
            p3,
            p2,
            K64,
            None,
            useExtrinsicGuess=False,
            iterationsCount=self.iterations,
            reprojectionError=self.reproj_thresh_px,
            confidence=self.confidence,
        )
        if not ok or inliers is None:
            return I, np.zeros(3), none

        R, _ = cv2.Rodrigues(rvec)
        return R, tvec.reshape(3), inliers.reshape(-1).astype(np.int64)
