# src/rgbdvo/modules/triangulate.py
from __future__ import annotations
import numpy as np
import cv2


def triangulate_world_point(
    px0: np.ndarray,        # (2,) pixel in view 0
    px1: np.ndarray,        # (2,) pixel in view 1
    T0_c_w: np.ndarray,     # (4,4) world -> cam0
    T1_c_w: np.ndarray,     # (4,4) world -> cam1
    K: np.ndarray,          # (3,3)
    *,
    min_depth: float = 1e-6,
    min_parallax_rad: float = 1e-3,
) -> np.ndarray | None:
    """
    Returns:
      X_w: (3,) world point, or None if the rays are near parallel or the
      point lands behind either camera
    """
    K64 = np.asarray(K, dtype=np.float64)
    P0 = K64 @ np.asarray(T0_c_w, dtype=np.float64)[:3, :]
    P1 = K64 @ np.asarray(T1_c_w, dtype=np.float64)[:3, :]

    # cv2.triangulatePoints expects 2xN
    p0 = np.asarray(px0, dtype=np.float64).reshape(2, 1)
    p1 = np.asarray(px1, dtype=np.float64).reshape(2, 1)

    # viewing rays in world coordinates
    K_inv = np.linalg.inv(K64)
    r0 = T0_c_w[:3, :3].T @ (K_inv @ np.append(p0, 1.0))
    r1 = T1_c_w[:3, :3].T @ (K_inv @ np.append(p1, 1.0))
    cos_parallax = r0 @ r1 / (np.linalg.norm(r0) * np.linalg.norm(r1))
    if np.arccos(np.clip(cos_parallax, -1.0, 1.0)) < min_parallax_rad:
        return None

    X_h = cv2.triangulatePoints(P0, P1, p0, p1).reshape(4)
    if abs(X_h[3]) < 1e-12:
        return None
    X_w = X_h[:3] / X_h[3]

    # Cheirality: depth > 0 in both cameras
    z0 = (T0_c_w[:3, :3] @ X_w + T0_c_w[:3, 3])[2]
    z1 = (T1_c_w[:3, :3] @ X_w + T1_c_w[:3, 3])[2]
    if z0 <= min_depth or z1 <= min_depth:
        return None
    return X_w
