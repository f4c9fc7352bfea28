from __future__ import annotations

import numpy as np
from scipy.spatial.transform import Rotation

# Tangent vectors follow the (translation, rotation) ordering: xi = [rho, phi].


def Rt_to_T(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    T = np.eye(4)
    T[:3, :3] = R
    T[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
    return T


def inv_T(T: np.ndarray) -> np.ndarray:
    R = T[:3, :3]; t = T[:3, 3]
    Ti = np.eye(4)
    Ti[:3, :3] = R.T
    Ti[:3, 3] = -R.T @ t
    return Ti


def transform_points(T: np.ndarray, X: np.ndarray) -> np.ndarray:
    """Apply T to a single point (3,) or a batch (N,3)."""
    X = np.asarray(X, dtype=np.float64)
    return X @ T[:3, :3].T + T[:3, 3]


def hat(w: np.ndarray) -> np.ndarray:
    wx, wy, wz = np.asarray(w, dtype=np.float64).reshape(3)
    return np.array([
        [0.0, -wz, wy],
        [wz, 0.0, -wx],
        [-wy, wx, 0.0],
    ])


def so3_exp(phi: np.ndarray) -> np.ndarray:
    return Rotation.from_rotvec(np.asarray(phi, dtype=np.float64).reshape(3)).as_matrix()


def so3_log(R: np.ndarray) -> np.ndarray:
    return Rotation.from_matrix(np.asarray(R, dtype=np.float64)).as_rotvec()


def se3_exp(xi: np.ndarray) -> np.ndarray:
    xi = np.asarray(xi, dtype=np.float64).reshape(6)
    rho, phi = xi[:3], xi[3:]
    theta = float(np.linalg.norm(phi))
    W = hat(phi)
    if theta < 1e-10:
        V = np.eye(3) + 0.5 * W + (W @ W) / 6.0
    else:
        V = (
            np.eye(3)
            + (1.0 - np.cos(theta)) / theta**2 * W
            + (theta - np.sin(theta)) / theta**3 * (W @ W)
        )
    return Rt_to_T(so3_exp(phi), V @ rho)


def se3_log(T: np.ndarray) -> np.ndarray:
    """
    Vector logarithm of a rigid transform.

    Returns:
        (6,) array [upsilon, omega]: the first three entries are the
        translational part, the last three the rotation vector.
    """
    phi = so3_log(T[:3, :3])
    theta = float(np.linalg.norm(phi))
    W = hat(phi)
    if theta < 1e-10:
        V_inv = np.eye(3) - 0.5 * W + (W @ W) / 12.0
    else:
        half = 0.5 * theta
        V_inv = (
            np.eye(3)
            - 0.5 * W
            + (1.0 - theta * np.cos(half) / (2.0 * np.sin(half))) / theta**2 * (W @ W)
        )
    upsilon = V_inv @ T[:3, 3]
    return np.concatenate([upsilon, phi])


def relative_motion(T_ref_c_w: np.ndarray, T_cur_c_w: np.ndarray) -> np.ndarray:
    """log(T_ref_c_w * T_cur_c_w^-1): the motion of the current camera seen from the reference."""
    return se3_log(T_ref_c_w @ inv_T(T_cur_c_w))
