from __future__ import annotations

import enum

import numpy as np

from ..geom.se3 import relative_motion
from .config import TrackerConfig
from .estimation import PoseEstimate

# log-norm above which a frame-to-reference motion is treated as a divergent solve
MAX_MOTION_NORM = 5.0


class Rejection(str, enum.Enum):
    INSUFFICIENT_INLIERS = "REJECT_INSUFFICIENT_INLIERS"
    EXCESSIVE_MOTION = "REJECT_EXCESSIVE_MOTION"


class TrackingPolicy:
    def __init__(self, cfg: TrackerConfig):
        self.cfg = cfg

    def motion(self, T_ref_c_w: np.ndarray, T_c_w: np.ndarray) -> np.ndarray:
        """(6,) [translation, rotation] log of the reference-to-current motion."""
        return relative_motion(T_ref_c_w, T_c_w)

    def check_pose(self, T_ref_c_w: np.ndarray, estimate: PoseEstimate) -> Rejection | None:
        """None if the estimate may be committed, otherwise the reason it may not."""
        if estimate.evidence.num_inliers < self.cfg.min_inliers:
            return Rejection.INSUFFICIENT_INLIERS
        if np.linalg.norm(self.motion(T_ref_c_w, estimate.T_c_w)) > MAX_MOTION_NORM:
            return Rejection.EXCESSIVE_MOTION
        return None

    def check_keyframe(self, T_ref_c_w: np.ndarray, T_c_w: np.ndarray) -> bool:
        d = self.motion(T_ref_c_w, T_c_w)
        trans = d[:3]
        rot = d[3:]
        return bool(
            np.linalg.norm(rot) > self.cfg.keyframe_rotation
            or np.linalg.norm(trans) > self.cfg.keyframe_translation
        )
