from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..geom.se3 import Rt_to_T
from .interfaces import Refiner, RobustSolver
from .logger import get_logger
from .matching import Correspondences
from .state import Frame

logger = get_logger(__name__)

# PnP needs at least this many 3D-2D pairs
MIN_PNP_POINTS = 4


@dataclass
class Evidence:
    num_correspondences: int = 0
    num_inliers: int = 0
    inlier_ratio: float = 0.0


@dataclass
class PoseEstimate:
    T_c_w: np.ndarray  # 4x4, refined
    evidence: Evidence
    inlier_ids: list[int]


def estimate_pose(
    frame: Frame,
    ref_frame: Frame,
    corr: Correspondences,
    solver: RobustSolver,
    refiner: Refiner,
    *,
    iterations: int = 10,
) -> PoseEstimate:
    """
    Robust PnP solve followed by reprojection-error refinement of the pose.

    Every inlier map point gets matched_times incremented once. If PnP cannot
    run or fails, the estimate carries zero inliers and the reference pose.
    """
    pts3d = corr.points3d()
    pts2d = corr.points2d()
    ev = Evidence(num_correspondences=len(corr))

    if len(corr) < MIN_PNP_POINTS:
        logger.debug("pnp skipped: %d correspondences", len(corr))
        return PoseEstimate(ref_frame.T_c_w.copy(), ev, [])

    R, t, inliers = solver.solve(pts3d, pts2d, frame.camera.K)
    inliers = np.asarray(inliers, dtype=np.int64).reshape(-1)
    ev.num_inliers = int(inliers.size)
    ev.inlier_ratio = float(ev.num_inliers) / float(len(corr))
    logger.debug("pnp inliers: %d", ev.num_inliers)

    if ev.num_inliers == 0:
        return PoseEstimate(ref_frame.T_c_w.copy(), ev, [])

    T_pnp = Rt_to_T(R, t)
    for i in inliers:
        corr.map_points[i].matched_times += 1

    T_refined = refiner.optimize_pose(T_pnp, pts3d[inliers], pts2d[inliers], frame.camera, iterations)
    return PoseEstimate(T_refined, ev, [corr.map_points[i].id for i in inliers])
