from __future__ import annotations

import numpy as np

from ..modules.triangulate import triangulate_world_point
from .logger import get_logger
from .map import Map, MapPoint
from .matching import Correspondences
from .state import Frame

logger = get_logger(__name__)


def _new_map_point(frame: Frame, depth_frame: Frame, idx: int) -> MapPoint | None:
    """Back-project keypoint idx of frame using depth_frame's depth; None on invalid depth."""
    kp = frame.keypoints[idx]
    d = depth_frame.find_depth(kp)
    if d < 0:
        return None
    p_world = frame.camera.pixel2world(np.asarray(kp.pt), frame.T_c_w, d)
    n = p_world - depth_frame.camera_center()
    n /= np.linalg.norm(n)
    return MapPoint.create(p_world, n, kp.pt, frame.descriptors[idx], frame.id, frame.T_c_w)


def bootstrap_map(frame: Frame, map_: Map) -> int:
    """One map point per keypoint with valid depth. Returns the number added."""
    added = 0
    for i in range(len(frame.keypoints)):
        p = _new_map_point(frame, frame, i)
        if p is None:
            continue
        map_.insert_map_point(p)
        added += 1
    return added


def grow_map(frame: Frame, ref_frame: Frame, map_: Map, corr: Correspondences) -> int:
    """Add map points for keypoints of frame that matched no existing point."""
    added = 0
    for i in range(len(frame.keypoints)):
        if i in corr.keypoint_indices:
            continue
        p = _new_map_point(frame, ref_frame, i)
        if p is None:
            continue
        map_.insert_map_point(p)
        added += 1
    logger.debug("new map points: %d", added)
    return added


def add_keyframe(frame: Frame, map_: Map) -> None:
    """Register frame as a keyframe, bootstrapping the map if it is the first."""
    logger.info("insert keyframe %d", frame.id)
    if not map_.all_keyframes():
        n = bootstrap_map(frame, map_)
        logger.info("map initialized with %d points", n)
    map_.insert_keyframe(frame)


def view_angle(frame: Frame, point: MapPoint) -> float:
    n = point.pos - frame.camera_center()
    n /= np.linalg.norm(n)
    return float(np.arccos(np.clip(n @ point.norm, -1.0, 1.0)))


class MapCuller:
    """
    Drops map points that are rarely matched, out of view or seen from too
    steep an angle, and re-triangulates points not yet marked good from their
    last observation and the current one.
    """

    MAX_VIEW_ANGLE = np.pi / 6.0
    MAX_MAP_POINTS = 1000
    ERASE_RATIO_STEP = 0.05

    def __init__(self, erase_ratio: float = 0.1):
        self.base_erase_ratio = erase_ratio
        self.erase_ratio = erase_ratio

    def cull(self, frame: Frame, map_: Map, corr: Correspondences) -> dict:
        stats = {"erased": 0, "triangulated": 0}
        for p in map_.all_map_points():
            if not frame.is_in_frame(p.pos):
                map_.erase_map_point(p.id)
                stats["erased"] += 1
                continue
            if p.visible_times > 0 and p.matched_times / p.visible_times < self.erase_ratio:
                map_.erase_map_point(p.id)
                stats["erased"] += 1
                continue
            if view_angle(frame, p) > self.MAX_VIEW_ANGLE:
                map_.erase_map_point(p.id)
                stats["erased"] += 1
                continue
            if not p.good and p.id in corr.pixels:
                if self._retriangulate(p, frame, corr.pixels[p.id]):
                    stats["triangulated"] += 1

        if len(map_) > self.MAX_MAP_POINTS:
            self.erase_ratio += self.ERASE_RATIO_STEP
        else:
            self.erase_ratio = self.base_erase_ratio

        logger.debug("culled %d, triangulated %d, total map points %d",
                     stats["erased"], stats["triangulated"], len(map_))
        return stats

    def _retriangulate(self, p: MapPoint, frame: Frame, cur_px: np.ndarray) -> bool:
        if p.observed_frame_ids[-1] != frame.id:
            X = triangulate_world_point(
                p.observed_pixels[-1], cur_px, p.observed_poses[-1], frame.T_c_w, frame.camera.K
            )
            if X is not None:
                p.pos = X
                p.good = True
                return True
        p.replace_last_observation(frame.id, cur_px, frame.T_c_w)
        return False
