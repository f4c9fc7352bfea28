from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from .interfaces import Matcher
from .logger import get_logger
from .map import Map, MapPoint
from .state import Frame

logger = get_logger(__name__)

# absolute distance floor of the ratio test (Hamming distance for ORB)
MATCH_DISTANCE_FLOOR = 30.0


@dataclass
class Correspondences:
    map_points: list[MapPoint] = field(default_factory=list)
    pixels: dict[int, np.ndarray] = field(default_factory=dict)  # map point id -> observed pixel
    keypoint_indices: set[int] = field(default_factory=set)
    num_candidates: int = 0

    def __len__(self) -> int:
        return len(self.map_points)

    def points3d(self) -> np.ndarray:
        if not self.map_points:
            return np.zeros((0, 3), np.float64)
        return np.array([p.pos for p in self.map_points], dtype=np.float64)

    def points2d(self) -> np.ndarray:
        if not self.map_points:
            return np.zeros((0, 2), np.float64)
        return np.array([self.pixels[p.id] for p in self.map_points], dtype=np.float64)


def filter_matches(matches: Sequence, match_ratio: float, floor: float = MATCH_DISTANCE_FLOOR) -> list:
    """
    Keep matches with distance < max(min_distance * match_ratio, floor).

    The floor governs when every distance is already small, so a frame that
    matches well is not thinned out by the ratio alone.
    """
    if len(matches) == 0:
        return []
    min_dis = min(m.distance for m in matches)
    thresh = max(min_dis * match_ratio, floor)
    return [m for m in matches if m.distance < thresh]


def select_candidates(frame: Frame, map_: Map) -> list[MapPoint]:
    """Map points projecting into the frame under its current pose guess."""
    candidates = []
    for p in map_.all_map_points():
        if frame.is_in_frame(p.pos):
            p.visible_times += 1
            candidates.append(p)
    return candidates


def match_frame_to_map(frame: Frame, map_: Map, matcher: Matcher, match_ratio: float) -> Correspondences:
    corr = Correspondences()
    candidates = select_candidates(frame, map_)
    corr.num_candidates = len(candidates)

    if not candidates or frame.descriptors is None or len(frame.descriptors) == 0:
        logger.debug("nothing to match: %d candidates, %d keypoints", len(candidates), len(frame.keypoints))
        return corr

    desc_map = np.array([p.descriptor for p in candidates])
    matches = matcher.match(desc_map, frame.descriptors)
    logger.debug("matches size: %d", len(matches))

    for m in filter_matches(matches, match_ratio):
        p = candidates[m.queryIdx]
        if p.id not in corr.pixels:
            corr.map_points.append(p)
        corr.pixels[p.id] = np.asarray(frame.keypoints[m.trainIdx].pt, dtype=np.float64)
        corr.keypoint_indices.add(int(m.trainIdx))

    logger.debug("good matches: %d / %d candidates", len(corr), corr.num_candidates)
    return corr
