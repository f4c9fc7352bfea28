from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import ClassVar

import numpy as np

from .state import Frame


@dataclass(eq=False)
class MapPoint:
    id: int
    pos: np.ndarray          # (3,) world position
    norm: np.ndarray         # (3,) unit viewing direction
    descriptor: np.ndarray   # descriptor row, never modified after creation
    visible_times: int = 0   # selected as a matching candidate
    matched_times: int = 0   # confirmed as a pose inlier
    good: bool = False

    # observation history: frame id, pixel and a copy of that frame's T_c_w
    observed_frame_ids: list[int] = field(default_factory=list)
    observed_pixels: list[np.ndarray] = field(default_factory=list)
    observed_poses: list[np.ndarray] = field(default_factory=list)

    _ids: ClassVar = itertools.count()

    @classmethod
    def create(cls, pos, norm, pixel, descriptor, frame_id: int, T_c_w: np.ndarray) -> "MapPoint":
        return cls(
            id=next(cls._ids),
            pos=np.asarray(pos, dtype=np.float64),
            norm=np.asarray(norm, dtype=np.float64),
            descriptor=np.array(descriptor, copy=True),
            observed_frame_ids=[frame_id],
            observed_pixels=[np.asarray(pixel, dtype=np.float64)],
            observed_poses=[np.array(T_c_w, dtype=np.float64, copy=True)],
        )

    def replace_last_observation(self, frame_id: int, pixel, T_c_w: np.ndarray) -> None:
        self.observed_frame_ids[-1] = frame_id
        self.observed_pixels[-1] = np.asarray(pixel, dtype=np.float64)
        self.observed_poses[-1] = np.array(T_c_w, dtype=np.float64, copy=True)


class Map:
    """
    Owner of keyframes and map points, both keyed by id.

    Every method takes the same re-entrant lock, so a viewer thread can
    enumerate while the tracker inserts. Enumeration returns snapshots.
    """

    def __init__(self):
        self.keyframes: dict[int, Frame] = {}
        self.map_points: dict[int, MapPoint] = {}
        self._lock = threading.RLock()

    def insert_keyframe(self, frame: Frame) -> None:
        with self._lock:
            self.keyframes[frame.id] = frame

    def insert_map_point(self, point: MapPoint) -> None:
        with self._lock:
            self.map_points[point.id] = point

    def erase_map_point(self, point_id: int) -> None:
        with self._lock:
            self.map_points.pop(point_id, None)

    def all_keyframes(self) -> list[Frame]:
        with self._lock:
            return list(self.keyframes.values())

    def all_map_points(self) -> list[MapPoint]:
        with self._lock:
            return list(self.map_points.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self.map_points)
