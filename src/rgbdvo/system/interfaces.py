"""
Capabilities the tracker calls into. Any object with these methods works;
rgbdvo.modules holds the OpenCV / scipy backed defaults.
"""
from __future__ import annotations

from typing import Protocol, Sequence

import numpy as np

from ..geom.camera import Camera
from .state import Frame


class Detector(Protocol):
    def detect(self, image: np.ndarray) -> list: ...

    def describe(self, image: np.ndarray, keypoints: list) -> tuple[list, np.ndarray | None]: ...


class Matcher(Protocol):
    # returns objects exposing queryIdx, trainIdx, distance (cv2.DMatch-like)
    def match(self, query: np.ndarray, train: np.ndarray) -> Sequence: ...


class RobustSolver(Protocol):
    def solve(
        self, points3d: np.ndarray, points2d: np.ndarray, K: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]: ...


class Refiner(Protocol):
    def optimize_pose(
        self,
        T_init: np.ndarray,
        points3d: np.ndarray,
        points2d: np.ndarray,
        camera: Camera,
        iterations: int,
    ) -> np.ndarray: ...


class Viewer(Protocol):
    def set_current_frame(self, frame: Frame) -> None: ...

    def update_map(self) -> None: ...
