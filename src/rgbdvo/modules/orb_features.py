# src/rgbdvo/modules/orb_features.py
from __future__ import annotations

import cv2
import numpy as np

FLANN_INDEX_LSH = 6


def _to_gray(image: np.ndarray) -> np.ndarray:
    if image is None:
        raise ValueError("Input image is None")
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    raise ValueError(f"Unsupported image shape: {image.shape}")


class OrbDetector:
    """ORB keypoints and descriptors on a color or grayscale image."""

    def __init__(
        self,
        *,
        nfeatures: int = 500,
        scaleFactor: float = 1.2,
        nlevels: int = 4,
        edgeThreshold: int = 31,
        fastThreshold: int = 20,
    ):
        self.orb = cv2.ORB_create(
            nfeatures=nfeatures,
            scaleFactor=scaleFactor,
            nlevels=nlevels,
            edgeThreshold=edgeThreshold,
            fastThreshold=fastThreshold,
        )

    def detect(self, image: np.ndarray) -> list:
        kps = self.orb.detect(_to_gray(image), None)
        return list(kps) if kps is not None else []

    def describe(self, image: np.ndarray, keypoints: list) -> tuple[list, np.ndarray | None]:
        """
        Returns:
            keypoints: the keypoints that survived description (ORB drops
                those too close to the border)
            descriptors: (N,32) uint8 or None when nothing survived
        """
        if not keypoints:
            return [], None
        kps, des = self.orb.compute(_to_gray(image), keypoints)
        if des is None or kps is None:
            return [], None
        return list(kps), des


class FlannLshMatcher:
    """Approximate nearest-descriptor matching for binary descriptors."""

    def __init__(self, *, table_number: int = 5, key_size: int = 10, multi_probe_level: int = 2, checks: int = 50):
        index_params = dict(
            algorithm=FLANN_INDEX_LSH,
            table_number=table_number,
            key_size=key_size,
            multi_probe_level=multi_probe_level,
        )
        self.flann = cv2.FlannBasedMatcher(index_params, dict(checks=checks))

    def match(self, query: np.ndarray, train: np.ndarray) -> list:
        if query is None or train is None or len(query) == 0 or len(train) == 0:
            return []
        q = np.ascontiguousarray(query, dtype=np.uint8)
        t = np.ascontiguousarray(train, dtype=np.uint8)
        return list(self.flann.match(q, t))
