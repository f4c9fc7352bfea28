# src/rgbdvo/system/runner.py
from __future__ import annotations

import numpy as np

from ..modules.orb_features import FlannLshMatcher, OrbDetector
from ..modules.pnp import RansacPnPSolver
from ..modules.refine import PoseRefiner
from .config import TrackerConfig
from .interfaces import Detector, Matcher, Refiner, RobustSolver, Viewer
from .estimation import PoseEstimate, estimate_pose
from .logger import get_logger
from .map import Map
from .mapping import MapCuller, add_keyframe, grow_map
from .matching import Correspondences, match_frame_to_map
from .policy import TrackingPolicy
from .state import Frame, TrackingState
from .telemetry import Telemetry
from .viewer import NullViewer

logger = get_logger(__name__)


def transition(
    state: TrackingState, num_lost: int, accepted: bool | None, max_num_lost: int
) -> tuple[TrackingState, int, bool]:
    """
    Tracking state machine.

    Args:
        state: current state
        num_lost: consecutive rejected frames so far
        accepted: outcome of the pose gate, None when no tracking was attempted
        max_num_lost: rejections tolerated before LOST

    Returns:
        (next state, next num_lost, value add_frame reports)
    """
    if state is TrackingState.INITIALIZING:
        return TrackingState.TRACKING, 0, True
    if state is TrackingState.LOST:
        return TrackingState.LOST, num_lost, True
    if accepted:
        return TrackingState.TRACKING, 0, True
    num_lost += 1
    if num_lost > max_num_lost:
        return TrackingState.LOST, num_lost, False
    return TrackingState.TRACKING, num_lost, False


class Tracker:
    """
    Frame-to-map tracking front-end.

    Frames are fed serially through add_frame. The first frame becomes the
    first keyframe and seeds the map from its depth; each later frame is
    matched against the visible map points, localized with PnP + pose
    refinement, and if the pose is accepted it extends the map and may become
    the next keyframe.
    """

    def __init__(
        self,
        cfg: TrackerConfig | None = None,
        map_: Map | None = None,
        *,
        detector: Detector | None = None,
        matcher: Matcher | None = None,
        solver: RobustSolver | None = None,
        refiner: Refiner | None = None,
        viewer: Viewer | None = None,
        telemetry: Telemetry | None = None,
    ):
        self.cfg = cfg or TrackerConfig()
        self.map = map_ if map_ is not None else Map()
        self.detector = detector or OrbDetector(
            nfeatures=self.cfg.number_of_features,
            scaleFactor=self.cfg.scale_factor,
            nlevels=self.cfg.level_pyramid,
        )
        self.matcher = matcher or FlannLshMatcher()
        self.solver = solver or RansacPnPSolver()
        self.refiner = refiner or PoseRefiner()
        self.viewer = viewer or NullViewer()
        self.telemetry = telemetry or Telemetry()
        self.policy = TrackingPolicy(self.cfg)
        self.culler = MapCuller(self.cfg.map_point_erase_ratio) if self.cfg.map_culling else None

        self.state = TrackingState.INITIALIZING
        self.ref_frame: Frame | None = None
        self.curr_frame: Frame | None = None
        self.num_lost = 0
        self.num_inliers = 0

    def add_frame(self, frame: Frame) -> bool:
        logger.debug("current status: %s", self.state.name)

        if self.state is TrackingState.LOST:
            logger.info("vo has lost.")
            self.state, self.num_lost, ok = transition(self.state, self.num_lost, None, self.cfg.max_num_lost)
            self.telemetry.log_frame(frame.id, {"ts": float(frame.ts), "state": self.state.name, "reason": "LOST"})
            return ok

        if self.state is TrackingState.INITIALIZING:
            self.curr_frame = self.ref_frame = frame
            self._extract_features(frame)
            add_keyframe(frame, self.map)
            self.state, self.num_lost, ok = transition(self.state, self.num_lost, None, self.cfg.max_num_lost)
            self.telemetry.log_frame(frame.id, {
                "ts": float(frame.ts),
                "state": self.state.name,
                "accepted": True,
                "reason": "INIT",
                "keyframe": True,
                "num_map_points": len(self.map),
            })
            return ok

        return self._track(frame)

    def _extract_features(self, frame: Frame) -> None:
        kps = self.detector.detect(frame.color)
        frame.keypoints, frame.descriptors = self.detector.describe(frame.color, kps)

    def _track(self, frame: Frame) -> bool:
        ref = self.ref_frame
        self.curr_frame = frame
        # initial guess, used to decide which map points are in view
        frame.T_c_w = ref.T_c_w.copy()
        self._extract_features(frame)

        corr = match_frame_to_map(frame, self.map, self.matcher, self.cfg.match_ratio)
        estimate = estimate_pose(
            frame, ref, corr, self.solver, self.refiner, iterations=self.cfg.optimize_iterations
        )
        self.num_inliers = estimate.evidence.num_inliers
        rejection = self.policy.check_pose(ref.T_c_w, estimate)

        rec = self._record(frame, corr, estimate)
        if rejection is not None:
            logger.info("frame %d rejected: %s (inliers %d)", frame.id, rejection.value, self.num_inliers)
            self.state, self.num_lost, ok = transition(self.state, self.num_lost, False, self.cfg.max_num_lost)
            if self.state is TrackingState.LOST:
                logger.warning("lost after %d consecutive rejected frames", self.num_lost)
            rec.update(accepted=False, reason=rejection.value, state=self.state.name)
            self.telemetry.log_frame(frame.id, rec)
            return ok

        frame.T_c_w = estimate.T_c_w
        if self.culler is not None:
            rec["culling"] = self.culler.cull(frame, self.map, corr)
        rec["num_new_points"] = grow_map(frame, ref, self.map, corr)
        self.state, self.num_lost, ok = transition(self.state, self.num_lost, True, self.cfg.max_num_lost)
        self.viewer.set_current_frame(frame)
        self.viewer.update_map()

        is_keyframe = self.policy.check_keyframe(ref.T_c_w, frame.T_c_w)
        if is_keyframe:
            add_keyframe(frame, self.map)
            self.ref_frame = frame

        rec.update(accepted=True, reason="ACCEPT", state=self.state.name,
                   keyframe=is_keyframe, num_map_points=len(self.map))
        self.telemetry.log_frame(frame.id, rec)
        return ok

    def _record(self, frame: Frame, corr: Correspondences, estimate: PoseEstimate) -> dict:
        return {
            "ts": float(frame.ts),
            "num_keypoints": len(frame.keypoints),
            "num_candidates": int(corr.num_candidates),
            "num_matches": len(corr),
            "num_inliers": int(estimate.evidence.num_inliers),
            "inlier_ratio": float(estimate.evidence.inlier_ratio),
            "motion": float(np.linalg.norm(self.policy.motion(self.ref_frame.T_c_w, estimate.T_c_w))),
            "keyframe": False,
        }
