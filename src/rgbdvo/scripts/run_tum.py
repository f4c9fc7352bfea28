from __future__ import annotations

import argparse
import logging
from pathlib import Path

import numpy as np
import yaml

from rgbdvo.dataset.tum import TumRgbdSequence
from rgbdvo.geom.se3 import inv_T
from rgbdvo.system.config import load_config
from rgbdvo.system.logger import get_logger
from rgbdvo.system.map import Map
from rgbdvo.system.runner import Tracker
from rgbdvo.system.state import Frame, TrackingState
from rgbdvo.system.telemetry import Telemetry
from rgbdvo.system.viewer import TrajectoryViewer

logger = get_logger("rgbdvo.run_tum")


def _R_to_quat_xyzw(R: np.ndarray) -> np.ndarray:
    # Returns quaternion [x,y,z,w] from rotation matrix.
    m = R.astype(np.float64)
    trace = float(np.trace(m))
    if trace > 0.0:
        s = np.sqrt(trace + 1.0) * 2.0
        qw = 0.25 * s
        qx = (m[2, 1] - m[1, 2]) / s
        qy = (m[0, 2] - m[2, 0]) / s
        qz = (m[1, 0] - m[0, 1]) / s
    else:
        if m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
            s = np.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2]) * 2.0
            qw = (m[2, 1] - m[1, 2]) / s
            qx = 0.25 * s
            qy = (m[0, 1] + m[1, 0]) / s
            qz = (m[0, 2] + m[2, 0]) / s
        elif m[1, 1] > m[2, 2]:
            s = np.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2]) * 2.0
            qw = (m[0, 2] - m[2, 0]) / s
            qx = (m[0, 1] + m[1, 0]) / s
            qy = 0.25 * s
            qz = (m[1, 2] + m[2, 1]) / s
        else:
            s = np.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1]) * 2.0
            qw = (m[1, 0] - m[0, 1]) / s
            qx = (m[0, 2] + m[2, 0]) / s
            qy = (m[1, 2] + m[2, 1]) / s
            qz = 0.25 * s

    q = np.array([qx, qy, qz, qw], dtype=np.float64)
    n = np.linalg.norm(q) + 1e-12
    return q / n


def _write_traj_tum(traj_T_w_c: list[np.ndarray], ts_list: list[float], out_path: str) -> None:
    assert len(traj_T_w_c) == len(ts_list)
    with open(out_path, "w", encoding="utf-8") as f:
        for T, ts in zip(traj_T_w_c, ts_list):
            t = T[:3, 3]
            q = _R_to_quat_xyzw(T[:3, :3])  # x y z w
            f.write(f"{ts:.6f} {t[0]:.6f} {t[1]:.6f} {t[2]:.6f} {q[0]:.6f} {q[1]:.6f} {q[2]:.6f} {q[3]:.6f}\n")


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", type=str, default="configs/default.yaml")
    ap.add_argument("--tum_dir", type=str, required=True, help="Path to TUM RGB-D sequence dir, e.g. .../freiburg1_xyz")
    ap.add_argument("--out_dir", type=str, default="outputs")
    ap.add_argument("--visualize", action="store_true", help="Enable real-time trajectory/map visualization")
    ap.add_argument("--viz_update_every", type=int, default=10, help="Redraw visualization every N tracked frames")
    ap.add_argument("--log_every", type=int, default=50, help="Log progress every N frames")
    ap.add_argument("--verbose", action="store_true", help="Debug logging from the tracker")
    args = ap.parse_args(argv)

    if args.verbose:
        for name in ("rgbdvo.system.runner", "rgbdvo.system.matching",
                     "rgbdvo.system.estimation", "rgbdvo.system.mapping"):
            get_logger(name, level=logging.DEBUG)

    logger.info("Loading config: %s", args.config)
    tracker_cfg, camera, cfg = load_config(args.config)

    dataset_cfg = cfg.get("dataset", {}) or {}
    seq_name = dataset_cfg.get("sequence", Path(args.tum_dir).name)
    out_dir = Path(args.out_dir) / seq_name
    out_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Output dir: %s", out_dir)

    logger.info("Loading TUM sequence: %s", args.tum_dir)
    seq = TumRgbdSequence(args.tum_dir)
    logger.info("Sequence frames: %d", len(seq))

    map_ = Map()
    telemetry = Telemetry()
    viewer = TrajectoryViewer(map_, update_every=args.viz_update_every) if args.visualize else None
    tracker = Tracker(tracker_cfg, map_, viewer=viewer, telemetry=telemetry)

    start = int(dataset_cfg.get("start", 0))
    step_stride = int(dataset_cfg.get("step", 1))
    max_frames = dataset_cfg.get("max_frames", None)
    if max_frames is not None:
        max_frames = int(max_frames)

    traj_T_w_c: list[np.ndarray] = []
    ts_list: list[float] = []
    frame_count = 0

    logger.info("Starting loop: start=%d step=%d max_frames=%s", start, step_stride, max_frames)
    for idx, ts, color, depth in seq.iter_frames(start=start, step=step_stride, max_frames=max_frames):
        frame = Frame.create(ts, color, camera, depth)
        ok = tracker.add_frame(frame)
        frame_count += 1

        if tracker.state is TrackingState.LOST:
            logger.warning("Tracking lost at frame %d, stopping.", idx)
            break
        if ok:
            traj_T_w_c.append(inv_T(frame.T_c_w))
            ts_list.append(ts)

        if args.log_every > 0 and (frame_count % args.log_every == 0):
            logger.info("Frame %d / %s, keyframes %d, map points %d",
                        frame_count, max_frames if max_frames else "?",
                        len(map_.all_keyframes()), len(map_))

    # Save outputs
    traj_path = str(out_dir / "traj.txt")
    metrics_path = str(out_dir / "metrics.json")
    cfg_path = str(out_dir / "config_used.yaml")

    _write_traj_tum(traj_T_w_c, ts_list, traj_path)

    telemetry.dump(metrics_path)

    with open(cfg_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f, sort_keys=False)

    logger.info("wrote: %s", traj_path)
    logger.info("wrote: %s", metrics_path)

    if viewer is not None:
        logger.info("Showing final trajectory. Close the window to exit.")
        viewer.close()


if __name__ == "__main__":
    main()
