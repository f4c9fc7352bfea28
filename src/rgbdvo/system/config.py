from __future__ import annotations

from dataclasses import dataclass, fields

import yaml

from ..geom.camera import Camera


@dataclass
class TrackerConfig:
    # ORB
    number_of_features: int = 500
    scale_factor: float = 1.2
    level_pyramid: int = 4
    # matching / pose acceptance
    match_ratio: float = 2.0
    max_num_lost: int = 10
    min_inliers: int = 10
    optimize_iterations: int = 10
    # keyframe thresholds (rad, m)
    keyframe_rotation: float = 0.1
    keyframe_translation: float = 0.1
    # map culling, off unless map_culling is set
    map_point_erase_ratio: float = 0.1
    map_culling: bool = False

    @classmethod
    def from_dict(cls, cfg: dict | None) -> "TrackerConfig":
        cfg = cfg or {}
        kwargs = {}
        for f in fields(cls):
            if f.name in cfg and cfg[f.name] is not None:
                kwargs[f.name] = type(f.default)(cfg[f.name])
        return cls(**kwargs)


def load_config(path: str) -> tuple[TrackerConfig, Camera, dict]:
    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"Config root must be a mapping: {path}")
    if "camera" not in cfg:
        raise ValueError(f"Config is missing the 'camera' section: {path}")

    tracker_cfg = TrackerConfig.from_dict(cfg.get("tracker", {}))
    camera = Camera.from_cfg(cfg["camera"])
    return tracker_cfg, camera, cfg
