from pathlib import Path

import pytest
import yaml

from rgbdvo.system.config import TrackerConfig, load_config

DEFAULT_YAML = Path(__file__).resolve().parents[1] / "configs" / "default.yaml"


def test_defaults():
    cfg = TrackerConfig.from_dict(None)
    assert cfg.match_ratio == 2.0
    assert cfg.max_num_lost == 10
    assert cfg.min_inliers == 10
    assert cfg.optimize_iterations == 10
    assert cfg.map_culling is False


def test_from_dict_casts_and_ignores_unknown_keys():
    cfg = TrackerConfig.from_dict({"min_inliers": "25", "match_ratio": 3, "bogus": 1, "max_num_lost": None})
    assert cfg.min_inliers == 25
    assert isinstance(cfg.match_ratio, float) and cfg.match_ratio == 3.0
    assert cfg.max_num_lost == 10


def test_load_shipped_config():
    cfg, camera, raw = load_config(str(DEFAULT_YAML))
    assert camera.fx == pytest.approx(517.3)
    assert camera.depth_scale == 5000.0
    assert cfg.keyframe_rotation == pytest.approx(0.1)
    assert raw["dataset"]["step"] == 1


def test_load_config_requires_camera(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(yaml.safe_dump({"tracker": {"min_inliers": 5}}))
    with pytest.raises(ValueError, match="camera"):
        load_config(str(path))


def test_load_config_partial_tracker_section(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(yaml.safe_dump({
        "camera": {"fx": 1.0, "fy": 1.0, "cx": 0.0, "cy": 0.0, "depth_scale": 1000},
        "tracker": {"keyframe_translation": 0.25, "map_culling": True},
    }))
    cfg, camera, _ = load_config(str(path))
    assert cfg.keyframe_translation == 0.25
    assert cfg.map_culling is True
    assert cfg.number_of_features == 500
    assert camera.depth_scale == 1000.0
