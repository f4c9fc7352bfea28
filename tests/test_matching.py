import numpy as np
import pytest

from conftest import BruteHammingMatcher, Match
from rgbdvo.geom.se3 import Rt_to_T
from rgbdvo.system.map import Map, MapPoint
from rgbdvo.system.matching import filter_matches, match_frame_to_map, select_candidates


def test_ratio_filter_with_floor():
    # min distance 10, ratio 0.5 -> threshold max(5, 30) = 30
    kept = filter_matches([Match(0, 0, 10.0), Match(1, 1, 40.0)], 0.5)
    assert [m.distance for m in kept] == [10.0]


def test_floor_governs_when_all_distances_small():
    matches = [Match(i, i, d) for i, d in enumerate([1.0, 5.0, 20.0, 29.0])]
    assert len(filter_matches(matches, 2.0)) == 4


def test_ratio_governs_when_distances_large():
    matches = [Match(i, i, d) for i, d in enumerate([40.0, 70.0, 79.0, 80.0, 100.0])]
    # threshold = 40 * 2 = 80, strict
    assert [m.distance for m in filter_matches(matches, 2.0)] == [40.0, 70.0, 79.0]


def test_empty_matches():
    assert filter_matches([], 2.0) == []


def test_larger_ratio_never_accepts_fewer():
    rng = np.random.default_rng(1)
    matches = [Match(i, i, float(d)) for i, d in enumerate(rng.uniform(5, 120, size=200))]
    counts = [len(filter_matches(matches, r)) for r in np.linspace(0.1, 6.0, 40)]
    assert counts == sorted(counts)


def _map_from(scene, frame):
    m = Map()
    for i, p in enumerate(scene.points):
        m.insert_map_point(MapPoint.create(p, np.array([0.0, 0.0, 1.0]), (0, 0),
                                           scene.descriptors[i], frame.id, frame.T_c_w))
    return m


def test_visibility_counts_only_points_in_view(scene):
    frame = scene.render(np.eye(4))
    m = _map_from(scene, frame)
    hidden = MapPoint.create(np.array([0.0, 0.0, -3.0]), np.ones(3), (0, 0),
                             np.zeros(32, np.uint8), frame.id, frame.T_c_w)
    m.insert_map_point(hidden)

    candidates = select_candidates(frame, m)
    assert len(candidates) == len(scene.points)
    assert hidden.visible_times == 0
    assert all(p.visible_times == 1 for p in candidates)


def test_match_frame_to_map_perfect_correspondences(scene):
    frame = scene.render(np.eye(4))
    frame.keypoints, frame.descriptors = scene.detector.describe(frame.color, scene.detector.detect(frame.color))
    m = _map_from(scene, frame)

    corr = match_frame_to_map(frame, m, BruteHammingMatcher(), match_ratio=2.0)
    assert len(corr) == len(scene.points) == corr.num_candidates
    assert corr.keypoint_indices == set(range(len(frame.keypoints)))
    for p in corr.map_points:
        np.testing.assert_allclose(corr.pixels[p.id], scene.camera.world2pixel(p.pos, frame.T_c_w), atol=1e-4)
    assert corr.points3d().shape == (len(corr), 3)
    assert corr.points2d().shape == (len(corr), 2)


def test_no_candidates_skips_matcher(scene):
    frame = scene.render(np.eye(4))
    frame.keypoints, frame.descriptors = scene.detector.describe(frame.color, scene.detector.detect(frame.color))
    m = _map_from(scene, frame)
    # look away from every landmark
    frame.T_c_w = Rt_to_T(np.eye(3), np.array([0.0, 0.0, -100.0]))

    matcher = BruteHammingMatcher()
    corr = match_frame_to_map(frame, m, matcher, match_ratio=2.0)
    assert len(corr) == 0 and corr.num_candidates == 0
    assert matcher.calls == 0
    assert corr.points3d().shape == (0, 3)


@pytest.mark.parametrize("descriptors", [None, np.zeros((0, 32), np.uint8)])
def test_frame_without_descriptors(scene, descriptors):
    frame = scene.render(np.eye(4))
    m = _map_from(scene, frame)
    frame.keypoints, frame.descriptors = [], descriptors
    corr = match_frame_to_map(frame, m, BruteHammingMatcher(), match_ratio=2.0)
    assert len(corr) == 0
    # candidates were still counted as visible
    assert corr.num_candidates == len(scene.points)
