import threading

import cv2
import numpy as np

from rgbdvo.geom.se3 import Rt_to_T
from rgbdvo.system.map import Map, MapPoint
from rgbdvo.system.state import Frame


def _frame(camera, depth=None):
    return Frame.create(0.0, np.zeros((480, 640, 3), np.uint8), camera, depth)


def test_frame_ids_increase(camera):
    a, b = _frame(camera), _frame(camera)
    assert b.id > a.id


def test_find_depth_direct_and_neighbour(camera):
    depth = np.zeros((480, 640), np.uint16)
    depth[100, 200] = 10000
    depth[300, 401] = 5000
    f = _frame(camera, depth)
    assert f.find_depth(cv2.KeyPoint(200.2, 99.8, 7)) == 2.0
    # own pixel empty, right neighbour has a reading
    assert f.find_depth(cv2.KeyPoint(400.0, 300.0, 7)) == 1.0


def test_find_depth_invalid(camera):
    f = _frame(camera, np.zeros((480, 640), np.uint16))
    assert f.find_depth(cv2.KeyPoint(10.0, 10.0, 7)) == -1.0
    # border keypoint, neighbours off-image are skipped
    assert f.find_depth(cv2.KeyPoint(0.0, 0.0, 7)) == -1.0
    assert _frame(camera).find_depth(cv2.KeyPoint(10.0, 10.0, 7)) == -1.0


def test_is_in_frame(camera):
    f = _frame(camera)
    assert f.is_in_frame(np.array([0.0, 0.0, 2.0]))
    assert not f.is_in_frame(np.array([0.0, 0.0, -2.0]))
    assert not f.is_in_frame(np.array([10.0, 0.0, 2.0]))


def test_camera_center(camera):
    f = _frame(camera)
    f.T_c_w = Rt_to_T(np.eye(3), np.array([0.0, 0.0, -1.0]))
    np.testing.assert_allclose(f.camera_center(), [0.0, 0.0, 1.0])


def _point(frame_id=0):
    return MapPoint.create(np.zeros(3), np.array([0.0, 0.0, 1.0]), (1.0, 2.0),
                           np.zeros(32, np.uint8), frame_id, np.eye(4))


def test_map_point_descriptor_is_copied():
    desc = np.zeros(32, np.uint8)
    p = MapPoint.create(np.zeros(3), np.ones(3), (0, 0), desc, 3, np.eye(4))
    desc[0] = 255
    assert p.descriptor[0] == 0
    assert p.observed_frame_ids == [3]
    assert p.visible_times == 0 and p.matched_times == 0 and not p.good


def test_map_insert_enumerate_erase(camera):
    m = Map()
    f = _frame(camera)
    p, q = _point(), _point()
    m.insert_keyframe(f)
    m.insert_map_point(p)
    m.insert_map_point(q)
    assert m.all_keyframes() == [f]
    assert {x.id for x in m.all_map_points()} == {p.id, q.id}
    m.erase_map_point(p.id)
    m.erase_map_point(p.id)
    assert len(m) == 1


def test_map_snapshot_survives_concurrent_inserts():
    m = Map()
    for _ in range(100):
        m.insert_map_point(_point())

    def writer():
        for _ in range(500):
            m.insert_map_point(_point())

    t = threading.Thread(target=writer)
    t.start()
    seen = 0
    for _ in range(50):
        seen = max(seen, sum(1 for _ in m.all_map_points()))
    t.join()
    assert len(m) == 600
    assert seen >= 100
