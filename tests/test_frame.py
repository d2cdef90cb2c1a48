import numpy as np

from stereovo.frame import Frame
from stereovo.geometry import SE3


def test_create_assigns_consecutive_ids():
    a = Frame.create()
    b = Frame.create()
    assert b.id == a.id + 1
    assert a.is_keyframe is False


def test_set_keyframe_assigns_consecutive_keyframe_ids():
    a = Frame.create()
    b = Frame.create()
    a.set_keyframe()
    b.set_keyframe()
    assert a.is_keyframe and b.is_keyframe
    assert b.keyframe_id == a.keyframe_id + 1


def test_default_pose_is_identity():
    frame = Frame()
    assert np.allclose(frame.pose.matrix(), np.eye(4))
    assert frame.features_left == []
    assert frame.features_right == []


def test_pose_round_trip():
    frame = Frame.create()
    pose = SE3.exp([1.0, 2.0, 3.0, 0.1, 0.2, 0.3])
    frame.pose = pose
    assert np.allclose(frame.pose.matrix(), pose.matrix())


def test_constructor_keeps_images():
    left = np.zeros((4, 5), dtype=np.uint8)
    right = np.ones((4, 5), dtype=np.uint8)
    frame = Frame(7, 1.5, SE3.identity(), left, right)
    assert frame.id == 7
    assert frame.time_stamp == 1.5
    assert frame.left_img is left
    assert frame.right_img is right