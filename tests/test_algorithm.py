from types import SimpleNamespace

import numpy as np
import pytest

from stereovo.algorithm import to_vec2, triangulation
from stereovo.geometry import SE3


def _observe(poses, pt_world):
    points = []
    for pose in poses:
        pc = pose * pt_world
        points.append(pc / pc[2])
    return points


def test_triangulation():
    pt_world = np.array([30.0, 20.0, 10.0])
    poses = [
        SE3.from_quaternion([0, 0, 0, 1], [0, 0, 0]),
        SE3.from_quaternion([0, 0, 0, 1], [0, -10, 0]),
        SE3.from_quaternion([0, 0, 0, 1], [0, 10, 0]),
    ]
    estimated = triangulation(poses, _observe(poses, pt_world))
    assert estimated is not None
    assert abs(estimated[0] - 30.0) < 0.01
    assert abs(estimated[1] - 20.0) < 0.01
    assert abs(estimated[2] - 10.0) < 0.01


def test_triangulation_stereo_pair():
    pt_world = np.array([1.5, -0.5, 8.0])
    poses = [SE3.identity(), SE3(None, [-0.5, 0.0, 0.0])]
    estimated = triangulation(poses, _observe(poses, pt_world))
    assert estimated is not None
    assert np.allclose(estimated, pt_world, atol=1e-6)


def test_triangulation_length_mismatch():
    with pytest.raises(ValueError):
        triangulation([SE3.identity(), SE3.identity()], [[0.0, 0.0, 1.0]])


def test_triangulation_needs_two_views():
    with pytest.raises(ValueError):
        triangulation([SE3.identity()], [[0.0, 0.0, 1.0]])


def test_to_vec2_from_attributes():
    assert np.allclose(to_vec2(SimpleNamespace(x=3.5, y=-1.0)), [3.5, -1.0])


def test_to_vec2_from_pair():
    assert np.allclose(to_vec2((2, 7)), [2.0, 7.0])