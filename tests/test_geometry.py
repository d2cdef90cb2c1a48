import math

import numpy as np
import pytest

from stereovo.geometry import SE3, SO3


@pytest.mark.parametrize(
    "omega",
    [
        [0.1, -0.2, 0.3],
        [1e-12, 0.0, 0.0],
        [0.0, 0.0, 3.0],
        [1.0, 1.0, -1.0],
    ],
)
def test_so3_exp_log_round_trip(omega):
    assert np.allclose(SO3.exp(omega).log(), omega, atol=1e-9)


def test_so3_exp_is_orthonormal():
    r = SO3.exp([0.4, -1.1, 0.7]).matrix
    assert np.allclose(r @ r.T, np.eye(3))
    assert math.isclose(np.linalg.det(r), 1.0)


def test_so3_inverse_composes_to_identity():
    r = SO3.exp([0.3, 0.2, -0.5])
    assert np.allclose((r * r.inverse()).matrix, np.eye(3))


def test_so3_rejects_bad_shape():
    with pytest.raises(ValueError):
        SO3(np.eye(4))


def test_so3_log_at_pi():
    log = SO3.exp([0.0, 0.0, math.pi]).log()
    assert math.isclose(np.linalg.norm(log), math.pi, rel_tol=1e-9)
    assert np.allclose(np.abs(log), [0.0, 0.0, math.pi])


def test_quaternion_half_turn_about_z():
    pose = SE3.from_quaternion([0, 0, 0, 1], [0, 0, 0])
    assert np.allclose(pose.rotation_matrix(), np.diag([-1.0, -1.0, 1.0]))


def test_from_quaternion_normalises():
    a = SE3.from_quaternion([2.0, 0.0, 0.0, 2.0], [1, 2, 3])
    b = SE3.from_quaternion([1.0, 0.0, 0.0, 1.0], [1, 2, 3])
    assert np.allclose(a.matrix(), b.matrix())


def test_from_quaternion_rejects_zero():
    with pytest.raises(ValueError):
        SE3.from_quaternion([0, 0, 0, 0], [0, 0, 0])


def test_unit_quaternion_round_trip():
    q = np.array([0.5, 0.5, -0.5, 0.5])
    pose = SE3.from_quaternion(q, [0, 0, 0])
    assert np.allclose(pose.unit_quaternion(), q)


@pytest.mark.parametrize(
    "xi",
    [
        [1.0, 2.0, 3.0, 0.1, -0.2, 0.3],
        [0.5, 0.0, -0.5, 0.0, 0.0, 0.0],
        [-1.0, 4.0, 2.0, 2.0, -1.0, 0.5],
    ],
)
def test_se3_exp_log_round_trip(xi):
    assert np.allclose(SE3.exp(xi).log(), xi, atol=1e-9)


def test_se3_identity_log_is_zero():
    assert np.allclose(SE3.identity().log(), np.zeros(6))


def test_se3_inverse():
    pose = SE3.exp([1.0, -2.0, 0.5, 0.3, 0.1, -0.4])
    assert np.allclose((pose * pose.inverse()).matrix(), np.eye(4))
    assert np.allclose((pose.inverse() * pose).matrix(), np.eye(4))


def test_se3_point_matches_homogeneous_matrix():
    pose = SE3.exp([0.2, 0.1, -0.3, 0.5, -0.2, 0.1])
    p = np.array([3.0, -1.0, 2.0])
    expected = (pose.matrix() @ np.append(p, 1.0))[:3]
    assert np.allclose(pose * p, expected)


def test_se3_transforms_point_arrays():
    pose = SE3.exp([0.2, 0.1, -0.3, 0.5, -0.2, 0.1])
    points = np.array([[1.0, 2.0, 3.0], [-1.0, 0.0, 4.0]])
    out = pose * points
    assert np.allclose(out[1], pose * points[1])


def test_se3_composition_is_associative():
    a = SE3.exp([1, 0, 0, 0.1, 0.2, 0.3])
    b = SE3.exp([0, 1, 0, -0.3, 0.1, 0.0])
    c = SE3.exp([0, 0, 1, 0.0, 0.4, -0.2])
    assert np.allclose(((a * b) * c).matrix(), (a * (b * c)).matrix())


def test_matrix3x4_is_top_of_matrix():
    pose = SE3.exp([1, 2, 3, 0.1, 0.2, 0.3])
    assert np.allclose(pose.matrix3x4(), pose.matrix()[:3])


def test_translation_is_kept():
    pose = SE3(SO3(), [4.0, 5.0, 6.0])
    assert np.allclose(pose.translation, [4.0, 5.0, 6.0])
    assert np.allclose(pose * np.zeros(3), [4.0, 5.0, 6.0])