"""Rigid-body rotations and transforms (SO(3) and SE(3)) on numpy arrays."""

from __future__ import annotations

import math

import numpy as np

_SMALL_ANGLE = 1e-10


def _as_vector(value, size: int, name: str) -> np.ndarray:
    vector = np.asarray(value, dtype=float).reshape(-1)
    if vector.shape != (size,):
        raise ValueError(f"{name} must have {size} elements, got {vector.size}")
    return vector


def _hat(omega: np.ndarray) -> np.ndarray:
    x, y, z = omega
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def _quaternion_to_matrix(w: float, x: float, y: float, z: float) -> np.ndarray:
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
        ]
    )


def _matrix_to_quaternion(r: np.ndarray) -> np.ndarray:
    """Return the unit quaternion (w, x, y, z) of a rotation matrix, with w >= 0."""
    diagonal_sum = float(r[0, 0] + r[1, 1] + r[2, 2])
    if diagonal_sum > 0:
        s = math.sqrt(diagonal_sum + 1.0) * 2
        q = [0.25 * s, (r[2, 1] - r[1, 2]) / s, (r[0, 2] - r[2, 0]) / s, (r[1, 0] - r[0, 1]) / s]
    elif r[0, 0] > r[1, 1] and r[0, 0] > r[2, 2]:
        s = math.sqrt(1.0 + r[0, 0] - r[1, 1] - r[2, 2]) * 2
        q = [(r[2, 1] - r[1, 2]) / s, 0.25 * s, (r[0, 1] + r[1, 0]) / s, (r[0, 2] + r[2, 0]) / s]
    elif r[1, 1] > r[2, 2]:
        s = math.sqrt(1.0 + r[1, 1] - r[0, 0] - r[2, 2]) * 2
        q = [(r[0, 2] - r[2, 0]) / s, (r[0, 1] + r[1, 0]) / s, 0.25 * s, (r[1, 2] + r[2, 1]) / s]
    else:
        s = math.sqrt(1.0 + r[2, 2] - r[0, 0] - r[1, 1]) * 2
        q = [(r[1, 0] - r[0, 1]) / s, (r[0, 2] + r[2, 0]) / s, (r[1, 2] + r[2, 1]) / s, 0.25 * s]
    quaternion = np.array(q)
    quaternion /= np.linalg.norm(quaternion)
    if quaternion[0] < 0:
        quaternion = -quaternion
    return quaternion


def _left_jacobian(omega: np.ndarray) -> np.ndarray:
    theta = float(np.linalg.norm(omega))
    k = _hat(omega)
    k2 = k @ k
    if theta < _SMALL_ANGLE:
        return np.eye(3) + 0.5 * k + k2 / 6.0
    return (
        np.eye(3)
        + (1.0 - math.cos(theta)) / theta**2 * k
        + (theta - math.sin(theta)) / theta**3 * k2
    )


def _transform_points(rotation: np.ndarray, translation, points) -> np.ndarray:
    array = np.asarray(points, dtype=float)
    if array.shape == (3,):
        return rotation @ array + translation
    if array.ndim == 2 and array.shape[1] == 3:
        return array @ rotation.T + translation
    raise ValueError(f"expected a 3-vector or an (N, 3) array, got shape {array.shape}")


class SO3:
    """A rotation in three dimensions, stored as a 3x3 matrix."""

    __slots__ = ("_matrix",)

    def __init__(self, matrix=None):
        if matrix is None:
            self._matrix = np.eye(3)
            return
        array = np.array(matrix, dtype=float)
        if array.shape != (3, 3):
            raise ValueError(f"rotation matrix must be 3x3, got shape {array.shape}")
        self._matrix = array

    @property
    def matrix(self) -> np.ndarray:
        return self._matrix.copy()

    @classmethod
    def from_quaternion(cls, quaternion) -> SO3:
        """Build a rotation from a quaternion given as (w, x, y, z)."""
        q = _as_vector(quaternion, 4, "quaternion")
        norm = np.linalg.norm(q)
        if norm == 0:
            raise ValueError("quaternion must not be zero")
        return cls(_quaternion_to_matrix(*(q / norm)))

    @classmethod
    def exp(cls, omega) -> SO3:
        """Rotation for the axis-angle vector ``omega``."""
        w = _as_vector(omega, 3, "omega")
        theta = float(np.linalg.norm(w))
        k = _hat(w)
        if theta < _SMALL_ANGLE:
            return cls(np.eye(3) + k + 0.5 * (k @ k))
        return cls(
            np.eye(3)
            + math.sin(theta) / theta * k
            + (1.0 - math.cos(theta)) / theta**2 * (k @ k)
        )

    def log(self) -> np.ndarray:
        """Axis-angle vector of this rotation."""
        w, *vec = _matrix_to_quaternion(self._matrix)
        vec = np.array(vec)
        n = float(np.linalg.norm(vec))
        if n < _SMALL_ANGLE:
            return 2.0 / w * vec * (1.0 - n * n / (3.0 * w * w))
        return 2.0 * math.atan2(n, w) / n * vec

    def unit_quaternion(self) -> np.ndarray:
        """Unit quaternion as (w, x, y, z), with w non-negative."""
        return _matrix_to_quaternion(self._matrix)

    def inverse(self) -> SO3:
        return SO3(self._matrix.T)

    def __mul__(self, other):
        if isinstance(other, SO3):
            return SO3(self._matrix @ other._matrix)
        if isinstance(other, (np.ndarray, list, tuple)):
            return _transform_points(self._matrix, 0.0, other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"SO3({self._matrix.tolist()!r})"


class SE3:
    """A rigid transform: rotation followed by translation."""

    __slots__ = ("_rotation", "_translation")

    def __init__(self, rotation=None, translation=None):
        if rotation is None:
            rotation = SO3()
        elif not isinstance(rotation, SO3):
            rotation = SO3(rotation)
        self._rotation = rotation
        self._translation = (
            np.zeros(3) if translation is None else _as_vector(translation, 3, "translation").copy()
        )

    @property
    def rotation(self) -> SO3:
        return self._rotation

    @property
    def translation(self) -> np.ndarray:
        return self._translation.copy()

    @classmethod
    def identity(cls) -> SE3:
        return cls()

    @classmethod
    def from_quaternion(cls, quaternion, translation) -> SE3:
        """Build a transform from a quaternion (w, x, y, z) and a translation."""
        return cls(SO3.from_quaternion(quaternion), translation)

    @classmethod
    def exp(cls, xi) -> SE3:
        """Transform for the twist ``xi`` = (translation part, rotation part)."""
        twist = _as_vector(xi, 6, "xi")
        rho, omega = twist[:3], twist[3:]
        return cls(SO3.exp(omega), _left_jacobian(omega) @ rho)

    def log(self) -> np.ndarray:
        """Twist (translation part, rotation part) of this transform."""
        omega = self._rotation.log()
        upsilon = np.linalg.solve(_left_jacobian(omega), self._translation)
        return np.concatenate([upsilon, omega])

    def inverse(self) -> SE3:
        r_inv = self._rotation.inverse()
        return SE3(r_inv, -(r_inv.matrix @ self._translation))

    def matrix(self) -> np.ndarray:
        m = np.eye(4)
        m[:3, :3] = self._rotation.matrix
        m[:3, 3] = self._translation
        return m

    def matrix3x4(self) -> np.ndarray:
        return self.matrix()[:3, :]

    def rotation_matrix(self) -> np.ndarray:
        return self._rotation.matrix

    def unit_quaternion(self) -> np.ndarray:
        """Unit quaternion of the rotation as (w, x, y, z)."""
        return self._rotation.unit_quaternion()

    def __mul__(self, other):
        if isinstance(other, SE3):
            return SE3(
                self._rotation * other._rotation,
                self._rotation.matrix @ other._translation + self._translation,
            )
        if isinstance(other, (np.ndarray, list, tuple)):
            return _transform_points(self._rotation.matrix, self._translation, other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"SE3(rotation={self._rotation!r}, translation={self._translation.tolist()!r})"