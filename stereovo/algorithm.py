"""Geometric algorithms shared by the front end and back end."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from stereovo.geometry import SE3

_QUALITY_RATIO = 1e-2


def triangulation(poses: Sequence[SE3], points: Sequence) -> np.ndarray | None:
    """Linear SVD triangulation of one point seen from several poses.

    ``points`` are the observations on each camera's normalised image plane.
    Returns the point in the frame the poses map from, or None when the
    solution is poorly conditioned.
    """
    if len(poses) != len(points):
        raise ValueError("poses and points must have the same length")
    if len(poses) < 2:
        raise ValueError("triangulation needs at least two observations")

    rows = []
    for pose, point in zip(poses, points):
        m = pose.matrix3x4()
        x, y = np.asarray(point, dtype=float)[:2]
        rows.append(x * m[2] - m[0])
        rows.append(y * m[2] - m[1])
    a = np.array(rows)

    _, singular_values, vh = np.linalg.svd(a, full_matrices=False)
    solution = vh[3]
    if solution[3] == 0 or singular_values[2] == 0:
        return None
    if singular_values[3] / singular_values[2] < _QUALITY_RATIO:
        return solution[:3] / solution[3]
    return None


def to_vec2(point) -> np.ndarray:
    """Convert a point with ``x`` and ``y`` attributes, or a pair, to a 2-vector."""
    try:
        return np.array([point.x, point.y], dtype=float)
    except AttributeError:
        x, y = point
        return np.array([x, y], dtype=float)