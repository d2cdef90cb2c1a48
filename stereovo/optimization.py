"""Graph optimisation of camera poses and landmarks for bundle adjustment.

Vertices hold estimates, edges hold reprojection measurements, and the
optimizer runs Levenberg-Marquardt on the sparse normal equations.
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import spsolve

from stereovo.geometry import SE3

_TAU = 1e-5
_MAX_TRIALS = 10
_GOOD_STEP_LOWER_SCALE = 1.0 / 3.0
_GOOD_STEP_UPPER_SCALE = 2.0 / 3.0
_DEPTH_EPSILON = 1e-18
_ACTIVE_LEVEL = 0


@dataclass(frozen=True)
class HuberKernel:
    """Huber robust kernel acting on the squared error ``chi2``."""

    delta: float = 1.0

    def __post_init__(self):
        if self.delta <= 0:
            raise ValueError("delta must be positive")

    def cost(self, chi2: float) -> float:
        """Robustified cost for a squared error."""
        dsqr = self.delta * self.delta
        if chi2 <= dsqr:
            return chi2
        return 2.0 * math.sqrt(chi2) * self.delta - dsqr

    def weight(self, chi2: float) -> float:
        """First derivative of the cost, used to scale the information matrix."""
        if chi2 <= self.delta * self.delta:
            return 1.0
        return self.delta / math.sqrt(chi2)


class VertexPose:
    """A camera pose T_c_w updated by left multiplication on SE(3)."""

    dimension = 6

    def __init__(self, id: int = 0, estimate: SE3 | None = None, *, fixed=False, marginalized=False):
        self.id = id
        self.estimate = estimate if estimate is not None else SE3.identity()
        self.fixed = fixed
        self.marginalized = marginalized

    def oplus(self, update) -> None:
        self.estimate = SE3.exp(update) * self.estimate

    def __repr__(self) -> str:
        return f"VertexPose(id={self.id}, fixed={self.fixed})"


class VertexXYZ:
    """A landmark position in the world frame."""

    dimension = 3

    def __init__(self, id: int = 0, estimate=None, *, fixed=False, marginalized=False):
        self.id = id
        self.estimate = np.zeros(3) if estimate is None else np.asarray(estimate, dtype=float).copy()
        self.fixed = fixed
        self.marginalized = marginalized

    def oplus(self, update) -> None:
        step = np.asarray(update, dtype=float).reshape(-1)
        if step.shape != (3,):
            raise ValueError(f"update must have 3 elements, got {step.size}")
        self.estimate = self.estimate + step

    def __repr__(self) -> str:
        return f"VertexXYZ(id={self.id}, estimate={self.estimate.tolist()})"


def _projection_jacobian(K: np.ndarray, pos_cam: np.ndarray) -> np.ndarray:
    """Jacobian of the reprojection error with respect to a left pose perturbation."""
    fx, fy = K[0, 0], K[1, 1]
    x, y, z = pos_cam
    zinv = 1.0 / (z + _DEPTH_EPSILON)
    zinv2 = zinv * zinv
    return np.array(
        [
            [-fx * zinv, 0.0, fx * x * zinv2, fx * x * y * zinv2, -fx - fx * x * x * zinv2, fx * y * zinv],
            [0.0, -fy * zinv, fy * y * zinv2, fy + fy * y * y * zinv2, -fy * x * y * zinv2, -fy * x * zinv],
        ]
    )


def _project(K: np.ndarray, pos_cam: np.ndarray) -> np.ndarray:
    pixel = K @ pos_cam
    return pixel[:2] / pixel[2]


class _Edge:
    """Common state of a 2D reprojection edge."""

    def __init__(self, vertices, measurement, information, robust_kernel, id, level):
        self.vertices = list(vertices)
        self.measurement = np.zeros(2) if measurement is None else np.asarray(measurement, dtype=float)
        self.information = np.eye(2) if information is None else np.asarray(information, dtype=float)
        self.robust_kernel = robust_kernel
        self.id = id
        self.level = level
        self.error: np.ndarray | None = None

    def _weighted_chi2(self) -> float:
        if self.error is None:
            self.compute_error()
        return float(self.error @ self.information @ self.error)


class EdgeProjectionPoseOnly(_Edge):
    """Unary edge: reprojection of a fixed 3D point under an estimated pose."""

    def __init__(self, pos, K, vertex: VertexPose | None = None, *, measurement=None,
                 information=None, robust_kernel=None, id=0, level=0):
        super().__init__([vertex], measurement, information, robust_kernel, id, level)
        self.pos3d = np.asarray(pos, dtype=float).copy()
        self.K = np.asarray(K, dtype=float)

    def compute_error(self) -> np.ndarray:
        pose = self.vertices[0].estimate
        self.error = self.measurement - _project(self.K, pose * self.pos3d)
        return self.error

    def linearize(self) -> np.ndarray:
        """Jacobian (2x6) of the error with respect to the pose."""
        pose = self.vertices[0].estimate
        return _projection_jacobian(self.K, pose * self.pos3d)

    def chi2(self) -> float:
        """Squared error weighted by the information matrix, from the last computed error."""
        return self._weighted_chi2()

    def _jacobians(self) -> list[np.ndarray]:
        return [self.linearize()]


class EdgeProjection(_Edge):
    """Binary edge between a pose and a landmark, seen through a camera extrinsic."""

    def __init__(self, K, cam_ext: SE3, pose_vertex: VertexPose | None = None,
                 point_vertex: VertexXYZ | None = None, *, measurement=None,
                 information=None, robust_kernel=None, id=0, level=0):
        super().__init__([pose_vertex, point_vertex], measurement, information, robust_kernel, id, level)
        self.K = np.asarray(K, dtype=float)
        self.cam_ext = cam_ext

    def compute_error(self) -> np.ndarray:
        pose, point = self.vertices[0].estimate, self.vertices[1].estimate
        self.error = self.measurement - _project(self.K, self.cam_ext * (pose * point))
        return self.error

    def linearize(self) -> tuple[np.ndarray, np.ndarray]:
        """Jacobians of the error: (2x6 for the pose, 2x3 for the landmark)."""
        pose, point = self.vertices[0].estimate, self.vertices[1].estimate
        jac_pose = _projection_jacobian(self.K, (self.cam_ext * pose) * point)
        jac_point = jac_pose[:, :3] @ self.cam_ext.rotation_matrix() @ pose.rotation_matrix()
        return jac_pose, jac_point

    def chi2(self) -> float:
        """Squared error weighted by the information matrix, from the last computed error."""
        return self._weighted_chi2()

    def _jacobians(self) -> list[np.ndarray]:
        return list(self.linearize())


def _robust_chi2(edges) -> float:
    total = 0.0
    for edge in edges:
        chi2 = edge.chi2()
        total += edge.robust_kernel.cost(chi2) if edge.robust_kernel else chi2
    return total


class Optimizer:
    """Levenberg-Marquardt over the level-0 edges, on a sparse system."""

    def __init__(self, tau: float = _TAU, max_trials: int = _MAX_TRIALS):
        self.tau = tau
        self.max_trials = max_trials
        self._vertices: dict[int, VertexPose | VertexXYZ] = {}
        self._edges: list[_Edge] = []

    @property
    def vertices(self) -> dict:
        return dict(self._vertices)

    @property
    def edges(self) -> list:
        return list(self._edges)

    def add_vertex(self, vertex) -> None:
        if vertex.id in self._vertices:
            raise ValueError(f"a vertex with id {vertex.id} is already in the graph")
        self._vertices[vertex.id] = vertex

    def add_edge(self, edge: _Edge) -> None:
        for vertex in edge.vertices:
            if vertex is None or self._vertices.get(vertex.id) is not vertex:
                raise ValueError("every vertex of an edge must be added to the graph first")
        self._edges.append(edge)

    def optimize(self, iterations: int) -> int:
        """Run up to ``iterations`` LM iterations on level-0 edges; return iterations done."""
        edges = [edge for edge in self._edges if edge.level == _ACTIVE_LEVEL]
        free: list = []
        offsets: dict[int, int] = {}
        size = 0
        for edge in edges:
            for vertex in edge.vertices:
                if not vertex.fixed and id(vertex) not in offsets:
                    offsets[id(vertex)] = size
                    size += vertex.dimension
                    free.append(vertex)

        for edge in edges:
            edge.compute_error()
        if not edges or size == 0:
            return 0

        chi2 = _robust_chi2(edges)
        lam: float | None = None
        ni = 2.0
        done = 0
        for _ in range(iterations):
            hessian, gradient = self._build_system(edges, offsets, size)
            if lam is None:
                lam = self.tau * float(hessian.diagonal().max())
                if lam <= 0:
                    lam = self.tau
            accepted = False
            for _trial in range(self.max_trials):
                saved = [(vertex, vertex.estimate) for vertex in free]
                damped = (hessian + lam * sparse.identity(size, format="csc")).tocsc()
                with warnings.catch_warnings():
                    warnings.simplefilter("ignore")
                    step = np.atleast_1d(spsolve(damped, gradient))
                new_chi2 = math.inf
                if np.all(np.isfinite(step)):
                    for vertex in free:
                        start = offsets[id(vertex)]
                        vertex.oplus(step[start:start + vertex.dimension])
                    for edge in edges:
                        edge.compute_error()
                    new_chi2 = _robust_chi2(edges)
                scale = float(step @ (lam * step + gradient)) + 1e-3
                rho = (chi2 - new_chi2) / scale if math.isfinite(new_chi2) else -1.0
                if rho > 0 and math.isfinite(new_chi2):
                    alpha = min(1.0 - (2.0 * rho - 1.0) ** 3, _GOOD_STEP_UPPER_SCALE)
                    lam *= max(_GOOD_STEP_LOWER_SCALE, alpha)
                    ni = 2.0
                    chi2 = new_chi2
                    accepted = True
                    break
                for vertex, estimate in saved:
                    vertex.estimate = estimate
                for edge in edges:
                    edge.compute_error()
                lam *= ni
                ni *= 2.0
            if not accepted:
                break
            done += 1
        return done

    @staticmethod
    def _build_system(edges, offsets, size):
        rows, cols, data = [], [], []
        gradient = np.zeros(size)
        for edge in edges:
            error = edge.error
            omega = edge.information
            if edge.robust_kernel is not None:
                omega = omega * edge.robust_kernel.weight(edge.chi2())
            jacobians = edge._jacobians()
            for vi, ji in zip(edge.vertices, jacobians):
                if vi.fixed:
                    continue
                oi, di = offsets[id(vi)], vi.dimension
                weighted = ji.T @ omega
                gradient[oi:oi + di] -= weighted @ error
                for vj, jj in zip(edge.vertices, jacobians):
                    if vj.fixed:
                        continue
                    oj, dj = offsets[id(vj)], vj.dimension
                    block = weighted @ jj
                    rows.append(np.repeat(np.arange(oi, oi + di), dj))
                    cols.append(np.tile(np.arange(oj, oj + dj), di))
                    data.append(block.reshape(-1))
        hessian = sparse.coo_matrix(
            (np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))),
            shape=(size, size),
        ).tocsc()
        return hessian, gradient