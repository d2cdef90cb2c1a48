"""Pinhole camera model for one camera of a stereo rig."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from stereovo.geometry import SE3


@dataclass(frozen=True)
class Camera:
    """Pinhole intrinsics plus the extrinsic from the stereo rig to this camera."""

    fx: float = 0.0
    fy: float = 0.0
    cx: float = 0.0
    cy: float = 0.0
    baseline: float = 0.0
    pose: SE3 = field(default_factory=SE3.identity)
    pose_inv: SE3 = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "pose_inv", self.pose.inverse())

    def intrinsic_matrix(self) -> np.ndarray:
        return np.array(
            [[self.fx, 0.0, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]]
        )

    def world2camera(self, p_w, T_c_w: SE3) -> np.ndarray:
        return self.pose * (T_c_w * np.asarray(p_w, dtype=float))

    def camera2world(self, p_c, T_c_w: SE3) -> np.ndarray:
        return T_c_w.inverse() * (self.pose_inv * np.asarray(p_c, dtype=float))

    def camera2pixel(self, p_c) -> np.ndarray:
        x, y, z = np.asarray(p_c, dtype=float)
        return np.array([self.fx * x / z + self.cx, self.fy * y / z + self.cy])

    def pixel2camera(self, p_p, depth: float = 1.0) -> np.ndarray:
        u, v = np.asarray(p_p, dtype=float)
        return np.array(
            [(u - self.cx) * depth / self.fx, (v - self.cy) * depth / self.fy, depth]
        )

    def world2pixel(self, p_w, T_c_w: SE3) -> np.ndarray:
        return self.camera2pixel(self.world2camera(p_w, T_c_w))

    def pixel2world(self, p_p, T_c_w: SE3, depth: float = 1.0) -> np.ndarray:
        return self.camera2world(self.pixel2camera(p_p, depth), T_c_w)