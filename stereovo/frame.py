"""Stereo frames with poses and extracted features."""

from __future__ import annotations

import itertools
import threading

from stereovo.feature import Feature
from stereovo.geometry import SE3

_frame_ids = itertools.count()
_keyframe_ids = itertools.count()


class Frame:
    """One stereo image pair. Every frame gets an id; keyframes get a keyframe id too."""

    def __init__(
        self,
        id: int = 0,
        time_stamp: float = 0.0,
        pose: SE3 | None = None,
        left_img=None,
        right_img=None,
    ):
        self.id = id
        self.keyframe_id = 0
        self.is_keyframe = False
        self.time_stamp = time_stamp
        self._pose = pose if pose is not None else SE3.identity()
        self._pose_lock = threading.Lock()
        self.left_img = left_img
        self.right_img = right_img
        self.features_left: list[Feature] = []
        # Aligned with features_left; None where no match was found.
        self.features_right: list[Feature | None] = []

    @property
    def pose(self) -> SE3:
        """Pose as T_c_w (world to camera)."""
        with self._pose_lock:
            return self._pose

    @pose.setter
    def pose(self, pose: SE3) -> None:
        with self._pose_lock:
            self._pose = pose

    @classmethod
    def create(cls) -> Frame:
        """Create a new frame with the next frame id."""
        return cls(id=next(_frame_ids))

    def set_keyframe(self) -> None:
        """Mark this frame as a keyframe and give it the next keyframe id."""
        self.is_keyframe = True
        self.keyframe_id = next(_keyframe_ids)

    def __repr__(self) -> str:
        return f"Frame(id={self.id}, keyframe={self.is_keyframe}, keyframe_id={self.keyframe_id})"