"""2D image features, linked to map points once triangulated."""

from __future__ import annotations

import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stereovo.frame import Frame
    from stereovo.mappoint import MapPoint


@dataclass(frozen=True)
class KeyPoint:
    """A detected image point with its detector attributes."""

    x: float = 0.0
    y: float = 0.0
    size: float = 0.0
    angle: float = -1.0
    response: float = 0.0
    octave: int = 0


class Feature:
    """A keypoint in one image of a frame.

    The owning frame and the associated map point are held by weak
    reference, so a feature never keeps either of them alive.
    """

    def __init__(self, frame: Frame | None = None, position: KeyPoint | None = None):
        self._frame = None
        self._map_point = None
        self.frame = frame
        self.position = position if position is not None else KeyPoint()
        self.is_outlier = False
        self.is_on_left_image = True

    @property
    def frame(self) -> Frame | None:
        return self._frame() if self._frame is not None else None

    @frame.setter
    def frame(self, frame: Frame | None) -> None:
        self._frame = weakref.ref(frame) if frame is not None else None

    @property
    def map_point(self) -> MapPoint | None:
        return self._map_point() if self._map_point is not None else None

    @map_point.setter
    def map_point(self, map_point: MapPoint | None) -> None:
        self._map_point = weakref.ref(map_point) if map_point is not None else None

    def __repr__(self) -> str:
        side = "left" if self.is_on_left_image else "right"
        return f"Feature({self.position!r}, {side}, outlier={self.is_outlier})"