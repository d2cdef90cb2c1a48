"""Landmarks formed by triangulating features."""

from __future__ import annotations

import itertools
import threading
import weakref

import numpy as np

from stereovo.feature import Feature

_map_point_ids = itertools.count()


class MapPoint:
    """A 3D landmark and the features that observe it."""

    def __init__(self, id: int = 0, position=None):
        self.id = id
        self.is_outlier = False
        self._pos = (
            np.zeros(3) if position is None else np.asarray(position, dtype=float).copy()
        )
        self.observed_times = 0
        self._observations: list[weakref.ref] = []
        self._lock = threading.Lock()

    @property
    def pos(self) -> np.ndarray:
        """Position in the world frame."""
        with self._lock:
            return self._pos.copy()

    @pos.setter
    def pos(self, position) -> None:
        with self._lock:
            self._pos = np.asarray(position, dtype=float).copy()

    @property
    def observations(self) -> list[Feature]:
        """The observing features that are still alive."""
        with self._lock:
            refs = list(self._observations)
        return [feat for feat in (ref() for ref in refs) if feat is not None]

    @classmethod
    def create(cls) -> MapPoint:
        """Create a new map point with the next id."""
        return cls(id=next(_map_point_ids))

    def add_observation(self, feature: Feature) -> None:
        with self._lock:
            self._observations.append(weakref.ref(feature))
            self.observed_times += 1

    def remove_observation(self, feature: Feature) -> None:
        """Drop ``feature`` from the observations and unlink it from this point."""
        with self._lock:
            for index, ref in enumerate(self._observations):
                if ref() is feature:
                    del self._observations[index]
                    feature.map_point = None
                    self.observed_times -= 1
                    break

    def __repr__(self) -> str:
        return f"MapPoint(id={self.id}, pos={self._pos.tolist()}, observed={self.observed_times})"