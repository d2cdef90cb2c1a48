"""Back end: a worker thread that bundle-adjusts the active window of the map."""

from __future__ import annotations

import logging
import math
import threading

import numpy as np

from stereovo.algorithm import to_vec2
from stereovo.camera import Camera
from stereovo.frame import Frame
from stereovo.mappoint import MapPoint
from stereovo.optimization import EdgeProjection, HuberKernel, Optimizer, VertexPose, VertexXYZ
from stereovo.slam_map import Map

logger = logging.getLogger(__name__)

CHI2_THRESHOLD = 5.991
_OPTIMIZE_ITERATIONS = 10
_THRESHOLD_ADJUSTMENTS = 5


class Backend:
    """Optimises active keyframes and landmarks whenever the front end updates the map.

    The optimisation thread starts on construction; call :meth:`stop`
    (or use the backend as a context manager) to end it.
    """

    def __init__(self):
        self._map: Map | None = None
        self._cam_left: Camera | None = None
        self._cam_right: Camera | None = None
        self._condition = threading.Condition()
        self._running = True
        self._pending = False
        self._thread = threading.Thread(target=self._loop, name="backend", daemon=True)
        self._thread.start()

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def set_cameras(self, left: Camera, right: Camera) -> None:
        self._cam_left = left
        self._cam_right = right

    def set_map(self, slam_map: Map) -> None:
        self._map = slam_map

    def update_map(self) -> None:
        """Request an optimisation of the active window."""
        with self._condition:
            self._pending = True
            self._condition.notify()

    def stop(self) -> None:
        """Finish any requested optimisation and stop the thread."""
        with self._condition:
            self._running = False
            self._condition.notify()
        if self._thread is not threading.current_thread():
            self._thread.join()

    def __enter__(self) -> Backend:
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def _loop(self) -> None:
        while True:
            with self._condition:
                while self._running and not self._pending:
                    self._condition.wait()
                if not self._pending:
                    break
                self._pending = False
                slam_map = self._map
                if slam_map is None:
                    continue
                try:
                    self.optimize(slam_map.active_keyframes(), slam_map.active_map_points())
                except Exception:
                    logger.exception("back-end optimisation failed")

    def optimize(self, keyframes: dict[int, Frame], landmarks: dict[int, MapPoint]) -> tuple[int, int]:
        """Bundle-adjust the given keyframes and landmarks; return (outliers, inliers)."""
        if self._cam_left is None or self._cam_right is None:
            raise RuntimeError("cameras are not set")

        optimizer = Optimizer()
        pose_vertices: dict[int, VertexPose] = {}
        max_kf_id = 0
        for kf in keyframes.values():
            vertex = VertexPose(kf.keyframe_id, kf.pose)
            optimizer.add_vertex(vertex)
            max_kf_id = max(max_kf_id, kf.keyframe_id)
            pose_vertices[kf.keyframe_id] = vertex

        point_vertices: dict[int, VertexXYZ] = {}
        K = self._cam_left.intrinsic_matrix()
        left_ext = self._cam_left.pose
        right_ext = self._cam_right.pose

        chi2_th = CHI2_THRESHOLD
        edges_and_features = []
        index = 1
        for landmark in landmarks.values():
            if landmark.is_outlier:
                continue
            landmark_id = landmark.id
            for feat in landmark.observations:
                frame = feat.frame
                if feat.is_outlier or frame is None:
                    continue
                if landmark_id not in point_vertices:
                    point = VertexXYZ(landmark_id + max_kf_id + 1, landmark.pos, marginalized=True)
                    point_vertices[landmark_id] = point
                    optimizer.add_vertex(point)
                pose_vertex = pose_vertices.get(frame.keyframe_id)
                if pose_vertex is None:
                    continue
                edge = EdgeProjection(
                    K,
                    left_ext if feat.is_on_left_image else right_ext,
                    pose_vertex,
                    point_vertices[landmark_id],
                    measurement=to_vec2(feat.position),
                    information=np.eye(2),
                    robust_kernel=HuberKernel(chi2_th),
                    id=index,
                )
                edges_and_features.append((edge, feat))
                optimizer.add_edge(edge)
                index += 1

        optimizer.optimize(_OPTIMIZE_ITERATIONS)

        cnt_outlier = cnt_inlier = 0
        for _ in range(_THRESHOLD_ADJUSTMENTS):
            cnt_outlier = sum(1 for edge, _ in edges_and_features if edge.chi2() > chi2_th)
            cnt_inlier = len(edges_and_features) - cnt_outlier
            total = cnt_inlier + cnt_outlier
            inlier_ratio = cnt_inlier / total if total else math.nan
            if inlier_ratio > 0.5:
                break
            chi2_th *= 2

        for edge, feat in edges_and_features:
            if edge.chi2() > chi2_th:
                feat.is_outlier = True
                map_point = feat.map_point
                if map_point is not None:
                    map_point.remove_observation(feat)
            else:
                feat.is_outlier = False

        logger.info("Outlier/Inlier in optimization: %d/%d", cnt_outlier, cnt_inlier)

        for kf_id, vertex in pose_vertices.items():
            keyframes[kf_id].pose = vertex.estimate
        for landmark_id, vertex in point_vertices.items():
            landmarks[landmark_id].pos = vertex.estimate
        return cnt_outlier, cnt_inlier