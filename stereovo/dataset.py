"""Stereo image sequences with their camera calibration."""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path

import numpy as np
from PIL import Image

from stereovo.camera import Camera
from stereovo.frame import Frame
from stereovo.geometry import SE3

logger = logging.getLogger(__name__)

FRAME_IDS_FILE = "interesting_frames.csv"
CALIBRATION_FILE = "calib.txt"
_NUM_CAMERAS = 4
_NAME_LENGTH = 3
_PROJECTION_SIZE = 12


def _parse_calibration(text: str) -> list[Camera]:
    tokens = deque(text.split())
    cameras = []
    for index in range(_NUM_CAMERAS):
        name = ""
        while len(name) < _NAME_LENGTH:
            if not tokens:
                raise ValueError(f"calibration ends before camera {index}")
            token = tokens.popleft()
            take = _NAME_LENGTH - len(name)
            name += token[:take]
            if token[take:]:
                tokens.appendleft(token[take:])
        if len(tokens) < _PROJECTION_SIZE:
            raise ValueError(f"calibration of camera {index} ({name}) is incomplete")
        p = np.array([float(tokens.popleft()) for _ in range(_PROJECTION_SIZE)]).reshape(3, 4)
        K, t = p[:, :3], p[:, 3]
        pose = SE3.exp(np.concatenate([t, np.zeros(3)]))
        cameras.append(
            Camera(
                fx=K[0, 0],
                fy=K[1, 1],
                cx=K[0, 2],
                cy=K[1, 2],
                baseline=float(np.linalg.norm(t)),
                pose=pose,
            )
        )
        logger.info("Camera %d extrinsics: %s", index, t)
    return cameras


def _load_gray(path: Path) -> np.ndarray | None:
    try:
        with Image.open(path) as image:
            return np.asarray(image.convert("L"))
    except (OSError, ValueError):
        return None


class Dataset:
    """A stereo sequence in ``dataset_path``.

    The directory holds ``calib.txt`` and the images
    ``left_frames/left_image<id>.png`` and ``right_frames/right_image<id>.png``.
    The frame ids come from ``frame_ids`` or, when not given, from the lines of
    ``interesting_frames.csv`` in the same directory.
    """

    def __init__(self, dataset_path, frame_ids=None):
        self.dataset_path = Path(dataset_path)
        if frame_ids is None:
            ids_file = self.dataset_path / FRAME_IDS_FILE
            if ids_file.is_file():
                text = ids_file.read_text(encoding="utf-8")
                frame_ids = [line.rstrip("\r") for line in text.split("\n")]
                if frame_ids and frame_ids[-1] == "":
                    frame_ids.pop()
            else:
                frame_ids = []
        self.frame_ids = [str(frame_id) for frame_id in frame_ids]
        self.current_image_index = 0
        self._cameras: list[Camera] = []

    @property
    def cameras(self) -> list[Camera]:
        return list(self._cameras)

    def init(self) -> bool:
        """Read the camera intrinsics and extrinsics; return False if there is no calibration."""
        calib = self.dataset_path / CALIBRATION_FILE
        try:
            text = calib.read_text(encoding="utf-8")
        except OSError:
            logger.error("cannot find %s!", calib)
            return False
        self._cameras = _parse_calibration(text)
        self.current_image_index = 0
        return True

    def next_frame(self) -> Frame | None:
        """Load the next stereo pair as a new frame, or None when there is none."""
        if self.current_image_index >= len(self.frame_ids):
            return None
        frame_id = self.frame_ids[self.current_image_index]
        left = _load_gray(self.dataset_path / "left_frames" / f"left_image{frame_id}.png")
        right = _load_gray(self.dataset_path / "right_frames" / f"right_image{frame_id}.png")
        if left is None or right is None:
            logger.warning(
                "cannot find images at index %d frame_id: %s",
                self.current_image_index,
                frame_id,
            )
            return None
        frame = Frame.create()
        frame.left_img = left
        frame.right_img = right
        self.current_image_index += 1
        return frame

    def camera(self, camera_id: int) -> Camera:
        if not 0 <= camera_id < len(self._cameras):
            raise IndexError(f"no camera with id {camera_id}")
        return self._cameras[camera_id]