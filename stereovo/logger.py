"""Writes estimated poses and diagnostic images to a log directory."""

from __future__ import annotations

import math
from itertools import islice, zip_longest
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw

from stereovo.frame import Frame
from stereovo.geometry import SE3

POSES_FILE = "paths.csv"
_HALF_BOX = 5
_GREEN = (0, 255, 0)
_RED = (255, 0, 0)
_BLUE = (0, 0, 255)


def _quaternion_wxyz(r: np.ndarray) -> tuple[float, float, float, float]:
    trace = r[0, 0] + r[1, 1] + r[2, 2]
    if trace > 0:
        s = math.sqrt(trace + 1.0)
        w = 0.5 * s
        s = 0.5 / s
        return w, (r[2, 1] - r[1, 2]) * s, (r[0, 2] - r[2, 0]) * s, (r[1, 0] - r[0, 1]) * s
    i = int(np.argmax(np.diag(r)))
    j, k = (i + 1) % 3, (i + 2) % 3
    s = math.sqrt(r[i, i] - r[j, j] - r[k, k] + 1.0)
    q = [0.0, 0.0, 0.0]
    q[i] = 0.5 * s
    s = 0.5 / s
    w = (r[k, j] - r[j, k]) * s
    q[j] = (r[j, i] + r[i, j]) * s
    q[k] = (r[k, i] + r[i, k]) * s
    return w, q[0], q[1], q[2]


def _to_rgb(image) -> Image.Image:
    array = np.asarray(image)
    if array.dtype != np.uint8:
        array = np.clip(array, 0, 255).astype(np.uint8)
    if array.ndim == 2:
        return Image.fromarray(array, "L").convert("RGB")
    return Image.fromarray(array).convert("RGB")


def _pixel(feature) -> tuple[int, int]:
    return round(feature.position.x), round(feature.position.y)


def _box(draw: ImageDraw.ImageDraw, point: tuple[int, int], color) -> None:
    x, y = point
    draw.rectangle(
        [(x - _HALF_BOX, y - _HALF_BOX), (x + _HALF_BOX, y + _HALF_BOX)], outline=color
    )


class PoseLogger:
    """Logs poses to ``paths.csv`` and images into the directory ``log_path``."""

    def __init__(self, log_path):
        self.log_path = Path(log_path)
        self.log_path.mkdir(parents=True, exist_ok=True)
        self._file = open(self.log_path / POSES_FILE, "w", encoding="utf-8")

    def log_pose(self, pose: SE3) -> None:
        """Append ``tx,ty,tz,qw,qx,qy,qz`` for the pose."""
        tx, ty, tz = pose.matrix()[:3, 3]
        qw, qx, qy, qz = _quaternion_wxyz(pose.rotation_matrix())
        values = (tx, ty, tz, qw, qx, qy, qz)
        self._file.write(",".join(f"{float(v):g}" for v in values) + "\n")
        self._file.flush()

    def log_image(self, filename: str, image) -> Path:
        """Save ``image`` under ``filename`` (PNG when no extension is given)."""
        path = self.log_path / filename
        if not path.suffix:
            path = path.with_name(path.name + ".png")
        path.parent.mkdir(parents=True, exist_ok=True)
        array = np.asarray(image)
        if array.dtype != np.uint8:
            array = np.clip(array, 0, 255).astype(np.uint8)
        Image.fromarray(array).save(path)
        return path

    def log_feature_match_images(self, frame: Frame) -> Path:
        """Save the stereo pair side by side with matched and unmatched features marked."""
        left = _to_rgb(frame.left_img)
        right = _to_rgb(frame.right_img)
        offset = left.width
        canvas = Image.new("RGB", (left.width + right.width, max(left.height, right.height)))
        canvas.paste(left, (0, 0))
        canvas.paste(right, (offset, 0))
        draw = ImageDraw.Draw(canvas)

        lefts, rights = frame.features_left, frame.features_right
        for left_feat, right_feat in islice(zip_longest(lefts, rights), len(lefts)):
            if left_feat is not None and right_feat is not None:
                left_kp = _pixel(left_feat)
                rx, ry = _pixel(right_feat)
                right_kp = (rx + offset, ry)
                _box(draw, left_kp, _GREEN)
                _box(draw, right_kp, _GREEN)
                draw.line([left_kp, right_kp], fill=_GREEN)
            elif left_feat is not None:
                _box(draw, _pixel(left_feat), _RED)
            elif right_feat is not None:
                rx, ry = _pixel(right_feat)
                _box(draw, (rx + offset, ry), _BLUE)

        out_dir = self.log_path / "concat_images"
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / f"feature_match{frame.id}.png"
        canvas.save(path)
        return path

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    def __enter__(self) -> PoseLogger:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()