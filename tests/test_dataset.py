import numpy as np
import pytest
from PIL import Image

from stereovo.dataset import Dataset

CALIB = (
    "P0: 718.856 0 607.1928 0 0 718.856 185.2157 0 0 0 1 0\n"
    "P1: 718.856 0 607.1928 -386.1448 0 718.856 185.2157 0 0 0 1 0\n"
    "P2: 718.856 0 607.1928 45.38225 0 718.856 185.2157 -0.1130887 0 0 1 0.003779761\n"
    "P3: 718.856 0 607.1928 -337.2877 0 718.856 185.2157 2.369057 0 0 1 0.004915215\n"
)


@pytest.fixture
def calibrated(tmp_path):
    (tmp_path / "calib.txt").write_text(CALIB)
    return tmp_path


def _save(path, array):
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(array, "L").save(path)


def test_init_reads_intrinsics(calibrated):
    dataset = Dataset(calibrated, frame_ids=[])
    assert dataset.init() is True
    cam = dataset.camera(0)
    assert cam.fx == pytest.approx(718.856)
    assert cam.fy == pytest.approx(718.856)
    assert cam.cx == pytest.approx(607.1928)
    assert cam.cy == pytest.approx(185.2157)
    assert len(dataset.cameras) == 4


def test_extrinsic_translation_and_baseline(calibrated):
    dataset = Dataset(calibrated, frame_ids=[])
    dataset.init()
    cam = dataset.camera(1)
    np.testing.assert_allclose(cam.pose.matrix()[:3, 3], [-386.1448, 0.0, 0.0])
    np.testing.assert_allclose(cam.pose.rotation_matrix(), np.eye(3), atol=1e-12)
    assert cam.baseline == pytest.approx(386.1448)


def test_missing_calibration(tmp_path):
    assert Dataset(tmp_path, frame_ids=[]).init() is False


def test_truncated_calibration(tmp_path):
    (tmp_path / "calib.txt").write_text("P0: 1 0 0 0 0 1 0 0 0 0 1 0\n")
    with pytest.raises(ValueError):
        Dataset(tmp_path, frame_ids=[]).init()


def test_unknown_camera(calibrated):
    dataset = Dataset(calibrated, frame_ids=[])
    dataset.init()
    with pytest.raises(IndexError):
        dataset.camera(4)


def test_next_frame_loads_pairs_in_order(calibrated):
    left = np.arange(48, dtype=np.uint8).reshape(6, 8)
    right = (255 - left).astype(np.uint8)
    for frame_id in ("7", "9"):
        _save(calibrated / "left_frames" / f"left_image{frame_id}.png", left)
        _save(calibrated / "right_frames" / f"right_image{frame_id}.png", right)
    (calibrated / "interesting_frames.csv").write_text("7\n9\n")

    dataset = Dataset(calibrated)
    dataset.init()
    first = dataset.next_frame()
    second = dataset.next_frame()
    np.testing.assert_array_equal(first.left_img, left)
    np.testing.assert_array_equal(first.right_img, right)
    assert second.id > first.id
    assert dataset.current_image_index == 2
    assert dataset.next_frame() is None


def test_missing_image_gives_none(calibrated):
    dataset = Dataset(calibrated, frame_ids=["1"])
    dataset.init()
    assert dataset.next_frame() is None
    assert dataset.current_image_index == 0


def test_frame_ids_default_to_empty(calibrated):
    dataset = Dataset(calibrated)
    assert dataset.frame_ids == []
    assert dataset.next_frame() is None