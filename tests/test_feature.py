import gc

from stereovo.feature import Feature, KeyPoint
from stereovo.frame import Frame
from stereovo.mappoint import MapPoint


def test_default_feature_flags():
    feature = Feature()
    assert feature.is_outlier is False
    assert feature.is_on_left_image is True
    assert feature.frame is None
    assert feature.map_point is None


def test_keypoint_holds_position():
    kp = KeyPoint(3.5, 4.5, size=7)
    feature = Feature(None, kp)
    assert feature.position.x == 3.5
    assert feature.position.y == 4.5
    assert feature.position.size == 7


def test_frame_reference_is_weak():
    frame = Frame.create()
    feature = Feature(frame, KeyPoint(1.0, 2.0))
    assert feature.frame is frame
    del frame
    gc.collect()
    assert feature.frame is None


def test_map_point_link_and_reset():
    mp = MapPoint.create()
    feature = Feature()
    feature.map_point = mp
    assert feature.map_point is mp
    feature.map_point = None
    assert feature.map_point is None


def test_map_point_reference_is_weak():
    mp = MapPoint.create()
    feature = Feature()
    feature.map_point = mp
    del mp
    gc.collect()
    assert feature.map_point is None