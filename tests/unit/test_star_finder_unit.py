from datetime import datetime, timezone

import numpy as np
import pytest

from startracker.capture.frame import CameraFrame, FrameKind, PixelOrder
from startracker.config_manager import ConfigManager
from startracker.exceptions import LengthMismatchError, ValidationError
from startracker.processing.star_finder import (
    INT32_MAX,
    INT32_MIN,
    FindStarsOptions,
    Segment,
    find_stars,
    find_stars_in_frame,
    find_stars_in_image,
    truncate_to_int32,
)


def _image(shape, points):
    img = np.zeros(shape, dtype=np.uint16)
    for (r, c), v in points.items():
        img[r, c] = v
    return img


def test_single_pixel_below_minsize_is_dropped():
    img = _image((5, 5), {(2, 3): 100})
    assert find_stars(img) == []


def test_single_pixel_kept_with_minsize_one():
    img = _image((5, 5), {(2, 3): 100})
    segments = find_stars(img, options=FindStarsOptions(minsize=1))
    assert len(segments) == 1
    seg = segments[0]
    assert seg.indices == [(2, 3)]
    assert seg.centroid == pytest.approx((3.0, 2.0))
    assert seg.mass == 100.0


def test_diagonal_pixels_form_one_segment():
    img = _image((5, 5), {(0, 0): 100, (1, 1): 100})
    segments = find_stars(img)
    assert len(segments) == 1
    assert segments[0].indices == [(0, 0), (1, 1)]
    assert segments[0].centroid == pytest.approx((0.5, 0.5))
    assert segments[0].mass == 200.0


def test_v_shape_splits_into_two_segments():
    # (0, 2) reaches (1, 1) only through a below-left step, and (1, 1) is
    # already labeled by (0, 0) by then
    img = _image((5, 5), {(0, 0): 100, (1, 1): 100, (0, 2): 100})
    segments = find_stars(img, options=FindStarsOptions(minsize=1))
    assert [s.indices for s in segments] == [[(0, 2)], [(0, 0), (1, 1)]]


def test_segments_sorted_by_ascending_mass():
    img = _image(
        (20, 20),
        {(2, 2): 900, (2, 3): 900, (10, 10): 500, (10, 11): 500, (16, 5): 700, (17, 5): 700},
    )
    segments = find_stars(img)
    assert [s.mass for s in segments] == [1000.0, 1400.0, 1800.0]


def test_weighted_x_centroid():
    img = _image((10, 10), {(2, 1): 100, (2, 2): 300})
    (seg,) = find_stars(img)
    assert seg.centroid == pytest.approx((1.75, 2.0))


def test_weighted_y_centroid():
    img = _image((10, 10), {(3, 4): 100, (4, 4): 300})
    (seg,) = find_stars(img)
    assert seg.centroid == pytest.approx((4.0, 3.75))


def test_legacy_y_centroid_is_unweighted_row_mean():
    img = _image((10, 10), {(3, 4): 100, (4, 4): 300})
    (seg,) = find_stars(img, options=FindStarsOptions(legacy_y_centroid=True))
    assert seg.centroid == pytest.approx((4.0, 3.5))


def test_constant_frame_has_no_stars():
    assert find_stars(np.full((8, 8), 1000, dtype=np.uint16)) == []


def test_flat_input_requires_geometry():
    flat = [0] * 24
    with pytest.raises(ValidationError):
        find_stars(flat)
    assert find_stars(flat, rows=4, cols=6) == []


def test_flat_input_length_mismatch():
    with pytest.raises(LengthMismatchError):
        find_stars([0] * 23, rows=4, cols=6)


def test_flat_input_uses_row_major_indexing():
    img = _image((4, 6), {(1, 4): 500, (1, 5): 500})
    segments = find_stars(img.ravel().tolist(), rows=4, cols=6)
    assert segments[0].indices == [(1, 4), (1, 5)]


def test_empty_frame_returns_no_segments():
    assert find_stars(np.array([], dtype=np.uint16), rows=0, cols=0) == []


def test_input_is_not_modified():
    img = _image((6, 6), {(1, 1): 400, (1, 2): 400})
    before = img.copy()
    find_stars(img)
    np.testing.assert_array_equal(img, before)


def test_find_stars_in_image_uses_stored_raster():
    # Column-major with rows=width: pixels is the (height, width) raster
    height, width = 8, 10
    img = _image((height, width), {(2, 5): 800, (2, 6): 600})
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    frame = CameraFrame.from_samples(
        FrameKind.MONO16, width, height, 16, PixelOrder.COL_MAJOR, ts, img.ravel()
    )
    (seg,) = find_stars_in_image(frame)
    assert seg.indices == [(2, 5), (2, 6)]
    assert seg.centroid == pytest.approx((5.5 - 100 / 1400, 2.0))


def _col_major_frame(rows, cols, points):
    frame = CameraFrame.zeros(rows, cols, 16)
    assert frame.pixel_order is PixelOrder.COL_MAJOR
    for (r, c), v in points.items():
        frame[r, c] = v
    return frame


def test_find_stars_in_frame_relinearizes_column_major():
    frame = _col_major_frame(3, 5, {(2, 0): 900, (2, 1): 900})
    segments = find_stars_in_frame(frame, FindStarsOptions(threshold=1.0))
    assert [s.indices for s in segments] == [[(2, 0), (2, 1)]]
    expected = find_stars(frame.buffer.row_major_samples(), 3, 5, FindStarsOptions(threshold=1.0))
    assert [s.indices for s in segments] == [s.indices for s in expected]


def test_find_stars_in_frame_members_read_back_through_at():
    frame = _col_major_frame(10, 12, {(1, 7): 700, (1, 8): 650, (2, 7): 600, (4, 2): 900, (5, 2): 800})
    values = frame.buffer.row_major_samples().astype(np.int64)
    thresh = int(values.mean() + 2.5 * values.std(ddof=1))
    segments = find_stars_in_frame(frame)
    assert [s.count for s in segments] == [2, 3]
    for seg in segments:
        for r, c in seg.indices:
            assert frame.at(r, c) > thresh
            assert frame.buffer.as_array()[r, c] == frame.at(r, c)


def test_options_from_config(tmp_path):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("detection:\n  threshold: 4.0\n  minsize: 3\n")
    options = FindStarsOptions.from_config(ConfigManager(str(cfg_file)))
    assert options.threshold == 4.0
    assert options.minsize == 3
    assert options.legacy_y_centroid is False
    assert "threshold: 4.00" in str(options)


def test_segment_to_dict():
    seg = Segment(indices=[(1, 2), (1, 3)], centroid=(2.5, 1.0), mass=30.0)
    assert seg.count == 2
    assert seg.to_dict() == {"indices": [[1, 2], [1, 3]], "centroid": [2.5, 1.0], "mass": 30.0, "count": 2}


@pytest.mark.parametrize(
    "value,expected",
    [
        (float("nan"), 0),
        (3.9, 3),
        (-3.9, -3),
        (1e12, INT32_MAX),
        (-1e12, INT32_MIN),
        (float("inf"), INT32_MAX),
    ],
)
def test_truncate_to_int32(value, expected):
    assert truncate_to_int32(value) == expected
