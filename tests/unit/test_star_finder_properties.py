from datetime import datetime, timezone

from hypothesis import given, settings
import hypothesis.strategies as st
import numpy as np

from startracker.capture.frame import CameraFrame, FrameKind, PixelOrder
from startracker.processing.frame_stats import sample_moments
from startracker.processing.star_finder import FindStarsOptions, find_stars, find_stars_in_frame, truncate_to_int32


@st.composite
def _images(draw):
    h = draw(st.integers(min_value=1, max_value=16))
    w = draw(st.integers(min_value=1, max_value=16))
    vals = draw(st.lists(st.integers(min_value=0, max_value=65535), min_size=h * w, max_size=h * w))
    return np.array(vals, dtype=np.uint16).reshape((h, w))


@given(
    image=_images(),
    threshold=st.floats(min_value=0.0, max_value=4.0),
    minsize=st.integers(min_value=1, max_value=4),
)
@settings(deadline=None, max_examples=50)
def test_segments_are_ordered_disjoint_and_above_threshold(image, threshold, minsize):
    options = FindStarsOptions(threshold=threshold, minsize=minsize)
    segments = find_stars(image, options=options)

    masses = [s.mass for s in segments]
    assert masses == sorted(masses)

    values = image.astype(np.int64).ravel()
    _, _, mean, std_dev = sample_moments(values)
    thresh = truncate_to_int32(mean + threshold * std_dev)

    seen = set()
    for seg in segments:
        assert seg.count >= minsize
        for r, c in seg.indices:
            assert (r, c) not in seen
            seen.add((r, c))
            assert int(image[r, c]) > thresh
        assert seg.mass == float(sum(int(image[r, c]) for r, c in seg.indices))


@given(image=_images())
@settings(deadline=None, max_examples=30)
def test_centroid_lies_within_segment_bounds(image):
    for seg in find_stars(image, options=FindStarsOptions(minsize=1)):
        rows = [r for r, _ in seg.indices]
        cols = [c for _, c in seg.indices]
        x, y = seg.centroid
        assert min(cols) - 1e-9 <= x <= max(cols) + 1e-9
        assert min(rows) - 1e-9 <= y <= max(rows) + 1e-9


@given(image=_images(), threshold=st.floats(min_value=0.0, max_value=3.0))
@settings(deadline=None, max_examples=30)
def test_column_major_members_read_back_through_at(image, threshold):
    # Store the image column-major with rows = width
    h, w = image.shape
    frame = CameraFrame.from_samples(
        FrameKind.MONO16, w, h, 16, PixelOrder.COL_MAJOR, datetime(2024, 1, 1, tzinfo=timezone.utc), image.ravel()
    )
    values = image.astype(np.int64).ravel()
    _, _, mean, std_dev = sample_moments(values)
    thresh = truncate_to_int32(mean + threshold * std_dev)

    for seg in find_stars_in_frame(frame, FindStarsOptions(threshold=threshold, minsize=1)):
        for r, c in seg.indices:
            assert 0 <= r < frame.rows and 0 <= c < frame.cols
            assert frame.at(r, c) > thresh
