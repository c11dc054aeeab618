#!/usr/bin/env python3
"""
Star segmentation and centroiding.

find_stars() thresholds a frame at ``mean + threshold * std``, groups bright
pixels into segments, drops segments below a minimum pixel count and reports
each remaining segment's brightness-weighted centroid and mass, faintest
first.

Grouping is a single forward raster pass. Each bright pixel hands its label
to still-unlabeled bright neighbours to the right, below-left, below and
below-right, in that order. Nothing is ever merged afterwards, so a region
whose pixels are linked only through a backward step (for example a pixel
reachable only from the one above-right of it) is reported as more than one
segment. A union-find labeler gives different results on such regions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from startracker.capture.frame import CameraFrame, FrameBuffer
from startracker.exceptions import LengthMismatchError, ValidationError
from startracker.processing.frame_stats import as_sample_array, sample_moments

logger = logging.getLogger(__name__)

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1
UNLABELED = -1


@dataclass(frozen=True)
class FindStarsOptions:
    threshold: float = 2.5  # standard deviations above the mean
    minsize: int = 2  # pixels
    # Older releases weighted the y moment by (crow - crow), pinning the
    # y centroid to the unweighted member mean.
    legacy_y_centroid: bool = False

    @classmethod
    def defaults(cls) -> "FindStarsOptions":
        return cls()

    @classmethod
    def from_config(cls, config: Any) -> "FindStarsOptions":
        """Build options from the 'detection' section of a ConfigManager."""
        det_cfg = config.get_detection_config() if config is not None else {}
        return cls(
            threshold=float(det_cfg.get("threshold", 2.5)),
            minsize=int(det_cfg.get("minsize", 2)),
            legacy_y_centroid=bool(det_cfg.get("legacy_y_centroid", False)),
        )

    def __str__(self) -> str:
        return (
            "Options:\n"
            f"               threshold: {self.threshold:.2f}\n"
            f"    Minimum segment size: {self.minsize} pixels"
        )


@dataclass
class Segment:
    """One star candidate.

    ``indices`` holds (row, col) members in discovery order; ``centroid`` is
    (x, y), i.e. (col, row) in sub-pixel units.
    """

    indices: List[Tuple[int, int]] = field(default_factory=list)
    centroid: Tuple[float, float] = (0.0, 0.0)
    mass: float = 0.0

    @property
    def count(self) -> int:
        return len(self.indices)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indices": [list(rc) for rc in self.indices],
            "centroid": list(self.centroid),
            "mass": self.mass,
            "count": self.count,
        }

    def __str__(self) -> str:
        return f"Segment: indices: {self.indices}, centroid: {self.centroid}, mass: {self.mass}"


def truncate_to_int32(value: float) -> int:
    """Truncate toward zero, saturating at the int32 range; NaN maps to 0."""
    if math.isnan(value):
        return 0
    if value >= INT32_MAX:
        return INT32_MAX
    if value <= INT32_MIN:
        return INT32_MIN
    return int(value)


def _label_segments(mask: np.ndarray, rows: int, cols: int) -> List[List[Tuple[int, int]]]:
    bright = mask.tolist()
    labels = [UNLABELED] * len(bright)
    members: List[List[Tuple[int, int]]] = []

    # Raster order; dark pixels never start or extend a segment
    for idx in np.flatnonzero(mask).tolist():
        row, col = divmod(idx, cols)
        label = labels[idx]
        if label == UNLABELED:
            label = len(members)
            labels[idx] = label
            members.append([(row, col)])

        neighbours = []
        if col + 1 < cols:
            neighbours.append(idx + 1)
        if row < rows - 1:
            if col > 0:
                neighbours.append(idx + cols - 1)
            neighbours.append(idx + cols)
            if col + 1 < cols:
                neighbours.append(idx + cols + 1)

        for n in neighbours:
            if labels[n] == UNLABELED and bright[n]:
                labels[n] = label
                members[label].append(divmod(n, cols))

    return members


def _measure(
    indices: List[Tuple[int, int]], values: np.ndarray, cols: int, legacy_y_centroid: bool
) -> Segment:
    count = len(indices)
    crow = sum(r for r, _ in indices) / count
    ccol = sum(c for _, c in indices) / count

    # Moments about the member mean keep the sums small
    sumx = 0.0
    sumy = 0.0
    mass = 0.0
    for row, col in indices:
        val = float(values[row * cols + col])
        sumx += val * (col - ccol)
        sumy += val * ((crow if legacy_y_centroid else row) - crow)
        mass += val

    if mass == 0.0:
        # Only reachable with a negative threshold that admits zero pixels
        centroid = (ccol, crow)
    else:
        centroid = (sumx / mass + ccol, sumy / mass + crow)
    return Segment(indices=indices, centroid=centroid, mass=mass)


def find_stars(
    pixels: Union[Sequence[int], np.ndarray],
    rows: Optional[int] = None,
    cols: Optional[int] = None,
    options: Optional[FindStarsOptions] = None,
) -> List[Segment]:
    """Find star segments in a row-major frame.

    Args:
        pixels: Flat row-major samples (index = row * cols + col), or a 2-D
            array whose shape supplies rows and cols
        rows, cols: Frame geometry; required for flat input
        options: Detection options, defaults when None

    Returns:
        Segments sorted by ascending mass

    Raises:
        LengthMismatchError: if the sample count is not rows * cols
        ValidationError: for non-integer samples or missing geometry
    """
    options = options or FindStarsOptions.defaults()
    arr = np.asarray(pixels)
    if rows is None or cols is None:
        if arr.ndim != 2:
            raise ValidationError("rows and cols are required for flat pixel input", {"ndim": arr.ndim})
        rows, cols = arr.shape
    values = as_sample_array(arr).astype(np.int64)
    if values.size != rows * cols:
        raise LengthMismatchError(rows * cols, int(values.size))
    if values.size == 0:
        return []

    minimum, maximum, mean, std_dev = sample_moments(values)
    thresh = truncate_to_int32(mean + options.threshold * std_dev)
    logger.debug(
        f"Frame {rows}x{cols}: min={minimum} max={maximum} mean={mean:.2f} std={std_dev:.2f} thresh={thresh}"
    )

    members = _label_segments(values > thresh, rows, cols)
    kept = [m for m in members if len(m) >= options.minsize]
    segments = [_measure(m, values, cols, options.legacy_y_centroid) for m in kept]
    segments.sort(key=lambda s: s.mass)

    logger.debug(f"Found {len(segments)} segments ({len(members) - len(kept)} below {options.minsize} pixels)")
    return segments


def find_stars_in_frame(
    frame: Union[CameraFrame, FrameBuffer], options: Optional[FindStarsOptions] = None
) -> List[Segment]:
    """Run find_stars() over a frame relinearized row-major over (rows, cols).

    Segment members are (row, col) in the frame's own addressing, so
    ``frame.at(row, col)`` reads back each member pixel whatever the
    frame's pixel order.
    """
    buffer = frame.buffer if isinstance(frame, CameraFrame) else frame
    return find_stars(buffer.row_major_samples(), buffer.rows, buffer.cols, options=options)


def find_stars_in_image(
    frame: Union[CameraFrame, FrameBuffer], options: Optional[FindStarsOptions] = None
) -> List[Segment]:
    """Run find_stars() over the stored raster ``frame.pixels``.

    For SER frames the stored raster is the (height, width) image, so
    members are (image y, image x) and centroids are image (x, y).
    """
    return find_stars(frame.pixels, options=options)
