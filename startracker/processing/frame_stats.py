#!/usr/bin/env python3
"""
Frame statistics: min, max, mean, median and sample standard deviation.

Sums are accumulated as int64, which holds the sum of squares of a 16-bit
frame up to roughly 2e9 pixels. The standard deviation uses the N-1
denominator and is NaN for a single-sample frame. The median is the upper
median: element ``count // 2`` of the ascending sort, never an average.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any, Tuple

import numpy as np

from startracker.capture.frame import CameraFrame, FrameBuffer
from startracker.exceptions import ValidationError


def as_sample_array(source: Any) -> np.ndarray:
    """Flat integer sample array for a frame, buffer, ndarray or sequence."""
    if isinstance(source, (CameraFrame, FrameBuffer)):
        return source.samples
    arr = np.asarray(source)
    if not np.issubdtype(arr.dtype, np.integer) or not np.can_cast(arr.dtype, np.int64):
        raise ValidationError(
            f"Samples must be integers convertible to int64, got {arr.dtype}", {"dtype": str(arr.dtype)}
        )
    return arr.ravel()


def sample_moments(values: np.ndarray) -> Tuple[int, int, float, float]:
    """Return (min, max, mean, sample std) of an int64 array.

    The standard deviation is NaN when there is a single sample. Variance
    that rounds below zero is clamped to zero.
    """
    count = int(values.size)
    if count == 0:
        raise ValidationError("Cannot compute statistics of an empty frame")
    total = int(values.sum(dtype=np.int64))
    total_sq = int(np.dot(values, values))
    mean = total / count
    if count > 1:
        variance = (total_sq - count * mean * mean) / (count - 1)
        std_dev = math.sqrt(max(variance, 0.0))
    else:
        std_dev = math.nan
    return int(values.min()), int(values.max()), mean, std_dev


@dataclass(frozen=True)
class FrameStats:
    min: int
    max: int
    mean: float
    median: int
    std_dev: float

    @classmethod
    def from_frame(cls, frame: Any) -> "FrameStats":
        return compute_frame_stats(frame)

    def __str__(self) -> str:
        return (
            "Frame Statistics\n"
            f"      Min: {self.min}\n"
            f"      Max: {self.max}\n"
            f"     Mean: {self.mean:.3f}\n"
            f"   Median: {self.median}\n"
            f"  Std Dev: {self.std_dev:.3f}\n"
        )


def compute_frame_stats(source: Any) -> FrameStats:
    """Compute FrameStats over every sample of ``source``.

    Raises:
        ValidationError: for empty or non-integer input
    """
    values = as_sample_array(source).astype(np.int64)
    minimum, maximum, mean, std_dev = sample_moments(values)
    mid = values.size // 2
    median = int(np.partition(values, mid)[mid])
    return FrameStats(min=minimum, max=maximum, mean=mean, median=median, std_dev=std_dev)
