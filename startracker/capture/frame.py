#!/usr/bin/env python3
"""
In-memory camera frames.

A FrameBuffer owns a flat numpy sample array together with the geometry
needed to interpret it: row and column counts, bit depth, the linearization
order and the capture time. CameraFrame wraps a buffer in one of a closed set
of sample widths (8 or 16 bit) and forwards every descriptor query to it.

Two kinds of access are provided:

- ``at(i)`` / ``at(row, col)`` validate the logical index and raise
  FrameIndexError when it is outside the frame.
- ``frame[i]`` / ``frame[row, col]`` (and assignment) resolve the offset and
  touch the array directly with no logical bounds check. A 2-D index whose
  column is past ``cols`` silently lands on another pixel. These exist for
  hot loops; use ``at`` anywhere the index is not already known to be valid.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import operator
from typing import Any, Optional, Sequence, Union

import numpy as np

from startracker.exceptions import FrameIndexError, LengthMismatchError, ValidationError

FrameTime = datetime


class PixelOrder(Enum):
    ROW_MAJOR = "RowMajor"
    COL_MAJOR = "ColMajor"

    def __str__(self) -> str:
        return self.value


class PixelFormat(Enum):
    MONO = "MONO"
    BAYER_RGGB = "BayerRGGB"
    BAYER_GRBG = "BayerGRBG"
    BAYER_BGRG = "BayerBGRG"
    BAYER_BGGR = "BayerBGGR"
    BAYER_CYYM = "BayerCYYM"
    BAYER_YCMY = "BayerYCMY"
    BAYER_YMCY = "BayerYMCY"
    BAYER_MYYC = "BayerMYYC"
    RGB = "RGB"
    BGR = "BGR"

    def __str__(self) -> str:
        return self.value


def utc_now() -> FrameTime:
    return datetime.now(timezone.utc)


def _as_utc(timestamp: FrameTime) -> FrameTime:
    # Naive datetimes are taken to be UTC already
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def _check_sample_dtype(dtype: np.dtype) -> np.dtype:
    dtype = np.dtype(dtype)
    if not np.issubdtype(dtype, np.integer) or not np.can_cast(dtype, np.int64):
        raise ValidationError(
            f"Unsupported sample type {dtype}; expected an integer type convertible to int64",
            {"dtype": str(dtype)},
        )
    return dtype


class FrameBuffer:
    """Fixed-size 2-D sample buffer with an explicit linearization order.

    Use the ``zeros`` and ``from_samples`` constructors; both copy into a
    private array so the buffer never aliases caller memory.
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        bit_depth: int,
        pixel_order: PixelOrder,
        timestamp: FrameTime,
        samples: np.ndarray,
    ) -> None:
        if rows < 0 or cols < 0:
            raise ValidationError("Frame dimensions must be non-negative", {"rows": rows, "cols": cols})
        if samples.ndim != 1:
            raise ValidationError("Samples must be a flat sequence", {"ndim": samples.ndim})
        _check_sample_dtype(samples.dtype)
        if samples.size != rows * cols:
            raise LengthMismatchError(rows * cols, int(samples.size))
        self._rows = int(rows)
        self._cols = int(cols)
        self._bit_depth = int(bit_depth)
        self._pixel_order = PixelOrder(pixel_order)
        self._timestamp = _as_utc(timestamp)
        self._samples = samples

    @classmethod
    def zeros(cls, rows: int, cols: int, bit_depth: int, dtype: Any = np.uint16) -> "FrameBuffer":
        """All-zero buffer in column-major order stamped with the current time."""
        dtype = _check_sample_dtype(dtype)
        return cls(rows, cols, bit_depth, PixelOrder.COL_MAJOR, utc_now(), np.zeros(rows * cols, dtype=dtype))

    @classmethod
    def from_samples(
        cls,
        rows: int,
        cols: int,
        bit_depth: int,
        pixel_order: PixelOrder,
        timestamp: FrameTime,
        samples: Union[Sequence[int], np.ndarray],
        dtype: Any = None,
    ) -> "FrameBuffer":
        """Copy ``samples`` verbatim into a new buffer.

        Raises:
            LengthMismatchError: if ``len(samples) != rows * cols``
            ValidationError: if the samples are not a flat integer sequence,
                or do not fit in ``dtype``
        """
        try:
            data = np.array(samples, copy=True)
        except (OverflowError, ValueError, TypeError) as e:
            raise ValidationError(f"Samples are not a numeric sequence: {e}") from e
        if dtype is not None:
            target = np.dtype(dtype)
            if (
                data.size
                and np.issubdtype(data.dtype, np.integer)
                and np.issubdtype(target, np.integer)
                and not np.can_cast(data.dtype, target)
            ):
                info = np.iinfo(target)
                low, high = int(data.min()), int(data.max())
                if low < info.min or high > info.max:
                    raise ValidationError(
                        f"Sample values {low}..{high} do not fit in {target}",
                        {"dtype": str(target), "min": low, "max": high},
                    )
            data = data.astype(target)
        return cls(rows, cols, bit_depth, pixel_order, timestamp, data)

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def bit_depth(self) -> int:
        return self._bit_depth

    @property
    def pixel_format(self) -> PixelFormat:
        return PixelFormat.MONO

    @property
    def pixel_order(self) -> PixelOrder:
        return self._pixel_order

    @property
    def timestamp(self) -> FrameTime:
        return self._timestamp

    @property
    def dtype(self) -> np.dtype:
        return self._samples.dtype

    @property
    def size(self) -> int:
        return self._rows * self._cols

    def __len__(self) -> int:
        return self.size

    @property
    def samples(self) -> np.ndarray:
        """Read-only view of the flat sample storage."""
        view = self._samples.view()
        view.flags.writeable = False
        return view

    @property
    def pixels(self) -> np.ndarray:
        """Read-only 2-D view of the stored raster, no copy.

        Shaped (cols, rows) for column-major buffers and (rows, cols) for
        row-major ones, i.e. each numpy row is one contiguous run of storage.
        """
        if self._pixel_order is PixelOrder.COL_MAJOR:
            return self.samples.reshape((self._cols, self._rows))
        return self.samples.reshape((self._rows, self._cols))

    def as_array(self) -> np.ndarray:
        """Read-only 2-D view indexed [row, col], consistent with at(row, col)."""
        if self._pixel_order is PixelOrder.COL_MAJOR:
            return self.pixels.T
        return self.pixels

    def row_major_samples(self) -> np.ndarray:
        """Copy of the samples relinearized row-major over (rows, cols)."""
        return self.as_array().flatten(order="C")

    def linear_index(self, row: int, col: int) -> int:
        """Storage offset of (row, col); performs no bounds validation."""
        if self._pixel_order is PixelOrder.COL_MAJOR:
            return col * self._rows + row
        return row * self._cols + col

    def at(self, *index: int) -> int:
        """Bounds-checked read: ``at(i)`` for a flat offset or ``at(row, col)``."""
        if len(index) == 1:
            i = operator.index(index[0])
            if not 0 <= i < self.size:
                raise FrameIndexError(i, {"size": self.size})
            return int(self._samples[i])
        if len(index) == 2:
            row, col = operator.index(index[0]), operator.index(index[1])
            if not (0 <= row < self._rows and 0 <= col < self._cols):
                raise FrameIndexError(
                    (row, col),
                    {"rows": self._rows, "cols": self._cols, "offset": self.linear_index(row, col)},
                )
            return int(self._samples[self.linear_index(row, col)])
        raise TypeError(f"at() takes 1 or 2 indices ({len(index)} given)")

    def __getitem__(self, key: Any) -> Any:
        # Unchecked
        if isinstance(key, tuple):
            return self._samples[self.linear_index(*key)]
        return self._samples[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        # Unchecked
        if isinstance(key, tuple):
            self._samples[self.linear_index(*key)] = value
        else:
            self._samples[key] = value

    def __repr__(self) -> str:
        return (
            f"FrameBuffer(rows={self._rows}, cols={self._cols}, bit_depth={self._bit_depth}, "
            f"dtype={self.dtype}, pixel_order={self._pixel_order})"
        )

    def __str__(self) -> str:
        return (
            "Monochromatic Camera Frame\n"
            f"  Pixel Format: {self._rows} X {self._cols}\n"
            f"   Pixel Order: {self._pixel_order}\n"
            f"     Bit Depth: {self._bit_depth}\n"
            f"    Frame Time: {self._timestamp.isoformat()}\n"
        )


class FrameKind(Enum):
    """Closed set of supported sample widths."""
    MONO8 = "Mono8"
    MONO16 = "Mono16"

    @property
    def dtype(self) -> np.dtype:
        return _KIND_DTYPES[self]

    @classmethod
    def for_dtype(cls, dtype: Any) -> "FrameKind":
        dtype = np.dtype(dtype)
        for kind, kind_dtype in _KIND_DTYPES.items():
            if kind_dtype == dtype:
                return kind
        raise ValidationError(f"No frame kind for sample type {dtype}", {"dtype": str(dtype)})


_KIND_DTYPES = {
    FrameKind.MONO8: np.dtype(np.uint8),
    FrameKind.MONO16: np.dtype(np.uint16),
}


@dataclass(frozen=True)
class CameraFrame:
    """A FrameBuffer tagged with its sample width."""

    kind: FrameKind
    buffer: FrameBuffer

    def __post_init__(self) -> None:
        if self.buffer.dtype != self.kind.dtype:
            raise ValidationError(
                f"{self.kind.value} frame requires {self.kind.dtype} samples, got {self.buffer.dtype}",
                {"kind": self.kind.value, "dtype": str(self.buffer.dtype)},
            )

    @classmethod
    def mono8(cls, buffer: FrameBuffer) -> "CameraFrame":
        return cls(FrameKind.MONO8, buffer)

    @classmethod
    def mono16(cls, buffer: FrameBuffer) -> "CameraFrame":
        return cls(FrameKind.MONO16, buffer)

    @classmethod
    def from_buffer(cls, buffer: FrameBuffer) -> "CameraFrame":
        return cls(FrameKind.for_dtype(buffer.dtype), buffer)

    @classmethod
    def zeros(cls, rows: int, cols: int, bit_depth: int, kind: FrameKind = FrameKind.MONO16) -> "CameraFrame":
        return cls(kind, FrameBuffer.zeros(rows, cols, bit_depth, dtype=kind.dtype))

    @classmethod
    def from_samples(
        cls,
        kind: FrameKind,
        rows: int,
        cols: int,
        bit_depth: int,
        pixel_order: PixelOrder,
        timestamp: FrameTime,
        samples: Union[Sequence[int], np.ndarray],
    ) -> "CameraFrame":
        buffer = FrameBuffer.from_samples(rows, cols, bit_depth, pixel_order, timestamp, samples, dtype=kind.dtype)
        return cls(kind, buffer)

    @property
    def rows(self) -> int:
        return self.buffer.rows

    @property
    def cols(self) -> int:
        return self.buffer.cols

    @property
    def width(self) -> int:
        """Columns of the stored raster (``pixels.shape[1]``)."""
        return self.buffer.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.buffer.pixels.shape[0]

    @property
    def bit_depth(self) -> int:
        return self.buffer.bit_depth

    @property
    def pixel_format(self) -> PixelFormat:
        return self.buffer.pixel_format

    @property
    def pixel_order(self) -> PixelOrder:
        return self.buffer.pixel_order

    @property
    def timestamp(self) -> FrameTime:
        return self.buffer.timestamp

    @property
    def samples(self) -> np.ndarray:
        return self.buffer.samples

    @property
    def pixels(self) -> np.ndarray:
        return self.buffer.pixels

    def at(self, *index: int) -> int:
        return self.buffer.at(*index)

    def __getitem__(self, key: Any) -> Any:
        return self.buffer[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        self.buffer[key] = value

    def __str__(self) -> str:
        return str(self.buffer)


def describe_frame(frame: CameraFrame, index: Optional[int] = None) -> str:
    """Multi-line descriptor of a frame as shown by the CLI."""
    title = "Camera Frame" if index is None else f"Camera Frame {index}"
    return (
        f"{title}\n"
        f"  Pixel Format: {frame.pixel_format}\n"
        f"  Pixel Order: {frame.pixel_order}\n"
        f"  Rows: {frame.rows}\n"
        f"  Cols: {frame.cols}\n"
        f"  Bit Depth: {frame.bit_depth}\n"
        f"  Time: {frame.timestamp.isoformat()}\n"
    )
