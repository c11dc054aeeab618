#!/usr/bin/env python3
"""
SER video container reader.

A SER file is a fixed 178-byte header, ``frame_count`` raw frames and a
trailer of one 64-bit timestamp per frame. The whole file is read into
memory; parse_ser_bytes() is a pure transform from bytes to a SERFile so it
can be exercised against byte fixtures without touching the filesystem.

Header layout (little-endian):

    [0:14]    magic "LUCAM-RECORDER"
    [14:18]   LuID
    [18:22]   color id
    [22:26]   endianness flag (0 little, 1 big)
    [26:30]   width
    [30:34]   height
    [34:38]   bit depth
    [38:42]   frame count
    [42:82]   observer
    [82:122]  instrument
    [122:152] telescope

Frames are materialized with ``rows = width`` and ``cols = height`` in
column-major order, so ``frame.pixels`` is the stored (height, width) raster.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
import logging
from pathlib import Path
import string
import struct
from typing import Any, Iterator, List, Optional, Union

import numpy as np

from startracker.capture.frame import CameraFrame, FrameKind, PixelFormat, PixelOrder
from startracker.container.timestamps import ticks_to_datetime, ticks_to_unix_ns
from startracker.exceptions import (
    ContainerError,
    FrameIndexError,
    HeaderMalformedError,
    SERFileNotFoundError,
    ShortReadError,
    UnknownColorIDError,
    UnknownEndianError,
    UnsupportedFormatError,
)

logger = logging.getLogger(__name__)

HEADER_LEN = 178
HEADER_MAGIC = b"LUCAM-RECORDER"
TIMESTAMP_SIZE = 8

_TEXT_PADDING = "\x00" + string.whitespace


class ColorID(IntEnum):
    MONO = 0
    BAYER_RGGB = 8
    BAYER_GRBG = 9
    BAYER_BGRG = 10
    BAYER_BGGR = 11
    BAYER_CYYM = 16
    BAYER_YCMY = 17
    BAYER_YMCY = 18
    BAYER_MYYC = 19
    RGB = 100
    BGR = 101

    @classmethod
    def from_value(cls, value: int) -> "ColorID":
        try:
            return cls(value)
        except ValueError:
            raise UnknownColorIDError(value) from None

    @property
    def pixel_layers(self) -> int:
        return 3 if self in (ColorID.RGB, ColorID.BGR) else 1

    @property
    def pixel_format(self) -> PixelFormat:
        return _PIXEL_FORMATS[self]

    def __str__(self) -> str:
        return "Mono" if self is ColorID.MONO else self.pixel_format.value


_PIXEL_FORMATS = {
    ColorID.MONO: PixelFormat.MONO,
    ColorID.BAYER_RGGB: PixelFormat.BAYER_RGGB,
    ColorID.BAYER_GRBG: PixelFormat.BAYER_GRBG,
    ColorID.BAYER_BGRG: PixelFormat.BAYER_BGRG,
    ColorID.BAYER_BGGR: PixelFormat.BAYER_BGGR,
    ColorID.BAYER_CYYM: PixelFormat.BAYER_CYYM,
    ColorID.BAYER_YCMY: PixelFormat.BAYER_YCMY,
    ColorID.BAYER_YMCY: PixelFormat.BAYER_YMCY,
    ColorID.BAYER_MYYC: PixelFormat.BAYER_MYYC,
    ColorID.RGB: PixelFormat.RGB,
    ColorID.BGR: PixelFormat.BGR,
}


class Endian(IntEnum):
    LITTLE = 0
    BIG = 1

    @classmethod
    def from_value(cls, value: int) -> "Endian":
        try:
            return cls(value)
        except ValueError:
            raise UnknownEndianError(value) from None

    def __str__(self) -> str:
        return self.name.capitalize()


def _decode_text(raw: bytes, field: str) -> str:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise HeaderMalformedError(f"Header field '{field}' is not valid text", {"field": field}) from e
    return text.strip(_TEXT_PADDING)


@dataclass(frozen=True)
class SERHeader:
    """Decoded fixed-size SER header."""

    lu_id: int
    color_id: ColorID
    endian: Endian
    width: int
    height: int
    bit_depth: int
    frame_count: int
    observer: str
    instrument: str
    telescope: str

    @classmethod
    def parse(cls, data: bytes) -> "SERHeader":
        if len(data) < HEADER_LEN:
            raise ShortReadError("header", HEADER_LEN, len(data))
        header = bytes(data[:HEADER_LEN])
        if header[: len(HEADER_MAGIC)] != HEADER_MAGIC:
            raise HeaderMalformedError(
                "Invalid Header", {"magic": header[: len(HEADER_MAGIC)].decode("latin-1")}
            )

        lu_id, color_value, endian_value, width, height, bit_depth, frame_count = struct.unpack_from(
            "<7I", header, len(HEADER_MAGIC)
        )
        return cls(
            lu_id=lu_id,
            color_id=ColorID.from_value(color_value),
            endian=Endian.from_value(endian_value),
            width=width,
            height=height,
            bit_depth=bit_depth,
            frame_count=frame_count,
            observer=_decode_text(header[42:82], "observer"),
            instrument=_decode_text(header[82:122], "instrument"),
            telescope=_decode_text(header[122:152], "telescope"),
        )

    @property
    def byte_depth(self) -> int:
        return (self.bit_depth + 7) // 8

    @property
    def pixel_layers(self) -> int:
        return self.color_id.pixel_layers

    @property
    def frame_bytes(self) -> int:
        return self.width * self.height * self.byte_depth * self.pixel_layers

    def sample_dtype(self, honor_endian: bool = False) -> np.dtype:
        """Storage dtype of one payload sample.

        The endianness flag only takes effect with ``honor_endian``; by
        default 16-bit samples are always read little-endian.
        """
        if self.pixel_layers != 1:
            raise UnsupportedFormatError(
                f"{self.color_id} containers store {self.pixel_layers} layers per pixel",
                {"color_id": int(self.color_id)},
            )
        if self.byte_depth == 1:
            return np.dtype(np.uint8)
        if self.byte_depth == 2:
            if honor_endian and self.endian is Endian.BIG:
                return np.dtype(">u2")
            return np.dtype("<u2")
        raise UnsupportedFormatError(
            f"Unsupported bit depth: {self.bit_depth}", {"bit_depth": self.bit_depth}
        )

    def __str__(self) -> str:
        return (
            f"   Instrument: {self.instrument}\n"
            f"     Observer: {self.observer}\n"
            f"    Telescope: {self.telescope}\n"
            f"     Color ID: {self.color_id}\n"
            f"       Endian: {self.endian}\n"
            f"        Width: {self.width}\n"
            f"       Height: {self.height}\n"
            f"    Bit Depth: {self.bit_depth}\n"
            f"  Frame Count: {self.frame_count}\n"
        )


class SERFile:
    """A fully decoded SER container: header, frames and per-frame timestamps."""

    def __init__(
        self,
        header: SERHeader,
        frames: List[CameraFrame],
        ticks: List[int],
        filename: str = "",
        legacy_ns_residual: bool = False,
    ) -> None:
        self.header = header
        self.frames = frames
        self.ticks = ticks
        self.filename = filename
        self.legacy_ns_residual = legacy_ns_residual

    @property
    def color_id(self) -> ColorID:
        return self.header.color_id

    @property
    def endian(self) -> Endian:
        return self.header.endian

    @property
    def width(self) -> int:
        return self.header.width

    @property
    def height(self) -> int:
        return self.header.height

    @property
    def bit_depth(self) -> int:
        return self.header.bit_depth

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def observer(self) -> str:
        return self.header.observer

    @property
    def instrument(self) -> str:
        return self.header.instrument

    @property
    def telescope(self) -> str:
        return self.header.telescope

    @property
    def timestamps(self) -> List[datetime]:
        return [frame.timestamp for frame in self.frames]

    def timestamps_ns(self) -> List[int]:
        """Frame times as integer nanoseconds since the Unix epoch."""
        return [ticks_to_unix_ns(t, legacy=self.legacy_ns_residual) for t in self.ticks]

    def get_frame(self, index: int) -> CameraFrame:
        if not 0 <= index < len(self.frames):
            raise FrameIndexError(index, {"frame_count": len(self.frames)})
        return self.frames[index]

    def __getitem__(self, index: int) -> CameraFrame:
        return self.get_frame(index)

    def __len__(self) -> int:
        return len(self.frames)

    def __iter__(self) -> Iterator[CameraFrame]:
        return iter(self.frames)

    def __str__(self) -> str:
        return f"SERFile: {self.filename}\n{self.header}"


def parse_ser_bytes(
    data: Union[bytes, bytearray, memoryview],
    filename: str = "<bytes>",
    honor_endian: bool = False,
    legacy_ns_residual: bool = False,
) -> SERFile:
    """Decode a complete in-memory SER file.

    Any violation aborts the whole parse; no partial frame list is returned.

    Raises:
        HeaderMalformedError: bad magic or undecodable text fields
        UnknownColorIDError, UnknownEndianError: unmapped header enums
        ShortReadError: truncated header, payload or timestamp trailer
        UnsupportedFormatError: RGB/BGR payloads or bit depths above 16
    """
    view = memoryview(data).cast("B")
    header = SERHeader.parse(view[:HEADER_LEN])
    logger.debug(f"SER header for {filename}:\n{header}")

    frame_bytes = header.frame_bytes
    payload_len = frame_bytes * header.frame_count
    payload = view[HEADER_LEN:HEADER_LEN + payload_len]
    if len(payload) < payload_len:
        raise ShortReadError("payload", payload_len, len(payload))

    trailer_start = HEADER_LEN + payload_len
    trailer_len = TIMESTAMP_SIZE * header.frame_count
    trailer = view[trailer_start:trailer_start + trailer_len]
    if len(trailer) < trailer_len:
        raise ShortReadError("timestamps", trailer_len, len(trailer))
    extra = len(view) - trailer_start - trailer_len
    if extra:
        logger.debug(f"Ignoring {extra} trailing bytes in {filename}")

    ticks = [int(t) for t in np.frombuffer(trailer, dtype="<u8")]
    try:
        times = [ticks_to_datetime(t) for t in ticks]
    except OverflowError as e:
        raise ContainerError("Frame timestamp out of range", {"filename": filename}) from e

    dtype = header.sample_dtype(honor_endian=honor_endian)
    kind = FrameKind.MONO8 if dtype.itemsize == 1 else FrameKind.MONO16
    if header.endian is Endian.BIG and not honor_endian and kind is FrameKind.MONO16:
        logger.debug(f"{filename} is flagged big-endian; samples decoded little-endian")

    frames: List[CameraFrame] = []
    for idx in range(header.frame_count):
        chunk = payload[idx * frame_bytes:(idx + 1) * frame_bytes]
        samples = np.frombuffer(chunk, dtype=dtype)
        frames.append(
            CameraFrame.from_samples(
                kind,
                header.width,
                header.height,
                header.bit_depth,
                PixelOrder.COL_MAJOR,
                times[idx],
                samples,
            )
        )

    logger.info(f"Loaded {len(frames)} {kind.value} frames from {filename}")
    return SERFile(header, frames, ticks, filename=filename, legacy_ns_residual=legacy_ns_residual)


def read_ser_file(
    filename: Union[str, Path],
    config: Optional[Any] = None,
    honor_endian: Optional[bool] = None,
    legacy_ns_residual: Optional[bool] = None,
) -> SERFile:
    """Read a SER file from disk and decode it.

    Explicit keyword arguments override the 'ingest' configuration section.

    Raises:
        SERFileNotFoundError: if ``filename`` is not a regular file
        ContainerError: any parse failure, see parse_ser_bytes()
    """
    ingest_cfg = config.get_ingest_config() if config is not None else {}
    if honor_endian is None:
        honor_endian = bool(ingest_cfg.get("honor_endian_flag", False))
    if legacy_ns_residual is None:
        legacy_ns_residual = bool(ingest_cfg.get("legacy_ns_residual", False))

    path = Path(filename)
    if not path.is_file():
        raise SERFileNotFoundError(str(filename))
    data = path.read_bytes()
    return parse_ser_bytes(
        data, filename=str(filename), honor_endian=honor_endian, legacy_ns_residual=legacy_ns_residual
    )
