import logging as _global_logging
import struct
from typing import Optional, Sequence

import numpy as np
import pytest

from startracker.config_manager import ConfigManager
from startracker.container.ser_file import HEADER_LEN, HEADER_MAGIC

# 2024-05-07T21:33:42Z in SER ticks
BASE_TICKS = 638507144220000000


def _text_field(text: str, size: int) -> bytes:
    raw = text.encode("utf-8")
    return raw + b"\x00" * (size - len(raw))


def build_ser_bytes(
    frames: Sequence[np.ndarray] = (),
    width: Optional[int] = None,
    height: Optional[int] = None,
    bit_depth: int = 16,
    color_id: int = 0,
    endian: int = 0,
    frame_count: Optional[int] = None,
    observer: str = "",
    instrument: str = "",
    telescope: str = "",
    ticks: Optional[Sequence[int]] = None,
    magic: bytes = HEADER_MAGIC,
    lu_id: int = 0,
    sample_dtype: Optional[str] = None,
) -> bytes:
    """Serialize (height, width) frames into a SER container."""
    if frames:
        height = height if height is not None else frames[0].shape[0]
        width = width if width is not None else frames[0].shape[1]
    width = width or 0
    height = height or 0
    frame_count = len(frames) if frame_count is None else frame_count
    if ticks is None:
        ticks = [BASE_TICKS + i * 10_000_000 for i in range(frame_count)]
    if sample_dtype is None:
        sample_dtype = "u1" if bit_depth <= 8 else "<u2"

    header = bytearray(HEADER_LEN)
    header[0:14] = magic
    struct.pack_into("<7I", header, 14, lu_id, color_id, endian, width, height, bit_depth, frame_count)
    header[42:82] = _text_field(observer, 40)
    header[82:122] = _text_field(instrument, 40)
    header[122:152] = _text_field(telescope, 30)

    payload = b"".join(np.asarray(f).astype(sample_dtype).tobytes() for f in frames)
    trailer = np.asarray(list(ticks), dtype="<u8").tobytes()
    return bytes(header) + payload + trailer


@pytest.fixture
def ser_bytes():
    """Builder for in-memory SER containers."""
    return build_ser_bytes


@pytest.fixture
def star_image():
    """(height, width) uint16 image with one 2x2 star and one 3-pixel star."""
    img = np.full((12, 16), 10, dtype=np.uint16)
    img[3, 4] = 900
    img[3, 5] = 700
    img[4, 4] = 800
    img[4, 5] = 600
    img[8, 10] = 500
    img[8, 11] = 400
    img[9, 11] = 450
    return img


@pytest.fixture
def ser_path(tmp_path, star_image):
    """SER file on disk holding two copies of star_image."""
    path = tmp_path / "capture.ser"
    path.write_bytes(
        build_ser_bytes(
            [star_image, star_image],
            observer="Jane Doe",
            instrument="ZWO ASI174MM",
            telescope="Celestron C8",
        )
    )
    return path


@pytest.fixture
def config(tmp_path):
    """Default ConfigManager (no file on disk)."""
    return ConfigManager(str(tmp_path / "missing_config.yaml"))


@pytest.fixture
def logger():
    _global_logging.basicConfig(level=_global_logging.INFO)
    return _global_logging.getLogger("tests")
