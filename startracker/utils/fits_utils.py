"""Utilities to enrich FITS headers from frame and SER container metadata."""

from __future__ import annotations

from typing import Any, Dict, Optional

from startracker.capture.frame import CameraFrame


class FitsHeaderKeys:
    DATE_OBS = 'DATE-OBS'
    OBSERVER = 'OBSERVER'
    INSTRUME = 'INSTRUME'
    TELESCOP = 'TELESCOP'
    BITDEPTH = 'BITDEPTH'
    COLORID = 'COLORID'
    PIXORDER = 'PIXORDER'
    FRAMENUM = 'FRAMENUM'


def enrich_header_from_metadata(
    header,  # fits.Header
    frame: CameraFrame,
    container: Optional[Any] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """Populate a FITS header with frame timing and container identity.

    ``container`` may be a SERHeader or SERFile; empty text fields are
    omitted. ``extra`` entries are copied last and win over derived values.

    This function mutates the provided header in-place.
    """
    header[FitsHeaderKeys.DATE_OBS] = frame.timestamp.replace(tzinfo=None).isoformat(timespec='microseconds')
    header[FitsHeaderKeys.BITDEPTH] = frame.bit_depth
    header[FitsHeaderKeys.PIXORDER] = str(frame.pixel_order)

    if container is not None:
        for key, attr in (
            (FitsHeaderKeys.OBSERVER, 'observer'),
            (FitsHeaderKeys.INSTRUME, 'instrument'),
            (FitsHeaderKeys.TELESCOP, 'telescope'),
        ):
            value = getattr(container, attr, None)
            if value:
                header[key] = value
        color_id = getattr(container, 'color_id', None)
        if color_id is not None:
            header[FitsHeaderKeys.COLORID] = str(color_id)

    if extra:
        for key, value in extra.items():
            header[str(key).upper()[:8]] = value
