#!/usr/bin/env python3
"""
FrameWriter: saves camera frames to PNG or FITS.

PNG output is restricted to 16-bit mono frames and written as single-channel
16-bit grayscale. Pillow serializes the samples big-endian as the PNG format
requires; files produced by older releases carried the raw little-endian
bytes and appear byte-swapped to standard readers.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
from PIL import Image

from startracker.capture.frame import CameraFrame, FrameKind
from startracker.status import StatusLevel, export_status, ExportStatus
from startracker.utils.fits_utils import FitsHeaderKeys, enrich_header_from_metadata


class FrameWriter:
    def __init__(self, config: Any = None, logger: Optional[logging.Logger] = None) -> None:
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        try:
            export_cfg = self.config.get_export_config() if self.config is not None else {}
            self.output_dir = Path(export_cfg.get("output_dir", "exported_frames"))
            self.file_format = str(export_cfg.get("file_format", "png")).lower()
        except AttributeError:
            self.output_dir = Path("exported_frames")
            self.file_format = "png"

    def default_path(self, stem: str, index: Optional[int] = None) -> Path:
        """Output path under the configured directory in the configured format."""
        suffix = ".fits" if self.file_format in ("fit", "fits") else ".png"
        name = stem if index is None else f"{stem}_{index:05d}"
        return self.output_dir / f"{name}{suffix}"

    def save(
        self,
        frame: CameraFrame,
        filename: str,
        metadata: Optional[Dict[str, Any]] = None,
        container: Optional[Any] = None,
    ) -> ExportStatus:
        suffix = Path(filename).suffix.lower()
        if suffix in (".fit", ".fits"):
            return self.save_fits(frame, filename, metadata, container)
        return self.save_png(frame, filename)

    def save_png(self, frame: CameraFrame, filename: str) -> ExportStatus:
        """Write a MONO16 frame's stored raster as 16-bit grayscale PNG."""
        path = Path(filename)
        if path.suffix.lower() != ".png":
            path = path.with_suffix(".png")

        if frame.kind is not FrameKind.MONO16:
            self.logger.warning(f"Cannot write {frame.kind.value} frame as PNG: {path}")
            return export_status(StatusLevel.ERROR, f"Cannot write frame with format {frame.kind.value}", None, "png")

        try:
            image = Image.fromarray(np.array(frame.pixels, dtype=np.uint16))
            if path.parent and str(path.parent) not in ("", "."):
                os.makedirs(path.parent, exist_ok=True)
            image.save(path, format="PNG")
        except (OSError, ValueError) as e:
            self.logger.error(f"Error saving PNG file {path}: {e}")
            return export_status(StatusLevel.ERROR, f"Error saving PNG file: {e}", None, "png")

        self.logger.debug(f"PNG written: {path}")
        return export_status(StatusLevel.SUCCESS, "PNG file saved", str(path), "png")

    def save_fits(
        self,
        frame: CameraFrame,
        filename: str,
        metadata: Optional[Dict[str, Any]] = None,
        container: Optional[Any] = None,
    ) -> ExportStatus:
        """Write a frame's stored raster to FITS with timing and container headers."""
        try:
            import astropy.io.fits as fits
        except ImportError as e:
            return export_status(StatusLevel.ERROR, f"Astropy not available for FITS saving: {e}", None, "fits")

        path = Path(filename)
        image_data = np.array(frame.pixels, dtype=frame.kind.dtype)

        try:
            extra = dict(metadata or {})
            frame_index = extra.pop("frame_index", None)
            header = fits.Header()
            enrich_header_from_metadata(header, frame, container, extra)
            if frame_index is not None:
                header[FitsHeaderKeys.FRAMENUM] = int(frame_index)
            hdu = fits.PrimaryHDU(image_data, header=header)
            if path.parent and str(path.parent) not in ("", "."):
                os.makedirs(path.parent, exist_ok=True)
            hdu.writeto(path, overwrite=True)
        except (OSError, ValueError) as e:
            self.logger.error(f"Error saving FITS file {path}: {e}")
            return export_status(StatusLevel.ERROR, f"Error saving FITS file: {e}", None, "fits")

        self.logger.debug(f"FITS written: {path}")
        return export_status(StatusLevel.SUCCESS, "FITS file saved", str(path), "fits")
