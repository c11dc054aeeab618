#!/usr/bin/env python3
"""
Star Tracker Frame Pipeline
===========================

Reads SER video containers of astronomical camera frames and finds point
source stars in each frame.

Modules:
--------
- capture.frame: FrameBuffer and CameraFrame (8/16-bit mono frames)
- container.ser_file: SER container parsing
- container.timestamps: SER tick conversion
- processing.frame_stats: Frame statistics
- processing.star_finder: Star segmentation and centroiding
- services.frame_writer: PNG/FITS export
- config_manager: Configuration management
- exceptions: Custom exception hierarchy
- status: Status object system
"""

__version__ = "1.0.0"
__author__ = "Star Tracker Team"

from .capture.frame import CameraFrame, FrameBuffer, FrameKind, PixelFormat, PixelOrder
from .container.ser_file import ColorID, Endian, SERFile, SERHeader, parse_ser_bytes, read_ser_file
from .processing.frame_stats import FrameStats, compute_frame_stats
from .processing.star_finder import FindStarsOptions, Segment, find_stars, find_stars_in_frame, find_stars_in_image
from .exceptions import StarTrackerError
from .status import Status

__all__ = [
    "CameraFrame",
    "ColorID",
    "Endian",
    "FindStarsOptions",
    "FrameBuffer",
    "FrameKind",
    "FrameStats",
    "PixelFormat",
    "PixelOrder",
    "SERFile",
    "SERHeader",
    "Segment",
    "StarTrackerError",
    "Status",
    "compute_frame_stats",
    "find_stars",
    "find_stars_in_frame",
    "find_stars_in_image",
    "parse_ser_bytes",
    "read_ser_file",
]
