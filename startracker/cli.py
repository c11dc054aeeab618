#!/usr/bin/env python3
"""
Command-line interface: inspect SER containers, print frame statistics,
detect stars and export frames.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import List, Optional

from startracker.config_manager import ConfigManager
from startracker.capture.frame import describe_frame
from startracker.container.ser_file import SERFile, read_ser_file
from startracker.exceptions import StarTrackerError
from startracker.processing.frame_stats import compute_frame_stats
from startracker.processing.star_finder import FindStarsOptions, find_stars_in_image
from startracker.services.frame_writer import FrameWriter
from startracker.utils.logging_setup import configure_logging

logger = logging.getLogger("startracker.cli")


def _selected_frames(ser: SERFile, args: argparse.Namespace) -> List[int]:
    if getattr(args, "all", False):
        return list(range(len(ser)))
    ser.get_frame(args.frame)
    return [args.frame]


def cmd_info(args: argparse.Namespace, config: ConfigManager) -> int:
    ser = read_ser_file(args.file, config=config)
    print(ser)
    if len(ser):
        print(f"  First Frame: {ser.timestamps[0].isoformat()}")
        print(f"   Last Frame: {ser.timestamps[-1].isoformat()}")
    return 0


def cmd_stats(args: argparse.Namespace, config: ConfigManager) -> int:
    ser = read_ser_file(args.file, config=config)
    for idx in _selected_frames(ser, args):
        print(describe_frame(ser[idx], idx), end="")
        print(compute_frame_stats(ser[idx]))
    return 0


def cmd_stars(args: argparse.Namespace, config: ConfigManager) -> int:
    ser = read_ser_file(args.file, config=config)
    base = FindStarsOptions.from_config(config)
    options = FindStarsOptions(
        threshold=args.threshold if args.threshold is not None else base.threshold,
        minsize=args.minsize if args.minsize is not None else base.minsize,
        legacy_y_centroid=base.legacy_y_centroid,
    )
    logger.debug(str(options))

    results = []
    for idx in _selected_frames(ser, args):
        frame = ser[idx]
        segments = find_stars_in_image(frame, options)
        logger.info(f"Frame {idx}: {len(segments)} segments")
        results.append((idx, frame, segments))

    if args.json:
        payload = [
            {
                "frame": idx,
                "time": frame.timestamp.isoformat(),
                "segments": [s.to_dict() for s in segments],
            }
            for idx, frame, segments in results
        ]
        print(json.dumps(payload, indent=2))
    else:
        for idx, frame, segments in results:
            print(f"Frame {idx} ({frame.timestamp.isoformat()}): {len(segments)} stars")
            for seg in segments:
                x, y = seg.centroid
                print(f"  x={x:9.3f}  y={y:9.3f}  mass={seg.mass:12.1f}  pixels={seg.count}")
    return 0


def cmd_export(args: argparse.Namespace, config: ConfigManager) -> int:
    ser = read_ser_file(args.file, config=config)
    writer = FrameWriter(config=config, logger=logger)
    failures = 0
    for idx in _selected_frames(ser, args):
        if args.output:
            target = Path(args.output)
            if args.all:
                target = target.with_name(f"{target.stem}_{idx:05d}{target.suffix}")
        else:
            target = writer.default_path(Path(args.file).stem, idx)
        status = writer.save(ser[idx], str(target), metadata={"frame_index": idx}, container=ser.header)
        print(f"Frame {idx}: {status}" + (f" -> {status.output_file}" if status.is_success else ""))
        if status.is_error:
            failures += 1
    return 1 if failures else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="startracker",
        description="SER container inspection and star detection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the container header
  startracker info capture.ser

  # Detect stars in frame 3 with a higher threshold
  startracker stars capture.ser --frame 3 --threshold 4.0

  # Export every frame to FITS
  startracker export capture.ser frames/capture.fits --all
        """,
    )
    parser.add_argument(
        "--config", "-c", type=str, default="config.yaml",
        help="Configuration file path (default: config.yaml)",
    )
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p_info = sub.add_parser("info", help="Print the container header")
    p_info.add_argument("file", help="SER file")
    p_info.set_defaults(func=cmd_info)

    def add_frame_selection(p: argparse.ArgumentParser) -> None:
        group = p.add_mutually_exclusive_group()
        group.add_argument("--frame", "-f", type=int, default=0, help="Frame index (default: 0)")
        group.add_argument("--all", "-a", action="store_true", help="Process every frame")

    p_stats = sub.add_parser("stats", help="Print frame statistics")
    p_stats.add_argument("file", help="SER file")
    add_frame_selection(p_stats)
    p_stats.set_defaults(func=cmd_stats)

    p_stars = sub.add_parser("stars", help="Detect stars")
    p_stars.add_argument("file", help="SER file")
    add_frame_selection(p_stars)
    p_stars.add_argument("--threshold", "-t", type=float, default=None,
                         help="Standard deviations above the mean (default: from config)")
    p_stars.add_argument("--minsize", "-m", type=int, default=None,
                         help="Minimum segment size in pixels (default: from config)")
    p_stars.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    p_stars.set_defaults(func=cmd_stars)

    p_export = sub.add_parser("export", help="Write frames to PNG or FITS")
    p_export.add_argument("file", help="SER file")
    p_export.add_argument("output", nargs="?", default=None,
                          help="Output file (.png/.fits); default from the export config section")
    add_frame_selection(p_export)
    p_export.set_defaults(func=cmd_export)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = ConfigManager(args.config)
        configure_logging(config, level="DEBUG" if args.debug else None)
        return args.func(args, config)
    except StarTrackerError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
