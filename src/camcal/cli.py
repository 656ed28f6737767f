#!/usr/bin/env python3
"""
camcal - interactive camera calibration.

Usage:
    camcal <video_device> <pattern_type> <mode> [--config FILE] [--output-dir DIR]
    camcal --help

pattern_type:
    0 - checkerboard
    1 - asymmetric circle grid

mode:
    mono    - single camera, whole frame (K, D)
    left    - left half of a side-by-side stereo frame (Kl, Dl)
    right   - right half of a side-by-side stereo frame (Kr, Dr)
    stereo  - both halves, needs the left and right results (R, T, E, F)
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from loguru import logger

from .capture import CONTROLS_HELP, resolve_device
from .config import load_session_config
from .errors import BufferInvariantError, ConfigurationError
from .log import configure_logging
from .types import CalibrationMode, PatternKind

EXIT_CONFIGURATION_ERROR = 1
EXIT_INVARIANT_VIOLATION = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="camcal",
        description=__doc__,
        epilog=CONTROLS_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("device", help="Video device number, path or URL")
    parser.add_argument(
        "pattern",
        type=int,
        choices=[kind.value for kind in PatternKind],
        help="0 - checkerboard, 1 - asymmetric circle grid",
    )
    parser.add_argument(
        "mode",
        choices=[mode.value for mode in CalibrationMode],
        help="Calibration mode",
    )
    parser.add_argument("--config", type=Path, default=None, help="Session config TOML file")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for parameter files (overrides [files] output_dir)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_session_config(args.config)
        if args.output_dir is not None:
            config = replace(config, files=replace(config.files, output_dir=args.output_dir))
        try:
            configure_logging("DEBUG" if args.verbose else config.log_level)
        except ValueError as e:
            raise ConfigurationError(f"Invalid log_level '{config.log_level}': {e}") from e

        # Imported here so --help never pulls in the capture loop
        from .app import run_session

        run_session(
            resolve_device(args.device, config.capture.api),
            PatternKind(args.pattern),
            CalibrationMode(args.mode),
            config,
        )
    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_CONFIGURATION_ERROR
    except BufferInvariantError as e:
        logger.critical(f"Calibration aborted: {e}")
        return EXIT_INVARIANT_VIOLATION

    return 0


if __name__ == "__main__":
    sys.exit(main())
