"""
Calibration pattern construction.

Pure functions - no classes, no state.
"""

from __future__ import annotations

import cv2
import numpy as np

from .errors import ConfigurationError
from .types import Observation, PatternKind, PatternSpec


# ============================================================================
# Detector Flags
# ============================================================================

DETECTOR_FLAGS = {
    PatternKind.CHECKERBOARD: (
        cv2.CALIB_CB_ADAPTIVE_THRESH
        + cv2.CALIB_CB_NORMALIZE_IMAGE
        + cv2.CALIB_CB_FAST_CHECK
    ),
    PatternKind.ASYMMETRIC_CIRCLE_GRID: (
        cv2.CALIB_CB_ASYMMETRIC_GRID + cv2.CALIB_CB_CLUSTERING
    ),
}

# (columns, rows, spacing) of the stock targets
DEFAULT_GEOMETRY = {
    PatternKind.CHECKERBOARD: (9, 6, 23.0),
    PatternKind.ASYMMETRIC_CIRCLE_GRID: (4, 11, 20.0),
}

DEFAULT_DOWNSAMPLE_FACTOR = 4


# ============================================================================
# Reference Points
# ============================================================================


def generate_reference_points(
    kind: PatternKind,
    grid_size: tuple[int, int],
    spacing: float,
) -> np.ndarray:
    """
    Generate the 3D reference layout of a planar target on z=0.

    Points are row-major: row i, column j is at index i * columns + j.

    Args:
        kind: Pattern type
        grid_size: (columns, rows)
        spacing: Distance between adjacent points

    Returns:
        (columns * rows, 3) float32 array
    """
    columns, rows = grid_size
    i, j = np.mgrid[0:rows, 0:columns]
    i = i.ravel()
    j = j.ravel()

    if kind is PatternKind.ASYMMETRIC_CIRCLE_GRID:
        x = (2 * j + i % 2) * spacing
    else:
        x = j * spacing
    y = i * spacing

    points = np.zeros((columns * rows, 3), dtype=np.float32)
    points[:, 0] = x
    points[:, 1] = y
    points.setflags(write=False)
    return points


def make_pattern_spec(
    kind: PatternKind,
    grid_size: tuple[int, int] | None = None,
    spacing: float | None = None,
    downsample_factor: int = DEFAULT_DOWNSAMPLE_FACTOR,
) -> PatternSpec:
    """
    Build a PatternSpec, filling unset geometry from the stock target.

    Raises:
        ConfigurationError: If the geometry is unusable
    """
    kind = PatternKind(kind)
    default_columns, default_rows, default_spacing = DEFAULT_GEOMETRY[kind]
    grid_size = tuple(grid_size) if grid_size is not None else (default_columns, default_rows)
    spacing = float(spacing) if spacing is not None else default_spacing

    columns, rows = grid_size
    if columns < 2 or rows < 2:
        raise ConfigurationError(f"Pattern grid must be at least 2x2, got {columns}x{rows}")
    if spacing <= 0:
        raise ConfigurationError(f"Pattern spacing must be positive, got {spacing}")
    if downsample_factor < 1:
        raise ConfigurationError(
            f"Downsample factor must be >= 1, got {downsample_factor}"
        )

    return PatternSpec(
        kind=kind,
        grid_size=(int(columns), int(rows)),
        spacing=spacing,
        reference_points=generate_reference_points(kind, grid_size, spacing),
        detector_flags=DETECTOR_FLAGS[kind],
        downsample_factor=int(downsample_factor),
    )


def is_valid_observation(observation: Observation | None, pattern: PatternSpec) -> bool:
    """An observation is valid only if every reference point was found."""
    if observation is None or observation.points is None:
        return False
    return len(observation.points) == pattern.point_count
