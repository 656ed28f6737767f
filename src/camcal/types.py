"""
Core data structures for camcal.

All types are frozen dataclasses or enums - data containers only.
Logic is in separate pure functions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum

import numpy as np


# ============================================================================
# Enumerations
# ============================================================================


class PatternKind(IntEnum):
    """Calibration target type. Values match the CLI pattern selector."""

    CHECKERBOARD = 0
    ASYMMETRIC_CIRCLE_GRID = 1


class CameraId(Enum):
    LEFT = "left"
    RIGHT = "right"


class CalibrationMode(Enum):
    """
    Calibration stage, fixed for a whole session.

    MONO calibrates a single camera using the whole frame. The other modes
    work on a side-by-side stereo frame split into left/right halves.
    """

    MONO = "mono"
    MONO_LEFT = "left"
    MONO_RIGHT = "right"
    STEREO = "stereo"

    @property
    def cameras(self) -> tuple[CameraId, ...]:
        """Cameras whose observations this mode requires, in display order."""
        if self is CalibrationMode.STEREO:
            return (CameraId.LEFT, CameraId.RIGHT)
        if self is CalibrationMode.MONO_RIGHT:
            return (CameraId.RIGHT,)
        return (CameraId.LEFT,)


class Phase(Enum):
    COLLECTING = "collecting"
    COMPUTED = "computed"


class Command(Enum):
    """Operator commands, one per key press."""

    ADD = "add"
    REMOVE_LAST = "remove_last"
    CLEAR_ALL = "clear_all"
    CALIBRATE = "calibrate"
    RESTART = "restart"
    QUIT = "quit"


# ============================================================================
# Pattern
# ============================================================================


@dataclass(frozen=True)
class PatternSpec:
    """
    Static description of the calibration target.

    Build with camcal.pattern.make_pattern_spec() so that reference_points
    is generated from grid_size/spacing/kind.
    """

    kind: PatternKind
    grid_size: tuple[int, int]  # (columns, rows)
    spacing: float  # Distance between adjacent reference points
    reference_points: np.ndarray  # (columns * rows, 3) float32, row-major
    detector_flags: int = 0
    downsample_factor: int = 1

    @property
    def point_count(self) -> int:
        return self.grid_size[0] * self.grid_size[1]

    @property
    def fixed_point_index(self) -> int:
        """Reference point held fixed during calibration (rightmost column)."""
        return self.grid_size[0] - 1


# ============================================================================
# Observations
# ============================================================================


@dataclass(frozen=True, slots=True)
class Observation:
    """
    One camera's detected points for a single frame.

    points is None when the pattern was not found.
    """

    camera_id: CameraId
    points: np.ndarray | None = None  # (n, 2) image coordinates (x, y)


# ============================================================================
# Calibration Results
# ============================================================================


@dataclass(frozen=True, slots=True)
class CameraIntrinsics:
    """Intrinsic parameters for one camera."""

    matrix: np.ndarray  # 3x3 camera matrix
    distortion: np.ndarray  # Distortion coefficients, length set by the estimator
    error: float = 0.0  # RMS reprojection error
    view_count: int = 0  # Number of observation sets used


@dataclass(frozen=True, slots=True)
class StereoExtrinsics:
    """Pose of the right camera relative to the left one."""

    rotation: np.ndarray  # R, 3x3
    translation: np.ndarray  # T, (3, 1)
    essential: np.ndarray  # E, 3x3
    fundamental: np.ndarray  # F, 3x3
    error: float = 0.0


@dataclass(frozen=True)
class CalibrationResult:
    """
    Output of one Calibrate command.

    Stereo results also carry the (fixed) intrinsics they were computed with,
    so a preview never has to look anywhere else.
    """

    mode: CalibrationMode
    intrinsics: dict[CameraId, CameraIntrinsics] = field(default_factory=dict)
    stereo: StereoExtrinsics | None = None


# ============================================================================
# Settings
# ============================================================================


@dataclass(frozen=True, slots=True)
class EstimatorSettings:
    """
    Estimator configuration.

    rational_model enables k4-k6 (8 coefficients); otherwise 5 are estimated.
    """

    rational_model: bool = False
