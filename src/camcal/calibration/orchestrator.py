"""
Calibration sequencing for the four calibration modes.

Reads the buffer, calls the estimator, writes parameter files. The buffer is
never modified; files are only written after a successful estimate.
"""

from __future__ import annotations

from collections.abc import Mapping

import numpy as np
import rtoml
from loguru import logger

from ..buffer import CalibrationBuffer, buffer_size, require_paired
from ..config import ParameterFiles, load_parameters, save_parameters
from ..errors import CalibrationError, ConfigurationError, MissingIntrinsicsError
from ..types import (
    CalibrationMode,
    CalibrationResult,
    CameraId,
    CameraIntrinsics,
    EstimatorSettings,
    PatternSpec,
)
from .estimation import calibrate_camera, calibrate_stereo


# Parameter file keys per mode: (camera matrix, distortion)
INTRINSIC_KEYS = {
    CalibrationMode.MONO: ("K", "D"),
    CalibrationMode.MONO_LEFT: ("Kl", "Dl"),
    CalibrationMode.MONO_RIGHT: ("Kr", "Dr"),
}
STEREO_KEYS = ("R", "T", "E", "F")

# Stereo prerequisites: camera -> mode whose file holds its intrinsics
PREREQUISITE_MODES = {
    CameraId.LEFT: CalibrationMode.MONO_LEFT,
    CameraId.RIGHT: CalibrationMode.MONO_RIGHT,
}

MIN_VIEWS = 2

# Distortion vector lengths cv2 accepts
DISTORTION_LENGTHS = (4, 5, 8, 12, 14)


# ============================================================================
# Prerequisites
# ============================================================================


def load_intrinsics(files: ParameterFiles, mode: CalibrationMode) -> CameraIntrinsics:
    """
    Load intrinsics persisted by a mono-mode session.

    Raises:
        MissingIntrinsicsError: If the file is missing, unreadable or incomplete
    """
    path = files.path_for(mode)
    matrix_key, distortion_key = INTRINSIC_KEYS[mode]

    try:
        params = load_parameters(path)
    except (OSError, ValueError, rtoml.TomlParsingError) as e:
        raise MissingIntrinsicsError(path, str(e)) from e

    if params is None:
        raise MissingIntrinsicsError(path, "file not found")

    missing = [key for key in (matrix_key, distortion_key) if key not in params]
    if missing:
        raise MissingIntrinsicsError(path, f"missing keys {missing}")

    matrix = params[matrix_key]
    if matrix.shape != (3, 3):
        raise MissingIntrinsicsError(path, f"{matrix_key} has shape {matrix.shape}")

    distortion = params[distortion_key]
    if distortion.size not in DISTORTION_LENGTHS or max(distortion.shape, default=1) != distortion.size:
        raise MissingIntrinsicsError(
            path, f"{distortion_key} has shape {distortion.shape}, expected a vector of {DISTORTION_LENGTHS} coefficients"
        )

    rms = params.get("rms", np.zeros(()))
    if rms.size != 1:
        raise MissingIntrinsicsError(path, f"rms has {rms.size} values")

    return CameraIntrinsics(
        matrix=matrix,
        distortion=distortion.ravel(),
        error=float(rms.item()),
    )


def load_stereo_prerequisites(files: ParameterFiles) -> dict[CameraId, CameraIntrinsics]:
    """
    Load left and right intrinsics required before any stereo calibration.

    Raises:
        MissingIntrinsicsError: If either camera's file can't be used
    """
    prerequisites = {
        camera_id: load_intrinsics(files, mode)
        for camera_id, mode in PREREQUISITE_MODES.items()
    }
    logger.info(
        f"Loaded stereo prerequisites from {files.path_for(CalibrationMode.MONO_LEFT)} "
        f"and {files.path_for(CalibrationMode.MONO_RIGHT)}"
    )
    return prerequisites


# ============================================================================
# Calibration
# ============================================================================


def replicate_reference_points(pattern: PatternSpec, count: int) -> list[np.ndarray]:
    """One copy of the reference layout per accepted observation set."""
    return [pattern.reference_points] * count


def run_calibration(
    buffer: CalibrationBuffer,
    pattern: PatternSpec,
    image_size: tuple[int, int],
    files: ParameterFiles,
    prerequisites: Mapping[CameraId, CameraIntrinsics] | None = None,
    settings: EstimatorSettings = EstimatorSettings(),
) -> CalibrationResult:
    """
    Calibrate from the accepted observations and persist the result.

    Args:
        buffer: Accepted observation sets (read only)
        pattern: PatternSpec of the target
        image_size: (width, height) of a single camera image
        files: Parameter file locations
        prerequisites: Left/right intrinsics, required in stereo mode
        settings: EstimatorSettings

    Returns:
        CalibrationResult

    Raises:
        BufferInvariantError: If stereo sequences are out of step
        CalibrationError: If there are too few views, the estimator fails
            or the parameter file can't be written
        ConfigurationError: If stereo prerequisites are absent
    """
    require_paired(buffer)

    count = buffer_size(buffer)
    if count < MIN_VIEWS:
        raise CalibrationError(
            f"Insufficient views for calibration: {count} (need at least {MIN_VIEWS})"
        )

    object_points = replicate_reference_points(pattern, count)
    mode = buffer.mode

    if mode is CalibrationMode.STEREO:
        result = _calibrate_stereo(buffer, object_points, image_size, prerequisites)
    else:
        result = _calibrate_mono(buffer, pattern, object_points, image_size, settings)

    save_result(result, files)
    return result


def _calibrate_mono(
    buffer: CalibrationBuffer,
    pattern: PatternSpec,
    object_points: list[np.ndarray],
    image_size: tuple[int, int],
    settings: EstimatorSettings,
) -> CalibrationResult:
    (camera_id,) = buffer.mode.cameras

    logger.info(f"Computing {camera_id.value} camera intrinsics from {len(object_points)} views...")
    intrinsics = calibrate_camera(
        object_points,
        list(buffer.sequence(camera_id)),
        image_size,
        pattern.fixed_point_index,
        settings,
    )

    logger.info(f"Camera Matrix =\n{intrinsics.matrix}")
    logger.info(f"Distortion Coefficients =\n{intrinsics.distortion}")
    logger.info(f"RMS reprojection error: {intrinsics.error}")

    return CalibrationResult(mode=buffer.mode, intrinsics={camera_id: intrinsics})


def _calibrate_stereo(
    buffer: CalibrationBuffer,
    object_points: list[np.ndarray],
    image_size: tuple[int, int],
    prerequisites: Mapping[CameraId, CameraIntrinsics] | None,
) -> CalibrationResult:
    if not prerequisites or any(cam not in prerequisites for cam in PREREQUISITE_MODES):
        raise ConfigurationError("Stereo calibration requires left and right intrinsics")

    left = prerequisites[CameraId.LEFT]
    right = prerequisites[CameraId.RIGHT]

    logger.info(f"Computing stereo extrinsics from {len(object_points)} view pairs...")
    extrinsics = calibrate_stereo(
        object_points,
        list(buffer.left_sets),
        list(buffer.right_sets),
        left,
        right,
        image_size,
    )

    logger.info(f"R =\n{extrinsics.rotation}")
    logger.info(f"T =\n{extrinsics.translation}")
    logger.info(f"RMS reprojection error: {extrinsics.error}")

    return CalibrationResult(
        mode=CalibrationMode.STEREO,
        intrinsics={CameraId.LEFT: left, CameraId.RIGHT: right},
        stereo=extrinsics,
    )


# ============================================================================
# Persistence
# ============================================================================


def save_result(result: CalibrationResult, files: ParameterFiles) -> None:
    """
    Overwrite the mode's parameter file with the result.

    Raises:
        CalibrationError: If the file can't be written
    """
    path = files.path_for(result.mode)

    if result.mode is CalibrationMode.STEREO:
        stereo = result.stereo
        matrices = dict(
            zip(STEREO_KEYS, (stereo.rotation, stereo.translation, stereo.essential, stereo.fundamental))
        )
        rms = stereo.error
    else:
        (camera_id,) = result.mode.cameras
        intrinsics = result.intrinsics[camera_id]
        matrix_key, distortion_key = INTRINSIC_KEYS[result.mode]
        matrices = {matrix_key: intrinsics.matrix, distortion_key: intrinsics.distortion}
        rms = intrinsics.error

    try:
        save_parameters(path, matrices, {"rms": rms})
    except OSError as e:
        raise CalibrationError(f"Cannot write {path}: {e}") from e

    logger.info(f"Saved calibration to {path}")
