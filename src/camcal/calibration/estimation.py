"""
Thin wrappers around the OpenCV camera-model estimators.

Pure functions - no threading, no state.
"""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from ..errors import CalibrationError
from ..types import CameraIntrinsics, EstimatorSettings, StereoExtrinsics


STEREO_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 100, 1e-5)


@dataclass(frozen=True)
class RectificationMaps:
    """Per-camera remap tables from cv2.initUndistortRectifyMap."""

    left: tuple[np.ndarray, np.ndarray]
    right: tuple[np.ndarray, np.ndarray]
    image_size: tuple[int, int]  # (width, height)


# ============================================================================
# Calibration
# ============================================================================


def calibrate_camera(
    object_points: list[np.ndarray],
    image_points: list[np.ndarray],
    image_size: tuple[int, int],
    fixed_point: int,
    settings: EstimatorSettings = EstimatorSettings(),
) -> CameraIntrinsics:
    """
    Single-camera calibration with the release-object method.

    Args:
        object_points: One (n, 3) reference set per view (identical sets)
        image_points: One (n, 2) detected set per view, same ordering
        image_size: (width, height)
        fixed_point: Reference point index held fixed to pin the scale
        settings: EstimatorSettings

    Returns:
        CameraIntrinsics

    Raises:
        CalibrationError: If OpenCV rejects the data
    """
    flags = cv2.CALIB_RATIONAL_MODEL if settings.rational_model else 0
    matrix = np.eye(3, dtype=np.float64)
    distortion = np.zeros((8, 1), dtype=np.float64)

    try:
        error, matrix, distortion, _, _, _ = cv2.calibrateCameraRO(
            [p.astype(np.float32) for p in object_points],
            [p.reshape(-1, 1, 2).astype(np.float32) for p in image_points],
            image_size,
            fixed_point,
            matrix,
            distortion,
            flags=flags,
        )
    except cv2.error as e:
        raise CalibrationError(f"Camera calibration failed: {e}") from e

    return CameraIntrinsics(
        matrix=matrix,
        distortion=distortion.ravel(),
        error=round(float(error), 4),
        view_count=len(image_points),
    )


def calibrate_stereo(
    object_points: list[np.ndarray],
    left_points: list[np.ndarray],
    right_points: list[np.ndarray],
    left: CameraIntrinsics,
    right: CameraIntrinsics,
    image_size: tuple[int, int],
) -> StereoExtrinsics:
    """
    Stereo calibration holding both cameras' intrinsics fixed.

    Returns:
        StereoExtrinsics of the right camera relative to the left

    Raises:
        CalibrationError: If OpenCV rejects the data
    """
    try:
        error, _, _, _, _, R, T, E, F = cv2.stereoCalibrate(
            [p.astype(np.float32) for p in object_points],
            [p.reshape(-1, 1, 2).astype(np.float32) for p in left_points],
            [p.reshape(-1, 1, 2).astype(np.float32) for p in right_points],
            left.matrix,
            left.distortion,
            right.matrix,
            right.distortion,
            image_size,
            criteria=STEREO_CRITERIA,
            flags=cv2.CALIB_FIX_INTRINSIC,
        )
    except cv2.error as e:
        raise CalibrationError(f"Stereo calibration failed: {e}") from e

    return StereoExtrinsics(
        rotation=R,
        translation=T,
        essential=E,
        fundamental=F,
        error=round(float(error), 4),
    )


# ============================================================================
# Correction
# ============================================================================


def undistort(image: np.ndarray, intrinsics: CameraIntrinsics) -> np.ndarray:
    return cv2.undistort(image, intrinsics.matrix, intrinsics.distortion)


def compute_rectification_maps(
    left: CameraIntrinsics,
    right: CameraIntrinsics,
    extrinsics: StereoExtrinsics,
    image_size: tuple[int, int],
) -> RectificationMaps:
    """
    Derive rectifying rotations/projections and build remap tables.

    Args:
        left, right: Intrinsics of each camera
        extrinsics: Pose of the right camera relative to the left
        image_size: (width, height) of a single camera image
    """
    R1, R2, P1, P2, _, _, _ = cv2.stereoRectify(
        left.matrix,
        left.distortion,
        right.matrix,
        right.distortion,
        image_size,
        extrinsics.rotation,
        extrinsics.translation,
    )

    left_maps = cv2.initUndistortRectifyMap(
        left.matrix, left.distortion, R1, P1, image_size, cv2.CV_32FC1
    )
    right_maps = cv2.initUndistortRectifyMap(
        right.matrix, right.distortion, R2, P2, image_size, cv2.CV_32FC1
    )

    return RectificationMaps(left=left_maps, right=right_maps, image_size=image_size)


def rectify_pair(
    left_image: np.ndarray,
    right_image: np.ndarray,
    maps: RectificationMaps,
) -> tuple[np.ndarray, np.ndarray]:
    return (
        cv2.remap(left_image, *maps.left, cv2.INTER_LINEAR),
        cv2.remap(right_image, *maps.right, cv2.INTER_LINEAR),
    )
