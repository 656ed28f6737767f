"""
Pattern detection for a single frame.

Pure functions - no threading, no state. The caller decides what to do with
the observations.
"""

from __future__ import annotations

from collections.abc import Mapping

import cv2
import numpy as np
from loguru import logger

from ..pattern import is_valid_observation
from ..types import CameraId, Observation, PatternKind, PatternSpec


# Sub-pixel refinement for checkerboard corners (full-resolution image)
SUBPIX_WINDOW = (31, 31)
SUBPIX_CRITERIA = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_COUNT, 30, 0.0001)


# ============================================================================
# Detectors
# ============================================================================


def _find_checkerboard(gray: np.ndarray, pattern: PatternSpec) -> np.ndarray | None:
    found, corners = cv2.findChessboardCorners(
        gray, pattern.grid_size, flags=pattern.detector_flags
    )
    return corners if found else None


def _find_circles(gray: np.ndarray, pattern: PatternSpec) -> np.ndarray | None:
    found, centers = cv2.findCirclesGrid(
        gray, pattern.grid_size, flags=pattern.detector_flags
    )
    return centers if found else None


def _refine_corners(gray: np.ndarray, points: np.ndarray) -> np.ndarray:
    return cv2.cornerSubPix(
        gray, points.reshape(-1, 1, 2), SUBPIX_WINDOW, (-1, -1), SUBPIX_CRITERIA
    )


# kind -> (detector, refine on full-resolution image)
DETECTORS = {
    PatternKind.CHECKERBOARD: (_find_checkerboard, True),
    PatternKind.ASYMMETRIC_CIRCLE_GRID: (_find_circles, False),
}


# ============================================================================
# Observation Pipeline
# ============================================================================


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert BGR (or already single-channel) image to grayscale."""
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def detect_observation(
    image: np.ndarray,
    pattern: PatternSpec,
    camera_id: CameraId = CameraId.LEFT,
) -> Observation:
    """
    Detect the calibration pattern in one camera image.

    Detection runs on a copy downsampled by pattern.downsample_factor; the
    points are scaled back to full resolution and, for checkerboards, refined
    on the full-resolution image.

    Args:
        image: BGR or grayscale image (h, w[, 3])
        pattern: PatternSpec of the target
        camera_id: Camera the image came from

    Returns:
        Observation; points is None if the pattern was not found
    """
    detector, refine = DETECTORS[pattern.kind]
    factor = pattern.downsample_factor

    gray = to_gray(image)
    if factor > 1:
        height, width = gray.shape[:2]
        small = cv2.resize(gray, (width // factor, height // factor))
    else:
        small = gray

    points = detector(small, pattern)
    if points is None or len(points) != pattern.point_count:
        return Observation(camera_id=camera_id)

    points = points.reshape(-1, 1, 2).astype(np.float32) * factor

    if refine:
        try:
            points = _refine_corners(gray, points)
        except cv2.error as e:
            logger.debug(f"Corner refinement failed on {camera_id.value} image: {e}")
            return Observation(camera_id=camera_id)

    return Observation(camera_id=camera_id, points=points.reshape(-1, 2))


def observe_frame(
    images: Mapping[CameraId, np.ndarray],
    pattern: PatternSpec,
) -> dict[CameraId, Observation]:
    """
    Run detection on every camera image of a frame.

    Returns:
        Dict of camera -> Observation (possibly empty)
    """
    return {
        camera_id: detect_observation(image, pattern, camera_id)
        for camera_id, image in images.items()
    }


def annotate_observation(
    image: np.ndarray,
    pattern: PatternSpec,
    observation: Observation | None,
) -> np.ndarray:
    """
    Draw the detected grid on a copy of the image.

    Returns the copy unchanged (apart from being BGR) if nothing was detected.
    """
    canvas = image.copy() if image.ndim == 3 else cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if is_valid_observation(observation, pattern):
        cv2.drawChessboardCorners(
            canvas,
            pattern.grid_size,
            observation.points.reshape(-1, 1, 2).astype(np.float32),
            True,
        )
    return canvas
