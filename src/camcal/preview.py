"""
Preview rendering.

Read-only consumer of SessionState: picks what to draw for the current phase
and mode and returns a single BGR image.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

import cv2
import numpy as np

from .buffer import buffer_size
from .calibration.detection import annotate_observation
from .calibration.estimation import (
    RectificationMaps,
    compute_rectification_maps,
    rectify_pair,
    undistort,
)
from .session import SessionState
from .types import (
    CalibrationMode,
    CalibrationResult,
    CameraId,
    CameraIntrinsics,
    Observation,
    PatternSpec,
    Phase,
)


WINDOW_NAME = "Calibration Image"
TEXT_COLOR = (0, 0, 255)  # BGR red
GUIDE_COLOR = (0, 255, 0)
GUIDE_SPACING = 20  # pixels of image height per guide line


@dataclass(frozen=True)
class RectificationCache:
    """
    Remap tables for the result they were built from.

    A new result object (Calibrate) or no result (Restart) misses the cache.
    """

    result: CalibrationResult | None = None
    maps: RectificationMaps | None = None

    def lookup(
        self,
        result: CalibrationResult,
        image_size: tuple[int, int],
    ) -> tuple[RectificationMaps, RectificationCache]:
        if self.result is result and self.maps is not None and self.maps.image_size == image_size:
            return self.maps, self

        maps = compute_rectification_maps(
            result.intrinsics[CameraId.LEFT],
            result.intrinsics[CameraId.RIGHT],
            result.stereo,
            image_size,
        )
        return maps, RectificationCache(result=result, maps=maps)


def render_preview(
    state: SessionState,
    images: Mapping[CameraId, np.ndarray],
    observations: Mapping[CameraId, Observation],
    pattern: PatternSpec,
    cache: RectificationCache = RectificationCache(),
) -> tuple[np.ndarray, RectificationCache]:
    """
    Build the preview image for the current frame.

    Args:
        state: Current SessionState
        images: Raw camera images for this frame (one per camera the mode uses)
        observations: Detections for this frame
        pattern: PatternSpec (for drawing the grid)
        cache: Rectification maps from a previous frame

    Returns:
        (BGR preview image, cache to pass to the next call)
    """
    cameras = state.mode.cameras

    if state.phase is Phase.COLLECTING or state.result is None:
        return render_collecting(state, images, observations, pattern), cache

    if state.mode is CalibrationMode.STEREO:
        image_size = _image_size(images[CameraId.LEFT])
        maps, cache = cache.lookup(state.result, image_size)
        return render_rectified(images[CameraId.LEFT], images[CameraId.RIGHT], maps), cache

    views = []
    for camera_id in cameras:
        image = images[camera_id]
        intrinsics = state.result.intrinsics.get(camera_id)
        views.append(render_correction(image, intrinsics) if intrinsics is not None else image)
    return np.hstack(views), cache


def render_collecting(
    state: SessionState,
    images: Mapping[CameraId, np.ndarray],
    observations: Mapping[CameraId, Observation],
    pattern: PatternSpec,
) -> np.ndarray:
    """Annotated frame(s) side by side, with the accepted set count."""
    views = [
        annotate_observation(images[camera_id], pattern, observations.get(camera_id))
        for camera_id in state.mode.cameras
    ]
    canvas = np.hstack(views)
    cv2.putText(
        canvas,
        f"Cal size: {buffer_size(state.buffer)}",
        (10, 30),
        cv2.FONT_HERSHEY_SIMPLEX,
        1,
        TEXT_COLOR,
        2,
        cv2.LINE_AA,
    )
    return canvas


def render_correction(image: np.ndarray, intrinsics: CameraIntrinsics) -> np.ndarray:
    """Absolute difference between the raw and undistorted image."""
    return cv2.absdiff(image, undistort(image, intrinsics))


def render_rectified(
    left_image: np.ndarray,
    right_image: np.ndarray,
    maps: RectificationMaps,
) -> np.ndarray:
    """Rectified pair side by side with horizontal epipolar guide lines."""
    left, right = rectify_pair(left_image, right_image, maps)
    canvas = np.hstack([left, right])
    draw_guide_lines(canvas)
    return canvas


def draw_guide_lines(canvas: np.ndarray) -> None:
    height, width = canvas.shape[:2]
    count = height // GUIDE_SPACING
    for i in range(count):
        y = int((i + 0.5) * height / count)
        cv2.line(canvas, (0, y), (width - 1, y), GUIDE_COLOR, 1)


def _image_size(image: np.ndarray) -> tuple[int, int]:
    height, width = image.shape[:2]
    return (width, height)
