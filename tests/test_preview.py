"""
Tests for camcal.preview.
"""

from dataclasses import replace

import cv2
import numpy as np
import pytest

from conftest import render_checkerboard

from camcal.calibration.detection import observe_frame
from camcal.preview import (
    GUIDE_SPACING,
    RectificationCache,
    draw_guide_lines,
    render_preview,
)
from camcal.session import new_session
from camcal.types import (
    CalibrationMode,
    CalibrationResult,
    CameraId,
    CameraIntrinsics,
    Phase,
    StereoExtrinsics,
)


@pytest.fixture
def board_image():
    image, _ = render_checkerboard()
    return image


@pytest.fixture
def distorting_intrinsics():
    height, width = 720, 960
    return CameraIntrinsics(
        matrix=np.array([[800.0, 0, width / 2], [0, 800.0, height / 2], [0, 0, 1]]),
        distortion=np.array([-0.3, 0.1, 0.0, 0.0, 0.0]),
    )


def stereo_result(intrinsics):
    return CalibrationResult(
        mode=CalibrationMode.STEREO,
        intrinsics={CameraId.LEFT: intrinsics, CameraId.RIGHT: intrinsics},
        stereo=StereoExtrinsics(
            rotation=np.eye(3),
            translation=np.array([[-60.0], [0.0], [0.0]]),
            essential=np.zeros((3, 3)),
            fundamental=np.zeros((3, 3)),
        ),
    )


class TestCollectingPreview:
    def test_mono_shows_annotated_frame(self, board_image):
        from camcal.pattern import make_pattern_spec
        from camcal.types import PatternKind

        pattern = make_pattern_spec(PatternKind.CHECKERBOARD)
        state = new_session(CalibrationMode.MONO)
        images = {CameraId.LEFT: board_image}
        observations = observe_frame(images, pattern)

        canvas, _ = render_preview(state, images, observations, pattern)

        assert canvas.shape == board_image.shape
        assert not np.array_equal(canvas, board_image)
        # Raw image is untouched
        assert np.array_equal(board_image, render_checkerboard()[0])

    def test_stereo_concatenates_views(self, board_image, checkerboard_pattern):
        state = new_session(CalibrationMode.STEREO)
        images = {CameraId.LEFT: board_image, CameraId.RIGHT: board_image}

        canvas, _ = render_preview(state, images, {}, checkerboard_pattern)

        height, width = board_image.shape[:2]
        assert canvas.shape == (height, 2 * width, 3)

    def test_count_is_drawn_in_red(self, checkerboard_pattern):
        state = new_session(CalibrationMode.MONO)
        black = np.zeros((120, 320, 3), dtype=np.uint8)

        canvas, _ = render_preview(state, {CameraId.LEFT: black}, {}, checkerboard_pattern)

        text_region = canvas[5:40, 5:200]
        assert text_region[:, :, 2].max() > 0
        assert text_region[:, :, 0].max() == 0


class TestComputedPreview:
    def test_mono_shows_difference_image(self, board_image, checkerboard_pattern, distorting_intrinsics):
        state = replace(
            new_session(CalibrationMode.MONO),
            phase=Phase.COMPUTED,
            result=CalibrationResult(
                mode=CalibrationMode.MONO, intrinsics={CameraId.LEFT: distorting_intrinsics}
            ),
        )
        images = {CameraId.LEFT: board_image}

        canvas, _ = render_preview(state, images, {}, checkerboard_pattern)

        undistorted = cv2.undistort(
            board_image, distorting_intrinsics.matrix, distorting_intrinsics.distortion
        )
        np.testing.assert_array_equal(canvas, cv2.absdiff(board_image, undistorted))

    def test_zero_distortion_difference_is_black(self, board_image, checkerboard_pattern):
        height, width = board_image.shape[:2]
        identity = CameraIntrinsics(
            matrix=np.array([[800.0, 0, width / 2], [0, 800.0, height / 2], [0, 0, 1]]),
            distortion=np.zeros(5),
        )
        state = replace(
            new_session(CalibrationMode.MONO_RIGHT),
            phase=Phase.COMPUTED,
            result=CalibrationResult(
                mode=CalibrationMode.MONO_RIGHT, intrinsics={CameraId.RIGHT: identity}
            ),
        )

        canvas, _ = render_preview(state, {CameraId.RIGHT: board_image}, {}, checkerboard_pattern)

        assert canvas.max() <= 1

    def test_restarted_session_shows_plain_collection_view(self, checkerboard_pattern):
        state = new_session(CalibrationMode.MONO)
        gray_frame = np.full((100, 400, 3), 100, dtype=np.uint8)

        canvas, _ = render_preview(state, {CameraId.LEFT: gray_frame}, {}, checkerboard_pattern)

        # Outside the text there is no undistortion artifact
        np.testing.assert_array_equal(canvas[50:, :], gray_frame[50:, :])

    def test_stereo_rectified_with_guides(self, board_image, checkerboard_pattern, distorting_intrinsics):
        result = stereo_result(distorting_intrinsics)
        state = replace(new_session(CalibrationMode.STEREO), phase=Phase.COMPUTED, result=result)
        images = {CameraId.LEFT: board_image, CameraId.RIGHT: board_image}

        canvas, cache = render_preview(state, images, {}, checkerboard_pattern)

        height, width = board_image.shape[:2]
        assert canvas.shape == (height, 2 * width, 3)
        assert cache.result is result
        assert cache.maps.image_size == (width, height)

    def test_cache_reused_for_same_result(self, board_image, checkerboard_pattern, distorting_intrinsics):
        result = stereo_result(distorting_intrinsics)
        state = replace(new_session(CalibrationMode.STEREO), phase=Phase.COMPUTED, result=result)
        images = {CameraId.LEFT: board_image, CameraId.RIGHT: board_image}

        _, cache = render_preview(state, images, {}, checkerboard_pattern)
        _, cache_again = render_preview(state, images, {}, checkerboard_pattern, cache)

        assert cache_again is cache

    def test_cache_invalidated_by_new_result(self, board_image, checkerboard_pattern, distorting_intrinsics):
        images = {CameraId.LEFT: board_image, CameraId.RIGHT: board_image}
        first = replace(
            new_session(CalibrationMode.STEREO),
            phase=Phase.COMPUTED,
            result=stereo_result(distorting_intrinsics),
        )
        _, cache = render_preview(first, images, {}, checkerboard_pattern)

        second = replace(first, result=stereo_result(distorting_intrinsics))
        _, new_cache = render_preview(second, images, {}, checkerboard_pattern, cache)

        assert new_cache is not cache
        assert new_cache.result is second.result


class TestGuideLines:
    def test_line_count_follows_height(self):
        canvas = np.zeros((200, 50, 3), dtype=np.uint8)
        draw_guide_lines(canvas)
        rows_with_lines = np.flatnonzero(canvas[:, 25, 1] > 0)
        assert len(rows_with_lines) == 200 // GUIDE_SPACING

    def test_empty_cache_defaults(self):
        cache = RectificationCache()
        assert cache.result is None
        assert cache.maps is None
