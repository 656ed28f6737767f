"""
Pytest configuration and shared fixtures.
"""

import tempfile
from pathlib import Path

import cv2
import numpy as np
import pytest


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that's cleaned up after test."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def sample_intrinsics_matrix():
    """Typical camera intrinsics matrix for a 1280x960 image."""
    return np.array([
        [900.0, 0.0, 640.0],
        [0.0, 900.0, 480.0],
        [0.0, 0.0, 1.0],
    ], dtype=np.float64)


@pytest.fixture
def sample_distortion():
    """Typical distortion coefficients (k1, k2, p1, p2, k3)."""
    return np.array([0.1, -0.25, 0.001, -0.001, 0.1], dtype=np.float64)


@pytest.fixture
def checkerboard_pattern():
    """Stock 9x6 checkerboard, no downsampling."""
    from camcal.pattern import make_pattern_spec
    from camcal.types import PatternKind
    return make_pattern_spec(PatternKind.CHECKERBOARD, downsample_factor=1)


@pytest.fixture
def parameter_files(temp_dir):
    from camcal.config import ParameterFiles
    return ParameterFiles(output_dir=temp_dir)


# Distinct board poses (rvec, tvec) in front of the camera; units match the
# 23-unit checkerboard spacing.
SYNTHETIC_POSES = [
    (np.array([0.3, -0.2, 0.05]), np.array([-90.0, -60.0, 600.0])),
    (np.array([-0.25, 0.35, -0.1]), np.array([-100.0, -50.0, 650.0])),
    (np.array([0.1, 0.4, 0.2]), np.array([-80.0, -70.0, 550.0])),
    (np.array([-0.4, -0.1, 0.0]), np.array([-95.0, -40.0, 700.0])),
]


def project_views(reference_points, matrix, distortion, poses, rvec_offset=None, tvec_offset=None):
    """Project the reference layout for each pose, optionally through a second camera."""
    views = []
    for rvec, tvec in poses:
        if rvec_offset is not None:
            # Compose board pose with the camera-to-camera transform
            R_board, _ = cv2.Rodrigues(rvec)
            R_offset, _ = cv2.Rodrigues(rvec_offset)
            rvec, _ = cv2.Rodrigues(R_offset @ R_board)
            tvec = R_offset @ tvec + tvec_offset
        projected, _ = cv2.projectPoints(
            reference_points.astype(np.float64), rvec, tvec, matrix, distortion
        )
        views.append(projected.reshape(-1, 2).astype(np.float32))
    return views


@pytest.fixture
def synthetic_views(checkerboard_pattern, sample_intrinsics_matrix):
    """Exact projections of the 9x6 checkerboard at distinct poses, no distortion."""
    return project_views(
        checkerboard_pattern.reference_points,
        sample_intrinsics_matrix,
        np.zeros(5),
        SYNTHETIC_POSES,
    )


def render_checkerboard(squares=(10, 7), square_px=80, margin=80):
    """
    Render a fronto-parallel checkerboard with squares[0]-1 x squares[1]-1
    inner corners. Returns (BGR image, expected inner corner coordinates).
    """
    cols, rows = squares
    width = cols * square_px + 2 * margin
    height = rows * square_px + 2 * margin
    image = np.full((height, width), 255, dtype=np.uint8)
    for r in range(rows):
        for c in range(cols):
            if (r + c) % 2 == 0:
                y0 = margin + r * square_px
                x0 = margin + c * square_px
                image[y0:y0 + square_px, x0:x0 + square_px] = 0

    corners = []
    for r in range(1, rows):
        for c in range(1, cols):
            corners.append((margin + c * square_px - 0.5, margin + r * square_px - 0.5))

    return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR), np.array(corners, dtype=np.float32)
