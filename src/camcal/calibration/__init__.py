"""
Calibration module for camcal.

All functions are pure - they take dataclasses and return dataclasses.
No threading, no state management. The session loop handles sequencing.
"""

from .detection import (
    DETECTORS,
    annotate_observation,
    detect_observation,
    observe_frame,
)

from .estimation import (
    RectificationMaps,
    calibrate_camera,
    calibrate_stereo,
    compute_rectification_maps,
    rectify_pair,
    undistort,
)

from .orchestrator import (
    load_intrinsics,
    load_stereo_prerequisites,
    run_calibration,
    save_result,
)

__all__ = [
    # Detection
    "DETECTORS",
    "annotate_observation",
    "detect_observation",
    "observe_frame",
    # Estimation
    "RectificationMaps",
    "calibrate_camera",
    "calibrate_stereo",
    "compute_rectification_maps",
    "rectify_pair",
    "undistort",
    # Orchestration
    "load_intrinsics",
    "load_stereo_prerequisites",
    "run_calibration",
    "save_result",
]
