"""
Interactive calibration session loop.

Single-threaded: read frame -> detect -> render -> poll one key -> apply
command. The loop owns the SessionState; nothing else holds a reference.
"""

from __future__ import annotations

import cv2
from loguru import logger

from .calibration.detection import observe_frame
from .calibration.orchestrator import load_stereo_prerequisites
from .capture import open_capture, poll_command, split_frame
from .config import SessionConfig
from .pattern import make_pattern_spec
from .preview import WINDOW_NAME, RectificationCache, render_preview
from .session import FrameInput, SessionContext, SessionState, handle_command, new_session
from .types import CalibrationMode, PatternKind


def run_session(
    device: str | int,
    kind: PatternKind,
    mode: CalibrationMode,
    config: SessionConfig,
) -> SessionState:
    """
    Run a calibration session until Quit or the device stops delivering frames.

    Configuration problems (bad pattern geometry, missing stereo
    prerequisites, device that won't open) are raised before the first frame
    is read.

    Returns:
        Final SessionState

    Raises:
        ConfigurationError: On any configuration problem
        BufferInvariantError: If the buffer is found out of step at calibrate time
    """
    geometry = config.pattern.geometry(kind)
    pattern = make_pattern_spec(
        kind,
        grid_size=(geometry.columns, geometry.rows),
        spacing=geometry.spacing,
        downsample_factor=config.pattern.downsample_factor,
    )
    context = SessionContext(pattern=pattern, files=config.files, settings=config.estimator)

    prerequisites = None
    if mode is CalibrationMode.STEREO:
        prerequisites = load_stereo_prerequisites(config.files)

    state = new_session(mode, prerequisites)
    cap = open_capture(device, config.capture)
    cache = RectificationCache()
    failures = 0

    try:
        while state.running:
            ok, frame = cap.read()
            if not ok or frame is None:
                failures += 1
                if failures >= config.capture.max_read_failures:
                    logger.error(f"Error reading image from {device}")
                    break
                continue
            failures = 0

            images = split_frame(frame, mode)
            observations = observe_frame(images, pattern)

            canvas, cache = render_preview(state, images, observations, pattern, cache)
            cv2.imshow(WINDOW_NAME, canvas)

            command = poll_command(config.capture.poll_ms)
            if command is None:
                continue

            height, width = next(iter(images.values())).shape[:2]
            state = handle_command(
                state,
                command,
                FrameInput(observations=observations, image_size=(width, height)),
                context,
            )
    finally:
        cap.release()
        cv2.destroyAllWindows()

    return state
