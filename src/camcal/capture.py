"""
Frame acquisition and operator input.

Wraps cv2.VideoCapture and cv2.waitKey. Everything here either talks to the
device/window or is a small pure helper around what they return.
"""

from __future__ import annotations

import sys

import cv2
import numpy as np
from loguru import logger

from .config import CaptureConfig
from .errors import ConfigurationError, DeviceOpenError
from .types import CalibrationMode, CameraId, Command


# ============================================================================
# Capture Backends
# ============================================================================

CAPTURE_APIS = {
    "any": cv2.CAP_ANY,
    "v4l": cv2.CAP_V4L2,
    "dshow": cv2.CAP_DSHOW,
    "msmf": cv2.CAP_MSMF,
    "avfoundation": cv2.CAP_AVFOUNDATION,
    "gstreamer": cv2.CAP_GSTREAMER,
    "ffmpeg": cv2.CAP_FFMPEG,
}


# ============================================================================
# Key Bindings
# ============================================================================

KEY_BINDINGS = {
    27: Command.QUIT,  # ESC
    32: Command.ADD,  # SPACEBAR
    8: Command.REMOVE_LAST,  # BACKSPACE
    255: Command.CLEAR_ALL,  # DELETE
    13: Command.CALIBRATE,  # RETURN
    ord("r"): Command.RESTART,
}

CONTROLS_HELP = """\
Controls:
    ESC         closes the program
    SPACEBAR    adds detected points to the calibration buffer
    BACKSPACE   removes last added set of points from the calibration buffer
    DELETE      clears all points from the calibration buffer
    RETURN      runs the calibration routine on the collected points
    R           restarts the calibration collection process
"""


def key_to_command(key: int) -> Command | None:
    """Map a cv2.waitKey() code to a Command (None for no key / unbound key)."""
    if key < 0:
        return None
    return KEY_BINDINGS.get(key)


def poll_command(wait_ms: int) -> Command | None:
    """Wait up to wait_ms for a key press in the preview window."""
    return key_to_command(cv2.waitKey(wait_ms))


# ============================================================================
# Device
# ============================================================================


def resolve_device(identifier: str, api: str = "v4l") -> str | int:
    """
    Turn a CLI device identifier into something cv2.VideoCapture accepts.

    A bare number is a video device index: /dev/videoN when using V4L on
    Linux, the index itself otherwise. Anything else is passed through
    (file path, URL, GStreamer pipeline).
    """
    if identifier.isdigit():
        if api == "v4l" and sys.platform.startswith("linux"):
            return f"/dev/video{identifier}"
        return int(identifier)
    return identifier


def open_capture(device: str | int, config: CaptureConfig) -> cv2.VideoCapture:
    """
    Open and configure a capture device.

    Raises:
        ConfigurationError: If config.api is unknown
        DeviceOpenError: If the device can't be opened
    """
    if config.api not in CAPTURE_APIS:
        raise ConfigurationError(
            f"Unknown capture api '{config.api}', expected one of {sorted(CAPTURE_APIS)}"
        )

    cap = cv2.VideoCapture(device, CAPTURE_APIS[config.api])
    if not cap.isOpened():
        raise DeviceOpenError(device)

    cap.set(cv2.CAP_PROP_FPS, config.fps)
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, config.width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, config.height)
    cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*config.fourcc))
    cap.set(cv2.CAP_PROP_BUFFERSIZE, config.buffer_size)

    logger.info(f"Captured device: {device}")
    logger.info(f"    Framerate: {cap.get(cv2.CAP_PROP_FPS):5.1f}")
    logger.info(f"    Image width:  {int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))}")
    logger.info(f"    Image height: {int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))}")

    return cap


def split_frame(frame: np.ndarray, mode: CalibrationMode) -> dict[CameraId, np.ndarray]:
    """
    Pick out the camera image(s) a mode works on.

    MONO uses the whole frame. The other modes treat the frame as a
    side-by-side stereo pair and split it down the middle.
    """
    if mode is CalibrationMode.MONO:
        return {CameraId.LEFT: frame}

    width = frame.shape[1] // 2
    halves = {
        CameraId.LEFT: frame[:, :width],
        CameraId.RIGHT: frame[:, width : 2 * width],
    }
    return {camera_id: halves[camera_id] for camera_id in mode.cameras}
