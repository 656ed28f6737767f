"""Exception classes for camcal."""

from __future__ import annotations

from pathlib import Path


class CamcalError(Exception):
    """Base exception for all camcal errors."""

    pass


class ConfigurationError(CamcalError):
    """Bad arguments or settings. Fatal for the session."""

    pass


class DeviceOpenError(ConfigurationError):
    """Raised when the capture device cannot be opened."""

    def __init__(self, device: str | int):
        self.device = device
        super().__init__(f"Cannot open video stream: {device}")


class MissingIntrinsicsError(ConfigurationError):
    """Raised when stereo prerequisites cannot be loaded."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"Cannot load intrinsics from {path}: {reason}")


class CalibrationError(CamcalError):
    """Raised when the estimator fails on otherwise well-formed data."""

    pass


class BufferInvariantError(CamcalError):
    """Left/right observation sequences are out of step. Indicates a logic defect."""

    pass
