"""
Configuration loading and parameter persistence.

Pure functions operating on dataclasses.
- TOML session configuration (capture, pattern, estimator, file names)
- TOML parameter files (one per calibration artifact)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import rtoml

from .errors import ConfigurationError
from .pattern import DEFAULT_DOWNSAMPLE_FACTOR, DEFAULT_GEOMETRY
from .types import CalibrationMode, EstimatorSettings, PatternKind


# ============================================================================
# Session Configuration
# ============================================================================


@dataclass(frozen=True, slots=True)
class CaptureConfig:
    """
    Capture device settings.
    Corresponds to the TOML [capture] section.

    The defaults target a side-by-side stereo rig (two 1280x960 sensors in
    one frame), which every mode but MONO splits down the middle. A single
    camera calibrated in MONO mode should set width/height to its own
    resolution; a device that can't deliver the requested size falls back
    to the nearest mode it supports, and the actual size is logged on open.
    """

    fps: int = 60
    width: int = 2560  # Side-by-side stereo frame width
    height: int = 960
    fourcc: str = "MJPG"
    buffer_size: int = 1
    api: str = "v4l"  # Key into camcal.capture.CAPTURE_APIS
    poll_ms: int = 10  # Bounded wait for a key press each frame
    max_read_failures: int = 5  # Consecutive failed reads before giving up


@dataclass(frozen=True, slots=True)
class PatternGeometry:
    columns: int
    rows: int
    spacing: float


@dataclass(frozen=True, slots=True)
class PatternConfig:
    """
    Target geometry per pattern kind.
    Corresponds to the TOML [pattern] section.
    """

    checkerboard: PatternGeometry = PatternGeometry(*DEFAULT_GEOMETRY[PatternKind.CHECKERBOARD])
    circles: PatternGeometry = PatternGeometry(
        *DEFAULT_GEOMETRY[PatternKind.ASYMMETRIC_CIRCLE_GRID]
    )
    downsample_factor: int = DEFAULT_DOWNSAMPLE_FACTOR

    def geometry(self, kind: PatternKind) -> PatternGeometry:
        if kind is PatternKind.ASYMMETRIC_CIRCLE_GRID:
            return self.circles
        return self.checkerboard


@dataclass(frozen=True, slots=True)
class ParameterFiles:
    """
    Parameter file locations, one per calibration artifact.
    Corresponds to the TOML [files] section.
    """

    output_dir: Path = Path(".")
    mono: str = "camera.toml"
    left: str = "camera_left.toml"
    right: str = "camera_right.toml"
    stereo: str = "stereo.toml"

    def path_for(self, mode: CalibrationMode) -> Path:
        names = {
            CalibrationMode.MONO: self.mono,
            CalibrationMode.MONO_LEFT: self.left,
            CalibrationMode.MONO_RIGHT: self.right,
            CalibrationMode.STEREO: self.stereo,
        }
        return self.output_dir / names[mode]


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Complete session configuration. Every field has a default."""

    capture: CaptureConfig = field(default_factory=CaptureConfig)
    pattern: PatternConfig = field(default_factory=PatternConfig)
    estimator: EstimatorSettings = field(default_factory=EstimatorSettings)
    files: ParameterFiles = field(default_factory=ParameterFiles)
    log_level: str = "INFO"


def load_session_config(path: Path | None = None) -> SessionConfig:
    """
    Load session configuration from a TOML file.

    Args:
        path: Path to the TOML file, or None for defaults

    Returns:
        SessionConfig dataclass

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    if path is None:
        return SessionConfig()

    try:
        data = rtoml.load(Path(path))
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {path}") from None
    except (OSError, rtoml.TomlParsingError) as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    defaults = SessionConfig()

    try:
        capture_data = data.get("capture", {})
        capture = CaptureConfig(
            fps=int(capture_data.get("fps", defaults.capture.fps)),
            width=int(capture_data.get("width", defaults.capture.width)),
            height=int(capture_data.get("height", defaults.capture.height)),
            fourcc=str(capture_data.get("fourcc", defaults.capture.fourcc)),
            buffer_size=int(capture_data.get("buffer_size", defaults.capture.buffer_size)),
            api=str(capture_data.get("api", defaults.capture.api)),
            poll_ms=int(capture_data.get("poll_ms", defaults.capture.poll_ms)),
            max_read_failures=int(
                capture_data.get("max_read_failures", defaults.capture.max_read_failures)
            ),
        )

        def parse_geometry(section_data: dict, default: PatternGeometry) -> PatternGeometry:
            return PatternGeometry(
                columns=int(section_data.get("columns", default.columns)),
                rows=int(section_data.get("rows", default.rows)),
                spacing=float(section_data.get("spacing", default.spacing)),
            )

        pattern_data = data.get("pattern", {})
        pattern = PatternConfig(
            checkerboard=parse_geometry(
                pattern_data.get("checkerboard", {}), defaults.pattern.checkerboard
            ),
            circles=parse_geometry(pattern_data.get("circles", {}), defaults.pattern.circles),
            downsample_factor=int(
                pattern_data.get("downsample_factor", defaults.pattern.downsample_factor)
            ),
        )

        estimator_data = data.get("estimator", {})
        estimator = EstimatorSettings(
            rational_model=bool(
                estimator_data.get("rational_model", defaults.estimator.rational_model)
            ),
        )

        files_data = data.get("files", {})
        files = ParameterFiles(
            output_dir=Path(files_data.get("output_dir", defaults.files.output_dir)),
            mono=files_data.get("mono", defaults.files.mono),
            left=files_data.get("left", defaults.files.left),
            right=files_data.get("right", defaults.files.right),
            stereo=files_data.get("stereo", defaults.files.stereo),
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigurationError(f"Invalid value in config file {path}: {e}") from e

    return SessionConfig(
        capture=capture,
        pattern=pattern,
        estimator=estimator,
        files=files,
        log_level=str(data.get("log_level", defaults.log_level)),
    )


# ============================================================================
# Parameter Files
# ============================================================================


def save_parameters(
    path: Path,
    matrices: dict[str, np.ndarray],
    scalars: dict[str, float] | None = None,
) -> None:
    """
    Write named matrices to a TOML parameter file.

    The file is overwritten as a whole; nothing from a previous write survives.

    Args:
        path: Target file
        matrices: Key -> array, stored as (nested) lists
        scalars: Optional extra numeric values (e.g. rms)
    """
    data = {key: np.asarray(value, dtype=np.float64).tolist() for key, value in matrices.items()}
    for key, value in (scalars or {}).items():
        data[key] = float(value)

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        rtoml.dump(data, f)


def load_parameters(path: Path) -> dict[str, np.ndarray] | None:
    """
    Read a TOML parameter file.

    Args:
        path: Parameter file

    Returns:
        Dict of key -> float64 array (scalars become 0-d arrays),
        or None if the file doesn't exist

    Raises:
        rtoml.TomlParsingError: If the file is not valid TOML
    """
    if not path.exists():
        return None

    data = rtoml.load(path)
    return {key: np.asarray(value, dtype=np.float64) for key, value in data.items()}
