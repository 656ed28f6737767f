# camcal - interactive camera calibration sessions

__version__ = "0.1.0"

# Core types
from camcal.types import (
    CalibrationMode,
    CalibrationResult,
    CameraId,
    CameraIntrinsics,
    Command,
    EstimatorSettings,
    Observation,
    PatternKind,
    PatternSpec,
    Phase,
    StereoExtrinsics,
)

# Pattern
from camcal.pattern import (
    generate_reference_points,
    is_valid_observation,
    make_pattern_spec,
)

# Buffer
from camcal.buffer import (
    CalibrationBuffer,
    append_observations,
    buffer_size,
    clear,
    pop_last,
)

# Session
from camcal.session import (
    SessionState,
    handle_command,
    new_session,
)

# Configuration
from camcal.config import (
    SessionConfig,
    load_parameters,
    load_session_config,
    save_parameters,
)

__all__ = [
    # Core types
    "CalibrationMode",
    "CalibrationResult",
    "CameraId",
    "CameraIntrinsics",
    "Command",
    "EstimatorSettings",
    "Observation",
    "PatternKind",
    "PatternSpec",
    "Phase",
    "StereoExtrinsics",
    # Pattern
    "generate_reference_points",
    "is_valid_observation",
    "make_pattern_spec",
    # Buffer
    "CalibrationBuffer",
    "append_observations",
    "buffer_size",
    "clear",
    "pop_last",
    # Session
    "SessionState",
    "handle_command",
    "new_session",
    # Configuration
    "SessionConfig",
    "load_parameters",
    "load_session_config",
    "save_parameters",
]
