"""
Calibration buffer: accepted observation sets for one or two cameras.

The buffer is an immutable value. Every operation returns a new buffer, so a
buffer handed to the estimator can never change underneath it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace

import numpy as np

from .errors import BufferInvariantError
from .pattern import is_valid_observation
from .types import CalibrationMode, CameraId, Observation, PatternSpec


@dataclass(frozen=True)
class CalibrationBuffer:
    """Ordered point sets accepted so far, one sequence per camera."""

    mode: CalibrationMode
    left_sets: tuple[np.ndarray, ...] = ()
    right_sets: tuple[np.ndarray, ...] = ()

    def sequence(self, camera_id: CameraId) -> tuple[np.ndarray, ...]:
        return self.left_sets if camera_id is CameraId.LEFT else self.right_sets


def _with_sequences(
    buffer: CalibrationBuffer,
    sequences: dict[CameraId, tuple[np.ndarray, ...]],
) -> CalibrationBuffer:
    return replace(
        buffer,
        left_sets=sequences.get(CameraId.LEFT, buffer.left_sets),
        right_sets=sequences.get(CameraId.RIGHT, buffer.right_sets),
    )


def append_observations(
    buffer: CalibrationBuffer,
    observations: Mapping[CameraId, Observation | None],
    pattern: PatternSpec,
) -> CalibrationBuffer:
    """
    Append one observation set if every camera the mode needs saw the pattern.

    All-or-nothing: a stereo pair with one side missing leaves both
    sequences untouched.
    """
    required = buffer.mode.cameras
    if not all(is_valid_observation(observations.get(cam), pattern) for cam in required):
        return buffer

    return _with_sequences(
        buffer,
        {
            cam: buffer.sequence(cam) + (observations[cam].points.copy(),)
            for cam in required
        },
    )


def pop_last(buffer: CalibrationBuffer) -> CalibrationBuffer:
    """Remove the newest set from every active sequence. No-op when empty."""
    if buffer_size(buffer) == 0:
        return buffer
    return _with_sequences(
        buffer, {cam: buffer.sequence(cam)[:-1] for cam in buffer.mode.cameras}
    )


def clear(buffer: CalibrationBuffer) -> CalibrationBuffer:
    return CalibrationBuffer(mode=buffer.mode)


def buffer_size(buffer: CalibrationBuffer) -> int:
    """Number of accepted observation sets."""
    return min(len(buffer.sequence(cam)) for cam in buffer.mode.cameras)


def require_paired(buffer: CalibrationBuffer) -> None:
    """
    Check that active sequences have equal length.

    Raises:
        BufferInvariantError: On a left/right length mismatch
    """
    lengths = {cam: len(buffer.sequence(cam)) for cam in buffer.mode.cameras}
    if len(set(lengths.values())) > 1:
        raise BufferInvariantError(
            f"Observation sequences out of step: "
            f"left={lengths[CameraId.LEFT]}, right={lengths[CameraId.RIGHT]}"
        )
