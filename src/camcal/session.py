"""
Calibration session state machine.

SessionState is a frozen dataclass owned by the capture loop. handle_command()
looks the (phase, command) pair up in a single transition table and returns
the next state. Pairs missing from the table are no-ops.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace

from loguru import logger

from .buffer import (
    CalibrationBuffer,
    append_observations,
    buffer_size,
    clear,
    pop_last,
    require_paired,
)
from .calibration.orchestrator import MIN_VIEWS, run_calibration
from .config import ParameterFiles
from .errors import CalibrationError
from .types import (
    CalibrationMode,
    CalibrationResult,
    CameraId,
    CameraIntrinsics,
    Command,
    EstimatorSettings,
    Observation,
    PatternSpec,
    Phase,
)


@dataclass(frozen=True)
class SessionState:
    """
    Complete session state.

    Immutable - all updates create new instances via dataclasses.replace().
    """

    mode: CalibrationMode
    buffer: CalibrationBuffer
    phase: Phase = Phase.COLLECTING
    result: CalibrationResult | None = None
    prerequisites: Mapping[CameraId, CameraIntrinsics] = field(default_factory=dict)
    running: bool = True


@dataclass(frozen=True)
class SessionContext:
    """Per-session inputs that never change while the loop runs."""

    pattern: PatternSpec
    files: ParameterFiles
    settings: EstimatorSettings = EstimatorSettings()


@dataclass(frozen=True)
class FrameInput:
    """What the current frame contributes to a command."""

    observations: Mapping[CameraId, Observation]
    image_size: tuple[int, int]  # (width, height) of a single camera image


def new_session(
    mode: CalibrationMode,
    prerequisites: Mapping[CameraId, CameraIntrinsics] | None = None,
) -> SessionState:
    return SessionState(
        mode=mode,
        buffer=CalibrationBuffer(mode=mode),
        prerequisites=dict(prerequisites or {}),
    )


# ============================================================================
# Transitions
# ============================================================================


def _add(state: SessionState, frame: FrameInput, context: SessionContext) -> SessionState:
    buffer = append_observations(state.buffer, frame.observations, context.pattern)
    if buffer is state.buffer:
        logger.debug("Pattern not found in every required camera, nothing added")
        return state
    logger.info(f"Added observation set ({buffer_size(buffer)} total)")
    return replace(state, buffer=buffer)


def _remove_last(state: SessionState, frame: FrameInput, context: SessionContext) -> SessionState:
    return replace(state, buffer=pop_last(state.buffer))


def _clear_all(state: SessionState, frame: FrameInput, context: SessionContext) -> SessionState:
    return replace(state, buffer=clear(state.buffer))


def _calibrate(state: SessionState, frame: FrameInput, context: SessionContext) -> SessionState:
    require_paired(state.buffer)
    if buffer_size(state.buffer) < MIN_VIEWS:
        logger.debug(f"Calibrate ignored: {buffer_size(state.buffer)} observation set(s)")
        return state

    try:
        result = run_calibration(
            state.buffer,
            context.pattern,
            frame.image_size,
            context.files,
            prerequisites=state.prerequisites,
            settings=context.settings,
        )
    except CalibrationError as e:
        logger.error(str(e))
        return state

    return replace(state, phase=Phase.COMPUTED, result=result)


def _restart(state: SessionState, frame: FrameInput, context: SessionContext) -> SessionState:
    logger.info("Restarting collection")
    return replace(
        state,
        phase=Phase.COLLECTING,
        buffer=clear(state.buffer),
        result=None,
    )


def _quit(state: SessionState, frame: FrameInput, context: SessionContext) -> SessionState:
    return replace(state, running=False)


Transition = Callable[[SessionState, FrameInput, SessionContext], SessionState]

# Collection edits are ignored in COMPUTED until Restart.
TRANSITIONS: dict[tuple[Phase, Command], Transition] = {
    (Phase.COLLECTING, Command.ADD): _add,
    (Phase.COLLECTING, Command.REMOVE_LAST): _remove_last,
    (Phase.COLLECTING, Command.CLEAR_ALL): _clear_all,
    (Phase.COLLECTING, Command.CALIBRATE): _calibrate,
    (Phase.COLLECTING, Command.QUIT): _quit,
    (Phase.COMPUTED, Command.RESTART): _restart,
    (Phase.COMPUTED, Command.QUIT): _quit,
}


def is_command_allowed(phase: Phase, command: Command) -> bool:
    return (phase, command) in TRANSITIONS


def handle_command(
    state: SessionState,
    command: Command,
    frame: FrameInput,
    context: SessionContext,
) -> SessionState:
    """
    Apply an operator command.

    Returns:
        The next SessionState (the same object for a no-op)

    Raises:
        BufferInvariantError: If a stereo buffer is found out of step at calibrate time
        ConfigurationError: If stereo prerequisites are missing at calibrate time
    """
    transition = TRANSITIONS.get((state.phase, command))
    if transition is None:
        logger.debug(f"{command.value} ignored in {state.phase.value} phase")
        return state
    return transition(state, frame, context)
