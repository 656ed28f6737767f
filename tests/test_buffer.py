"""
Tests for camcal.buffer.
"""

import itertools

import numpy as np
import pytest

from camcal.buffer import (
    CalibrationBuffer,
    append_observations,
    buffer_size,
    clear,
    pop_last,
    require_paired,
)
from camcal.errors import BufferInvariantError
from camcal.types import CalibrationMode, CameraId, Observation


def full(camera_id, value=0.0):
    return Observation(camera_id, np.full((54, 2), value, dtype=np.float32))


def empty(camera_id):
    return Observation(camera_id)


class TestMonoBuffer:
    def test_starts_empty(self):
        buffer = CalibrationBuffer(mode=CalibrationMode.MONO)
        assert buffer_size(buffer) == 0
        assert buffer.left_sets == ()
        assert buffer.right_sets == ()

    def test_append_valid_observation(self, checkerboard_pattern):
        buffer = CalibrationBuffer(mode=CalibrationMode.MONO)
        buffer = append_observations(buffer, {CameraId.LEFT: full(CameraId.LEFT)}, checkerboard_pattern)
        assert buffer_size(buffer) == 1
        assert len(buffer.left_sets) == 1

    def test_append_invalid_observation_is_noop(self, checkerboard_pattern):
        buffer = CalibrationBuffer(mode=CalibrationMode.MONO)
        result = append_observations(buffer, {CameraId.LEFT: empty(CameraId.LEFT)}, checkerboard_pattern)
        assert result is buffer

    def test_append_partial_observation_is_noop(self, checkerboard_pattern):
        buffer = CalibrationBuffer(mode=CalibrationMode.MONO)
        partial = Observation(CameraId.LEFT, np.zeros((40, 2), dtype=np.float32))
        result = append_observations(buffer, {CameraId.LEFT: partial}, checkerboard_pattern)
        assert buffer_size(result) == 0

    def test_append_copies_points(self, checkerboard_pattern):
        obs = full(CameraId.LEFT, 1.0)
        buffer = append_observations(
            CalibrationBuffer(mode=CalibrationMode.MONO), {CameraId.LEFT: obs}, checkerboard_pattern
        )
        obs.points[:] = 99.0
        assert buffer.left_sets[0][0, 0] == 1.0

    def test_mono_right_uses_right_sequence(self, checkerboard_pattern):
        buffer = CalibrationBuffer(mode=CalibrationMode.MONO_RIGHT)
        buffer = append_observations(
            buffer, {CameraId.RIGHT: full(CameraId.RIGHT)}, checkerboard_pattern
        )
        assert len(buffer.right_sets) == 1
        assert buffer.left_sets == ()
        assert buffer_size(buffer) == 1

    def test_mono_right_ignores_left_observation(self, checkerboard_pattern):
        buffer = CalibrationBuffer(mode=CalibrationMode.MONO_RIGHT)
        result = append_observations(buffer, {CameraId.LEFT: full(CameraId.LEFT)}, checkerboard_pattern)
        assert buffer_size(result) == 0

    def test_pop_last_removes_newest(self, checkerboard_pattern):
        buffer = CalibrationBuffer(mode=CalibrationMode.MONO)
        for value in (1.0, 2.0):
            buffer = append_observations(
                buffer, {CameraId.LEFT: full(CameraId.LEFT, value)}, checkerboard_pattern
            )
        buffer = pop_last(buffer)
        assert buffer_size(buffer) == 1
        assert buffer.left_sets[0][0, 0] == 1.0

    def test_pop_last_on_empty_is_noop(self):
        buffer = CalibrationBuffer(mode=CalibrationMode.MONO)
        assert pop_last(buffer) is buffer

    def test_clear(self, checkerboard_pattern):
        buffer = CalibrationBuffer(mode=CalibrationMode.MONO_LEFT)
        buffer = append_observations(buffer, {CameraId.LEFT: full(CameraId.LEFT)}, checkerboard_pattern)
        buffer = clear(buffer)
        assert buffer_size(buffer) == 0
        assert buffer.mode is CalibrationMode.MONO_LEFT

    def test_operations_do_not_mutate_original(self, checkerboard_pattern):
        original = CalibrationBuffer(mode=CalibrationMode.MONO)
        append_observations(original, {CameraId.LEFT: full(CameraId.LEFT)}, checkerboard_pattern)
        assert buffer_size(original) == 0

    def test_frozen(self):
        buffer = CalibrationBuffer(mode=CalibrationMode.MONO)
        with pytest.raises(AttributeError):
            buffer.left_sets = ()


class TestStereoBuffer:
    @pytest.fixture
    def buffer(self):
        return CalibrationBuffer(mode=CalibrationMode.STEREO)

    def test_append_pair(self, buffer, checkerboard_pattern):
        buffer = append_observations(
            buffer,
            {CameraId.LEFT: full(CameraId.LEFT), CameraId.RIGHT: full(CameraId.RIGHT)},
            checkerboard_pattern,
        )
        assert len(buffer.left_sets) == 1
        assert len(buffer.right_sets) == 1

    @pytest.mark.parametrize("left_valid, right_valid", [(True, False), (False, True), (False, False)])
    def test_append_is_all_or_nothing(self, buffer, checkerboard_pattern, left_valid, right_valid):
        observations = {
            CameraId.LEFT: full(CameraId.LEFT) if left_valid else empty(CameraId.LEFT),
            CameraId.RIGHT: full(CameraId.RIGHT) if right_valid else empty(CameraId.RIGHT),
        }
        result = append_observations(buffer, observations, checkerboard_pattern)
        assert (len(result.left_sets), len(result.right_sets)) == (0, 0)

    def test_append_missing_camera_is_noop(self, buffer, checkerboard_pattern):
        result = append_observations(buffer, {CameraId.LEFT: full(CameraId.LEFT)}, checkerboard_pattern)
        assert (len(result.left_sets), len(result.right_sets)) == (0, 0)

    def test_sequences_stay_paired_under_any_operation_order(self, buffer, checkerboard_pattern):
        pair = {CameraId.LEFT: full(CameraId.LEFT), CameraId.RIGHT: full(CameraId.RIGHT)}
        half = {CameraId.LEFT: full(CameraId.LEFT), CameraId.RIGHT: empty(CameraId.RIGHT)}
        operations = [
            lambda b: append_observations(b, pair, checkerboard_pattern),
            lambda b: append_observations(b, half, checkerboard_pattern),
            pop_last,
            clear,
        ]

        for sequence in itertools.product(operations, repeat=4):
            b = buffer
            for operation in sequence:
                b = operation(b)
                assert len(b.left_sets) == len(b.right_sets)
                require_paired(b)

    def test_pop_last_removes_from_both(self, buffer, checkerboard_pattern):
        pair = {CameraId.LEFT: full(CameraId.LEFT), CameraId.RIGHT: full(CameraId.RIGHT)}
        buffer = append_observations(buffer, pair, checkerboard_pattern)
        buffer = append_observations(buffer, pair, checkerboard_pattern)
        buffer = pop_last(buffer)
        assert (len(buffer.left_sets), len(buffer.right_sets)) == (1, 1)

    def test_require_paired_detects_mismatch(self):
        broken = CalibrationBuffer(
            mode=CalibrationMode.STEREO,
            left_sets=(np.zeros((54, 2)), np.zeros((54, 2))),
            right_sets=(np.zeros((54, 2)),),
        )
        with pytest.raises(BufferInvariantError, match="left=2, right=1"):
            require_paired(broken)

    def test_require_paired_ignores_inactive_sequence_in_mono(self):
        buffer = CalibrationBuffer(
            mode=CalibrationMode.MONO_LEFT,
            left_sets=(np.zeros((54, 2)),),
        )
        require_paired(buffer)
