"""Tests for PitchShifter."""

import numpy as np
import pytest

from tunegraph.transforms.pitch_shift import PitchShifter, create_pitch_shifter
from tunegraph.transforms.time_stretch import TimeStretcher
from tunegraph.utils.errors import InvalidRangeError


class TestPitchShifter:
    def test_zero_returns_input(self, sine_440):
        assert PitchShifter().shift(sine_440, 0) is sine_440

    @pytest.mark.parametrize("semitones", [-12, -5, 1, 7, 12])
    def test_frame_count_is_preserved(self, sine_440, semitones):
        output = PitchShifter().shift(sine_440, semitones)
        assert output.frame_count == sine_440.frame_count
        assert output.channel_count == sine_440.channel_count

    def test_stereo(self, stereo_buffer):
        output = PitchShifter().shift(stereo_buffer, 3)
        assert output.channels.shape == stereo_buffer.channels.shape

    def test_integral_float_accepted(self, short_noise):
        output = PitchShifter().shift(short_noise, 2.0)
        assert output.frame_count == short_noise.frame_count

    @pytest.mark.parametrize("semitones", [13, -13, 1.5, "3", True])
    def test_invalid_semitones(self, short_noise, semitones):
        with pytest.raises(InvalidRangeError):
            PitchShifter().shift(short_noise, semitones)

    def test_input_is_not_mutated(self, short_noise):
        before = short_noise.channels.copy()
        PitchShifter().shift(short_noise, -3)
        np.testing.assert_array_equal(short_noise.channels, before)

    def test_output_is_finite(self, short_noise):
        output = PitchShifter().shift(short_noise, 5)
        assert np.all(np.isfinite(output.channels))

    def test_factory_shares_stretcher(self):
        stretcher = TimeStretcher(quality="fast")
        shifter = create_pitch_shifter({"max_semitones": 7}, stretcher)
        assert shifter.stretcher is stretcher
        assert shifter.max_semitones == 7
        with pytest.raises(InvalidRangeError):
            shifter.validate(8)
