"""Tests for core data models."""

import numpy as np
import pytest

from tunegraph.core.models import (
    DB_FLOOR,
    LoudnessProfile,
    PitchEstimate,
    QuantizeResult,
    SampleBuffer,
    SpectralProfile,
    TempoEstimate,
    amplitude_to_db,
    validate_confidence,
)
from tunegraph.utils.errors import InvalidInputError


class TestSampleBuffer:
    def test_mono_input_is_promoted_to_one_channel(self):
        buffer = SampleBuffer(np.zeros(100), 8000)
        assert buffer.channels.shape == (1, 100)
        assert buffer.channel_count == 1
        assert buffer.frame_count == 100

    def test_duration(self):
        buffer = SampleBuffer.from_mono(np.zeros(22050), 44100)
        assert buffer.duration_seconds == pytest.approx(0.5)

    def test_ragged_channels_rejected(self):
        with pytest.raises(InvalidInputError):
            SampleBuffer([[0.0, 0.1, 0.2], [0.0, 0.1]], 8000)

    def test_invalid_sample_rate_rejected(self):
        with pytest.raises(InvalidInputError):
            SampleBuffer(np.zeros(10), 0)
        with pytest.raises(InvalidInputError):
            SampleBuffer(np.zeros(10), 44100.5)

    def test_three_dimensional_input_rejected(self):
        with pytest.raises(InvalidInputError):
            SampleBuffer(np.zeros((2, 2, 2)), 8000)

    def test_samples_are_read_only(self):
        buffer = SampleBuffer.from_mono(np.zeros(10), 8000)
        with pytest.raises(ValueError):
            buffer.channels[0, 0] = 1.0

    def test_source_array_is_copied(self):
        source = np.zeros((1, 10), dtype=np.float32)
        buffer = SampleBuffer(source, 8000)
        source[0, 0] = 1.0
        assert buffer.channels[0, 0] == 0.0

    def test_mono_mix_is_channel_mean(self, stereo_buffer):
        expected = stereo_buffer.channels.mean(axis=0)
        np.testing.assert_allclose(stereo_buffer.mono, expected, atol=1e-6)

    def test_with_channels_keeps_sample_rate(self):
        buffer = SampleBuffer.from_mono(np.zeros(10), 8000)
        other = buffer.with_channels(np.ones((2, 5)))
        assert other.sample_rate == 8000
        assert other.channel_count == 2
        assert other is not buffer

    def test_repr_is_compact(self):
        buffer = SampleBuffer.from_mono(np.zeros(10), 8000)
        assert repr(buffer) == "SampleBuffer(channels=1, frames=10, sample_rate=8000)"


class TestPitchEstimate:
    def test_undetected(self):
        estimate = PitchEstimate.undetected()
        assert not estimate.is_detected
        assert estimate.status == "undetected"
        assert estimate.pitch_class is None
        assert estimate.confidence == 0.0

    def test_pitch_class(self):
        estimate = PitchEstimate(frequency_hz=440.0, midi_note=69, note_name="A4", confidence=0.9)
        assert estimate.pitch_class == 9
        assert estimate.to_dict()["status"] == "detected"

    def test_confidence_out_of_range(self):
        with pytest.raises(ValueError):
            PitchEstimate(frequency_hz=440.0, midi_note=69, note_name="A4", confidence=1.5)

    def test_nan_frequency_rejected(self):
        with pytest.raises(ValueError):
            PitchEstimate(frequency_hz=float("nan"), midi_note=69, note_name="A4", confidence=0.5)


class TestTempoEstimate:
    def test_manual(self):
        estimate = TempoEstimate.manual(128)
        assert estimate.bpm == 128.0
        assert estimate.method == "manual"
        assert estimate.status == "detected"

    def test_estimated_status(self):
        estimate = TempoEstimate(bpm=120.0, confidence=0.5, estimated=True, method="duration")
        assert estimate.status == "estimated"

    def test_undetected(self):
        estimate = TempoEstimate.undetected(note="silence")
        assert not estimate.is_detected
        assert estimate.to_dict()["note"] == "silence"

    def test_unknown_method_rejected(self):
        with pytest.raises(ValueError, match="Invalid tempo method"):
            TempoEstimate(bpm=120.0, confidence=0.5, method="guess")

    def test_infinite_bpm_rejected(self):
        with pytest.raises(ValueError):
            TempoEstimate(bpm=float("inf"), confidence=0.5)


class TestLoudnessProfile:
    def test_lufs_estimate_derived_from_rms(self):
        profile = LoudnessProfile(true_peak_db=-3.0, rms_db=-12.0, lra=2.0)
        assert profile.lufs_estimate == pytest.approx(-12.691)

    def test_lufs_estimate_floored(self):
        profile = LoudnessProfile(true_peak_db=DB_FLOOR, rms_db=DB_FLOOR, lra=0.0)
        assert profile.lufs_estimate == DB_FLOOR
        assert profile.is_silent

    def test_manual(self):
        profile = LoudnessProfile.manual(-6.0)
        assert profile.true_peak_db == -6.0
        assert not profile.is_silent


class TestSmallModels:
    def test_spectral_profile_json(self):
        data = SpectralProfile.silent().to_json()
        assert '"dominant_frequency_hz": 0.0' in data

    def test_quantize_skip(self):
        result = QuantizeResult.skip("No pitch detected")
        assert result.skipped
        assert result.semitones is None
        assert result.to_dict()["reason"] == "No pitch detected"

    def test_validate_confidence(self):
        validate_confidence(0.0)
        validate_confidence(1.0)
        with pytest.raises(ValueError):
            validate_confidence(-0.1)

    def test_amplitude_to_db(self):
        assert amplitude_to_db(1.0) == pytest.approx(0.0, abs=1e-6)
        assert amplitude_to_db(0.5) == pytest.approx(-6.02, abs=0.01)
        assert amplitude_to_db(0.0) == DB_FLOOR
