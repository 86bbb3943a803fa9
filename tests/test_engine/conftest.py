"""Shared fixtures for engine tests: synthetic buffers built with numpy."""

import numpy as np
import pytest

from tunegraph.core.models import SampleBuffer

SR = 44100


# ---------------------------------------------------------------------------
# Signal helpers
# ---------------------------------------------------------------------------


def make_sine(freq: float = 440.0, duration: float = 1.0, sr: int = SR, amplitude: float = 0.5) -> SampleBuffer:
    t = np.arange(int(duration * sr)) / sr
    return SampleBuffer.from_mono(amplitude * np.sin(2 * np.pi * freq * t), sr)


def make_click_track(bpm: float = 120.0, duration: float = 4.0, sr: int = SR) -> SampleBuffer:
    """Decaying 1 kHz bursts, one per beat."""
    samples = np.zeros(int(duration * sr))
    burst_len = int(0.02 * sr)
    t = np.arange(burst_len) / sr
    burst = np.sin(2 * np.pi * 1000.0 * t) * np.exp(-t * 200.0)

    interval = 60.0 / bpm
    beat = 0.05
    while beat < duration:
        start = int(beat * sr)
        end = min(len(samples), start + burst_len)
        samples[start:end] += burst[:end - start]
        beat += interval
    return SampleBuffer.from_mono(samples * 0.8, sr)


def make_constant(value: float = 0.5, duration: float = 1.0, sr: int = SR) -> SampleBuffer:
    return SampleBuffer.from_mono(np.full(int(duration * sr), value), sr)


def make_noise(duration: float = 0.5, sr: int = 8000, seed: int = 0) -> SampleBuffer:
    rng = np.random.default_rng(seed)
    return SampleBuffer.from_mono(rng.uniform(-0.3, 0.3, int(duration * sr)), sr)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sine_440():
    """1 s, 440 Hz sine at 44.1 kHz."""
    return make_sine()


@pytest.fixture
def click_track_120():
    """4 s click track at 120 BPM."""
    return make_click_track()


@pytest.fixture
def constant_half():
    """1 s of constant 0.5."""
    return make_constant(0.5)


@pytest.fixture
def silence():
    """4 s of digital silence."""
    return SampleBuffer.from_mono(np.zeros(4 * SR), SR)


@pytest.fixture
def stereo_buffer():
    """Stereo: 440 Hz left, half-amplitude 440 Hz right."""
    t = np.arange(SR) / SR
    left = 0.5 * np.sin(2 * np.pi * 440.0 * t)
    return SampleBuffer(np.stack([left, left * 0.5]), SR)


@pytest.fixture
def short_noise():
    """0.5 s of uniform noise at 8 kHz, cheap to transform."""
    return make_noise()
