"""
Monophonic pitch detection using the YIN algorithm.

The squared-difference function is computed for every lag at once with an
FFT cross-correlation, then normalized by its cumulative mean (CMNDF).
"""

from typing import Optional

import librosa
import numpy as np

from tunegraph.core.analyzer_base import BaseAnalyzer
from tunegraph.core.models import PitchEstimate, SampleBuffer
from tunegraph.core.tasks import TaskContext
from tunegraph.utils.errors import InvalidRangeError

# Absolute amplitude below which a window counts as silence
SILENCE_THRESHOLD = 1e-8


class PitchDetector(BaseAnalyzer[PitchEstimate]):
    """
    YIN pitch detector.

    Works on a single mono window. ``analyze()`` runs it over the mono mix
    of a whole buffer; use DominantPitchEstimator for longer clips.
    """

    def __init__(
        self,
        min_hz: float = 50.0,
        max_hz: float = 2000.0,
        threshold: float = 0.15
    ):
        super().__init__(name="yin", version="1.0.0")
        _validate_frequency_range(min_hz, max_hz)
        self.min_hz = float(min_hz)
        self.max_hz = float(max_hz)
        self.threshold = float(threshold)

    def _analyze_impl(self, buffer: SampleBuffer, context: TaskContext) -> PitchEstimate:
        context.checkpoint(0.0, "Detecting pitch")
        estimate = self.detect(buffer.mono, buffer.sample_rate)
        context.checkpoint(1.0, "Pitch detected")
        return estimate

    def detect(
        self,
        samples: np.ndarray,
        sample_rate: int,
        min_hz: Optional[float] = None,
        max_hz: Optional[float] = None
    ) -> PitchEstimate:
        """
        Estimate the fundamental frequency of a mono window.

        Args:
            samples: 1-D sample array
            sample_rate: Sample rate in Hz
            min_hz: Lowest detectable frequency (defaults to detector setting)
            max_hz: Highest detectable frequency (defaults to detector setting)

        Returns:
            PitchEstimate: Detected pitch, or PitchEstimate.undetected() for
            silent input or a window too short for the lag range
        """
        min_hz = self.min_hz if min_hz is None else float(min_hz)
        max_hz = self.max_hz if max_hz is None else float(max_hz)
        _validate_frequency_range(min_hz, max_hz)

        x = np.asarray(samples, dtype=np.float64).ravel()
        n = len(x)
        if n == 0 or not np.all(np.isfinite(x)) or np.max(np.abs(x)) < SILENCE_THRESHOLD:
            return PitchEstimate.undetected()

        window = n // 2
        min_lag = max(2, int(sample_rate // max_hz))
        max_lag = min(int(sample_rate / min_hz), n - window - 1)
        if window < 1 or max_lag <= min_lag:
            return PitchEstimate.undetected()

        cmndf = _cmndf(_difference(x, window, max_lag))
        lag = self._pick_lag(cmndf, min_lag, max_lag)

        confidence = float(np.clip(1.0 - cmndf[lag], 0.0, 1.0))
        if confidence <= 0.0:
            return PitchEstimate.undetected()

        refined = _parabolic_refine(cmndf, lag, max_lag)
        frequency = sample_rate / refined
        if not np.isfinite(frequency) or frequency <= 0:
            return PitchEstimate.undetected()

        midi_note = int(np.round(librosa.hz_to_midi(frequency)))
        return PitchEstimate(
            frequency_hz=float(frequency),
            midi_note=midi_note,
            note_name=librosa.midi_to_note(midi_note, unicode=False),
            confidence=confidence
        )

    def _pick_lag(self, cmndf: np.ndarray, min_lag: int, max_lag: int) -> int:
        """First dip under the threshold, followed to its local minimum."""
        search = cmndf[min_lag:max_lag + 1]
        below = np.flatnonzero(search < self.threshold)

        if len(below) == 0:
            return min_lag + int(np.argmin(search))

        lag = min_lag + int(below[0])
        while lag + 1 <= max_lag and cmndf[lag + 1] < cmndf[lag]:
            lag += 1
        return lag


def _difference(x: np.ndarray, window: int, max_lag: int) -> np.ndarray:
    """YIN difference function d(tau) for tau in [0, max_lag]."""
    energy = np.concatenate(([0.0], np.cumsum(x * x)))
    lags = np.arange(max_lag + 1)
    e0 = energy[window]
    e_tau = energy[lags + window] - energy[lags]

    size = window + max_lag
    n_fft = 1 << int(np.ceil(np.log2(size)))
    a = np.fft.rfft(x[:window], n_fft)
    b = np.fft.rfft(x[:size], n_fft)
    cross = np.fft.irfft(np.conj(a) * b, n_fft)[:max_lag + 1]

    return np.maximum(e0 + e_tau - 2.0 * cross, 0.0)


def _cmndf(diff: np.ndarray) -> np.ndarray:
    """Cumulative mean normalized difference; 1 where the mean is zero."""
    result = np.ones_like(diff)
    running = np.cumsum(diff[1:])
    taus = np.arange(1, len(diff))
    with np.errstate(divide='ignore', invalid='ignore'):
        normalized = diff[1:] * taus / running
    result[1:] = np.where(running > 0, normalized, 1.0)
    return result


def _parabolic_refine(cmndf: np.ndarray, lag: int, max_lag: int) -> float:
    """Sub-sample lag from a parabola through the minimum and its neighbours."""
    if lag < 2 or lag + 1 > max_lag:
        return float(lag)

    s0, s1, s2 = cmndf[lag - 1], cmndf[lag], cmndf[lag + 1]
    denom = 2.0 * (2.0 * s1 - s2 - s0)
    if abs(denom) < 1e-12:
        return float(lag)

    shift = (s2 - s0) / denom
    return float(lag + np.clip(shift, -1.0, 1.0))


def _validate_frequency_range(min_hz: float, max_hz: float) -> None:
    if not (np.isfinite(min_hz) and np.isfinite(max_hz)) or min_hz <= 0 or max_hz <= min_hz:
        raise InvalidRangeError(
            f"Invalid pitch range: min_hz={min_hz}, max_hz={max_hz}",
            parameter="min_hz/max_hz",
            value=min_hz,
            bounds=(0.0, max_hz)
        )


def create_pitch_detector(config: dict) -> PitchDetector:
    """
    Factory function to create PitchDetector from config.

    Args:
        config: Configuration dictionary (the ``pitch`` section)
    """
    return PitchDetector(
        min_hz=config.get('min_hz', 50.0),
        max_hz=config.get('max_hz', 2000.0),
        threshold=config.get('threshold', 0.15)
    )
