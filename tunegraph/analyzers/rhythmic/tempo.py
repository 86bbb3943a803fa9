"""
Tempo (BPM) estimation for the TuneGraph engine.

Onset strength is the rectified first difference of a short-window RMS
envelope; tempo is the arg-max of its autocorrelation over the lag range
covering [min_bpm, max_bpm].
"""

from typing import Tuple

import librosa
import numpy as np

from tunegraph.core.analyzer_base import BaseAnalyzer
from tunegraph.core.models import SampleBuffer, TempoEstimate
from tunegraph.core.tasks import TaskContext


class TempoEstimator(BaseAnalyzer[TempoEstimate]):
    """
    Energy-onset autocorrelation tempo estimator.

    Clips shorter than ``min_duration`` are treated as one beat and get a
    duration-derived estimate flagged with ``estimated=True``.
    """

    def __init__(
        self,
        min_bpm: float = 60.0,
        max_bpm: float = 200.0,
        min_duration: float = 2.0,
        frame_ms: float = 10.0,
        octave_high: float = 180.0,
        octave_low: float = 70.0,
        checkpoint_interval: int = 100
    ):
        """
        Initialize tempo estimator.

        Args:
            min_bpm: Slowest tempo searched
            max_bpm: Fastest tempo searched
            min_duration: Clips shorter than this (seconds) use the duration estimate
            frame_ms: RMS envelope window length (hop is half of it)
            octave_high: Detected tempi above this are halved
            octave_low: Detected tempi below this are doubled
            checkpoint_interval: Lags between progress/cancellation checkpoints
        """
        super().__init__("tempo", "1.0.0")
        self.min_bpm = float(min_bpm)
        self.max_bpm = float(max_bpm)
        self.min_duration = float(min_duration)
        self.frame_ms = float(frame_ms)
        self.octave_high = float(octave_high)
        self.octave_low = float(octave_low)
        self.checkpoint_interval = max(1, int(checkpoint_interval))

    def _analyze_impl(self, buffer: SampleBuffer, context: TaskContext) -> TempoEstimate:
        """
        Estimate tempo of a buffer.

        Returns:
            TempoEstimate: Estimate, or TempoEstimate.undetected() for empty
            or silent input
        """
        duration = buffer.duration_seconds
        if buffer.frame_count == 0 or duration <= 0:
            return TempoEstimate.undetected(note="Empty buffer")

        if duration < self.min_duration:
            return self._estimate_from_duration(duration)

        return self._estimate_from_onsets(buffer, context)

    def _estimate_from_duration(self, duration: float) -> TempoEstimate:
        """Treat the whole clip as a single beat."""
        raw_bpm = 60.0 / duration
        bpm = raw_bpm
        while bpm > self.max_bpm:
            bpm /= 2.0
        while bpm < self.min_bpm:
            bpm *= 2.0

        self.logger.debug(f"Short clip ({duration:.2f}s), duration estimate {bpm:.1f} BPM")
        return TempoEstimate(
            bpm=bpm,
            confidence=0.5,
            estimated=True,
            method="duration",
            raw_bpm=raw_bpm,
            note=f"Clip length ({duration:.2f}s) used as one beat"
        )

    def onset_strength(self, buffer: SampleBuffer) -> Tuple[np.ndarray, int]:
        """
        Compute the onset strength function.

        Returns:
            (onset, hop): rectified envelope difference and its hop in samples
        """
        sr = buffer.sample_rate
        window = max(2, int(sr * self.frame_ms / 1000.0))
        hop = max(1, window // 2)

        mono = np.ascontiguousarray(buffer.mono, dtype=np.float64)
        if len(mono) < window:
            return np.zeros(0), hop

        frames = librosa.util.frame(mono, frame_length=window, hop_length=hop)
        envelope = np.sqrt(np.mean(frames ** 2, axis=0))
        onset = np.maximum(0.0, np.diff(envelope))
        return onset, hop

    def _estimate_from_onsets(self, buffer: SampleBuffer, context: TaskContext) -> TempoEstimate:
        sr = buffer.sample_rate
        onset, hop = self.onset_strength(buffer)

        frames_per_second = sr / hop
        min_lag = max(1, int(np.floor(60.0 / self.max_bpm * frames_per_second)))
        max_lag = min(int(np.floor(60.0 / self.min_bpm * frames_per_second)), len(onset) - 1)
        if max_lag < min_lag or not np.any(onset > 0):
            return TempoEstimate.undetected(note="No onset energy")

        lags = np.arange(min_lag, max_lag + 1)
        autocorr = np.zeros(len(lags))
        total = len(lags)

        for i, lag in enumerate(lags):
            if i % self.checkpoint_interval == 0:
                context.checkpoint(i / total, "Estimating tempo")
            autocorr[i] = np.dot(onset[:-lag], onset[lag:]) / (len(onset) - lag)

        context.checkpoint(1.0, "Tempo estimated")

        best = int(np.argmax(autocorr))
        max_corr = autocorr[best]
        if max_corr <= 0:
            return TempoEstimate.undetected(note="No periodic onsets")

        raw_bpm = 60.0 * sr / (lags[best] * hop)
        bpm = raw_bpm
        if bpm > self.octave_high:
            bpm /= 2.0
        elif bpm < self.octave_low:
            bpm *= 2.0

        mean_corr = float(np.mean(autocorr))
        confidence = (max_corr - mean_corr) / mean_corr if mean_corr > 0 else 1.0
        confidence = float(np.clip(confidence, 0.3, 1.0))

        self.logger.debug(f"Onset tempo {raw_bpm:.2f} -> {bpm:.2f} BPM (confidence {confidence:.2f})")
        return TempoEstimate(
            bpm=float(bpm),
            confidence=confidence,
            estimated=False,
            method="onset",
            raw_bpm=float(raw_bpm)
        )


def create_tempo_estimator(config: dict) -> TempoEstimator:
    """
    Factory function to create TempoEstimator from config.

    Args:
        config: Configuration dictionary (the ``tempo`` section)
    """
    return TempoEstimator(
        min_bpm=config.get('min_bpm', 60.0),
        max_bpm=config.get('max_bpm', 200.0),
        min_duration=config.get('min_duration', 2.0),
        frame_ms=config.get('frame_ms', 10.0),
        octave_high=config.get('octave_high', 180.0),
        octave_low=config.get('octave_low', 70.0),
        checkpoint_interval=config.get('checkpoint_interval', 100)
    )
