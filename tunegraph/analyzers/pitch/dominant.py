"""
Dominant pitch estimation for whole clips.

Slides the YIN detector across the mono mix and votes by nearest MIDI note.
"""

from typing import Dict, List, Optional

import librosa
import numpy as np

from tunegraph.analyzers.pitch.yin import PitchDetector
from tunegraph.core.analyzer_base import BaseAnalyzer
from tunegraph.core.models import PitchEstimate, PitchFrame, SampleBuffer
from tunegraph.core.tasks import TaskContext, ensure_context
from tunegraph.utils.errors import InvalidRangeError


class DominantPitchEstimator(BaseAnalyzer[PitchEstimate]):
    """
    Most frequent note across fixed-length analysis windows.

    Windows below the confidence threshold are discarded. Confidence of
    the result is the share of surviving windows that voted for the
    winning note.
    """

    def __init__(
        self,
        detector: Optional[PitchDetector] = None,
        window_ms: float = 100.0,
        overlap: float = 0.0,
        confidence_threshold: float = 0.5,
        min_midi: int = 21,
        max_midi: int = 127
    ):
        super().__init__(name="dominant_pitch", version="1.0.0")
        if not 0.0 <= overlap < 1.0:
            raise InvalidRangeError(
                f"Overlap must be in [0, 1), got {overlap}",
                parameter="overlap", value=overlap, bounds=(0.0, 1.0)
            )
        if window_ms <= 0:
            raise InvalidRangeError(
                f"Window length must be positive, got {window_ms} ms",
                parameter="window_ms", value=window_ms
            )
        self.detector = detector or PitchDetector()
        self.window_ms = float(window_ms)
        self.overlap = float(overlap)
        self.confidence_threshold = float(confidence_threshold)
        self.min_midi = int(min_midi)
        self.max_midi = int(max_midi)

    def _window_seconds(self, duration: float) -> float:
        """Shorter windows for very short clips."""
        window = self.window_ms / 1000.0
        if duration < 0.1:
            return min(window, 0.025)
        if duration < 0.2:
            return min(window, 0.05)
        return window

    def track(self, buffer: SampleBuffer, context: Optional[TaskContext] = None) -> List[PitchFrame]:
        """
        Pitch curve of the buffer, one frame per analysis window.

        Args:
            buffer: Audio to analyze
            context: Optional progress/cancellation context

        Returns:
            List[PitchFrame]: Frames in time order (undetected windows have
            frequency 0 and confidence 0)
        """
        context = ensure_context(context)
        mono = buffer.mono
        sr = buffer.sample_rate
        n = len(mono)

        window = max(1, int(self._window_seconds(buffer.duration_seconds) * sr))
        hop = max(1, int(window * (1.0 - self.overlap)))
        total = max(1, int(np.ceil(max(n - window, 0) / hop)) + 1)

        frames = []
        for index, start in enumerate(range(0, max(n, 1), hop)):
            segment = mono[start:start + window]
            if len(segment) < window / 2:
                break

            context.checkpoint(index / total, "Tracking pitch")
            estimate = self.detector.detect(segment, sr)
            frames.append(PitchFrame(
                time_seconds=start / sr,
                frequency_hz=estimate.frequency_hz,
                confidence=estimate.confidence
            ))

        context.checkpoint(1.0, "Pitch tracking complete")
        return frames

    def _analyze_impl(self, buffer: SampleBuffer, context: TaskContext) -> PitchEstimate:
        return self.estimate(self.track(buffer, context))

    def estimate(self, frames: List[PitchFrame]) -> PitchEstimate:
        """Vote a dominant note from a pitch curve."""
        valid = [
            f for f in frames
            if f.frequency_hz > 0 and f.confidence > self.confidence_threshold
        ]
        if not valid:
            self.logger.debug("No confident pitch windows")
            return PitchEstimate.undetected()

        # Insertion order decides ties: the note heard first wins
        buckets: Dict[int, List[float]] = {}
        for frame in valid:
            midi = int(np.round(librosa.hz_to_midi(frame.frequency_hz)))
            if self.min_midi <= midi <= self.max_midi:
                buckets.setdefault(midi, []).append(frame.frequency_hz)

        if not buckets:
            return PitchEstimate.undetected()

        best_note, best_freqs = None, []
        for midi, freqs in buckets.items():
            if len(freqs) > len(best_freqs):
                best_note, best_freqs = midi, freqs

        confidence = len(best_freqs) / len(valid)
        return PitchEstimate(
            frequency_hz=float(np.median(best_freqs)),
            midi_note=best_note,
            note_name=librosa.midi_to_note(best_note, unicode=False),
            confidence=float(min(1.0, confidence))
        )


def create_dominant_pitch_estimator(config: dict) -> DominantPitchEstimator:
    """
    Factory function to create DominantPitchEstimator from config.

    Args:
        config: Configuration dictionary (the ``pitch`` section)
    """
    from tunegraph.analyzers.pitch.yin import create_pitch_detector

    return DominantPitchEstimator(
        detector=create_pitch_detector(config),
        window_ms=config.get('window_ms', 100.0),
        overlap=config.get('overlap', 0.0),
        confidence_threshold=config.get('confidence_threshold', 0.5),
        min_midi=config.get('min_midi', 21),
        max_midi=config.get('max_midi', 127)
    )
