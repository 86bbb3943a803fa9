"""
Spectral band analysis.

Measures how a clip's energy splits across low (20-250 Hz), mid
(250-4000 Hz) and high (4000 Hz to Nyquist) bands, plus its dominant
frequency and spectral centroid, from a Hann-windowed frame taken at the
middle of the mono mix.
"""

import librosa
import numpy as np

from tunegraph.core.analyzer_base import BaseAnalyzer
from tunegraph.core.models import SampleBuffer, SpectralProfile
from tunegraph.core.tasks import TaskContext

BANDS = {
    'low': (20.0, 250.0),
    'mid': (250.0, 4000.0),
    'high': (4000.0, None),
}


class SpectralAnalyzer(BaseAnalyzer[SpectralProfile]):
    """Single-frame spectral summary of a clip."""

    def __init__(self, n_fft: int = 2048):
        super().__init__("spectral", "1.0.0")
        self.n_fft = int(n_fft)

    def _analyze_impl(self, buffer: SampleBuffer, context: TaskContext) -> SpectralProfile:
        mono = np.asarray(buffer.mono, dtype=np.float64)
        if len(mono) == 0 or not np.any(mono):
            return SpectralProfile.silent()

        # Frame from the middle of the clip, zero-padded if the clip is short
        start = max(0, len(mono) // 2 - self.n_fft // 2)
        frame = np.zeros(self.n_fft)
        segment = mono[start:start + self.n_fft]
        frame[:len(segment)] = segment

        window = librosa.filters.get_window('hann', self.n_fft, fftbins=True)
        magnitude = np.abs(np.fft.rfft(frame * window))
        freqs = np.fft.rfftfreq(self.n_fft, d=1.0 / buffer.sample_rate)
        context.checkpoint(0.5, "Spectrum computed")

        power = magnitude ** 2
        total = float(np.sum(power[freqs >= BANDS['low'][0]]))
        if total <= 0:
            return SpectralProfile.silent()

        ratios = {}
        for name, (low, high) in BANDS.items():
            upper = np.ones_like(freqs, dtype=bool) if high is None else freqs < high
            ratios[name] = float(np.sum(power[(freqs >= low) & upper]) / total)

        magnitude_sum = float(np.sum(magnitude))
        centroid = float(np.sum(freqs * magnitude) / magnitude_sum) if magnitude_sum > 0 else 0.0

        return SpectralProfile(
            low=ratios['low'],
            mid=ratios['mid'],
            high=ratios['high'],
            dominant_frequency_hz=float(freqs[int(np.argmax(magnitude))]),
            spectral_centroid_hz=centroid
        )


def create_spectral_analyzer(config: dict) -> SpectralAnalyzer:
    """Factory function to create SpectralAnalyzer from config."""
    return SpectralAnalyzer(n_fft=config.get('n_fft', 2048))
