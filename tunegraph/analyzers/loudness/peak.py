"""
Peak and loudness analysis.

Sample peak and RMS are measured across all channels. The loudness range
is a simplified LRA: the spread between the 10th and 90th percentile of
400 ms block levels.
"""

import numpy as np

from tunegraph.core.analyzer_base import BaseAnalyzer
from tunegraph.core.models import LoudnessProfile, SampleBuffer, amplitude_to_db
from tunegraph.core.tasks import TaskContext


class LoudnessAnalyzer(BaseAnalyzer[LoudnessProfile]):
    """Peak, RMS and loudness-range measurement."""

    def __init__(self, block_ms: float = 400.0):
        super().__init__("loudness", "1.0.0")
        self.block_ms = float(block_ms)

    def _analyze_impl(self, buffer: SampleBuffer, context: TaskContext) -> LoudnessProfile:
        data = buffer.channels.astype(np.float64)
        if data.size == 0:
            return LoudnessProfile(true_peak_db=amplitude_to_db(0.0), rms_db=amplitude_to_db(0.0), lra=0.0)

        peak = float(np.max(np.abs(data)))
        rms = float(np.sqrt(np.mean(data ** 2)))
        context.checkpoint(0.5, "Measuring loudness range")

        return LoudnessProfile(
            true_peak_db=amplitude_to_db(peak),
            rms_db=amplitude_to_db(rms),
            lra=self._loudness_range(data, buffer.sample_rate)
        )

    def _loudness_range(self, data: np.ndarray, sample_rate: int) -> float:
        """10th-90th percentile spread of block levels; 0 with fewer than 3 blocks."""
        block = int(sample_rate * self.block_ms / 1000.0)
        n = data.shape[1]
        if block <= 0:
            return 0.0

        levels = []
        i = 0
        while i < n - block:
            block_rms = np.sqrt(np.mean(data[:, i:i + block] ** 2))
            levels.append(amplitude_to_db(block_rms))
            i += block

        if len(levels) < 3:
            return 0.0

        levels.sort()
        low = levels[int(np.floor(len(levels) * 0.1))]
        high = levels[int(np.floor(len(levels) * 0.9))]
        return float(high - low)


def create_loudness_analyzer(config: dict) -> LoudnessAnalyzer:
    """
    Factory function to create LoudnessAnalyzer from config.

    Args:
        config: Configuration dictionary (the ``loudness`` section)
    """
    return LoudnessAnalyzer(block_ms=config.get('block_ms', 400.0))
