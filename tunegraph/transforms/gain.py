"""
Gain with optional tanh soft limiting.
"""

from typing import Optional

import numpy as np

from tunegraph.core.analyzer_base import get_logger
from tunegraph.core.models import SampleBuffer
from tunegraph.core.tasks import TaskContext, ensure_context
from tunegraph.utils.errors import InvalidRangeError

MAX_GAIN_DB = 60.0


class SoftLimiter:
    """
    Soft clipper.

    Samples at or below the threshold pass unchanged; above it the excess
    is compressed with tanh so the output approaches but never exceeds 1.
    """

    def __init__(self, threshold: float = 0.95):
        if not 0.0 < threshold < 1.0:
            raise InvalidRangeError(
                f"Limiter threshold must be in (0, 1), got {threshold}",
                parameter="threshold",
                value=threshold,
                bounds=(0.0, 1.0)
            )
        self.threshold = float(threshold)

    def __call__(self, samples: np.ndarray) -> np.ndarray:
        t = self.threshold
        magnitude = np.abs(samples)
        compressed = t + (1.0 - t) * np.tanh((magnitude - t) / (1.0 - t))
        limited = np.sign(samples) * np.minimum(compressed, 1.0)
        return np.where(magnitude > t, limited, samples)


class GainProcessor:
    """Applies a dB gain, optionally followed by the soft limiter."""

    name = "gain"

    def __init__(self, limiter: Optional[SoftLimiter] = None, limiter_enabled: bool = True):
        self.limiter = limiter or SoftLimiter()
        self.limiter_enabled = limiter_enabled
        self.logger = get_logger(self.name)

    def transform(self, buffer: SampleBuffer, amount: float, context: Optional[TaskContext] = None) -> SampleBuffer:
        return self.apply_gain(buffer, amount, self.limiter_enabled, context=context)

    def apply_gain(
        self,
        buffer: SampleBuffer,
        gain_db: float,
        limiter_enabled: bool = True,
        context: Optional[TaskContext] = None
    ) -> SampleBuffer:
        """
        Multiply every sample by 10^(gain_db / 20).

        Returns:
            SampleBuffer: New buffer, or the input itself for 0 dB without limiter

        Raises:
            InvalidRangeError: If gain_db is not finite or beyond ±60 dB
        """
        if not np.isfinite(gain_db) or abs(gain_db) > MAX_GAIN_DB:
            raise InvalidRangeError(
                f"Gain must be within ±{MAX_GAIN_DB} dB, got {gain_db}",
                parameter="gain_db",
                value=gain_db,
                bounds=(-MAX_GAIN_DB, MAX_GAIN_DB)
            )
        if gain_db == 0 and not limiter_enabled:
            return buffer

        context = ensure_context(context)
        context.checkpoint(0.0, "Applying gain")

        samples = buffer.channels.astype(np.float64) * (10.0 ** (gain_db / 20.0))
        if limiter_enabled:
            samples = self.limiter(samples)

        self.logger.debug(f"Applied {gain_db:+.2f} dB (limiter={'on' if limiter_enabled else 'off'})")
        context.checkpoint(1.0, "Gain applied")
        return buffer.with_channels(samples)


def create_gain_processor(config: dict) -> GainProcessor:
    """
    Factory function to create GainProcessor from config.

    Args:
        config: Configuration dictionary (the ``loudness`` section)
    """
    return GainProcessor(limiter=SoftLimiter(config.get('limiter_threshold', 0.95)))
