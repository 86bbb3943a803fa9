"""
Duration-preserving pitch shifting.

Resample the playback rate by 2^(semitones/12), then time-stretch back to
the original length.
"""

import numbers
from typing import Optional

import numpy as np

from tunegraph.core.analyzer_base import get_logger
from tunegraph.core.models import SampleBuffer
from tunegraph.core.tasks import TaskContext, ensure_context
from tunegraph.transforms.edits import change_playback_rate
from tunegraph.transforms.time_stretch import TimeStretcher
from tunegraph.utils.errors import InvalidRangeError


class PitchShifter:
    """Shift pitch by whole semitones while keeping the frame count."""

    name = "pitch_shift"

    def __init__(self, stretcher: Optional[TimeStretcher] = None, max_semitones: int = 12):
        self.stretcher = stretcher or TimeStretcher()
        self.max_semitones = int(max_semitones)
        self.logger = get_logger(self.name)

    def transform(self, buffer: SampleBuffer, amount: int, context: Optional[TaskContext] = None) -> SampleBuffer:
        return self.shift(buffer, amount, context=context)

    def shift(
        self,
        buffer: SampleBuffer,
        semitones: int,
        context: Optional[TaskContext] = None
    ) -> SampleBuffer:
        """
        Shift pitch by an integer number of semitones.

        Returns:
            SampleBuffer: New buffer with exactly buffer.frame_count frames,
            or the input itself for 0 semitones

        Raises:
            InvalidRangeError: If semitones is not an integer in
            [-max_semitones, max_semitones]
        """
        self.validate(semitones)
        semitones = int(semitones)
        if semitones == 0:
            return buffer

        context = ensure_context(context)
        factor = 2.0 ** (semitones / 12.0)
        self.logger.debug(f"Shifting {buffer!r} by {semitones:+d} semitones (factor {factor:.4f})")

        context.checkpoint(0.0, "Resampling")
        resampled = change_playback_rate(buffer, factor)
        stretched = self.stretcher.stretch(resampled, 1.0 / factor, context=context.scoped(0.1, 0.95))

        # Trim or zero-pad to the input length
        n = buffer.frame_count
        output = np.zeros((buffer.channel_count, n), dtype=np.float32)
        keep = min(n, stretched.frame_count)
        output[:, :keep] = stretched.channels[:, :keep]

        context.checkpoint(1.0, "Pitch shift complete")
        return buffer.with_channels(output)

    def validate(self, semitones: int) -> None:
        is_integer = isinstance(semitones, numbers.Integral) and not isinstance(semitones, bool)
        if not is_integer and isinstance(semitones, float) and semitones.is_integer():
            is_integer = True
        if not is_integer or abs(int(semitones)) > self.max_semitones:
            raise InvalidRangeError(
                f"Semitones must be an integer within ±{self.max_semitones}, got {semitones!r}",
                parameter="semitones",
                value=semitones,
                bounds=(-self.max_semitones, self.max_semitones)
            )


def create_pitch_shifter(config: dict, stretcher: Optional[TimeStretcher] = None) -> PitchShifter:
    """
    Factory function to create PitchShifter from config.

    Args:
        config: Configuration dictionary (the ``pitch_shift`` section)
        stretcher: Time stretcher to reuse
    """
    return PitchShifter(stretcher=stretcher, max_semitones=config.get('max_semitones', 12))
