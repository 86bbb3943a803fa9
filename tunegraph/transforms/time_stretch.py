"""
Pitch-preserving time stretching by windowed overlap-add.

Frames are read from the input every ``hop_in`` samples and written to the
output every ``hop_out`` samples, so the output lasts input / speed_ratio.
"""

from typing import Optional

import librosa
import numpy as np

from tunegraph.core.analyzer_base import get_logger
from tunegraph.core.models import SampleBuffer
from tunegraph.core.tasks import TaskContext, ensure_context
from tunegraph.utils.errors import InvalidInputError, InvalidRangeError

# Window length per quality tier
WINDOW_SIZES = {
    'fast': 1024,
    'standard': 2048,
    'high': 4096,
}

MIN_RATIO = 0.25
MAX_RATIO = 4.0


class TimeStretcher:
    """
    Overlap-add time stretcher with a periodic Hann window.

    Speed ratios above 1 shorten the clip, below 1 lengthen it.
    """

    name = "time_stretch"

    def __init__(
        self,
        quality: str = "standard",
        normalization: float = 0.7,
        checkpoint_frames: int = 64
    ):
        """
        Initialize time stretcher.

        Args:
            quality: Default quality tier ("fast", "standard", "high")
            normalization: Output gain applied on top of hop_out / hop_in
            checkpoint_frames: Frames overlap-added between cancellation checks
        """
        _window_size(quality)
        self.quality = quality
        self.normalization = float(normalization)
        self.checkpoint_frames = max(1, int(checkpoint_frames))
        self.logger = get_logger(self.name)

    def transform(self, buffer: SampleBuffer, amount: float, context: Optional[TaskContext] = None) -> SampleBuffer:
        return self.stretch(buffer, amount, context=context)

    def stretch(
        self,
        buffer: SampleBuffer,
        speed_ratio: float,
        quality: Optional[str] = None,
        context: Optional[TaskContext] = None
    ) -> SampleBuffer:
        """
        Change duration by 1 / speed_ratio without changing pitch.

        Args:
            buffer: Source audio
            speed_ratio: Playback speed factor in [0.25, 4.0]
            quality: Quality tier, defaults to the stretcher's setting
            context: Optional progress/cancellation context

        Returns:
            SampleBuffer: New buffer of round(frame_count / speed_ratio) frames,
            or the input itself when speed_ratio is exactly 1

        Raises:
            InvalidRangeError: If speed_ratio is not finite or out of range
            InvalidInputError: If quality is unknown
        """
        validate_speed_ratio(speed_ratio)
        window_size = _window_size(quality or self.quality)
        if speed_ratio == 1.0:
            return buffer

        n = buffer.frame_count
        out_length = int(round(n / speed_ratio))
        if out_length <= 0:
            return buffer

        context = ensure_context(context)
        hop_in = window_size // 4
        hop_out = max(1, int(round(hop_in / speed_ratio)))
        window = librosa.filters.get_window('hann', window_size, fftbins=True)
        scale = hop_out / hop_in * self.normalization

        self.logger.debug(
            f"Stretching {buffer!r} by {speed_ratio:.3f} "
            f"(window={window_size}, hop_in={hop_in}, hop_out={hop_out})"
        )

        channel_count = buffer.channel_count
        output = np.zeros((channel_count, out_length), dtype=np.float64)

        for c in range(channel_count):
            context.checkpoint(c / channel_count, f"Stretching channel {c + 1}/{channel_count}")
            source = buffer.channels[c].astype(np.float64)
            target = output[c]

            in_pos = 0
            out_pos = 0
            frames = 0
            while in_pos < n - window_size and out_pos < out_length - window_size:
                target[out_pos:out_pos + window_size] += source[in_pos:in_pos + window_size] * window
                in_pos += hop_in
                out_pos += hop_out
                frames += 1
                if frames % self.checkpoint_frames == 0:
                    context.checkpoint(
                        (c + min(1.0, out_pos / out_length)) / channel_count,
                        "Stretching"
                    )

            target *= scale

        context.checkpoint(1.0, "Stretch complete")
        return buffer.with_channels(output)


def validate_speed_ratio(speed_ratio: float) -> None:
    """Raise InvalidRangeError unless MIN_RATIO <= speed_ratio <= MAX_RATIO."""
    if not np.isfinite(speed_ratio) or not MIN_RATIO <= speed_ratio <= MAX_RATIO:
        raise InvalidRangeError(
            f"Speed ratio must be within [{MIN_RATIO}, {MAX_RATIO}], got {speed_ratio}",
            parameter="speed_ratio",
            value=speed_ratio,
            bounds=(MIN_RATIO, MAX_RATIO)
        )


def _window_size(quality: str) -> int:
    if quality not in WINDOW_SIZES:
        raise InvalidInputError(
            f"Unknown quality {quality!r}. Must be one of {sorted(WINDOW_SIZES)}",
            parameter="quality"
        )
    return WINDOW_SIZES[quality]


def create_time_stretcher(config: dict) -> TimeStretcher:
    """
    Factory function to create TimeStretcher from config.

    Args:
        config: Configuration dictionary (the ``stretch`` section)
    """
    return TimeStretcher(
        quality=config.get('quality', 'standard'),
        normalization=config.get('normalization', 0.7)
    )
