"""
Basic buffer edits: crop, linear fades, playback-rate resampling, a one-pole
softening filter, and two-buffer join and mix.

Every function returns a new SampleBuffer and leaves its input untouched.
"""

from typing import Optional, Tuple

import numpy as np
from scipy.signal import lfilter

from tunegraph.core.models import SampleBuffer
from tunegraph.utils.errors import InvalidInputError, InvalidRangeError
from tunegraph.utils.logging import get_logger

logger = get_logger("tunegraph.edits")


def crop(buffer: SampleBuffer, start_s: float = 0.0, end_s: Optional[float] = None) -> SampleBuffer:
    """
    Keep the region [start_s, end_s) of a buffer.

    Args:
        buffer: Source audio
        start_s: Start time in seconds
        end_s: End time in seconds (defaults to the end of the buffer)

    Raises:
        InvalidRangeError: If the region is empty or outside the buffer
    """
    duration = buffer.duration_seconds
    end_s = duration if end_s is None else end_s

    if not (np.isfinite(start_s) and np.isfinite(end_s)) or start_s < 0 or end_s > duration or start_s >= end_s:
        raise InvalidRangeError(
            f"Invalid crop region [{start_s}, {end_s}) for {duration:.3f}s buffer",
            parameter="start_s/end_s",
            value=start_s,
            bounds=(0.0, duration)
        )

    start = int(round(start_s * buffer.sample_rate))
    end = int(round(end_s * buffer.sample_rate))
    return buffer.with_channels(buffer.channels[:, start:end].copy())


def _fade_length(buffer: SampleBuffer, seconds: float) -> int:
    if not np.isfinite(seconds) or seconds <= 0:
        raise InvalidRangeError(
            f"Fade length must be positive, got {seconds}",
            parameter="seconds",
            value=seconds
        )
    return min(buffer.frame_count, int(round(seconds * buffer.sample_rate)))


def fade_in(buffer: SampleBuffer, seconds: float) -> SampleBuffer:
    """Linear fade from silence over the first ``seconds``."""
    length = _fade_length(buffer, seconds)
    channels = buffer.channels.copy()
    channels[:, :length] *= np.linspace(0.0, 1.0, length, dtype=np.float32)
    return buffer.with_channels(channels)


def fade_out(buffer: SampleBuffer, seconds: float) -> SampleBuffer:
    """Linear fade to silence over the last ``seconds``."""
    length = _fade_length(buffer, seconds)
    channels = buffer.channels.copy()
    if length:
        channels[:, -length:] *= np.linspace(1.0, 0.0, length, dtype=np.float32)
    return buffer.with_channels(channels)


def change_playback_rate(buffer: SampleBuffer, rate: float) -> SampleBuffer:
    """
    Resample so the buffer plays ``rate`` times faster (speed and pitch both change).

    Uses linear interpolation. The new length is round(frame_count / rate).

    Raises:
        InvalidRangeError: If rate is not a positive finite number
    """
    if not np.isfinite(rate) or rate <= 0:
        raise InvalidRangeError(
            f"Playback rate must be positive, got {rate}",
            parameter="rate",
            value=rate
        )
    if rate == 1.0:
        return buffer

    n = buffer.frame_count
    new_length = int(round(n / rate))
    if n == 0 or new_length == 0:
        return buffer.with_channels(np.zeros((buffer.channel_count, new_length), dtype=np.float32))

    positions = np.arange(new_length) * rate
    source = np.arange(n)
    resampled = np.stack([np.interp(positions, source, channel) for channel in buffer.channels])
    return buffer.with_channels(resampled)


def soften(buffer: SampleBuffer, cutoff_hz: float = 4000.0, intensity: float = 0.5) -> SampleBuffer:
    """
    Blend the buffer with a one-pole low-pass copy of itself.

    The filter state starts at each channel's first sample, so the output
    begins without a transient.

    Args:
        buffer: Source audio
        cutoff_hz: Low-pass cutoff frequency in Hz
        intensity: Share of the filtered signal in the output, 0.0 to 1.0

    Raises:
        InvalidRangeError: If cutoff_hz is not positive or intensity is outside [0, 1]
    """
    if not np.isfinite(cutoff_hz) or cutoff_hz <= 0:
        raise InvalidRangeError(
            f"Cutoff must be positive, got {cutoff_hz}",
            parameter="cutoff_hz",
            value=cutoff_hz
        )
    if not np.isfinite(intensity) or not 0.0 <= intensity <= 1.0:
        raise InvalidRangeError(
            f"Intensity must be within [0, 1], got {intensity}",
            parameter="intensity",
            value=intensity,
            bounds=(0.0, 1.0)
        )
    if intensity == 0.0 or buffer.frame_count == 0:
        return buffer

    dt = 1.0 / buffer.sample_rate
    rc = 1.0 / (2.0 * np.pi * cutoff_hz)
    alpha = dt / (rc + dt)

    channels = buffer.channels.astype(np.float64)
    initial = (1.0 - alpha) * channels[:, :1]
    filtered, _ = lfilter([alpha], [1.0, alpha - 1.0], channels, axis=-1, zi=initial)
    return buffer.with_channels(channels * (1.0 - intensity) + filtered * intensity)


def _matched_channels(first: SampleBuffer, second: SampleBuffer) -> Tuple[np.ndarray, np.ndarray]:
    """Check sample rates and copy a mono buffer up to the other's channel count."""
    if first.sample_rate != second.sample_rate:
        raise InvalidInputError(
            f"Sample rates differ: {first.sample_rate} Hz and {second.sample_rate} Hz",
            parameter="sample_rate"
        )

    a, b = first.channels, second.channels
    if first.channel_count == second.channel_count:
        return a, b
    if first.channel_count == 1:
        return np.repeat(a, second.channel_count, axis=0), b
    if second.channel_count == 1:
        return a, np.repeat(b, first.channel_count, axis=0)
    raise InvalidInputError(
        f"Cannot combine {first.channel_count}-channel and {second.channel_count}-channel buffers",
        parameter="channels"
    )


def join(first: SampleBuffer, second: SampleBuffer) -> SampleBuffer:
    """
    Play ``second`` straight after ``first``.

    Raises:
        InvalidInputError: On a sample-rate mismatch or incompatible channel layouts
    """
    a, b = _matched_channels(first, second)
    return first.with_channels(np.concatenate([a, b], axis=1))


def mix(
    first: SampleBuffer,
    second: SampleBuffer,
    balance: float = 0.5,
    auto_normalize: bool = True
) -> SampleBuffer:
    """
    Sum two buffers, weighting ``first`` by ``balance`` and ``second`` by ``1 - balance``.

    The shorter buffer is padded with silence. With auto_normalize, a mix
    whose peak exceeds full scale is scaled back to a peak of 1.0.

    Raises:
        InvalidRangeError: If balance is outside [0, 1]
        InvalidInputError: On a sample-rate mismatch or incompatible channel layouts
    """
    if not np.isfinite(balance) or not 0.0 <= balance <= 1.0:
        raise InvalidRangeError(
            f"Balance must be within [0, 1], got {balance}",
            parameter="balance",
            value=balance,
            bounds=(0.0, 1.0)
        )

    a, b = _matched_channels(first, second)
    length = max(a.shape[1], b.shape[1])
    mixed = np.zeros((a.shape[0], length), dtype=np.float64)
    mixed[:, :a.shape[1]] += a * balance
    mixed[:, :b.shape[1]] += b * (1.0 - balance)

    peak = float(np.max(np.abs(mixed))) if mixed.size else 0.0
    if peak > 1.0:
        if auto_normalize:
            logger.debug(f"Mix peak {peak:.3f} normalized to full scale")
            mixed /= peak
        else:
            logger.warning(f"Mix peak {peak:.3f} exceeds full scale")
    return first.with_channels(mixed)
