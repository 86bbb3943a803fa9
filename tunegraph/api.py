"""
In-process function API.

Module-level functions backed by a shared default AudioEngine. Hosts that
need their own configuration can call ``set_default_engine(create_engine(cfg))``
or use an AudioEngine directly.
"""

import threading
from typing import List, Optional, Sequence, Union

import numpy as np

from tunegraph.core.batch_coordinator import BatchPolicy, BatchResult
from tunegraph.core.engine import AudioEngine, create_engine
from tunegraph.core.models import (
    LoudnessProfile,
    PitchEstimate,
    PitchFrame,
    QuantizeResult,
    SampleBuffer,
    SpectralProfile,
    TempoEstimate,
)
from tunegraph.core.tasks import CancellationToken, ProgressCallback, TaskContext

_engine: Optional[AudioEngine] = None
_engine_lock = threading.Lock()


def get_default_engine() -> AudioEngine:
    """Shared engine, created from default configuration on first use."""
    global _engine
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                _engine = create_engine()
    return _engine


def set_default_engine(engine: AudioEngine) -> None:
    global _engine
    with _engine_lock:
        _engine = engine


def detect_pitch(
    samples: np.ndarray,
    sample_rate: int,
    min_hz: float = 50.0,
    max_hz: float = 2000.0
) -> PitchEstimate:
    """YIN pitch of a single mono window."""
    return get_default_engine().detect_pitch(samples, sample_rate, min_hz, max_hz)


def estimate_dominant_pitch(buffer: SampleBuffer) -> PitchEstimate:
    """Most frequent note across the clip."""
    return get_default_engine().estimate_dominant_pitch(buffer)


def track_pitch(buffer: SampleBuffer) -> List[PitchFrame]:
    return get_default_engine().track_pitch(buffer)


def estimate_tempo(
    buffer: SampleBuffer,
    progress_callback: Optional[ProgressCallback] = None,
    token: Optional[CancellationToken] = None
) -> TempoEstimate:
    """Tempo in BPM; cancellable through ``token``."""
    context = TaskContext(progress_callback, token, operation="estimate_tempo")
    return get_default_engine().estimate_tempo(buffer, context)


def time_stretch(
    buffer: SampleBuffer,
    speed_ratio: float,
    quality: str = "standard",
    progress_callback: Optional[ProgressCallback] = None,
    token: Optional[CancellationToken] = None
) -> SampleBuffer:
    """Change duration by 1 / speed_ratio, keeping pitch."""
    context = TaskContext(progress_callback, token, operation="time_stretch")
    return get_default_engine().time_stretch(buffer, speed_ratio, quality, context)


def shift_pitch(buffer: SampleBuffer, semitones: int) -> SampleBuffer:
    """Change pitch by whole semitones, keeping duration."""
    return get_default_engine().shift_pitch(buffer, semitones)


def analyze_loudness(buffer: SampleBuffer) -> LoudnessProfile:
    return get_default_engine().analyze_loudness(buffer)


def analyze_spectrum(buffer: SampleBuffer) -> SpectralProfile:
    return get_default_engine().analyze_spectrum(buffer)


def apply_gain(buffer: SampleBuffer, gain_db: float, limiter_enabled: bool = True) -> SampleBuffer:
    return get_default_engine().apply_gain(buffer, gain_db, limiter_enabled)


def quantize_to_scale(detected_note: Union[str, PitchEstimate, None], target_key: str) -> QuantizeResult:
    """Semitone shift that moves a note onto the nearest scale member of a key."""
    return get_default_engine().quantize_to_scale(detected_note, target_key)


def transpose_to(detected_note: Union[str, PitchEstimate, None], target_note: str) -> QuantizeResult:
    return get_default_engine().transpose_to(detected_note, target_note)


def run_batch(
    buffers: Sequence[SampleBuffer],
    filenames: Optional[Sequence[str]] = None,
    policy: Optional[BatchPolicy] = None,
    progress_callback: Optional[ProgressCallback] = None,
    token: Optional[CancellationToken] = None
) -> BatchResult:
    """Analyze and synchronize a batch of buffers."""
    return get_default_engine().run_batch(buffers, filenames, policy, progress_callback, token)


# Async variants: run the blocking call in the engine's executor

async def estimate_tempo_async(
    buffer: SampleBuffer,
    progress_callback: Optional[ProgressCallback] = None,
    token: Optional[CancellationToken] = None
) -> TempoEstimate:
    return await get_default_engine().run_async(estimate_tempo, buffer, progress_callback, token)


async def time_stretch_async(
    buffer: SampleBuffer,
    speed_ratio: float,
    quality: str = "standard",
    progress_callback: Optional[ProgressCallback] = None,
    token: Optional[CancellationToken] = None
) -> SampleBuffer:
    return await get_default_engine().run_async(
        time_stretch, buffer, speed_ratio, quality, progress_callback, token
    )


async def run_batch_async(
    buffers: Sequence[SampleBuffer],
    filenames: Optional[Sequence[str]] = None,
    policy: Optional[BatchPolicy] = None,
    progress_callback: Optional[ProgressCallback] = None,
    token: Optional[CancellationToken] = None
) -> BatchResult:
    return await get_default_engine().run_async(
        run_batch, buffers, filenames, policy, progress_callback, token
    )
