"""
Core data models for the TuneGraph engine.

Immutable domain models representing sample buffers and analysis results.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np

from tunegraph.utils.errors import InvalidInputError

# Floor for every dB value reported by the engine
DB_FLOOR = -100.0


@dataclass(frozen=True, eq=False)
class SampleBuffer:
    """
    Immutable block of decoded PCM audio.

    Channels are stored as a read-only (n_channels, frame_count) float32
    array. Transformers never mutate a buffer; they allocate a new one.
    """

    channels: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        """Validate and freeze the sample data."""
        if not isinstance(self.sample_rate, (int, np.integer)) or self.sample_rate <= 0:
            raise InvalidInputError(
                f"Sample rate must be a positive integer, got {self.sample_rate!r}",
                parameter="sample_rate"
            )

        channels = self.channels
        if isinstance(channels, (list, tuple)) and channels and not np.isscalar(channels[0]):
            lengths = {len(ch) for ch in channels}
            if len(lengths) > 1:
                raise InvalidInputError(
                    f"All channels must have the same length, got {sorted(lengths)}",
                    parameter="channels"
                )

        data = np.array(channels, dtype=np.float32)
        if data.ndim == 1:
            data = data[np.newaxis, :]
        if data.ndim != 2 or data.shape[0] == 0:
            raise InvalidInputError(
                f"Channels must be a 1-D or 2-D array, got shape {data.shape}",
                parameter="channels"
            )

        data.setflags(write=False)
        object.__setattr__(self, 'channels', data)
        object.__setattr__(self, 'sample_rate', int(self.sample_rate))

    @classmethod
    def from_mono(cls, samples: Union[np.ndarray, Sequence[float]], sample_rate: int) -> "SampleBuffer":
        """Build a single-channel buffer."""
        return cls(np.asarray(samples, dtype=np.float32).reshape(1, -1), sample_rate)

    @property
    def frame_count(self) -> int:
        """Samples per channel."""
        return int(self.channels.shape[1])

    @property
    def channel_count(self) -> int:
        return int(self.channels.shape[0])

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / self.sample_rate

    @property
    def mono(self) -> np.ndarray:
        """Get mono mix (mean of all channels)."""
        if self.channel_count == 1:
            return self.channels[0]
        return np.mean(self.channels, axis=0)

    def with_channels(self, channels: np.ndarray) -> "SampleBuffer":
        """Return a new buffer at the same sample rate."""
        return SampleBuffer(channels, self.sample_rate)

    def __repr__(self) -> str:
        return (
            f"SampleBuffer(channels={self.channel_count}, frames={self.frame_count}, "
            f"sample_rate={self.sample_rate})"
        )


@dataclass(frozen=True)
class PitchEstimate:
    """Monophonic pitch estimate with an explicit undetected state."""

    frequency_hz: float
    midi_note: Optional[int]
    note_name: Optional[str]  # e.g., "A4", "C#5"
    confidence: float  # [0.0, 1.0]

    def __post_init__(self) -> None:
        """Validate fields."""
        validate_confidence(self.confidence)
        if not np.isfinite(self.frequency_hz) or self.frequency_hz < 0:
            raise ValueError(f"Frequency must be finite and >= 0, got {self.frequency_hz}")

    @classmethod
    def undetected(cls) -> "PitchEstimate":
        """Estimate reported when no pitch could be found."""
        return cls(frequency_hz=0.0, midi_note=None, note_name=None, confidence=0.0)

    @property
    def is_detected(self) -> bool:
        return self.midi_note is not None and self.confidence > 0.0

    @property
    def status(self) -> str:
        return "detected" if self.is_detected else "undetected"

    @property
    def pitch_class(self) -> Optional[int]:
        """Pitch class 0-11 (C=0), or None when undetected."""
        if self.midi_note is None:
            return None
        return self.midi_note % 12

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'frequency_hz': self.frequency_hz,
            'midi_note': self.midi_note,
            'note_name': self.note_name,
            'confidence': self.confidence,
            'status': self.status
        }


@dataclass(frozen=True)
class PitchFrame:
    """One point of a pitch curve."""

    time_seconds: float
    frequency_hz: float
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'time_seconds': self.time_seconds,
            'frequency_hz': self.frequency_hz,
            'confidence': self.confidence
        }


@dataclass(frozen=True)
class TempoEstimate:
    """Tempo estimate in BPM."""

    bpm: float
    confidence: float  # [0.0, 1.0]
    estimated: bool = False  # True when derived from clip duration rather than onsets
    method: str = "onset"  # "onset", "duration", "manual", "none"
    raw_bpm: Optional[float] = None  # before octave folding
    note: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate fields."""
        validate_confidence(self.confidence)
        if not np.isfinite(self.bpm) or self.bpm < 0:
            raise ValueError(f"BPM must be finite and >= 0, got {self.bpm}")
        if self.method not in TEMPO_METHODS:
            raise ValueError(f"Invalid tempo method: {self.method}. Must be one of {TEMPO_METHODS}")

    @classmethod
    def undetected(cls, note: Optional[str] = None) -> "TempoEstimate":
        return cls(bpm=0.0, confidence=0.0, estimated=False, method="none", note=note)

    @classmethod
    def manual(cls, bpm: float) -> "TempoEstimate":
        """Estimate entered by the user."""
        return cls(bpm=float(bpm), confidence=1.0, estimated=False, method="manual", raw_bpm=float(bpm))

    @property
    def is_detected(self) -> bool:
        return self.bpm > 0.0 and self.method != "none"

    @property
    def status(self) -> str:
        if not self.is_detected:
            return "undetected"
        return "estimated" if self.estimated else "detected"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'bpm': self.bpm,
            'confidence': self.confidence,
            'estimated': self.estimated,
            'method': self.method,
            'raw_bpm': self.raw_bpm,
            'note': self.note,
            'status': self.status
        }


TEMPO_METHODS = {"onset", "duration", "manual", "none"}


@dataclass(frozen=True)
class LoudnessProfile:
    """Peak and loudness measurements; all dB values floored at -100."""

    true_peak_db: float
    rms_db: float
    lra: float  # loudness range in dB
    lufs_estimate: Optional[float] = None

    def __post_init__(self) -> None:
        if self.lufs_estimate is None:
            object.__setattr__(self, 'lufs_estimate', max(DB_FLOOR, self.rms_db - 0.691))

    @classmethod
    def manual(cls, peak_db: float) -> "LoudnessProfile":
        """Profile carrying a user-entered peak level."""
        return cls(true_peak_db=float(peak_db), rms_db=float(peak_db), lra=0.0)

    @property
    def is_silent(self) -> bool:
        return self.true_peak_db <= DB_FLOOR

    def to_dict(self) -> Dict[str, Any]:
        return {
            'true_peak_db': self.true_peak_db,
            'rms_db': self.rms_db,
            'lra': self.lra,
            'lufs_estimate': self.lufs_estimate
        }


@dataclass(frozen=True)
class SpectralProfile:
    """Band energy distribution of a clip."""

    low: float  # 20-250 Hz energy ratio
    mid: float  # 250-4000 Hz
    high: float  # 4000 Hz - Nyquist
    dominant_frequency_hz: float
    spectral_centroid_hz: float

    @classmethod
    def silent(cls) -> "SpectralProfile":
        return cls(low=0.0, mid=0.0, high=0.0, dominant_frequency_hz=0.0, spectral_centroid_hz=0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'low': self.low,
            'mid': self.mid,
            'high': self.high,
            'dominant_frequency_hz': self.dominant_frequency_hz,
            'spectral_centroid_hz': self.spectral_centroid_hz
        }

    def to_json(self, indent: int = 2) -> str:
        """Export as JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


@dataclass(frozen=True)
class QuantizeResult:
    """Outcome of snapping a detected pitch to a key."""

    semitones: Optional[int]
    target_note: Optional[str]
    skipped: bool = False
    reason: Optional[str] = None

    @classmethod
    def skip(cls, reason: str) -> "QuantizeResult":
        return cls(semitones=None, target_note=None, skipped=True, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'semitones': self.semitones,
            'target_note': self.target_note,
            'skipped': self.skipped,
            'reason': self.reason
        }


# Validation helpers

def validate_confidence(confidence: float) -> None:
    """Validate confidence score is in valid range."""
    if not (0.0 <= confidence <= 1.0):
        raise ValueError(f"Confidence must be in [0.0, 1.0], got {confidence}")


def amplitude_to_db(value: float) -> float:
    """Convert a linear amplitude to dB, floored at DB_FLOOR."""
    return max(DB_FLOOR, 20.0 * float(np.log10(value + 1e-10)))
