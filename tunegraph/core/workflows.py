"""
Batch workflows: loudness, tempo and key synchronization.

A workflow bundles one analyzer and one transformer behind the
{analyze, transform} capability interface, plus the rules for turning
per-file estimates into a batch target and per-file adjustments.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence, TYPE_CHECKING, Union

import librosa
import numpy as np

from tunegraph.analyzers.loudness.peak import LoudnessAnalyzer
from tunegraph.analyzers.pitch.dominant import DominantPitchEstimator
from tunegraph.analyzers.rhythmic.tempo import TempoEstimator
from tunegraph.core.aggregation import AggregationPolicy, aggregate, mode_of, round_half_up
from tunegraph.core.models import DB_FLOOR, LoudnessProfile, PitchEstimate, SampleBuffer, TempoEstimate
from tunegraph.core.tasks import TaskContext
from tunegraph.music.keys import NOTE_NAMES, Key, KeyQuantizer, parse_key, parse_note
from tunegraph.transforms.gain import MAX_GAIN_DB, GainProcessor
from tunegraph.transforms.pitch_shift import PitchShifter
from tunegraph.transforms.time_stretch import MAX_RATIO, MIN_RATIO, TimeStretcher
from tunegraph.utils.errors import InvalidInputError, InvalidRangeError

if TYPE_CHECKING:
    from tunegraph.core.batch_coordinator import BatchPolicy


@dataclass(frozen=True)
class Adjustment:
    """Per-file adjustment derived from an estimate and the batch target."""

    value: Optional[float]  # gain dB, speed ratio or semitones
    target: Any = None
    skipped: bool = False
    warning: Optional[str] = None
    error: Optional[str] = None


class Workflow(Protocol):
    """Capability interface shared by all batch workflows."""

    name: str
    default_aggregation: AggregationPolicy
    identity: float

    def analyze(self, buffer: SampleBuffer, context: Optional[TaskContext] = None) -> Any:
        ...

    def transform(
        self,
        buffer: SampleBuffer,
        adjustment: float,
        policy: "BatchPolicy",
        context: Optional[TaskContext] = None
    ) -> SampleBuffer:
        ...

    def undetected(self) -> Any:
        ...

    def value_of(self, estimate: Any) -> Optional[float]:
        ...

    def manual_estimate(self, value: Any) -> Any:
        ...

    def default_reference(self, estimates: Sequence[Any]) -> Optional[int]:
        ...

    def compute_target(self, estimates: Sequence[Any], policy: "BatchPolicy") -> Any:
        ...

    def adjust(self, estimate: Any, target: Any, reference: Optional[Any] = None) -> Adjustment:
        ...


def _first_detected(workflow: Workflow, estimates: Sequence[Any]) -> Optional[int]:
    for index, estimate in enumerate(estimates):
        if workflow.value_of(estimate) is not None:
            return index
    return None


class LoudnessSync:
    """Peak normalization with optional soft limiting."""

    name = "loudness"
    default_aggregation = AggregationPolicy.CUSTOM
    identity = 0.0

    def __init__(
        self,
        analyzer: Optional[LoudnessAnalyzer] = None,
        gain: Optional[GainProcessor] = None,
        target_peak_db: float = -1.0,
        presets: Optional[Dict[str, float]] = None
    ):
        self.analyzer = analyzer or LoudnessAnalyzer()
        self.gain = gain or GainProcessor()
        self.target_peak_db = float(target_peak_db)
        self.presets = presets or {"game": -1.0, "video": -2.0, "broadcast": -1.0}

    def analyze(self, buffer: SampleBuffer, context: Optional[TaskContext] = None) -> LoudnessProfile:
        return self.analyzer.analyze(buffer, context)

    def transform(self, buffer, adjustment, policy, context=None) -> SampleBuffer:
        return self.gain.apply_gain(buffer, adjustment, policy.limiter_enabled, context=context)

    def undetected(self) -> LoudnessProfile:
        return LoudnessProfile(true_peak_db=DB_FLOOR, rms_db=DB_FLOOR, lra=0.0)

    def value_of(self, estimate: LoudnessProfile) -> Optional[float]:
        if estimate is None or estimate.is_silent:
            return None
        return estimate.true_peak_db

    def manual_estimate(self, value: float) -> LoudnessProfile:
        value = float(value)
        if not np.isfinite(value) or not DB_FLOOR < value <= MAX_GAIN_DB:
            raise InvalidRangeError(
                f"Peak level must be within ({DB_FLOOR}, {MAX_GAIN_DB}] dB, got {value}",
                parameter="peak_db", value=value, bounds=(DB_FLOOR, MAX_GAIN_DB)
            )
        return LoudnessProfile.manual(value)

    def default_reference(self, estimates: Sequence[LoudnessProfile]) -> Optional[int]:
        """Loudest detected file."""
        peaks = [(self.value_of(e), i) for i, e in enumerate(estimates) if self.value_of(e) is not None]
        if not peaks:
            return None
        return max(peaks, key=lambda p: (p[0], -p[1]))[1]

    def resolve_custom_target(self, policy: "BatchPolicy") -> float:
        if policy.custom_value is not None:
            return float(policy.custom_value)
        if policy.preset is not None:
            if policy.preset not in self.presets:
                raise InvalidInputError(
                    f"Unknown loudness preset {policy.preset!r}. Must be one of {sorted(self.presets)}",
                    parameter="preset"
                )
            return float(self.presets[policy.preset])
        return self.target_peak_db

    def compute_target(self, estimates, policy) -> Optional[float]:
        aggregation = policy.aggregation or self.default_aggregation
        if aggregation is AggregationPolicy.CUSTOM:
            return self.resolve_custom_target(policy)
        values = [v for v in (self.value_of(e) for e in estimates) if v is not None]
        return aggregate(values, aggregation)

    def adjust(self, estimate, target, reference=None) -> Adjustment:
        if self.value_of(estimate) is None:
            return Adjustment(value=None, target=target, skipped=True, warning="Silent file")
        if target is None:
            return Adjustment(value=None, target=None, skipped=True)

        basis = reference if reference is not None else estimate
        gain_db = float(target) - basis.true_peak_db
        if abs(gain_db) > MAX_GAIN_DB:
            return Adjustment(
                value=gain_db, target=target, skipped=True,
                error=f"Gain {gain_db:+.1f} dB exceeds ±{MAX_GAIN_DB:.0f} dB"
            )
        return Adjustment(value=gain_db, target=target)


class TempoSync:
    """Tempo matching by time stretching."""

    name = "tempo"
    default_aggregation = AggregationPolicy.AVERAGE
    identity = 1.0

    def __init__(
        self,
        estimator: Optional[TempoEstimator] = None,
        stretcher: Optional[TimeStretcher] = None,
        manual_bpm_range: Sequence[float] = (40.0, 240.0),
        extreme_ratio: float = 2.0
    ):
        self.estimator = estimator or TempoEstimator()
        self.stretcher = stretcher or TimeStretcher()
        self.manual_bpm_range = (float(manual_bpm_range[0]), float(manual_bpm_range[1]))
        self.extreme_ratio = float(extreme_ratio)

    def analyze(self, buffer: SampleBuffer, context: Optional[TaskContext] = None) -> TempoEstimate:
        return self.estimator.analyze(buffer, context)

    def transform(self, buffer, adjustment, policy, context=None) -> SampleBuffer:
        return self.stretcher.stretch(buffer, adjustment, quality=policy.quality, context=context)

    def undetected(self) -> TempoEstimate:
        return TempoEstimate.undetected()

    def value_of(self, estimate: TempoEstimate) -> Optional[float]:
        if estimate is None or not estimate.is_detected:
            return None
        return estimate.bpm

    def manual_estimate(self, value: float) -> TempoEstimate:
        low, high = self.manual_bpm_range
        value = float(value)
        if not np.isfinite(value) or not low <= value <= high:
            raise InvalidRangeError(
                f"BPM must be within [{low:.0f}, {high:.0f}], got {value}",
                parameter="bpm", value=value, bounds=(low, high)
            )
        return TempoEstimate.manual(value)

    def default_reference(self, estimates: Sequence[TempoEstimate]) -> Optional[int]:
        return _first_detected(self, estimates)

    def compute_target(self, estimates, policy) -> Optional[float]:
        aggregation = policy.aggregation or self.default_aggregation
        values = [v for v in (self.value_of(e) for e in estimates) if v is not None]
        target = aggregate(values, aggregation, policy.custom_value)
        if target is None:
            return None
        return float(round_half_up(target))

    def adjust(self, estimate, target, reference=None) -> Adjustment:
        if self.value_of(estimate) is None:
            return Adjustment(value=None, target=target, skipped=True, warning="Tempo not detected")
        if target is None:
            return Adjustment(value=None, target=None, skipped=True)

        basis = reference if reference is not None else estimate
        ratio = float(target) / basis.bpm

        if not MIN_RATIO <= ratio <= MAX_RATIO:
            return Adjustment(
                value=ratio, target=target, skipped=True,
                error=f"Speed ratio {ratio:.2f} outside [{MIN_RATIO}, {MAX_RATIO}]"
            )

        warning = None
        if ratio > self.extreme_ratio or ratio < 1.0 / self.extreme_ratio:
            warning = f"Large speed change ({ratio:.2f}x), quality may degrade"
        return Adjustment(value=ratio, target=target, warning=warning)


class KeySync:
    """Pitch quantization by whole-semitone pitch shifting."""

    name = "key"
    default_aggregation = AggregationPolicy.NEAREST_SCALE_NOTE
    identity = 0

    def __init__(
        self,
        estimator: Optional[DominantPitchEstimator] = None,
        shifter: Optional[PitchShifter] = None,
        quantizer: Optional[KeyQuantizer] = None
    ):
        self.estimator = estimator or DominantPitchEstimator()
        self.shifter = shifter or PitchShifter()
        self.quantizer = quantizer or KeyQuantizer()

    def analyze(self, buffer: SampleBuffer, context: Optional[TaskContext] = None) -> PitchEstimate:
        return self.estimator.analyze(buffer, context)

    def transform(self, buffer, adjustment, policy, context=None) -> SampleBuffer:
        return self.shifter.shift(buffer, int(adjustment), context=context)

    def undetected(self) -> PitchEstimate:
        return PitchEstimate.undetected()

    def value_of(self, estimate: PitchEstimate) -> Optional[float]:
        if estimate is None or not estimate.is_detected:
            return None
        return float(estimate.midi_note)

    def manual_estimate(self, value: Any) -> PitchEstimate:
        """Accepts a MIDI note number or a note name with octave ("A4")."""
        if isinstance(value, str):
            if parse_note(value) is None:
                raise InvalidInputError(f"Invalid note: {value!r}", parameter="note")
            midi = int(librosa.note_to_midi(value if value[-1].isdigit() else value + "4"))
        else:
            midi = int(value)
        if not 0 <= midi <= 127:
            raise InvalidRangeError(
                f"MIDI note must be within [0, 127], got {midi}",
                parameter="midi_note", value=midi, bounds=(0, 127)
            )
        return PitchEstimate(
            frequency_hz=float(librosa.midi_to_hz(midi)),
            midi_note=midi,
            note_name=librosa.midi_to_note(midi, unicode=False),
            confidence=1.0
        )

    def default_reference(self, estimates: Sequence[PitchEstimate]) -> Optional[int]:
        return _first_detected(self, estimates)

    def compute_target(self, estimates, policy) -> Union[Key, str, None]:
        """
        Target key or note name.

        NEAREST_SCALE_NOTE returns a Key; CUSTOM and MODE return the name
        of a single root note every file is transposed to.
        """
        aggregation = policy.aggregation or self.default_aggregation

        if aggregation is AggregationPolicy.NEAREST_SCALE_NOTE:
            if not policy.target_key:
                raise InvalidInputError("Key workflow requires a target key", parameter="target_key")
            return parse_key(policy.target_key)

        if aggregation is AggregationPolicy.CUSTOM:
            if not policy.target_key:
                raise InvalidInputError("Custom key target requires a root note", parameter="target_key")
            return NOTE_NAMES[parse_note(policy.target_key)]

        if aggregation is AggregationPolicy.MODE:
            classes = [e.pitch_class for e in estimates if self.value_of(e) is not None]
            if not classes:
                return None
            return NOTE_NAMES[mode_of(classes)]

        raise InvalidInputError(
            f"Policy {aggregation.value!r} is not supported by the key workflow",
            parameter="aggregation"
        )

    def adjust(self, estimate, target, reference=None) -> Adjustment:
        if self.value_of(estimate) is None:
            return Adjustment(value=None, target=None, skipped=True, warning="Pitch not detected")
        if target is None:
            return Adjustment(value=None, target=None, skipped=True)

        basis = reference if reference is not None else estimate
        if isinstance(target, Key):
            result = self.quantizer.quantize(basis, target)
        else:
            result = self.quantizer.transpose_to(basis, target)

        if result.skipped:
            return Adjustment(value=None, target=None, skipped=True, warning=result.reason)
        return Adjustment(value=result.semitones, target=result.target_note)


WORKFLOWS = ("loudness", "tempo", "key")


def create_workflow(name: str, config: Optional[Dict[str, Any]] = None) -> Workflow:
    """
    Factory function to create a workflow from config.

    Args:
        name: "loudness", "tempo" or "key"
        config: Full configuration dictionary

    Raises:
        InvalidInputError: If the workflow name is unknown
    """
    from tunegraph.analyzers.loudness.peak import create_loudness_analyzer
    from tunegraph.analyzers.pitch.dominant import create_dominant_pitch_estimator
    from tunegraph.analyzers.rhythmic.tempo import create_tempo_estimator
    from tunegraph.transforms.gain import create_gain_processor
    from tunegraph.transforms.pitch_shift import create_pitch_shifter
    from tunegraph.transforms.time_stretch import create_time_stretcher

    config = config or {}
    loudness = config.get('loudness', {})
    batch = config.get('batch', {})

    if name == "loudness":
        return LoudnessSync(
            analyzer=create_loudness_analyzer(loudness),
            gain=create_gain_processor(loudness),
            target_peak_db=loudness.get('target_peak_db', -1.0),
            presets=loudness.get('presets')
        )
    if name == "tempo":
        return TempoSync(
            estimator=create_tempo_estimator(config.get('tempo', {})),
            stretcher=create_time_stretcher(config.get('stretch', {})),
            manual_bpm_range=batch.get('manual_bpm_range', (40.0, 240.0)),
            extreme_ratio=batch.get('extreme_ratio', 2.0)
        )
    if name == "key":
        stretcher = create_time_stretcher(config.get('stretch', {}))
        return KeySync(
            estimator=create_dominant_pitch_estimator(config.get('pitch', {})),
            shifter=create_pitch_shifter(config.get('pitch_shift', {}), stretcher)
        )

    raise InvalidInputError(f"Unknown workflow {name!r}. Must be one of {WORKFLOWS}", parameter="workflow")


__all__ = [
    "Adjustment",
    "Workflow",
    "LoudnessSync",
    "TempoSync",
    "KeySync",
    "WORKFLOWS",
    "create_workflow",
]
