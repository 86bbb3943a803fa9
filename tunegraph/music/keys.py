"""
Musical keys and pitch quantization.

Keys are written as a root note with an optional mode suffix: "C", "F#",
"Bb" (major) and "Cm", "Ebm", "A minor" (natural minor).
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import librosa
from librosa.util.exceptions import ParameterError

from tunegraph.core.models import PitchEstimate, QuantizeResult
from tunegraph.utils.errors import InvalidInputError

NOTE_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']

# Scale intervals from the root, in scale-degree order
MAJOR_INTERVALS = (0, 2, 4, 5, 7, 9, 11)
MINOR_INTERVALS = (0, 2, 3, 5, 7, 8, 10)

_MODE_SUFFIXES = {
    '': 'major',
    'maj': 'major',
    'major': 'major',
    'm': 'minor',
    'min': 'minor',
    'minor': 'minor',
}

_KEY_PATTERN = re.compile(r'^([A-Ga-g])([#b♯♭]?)\s*([A-Za-z]*)$')
_NOTE_PATTERN = re.compile(r'^([A-Ga-g][#b♯♭]?)(-?\d+)?$')


@dataclass(frozen=True)
class Key:
    """A major or natural-minor key."""

    root: int  # pitch class 0-11
    mode: str  # "major" or "minor"

    @property
    def name(self) -> str:
        """Short name, e.g. "C#" or "Am"."""
        return NOTE_NAMES[self.root] + ('m' if self.mode == 'minor' else '')

    @property
    def pitch_classes(self) -> Tuple[int, ...]:
        """Scale members in degree order, starting at the root."""
        intervals = MINOR_INTERVALS if self.mode == 'minor' else MAJOR_INTERVALS
        return tuple((self.root + i) % 12 for i in intervals)

    def __str__(self) -> str:
        return self.name


ALL_KEYS = [Key(root, mode) for mode in ('major', 'minor') for root in range(12)]


def _pitch_class(note: str) -> int:
    try:
        return int(librosa.note_to_midi(note)) % 12
    except ParameterError as e:
        raise InvalidInputError(f"Invalid note name: {note!r}", parameter="note") from e


def parse_key(key: Union[str, Key]) -> Key:
    """
    Parse a key name.

    Raises:
        InvalidInputError: If the key cannot be parsed
    """
    if isinstance(key, Key):
        return key
    if not isinstance(key, str):
        raise InvalidInputError(f"Key must be a string, got {type(key).__name__}", parameter="key")

    match = _KEY_PATTERN.match(key.strip())
    if not match:
        raise InvalidInputError(f"Invalid key: {key!r}", parameter="key")

    letter, accidental, suffix = match.groups()
    mode = _MODE_SUFFIXES.get(suffix.lower())
    # "M" is major in chord shorthand; only lower-case "m" means minor
    if suffix == 'M':
        mode = 'major'
    if mode is None:
        raise InvalidInputError(f"Invalid key mode {suffix!r} in {key!r}", parameter="key")

    return Key(_pitch_class(letter.upper() + accidental), mode)


def parse_note(note: Union[str, PitchEstimate, None]) -> Optional[int]:
    """
    Pitch class of a note name ("C#", "Db4") or detected estimate.

    Returns None for a missing or undetected estimate.

    Raises:
        InvalidInputError: If a note name cannot be parsed
    """
    if note is None:
        return None
    if isinstance(note, PitchEstimate):
        return note.pitch_class if note.is_detected else None
    if not isinstance(note, str):
        raise InvalidInputError(f"Note must be a string, got {type(note).__name__}", parameter="note")

    match = _NOTE_PATTERN.match(note.strip())
    if not match:
        raise InvalidInputError(f"Invalid note name: {note!r}", parameter="note")
    pitch = match.group(1)
    return _pitch_class(pitch[0].upper() + pitch[1:])


def signed_distance(from_pc: int, to_pc: int) -> int:
    """Shortest signed semitone path between pitch classes, in [-5, 6]."""
    distance = (to_pc - from_pc) % 12
    return distance - 12 if distance > 6 else distance


class KeyQuantizer:
    """Snaps detected notes to the nearest member of a key's scale."""

    def quantize(
        self,
        detected: Union[str, PitchEstimate, None],
        target_key: Union[str, Key]
    ) -> QuantizeResult:
        """
        Transposition that moves a detected note onto the target scale.

        Ties resolve to the smaller absolute distance, then to the earlier
        scale degree.

        Raises:
            InvalidInputError: If the key or note cannot be parsed
        """
        key = parse_key(target_key)
        detected_pc = parse_note(detected)
        if detected_pc is None:
            return QuantizeResult.skip("No pitch detected")

        best_distance = None
        best_pc = detected_pc
        for pc in key.pitch_classes:
            distance = signed_distance(detected_pc, pc)
            if best_distance is None or abs(distance) < abs(best_distance):
                best_distance = distance
                best_pc = pc

        return QuantizeResult(semitones=best_distance, target_note=NOTE_NAMES[best_pc])

    def transpose_to(
        self,
        detected: Union[str, PitchEstimate, None],
        target_note: str
    ) -> QuantizeResult:
        """
        Shortest transposition onto a single target note.

        Raises:
            InvalidInputError: If either note cannot be parsed
        """
        target_pc = parse_note(target_note)
        if target_pc is None:
            raise InvalidInputError("Target note is required", parameter="target_note")

        detected_pc = parse_note(detected)
        if detected_pc is None:
            return QuantizeResult.skip("No pitch detected")

        return QuantizeResult(
            semitones=signed_distance(detected_pc, target_pc),
            target_note=NOTE_NAMES[target_pc]
        )
