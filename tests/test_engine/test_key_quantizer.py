"""Tests for key parsing and KeyQuantizer."""

import pytest

from tunegraph.core.models import PitchEstimate
from tunegraph.music.keys import (
    ALL_KEYS,
    Key,
    KeyQuantizer,
    parse_key,
    parse_note,
    signed_distance,
)
from tunegraph.utils.errors import InvalidInputError


class TestParseKey:
    @pytest.mark.parametrize("text, root, mode", [
        ("C", 0, "major"),
        ("Am", 9, "minor"),
        ("F#", 6, "major"),
        ("Bb", 10, "major"),
        ("Ebm", 3, "minor"),
        ("A minor", 9, "minor"),
        ("F# major", 6, "major"),
        ("c#m", 1, "minor"),
    ])
    def test_valid_keys(self, text, root, mode):
        assert parse_key(text) == Key(root, mode)

    @pytest.mark.parametrize("text", ["H", "", "C dorian", "Xm"])
    def test_invalid_keys(self, text):
        with pytest.raises(InvalidInputError):
            parse_key(text)

    def test_key_name(self):
        assert parse_key("A minor").name == "Am"
        assert str(parse_key("Db")) == "C#"

    def test_scale_members(self):
        assert parse_key("C").pitch_classes == (0, 2, 4, 5, 7, 9, 11)
        assert parse_key("Am").pitch_classes == (9, 11, 0, 2, 4, 5, 7)

    def test_all_keys(self):
        assert len(ALL_KEYS) == 24


class TestParseNote:
    def test_with_and_without_octave(self):
        assert parse_note("C#") == 1
        assert parse_note("Db4") == 1
        assert parse_note("A-1") == 9

    def test_estimate(self):
        estimate = PitchEstimate(frequency_hz=440.0, midi_note=69, note_name="A4", confidence=0.9)
        assert parse_note(estimate) == 9
        assert parse_note(PitchEstimate.undetected()) is None
        assert parse_note(None) is None

    def test_invalid(self):
        with pytest.raises(InvalidInputError):
            parse_note("Q4")
        with pytest.raises(InvalidInputError):
            parse_note(69)


class TestSignedDistance:
    @pytest.mark.parametrize("src, dst, expected", [(0, 2, 2), (2, 0, -2), (11, 0, 1), (0, 11, -1), (0, 6, 6)])
    def test_shortest_path(self, src, dst, expected):
        assert signed_distance(src, dst) == expected


class TestKeyQuantizer:
    def test_c_sharp_into_c_major(self):
        result = KeyQuantizer().quantize("C#", "C")
        assert abs(result.semitones) <= 1
        assert result.target_note in ("C", "D")
        # Tie goes to the earlier scale degree
        assert result.semitones == -1
        assert result.target_note == "C"

    def test_scale_member_needs_no_shift(self):
        result = KeyQuantizer().quantize("E", "C")
        assert result.semitones == 0
        assert result.target_note == "E"

    def test_minor_key(self):
        # G# is not in A minor; G and A are both one semitone away
        result = KeyQuantizer().quantize("G#3", "Am")
        assert abs(result.semitones) == 1
        assert result.target_note == "A"

    def test_accepts_estimate(self):
        estimate = PitchEstimate(frequency_hz=277.18, midi_note=61, note_name="C#4", confidence=0.9)
        result = KeyQuantizer().quantize(estimate, "D")
        assert result.semitones == 0
        assert result.target_note == "C#"

    def test_undetected_is_skipped(self):
        result = KeyQuantizer().quantize(PitchEstimate.undetected(), "C")
        assert result.skipped
        assert result.semitones is None

    def test_invalid_key(self):
        with pytest.raises(InvalidInputError):
            KeyQuantizer().quantize("C", "Q")

    def test_transpose_to(self):
        quantizer = KeyQuantizer()
        assert quantizer.transpose_to("B", "C").semitones == 1
        assert quantizer.transpose_to("D", "C").semitones == -2
        assert quantizer.transpose_to("F#", "C").semitones == 6
        assert quantizer.transpose_to(None, "C").skipped

    def test_transpose_to_invalid_target(self):
        with pytest.raises(InvalidInputError):
            KeyQuantizer().transpose_to("C", "Z")
