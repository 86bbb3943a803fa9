"""Tests for batch report writers."""

import json

import pytest

from conftest import make_constant

from tunegraph.core.batch_coordinator import BatchPolicy, create_batch_coordinator
from tunegraph.core.models import PitchEstimate, TempoEstimate
from tunegraph.core.result_writer import (
    JSONResultWriter,
    TextResultWriter,
    create_result_writer,
    format_estimate,
)
from tunegraph.utils.config import get_default_config
from tunegraph.utils.errors import InvalidInputError


@pytest.fixture
def loudness_result():
    coordinator = create_batch_coordinator(get_default_config(), BatchPolicy(workflow="loudness"))
    coordinator.submit([make_constant(0.5), make_constant(0.25)], ["kick.wav", "snare.wav"])
    coordinator.analyze()
    return coordinator.process()


class TestTextResultWriter:
    def test_report(self, loudness_result, tmp_path):
        path = tmp_path / "reports" / "sync.txt"
        TextResultWriter().write(loudness_result, path)
        text = path.read_text()

        assert "TUNEGRAPH LOUDNESS SYNC REPORT" in text
        assert "FILE: kick.wav" in text
        assert "FILE: snare.wav" in text
        assert "+5.021 dB" in text
        assert "END OF REPORT" in text

    def test_without_timestamp(self, loudness_result, tmp_path):
        path = tmp_path / "sync.txt"
        TextResultWriter(include_timestamp=False).write(loudness_result, path)
        assert "Generated:" not in path.read_text()


class TestJSONResultWriter:
    def test_report(self, loudness_result, tmp_path):
        path = tmp_path / "sync.json"
        JSONResultWriter().write(loudness_result, path)
        data = json.loads(path.read_text())

        assert data["workflow"] == "loudness"
        assert data["total_files"] == 2
        assert data["success_count"] == 2
        assert [r["filename"] for r in data["records"]] == ["kick.wav", "snare.wav"]
        assert data["records"][0]["adjustment"] == pytest.approx(5.02, abs=0.01)
        assert "generated" in data


class TestFactory:
    @pytest.mark.parametrize("format, writer_class", [
        ("text", TextResultWriter),
        ("TXT", TextResultWriter),
        ("json", JSONResultWriter),
    ])
    def test_known_formats(self, format, writer_class):
        assert isinstance(create_result_writer(format), writer_class)

    def test_unknown_format(self):
        with pytest.raises(InvalidInputError):
            create_result_writer("xml")


class TestFormatEstimate:
    def test_tempo(self):
        assert format_estimate(TempoEstimate(bpm=120.0, confidence=0.5, estimated=True, method="duration")) == \
            "120.0 BPM, confidence 50% (estimated)"
        assert format_estimate(TempoEstimate.undetected()) == "tempo not detected"

    def test_pitch(self):
        estimate = PitchEstimate(frequency_hz=440.0, midi_note=69, note_name="A4", confidence=0.9)
        assert format_estimate(estimate) == "A4 (440.0 Hz), confidence 90%"
        assert format_estimate(PitchEstimate.undetected()) == "pitch not detected"

    def test_none(self):
        assert format_estimate(None) == "-"
