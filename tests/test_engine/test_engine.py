"""Tests for the AudioEngine facade."""

import asyncio
from unittest.mock import MagicMock

import pytest
import soundfile as sf

from conftest import make_constant, make_sine

from tunegraph.core.batch_coordinator import BatchPolicy
from tunegraph.core.engine import AudioEngine, create_engine
from tunegraph.core.models import LoudnessProfile, PitchEstimate, SpectralProfile, TempoEstimate
from tunegraph.core.tasks import CancellationToken
from tunegraph.utils.config import get_default_config
from tunegraph.utils.errors import OperationCancelledError


@pytest.fixture
def engine():
    engine = create_engine()
    yield engine
    engine.shutdown()


@pytest.fixture
def tone_wav(tmp_path):
    path = tmp_path / "tone.wav"
    sf.write(str(path), make_sine(duration=1.0).channels[0], 44100)
    return path


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestCreateEngine:
    def test_components_follow_config(self):
        config = get_default_config()
        config["tempo"]["min_bpm"] = 70.0
        config["stretch"]["quality"] = "high"
        config["performance"]["max_workers"] = 2

        with create_engine(config) as engine:
            assert engine.tempo_estimator.min_bpm == 70.0
            assert engine.stretcher.quality == "high"
            assert engine.shifter.stretcher is engine.stretcher
            assert engine.executor._max_workers == 2

    def test_context_manager_shuts_down(self):
        engine = create_engine()
        engine.executor = MagicMock()
        with engine:
            pass
        engine.executor.shutdown.assert_called_once_with(wait=True)


# ---------------------------------------------------------------------------
# Delegation
# ---------------------------------------------------------------------------


class TestDelegation:
    def test_calls_reach_components(self):
        components = {
            name: MagicMock()
            for name in (
                "pitch_estimator", "tempo_estimator", "loudness_analyzer",
                "spectral_analyzer", "stretcher", "shifter", "gain",
            )
        }
        engine = AudioEngine(**components)
        buffer = make_constant(0.1, duration=0.1)

        engine.estimate_tempo(buffer)
        engine.time_stretch(buffer, 1.5, "fast")
        engine.shift_pitch(buffer, 3)
        engine.apply_gain(buffer, -3.0, limiter_enabled=False)
        engine.shutdown()

        components["tempo_estimator"].analyze.assert_called_once_with(buffer, None)
        components["stretcher"].stretch.assert_called_once_with(buffer, 1.5, "fast", None)
        components["shifter"].shift.assert_called_once_with(buffer, 3, None)
        components["gain"].apply_gain.assert_called_once_with(buffer, -3.0, False)

    def test_quantize(self, engine):
        result = engine.quantize_to_scale("C#4", "C")
        assert abs(result.semitones) == 1

    def test_transpose(self, engine):
        assert engine.transpose_to("A4", "C").semitones == 3


# ---------------------------------------------------------------------------
# Files and batches
# ---------------------------------------------------------------------------


class TestAnalyzeFile:
    def test_report(self, engine, tone_wav):
        report = engine.analyze_file(tone_wav)

        assert report["sample_rate"] == 44100
        assert report["duration"] == pytest.approx(1.0)
        assert isinstance(report["pitch"], PitchEstimate)
        assert isinstance(report["tempo"], TempoEstimate)
        assert isinstance(report["loudness"], LoudnessProfile)
        assert isinstance(report["spectrum"], SpectralProfile)
        assert report["pitch"].note_name == "A4"

    def test_files_keep_order_and_mark_failures(self, engine, tone_wav, tmp_path):
        missing = tmp_path / "missing.wav"
        reports = engine.analyze_files([tone_wav, missing, tone_wav])

        assert reports[1] is None
        assert reports[0]["file"] == str(tone_wav)
        assert reports[2]["file"] == str(tone_wav)


class TestRunBatch:
    def test_loudness_batch(self, engine):
        progress = []
        result = engine.run_batch(
            [make_constant(0.5), make_constant(0.25)],
            ["a.wav", "b.wav"],
            BatchPolicy(workflow="loudness"),
            progress_callback=lambda fraction, message: progress.append(fraction),
        )

        assert result.workflow == "loudness"
        assert result.success_count == 2
        assert len(result.outputs) == 2
        assert progress == sorted(progress)
        assert progress[-1] == pytest.approx(1.0)

    def test_cancelled_token_stops_batch(self, engine):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            engine.run_batch(
                [make_constant(0.5), make_constant(0.25)],
                policy=BatchPolicy(workflow="loudness"),
                token=token
            )
        assert token.cancelled

    def test_run_async(self, engine):
        estimate = asyncio.run(engine.run_async(engine.estimate_tempo, make_sine(duration=0.5)))
        assert estimate.bpm == pytest.approx(120.0)
