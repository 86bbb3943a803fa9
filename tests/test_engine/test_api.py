"""Tests for the module-level function API and its async variants."""

import asyncio

import pytest

from conftest import make_constant, make_sine

from tunegraph import api
from tunegraph.core.batch_coordinator import BatchPolicy
from tunegraph.core.engine import create_engine
from tunegraph.core.tasks import CancellationToken
from tunegraph.utils.errors import OperationCancelledError


@pytest.fixture(autouse=True)
def fresh_engine():
    engine = create_engine()
    api.set_default_engine(engine)
    yield engine
    engine.shutdown()
    api.set_default_engine(None)


class TestDefaultEngine:
    def test_set_and_get(self, fresh_engine):
        assert api.get_default_engine() is fresh_engine

    def test_created_lazily(self):
        api.set_default_engine(None)
        engine = api.get_default_engine()
        try:
            assert engine is api.get_default_engine()
        finally:
            engine.shutdown()


class TestSyncFunctions:
    def test_detect_pitch(self, sine_440):
        estimate = api.detect_pitch(sine_440.mono[:4096], 44100)
        assert estimate.note_name == "A4"

    def test_dominant_pitch(self, sine_440):
        assert api.estimate_dominant_pitch(sine_440).midi_note == 69

    def test_track_pitch(self, sine_440):
        frames = api.track_pitch(sine_440)
        assert frames
        assert all(b.time_seconds > a.time_seconds for a, b in zip(frames, frames[1:]))

    def test_estimate_tempo(self, click_track_120):
        progress = []
        estimate = api.estimate_tempo(click_track_120, progress_callback=lambda f, msg: progress.append(f))

        assert estimate.bpm == pytest.approx(120.0, abs=5.0)
        assert progress[-1] == pytest.approx(1.0)

    def test_estimate_tempo_cancelled(self, click_track_120):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            api.estimate_tempo(click_track_120, token=token)

    def test_time_stretch(self, short_noise):
        output = api.time_stretch(short_noise, 2.0, quality="fast")
        assert output.frame_count == pytest.approx(short_noise.frame_count / 2, abs=2)

    def test_time_stretch_cancelled(self, short_noise):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            api.time_stretch(short_noise, 1.5, token=token)

    def test_shift_pitch_keeps_length(self, short_noise):
        assert api.shift_pitch(short_noise, 2).frame_count == short_noise.frame_count

    def test_loudness_and_gain(self, constant_half):
        profile = api.analyze_loudness(constant_half)
        assert profile.true_peak_db == pytest.approx(-6.02, abs=0.01)

        louder = api.apply_gain(constant_half, 6.0, limiter_enabled=False)
        assert louder.channels.max() == pytest.approx(0.5 * 10 ** (6 / 20), rel=1e-4)

    def test_spectrum(self, sine_440):
        assert api.analyze_spectrum(sine_440).mid > 0.9

    def test_key_functions(self):
        assert api.quantize_to_scale("C#", "C").semitones in (-1, 1)
        assert api.transpose_to("B", "C").semitones == 1

    def test_run_batch(self):
        result = api.run_batch(
            [make_constant(0.5), make_constant(0.25)], policy=BatchPolicy(workflow="loudness")
        )
        assert [r.filename for r in result.records] == ["File 1", "File 2"]


class TestAsyncFunctions:
    def test_estimate_tempo_async(self):
        estimate = asyncio.run(api.estimate_tempo_async(make_sine(duration=0.5)))
        assert estimate.bpm == pytest.approx(120.0)
        assert estimate.estimated

    def test_time_stretch_async(self, short_noise):
        output = asyncio.run(api.time_stretch_async(short_noise, 0.5, quality="fast"))
        assert output.frame_count == pytest.approx(short_noise.frame_count * 2, abs=2)

    def test_run_batch_async(self):
        result = asyncio.run(api.run_batch_async(
            [make_constant(0.5), make_constant(0.25)],
            ["a.wav", "b.wav"],
            BatchPolicy(workflow="loudness"),
        ))
        assert result.success_count == 2

    def test_concurrent_calls(self):
        async def run_all():
            return await asyncio.gather(
                api.estimate_tempo_async(make_sine(duration=0.5)),
                api.estimate_tempo_async(make_sine(duration=1.0)),
            )

        first, second = asyncio.run(run_all())
        assert first.bpm == pytest.approx(120.0)
        assert second.bpm == pytest.approx(60.0)
