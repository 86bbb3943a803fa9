"""Tests for TempoEstimator."""

import numpy as np
import pytest

from conftest import SR, make_click_track, make_sine

from tunegraph.analyzers.rhythmic.tempo import TempoEstimator, create_tempo_estimator
from tunegraph.core.models import SampleBuffer
from tunegraph.core.tasks import CancellationToken, TaskContext
from tunegraph.utils.errors import OperationCancelledError


class TestOnsetTempo:
    def test_click_track_120(self, click_track_120):
        estimate = TempoEstimator().analyze(click_track_120)

        assert estimate.bpm == pytest.approx(120.0, abs=5.0)
        assert estimate.method == "onset"
        assert not estimate.estimated
        assert 0.3 <= estimate.confidence <= 1.0

    def test_click_track_90(self):
        estimate = TempoEstimator().analyze(make_click_track(90.0, duration=6.0))
        assert estimate.bpm == pytest.approx(90.0, abs=5.0)

    def test_silence_is_undetected(self, silence):
        estimate = TempoEstimator().analyze(silence)
        assert not estimate.is_detected
        assert estimate.method == "none"

    def test_stereo_uses_mono_mix(self, click_track_120):
        stereo = SampleBuffer(np.stack([click_track_120.mono, click_track_120.mono]), SR)
        estimate = TempoEstimator().analyze(stereo)
        assert estimate.bpm == pytest.approx(120.0, abs=5.0)

    def test_progress_is_reported(self, click_track_120):
        progress = []
        context = TaskContext(lambda fraction, message: progress.append(fraction))

        TempoEstimator(checkpoint_interval=10).analyze(click_track_120, context)

        assert len(progress) > 2
        assert progress == sorted(progress)
        assert progress[-1] == 1.0

    def test_cancellation(self, click_track_120):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            TempoEstimator().analyze(click_track_120, TaskContext(token=token))

    def test_cancel_from_progress_callback(self, click_track_120):
        token = CancellationToken()
        context = TaskContext(lambda fraction, message: token.cancel(), token)
        with pytest.raises(OperationCancelledError):
            TempoEstimator(checkpoint_interval=10).analyze(click_track_120, context)


class TestDurationTempo:
    def test_half_second_clip_is_one_beat_at_120(self):
        estimate = TempoEstimator().analyze(make_sine(duration=0.5))

        assert estimate.bpm == pytest.approx(120.0)
        assert estimate.estimated
        assert estimate.method == "duration"
        assert estimate.confidence == 0.5
        assert estimate.status == "estimated"

    def test_slow_result_is_doubled_into_range(self):
        # 1.5 s -> 40 BPM -> 80 BPM
        estimate = TempoEstimator().analyze(make_sine(duration=1.5))
        assert estimate.bpm == pytest.approx(80.0)
        assert estimate.raw_bpm == pytest.approx(40.0)

    def test_fast_result_is_halved_into_range(self):
        # 0.1 s -> 600 BPM -> 150 BPM
        estimate = TempoEstimator().analyze(make_sine(duration=0.1))
        assert estimate.bpm == pytest.approx(150.0)

    def test_empty_buffer_is_undetected(self):
        estimate = TempoEstimator().analyze(SampleBuffer.from_mono(np.zeros(0), SR))
        assert not estimate.is_detected


class TestOnsetStrength:
    def test_onset_is_non_negative(self, click_track_120):
        onset, hop = TempoEstimator().onset_strength(click_track_120)
        assert hop == 220
        assert np.all(onset >= 0)
        assert onset.max() > 0

    def test_factory_reads_config(self):
        estimator = create_tempo_estimator({"min_bpm": 70.0, "max_bpm": 180.0, "min_duration": 1.0})
        assert estimator.min_bpm == 70.0
        assert estimator.max_bpm == 180.0
        assert estimator.min_duration == 1.0
