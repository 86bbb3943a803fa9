"""
Audio engine for TuneGraph.

Facade that owns one instance of every analyzer and transformer and
exposes them as plain method calls, plus batch runs and async helpers.
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from tunegraph.analyzers.loudness.peak import LoudnessAnalyzer, create_loudness_analyzer
from tunegraph.analyzers.pitch.dominant import DominantPitchEstimator, create_dominant_pitch_estimator
from tunegraph.analyzers.pitch.yin import PitchDetector
from tunegraph.analyzers.rhythmic.tempo import TempoEstimator, create_tempo_estimator
from tunegraph.analyzers.spectral.bands import SpectralAnalyzer, create_spectral_analyzer
from tunegraph.core.batch_coordinator import BatchCoordinator, BatchPolicy, BatchResult
from tunegraph.core.loader import AudioLoader, AudioWriter, create_audio_loader
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
from tunegraph.core.workflows import create_workflow
from tunegraph.music.keys import KeyQuantizer
from tunegraph.transforms.gain import GainProcessor, create_gain_processor
from tunegraph.transforms.pitch_shift import PitchShifter, create_pitch_shifter
from tunegraph.transforms.time_stretch import TimeStretcher, create_time_stretcher
from tunegraph.utils.config import get_default_config


class AudioEngine:
    """
    Main engine - one entry point for every analysis and transformation.

    Design:
    - Dependency Injection: All components injected (testable)
    - Stateless operations over immutable SampleBuffers
    - Optional progress/cancellation through TaskContext
    """

    def __init__(
        self,
        pitch_estimator: DominantPitchEstimator,
        tempo_estimator: TempoEstimator,
        loudness_analyzer: LoudnessAnalyzer,
        spectral_analyzer: SpectralAnalyzer,
        stretcher: TimeStretcher,
        shifter: PitchShifter,
        gain: GainProcessor,
        quantizer: Optional[KeyQuantizer] = None,
        loader: Optional[AudioLoader] = None,
        writer: Optional[AudioWriter] = None,
        config: Optional[Dict[str, Any]] = None,
        max_workers: int = 4,
    ):
        self.pitch_estimator = pitch_estimator
        self.tempo_estimator = tempo_estimator
        self.loudness_analyzer = loudness_analyzer
        self.spectral_analyzer = spectral_analyzer
        self.stretcher = stretcher
        self.shifter = shifter
        self.gain = gain
        self.quantizer = quantizer or KeyQuantizer()
        self.loader = loader or AudioLoader()
        self.writer = writer or AudioWriter()
        self.config = config or get_default_config()
        self.executor = ThreadPoolExecutor(max_workers=max_workers)
        self.logger = logging.getLogger('engine')

    @property
    def pitch_detector(self) -> PitchDetector:
        return self.pitch_estimator.detector

    # Analysis

    def detect_pitch(
        self,
        samples: np.ndarray,
        sample_rate: int,
        min_hz: Optional[float] = None,
        max_hz: Optional[float] = None
    ) -> PitchEstimate:
        return self.pitch_detector.detect(samples, sample_rate, min_hz, max_hz)

    def estimate_dominant_pitch(self, buffer: SampleBuffer, context: Optional[TaskContext] = None) -> PitchEstimate:
        return self.pitch_estimator.analyze(buffer, context)

    def track_pitch(self, buffer: SampleBuffer, context: Optional[TaskContext] = None) -> List[PitchFrame]:
        return self.pitch_estimator.track(buffer, context)

    def estimate_tempo(self, buffer: SampleBuffer, context: Optional[TaskContext] = None) -> TempoEstimate:
        return self.tempo_estimator.analyze(buffer, context)

    def analyze_loudness(self, buffer: SampleBuffer) -> LoudnessProfile:
        return self.loudness_analyzer.analyze(buffer)

    def analyze_spectrum(self, buffer: SampleBuffer) -> SpectralProfile:
        return self.spectral_analyzer.analyze(buffer)

    # Transformation

    def time_stretch(
        self,
        buffer: SampleBuffer,
        speed_ratio: float,
        quality: Optional[str] = None,
        context: Optional[TaskContext] = None
    ) -> SampleBuffer:
        return self.stretcher.stretch(buffer, speed_ratio, quality, context)

    def shift_pitch(self, buffer: SampleBuffer, semitones: int, context: Optional[TaskContext] = None) -> SampleBuffer:
        return self.shifter.shift(buffer, semitones, context)

    def apply_gain(self, buffer: SampleBuffer, gain_db: float, limiter_enabled: bool = True) -> SampleBuffer:
        return self.gain.apply_gain(buffer, gain_db, limiter_enabled)

    def quantize_to_scale(self, detected_note: Union[str, PitchEstimate, None], target_key: str) -> QuantizeResult:
        return self.quantizer.quantize(detected_note, target_key)

    def transpose_to(self, detected_note: Union[str, PitchEstimate, None], target_note: str) -> QuantizeResult:
        return self.quantizer.transpose_to(detected_note, target_note)

    # Batch

    def create_coordinator(
        self,
        policy: Optional[BatchPolicy] = None,
        progress_callback: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None
    ) -> BatchCoordinator:
        """Coordinator wired to a workflow built from this engine's config."""
        policy = policy or BatchPolicy()
        return BatchCoordinator(
            workflow=create_workflow(policy.workflow, self.config),
            policy=policy,
            progress_callback=progress_callback,
            token=token
        )

    def run_batch(
        self,
        buffers: Sequence[SampleBuffer],
        filenames: Optional[Sequence[str]] = None,
        policy: Optional[BatchPolicy] = None,
        progress_callback: Optional[ProgressCallback] = None,
        token: Optional[CancellationToken] = None
    ) -> BatchResult:
        """
        Submit, analyze and process a batch in one call.

        Args:
            buffers: Audio to synchronize
            filenames: Display names (defaults to "File N")
            policy: Batch policy
            progress_callback: Optional callback(fraction, message) covering both phases
            token: Optional cancellation token shared with the caller
        """
        def phase(start: float, end: float) -> Optional[ProgressCallback]:
            if progress_callback is None:
                return None
            return lambda f, msg: progress_callback(start + (end - start) * f, msg)

        coordinator = self.create_coordinator(policy, phase(0.0, 0.5), token)

        coordinator.submit(buffers, filenames)
        coordinator.analyze()
        coordinator.progress_callback = phase(0.5, 1.0)
        return coordinator.process()

    # Files

    def analyze_file(self, file_path: Path) -> Dict[str, Any]:
        """
        Load a file and run every analyzer on it.

        Returns:
            Dict with pitch, tempo, loudness and spectrum results
        """
        file_path = Path(file_path)
        start_time = time.time()

        self.logger.info(f"Loading audio: {file_path}")
        buffer = self.loader.load(file_path)

        report = {
            'file': str(file_path),
            'duration': buffer.duration_seconds,
            'sample_rate': buffer.sample_rate,
            'channels': buffer.channel_count,
            'pitch': self.estimate_dominant_pitch(buffer),
            'tempo': self.estimate_tempo(buffer),
            'loudness': self.analyze_loudness(buffer),
            'spectrum': self.analyze_spectrum(buffer),
        }
        report['processing_time'] = time.time() - start_time

        self.logger.info(f"Analysis complete in {report['processing_time']:.3f}s")
        return report

    def analyze_files(self, file_paths: List[Path]) -> List[Optional[Dict[str, Any]]]:
        """
        Analyze multiple files in parallel.

        Returns:
            Reports in input order; None for files that failed
        """
        self.logger.info(f"Analyzing batch of {len(file_paths)} files")

        futures = {
            self.executor.submit(self.analyze_file, path): path
            for path in file_paths
        }

        results: Dict[Path, Optional[Dict[str, Any]]] = {}
        for future in as_completed(futures):
            path = futures[future]
            try:
                results[path] = future.result()
            except Exception as e:
                self.logger.error(f"Failed to analyze {path}: {e}")
                results[path] = None

        return [results[path] for path in file_paths]

    # Async helpers

    async def run_async(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking engine call in this engine's executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, func, *args)

    def shutdown(self) -> None:
        """Shutdown thread pool gracefully."""
        self.logger.info("Shutting down engine")
        self.executor.shutdown(wait=True)

    def __enter__(self) -> "AudioEngine":
        """Context manager support."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Cleanup on context exit."""
        self.shutdown()


def create_engine(config: Optional[Dict[str, Any]] = None) -> AudioEngine:
    """
    Factory function to create fully configured engine.

    Args:
        config: Configuration dict (defaults to get_default_config())
    """
    config = config or get_default_config()

    stretcher = create_time_stretcher(config.get('stretch', {}))
    loader_config = config.get('loader', {})

    return AudioEngine(
        pitch_estimator=create_dominant_pitch_estimator(config.get('pitch', {})),
        tempo_estimator=create_tempo_estimator(config.get('tempo', {})),
        loudness_analyzer=create_loudness_analyzer(config.get('loudness', {})),
        spectral_analyzer=create_spectral_analyzer(config.get('spectral', {})),
        stretcher=stretcher,
        shifter=create_pitch_shifter(config.get('pitch_shift', {}), stretcher),
        gain=create_gain_processor(config.get('loudness', {})),
        loader=create_audio_loader(loader_config),
        writer=AudioWriter(loader_config.get('output_subtype', 'PCM_16')),
        config=config,
        max_workers=config.get('performance', {}).get('max_workers', 4),
    )
