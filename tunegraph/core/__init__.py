"""
Core module containing data models, task control, batch coordination and the engine.

Uses lazy imports for modules with heavy dependencies (librosa, soundfile).
"""

# Models are lightweight - import directly
from tunegraph.core.models import (
    SampleBuffer,
    PitchEstimate,
    PitchFrame,
    TempoEstimate,
    LoudnessProfile,
    SpectralProfile,
    QuantizeResult,
    validate_confidence,
)
from tunegraph.core.tasks import CancellationToken, TaskContext

__all__ = [
    # Models (always available)
    "SampleBuffer",
    "PitchEstimate",
    "PitchFrame",
    "TempoEstimate",
    "LoudnessProfile",
    "SpectralProfile",
    "QuantizeResult",
    "validate_confidence",
    "CancellationToken",
    "TaskContext",
    # Heavy modules (lazy loaded)
    "Analyzer",
    "BaseAnalyzer",
    "AudioLoader",
    "AudioWriter",
    "create_audio_loader",
    "AudioEngine",
    "create_engine",
    "AggregationPolicy",
    # Batch processing
    "BatchCoordinator",
    "BatchPolicy",
    "BatchResult",
    "BatchState",
    "AdjustmentMode",
    "FileAnalysisRecord",
    "EstimatePair",
    "ResultWriter",
    "TextResultWriter",
    "JSONResultWriter",
    "create_result_writer",
]

_LAZY = {
    "Analyzer": "tunegraph.core.analyzer_base",
    "BaseAnalyzer": "tunegraph.core.analyzer_base",
    "AudioLoader": "tunegraph.core.loader",
    "AudioWriter": "tunegraph.core.loader",
    "create_audio_loader": "tunegraph.core.loader",
    "AudioEngine": "tunegraph.core.engine",
    "create_engine": "tunegraph.core.engine",
    "AggregationPolicy": "tunegraph.core.aggregation",
    "BatchCoordinator": "tunegraph.core.batch_coordinator",
    "BatchPolicy": "tunegraph.core.batch_coordinator",
    "BatchResult": "tunegraph.core.batch_coordinator",
    "BatchState": "tunegraph.core.batch_coordinator",
    "AdjustmentMode": "tunegraph.core.batch_coordinator",
    "FileAnalysisRecord": "tunegraph.core.batch_coordinator",
    "EstimatePair": "tunegraph.core.batch_coordinator",
    "ResultWriter": "tunegraph.core.result_writer",
    "TextResultWriter": "tunegraph.core.result_writer",
    "JSONResultWriter": "tunegraph.core.result_writer",
    "create_result_writer": "tunegraph.core.result_writer",
}


def __getattr__(name: str):
    """Lazy load modules with heavy dependencies."""
    if name in _LAZY:
        import importlib
        module = importlib.import_module(_LAZY[name])
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
