"""
Utility modules for configuration, logging, and error handling.
"""

from tunegraph.utils.errors import (
    TuneGraphError,
    AnalysisError,
    InvalidInputError,
    InvalidRangeError,
    EmptyBatchError,
    BatchStateError,
    OperationCancelledError,
    ConfigurationError,
    AudioLoadError,
    UnsupportedFormatError,
)
from tunegraph.utils.logging import get_logger, setup_logging, JSONFormatter
from tunegraph.utils.config import ConfigManager, load_config, get_default_config

__all__ = [
    "TuneGraphError",
    "AnalysisError",
    "InvalidInputError",
    "InvalidRangeError",
    "EmptyBatchError",
    "BatchStateError",
    "OperationCancelledError",
    "ConfigurationError",
    "AudioLoadError",
    "UnsupportedFormatError",
    "get_logger",
    "setup_logging",
    "JSONFormatter",
    "ConfigManager",
    "load_config",
    "get_default_config",
]
