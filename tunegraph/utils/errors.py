"""
Custom exceptions for the TuneGraph audio engine.

This module defines a hierarchy of exceptions for handling various
error conditions throughout the engine. An undetected pitch or tempo is
not an error: it is reported as a zero-confidence estimate.
"""

from typing import Any, Optional, Tuple


class TuneGraphError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class AnalysisError(TuneGraphError):
    """Raised when an analyzer fails unexpectedly."""

    def __init__(
        self,
        message: str,
        analyzer_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.analyzer_name = analyzer_name
        self.original_error = original_error
        self.details = {
            "analyzer_name": analyzer_name,
            "original_error": str(original_error) if original_error else None,
        }


class InvalidInputError(TuneGraphError):
    """Raised when an argument is malformed (bad note name, ragged channels...)."""

    def __init__(self, message: str, parameter: Optional[str] = None):
        super().__init__(message, details={"parameter": parameter} if parameter else None)
        self.parameter = parameter


class InvalidRangeError(InvalidInputError):
    """Raised when a numeric argument falls outside its supported bounds."""

    def __init__(
        self,
        message: str,
        parameter: Optional[str] = None,
        value: Optional[float] = None,
        bounds: Optional[Tuple[float, float]] = None,
    ):
        super().__init__(message, parameter=parameter)
        self.value = value
        self.bounds = bounds
        self.details = {"parameter": parameter, "value": value, "bounds": bounds}


class EmptyBatchError(TuneGraphError):
    """Raised when a batch is submitted with zero buffers."""

    def __init__(self, message: str = "Batch contains no audio buffers"):
        super().__init__(message)


class BatchStateError(TuneGraphError):
    """Raised when a batch operation is requested in the wrong state."""

    def __init__(self, message: str, state: Optional[str] = None):
        super().__init__(message, details={"state": state})
        self.state = state


class OperationCancelledError(TuneGraphError):
    """Raised at a checkpoint once the task's cancellation token is set."""

    def __init__(self, message: str = "Operation cancelled", operation: Optional[str] = None):
        super().__init__(message, details={"operation": operation} if operation else None)
        self.operation = operation


class ConfigurationError(TuneGraphError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key
        self.details = {"config_key": config_key}


class AudioLoadError(TuneGraphError):
    """Raised when an audio file cannot be loaded or written."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        super().__init__(message, details={"file_path": file_path})
        self.file_path = file_path


class UnsupportedFormatError(AudioLoadError):
    """Raised when audio format is not supported."""

    def __init__(self, message: str, format: Optional[str] = None):
        super().__init__(message)
        self.format = format
        self.details = {"format": format}
