"""
Analyzer and transformer base interfaces for the TuneGraph engine.

Defines the contracts using Protocol (structural subtyping).
"""

import logging
import time
from abc import abstractmethod
from typing import Any, Generic, Optional, Protocol, TypeVar

from tunegraph.core.models import SampleBuffer
from tunegraph.core.tasks import TaskContext, ensure_context
from tunegraph.utils.errors import AnalysisError, TuneGraphError

# Type variable for result types
T = TypeVar('T')


class Analyzer(Protocol[T]):
    """
    Base protocol for all analyzers.

    All analyzers must implement:
    - analyze(buffer, context) -> T
    - name property
    - version property

    A class doesn't need to explicitly inherit from Analyzer to be
    compatible - it just needs to have the required methods.
    """

    @property
    def name(self) -> str:
        """Analyzer name (e.g., 'yin', 'tempo')."""
        ...

    @property
    def version(self) -> str:
        """Analyzer version for result tracking."""
        ...

    def analyze(self, buffer: SampleBuffer, context: Optional[TaskContext] = None) -> T:
        """
        Analyze a sample buffer and return typed result.

        Raises:
            AnalysisError: If analysis fails
        """
        ...


class Transformer(Protocol):
    """
    Protocol for buffer transformers.

    A transformer returns a new SampleBuffer and never mutates or retains
    its input. Identity parameters return the input object itself.
    """

    @property
    def name(self) -> str:
        ...

    def transform(self, buffer: SampleBuffer, amount: Any, context: Optional[TaskContext] = None) -> SampleBuffer:
        ...


class BaseAnalyzer(Generic[T]):
    """
    Optional base class providing common functionality.

    Subclasses can inherit this for shared logic like logging,
    error handling, and timing.

    Uses Template Method pattern - analyze() provides the template,
    subclasses implement _analyze_impl().
    """

    def __init__(self, name: str, version: str):
        """
        Initialize analyzer with name and version.

        Args:
            name: Unique analyzer name
            version: Version string for tracking
        """
        self._name = name
        self._version = version
        self.logger = logging.getLogger(f"analyzer.{name}")

    @property
    def name(self) -> str:
        """Return analyzer name."""
        return self._name

    @property
    def version(self) -> str:
        """Return analyzer version."""
        return self._version

    def analyze(self, buffer: SampleBuffer, context: Optional[TaskContext] = None) -> T:
        """
        Template method with timing and error handling.

        Engine errors (invalid input, cancellation) propagate unchanged;
        anything else is wrapped in AnalysisError.

        Raises:
            AnalysisError: If analysis fails
        """
        start_time = time.time()

        try:
            self.logger.debug(f"Starting analysis: {buffer!r}")

            result = self._analyze_impl(buffer, ensure_context(context))

            elapsed = time.time() - start_time
            self.logger.debug(f"Analysis complete in {elapsed:.3f}s")

            return result

        except TuneGraphError:
            # Re-raise engine errors as-is
            raise

        except Exception as e:
            self.logger.error(f"Analysis failed: {e}")
            raise AnalysisError(
                f"{self.name} analysis failed: {e}",
                analyzer_name=self.name,
                original_error=e
            ) from e

    @abstractmethod
    def _analyze_impl(self, buffer: SampleBuffer, context: TaskContext) -> T:
        """Subclasses implement actual analysis logic."""
        raise NotImplementedError


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a transformer."""
    return logging.getLogger(f"transform.{name}")
