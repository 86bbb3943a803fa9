"""
Batch coordinator for cross-file loudness, tempo and key synchronization.

Drives one workflow over a set of buffers:

    IDLE -> ANALYZING -> READY -> PROCESSING -> DONE

Per-file analysis failures degrade that file to an undetected estimate
and never abort the batch. Manual overrides keep the detected estimate
alongside the user's value so reset() restores it exactly.
"""

import dataclasses
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from tunegraph.core.aggregation import AggregationPolicy
from tunegraph.core.models import SampleBuffer
from tunegraph.core.tasks import CancellationToken, TaskContext
from tunegraph.core.workflows import WORKFLOWS, Workflow, create_workflow
from tunegraph.utils.errors import (
    BatchStateError,
    EmptyBatchError,
    InvalidInputError,
    InvalidRangeError,
    OperationCancelledError,
)
from tunegraph.utils.logging import create_logger_with_context


class BatchState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    READY = "ready"
    PROCESSING = "processing"
    DONE = "done"


class AdjustmentMode(str, Enum):
    """Independent: each file moves to the target. Relative: all files move by one shared amount."""

    INDEPENDENT = "independent"
    RELATIVE = "relative"


@dataclass(frozen=True)
class EstimatePair:
    """Detected estimate plus the estimate currently in effect."""

    original: Any
    current: Any
    overridden: bool = False  # set by override() even when the value matches the original

    @classmethod
    def of(cls, estimate: Any) -> "EstimatePair":
        return cls(original=estimate, current=estimate)

    def override(self, estimate: Any) -> "EstimatePair":
        return EstimatePair(original=self.original, current=estimate, overridden=True)

    def reset(self) -> "EstimatePair":
        return EstimatePair.of(self.original)


@dataclass
class FileAnalysisRecord:
    """Per-file analysis state within a batch."""

    filename: str
    index: int
    estimates: EstimatePair
    adjustment: Optional[float] = None  # gain dB, speed ratio or semitones
    target: Any = None
    skipped: bool = False
    warning: Optional[str] = None
    error: Optional[str] = None
    _analysis_error: Optional[str] = field(default=None, repr=False, compare=False)

    @property
    def primary_estimate(self) -> Any:
        return self.estimates.current

    @property
    def original_estimate(self) -> Any:
        return self.estimates.original

    @property
    def manually_overridden(self) -> bool:
        return self.estimates.overridden

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'filename': self.filename,
            'index': self.index,
            'estimate': _estimate_dict(self.primary_estimate),
            'original_estimate': _estimate_dict(self.original_estimate),
            'manually_overridden': self.manually_overridden,
            'adjustment': self.adjustment,
            'target': None if self.target is None else str(self.target),
            'skipped': self.skipped,
            'warning': self.warning,
            'error': self.error
        }


def _estimate_dict(estimate: Any) -> Optional[Dict[str, Any]]:
    if estimate is None:
        return None
    return estimate.to_dict()


@dataclass
class BatchPolicy:
    """How a batch is synchronized."""

    workflow: str = "tempo"
    aggregation: Optional[AggregationPolicy] = None  # None: workflow default
    mode: AdjustmentMode = AdjustmentMode.INDEPENDENT
    custom_value: Optional[float] = None
    target_key: Optional[str] = None  # key ("Am") or root note for the key workflow
    preset: Optional[str] = None  # loudness preset name
    quality: str = "standard"
    limiter_enabled: bool = True
    reference_index: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate fields."""
        if self.workflow not in WORKFLOWS:
            raise InvalidInputError(
                f"Unknown workflow {self.workflow!r}. Must be one of {WORKFLOWS}",
                parameter="workflow"
            )
        try:
            if self.aggregation is not None:
                self.aggregation = AggregationPolicy(self.aggregation)
            self.mode = AdjustmentMode(self.mode)
        except ValueError as e:
            raise InvalidInputError(str(e), parameter="policy") from e


@dataclass
class BatchResult:
    """Result of a batch processing operation."""

    outputs: List[SampleBuffer] = field(default_factory=list)
    records: List[FileAnalysisRecord] = field(default_factory=list)
    target: Any = None
    workflow: str = ""
    total_time: float = 0.0

    @property
    def total_files(self) -> int:
        return len(self.records)

    @property
    def success_count(self) -> int:
        """Number of files that were transformed."""
        return sum(1 for r in self.records if not r.skipped and r.error is None)

    @property
    def failure_count(self) -> int:
        """Number of files with an error."""
        return sum(1 for r in self.records if r.error is not None)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.records if r.skipped)

    @property
    def success_rate(self) -> float:
        """Success rate as percentage."""
        if self.total_files == 0:
            return 0.0
        return (self.success_count / self.total_files) * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'workflow': self.workflow,
            'target': None if self.target is None else str(self.target),
            'total_files': self.total_files,
            'success_count': self.success_count,
            'failure_count': self.failure_count,
            'skipped_count': self.skipped_count,
            'total_time': self.total_time,
            'records': [r.to_dict() for r in self.records]
        }


class BatchCoordinator:
    """
    Runs a synchronization workflow over a batch of buffers.

    Example:
        coordinator = BatchCoordinator(policy=BatchPolicy(workflow="tempo"))
        coordinator.submit(buffers, ["loop_a.wav", "loop_b.wav"])
        coordinator.analyze()
        coordinator.override(1, 128)
        result = coordinator.process()
    """

    def __init__(
        self,
        workflow: Optional[Workflow] = None,
        policy: Optional[BatchPolicy] = None,
        config: Optional[Dict[str, Any]] = None,
        progress_callback: Optional[Callable[[float, str], None]] = None,
        token: Optional[CancellationToken] = None
    ):
        """
        Initialize coordinator.

        Args:
            workflow: Workflow instance (created from policy.workflow if omitted)
            policy: Batch policy
            config: Configuration dictionary used to build the workflow
            progress_callback: Optional callback(fraction, message)
            token: Caller-owned cancellation token; never reset by the coordinator
        """
        self.policy = policy or BatchPolicy()
        self.workflow = workflow or create_workflow(self.policy.workflow, config)
        self.progress_callback = progress_callback
        self.token = token or CancellationToken()
        self._owns_token = token is None

        self.state = BatchState.IDLE
        self.progress = 0.0
        self.buffers: List[SampleBuffer] = []
        self.records: List[FileAnalysisRecord] = []
        self.target: Any = None

        self.logger = create_logger_with_context(
            "batch_coordinator", {"workflow": self.workflow.name}
        )

    # Submission

    def submit(
        self,
        buffers: Sequence[SampleBuffer],
        filenames: Optional[Sequence[str]] = None
    ) -> List[FileAnalysisRecord]:
        """
        Replace the current file set.

        Raises:
            EmptyBatchError: If no buffers are given
            InvalidInputError: If filenames don't match the buffers
            BatchStateError: If an operation is running
        """
        self._require_not_running("submit")
        if not buffers:
            raise EmptyBatchError()
        if filenames is None:
            filenames = [f"File {i + 1}" for i in range(len(buffers))]
        if len(filenames) != len(buffers):
            raise InvalidInputError(
                f"Got {len(filenames)} filenames for {len(buffers)} buffers",
                parameter="filenames"
            )

        undetected = self.workflow.undetected()
        self.buffers = list(buffers)
        self.records = [
            FileAnalysisRecord(filename=name, index=i, estimates=EstimatePair.of(undetected))
            for i, name in enumerate(filenames)
        ]
        self.target = None
        self.state = BatchState.IDLE
        self.progress = 0.0

        self.logger.info(f"Submitted {len(self.buffers)} files")
        return self.records

    # Analysis

    def analyze(self) -> List[FileAnalysisRecord]:
        """
        Analyze every file that is not manually overridden.

        Raises:
            EmptyBatchError: If nothing was submitted
            InvalidInputError: If the policy cannot produce a target
            OperationCancelledError: If cancel() is called mid-analysis
        """
        self._require_not_running("analyze")
        if not self.records:
            raise EmptyBatchError()

        # Fail on a bad policy before spending time on analysis
        self.workflow.compute_target([], self.policy)

        previous_state = self.state
        self.state = BatchState.ANALYZING
        self.progress = 0.0
        self._reset_token()
        context = TaskContext(self._on_progress, self.token, operation="analyze")
        start_time = time.time()
        total = len(self.records)

        # Records change only once every file is analyzed, so a cancelled
        # re-analysis leaves estimates, target and adjustments consistent
        analyzed: Dict[int, Tuple[Any, Optional[str]]] = {}
        try:
            for i, (buffer, record) in enumerate(zip(self.buffers, self.records)):
                context.checkpoint(i / total, f"Analyzing {record.filename}")
                if record.manually_overridden:
                    continue

                try:
                    estimate = self.workflow.analyze(buffer, context.scoped(i / total, (i + 1) / total))
                    error = None
                except OperationCancelledError:
                    raise
                except Exception as e:
                    self.logger.error(f"Failed to analyze {record.filename}: {e}")
                    estimate = self.workflow.undetected()
                    error = str(e)

                analyzed[i] = (estimate, error)

            context.checkpoint(1.0, "Analysis complete")

        except OperationCancelledError:
            self.state = previous_state
            self.progress = 0.0
            self.logger.warning("Analysis cancelled")
            raise

        for i, (estimate, error) in analyzed.items():
            record = self.records[i]
            record.estimates = EstimatePair.of(estimate)
            record._analysis_error = error

        self._recompute()
        self.state = BatchState.READY

        detected = sum(1 for r in self.records if self.workflow.value_of(r.primary_estimate) is not None)
        self.logger.info(
            f"Analysis complete: {detected}/{total} detected in {time.time() - start_time:.2f}s"
        )
        return self.records

    # Policy and overrides

    def set_policy(
        self,
        aggregation: Union[AggregationPolicy, str],
        custom_value: Optional[float] = None,
        target_key: Optional[str] = None,
        preset: Optional[str] = None
    ) -> Any:
        """
        Change the aggregation policy and recompute non-overridden records.

        Omitted custom_value, target_key and preset keep their current values.
        On error the previous policy stays in effect.

        Returns:
            The new batch target
        """
        self._require_not_running("set_policy")
        previous = self.policy
        self.policy = dataclasses.replace(
            previous,
            aggregation=aggregation,
            custom_value=custom_value if custom_value is not None else previous.custom_value,
            target_key=target_key if target_key is not None else previous.target_key,
            preset=preset if preset is not None else previous.preset
        )
        try:
            self._recompute_if_analyzed()
        except InvalidInputError:
            self.policy = previous
            raise
        return self.target

    def set_mode(self, mode: Union[AdjustmentMode, str], reference_index: Optional[int] = None) -> None:
        """
        Switch between independent and relative adjustment.

        Raises:
            InvalidRangeError: If reference_index is out of range
        """
        self._require_not_running("set_mode")
        if reference_index is not None:
            self._check_index(reference_index)
        self.policy = dataclasses.replace(self.policy, mode=mode, reference_index=reference_index)
        self._recompute_if_analyzed()

    def override(self, index: int, value: Any) -> FileAnalysisRecord:
        """
        Replace a file's estimate with a manual value and freeze its adjustment.

        Raises:
            InvalidRangeError: If index or value is out of range
        """
        self._require_analyzed("override")
        record = self.records[self._check_index(index)]
        record.estimates = record.estimates.override(self.workflow.manual_estimate(value))
        self._recompute(force_index=index)
        self.logger.info(f"Override {record.filename}: {value}")
        return record

    def nudge(self, index: int, multiplier: float) -> FileAnalysisRecord:
        """
        Multiply a file's tempo (x2 / x0.5 octave fixes); recorded as an override.

        Raises:
            InvalidInputError: Outside the tempo workflow or for undetected files
        """
        if self.workflow.name != "tempo":
            raise InvalidInputError("Nudge applies to the tempo workflow only", parameter="multiplier")
        if not multiplier or multiplier <= 0:
            raise InvalidRangeError(
                f"Multiplier must be positive, got {multiplier}",
                parameter="multiplier", value=multiplier
            )
        self._require_analyzed("nudge")
        record = self.records[self._check_index(index)]
        value = self.workflow.value_of(record.primary_estimate)
        if value is None:
            raise InvalidInputError(f"No tempo detected for {record.filename}", parameter="index")
        return self.override(index, value * multiplier)

    def reset(self, index: int) -> FileAnalysisRecord:
        """Restore the detected estimate and unfreeze the adjustment."""
        self._require_analyzed("reset")
        record = self.records[self._check_index(index)]
        record.estimates = record.estimates.reset()
        self._recompute()
        return record

    # Processing

    def process(self) -> BatchResult:
        """
        Transform every non-skipped file.

        Skipped and failed files pass through unchanged.

        Raises:
            BatchStateError: If analysis has not completed
            OperationCancelledError: If cancel() is called mid-processing
        """
        self._require_analyzed("process")

        self.state = BatchState.PROCESSING
        self.progress = 0.0
        self._reset_token()
        context = TaskContext(self._on_progress, self.token, operation="process")
        start_time = time.time()
        total = len(self.records)
        outputs: List[SampleBuffer] = []

        try:
            for i, (buffer, record) in enumerate(zip(self.buffers, self.records)):
                context.checkpoint(i / total, f"Processing {record.filename}")

                if record.skipped or record.adjustment is None or record.error is not None:
                    outputs.append(buffer)
                    continue

                try:
                    output = self.workflow.transform(
                        buffer, record.adjustment, self.policy,
                        context.scoped(i / total, (i + 1) / total)
                    )
                except OperationCancelledError:
                    raise
                except Exception as e:
                    self.logger.error(f"Failed to process {record.filename}: {e}")
                    record.error = str(e)
                    record.skipped = True
                    output = buffer

                outputs.append(output)

            context.checkpoint(1.0, "Processing complete")

        except OperationCancelledError:
            self.state = BatchState.READY
            self.progress = 0.0
            self.logger.warning("Processing cancelled")
            raise

        self.state = BatchState.DONE
        result = BatchResult(
            outputs=outputs,
            records=list(self.records),
            target=self.target,
            workflow=self.workflow.name,
            total_time=time.time() - start_time
        )

        self.logger.info(
            f"Batch complete: {result.success_count}/{result.total_files} processed "
            f"in {result.total_time:.2f}s"
        )
        return result

    def cancel(self) -> None:
        """Request cancellation of the running analysis or processing."""
        self.token.cancel()

    # Internals

    def _recompute(self, force_index: Optional[int] = None) -> None:
        """Recompute target and adjustments; overridden records stay frozen."""
        estimates = [r.primary_estimate for r in self.records]
        self.target = self.workflow.compute_target(estimates, self.policy)
        reference = self._reference(estimates)

        for record in self.records:
            if record.manually_overridden and record.index != force_index:
                continue

            adjustment = self.workflow.adjust(record.primary_estimate, self.target, reference)
            record.adjustment = adjustment.value
            record.target = adjustment.target
            record.skipped = adjustment.skipped
            record.warning = adjustment.warning
            # A manual estimate replaces a failed analysis until reset()
            analysis_error = None if record.manually_overridden else record._analysis_error
            record.error = adjustment.error or analysis_error

            if adjustment.error:
                self.logger.warning(f"{record.filename}: {adjustment.error}")

    def _reference(self, estimates: List[Any]) -> Any:
        if self.policy.mode is not AdjustmentMode.RELATIVE:
            return None

        index = self.policy.reference_index
        if index is not None and self.workflow.value_of(estimates[index]) is None:
            self.logger.warning(f"Reference file {index} has no estimate, using default reference")
            index = None
        if index is None:
            index = self.workflow.default_reference(estimates)
        return None if index is None else estimates[index]

    def _reset_token(self) -> None:
        """Clear a previous cancel() on the coordinator's own token only."""
        if self._owns_token:
            self.token.reset()

    def _recompute_if_analyzed(self) -> None:
        if self.state in (BatchState.READY, BatchState.DONE):
            self._recompute()

    def _on_progress(self, fraction: float, message: str) -> None:
        self.progress = fraction
        if self.progress_callback:
            self.progress_callback(fraction, message)

    def _check_index(self, index: int) -> int:
        if not 0 <= index < len(self.records):
            raise InvalidRangeError(
                f"File index {index} out of range",
                parameter="index", value=index, bounds=(0, len(self.records) - 1)
            )
        return index

    def _require_not_running(self, operation: str) -> None:
        if self.state in (BatchState.ANALYZING, BatchState.PROCESSING):
            raise BatchStateError(
                f"Cannot {operation} while {self.state.value}", state=self.state.value
            )

    def _require_analyzed(self, operation: str) -> None:
        if self.state not in (BatchState.READY, BatchState.DONE):
            raise BatchStateError(
                f"Cannot {operation} before analysis completes", state=self.state.value
            )


def create_batch_coordinator(
    config: Dict[str, Any],
    policy: Optional[BatchPolicy] = None,
    progress_callback: Optional[Callable[[float, str], None]] = None,
    token: Optional[CancellationToken] = None
) -> BatchCoordinator:
    """
    Factory function to create BatchCoordinator from config.

    Args:
        config: Full configuration dictionary
        policy: Batch policy (tempo workflow by default)
        progress_callback: Optional callback(fraction, message)
        token: Optional caller-owned cancellation token
    """
    policy = policy or BatchPolicy()
    return BatchCoordinator(
        workflow=create_workflow(policy.workflow, config),
        policy=policy,
        progress_callback=progress_callback,
        token=token
    )
