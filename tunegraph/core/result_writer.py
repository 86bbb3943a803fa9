"""
Report writers for batch synchronization results.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from tunegraph.core.batch_coordinator import BatchResult, FileAnalysisRecord
from tunegraph.utils.errors import InvalidInputError

# Unit printed after each workflow's adjustment value
ADJUSTMENT_UNITS = {
    'loudness': 'dB',
    'tempo': 'x',
    'key': 'st',
}


class ResultWriter(ABC):
    """Abstract base class for result writers (Strategy Pattern)."""

    @abstractmethod
    def write(self, result: BatchResult, output_path: Path) -> None:
        """Write results to the specified path."""
        pass


class TextResultWriter(ResultWriter):
    """Writes a batch report to a human-readable text file."""

    def __init__(self, include_timestamp: bool = True):
        self.include_timestamp = include_timestamp
        self.logger = logging.getLogger("result_writer.text")

    def write(self, result: BatchResult, output_path: Path) -> None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write("=" * 70 + "\n")
            f.write(f"TUNEGRAPH {result.workflow.upper()} SYNC REPORT\n")
            f.write("=" * 70 + "\n")

            if self.include_timestamp:
                f.write(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

            f.write(f"Target: {result.target if result.target is not None else '-'}\n")
            f.write(
                f"Files: {result.total_files} "
                f"(processed {result.success_count}, skipped {result.skipped_count}, "
                f"errors {result.failure_count})\n"
            )
            f.write(f"Processing Time: {result.total_time:.2f}s\n")
            f.write("=" * 70 + "\n\n")

            for record in result.records:
                self._write_record(f, record, result.workflow)

            f.write("=" * 70 + "\n")
            f.write("END OF REPORT\n")
            f.write("=" * 70 + "\n")

        self.logger.info(f"Results written to: {output_path}")

    def _write_record(self, f, record: FileAnalysisRecord, workflow: str) -> None:
        f.write("-" * 70 + "\n")
        f.write(f"FILE: {record.filename}\n")
        f.write("-" * 70 + "\n")

        estimate = record.primary_estimate
        f.write(f"Estimate: {format_estimate(estimate)}\n")
        if record.manually_overridden:
            f.write(f"Detected: {format_estimate(record.original_estimate)} (overridden)\n")

        if record.skipped:
            f.write("Adjustment: skipped\n")
        elif record.adjustment is not None:
            unit = ADJUSTMENT_UNITS.get(workflow, '')
            f.write(f"Adjustment: {record.adjustment:+.3f} {unit}\n")
            if record.target is not None:
                f.write(f"Target: {record.target}\n")

        if record.warning:
            f.write(f"Warning: {record.warning}\n")
        if record.error:
            f.write(f"Error: {record.error}\n")

        f.write("\n")


def format_estimate(estimate) -> str:
    """One-line description of any estimate type."""
    if estimate is None:
        return "-"
    data = estimate.to_dict()
    if 'bpm' in data:
        if data['status'] == 'undetected':
            return "tempo not detected"
        suffix = " (estimated)" if data['estimated'] else ""
        return f"{data['bpm']:.1f} BPM, confidence {data['confidence']:.0%}{suffix}"
    if 'midi_note' in data:
        if data['status'] == 'undetected':
            return "pitch not detected"
        return f"{data['note_name']} ({data['frequency_hz']:.1f} Hz), confidence {data['confidence']:.0%}"
    if 'true_peak_db' in data:
        return f"peak {data['true_peak_db']:.1f} dB, RMS {data['rms_db']:.1f} dB, LRA {data['lra']:.1f} dB"
    return str(data)


class JSONResultWriter(ResultWriter):
    """Writes a batch report to a JSON file."""

    def __init__(self, indent: int = 2):
        self.indent = indent
        self.logger = logging.getLogger("result_writer.json")

    def write(self, result: BatchResult, output_path: Path) -> None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        output_data = {"generated": datetime.now().isoformat()}
        output_data.update(result.to_dict())

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(output_data, f, indent=self.indent, default=str)

        self.logger.info(f"Results written to: {output_path}")


def create_result_writer(format: str = "text", **kwargs) -> ResultWriter:
    """
    Factory function to create appropriate result writer.

    Args:
        format: Output format ("text" or "json")
        **kwargs: Additional arguments for the writer
    """
    writers = {
        "text": TextResultWriter,
        "txt": TextResultWriter,
        "json": JSONResultWriter,
    }

    writer_class = writers.get(format.lower())
    if writer_class is None:
        raise InvalidInputError(
            f"Unknown format: {format}. Supported: {list(writers.keys())}",
            parameter="format"
        )

    return writer_class(**kwargs)
