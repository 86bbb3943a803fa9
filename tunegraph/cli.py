"""
TuneGraph - Audio Analysis and Batch Synchronization CLI

Invoked as 'tunegraph' after installation.

Example usage:
    # Analysis
    tunegraph analyze loop.wav
    tunegraph analyze --output-json report.json samples/

    # Batch synchronization
    tunegraph sync tempo loops/ --policy average --out synced/
    tunegraph sync loudness a.wav b.wav --preset broadcast --out out/
    tunegraph sync key samples/ --key Am --out tuned/ --report report.txt
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from tunegraph import __version__
from tunegraph.core.aggregation import AggregationPolicy
from tunegraph.core.batch_coordinator import AdjustmentMode, BatchPolicy, BatchResult
from tunegraph.core.engine import create_engine
from tunegraph.core.loader import SUPPORTED_FORMATS
from tunegraph.core.result_writer import create_result_writer, format_estimate
from tunegraph.core.workflows import WORKFLOWS
from tunegraph.utils.config import load_config
from tunegraph.utils.errors import AudioLoadError, TuneGraphError
from tunegraph.utils.logging import setup_logging


def collect_files(inputs: List[Path], recursive: bool = False) -> List[Path]:
    """Expand directories into the audio files they contain, keeping input order."""
    files: List[Path] = []
    for path in inputs:
        if path.is_dir():
            pattern = "**/*" if recursive else "*"
            files.extend(
                sorted(p for p in path.glob(pattern) if p.suffix.lower() in SUPPORTED_FORMATS)
            )
        else:
            files.append(path)
    return files


def print_analysis(report: Dict[str, Any]) -> None:
    """Print one file's analysis report to the console."""
    print("\n" + "=" * 60)
    print("TUNEGRAPH ANALYSIS RESULTS")
    print("=" * 60)
    print(f"File: {Path(report['file']).name}")
    print(f"Duration: {report['duration']:.2f}s  "
          f"Sample Rate: {report['sample_rate']} Hz  Channels: {report['channels']}")
    print(f"Processing Time: {report['processing_time']:.3f}s")
    print("-" * 60)

    print(f"Pitch:    {format_estimate(report['pitch'])}")
    print(f"Tempo:    {format_estimate(report['tempo'])}")
    print(f"Loudness: {format_estimate(report['loudness'])}")

    spectrum = report['spectrum']
    print("Spectrum:")
    print(f"  Dominant Frequency: {spectrum.dominant_frequency_hz:.1f} Hz")
    print(f"  Spectral Centroid: {spectrum.spectral_centroid_hz:.1f} Hz")
    print(f"  Bands: low {spectrum.low:.1%}, mid {spectrum.mid:.1%}, high {spectrum.high:.1%}")


def _report_dict(report: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value.to_dict() if hasattr(value, 'to_dict') else value
        for key, value in report.items()
    }


def run_analyze(
    inputs: List[Path],
    config: dict,
    recursive: bool = False,
    output_json: Optional[Path] = None,
    verbose: bool = False
) -> int:
    """
    Analyze audio files and print pitch, tempo, loudness and spectrum.

    Returns:
        Exit code (0 for success, 1 if any file failed)
    """
    files = collect_files(inputs, recursive)
    if not files:
        print("Error: No audio files found")
        return 1

    engine = create_engine(config)
    try:
        reports = engine.analyze_files(files)

        failed = 0
        for path, report in zip(files, reports):
            if report is None:
                print(f"\nError: Failed to analyze {path}")
                failed += 1
                continue
            print_analysis(report)

        if output_json:
            output_json.parent.mkdir(parents=True, exist_ok=True)
            with open(output_json, 'w', encoding='utf-8') as f:
                json.dump([_report_dict(r) for r in reports if r is not None], f, indent=2, default=str)
            print(f"\nJSON results saved to: {output_json}")

        return 0 if failed == 0 else 1

    except Exception as e:
        print(f"Error during analysis: {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        return 1

    finally:
        engine.shutdown()


def print_batch_summary(result: BatchResult) -> None:
    print("\n" + "=" * 60)
    print(f"{result.workflow.upper()} SYNC COMPLETE")
    print("=" * 60)
    print(f"Target: {result.target if result.target is not None else '-'}")
    print(f"Total Files: {result.total_files}")
    print(f"Processed: {result.success_count}")
    print(f"Skipped: {result.skipped_count}")
    print(f"Errors: {result.failure_count}")
    print(f"Total Time: {result.total_time:.2f}s")

    for record in result.records:
        if record.skipped or record.adjustment is None:
            status = "skipped"
        else:
            status = f"{record.adjustment:+.3f}"
        print(f"  {record.filename}: {format_estimate(record.primary_estimate)} -> {status}")
        if record.warning:
            print(f"    warning: {record.warning}")
        if record.error:
            print(f"    error: {record.error}")


def output_names(paths: List[Path]) -> List[str]:
    """WAV file names for processed outputs; repeated stems get a numeric suffix."""
    names = []
    seen = set()
    for path in paths:
        name = f"{path.stem}.wav"
        counter = 2
        while name in seen:
            name = f"{path.stem}_{counter}.wav"
            counter += 1
        seen.add(name)
        names.append(name)
    return names


def run_sync(
    workflow: str,
    inputs: List[Path],
    config: dict,
    policy: BatchPolicy,
    out_dir: Optional[Path] = None,
    report_path: Optional[Path] = None,
    report_format: str = "text",
    recursive: bool = False,
    verbose: bool = False
) -> int:
    """
    Load files, run one synchronization workflow and write the results.

    Returns:
        Exit code (0 for success, 1 for errors)
    """
    files = collect_files(inputs, recursive)
    if not files:
        print("Error: No audio files found")
        return 1

    engine = create_engine(config)

    def progress_callback(fraction: float, message: str) -> None:
        """Print progress updates."""
        print(f"[{fraction:6.1%}] {message}")

    try:
        loaded = []
        for path in files:
            try:
                loaded.append((path, engine.loader.load(path)))
            except (FileNotFoundError, AudioLoadError) as e:
                print(f"Skipping {path}: {e}")

        if not loaded:
            print("Error: No audio files could be loaded")
            return 1

        paths = [path for path, _ in loaded]
        result = engine.run_batch(
            [buffer for _, buffer in loaded],
            [path.name for path in paths],
            policy,
            progress_callback=progress_callback if verbose else None
        )

        print_batch_summary(result)

        if out_dir:
            for name, output in zip(output_names(paths), result.outputs):
                engine.writer.write(output, out_dir / name)
            print(f"\nProcessed files written to: {out_dir}")

        if report_path:
            writer = create_result_writer(report_format)
            writer.write(result, report_path)
            print(f"Report saved to: {report_path}")

        return 0 if result.failure_count == 0 and len(loaded) == len(files) else 1

    except Exception as e:
        print(f"Error during {workflow} sync: {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        return 1

    finally:
        engine.shutdown()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tunegraph",
        description="Analyze pitch, tempo and loudness of audio files and synchronize batches",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Analysis:
    tunegraph analyze loop.wav
    tunegraph analyze --recursive samples/

  Tempo sync to the batch average:
    tunegraph sync tempo loops/ --out synced/

  Loudness sync to a preset, relative to the loudest file:
    tunegraph sync loudness *.wav --preset video --mode relative --out out/

  Key sync onto A minor:
    tunegraph sync key samples/ --key Am --out tuned/ --report report.json --format json
        """
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"tunegraph {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Print pitch, tempo, loudness and spectrum")
    analyze.add_argument("inputs", type=Path, nargs="+", help="Audio file(s) or directories")
    analyze.add_argument("--recursive", "-r", action="store_true", help="Search directories recursively")
    analyze.add_argument("--output-json", type=Path, default=None, help="Path to save JSON results")

    sync = subparsers.add_parser("sync", help="Synchronize a batch of files")
    sync.add_argument("workflow", choices=WORKFLOWS, help="What to synchronize")
    sync.add_argument("inputs", type=Path, nargs="+", help="Audio file(s) or directories")
    sync.add_argument("--recursive", "-r", action="store_true", help="Search directories recursively")
    sync.add_argument(
        "--policy",
        choices=[p.value for p in AggregationPolicy],
        default=None,
        help="Aggregation policy (workflow default if omitted)"
    )
    sync.add_argument("--custom", type=float, default=None, help="Custom target (BPM or peak dB)")
    sync.add_argument("--key", type=str, default=None, help="Target key or root note (key workflow)")
    sync.add_argument("--preset", type=str, default=None, help="Loudness preset (game, video, broadcast)")
    sync.add_argument(
        "--mode",
        choices=[m.value for m in AdjustmentMode],
        default=AdjustmentMode.INDEPENDENT.value,
        help="Adjust each file to the target or all files by one shared amount"
    )
    sync.add_argument("--reference", type=int, default=None, help="Reference file index for relative mode")
    sync.add_argument(
        "--quality",
        choices=["fast", "standard", "high"],
        default="standard",
        help="Time-stretch quality"
    )
    sync.add_argument("--no-limiter", action="store_true", help="Disable the soft limiter")
    sync.add_argument("--out", type=Path, default=None, help="Directory for processed WAV files")
    sync.add_argument("--report", type=Path, default=None, help="Path to save the batch report")
    sync.add_argument("--format", choices=["text", "json"], default="text", help="Report format")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the tunegraph command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load configuration
    config_path = str(args.config) if args.config else None
    config = load_config(config_path)

    # Setup logging
    log_level = "DEBUG" if args.verbose else config.get("logging", {}).get("level", "INFO")
    setup_logging(
        level=log_level,
        log_format="text",
        colored=True,
        console_enabled=True
    )

    if args.command == "analyze":
        exit_code = run_analyze(
            inputs=args.inputs,
            config=config,
            recursive=args.recursive,
            output_json=args.output_json,
            verbose=args.verbose
        )
    else:
        try:
            policy = BatchPolicy(
                workflow=args.workflow,
                aggregation=args.policy,
                mode=args.mode,
                custom_value=args.custom,
                target_key=args.key,
                preset=args.preset,
                quality=args.quality,
                limiter_enabled=not args.no_limiter,
                reference_index=args.reference
            )
        except TuneGraphError as e:
            parser.error(str(e))

        exit_code = run_sync(
            workflow=args.workflow,
            inputs=args.inputs,
            config=config,
            policy=policy,
            out_dir=args.out,
            report_path=args.report,
            report_format=args.format,
            recursive=args.recursive,
            verbose=args.verbose
        )

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
