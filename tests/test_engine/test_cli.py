"""Tests for the tunegraph command-line interface."""

import json
import logging

import numpy as np
import pytest
import soundfile as sf

from tunegraph.cli import build_parser, collect_files, main, output_names


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def wav_files(tmp_path):
    """Two constant-level clips in an input directory."""
    input_dir = tmp_path / "in"
    input_dir.mkdir()
    paths = []
    for name, level in (("loud", 0.5), ("quiet", 0.25)):
        path = input_dir / f"{name}.wav"
        sf.write(str(path), np.full(8000, level), 8000)
        paths.append(path)
    return paths


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestParser:
    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_sync_defaults(self):
        args = build_parser().parse_args(["sync", "tempo", "a.wav"])
        assert args.mode == "independent"
        assert args.quality == "standard"
        assert args.policy is None
        assert not args.no_limiter

    def test_unknown_workflow(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["sync", "volume", "a.wav"])


class TestCollectFiles:
    def test_directory_filters_by_suffix(self, wav_files, tmp_path):
        (tmp_path / "in" / "notes.txt").write_text("ignore me")
        assert collect_files([tmp_path / "in"]) == sorted(wav_files)

    def test_recursive(self, wav_files, tmp_path):
        nested = tmp_path / "in" / "nested"
        nested.mkdir()
        sf.write(str(nested / "deep.wav"), np.zeros(100), 8000)

        assert len(collect_files([tmp_path / "in"])) == 2
        assert len(collect_files([tmp_path / "in"], recursive=True)) == 3


class TestOutputNames:
    def test_unique_stems_are_kept(self, tmp_path):
        assert output_names([tmp_path / "a.flac", tmp_path / "b.wav"]) == ["a.wav", "b.wav"]

    def test_repeated_stems_get_suffix(self, tmp_path):
        paths = [tmp_path / "a.wav", tmp_path / "a.flac", tmp_path / "x" / "a.wav"]
        assert output_names(paths) == ["a.wav", "a_2.wav", "a_3.wav"]


class TestAnalyzeCommand:
    def test_prints_results(self, wav_files, capsys):
        assert _run(["analyze", str(wav_files[0])]) == 0
        output = capsys.readouterr().out

        assert "TUNEGRAPH ANALYSIS RESULTS" in output
        assert "File: loud.wav" in output

    def test_json_output(self, wav_files, tmp_path):
        output_json = tmp_path / "results" / "analysis.json"
        assert _run(["analyze", str(tmp_path / "in"), "--output-json", str(output_json)]) == 0

        data = json.loads(output_json.read_text())
        assert len(data) == 2
        assert data[0]["loudness"]["true_peak_db"] == pytest.approx(-6.02, abs=0.01)

    def test_no_files(self, tmp_path, capsys):
        assert _run(["analyze", str(tmp_path)]) == 1
        assert "No audio files found" in capsys.readouterr().out

    def test_missing_file_fails(self, tmp_path):
        assert _run(["analyze", str(tmp_path / "missing.wav")]) == 1


class TestSyncCommand:
    def test_loudness_sync_writes_outputs(self, wav_files, tmp_path, capsys):
        out_dir = tmp_path / "out"
        report = tmp_path / "report.json"

        code = _run([
            "sync", "loudness", *map(str, wav_files),
            "--out", str(out_dir), "--report", str(report), "--format", "json",
        ])

        assert code == 0
        assert "LOUDNESS SYNC COMPLETE" in capsys.readouterr().out
        for name in ("loud.wav", "quiet.wav"):
            data, _ = sf.read(str(out_dir / name))
            assert np.max(np.abs(data)) == pytest.approx(10 ** (-1 / 20), abs=1e-3)

        assert json.loads(report.read_text())["success_count"] == 2

    def test_text_report(self, wav_files, tmp_path):
        report = tmp_path / "report.txt"
        assert _run(["sync", "loudness", str(tmp_path / "in"), "--report", str(report)]) == 0
        assert "TUNEGRAPH LOUDNESS SYNC REPORT" in report.read_text()

    def test_key_sync_without_key_fails(self, wav_files, capsys):
        assert _run(["sync", "key", *map(str, wav_files)]) == 1
        assert "Error during key sync" in capsys.readouterr().out

    def test_invalid_policy_is_a_usage_error(self, wav_files):
        assert _run(["sync", "tempo", str(wav_files[0]), "--mode", "sideways"]) == 2

    def test_unreadable_file_is_skipped(self, wav_files, tmp_path, capsys):
        broken = tmp_path / "in" / "broken.wav"
        broken.write_bytes(b"not audio")
        out_dir = tmp_path / "out"

        code = _run(["sync", "loudness", *map(str, wav_files), str(broken), "--out", str(out_dir)])
        output = capsys.readouterr().out

        assert code == 1
        assert f"Skipping {broken}" in output
        assert "Total Files: 2" in output
        assert sorted(p.name for p in out_dir.iterdir()) == ["loud.wav", "quiet.wav"]

    def test_nothing_loadable(self, tmp_path, capsys):
        assert _run(["sync", "loudness", str(tmp_path / "missing.wav")]) == 1
        assert "No audio files could be loaded" in capsys.readouterr().out

    def test_same_stem_outputs_do_not_overwrite(self, tmp_path):
        input_dir = tmp_path / "in"
        input_dir.mkdir()
        sf.write(str(input_dir / "take.wav"), np.full(8000, 0.5), 8000)
        sf.write(str(input_dir / "take.flac"), np.full(8000, 0.25), 8000)
        out_dir = tmp_path / "out"

        assert _run(["sync", "loudness", str(input_dir), "--out", str(out_dir)]) == 0
        assert sorted(p.name for p in out_dir.iterdir()) == ["take.wav", "take_2.wav"]
