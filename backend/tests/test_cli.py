"""
Tests for the streamcut CLI.

Engine discovery and the FFmpeg adapter are patched; exit codes are checked
through SystemExit.
"""

import json
from unittest.mock import patch

import pytest

from conftest import FakeAdapter
from streamcut import cli
from streamcut.config import EngineConfig
from streamcut.errors import ExecutionUnavailableError
from streamcut.metadata import MediaProbeError


ENGINE = EngineConfig(ffmpeg_path="/usr/bin/ffmpeg", ffprobe_path="/usr/bin/ffprobe")


def _run(argv, adapter=None):
    adapter = adapter or FakeAdapter()
    with patch("streamcut.cli.discover_engine", return_value=ENGINE), \
            patch("streamcut.cli.FFmpegAdapter", return_value=adapter):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(argv)
    return exc_info.value.code


class TestCutCommand:

    def test_segments_from_arguments(self, source_file, capsys):
        adapter = FakeAdapter()
        code = _run([
            "cut", str(source_file), "--duration", "60", "--format", "mp4",
            "--segment", "0", "5", "--segment", "10", "20",
        ], adapter)

        assert code == 0
        assert len(adapter.calls) == 2
        result = json.loads(capsys.readouterr().out)
        assert result["status"]["state"] == "done"
        assert len(result["output_paths"]) == 2

    def test_segments_from_edl_and_merge(self, source_file, tmp_path):
        edl = tmp_path / "cuts.csv"
        edl.write_text("0,5,a\n10,,b\n", encoding="utf-8")
        adapter = FakeAdapter()

        code = _run([
            "cut", str(source_file), "--duration", "30", "--format", "mp4",
            "--edl", str(edl), "--merge", "--chapters", "--normal-cut",
        ], adapter)

        assert code == 0
        assert len(adapter.calls) == 3
        assert adapter.calls[0][0] == "-i"
        assert "-map_chapters" in adapter.calls[2]

    def test_invalid_edl(self, source_file, tmp_path):
        edl = tmp_path / "cuts.csv"
        edl.write_text("0,abc,a\n", encoding="utf-8")
        assert _run(["cut", str(source_file), "--duration", "30", "--edl", str(edl)]) == 1

    def test_no_segments(self, source_file):
        assert _run(["cut", str(source_file), "--duration", "30", "--format", "mp4"]) == 1

    def test_segment_beyond_source(self, source_file):
        code = _run(["cut", str(source_file), "--duration", "30", "--format", "mp4", "--segment", "10", "40"])
        assert code == 1

    def test_negative_segment(self, source_file):
        code = _run(["cut", str(source_file), "--duration", "30", "--format", "mp4", "--segment", "-1", "5"])
        assert code == 1

    def test_probe_failure_while_resolving_format(self, source_file, capsys):
        adapter = FakeAdapter()
        with patch("streamcut.cli.FormatResolver.from_engine") as from_engine:
            from_engine.return_value.resolve.side_effect = MediaProbeError(str(source_file), "moov atom not found")
            code = _run(["cut", str(source_file), "--duration", "30", "--segment", "0", "5"], adapter)

        assert code == 4
        assert adapter.calls == []
        assert "moov atom not found" in capsys.readouterr().err

    def test_execution_failure(self, source_file, capsys):
        code = _run(
            ["cut", str(source_file), "--duration", "30", "--format", "mp4", "--segment", "0", "5"],
            FakeAdapter(exit_codes=[1]),
        )
        assert code == 2
        assert "FAILED" in capsys.readouterr().err

    def test_missing_source(self, tmp_path):
        assert _run(["cut", str(tmp_path / "none.mp4"), "--segment", "0", "1"]) == 4

    def test_ffmpeg_unavailable(self, source_file):
        with patch("streamcut.cli.discover_engine", side_effect=ExecutionUnavailableError("not found")):
            with pytest.raises(SystemExit) as exc_info:
                cli.main(["cut", str(source_file), "--segment", "0", "1"])
        assert exc_info.value.code == 4


class TestMergeCommand:

    def test_merge_sorted(self, tmp_path, capsys):
        first = tmp_path / "part2.mp4"
        second = tmp_path / "part10.mp4"
        first.write_bytes(b"")
        second.write_bytes(b"")
        adapter = FakeAdapter()

        assert _run(["merge", str(second), str(first), "--sort"], adapter) == 0
        assert capsys.readouterr().out.strip() == f"{first}-merged.mp4"
        assert adapter.stdin_texts[0].splitlines()[0] == f"file '{first}'"

    def test_merge_failure(self, tmp_path):
        paths = []
        for name in ("a.mp4", "b.mp4"):
            path = tmp_path / name
            path.write_bytes(b"")
            paths.append(str(path))
        assert _run(["merge", *paths], FakeAdapter(exit_codes=[1])) == 2

    def test_merge_single_file(self, source_file):
        assert _run(["merge", str(source_file)]) == 1

    def test_merge_missing_input(self, source_file, tmp_path):
        assert _run(["merge", str(source_file), str(tmp_path / "none.mp4")]) == 4


class TestFormatCommand:

    def test_prints_muxer(self, source_file, capsys):
        with patch("streamcut.cli.FormatResolver.from_engine") as from_engine:
            from_engine.return_value.resolve.return_value = "ipod"
            assert _run(["format", str(source_file)]) == 0
        assert capsys.readouterr().out.strip() == "ipod"
