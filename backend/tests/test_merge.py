"""
Tests for merge (concat) construction and the MergeCoordinator.
"""

import os

import pytest

from conftest import FakeAdapter
from streamcut.config import ExportSettings
from streamcut.errors import ExecutionFailureError, ValidationError
from streamcut.export import (
    ChapterSpec,
    MergeCoordinator,
    MergeManifest,
    build_chapters,
    build_concat_manifest,
    build_merge_args,
    merge_files,
    render_ffmetadata,
    sort_paths,
)
from streamcut.export.merge import escape_concat_path


# =============================================================================
# Concat playlist
# =============================================================================

class TestConcatManifest:

    def test_single_quote_escaped(self):
        assert escape_concat_path("/out/b'ad.mp4") == "'/out/b'\\''ad.mp4'"

    def test_playlist_lines(self):
        text = build_concat_manifest(["/out/a.mp4", "/out/b'ad.mp4"])
        assert text == "file '/out/a.mp4'\nfile '/out/b'\\''ad.mp4'"

    def test_paths_are_normalised(self):
        assert build_concat_manifest(["/out/./x/../a.mp4"]) == "file '/out/a.mp4'"


# =============================================================================
# Chapters
# =============================================================================

class TestChapters:

    def test_cumulative_boundaries(self):
        chapters = build_chapters([
            ChapterSpec(duration=10, name="intro"),
            ChapterSpec(duration=5.5),
            ChapterSpec(duration=4.5, name="outro"),
        ])
        assert [(c.start, c.end) for c in chapters] == [(0, 10), (10, 15.5), (15.5, 20)]
        assert [c.title for c in chapters] == ["intro", None, "outro"]

    def test_ffmetadata_document(self):
        text = render_ffmetadata(build_chapters([ChapterSpec(duration=1.5, name="a=b"), ChapterSpec(duration=2)]))
        assert text == (
            ";FFMETADATA1\n"
            "[CHAPTER]\nTIMEBASE=1/1000\nSTART=0\nEND=1500\ntitle=a\\=b\n"
            "[CHAPTER]\nTIMEBASE=1/1000\nSTART=1500\nEND=3500\n"
        )


# =============================================================================
# Argument vector
# =============================================================================

class TestMergeArgs:

    def test_minimal_vector(self):
        manifest = MergeManifest(paths=("/out/a.mp4", "/out/b.mp4"))
        assert build_merge_args(manifest) == [
            "-f", "concat", "-safe", "0", "-protocol_whitelist", "file,pipe", "-i", "-",
            "-c", "copy",
            "-map_metadata", "0",
            "-y", "/out/a.mp4-merged.mp4",
        ]

    def test_all_streams(self):
        args = build_merge_args(MergeManifest(paths=("/a.mp4",), include_all_streams=True))
        assert args[args.index("-c") + 2:args.index("-c") + 4] == ["-map", "0"]

    def test_preserve_metadata_uses_first_file(self):
        args = build_merge_args(MergeManifest(paths=("/a.mp4", "/b.mp4"), preserve_metadata=True))
        assert args[8:14] == ["-vn", "-an", "-sn", "-dn", "-i", "/a.mp4"]
        assert "-map_metadata:s:v" in args
        assert args[args.index("-map_metadata:s:v") + 1] == "1:s:v"
        assert args[args.index("-map_metadata:s:a") + 1] == "1:s:a"

    def test_chapters_input_index(self):
        manifest = MergeManifest(paths=("/a.mp4", "/b.mp4"), preserve_metadata=True)
        args = build_merge_args(manifest, chapters_path="/tmp/chapters.txt")
        assert ["-f", "ffmetadata", "-i", "/tmp/chapters.txt"] == args[14:18]
        assert args[args.index("-map_chapters") + 1] == "2"

    def test_mov_data(self):
        args = build_merge_args(MergeManifest(paths=("/a.mov",), preserve_mov_data=True))
        assert args[-4:] == ["-movflags", "use_metadata_tags", "-y", "/a.mov-merged.mov"]

    def test_from_settings(self):
        settings = ExportSettings(include_all_streams=True, preserve_mov_data=True, segments_to_chapters=True)
        manifest = MergeManifest.from_settings(["/a.mp4"], settings, chapters=[ChapterSpec(duration=1)])
        assert manifest.include_all_streams
        assert manifest.preserve_mov_data
        assert manifest.segments_to_chapters
        assert not manifest.preserve_metadata
        assert manifest.total_duration == 1


class TestSortPaths:

    def test_natural_order(self):
        paths = ["clip10.mp4", "clip2.mp4", "Clip1.mp4"]
        assert sort_paths(paths) == ["Clip1.mp4", "clip2.mp4", "clip10.mp4"]

    def test_descending(self):
        assert sort_paths(["a1", "a3", "a2"], descending=True) == ["a3", "a2", "a1"]


# =============================================================================
# Coordinator
# =============================================================================

class TestMergeCoordinator:

    def test_playlist_streamed_on_stdin(self, tmp_path):
        adapter = FakeAdapter()
        manifest = MergeManifest(paths=(str(tmp_path / "a.mp4"), str(tmp_path / "b.mp4")))

        output = MergeCoordinator(adapter).merge(manifest)

        assert output == str(tmp_path / "a.mp4") + "-merged.mp4"
        assert adapter.stdin_texts[0] == build_concat_manifest(manifest.paths)
        assert adapter.calls[0][-1] == output

    def test_chapters_file_written_and_removed(self, tmp_path):
        seen = {}

        class CapturingAdapter(FakeAdapter):
            def run(self, args, stdin_text=None, on_stderr_line=None):
                chapters_path = args[args.index("ffmetadata") + 2]
                with open(chapters_path, encoding="utf-8") as f:
                    seen["text"] = f.read()
                seen["path"] = chapters_path
                return super().run(args, stdin_text, on_stderr_line)

        manifest = MergeManifest(
            paths=("/a.mp4", "/b.mp4"),
            segments_to_chapters=True,
            chapters=(ChapterSpec(duration=2, name="one"), ChapterSpec(duration=3, name="two")),
        )
        MergeCoordinator(CapturingAdapter()).merge(manifest)

        assert "title=one" in seen["text"]
        assert "END=5000" in seen["text"]
        assert not os.path.exists(seen["path"])

    def test_chapter_count_mismatch(self):
        manifest = MergeManifest(
            paths=("/a.mp4", "/b.mp4"),
            segments_to_chapters=True,
            chapters=(ChapterSpec(duration=2),),
        )
        adapter = FakeAdapter()
        with pytest.raises(ValidationError):
            MergeCoordinator(adapter).merge(manifest)
        assert adapter.calls == []

    def test_empty_manifest(self):
        with pytest.raises(ValidationError):
            MergeCoordinator(FakeAdapter()).merge(MergeManifest(paths=()))

    def test_failure_raises_with_stage(self):
        adapter = FakeAdapter(exit_codes=[1])
        with pytest.raises(ExecutionFailureError) as exc_info:
            MergeCoordinator(adapter).merge(MergeManifest(paths=("/a.mp4", "/b.mp4")))
        assert exc_info.value.stage == "merging"
        assert exc_info.value.exit_code == 1
        assert exc_info.value.reason == "Conversion failed!"

    def test_progress_over_total_duration(self):
        seen = []
        adapter = FakeAdapter(stderr_lines=[
            "frame=1 fps=1 q=1 size=1kB time=00:00:02.50 bitrate=1",
        ])
        manifest = MergeManifest(
            paths=("/a.mp4", "/b.mp4"),
            chapters=(ChapterSpec(duration=2), ChapterSpec(duration=3)),
        )
        MergeCoordinator(adapter).merge(manifest, on_progress=seen.append)
        assert seen == [0.0, pytest.approx(0.5)]


class TestMergeFiles:

    def test_sorted_and_without_chapters(self):
        adapter = FakeAdapter()
        settings = ExportSettings(segments_to_chapters=True)

        output = merge_files(["/v/clip10.mp4", "/v/clip2.mp4"], settings, adapter, sort=True)

        assert output == "/v/clip2.mp4-merged.mp4"
        assert adapter.stdin_texts[0] == "file '/v/clip2.mp4'\nfile '/v/clip10.mp4'"
        assert "ffmetadata" not in adapter.calls[0]
