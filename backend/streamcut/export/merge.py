"""
Merge (concatenate) completed outputs into one container.

Uses the FFmpeg concat demuxer with stream copy. The playlist is streamed
to FFmpeg's stdin, never written to disk:

    file '/out/a.mp4'
    file '/out/b'\\''ad.mp4'

Mandatory flags:
- protocol allow-list restricted to file,pipe
- -c copy (no re-encode)
- -map_metadata 0 (global metadata from the first input only)

Optional flags (independent, additive):
- include_all_streams  -> -map 0
- preserve_metadata    -> first file opened as an extra input, its per-stream
                          metadata mapped onto the output (slower)
- segments_to_chapters -> ffmetadata chapters input + -map_chapters
- preserve_mov_data    -> -movflags use_metadata_tags
"""

import logging
import os
import re
import tempfile
from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..config import ExportSettings
from ..errors import ExecutionFailureError, ValidationError
from ..execution.adapter import ExecutionAdapter
from ..execution.progress import ProgressParser
from .naming import merged_output_path

logger = logging.getLogger(__name__)

STAGE_MERGE = "merging"


class ChapterSpec(BaseModel):
    """One constituent of a merge, for chapter synthesis."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    duration: float = Field(ge=0)
    name: Optional[str] = None


class Chapter(BaseModel):
    """A chapter marker in seconds: [start, end)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    start: float
    end: float
    title: Optional[str] = None


class MergeManifest(BaseModel):
    """
    Everything needed to merge a batch of completed outputs.

    Built only after every cut in the batch has succeeded.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    paths: Tuple[str, ...]
    include_all_streams: bool = False
    preserve_metadata: bool = False
    preserve_mov_data: bool = False
    segments_to_chapters: bool = False
    chapters: Tuple[ChapterSpec, ...] = ()
    output_format: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        paths: Sequence[str],
        settings: ExportSettings,
        chapters: Sequence[ChapterSpec] = (),
        output_format: Optional[str] = None,
    ) -> "MergeManifest":
        return cls(
            paths=tuple(paths),
            include_all_streams=settings.include_all_streams,
            preserve_metadata=settings.preserve_metadata_on_merge,
            preserve_mov_data=settings.preserve_mov_data,
            segments_to_chapters=settings.segments_to_chapters,
            chapters=tuple(chapters),
            output_format=output_format,
        )

    @property
    def output_path(self) -> str:
        return merged_output_path(self.paths[0], self.output_format)

    @property
    def total_duration(self) -> float:
        return sum(chapter.duration for chapter in self.chapters)


# ============================================================================
# Pure builders
# ============================================================================

def escape_concat_path(path: str) -> str:
    """
    Quote a path for the concat playlist.

    Single quotes are escaped by closing the quote, adding an escaped quote
    and reopening: b'ad.mp4 -> 'b'\\''ad.mp4'
    """
    return "'" + os.path.normpath(path).replace("'", "'\\''") + "'"


def build_concat_manifest(paths: Sequence[str]) -> str:
    """One `file '<path>'` line per input."""
    return "\n".join(f"file {escape_concat_path(path)}" for path in paths)


def build_chapters(specs: Sequence[ChapterSpec]) -> List[Chapter]:
    """
    Chapter boundaries from cumulative durations.

    Chapter i spans [sum(d_0..d_{i-1}), sum(d_0..d_i)).
    """
    chapters = []
    cursor = 0.0
    for spec in specs:
        end = cursor + spec.duration
        chapters.append(Chapter(start=cursor, end=end, title=spec.name))
        cursor = end
    return chapters


def _escape_ffmetadata(value: str) -> str:
    # '=', ';', '#', '\' and newlines must be backslash-escaped
    return re.sub(r"([=;#\\\n])", r"\\\1", value)


def render_ffmetadata(chapters: Sequence[Chapter]) -> str:
    """Render chapters as an FFmpeg metadata document (millisecond timebase)."""
    lines = [";FFMETADATA1"]
    for chapter in chapters:
        lines.extend([
            "[CHAPTER]",
            "TIMEBASE=1/1000",
            f"START={int(round(chapter.start * 1000))}",
            f"END={int(round(chapter.end * 1000))}",
        ])
        if chapter.title:
            lines.append(f"title={_escape_ffmetadata(chapter.title)}")
    return "\n".join(lines) + "\n"


def build_merge_args(
    manifest: MergeManifest,
    chapters_path: Optional[str] = None,
) -> List[str]:
    """
    Build the FFmpeg argument vector for a merge (without the binary).

    Input 0 is always the concat playlist on stdin.
    """
    args = [
        "-f", "concat", "-safe", "0", "-protocol_whitelist", "file,pipe", "-i", "-",
    ]
    next_input = 1

    metadata_input = None
    if manifest.preserve_metadata:
        # Streams of this input are blocked from automatic selection;
        # only its metadata is used
        metadata_input = next_input
        next_input += 1
        args.extend(["-vn", "-an", "-sn", "-dn", "-i", manifest.paths[0]])

    chapters_input = None
    if chapters_path is not None:
        chapters_input = next_input
        next_input += 1
        args.extend(["-f", "ffmetadata", "-i", chapters_path])

    args.extend(["-c", "copy"])
    if manifest.include_all_streams:
        args.extend(["-map", "0"])
    args.extend(["-map_metadata", "0"])

    if metadata_input is not None:
        args.extend([
            "-map_metadata:s:v", f"{metadata_input}:s:v",
            "-map_metadata:s:a", f"{metadata_input}:s:a",
        ])
    if chapters_input is not None:
        args.extend(["-map_chapters", str(chapters_input)])
    if manifest.preserve_mov_data:
        args.extend(["-movflags", "use_metadata_tags"])

    args.extend(["-y", manifest.output_path])
    return args


def _natural_key(path: str) -> List[object]:
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r"(\d+)", path)]


def sort_paths(paths: Sequence[str], descending: bool = False) -> List[str]:
    """Natural (numeric-aware) sort: clip2 before clip10."""
    return sorted(paths, key=_natural_key, reverse=descending)


# ============================================================================
# Coordinator
# ============================================================================

class MergeCoordinator:
    """
    Runs a merge through an ExecutionAdapter.

    Usage:
        coordinator = MergeCoordinator(adapter)
        output_path = coordinator.merge(manifest, on_progress=report)
    """

    def __init__(self, adapter: ExecutionAdapter):
        self.adapter = adapter

    def merge(
        self,
        manifest: MergeManifest,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> str:
        """
        Merge the manifest's files into one output.

        Returns:
            Output path

        Raises:
            ValidationError: If the manifest has no paths or chapters are
                requested without one duration per path
            ExecutionFailureError: If FFmpeg fails
        """
        if not manifest.paths:
            raise ValidationError("Nothing to merge: no input paths")
        if manifest.segments_to_chapters and len(manifest.chapters) != len(manifest.paths):
            raise ValidationError(
                f"Chapter synthesis needs one duration per input "
                f"({len(manifest.chapters)} durations for {len(manifest.paths)} paths)"
            )

        concat_txt = build_concat_manifest(manifest.paths)
        logger.info(f"[Merge] Merging {len(manifest.paths)} file(s) to {manifest.output_path}")
        logger.debug(f"[Merge] Playlist:\n{concat_txt}")

        parser = ProgressParser(manifest.total_duration, on_progress)

        with tempfile.TemporaryDirectory(prefix="streamcut-") as tmp_dir:
            chapters_path = None
            if manifest.segments_to_chapters:
                chapters_path = os.path.join(tmp_dir, "chapters.txt")
                with open(chapters_path, "w", encoding="utf-8") as f:
                    f.write(render_ffmetadata(build_chapters(manifest.chapters)))

            args = build_merge_args(manifest, chapters_path)
            parser.start()
            outcome = self.adapter.run(args, stdin_text=concat_txt, on_stderr_line=parser.feed)

        if not outcome.succeeded:
            raise ExecutionFailureError(
                STAGE_MERGE,
                outcome.failure_reason(),
                exit_code=outcome.exit_code,
                stderr_tail="\n".join(outcome.stderr_tail),
            )

        logger.info(f"[Merge] Completed: {manifest.output_path}")
        return manifest.output_path


def merge_files(
    paths: Sequence[str],
    settings: ExportSettings,
    adapter: ExecutionAdapter,
    sort: bool = False,
    on_progress: Optional[Callable[[float], None]] = None,
) -> str:
    """
    Merge arbitrary files of identical codec parameters, one after the other.

    Chapters are not available here because input durations are unknown.
    """
    ordered = sort_paths(paths) if sort else list(paths)
    manifest = MergeManifest.from_settings(ordered, settings.with_updates(segments_to_chapters=False))
    return MergeCoordinator(adapter).merge(manifest, on_progress=on_progress)
