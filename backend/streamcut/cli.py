"""
streamcut CLI - Thin entrypoint for lossless cut and merge.

Commands:
- cut:    export segments of a source (from an EDL or --segment ranges)
- merge:  concatenate existing files with stream copy
- format: print the output format that would be used for a file

Design Principles:
==================
- CLI is a dispatcher only
- No execution logic inside CLI
- Surface errors verbatim from the export layer
- Exit non-zero on failure
- No interactive prompts

Exit Codes:
===========
- 0: Success
- 1: Validation error (bad EDL, invalid segments, unresolvable format)
- 2: Execution error (FFmpeg failed)
- 4: System error (file not found, FFmpeg/ffprobe unavailable)
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from streamcut import __version__
from streamcut.config import EngineConfig, ExportSettings
from streamcut.edl import load_csv_edl, load_xmeml, rows_to_segments
from streamcut.errors import (
    ExecutionFailureError,
    ExecutionUnavailableError,
    FormatUnresolvedError,
    ValidationError,
)
from streamcut.execution import FFmpegAdapter, discover_engine
from streamcut.export import ExportOrchestrator, FormatResolver, merge_files
from streamcut.metadata import MediaInfo, MetadataError, probe_media
from streamcut.segments import Segment, SegmentStore, build_segment

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_EXECUTION = 2
EXIT_SYSTEM = 4


def _fail(message: str, code: int) -> NoReturn:
    print(f"✗ {message}", file=sys.stderr)
    sys.exit(code)


def _engine(args: argparse.Namespace) -> EngineConfig:
    """
    Raises:
        SystemExit(4): No executable FFmpeg
    """
    try:
        return discover_engine(bundled_dir=args.ffmpeg_dir)
    except ExecutionUnavailableError as e:
        _fail(str(e), EXIT_SYSTEM)


def _require_file(path: str, what: str) -> None:
    if not Path(path).is_file():
        _fail(f"{what} not found: {path}", EXIT_SYSTEM)


def _load_segments(args: argparse.Namespace, duration: Optional[float]) -> List[Segment]:
    """
    Segments from --edl, --xmeml or --segment.

    Raises:
        SystemExit(1): Malformed EDL or invalid ranges
        SystemExit(4): EDL file not found
    """
    try:
        if args.edl:
            _require_file(args.edl, "EDL file")
            rows = load_csv_edl(args.edl)
        elif args.xmeml:
            _require_file(args.xmeml, "XML file")
            rows = load_xmeml(args.xmeml, allow_audio=args.allow_audio)
        else:
            return [build_segment(start=start, end=end) for start, end in args.segment or []]

        if duration is None and any(row.end is None for row in rows):
            _fail("EDL has rows without an end time and the source duration is unknown", EXIT_VALIDATION)
        return rows_to_segments(rows, duration)
    except ValidationError as e:
        _fail(str(e), EXIT_VALIDATION)


def _settings_from_args(args: argparse.Namespace) -> ExportSettings:
    return ExportSettings(
        keyframe_cut=not args.normal_cut,
        include_all_streams=args.all_streams,
        strip_audio=args.strip_audio,
        rotation=args.rotation,
        auto_merge=args.merge,
        segments_to_chapters=args.chapters,
        preserve_metadata_on_merge=args.preserve_metadata,
        preserve_mov_data=args.preserve_mov_data,
        invert_segments=args.invert,
        custom_out_dir=args.out_dir,
        output_format=args.format,
        auto_save_project=args.save_project,
    )


def cmd_cut(args: argparse.Namespace) -> NoReturn:
    """
    Export segments of a source file.

    Writes the export result JSON to stdout.

    Exit codes:
        0: Every cut (and the merge, if requested) succeeded
        1: Validation error
        2: Execution error
        4: Source not found, ffprobe failed or FFmpeg unavailable
    """
    _require_file(args.source, "Source file")
    engine_config = _engine(args)

    if args.duration is not None:
        source = MediaInfo(path=args.source, duration=args.duration)
    else:
        try:
            source = probe_media(args.source, engine_config)
        except MetadataError as e:
            _fail(str(e), EXIT_SYSTEM)

    segments = _load_segments(args, source.duration)
    if not segments:
        _fail("No segments given (use --edl, --xmeml or --segment START END)", EXIT_VALIDATION)

    store = SegmentStore()
    try:
        for segment in segments:
            store.add(segment)
    except ValidationError as e:
        _fail(str(e), EXIT_VALIDATION)

    orchestrator = ExportOrchestrator(
        FFmpegAdapter(engine_config),
        FormatResolver.from_engine(engine_config),
    )
    try:
        result = orchestrator.run(store.snapshot(), source, _settings_from_args(args))
    except (ValidationError, FormatUnresolvedError) as e:
        _fail(str(e), EXIT_VALIDATION)
    except MetadataError as e:
        _fail(str(e), EXIT_SYSTEM)

    print(result.model_dump_json(indent=2))

    if result.succeeded:
        print(f"✓ {result.summary()}", file=sys.stderr)
        sys.exit(EXIT_OK)
    _fail(result.summary(), EXIT_EXECUTION)


def cmd_merge(args: argparse.Namespace) -> NoReturn:
    """
    Merge files with identical codec parameters.

    Exit codes:
        0: Merged
        1: Validation error
        2: FFmpeg failed
        4: Input not found or FFmpeg unavailable
    """
    for path in args.paths:
        _require_file(path, "Input file")
    if len(args.paths) < 2:
        _fail("At least two files are needed to merge", EXIT_VALIDATION)

    engine_config = _engine(args)
    settings = ExportSettings(
        include_all_streams=args.all_streams,
        preserve_metadata_on_merge=args.preserve_metadata,
        preserve_mov_data=args.preserve_mov_data,
    )

    try:
        output_path = merge_files(args.paths, settings, FFmpegAdapter(engine_config), sort=args.sort)
    except ValidationError as e:
        _fail(str(e), EXIT_VALIDATION)
    except ExecutionFailureError as e:
        _fail(str(e), EXIT_EXECUTION)

    print(output_path)
    sys.exit(EXIT_OK)


def cmd_format(args: argparse.Namespace) -> NoReturn:
    """
    Print the muxer name that a cut of PATH would be written with.

    Exit codes:
        0: Resolved
        1: No candidate format
        4: File not found, ffprobe failed or unavailable
    """
    _require_file(args.path, "File")
    engine_config = _engine(args)

    try:
        output_format = FormatResolver.from_engine(engine_config).resolve(args.path)
    except FormatUnresolvedError as e:
        _fail(str(e), EXIT_VALIDATION)
    except MetadataError as e:
        _fail(str(e), EXIT_SYSTEM)

    print(output_format)
    sys.exit(EXIT_OK)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="streamcut",
        description="Lossless media cutting and merging with FFmpeg stream copy",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--ffmpeg-dir",
        default=None,
        help="Directory with bundled ffmpeg/ffprobe binaries (default: PATH)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to execute")

    # Cut command
    parser_cut = subparsers.add_parser("cut", help="Export segments of a source file")
    parser_cut.add_argument("source", help="Source media file")
    edl_group = parser_cut.add_mutually_exclusive_group()
    edl_group.add_argument("--edl", help="CSV EDL (start,end,name per row)")
    edl_group.add_argument("--xmeml", help="Final Cut Pro XML (xmeml) EDL")
    edl_group.add_argument(
        "--segment",
        nargs=2,
        type=float,
        action="append",
        metavar=("START", "END"),
        help="Segment in seconds (repeatable)",
    )
    parser_cut.add_argument("--allow-audio", action="store_true", help="Skip audio clip items in xmeml")
    parser_cut.add_argument("--duration", type=float, default=None, help="Source duration (skip ffprobe)")
    parser_cut.add_argument("--normal-cut", action="store_true", help="Frame-accurate seek instead of keyframe cut")
    parser_cut.add_argument("--all-streams", action="store_true", help="Include all streams, not just defaults")
    parser_cut.add_argument("--strip-audio", action="store_true", help="Drop all audio streams")
    parser_cut.add_argument("--rotation", type=int, default=None, help="Rotation metadata for the video stream")
    parser_cut.add_argument("--merge", action="store_true", help="Merge the cuts into one file")
    parser_cut.add_argument("--chapters", action="store_true", help="Create a chapter per segment when merging")
    parser_cut.add_argument("--preserve-metadata", action="store_true", help="Preserve per-stream metadata when merging")
    parser_cut.add_argument("--preserve-mov-data", action="store_true", help="Keep MOV/MP4 metadata tags when merging")
    parser_cut.add_argument("--invert", action="store_true", help="Export everything BETWEEN the segments")
    parser_cut.add_argument("--out-dir", default=None, help="Output directory (default: next to the source)")
    parser_cut.add_argument("--format", default=None, help="Output format (default: detected from the source)")
    parser_cut.add_argument("--save-project", action="store_true", help="Save the segments as a project CSV")
    parser_cut.set_defaults(func=cmd_cut)

    # Merge command
    parser_merge = subparsers.add_parser("merge", help="Merge files with identical codec parameters")
    parser_merge.add_argument("paths", nargs="+", help="Files to merge, in order")
    parser_merge.add_argument("--sort", action="store_true", help="Natural-sort the inputs by name first")
    parser_merge.add_argument("--all-streams", action="store_true", help="Include all streams")
    parser_merge.add_argument("--preserve-metadata", action="store_true", help="Preserve per-stream metadata")
    parser_merge.add_argument("--preserve-mov-data", action="store_true", help="Keep MOV/MP4 metadata tags")
    parser_merge.set_defaults(func=cmd_merge)

    # Format command
    parser_format = subparsers.add_parser("format", help="Print the output format for a file")
    parser_format.add_argument("path", help="Media file")
    parser_format.set_defaults(func=cmd_format)

    return parser


def main(argv: Optional[List[str]] = None) -> NoReturn:
    """
    Main CLI entrypoint.

    Parses arguments and dispatches to subcommands.
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    args.func(args)


if __name__ == "__main__":
    main()
