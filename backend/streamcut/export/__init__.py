"""
Export pipeline: cut planning, format resolution, merge and orchestration.
"""

from .commands import CutJob, build_cut_args, build_cut_job
from .formats import FormatResolver, determine_output_format, map_format
from .merge import (
    Chapter,
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
from .orchestrator import ExportOrchestrator, ExportProgress, ExportResult
from .state import (
    ExportFailure,
    ExportState,
    ExportStatus,
    InvalidStateTransitionError,
    validate_export_transition,
)

__all__ = [
    "CutJob",
    "build_cut_job",
    "build_cut_args",
    "FormatResolver",
    "determine_output_format",
    "map_format",
    "Chapter",
    "ChapterSpec",
    "MergeCoordinator",
    "MergeManifest",
    "build_chapters",
    "build_concat_manifest",
    "build_merge_args",
    "merge_files",
    "render_ffmetadata",
    "sort_paths",
    "ExportOrchestrator",
    "ExportProgress",
    "ExportResult",
    "ExportFailure",
    "ExportState",
    "ExportStatus",
    "InvalidStateTransitionError",
    "validate_export_transition",
]
