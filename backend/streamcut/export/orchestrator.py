"""
Export orchestration.

Sequences CommandBuilder → ExecutionAdapter → ProgressParser for every
segment, then optionally MergeCoordinator.

Design rules:
- Export works on an immutable SegmentSnapshot, never on the live store
- Cuts run strictly one after another, in snapshot order, never in parallel
- Fail fast: the first failed cut skips the remaining cuts AND the merge
- Merge starts only after every cut succeeded
- Partial outputs are left on disk; the caller decides what to delete
- One run at a time per orchestrator
"""

import logging
import os
import threading
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import ExportSettings
from ..edl.csv_edl import save_csv_edl
from ..errors import (
    ExecutionFailureError,
    ExportBusyError,
    FormatUnresolvedError,
    ValidationError,
)
from ..execution.adapter import ExecutionAdapter
from ..execution.progress import ProgressParser
from ..metadata.errors import MetadataError
from ..metadata.models import MediaInfo
from ..segments.models import Segment, SegmentSnapshot, validate_segment
from ..segments.ranges import invert_segments
from .commands import CutJob, build_cut_args, build_cut_job
from .formats import FormatResolver
from .merge import ChapterSpec, MergeCoordinator, MergeManifest
from .naming import project_file_path
from .state import ExportFailure, ExportState, ExportStatus

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Cancelled by user"


def _cancelled(stage: ExportState) -> ExportFailure:
    return ExportFailure(stage=stage, message=CANCELLED_MESSAGE)


class ExportProgress(BaseModel):
    """Progress of the running stage."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    stage: ExportState
    fraction: float  # 0.0-1.0 within the current process
    segment_number: int = 0  # 1-based, 0 while merging
    total: int = 0

    @property
    def overall(self) -> float:
        """Fraction of all cuts done (cutting stage only)."""
        if self.stage != ExportState.CUTTING or self.total <= 0:
            return self.fraction
        return (self.segment_number - 1 + self.fraction) / self.total


class ExportResult(BaseModel):
    """
    Outcome of one export run.

    On failure, `output_paths` still lists the cuts that completed before
    the failing one. Those files remain on disk.
    """

    model_config = ConfigDict(extra="forbid")

    status: ExportStatus
    source_path: str
    output_format: Optional[str] = None
    jobs: List[CutJob] = Field(default_factory=list)
    output_paths: List[str] = Field(default_factory=list)
    merged_path: Optional[str] = None
    project_path: Optional[str] = None
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status.state == ExportState.DONE

    @property
    def failure(self) -> Optional[ExportFailure]:
        return self.status.failure

    def summary(self) -> str:
        """Human-readable summary."""
        if self.succeeded:
            target = self.merged_path or ", ".join(self.output_paths)
            return f"DONE: {self.source_path} → {target}"
        failure = self.status.failure
        where = failure.stage.value if failure else "unknown"
        if failure and failure.segment_number is not None:
            where += f" segment {failure.segment_number}"
        reason = failure.message if failure else ""
        return f"FAILED ({where}): {self.source_path} - {reason}"


def plan_segments(
    snapshot: SegmentSnapshot,
    source: MediaInfo,
    settings: ExportSettings,
) -> List[Segment]:
    """
    Segments to cut, in export order.

    Keep mode: the selected segments. Remove mode: the gaps between ALL
    segments over the source duration.

    Raises:
        ValidationError: If nothing would be exported or a segment is invalid
    """
    if settings.invert_segments:
        if source.duration is None:
            raise ValidationError("Remove mode needs the source duration, which is unknown")
        for segment in snapshot.segments:
            validate_segment(segment, source.duration)
        segments = invert_segments(snapshot.segments, source.duration)
    else:
        segments = snapshot.selected_segments()

    if not segments:
        raise ValidationError("No segments to export")

    for segment in segments:
        validate_segment(segment, source.duration)
    return segments


def transfer_timestamps(source_path: str, output_path: str) -> None:
    """Copy access/modification times from the source onto an output."""
    try:
        stat = os.stat(source_path)
        os.utime(output_path, (stat.st_atime, stat.st_mtime))
    except OSError as e:
        logger.warning(f"[Export] Could not transfer timestamps to {output_path}: {e}")


def save_project(
    snapshot: SegmentSnapshot,
    source_path: str,
    custom_out_dir: Optional[str] = None,
) -> Optional[str]:
    """
    Write the snapshot's segments as a project CSV next to the outputs.

    Returns:
        The project path, or None if it could not be written
    """
    path = project_file_path(source_path, custom_out_dir)
    try:
        save_csv_edl(path, snapshot.segments)
    except OSError as e:
        logger.warning(f"[Export] Could not save project file {path}: {e}")
        return None
    logger.info(f"[Export] Saved project to {path}")
    return path


class ExportOrchestrator:
    """
    Runs exports as an explicit state machine.

    Usage:
        orchestrator = ExportOrchestrator(FFmpegAdapter(config), FormatResolver.from_engine(config))
        result = orchestrator.run(store.snapshot(), media_info, settings)
        if not result.succeeded:
            report(result.failure)
    """

    def __init__(
        self,
        adapter: ExecutionAdapter,
        format_resolver: Optional[FormatResolver] = None,
    ):
        self.adapter = adapter
        self.format_resolver = format_resolver
        self.status = ExportStatus()
        self._busy = threading.Lock()
        self._cancel_requested = False

    @property
    def running(self) -> bool:
        return self._busy.locked()

    def cancel(self) -> None:
        """
        Cancel the running export.

        The active process is terminated and the export ends FAILED.
        Partial output is NOT deleted.
        """
        if not self.running:
            return
        logger.info("[Export] Cancellation requested")
        self._cancel_requested = True
        self.adapter.cancel()

    def run(
        self,
        snapshot: SegmentSnapshot,
        source: MediaInfo,
        settings: ExportSettings,
        on_progress: Optional[Callable[[ExportProgress], None]] = None,
        on_state: Optional[Callable[[ExportStatus], None]] = None,
    ) -> ExportResult:
        """
        Export a snapshot.

        Returns:
            ExportResult (state DONE or FAILED)

        Raises:
            ExportBusyError: If another export is running on this orchestrator
            ValidationError: Before any process is spawned, on invalid input
            FormatUnresolvedError: Before any command is built
            MetadataError: If ffprobe fails while resolving the format
        """
        if not self._busy.acquire(blocking=False):
            raise ExportBusyError()
        try:
            self._cancel_requested = False
            return self._run(snapshot, source, settings, on_progress, on_state)
        finally:
            self._busy.release()

    # ------------------------------------------------------------------

    def _set_status(
        self,
        status: ExportStatus,
        on_state: Optional[Callable[[ExportStatus], None]],
    ) -> None:
        self.status = status
        logger.debug(f"[Export] State: {status.state.value} ({status.current}/{status.total})")
        if on_state:
            on_state(status)

    def _fail(
        self,
        result: ExportResult,
        failure: ExportFailure,
        on_state: Optional[Callable[[ExportStatus], None]],
    ) -> ExportResult:
        logger.error(f"[Export] Failed at {failure.stage.value}: {failure.message}")
        result.status = self.status.advance(ExportState.FAILED, failure=failure)
        result.completed_at = datetime.now()
        self._set_status(result.status, on_state)
        return result

    def _run(
        self,
        snapshot: SegmentSnapshot,
        source: MediaInfo,
        settings: ExportSettings,
        on_progress: Optional[Callable[[ExportProgress], None]],
        on_state: Optional[Callable[[ExportStatus], None]],
    ) -> ExportResult:
        self._set_status(ExportStatus(), on_state)
        result = ExportResult(status=self.status, source_path=source.path)

        # IDLE: validation happens before anything is spawned
        try:
            segments = plan_segments(snapshot, source, settings)
        except ValidationError as e:
            self._fail(result, ExportFailure(stage=ExportState.IDLE, message=str(e)), on_state)
            raise

        total = len(segments)
        logger.info(f"[Export] Exporting {total} segment(s) of {source.path}")

        if settings.auto_save_project:
            result.project_path = save_project(snapshot, source.path, settings.custom_out_dir)

        # RESOLVING
        self._set_status(self.status.advance(ExportState.RESOLVING, total=total), on_state)
        try:
            output_format = self._resolve_format(source.path, settings)
        except (FormatUnresolvedError, MetadataError) as e:
            self._fail(result, ExportFailure(stage=ExportState.RESOLVING, message=str(e)), on_state)
            raise
        result.output_format = output_format

        if self._cancel_requested:
            return self._fail(result, _cancelled(ExportState.RESOLVING), on_state)

        # CUTTING
        for number, segment in enumerate(segments, start=1):
            self._set_status(self.status.advance(ExportState.CUTTING, current=number), on_state)

            job = build_cut_job(segment, source.path, source.duration, output_format, settings)
            result.jobs.append(job)

            try:
                self._run_cut(job, number, total, on_progress)
            except ExecutionFailureError as e:
                failure = ExportFailure(
                    stage=ExportState.CUTTING,
                    message=e.reason,
                    segment_number=number,
                    segment_id=segment.id,
                    exit_code=e.exit_code,
                )
                return self._fail(result, failure, on_state)

            transfer_timestamps(source.path, job.output_path)
            result.output_paths.append(job.output_path)

        # MERGING
        if settings.auto_merge and len(result.output_paths) > 1:
            if self._cancel_requested:
                return self._fail(result, _cancelled(ExportState.MERGING), on_state)
            self._set_status(self.status.advance(ExportState.MERGING), on_state)
            manifest = MergeManifest.from_settings(
                result.output_paths,
                settings,
                chapters=[ChapterSpec(duration=seg.duration, name=seg.name) for seg in segments],
                output_format=output_format,
            )

            def report_merge(fraction: float) -> None:
                if on_progress:
                    on_progress(ExportProgress(stage=ExportState.MERGING, fraction=fraction))

            try:
                result.merged_path = MergeCoordinator(self.adapter).merge(manifest, on_progress=report_merge)
            except ExecutionFailureError as e:
                failure = ExportFailure(
                    stage=ExportState.MERGING,
                    message=e.reason,
                    exit_code=e.exit_code,
                )
                return self._fail(result, failure, on_state)

            if self._cancel_requested:
                return self._fail(result, _cancelled(ExportState.MERGING), on_state)

        # DONE
        result.status = self.status.advance(ExportState.DONE)
        result.completed_at = datetime.now()
        self._set_status(result.status, on_state)
        logger.info(f"[Export] {result.summary()}")
        return result

    def _resolve_format(self, source_path: str, settings: ExportSettings) -> str:
        if settings.output_format:
            return settings.output_format
        if self.format_resolver is None:
            raise FormatUnresolvedError(source_path, "no output format given and no format resolver configured")
        return self.format_resolver.resolve(source_path)

    def _run_cut(
        self,
        job: CutJob,
        number: int,
        total: int,
        on_progress: Optional[Callable[[ExportProgress], None]],
    ) -> None:
        """
        Run one cut and wait for the process to exit.

        Raises:
            ExecutionFailureError: On non-zero exit, adapter error or cancellation
        """
        def report(fraction: float) -> None:
            if on_progress:
                on_progress(ExportProgress(
                    stage=ExportState.CUTTING,
                    fraction=fraction,
                    segment_number=number,
                    total=total,
                ))

        logger.info(f"[Export] Cutting segment {number}/{total}: {job.start_time} → {job.end_time}")
        parser = ProgressParser(job.cut_duration, report)
        parser.start()

        if self._cancel_requested:
            raise ExecutionFailureError("cutting", CANCELLED_MESSAGE, segment_number=number)

        try:
            outcome = self.adapter.run(build_cut_args(job), on_stderr_line=parser.feed)
        except ExecutionFailureError as e:
            raise ExecutionFailureError("cutting", e.reason, segment_number=number) from e

        if self._cancel_requested:
            raise ExecutionFailureError("cutting", CANCELLED_MESSAGE, segment_number=number)

        if not outcome.succeeded:
            raise ExecutionFailureError(
                "cutting",
                outcome.failure_reason(),
                segment_number=number,
                exit_code=outcome.exit_code,
                stderr_tail="\n".join(outcome.stderr_tail),
            )
