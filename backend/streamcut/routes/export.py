"""
Export endpoints.

Exports run in a background thread. Only one export may run at a time;
a second start request is rejected with 409 while the first is active.
Clients poll /export/status.
"""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional
import logging
import threading

from streamcut.config import ExportSettings
from streamcut.errors import ExportBusyError, StreamcutError, ValidationError
from streamcut.execution import FFmpegAdapter
from streamcut.export import (
    ExportOrchestrator,
    ExportProgress,
    ExportResult,
    ExportState,
    FormatResolver,
)
from streamcut.export.orchestrator import plan_segments
from streamcut.export.state import ExportFailure
from streamcut.metadata import MediaInfo
from streamcut.segments import SegmentSnapshot

from .source import get_engine_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/export", tags=["export"])


class ExportTracker:
    """
    Owns the background export thread and its latest progress/result.
    """

    def __init__(self):
        self.thread: Optional[threading.Thread] = None
        self.progress: Optional[ExportProgress] = None
        self.result: Optional[ExportResult] = None
        self.error: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(
        self,
        orchestrator: ExportOrchestrator,
        snapshot: SegmentSnapshot,
        source: MediaInfo,
        settings: ExportSettings,
    ) -> None:
        """
        Run the export on a new background thread.

        Raises:
            ExportBusyError: If the previous export thread is still alive
        """
        with self._lock:
            if self.busy:
                raise ExportBusyError()
            self.progress = None
            self.result = None
            self.error = None
            self.thread = threading.Thread(
                target=self._run,
                args=(orchestrator, snapshot, source, settings),
                name="streamcut-export",
                daemon=True,
            )
            self.thread.start()

    def _run(
        self,
        orchestrator: ExportOrchestrator,
        snapshot: SegmentSnapshot,
        source: MediaInfo,
        settings: ExportSettings,
    ) -> None:
        try:
            self.result = orchestrator.run(snapshot, source, settings, on_progress=self._on_progress)
        except StreamcutError as e:
            logger.error(f"[Export] Export did not start: {e}")
            self.error = str(e)

    def _on_progress(self, progress: ExportProgress) -> None:
        self.progress = progress


# ============================================================================
# Request/Response Models
# ============================================================================

class ExportStatusResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    state: ExportState
    running: bool
    current: int = 0
    total: int = 0
    fraction: float = 0.0
    overall: float = 0.0
    failure: Optional[ExportFailure] = None
    error: Optional[str] = None
    output_paths: List[str] = []
    merged_path: Optional[str] = None
    project_path: Optional[str] = None


# ============================================================================
# Helpers
# ============================================================================

def _orchestrator(request: Request) -> ExportOrchestrator:
    orchestrator = request.app.state.orchestrator
    if orchestrator is None:
        engine_config = get_engine_config(request)
        orchestrator = ExportOrchestrator(
            FFmpegAdapter(engine_config),
            FormatResolver.from_engine(engine_config),
        )
        request.app.state.orchestrator = orchestrator
    return orchestrator


def _status(request: Request) -> ExportStatusResponse:
    tracker: ExportTracker = request.app.state.export_tracker
    orchestrator = request.app.state.orchestrator

    status = orchestrator.status if orchestrator is not None else None
    response = ExportStatusResponse(
        state=status.state if status else ExportState.IDLE,
        running=orchestrator.running if orchestrator is not None else False,
        current=status.current if status else 0,
        total=status.total if status else 0,
        failure=status.failure if status else None,
        error=tracker.error,
    )
    if tracker.progress is not None:
        response.fraction = tracker.progress.fraction
        response.overall = tracker.progress.overall
    if tracker.result is not None:
        response.output_paths = list(tracker.result.output_paths)
        response.merged_path = tracker.result.merged_path
        response.project_path = tracker.result.project_path
    return response


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/settings")
async def get_export_settings(request: Request) -> Dict[str, Any]:
    return request.app.state.export_settings.to_dict()


@router.put("/settings")
async def update_export_settings(body: Dict[str, Any], request: Request) -> Dict[str, Any]:
    """
    Replace the export settings.

    Omitted keys fall back to their defaults.

    Raises:
        400: Unknown setting keys or invalid values
    """
    try:
        settings = ExportSettings.from_dict(body)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid export settings: {e}")
    request.app.state.export_settings = settings
    return settings.to_dict()


@router.post("/start", response_model=ExportStatusResponse)
async def start_export(request: Request):
    """
    Start exporting the current segments of the loaded source.

    The segment store is snapshotted now; later edits do not affect this export.

    Raises:
        400: No source loaded or the segments are invalid
        409: An export is already running
        503: No FFmpeg available
    """
    source = request.app.state.source
    if source is None:
        raise HTTPException(status_code=400, detail="No source loaded")

    orchestrator = _orchestrator(request)
    tracker: ExportTracker = request.app.state.export_tracker
    if orchestrator.running or tracker.busy:
        raise HTTPException(status_code=409, detail="An export is already running")

    settings: ExportSettings = request.app.state.export_settings
    snapshot = request.app.state.segment_store.snapshot()

    # Fail before spawning the thread so the client gets the reason directly
    try:
        plan_segments(snapshot, source, settings)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        tracker.start(orchestrator, snapshot, source, settings)
    except ExportBusyError:
        raise HTTPException(status_code=409, detail="An export is already running")
    logger.info(f"[Export] Started export of {source.path}")
    return _status(request)


@router.get("/status", response_model=ExportStatusResponse)
async def get_export_status(request: Request):
    return _status(request)


@router.post("/cancel", response_model=ExportStatusResponse)
async def cancel_export(request: Request):
    """
    Cancel the running export. Partial outputs are kept.

    Raises:
        409: No export is running
    """
    orchestrator = request.app.state.orchestrator
    if orchestrator is None or not orchestrator.running:
        raise HTTPException(status_code=409, detail="No export is running")
    orchestrator.cancel()
    return _status(request)
