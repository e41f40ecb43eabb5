"""
Segment editing endpoints.

HTTP adapter over SegmentStore. Every mutation goes through the store, so
ordering, identity and floor rules are enforced in one place.
"""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict
from typing import List, Literal, Optional
import logging

from streamcut.edl import (
    EdlUnsupportedError,
    EdlValidationError,
    load_csv_edl,
    load_xmeml,
    rows_to_segments,
    save_csv_edl,
)
from streamcut.errors import ValidationError
from streamcut.segments import (
    Segment,
    SegmentNotFoundError,
    SegmentStore,
    build_segment,
    total_duration,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/segments", tags=["segments"])


# ============================================================================
# Request/Response Models
# ============================================================================

class AddSegmentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: float
    end: float
    name: Optional[str] = None
    selected: bool = True


class TrimSegmentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: Optional[float] = None
    end: Optional[float] = None


class SplitSegmentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    at_time: float


class LabelRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None


class MoveSegmentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    delta: int


class ReorderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ids: List[str]


class EdlLoadRequest(BaseModel):
    """Replace all segments with the contents of an EDL file."""

    model_config = ConfigDict(extra="forbid")

    path: str
    format: Literal["csv", "xmeml"] = "csv"
    allow_audio: bool = False


class EdlSaveRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str


class SegmentView(BaseModel):
    """Segment plus its selection state."""

    model_config = ConfigDict(extra="forbid")

    id: str
    start: float
    end: float
    name: Optional[str] = None
    order: int
    duration: float
    selected: bool


class SegmentListResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    segments: List[SegmentView]
    total_duration: float
    selected_duration: float


class OperationResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    success: bool
    message: str
    ids: List[str] = []


# ============================================================================
# Helpers
# ============================================================================

def _store(request: Request) -> SegmentStore:
    return request.app.state.segment_store


def _view(store: SegmentStore, segment: Segment) -> SegmentView:
    return SegmentView(
        id=segment.id,
        start=segment.start,
        end=segment.end,
        name=segment.name,
        order=segment.order,
        duration=segment.duration,
        selected=store.is_selected(segment.id),
    )


def _list(store: SegmentStore) -> SegmentListResponse:
    return SegmentListResponse(
        segments=[_view(store, seg) for seg in store.segments()],
        total_duration=total_duration(store.segments()),
        selected_duration=total_duration(store.selected_segments()),
    )


def _source_duration(request: Request) -> Optional[float]:
    source = request.app.state.source
    return source.duration if source is not None else None


# ============================================================================
# Endpoints
# ============================================================================

@router.get("", response_model=SegmentListResponse)
async def list_segments(request: Request):
    """All segments in order, with selection state and durations."""
    return _list(_store(request))


@router.post("", response_model=SegmentView)
async def add_segment(body: AddSegmentRequest, request: Request):
    """
    Append a segment.

    Raises:
        400: Invalid range
    """
    store = _store(request)
    try:
        segment = store.add(build_segment(start=body.start, end=body.end, name=body.name), selected=body.selected)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _view(store, segment)


@router.put("/order", response_model=SegmentListResponse)
async def reorder_segments(body: ReorderRequest, request: Request):
    """
    Apply a complete new order.

    Raises:
        400: The ids are not a permutation of the current segments
    """
    store = _store(request)
    if not store.set_orders(body.ids):
        raise HTTPException(
            status_code=400,
            detail="Reorder rejected: ids must be exactly a permutation of the current segment ids",
        )
    return _list(store)


@router.post("/selection/all", response_model=SegmentListResponse)
async def select_all(request: Request):
    store = _store(request)
    store.select_all()
    return _list(store)


@router.post("/selection/none", response_model=SegmentListResponse)
async def deselect_all(request: Request):
    store = _store(request)
    store.deselect_all()
    return _list(store)


@router.post("/selection/label", response_model=OperationResponse)
async def select_by_label(body: LabelRequest, request: Request):
    """Select exactly the segments carrying this label."""
    selected = _store(request).select_by_label(body.name)
    return OperationResponse(
        success=True,
        message=f"Selected {len(selected)} segment(s)",
        ids=selected,
    )


@router.delete("/selected", response_model=OperationResponse)
async def remove_selected(request: Request):
    """Remove every selected segment, keeping at least the store floor."""
    removed = _store(request).remove_selected()
    return OperationResponse(
        success=bool(removed),
        message=f"Removed {len(removed)} segment(s)",
        ids=removed,
    )


@router.post("/edl/load", response_model=SegmentListResponse)
async def load_edl(body: EdlLoadRequest, request: Request):
    """
    Replace all segments with the rows of an EDL file.

    Blank end values need a loaded source (its duration fills them in).

    Raises:
        400: Malformed EDL or invalid ranges
        404: File not found
        422: Unsupported EDL feature
    """
    try:
        if body.format == "xmeml":
            rows = load_xmeml(body.path, allow_audio=body.allow_audio)
        else:
            rows = load_csv_edl(body.path)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"EDL file not found: {body.path}")
    except EdlUnsupportedError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except EdlValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    duration = _source_duration(request)
    if duration is None and any(row.end is None for row in rows):
        raise HTTPException(
            status_code=400,
            detail="EDL has rows without an end time; load a source first so its duration can be used",
        )

    try:
        segments = rows_to_segments(rows, duration)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store = SegmentStore(min_segments=_store(request).min_segments)
    for segment in segments:
        store.add(segment)
    request.app.state.segment_store = store

    logger.info(f"[Segments] Loaded {len(segments)} segment(s) from {body.path}")
    return _list(store)


@router.post("/edl/save", response_model=OperationResponse)
async def save_edl(body: EdlSaveRequest, request: Request):
    """Write all segments, in order, as a CSV EDL."""
    store = _store(request)
    try:
        save_csv_edl(body.path, store.segments())
    except OSError as e:
        logger.error(f"[Segments] Failed to save EDL: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save EDL: {e}")
    return OperationResponse(success=True, message=f"Saved {len(store)} segment(s) to {body.path}")


@router.get("/{segment_id}", response_model=SegmentView)
async def get_segment(segment_id: str, request: Request):
    store = _store(request)
    try:
        return _view(store, store.get(segment_id))
    except SegmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/{segment_id}", response_model=SegmentView)
async def trim_segment(segment_id: str, body: TrimSegmentRequest, request: Request):
    """
    Move the start and/or end of a segment.

    Raises:
        400: Resulting range is invalid
        404: Segment not found
    """
    store = _store(request)
    try:
        return _view(store, store.trim(segment_id, start=body.start, end=body.end))
    except SegmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{segment_id}", response_model=OperationResponse)
async def remove_segment(segment_id: str, request: Request):
    """
    Remove one segment.

    Removing the last remaining segment is refused (success=False).
    """
    store = _store(request)
    try:
        removed = store.remove(segment_id)
    except SegmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if not removed:
        return OperationResponse(
            success=False,
            message=f"At least {store.min_segments} segment(s) must remain",
        )
    return OperationResponse(success=True, message=f"Removed {segment_id}", ids=[segment_id])


@router.post("/{segment_id}/split", response_model=List[SegmentView])
async def split_segment(segment_id: str, body: SplitSegmentRequest, request: Request):
    """
    Split a segment at a point strictly inside it.

    Returns:
        The two new segments (fresh ids)
    """
    store = _store(request)
    try:
        halves = store.split(segment_id, body.at_time)
    except SegmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [_view(store, half) for half in halves]


@router.post("/{segment_id}/label", response_model=SegmentView)
async def label_segment(segment_id: str, body: LabelRequest, request: Request):
    store = _store(request)
    try:
        return _view(store, store.label(segment_id, body.name))
    except SegmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{segment_id}/move", response_model=SegmentListResponse)
async def move_segment(segment_id: str, body: MoveSegmentRequest, request: Request):
    """Move a segment by delta positions (clamped to the list bounds)."""
    store = _store(request)
    try:
        store.update_order(segment_id, body.delta)
    except SegmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _list(store)


@router.post("/{segment_id}/toggle", response_model=SegmentView)
async def toggle_segment(segment_id: str, request: Request):
    store = _store(request)
    try:
        store.toggle_selected(segment_id)
        return _view(store, store.get(segment_id))
    except SegmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{segment_id}/select-only", response_model=SegmentListResponse)
async def select_only(segment_id: str, request: Request):
    store = _store(request)
    try:
        store.select_single(segment_id)
    except SegmentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _list(store)
