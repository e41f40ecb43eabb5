"""
Source media endpoints.

The loaded source supplies the path and duration that exports and EDL
loading work against.
"""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
import logging
from pathlib import Path

from streamcut.config import EngineConfig
from streamcut.errors import ExecutionUnavailableError
from streamcut.execution import discover_engine
from streamcut.metadata import FFProbeNotFoundError, MediaInfo, MediaProbeError, probe_media

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/source", tags=["source"])


class LoadSourceRequest(BaseModel):
    """
    Load a source file.

    When duration is omitted the file is probed with ffprobe.
    """

    model_config = ConfigDict(extra="forbid")

    path: str
    duration: Optional[float] = Field(default=None, gt=0)


def get_engine_config(request: Request) -> EngineConfig:
    """
    Resolve the engine once per app and cache it on app.state.

    Raises:
        503: No executable FFmpeg found
    """
    engine_config = request.app.state.engine_config
    if engine_config is None:
        try:
            engine_config = discover_engine()
        except ExecutionUnavailableError as e:
            raise HTTPException(status_code=503, detail=str(e))
        request.app.state.engine_config = engine_config
    return engine_config


@router.post("", response_model=MediaInfo)
async def load_source(body: LoadSourceRequest, request: Request):
    """
    Load a source file. An empty segment list gets one segment covering
    the whole source.

    Raises:
        404: Source file not found
        400: ffprobe could not read the file
        503: No ffprobe/FFmpeg available
    """
    if not Path(body.path).is_file():
        raise HTTPException(status_code=404, detail=f"Source file not found: {body.path}")

    if body.duration is not None:
        info = MediaInfo(path=body.path, duration=body.duration)
    else:
        try:
            info = probe_media(body.path, get_engine_config(request))
        except FFProbeNotFoundError as e:
            raise HTTPException(status_code=503, detail=str(e))
        except MediaProbeError as e:
            raise HTTPException(status_code=400, detail=str(e))

    request.app.state.source = info
    logger.info(f"[Source] Loaded {info.path} (duration={info.duration})")

    # Keep mode never runs with zero segments
    store = request.app.state.segment_store
    if len(store) == 0 and info.duration:
        store.add_range(0, info.duration)
        logger.info(f"[Source] Seeded full-range segment [0, {info.duration}]")
    return info


@router.get("", response_model=MediaInfo)
async def get_source(request: Request):
    source = request.app.state.source
    if source is None:
        raise HTTPException(status_code=404, detail="No source loaded")
    return source
