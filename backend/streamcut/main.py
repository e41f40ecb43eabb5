"""
streamcut backend service: segment editing and export.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from streamcut import __version__
from streamcut.config import DEFAULT_EXPORT_SETTINGS, EngineConfig, ExportSettings
from streamcut.export import ExportOrchestrator
from streamcut.routes import export, segments, source
from streamcut.routes.export import ExportTracker
from streamcut.segments import SegmentStore


def create_app(
    engine_config: Optional[EngineConfig] = None,
    orchestrator: Optional[ExportOrchestrator] = None,
    export_settings: ExportSettings = DEFAULT_EXPORT_SETTINGS,
) -> FastAPI:
    """
    Build the FastAPI app.

    The engine is discovered lazily on first use unless `engine_config` or
    `orchestrator` is given (tests pass a fake-adapter orchestrator).
    """
    app = FastAPI(title="streamcut", version=__version__)

    # CORS middleware for frontend access
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],  # Vite dev server
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.segment_store = SegmentStore()
    app.state.source = None
    app.state.export_settings = export_settings
    app.state.engine_config = engine_config
    app.state.orchestrator = orchestrator
    app.state.export_tracker = ExportTracker()

    app.include_router(source.router)
    app.include_router(segments.router)
    app.include_router(export.router)

    @app.get("/")
    async def root():
        return {"service": "streamcut", "status": "running", "version": __version__}

    return app


app = create_app()
