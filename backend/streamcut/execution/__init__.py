"""
Execution layer: FFmpeg discovery, process adapter and progress parsing.

FFmpeg is the only execution engine. Every process is a stream copy.
"""

from .adapter import ExecutionAdapter, FFmpegAdapter, ProcessOutcome
from .discovery import discover_engine
from .progress import ProgressEvent, ProgressParser, parse_progress_line

__all__ = [
    "ExecutionAdapter",
    "FFmpegAdapter",
    "ProcessOutcome",
    "discover_engine",
    "ProgressEvent",
    "ProgressParser",
    "parse_progress_line",
]
