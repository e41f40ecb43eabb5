"""
FFmpeg progress parsing.

FFmpeg writes progress to stderr in this format:
    frame=   24 fps= 12 q=-1.0 size=     256kB time=00:00:01.00 bitrate=2097.2kbits/s

The final line uses Lsize= instead of size=.

We parse:
- time=HH:MM:SS.ff -> current position in the cut
- divide by the planned cut duration -> fraction 0.0-1.0

Any other line shape is ignored. A malformed progress line is logged and
skipped; it must never abort a long-running job.
"""

import logging
import re
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from ..errors import ProgressParseWarning

logger = logging.getLogger(__name__)


# frame= fps= q= size=|Lsize= time= followed by whitespace
PROGRESS_PATTERN = re.compile(
    r"frame=\s*(?P<frame>\S+)\s+"
    r"fps=\s*(?P<fps>\S+)\s+"
    r"q=\s*(?P<q>\S+)\s+"
    r"(?:size|Lsize)=\s*(?P<size>\S+)\s+"
    r"time=\s*(?P<time>\S+)\s+"
)

# HH:MM:SS.ff (hours may exceed two digits on very long sources)
TIME_PATTERN = re.compile(r"^(?P<hours>\d+):(?P<minutes>\d{2}):(?P<seconds>\d{2}(?:\.\d+)?)$")


class ProgressEvent(BaseModel):
    """One parsed progress record."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    frame: str
    fps: str
    q: str
    size: str
    time: str
    time_seconds: float


def parse_timestamp(value: str) -> Optional[float]:
    """
    Convert HH:MM:SS.ff to seconds.

    Returns:
        Seconds, or None if the token is not a timestamp (e.g. "N/A")
    """
    match = TIME_PATTERN.match(value)
    if not match:
        return None
    return (
        int(match.group("hours")) * 3600
        + int(match.group("minutes")) * 60
        + float(match.group("seconds"))
    )


def parse_progress_line(line: str) -> Optional[ProgressEvent]:
    """
    Parse a single stderr line.

    Pure function: no state, no callbacks. Unparseable times are logged
    as ProgressParseWarning and yield None.

    Args:
        line: One line of FFmpeg stderr

    Returns:
        ProgressEvent if the line is a progress record, None otherwise
    """
    match = PROGRESS_PATTERN.search(line)
    if not match:
        return None

    time_token = match.group("time")
    time_seconds = parse_timestamp(time_token)
    if time_seconds is None:
        warning = ProgressParseWarning(
            f"Failed to parse ffmpeg progress time {time_token!r} in line: {line.strip()}"
        )
        logger.warning(f"[Progress] {type(warning).__name__}: {warning}")
        return None

    return ProgressEvent(
        frame=match.group("frame"),
        fps=match.group("fps"),
        q=match.group("q"),
        size=match.group("size"),
        time=time_token,
        time_seconds=time_seconds,
    )


class ProgressParser:
    """
    Turn a stderr line stream into progress fractions.

    Usage:
        parser = ProgressParser(cut_duration=12.5, on_progress=report)
        parser.start()              # emits 0.0
        for line in ffmpeg_stderr:
            parser.feed(line)
    """

    def __init__(
        self,
        cut_duration: float,
        on_progress: Optional[Callable[[float], None]] = None,
    ):
        """
        Args:
            cut_duration: Planned duration of the cut in seconds
            on_progress: Callback receiving a fraction between 0.0 and 1.0
        """
        self.cut_duration = cut_duration
        self.on_progress = on_progress
        self.last_fraction = 0.0

    def start(self) -> None:
        """Emit the synthetic zero-progress event before the process starts."""
        self._emit(0.0)

    def feed(self, line: str) -> Optional[float]:
        """
        Consume one stderr line.

        Returns:
            The emitted fraction, or None if the line carried no progress
        """
        try:
            event = parse_progress_line(line)
        except Exception as e:
            logger.warning(f"[Progress] Failed to parse ffmpeg progress line: {e}")
            return None

        if event is None:
            return None

        if self.cut_duration > 0:
            fraction = max(0.0, min(1.0, event.time_seconds / self.cut_duration))
        else:
            fraction = 0.0

        self._emit(fraction)
        return fraction

    def _emit(self, fraction: float) -> None:
        self.last_fraction = fraction
        if self.on_progress:
            self.on_progress(fraction)
