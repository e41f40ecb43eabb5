"""
Probed media information.

Missing values are explicitly None. No silent guessing.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MediaInfo(BaseModel):
    """What ffprobe told us about a source file."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str

    # Duration in seconds (None if the container does not report one)
    duration: Optional[float] = None

    # Candidate container short names, e.g. ["mov", "mp4", "m4a", "3gp", "3g2", "mj2"]
    format_names: List[str] = Field(default_factory=list)

    # Rotation hint of the first video stream in degrees
    rotation: Optional[int] = None
