"""
EDL row model.

A row may leave start or end unspecified (None). Blank values inherit the
contextual boundary when rows become segments: start -> 0, end -> source
duration.
"""

from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from ..segments.models import Segment, build_segment, validate_segment


class EdlRow(BaseModel):
    """One start/end/name entry from an EDL file."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    start: Optional[float] = None
    end: Optional[float] = None
    name: Optional[str] = None


def rows_to_segments(rows: Sequence[EdlRow], duration: float) -> List[Segment]:
    """
    Turn loaded rows into validated segments.

    Args:
        rows: Rows in file order
        duration: Source duration used for blank end values

    Raises:
        SegmentValidationError: If a resulting range is empty or inverted
    """
    segments = []
    for index, row in enumerate(rows):
        segment = build_segment(
            start=0.0 if row.start is None else row.start,
            end=duration if row.end is None else row.end,
            name=row.name or None,
            order=index,
        )
        validate_segment(segment)
        segments.append(segment)
    return segments
