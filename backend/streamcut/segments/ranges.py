"""
Range helpers over segment lists.

"Remove" mode exports what lies BETWEEN the segments instead of the
segments themselves. The gaps are computed here.
"""

from typing import List, Sequence

from .errors import SegmentValidationError
from .models import Segment


def total_duration(segments: Sequence[Segment]) -> float:
    """Sum of segment durations in seconds."""
    return sum(seg.end - seg.start for seg in segments)


def invert_segments(segments: Sequence[Segment], duration: float) -> List[Segment]:
    """
    Compute the complement of `segments` over [0, duration].

    Args:
        segments: Segments to remove (any order)
        duration: Source duration in seconds

    Returns:
        Gap segments in time order, with order set to their index

    Raises:
        SegmentValidationError: If any two segments overlap
    """
    ordered = sorted(segments, key=lambda seg: (seg.start, seg.end))

    for previous, current in zip(ordered, ordered[1:]):
        if current.start < previous.end:
            raise SegmentValidationError(
                "Segments overlap; make sure there are no overlapping segments "
                f"before exporting in remove mode ({previous.id} and {current.id})."
            )

    gaps: List[Segment] = []
    cursor = 0.0
    for seg in ordered:
        if seg.start > cursor:
            gaps.append(Segment(start=cursor, end=seg.start, order=len(gaps)))
        cursor = max(cursor, seg.end)
    if cursor < duration:
        gaps.append(Segment(start=cursor, end=duration, order=len(gaps)))

    return gaps
