"""
Segment data models.

A Segment is a time range [start, end) over the source file.
Segments are identified by a stable uuid token, NEVER by their position.

Models are frozen. The store replaces a segment with an updated copy
instead of mutating it, so snapshots handed to an export can never change
underneath it.
"""

import uuid
from typing import FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import SegmentValidationError


class Segment(BaseModel):
    """
    A single user-defined segment.

    `order` is owned by the SegmentStore and always forms a contiguous
    permutation of 0..n-1 across the store.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Identity
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    # Range in seconds
    start: float = Field(ge=0)
    end: float = Field(ge=0)

    # Optional label
    name: Optional[str] = None

    # Position in the store
    order: int = 0

    @property
    def duration(self) -> float:
        """Segment length in seconds."""
        return self.end - self.start


def build_segment(**fields) -> Segment:
    """
    Construct a Segment, reporting bad field values as SegmentValidationError.

    Raises:
        SegmentValidationError: If a time is negative or not a number
    """
    try:
        return Segment(**fields)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise SegmentValidationError(f"Invalid segment: {problems}") from e


def validate_segment(segment: Segment, source_duration: Optional[float] = None) -> None:
    """
    Check the range invariants of a segment.

    Args:
        segment: Segment to check
        source_duration: If given, the segment must also end within the source

    Raises:
        SegmentValidationError: If start >= end or the range exceeds the source
    """
    if segment.start >= segment.end:
        raise SegmentValidationError(
            f"Segment {segment.id} has start ({segment.start}) >= end ({segment.end}). "
            f"Segments must have a positive duration."
        )
    if source_duration is not None and segment.end > source_duration:
        raise SegmentValidationError(
            f"Segment {segment.id} ends at {segment.end}s, "
            f"past the end of the source ({source_duration}s)."
        )


class SegmentSnapshot(BaseModel):
    """
    Immutable copy of the store taken at export start.

    Edits made to the store while an export runs never reach the snapshot.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    segments: Tuple[Segment, ...] = ()
    selected_ids: FrozenSet[str] = frozenset()

    def selected_segments(self) -> List[Segment]:
        """Selected segments in export order."""
        return [seg for seg in self.segments if seg.id in self.selected_ids]
