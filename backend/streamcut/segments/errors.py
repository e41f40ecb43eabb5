"""
Segment-specific error types.

All segment errors are validation errors: they are raised before any
engine process is spawned.
"""

from ..errors import ValidationError


class SegmentValidationError(ValidationError):
    """Raised when a segment operation would break a segment invariant."""
    pass


class SegmentNotFoundError(ValidationError):
    """Raised when a segment id is not present in the store."""

    def __init__(self, segment_id: str):
        self.segment_id = segment_id
        super().__init__(f"Segment not found: {segment_id}")
