"""
Segment data model and store.
"""

from .errors import SegmentNotFoundError, SegmentValidationError
from .models import Segment, SegmentSnapshot, build_segment, validate_segment
from .ranges import invert_segments, total_duration
from .store import SegmentStore

__all__ = [
    "Segment",
    "SegmentSnapshot",
    "SegmentStore",
    "SegmentNotFoundError",
    "SegmentValidationError",
    "build_segment",
    "validate_segment",
    "invert_segments",
    "total_duration",
]
