"""
SegmentStore: the ordered, identity-stable segment collection.

The store owns every Segment and the derived selection set.

Design rules:
- Segments are looked up by id (id -> Segment mapping), never by index
- Ids are never reused, not even after the segment is removed
- `order` is always a contiguous permutation of 0..n-1
- The store never drops below `min_segments` segments
- Rejected reorders leave the store untouched
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from .errors import SegmentNotFoundError, SegmentValidationError
from .models import Segment, SegmentSnapshot, build_segment, validate_segment

logger = logging.getLogger(__name__)


class SegmentStore:
    """
    In-memory segment collection with selection state.

    Usage:
        store = SegmentStore()
        seg = store.add(Segment(start=0, end=10))
        left, right = store.split(seg.id, 4.0)
        snapshot = store.snapshot()
    """

    def __init__(self, min_segments: int = 1):
        """
        Initialize an empty store.

        Args:
            min_segments: Floor below which remove() is a no-op ("keep" mode uses 1)
        """
        # segment_id -> Segment
        self._segments: Dict[str, Segment] = {}
        # segment ids in order
        self._order: List[str] = []
        self._selected: Set[str] = set()
        self._used_ids: Set[str] = set()
        self.min_segments = min_segments

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, segment_id: str) -> bool:
        return segment_id in self._segments

    def get(self, segment_id: str) -> Segment:
        """
        Retrieve a segment by id.

        Raises:
            SegmentNotFoundError: If the id is unknown
        """
        segment = self._segments.get(segment_id)
        if segment is None:
            raise SegmentNotFoundError(segment_id)
        return segment

    def segments(self) -> List[Segment]:
        """All segments in order."""
        return [self._segments[seg_id] for seg_id in self._order]

    def ids(self) -> List[str]:
        return list(self._order)

    def is_selected(self, segment_id: str) -> bool:
        self.get(segment_id)
        return segment_id in self._selected

    def selected_segments(self) -> List[Segment]:
        """Selected segments in order."""
        return [self._segments[seg_id] for seg_id in self._order if seg_id in self._selected]

    def selected_ids(self) -> Set[str]:
        return set(self._selected)

    def snapshot(self) -> SegmentSnapshot:
        """Take an immutable copy for export."""
        return SegmentSnapshot(
            segments=tuple(self.segments()),
            selected_ids=frozenset(self._selected),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, segment: Segment, selected: bool = True) -> Segment:
        """
        Append a segment at the end of the order.

        Args:
            segment: Segment to add (its `order` is overwritten)
            selected: Whether the new segment participates in export

        Returns:
            The stored segment

        Raises:
            SegmentValidationError: If the range is invalid or the id was used before
        """
        validate_segment(segment)
        if segment.id in self._used_ids:
            raise SegmentValidationError(f"Segment id already used: {segment.id}")

        stored = segment.model_copy(update={"order": len(self._order)})
        self._segments[stored.id] = stored
        self._order.append(stored.id)
        self._used_ids.add(stored.id)
        if selected:
            self._selected.add(stored.id)

        logger.debug(f"[Segments] Added {stored.id} [{stored.start}, {stored.end}]")
        return stored

    def add_range(self, start: float, end: float, name: Optional[str] = None) -> Segment:
        """Convenience wrapper building a fresh Segment."""
        return self.add(build_segment(start=start, end=end, name=name))

    def remove(self, segment_id: str) -> bool:
        """
        Remove one segment.

        Returns:
            True if removed, False if the store is already at its floor
        """
        self.get(segment_id)
        if len(self._order) <= self.min_segments:
            logger.info(
                f"[Segments] Not removing {segment_id}: at least {self.min_segments} segment(s) must remain"
            )
            return False

        self._drop(segment_id)
        self._renumber()
        return True

    def remove_selected(self) -> List[str]:
        """
        Remove every selected segment, honouring the segment floor.

        When removing all selected segments would go below the floor, the
        earliest selected segments in order are kept.

        Returns:
            Ids that were removed
        """
        to_remove = [seg_id for seg_id in self._order if seg_id in self._selected]
        removable = len(self._order) - self.min_segments
        if removable <= 0:
            return []
        if len(to_remove) > removable:
            to_remove = to_remove[len(to_remove) - removable:]

        for seg_id in to_remove:
            self._drop(seg_id)
        self._renumber()
        return to_remove

    def set_orders(self, ids_in_new_sequence: Iterable[str]) -> bool:
        """
        Reorder the whole store.

        The argument must be exactly a permutation of the current ids.
        Anything else is rejected and the store is left unchanged.

        Returns:
            True if applied, False if rejected
        """
        new_order = list(ids_in_new_sequence)
        if len(new_order) != len(self._order) or set(new_order) != set(self._order):
            logger.warning("[Segments] Rejected reorder: not a permutation of current segment ids")
            return False

        self._order = new_order
        self._renumber()
        return True

    def update_order(self, segment_id: str, delta: int) -> Segment:
        """
        Move a segment by `delta` positions.

        The target position is clamped to [0, n-1]; intervening segments shift.
        """
        self.get(segment_id)
        index = self._order.index(segment_id)
        new_index = max(0, min(len(self._order) - 1, index + delta))
        if new_index != index:
            self._order.pop(index)
            self._order.insert(new_index, segment_id)
            self._renumber()
        return self._segments[segment_id]

    def split(self, segment_id: str, at_time: float) -> List[Segment]:
        """
        Split a segment in two at `at_time`.

        Both halves get fresh ids, inherit the name and selection state of
        the original, and take its order position and the next one.

        Raises:
            SegmentValidationError: Unless start < at_time < end
        """
        original = self.get(segment_id)
        if not (original.start < at_time < original.end):
            raise SegmentValidationError(
                f"Cannot split segment {segment_id} at {at_time}s: "
                f"split point must lie strictly inside [{original.start}, {original.end}]"
            )

        left = build_segment(start=original.start, end=at_time, name=original.name)
        right = build_segment(start=at_time, end=original.end, name=original.name)
        was_selected = segment_id in self._selected

        index = self._order.index(segment_id)
        self._drop(segment_id)
        for offset, half in enumerate((left, right)):
            self._segments[half.id] = half
            self._order.insert(index + offset, half.id)
            self._used_ids.add(half.id)
            if was_selected:
                self._selected.add(half.id)
        self._renumber()

        logger.debug(f"[Segments] Split {segment_id} at {at_time}s into {left.id}, {right.id}")
        return [self._segments[left.id], self._segments[right.id]]

    def label(self, segment_id: str, name: Optional[str]) -> Segment:
        """Set (or clear) the label of a segment."""
        segment = self.get(segment_id)
        updated = segment.model_copy(update={"name": name or None})
        self._segments[segment_id] = updated
        return updated

    def trim(
        self,
        segment_id: str,
        start: Optional[float] = None,
        end: Optional[float] = None,
    ) -> Segment:
        """
        Change the start and/or end of a segment.

        Raises:
            SegmentValidationError: If the resulting range is invalid
        """
        segment = self.get(segment_id)
        updated = build_segment(
            id=segment.id,
            start=segment.start if start is None else start,
            end=segment.end if end is None else end,
            name=segment.name,
            order=segment.order,
        )
        validate_segment(updated)
        self._segments[segment_id] = updated
        return updated

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_single(self, segment_id: str) -> None:
        """Select only this segment."""
        self.get(segment_id)
        self._selected = {segment_id}

    def toggle_selected(self, segment_id: str) -> bool:
        """
        Flip the selection state of a segment.

        Returns:
            The new selection state
        """
        self.get(segment_id)
        if segment_id in self._selected:
            self._selected.discard(segment_id)
            return False
        self._selected.add(segment_id)
        return True

    def select_all(self) -> None:
        self._selected = set(self._order)

    def deselect_all(self) -> None:
        self._selected = set()

    def select_by_label(self, name: Optional[str]) -> List[str]:
        """
        Select exactly the segments labelled `name`.

        Returns:
            Ids now selected, in order
        """
        label = name or None
        self._selected = {
            seg_id for seg_id in self._order if self._segments[seg_id].name == label
        }
        return [seg_id for seg_id in self._order if seg_id in self._selected]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _drop(self, segment_id: str) -> None:
        del self._segments[segment_id]
        self._order.remove(segment_id)
        self._selected.discard(segment_id)

    def _renumber(self) -> None:
        """Rewrite `order` so it matches list position."""
        for index, seg_id in enumerate(self._order):
            segment = self._segments[seg_id]
            if segment.order != index:
                self._segments[seg_id] = segment.model_copy(update={"order": index})
