"""
CSV EDL load/save.

Format: one row per segment, exactly three columns, no header:
    start,end,name

start/end are seconds. Either may be blank. Anything non-blank must be a
finite number, otherwise the whole load fails.
"""

import csv
import logging
import math
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..timecode import format_number
from ..segments.models import Segment
from .errors import EdlValidationError
from .models import EdlRow

logger = logging.getLogger(__name__)


def _parse_time(value: str) -> Optional[float]:
    """Parse a start/end cell. Blank means unspecified."""
    if value.strip() == "":
        return None
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value}")
    return number


def load_csv_edl(path: Union[str, Path]) -> List[EdlRow]:
    """
    Load a CSV EDL.

    Args:
        path: CSV file path

    Returns:
        Rows in file order

    Raises:
        EdlValidationError: Zero rows, wrong column count, or non-numeric time
    """
    path_str = str(path)
    with open(path, "r", encoding="utf-8", newline="") as f:
        rows = [row for row in csv.reader(f) if row]

    if not rows:
        raise EdlValidationError(path_str, "No rows found")

    if not all(len(row) == 3 for row in rows):
        raise EdlValidationError(path_str, "One or more rows does not have 3 columns")

    loaded = []
    for line_number, (start, end, name) in enumerate(rows, start=1):
        try:
            loaded.append(EdlRow(start=_parse_time(start), end=_parse_time(end), name=name or None))
        except ValueError:
            raise EdlValidationError(
                path_str,
                f"Invalid start or end value on row {line_number}. Must contain a number of seconds",
            )

    logger.info(f"[EDL] Loaded {len(loaded)} row(s) from {path_str}")
    return loaded


def save_csv_edl(path: Union[str, Path], segments: Iterable[Union[Segment, EdlRow]]) -> None:
    """
    Save segments as a CSV EDL.

    Rows are written in the given order with start, end and name.
    """
    rows = []
    for seg in segments:
        rows.append([
            "" if seg.start is None else format_number(seg.start),
            "" if seg.end is None else format_number(seg.end),
            seg.name or "",
        ])

    logger.info(f"[EDL] Saving {len(rows)} row(s) to {path}")
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerows(rows)
