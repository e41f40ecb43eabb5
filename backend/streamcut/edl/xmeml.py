"""
Final Cut Pro XML (xmeml) import.

Only the video clip items of the first sequence are read:
    xmeml > project > children > sequence > media > video > track > clipitem

Each clip's time is its start/end frame divided by the timebase (the
clip's own <rate>, falling back to the sequence <rate>).

Audio clip items are NOT imported. Their presence is reported instead of
being dropped silently.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from lxml import etree

from .errors import EdlUnsupportedError, EdlValidationError
from .models import EdlRow

logger = logging.getLogger(__name__)

SEQUENCE_PATH = "project/children/sequence"


def _timebase(element: Optional[etree._Element]) -> Optional[float]:
    if element is None:
        return None
    text = element.findtext("rate/timebase")
    if text is None or text.strip() == "":
        return None
    return float(text)


def _frame(item: etree._Element, tag: str, path: str) -> float:
    text = item.findtext(tag)
    if text is None or text.strip() == "":
        raise EdlValidationError(path, f"clipitem is missing <{tag}>")
    try:
        return float(text)
    except ValueError:
        raise EdlValidationError(path, f"clipitem <{tag}> is not a number: {text}")


def load_xmeml(path: Union[str, Path], allow_audio: bool = False) -> List[EdlRow]:
    """
    Load segments from an xmeml file.

    Args:
        path: XML file path
        allow_audio: Skip audio clip items with a warning instead of failing

    Returns:
        One row per video clip item, in document order

    Raises:
        EdlValidationError: If the expected structure or timebase is missing
        EdlUnsupportedError: If audio clip items are present and not allowed
    """
    path_str = str(path)
    try:
        root = etree.parse(path_str).getroot()
    except etree.XMLSyntaxError as e:
        raise EdlValidationError(path_str, f"not well-formed XML: {e}")

    if root.tag != "xmeml":
        raise EdlValidationError(path_str, f"root element is <{root.tag}>, expected <xmeml>")

    sequence = root.find(SEQUENCE_PATH)
    if sequence is None:
        raise EdlValidationError(path_str, "no project/children/sequence element")

    audio_items = sequence.findall("media/audio/track/clipitem")
    if audio_items:
        if not allow_audio:
            raise EdlUnsupportedError(
                path_str, f"{len(audio_items)} audio clip item(s); only video tracks are imported"
            )
        logger.warning(f"[EDL] Ignoring {len(audio_items)} audio clip item(s) in {path_str}")

    video_items = sequence.findall("media/video/track/clipitem")
    if not video_items:
        raise EdlValidationError(path_str, "No rows found")

    sequence_timebase = _timebase(sequence)
    rows = []
    for item in video_items:
        timebase = _timebase(item) or sequence_timebase
        if not timebase:
            raise EdlValidationError(path_str, "clipitem has no usable rate/timebase")

        start = _frame(item, "start", path_str) / timebase
        end = _frame(item, "end", path_str) / timebase
        name = item.findtext("name")
        rows.append(EdlRow(start=start, end=end, name=name or None))

    logger.info(f"[EDL] Loaded {len(rows)} clip item(s) from {path_str}")
    return rows
