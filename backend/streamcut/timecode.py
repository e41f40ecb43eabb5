"""
Number and duration formatting shared by engine arguments, file names and EDLs.
"""

import math
from typing import Optional


def format_number(value: float) -> str:
    """
    Render a number for an engine argument or CSV cell.

    Integral values have no decimal point ("5", not "5.0"); everything else
    uses the shortest round-trip representation.
    """
    if isinstance(value, int):
        return str(value)
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return repr(float(value))


def format_duration(seconds: Optional[float], file_name_friendly: bool = False) -> str:
    """
    Format seconds as HH:MM:SS.mmm.

    With file_name_friendly the colons become dots so the result can be
    embedded in a file name on every platform.

    Example:
        >>> format_duration(3725.5, file_name_friendly=True)
        '01.02.05.500'
    """
    total_ms = int(round((seconds or 0) * 1000))
    total_seconds, ms = divmod(total_ms, 1000)
    minutes_total, secs = divmod(total_seconds, 60)
    hours, minutes = divmod(minutes_total, 60)

    delim = "." if file_name_friendly else ":"
    return f"{hours:02d}{delim}{minutes:02d}{delim}{secs:02d}.{ms:03d}"
