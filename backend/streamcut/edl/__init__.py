"""
Edit decision list interchange (CSV and xmeml).
"""

from .csv_edl import load_csv_edl, save_csv_edl
from .errors import EdlUnsupportedError, EdlValidationError
from .models import EdlRow, rows_to_segments
from .xmeml import load_xmeml

__all__ = [
    "EdlRow",
    "EdlValidationError",
    "EdlUnsupportedError",
    "load_csv_edl",
    "save_csv_edl",
    "load_xmeml",
    "rows_to_segments",
]
