"""
Output naming for cut and merged files.

Naming is deterministic: the same source, range and extension always give
the same output path, so re-running an export overwrites instead of
piling up copies.

Pattern (cuts):
    {source}-{HH.MM.SS.mmm}-{HH.MM.SS.mmm}{ext}
    {out_dir}/{source_basename}-{HH.MM.SS.mmm}-{HH.MM.SS.mmm}{ext}

Pattern (merge):
    {first_path}-merged{ext}
"""

import os
from typing import Optional

from ..timecode import format_duration


MERGE_SUFFIX = "-merged"
PROJECT_SUFFIX = "-proj.csv"


def cut_specification(start: float, end: float) -> str:
    """Textual time range used in cut file names."""
    return f"{format_duration(start, True)}-{format_duration(end, True)}"


def resolve_extension(source_path: str, output_format: str) -> str:
    """Source extension, falling back to the output format."""
    ext = os.path.splitext(source_path)[1]
    return ext or f".{output_format}"


def get_out_path(source_path: str, name_suffix: str, custom_out_dir: Optional[str] = None) -> str:
    """
    Join a suffix onto the source path, optionally inside a custom directory.

    Args:
        source_path: Source media path
        name_suffix: Text appended after a dash (already includes the extension)
        custom_out_dir: Directory for outputs (None = next to the source)
    """
    if custom_out_dir:
        return os.path.join(custom_out_dir, f"{os.path.basename(source_path)}-{name_suffix}")
    return f"{source_path}-{name_suffix}"


def cut_output_path(
    source_path: str,
    start: float,
    end: float,
    output_format: str,
    custom_out_dir: Optional[str] = None,
) -> str:
    """Deterministic output path for one cut."""
    ext = resolve_extension(source_path, output_format)
    return get_out_path(source_path, f"{cut_specification(start, end)}{ext}", custom_out_dir)


def merged_output_path(first_path: str, output_format: Optional[str] = None) -> str:
    """Output path for a merge: first input path + merge suffix + extension."""
    ext = os.path.splitext(first_path)[1]
    if not ext and output_format:
        ext = f".{output_format}"
    return f"{first_path}{MERGE_SUFFIX}{ext}"


def project_file_path(source_path: str, custom_out_dir: Optional[str] = None) -> str:
    """Path of the auto-saved project CSV for a source file."""
    base = os.path.splitext(os.path.basename(source_path))[0]
    directory = custom_out_dir or os.path.dirname(source_path)
    return os.path.join(directory, f"{base}{PROJECT_SUFFIX}")
