"""
Media metadata via ffprobe.
"""

from .errors import FFProbeNotFoundError, MediaProbeError, MetadataError
from .extractors import probe_media, split_format_names
from .models import MediaInfo

__all__ = [
    "MediaInfo",
    "MetadataError",
    "MediaProbeError",
    "FFProbeNotFoundError",
    "probe_media",
    "split_format_names",
]
