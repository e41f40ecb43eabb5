"""
Metadata-specific error types.

All errors inherit from MetadataError for easy catching.
Errors are explicit and provide actionable messages.
"""

from ..errors import StreamcutError


class MetadataError(StreamcutError):
    """Base exception for all metadata-related failures."""
    pass


class MediaProbeError(MetadataError):
    """Raised when ffprobe cannot describe a file."""

    def __init__(self, filepath: str, reason: str):
        self.filepath = filepath
        self.reason = reason
        super().__init__(f"Failed to probe {filepath}: {reason}")


class FFProbeNotFoundError(MetadataError):
    """Raised when no ffprobe binary is configured."""

    def __init__(self):
        super().__init__(
            "ffprobe not found. Install ffmpeg (ffprobe ships with it) to enable format detection."
        )
