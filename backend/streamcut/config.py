"""
ExportSettings and EngineConfig: explicit configuration objects.

ExportSettings is the SINGLE OBJECT that defines how segments are exported.
EngineConfig holds the resolved FFmpeg/ffprobe binary paths.

CRITICAL RULES:
1. Both are frozen. "Modifying" settings means building a new instance.
2. EngineConfig is resolved ONCE (see execution/discovery.py) and passed
   explicitly to every command-building and execution call.
3. No module-level cached binary paths anywhere.
"""

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional


# Environment variable overrides (optional, advanced)
ENV_FFMPEG_PATH = "STREAMCUT_FFMPEG_PATH"
ENV_BUNDLED_DIR = "STREAMCUT_BUNDLED_DIR"


@dataclass(frozen=True)
class EngineConfig:
    """Resolved engine binaries."""

    ffmpeg_path: str
    ffprobe_path: Optional[str] = None


@dataclass(frozen=True)
class ExportSettings:
    """
    Complete, immutable export configuration.

    Cut accuracy:
    - keyframe_cut=True: seek before opening the input (fast, keyframe-accurate)
    - keyframe_cut=False: seek after opening the input (frame-accurate)

    Stream policy:
    - strip_audio drops every audio stream, otherwise audio is copied
    - include_all_streams maps every stream of input 0, otherwise default streams only

    Merge policy (only used when auto_merge is set or files are merged directly):
    - segments_to_chapters, preserve_metadata_on_merge, preserve_mov_data
    """

    keyframe_cut: bool = True
    include_all_streams: bool = False
    strip_audio: bool = False
    rotation: Optional[int] = None

    auto_merge: bool = False
    segments_to_chapters: bool = False
    preserve_metadata_on_merge: bool = False
    preserve_mov_data: bool = False

    # "Remove" mode: export the gaps between segments instead of the segments
    invert_segments: bool = False

    # If None, outputs are written next to the source file
    custom_out_dir: Optional[str] = None

    # If None, the format is resolved from the source file
    output_format: Optional[str] = None

    auto_save_project: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ExportSettings":
        """
        Deserialize from a dictionary.

        Unknown keys are rejected so typos never silently fall back to defaults.
        """
        if not data:
            return DEFAULT_EXPORT_SETTINGS

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown export settings: {', '.join(sorted(unknown))}")
        return cls(**data)

    def with_updates(self, **kwargs: Any) -> "ExportSettings":
        """Return a copy with the given fields replaced."""
        return replace(self, **kwargs)


DEFAULT_EXPORT_SETTINGS = ExportSettings()
