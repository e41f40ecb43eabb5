"""
Metadata extraction using ffprobe.

Extraction is read-only and non-destructive. The ffprobe binary comes from
the EngineConfig passed in; it is never looked up here.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import EngineConfig
from .errors import FFProbeNotFoundError, MediaProbeError
from .models import MediaInfo

logger = logging.getLogger(__name__)


def split_format_names(format_name: Optional[str]) -> List[str]:
    """Split ffprobe's comma-joined format_name, dropping empty entries."""
    return [name.strip() for name in (format_name or "").split(",") if name.strip()]


def _run_ffprobe(ffprobe_path: str, filepath: str) -> Dict[str, Any]:
    """
    Run ffprobe and return parsed JSON output.

    Raises:
        subprocess.CalledProcessError: If ffprobe fails
        json.JSONDecodeError: If output is not valid JSON
    """
    cmd = [
        ffprobe_path,
        "-v", "quiet",
        "-of", "json",
        "-show_format",
        "-show_streams",
        "-i", filepath,
    ]
    logger.debug(f"[ffprobe] Executing: {' '.join(cmd)}")
    result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    return json.loads(result.stdout)


def _extract_duration(probe_data: Dict[str, Any]) -> Optional[float]:
    duration = probe_data.get("format", {}).get("duration")
    if duration in (None, "N/A"):
        return None
    return float(duration)


def _extract_rotation(probe_data: Dict[str, Any]) -> Optional[int]:
    """Rotation of the first video stream (tag or display matrix side data)."""
    for stream in probe_data.get("streams", []):
        if stream.get("codec_type") != "video":
            continue
        rotate_tag = stream.get("tags", {}).get("rotate")
        if rotate_tag not in (None, ""):
            return int(float(rotate_tag))
        for side_data in stream.get("side_data_list", []):
            if "rotation" in side_data:
                return int(side_data["rotation"])
        return None
    return None


def probe_media(filepath: str, engine_config: EngineConfig) -> MediaInfo:
    """
    Describe a media file with ffprobe.

    Args:
        filepath: Path to the media file
        engine_config: Resolved engine binaries

    Returns:
        MediaInfo

    Raises:
        FFProbeNotFoundError: If no ffprobe binary is configured
        MediaProbeError: If the file is missing or ffprobe fails
    """
    if not engine_config.ffprobe_path:
        raise FFProbeNotFoundError()

    path = Path(filepath)
    if not path.is_file():
        raise MediaProbeError(filepath, "File does not exist")

    try:
        probe_data = _run_ffprobe(engine_config.ffprobe_path, filepath)
    except subprocess.CalledProcessError as e:
        raise MediaProbeError(filepath, f"ffprobe failed with exit code {e.returncode}")
    except json.JSONDecodeError as e:
        raise MediaProbeError(filepath, f"Failed to parse ffprobe output: {e}")
    except OSError as e:
        raise MediaProbeError(filepath, f"Failed to run ffprobe: {e}")

    try:
        info = MediaInfo(
            path=filepath,
            duration=_extract_duration(probe_data),
            format_names=split_format_names(probe_data.get("format", {}).get("format_name")),
            rotation=_extract_rotation(probe_data),
        )
    except (TypeError, ValueError) as e:
        raise MediaProbeError(filepath, f"Failed to parse metadata: {e}")

    logger.info(f"[ffprobe] {filepath}: duration={info.duration} formats={info.format_names}")
    return info
