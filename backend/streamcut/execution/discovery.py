"""
FFmpeg binary discovery.

Resolves an EngineConfig ONCE. The result is passed explicitly to every
caller; nothing is cached at module level.

Discovery priority:
1. Environment variable override (STREAMCUT_FFMPEG_PATH)
2. Bundled binary directory (argument, or STREAMCUT_BUNDLED_DIR)
3. System PATH

A candidate only counts if `ffmpeg -version` actually runs.
"""

import logging
import os
import shutil
import subprocess
import sys
from typing import Callable, List, Optional

from ..config import ENV_BUNDLED_DIR, ENV_FFMPEG_PATH, EngineConfig
from ..errors import ExecutionUnavailableError

logger = logging.getLogger(__name__)


def with_exe(name: str) -> str:
    """Binary file name for the current platform."""
    return f"{name}.exe" if sys.platform == "win32" else name


def can_execute(binary_path: str) -> bool:
    """Check that `binary_path -version` runs and exits cleanly."""
    try:
        result = subprocess.run(
            [binary_path, "-version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0


def _candidates(bundled_dir: Optional[str]) -> List[str]:
    candidates = []

    override_path = os.environ.get(ENV_FFMPEG_PATH)
    if override_path:
        candidates.append(override_path)

    bundled = bundled_dir or os.environ.get(ENV_BUNDLED_DIR)
    if bundled:
        candidates.append(os.path.join(bundled, with_exe("ffmpeg")))

    system_path = shutil.which("ffmpeg")
    if system_path:
        candidates.append(system_path)

    return candidates


def _find_ffprobe(ffmpeg_path: str) -> Optional[str]:
    """ffprobe next to ffmpeg, else on PATH."""
    sibling = os.path.join(os.path.dirname(ffmpeg_path), with_exe("ffprobe"))
    if os.path.isfile(sibling) and os.access(sibling, os.X_OK):
        return sibling
    return shutil.which("ffprobe")


def discover_engine(
    bundled_dir: Optional[str] = None,
    check: Callable[[str], bool] = can_execute,
) -> EngineConfig:
    """
    Find a working FFmpeg installation.

    Args:
        bundled_dir: Directory holding a bundled ffmpeg binary
        check: Executability probe (injectable for tests)

    Returns:
        EngineConfig with ffmpeg (and, if found, ffprobe) paths

    Raises:
        ExecutionUnavailableError: If no candidate can be executed
    """
    tried = []
    for candidate in _candidates(bundled_dir):
        tried.append(candidate)
        if check(candidate):
            ffprobe_path = _find_ffprobe(candidate)
            logger.info(f"[FFmpeg] Using {candidate} (ffprobe: {ffprobe_path or 'not found'})")
            return EngineConfig(ffmpeg_path=candidate, ffprobe_path=ffprobe_path)
        logger.info(f"[FFmpeg] Candidate not executable: {candidate}")

    if tried:
        reason = f"none of these could be executed: {', '.join(tried)}"
    else:
        reason = "not bundled and not found on PATH"
    raise ExecutionUnavailableError(reason)
