"""
Output container format resolution.

ffprobe often reports several candidate short names for one container
("mov,mp4,m4a,3gp,3g2,mj2"). Content sniffing of the first bytes picks
the most specific one when it is among the candidates.

Some detected names are not the names FFmpeg uses for writing, so the
result is remapped to the muxer name afterwards (see `map_format`).
"""

import logging
from typing import Callable, List, Optional, Sequence

import filetype

from ..config import EngineConfig
from ..errors import FormatUnresolvedError
from ..metadata.extractors import probe_media

logger = logging.getLogger(__name__)

# Bytes read for content sniffing
SNIFF_BYTES = 4100

# Detected format -> muxer name.
# "ffmpeg -i x.aac -c copy out.m4a" and "... -f ipod out.m4a" produce identical
# files, so encoding "ipod" is how m4a/aac are written.
MUXER_ALIASES = {
    "m4a": "ipod",
    "aac": "ipod",
}


def map_format(requested_format: str) -> str:
    """Map a detected format to the muxer name FFmpeg expects for writing."""
    return MUXER_ALIASES.get(requested_format, requested_format)


def determine_output_format(candidates: Sequence[str], sniffed: Optional[str]) -> Optional[str]:
    """
    Pick a format from the ffprobe candidates.

    Returns:
        The sniffed extension if it is a candidate, else the first candidate,
        else None
    """
    if sniffed and sniffed in candidates:
        return sniffed
    return candidates[0] if candidates else None


def sniff_extension(filepath: str) -> Optional[str]:
    """Content-based extension from the first bytes of the file, if recognised."""
    with open(filepath, "rb") as f:
        head = f.read(SNIFF_BYTES)
    kind = filetype.guess(head)
    if kind is None:
        return None
    return kind.extension


class FormatResolver:
    """
    Resolve the output format for a source file.

    The probe and sniff steps are injectable so resolution can be tested
    without FFmpeg or real media.
    """

    def __init__(
        self,
        probe_formats: Callable[[str], List[str]],
        sniff: Callable[[str], Optional[str]] = sniff_extension,
    ):
        self.probe_formats = probe_formats
        self.sniff = sniff

    @classmethod
    def from_engine(cls, engine_config: EngineConfig) -> "FormatResolver":
        """Resolver backed by ffprobe from the given engine config."""
        return cls(lambda path: probe_media(path, engine_config).format_names)

    def resolve(self, filepath: str) -> str:
        """
        Determine the muxer name for `filepath`.

        Raises:
            FormatUnresolvedError: If ffprobe reports no candidate formats
        """
        candidates = self.probe_formats(filepath)
        logger.info(f"[Format] ffprobe candidates for {filepath}: {candidates}")

        try:
            sniffed = self.sniff(filepath)
        except OSError as e:
            logger.warning(f"[Format] Could not read {filepath} for sniffing: {e}")
            sniffed = None
        logger.info(f"[Format] Content sniffing detected: {sniffed}")

        assumed = determine_output_format(candidates, sniffed)
        if assumed is None:
            raise FormatUnresolvedError(filepath)

        resolved = map_format(assumed)
        logger.info(f"[Format] Resolved {filepath} -> {resolved}")
        return resolved
