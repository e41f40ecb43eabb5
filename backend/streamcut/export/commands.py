"""
Cut command construction.

Turns a segment plus export settings into an immutable CutJob, and a CutJob
into an FFmpeg argument vector.

Argument order is compatibility-critical: any change alters the files
written to disk.

Keyframe cut (fast, nearest keyframe):
    [-ss START] -i INPUT [-t DURATION] -avoid_negative_ts make_zero ...

Normal cut (frame-accurate, decodes from the preceding keyframe):
    -i INPUT [-ss START] [-t DURATION] ...

Common tail:
    (-an | -acodec copy) -vcodec copy -scodec copy [-map 0] -map_metadata 0
    [-metadata:s:v:0 rotate=R] -f FORMAT -y OUTPUT
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from ..config import ExportSettings
from ..segments.models import Segment
from ..timecode import format_number
from .naming import cut_output_path


class CutJob(BaseModel):
    """
    One planned cut.

    Built once per segment per export. Consumed exactly once by the adapter.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    segment_id: Optional[str] = None
    input_path: str
    output_path: str
    start_time: float
    end_time: float
    source_duration: Optional[float] = None
    format: str

    # Codec policy: video and subtitles are always copied
    strip_audio: bool = False

    # Stream map policy: all streams of input 0 vs default streams only
    include_all_streams: bool = False

    rotation: Optional[int] = None
    keyframe_cut: bool = True

    @property
    def cut_duration(self) -> float:
        return self.end_time - self.start_time


def build_cut_job(
    segment: Segment,
    source_path: str,
    source_duration: Optional[float],
    output_format: str,
    settings: ExportSettings,
) -> CutJob:
    """
    Plan the cut of one segment.

    The output path is derived from the source path, the time range and the
    extension only, so identical inputs always give the same job.
    """
    return CutJob(
        segment_id=segment.id,
        input_path=source_path,
        output_path=cut_output_path(
            source_path,
            segment.start,
            segment.end,
            output_format,
            settings.custom_out_dir,
        ),
        start_time=segment.start,
        end_time=segment.end,
        source_duration=source_duration,
        format=output_format,
        strip_audio=settings.strip_audio,
        include_all_streams=settings.include_all_streams,
        rotation=settings.rotation,
        keyframe_cut=settings.keyframe_cut,
    )


def build_cut_args(job: CutJob) -> List[str]:
    """
    Build the FFmpeg argument vector for a CutJob (without the binary).

    - No -ss when the cut starts at exactly 0
    - No -t when the cut ends at exactly the source duration, so float
      rounding can never truncate the tail
    """
    cut_from_args: List[str] = [] if job.start_time == 0 else ["-ss", format_number(job.start_time)]

    if job.source_duration is not None and job.end_time == job.source_duration:
        cut_to_args: List[str] = []
    else:
        cut_to_args = ["-t", format_number(job.cut_duration)]

    if job.keyframe_cut:
        # Seeking before the input can leave a non-zero first timestamp
        input_cut_args = [
            *cut_from_args,
            "-i", job.input_path,
            *cut_to_args,
            "-avoid_negative_ts", "make_zero",
        ]
    else:
        input_cut_args = [
            "-i", job.input_path,
            *cut_from_args,
            *cut_to_args,
        ]

    audio_args = ["-an"] if job.strip_audio else ["-acodec", "copy"]
    map_args = ["-map", "0"] if job.include_all_streams else []
    rotation_args = (
        ["-metadata:s:v:0", f"rotate={job.rotation}"] if job.rotation is not None else []
    )

    return [
        *input_cut_args,
        *audio_args,
        "-vcodec", "copy",
        "-scodec", "copy",
        *map_args,
        "-map_metadata", "0",
        *rotation_args,
        "-f", job.format, "-y", job.output_path,
    ]
