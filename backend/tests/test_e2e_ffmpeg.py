"""
End-to-end cut and merge with a real FFmpeg.

Skipped when ffmpeg/ffprobe are not installed.
"""

import shutil
import subprocess

import pytest

from streamcut.config import ExportSettings
from streamcut.execution import FFmpegAdapter, discover_engine
from streamcut.export import ExportOrchestrator, ExportState, FormatResolver
from streamcut.metadata import probe_media
from streamcut.segments import SegmentStore

pytestmark = [
    pytest.mark.e2e,
    pytest.mark.skipif(
        shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
        reason="FFmpeg not installed",
    ),
]


@pytest.fixture
def test_video(tmp_path):
    path = tmp_path / "test source.mp4"
    subprocess.run(
        [
            "ffmpeg", "-v", "error",
            "-f", "lavfi", "-i", "testsrc=duration=6:size=320x240:rate=25",
            "-c:v", "mpeg4", "-g", "25",
            "-y", str(path),
        ],
        check=True,
    )
    return path


class TestRealExport:

    def test_cut_and_merge(self, test_video):
        engine_config = discover_engine()
        source = probe_media(str(test_video), engine_config)
        assert source.duration == pytest.approx(6, abs=0.1)

        store = SegmentStore()
        store.add_range(0, 2)
        store.add_range(3, 5)

        orchestrator = ExportOrchestrator(FFmpegAdapter(engine_config), FormatResolver.from_engine(engine_config))
        progress = []
        result = orchestrator.run(
            store.snapshot(),
            source,
            ExportSettings(auto_merge=True, segments_to_chapters=True),
            on_progress=progress.append,
        )

        assert result.status.state == ExportState.DONE, result.summary()
        assert result.output_format == "mp4"
        for path in result.output_paths:
            assert probe_media(path, engine_config).duration > 0
        merged = probe_media(result.merged_path, engine_config)
        assert merged.duration == pytest.approx(4, abs=1.0)
        assert progress[0].fraction == 0.0
