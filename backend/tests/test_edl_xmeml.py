"""
Tests for Final Cut Pro XML (xmeml) import.
"""

import pytest

from streamcut.edl import EdlUnsupportedError, EdlValidationError, load_xmeml


def _clip(name, start, end, rate=None):
    rate_xml = f"<rate><timebase>{rate}</timebase></rate>" if rate else ""
    return f"<clipitem><name>{name}</name>{rate_xml}<start>{start}</start><end>{end}</end></clipitem>"


def _xml(video_clips, audio_clips="", sequence_rate=25):
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<xmeml version="4">
  <project>
    <children>
      <sequence>
        <rate><timebase>{sequence_rate}</timebase></rate>
        <media>
          <video><track>{video_clips}</track></video>
          <audio><track>{audio_clips}</track></audio>
        </media>
      </sequence>
    </children>
  </project>
</xmeml>
"""


@pytest.fixture
def write_xml(tmp_path):
    def _write(content: str):
        path = tmp_path / "sequence.xml"
        path.write_text(content, encoding="utf-8")
        return path
    return _write


class TestLoadXmeml:

    def test_video_clips_in_document_order(self, write_xml):
        path = write_xml(_xml(_clip("A", 0, 50) + _clip("B", 100, 125)))
        rows = load_xmeml(path)
        assert [(r.start, r.end, r.name) for r in rows] == [(0.0, 2.0, "A"), (4.0, 5.0, "B")]

    def test_clip_rate_overrides_sequence_rate(self, write_xml):
        path = write_xml(_xml(_clip("A", 0, 60, rate=30), sequence_rate=25))
        rows = load_xmeml(path)
        assert rows[0].end == 2.0

    def test_audio_clips_rejected_by_default(self, write_xml):
        path = write_xml(_xml(_clip("V", 0, 25), audio_clips=_clip("Aud", 0, 25)))
        with pytest.raises(EdlUnsupportedError, match="audio"):
            load_xmeml(path)

    def test_audio_clips_skipped_when_allowed(self, write_xml):
        path = write_xml(_xml(_clip("V", 0, 25), audio_clips=_clip("Aud", 0, 25)))
        rows = load_xmeml(path, allow_audio=True)
        assert [r.name for r in rows] == ["V"]

    def test_no_video_clips(self, write_xml):
        path = write_xml(_xml(""))
        with pytest.raises(EdlValidationError, match="No rows found"):
            load_xmeml(path)

    def test_wrong_root(self, write_xml):
        path = write_xml("<fcpxml><project/></fcpxml>")
        with pytest.raises(EdlValidationError, match="expected <xmeml>"):
            load_xmeml(path)

    def test_missing_sequence(self, write_xml):
        path = write_xml("<xmeml><project><children/></project></xmeml>")
        with pytest.raises(EdlValidationError, match="sequence"):
            load_xmeml(path)

    def test_non_numeric_frame(self, write_xml):
        path = write_xml(_xml(_clip("A", "x", 25)))
        with pytest.raises(EdlValidationError, match="not a number"):
            load_xmeml(path)

    def test_malformed_xml(self, write_xml):
        path = write_xml("<xmeml><project>")
        with pytest.raises(EdlValidationError, match="well-formed"):
            load_xmeml(path)
