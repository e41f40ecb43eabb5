"""
Tests for output format resolution.

Probe and sniff steps are injected, so no ffprobe or real media is needed.
"""

from unittest.mock import patch

import pytest

from streamcut.config import EngineConfig
from streamcut.errors import FormatUnresolvedError
from streamcut.export import FormatResolver, determine_output_format, map_format
from streamcut.export.formats import sniff_extension
from streamcut.metadata import MediaInfo


class TestDetermineOutputFormat:

    def test_sniffed_candidate_wins(self):
        assert determine_output_format(["mov", "mp4", "m4a"], "mp4") == "mp4"

    def test_sniffed_not_a_candidate(self):
        assert determine_output_format(["matroska", "webm"], "mp4") == "matroska"

    def test_no_sniff_result(self):
        assert determine_output_format(["mpegts"], None) == "mpegts"

    def test_no_candidates(self):
        assert determine_output_format([], "mp4") is None


class TestMapFormat:

    @pytest.mark.parametrize("detected,muxer", [
        ("m4a", "ipod"),
        ("aac", "ipod"),
        ("mp4", "mp4"),
        ("matroska", "matroska"),
    ])
    def test_aliases(self, detected, muxer):
        assert map_format(detected) == muxer


class TestFormatResolver:

    def test_sniffed_m4a_becomes_ipod(self):
        resolver = FormatResolver(lambda path: ["ipod", "m4a"], sniff=lambda path: "m4a")
        assert resolver.resolve("/media/song.m4a") == "ipod"

    def test_empty_sniff_uses_first_candidate(self):
        resolver = FormatResolver(lambda path: ["mov", "mp4", "m4a"], sniff=lambda path: None)
        assert resolver.resolve("/media/clip.mov") == "mov"

    def test_no_candidates_raises(self):
        resolver = FormatResolver(lambda path: [], sniff=lambda path: "mp4")
        with pytest.raises(FormatUnresolvedError) as exc_info:
            resolver.resolve("/media/unknown.bin")
        assert exc_info.value.path == "/media/unknown.bin"

    def test_unreadable_file_falls_back_to_candidates(self):
        def sniff(path):
            raise PermissionError("denied")

        resolver = FormatResolver(lambda path: ["matroska", "webm"], sniff=sniff)
        assert resolver.resolve("/media/clip.mkv") == "matroska"

    def test_from_engine_uses_probe(self):
        config = EngineConfig(ffmpeg_path="/usr/bin/ffmpeg", ffprobe_path="/usr/bin/ffprobe")
        info = MediaInfo(path="/media/a.mp4", duration=3.0, format_names=["mov", "mp4"])

        with patch("streamcut.export.formats.probe_media", return_value=info) as probe:
            resolver = FormatResolver.from_engine(config)
            resolver.sniff = lambda path: "mp4"
            assert resolver.resolve("/media/a.mp4") == "mp4"

        probe.assert_called_once_with("/media/a.mp4", config)


class TestSniffExtension:

    def test_mp4_signature(self, tmp_path):
        path = tmp_path / "clip.bin"
        # ISO base media: size + "ftyp" + major brand
        path.write_bytes(b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom" + b"\x00" * 64)
        assert sniff_extension(str(path)) == "mp4"

    def test_unknown_content(self, tmp_path):
        path = tmp_path / "clip.bin"
        path.write_bytes(b"\x00" * 64)
        assert sniff_extension(str(path)) is None
