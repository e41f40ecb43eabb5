"""
Tests for FFmpeg discovery.

The executability check is injected; PATH lookups are patched.
"""

import os
from unittest.mock import patch

import pytest

from streamcut.config import ENV_BUNDLED_DIR, ENV_FFMPEG_PATH, EngineConfig
from streamcut.errors import ExecutionUnavailableError
from streamcut.execution.discovery import can_execute, discover_engine, with_exe


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(ENV_FFMPEG_PATH, raising=False)
    monkeypatch.delenv(ENV_BUNDLED_DIR, raising=False)


class TestDiscoverEngine:

    def test_environment_override_wins(self, monkeypatch):
        monkeypatch.setenv(ENV_FFMPEG_PATH, "/opt/custom/ffmpeg")
        with patch("streamcut.execution.discovery.shutil.which", return_value="/usr/bin/ffmpeg"):
            config = discover_engine(check=lambda path: True)
        assert config.ffmpeg_path == "/opt/custom/ffmpeg"

    def test_bundled_before_system(self, tmp_path):
        bundled = str(tmp_path)
        with patch("streamcut.execution.discovery.shutil.which", return_value="/usr/bin/ffmpeg"):
            config = discover_engine(bundled_dir=bundled, check=lambda path: True)
        assert config.ffmpeg_path == os.path.join(bundled, with_exe("ffmpeg"))

    def test_bundled_dir_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv(ENV_BUNDLED_DIR, str(tmp_path))
        with patch("streamcut.execution.discovery.shutil.which", return_value=None):
            config = discover_engine(check=lambda path: True)
        assert config.ffmpeg_path == os.path.join(str(tmp_path), with_exe("ffmpeg"))

    def test_falls_back_when_bundled_broken(self, tmp_path):
        bundled = os.path.join(str(tmp_path), with_exe("ffmpeg"))
        with patch("streamcut.execution.discovery.shutil.which", return_value="/usr/bin/ffmpeg"):
            config = discover_engine(bundled_dir=str(tmp_path), check=lambda path: path != bundled)
        assert config.ffmpeg_path == "/usr/bin/ffmpeg"

    def test_ffprobe_next_to_ffmpeg(self, tmp_path):
        ffprobe = tmp_path / with_exe("ffprobe")
        ffprobe.write_text("")
        ffprobe.chmod(0o755)
        with patch("streamcut.execution.discovery.shutil.which", return_value=None):
            config = discover_engine(bundled_dir=str(tmp_path), check=lambda path: True)
        assert config.ffprobe_path == str(ffprobe)

    def test_nothing_executable(self, tmp_path):
        with patch("streamcut.execution.discovery.shutil.which", return_value="/usr/bin/ffmpeg"):
            with pytest.raises(ExecutionUnavailableError, match="/usr/bin/ffmpeg"):
                discover_engine(bundled_dir=str(tmp_path), check=lambda path: False)

    def test_nothing_found(self):
        with patch("streamcut.execution.discovery.shutil.which", return_value=None):
            with pytest.raises(ExecutionUnavailableError, match="not found on PATH"):
                discover_engine(check=lambda path: True)

    def test_returns_engine_config(self):
        with patch("streamcut.execution.discovery.shutil.which", return_value="/usr/bin/ffmpeg"):
            assert isinstance(discover_engine(check=lambda path: True), EngineConfig)


class TestCanExecute:

    def test_missing_binary(self, tmp_path):
        assert can_execute(str(tmp_path / "missing")) is False
