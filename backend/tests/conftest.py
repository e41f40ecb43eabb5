"""
Pytest configuration for the streamcut test suite.
"""

import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Add backend to Python path for test imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from streamcut.execution.adapter import ExecutionAdapter, ProcessOutcome  # noqa: E402


# Configure pytest
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "e2e: marks tests as end-to-end (requires FFmpeg)"
    )


class FakeAdapter(ExecutionAdapter):
    """
    Records every call instead of spawning FFmpeg.

    Exit codes are consumed one per call (0 once the list runs out).
    With create_outputs, the last argument (the output path) is created on
    success, like a real stream copy would.
    """

    def __init__(
        self,
        exit_codes: Optional[List[int]] = None,
        stderr_lines: Optional[List[str]] = None,
        create_outputs: bool = False,
    ):
        self.exit_codes = list(exit_codes or [])
        self.stderr_lines = list(stderr_lines or [])
        self.create_outputs = create_outputs
        self.calls: List[List[str]] = []
        self.stdin_texts: List[Optional[str]] = []
        self.cancel_count = 0

    def run(
        self,
        args: List[str],
        stdin_text: Optional[str] = None,
        on_stderr_line: Optional[Callable[[str], None]] = None,
    ) -> ProcessOutcome:
        self.calls.append(list(args))
        self.stdin_texts.append(stdin_text)

        for line in self.stderr_lines:
            if on_stderr_line:
                on_stderr_line(line)

        exit_code = self.exit_codes.pop(0) if self.exit_codes else 0
        if exit_code == 0 and self.create_outputs:
            Path(args[-1]).write_bytes(b"")

        tail = [] if exit_code == 0 else ["Conversion failed!"]
        return ProcessOutcome(exit_code=exit_code, stderr_tail=tail)

    def cancel(self) -> None:
        self.cancel_count += 1


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def source_file(tmp_path) -> Path:
    """An (empty) source media file on disk."""
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00" * 16)
    return path
