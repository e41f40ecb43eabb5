"""
Error taxonomy shared across streamcut packages.

Validation and resolution errors are raised BEFORE any engine process is
spawned. Execution failures are raised by the execution layer and turned
into a FAILED export state by the orchestrator.

Progress parse problems are warnings only. They are logged, never raised.
"""

from typing import Optional


class StreamcutError(Exception):
    """Base exception for all streamcut failures."""
    pass


class ValidationError(StreamcutError):
    """
    Input failed validation.

    Raised for malformed EDL structure, non-numeric fields, invalid reorder
    permutations and invalid split points. Never raised mid-pipeline.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class FormatUnresolvedError(StreamcutError):
    """Raised when no candidate container format exists for a source file."""

    def __init__(self, path: str, reason: str = "no candidate container formats"):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot determine output format for {path}: {reason}")


class ExecutionUnavailableError(StreamcutError):
    """Raised when neither a bundled nor a system FFmpeg binary can be executed."""

    def __init__(self, reason: str = ""):
        self.reason = reason
        message = "FFmpeg is not available"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ExecutionFailureError(StreamcutError):
    """
    A spawned engine process failed.

    Carries the originating stage and (for cuts) the 1-based segment number
    so callers can report exactly which job broke.
    """

    def __init__(
        self,
        stage: str,
        message: str,
        segment_number: Optional[int] = None,
        exit_code: Optional[int] = None,
        stderr_tail: Optional[str] = None,
    ):
        self.stage = stage
        self.segment_number = segment_number
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail
        self.reason = message

        prefix = f"[{stage}]"
        if segment_number is not None:
            prefix += f" segment {segment_number}"
        text = f"{prefix} {message}"
        if exit_code is not None:
            text += f" (exit code: {exit_code})"
        super().__init__(text)


class ExportBusyError(StreamcutError):
    """Raised when an export is requested while another one is running."""

    def __init__(self):
        super().__init__("An export is already running. Wait for it to finish or cancel it.")


class ProgressParseWarning(UserWarning):
    """Unparseable progress output. Logged only, never propagated."""
    pass
