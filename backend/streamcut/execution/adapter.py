"""
Execution adapter: runs one FFmpeg process and reports how it ended.

Design rules:
- One subprocess per call, awaited to exit before returning
- stderr is streamed line by line to the caller (progress feed)
- Optional text is streamed to stdin (concat manifests), never written to disk
- Non-zero exit code = failure, reported in ProcessOutcome (not raised)
- SIGTERM -> SIGKILL escalation for cancellation
- Partial output files are never deleted here
"""

import logging
import subprocess
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Deque, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import EngineConfig
from ..errors import ExecutionFailureError

logger = logging.getLogger(__name__)

# Lines of stderr kept for failure messages
STDERR_TAIL_LINES = 20

# Seconds to wait after SIGTERM before SIGKILL
TERMINATE_TIMEOUT = 5


class ProcessOutcome(BaseModel):
    """How a single engine process ended."""

    model_config = ConfigDict(extra="forbid")

    exit_code: int
    cancelled: bool = False
    stderr_tail: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.cancelled

    def failure_reason(self) -> str:
        """Human-readable failure reason."""
        if self.cancelled:
            return "Cancelled by user"
        if self.stderr_tail:
            return self.stderr_tail[-1]
        return f"FFmpeg exited with code {self.exit_code}"


class ExecutionAdapter(ABC):
    """
    Abstract process runner.

    Implementations are swapped in tests. The orchestrator only ever talks
    to this interface.
    """

    @abstractmethod
    def run(
        self,
        args: List[str],
        stdin_text: Optional[str] = None,
        on_stderr_line: Optional[Callable[[str], None]] = None,
    ) -> ProcessOutcome:
        """
        Run the engine with `args` and block until it exits.

        Args:
            args: Engine arguments (without the binary)
            stdin_text: Text streamed to the process stdin, then closed
            on_stderr_line: Called for every stderr line as it arrives

        Returns:
            ProcessOutcome

        Raises:
            ExecutionFailureError: If the process cannot be started at all
        """
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Terminate the running process, if any."""
        pass


class FFmpegAdapter(ExecutionAdapter):
    """
    subprocess.Popen based adapter.

    The binary path comes from the EngineConfig it is constructed with.
    """

    def __init__(self, engine_config: EngineConfig):
        self.engine_config = engine_config
        self._process: Optional[subprocess.Popen] = None
        self._cancelled = False
        self._lock = threading.Lock()

    def build_command(self, args: List[str]) -> List[str]:
        return [self.engine_config.ffmpeg_path, *args]

    def run(
        self,
        args: List[str],
        stdin_text: Optional[str] = None,
        on_stderr_line: Optional[Callable[[str], None]] = None,
    ) -> ProcessOutcome:
        cmd = self.build_command(args)
        logger.info(f"[FFmpeg] Executing: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE if stdin_text is not None else subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            logger.error(f"[FFmpeg] Failed to start: {e}")
            raise ExecutionFailureError("execute", f"Failed to start FFmpeg: {e}")

        with self._lock:
            self._process = process
            self._cancelled = False

        logger.info(f"[FFmpeg] Started PID {process.pid}")

        writer = None
        if stdin_text is not None:
            writer = threading.Thread(
                target=self._write_stdin, args=(process, stdin_text), daemon=True
            )
            writer.start()

        tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        try:
            for raw_line in process.stderr:
                # FFmpeg separates progress updates with carriage returns
                for line in raw_line.replace("\r", "\n").splitlines():
                    if not line.strip():
                        continue
                    tail.append(line)
                    if on_stderr_line:
                        on_stderr_line(line)
            exit_code = process.wait()
        except BaseException:
            logger.error(f"[FFmpeg] Aborting PID {process.pid}: output handling raised")
            self._terminate(process)
            raise
        finally:
            if writer is not None:
                writer.join(timeout=TERMINATE_TIMEOUT)
            with self._lock:
                cancelled = self._cancelled
                self._process = None

        logger.info(f"[FFmpeg] PID {process.pid} exited with code {exit_code}")
        outcome = ProcessOutcome(exit_code=exit_code, cancelled=cancelled, stderr_tail=list(tail))
        if not outcome.succeeded:
            logger.error(f"[FFmpeg] Failed: {outcome.failure_reason()}")
        return outcome

    def cancel(self) -> None:
        """
        Terminate the running process.

        Uses SIGTERM first, escalates to SIGKILL after a timeout.
        """
        with self._lock:
            process = self._process
            if process is None:
                return
            self._cancelled = True
        self._terminate(process)

    @staticmethod
    def _terminate(process: subprocess.Popen) -> None:
        if process.poll() is not None:
            return
        logger.info(f"[FFmpeg] Sending SIGTERM to PID {process.pid}")
        try:
            process.terminate()
            try:
                process.wait(timeout=TERMINATE_TIMEOUT)
            except subprocess.TimeoutExpired:
                logger.warning(f"[FFmpeg] PID {process.pid} did not terminate, sending SIGKILL")
                process.kill()
                process.wait()
        except ProcessLookupError:
            pass  # Process already dead

    @staticmethod
    def _write_stdin(process: subprocess.Popen, text: str) -> None:
        try:
            process.stdin.write(text)
            process.stdin.close()
        except (BrokenPipeError, OSError) as e:
            logger.warning(f"[FFmpeg] Could not write to stdin of PID {process.pid}: {e}")
