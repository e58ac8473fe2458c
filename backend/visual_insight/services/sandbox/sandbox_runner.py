"""
Process-isolated execution of enveloped analysis code.

Every run gets a fresh execution id (uuid4) that names its temp script, its
working directory and its output file, so concurrent runs never share a
path. A run moves through an explicit state machine::

    PREPARED -> LAUNCHED -> COMPLETED | FAULTED | TIMED_OUT

and only COMPLETED runs (clean exit AND output file present) hand their
chart to the artifact store. The script, working directory and any staged
output are removed on every exit path.
"""

import asyncio
import logging
import os
import shutil
import signal
import sys
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path

from visual_insight.models import ArtifactMetadata, ExecutionSummary, OutputFormat

from .audit_logger import ExecutionAuditLogger
from .code_envelope import EXIT_NO_FIGURE, build_script
from .exceptions import ExecutionFaulted, ExecutionTimeout

logger = logging.getLogger(__name__)

# Never hand provider credentials to untrusted code
_SCRUBBED_ENV_VARS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "GEMINI_API_KEY")


class ExecutionState(str, Enum):
    """Lifecycle states of a sandboxed run."""

    PREPARED = "prepared"
    LAUNCHED = "launched"
    COMPLETED = "completed"
    FAULTED = "faulted"
    TIMED_OUT = "timed_out"


@dataclass
class ExecutionResult:
    """Result of one sandboxed run."""

    execution_id: str
    state: ExecutionState
    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    artifact_path: str | None = None
    artifact_metadata: ArtifactMetadata | None = None
    error: str | None = None
    error_type: str | None = None
    execution_time: float | None = None

    @property
    def artifact_filename(self) -> str | None:
        return Path(self.artifact_path).name if self.artifact_path else None

    @property
    def reason(self) -> str:
        """Completed, Faulted or Timeout."""
        if self.state is ExecutionState.COMPLETED:
            return "Completed"
        if self.state is ExecutionState.TIMED_OUT:
            return "Timeout"
        return "Faulted"

    def raise_for_status(self) -> None:
        """Raise ExecutionTimeout or ExecutionFaulted unless the run completed."""
        if self.state is ExecutionState.TIMED_OUT:
            raise ExecutionTimeout(self.error, execution_id=self.execution_id)
        if not self.success:
            raise ExecutionFaulted(
                self.error, execution_id=self.execution_id, exit_code=self.exit_code
            )

    def to_summary(self) -> ExecutionSummary:
        return ExecutionSummary(
            execution_id=self.execution_id,
            state=self.state.value,
            success=self.success,
            stdout=self.stdout,
            stderr=self.stderr,
            exit_code=self.exit_code,
            artifact_filename=self.artifact_filename,
            artifact_metadata=self.artifact_metadata,
            error=self.error,
            error_type=self.error_type,
            execution_time=self.execution_time,
        )


class BoundedTranscript:
    """
    Collects a process stream without unbounded memory growth.

    Keeps the first and last ``limit // 2`` bytes; whatever falls between is
    replaced by a truncation marker, so the final traceback lines survive.
    """

    def __init__(self, limit: int):
        self.head_limit = max(limit // 2, 1)
        self.tail_limit = max(limit - self.head_limit, 1)
        self._head = bytearray()
        self._tail = bytearray()
        self.dropped = 0

    def append(self, data: bytes) -> None:
        room = self.head_limit - len(self._head)
        if room > 0:
            self._head.extend(data[:room])
            data = data[room:]
        if not data:
            return
        self._tail.extend(data)
        overflow = len(self._tail) - self.tail_limit
        if overflow > 0:
            del self._tail[:overflow]
            self.dropped += overflow

    def text(self) -> str:
        head = self._head.decode("utf-8", errors="replace")
        tail = self._tail.decode("utf-8", errors="replace")
        if self.dropped:
            return f"{head}\n... [truncated {self.dropped} bytes] ...\n{tail}"
        return head + tail


class SandboxRunner:
    """Runs analysis code in a new Python process with its own working directory."""

    def __init__(
        self,
        temp_dir: str | Path,
        artifact_store,
        config: dict = None,
        audit_logger: ExecutionAuditLogger | None = None,
    ):
        """
        Initialize sandbox runner.

        Args:
            temp_dir: Directory for temp scripts and per-run working directories
            artifact_store: ArtifactStore that receives completed charts
            config: Sandbox settings (timeout_seconds, max_output_bytes, ...)
            audit_logger: Optional audit trail writer
        """
        self.config = config or {}
        self.temp_dir = Path(temp_dir)
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.artifact_store = artifact_store
        self.python_executable = self.config.get("python_executable") or sys.executable
        self.timeout_seconds = self.config.get("timeout_seconds", 60)
        self.max_output_bytes = self.config.get("max_output_bytes", 64 * 1024)
        self.kill_grace_seconds = self.config.get("kill_grace_seconds", 2)
        self.dpi = self.config.get("dpi", 150)
        self.audit_logger = audit_logger or ExecutionAuditLogger(config={"enabled": False})
        self._active: set[str] = set()

    async def execute(
        self,
        code: str,
        dataset_path: str | Path,
        output_format: OutputFormat | str = OutputFormat.PNG,
        timeout_seconds: float | None = None,
    ) -> ExecutionResult:
        """
        Run ``code`` against ``dataset_path`` and produce a chart.

        Never raises for script failures; the returned ExecutionResult
        carries the terminal state. Cancelling the awaiting task terminates
        the child process before the CancelledError propagates.
        """
        output_format = OutputFormat(output_format)
        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        execution_id = str(uuid.uuid4())
        script_path = self.temp_dir / f"{execution_id}.py"
        work_dir = self.temp_dir / execution_id
        staged_path = self.temp_dir / f"{execution_id}.{output_format.value}"

        self._active.add(execution_id)
        start_time = time.monotonic()
        try:
            try:
                script = build_script(
                    code,
                    dataset_path=str(Path(dataset_path).resolve()),
                    output_path=str(staged_path.resolve()),
                    output_format=output_format,
                    dpi=self.dpi,
                )
                work_dir.mkdir(parents=True)
                script_path.write_text(script, encoding="utf-8")
                logger.info(f"[{execution_id}] {ExecutionState.PREPARED.value}: {script_path}")

                result = await self._launch(
                    execution_id, script_path, work_dir, staged_path, output_format, timeout
                )
            except OSError as e:
                logger.error(f"[{execution_id}] Sandbox setup failed: {e}", exc_info=True)
                result = ExecutionResult(
                    execution_id=execution_id,
                    state=ExecutionState.FAULTED,
                    success=False,
                    error=f"Sandbox error: {e}",
                    error_type="ExecutionFaulted",
                )

            result.execution_time = time.monotonic() - start_time
            logger.info(
                f"[{execution_id}] {result.state.value} in {result.execution_time:.2f}s "
                f"(exit_code={result.exit_code})"
            )
            self.audit_logger.log_execution(
                code, result, dataset_path=str(dataset_path), output_format=output_format.value
            )
            return result
        finally:
            self._cleanup(script_path, work_dir, staged_path)
            self._active.discard(execution_id)

    async def _launch(
        self,
        execution_id: str,
        script_path: Path,
        work_dir: Path,
        staged_path: Path,
        output_format: OutputFormat,
        timeout: float,
    ) -> ExecutionResult:
        process = await asyncio.create_subprocess_exec(
            self.python_executable,
            "-u",
            str(script_path),
            cwd=str(work_dir),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self._child_env(),
            start_new_session=(os.name == "posix"),
        )
        logger.info(f"[{execution_id}] {ExecutionState.LAUNCHED.value}: pid={process.pid}")

        stdout = BoundedTranscript(self.max_output_bytes)
        stderr = BoundedTranscript(self.max_output_bytes)
        timed_out = False

        try:
            await asyncio.wait_for(
                asyncio.gather(
                    self._drain(process.stdout, stdout),
                    self._drain(process.stderr, stderr),
                    process.wait(),
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(f"[{execution_id}] Timed out after {timeout}s, killing pid={process.pid}")
            self.audit_logger.log_timeout(execution_id, timeout, pid=process.pid)
            await self._kill(process)
        except asyncio.CancelledError:
            logger.warning(f"[{execution_id}] Cancelled, terminating pid={process.pid}")
            await self._terminate(process)
            raise

        result = ExecutionResult(
            execution_id=execution_id,
            state=ExecutionState.FAULTED,
            success=False,
            stdout=stdout.text(),
            stderr=stderr.text(),
            exit_code=process.returncode,
        )

        if timed_out:
            result.state = ExecutionState.TIMED_OUT
            result.error = f"Execution exceeded time limit of {timeout} seconds"
            result.error_type = "Timeout"
            return result

        if process.returncode == 0 and staged_path.is_file():
            filename = self.artifact_store.filename_for(execution_id, output_format)
            record = self.artifact_store.finalize(staged_path, filename)
            if Path(record.path).is_file():
                result.state = ExecutionState.COMPLETED
                result.success = True
                result.artifact_path = str(record.path)
                result.artifact_metadata = ArtifactMetadata(
                    size_bytes=record.size_bytes, format=output_format
                )
                return result

        result.error = self._fault_message(process.returncode, result.stderr, staged_path.name)
        result.error_type = "ExecutionFaulted"
        return result

    @staticmethod
    async def _drain(stream: asyncio.StreamReader, transcript: BoundedTranscript) -> None:
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            transcript.append(chunk)

    @staticmethod
    def _fault_message(exit_code: int | None, stderr: str, output_name: str) -> str:
        if exit_code == 0:
            return f"Script exited cleanly but did not create the expected output file {output_name}"
        if exit_code == EXIT_NO_FIGURE:
            return "No figure was produced by the analysis code"
        lines = [line for line in stderr.strip().splitlines() if line.strip()]
        if lines:
            return "\n".join(lines[-20:])
        return f"Script exited with code {exit_code}"

    def _child_env(self) -> dict[str, str]:
        env = {k: v for k, v in os.environ.items() if k not in _SCRUBBED_ENV_VARS}
        env["MPLBACKEND"] = "Agg"
        env["PYTHONUNBUFFERED"] = "1"
        env["PYTHONDONTWRITEBYTECODE"] = "1"
        return env

    @staticmethod
    def _signal(process: asyncio.subprocess.Process, sig: int) -> None:
        try:
            if os.name == "posix":
                os.killpg(process.pid, sig)
            elif sig == signal.SIGTERM:
                process.terminate()
            else:
                process.kill()
        except ProcessLookupError:
            pass

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        """Force kill (the whole process group on POSIX) and reap."""
        if process.returncode is None:
            self._signal(process, getattr(signal, "SIGKILL", signal.SIGTERM))
        await process.wait()

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Ask politely, then kill after the grace period."""
        if process.returncode is not None:
            return
        self._signal(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.kill_grace_seconds)
        except asyncio.TimeoutError:
            await self._kill(process)

    @staticmethod
    def _cleanup(script_path: Path, work_dir: Path, staged_path: Path) -> None:
        for path in (script_path, staged_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove {path}: {e}")
        shutil.rmtree(work_dir, ignore_errors=True)

    def sweep_stale_files(self, max_age: timedelta, now: datetime | None = None) -> list[str]:
        """
        Remove temp scripts and working directories left behind by crashed runs.

        Entries belonging to in-flight executions are skipped.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = (now - max_age).timestamp()
        removed = []

        for entry in self.temp_dir.iterdir():
            owner = entry.name.split(".", 1)[0]
            if owner in self._active:
                continue
            try:
                if entry.stat().st_mtime >= cutoff:
                    continue
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
                removed.append(entry.name)
            except FileNotFoundError:
                continue

        if removed:
            logger.info(f"Removed {len(removed)} stale sandbox files")
        return removed
