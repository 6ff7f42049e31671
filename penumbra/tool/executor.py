"""Streaming driver for the antumbra binary.

Output is read from both pipes as it arrives and split on ``\\n`` or ``\\r``
so carriage-return progress bars produce one line per redraw. Every
distinct line is published once per run on the output channel, tagged with
the caller's operation id. A completion event is published when the process
exits, is killed for inactivity or is cancelled.
"""

import asyncio
import shutil
import sys
from pathlib import Path

from penumbra.core.errors import OperationCancelledError, ToolError, ToolNotFoundError
from penumbra.core.structlog_logger import StructlogMixin
from penumbra.operations.events import EventBus
from penumbra.operations.models import OperationCompleteEvent, OperationOutputEvent


BINARY_NAME = "antumbra.exe" if sys.platform == "win32" else "antumbra"
READ_CHUNK_SIZE = 4096
CANCELLED_MESSAGE = "Operation cancelled"


class _RunState:
    """Per-run bookkeeping shared by the stdout and stderr readers."""

    def __init__(self, operation_id: str, started_at: float) -> None:
        self.operation_id = operation_id
        self.seen: set[str] = set()
        self.stdout_lines: list[str] = []
        self.stderr_lines: list[str] = []
        self.last_output = started_at


class AntumbraExecutor(StructlogMixin):
    """Runs antumbra commands and streams their output onto an event bus."""

    def __init__(
        self,
        events: EventBus,
        binary_path: Path | None = None,
        working_dir: Path | None = None,
        inactivity_timeout: float = 30.0,
        poll_interval: float = 1.0,
    ) -> None:
        super().__init__()
        self.events = events
        self.binary_path = binary_path
        self.working_dir = working_dir
        self.inactivity_timeout = inactivity_timeout
        self.poll_interval = poll_interval
        self._process: asyncio.subprocess.Process | None = None
        self._cancelled: asyncio.subprocess.Process | None = None

    def resolve_binary(self) -> Path:
        """Locate the antumbra binary.

        Raises:
            ToolNotFoundError: If the configured path is missing or nothing is on PATH
        """
        if self.binary_path is not None:
            if not self.binary_path.is_file():
                raise ToolNotFoundError(
                    f"antumbra binary not found: {self.binary_path}",
                    suggestion="Check the antumbra_path setting",
                )
            return self.binary_path

        found = shutil.which(BINARY_NAME)
        if found is None:
            raise ToolNotFoundError(
                f"{BINARY_NAME} not found on PATH",
                suggestion="Install antumbra or set PENUMBRA_ANTUMBRA_PATH",
            )
        return Path(found)

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def execute_streaming(self, operation_id: str, args: list[str]) -> str:
        """Run antumbra with ``args`` and return its collected stdout.

        Raises:
            ToolNotFoundError: If the binary cannot be located
            ToolError: On spawn failure, inactivity timeout or non-zero exit
            OperationCancelledError: If cancel() killed the process
        """
        binary = self.resolve_binary()
        cwd = self.working_dir or binary.parent
        log = self.log_operation(
            "execute_streaming", operation_id=operation_id, args=args
        )
        log.info("tool_starting", binary=str(binary), cwd=str(cwd))

        try:
            process = await asyncio.create_subprocess_exec(
                str(binary),
                *args,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self.log_error_with_context("tool_spawn_failed", e, binary=str(binary))
            raise ToolError(f"Failed to spawn antumbra process: {e}") from e

        self._process = process
        loop = asyncio.get_running_loop()
        state = _RunState(operation_id, loop.time())
        readers = [
            asyncio.ensure_future(self._read_stream(process.stdout, state, False)),
            asyncio.ensure_future(self._read_stream(process.stderr, state, True)),
        ]
        wait_task = asyncio.ensure_future(process.wait())

        try:
            while True:
                done, _ = await asyncio.wait({wait_task}, timeout=self.poll_interval)
                if done:
                    break
                if loop.time() - state.last_output > self.inactivity_timeout:
                    await self._kill(process, wait_task, readers)
                    message = (
                        "Antumbra process timed out after "
                        f"{self.inactivity_timeout:g}s without output"
                    )
                    log.warning("tool_inactivity_timeout")
                    self._emit_complete(operation_id, False, message)
                    raise ToolError(message, output="\n".join(state.stderr_lines))
            await asyncio.gather(*readers)
        except asyncio.CancelledError:
            await self._kill(process, wait_task, readers)
            log.info("tool_cancelled")
            raise
        finally:
            if self._process is process:
                self._process = None
            cancelled = self._cancelled is process
            if cancelled:
                self._cancelled = None

        return_code = process.returncode
        stdout_output = "\n".join(state.stdout_lines)
        stderr_output = "\n".join(state.stderr_lines)

        if cancelled:
            self._emit_complete(operation_id, False, CANCELLED_MESSAGE)
            log.info("tool_cancelled", return_code=return_code)
            raise OperationCancelledError(CANCELLED_MESSAGE, output=stderr_output)

        success = return_code == 0
        self._emit_complete(operation_id, success, None if success else stderr_output)
        log.info("tool_finished", return_code=return_code, lines=len(state.seen))

        if not success:
            raise ToolError(
                f"Antumbra process failed: {stderr_output}",
                code=return_code,
                output=stderr_output,
            )
        return stdout_output

    async def cancel(self) -> None:
        """Kill the running antumbra process, if any."""
        process = self._process
        if process is None or process.returncode is not None:
            self.logger.debug("tool_cancel_no_process")
            return
        self._cancelled = process
        try:
            process.kill()
        except ProcessLookupError:
            return
        self.logger.info("tool_killed", pid=process.pid)

    async def _read_stream(
        self,
        stream: asyncio.StreamReader | None,
        state: _RunState,
        is_stderr: bool,
    ) -> None:
        if stream is None:
            return
        loop = asyncio.get_running_loop()
        buffer = b""
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            state.last_output = loop.time()
            buffer += chunk
            *complete, buffer = _split_lines(buffer)
            for raw in complete:
                self._publish(raw, state, is_stderr)
        if buffer:
            self._publish(buffer, state, is_stderr)

    def _publish(self, raw: bytes, state: _RunState, is_stderr: bool) -> None:
        line = raw.decode("utf-8", errors="replace").strip()
        if not line or line in state.seen:
            return
        state.seen.add(line)
        (state.stderr_lines if is_stderr else state.stdout_lines).append(line)
        self.events.output.emit(
            OperationOutputEvent(
                operation_id=state.operation_id, line=line, is_stderr=is_stderr
            )
        )

    def _emit_complete(
        self, operation_id: str, success: bool, error: str | None
    ) -> None:
        self.events.complete.emit(
            OperationCompleteEvent(
                operation_id=operation_id, success=success, error=error
            )
        )

    async def _kill(
        self,
        process: asyncio.subprocess.Process,
        wait_task: "asyncio.Future[int]",
        readers: list["asyncio.Future[None]"],
    ) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await asyncio.gather(wait_task, return_exceptions=True)
        for reader in readers:
            reader.cancel()
        await asyncio.gather(*readers, return_exceptions=True)


def _split_lines(buffer: bytes) -> list[bytes]:
    """Split on either separator; the last element is the unfinished tail."""
    return buffer.replace(b"\r", b"\n").split(b"\n")


def create_antumbra_executor(
    events: EventBus,
    binary_path: Path | None = None,
    working_dir: Path | None = None,
    inactivity_timeout: float = 30.0,
) -> AntumbraExecutor:
    """Factory function to create an AntumbraExecutor."""
    return AntumbraExecutor(
        events,
        binary_path=binary_path,
        working_dir=working_dir,
        inactivity_timeout=inactivity_timeout,
    )
