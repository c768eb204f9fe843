"""
Bounded Command Executor

Runs external programs with stdout and stderr redirected straight into
files, so output size never touches process memory. The child writes to
the file descriptors itself; only sizes are read back.
"""

import asyncio
import logging
import os
import re
import secrets
import shlex
import signal
import tempfile
import time
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from vel_toolguard.config import STORAGE_DIR_ENV, ExecutorConfig, ToolguardError
from vel_toolguard.summary import format_bytes

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_SUBDIR = "vel-toolguard-native"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class StorageError(ToolguardError):
    """Raised when the artifact storage directory cannot be used."""


class ExecutionStatus(str, Enum):
    """How an execution ended."""

    SUCCESS = "success"
    NON_ZERO_EXIT = "non_zero_exit"
    SPAWN_FAILURE = "spawn_failure"
    CANCELLED = "cancelled"


class CancellationToken:
    """
    Cooperative cancellation signal shared between a caller and an execution.

    Example:
        token = CancellationToken()
        task = asyncio.create_task(executor.execute_direct_to_disk("rg", [...], cancellation_token=token))
        token.cancel("user interrupted")
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class ExecutionResult:
    """Result of one bounded execution. Both artifact paths always exist."""

    success: bool
    exit_code: Optional[int]
    output_path: str
    error_path: str
    output_size: int
    error_size: int
    execution_time_ms: int
    command: str
    status: ExecutionStatus

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "exit_code": self.exit_code,
            "output_path": self.output_path,
            "error_path": self.error_path,
            "output_size": self.output_size,
            "error_size": self.error_size,
            "output_size_human": format_bytes(self.output_size),
            "execution_time_ms": self.execution_time_ms,
            "command": self.command,
            "status": self.status.value,
        }


def default_storage_dir() -> Path:
    """Storage directory used when none is configured."""
    env_dir = os.environ.get(STORAGE_DIR_ENV)
    if env_dir:
        return Path(env_dir)
    return Path(tempfile.gettempdir()) / DEFAULT_STORAGE_SUBDIR


class NativeCommandExecutor:
    """
    Executes argv-form commands with output written directly to disk.

    No shell is involved: the program and its arguments are passed to
    the OS as-is. Each execution gets its own pair of artifact files.
    """

    def __init__(self, config: Optional[ExecutorConfig] = None) -> None:
        """
        Initialize executor.

        Args:
            config: Executor configuration. Defaults to ExecutorConfig().
        """
        self.config = config or ExecutorConfig()
        configured = self.config.resolve_storage_dir()
        self._storage_dir = Path(configured) if configured else default_storage_dir()

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    def ensure_storage_directory(self) -> Path:
        """
        Create the storage directory if needed.

        Raises:
            StorageError: If the path exists and is not a directory, or
                cannot be created
        """
        path = self._storage_dir
        if path.exists():
            if not path.is_dir():
                raise StorageError(f"Storage path is not a directory: {path}")
            return path
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory {path}: {e}") from e
        logger.info(f"Created native tool storage directory: {path}")
        return path

    def _artifact_paths(self, program: str):
        storage = self.ensure_storage_directory()
        name = _UNSAFE_NAME_CHARS.sub("_", os.path.basename(program)) or "command"
        stem = f"{name}_{int(time.time() * 1000)}_{secrets.token_hex(6)}"
        return storage / f"{stem}.txt", storage / f"{stem}_error.txt"

    async def execute_direct_to_disk(
        self,
        program: str,
        argv: Sequence[str],
        cwd: Optional[str] = None,
        stdin: Optional[str] = None,
        cancellation_token: Optional[CancellationToken] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ExecutionResult:
        """
        Run `program` with `argv`, streaming output to artifact files.

        Args:
            program: Executable name or path
            argv: Literal arguments (never shell-interpreted)
            cwd: Working directory for the child
            stdin: Optional text fed to the child's stdin
            cancellation_token: Token that terminates the child when cancelled
            env: Full environment for the child. Defaults to inheriting.

        Returns:
            ExecutionResult describing the artifacts and how the run ended

        Raises:
            StorageError: If artifacts cannot be created
        """
        args: List[str] = [str(a) for a in argv]
        command = shlex.join([program, *args])
        output_path, error_path = self._artifact_paths(program)
        logger.debug(f"Executing {command} (cwd={cwd}) -> {output_path}")

        start = time.monotonic()
        exit_code: Optional[int] = None

        with ExitStack() as stack:
            try:
                out_file = stack.enter_context(open(output_path, "ab"))
                err_file = stack.enter_context(open(error_path, "ab"))
            except OSError as e:
                raise StorageError(f"Cannot create output artifacts in {output_path.parent}: {e}") from e

            if cancellation_token is not None and cancellation_token.is_cancelled:
                err_file.write(b"Cancelled before the process was started\n")
                status = ExecutionStatus.CANCELLED
            else:
                try:
                    process = await asyncio.create_subprocess_exec(
                        program,
                        *args,
                        cwd=cwd,
                        stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                        stdout=out_file,
                        stderr=err_file,
                        env=env,
                        start_new_session=True,
                    )
                except OSError as e:
                    logger.debug(f"Failed to start {program}: {e}")
                    err_file.write(f"Failed to start {program}: {e}\n".encode("utf-8", errors="replace"))
                    status = ExecutionStatus.SPAWN_FAILURE
                else:
                    exit_code, cancelled_note = await self._supervise(process, stdin, cancellation_token)
                    if cancelled_note is not None:
                        # append mode keeps the note after whatever the child wrote
                        err_file.write(f"\n{cancelled_note}\n".encode("utf-8"))
                        status = ExecutionStatus.CANCELLED
                    elif exit_code == 0:
                        status = ExecutionStatus.SUCCESS
                    else:
                        status = ExecutionStatus.NON_ZERO_EXIT

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output_size = os.stat(output_path).st_size
        error_size = os.stat(error_path).st_size

        result = ExecutionResult(
            success=status == ExecutionStatus.SUCCESS,
            exit_code=exit_code,
            output_path=str(output_path),
            error_path=str(error_path),
            output_size=output_size,
            error_size=error_size,
            execution_time_ms=elapsed_ms,
            command=command,
            status=status,
        )
        logger.debug(
            f"{program} finished: status={status.value} exit={exit_code} "
            f"output={format_bytes(output_size)} in {elapsed_ms}ms"
        )
        return result

    async def _supervise(
        self,
        process: "asyncio.subprocess.Process",
        stdin: Optional[str],
        token: Optional[CancellationToken],
    ):
        """Wait for exit, cancellation or timeout. Returns (exit_code, cancel_note)."""
        feeder = None
        if stdin is not None:
            feeder = asyncio.create_task(self._feed_stdin(process, stdin))

        wait_task = asyncio.create_task(process.wait())
        watchers = {wait_task}
        cancel_task = None
        if token is not None:
            cancel_task = asyncio.create_task(token.wait())
            watchers.add(cancel_task)

        note: Optional[str] = None
        try:
            done, _ = await asyncio.wait(
                watchers,
                timeout=self.config.timeout_seconds,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if wait_task not in done:
                if cancel_task is not None and cancel_task in done:
                    note = f"Cancelled: {token.reason}" if token.reason else "Cancelled"
                else:
                    note = f"Cancelled: timed out after {self.config.timeout_seconds}s"
                await self._terminate(process)
        except asyncio.CancelledError:
            await self._terminate(process)
            raise
        finally:
            if cancel_task is not None:
                cancel_task.cancel()
            if feeder is not None and not feeder.done():
                feeder.cancel()

        return await wait_task, note

    async def _feed_stdin(self, process: "asyncio.subprocess.Process", data: str) -> None:
        try:
            process.stdin.write(data.encode("utf-8"))
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Child closed stdin before all input was written")
        finally:
            if not process.stdin.is_closing():
                process.stdin.close()

    async def _terminate(self, process: "asyncio.subprocess.Process") -> None:
        """SIGTERM the process group, then SIGKILL after the grace period."""
        if process.returncode is not None:
            return
        self._signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.config.kill_grace_seconds)
        except asyncio.TimeoutError:
            logger.debug(f"Process {process.pid} ignored SIGTERM, sending SIGKILL")
            self._signal_group(process, signal.SIGKILL)
            await process.wait()

    @staticmethod
    def _signal_group(process: "asyncio.subprocess.Process", sig: int) -> None:
        try:
            if hasattr(os, "killpg"):
                os.killpg(process.pid, sig)
            else:
                process.send_signal(sig)
        except ProcessLookupError:
            pass
