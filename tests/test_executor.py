"""
Tests for the bounded command executor

Tests direct-to-disk execution including:
- artifacts for success, non-zero exit and spawn failure
- stdin, cwd and env handling
- cancellation (token, timeout, outer task) keeping partial output
- storage directory errors
"""

import asyncio
import os
from pathlib import Path

import pytest

from vel_toolguard.backends.executor import (
    CancellationToken,
    ExecutionStatus,
    NativeCommandExecutor,
    StorageError,
    default_storage_dir,
)
from vel_toolguard.config import STORAGE_DIR_ENV, ExecutorConfig


class TestExecution:
    """Tests for completed executions."""

    @pytest.mark.asyncio
    async def test_success_writes_output_artifact(self, executor, storage_dir):
        result = await executor.execute_direct_to_disk("sh", ["-c", "echo one; echo two"])

        assert result.status == ExecutionStatus.SUCCESS
        assert result.success is True
        assert result.exit_code == 0
        assert Path(result.output_path).parent == storage_dir
        assert Path(result.output_path).read_text() == "one\ntwo\n"
        assert result.output_size == 8
        assert result.error_size == 0
        assert Path(result.error_path).exists()

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, executor):
        result = await executor.execute_direct_to_disk("sh", ["-c", "echo oops >&2; exit 3"])

        assert result.status == ExecutionStatus.NON_ZERO_EXIT
        assert result.success is False
        assert result.exit_code == 3
        assert "oops" in Path(result.error_path).read_text()

    @pytest.mark.asyncio
    async def test_spawn_failure(self, executor):
        result = await executor.execute_direct_to_disk("definitely-not-a-real-binary-42", [])

        assert result.status == ExecutionStatus.SPAWN_FAILURE
        assert result.exit_code is None
        assert result.success is False
        assert result.output_size == 0
        assert "definitely-not-a-real-binary-42" in Path(result.error_path).read_text()

    @pytest.mark.asyncio
    async def test_missing_cwd_is_spawn_failure(self, executor, tmp_path):
        result = await executor.execute_direct_to_disk("pwd", [], cwd=str(tmp_path / "missing"))
        assert result.status == ExecutionStatus.SPAWN_FAILURE

    @pytest.mark.asyncio
    async def test_arguments_are_literal(self, executor):
        result = await executor.execute_direct_to_disk("echo", ["$HOME", "; rm -rf /", "*"])
        assert Path(result.output_path).read_text() == "$HOME ; rm -rf / *\n"

    @pytest.mark.asyncio
    async def test_stdin(self, executor):
        result = await executor.execute_direct_to_disk("cat", [], stdin="alpha\nbeta\n")
        assert Path(result.output_path).read_text() == "alpha\nbeta\n"

    @pytest.mark.asyncio
    async def test_cwd(self, executor, tmp_path):
        result = await executor.execute_direct_to_disk("pwd", [], cwd=str(tmp_path))
        assert os.path.realpath(Path(result.output_path).read_text().strip()) == os.path.realpath(tmp_path)

    @pytest.mark.asyncio
    async def test_env(self, executor):
        env = {"PATH": os.environ.get("PATH", ""), "TOOLGUARD_TEST": "bar"}
        result = await executor.execute_direct_to_disk("sh", ["-c", 'printf %s "$TOOLGUARD_TEST"'], env=env)
        assert Path(result.output_path).read_text() == "bar"

    @pytest.mark.asyncio
    async def test_large_output_goes_to_disk(self, executor):
        result = await executor.execute_direct_to_disk("sh", ["-c", "yes line | head -n 100000"])
        assert result.status == ExecutionStatus.SUCCESS
        assert result.output_size == 500000

    @pytest.mark.asyncio
    async def test_unique_artifact_paths(self, executor):
        first = await executor.execute_direct_to_disk("echo", ["a"])
        second = await executor.execute_direct_to_disk("echo", ["a"])
        assert first.output_path != second.output_path
        assert first.error_path != second.error_path
        assert Path(first.output_path).name.startswith("echo_")
        assert first.error_path.endswith("_error.txt")

    @pytest.mark.asyncio
    async def test_result_to_dict(self, executor):
        d = (await executor.execute_direct_to_disk("echo", ["hi"])).to_dict()
        assert d["status"] == "success"
        assert d["output_size_human"] == "3 B"
        assert d["command"] == "echo hi"


class TestCancellation:
    """Tests for cancellation and timeouts."""

    @pytest.mark.asyncio
    async def test_cancel_keeps_partial_output(self, executor):
        token = CancellationToken()
        task = asyncio.create_task(
            executor.execute_direct_to_disk("sh", ["-c", "echo start; sleep 30"], cancellation_token=token)
        )
        await asyncio.sleep(0.5)
        token.cancel("user interrupted")
        result = await asyncio.wait_for(task, timeout=10)

        assert result.status == ExecutionStatus.CANCELLED
        assert result.success is False
        assert Path(result.output_path).read_text() == "start\n"
        assert "Cancelled: user interrupted" in Path(result.error_path).read_text()
        assert result.execution_time_ms < 10000

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, executor):
        token = CancellationToken()
        token.cancel()
        result = await executor.execute_direct_to_disk("echo", ["never"], cancellation_token=token)

        assert result.status == ExecutionStatus.CANCELLED
        assert result.exit_code is None
        assert result.output_size == 0

    @pytest.mark.asyncio
    async def test_timeout(self, storage_dir):
        executor = NativeCommandExecutor(
            ExecutorConfig(storage_dir=str(storage_dir), timeout_seconds=0.3, kill_grace_seconds=0.5)
        )
        result = await executor.execute_direct_to_disk("sleep", ["30"])

        assert result.status == ExecutionStatus.CANCELLED
        assert "timed out" in Path(result.error_path).read_text()

    @pytest.mark.asyncio
    async def test_outer_task_cancellation_propagates(self, executor):
        task = asyncio.create_task(executor.execute_direct_to_disk("sleep", ["30"]))
        await asyncio.sleep(0.3)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(task, timeout=10)

    def test_token_reason_set_once(self):
        token = CancellationToken()
        assert token.is_cancelled is False
        token.cancel("first")
        token.cancel("second")
        assert token.is_cancelled is True
        assert token.reason == "first"


class TestStorage:
    """Tests for the artifact storage directory."""

    def test_created_on_demand(self, executor, storage_dir):
        assert not storage_dir.exists()
        executor.ensure_storage_directory()
        assert storage_dir.is_dir()

    @pytest.mark.asyncio
    async def test_storage_path_is_a_file(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        executor = NativeCommandExecutor(ExecutorConfig(storage_dir=str(blocker)))

        with pytest.raises(StorageError):
            await executor.execute_direct_to_disk("echo", ["hi"])

    @pytest.mark.asyncio
    async def test_output_file_closed_when_error_file_fails(self, executor, storage_dir, monkeypatch):
        from vel_toolguard.backends import executor as executor_module

        storage_dir.mkdir()
        output_path = storage_dir / "echo_1_ab.txt"
        error_path = storage_dir / "missing" / "echo_1_ab_error.txt"
        monkeypatch.setattr(executor, "_artifact_paths", lambda program: (output_path, error_path))

        opened = []

        def tracking_open(*args, **kwargs):
            handle = open(*args, **kwargs)
            opened.append(handle)
            return handle

        monkeypatch.setattr(executor_module, "open", tracking_open, raising=False)

        with pytest.raises(StorageError):
            await executor.execute_direct_to_disk("echo", ["hi"])
        assert len(opened) == 1
        assert opened[0].closed

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv(STORAGE_DIR_ENV, str(tmp_path / "from-env"))
        assert NativeCommandExecutor().storage_dir == tmp_path / "from-env"
        assert default_storage_dir() == tmp_path / "from-env"

    def test_config_wins_over_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv(STORAGE_DIR_ENV, str(tmp_path / "from-env"))
        executor = NativeCommandExecutor(ExecutorConfig(storage_dir=str(tmp_path / "configured")))
        assert executor.storage_dir == tmp_path / "configured"

    def test_default_under_tempdir(self, monkeypatch):
        monkeypatch.delenv(STORAGE_DIR_ENV, raising=False)
        assert default_storage_dir().name == "vel-toolguard-native"
