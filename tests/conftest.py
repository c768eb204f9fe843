"""
Pytest Configuration and Shared Fixtures

Provides fixtures for testing vel_toolguard components.
"""

from pathlib import Path

import pytest

from vel_toolguard.backends.availability import PathToolAvailability
from vel_toolguard.backends.executor import NativeCommandExecutor
from vel_toolguard.config import ExecutorConfig, PolicyConfig, SummaryConfig, ToolguardConfig, ToolsConfig
from vel_toolguard.policy.enforcer import FileOperationPolicy
from vel_toolguard.session import ToolguardSession


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    """Artifact directory inside the test's tmp dir."""
    return tmp_path / "artifacts"


@pytest.fixture
def executor(storage_dir: Path) -> NativeCommandExecutor:
    """Executor writing artifacts under tmp_path with a short kill grace."""
    return NativeCommandExecutor(ExecutorConfig(storage_dir=str(storage_dir), kill_grace_seconds=0.5))


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A small project tree with sources, data files and ignored directories."""
    root = tmp_path / "project"
    (root / "src" / "pkg").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "node_modules" / "left-pad").mkdir(parents=True)
    (root / "data").mkdir()

    (root / "README.md").write_text("# Demo\n\nTODO: write docs\n")
    (root / "src" / "main.py").write_text("def main():\n    print('hello')\n\n# TODO: args\n")
    (root / "src" / "pkg" / "__init__.py").write_text("")
    (root / "src" / "pkg" / "util.py").write_text("def helper():\n    return 42  # TODO tidy\n")
    (root / "docs" / "guide.md").write_text("Guide\n")
    (root / "node_modules" / "left-pad" / "index.js").write_text("// TODO never\n")
    (root / "data" / "users.json").write_text(
        '{"users": [{"name": "alice", "age": 31}, {"name": "bob", "age": 27}]}\n'
    )
    (root / "data" / "services.yaml").write_text(
        "services:\n  web:\n    image: nginx\n  db:\n    image: postgres\n"
    )
    return root


@pytest.fixture
def toolguard_config(storage_dir: Path, project_dir: Path) -> ToolguardConfig:
    """Config pointing storage at tmp_path and tools at the sample project."""
    return ToolguardConfig(
        executor=ExecutorConfig(storage_dir=str(storage_dir), kill_grace_seconds=0.5),
        summary=SummaryConfig(),
        policy=PolicyConfig(base_dir=str(project_dir)),
        tools=ToolsConfig(working_dir=str(project_dir)),
    )


@pytest.fixture
def session(toolguard_config: ToolguardConfig) -> ToolguardSession:
    """Fresh session over the sample project."""
    return ToolguardSession(toolguard_config, availability=PathToolAvailability())


@pytest.fixture
def policy(tmp_path: Path) -> FileOperationPolicy:
    """Policy resolving relative paths against tmp_path."""
    return FileOperationPolicy(PolicyConfig(base_dir=str(tmp_path)))
