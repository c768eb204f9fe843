"""
Vel Toolguard Configuration

Configuration classes for the command validator, the bounded executor,
the result summarizer and the file-operation policy.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

STORAGE_DIR_ENV = "VEL_TOOLGUARD_STORAGE_DIR"

DEFAULT_EXCLUDED_DIRS = ["node_modules", ".git", ".next", "dist", "build"]

DEFAULT_TOOLS = ["find_files", "search_text", "list_directory", "query_json", "query_yaml", "shell"]


class ToolguardError(Exception):
    """Base class for errors raised by vel_toolguard."""


class ConfigError(ToolguardError):
    """Raised when a configuration file cannot be loaded."""


@dataclass
class ExecutorConfig:
    """Bounded executor configuration."""

    storage_dir: Optional[str] = None
    kill_grace_seconds: float = 2.0
    # None means no internal timeout; cancellation is the caller's job
    timeout_seconds: Optional[float] = None

    def resolve_storage_dir(self) -> Optional[str]:
        """Configured storage dir, falling back to the environment override."""
        return self.storage_dir or os.environ.get(STORAGE_DIR_ENV) or None


@dataclass
class SummaryConfig:
    """Result summarizer thresholds."""

    inline_threshold: int = 100
    preview_lines: int = 50
    max_preview_bytes: int = 64 * 1024


@dataclass
class PolicyConfig:
    """File-operation policy configuration."""

    require_read_before_edit: bool = True
    allow_existing_file_creation: bool = False
    auto_resolve_to_absolute: bool = True
    base_dir: Optional[str] = None
    url_allowlist: List[str] = field(default_factory=list)
    allow_user_provided_urls: bool = True
    block_unlisted_urls: bool = True


@dataclass
class ToolsConfig:
    """Which native tools are exposed and how smart search behaves."""

    enabled: List[str] = field(default_factory=lambda: list(DEFAULT_TOOLS))
    working_dir: Optional[str] = None
    excluded_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRS))

    def is_enabled(self, name: str) -> bool:
        return name in self.enabled


@dataclass
class ToolguardConfig:
    """
    Complete toolguard configuration.

    Example:
        config = ToolguardConfig.from_dict({
            "executor": {"storage_dir": "/var/tmp/agent-output"},
            "summary": {"inline_threshold": 200},
            "policy": {"require_read_before_edit": False},
        })
    """

    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    summary: SummaryConfig = field(default_factory=SummaryConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolguardConfig":
        """Create config from dictionary."""
        config = cls()

        # Executor
        if "executor" in data:
            ex_data = data["executor"]
            if isinstance(ex_data, dict):
                config.executor = ExecutorConfig(
                    storage_dir=ex_data.get("storage_dir"),
                    kill_grace_seconds=float(ex_data.get("kill_grace_seconds", 2.0)),
                    timeout_seconds=ex_data.get("timeout_seconds"),
                )
            elif isinstance(ex_data, str):
                config.executor = ExecutorConfig(storage_dir=ex_data)

        # Summary
        if "summary" in data:
            sum_data = data["summary"]
            if isinstance(sum_data, dict):
                config.summary = SummaryConfig(
                    inline_threshold=int(sum_data.get("inline_threshold", 100)),
                    preview_lines=int(sum_data.get("preview_lines", 50)),
                    max_preview_bytes=int(sum_data.get("max_preview_bytes", 64 * 1024)),
                )

        # Policy
        if "policy" in data:
            pol_data = data["policy"]
            if isinstance(pol_data, dict):
                config.policy = PolicyConfig(
                    require_read_before_edit=pol_data.get("require_read_before_edit", True),
                    allow_existing_file_creation=pol_data.get("allow_existing_file_creation", False),
                    auto_resolve_to_absolute=pol_data.get("auto_resolve_to_absolute", True),
                    base_dir=pol_data.get("base_dir"),
                    url_allowlist=pol_data.get("url_allowlist", []),
                    allow_user_provided_urls=pol_data.get("allow_user_provided_urls", True),
                    block_unlisted_urls=pol_data.get("block_unlisted_urls", True),
                )
            elif isinstance(pol_data, bool):
                # `policy: false` turns the guards off, not the URL checks
                config.policy = PolicyConfig(
                    require_read_before_edit=pol_data,
                    allow_existing_file_creation=not pol_data,
                )

        # Tools
        if "tools" in data:
            tools_data = data["tools"]
            if isinstance(tools_data, dict):
                config.tools = ToolsConfig(
                    enabled=tools_data.get("enabled", list(DEFAULT_TOOLS)),
                    working_dir=tools_data.get("working_dir"),
                    excluded_dirs=tools_data.get("excluded_dirs", list(DEFAULT_EXCLUDED_DIRS)),
                )
            elif isinstance(tools_data, list):
                config.tools = ToolsConfig(enabled=list(tools_data))

        return config

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ToolguardConfig":
        """
        Load config from a YAML or JSON file.

        Args:
            path: Path to a .yaml/.yml or .json file

        Returns:
            ToolguardConfig

        Raises:
            ConfigError: If the file is missing or malformed
        """
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            text = config_path.read_text(encoding="utf-8")
            if config_path.suffix.lower() == ".json":
                data = json.loads(text)
            else:
                data = yaml.safe_load(text)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not load config {config_path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config root must be a mapping: {config_path}")

        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary."""
        return asdict(self)
