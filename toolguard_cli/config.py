"""
Toolguard CLI Configuration

Config file discovery and loading.
"""

from pathlib import Path
from typing import Optional

import yaml

from vel_toolguard.config import ToolguardConfig

CONFIG_FILE_NAMES = ("toolguard.yaml", "toolguard.yml", "toolguard.json", ".toolguard.yaml")


def detect_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find the nearest toolguard config file.

    Walks up from start_path looking for one of CONFIG_FILE_NAMES.

    Args:
        start_path: Starting directory (defaults to cwd)

    Returns:
        Path to the config file if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()
    while True:
        for name in CONFIG_FILE_NAMES:
            candidate = current / name
            if candidate.is_file():
                return candidate
        if current == current.parent:
            return None
        current = current.parent


def get_config(config_path: Optional[Path] = None, project_dir: Optional[Path] = None) -> ToolguardConfig:
    """
    Load configuration.

    Args:
        config_path: Explicit config file
        project_dir: Directory to start config discovery from

    Returns:
        ToolguardConfig (defaults when no file is found)

    Raises:
        ConfigError: If the chosen file cannot be loaded
    """
    path = config_path or detect_config_file(project_dir)
    if path is None:
        return ToolguardConfig()
    return ToolguardConfig.from_file(path)


def init_config(path: Optional[Path] = None) -> Path:
    """
    Write a toolguard.yaml with the default settings.

    Args:
        path: Directory to write into (defaults to cwd)

    Returns:
        Path to the created file

    Raises:
        FileExistsError: If a config file is already there
    """
    directory = path or Path.cwd()
    target = directory / CONFIG_FILE_NAMES[0]
    if target.exists():
        raise FileExistsError(f"Config already exists: {target}")
    target.write_text(yaml.safe_dump(ToolguardConfig().to_dict(), sort_keys=False), encoding="utf-8")
    return target
