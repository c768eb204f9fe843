"""
Toolguard CLI

Command-line access to the toolguard validator and native tool adapters.
"""

from vel_toolguard import __version__
from toolguard_cli.config import detect_config_file, get_config, init_config

__all__ = [
    "__version__",
    "detect_config_file",
    "get_config",
    "init_config",
]
