"""
Vel Toolguard Security

Read-only command validation for shell text.
"""

from vel_toolguard.security.shell import (
    CommandSegment,
    ShellParseError,
    split_commands,
    strip_shell_wrapper,
    tokenize,
)
from vel_toolguard.security.validator import (
    CommandWarning,
    SecurityVerdict,
    get_recommended_tool,
    is_read_only,
    optimization_guide,
    validate_command,
)
