"""
Vel Toolguard Backends

Bounded process execution, tool discovery and policy-checked file access.
"""

from vel_toolguard.backends.availability import (
    PathToolAvailability,
    StaticToolAvailability,
    ToolAvailability,
)
from vel_toolguard.backends.executor import (
    CancellationToken,
    ExecutionResult,
    ExecutionStatus,
    NativeCommandExecutor,
    StorageError,
)
from vel_toolguard.backends.real import (
    PolicyFilesystemBackend,
)
