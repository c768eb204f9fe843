"""
Vel Toolguard - command safety and bounded-output native tools for vel agents

Validates shell command text before anything is spawned, and runs native
search/listing/query tools with their output written to disk so an agent
only ever sees a bounded summary.

Primary API:
    from vel_toolguard import ToolguardSession, NativeToolsMiddleware

    session = ToolguardSession()
    middleware = NativeToolsMiddleware(session)
    tools = middleware.get_tools()

    verdict = validate_command("git status && rm -rf /")
    assert not verdict.allowed
"""

# Configuration
from vel_toolguard.config import (
    ConfigError,
    ExecutorConfig,
    PolicyConfig,
    SummaryConfig,
    ToolguardConfig,
    ToolguardError,
    ToolsConfig,
)

# Security
from vel_toolguard.security import (
    CommandWarning,
    SecurityVerdict,
    get_recommended_tool,
    is_read_only,
    optimization_guide,
    validate_command,
)

# Summaries
from vel_toolguard.summary import (
    INLINE_THRESHOLD,
    PREVIEW_LINES,
    ResultSummary,
    format_bytes,
    summarize,
)

# Execution
from vel_toolguard.backends import (
    CancellationToken,
    ExecutionResult,
    ExecutionStatus,
    NativeCommandExecutor,
    PathToolAvailability,
    PolicyFilesystemBackend,
    StaticToolAvailability,
    StorageError,
    ToolAvailability,
)

# Policy
from vel_toolguard.policy import (
    AccessRecord,
    FileOperationPolicy,
    PolicyDecision,
)

# Tools
from vel_toolguard.tools import (
    DirectoryListingTool,
    FileFinderTool,
    FileSearchParams,
    JqTool,
    ListingParams,
    NativeTool,
    QueryParams,
    ShellParams,
    ShellTool,
    TextSearchParams,
    TextSearchTool,
    ToolError,
    ToolErrorType,
    ToolResult,
    YqTool,
)

# Session and hooks
from vel_toolguard.session import ToolguardSession
from vel_toolguard.hooks import (
    HookEngine,
    HookMatcher,
    HookResult,
    PreToolUseEvent,
    create_command_security_hook,
    create_file_policy_hook,
)

# Middleware
from vel_toolguard.middleware import (
    NativeToolsMiddleware,
    PolicyFilesystemMiddleware,
)

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "ToolguardConfig",
    "ExecutorConfig",
    "SummaryConfig",
    "PolicyConfig",
    "ToolsConfig",
    "ToolguardError",
    "ConfigError",
    # Security
    "validate_command",
    "is_read_only",
    "get_recommended_tool",
    "optimization_guide",
    "SecurityVerdict",
    "CommandWarning",
    # Summaries
    "INLINE_THRESHOLD",
    "PREVIEW_LINES",
    "ResultSummary",
    "summarize",
    "format_bytes",
    # Execution
    "NativeCommandExecutor",
    "ExecutionResult",
    "ExecutionStatus",
    "CancellationToken",
    "StorageError",
    "ToolAvailability",
    "PathToolAvailability",
    "StaticToolAvailability",
    "PolicyFilesystemBackend",
    # Policy
    "AccessRecord",
    "FileOperationPolicy",
    "PolicyDecision",
    # Tools
    "NativeTool",
    "ToolResult",
    "ToolError",
    "ToolErrorType",
    "FileFinderTool",
    "FileSearchParams",
    "TextSearchTool",
    "TextSearchParams",
    "DirectoryListingTool",
    "ListingParams",
    "JqTool",
    "YqTool",
    "QueryParams",
    "ShellTool",
    "ShellParams",
    # Session and hooks
    "ToolguardSession",
    "HookEngine",
    "HookMatcher",
    "HookResult",
    "PreToolUseEvent",
    "create_command_security_hook",
    "create_file_policy_hook",
    # Middleware
    "NativeToolsMiddleware",
    "PolicyFilesystemMiddleware",
]
