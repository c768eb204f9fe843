"""
Vel Toolguard Tools

Adapters that run native binaries with bounded, summarized output.
"""

from vel_toolguard.tools.base import (
    NativeTool,
    ToolError,
    ToolErrorType,
    ToolInvocationSpec,
    ToolResult,
)
from vel_toolguard.tools.fd import FileFinderTool, FileSearchParams
from vel_toolguard.tools.listing import DirectoryListingTool, ListingParams
from vel_toolguard.tools.query import JqTool, QueryParams, YqTool
from vel_toolguard.tools.ripgrep import TextSearchParams, TextSearchTool
from vel_toolguard.tools.shell import ShellParams, ShellTool
