"""
Toolguard Session - per-conversation state for native tools and policy.

Holds everything that is scoped to one agent session:
- the access record (which files were read)
- user-provided URLs for the current turn
- the cancellation tokens of in-flight tool calls
- the native tool adapters, built once

Usage:
    config = ToolguardConfig.from_file("toolguard.yaml")

    async with ToolguardSession(config) as session:
        result = await session.tools["find_files"].invoke(FileSearchParams(pattern="\\.py$"))
        session.start_turn()
"""

import logging
import uuid
from typing import Dict, List, Optional, Set

from vel_toolguard.backends.availability import PathToolAvailability, ToolAvailability
from vel_toolguard.backends.executor import CancellationToken, NativeCommandExecutor
from vel_toolguard.config import ToolguardConfig
from vel_toolguard.policy.access import AccessRecord
from vel_toolguard.policy.enforcer import FileOperationPolicy
from vel_toolguard.tools.base import NativeTool
from vel_toolguard.tools.fd import FileFinderTool
from vel_toolguard.tools.listing import DirectoryListingTool
from vel_toolguard.tools.query import JqTool, YqTool
from vel_toolguard.tools.ripgrep import TextSearchTool
from vel_toolguard.tools.shell import ShellTool

logger = logging.getLogger(__name__)


class ToolguardSession:
    """Session-scoped policy state and tool adapters.

    Two sessions never share an access record, so a file read in one
    session does not unlock edits in another.

    Args:
        config: Toolguard configuration (defaults apply if omitted)
        session_id: Session ID (auto-generated if not provided)
        availability: Tool lookup shared by this session's adapters
    """

    def __init__(
        self,
        config: Optional[ToolguardConfig] = None,
        session_id: Optional[str] = None,
        availability: Optional[ToolAvailability] = None,
    ) -> None:
        self._config = config or ToolguardConfig()
        self._session_id = session_id or str(uuid.uuid4())
        self._availability = availability or PathToolAvailability()
        self._access_record = AccessRecord()
        self._policy = FileOperationPolicy(self._config.policy, self._access_record)
        self._executor = NativeCommandExecutor(self._config.executor)
        self._tools: Optional[Dict[str, NativeTool]] = None
        self._active_tokens: Set[CancellationToken] = set()
        self._turn_count = 0

    @property
    def session_id(self) -> str:
        """Get the session ID."""
        return self._session_id

    @property
    def config(self) -> ToolguardConfig:
        return self._config

    @property
    def access_record(self) -> AccessRecord:
        return self._access_record

    @property
    def policy(self) -> FileOperationPolicy:
        return self._policy

    @property
    def executor(self) -> NativeCommandExecutor:
        return self._executor

    @property
    def turn_count(self) -> int:
        return self._turn_count

    @property
    def tools(self) -> Dict[str, NativeTool]:
        """Enabled native tools by name, built on first access."""
        if self._tools is None:
            self._tools = self._build_tools()
        return self._tools

    def _build_tools(self) -> Dict[str, NativeTool]:
        tools_config = self._config.tools
        common = dict(
            executor=self._executor,
            availability=self._availability,
            summary_config=self._config.summary,
            working_dir=tools_config.working_dir or self._config.policy.base_dir,
        )
        candidates: List[NativeTool] = [
            FileFinderTool(excluded_dirs=tools_config.excluded_dirs, **common),
            TextSearchTool(excluded_dirs=tools_config.excluded_dirs, **common),
            DirectoryListingTool(**common),
            JqTool(**common),
            YqTool(**common),
            ShellTool(**common),
        ]
        tools = {tool.name: tool for tool in candidates if tools_config.is_enabled(tool.name)}
        logger.debug(f"Session {self._session_id} tools: {', '.join(tools)}")
        return tools

    def new_cancellation_token(self) -> CancellationToken:
        """Create a token that interrupt() will cancel."""
        token = CancellationToken()
        self._active_tokens.add(token)
        return token

    def release_token(self, token: CancellationToken) -> None:
        self._active_tokens.discard(token)

    def interrupt(self, reason: str = "interrupted") -> int:
        """Cancel every in-flight tool call. Returns how many were cancelled."""
        tokens = list(self._active_tokens)
        for token in tokens:
            token.cancel(reason)
        self._active_tokens.clear()
        return len(tokens)

    def start_turn(self) -> None:
        """Begin a new user turn: user-provided URLs expire."""
        self._turn_count += 1
        self._policy.clear_user_provided_urls()

    def reset(self) -> None:
        """Forget everything the session has learned."""
        self.interrupt("session reset")
        self._access_record.clear()
        self._policy.clear_user_provided_urls()
        self._turn_count = 0

    async def __aenter__(self) -> "ToolguardSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.interrupt("session closed")
