"""
Vel Toolguard Hooks - pre-tool control hooks for command and file policy.

Lets a host block or rewrite tool calls before they run, using the same
allow/deny/modify protocol regardless of who implements the tool.

Key concepts:
- HookResult: allow/deny/modify decision from a hook
- HookMatcher: matches tool names via regex, dispatches to a handler
- HookEngine: runs matchers in order; the first deny wins
- Guard hooks fail closed: a handler that errors or times out denies

Usage:
    from vel_toolguard.hooks import HookEngine, create_command_security_hook

    engine = HookEngine(hooks={
        "pre_tool_use": [
            create_command_security_hook(),
            create_file_policy_hook(session.policy),
        ],
    })
    result = await engine.run_pre_tool_hooks(PreToolUseEvent("shell", {"command": "rm -rf /"}))
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional

from vel_toolguard.policy.enforcer import FileOperationPolicy
from vel_toolguard.security.validator import validate_command

logger = logging.getLogger(__name__)

SHELL_TOOL_PATTERN = "shell|execute|bash|run_command"
FILE_TOOL_PATTERN = "read_file|write_file|edit_file|create_file|fetch_url|web_fetch"

# tool name -> policy operation
FILE_TOOL_OPERATIONS: Dict[str, str] = {
    "read_file": "read",
    "write_file": "write",
    "edit_file": "edit",
    "create_file": "create",
}

_PATH_KEYS = ("path", "file_path")


@dataclass
class PreToolUseEvent:
    """Event emitted before a tool is executed."""

    tool_name: str
    tool_input: Dict[str, Any]
    tool_call_id: str = ""
    session_id: str = ""


@dataclass
class HookResult:
    """Result from a control hook.

    Decisions:
    - "allow": Tool executes normally
    - "deny": Tool is blocked, reason returned to agent
    - "modify": Tool executes with updated_input
    """

    decision: Literal["allow", "deny", "modify"] = "allow"
    updated_input: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None

    @property
    def denied(self) -> bool:
        return self.decision == "deny"


@dataclass
class HookMatcher:
    """Matches tool names via regex and dispatches to handler.

    Args:
        matcher: Regex pattern for tool names (full match). None matches all tools.
        handler: Callable (event) -> HookResult | None, sync or async
        timeout: Max seconds to wait for an async handler
        fail_closed: Deny the call when the handler errors or times out
    """

    matcher: Optional[str] = None
    handler: Optional[Callable] = None
    timeout: float = 30.0
    fail_closed: bool = True

    def matches(self, tool_name: str) -> bool:
        """Check if this matcher applies to the given tool name."""
        if self.matcher is None:
            return True
        try:
            return bool(re.fullmatch(self.matcher, tool_name))
        except re.error:
            logger.warning(f"Invalid hook matcher regex: {self.matcher}")
            return False


class HookEngine:
    """Runs pre-tool hooks with matcher-based dispatch.

    For pre-tool hooks the first deny wins. A modify decision is applied
    to the event so later matchers see the rewritten input.
    """

    def __init__(self, hooks: Optional[Dict[str, List[HookMatcher]]] = None) -> None:
        self._hooks: Dict[str, List[HookMatcher]] = hooks or {}

    @property
    def hooks(self) -> Dict[str, List[HookMatcher]]:
        return self._hooks

    def has_hooks(self, event_type: str) -> bool:
        return bool(self._hooks.get(event_type))

    def add_hooks(self, event_type: str, matchers: List[HookMatcher]) -> None:
        """Add hook matchers to an event type."""
        self._hooks.setdefault(event_type, []).extend(matchers)

    async def run_pre_tool_hooks(self, event: PreToolUseEvent) -> HookResult:
        """Run pre-tool-use hooks.

        Returns:
            deny if any matcher denies, else the last modify, else allow
        """
        last_modify: Optional[HookResult] = None

        for matcher in self._hooks.get("pre_tool_use", []):
            if matcher.handler is None or not matcher.matches(event.tool_name):
                continue

            result = await self._invoke_handler(matcher, event)
            if result is None:
                continue

            if result.decision == "deny":
                logger.warning(f"Tool call denied: {event.tool_name}: {result.reason}")
                return result
            if result.decision == "modify" and result.updated_input is not None:
                last_modify = result
                event.tool_input = result.updated_input

        return last_modify or HookResult(decision="allow")

    async def _invoke_handler(self, matcher: HookMatcher, event: PreToolUseEvent) -> Optional[HookResult]:
        """Invoke a handler with timeout protection."""
        tool_name = event.tool_name
        try:
            if asyncio.iscoroutinefunction(matcher.handler):
                result = await asyncio.wait_for(matcher.handler(event), timeout=matcher.timeout)
            else:
                result = matcher.handler(event)
        except asyncio.TimeoutError:
            logger.warning(f"Hook timed out after {matcher.timeout}s for tool {tool_name}")
            if matcher.fail_closed:
                return HookResult(decision="deny", reason=f"Hook timed out after {matcher.timeout}s")
            return None
        except Exception as e:
            logger.warning(f"Hook raised exception for tool {tool_name}: {e}")
            if matcher.fail_closed:
                return HookResult(decision="deny", reason=f"Hook failed: {e}")
            return None

        return result if isinstance(result, HookResult) else None


def create_command_security_hook(matcher: str = SHELL_TOOL_PATTERN) -> HookMatcher:
    """Create a pre_tool_use hook that runs shell commands through the validator.

    Args:
        matcher: Tool-name regex of the tools that take a `command` input

    Returns:
        HookMatcher denying commands the validator rejects
    """

    def command_guard(event: PreToolUseEvent) -> HookResult:
        command = event.tool_input.get("command", "")
        verdict = validate_command(command)
        if not verdict.allowed:
            return HookResult(decision="deny", reason=verdict.denial_reason)
        return HookResult(decision="allow")

    return HookMatcher(matcher=matcher, handler=command_guard)


def create_file_policy_hook(
    policy: FileOperationPolicy,
    matcher: str = FILE_TOOL_PATTERN,
) -> HookMatcher:
    """Create a pre_tool_use hook enforcing the file-operation policy.

    Writes and edits need a prior read, creation must not clobber an
    existing file and fetched URLs must be allowed. Relative paths are
    rewritten to absolute ones with a modify decision.

    Reads are not recorded here; recording happens once the read has
    actually succeeded.
    """

    def file_guard(event: PreToolUseEvent) -> HookResult:
        tool_input = event.tool_input

        url = tool_input.get("url")
        if url is not None:
            decision = policy.validate_url(url, is_user_provided=bool(tool_input.get("user_provided", False)))
            if decision.should_block:
                return HookResult(decision="deny", reason=decision.message)
            return HookResult(decision="allow")

        operation = FILE_TOOL_OPERATIONS.get(event.tool_name)
        key = next((k for k in _PATH_KEYS if k in tool_input), None)
        if operation is None or key is None:
            return HookResult(decision="allow")

        decision = policy.validate_file_operation(operation, tool_input[key])
        if decision.should_block:
            return HookResult(decision="deny", reason=decision.message)
        if decision.corrected_value and decision.corrected_value != tool_input[key]:
            return HookResult(decision="modify", updated_input={**tool_input, key: decision.corrected_value})
        return HookResult(decision="allow")

    return HookMatcher(matcher=matcher, handler=file_guard)
