"""
Middleware Base

Interface shared by the vel-facing middleware: tools, a system prompt
segment, and state that can be persisted between runs.
"""

from typing import Any, Dict, List, Protocol, runtime_checkable


@runtime_checkable
class Middleware(Protocol):
    """Anything that contributes tools and instructions to a vel agent."""

    def get_tools(self) -> List[Any]:
        """Return vel ToolSpec instances."""
        ...

    def get_system_prompt_segment(self) -> str:
        """Return markdown appended to the agent's system prompt."""
        ...

    def get_state(self) -> Dict[str, Any]:
        ...

    def load_state(self, state: Dict[str, Any]) -> None:
        ...


class BaseMiddleware:
    """Default no-op implementations."""

    def get_tools(self) -> List[Any]:
        return []

    def get_system_prompt_segment(self) -> str:
        return ""

    def get_state(self) -> Dict[str, Any]:
        return {}

    def load_state(self, state: Dict[str, Any]) -> None:
        pass
