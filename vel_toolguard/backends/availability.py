"""
Tool Availability

Resolves external binaries once so adapters can pick a backend at
construction time instead of probing on every call.
"""

import logging
import shutil
from typing import Dict, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Tools packaged under a different executable name on some distributions
TOOL_ALIASES: Dict[str, tuple] = {
    "fd": ("fd", "fdfind"),
    "rg": ("rg", "ripgrep"),
}


@runtime_checkable
class ToolAvailability(Protocol):
    """Answers whether a tool exists and where."""

    def resolve(self, name: str) -> Optional[str]:
        """Return the executable path for `name`, or None if absent."""
        ...

    def is_available(self, name: str) -> bool:
        ...


class PathToolAvailability:
    """
    Looks tools up on PATH and caches the answer for the life of the object.

    Debian's `fdfind` is accepted for `fd`.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        """
        Args:
            path: Search path override (os.pathsep separated). Defaults to $PATH.
        """
        self._path = path
        self._cache: Dict[str, Optional[str]] = {}

    def resolve(self, name: str) -> Optional[str]:
        if name not in self._cache:
            found = None
            for candidate in TOOL_ALIASES.get(name, (name,)):
                found = shutil.which(candidate, path=self._path)
                if found:
                    break
            if found is None:
                logger.debug(f"Tool not found on PATH: {name}")
            self._cache[name] = found
        return self._cache[name]

    def is_available(self, name: str) -> bool:
        return self.resolve(name) is not None


class StaticToolAvailability:
    """
    Fixed answers, for tests and for hosts that pin tool locations.

    Names missing from `tools` are deferred to `fallback` when given.

    Example:
        # pretend eza is not installed, find everything else on PATH
        availability = StaticToolAvailability({"eza": None}, fallback=PathToolAvailability())
    """

    def __init__(
        self,
        tools: Optional[Dict[str, Optional[str]]] = None,
        fallback: Optional[ToolAvailability] = None,
    ) -> None:
        self._tools = dict(tools or {})
        self._fallback = fallback

    def resolve(self, name: str) -> Optional[str]:
        if name in self._tools:
            return self._tools[name]
        if self._fallback is not None:
            return self._fallback.resolve(name)
        return None

    def is_available(self, name: str) -> bool:
        return self.resolve(name) is not None
