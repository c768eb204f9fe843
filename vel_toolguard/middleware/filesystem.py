"""
Policy Filesystem Middleware

File tools for reading, writing and editing real files, with the
session's file-operation policy applied to every call.
"""

from typing import Any, Dict, List, Optional

from vel import ToolSpec

from vel_toolguard.backends.real import PolicyFilesystemBackend
from vel_toolguard.middleware.base import BaseMiddleware
from vel_toolguard.session import ToolguardSession


class PolicyFilesystemMiddleware(BaseMiddleware):
    """
    Middleware providing policy-checked filesystem tools.

    Provides tools:
    - read_file: paginated read; records the file as read
    - write_file: write (overwriting requires a prior read)
    - create_file: create a new file (refuses existing files)
    - edit_file: unique text replacement (requires a prior read)
    """

    def __init__(self, session: Optional[ToolguardSession] = None, base_path: Optional[str] = None) -> None:
        """
        Initialize filesystem middleware.

        Args:
            session: Session whose policy and access record are used
            base_path: Directory relative paths resolve against
        """
        self._session = session or ToolguardSession()
        self.backend = PolicyFilesystemBackend(self._session.policy, base_path=base_path)

    def get_tools(self) -> List[ToolSpec]:
        """Return filesystem tools."""
        return [
            ToolSpec.from_function(
                self._read_file,
                name="read_file",
                description="""
Read a file with optional pagination (offset/limit in lines).
Returns numbered lines. Also use this to page through result files
saved by the native tools.
                """.strip(),
                category="filesystem",
                tags=["read", "file"],
            ),
            ToolSpec.from_function(
                self._write_file,
                name="write_file",
                description="""
Write content to a file. New files can be written directly;
an existing file must be read with read_file first.
                """.strip(),
                category="filesystem",
                tags=["write", "file"],
                requires_confirmation=True,
            ),
            ToolSpec.from_function(
                self._create_file,
                name="create_file",
                description="Create a new file. Fails if the file already exists.",
                category="filesystem",
                tags=["write", "file"],
                requires_confirmation=True,
            ),
            ToolSpec.from_function(
                self._edit_file,
                name="edit_file",
                description="""
Edit a file by replacing text. old_text must appear exactly once,
and the file must have been read with read_file first.
                """.strip(),
                category="filesystem",
                tags=["write", "file", "edit"],
                requires_confirmation=True,
            ),
        ]

    def get_system_prompt_segment(self) -> str:
        """Return system prompt segment describing the file rules."""
        return """## File Access

**Rules:**
- Read a file with `read_file` before editing or overwriting it
- Use `create_file` only for files that do not exist yet
- Relative paths are resolved to absolute paths
"""

    def _read_file(self, path: str, offset: int = 0, limit: int = 100) -> Dict[str, Any]:
        """
        Read file contents with optional pagination.

        Args:
            path: File path to read
            offset: Starting line (0-indexed, default: 0)
            limit: Maximum lines to return (default: 100)

        Returns:
            Dict with content, lines_returned and has_more
        """
        return self.backend.read_file(path, offset, limit)

    def _write_file(self, path: str, content: str) -> Dict[str, Any]:
        """
        Write content to a file.

        Args:
            path: File path to write
            content: Content to write

        Returns:
            Dict with status and path
        """
        return self.backend.write_file(path, content)

    def _create_file(self, path: str, content: str = "") -> Dict[str, Any]:
        """
        Create a new file.

        Args:
            path: File path to create
            content: Initial content

        Returns:
            Dict with status and path
        """
        return self.backend.create_file(path, content)

    def _edit_file(self, path: str, old_text: str, new_text: str) -> Dict[str, Any]:
        """
        Edit a file by replacing specific text.

        Args:
            path: File path to edit
            old_text: Text to replace (must appear exactly once)
            new_text: Replacement text

        Returns:
            Dict with status and path
        """
        return self.backend.edit_file(path, old_text, new_text)
