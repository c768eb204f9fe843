"""
Policy-Checked Filesystem Backend

Real filesystem access where every operation passes the file-operation
policy first: reads are recorded, writes and edits need a prior read,
and creation never clobbers an existing file.
"""

import logging
from itertools import islice
from pathlib import Path
from typing import Any, Dict, Optional

from vel_toolguard.policy.enforcer import FileOperationPolicy

logger = logging.getLogger(__name__)


class PolicyFilesystemBackend:
    """
    Backend for reading and modifying real files under a policy.

    Results are dicts; failures carry an "error" key instead of raising.
    """

    def __init__(self, policy: FileOperationPolicy, base_path: Optional[str] = None) -> None:
        """
        Initialize backend.

        Args:
            policy: Session policy deciding which operations may run
            base_path: Directory relative paths are resolved against.
                       Defaults to the policy's base_dir, then cwd.
        """
        self.policy = policy
        self.base_path = base_path or policy.config.base_dir

    def _check(self, operation: str, path: str, is_new_file: bool = False):
        decision = self.policy.validate_file_operation(
            operation, path, is_new_file=is_new_file, base_dir=self.base_path
        )
        if not decision.is_valid:
            return None, decision.message
        return Path(decision.corrected_value or path), None

    def read_file(self, path: str, offset: int = 0, limit: int = 100) -> Dict[str, Any]:
        """Read a window of lines, numbered. The file is streamed, not loaded."""
        resolved, error = self._check("read", path)
        if error:
            return {"path": path, "error": error, "content": ""}

        if not resolved.exists():
            return {"path": str(resolved), "error": f"File does not exist: {resolved}", "content": ""}
        if not resolved.is_file():
            return {"path": str(resolved), "error": f"Not a file: {resolved}", "content": ""}

        offset = max(offset, 0)
        try:
            with open(resolved, "r", encoding="utf-8", errors="replace") as f:
                selected = list(islice(f, offset, offset + limit))
                remaining = sum(1 for _ in f)
        except OSError as e:
            return {"path": str(resolved), "error": str(e), "content": ""}

        self.policy.record_read(str(resolved))

        numbered = [f"{i:6d}│{line.rstrip()}" for i, line in enumerate(selected, start=offset + 1)]
        return {
            "path": str(resolved),
            "content": "\n".join(numbered),
            "lines_returned": len(selected),
            "total_lines": offset + len(selected) + remaining if selected else None,
            "has_more": remaining > 0,
        }

    def write_file(self, path: str, content: str) -> Dict[str, Any]:
        """Write a file. Overwriting an existing file counts as an edit."""
        resolved, error = self._check("write", path)
        if error:
            return {"status": "error", "path": path, "error": error}

        try:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            resolved.write_text(content, encoding="utf-8")
        except OSError as e:
            return {"status": "error", "path": str(resolved), "error": str(e)}

        # the agent wrote it, so it knows the content
        self.policy.record_read(str(resolved))
        return {
            "status": "success",
            "path": str(resolved),
            "size_bytes": len(content.encode("utf-8")),
        }

    def create_file(self, path: str, content: str = "") -> Dict[str, Any]:
        """Create a new file; refuses if it already exists."""
        resolved, error = self._check("create", path, is_new_file=True)
        if error:
            return {"status": "error", "path": path, "error": error}
        return self.write_file(str(resolved), content)

    def edit_file(self, path: str, old_text: str, new_text: str) -> Dict[str, Any]:
        """Replace a unique occurrence of old_text with new_text."""
        resolved, error = self._check("edit", path)
        if error:
            return {"status": "error", "path": path, "error": error}

        if not resolved.is_file():
            return {"status": "error", "path": str(resolved), "error": f"File does not exist: {resolved}"}

        try:
            content = resolved.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return {"status": "error", "path": str(resolved), "error": str(e)}

        count = content.count(old_text) if old_text else 0
        if count == 0:
            return {"status": "error", "path": str(resolved), "error": "old_text not found in file"}
        if count > 1:
            return {
                "status": "error",
                "path": str(resolved),
                "error": f"old_text found {count} times, must be unique",
            }

        try:
            resolved.write_text(content.replace(old_text, new_text), encoding="utf-8")
        except OSError as e:
            return {"status": "error", "path": str(resolved), "error": str(e)}

        logger.debug(f"Edited {resolved}")
        return {"status": "success", "path": str(resolved)}
