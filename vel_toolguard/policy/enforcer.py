"""
File Operation Policy

Guards file and URL operations an agent is about to perform:

- creation must not silently overwrite an existing file
- paths are absolute (relative ones are resolved, when allowed)
- edits require that the file was read earlier in the session
- URLs must be user-provided or on an allow-list

Every check returns a PolicyDecision; nothing here raises for a denied
operation.
"""

import logging
import os
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Pattern, Set
from urllib.parse import urlparse

from vel_toolguard.config import PolicyConfig
from vel_toolguard.policy.access import AccessRecord

logger = logging.getLogger(__name__)

DEFAULT_TRUSTED_URL_PATTERNS = [
    r"^https?://(www\.)?github\.com/",
    r"^https?://raw\.githubusercontent\.com/",
    r"^https?://(www\.)?gitlab\.com/",
    r"^https?://(www\.)?pypi\.org/",
    r"^https?://(www\.)?python\.org/",
    r"^https?://(www\.)?npmjs\.com/",
    r"^https?://(www\.)?nodejs\.org/",
    r"^https?://docs\.",
    r"^https?://api\.",
]

FILE_OPERATIONS = ("read", "write", "edit", "create")


@dataclass
class PolicyDecision:
    """Outcome of one policy check."""

    is_valid: bool
    message: Optional[str] = None
    corrected_value: Optional[str] = None
    should_block: bool = False

    @classmethod
    def allow(cls, corrected_value: Optional[str] = None, message: Optional[str] = None) -> "PolicyDecision":
        return cls(is_valid=True, message=message, corrected_value=corrected_value)

    @classmethod
    def block(cls, message: str) -> "PolicyDecision":
        return cls(is_valid=False, message=message, should_block=True)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"is_valid": self.is_valid, "should_block": self.should_block}
        if self.message:
            d["message"] = self.message
        if self.corrected_value is not None:
            d["corrected_value"] = self.corrected_value
        return d


class FileOperationPolicy:
    """
    Applies the file-operation and URL rules for one session.

    Example:
        policy = FileOperationPolicy(PolicyConfig(base_dir="/work"))
        decision = policy.validate_file_operation("edit", "src/app.py")
        if decision.should_block:
            return {"error": decision.message}
    """

    def __init__(
        self,
        config: Optional[PolicyConfig] = None,
        access_record: Optional[AccessRecord] = None,
    ) -> None:
        """
        Initialize policy.

        Args:
            config: Policy configuration
            access_record: Session read record. A fresh one is created if omitted.
        """
        self.config = config or PolicyConfig()
        self.access_record = access_record if access_record is not None else AccessRecord()
        self._url_allowlist: List[Pattern[str]] = [re.compile(p) for p in self.config.url_allowlist]
        self._trusted: List[Pattern[str]] = [re.compile(p) for p in DEFAULT_TRUSTED_URL_PATTERNS]
        self._user_urls: Set[str] = set()
        self._url_lock = threading.Lock()

    # Paths

    def validate_file_creation(self, path: str) -> PolicyDecision:
        """Deny creating a file that already exists."""
        if self.config.allow_existing_file_creation:
            return PolicyDecision.allow()
        if os.path.exists(path):
            return PolicyDecision.block(
                f"File already exists: {path}. Read it and edit it instead of creating it again."
            )
        return PolicyDecision.allow()

    def validate_and_resolve_path(self, path: str, base_dir: Optional[str] = None) -> PolicyDecision:
        """
        Check a path and return its absolute form in `corrected_value`.

        Args:
            path: Path as supplied by the agent
            base_dir: Directory to resolve relative paths against. Defaults to
                the configured base_dir, then the process cwd.
        """
        if not path or not path.strip():
            return PolicyDecision.block("Path cannot be empty")

        if not os.path.isabs(path):
            if not self.config.auto_resolve_to_absolute:
                return PolicyDecision.block(f"Path must be absolute: {path}")
            base = base_dir or self.config.base_dir or os.getcwd()
            resolved = os.path.normpath(os.path.join(base, path))
            return PolicyDecision.allow(
                corrected_value=resolved,
                message=f"Resolved relative path to {resolved}",
            )

        if "//" in path or "\\" in path:
            return PolicyDecision.block(f"Malformed path: {path}")

        return PolicyDecision.allow(corrected_value=os.path.normpath(path))

    def validate_read_before_edit(self, path: str, is_new_file: bool = False) -> PolicyDecision:
        """Deny editing a file that was not read in this session."""
        if not self.config.require_read_before_edit or is_new_file:
            return PolicyDecision.allow()
        if self.access_record.has_been_read(path):
            return PolicyDecision.allow()
        return PolicyDecision.block(f"File must be read before it is edited: {path}")

    def record_read(self, path: str) -> None:
        """Record a successful read. The only way paths enter the access record."""
        self.access_record.record(path)

    # URLs

    def validate_url(self, url: str, is_user_provided: bool = False) -> PolicyDecision:
        """
        Check a URL the agent wants to fetch.

        User-provided URLs are always allowed (and remembered for the turn);
        anything else must match the configured or default allow-lists.
        """
        if not self.config.block_unlisted_urls:
            return PolicyDecision.allow()
        if not url:
            return PolicyDecision.block("URL cannot be empty")

        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return PolicyDecision.block(f"Invalid URL format: {url}")

        if is_user_provided and self.config.allow_user_provided_urls:
            self.register_user_provided_url(url)
            return PolicyDecision.allow()

        if any(p.search(url) for p in self._url_allowlist):
            return PolicyDecision.allow()

        with self._url_lock:
            if url in self._user_urls:
                return PolicyDecision.allow()

        if any(p.search(url) for p in self._trusted):
            return PolicyDecision.allow()

        logger.debug(f"Blocked unlisted URL: {url}")
        return PolicyDecision.block(
            f"URL blocked, not on the allow-list: {url}\n"
            "To use this URL, the user has to provide it explicitly."
        )

    def register_user_provided_url(self, url: str) -> None:
        with self._url_lock:
            self._user_urls.add(url)

    def clear_user_provided_urls(self) -> None:
        """Forget user-provided URLs (called at turn boundaries)."""
        with self._url_lock:
            self._user_urls.clear()

    def user_provided_urls(self) -> List[str]:
        with self._url_lock:
            return sorted(self._user_urls)

    # Dispatch

    def validate_file_operation(
        self,
        operation: str,
        path: str,
        is_new_file: bool = False,
        base_dir: Optional[str] = None,
    ) -> PolicyDecision:
        """
        Run every check that applies to `operation` on `path`.

        Args:
            operation: One of read, write, edit, create
            path: Target path (relative paths are resolved when allowed)
            is_new_file: Caller knows the file does not exist yet
            base_dir: Base for relative paths

        Returns:
            PolicyDecision; `corrected_value` holds the resolved path when allowed
        """
        if operation not in FILE_OPERATIONS:
            return PolicyDecision.block(f"Unknown file operation: {operation}")

        resolved = self.validate_and_resolve_path(path, base_dir=base_dir)
        if not resolved.is_valid:
            return resolved
        target = resolved.corrected_value or path

        if operation == "create":
            decision = self.validate_file_creation(target)
        elif operation == "edit":
            decision = self.validate_read_before_edit(target, is_new_file=is_new_file)
        elif operation == "write":
            # overwriting is an edit; writing a new path is not
            exists = os.path.exists(target) and not is_new_file
            decision = self.validate_read_before_edit(target, is_new_file=not exists)
        else:
            decision = PolicyDecision.allow()

        if not decision.is_valid:
            return decision
        return PolicyDecision.allow(corrected_value=target, message=resolved.message)
