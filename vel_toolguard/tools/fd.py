"""
File Finder Tool

Finds files and directories with `fd`. Output is NUL-separated so paths
containing newlines still count as one entry each.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from vel_toolguard.config import DEFAULT_EXCLUDED_DIRS
from vel_toolguard.tools.base import NativeTool, ToolInvocationSpec

_SIZE_SUFFIXES = ("b", "k", "m", "g", "t", "ki", "mi", "gi", "ti")


@dataclass
class FileSearchParams:
    pattern: str
    search_path: str = "."
    file_type: Optional[str] = None  # "f" or "d"
    max_depth: Optional[int] = None
    case_sensitive: bool = False
    follow_symlinks: bool = False
    hidden: bool = False
    extensions: List[str] = field(default_factory=list)
    exclude_dirs: List[str] = field(default_factory=list)
    min_size: Optional[str] = None
    max_size: Optional[str] = None
    modified_days: Optional[int] = None
    use_smart_search: bool = False


def _valid_size(value: str) -> bool:
    text = value.strip().lower()
    digits = text.rstrip("abcdefghijklmnopqrstuvwxyz")
    suffix = text[len(digits):]
    return bool(digits) and digits.isdigit() and (suffix == "" or suffix in _SIZE_SUFFIXES)


class FileFinderTool(NativeTool):
    """fd adapter. `fdfind` is accepted where fd is packaged under that name."""

    name = "find_files"
    binary = "fd"

    def __init__(self, *args, excluded_dirs: Optional[List[str]] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.excluded_dirs = list(excluded_dirs if excluded_dirs is not None else DEFAULT_EXCLUDED_DIRS)

    @property
    def description(self) -> str:
        return (
            "Find files and directories by name pattern (regex) using fd. "
            "Respects .gitignore and skips hidden files unless hidden=true. "
            f"Up to {self.summary_config.inline_threshold} results are returned inline; "
            "larger result sets return a preview and a file path with the full list."
        )

    def validate_params(self, params: FileSearchParams) -> Optional[str]:
        if not params.pattern or not params.pattern.strip():
            return "pattern is required"
        if params.file_type is not None and params.file_type not in ("f", "d"):
            return "file_type must be 'f' (files) or 'd' (directories)"
        if params.max_depth is not None and params.max_depth < 0:
            return "max_depth must be >= 0"
        if params.modified_days is not None and params.modified_days < 0:
            return "modified_days must be >= 0"
        for size in (params.min_size, params.max_size):
            if size is not None and not _valid_size(size):
                return f"invalid size '{size}' (expected e.g. 10k, 5m, 1g)"
        return None

    def _smart(self, params: FileSearchParams) -> bool:
        return bool(
            params.use_smart_search
            or params.extensions
            or params.exclude_dirs
            or params.min_size
            or params.max_size
            or params.modified_days is not None
        )

    def build_invocation(self, params: FileSearchParams) -> ToolInvocationSpec:
        search_path = self.resolve_path(params.search_path)
        argv: List[str] = []

        if self._smart(params):
            for ext in params.extensions:
                argv += ["--extension", ext.lstrip(".")]
            for directory in [*self.excluded_dirs, *params.exclude_dirs]:
                argv += ["--exclude", directory]
            if params.min_size:
                argv += ["--size", f"+{params.min_size}"]
            if params.max_size:
                argv += ["--size", f"-{params.max_size}"]
            if params.modified_days is not None:
                argv += ["--changed-within", f"{params.modified_days}d"]
            if params.file_type is None:
                argv += ["--type", "f"]

        if params.file_type:
            argv += ["--type", params.file_type]
        if params.max_depth is not None:
            argv += ["--max-depth", str(params.max_depth)]
        argv.append("--case-sensitive" if params.case_sensitive else "--ignore-case")
        if params.follow_symlinks:
            argv.append("--follow")
        if params.hidden:
            argv.append("--hidden")
        argv += ["--print0", "--", params.pattern, search_path]

        return ToolInvocationSpec(
            program=self.program or self.binary,
            argv=argv,
            cwd=self.working_dir,
            separator=b"\0",
        )

    def describe_invocation(self, params: FileSearchParams) -> str:
        return f"Files matching '{params.pattern}' in {self.resolve_path(params.search_path)}"

    def result_noun(self, count: int) -> str:
        return "match" if count == 1 else "matches"
