"""
Text Search Tool

Searches file contents with ripgrep. Each output line is one match in
`path:line:text` form; exit code 1 (nothing matched) is an empty result,
not a failure.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from vel_toolguard.config import DEFAULT_EXCLUDED_DIRS
from vel_toolguard.summary import ResultSummary
from vel_toolguard.tools.base import NativeTool, ToolInvocationSpec

SMART_EXTRA_EXCLUDES = [".venv"]

_MATCH_LINE = re.compile(r"^(.+?):(\d+):")


@dataclass
class TextSearchParams:
    pattern: str
    search_path: str = "."
    glob: Optional[str] = None
    case_sensitive: bool = True
    file_types: List[str] = field(default_factory=list)
    max_count: Optional[int] = None
    use_smart_search: bool = False


class TextSearchTool(NativeTool):
    """ripgrep adapter."""

    name = "search_text"
    binary = "rg"
    accepted_exit_codes = frozenset({0, 1})

    def __init__(self, *args, excluded_dirs: Optional[List[str]] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        base = excluded_dirs if excluded_dirs is not None else DEFAULT_EXCLUDED_DIRS
        self.excluded_dirs = list(dict.fromkeys([*base, *SMART_EXTRA_EXCLUDES]))

    @property
    def description(self) -> str:
        return (
            "Search file contents for a regex pattern using ripgrep. "
            "Returns matches as path:line:text. Respects .gitignore. "
            f"Up to {self.summary_config.inline_threshold} matches are returned inline; "
            "larger result sets return a preview and a file path with every match."
        )

    def validate_params(self, params: TextSearchParams) -> Optional[str]:
        if not params.pattern:
            return "pattern is required"
        try:
            re.compile(params.pattern)
        except re.error as e:
            return f"invalid regex pattern: {e}"
        if params.max_count is not None and params.max_count < 1:
            return "max_count must be >= 1"
        return None

    def build_invocation(self, params: TextSearchParams) -> ToolInvocationSpec:
        search_path = self.resolve_path(params.search_path)
        argv = [
            "--line-number",
            "--no-heading",
            "--with-filename",
            "--color",
            "never",
            "--regexp",
            params.pattern,
        ]
        if not params.case_sensitive:
            argv.append("--ignore-case")
        for file_type in params.file_types:
            argv += ["--type", file_type]
        if params.glob:
            argv += ["--glob", params.glob]
        if params.max_count is not None:
            argv += ["--max-count", str(params.max_count)]
        if params.use_smart_search:
            for directory in self.excluded_dirs:
                argv += ["--glob", f"!{directory}"]
        argv += ["--", search_path]

        return ToolInvocationSpec(program=self.program or self.binary, argv=argv, cwd=self.working_dir)

    def describe_invocation(self, params: TextSearchParams) -> str:
        return f"Matches for /{params.pattern}/ in {self.resolve_path(params.search_path)}"

    def result_noun(self, count: int) -> str:
        return "match" if count == 1 else "matches"

    def extra_metadata(self, params: TextSearchParams, summary: ResultSummary) -> Dict[str, Any]:
        files = set()
        for line in summary.preview_text.splitlines():
            match = _MATCH_LINE.match(line)
            if match:
                files.add(match.group(1))
        # counted from the preview only, so a lower bound for large results
        return {"files_in_preview": len(files), "files_complete": summary.inline}

    def format_display_summary(self, params: TextSearchParams, summary: ResultSummary) -> str:
        files = self.extra_metadata(params, summary)["files_in_preview"]
        if summary.inline:
            return f"{summary.item_count} {self.result_noun(summary.item_count)} in {files} files"
        return f"{summary.item_count} {self.result_noun(summary.item_count)}"
