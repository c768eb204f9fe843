"""
Directory Listing Tool

Lists directories with `eza`, falling back to `ls` when eza is not
installed. The backend is chosen once, at construction.

eza long-format columns are shown by default, so the `permissions` and
`size` options only switch on long format; `owner` adds `--group` and
`time` adds `--time=modified`.

ls cannot express every eza option. The fallback drops `tree`, `depth`,
`git`, `dirs_only`, `files_only` and `sort=type`, and says so in the
result.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from vel_toolguard.backends.executor import ExecutionResult
from vel_toolguard.summary import read_preview
from vel_toolguard.tools.base import NativeTool, ToolInvocationSpec

logger = logging.getLogger(__name__)

SORT_MODES = ("name", "size", "time", "type")


@dataclass
class ListingParams:
    path: str = "."
    tree: bool = False
    all: bool = False
    long: bool = False
    git: bool = False
    dirs_only: bool = False
    files_only: bool = False
    depth: Optional[int] = None
    sort: Optional[str] = None
    reverse: bool = False
    permissions: bool = False
    owner: bool = False
    size: bool = False
    time: bool = False

    @property
    def wants_long(self) -> bool:
        return self.long or self.permissions or self.owner or self.size or self.time or self.git


class ListingBackend(Protocol):
    name: str

    def build_argv(self, params: ListingParams, path: str) -> Tuple[List[str], List[str]]:
        """Return (argv, dropped option names)."""
        ...


class EzaListing:
    name = "eza"

    def build_argv(self, params: ListingParams, path: str) -> Tuple[List[str], List[str]]:
        argv: List[str] = []
        if params.tree:
            argv.append("--tree")
            if params.depth is not None:
                argv.append(f"--level={params.depth}")
        if params.all:
            argv.append("--all")
        if params.wants_long:
            argv.append("--long")
        if params.owner:
            argv.append("--group")
        if params.time:
            argv.append("--time=modified")
        if params.git:
            argv.append("--git")
        if params.dirs_only:
            argv.append("--only-dirs")
        if params.files_only:
            argv.append("--only-files")
        if params.sort:
            argv.append(f"--sort={params.sort}")
        if params.reverse:
            argv.append("--reverse")
        if not params.wants_long and not params.tree:
            argv.append("--oneline")
        argv += ["--color=never", "--", path]
        return argv, []


class LsListing:
    name = "ls"

    _SORT_FLAGS = {"time": "-t", "size": "-S"}

    def build_argv(self, params: ListingParams, path: str) -> Tuple[List[str], List[str]]:
        argv: List[str] = []
        dropped: List[str] = []
        if params.tree:
            dropped.append("tree")
        if params.depth is not None:
            dropped.append("depth")
        if params.git:
            dropped.append("git")
        if params.dirs_only:
            dropped.append("dirs_only")
        if params.files_only:
            dropped.append("files_only")

        # -A matches eza --all: dotfiles but not . and ..
        if params.all:
            argv.append("-A")
        if params.wants_long:
            argv.append("-l")
        else:
            argv.append("-1")
        if params.sort in self._SORT_FLAGS:
            argv.append(self._SORT_FLAGS[params.sort])
        elif params.sort == "type":
            dropped.append("sort=type")
        if params.reverse:
            argv.append("-r")
        argv += ["--", path]
        return argv, dropped


class DirectoryListingTool(NativeTool):
    """Directory listing via eza, or ls when eza is unavailable."""

    name = "list_directory"
    binary = "eza"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        if self.program is not None:
            self.backend: ListingBackend = EzaListing()
        else:
            self.backend = LsListing()
            self.program = self.availability.resolve("ls")
            logger.info("eza not found, directory listings will use ls")

    @property
    def is_fallback(self) -> bool:
        return self.backend.name == "ls"

    @property
    def description(self) -> str:
        engine = "ls (fallback)" if self.is_fallback else "eza"
        text = (
            f"List directory contents using {engine}. Supports long format, hidden files, "
            "sorting by name/size/time/type and reverse order."
        )
        if self.is_fallback:
            text += " Tree view, git status and file/directory filters are unavailable with ls."
        else:
            text += " Supports tree view with depth, git status and file/directory filters."
        return text

    def validate_params(self, params: ListingParams) -> Optional[str]:
        if params.dirs_only and params.files_only:
            return "dirs_only and files_only are mutually exclusive"
        if params.depth is not None and params.depth < 0:
            return "depth must be >= 0"
        if params.sort is not None and params.sort not in SORT_MODES:
            return f"sort must be one of: {', '.join(SORT_MODES)}"
        return None

    def build_invocation(self, params: ListingParams) -> ToolInvocationSpec:
        path = self.resolve_path(params.path)
        argv, dropped = self.backend.build_argv(params, path)
        notes: List[str] = []
        if self.is_fallback:
            notes.append("Listed with ls (fallback; eza not installed).")
            if dropped:
                notes.append(f"Unsupported options ignored: {', '.join(dropped)}.")
        return ToolInvocationSpec(
            program=self.program or self.backend.name,
            argv=argv,
            cwd=self.working_dir,
            notes=notes,
        )

    def header_records(self, invocation: ToolInvocationSpec, execution: ExecutionResult) -> int:
        # `ls -l` on a directory starts with "total <blocks>"
        if self.is_fallback and "-l" in invocation.argv and execution.output_size:
            first = read_preview(execution.output_path, 1, max_bytes=256)
            if first.startswith("total "):
                return 1
        return 0

    def describe_invocation(self, params: ListingParams) -> str:
        return f"Contents of {self.resolve_path(params.path)}"

    def result_noun(self, count: int) -> str:
        return "entry" if count == 1 else "entries"
