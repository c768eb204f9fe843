"""
Native Tools Middleware

Exposes the bounded native tools (fd, ripgrep, eza/ls, jq, yq and the
guarded shell) to a vel agent.
"""

import os
from typing import Any, Dict, List, Optional

from vel import ToolSpec

from vel_toolguard.middleware.base import BaseMiddleware
from vel_toolguard.security.validator import optimization_guide
from vel_toolguard.session import ToolguardSession
from vel_toolguard.tools.base import NativeTool, ToolErrorType, ToolResult
from vel_toolguard.tools.fd import FileSearchParams
from vel_toolguard.tools.listing import ListingParams
from vel_toolguard.tools.query import QueryParams
from vel_toolguard.tools.ripgrep import TextSearchParams
from vel_toolguard.tools.shell import ShellParams


class NativeToolsMiddleware(BaseMiddleware):
    """
    Middleware providing bounded native tools.

    Provides tools (each can be disabled through ToolsConfig.enabled):
    - find_files: fd file search
    - search_text: ripgrep content search
    - list_directory: eza listing (ls fallback)
    - query_json / query_yaml: jq / yq filters
    - shell: validated read-only shell commands

    Large outputs are written to files; the agent gets a count, a preview
    and the file path.
    """

    def __init__(self, session: Optional[ToolguardSession] = None) -> None:
        """
        Initialize native tools middleware.

        Args:
            session: Session owning the tools. A default session is created if omitted.
        """
        self._session = session or ToolguardSession()

    @property
    def session(self) -> ToolguardSession:
        return self._session

    def get_tools(self) -> List[ToolSpec]:
        """Return tool specs for every enabled native tool."""
        handlers = {
            "find_files": (self._find_files, ["read", "search"]),
            "search_text": (self._search_text, ["read", "search"]),
            "list_directory": (self._list_directory, ["read", "directory"]),
            "query_json": (self._query_json, ["read", "data"]),
            "query_yaml": (self._query_yaml, ["read", "data"]),
            "shell": (self._shell, ["read", "execution"]),
        }
        specs = []
        for name, tool in self._session.tools.items():
            handler, tags = handlers[name]
            specs.append(
                ToolSpec.from_function(
                    handler,
                    name=name,
                    description=tool.description,
                    category="native",
                    tags=tags,
                )
            )
        return specs

    def get_system_prompt_segment(self) -> str:
        """Return system prompt segment describing the native tools."""
        tools = self._session.tools
        lines = [f"- `{name}`: {tool.description}" for name, tool in tools.items()]
        threshold = self._session.config.summary.inline_threshold
        return f"""## Native Tools

Fast search, listing and query tools backed by native binaries.

**Available Tools:**
{chr(10).join(lines)}

**Output Handling:**
- Results with up to {threshold} items are returned inline
- Larger results return a preview and the path of a file holding everything;
  use read_file with offset/limit on that path to page through it
- Shell commands are restricted to read-only programs; redirection, command
  substitution and file-modifying flags are refused

{optimization_guide()}
"""

    def get_state(self) -> Dict[str, Any]:
        """Persist the session's read record."""
        return {
            "session_id": self._session.session_id,
            "read_files": self._session.access_record.snapshot(),
        }

    def load_state(self, state: Dict[str, Any]) -> None:
        """
        Restore reads recorded by an earlier run of the same session.

        Goes through the policy like a fresh read. Paths that no longer
        exist are dropped, so a deleted and recreated file needs a new read.
        """
        for path in state.get("read_files", []):
            if os.path.exists(path):
                self._session.policy.record_read(path)

    async def _run(self, name: str, params: Any) -> Dict[str, Any]:
        tool: Optional[NativeTool] = self._session.tools.get(name)
        if tool is None:
            return ToolResult.failure(f"Tool is disabled: {name}", ToolErrorType.INVALID_PARAMETERS).to_dict()
        token = self._session.new_cancellation_token()
        try:
            result = await tool.invoke(params, token)
        finally:
            self._session.release_token(token)
        return result.to_dict()

    async def _find_files(
        self,
        pattern: str,
        search_path: str = ".",
        file_type: Optional[str] = None,
        max_depth: Optional[int] = None,
        case_sensitive: bool = False,
        hidden: bool = False,
        extensions: Optional[List[str]] = None,
        exclude_dirs: Optional[List[str]] = None,
        min_size: Optional[str] = None,
        max_size: Optional[str] = None,
        modified_days: Optional[int] = None,
        use_smart_search: bool = False,
        follow_symlinks: bool = False,
    ) -> Dict[str, Any]:
        """
        Find files by name.

        Args:
            pattern: Regex matched against file names
            search_path: Directory to search (default: working directory)
            file_type: 'f' for files, 'd' for directories
            max_depth: Maximum directory depth
            case_sensitive: Match case exactly
            hidden: Include hidden files
            extensions: File extensions to keep, e.g. ['py', 'md']
            exclude_dirs: Extra directory names to skip
            min_size: Minimum size, e.g. '10k'
            max_size: Maximum size, e.g. '5m'
            modified_days: Only files changed within this many days
            use_smart_search: Skip node_modules, .git, build output and similar
            follow_symlinks: Descend into symlinked directories

        Returns:
            Dict with summary, item_count and artifact_path
        """
        params = FileSearchParams(
            pattern=pattern,
            search_path=search_path,
            file_type=file_type,
            max_depth=max_depth,
            case_sensitive=case_sensitive,
            hidden=hidden,
            extensions=extensions or [],
            exclude_dirs=exclude_dirs or [],
            min_size=min_size,
            max_size=max_size,
            modified_days=modified_days,
            use_smart_search=use_smart_search,
            follow_symlinks=follow_symlinks,
        )
        return await self._run("find_files", params)

    async def _search_text(
        self,
        pattern: str,
        search_path: str = ".",
        glob: Optional[str] = None,
        case_sensitive: bool = True,
        file_types: Optional[List[str]] = None,
        max_count: Optional[int] = None,
        use_smart_search: bool = False,
    ) -> Dict[str, Any]:
        """
        Search file contents.

        Args:
            pattern: Regex to search for
            search_path: File or directory to search
            glob: Only search files matching this glob, e.g. '*.py'
            case_sensitive: Match case exactly
            file_types: ripgrep type names, e.g. ['py', 'js']
            max_count: Maximum matches per file
            use_smart_search: Skip node_modules, .git, build output and similar

        Returns:
            Dict with summary (path:line:text matches), item_count and artifact_path
        """
        params = TextSearchParams(
            pattern=pattern,
            search_path=search_path,
            glob=glob,
            case_sensitive=case_sensitive,
            file_types=file_types or [],
            max_count=max_count,
            use_smart_search=use_smart_search,
        )
        return await self._run("search_text", params)

    async def _list_directory(
        self,
        path: str = ".",
        tree: bool = False,
        all: bool = False,
        long: bool = False,
        git: bool = False,
        dirs_only: bool = False,
        files_only: bool = False,
        depth: Optional[int] = None,
        sort: Optional[str] = None,
        reverse: bool = False,
    ) -> Dict[str, Any]:
        """
        List a directory.

        Args:
            path: Directory to list
            tree: Show a tree
            all: Include hidden entries
            long: Long format with permissions, size and time
            git: Show git status per entry
            dirs_only: Only directories
            files_only: Only files
            depth: Tree depth
            sort: name, size, time or type
            reverse: Reverse the sort order

        Returns:
            Dict with summary, item_count and artifact_path
        """
        params = ListingParams(
            path=path,
            tree=tree,
            all=all,
            long=long,
            git=git,
            dirs_only=dirs_only,
            files_only=files_only,
            depth=depth,
            sort=sort,
            reverse=reverse,
        )
        return await self._run("list_directory", params)

    async def _query_json(
        self,
        filter: str,
        input_file: Optional[str] = None,
        raw_data: Optional[str] = None,
        compact_output: bool = False,
        raw_output: bool = False,
        slurp: bool = False,
        raw_input: bool = False,
        sort_keys: bool = False,
        arg_vars: Optional[Dict[str, str]] = None,
        arg_json_vars: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run a jq filter over JSON.

        Args:
            filter: jq filter, e.g. '.items[] | .name'
            input_file: Absolute path of a JSON file
            raw_data: JSON text (instead of input_file)
            compact_output: One JSON value per line
            raw_output: Print strings without quotes
            slurp: Read all inputs into one array
            raw_input: Treat each input line as a string instead of JSON
            sort_keys: Sort object keys
            arg_vars: Variables passed with --arg
            arg_json_vars: Variables passed with --argjson (JSON text or values)

        Returns:
            Dict with summary, item_count and artifact_path
        """
        params = QueryParams(
            filter=filter,
            input_file=input_file,
            raw_data=raw_data,
            compact_output=compact_output,
            raw_output=raw_output,
            slurp=slurp,
            raw_input=raw_input,
            sort_keys=sort_keys,
            arg_vars=arg_vars or {},
            arg_json_vars=arg_json_vars or {},
        )
        return await self._run("query_json", params)

    async def _query_yaml(
        self,
        filter: str,
        input_file: Optional[str] = None,
        raw_data: Optional[str] = None,
        yaml_output: bool = False,
        raw_output: bool = False,
        compact_output: bool = False,
    ) -> Dict[str, Any]:
        """
        Run a yq filter over YAML.

        Args:
            filter: jq-style filter, e.g. '.services | keys'
            input_file: Absolute path of a YAML file
            raw_data: YAML text (instead of input_file)
            yaml_output: Emit YAML instead of JSON
            raw_output: Print strings without quotes
            compact_output: One JSON value per line

        Returns:
            Dict with summary, item_count and artifact_path
        """
        params = QueryParams(
            filter=filter,
            input_file=input_file,
            raw_data=raw_data,
            yaml_output=yaml_output,
            raw_output=raw_output,
            compact_output=compact_output,
        )
        return await self._run("query_yaml", params)

    async def _shell(self, command: str, directory: Optional[str] = None) -> Dict[str, Any]:
        """
        Run a read-only shell command.

        Args:
            command: Command line, e.g. 'git log --oneline | head -20'
            directory: Working directory (default: working directory)

        Returns:
            Dict with summary, item_count and artifact_path, or an error if denied
        """
        return await self._run("shell", ShellParams(command=command, directory=directory))
