"""
Guarded Shell Tool

Runs free-form read-only shell commands. Every command goes through the
security validator first; denied commands never spawn a process.
"""

import os
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from vel_toolguard.backends.executor import CancellationToken
from vel_toolguard.security.shell import (
    command_name,
    skip_env_assignments,
    split_commands,
    tokenize,
)
from vel_toolguard.security.validator import validate_command
from vel_toolguard.tools.base import NativeTool, ToolErrorType, ToolInvocationSpec, ToolResult

# Anything the shell would expand or redirect needs a real shell to run
_NEEDS_SHELL = re.compile(r"[*?\[\]$~<>&{}]")

_SHELL_ONLY_COMMANDS = {"cd"}


@dataclass
class ShellParams:
    command: str
    directory: Optional[str] = None


class ShellTool(NativeTool):
    """
    Read-only shell access.

    A single plain command is executed directly as argv. Pipelines,
    chains and commands that rely on globbing or expansion are executed
    with `bash -c` on the validated text.
    """

    name = "shell"
    binary = "bash"

    @property
    def description(self) -> str:
        return (
            "Run a read-only shell command (ls, cat, git log, wc, head, pipes between them ...). "
            "Commands that modify files, use output redirection or command substitution are "
            "refused. Prefer find_files, search_text, list_directory and query_json where they apply. "
            f"Output over {self.summary_config.inline_threshold} lines is saved to a file and previewed."
        )

    def validate_params(self, params: ShellParams) -> Optional[str]:
        if not isinstance(params.command, str) or not params.command.strip():
            return "command is required"
        return None

    def build_invocation(self, params: ShellParams) -> ToolInvocationSpec:
        command = params.command.strip()
        cwd = self.resolve_path(params.directory) if params.directory else self.working_dir

        segments = split_commands(command)
        if len(segments) == 1 and not _NEEDS_SHELL.search(segments[0].text):
            tokens = tokenize(segments[0].text)
            argv = skip_env_assignments(tokens)
            if argv and command_name(argv[0]) not in _SHELL_ONLY_COMMANDS:
                assignments = tokens[: len(tokens) - len(argv)]
                env: Optional[Dict[str, str]] = None
                if assignments:
                    env = dict(os.environ)
                    env.update(a.split("=", 1) for a in assignments)
                return ToolInvocationSpec(program=argv[0], argv=argv[1:], cwd=cwd, env=env)

        return ToolInvocationSpec(program=self.program or self.binary, argv=["-c", command], cwd=cwd)

    def describe_invocation(self, params: ShellParams) -> str:
        return f"$ {params.command.strip()}"

    def result_noun(self, count: int) -> str:
        return "line" if count == 1 else "lines"

    async def invoke(
        self,
        params: ShellParams,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> ToolResult:
        """Validate the command, then run it like any other native tool."""
        error = self.validate_params(params)
        if error:
            return ToolResult.failure(f"Invalid parameters for {self.name}: {error}", ToolErrorType.INVALID_PARAMETERS)

        verdict = validate_command(params.command)
        if not verdict.allowed:
            return ToolResult.failure(
                f"Command denied: {verdict.denial_reason}",
                ToolErrorType.SECURITY_DENIED,
                metadata={"command": params.command},
            )

        result = await super().invoke(params, cancellation_token)

        if verdict.warnings:
            tips: List[str] = [f"Tip: {w.message} (use {w.suggested_alternative})" for w in verdict.warnings]
            result.llm_summary = "\n".join([result.llm_summary, *tips])
            result.metadata["warnings"] = [w.to_dict() for w in verdict.warnings]
        return result
