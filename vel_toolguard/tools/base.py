"""
Native Tool Base

Shared plumbing for adapters that run an external binary through the
bounded executor: parameter validation, spawning, item counting and
summarizing into a ToolResult.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from vel_toolguard.backends.availability import PathToolAvailability, ToolAvailability
from vel_toolguard.backends.executor import (
    CancellationToken,
    ExecutionResult,
    ExecutionStatus,
    NativeCommandExecutor,
)
from vel_toolguard.config import SummaryConfig, ToolguardError
from vel_toolguard.summary import (
    ResultSummary,
    count_lines,
    count_separators,
    format_bytes,
    read_bounded_text,
    summarize,
)

logger = logging.getLogger(__name__)


class ToolErrorType(str, Enum):
    """Why a tool invocation failed."""

    SECURITY_DENIED = "security_denied"
    INVALID_PARAMETERS = "invalid_parameters"
    SPAWN_FAILURE = "spawn_failure"
    EXECUTION_FAILED = "execution_failed"
    CANCELLED = "cancelled"


@dataclass
class ToolError:
    message: str
    type: ToolErrorType

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "type": self.type.value}


@dataclass
class ToolResult:
    """What an adapter hands back to the agent."""

    success: bool
    llm_summary: str
    display_summary: str
    artifact_path: Optional[str] = None
    item_count: int = 0
    error: Optional[ToolError] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(
        cls,
        message: str,
        error_type: ToolErrorType,
        artifact_path: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ToolResult":
        return cls(
            success=False,
            llm_summary=message,
            display_summary=message.splitlines()[0] if message else error_type.value,
            artifact_path=artifact_path,
            error=ToolError(message=message, type=error_type),
            metadata=metadata or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (the shape returned from vel tools)."""
        d: Dict[str, Any] = {
            "success": self.success,
            "summary": self.llm_summary,
            "display": self.display_summary,
            "artifact_path": self.artifact_path,
            "item_count": self.item_count,
        }
        if self.error is not None:
            d["error"] = self.error.message
            d["error_type"] = self.error.type.value
        if self.metadata:
            d["metadata"] = self.metadata
        return d


@dataclass
class ToolInvocationSpec:
    """A fully built argv-form invocation. Arguments are literal strings."""

    program: str
    argv: List[str]
    cwd: Optional[str] = None
    stdin: Optional[str] = None
    separator: bytes = b"\n"
    notes: List[str] = field(default_factory=list)
    env: Optional[Dict[str, str]] = None


class NativeTool:
    """
    Base class for adapters around external binaries.

    Subclasses set `name`/`binary` and implement `validate_params` and
    `build_invocation`. `invoke` never raises for tool-level problems; it
    returns a failed ToolResult instead.
    """

    name: str = ""
    binary: str = ""
    # exit codes that still mean "ran fine"
    accepted_exit_codes: FrozenSet[int] = frozenset({0})

    def __init__(
        self,
        executor: Optional[NativeCommandExecutor] = None,
        availability: Optional[ToolAvailability] = None,
        summary_config: Optional[SummaryConfig] = None,
        working_dir: Optional[str] = None,
    ) -> None:
        """
        Initialize tool.

        Args:
            executor: Executor to run the binary with
            availability: Tool lookup, resolved once per tool
            summary_config: Inline/preview thresholds
            working_dir: Base directory for relative paths. Defaults to cwd.
        """
        self.executor = executor or NativeCommandExecutor()
        self.availability = availability or PathToolAvailability()
        self.summary_config = summary_config or SummaryConfig()
        self.working_dir = os.path.abspath(working_dir or os.getcwd())
        self.program = self.availability.resolve(self.binary) if self.binary else None

    @property
    def available(self) -> bool:
        return self.program is not None

    @property
    def description(self) -> str:
        raise NotImplementedError

    def validate_params(self, params: Any) -> Optional[str]:
        """Return an error message for invalid parameters, or None."""
        return None

    def build_invocation(self, params: Any) -> ToolInvocationSpec:
        raise NotImplementedError

    def describe_invocation(self, params: Any) -> str:
        """One-line description of what the call will do."""
        return self.name

    def resolve_path(self, path: Optional[str]) -> str:
        """Make a user path absolute against the working directory."""
        path = os.path.expanduser(path or ".")
        if not os.path.isabs(path):
            path = os.path.join(self.working_dir, path)
        return os.path.normpath(path)

    def count_items(self, invocation: ToolInvocationSpec, execution: ExecutionResult) -> int:
        """Number of result items in the output artifact, headers excluded."""
        if invocation.separator == b"\n":
            total = count_lines(execution.output_path)
        else:
            total = count_separators(execution.output_path, invocation.separator)
        return max(total - self.header_records(invocation, execution), 0)

    def header_records(self, invocation: ToolInvocationSpec, execution: ExecutionResult) -> int:
        """Leading output records that are not items."""
        return 0

    async def invoke(
        self,
        params: Any,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> ToolResult:
        """
        Validate, run and summarize one call.

        Args:
            params: Adapter-specific parameter object
            cancellation_token: Token that stops the child process

        Returns:
            ToolResult; `error` is set on failure
        """
        error = self.validate_params(params)
        if error:
            return ToolResult.failure(f"Invalid parameters for {self.name}: {error}", ToolErrorType.INVALID_PARAMETERS)

        try:
            invocation = self.build_invocation(params)
            execution = await self.executor.execute_direct_to_disk(
                invocation.program,
                invocation.argv,
                cwd=invocation.cwd,
                stdin=invocation.stdin,
                cancellation_token=cancellation_token,
                env=invocation.env,
            )
        except (ToolguardError, OSError) as e:
            logger.warning(f"{self.name} could not run: {e}")
            return ToolResult.failure(f"{self.name} could not run: {e}", ToolErrorType.SPAWN_FAILURE)

        return self.build_result(params, invocation, execution)

    def build_result(self, params: Any, invocation: ToolInvocationSpec, execution: ExecutionResult) -> ToolResult:
        """Map an ExecutionResult onto a ToolResult."""
        metadata: Dict[str, Any] = {
            "command": execution.command,
            "exit_code": execution.exit_code,
            "output_size": execution.output_size,
            "execution_time_ms": execution.execution_time_ms,
            "error_path": execution.error_path,
        }
        if invocation.notes:
            metadata["notes"] = list(invocation.notes)

        if execution.status == ExecutionStatus.SPAWN_FAILURE:
            detail = read_bounded_text(execution.error_path)
            return ToolResult.failure(
                f"{self.name} could not be started: {detail}",
                ToolErrorType.SPAWN_FAILURE,
                metadata=metadata,
            )

        if execution.status == ExecutionStatus.CANCELLED:
            partial = self.count_items(invocation, execution)
            metadata["partial_item_count"] = partial
            return ToolResult.failure(
                f"{self.name} was cancelled after {partial} results "
                f"({format_bytes(execution.output_size)}). Partial output: {execution.output_path}",
                ToolErrorType.CANCELLED,
                artifact_path=execution.output_path,
                metadata=metadata,
            )

        if execution.exit_code not in self.accepted_exit_codes:
            detail = read_bounded_text(execution.error_path) or "(no error output)"
            return ToolResult.failure(
                f"{self.name} exited with code {execution.exit_code}: {detail}",
                ToolErrorType.EXECUTION_FAILED,
                artifact_path=execution.output_path,
                metadata=metadata,
            )

        item_count = self.count_items(invocation, execution)
        summary = summarize(
            execution.output_path,
            item_count,
            inline_threshold=self.summary_config.inline_threshold,
            preview_lines=self.summary_config.preview_lines,
            separator=invocation.separator,
            max_preview_bytes=self.summary_config.max_preview_bytes,
            skip_records=self.header_records(invocation, execution),
        )
        metadata.update(self.extra_metadata(params, summary))

        return ToolResult(
            success=True,
            llm_summary=self.format_llm_summary(params, invocation, summary),
            display_summary=self.format_display_summary(params, summary),
            artifact_path=execution.output_path,
            item_count=item_count,
            metadata=metadata,
        )

    def extra_metadata(self, params: Any, summary: ResultSummary) -> Dict[str, Any]:
        return {}

    def result_noun(self, count: int) -> str:
        return "result" if count == 1 else "results"

    def format_llm_summary(self, params: Any, invocation: ToolInvocationSpec, summary: ResultSummary) -> str:
        header = f"{self.describe_invocation(params)}: {summary.item_count} {self.result_noun(summary.item_count)}"
        parts = [header]
        if invocation.notes:
            parts.append("Note: " + " ".join(invocation.notes))
        if summary.item_count == 0:
            parts.append("No results.")
        elif summary.inline:
            parts.append(summary.preview_text)
        elif summary.remaining_items:
            parts.append(f"First {summary.item_count - summary.remaining_items} of {summary.item_count}:")
            parts.append(summary.preview_text)
            parts.append(f"... {summary.remaining_items} more")
            parts.append(summary.retrieval_note)
        else:
            # few items, but too many bytes to return inline
            parts.append("Output too large to show in full, beginning:")
            parts.append(summary.preview_text)
            parts.append(summary.retrieval_note)
        return "\n".join(parts)

    def format_display_summary(self, params: Any, summary: ResultSummary) -> str:
        return f"{summary.item_count} {self.result_noun(summary.item_count)}"
