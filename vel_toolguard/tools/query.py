"""
Structured Data Query Tools

Runs jq filters over JSON and yq filters over YAML. Input comes either
from an absolute file path or from raw text piped through stdin.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from vel_toolguard.summary import ResultSummary, format_bytes
from vel_toolguard.tools.base import NativeTool, ToolInvocationSpec


@dataclass
class QueryParams:
    filter: str
    input_file: Optional[str] = None
    raw_data: Optional[str] = None
    compact_output: bool = False
    raw_output: bool = False
    slurp: bool = False
    raw_input: bool = False
    sort_keys: bool = False
    arg_vars: Dict[str, str] = field(default_factory=dict)
    arg_json_vars: Dict[str, Any] = field(default_factory=dict)
    yaml_output: bool = False  # yq only

    @property
    def input_size(self) -> int:
        if self.raw_data is not None:
            return len(self.raw_data.encode("utf-8"))
        if self.input_file and os.path.isfile(self.input_file):
            return os.path.getsize(self.input_file)
        return 0


class StructuredQueryTool(NativeTool):
    """Shared jq/yq behaviour. Output line count is the item count."""

    format_name = "JSON"

    @property
    def description(self) -> str:
        return (
            f"Query {self.format_name} with a {self.binary} filter, from a file (absolute path) "
            "or from raw_data. Supports compact/raw output, slurp, raw input, sorted keys and "
            "--arg/--argjson variables. "
            f"Outputs up to {self.summary_config.inline_threshold} lines are returned inline."
        )

    def validate_params(self, params: QueryParams) -> Optional[str]:
        if not params.filter or not params.filter.strip():
            return "filter is required"
        if params.filter.lstrip().startswith("-"):
            return "filter must not start with '-'"
        has_file = bool(params.input_file)
        has_data = params.raw_data is not None
        if has_file == has_data:
            return "provide exactly one of input_file or raw_data"
        if has_file and not os.path.isabs(params.input_file):
            return "input_file must be an absolute path"
        for name in [*params.arg_vars, *params.arg_json_vars]:
            if not name.isidentifier():
                return f"invalid variable name '{name}'"
        for name, value in params.arg_json_vars.items():
            if isinstance(value, str):
                try:
                    json.loads(value)
                except ValueError:
                    return f"arg_json_vars['{name}'] is not valid JSON"
        return None

    def _common_flags(self, params: QueryParams) -> List[str]:
        argv: List[str] = []
        if params.compact_output:
            argv.append("-c")
        if params.raw_output:
            argv.append("-r")
        if params.slurp:
            argv.append("-s")
        if params.raw_input:
            argv.append("-R")
        if params.sort_keys:
            argv.append("-S")
        for name, value in params.arg_vars.items():
            argv += ["--arg", name, str(value)]
        for name, value in params.arg_json_vars.items():
            argv += ["--argjson", name, value if isinstance(value, str) else json.dumps(value)]
        return argv

    def _extra_flags(self, params: QueryParams) -> List[str]:
        return []

    def build_invocation(self, params: QueryParams) -> ToolInvocationSpec:
        argv = self._common_flags(params) + self._extra_flags(params)
        argv.append(params.filter)
        if params.input_file:
            argv.append(params.input_file)
        return ToolInvocationSpec(
            program=self.program or self.binary,
            argv=argv,
            cwd=self.working_dir,
            stdin=params.raw_data,
        )

    def describe_invocation(self, params: QueryParams) -> str:
        source = params.input_file or f"raw input ({format_bytes(params.input_size)})"
        return f"{self.binary} '{params.filter}' on {source}"

    def result_noun(self, count: int) -> str:
        return "line" if count == 1 else "lines"

    def extra_metadata(self, params: QueryParams, summary: ResultSummary) -> Dict[str, Any]:
        return {"input_size": params.input_size}


class JqTool(StructuredQueryTool):
    name = "query_json"
    binary = "jq"
    format_name = "JSON"

    def validate_params(self, params: QueryParams) -> Optional[str]:
        if params.yaml_output:
            return "yaml_output is only available for YAML queries"
        return super().validate_params(params)


class YqTool(StructuredQueryTool):
    """yq (the jq wrapper for YAML). In-place editing is never offered."""

    name = "query_yaml"
    binary = "yq"
    format_name = "YAML"

    def _extra_flags(self, params: QueryParams) -> List[str]:
        return ["-y"] if params.yaml_output else []
