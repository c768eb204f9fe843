"""
Toolguard CLI Entry Point

Command-line interface using Click: check commands against the validator
and run the native tools with bounded output.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Tuple

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

# Load .env from the current directory
_env_path = Path.cwd() / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

from toolguard_cli.config import get_config, init_config
from vel_toolguard import __version__
from vel_toolguard.config import ConfigError, ToolguardConfig
from vel_toolguard.security.validator import validate_command
from vel_toolguard.session import ToolguardSession
from vel_toolguard.tools.base import ToolResult
from vel_toolguard.tools.fd import FileSearchParams
from vel_toolguard.tools.listing import ListingParams
from vel_toolguard.tools.query import QueryParams
from vel_toolguard.tools.ripgrep import TextSearchParams
from vel_toolguard.tools.shell import ShellParams

console = Console(soft_wrap=True, highlight=False)
err_console = Console(stderr=True, soft_wrap=True, highlight=False)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _session(ctx: click.Context) -> ToolguardSession:
    return ToolguardSession(ctx.obj["config"])


def _run_tool(ctx: click.Context, name: str, params: Any) -> None:
    session = _session(ctx)
    tool = session.tools.get(name)
    if tool is None:
        err_console.print(f"[red]Tool is disabled in the configuration:[/red] {name}")
        sys.exit(2)

    result: ToolResult = asyncio.run(tool.invoke(params))
    _print_result(result, as_json=ctx.obj.get("json", False))
    if not result.success:
        sys.exit(1)


def _print_result(result: ToolResult, as_json: bool = False) -> None:
    if as_json:
        console.print_json(data=result.to_dict())
        return
    if result.success:
        click.echo(result.llm_summary)
        if result.artifact_path:
            err_console.print(f"[dim]{result.display_summary} · {result.artifact_path}[/dim]")
    else:
        error_type = result.error.type.value if result.error else "error"
        err_console.print(f"[red]{error_type}[/red]")
        click.echo(result.llm_summary, err=True)


@click.group()
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Config file (YAML or JSON)",
)
@click.option(
    "--storage-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for output artifacts",
)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[Path],
    storage_dir: Optional[Path],
    as_json: bool,
    verbose: bool,
) -> None:
    """
    Toolguard - command safety checks and bounded native tools.
    """
    ctx.ensure_object(dict)
    _setup_logging(verbose)

    try:
        config = get_config(config_path=config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        sys.exit(2)

    if storage_dir:
        config.executor.storage_dir = str(storage_dir)

    ctx.obj["config"] = config
    ctx.obj["json"] = as_json


@cli.command()
@click.argument("command")
@click.pass_context
def check(ctx: click.Context, command: str) -> None:
    """
    Check whether a shell command is allowed.

    Example: toolguard check "git log | head -5"
    """
    verdict = validate_command(command)
    if ctx.obj.get("json"):
        console.print_json(data=verdict.to_dict())
    elif verdict.allowed:
        console.print("[green]ALLOWED[/green]")
        for warning in verdict.warnings:
            console.print(f"  [yellow]{warning.kind}[/yellow]: {warning.message} -> {warning.suggested_alternative}")
    else:
        console.print("[red]DENIED[/red]")
        click.echo(verdict.denial_reason)
    if not verdict.allowed:
        sys.exit(1)


@cli.command()
@click.argument("pattern")
@click.argument("search_path", default=".")
@click.option("--type", "-t", "file_type", type=click.Choice(["f", "d"]), help="Files or directories")
@click.option("--max-depth", "-d", type=int, help="Maximum depth")
@click.option("--extension", "-e", "extensions", multiple=True, help="File extension (repeatable)")
@click.option("--hidden", "-H", is_flag=True, help="Include hidden files")
@click.option("--case-sensitive", "-s", is_flag=True, help="Case-sensitive match")
@click.option("--smart", is_flag=True, help="Skip dependency and build directories")
@click.pass_context
def find(
    ctx: click.Context,
    pattern: str,
    search_path: str,
    file_type: Optional[str],
    max_depth: Optional[int],
    extensions: Tuple[str, ...],
    hidden: bool,
    case_sensitive: bool,
    smart: bool,
) -> None:
    """
    Find files by name with fd.
    """
    params = FileSearchParams(
        pattern=pattern,
        search_path=search_path,
        file_type=file_type,
        max_depth=max_depth,
        extensions=list(extensions),
        hidden=hidden,
        case_sensitive=case_sensitive,
        use_smart_search=smart,
    )
    _run_tool(ctx, "find_files", params)


@cli.command()
@click.argument("pattern")
@click.argument("search_path", default=".")
@click.option("--glob", "-g", help="Only search files matching this glob")
@click.option("--type", "-t", "file_types", multiple=True, help="ripgrep file type (repeatable)")
@click.option("--ignore-case", "-i", is_flag=True, help="Case-insensitive search")
@click.option("--max-count", "-m", type=int, help="Maximum matches per file")
@click.option("--smart", is_flag=True, help="Skip dependency and build directories")
@click.pass_context
def search(
    ctx: click.Context,
    pattern: str,
    search_path: str,
    glob: Optional[str],
    file_types: Tuple[str, ...],
    ignore_case: bool,
    max_count: Optional[int],
    smart: bool,
) -> None:
    """
    Search file contents with ripgrep.
    """
    params = TextSearchParams(
        pattern=pattern,
        search_path=search_path,
        glob=glob,
        file_types=list(file_types),
        case_sensitive=not ignore_case,
        max_count=max_count,
        use_smart_search=smart,
    )
    _run_tool(ctx, "search_text", params)


@cli.command(name="ls")
@click.argument("path", default=".")
@click.option("--all", "-a", "show_all", is_flag=True, help="Include hidden entries")
@click.option("--long", "-l", "long_format", is_flag=True, help="Long format")
@click.option("--tree", "-T", is_flag=True, help="Tree view (eza only)")
@click.option("--depth", "-L", type=int, help="Tree depth")
@click.option("--sort", type=click.Choice(["name", "size", "time", "type"]), help="Sort order")
@click.option("--reverse", "-r", is_flag=True, help="Reverse sort")
@click.pass_context
def ls_command(
    ctx: click.Context,
    path: str,
    show_all: bool,
    long_format: bool,
    tree: bool,
    depth: Optional[int],
    sort: Optional[str],
    reverse: bool,
) -> None:
    """
    List a directory with eza (or ls).
    """
    params = ListingParams(
        path=path,
        all=show_all,
        long=long_format,
        tree=tree,
        depth=depth,
        sort=sort,
        reverse=reverse,
    )
    _run_tool(ctx, "list_directory", params)


def _query_command(tool_name: str, yaml_flag: bool):
    @click.argument("filter_expr", metavar="FILTER")
    @click.argument("input_file", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
    @click.option("--compact", "-c", is_flag=True, help="Compact output")
    @click.option("--raw", "-r", is_flag=True, help="Raw string output")
    @click.option("--slurp", "-s", is_flag=True, help="Read all inputs into an array")
    @click.option("--sort-keys", "-S", is_flag=True, help="Sort object keys")
    @click.option("--arg", "args", nargs=2, multiple=True, help="--arg NAME VALUE (repeatable)")
    @click.pass_context
    def command(
        ctx: click.Context,
        filter_expr: str,
        input_file: Optional[Path],
        compact: bool,
        raw: bool,
        slurp: bool,
        sort_keys: bool,
        args: Tuple[Tuple[str, str], ...],
        **extra: Any,
    ) -> None:
        raw_data = None
        if input_file is None:
            raw_data = click.get_text_stream("stdin").read()
        params = QueryParams(
            filter=filter_expr,
            input_file=str(input_file.resolve()) if input_file else None,
            raw_data=raw_data,
            compact_output=compact,
            raw_output=raw,
            slurp=slurp,
            sort_keys=sort_keys,
            arg_vars=dict(args),
            yaml_output=extra.get("yaml_output", False),
        )
        _run_tool(ctx, tool_name, params)

    if yaml_flag:
        command = click.option("--yaml-output", "-y", "yaml_output", is_flag=True, help="Emit YAML")(command)
    return command


cli.command(name="jq", help="Run a jq filter over a JSON file or stdin.")(_query_command("query_json", yaml_flag=False))
cli.command(name="yq", help="Run a yq filter over a YAML file or stdin.")(_query_command("query_yaml", yaml_flag=True))


@cli.command()
@click.argument("command")
@click.option("--cwd", type=click.Path(exists=True, file_okay=False), help="Working directory")
@click.pass_context
def run(ctx: click.Context, command: str, cwd: Optional[str]) -> None:
    """
    Run a read-only shell command (validated first).

    Example: toolguard run "git log --oneline | head -20"
    """
    _run_tool(ctx, "shell", ShellParams(command=command, directory=cwd))


@cli.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """
    Show effective configuration.
    """
    cfg: ToolguardConfig = ctx.obj["config"]
    session = _session(ctx)

    table = Table(title="Toolguard Configuration", show_header=False)
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Storage dir", str(session.executor.storage_dir))
    table.add_row("Kill grace", f"{cfg.executor.kill_grace_seconds}s")
    table.add_row("Timeout", f"{cfg.executor.timeout_seconds}s" if cfg.executor.timeout_seconds else "none")
    table.add_row("Inline threshold", str(cfg.summary.inline_threshold))
    table.add_row("Preview lines", str(cfg.summary.preview_lines))
    table.add_row("Read before edit", str(cfg.policy.require_read_before_edit))
    table.add_row("Tools", ", ".join(cfg.tools.enabled))
    console.print(table)

    for name, tool in session.tools.items():
        state = tool.program or "[red]not found[/red]"
        console.print(f"  {name:<15} {state}")


@cli.command()
@click.option(
    "--path", "-p",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory to write toolguard.yaml into",
)
def init(path: Optional[Path]) -> None:
    """
    Write a default toolguard.yaml.
    """
    try:
        target = init_config(path)
    except (FileExistsError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Wrote default configuration to: {target}")


@cli.command()
def version() -> None:
    """
    Show version information.
    """
    click.echo(f"toolguard v{__version__}")
    click.echo("Built on vel")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
