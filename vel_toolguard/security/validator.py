"""
Command Security Validator

Classifies shell command text as read-only safe or not before anything is
spawned. Denial is fail-closed: any construct the validator does not
understand is denied.

Usage:
    verdict = validate_command("git log --oneline | head -20")
    if not verdict.allowed:
        print(verdict.denial_reason)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from vel_toolguard.security.shell import (
    ShellParseError,
    command_name,
    contains_write_redirection,
    detect_command_substitution,
    skip_env_assignments,
    split_commands,
    strip_shell_wrapper,
    tokenize,
)

logger = logging.getLogger(__name__)

MAX_WRAPPER_DEPTH = 3

READ_ONLY_COMMANDS = frozenset({
    "awk", "basename", "bat", "cat", "cd", "column", "cut", "df", "dirname",
    "du", "echo", "env", "eza", "fd", "file", "find", "git", "grep", "head",
    "jq", "less", "ls", "more", "printenv", "printf", "ps", "pwd", "rg",
    "ripgrep", "sed", "sort", "stat", "tail", "tree", "uniq", "wc", "which",
    "where", "whoami", "yq",
})

GIT_READ_ONLY_SUBCOMMANDS = frozenset({
    "blame", "branch", "cat-file", "describe", "diff", "grep", "log",
    "ls-files", "ls-tree", "remote", "rev-parse", "show", "status", "shortlog",
})

GIT_REMOTE_MUTATIONS = frozenset({
    "add", "remove", "rm", "rename", "set-url", "set-head", "set-branches",
    "prune", "update",
})

GIT_BRANCH_MUTATING_FLAGS = frozenset({
    "-d", "-D", "--delete", "-m", "-M", "--move", "-c", "-C", "--copy",
    "--set-upstream-to", "-u", "--unset-upstream", "--edit-description",
    "-f", "--force",
})

# Flags of `git branch` that take the next token as their value
_GIT_BRANCH_VALUE_FLAGS = frozenset({
    "--contains", "--no-contains", "--merged", "--no-merged", "--points-at",
    "--sort", "--format",
})

_GIT_GLOBAL_FLAGS = frozenset({
    "--no-pager", "-P", "--paginate", "-p", "--no-optional-locks",
    "--literal-pathspecs", "--no-replace-objects", "--bare",
})
_GIT_GLOBAL_VALUE_FLAGS = frozenset({"-C", "--git-dir", "--work-tree", "--namespace"})

# Variables a command may set for itself (`LC_ALL=C sort`). Others such as
# GIT_EXTERNAL_DIFF, PAGER, LESSOPEN, LD_PRELOAD or BASH_ENV run programs.
SAFE_ENV_ASSIGNMENTS = frozenset({
    "CLICOLOR", "CLICOLOR_FORCE", "COLUMNS", "FORCE_COLOR", "LANG", "LANGUAGE",
    "LINES", "NO_COLOR", "TERM", "TZ",
})

FIND_DANGEROUS_FLAGS = ("-delete", "-exec", "-execdir", "-ok", "-okdir", "-fprint", "-fls")

_SED_LONG_OPTIONS = (
    "--binary", "--debug", "--expression", "--file", "--follow-symlinks", "--help",
    "--in-place", "--line-length", "--null-data", "--posix", "--quiet",
    "--regexp-extended", "--sandbox", "--separate", "--silent", "--unbuffered",
    "--version", "--zero-terminated",
)
_SED_WRITE_OR_EXEC = re.compile(r"(?:^|[;{}\s])[wWe](?:\s|$)|/[gpIiMm0-9]*[we](?:[\s;}]|$)")

_AWK_SIDE_EFFECTS = (
    re.compile(r"\bsystem\s*\("),
    re.compile(r"\|\s*getline"),
    re.compile(r"\bprintf?\b[^;}]*>"),
    re.compile(r"\bprintf?\b[^;}]*\|"),
)

# Per-command flags that write files or run other programs
_DENIED_FLAGS: Dict[str, Tuple[str, ...]] = {
    "yq": ("-i", "--inplace", "--in-place"),
    "sort": ("-o", "--output"),
    "tree": ("-o",),
    "fd": ("-x", "--exec", "-X", "--exec-batch"),
    "rg": ("--pre",),
    "ripgrep": ("--pre",),
}

# command -> (suggested tool, message)
DEPRECATED_COMMANDS: Dict[str, Tuple[str, str]] = {
    "ls": ("list_directory", "`ls` is superseded by the list_directory tool (eza) which bounds its output"),
    "grep": ("search_text", "`grep` is superseded by the search_text tool (ripgrep)"),
    "du": ("dust", "`du` is superseded by `dust` for readable disk usage"),
    "fd": ("find_files", "Call the find_files tool instead of running `fd` through the shell"),
}

SUBOPTIMAL_PATTERNS: Dict[str, Tuple[str, str]] = {
    "sed": ("edit_file", "Use the edit_file tool for modifications instead of `sed`"),
    "awk": ("search_text", "Use search_text or query_json instead of `awk` for extraction"),
    "echo": ("write_file", "Use the write_file tool rather than `echo` to produce file content"),
    "cat": ("read_file", "Use read_file (or `bat`) instead of `cat` to view files"),
    "find": ("find_files", "Use the find_files tool (fd) instead of `find`"),
}


@dataclass
class CommandWarning:
    """Non-blocking advice attached to an allowed command."""

    kind: str  # "deprecated" or "suboptimal"
    message: str
    suggested_alternative: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "suggested_alternative": self.suggested_alternative,
        }


@dataclass
class SecurityVerdict:
    """Outcome of validating one command string."""

    allowed: bool
    denial_reason: Optional[str] = None
    warnings: List[CommandWarning] = field(default_factory=list)

    @classmethod
    def deny(cls, reason: str) -> "SecurityVerdict":
        return cls(allowed=False, denial_reason=reason or "Command denied")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "allowed": self.allowed,
            "denial_reason": self.denial_reason,
            "warnings": [w.to_dict() for w in self.warnings],
        }


def validate_command(command: Any) -> SecurityVerdict:
    """
    Validate a shell command string against the read-only policy.

    Never raises. Non-string input and anything that cannot be analyzed
    is denied.

    Args:
        command: Raw shell command text

    Returns:
        SecurityVerdict; `allowed=False` always carries a denial reason
    """
    if not isinstance(command, str):
        return SecurityVerdict.deny(f"Invalid command: expected a string, got {type(command).__name__}")
    if not command.strip():
        return SecurityVerdict(allowed=True)

    try:
        return _validate(command, depth=0)
    except Exception as e:  # fail closed on analyzer bugs
        logger.warning(f"Command analysis failed, denying: {e}")
        return SecurityVerdict.deny(f"Command could not be analyzed: {e}")


def is_read_only(command: Any) -> bool:
    """True when the command would be allowed."""
    return validate_command(command).allowed


def get_recommended_tool(command: str) -> str:
    """
    Suggest a native tool for the command's root, or "" if none applies.

    Only the first segment is considered.
    """
    try:
        segments = split_commands(command)
        if not segments:
            return ""
        tokens = skip_env_assignments(tokenize(segments[0].text))
    except ShellParseError:
        return ""
    if not tokens:
        return ""
    root = command_name(tokens[0])
    if root in DEPRECATED_COMMANDS:
        return DEPRECATED_COMMANDS[root][0]
    if root in SUBOPTIMAL_PATTERNS:
        return SUBOPTIMAL_PATTERNS[root][0]
    return ""


def optimization_guide() -> str:
    """Human-readable table of command -> preferred tool suggestions."""
    lines = ["Preferred tools:"]
    for root, (tool, message) in DEPRECATED_COMMANDS.items():
        lines.append(f"  {root:<6} -> {tool:<15} {message}")
    for root, (tool, message) in SUBOPTIMAL_PATTERNS.items():
        lines.append(f"  {root:<6} -> {tool:<15} {message}")
    return "\n".join(lines)


def _validate(command: str, depth: int) -> SecurityVerdict:
    try:
        segments = split_commands(command)
    except ShellParseError as e:
        return SecurityVerdict.deny(f"Ambiguous shell syntax ({e})")

    warnings: List[CommandWarning] = []
    for segment in segments:
        verdict = _validate_segment(segment.text, depth)
        if not verdict.allowed:
            return verdict
        warnings.extend(verdict.warnings)

    return SecurityVerdict(allowed=True, warnings=warnings)


def _validate_segment(segment: str, depth: int) -> SecurityVerdict:
    # Checked before unwrapping too, so arguments trailing a wrapper are covered
    if detect_command_substitution(segment):
        return SecurityVerdict.deny(f"Command substitution is not allowed: {segment}")
    if contains_write_redirection(segment):
        return SecurityVerdict.deny(f"Output redirection to a file is not allowed: {segment}")

    try:
        tokens = tokenize(segment)
    except ShellParseError as e:
        return SecurityVerdict.deny(f"Ambiguous shell syntax ({e})")

    reason = _check_assignments(tokens)
    if reason:
        return SecurityVerdict.deny(reason)

    inner = strip_shell_wrapper(segment)
    if inner is not None:
        if depth >= MAX_WRAPPER_DEPTH:
            return SecurityVerdict.deny("Shell wrappers nested too deeply")
        if not inner.strip():
            return SecurityVerdict(allowed=True)
        return _validate(inner, depth + 1)

    tokens = skip_env_assignments(tokens)
    if not tokens:
        return SecurityVerdict(allowed=True)

    reason = _check_tokens(tokens)
    if reason:
        return SecurityVerdict.deny(reason)

    return SecurityVerdict(allowed=True, warnings=_warnings_for(command_name(tokens[0])))


def _check_tokens(tokens: List[str]) -> Optional[str]:
    """Return a denial reason for a tokenized command, or None if allowed."""
    root = command_name(tokens[0])
    if root not in READ_ONLY_COMMANDS:
        return f"Command '{root}' is not in the read-only allow-list"

    args = tokens[1:]

    if root == "find":
        return _check_find(args)
    if root == "sed":
        return _check_sed(args)
    if root == "git":
        return _check_git(args)
    if root == "awk":
        return _check_awk(args)
    if root == "env":
        return _check_env(args)

    denied = _DENIED_FLAGS.get(root)
    if denied:
        for arg in args:
            for flag in denied:
                if arg == flag or arg.startswith(flag + "="):
                    return f"'{root} {flag}' writes files or runs other programs"
                # short flags with attached values, e.g. `sort -oout.txt`
                if len(flag) == 2 and not flag.startswith("--") and arg.startswith(flag) and not arg.startswith("--"):
                    return f"'{root} {flag}' writes files or runs other programs"
    return None


def _check_assignments(tokens: List[str]) -> Optional[str]:
    """Deny leading NAME=value assignments outside the locale/display set."""
    command = skip_env_assignments(tokens)
    for token in tokens[: len(tokens) - len(command)]:
        name = token.split("=", 1)[0]
        if name in SAFE_ENV_ASSIGNMENTS or name.startswith("LC_"):
            continue
        return f"Setting {name} is not allowed; only locale and display variables may be assigned"
    return None


def _check_find(args: List[str]) -> Optional[str]:
    for arg in args:
        for flag in FIND_DANGEROUS_FLAGS:
            if arg == flag or (flag in ("-fprint", "-fls") and arg.startswith(flag)):
                return f"find {arg} can modify files or execute commands"
    return None


def _check_sed(args: List[str]) -> Optional[str]:
    scripts: List[str] = []
    operands: List[str] = []
    has_expression = False
    index = 0
    while index < len(args):
        arg = args[index]
        index += 1
        if arg == "--":
            operands.extend(args[index:])
            break
        if arg.startswith("--"):
            given, has_value, value = arg.partition("=")
            # sed accepts any unambiguous prefix of a long option
            name = _expand_long_option(given, _SED_LONG_OPTIONS)
            if name is None:
                return f"Unrecognized sed option '{given}'"
            if name == "--in-place":
                return "sed in-place editing is not allowed"
            if name == "--file":
                return "sed -f is not allowed: the script file cannot be inspected"
            if name == "--expression":
                if not has_value and index < len(args):
                    value = args[index]
                    index += 1
                scripts.append(value)
                has_expression = True
            elif name == "--line-length" and not has_value:
                index += 1
            continue
        if arg.startswith("-") and len(arg) > 1:
            # short options cluster (`-ne`), `-e` and `-l` take the rest or the next token
            for pos, flag in enumerate(arg[1:], start=1):
                if flag == "i":
                    return "sed in-place editing is not allowed"
                if flag == "f":
                    return "sed -f is not allowed: the script file cannot be inspected"
                if flag in ("e", "l"):
                    value = arg[pos + 1 :]
                    if not value and index < len(args):
                        value = args[index]
                        index += 1
                    if flag == "e":
                        scripts.append(value)
                        has_expression = True
                    break
            continue
        operands.append(arg)

    if not has_expression and operands:
        scripts.append(operands[0])
    for script in scripts:
        if _SED_WRITE_OR_EXEC.search(script):
            return "sed scripts that write files or execute commands are not allowed"
    return None


def _expand_long_option(given: str, options: Tuple[str, ...]) -> Optional[str]:
    if given in options:
        return given
    matches = [option for option in options if option.startswith(given)]
    return matches[0] if len(matches) == 1 else None


def _check_awk(args: List[str]) -> Optional[str]:
    for arg in args:
        if arg.startswith("-"):
            continue
        for pattern in _AWK_SIDE_EFFECTS:
            if pattern.search(arg):
                return "awk programs that run commands or write files are not allowed"
    return None


def _check_env(args: List[str]) -> Optional[str]:
    index = 0
    while index < len(args):
        arg = args[index]
        if arg in ("-u", "--unset", "-C", "--chdir", "-S", "--split-string"):
            if arg in ("-S", "--split-string"):
                return "env -S is not allowed"
            index += 2
            continue
        if arg == "--":
            index += 1
            break
        if arg.startswith("-"):
            index += 1
            continue
        break

    reason = _check_assignments(args[index:])
    if reason:
        return reason
    rest = skip_env_assignments(args[index:])
    if not rest:
        return None
    return _check_tokens(rest)


def _check_git(args: List[str]) -> Optional[str]:
    index = 0
    while index < len(args):
        arg = args[index]
        if arg in ("--version", "--help", "-h"):
            return None
        if arg in _GIT_GLOBAL_VALUE_FLAGS:
            index += 2
            continue
        if any(arg.startswith(flag + "=") for flag in _GIT_GLOBAL_VALUE_FLAGS if flag.startswith("--")):
            index += 1
            continue
        if arg in _GIT_GLOBAL_FLAGS:
            index += 1
            continue
        if arg == "-c" or arg.startswith("--config-env") or arg.startswith("--exec-path"):
            return f"git {arg} can change how git runs commands"
        if arg.startswith("-"):
            return f"Unrecognized git option '{arg}'"
        break
    else:
        # bare `git` prints usage
        return None

    subcommand = args[index]
    sub_args = args[index + 1 :]
    if subcommand not in GIT_READ_ONLY_SUBCOMMANDS:
        return f"git {subcommand} is not a read-only git command"

    for arg in sub_args:
        if arg == "--output" or arg.startswith("--output="):
            return f"git {subcommand} --output writes files"
        if subcommand == "grep" and (arg == "-O" or arg.startswith("--open-files-in-pager")):
            return "git grep --open-files-in-pager runs a pager command"

    if subcommand == "remote":
        for arg in sub_args:
            if arg in GIT_REMOTE_MUTATIONS:
                return f"git remote {arg} modifies the repository"
    elif subcommand == "branch":
        return _check_git_branch(sub_args)
    return None


def _check_git_branch(args: List[str]) -> Optional[str]:
    listing = any(arg in ("--list", "-l") for arg in args)
    expects_value = False
    for arg in args:
        if expects_value:
            expects_value = False
            continue
        flag = arg.split("=", 1)[0]
        if flag in GIT_BRANCH_MUTATING_FLAGS:
            return f"git branch {flag} modifies branches"
        if arg in _GIT_BRANCH_VALUE_FLAGS:
            expects_value = True
            continue
        if not arg.startswith("-") and not listing:
            return f"git branch {arg} would create a branch"
    return None


def _warnings_for(root: str) -> List[CommandWarning]:
    if root in DEPRECATED_COMMANDS:
        tool, message = DEPRECATED_COMMANDS[root]
        return [CommandWarning(kind="deprecated", message=message, suggested_alternative=tool)]
    if root in SUBOPTIMAL_PATTERNS:
        tool, message = SUBOPTIMAL_PATTERNS[root]
        return [CommandWarning(kind="suboptimal", message=message, suggested_alternative=tool)]
    return []
