"""
Shell Text Analysis

Quote-aware helpers for picking apart shell command text without ever
handing it to a shell: segment splitting, wrapper stripping, substitution
and redirection detection, and tokenizing.
"""

import os
import re
import shlex
from dataclasses import dataclass
from typing import List, Optional

SHELL_WRAPPERS = {"bash", "sh", "zsh", "dash", "ksh"}

_ENV_ASSIGNMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")
_WRAPPER_FLAGS = re.compile(r"^-[a-zA-Z]*c[a-zA-Z]*$")

# A `#` after one of these starts a comment in bash
_WORD_BREAKS = " \t\n;&|()<>"

NULL_DEVICE = "/dev/null"


class ShellParseError(ValueError):
    """Raised when command text cannot be parsed unambiguously."""


@dataclass(frozen=True)
class CommandSegment:
    """One shell statement, with the operator that preceded it (if any)."""

    text: str
    operator: Optional[str] = None


def split_commands(command: str) -> List[CommandSegment]:
    """
    Split command text on top-level ;, &&, ||, |, & and newlines.

    Operators inside single or double quotes, or escaped with a backslash,
    are not split on. `&` that belongs to a redirection (`2>&1`, `&>`) stays
    inside its segment. `$'...'`/`$"..."` quoting and unquoted `#` comments
    are rejected rather than interpreted.

    Args:
        command: Raw command text

    Returns:
        Non-empty segments, stripped of surrounding whitespace

    Raises:
        ShellParseError: On unterminated quotes, a trailing escape or
            syntax whose quoting cannot be tracked
    """
    segments: List[CommandSegment] = []
    current: List[str] = []
    pending_operator: Optional[str] = None
    in_single = False
    in_double = False
    i = 0
    n = len(command)

    def flush(next_operator: Optional[str]) -> None:
        nonlocal pending_operator
        text = "".join(current).strip()
        if text:
            segments.append(CommandSegment(text=text, operator=pending_operator))
        current.clear()
        pending_operator = next_operator

    while i < n:
        ch = command[i]

        if in_single:
            current.append(ch)
            if ch == "'":
                in_single = False
            i += 1
            continue

        if ch == "\\":
            if i + 1 >= n:
                raise ShellParseError("trailing backslash")
            current.append(command[i : i + 2])
            i += 2
            continue

        if in_double:
            current.append(ch)
            if ch == '"':
                in_double = False
            i += 1
            continue

        if ch == "$" and command[i + 1 : i + 2] in ("'", '"'):
            raise ShellParseError("$'...' and $\"...\" quoting is not supported")
        if ch == "#" and (i == 0 or command[i - 1] in _WORD_BREAKS):
            raise ShellParseError("unquoted comment")

        if ch == "'":
            in_single = True
            current.append(ch)
        elif ch == '"':
            in_double = True
            current.append(ch)
        elif ch in (";", "\n"):
            flush(ch)
        elif ch == "&":
            prev = command[i - 1] if i > 0 else ""
            nxt = command[i + 1] if i + 1 < n else ""
            if nxt == "&":
                flush("&&")
                i += 1
            elif prev in (">", "<") or nxt == ">":
                current.append(ch)
            else:
                flush("&")
        elif ch == "|":
            nxt = command[i + 1] if i + 1 < n else ""
            if nxt == "|":
                flush("||")
                i += 1
            elif nxt == "&":
                flush("|&")
                i += 1
            else:
                flush("|")
        else:
            current.append(ch)
        i += 1

    if in_single or in_double:
        raise ShellParseError("unterminated quote")

    flush(None)
    return segments


def detect_command_substitution(segment: str) -> bool:
    """
    Check for $(...), backticks, <(...) or >(...) outside single quotes.

    Double quotes do not protect against substitution, so only single
    quotes and backslash escapes are honoured.
    """
    in_single = False
    in_double = False
    i = 0
    n = len(segment)
    while i < n:
        ch = segment[i]
        if in_single:
            if ch == "'":
                in_single = False
        elif ch == "\\":
            i += 2
            continue
        elif ch == "'" and not in_double:
            in_single = True
        elif ch == '"':
            in_double = not in_double
        elif ch == "`":
            return True
        elif ch == "$" and segment[i + 1 : i + 2] == "(":
            return True
        elif ch in ("<", ">") and segment[i + 1 : i + 2] == "(":
            return True
        i += 1
    return False


def contains_write_redirection(segment: str) -> bool:
    """
    Check for an unquoted output redirection that writes to a file.

    Descriptor duplication (`2>&1`, `>&2`, `>&-`) and redirection to
    /dev/null are not writes. Anything else using `>`, `>>`, `>|` or `&>`
    is.
    """
    in_single = False
    in_double = False
    i = 0
    n = len(segment)
    while i < n:
        ch = segment[i]
        if in_single:
            if ch == "'":
                in_single = False
            i += 1
            continue
        if ch == "\\":
            i += 2
            continue
        if in_double:
            if ch == '"':
                in_double = False
            i += 1
            continue
        if ch == "'":
            in_single = True
        elif ch == '"':
            in_double = True
        elif ch == ">":
            j = i + 1
            if j < n and segment[j] in (">", "|"):
                j += 1
            if j < n and segment[j] == "&":
                j += 1
                if j < n and (segment[j].isdigit() or segment[j] == "-"):
                    i = j + 1
                    continue
            target, j = _read_word(segment, j)
            if target != NULL_DEVICE:
                return True
            i = j
            continue
        i += 1
    return False


def _read_word(text: str, start: int):
    i = start
    n = len(text)
    while i < n and text[i] in " \t":
        i += 1
    begin = i
    while i < n and text[i] not in " \t;&|<>()":
        i += 1
    return text[begin:i].strip("'\""), i


def tokenize(segment: str) -> List[str]:
    """
    Tokenize a segment with POSIX shell quoting rules.

    Raises:
        ShellParseError: If the quoting is unbalanced
    """
    try:
        return shlex.split(segment, posix=True)
    except ValueError as e:
        raise ShellParseError(str(e)) from e


def skip_env_assignments(tokens: List[str]) -> List[str]:
    """Drop leading NAME=value tokens."""
    index = 0
    while index < len(tokens) and _ENV_ASSIGNMENT.match(tokens[index]):
        index += 1
    return tokens[index:]


def command_name(token: str) -> str:
    """Normalize a root token: basename, lowercased."""
    return os.path.basename(token).lower()


def strip_shell_wrapper(segment: str) -> Optional[str]:
    """
    Return the inner command of `bash -c '...'` style wrappers.

    Leading flags such as `-l` or `-e` are allowed before `-c`, and `-c`
    may be combined with them (`-lc`). Returns None when the segment is
    not a wrapper invocation.
    """
    try:
        tokens = skip_env_assignments(tokenize(segment))
    except ShellParseError:
        return None
    if not tokens or command_name(tokens[0]) not in SHELL_WRAPPERS:
        return None

    for index, token in enumerate(tokens[1:], start=1):
        if not token.startswith("-"):
            return None
        if _WRAPPER_FLAGS.match(token):
            if index + 1 < len(tokens):
                return tokens[index + 1]
            return None
    return None
