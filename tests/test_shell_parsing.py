"""
Tests for shell text analysis helpers.
"""

import pytest

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


def texts(command):
    return [segment.text for segment in split_commands(command)]


class TestSplitCommands:
    """Tests for top-level segment splitting."""

    def test_single_command(self):
        assert texts("git status") == ["git status"]

    def test_all_operators(self):
        assert texts("a; b && c || d | e & f\ng") == ["a", "b", "c", "d", "e", "f", "g"]

    def test_operators_recorded(self):
        segments = split_commands("a && b | c")
        assert [s.operator for s in segments] == [None, "&&", "|"]

    def test_quoted_operators_not_split(self):
        assert texts("echo 'a; b' && grep \"x|y\" file") == ["echo 'a; b'", 'grep "x|y" file']

    def test_escaped_operator_not_split(self):
        assert texts(r"echo a\;b") == [r"echo a\;b"]

    def test_redirection_ampersand_kept(self):
        assert texts("ls missing 2>&1 | head") == ["ls missing 2>&1", "head"]
        assert texts("ls &>/dev/null") == ["ls &>/dev/null"]

    def test_pipe_ampersand(self):
        segments = split_commands("make |& tee")
        assert [s.text for s in segments] == ["make", "tee"]
        assert segments[1].operator == "|&"

    def test_empty_segments_dropped(self):
        assert texts(";; ls ;") == ["ls"]

    def test_unterminated_quote_raises(self):
        with pytest.raises(ShellParseError):
            split_commands("echo 'oops")

    def test_trailing_backslash_raises(self):
        with pytest.raises(ShellParseError):
            split_commands("echo oops\\")

    @pytest.mark.parametrize("command", ["echo $'a\\'b'", 'echo $"x"', "ls # tail", "#x"])
    def test_untracked_quoting_raises(self, command):
        with pytest.raises(ShellParseError):
            split_commands(command)

    def test_hash_inside_word_or_quotes(self):
        assert texts("echo a#b; echo '# x'") == ["echo a#b", "echo '# x'"]
        assert texts("echo \"$'\"") == ["echo \"$'\""]


class TestCommandSubstitution:
    """Tests for substitution detection."""

    @pytest.mark.parametrize("segment", [
        "echo $(whoami)",
        "echo `whoami`",
        'echo "$(whoami)"',
        "diff <(ls a) <(ls b)",
        "tee >(cat)",
    ])
    def test_detected(self, segment):
        assert detect_command_substitution(segment) is True

    @pytest.mark.parametrize("segment", [
        "echo '$(whoami)'",
        "echo '`date`'",
        r"echo \$(x)",
        "echo $HOME",
    ])
    def test_not_detected(self, segment):
        assert detect_command_substitution(segment) is False


class TestWriteRedirection:
    """Tests for output redirection detection."""

    @pytest.mark.parametrize("segment", [
        "echo hi > out.txt",
        "echo hi >> out.txt",
        "echo hi >| out.txt",
        "echo hi &> out.txt",
        "ls 2> errors.log",
        "echo hi >out.txt",
    ])
    def test_writes(self, segment):
        assert contains_write_redirection(segment) is True

    @pytest.mark.parametrize("segment", [
        "ls 2>&1",
        "echo hi >&2",
        "ls 2>/dev/null",
        "ls > /dev/null 2>&1",
        "echo 'a > b'",
        'grep "->" file',
        "cat < input.txt",
    ])
    def test_not_writes(self, segment):
        assert contains_write_redirection(segment) is False


class TestTokenizing:
    """Tests for tokenize and friends."""

    def test_tokenize_quotes(self):
        assert tokenize("grep -n 'two words' file") == ["grep", "-n", "two words", "file"]

    def test_tokenize_bad_quotes(self):
        with pytest.raises(ShellParseError):
            tokenize('echo "open')

    def test_skip_env_assignments(self):
        assert skip_env_assignments(["LANG=C", "FOO=1", "sort", "x=1"]) == ["sort", "x=1"]

    def test_command_name_normalized(self):
        assert command_name("/usr/bin/GIT") == "git"


class TestShellWrapper:
    """Tests for bash -c unwrapping."""

    def test_bash_c(self):
        assert strip_shell_wrapper("bash -c 'ls -la'") == "ls -la"

    def test_combined_flags(self):
        assert strip_shell_wrapper("sh -lc 'git status'") == "git status"

    def test_leading_flags(self):
        assert strip_shell_wrapper("zsh -e -c 'pwd'") == "pwd"

    def test_env_prefix(self):
        assert strip_shell_wrapper("FOO=1 bash -c 'echo $FOO'") == "echo $FOO"

    def test_not_a_wrapper(self):
        assert strip_shell_wrapper("ls -c") is None
        assert strip_shell_wrapper("bash script.sh") is None
        assert strip_shell_wrapper("bash -c") is None
