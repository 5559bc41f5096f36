"""Tests for shell, git and patch adapters."""

import shutil
import subprocess

import pytest
from unittest.mock import patch

from localpilot.tools import shell
from localpilot.tools.shell import CommandFailedError, apply_patch, run_git, run_shell

GIT_PATH = shutil.which("git")
PATCH_PATH = shutil.which("patch")

SIMPLE_PATCH = """--- greeting.txt
+++ greeting.txt
@@ -1 +1 @@
-hello
+goodbye
"""

GIT_PATCH = """diff --git a/greeting.txt b/greeting.txt
--- a/greeting.txt
+++ b/greeting.txt
@@ -1 +1 @@
-hello
+goodbye
"""


class TestRunShell:
    """Test run_shell execution."""

    def test_command_with_args(self, ctx):
        """Commands with args run directly and return trimmed stdout."""
        assert run_shell(ctx, "echo", ["hello", "world"]) == "hello world"

    def test_command_line_uses_shell(self, ctx, tmp_workspace):
        """A bare command line with spaces goes through the shell."""
        (tmp_workspace / "a.txt").write_text("one\ntwo\n")
        assert run_shell(ctx, "cat a.txt | wc -l") == "2"

    def test_runs_in_workspace_root(self, ctx, tmp_workspace):
        """The working directory is the workspace root."""
        assert run_shell(ctx, "pwd") == str(tmp_workspace.resolve())

    def test_empty_output_placeholder(self, ctx):
        """Silent success yields a placeholder."""
        assert run_shell(ctx, "true") == "Command completed"

    def test_nonzero_exit_raises_with_stderr(self, ctx):
        """Failures carry trimmed stderr."""
        with pytest.raises(CommandFailedError, match="boom"):
            run_shell(ctx, "echo boom >&2; exit 3")

    def test_nonzero_exit_without_stderr(self, ctx):
        """Failures with no stderr report the exit code."""
        with pytest.raises(CommandFailedError, match="code 1"):
            run_shell(ctx, "false")

    def test_missing_executable(self, ctx):
        """A missing binary is reported as a command failure."""
        with pytest.raises(CommandFailedError, match="Command not found"):
            run_shell(ctx, "definitely-not-a-real-binary-12345", ["--help"])

    def test_timeout(self, ctx):
        """Commands exceeding the timeout fail."""
        with patch.object(
            shell.subprocess,
            "run",
            side_effect=subprocess.TimeoutExpired(cmd="sleep", timeout=1),
        ):
            with pytest.raises(CommandFailedError, match="timed out"):
                run_shell(ctx, "sleep", ["10"], timeout_seconds=1)


class TestRunGit:
    """Test git invocation (requires git on PATH)."""

    @pytest.fixture(autouse=True)
    def require_git(self):
        if GIT_PATH is None:
            pytest.skip("git not available")

    def test_git_init_and_status(self, ctx, tmp_workspace):
        """git runs in the workspace root."""
        run_git(ctx, ["init", "-q"])
        assert (tmp_workspace / ".git").is_dir()
        assert "branch" in run_git(ctx, ["status"]).lower()

    def test_git_failure_raises(self, ctx):
        """git errors surface as CommandFailedError."""
        with pytest.raises(CommandFailedError):
            run_git(ctx, ["log"])


class TestApplyPatch:
    """Test patch application and temp file cleanup."""

    @pytest.fixture
    def staged_paths(self):
        """Record the temp patch paths handed out by mkstemp."""
        paths = []
        real_mkstemp = shell.tempfile.mkstemp

        def tracking_mkstemp(*args, **kwargs):
            fd, path = real_mkstemp(*args, **kwargs)
            paths.append(path)
            return fd, path

        with patch.object(shell.tempfile, "mkstemp", side_effect=tracking_mkstemp):
            yield paths

    def test_patch_without_git(self, ctx, tmp_workspace, staged_paths):
        """Without .git the generic patch tool is used."""
        if PATCH_PATH is None:
            pytest.skip("patch not available")
        (tmp_workspace / "greeting.txt").write_text("hello\n")

        assert apply_patch(ctx, SIMPLE_PATCH) == "Patch applied"
        assert (tmp_workspace / "greeting.txt").read_text() == "goodbye\n"
        assert len(staged_paths) == 1
        assert not any(shell.os.path.exists(p) for p in staged_paths)

    def test_patch_with_git(self, ctx, tmp_workspace, staged_paths):
        """With .git present, git apply is used."""
        if GIT_PATH is None:
            pytest.skip("git not available")
        run_git(ctx, ["init", "-q"])
        (tmp_workspace / "greeting.txt").write_text("hello\n")

        apply_patch(ctx, GIT_PATCH)
        assert (tmp_workspace / "greeting.txt").read_text() == "goodbye\n"
        assert not any(shell.os.path.exists(p) for p in staged_paths)

    def test_selects_tool_by_git_directory(self, ctx, tmp_workspace):
        """The .git directory decides between git apply and patch."""
        with patch.object(shell, "run_command", return_value="") as mock_run:
            apply_patch(ctx, SIMPLE_PATCH)
            assert mock_run.call_args[0][1] == "patch"

            (tmp_workspace / ".git").mkdir()
            apply_patch(ctx, SIMPLE_PATCH)
            assert mock_run.call_args[0][1] == "git"
            assert mock_run.call_args[0][2][:2] == ["apply", "--whitespace=nowarn"]

    def test_temp_file_removed_on_failure(self, ctx, staged_paths):
        """The staged patch is removed even when applying fails."""
        with patch.object(shell, "run_command", side_effect=CommandFailedError("bad patch")):
            with pytest.raises(CommandFailedError):
                apply_patch(ctx, "not a patch")

        assert len(staged_paths) == 1
        assert not shell.os.path.exists(staged_paths[0])
