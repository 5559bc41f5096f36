"""Subprocess adapters: shell commands, git invocations and patch application."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile

from localpilot.sandbox import ToolContext

logger = logging.getLogger(__name__)

# Default timeout
DEFAULT_TIMEOUT = 300  # seconds


class CommandFailedError(Exception):
    """Raised when a subprocess exits nonzero, times out or cannot start."""

    pass


def run_command(
    ctx: ToolContext,
    command: str,
    args: list[str] | None = None,
    timeout_seconds: int = DEFAULT_TIMEOUT,
) -> str:
    """Run a command in the workspace root.

    A bare command string containing spaces is handed to the system shell;
    anything with explicit args is executed directly.

    Args:
        ctx: Tool context whose root becomes the working directory
        command: Executable name or shell command line
        args: Arguments passed to the executable
        timeout_seconds: Timeout in seconds

    Returns:
        Trimmed stdout, or a placeholder when the command printed nothing

    Raises:
        CommandFailedError: On nonzero exit (carrying trimmed stderr),
            timeout, or a missing executable
    """
    args = args or []
    use_shell = not args and " " in command
    argv: str | list[str] = command if use_shell else [command, *args]

    logger.info(f"Executing command: {command} {' '.join(args)}".rstrip())

    try:
        result = subprocess.run(
            argv,
            shell=use_shell,
            cwd=str(ctx.root),
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
        )
    except subprocess.TimeoutExpired as e:
        logger.warning(f"Command timed out after {timeout_seconds}s: {command}")
        raise CommandFailedError(f"Command timed out after {timeout_seconds} seconds") from e
    except FileNotFoundError as e:
        raise CommandFailedError(f"Command not found: {command}") from e

    if result.returncode == 0:
        return result.stdout.strip() or "Command completed"

    raise CommandFailedError(
        result.stderr.strip() or f"Command failed with code {result.returncode}"
    )


def run_shell(
    ctx: ToolContext,
    command: str,
    args: list[str] | None = None,
    timeout_seconds: int = DEFAULT_TIMEOUT,
) -> str:
    return run_command(ctx, command, args, timeout_seconds)


def run_git(ctx: ToolContext, args: list[str], timeout_seconds: int = DEFAULT_TIMEOUT) -> str:
    return run_command(ctx, "git", args, timeout_seconds)


def apply_patch(ctx: ToolContext, patch: str, timeout_seconds: int = DEFAULT_TIMEOUT) -> str:
    """Apply a unified diff to the workspace.

    Uses ``git apply`` when the root holds a ``.git`` directory and
    ``patch -p0`` otherwise. The staged patch file is always removed.
    """
    root = ctx.resolve(".")
    fd, patch_path = tempfile.mkstemp(prefix="localpilot-", suffix=".patch")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(patch)

        if (root / ".git").is_dir():
            run_command(ctx, "git", ["apply", "--whitespace=nowarn", patch_path], timeout_seconds)
        else:
            run_command(ctx, "patch", ["-p0", "-i", patch_path], timeout_seconds)
        return "Patch applied"
    finally:
        try:
            os.unlink(patch_path)
        except FileNotFoundError:
            pass
