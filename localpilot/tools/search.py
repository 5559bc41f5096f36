"""Text search adapter: ripgrep when available, a recursive scan otherwise."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

import pathspec

from localpilot.sandbox import ToolContext
from localpilot.tools.shell import DEFAULT_TIMEOUT, CommandFailedError

logger = logging.getLogger(__name__)

# Check if ripgrep is available
RG_PATH = shutil.which("rg")

# Binary file detection: check for null bytes in first 8KB
BINARY_CHECK_SIZE = 8192

NO_MATCHES = "No matches found"


def _is_binary(content: bytes) -> bool:
    """Check if content appears to be binary (contains null bytes)."""
    return b"\x00" in content[:BINARY_CHECK_SIZE]


def _load_gitignore(root: Path) -> pathspec.PathSpec | None:
    """Load .gitignore patterns if present."""
    gitignore_path = root / ".gitignore"
    if gitignore_path.exists():
        try:
            patterns = gitignore_path.read_text().splitlines()
            return pathspec.PathSpec.from_lines("gitwildmatch", patterns)
        except OSError as e:
            logger.warning(f"Failed to read .gitignore: {e}")
    return None


def _search_with_ripgrep(root: Path, query: str, glob: str | None, timeout_seconds: int) -> str:
    argv = [RG_PATH, "--fixed-strings", "--line-number", "--no-heading", "--sort", "path"]
    # Only the root .gitignore applies, with or without a .git directory
    argv.append("--no-ignore")
    if (root / ".gitignore").is_file():
        argv += ["--ignore-file", ".gitignore"]
    if glob:
        argv += ["-g", glob]
    argv += ["--", query, "."]

    try:
        result = subprocess.run(
            argv,
            cwd=str(root),
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired as e:
        raise CommandFailedError(f"Search timed out after {timeout_seconds} seconds") from e

    # ripgrep exits 1 when nothing matched
    if result.returncode == 1:
        return NO_MATCHES
    if result.returncode != 0:
        raise CommandFailedError(
            result.stderr.strip() or f"Command failed with code {result.returncode}"
        )

    lines = [line[2:] if line.startswith("./") else line for line in result.stdout.splitlines()]
    return "\n".join(lines).strip() or NO_MATCHES


def _search_manually(root: Path, query: str, glob: str | None) -> str:
    """Walk every non-hidden, non-ignored text file looking for query.

    Only the root .gitignore is honoured; nested ones are not read.
    """
    gitignore = _load_gitignore(root)
    glob_spec = pathspec.PathSpec.from_lines("gitwildmatch", [glob]) if glob else None
    matches: list[str] = []

    def walk(current: Path) -> None:
        for item in sorted(current.iterdir(), key=lambda p: p.name):
            # Symlinks are not followed, matching ripgrep
            if item.name.startswith(".") or item.is_symlink():
                continue
            rel = item.relative_to(root).as_posix()
            if item.is_dir():
                if gitignore and gitignore.match_file(f"{rel}/"):
                    continue
                walk(item)
                continue
            if not item.is_file():
                continue
            if gitignore and gitignore.match_file(rel):
                continue
            if glob_spec and not glob_spec.match_file(rel):
                continue

            try:
                content = item.read_bytes()
            except PermissionError:
                logger.warning(f"Permission denied: {item}")
                continue
            if _is_binary(content):
                logger.debug(f"Skipped binary file: {item}")
                continue

            text = content.decode("utf-8", errors="replace")
            for lineno, line in enumerate(text.splitlines(), 1):
                if query in line:
                    matches.append(f"{rel}:{lineno}:{line}")

    walk(root)
    return "\n".join(matches) or NO_MATCHES


def search_files(
    ctx: ToolContext,
    query: str,
    glob: str | None = None,
    use_ripgrep: bool = True,
    timeout_seconds: int = DEFAULT_TIMEOUT,
) -> str:
    """Search the workspace for a literal string.

    Args:
        ctx: Tool context; the search covers its whole root
        query: Literal text to look for
        glob: Optional gitignore-style pattern restricting which files are read
        use_ripgrep: Whether to delegate to ripgrep when it is installed
        timeout_seconds: Timeout for the ripgrep subprocess

    Returns:
        ``path:line:text`` lines sorted by path, or a no-match message
    """
    if not query:
        raise ValueError("Search query must not be empty")

    root = ctx.resolve(".")

    if use_ripgrep and RG_PATH:
        logger.info(f"Searching with ripgrep: {query!r} (glob: {glob})")
        return _search_with_ripgrep(root, query, glob, timeout_seconds)

    if use_ripgrep:
        logger.warning("ripgrep not available, falling back to a manual scan")
    return _search_manually(root, query, glob)


def check_ripgrep_available() -> bool:
    """Check if ripgrep is available."""
    return RG_PATH is not None
