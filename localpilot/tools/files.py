"""File adapters: read, write, create, delete, replace, list, stat, move."""

from __future__ import annotations

import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

from localpilot.sandbox import ToolContext

logger = logging.getLogger(__name__)


class AlreadyExistsError(Exception):
    """Raised when create_file targets an existing path without overwrite."""

    pass


class TextNotFoundError(Exception):
    """Raised when replace_in_file cannot find the search text."""

    pass


def read_file(
    ctx: ToolContext,
    target: str,
    start: int | None = None,
    end: int | None = None,
) -> str:
    """Read a text file, optionally limited to a 1-based inclusive line range."""
    resolved = ctx.resolve(target)
    raw = resolved.read_text(encoding="utf-8")
    if start is None and end is None:
        return raw

    lines = raw.splitlines()
    first = max(1, start if start is not None else 1)
    last = min(len(lines), end if end is not None else len(lines))
    return "\n".join(lines[first - 1 : last])


def write_file(ctx: ToolContext, target: str, content: str) -> str:
    resolved = ctx.resolve(target)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    resolved.write_text(content, encoding="utf-8")
    return f"Wrote {target}"


def append_file(ctx: ToolContext, target: str, content: str) -> str:
    resolved = ctx.resolve(target)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    with open(resolved, "a", encoding="utf-8") as f:
        f.write(content)
    return f"Appended {target}"


def create_file(ctx: ToolContext, target: str, content: str, overwrite: bool = False) -> str:
    """Create a file, refusing to clobber an existing one unless asked to.

    Raises:
        AlreadyExistsError: If the path exists and overwrite is False
    """
    resolved = ctx.resolve(target)
    if resolved.exists() and not overwrite:
        raise AlreadyExistsError(f"File already exists: {target}")

    resolved.parent.mkdir(parents=True, exist_ok=True)
    resolved.write_text(content, encoding="utf-8")
    return f"Created {target}"


def delete_file(ctx: ToolContext, target: str) -> str:
    """Delete a file or a whole directory tree."""
    resolved = ctx.resolve(target)
    if resolved.is_dir():
        shutil.rmtree(resolved)
    elif resolved.exists():
        resolved.unlink()
    else:
        raise FileNotFoundError(f"No such file or directory: {target}")
    return f"Deleted {target}"


def replace_in_file(
    ctx: ToolContext,
    target: str,
    find: str,
    replace: str,
    replace_all: bool = True,
) -> str:
    """Literal substring replacement, every occurrence or just the first.

    Raises:
        TextNotFoundError: If find does not occur in the file
    """
    if not find:
        raise ValueError("Search text must not be empty")

    resolved = ctx.resolve(target)
    raw = resolved.read_text(encoding="utf-8")
    occurrences = raw.count(find)
    if occurrences == 0:
        raise TextNotFoundError(f"Text not found in {target}")

    if replace_all:
        updated = raw.replace(find, replace)
        replaced = occurrences
    else:
        updated = raw.replace(find, replace, 1)
        replaced = 1

    resolved.write_text(updated, encoding="utf-8")
    return f"Replaced {replaced} occurrence(s) in {target}"


def list_dir(
    ctx: ToolContext,
    target: str = ".",
    recursive: bool = False,
    include_hidden: bool = False,
) -> str:
    """List directory entries as newline-joined paths relative to target."""
    resolved = ctx.resolve(target)
    entries: list[str] = []

    def walk(current: Path, prefix: str = "") -> None:
        for item in sorted(current.iterdir(), key=lambda p: p.name):
            if not include_hidden and item.name.startswith("."):
                continue
            rel = f"{prefix}{item.name}"
            entries.append(rel)
            if recursive and item.is_dir() and not item.is_symlink():
                walk(item, f"{rel}/")

    walk(resolved)
    return "\n".join(entries)


def file_info(ctx: ToolContext, target: str) -> str:
    resolved = ctx.resolve(target)
    stats = resolved.stat()
    return json.dumps(
        {
            "path": target,
            "size": stats.st_size,
            "modified": datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc).isoformat(),
            "isFile": resolved.is_file(),
            "isDirectory": resolved.is_dir(),
        },
        indent=2,
    )


def move_file(ctx: ToolContext, source: str, target: str) -> str:
    """Move a file or directory, creating the destination's parents."""
    src = ctx.resolve(source)
    dest = ctx.resolve(target)
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(src), str(dest))
    logger.debug(f"Moved {src} -> {dest}")
    return f"Moved {source} -> {target}"


def rename_file(ctx: ToolContext, source: str, target: str) -> str:
    src = ctx.resolve(source)
    dest = ctx.resolve(target)
    src.rename(dest)
    return f"Renamed {source} -> {target}"
