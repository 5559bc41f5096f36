"""Workspace path sandbox shared by every tool adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


class PathEscapeError(Exception):
    """Raised when a path resolves outside the workspace root."""

    pass


@dataclass(frozen=True)
class ToolContext:
    """Per-run settings shared read-only by all tool adapters."""

    root: Path
    allow_outside_root: bool = False

    def resolve(self, target: str) -> Path:
        """Resolve a user or model supplied path under this context."""
        return resolve_path(self.root, target, self.allow_outside_root)


def resolve_path(root: Path | str, target: str, allow_outside_root: bool = False) -> Path:
    """Resolve target against root, optionally refusing to leave root.

    Args:
        root: Workspace root directory
        target: Relative, absolute or home-relative (``~``) path
        allow_outside_root: Skip the containment check

    Returns:
        Absolute, normalized path

    Raises:
        PathEscapeError: If the path is neither root nor nested under it
    """
    normalized_root = Path(root).expanduser().resolve()
    resolved = (normalized_root / Path(target).expanduser()).resolve()

    # Compares whole path components, so "/work-old" is not under "/work".
    if not allow_outside_root and not resolved.is_relative_to(normalized_root):
        logger.warning(f"Rejected path outside root: {target} -> {resolved}")
        raise PathEscapeError(f"Path escapes root: {target}")

    return resolved
