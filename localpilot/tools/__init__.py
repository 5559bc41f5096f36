"""Tool adapters the agent dispatches plan actions to."""

from localpilot.tools.files import (
    append_file,
    create_file,
    delete_file,
    file_info,
    list_dir,
    move_file,
    read_file,
    rename_file,
    replace_in_file,
    write_file,
)
from localpilot.tools.search import search_files
from localpilot.tools.shell import apply_patch, run_git, run_shell

__all__ = [
    "append_file",
    "apply_patch",
    "create_file",
    "delete_file",
    "file_info",
    "list_dir",
    "move_file",
    "read_file",
    "rename_file",
    "replace_in_file",
    "run_git",
    "run_shell",
    "search_files",
    "write_file",
]
