"""Pydantic schemas for LocalPilot plans, events and usage accounting."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ActionType(str, Enum):
    """Available action kinds a plan may request."""

    READ_FILE = "read_file"
    WRITE_FILE = "write_file"
    APPEND_FILE = "append_file"
    CREATE_FILE = "create_file"
    DELETE_FILE = "delete_file"
    REPLACE_IN_FILE = "replace_in_file"
    LIST_DIR = "list_dir"
    FILE_INFO = "file_info"
    SEARCH_FILES = "search_files"
    APPLY_PATCH = "apply_patch"
    MOVE_FILE = "move_file"
    RENAME_FILE = "rename_file"
    SHELL_COMMAND = "shell_command"
    GIT = "git"


class LogStatus(str, Enum):
    """Outcome of one attempted action."""

    OK = "OK"
    ERROR = "ERROR"
    SKIPPED = "SKIPPED"


class EventType(str, Enum):
    """Kinds of events emitted to the caller."""

    INFO = "info"
    PLAN = "plan"
    ACTION = "action"
    RESULT = "result"
    ERROR = "error"
    USAGE = "usage"


class UsagePhase(str, Enum):
    """Which model call a usage event belongs to."""

    PLAN = "plan"
    FOLLOWUP = "followup"
    RUN = "run"


# --- Actions ---


class _ActionBase(BaseModel):
    """Fields shared by every action variant."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    reason: str | None = Field(default=None, description="Display-only rationale")


class ReadFileAction(_ActionBase):
    type: Literal["read_file"] = "read_file"
    path: str
    start: int | None = None
    end: int | None = None


class WriteFileAction(_ActionBase):
    type: Literal["write_file"] = "write_file"
    path: str
    content: str


class AppendFileAction(_ActionBase):
    type: Literal["append_file"] = "append_file"
    path: str
    content: str


class CreateFileAction(_ActionBase):
    type: Literal["create_file"] = "create_file"
    path: str
    content: str
    overwrite: bool = False


class DeleteFileAction(_ActionBase):
    type: Literal["delete_file"] = "delete_file"
    path: str


class ReplaceInFileAction(_ActionBase):
    type: Literal["replace_in_file"] = "replace_in_file"
    path: str
    find: str
    replace: str
    replace_all: bool = True


class ListDirAction(_ActionBase):
    type: Literal["list_dir"] = "list_dir"
    path: str
    recursive: bool = False
    include_hidden: bool = False


class FileInfoAction(_ActionBase):
    type: Literal["file_info"] = "file_info"
    path: str


class SearchFilesAction(_ActionBase):
    type: Literal["search_files"] = "search_files"
    query: str
    glob: str | None = None


class ApplyPatchAction(_ActionBase):
    type: Literal["apply_patch"] = "apply_patch"
    patch: str


class MoveFileAction(_ActionBase):
    type: Literal["move_file"] = "move_file"
    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")


class RenameFileAction(_ActionBase):
    type: Literal["rename_file"] = "rename_file"
    source: str = Field(..., alias="from")
    target: str = Field(..., alias="to")


class ShellCommandAction(_ActionBase):
    type: Literal["shell_command"] = "shell_command"
    command: str
    args: list[str] = Field(default_factory=list)


class GitAction(_ActionBase):
    type: Literal["git"] = "git"
    args: list[str]


Action = Annotated[
    Union[
        ReadFileAction,
        WriteFileAction,
        AppendFileAction,
        CreateFileAction,
        DeleteFileAction,
        ReplaceInFileAction,
        ListDirAction,
        FileInfoAction,
        SearchFilesAction,
        ApplyPatchAction,
        MoveFileAction,
        RenameFileAction,
        ShellCommandAction,
        GitAction,
    ],
    Field(discriminator="type"),
]


class Plan(BaseModel):
    """The model's proposed response to a task."""

    summary: str | None = None
    response: str | None = None
    actions: list[Action]


# --- Execution log ---


class ExecutionLogEntry(BaseModel):
    """Outcome of one attempted action."""

    model_config = ConfigDict(frozen=True)

    status: LogStatus
    description: str
    output: str = ""

    def render(self) -> str:
        """Render the entry the way it is sent to the follow-up request."""
        head = f"{self.status.value} {self.description}"
        return f"{head}\n{self.output}" if self.output else head


# --- Usage accounting ---


class ModelPricing(BaseModel):
    """Per-model price in USD per million tokens."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    input: float = Field(..., ge=0.0)
    output: float = Field(..., ge=0.0)
    cached_input: float | None = Field(default=None, ge=0.0)


class UsageSummary(BaseModel):
    """Token counts and derived cost for one model call (or a whole run)."""

    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cached_tokens: int = 0
    cost: float | None = None


# --- Conversation and events ---


class ChatMessage(BaseModel):
    """One message sent to the language model."""

    role: Literal["system", "user", "assistant"]
    content: str


class AgentEvent(BaseModel):
    """Progress event delivered to the caller's event sink."""

    type: EventType
    message: str
    usage: UsageSummary | None = None
    phase: UsagePhase | None = None


class RunResult(BaseModel):
    """What a finished run leaves behind."""

    plan: Plan
    log: list[ExecutionLogEntry] = Field(default_factory=list)
    usage: UsageSummary
