"""Agent orchestrator: plan, approve and execute actions, then summarize."""

from __future__ import annotations

import asyncio
import inspect
import logging
import platform
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from localpilot import tools
from localpilot.config import AgentConfig
from localpilot.confirm import confirm_action
from localpilot.llm import ChatClient, resolve_model
from localpilot.planner import describe_action_types, parse_plan
from localpilot.pricing import format_usage, summarize_usage, sum_usage
from localpilot.sandbox import ToolContext
from localpilot.schemas import (
    Action,
    ActionType,
    AgentEvent,
    ChatMessage,
    EventType,
    ExecutionLogEntry,
    LogStatus,
    RunResult,
    UsagePhase,
    UsageSummary,
)

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[Action], "bool | Awaitable[bool]"]
EventSink = Callable[[AgentEvent], None]

PLAN_TEMPERATURE = 0.0
FOLLOWUP_TEMPERATURE = 0.2

# Per-entry limit on action output sent back for the summary
MAX_LOG_OUTPUT_BYTES = 10 * 1024  # 10KB

FOLLOWUP_SYSTEM_PROMPT = " ".join([
    "You are a concise CLI assistant.",
    "Summarize the outcome of the actions and answer the user request.",
    "If there were errors or skipped actions, mention them briefly.",
])


def build_system_prompt(root: Path | str, allow_outside_root: bool = False) -> str:
    """Compose the planning prompt: host, workspace, action shapes, JSON only."""
    lines = [
        "You are a careful local CLI agent.",
        f"Operating system: {platform.system()} {platform.release()} ({platform.machine()}).",
        f"Workspace root: {root}",
        'Return a JSON object of the form {"summary": string, "response": string, "actions": [...]}.',
        "Each action is an object with a \"type\" and the fields listed for it (? marks optional):",
        *(f"- {signature}" for signature in describe_action_types()),
        "Actions run in order, one at a time.",
        "Use relative paths when possible and do not include unsafe or destructive commands.",
    ]
    if not allow_outside_root:
        lines.append("Paths outside the workspace root are rejected.")
    lines.append("Do not include explanatory text outside JSON.")
    return "\n".join(lines)


def describe_action(action: Action) -> str:
    """Short one-line description used for display and the execution log."""
    fields = action.model_dump(by_alias=True)
    parts = [f"{action.type}:"]
    for key in ("path", "from", "to", "command"):
        if fields.get(key):
            parts.append(fields[key])
    if fields.get("args"):
        parts.append(" ".join(fields["args"]))
    return " ".join(parts)


def dispatch_action(ctx: ToolContext, action: Action, timeout_seconds: int) -> str:
    """Run one action through its tool adapter and return the result text."""
    if action.type == ActionType.READ_FILE:
        return tools.read_file(ctx, action.path, action.start, action.end)
    elif action.type == ActionType.WRITE_FILE:
        return tools.write_file(ctx, action.path, action.content)
    elif action.type == ActionType.APPEND_FILE:
        return tools.append_file(ctx, action.path, action.content)
    elif action.type == ActionType.CREATE_FILE:
        return tools.create_file(ctx, action.path, action.content, action.overwrite)
    elif action.type == ActionType.DELETE_FILE:
        return tools.delete_file(ctx, action.path)
    elif action.type == ActionType.REPLACE_IN_FILE:
        return tools.replace_in_file(ctx, action.path, action.find, action.replace, action.replace_all)
    elif action.type == ActionType.LIST_DIR:
        return tools.list_dir(ctx, action.path, action.recursive, action.include_hidden)
    elif action.type == ActionType.FILE_INFO:
        return tools.file_info(ctx, action.path)
    elif action.type == ActionType.SEARCH_FILES:
        return tools.search_files(ctx, action.query, action.glob, timeout_seconds=timeout_seconds)
    elif action.type == ActionType.APPLY_PATCH:
        return tools.apply_patch(ctx, action.patch, timeout_seconds)
    elif action.type == ActionType.MOVE_FILE:
        return tools.move_file(ctx, action.source, action.target)
    elif action.type == ActionType.RENAME_FILE:
        return tools.rename_file(ctx, action.source, action.target)
    elif action.type == ActionType.SHELL_COMMAND:
        return tools.run_shell(ctx, action.command, action.args, timeout_seconds)
    elif action.type == ActionType.GIT:
        return tools.run_git(ctx, action.args, timeout_seconds)
    else:
        raise ValueError(f"Unknown action: {action.type}")


def _truncate_output(output: str, max_bytes: int = MAX_LOG_OUTPUT_BYTES) -> str:
    """Truncate output to max_bytes."""
    if len(output.encode("utf-8", errors="replace")) <= max_bytes:
        return output

    encoded = output.encode("utf-8", errors="replace")[:max_bytes]
    truncated = encoded.decode("utf-8", errors="replace")
    return truncated + "\n... [output truncated]"


async def _ask(confirm: ConfirmFn, action: Action) -> bool:
    answer = confirm(action)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


async def run_agent(
    task: str,
    root: Path | str,
    config: AgentConfig,
    *,
    client: ChatClient | None = None,
    confirm: ConfirmFn | None = None,
    on_event: EventSink | None = None,
    history: Sequence[ChatMessage] | None = None,
    auto_approve: bool | None = None,
) -> RunResult:
    """Run one task end to end.

    Asks the model for a plan, executes each action in order behind the
    approval gate, then asks for a summary of what happened. Per-action
    failures and refusals are logged and never stop the run. Tool adapters
    run in a worker thread so the event loop stays responsive.

    Args:
        task: Natural-language request
        root: Workspace root all action paths resolve against
        config: Agent configuration
        client: Chat client (built from config when omitted)
        confirm: Approval callback, sync or async; defaults to a terminal prompt
        on_event: Receives every progress event
        history: Prior conversation to send instead of the bare task
        auto_approve: Skip approval (defaults to config.auto_approve)

    Returns:
        RunResult with the plan, execution log and run-level usage

    Raises:
        MissingCredentialError: If no client is given and config has no key
        PlanParseError: If the model's plan is malformed
        LLMRequestError: If a model call fails
    """
    client = client or ChatClient(config)
    confirm = confirm or confirm_action
    auto_approve = config.auto_approve if auto_approve is None else auto_approve
    model = resolve_model(config)
    ctx = ToolContext(root=Path(root).expanduser().resolve(), allow_outside_root=config.allow_outside_root)

    def emit(event: AgentEvent) -> None:
        logger.debug(f"Event {event.type.value}: {event.message}")
        if on_event is not None:
            on_event(event)

    usages: list[UsageSummary] = []

    def record_usage(raw: dict | None, phase: UsagePhase) -> None:
        usage = summarize_usage(model, raw, config.pricing)
        if usage is None:
            return
        usages.append(usage)
        emit(AgentEvent(type=EventType.USAGE, message=format_usage(usage, phase), usage=usage, phase=phase))

    emit(AgentEvent(type=EventType.INFO, message=f"Using model {model}"))

    # Planning
    messages = [ChatMessage(role="system", content=build_system_prompt(ctx.root, ctx.allow_outside_root))]
    if history:
        messages.extend(history)
    else:
        messages.append(ChatMessage(role="user", content=task))

    completion = await client.complete(messages, model=model, temperature=PLAN_TEMPERATURE, json_mode=True)
    record_usage(completion.usage, UsagePhase.PLAN)
    plan = parse_plan(completion.content)

    emit(AgentEvent(type=EventType.PLAN, message=plan.summary or "Plan ready"))
    if plan.response:
        emit(AgentEvent(type=EventType.RESULT, message=plan.response))

    # Executing
    log: list[ExecutionLogEntry] = []
    for action in plan.actions:
        description = describe_action(action)
        emit(AgentEvent(type=EventType.ACTION, message=description))

        if not auto_approve and not await _ask(confirm, action):
            logger.info(f"Action declined: {description}")
            emit(AgentEvent(type=EventType.INFO, message=f"Skipped: {description}"))
            log.append(ExecutionLogEntry(status=LogStatus.SKIPPED, description=description))
            continue

        try:
            result = await asyncio.to_thread(dispatch_action, ctx, action, config.command_timeout)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.warning(f"Action failed: {description}: {message}")
            emit(AgentEvent(type=EventType.ERROR, message=message))
            log.append(ExecutionLogEntry(status=LogStatus.ERROR, description=description, output=message))
            continue

        emit(AgentEvent(type=EventType.RESULT, message=result))
        log.append(ExecutionLogEntry(status=LogStatus.OK, description=description, output=result))

    # Summarizing
    if log:
        action_log = "\n\n".join(
            entry.model_copy(update={"output": _truncate_output(entry.output)}).render()
            for entry in log
        )
        followup = await client.complete(
            [
                ChatMessage(role="system", content=FOLLOWUP_SYSTEM_PROMPT),
                ChatMessage(role="user", content=f"User request: {task}\n\nAction log:\n{action_log}"),
            ],
            model=model,
            temperature=FOLLOWUP_TEMPERATURE,
        )
        record_usage(followup.usage, UsagePhase.FOLLOWUP)
        summary = followup.content.strip()
        if summary:
            emit(AgentEvent(type=EventType.RESULT, message=summary))

    run_usage = sum_usage(model, usages)
    if run_usage.total_tokens > 0:
        emit(AgentEvent(
            type=EventType.USAGE,
            message=format_usage(run_usage, UsagePhase.RUN),
            usage=run_usage,
            phase=UsagePhase.RUN,
        ))

    return RunResult(plan=plan, log=log, usage=run_usage)
