"""CLI for LocalPilot - run LLM-planned workspace tasks."""

from __future__ import annotations

import asyncio
import logging

import click

from localpilot import __version__
from localpilot.agent import run_agent
from localpilot.config import AgentConfig, ConfigError, load_config, redact_config
from localpilot.llm import ChatClient, LLMRequestError, MissingCredentialError
from localpilot.planner import PlanParseError
from localpilot.pricing import format_cost
from localpilot.schemas import ActionType, AgentEvent, ChatMessage, EventType, UsagePhase

# Errors that end a run; everything else is reported per action
FATAL_ERRORS = (ConfigError, MissingCredentialError, PlanParseError, LLMRequestError)

root_option = click.option(
    "--root", "-r",
    default=".",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, resolve_path=True),
    help="Workspace root for the agent (defaults to current directory)",
)
model_option = click.option("--model", "-m", default=None, help="Model override")
yes_option = click.option("--yes", "-y", is_flag=True, help="Auto-approve agent actions")
config_option = click.option(
    "--config", "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Config file (defaults to ~/.localpilot/config.json)",
)


def render_event(event: AgentEvent) -> None:
    """Print one agent event to the terminal."""
    if event.type == EventType.INFO:
        click.secho(event.message, fg="bright_black")
    elif event.type == EventType.PLAN:
        click.secho(f"Plan: {event.message}", bold=True)
    elif event.type == EventType.ACTION:
        click.secho(f"→ {event.message}", fg="cyan")
    elif event.type == EventType.ERROR:
        click.secho(event.message, fg="red", err=True)
    elif event.type == EventType.USAGE:
        click.secho(event.message, dim=True)
    else:
        click.echo(event.message)


def _load(config_path: str | None, **overrides) -> AgentConfig:
    try:
        return load_config(config_path, **overrides)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version=__version__, prog_name="localpilot")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """LocalPilot - a local automation agent.

    Describe a task in plain language; the model plans file, shell and git
    actions, you approve them one by one, and LocalPilot runs them.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@main.command()
@click.argument("task", nargs=-1, required=True)
@root_option
@model_option
@yes_option
@click.option("--allow-outside-root", is_flag=True, help="Let actions touch paths outside the root")
@config_option
def run(
    task: tuple[str, ...],
    root: str,
    model: str | None,
    yes: bool,
    allow_outside_root: bool,
    config_path: str | None,
) -> None:
    """Plan and execute a single task.

    \b
    Example:
        localpilot run "rename README to README.md"
        localpilot run -y --root ./repo "add a .gitignore for Python"
    """
    config = _load(config_path, model=model, allow_outside_root=allow_outside_root or None)

    try:
        asyncio.run(run_agent(
            " ".join(task),
            root,
            config,
            on_event=render_event,
            auto_approve=yes or config.auto_approve,
        ))
    except FATAL_ERRORS as e:
        raise click.ClickException(str(e)) from e


TOOLS_HELP = f"Available tools: {', '.join(t.value for t in ActionType)}"
CHAT_HELP = "Commands: /tools, /exit, /help"


@main.command()
@root_option
@model_option
@yes_option
@config_option
def chat(root: str, model: str | None, yes: bool, config_path: str | None) -> None:
    """Interactive session that keeps conversation history between tasks."""
    config = _load(config_path, model=model)
    history: list[ChatMessage] = []
    session_cost: float | None = None

    click.echo(f"LocalPilot {__version__} in {root}. {CHAT_HELP}")

    while True:
        try:
            line = click.prompt("You", prompt_suffix="> ").strip()
        except click.Abort:
            click.echo()
            break

        if not line:
            continue
        if line == "/exit":
            break
        if line == "/tools":
            click.echo(TOOLS_HELP)
            continue
        if line == "/help":
            click.echo(CHAT_HELP)
            continue

        history.append(ChatMessage(role="user", content=line))
        run_cost: float | None = None

        def on_event(event: AgentEvent) -> None:
            nonlocal run_cost
            render_event(event)
            if event.type == EventType.RESULT:
                history.append(ChatMessage(role="assistant", content=event.message))
            elif event.type == EventType.USAGE and event.phase == UsagePhase.RUN and event.usage:
                run_cost = event.usage.cost

        try:
            asyncio.run(run_agent(
                line,
                root,
                config,
                on_event=on_event,
                history=history,
                auto_approve=yes or config.auto_approve,
            ))
        except FATAL_ERRORS as e:
            if isinstance(e, MissingCredentialError):
                raise click.ClickException(str(e)) from e
            click.secho(f"Error: {e}", fg="red", err=True)
            continue

        if run_cost is not None:
            session_cost = (session_cost or 0.0) + run_cost
        click.secho(f"Last run: {format_cost(run_cost)} | Session: {format_cost(session_cost)}", dim=True)


@main.command()
@config_option
def models(config_path: str | None) -> None:
    """List models available to the configured API key."""
    config = _load(config_path)

    try:
        names = asyncio.run(ChatClient(config).list_models())
    except (MissingCredentialError, LLMRequestError) as e:
        raise click.ClickException(str(e)) from e

    for name in names:
        click.echo(name)


@main.command("config")
@config_option
def show_config(config_path: str | None) -> None:
    """Show the effective configuration (API key redacted)."""
    config = _load(config_path)
    click.echo(redact_config(config).model_dump_json(indent=2, by_alias=True))


if __name__ == "__main__":
    main()
