"""Interactive yes/no approval for plan actions."""

from __future__ import annotations

import asyncio

import click

from localpilot.schemas import Action


def _prompt(message: str) -> bool:
    try:
        return click.confirm(message, default=False)
    except click.Abort:
        # EOF or Ctrl-C at the prompt counts as a refusal
        click.echo()
        return False


async def confirm_action(action: Action) -> bool:
    """Ask on the terminal whether an action may run. Defaults to no."""
    message = f"Run {action.type}? {action.reason or ''}".strip()
    return await asyncio.to_thread(_prompt, message)
