"""Pytest configuration and fixtures for LocalPilot tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from localpilot.config import AgentConfig
from localpilot.llm import ChatCompletion
from localpilot.sandbox import ToolContext


@pytest.fixture
def tmp_workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace directory for tests."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def ctx(tmp_workspace: Path) -> ToolContext:
    """Sandboxed tool context rooted at the temporary workspace."""
    return ToolContext(root=tmp_workspace.resolve(), allow_outside_root=False)


@pytest.fixture
def sample_files(tmp_workspace: Path) -> Path:
    """Create a small project tree for listing and search tests."""
    (tmp_workspace / "main.py").write_text(
        '''"""Main module."""

def main():
    print("Hello, LocalPilot!")
'''
    )
    utils_dir = tmp_workspace / "utils"
    utils_dir.mkdir()
    (utils_dir / "helpers.py").write_text("def add(a, b):\n    return a + b  # Hello helper\n")
    (tmp_workspace / "notes.md").write_text("Hello from the docs\n")
    (tmp_workspace / ".hidden").write_text("Hello hidden\n")
    return tmp_workspace


@pytest.fixture
def agent_config() -> AgentConfig:
    """Config with a dummy key and the gpt-4.1 price table entry."""
    return AgentConfig(api_key="sk-test-1234", model="gpt-4.1")


def usage_counters(prompt: int, completion: int, cached: int = 0) -> dict[str, Any]:
    """Raw usage mapping shaped like a chat-completions response."""
    return {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": prompt + completion,
        "prompt_tokens_details": {"cached_tokens": cached},
    }


class FakeChatClient:
    """Chat client stand-in returning queued completions and recording calls."""

    def __init__(self, *completions: ChatCompletion):
        self._completions = list(completions)
        self.calls: list[dict[str, Any]] = []

    async def complete(self, messages, model, temperature=0.0, json_mode=False):
        self.calls.append({
            "messages": list(messages),
            "model": model,
            "temperature": temperature,
            "json_mode": json_mode,
        })
        return self._completions.pop(0)


def plan_completion(actions: list[dict[str, Any]], usage: dict[str, Any] | None = None, **extra) -> ChatCompletion:
    """Completion whose content is a JSON plan."""
    return ChatCompletion(content=json.dumps({"actions": actions, **extra}), usage=usage)


@pytest.fixture
def make_client():
    """Factory for FakeChatClient instances."""
    return FakeChatClient


@pytest.fixture
def make_plan():
    """Factory for plan completions."""
    return plan_completion


@pytest.fixture
def make_usage():
    """Factory for raw usage counters."""
    return usage_counters
