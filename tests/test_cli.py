"""Tests for the CLI module."""

import json

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from click.testing import CliRunner

from localpilot.cli import main
from localpilot.config import ENV_VARS
from localpilot.llm import LLMRequestError
from localpilot.planner import PlanParseError
from localpilot.schemas import AgentEvent, EventType, Plan, RunResult, UsagePhase, UsageSummary


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host environment out of CLI tests."""
    for env_var in ENV_VARS:
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """Config file with a dummy key."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"apiKey": "sk-test-1234", "model": "gpt-4.1"}))
    return str(path)


def empty_result() -> RunResult:
    return RunResult(plan=Plan(actions=[]), log=[], usage=UsageSummary(model="gpt-4.1"))


class TestCLI:
    """Test top-level CLI behavior."""

    def test_main_help(self, runner):
        """Main command shows help."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "LocalPilot" in result.output
        for command in ("run", "chat", "models", "config"):
            assert command in result.output

    def test_version(self, runner):
        """Version flag works."""
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestRunCommand:
    """Test the run command."""

    @patch("localpilot.cli.run_agent", new_callable=AsyncMock)
    def test_run_passes_task_and_flags(self, mock_run, runner, config_file, tmp_path):
        """Task words are joined and -y turns on auto-approve."""
        mock_run.return_value = empty_result()

        result = runner.invoke(main, [
            "run", "--config", config_file, "--root", str(tmp_path), "-y", "create", "notes.txt",
        ])

        assert result.exit_code == 0
        args, kwargs = mock_run.call_args
        assert args[0] == "create notes.txt"
        assert args[1] == str(tmp_path.resolve())
        assert args[2].api_key == "sk-test-1234"
        assert kwargs["auto_approve"] is True

    @patch("localpilot.cli.run_agent", new_callable=AsyncMock)
    def test_run_overrides(self, mock_run, runner, config_file, tmp_path):
        """--model and --allow-outside-root override the config file."""
        mock_run.return_value = empty_result()

        result = runner.invoke(main, [
            "run", "--config", config_file, "--root", str(tmp_path),
            "--model", "gpt-4o", "--allow-outside-root", "task",
        ])

        assert result.exit_code == 0
        config = mock_run.call_args[0][2]
        assert config.model == "gpt-4o"
        assert config.allow_outside_root is True
        assert mock_run.call_args[1]["auto_approve"] is False

    @patch("localpilot.cli.run_agent", new_callable=AsyncMock)
    def test_run_renders_events(self, mock_run, runner, config_file, tmp_path):
        """Events reach the terminal."""
        async def fake_run(task, root, config, *, on_event, auto_approve):
            on_event(AgentEvent(type=EventType.PLAN, message="Create a file"))
            on_event(AgentEvent(type=EventType.ACTION, message="create_file: notes.txt"))
            on_event(AgentEvent(type=EventType.RESULT, message="Created notes.txt"))
            return empty_result()

        mock_run.side_effect = fake_run

        result = runner.invoke(main, ["run", "--config", config_file, "--root", str(tmp_path), "go"])

        assert result.exit_code == 0
        assert "Plan: Create a file" in result.output
        assert "create_file: notes.txt" in result.output
        assert "Created notes.txt" in result.output

    @patch("localpilot.cli.run_agent", new_callable=AsyncMock)
    def test_run_fatal_error(self, mock_run, runner, config_file, tmp_path):
        """Plan failures exit non-zero with the message."""
        mock_run.side_effect = PlanParseError("Expecting value", "garbage")

        result = runner.invoke(main, ["run", "--config", config_file, "--root", str(tmp_path), "go"])

        assert result.exit_code == 1
        assert "Failed to parse plan" in result.output

    def test_run_requires_task(self, runner, config_file):
        """A task is required."""
        result = runner.invoke(main, ["run", "--config", config_file])
        assert result.exit_code != 0

    def test_run_bad_config(self, runner, tmp_path):
        """A malformed config file is reported."""
        path = tmp_path / "config.json"
        path.write_text("{oops")

        result = runner.invoke(main, ["run", "--config", str(path), "--root", str(tmp_path), "go"])

        assert result.exit_code == 1
        assert "Error" in result.output


class TestChatCommand:
    """Test the interactive chat loop."""

    def test_tools_and_exit(self, runner, config_file, tmp_path):
        """/tools lists every action type and /exit ends the session."""
        result = runner.invoke(
            main, ["chat", "--config", config_file, "--root", str(tmp_path)], input="/tools\n/exit\n",
        )

        assert result.exit_code == 0
        assert "read_file" in result.output
        assert "git" in result.output

    @patch("localpilot.cli.run_agent", new_callable=AsyncMock)
    def test_history_and_cost(self, mock_run, runner, config_file, tmp_path):
        """Results join the history and run cost is reported."""
        histories = []

        async def fake_run(task, root, config, *, on_event, history, auto_approve):
            histories.append([(m.role, m.content) for m in history])
            on_event(AgentEvent(type=EventType.RESULT, message=f"did {task}"))
            usage = UsageSummary(model="gpt-4.1", total_tokens=10, cost=0.5)
            on_event(AgentEvent(type=EventType.USAGE, message="usage", usage=usage, phase=UsagePhase.RUN))
            return empty_result()

        mock_run.side_effect = fake_run

        result = runner.invoke(
            main, ["chat", "--config", config_file, "--root", str(tmp_path)], input="one\ntwo\n/exit\n",
        )

        assert result.exit_code == 0
        assert histories[1] == [("user", "one"), ("assistant", "did one"), ("user", "two")]
        assert "Last run: $0.5000 | Session: $1.00" in result.output

    @patch("localpilot.cli.run_agent", new_callable=AsyncMock)
    def test_model_error_keeps_session(self, mock_run, runner, config_file, tmp_path):
        """A failed request is reported and the loop continues."""
        mock_run.side_effect = [LLMRequestError("endpoint down"), empty_result()]

        result = runner.invoke(
            main, ["chat", "--config", config_file, "--root", str(tmp_path)], input="one\ntwo\n/exit\n",
        )

        assert result.exit_code == 0
        assert "endpoint down" in result.output
        assert mock_run.call_count == 2


class TestModelsCommand:
    """Test the models command."""

    @patch("localpilot.cli.ChatClient")
    def test_lists_models(self, mock_client_cls, runner, config_file):
        """Model ids are printed one per line."""
        mock_client = MagicMock()
        mock_client.list_models = AsyncMock(return_value=["gpt-4.1", "gpt-4o"])
        mock_client_cls.return_value = mock_client

        result = runner.invoke(main, ["models", "--config", config_file])

        assert result.exit_code == 0
        assert result.output.splitlines() == ["gpt-4.1", "gpt-4o"]

    def test_missing_key(self, runner, tmp_path):
        """Without a key the command fails cleanly."""
        result = runner.invoke(main, ["models", "--config", str(tmp_path / "none.json")])
        assert result.exit_code == 1
        assert "API key" in result.output


class TestConfigCommand:
    """Test the config command."""

    def test_key_redacted(self, runner, config_file):
        """The effective config is shown with the key masked."""
        result = runner.invoke(main, ["config", "--config", config_file])

        assert result.exit_code == 0
        shown = json.loads(result.output)
        assert shown["apiKey"] == "***1234"
        assert shown["model"] == "gpt-4.1"
        assert "sk-test-1234" not in result.output
