"""Agent configuration: optional JSON file, environment, then explicit overrides."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from localpilot.schemas import ModelPricing
from localpilot.tools.shell import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".localpilot" / "config.json"

# Environment variable -> config field
ENV_VARS = {
    "OPENAI_API_KEY": "api_key",
    "OPENAI_BASE_URL": "base_url",
    "OPENAI_ORGANIZATION": "organization",
    "LOCALPILOT_MODEL": "model",
    "LOCALPILOT_AUTO_APPROVE": "auto_approve",
    "LOCALPILOT_ALLOW_OUTSIDE_ROOT": "allow_outside_root",
}


class ConfigError(Exception):
    """Raised when configuration cannot be read or is invalid."""

    pass


class AgentConfig(BaseModel):
    """Settings the agent needs from its caller."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    api_key: str | None = None
    base_url: str | None = None
    organization: str | None = None
    model: str | None = None
    auto_approve: bool = False
    allow_outside_root: bool = False
    pricing: dict[str, ModelPricing] = Field(default_factory=dict)
    command_timeout: int = Field(default=DEFAULT_TIMEOUT, gt=0)


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must contain a JSON object")
    return data


def load_config(path: Path | str | None = None, **overrides: Any) -> AgentConfig:
    """Resolve the effective configuration.

    Args:
        path: JSON config file (defaults to ~/.localpilot/config.json; a
            missing file is not an error)
        **overrides: Field values that win over file and environment;
            None values are ignored

    Returns:
        Validated AgentConfig
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    try:
        data = AgentConfig.model_validate(_read_config_file(config_path)).model_dump()
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e

    for env_var, field_name in ENV_VARS.items():
        value = os.environ.get(env_var)
        if value:
            data[field_name] = value

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = AgentConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    logger.debug(f"Loaded configuration: {redact_config(config).model_dump()}")
    return config


def redact_config(config: AgentConfig) -> AgentConfig:
    """Return a copy safe for display, with the API key masked."""
    if not config.api_key:
        return config.model_copy()
    return config.model_copy(update={"api_key": f"***{config.api_key[-4:]}"})
