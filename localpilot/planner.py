"""Plan parsing and validation against the closed set of action shapes."""

from __future__ import annotations

import json
import logging
from typing import get_args

from pydantic import BaseModel, ValidationError

from localpilot.schemas import Action, ActionType, Plan

logger = logging.getLogger(__name__)

ACTION_MODELS: tuple[type[BaseModel], ...] = get_args(get_args(Action)[0])


class PlanParseError(Exception):
    """Raised when model output is not valid JSON or not a valid plan."""

    def __init__(self, message: str, raw: str):
        super().__init__(f"Failed to parse plan: {message}\nRaw: {raw}")
        self.raw = raw


def action_signature(model: type[BaseModel]) -> str:
    """Describe one action shape as ``type: field, optional?, ...``."""
    action_type = model.model_fields["type"].default
    fields = []
    for name, info in model.model_fields.items():
        if name in ("type", "reason"):
            continue
        key = info.alias or name
        fields.append(key if info.is_required() else f"{key}?")
    fields.append("reason?")
    return f"{action_type}: {', '.join(fields)}"


def describe_action_types() -> list[str]:
    """One signature line per permitted action type, in ActionType order."""
    by_type = {model.model_fields["type"].default: model for model in ACTION_MODELS}
    return [action_signature(by_type[action_type.value]) for action_type in ActionType]


def parse_plan(raw: str) -> Plan:
    """Parse model output into a Plan.

    The whole plan is rejected if any action is malformed; nothing is
    partially accepted.

    Raises:
        PlanParseError: On malformed JSON or any schema violation
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"Plan is not valid JSON: {e}")
        raise PlanParseError(str(e), raw) from e

    try:
        plan = Plan.model_validate(data)
    except ValidationError as e:
        logger.error(f"Plan failed validation with {e.error_count()} error(s)")
        raise PlanParseError(str(e), raw) from e

    logger.info(f"Parsed plan with {len(plan.actions)} action(s)")
    return plan
