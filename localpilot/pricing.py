"""Token usage accounting and cost estimation."""

from __future__ import annotations

import logging
from functools import reduce
from typing import Any, Iterable, Mapping

from localpilot.schemas import ModelPricing, UsagePhase, UsageSummary

logger = logging.getLogger(__name__)

TOKENS_PER_PRICE_UNIT = 1_000_000

# USD per million tokens
DEFAULT_PRICING: dict[str, ModelPricing] = {
    # GPT-5.x
    "gpt-5.2": ModelPricing(input=1.75, cached_input=0.175, output=14.0),
    "gpt-5.2-chat-latest": ModelPricing(input=1.75, cached_input=0.175, output=14.0),
    "gpt-5.2-pro": ModelPricing(input=21.0, output=168.0),
    "gpt-5.1": ModelPricing(input=1.25, cached_input=0.125, output=10.0),
    "gpt-5.1-chat-latest": ModelPricing(input=1.25, cached_input=0.125, output=10.0),
    "gpt-5-pro": ModelPricing(input=15.0, output=120.0),
    # GPT-4o
    "gpt-4o": ModelPricing(input=2.5, cached_input=1.25, output=10.0),
    "gpt-4o-mini": ModelPricing(input=0.15, cached_input=0.075, output=0.6),
    # GPT-4.1
    "gpt-4.1": ModelPricing(input=2.0, cached_input=0.5, output=8.0),
    "gpt-4.1-mini": ModelPricing(input=0.4, cached_input=0.1, output=1.6),
    "gpt-4.1-nano": ModelPricing(input=0.1, cached_input=0.025, output=0.4),
}


def _normalize_model(model: str) -> str:
    return model.strip().lower()


def resolve_pricing(
    model: str,
    overrides: Mapping[str, ModelPricing] | None = None,
) -> ModelPricing | None:
    """Find the price entry for a model.

    Exact names win (overrides before defaults). Otherwise the longest known
    name that prefixes the model followed by ``-`` is used, so dated or
    variant names such as ``gpt-4o-mini-2024-07-18`` still price.

    Returns:
        Matching pricing, or None when the model is unknown
    """
    normalized = _normalize_model(model)
    overrides = overrides or {}

    for table in (overrides, DEFAULT_PRICING):
        for key in (model, normalized):
            if key in table:
                return table[key]

    table = {**DEFAULT_PRICING, **{_normalize_model(k): v for k, v in overrides.items()}}
    prefixes = [name for name in table if normalized.startswith(f"{name}-")]
    if prefixes:
        return table[max(prefixes, key=len)]

    return None


def summarize_usage(
    model: str,
    usage: Mapping[str, Any] | None,
    overrides: Mapping[str, ModelPricing] | None = None,
) -> UsageSummary | None:
    """Build a UsageSummary from raw chat-completion usage counters.

    Args:
        model: Model identifier the call was made with
        usage: Raw ``usage`` mapping from the response, if any
        overrides: Pricing entries that take precedence over the defaults

    Returns:
        UsageSummary (cost unset when the model has no price), or None when
        the response carried no usage counters
    """
    if not usage:
        return None

    prompt_tokens = usage.get("prompt_tokens") or 0
    completion_tokens = usage.get("completion_tokens") or 0
    total_tokens = usage.get("total_tokens")
    if total_tokens is None:
        total_tokens = prompt_tokens + completion_tokens
    details = usage.get("prompt_tokens_details") or {}
    cached_tokens = min(details.get("cached_tokens") or 0, prompt_tokens)

    summary = UsageSummary(
        model=model,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        cached_tokens=cached_tokens,
    )

    pricing = resolve_pricing(model, overrides)
    if pricing is None:
        logger.warning(f"No pricing known for model {model}, cost omitted")
        return summary

    billable_input = max(0, prompt_tokens - cached_tokens)
    cached_rate = pricing.cached_input if pricing.cached_input is not None else pricing.input
    summary.cost = (
        billable_input * pricing.input
        + cached_tokens * cached_rate
        + completion_tokens * pricing.output
    ) / TOKENS_PER_PRICE_UNIT
    return summary


def merge_usage(total: UsageSummary, usage: UsageSummary) -> UsageSummary:
    """Add one summary into a running total, summing whatever cost is known."""
    if total.cost is None and usage.cost is None:
        cost = None
    else:
        cost = (total.cost or 0.0) + (usage.cost or 0.0)

    return UsageSummary(
        model=total.model,
        prompt_tokens=total.prompt_tokens + usage.prompt_tokens,
        completion_tokens=total.completion_tokens + usage.completion_tokens,
        total_tokens=total.total_tokens + usage.total_tokens,
        cached_tokens=total.cached_tokens + usage.cached_tokens,
        cost=cost,
    )


def sum_usage(model: str, usages: Iterable[UsageSummary]) -> UsageSummary:
    """Fold per-call summaries into one run-level summary."""
    return reduce(merge_usage, usages, UsageSummary(model=model))


def format_cost(cost: float | None) -> str:
    if cost is None:
        return "n/a"
    if cost == 0:
        return "$0.00"
    if cost < 0.01:
        return f"${cost:.6f}"
    if cost < 1:
        return f"${cost:.4f}"
    return f"${cost:.2f}"


def format_usage(usage: UsageSummary, phase: UsagePhase) -> str:
    return (
        f"Usage ({phase.value}): in {usage.prompt_tokens}, out {usage.completion_tokens}, "
        f"total {usage.total_tokens}, cost {format_cost(usage.cost)}"
    )
