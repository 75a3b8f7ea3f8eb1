"""Research model pricing (per 1M tokens, USD).

Used to turn token usage from a research call into the cost that is charged
against an execution's cost ceiling. Update when providers publish new rates.
"""

from __future__ import annotations

PRICING_USD_PER_1M = {
    "gemini-2.5-pro": {"input": 1.25, "output": 10.00},
    "gemini-2.5-flash": {"input": 0.30, "output": 2.50},
    "gemini-2.0-flash": {"input": 0.10, "output": 0.40},
    "gemini-2.0-flash-lite": {"input": 0.075, "output": 0.30},
    # Legacy models (in case they appear in older configs)
    "gemini-1.5-pro": {"input": 1.25, "output": 5.00},
    "gemini-1.5-flash": {"input": 0.075, "output": 0.30},
}

_UNPRICED = {"input": 0.0, "output": 0.0}


def normalize_model_name(model: str) -> str:
    """Strip provider/resource prefixes and build suffixes ("models/gemini-2.0-flash-001")."""
    name = (model or "").split("/")[-1].strip().lower()
    if name[-4:-3] == "-" and name[-3:].isdigit():
        name = name[:-4]
    return name


def estimate_cost_usd(
    model: str,
    prompt_tokens: int,
    completion_tokens: int,
) -> float:
    """Estimate cost in USD from token counts and model name.

    Args:
        model: Model identifier (e.g. "gemini-2.5-pro")
        prompt_tokens: Input token count
        completion_tokens: Output token count (thinking tokens included)

    Returns:
        Estimated cost in USD, 0.0 for unknown models
    """
    rates = PRICING_USD_PER_1M.get(normalize_model_name(model), _UNPRICED)
    return (
        (prompt_tokens / 1_000_000) * rates["input"]
        + (completion_tokens / 1_000_000) * rates["output"]
    )
