"""Simulated token cost estimates.

Ollama runs locally for free; these rates only exist so demos can show what
the same traffic would cost on a typical paid mid-tier model.
"""

# USD per 1M tokens
COST_PER_MILLION_INPUT = 0.15
COST_PER_MILLION_OUTPUT = 0.60


def estimate_cost(input_tokens: int, output_tokens: int, enabled: bool) -> float:
    """Return the estimated USD cost, or exactly 0.0 when tracking is disabled."""
    if not enabled:
        return 0.0

    input_cost = (input_tokens / 1_000_000) * COST_PER_MILLION_INPUT
    output_cost = (output_tokens / 1_000_000) * COST_PER_MILLION_OUTPUT
    return input_cost + output_cost
