"""Token estimates and cost pricing for conversation stats.

Counts are approximate: roughly 4 characters per token for English text.
Good enough for a stats panel, not for billing.
"""

import math
from abc import ABC, abstractmethod

CHARS_PER_TOKEN = 4

# USD per 1K tokens: (input, output). Unlisted models are priced at zero.
MODEL_PRICING: dict[str, tuple[float, float]] = {
    "x-ai/grok-4-fast": (0.0002, 0.0005),
    "deepseek-ai/deepseek-v3.2-exp": (0.00028, 0.00042),
    "deepseek-ai/deepseek-v3.2-exp-thinking": (0.00028, 0.00042),
}


class TokenCounter(ABC):
    """Interface for counting tokens in text."""

    @abstractmethod
    def count(self, text: str) -> int:
        """Return the estimated token count for the given text."""
        ...


class ApproximateTokenCounter(TokenCounter):
    """ceil(len / 4), with at least one token for any non-empty text."""

    def count(self, text: str) -> int:
        if not text:
            return 0
        return max(1, math.ceil(len(text) / CHARS_PER_TOKEN))


DEFAULT_COUNTER = ApproximateTokenCounter()


def estimate_cost(input_tokens: int, output_tokens: int, model: str) -> float:
    input_rate, output_rate = MODEL_PRICING.get(model, (0.0, 0.0))
    return (input_tokens / 1000) * input_rate + (output_tokens / 1000) * output_rate
