"""Token estimation and cost accounting shared by pre-flight sizing and post-hoc usage."""

import math
from collections.abc import Iterable

from dialectic.models import ChatMessage, TokenUsage

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count: one token per four characters, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_messages_tokens(messages: Iterable[ChatMessage]) -> int:
    return sum(estimate_tokens(m.content) for m in messages)


def build_usage(
    input_tokens: int | None,
    output_tokens: int | None,
    *,
    cost_input_per_1k: float,
    cost_output_per_1k: float,
    messages: Iterable[ChatMessage] = (),
    reply_text: str = "",
) -> TokenUsage:
    """Build a TokenUsage from reported counts, estimating any that are missing.

    Missing input counts are estimated from the outbound messages and missing
    output counts from the reply text, using the same estimator as pre-flight
    sizing.
    """
    estimated = False
    if input_tokens is None:
        input_tokens = estimate_messages_tokens(messages)
        estimated = True
    if output_tokens is None:
        output_tokens = estimate_tokens(reply_text)
        estimated = True

    cost = (input_tokens * cost_input_per_1k + output_tokens * cost_output_per_1k) / 1000
    return TokenUsage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
        estimated_cost=cost,
        estimated=estimated,
    )
