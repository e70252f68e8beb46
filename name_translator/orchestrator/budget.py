"""
Token / cost accounting helpers

所有费用都是估算值，不用于精确计费。
"""

import math

from ..config import Settings
from ..llm.client import Completion

# 续聊前的费用预估假设的平均输出长度（调用前无法知道真实输出长度）
ASSUMED_OUTPUT_TOKENS = 300


def estimate_tokens(text: str) -> int:
    """Rough estimate: 1 token ≈ 4 characters."""
    return math.ceil(len(text) / 4)


def calculate_cost(input_tokens: int, output_tokens: int, settings: Settings) -> float:
    input_cost = (input_tokens / 1000) * settings.input_token_price
    output_cost = (output_tokens / 1000) * settings.output_token_price
    return input_cost + output_cost


def usage_from_completion(prompt_text: str, completion: Completion) -> tuple[int, int]:
    """Provider-reported usage when present, otherwise a length-based estimate."""
    input_tokens = completion.input_tokens or estimate_tokens(prompt_text)
    output_tokens = completion.output_tokens or estimate_tokens(completion.text)
    return input_tokens, output_tokens


def estimate_next_turn(message: str, settings: Settings) -> tuple[int, float]:
    """Conservative pre-call estimate for a follow-up message: (tokens, cost)."""
    input_tokens = estimate_tokens(message)
    return (
        input_tokens + ASSUMED_OUTPUT_TOKENS,
        calculate_cost(input_tokens, ASSUMED_OUTPUT_TOKENS, settings),
    )
