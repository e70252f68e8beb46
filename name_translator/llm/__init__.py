"""
LLM 层：客户端、提示词模板、输出解析
"""

from .client import ChatCompletionClient, ChatTurn, Completion, OpenAIChatClient, get_llm
from .prompts import DEFAULT_PROMPT, PromptStore, get_strategy, list_strategies, render_prompt
from .schemas import NameSuggestion, NamingResult, parse_structured_result

__all__ = [
    "ChatCompletionClient",
    "ChatTurn",
    "Completion",
    "OpenAIChatClient",
    "get_llm",
    "DEFAULT_PROMPT",
    "PromptStore",
    "get_strategy",
    "list_strategies",
    "render_prompt",
    "NameSuggestion",
    "NamingResult",
    "parse_structured_result",
]
