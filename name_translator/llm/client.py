"""
LLM Client

对 OpenAI Chat Completions 的薄封装（通过 langchain-openai）。

职责:
- 把会话记录转换为 LangChain 消息
- 读取 provider 返回的 token 用量
- 统一异常包装（GenerationFailed）
"""

from typing import Literal, Protocol

import structlog
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from ..config import Settings, get_settings
from ..errors import GenerationFailed

logger = structlog.get_logger()


class ChatTurn(BaseModel):
    """A single transcript entry."""
    role: Literal["user", "assistant"]
    content: str


class Completion(BaseModel):
    """Generated text plus provider-reported usage, when available."""
    text: str
    input_tokens: int | None = None
    output_tokens: int | None = None


class ChatCompletionClient(Protocol):
    """The contract the session tracker needs from an LLM backend."""

    async def complete(self, messages: list[ChatTurn]) -> Completion:
        ...


def to_lc_messages(turns: list[ChatTurn]) -> list[BaseMessage]:
    """Convert transcript turns to LangChain message objects."""
    out: list[BaseMessage] = []
    for turn in turns:
        if turn.role == "assistant":
            out.append(AIMessage(content=turn.content))
        else:
            out.append(HumanMessage(content=turn.content))
    return out


def _message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    # 多段内容只保留文本
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def get_llm(settings: Settings | None = None) -> ChatOpenAI:
    """Build the ChatOpenAI model from settings."""
    settings = settings or get_settings()
    return ChatOpenAI(
        model=settings.openai_model,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        temperature=settings.temperature,
        max_tokens=settings.max_output_tokens,
        timeout=settings.llm_timeout_seconds,
        max_retries=settings.llm_max_retries,
    )


class OpenAIChatClient:
    """ChatCompletionClient backed by langchain-openai."""

    def __init__(self, settings: Settings | None = None, llm: ChatOpenAI | None = None):
        self.settings = settings or get_settings()
        self._llm = llm or get_llm(self.settings)

    async def complete(self, messages: list[ChatTurn]) -> Completion:
        logger.debug(
            "llm.request",
            model=self.settings.openai_model,
            messages=len(messages),
        )
        try:
            response = await self._llm.ainvoke(to_lc_messages(messages))
        except Exception as e:
            logger.error("llm.call_failed", error=str(e), error_type=type(e).__name__)
            raise GenerationFailed(e) from e

        usage = getattr(response, "usage_metadata", None) or {}
        completion = Completion(
            text=_message_text(response),
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
        )
        logger.debug(
            "llm.response",
            chars=len(completion.text),
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
        )
        return completion
