"""
测试公共 fixture：假 LLM、可控时钟、测试配置
"""

import asyncio
import json
from datetime import UTC, datetime, timedelta

import pytest

from name_translator.config import Settings
from name_translator.llm.client import ChatTurn, Completion
from name_translator.orchestrator import SessionManager

NAMING_REPLY = json.dumps(
    {
        "primary": {"name": "麦克尔", "explanation": "Mài Kè Ěr"},
        "alternatives": [
            {"name": "迈克", "explanation": "Mài Kè"},
            {"name": "米凯", "explanation": "Mǐ Kǎi"},
        ],
    },
    ensure_ascii=False,
)


class FakeLLM:
    """
    ChatCompletionClient 的测试替身

    responses 中的每一项依次被消费：字符串作为回复，异常实例会被抛出。
    耗尽后返回 NAMING_REPLY。
    """

    def __init__(
        self,
        responses: list | None = None,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
        delay: float = 0.0,
    ):
        self.responses = list(responses or [])
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.delay = delay
        self.calls: list[list[ChatTurn]] = []

    async def complete(self, messages: list[ChatTurn]) -> Completion:
        self.calls.append(list(messages))
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.responses.pop(0) if self.responses else NAMING_REPLY
        if isinstance(item, BaseException):
            raise item
        return Completion(
            text=item,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
        )


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def make_settings(**overrides) -> Settings:
    values = {
        "openai_api_key": "sk-test",
        "max_tokens_per_session": 0,
        "cleanup_interval_seconds": 3600,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(fake_llm, settings, clock):
    return SessionManager(llm=fake_llm, settings=settings, clock=clock)
