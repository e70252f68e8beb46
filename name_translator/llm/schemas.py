"""
LLM 输出 Schema 定义

命名结果的结构化模型，以及容错的解析函数。
"""

import json
import re

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = structlog.get_logger()

UNPARSEABLE_NAME = "Unable to parse"

# 第一个 "{" 到最后一个 "}"，容忍模型在 JSON 前后加说明文字或代码块
_JSON_SPAN = re.compile(r"\{[\s\S]*\}")


class NameSuggestion(BaseModel):
    """单个候选名字"""
    name: str = Field(description="建议的名字")
    explanation: str = Field(default="", description="拼音与解释")


class NamingResult(BaseModel):
    """模型返回的命名结果"""
    primary: NameSuggestion
    alternatives: list[NameSuggestion] = Field(default_factory=list)
    degraded: bool = Field(default=False, description="True when the raw reply could not be parsed")

    @field_validator("alternatives", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


def degraded_result(raw_text: str) -> NamingResult:
    return NamingResult(
        primary=NameSuggestion(name=UNPARSEABLE_NAME, explanation=raw_text),
        alternatives=[],
        degraded=True,
    )


def parse_structured_result(raw_text: str) -> NamingResult:
    """
    解析 LLM 回复

    定位最外层的 {...} 片段并按 NamingResult 校验。任何失败都不会抛出，
    而是返回 primary.name == "Unable to parse"、explanation 为原文的占位结果。
    """
    match = _JSON_SPAN.search(raw_text or "")
    if not match:
        logger.warning("llm.parse_degraded", reason="no_json_span", chars=len(raw_text or ""))
        return degraded_result(raw_text or "")

    try:
        data = json.loads(match.group(0))
        if not isinstance(data, dict):
            raise ValueError("top-level JSON value is not an object")
        data.pop("degraded", None)
        return NamingResult.model_validate(data)
    except (ValueError, ValidationError, RecursionError) as e:
        # json.JSONDecodeError 是 ValueError 的子类；嵌套过深时 json 抛 RecursionError
        logger.warning("llm.parse_degraded", reason=type(e).__name__, error=str(e)[:200])
        return degraded_result(raw_text)
