"""
Session Manager - 会话管理

职责:
- 创建命名会话并生成首轮结果
- 续聊时携带完整的对话记录
- 轮次 / 消息数 / Token / 费用上限控制
- 空闲过期清理
"""

import asyncio
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog
from pydantic import BaseModel

from ..config import Settings, get_settings
from ..errors import (
    CostLimitExceeded,
    GenerationFailed,
    InvalidInput,
    MessageLimitExceeded,
    SessionNotFound,
    TokenLimitExceeded,
    TurnLimitExceeded,
)
from ..llm.client import ChatCompletionClient, ChatTurn, Completion, OpenAIChatClient
from ..llm.prompts import DEFAULT_LOCALE, PromptStore, get_strategy, render_prompt
from ..llm.schemas import NamingResult, parse_structured_result
from .budget import calculate_cost, estimate_next_turn, usage_from_completion

logger = structlog.get_logger()

MAX_LOCALE_CHARS = 35


class SessionReply(BaseModel):
    """create / continue 的返回值"""
    session_id: str
    subject_input: str
    locale: str
    turn_count: int
    tokens_used: int
    estimated_cost: float
    result: NamingResult


class SessionInfo(BaseModel):
    """会话元数据（不包含提示词原文）"""
    session_id: str
    subject_input: str
    locale: str
    strategy: str
    created_at: datetime
    last_activity_at: datetime
    turn_count: int
    message_count: int
    tokens_used: int
    estimated_cost: float


class NamingSession:
    """
    单个命名会话

    transcript 由 user/assistant 成对组成，始终满足 len(transcript) == 2 * turn_count。
    """

    def __init__(
        self,
        session_id: str,
        subject_input: str,
        locale: str,
        strategy: str,
        created_at: datetime,
    ):
        self.session_id = session_id
        self.subject_input = subject_input
        self.locale = locale
        self.strategy = strategy

        self.transcript: list[ChatTurn] = []
        self.turn_count = 0
        self.total_tokens_used = 0
        self.total_cost_usd = 0.0

        self.created_at = created_at
        self.last_activity_at = created_at

    @property
    def user_message_count(self) -> int:
        return sum(1 for turn in self.transcript if turn.role == "user")

    def is_idle(self, now: datetime, timeout: timedelta) -> bool:
        return now - self.last_activity_at > timeout

    def commit_turn(
        self,
        user_turn: ChatTurn,
        assistant_turn: ChatTurn,
        tokens: int,
        cost: float,
        now: datetime,
    ):
        """Append a completed user/assistant pair and update the accumulators."""
        self.transcript = [*self.transcript, user_turn, assistant_turn]
        self.turn_count += 1
        self.total_tokens_used += tokens
        self.total_cost_usd += cost
        self.last_activity_at = now

    def get_info(self) -> SessionInfo:
        return SessionInfo(
            session_id=self.session_id,
            subject_input=self.subject_input,
            locale=self.locale,
            strategy=self.strategy,
            created_at=self.created_at,
            last_activity_at=self.last_activity_at,
            turn_count=self.turn_count,
            message_count=len(self.transcript),
            tokens_used=self.total_tokens_used,
            estimated_cost=self.total_cost_usd,
        )


class SessionManager:
    """
    会话管理器

    持有 session_id -> NamingSession 的映射，所有会话状态只能通过这里修改。
    同一会话的续聊通过 asyncio.Lock 串行化；不同会话之间互不影响。
    """

    def __init__(
        self,
        llm: ChatCompletionClient | None = None,
        settings: Settings | None = None,
        prompt_store: PromptStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.settings = settings or get_settings()
        self.prompts = prompt_store or PromptStore()
        self._llm = llm
        self._clock = clock or (lambda: datetime.now(UTC))
        self._sessions: dict[str, NamingSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._cleanup_task: asyncio.Task | None = None

    @property
    def llm(self) -> ChatCompletionClient:
        if self._llm is None:
            self._llm = OpenAIChatClient(self.settings)
        return self._llm

    def __len__(self) -> int:
        return len(self._sessions)

    async def start(self):
        """启动会话管理器"""
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.info(
            "session_manager.started",
            timeout_minutes=self.settings.session_timeout_minutes,
            cleanup_interval=self.settings.cleanup_interval_seconds,
        )

    async def stop(self):
        """停止会话管理器"""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        self._sessions.clear()
        self._locks.clear()
        logger.info("session_manager.stopped")

    # ========================================
    # Operations
    # ========================================

    async def create_session(
        self,
        subject_input: str,
        locale: str | None = None,
        prompt_template: str | None = None,
        strategy: str | None = None,
        session_id: str | None = None,
    ) -> SessionReply:
        """创建会话并生成第一轮命名结果"""
        subject = self._validate_subject(subject_input)
        locale = self._validate_locale(locale)

        if session_id is None:
            session_id = str(uuid.uuid4())
        elif session_id in self._sessions:
            raise InvalidInput("session_id", "session_id already exists")

        template, strategy_name = self._select_template(prompt_template, strategy)
        prompt = render_prompt(template, subject, locale)
        user_turn = ChatTurn(role="user", content=prompt)

        completion = await self._generate([user_turn], session_id=session_id)

        input_tokens, output_tokens = usage_from_completion(prompt, completion)
        now = self._clock()
        session = NamingSession(
            session_id=session_id,
            subject_input=subject,
            locale=locale,
            strategy=strategy_name,
            created_at=now,
        )
        session.commit_turn(
            user_turn,
            ChatTurn(role="assistant", content=completion.text),
            tokens=input_tokens + output_tokens,
            cost=calculate_cost(input_tokens, output_tokens, self.settings),
            now=now,
        )
        self._sessions[session_id] = session
        self._locks[session_id] = asyncio.Lock()

        logger.info(
            "session.created",
            session_id=session_id,
            strategy=strategy_name,
            locale=locale,
            tokens=session.total_tokens_used,
        )
        return self._reply(session, completion)

    async def continue_session(self, session_id: str, message: str) -> SessionReply:
        """
        续聊

        流程：
        1. 校验输入
        2. 获取会话锁，检查各项上限（在调用 LLM 之前）
        3. 用"暂存"的记录（原记录 + 新消息）调用 LLM
        4. 成功后提交；失败时原记录保持不变
        """
        message = self._validate_message(message)

        lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFound(session_id)

        async with lock:
            # 排队期间会话可能已被删除或过期清理
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)

            self._check_limits(session, message)

            user_turn = ChatTurn(role="user", content=message)
            staged = [*session.transcript, user_turn]

            try:
                completion = await self._generate(staged, session_id=session_id)
            except GenerationFailed:
                logger.warning(
                    "session.turn_discarded",
                    session_id=session_id,
                    turn_count=session.turn_count,
                )
                raise

            input_tokens, output_tokens = usage_from_completion(message, completion)
            session.commit_turn(
                user_turn,
                ChatTurn(role="assistant", content=completion.text),
                tokens=input_tokens + output_tokens,
                cost=calculate_cost(input_tokens, output_tokens, self.settings),
                now=self._clock(),
            )

        logger.info(
            "session.continued",
            session_id=session_id,
            turn_count=session.turn_count,
            tokens=session.total_tokens_used,
            cost=round(session.total_cost_usd, 6),
        )
        return self._reply(session, completion)

    def get_session(self, session_id: str) -> NamingSession | None:
        """获取会话"""
        return self._sessions.get(session_id)

    def get_session_info(self, session_id: str) -> SessionInfo | None:
        session = self._sessions.get(session_id)
        return session.get_info() if session else None

    def get_transcript(self, session_id: str) -> list[ChatTurn]:
        """Chat turns after the initial rendered prompt."""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return list(session.transcript[1:])

    def delete_session(self, session_id: str) -> bool:
        """删除会话（幂等）"""
        self._locks.pop(session_id, None)
        if self._sessions.pop(session_id, None) is not None:
            logger.info("session.deleted", session_id=session_id)
            return True
        return False

    def sweep_expired(
        self,
        now: datetime | None = None,
        idle_timeout: timedelta | None = None,
    ) -> int:
        """清理空闲超时的会话，正在调用 LLM 的会话跳过"""
        now = now or self._clock()
        if idle_timeout is None:
            idle_timeout = timedelta(minutes=self.settings.session_timeout_minutes)

        expired = []
        for sid, session in list(self._sessions.items()):
            lock = self._locks.get(sid)
            if lock is not None and lock.locked():
                continue
            if session.is_idle(now, idle_timeout):
                expired.append(sid)

        for sid in expired:
            self._sessions.pop(sid, None)
            self._locks.pop(sid, None)
        if expired:
            logger.info("sessions.cleaned", count=len(expired), remaining=len(self._sessions))
        return len(expired)

    # ========================================
    # Internals
    # ========================================

    async def _cleanup_loop(self):
        """定期清理过期会话"""
        while True:
            try:
                await asyncio.sleep(self.settings.cleanup_interval_seconds)
                self.sweep_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("session_cleanup.error", error=str(e))

    async def _generate(self, messages: list[ChatTurn], session_id: str) -> Completion:
        timeout = self.settings.llm_timeout_seconds
        try:
            return await asyncio.wait_for(self.llm.complete(messages), timeout=timeout)
        except GenerationFailed:
            raise
        except asyncio.TimeoutError as e:
            logger.warning("llm.timeout", session_id=session_id, timeout=timeout)
            raise GenerationFailed(
                TimeoutError(f"LLM call timed out after {timeout}s"), retryable=True
            ) from e
        except Exception as e:
            logger.error("llm.call_failed", session_id=session_id, error=str(e))
            raise GenerationFailed(e) from e

    def _check_limits(self, session: NamingSession, message: str):
        settings = self.settings

        if session.turn_count >= settings.max_conversation_turns:
            raise TurnLimitExceeded(settings.max_conversation_turns)

        if session.user_message_count >= settings.max_session_messages:
            raise MessageLimitExceeded(settings.max_session_messages)

        estimated_tokens, estimated_cost = estimate_next_turn(message, settings)

        if session.total_cost_usd + estimated_cost > settings.cost_threshold_usd:
            logger.warning(
                "session.cost_limit",
                session_id=session.session_id,
                cost=session.total_cost_usd,
                estimated_add=estimated_cost,
            )
            raise CostLimitExceeded(session.total_cost_usd, settings.cost_threshold_usd)

        max_tokens = settings.max_tokens_per_session
        if max_tokens > 0 and session.total_tokens_used + estimated_tokens > max_tokens:
            raise TokenLimitExceeded(session.total_tokens_used, max_tokens)

    def _select_template(
        self,
        prompt_template: str | None,
        strategy: str | None,
    ) -> tuple[str, str]:
        if prompt_template and prompt_template.strip():
            return prompt_template, "custom"
        if strategy:
            return get_strategy(strategy).template, strategy
        return self.prompts.get_default(), "default"

    def _validate_subject(self, subject_input: str) -> str:
        if not isinstance(subject_input, str):
            raise InvalidInput("name", "name is required and must be a string")
        subject = subject_input.strip()
        if not subject:
            raise InvalidInput("name", "name cannot be empty")
        limit = self.settings.max_input_chars
        if len(subject) > limit:
            raise InvalidInput("name", f"name is too long (max {limit} characters)")
        return subject

    def _validate_locale(self, locale: str | None) -> str:
        if locale is None or not str(locale).strip():
            return DEFAULT_LOCALE
        locale = str(locale).strip()
        if len(locale) > MAX_LOCALE_CHARS:
            raise InvalidInput("locale", f"locale is too long (max {MAX_LOCALE_CHARS} characters)")
        return locale

    def _validate_message(self, message: str) -> str:
        if not isinstance(message, str):
            raise InvalidInput("message", "message is required and must be a string")
        message = message.strip()
        if not message:
            raise InvalidInput("message", "message cannot be empty")
        limit = self.settings.max_message_chars
        if len(message) > limit:
            raise InvalidInput("message", f"message is too long (max {limit} characters)")
        return message

    def _reply(self, session: NamingSession, completion: Completion) -> SessionReply:
        return SessionReply(
            session_id=session.session_id,
            subject_input=session.subject_input,
            locale=session.locale,
            turn_count=session.turn_count,
            tokens_used=session.total_tokens_used,
            estimated_cost=session.total_cost_usd,
            result=parse_structured_result(completion.text),
        )
