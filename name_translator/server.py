"""
Name Translator HTTP Server

使用 FastAPI 提供 HTTP 接口，支持：
- /api/health - 健康检查
- /api/sessions - 命名会话（创建 / 续聊 / 查询 / 删除）
- /api/prompt - 默认提示词模板管理
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import Settings, get_settings
from .errors import NameTranslatorError, SessionNotFound
from .llm.prompts import list_strategies
from .orchestrator import SessionManager, SessionReply

# 配置日志
logging.basicConfig(level=logging.INFO, format="%(message)s")
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# 启动时间
_start_time = datetime.now(UTC)


# ========================================
# 请求/响应模型
# ========================================

class CreateSessionRequest(BaseModel):
    """创建命名会话"""
    name: str = Field(
        ...,
        validation_alias=AliasChoices("name", "chineseName"),
        description="要转换的名字",
    )
    locale: str | None = Field(None, description="用户语言/地区，默认 en")
    custom_prompt: str | None = Field(
        None,
        validation_alias=AliasChoices("custom_prompt", "customPrompt"),
        description="自定义提示词模板（可选）",
    )
    strategy: str | None = Field(None, description="内置命名策略（可选）")


class ContinueSessionRequest(BaseModel):
    """续聊"""
    message: str = Field(..., description="用户的后续要求")


class PromptUpdateRequest(BaseModel):
    prompt: str | None = None


class HealthResponse(BaseModel):
    """健康检查响应"""
    status: str
    timestamp: str
    version: str
    uptime_seconds: float
    active_sessions: int


def _reply_payload(reply: SessionReply) -> dict:
    return {
        "session_id": reply.session_id,
        "subject_input": reply.subject_input,
        "locale": reply.locale,
        "turn_count": reply.turn_count,
        "tokens_used": reply.tokens_used,
        "estimated_cost": f"{reply.estimated_cost:.6f}",
        "primary": reply.result.primary.model_dump(),
        "alternatives": [a.model_dump() for a in reply.result.alternatives],
        "degraded": reply.result.degraded,
    }


def get_session_manager(request: Request) -> SessionManager:
    manager = getattr(request.app.state, "session_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Server not ready")
    return manager


# ========================================
# 应用工厂
# ========================================

def create_app(
    session_manager: SessionManager | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        manager = session_manager
        if manager is None:
            if not settings.openai_api_key:
                raise RuntimeError(
                    "OPENAI_API_KEY is not set. Please create a .env file with your OpenAI API key."
                )
            manager = SessionManager(settings=settings)

        logger.info("server.starting", model=settings.openai_model, env=settings.app_env)
        app.state.session_manager = manager
        await manager.start()
        logger.info("server.started")

        yield

        logger.info("server.stopping")
        await manager.stop()
        app.state.session_manager = None

    app = FastAPI(
        title="Chinese Name Translator",
        description="LLM-backed culturally adapted name transliteration",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS 配置
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "http.request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    # ========================================
    # 异常处理
    # ========================================

    @app.exception_handler(NameTranslatorError)
    async def handle_domain_error(request: Request, exc: NameTranslatorError):
        logger.warning(
            "request.failed",
            path=request.url.path,
            error_code=exc.error_code,
            message=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid input",
                "error_code": "INVALID_INPUT",
                "field": field,
                "message": f"{field}: {first.get('msg', 'invalid request')}" if field else "invalid request body",
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Not found",
                    "message": f"The endpoint {request.method} {request.url.path} does not exist",
                },
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "message": str(exc.detail)},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("request.unhandled_error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if settings.debug else "An unexpected error occurred",
            },
        )

    # ========================================
    # API 端点
    # ========================================

    @app.get("/")
    async def root():
        """根路径"""
        return {
            "name": "Chinese Name Translator",
            "version": __version__,
            "docs": "/docs",
            "health": "/api/health",
        }

    @app.get("/health", response_model=HealthResponse)
    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(manager: SessionManager = Depends(get_session_manager)):
        """健康检查端点"""
        now = datetime.now(UTC)
        return HealthResponse(
            status="ok",
            timestamp=now.isoformat(),
            version=__version__,
            uptime_seconds=(now - _start_time).total_seconds(),
            active_sessions=len(manager),
        )

    @app.post("/api/sessions", status_code=201)
    async def create_session_endpoint(
        body: CreateSessionRequest,
        manager: SessionManager = Depends(get_session_manager),
    ):
        """创建命名会话并返回第一轮结果"""
        logger.info("sessions.create", name_len=len(body.name), strategy=body.strategy)
        reply = await manager.create_session(
            body.name,
            locale=body.locale,
            prompt_template=body.custom_prompt,
            strategy=body.strategy,
        )
        return {"success": True, "data": _reply_payload(reply)}

    @app.post("/api/sessions/{session_id}/messages")
    async def continue_session_endpoint(
        session_id: str,
        body: ContinueSessionRequest,
        manager: SessionManager = Depends(get_session_manager),
    ):
        """在已有会话中继续对话"""
        reply = await manager.continue_session(session_id, body.message)
        return {"success": True, "data": _reply_payload(reply)}

    @app.get("/api/sessions/{session_id}")
    async def get_session_endpoint(
        session_id: str,
        manager: SessionManager = Depends(get_session_manager),
    ):
        """获取会话信息"""
        info = manager.get_session_info(session_id)
        if info is None:
            raise SessionNotFound(session_id)
        data = info.model_dump(mode="json")
        data["estimated_cost"] = f"{info.estimated_cost:.6f}"
        return {"success": True, "data": data}

    @app.get("/api/sessions/{session_id}/messages")
    async def get_session_messages(
        session_id: str,
        manager: SessionManager = Depends(get_session_manager),
    ):
        """获取会话的对话记录（不含首轮提示词）"""
        turns = manager.get_transcript(session_id)
        return {"success": True, "data": [t.model_dump() for t in turns]}

    @app.delete("/api/sessions/{session_id}")
    async def delete_session_endpoint(
        session_id: str,
        manager: SessionManager = Depends(get_session_manager),
    ):
        """删除会话"""
        manager.delete_session(session_id)
        return {"success": True, "message": "Session cleared successfully"}

    @app.get("/api/prompt")
    async def get_prompt(manager: SessionManager = Depends(get_session_manager)):
        return {"success": True, "data": {"prompt": manager.prompts.get_default()}}

    @app.post("/api/prompt")
    async def update_prompt(
        body: PromptUpdateRequest,
        manager: SessionManager = Depends(get_session_manager),
    ):
        prompt = manager.prompts.set_default(body.prompt)
        return {
            "success": True,
            "message": "Prompt updated successfully",
            "data": {"prompt": prompt},
        }

    @app.post("/api/prompt/reset")
    async def reset_prompt(manager: SessionManager = Depends(get_session_manager)):
        return {"success": True, "data": {"prompt": manager.prompts.reset()}}

    @app.get("/api/prompt/strategies")
    async def get_strategies():
        return {"success": True, "data": list_strategies()}

    return app


# ASGI application instance
app = create_app()


def main():
    """启动服务器"""
    settings = get_settings()
    if not settings.openai_api_key:
        logger.error("server.no_api_key", msg="OPENAI_API_KEY is required")
        raise SystemExit(1)

    logger.info("server.main", host="0.0.0.0", port=settings.server_port)
    uvicorn.run(
        "name_translator.server:app",
        host="0.0.0.0",
        port=settings.server_port,
        reload=settings.debug,
        log_level="info",
    )


if __name__ == "__main__":
    main()
