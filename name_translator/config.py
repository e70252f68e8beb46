"""
Configuration management for the name translator service.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "chinese-name-translator"
    app_env: str = Field(default="development", alias="APP_ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    server_port: int = Field(default=5000, alias="SERVER_PORT")

    # 前端地址，逗号分隔，用于 CORS
    frontend_url: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="FRONTEND_URL",
    )

    # LLM Configuration
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    temperature: float = Field(default=0.7, alias="MODEL_TEMPERATURE")
    max_output_tokens: int = Field(default=1000, alias="MODEL_MAX_TOKENS")
    llm_timeout_seconds: float = Field(default=30.0, alias="LLM_TIMEOUT_SECONDS")
    llm_max_retries: int = Field(default=2, alias="LLM_MAX_RETRIES")

    # Session
    session_timeout_minutes: int = Field(default=30, alias="SESSION_TIMEOUT_MINUTES")
    cleanup_interval_seconds: float = Field(default=600.0, alias="SESSION_CLEANUP_INTERVAL_SECONDS")
    max_conversation_turns: int = Field(default=20, alias="MAX_CONVERSATION_TURNS")
    max_session_messages: int = Field(default=10, alias="MAX_SESSION_MESSAGES")

    # Input validation
    max_input_chars: int = Field(default=50, alias="MAX_INPUT_CHARS")
    max_message_chars: int = Field(default=2000, alias="MAX_MESSAGE_CHARS")

    # Token Budget (estimates for gpt-4o-mini, prices per 1K tokens)
    input_token_price: float = Field(default=0.00015, alias="INPUT_TOKEN_PRICE")
    output_token_price: float = Field(default=0.0006, alias="OUTPUT_TOKEN_PRICE")
    # 0 表示不限制
    max_tokens_per_session: int = Field(default=0, alias="MAX_TOKENS_PER_SESSION")
    cost_threshold_usd: float = Field(default=1.0, alias="COST_THRESHOLD_USD")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    @property
    def cors_origins(self) -> list[str]:
        return [url.strip() for url in self.frontend_url.split(",") if url.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
