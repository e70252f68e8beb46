"""
Error taxonomy

所有请求级错误都继承 NameTranslatorError，携带稳定的 error_code 和 HTTP 状态码，
由 server 中的异常处理器统一转换为 JSON 响应。
"""


class NameTranslatorError(Exception):
    """Base class for per-request recoverable errors."""

    error_code = "INTERNAL_ERROR"
    status_code = 500
    title = "Internal error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "error": self.title,
            "error_code": self.error_code,
            "message": self.message,
        }


class InvalidInput(NameTranslatorError):
    """Caller-supplied field failed validation."""

    error_code = "INVALID_INPUT"
    status_code = 400
    title = "Invalid input"

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        return {**super().to_dict(), "field": self.field}


class SessionNotFound(NameTranslatorError):
    error_code = "SESSION_NOT_FOUND"
    status_code = 404
    title = "Session not found"

    def __init__(self, session_id: str):
        super().__init__("Session not found. Please start a new session.")
        self.session_id = session_id


class SessionLimitExceeded(NameTranslatorError):
    """A per-session ceiling was reached; the caller should start a new session."""

    status_code = 429
    title = "Session limit reached"


class TurnLimitExceeded(SessionLimitExceeded):
    error_code = "TURN_LIMIT_EXCEEDED"

    def __init__(self, max_turns: int):
        super().__init__(
            f"Maximum conversation turns reached (max {max_turns}). Please start a new session."
        )
        self.max_turns = max_turns


class MessageLimitExceeded(SessionLimitExceeded):
    error_code = "MESSAGE_LIMIT_EXCEEDED"

    def __init__(self, max_messages: int):
        super().__init__(
            f"Message limit reached (max {max_messages} messages). Please start a new session."
        )
        self.max_messages = max_messages


class CostLimitExceeded(SessionLimitExceeded):
    error_code = "COST_LIMIT_EXCEEDED"

    def __init__(self, current_cost: float, threshold: float):
        super().__init__(
            f"Cost is approaching the limit. Current cost: ${current_cost:.4f} "
            f"(limit ${threshold:.2f}). Please start a new session."
        )
        self.current_cost = current_cost
        self.threshold = threshold


class TokenLimitExceeded(SessionLimitExceeded):
    error_code = "TOKEN_LIMIT_EXCEEDED"

    def __init__(self, tokens_used: int, max_tokens: int):
        super().__init__(
            f"Token budget exhausted ({tokens_used}/{max_tokens} tokens). Please start a new session."
        )
        self.tokens_used = tokens_used
        self.max_tokens = max_tokens


class GenerationFailed(NameTranslatorError):
    """Wraps a provider or transport failure; retrying is up to the caller."""

    error_code = "GENERATION_FAILED"
    status_code = 502
    title = "Failed to process request"

    def __init__(self, cause: BaseException, retryable: bool = True):
        detail = str(cause) or type(cause).__name__
        super().__init__(f"Failed to generate names: {detail}")
        self.cause = cause
        self.retryable = retryable

    def to_dict(self) -> dict:
        return {**super().to_dict(), "retryable": self.retryable}
