"""
Orchestrator - 会话与预算

职责:
- 管理命名会话
- 轮次 / Token / 费用上限控制
- 过期会话清理
"""

from .session import NamingSession, SessionInfo, SessionManager, SessionReply

__all__ = ["NamingSession", "SessionInfo", "SessionManager", "SessionReply"]
