"""
Chinese Name Translator

LLM 驱动的名字音译 / 意译服务，带会话记忆与费用控制。
"""

__version__ = "1.0.0"
