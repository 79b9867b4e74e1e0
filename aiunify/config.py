"""
全局配置

从环境变量读取 HTTP 传输层默认值，驱动参数中的 timeout 为 0 时回退到这里。
"""

from __future__ import annotations

import os

from aiunify import __version__


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """运行时配置（只读快照，reload() 可重新读取环境变量）"""

    def __init__(self) -> None:
        self.reload()

    def reload(self) -> None:
        # 连接超时与响应超时，单位毫秒
        self.connect_timeout_ms = _env_int("AI_CONNECT_TIMEOUT_MS", 60000)
        self.response_timeout_ms = _env_int("AI_RESPONSE_TIMEOUT_MS", 120000)
        self.follow_redirects = _env_bool("AI_FOLLOW_REDIRECTS", True)
        self.user_agent = os.getenv("AI_USER_AGENT", f"aiunify/{__version__}")
        # 为 True 时 RequestEngine.create() 默认使用 AffinityExecutor
        self.synchronize_events = _env_bool("AI_SYNCHRONIZE_EVENTS", False)

    def __repr__(self) -> str:
        return (
            f"Config(connect_timeout_ms={self.connect_timeout_ms}, "
            f"response_timeout_ms={self.response_timeout_ms}, "
            f"follow_redirects={self.follow_redirects})"
        )


config = Config()

__all__ = ["Config", "config"]
