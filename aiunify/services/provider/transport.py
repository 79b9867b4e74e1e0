"""
统一的 Provider 请求构建工具。

负责:
- 拼接请求 URL（去除多余斜杠，? 开头的片段直接追加）
- URL 脱敏（用于日志记录）
- 判断响应是否成功
- 各供应商的认证 Header
"""

from __future__ import annotations

import re
from typing import Any, Protocol

from aiunify.core.enums import ProviderKind

# URL 中需要脱敏的查询参数（正则模式）
_SENSITIVE_QUERY_PARAMS_PATTERN = re.compile(
    r"([?&])(key|api_key|apikey|token|secret|password|credential)=([^&]*)",
    re.IGNORECASE,
)


class _ResponseLike(Protocol):
    status_code: int
    content: bytes


def redact_url_for_log(url: str) -> str:
    """
    对 URL 中的敏感查询参数进行脱敏，用于日志记录

    将 ?key=xxx 替换为 ?key=***

    Args:
        url: 原始 URL

    Returns:
        脱敏后的 URL
    """
    return _SENSITIVE_QUERY_PARAMS_PATTERN.sub(r"\1\2=***", url)


def build_url(base_url: str, *segments: str) -> str:
    """
    安全拼接 base_url 与若干路径片段

    - base_url 只去除末尾斜杠（保留 "://"）
    - 每个片段去除首尾斜杠，空片段跳过
    - 以 "?" 开头的片段直接追加，不加斜杠

    Examples:
        build_url("https://api.openai.com/v1/", "/chat/completions")
            -> "https://api.openai.com/v1/chat/completions"
        build_url(base, "gemini-2.0-flash:generateContent", "?key=abc")
            -> ".../gemini-2.0-flash:generateContent?key=abc"
    """
    result = (base_url or "").strip().rstrip("/")

    for segment in segments:
        part = (segment or "").strip().strip("/")
        if not part:
            continue
        if not result:
            result = part
        elif part.startswith("?"):
            result = f"{result}{part}"
        else:
            result = f"{result}/{part}"

    return result


def is_successful_response(response: _ResponseLike | None) -> bool:
    """2xx 且响应体非空才视为成功"""
    if response is None:
        return False
    return 200 <= response.status_code <= 299 and bool(response.content)


def build_auth_headers(kind: ProviderKind, api_key: str, **extra: Any) -> dict[str, str]:
    """
    根据供应商类型生成认证 Header

    Gemini 使用 URL 查询参数认证，Ollama 无需认证，二者返回空字典。
    """
    if kind == ProviderKind.OPENAI:
        return {"Authorization": f"Bearer {api_key}"}
    if kind == ProviderKind.CLAUDE:
        headers = {"x-api-key": api_key}
        version = extra.get("anthropic_version")
        if version:
            headers["anthropic-version"] = str(version)
        return headers
    return {}


__all__ = [
    "redact_url_for_log",
    "build_url",
    "is_successful_response",
    "build_auth_headers",
]
