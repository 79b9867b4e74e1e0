"""
错误消息处理工具函数
"""

from aiunify.core.exceptions import AIHTTPError


def extract_error_message(error: BaseException) -> str:
    """
    从异常中提取错误消息，优先使用上游原始响应（用于日志与调试）

    Args:
        error: 异常对象

    Returns:
        错误消息字符串
    """
    if isinstance(error, AIHTTPError):
        if error.detail:
            return error.detail
        if error.body and error.body.strip():
            return f"HTTP {error.status_code}: {error.body}"

    # str 可能为空，如 httpx 超时异常
    return str(error) or repr(error)


__all__ = ["extract_error_message"]
