"""
数据模型：回调接口、结果类型、驱动参数与各供应商请求模型
"""

from .callbacks import ChatCallback, DriverEvents, ImageCallback, JSONCallback, StreamCallback
from .params import (
    ClaudeParams,
    DriverParams,
    GeminiParams,
    ImageRequest,
    OllamaParams,
    OpenAIParams,
)
from .results import ImageResult, NotSupported

__all__ = [
    "ChatCallback",
    "DriverEvents",
    "ImageCallback",
    "JSONCallback",
    "StreamCallback",
    "ClaudeParams",
    "DriverParams",
    "GeminiParams",
    "ImageRequest",
    "OllamaParams",
    "OpenAIParams",
    "ImageResult",
    "NotSupported",
]
