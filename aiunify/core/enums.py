"""
枚举定义

供应商类型、能力集合、错误类别与图像解码模式。
"""

from enum import Enum


class ProviderKind(str, Enum):
    """供应商类型 - 决定请求构建方式与响应归一化路径"""

    OPENAI = "openai"  # OpenAI Chat Completions / Responses API
    CLAUDE = "claude"  # Anthropic Messages API
    GEMINI = "gemini"  # Google Generative Language API
    OLLAMA = "ollama"  # 本地 Ollama 服务


class Capability(str, Enum):
    """驱动能力 - 不支持的能力返回 NotSupported 结果"""

    CHAT = "chat"
    IMAGE = "image"
    JSON = "json"
    STREAM = "stream"


class ErrorKind(str, Enum):
    """错误类别 - 与供应商无关的统一错误词汇"""

    GENERIC = "generic"  # 其他非 2xx 或未知异常
    AUTH = "auth"  # 401 / 403
    TIMEOUT = "timeout"  # 408 / 504 或传输层超时
    RATE_LIMIT = "rate_limit"  # 429
    TRANSPORT = "transport"  # 网络错误（尚未收到响应）
    CONFIG = "config"  # 缺少必要配置
    VALIDATION = "validation"  # 调用方输入不合法
    JSON = "json"  # 必需内容解析失败
    REGISTRATION = "registration"  # 驱动未注册
    EVENT_HANDLER = "event_handler"  # 回调处理器抛出异常


class ImageDecodeMode(str, Enum):
    """图像结果解码模式"""

    AUTO = "auto"
    BASE64 = "base64"
    URL = "url"
    NONE = "none"


__all__ = ["ProviderKind", "Capability", "ErrorKind", "ImageDecodeMode"]
