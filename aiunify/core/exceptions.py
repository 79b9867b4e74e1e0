"""
统一异常体系

所有驱动的失败都映射到这里的异常类型，调用方只需要面对一套错误词汇：

AIError
├── AIConfigError          缺少必要配置（网络调用之前检测）
├── AIValidationError      调用方输入不合法
├── AITransportError       网络失败（尚未收到响应）
│   ├── AITimeoutError     超时（传输层超时或 408/504）
│   └── AITransferAborted  取消钩子中止了传输
├── AIHTTPError            非 2xx 响应
│   ├── AIAuthError        401 / 403
│   └── AIRateLimitError   429
├── AIJSONError            必需内容解析失败
├── AIRegistrationError    驱动未注册 / 注册参数错误
├── AIEventHandlerError    回调处理器抛出异常
└── AIOperationCancelled   操作已取消
"""

from __future__ import annotations

from typing import Any


class AIError(Exception):
    """所有 aiunify 异常的基类"""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class AIConfigError(AIError):
    """缺少必要配置"""


class AIValidationError(AIError):
    """调用方输入不合法"""


class AITransportError(AIError):
    """网络层失败，未收到 HTTP 响应"""


class AITimeoutError(AITransportError):
    """请求超时"""


class AITransferAborted(AITransportError):
    """取消钩子在数据块边界中止了传输"""


class AIHTTPError(AIError):
    """非 2xx 响应，携带完整的 HTTP 上下文"""

    def __init__(
        self,
        status_code: int,
        message: str,
        body: str = "",
        code: str = "",
        error_type: str = "",
        param: str = "",
        retry_after: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.code = code  # 供应商错误码，如 "rate_limited"
        self.error_type = error_type  # 如 "invalid_request_error"
        self.param = param  # 出错的参数名
        self.retry_after = retry_after  # 秒
        self.detail = detail  # 更完整的人类可读描述

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(status_code={self.status_code}, "
            f"message={self.message!r}, code={self.code!r})"
        )


class AIAuthError(AIHTTPError):
    """认证失败 (401/403)"""


class AIRateLimitError(AIHTTPError):
    """速率限制 (429)"""


class AIJSONError(AIError):
    """JSON 解析失败"""


class AIRegistrationError(AIError):
    """驱动注册相关错误"""


class AIEventHandlerError(AIError):
    """回调处理器执行失败"""

    def __init__(self, message: str, original: BaseException | None = None) -> None:
        super().__init__(message)
        self.original = original


class AIOperationCancelled(AIError):
    """操作已被取消（协作式取消在检查点抛出）"""

    def __init__(self, message: str = "Operation cancelled.", request_id: Any = None) -> None:
        super().__init__(message)
        self.request_id = request_id


__all__ = [
    "AIError",
    "AIConfigError",
    "AIValidationError",
    "AITransportError",
    "AITimeoutError",
    "AITransferAborted",
    "AIHTTPError",
    "AIAuthError",
    "AIRateLimitError",
    "AIJSONError",
    "AIRegistrationError",
    "AIEventHandlerError",
    "AIOperationCancelled",
]
