"""
错误分类器 - 将原始 HTTP 状态/响应体/响应头映射为统一错误类别

纯逻辑，无副作用：
- classify(): 状态码 + 响应体 + 响应头 -> ClassifiedError
- classify_exception(): 任意异常 -> ClassifiedError（调度器失败路径使用）
- describe_response(): 生成更完整的人类可读描述（OpenAI/Claude type/code，Gemini status/details）

所有驱动的失败都经过这里，调用方无论后端是谁都面对同一套错误词汇。
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from aiunify.core.constants import (
    EVENT_HANDLER_FAILED,
    HTTP_ERROR,
    HTTP_ERROR_FULL,
    HTTP_ERROR_TYPE,
    HTTP_STATUS_ERROR,
    TIMEOUT_ERROR,
)
from aiunify.core.enums import ErrorKind
from aiunify.core.exceptions import (
    AIAuthError,
    AIConfigError,
    AIError,
    AIEventHandlerError,
    AIHTTPError,
    AIJSONError,
    AIRateLimitError,
    AIRegistrationError,
    AITimeoutError,
    AITransportError,
    AIValidationError,
)
from aiunify.core.logger import logger

_AUTH_STATUSES = frozenset({401, 403})
_TIMEOUT_STATUSES = frozenset({408, 504})
_RATE_LIMIT_STATUSES = frozenset({429})

# 异常类型 -> 错误类别（按 MRO 顺序匹配，子类优先）
_EXCEPTION_KINDS: list[tuple[type[AIError], ErrorKind]] = [
    (AIAuthError, ErrorKind.AUTH),
    (AIRateLimitError, ErrorKind.RATE_LIMIT),
    (AIHTTPError, ErrorKind.GENERIC),
    (AITimeoutError, ErrorKind.TIMEOUT),
    (AITransportError, ErrorKind.TRANSPORT),
    (AIConfigError, ErrorKind.CONFIG),
    (AIValidationError, ErrorKind.VALIDATION),
    (AIJSONError, ErrorKind.JSON),
    (AIRegistrationError, ErrorKind.REGISTRATION),
    (AIEventHandlerError, ErrorKind.EVENT_HANDLER),
]


@dataclass
class ClassifiedError:
    """分类后的错误"""

    kind: ErrorKind
    message: str
    status_code: int | None = None
    provider_code: str | None = None  # 如 "rate_limited"
    provider_type: str | None = None  # 如 "invalid_request_error"
    param: str | None = None  # 出错的参数
    retry_after: int | None = None  # 秒
    body: str | None = None
    detail: str | None = None

    def to_exception(self) -> AIError:
        """构造对应的异常对象"""
        if self.kind == ErrorKind.TIMEOUT:
            return AITimeoutError(self.message)

        if self.status_code is not None:
            exc_cls: type[AIHTTPError] = AIHTTPError
            if self.kind == ErrorKind.AUTH:
                exc_cls = AIAuthError
            elif self.kind == ErrorKind.RATE_LIMIT:
                exc_cls = AIRateLimitError
            return exc_cls(
                self.status_code,
                self.message,
                body=self.body or "",
                code=self.provider_code or "",
                error_type=self.provider_type or "",
                param=self.param or "",
                retry_after=self.retry_after,
                detail=self.detail,
            )

        for exc_type, kind in _EXCEPTION_KINDS:
            if kind == self.kind and not issubclass(exc_type, AIHTTPError):
                return exc_type(self.message)
        return AIError(self.message)


def _json_str(obj: Mapping[str, Any], name: str) -> str:
    """读取字段为字符串；非字符串值序列化为 JSON 文本"""
    value = obj.get(name)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _decode_body(body: str | bytes | None) -> str:
    if body is None:
        return ""
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return body


class ErrorClassifier:
    """错误分类器"""

    @staticmethod
    def parse_error_body(body: str | bytes | None) -> tuple[str, str, str, str] | None:
        """
        从响应体中解析 (message, code, type, param)

        Returns:
            解析出任何有用字段时返回四元组，否则 None
        """
        text = _decode_body(body)
        if not text.strip():
            return None

        try:
            value = json.loads(text)
        except (json.JSONDecodeError, ValueError):
            return None

        if isinstance(value, str):
            return (value, "", "", "") if value else None

        if not isinstance(value, dict):
            return None

        error = value.get("error")
        if isinstance(error, dict):
            message = _json_str(error, "message") or _json_str(error, "error")
            code = _json_str(error, "code") or _json_str(error, "status")
            error_type = _json_str(error, "type")
            param = _json_str(error, "param")
            if message or code or error_type or param:
                return message, code, error_type, param
            return None

        root_error = _json_str(value, "error")
        if root_error:
            return root_error, "", "", ""

        root_message = _json_str(value, "message")
        if root_message:
            return root_message, "", "", ""

        return None

    @staticmethod
    def parse_retry_after(headers: Mapping[str, str] | None) -> int | None:
        """解析 Retry-After 头（秒数或 HTTP 日期）"""
        if not headers:
            return None

        raw = None
        for key, value in headers.items():
            if key.lower() == "retry-after":
                raw = value
                break
        if raw is None or not str(raw).strip():
            return None

        raw = str(raw).strip()
        try:
            return int(raw)
        except ValueError:
            pass

        try:
            retry_date = parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            return None
        if retry_date.tzinfo is None:
            retry_date = retry_date.replace(tzinfo=timezone.utc)
        delta = retry_date - datetime.now(timezone.utc)
        return max(int(delta.total_seconds()), 0)

    @classmethod
    def classify(
        cls,
        status_code: int,
        body: str | bytes | None,
        headers: Mapping[str, str] | None = None,
        reason: str = "",
    ) -> ClassifiedError:
        """
        分类非 2xx 响应

        Args:
            status_code: HTTP 状态码
            body: 响应体
            headers: 响应头（大小写不敏感）
            reason: 状态描述（仅用于 detail）

        Returns:
            ClassifiedError
        """
        text = _decode_body(body)
        parsed = cls.parse_error_body(text)
        message, code, error_type, param = parsed or ("", "", "", "")
        if not message:
            message = HTTP_STATUS_ERROR % status_code

        retry_after = cls.parse_retry_after(headers)
        detail = cls.describe_response(status_code, reason, text)

        if status_code in _TIMEOUT_STATUSES:
            # 超时只保留消息，不携带 HTTP 上下文
            return ClassifiedError(
                kind=ErrorKind.TIMEOUT,
                message=TIMEOUT_ERROR % (status_code, message),
            )

        if status_code in _AUTH_STATUSES:
            kind = ErrorKind.AUTH
        elif status_code in _RATE_LIMIT_STATUSES:
            kind = ErrorKind.RATE_LIMIT
        else:
            kind = ErrorKind.GENERIC

        return ClassifiedError(
            kind=kind,
            message=message,
            status_code=status_code,
            provider_code=code or None,
            provider_type=error_type or None,
            param=param or None,
            retry_after=retry_after,
            body=text,
            detail=detail,
        )

    @staticmethod
    def describe_response(status_code: int, reason: str, body: str | bytes | None) -> str:
        """
        生成人类可读的错误描述

        - OpenAI / Claude: error.type (+ error.code)
        - Gemini: error.status / error.code，附带 details 中的第一条说明
        - 其他: 顶层 error 字符串或 message
        """
        basic = HTTP_ERROR % (status_code, reason or "")
        text = _decode_body(body)
        try:
            root = json.loads(text) if text.strip() else None
        except (json.JSONDecodeError, ValueError):
            return basic
        if not isinstance(root, dict):
            return basic

        error = root.get("error")
        if isinstance(error, dict):
            message = error.get("message") if isinstance(error.get("message"), str) else ""
            error_type = error.get("type") if isinstance(error.get("type"), str) else ""
            status = error.get("status") if isinstance(error.get("status"), str) else ""
            raw_code = error.get("code")
            code = str(raw_code) if isinstance(raw_code, (str, int)) and raw_code != "" else ""

            if error_type:
                if code:
                    return HTTP_ERROR_FULL % (message, code, error_type)
                return HTTP_ERROR_TYPE % (message, error_type)

            if status or code:
                message = _append_google_detail(message, error.get("details"))
                if not message:
                    message = basic
                if status and code:
                    return HTTP_ERROR_FULL % (message, status, code)
                if status:
                    return f"{message} (status={status})"
                return HTTP_ERROR_TYPE % (message, code)

            return message or basic

        if isinstance(error, str) and error:
            return error

        message = root.get("message")
        if isinstance(message, str) and message:
            return message

        return basic

    @staticmethod
    def classify_exception(error: BaseException) -> ClassifiedError:
        """将调度过程中抛出的任意异常映射为 ClassifiedError"""
        if isinstance(error, AIHTTPError):
            kind = ErrorKind.GENERIC
            if isinstance(error, AIAuthError):
                kind = ErrorKind.AUTH
            elif isinstance(error, AIRateLimitError):
                kind = ErrorKind.RATE_LIMIT
            return ClassifiedError(
                kind=kind,
                message=error.message or HTTP_STATUS_ERROR % error.status_code,
                status_code=error.status_code,
                provider_code=error.code or None,
                provider_type=error.error_type or None,
                param=error.param or None,
                retry_after=error.retry_after,
                body=error.body,
                detail=error.detail,
            )

        if isinstance(error, AIError):
            for exc_type, kind in _EXCEPTION_KINDS:
                if isinstance(error, exc_type):
                    return ClassifiedError(kind=kind, message=error.message)
            return ClassifiedError(kind=ErrorKind.GENERIC, message=error.message)

        logger.debug("未知异常类型: {}", error.__class__.__name__)
        return ClassifiedError(
            kind=ErrorKind.GENERIC,
            message=EVENT_HANDLER_FAILED % (error.__class__.__name__, str(error)),
        )

    @classmethod
    def raise_for_response(cls, response: Any) -> None:
        """
        非成功响应时抛出分类后的异常

        Args:
            response: 具有 status_code / content / headers / reason 属性的响应对象
        """
        status_code = response.status_code
        if 200 <= status_code <= 299 and response.content:
            return
        classified = cls.classify(
            status_code,
            response.content,
            getattr(response, "headers", None),
            reason=getattr(response, "reason", ""),
        )
        logger.warning(
            "上游响应失败: status={}, kind={}, detail={}",
            status_code,
            classified.kind.value,
            classified.detail,
        )
        raise classified.to_exception()


def _append_google_detail(message: str, details: Any) -> str:
    """从 Google 风格的 details 中取第一条有用说明追加到消息"""
    if not isinstance(details, list):
        return message

    for item in details:
        if not isinstance(item, dict):
            continue
        description = ""
        violations = item.get("fieldViolations")
        if isinstance(violations, list):
            if violations and isinstance(violations[0], dict):
                value = violations[0].get("description")
                description = value if isinstance(value, str) else ""
        elif isinstance(item.get("message"), str):
            description = item["message"]

        if description:
            return f"{message} - {description}" if message else description

    return message


__all__ = ["ClassifiedError", "ErrorClassifier"]
