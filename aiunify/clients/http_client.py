"""
HTTP 传输层

- HttpClientConfig: 注入式的客户端配置（超时、默认 Header、定制器），替代全局定制器
- Transport: 单次请求独占的传输对象，逐块读取响应体，每个数据块之后
  调用可拦截的 on_receive_data 钩子，并在块边界检查取消令牌
- 每个请求创建独立的 httpx.AsyncClient，请求结束后由调度器关闭
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx

from aiunify.config import config
from aiunify.core.exceptions import (
    AIJSONError,
    AITimeoutError,
    AITransferAborted,
    AITransportError,
)
from aiunify.core.constants import INVALID_JSON_ERROR
from aiunify.core.logger import logger
from aiunify.services.provider.transport import is_successful_response, redact_url_for_log
from aiunify.services.tracking import CancellationToken
from aiunify.utils.sse_parser import LineDecoder

# (content_length, read_count) -> 是否中止
ReceiveDataHook = Callable[[int | None, int], bool]

# 在构建 httpx.AsyncClient 之前修改其构造参数
ClientCustomizer = Callable[[dict[str, Any]], None]


@dataclass
class TransportResponse:
    """已完整读取的响应"""

    status_code: int
    reason: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes = b""
    url: str = ""

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def is_success(self) -> bool:
        return is_successful_response(self)

    def json(self) -> Any:
        """解析响应体，失败时抛出 AIJSONError"""
        try:
            return json.loads(self.text)
        except json.JSONDecodeError as e:
            raise AIJSONError(INVALID_JSON_ERROR % e) from e


class StreamingResponse:
    """流式读取中的响应，读取过程经过中止钩子与取消令牌检查"""

    def __init__(
        self,
        transport: Transport,
        response: httpx.Response,
        token: CancellationToken | None,
    ) -> None:
        self._transport = transport
        self._response = response
        self._token = token
        self.status_code = response.status_code
        self.reason = response.reason_phrase
        self.headers = {k.lower(): v for k, v in response.headers.items()}
        self.url = str(response.url)
        length = response.headers.get("content-length")
        self.content_length = int(length) if length and length.isdigit() else None
        self.read_count = 0

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        async for chunk in self._response.aiter_bytes():
            if not chunk:
                continue
            self.read_count += len(chunk)
            self._transport._check_abort(self.content_length, self.read_count, self._token)
            yield chunk

    async def aiter_lines(self) -> AsyncIterator[str]:
        decoder = LineDecoder()
        async for chunk in self.aiter_bytes():
            for line in decoder.feed(chunk):
                yield line
        for line in decoder.flush():
            yield line

    async def aread(self) -> TransportResponse:
        buffer = bytearray()
        async for chunk in self.aiter_bytes():
            buffer.extend(chunk)
        return TransportResponse(
            status_code=self.status_code,
            reason=self.reason,
            headers=self.headers,
            content=bytes(buffer),
            url=self.url,
        )


class Transport:
    """
    单请求传输对象

    on_receive_data 在每个数据块之后被调用，返回 True 即中止传输。
    调度器会在执行期间替换此钩子，并在结束后恢复原值。
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        on_receive_data: ReceiveDataHook | None = None,
    ) -> None:
        self._client = client
        self.on_receive_data = on_receive_data
        self._closed = False

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_abort(
        self,
        content_length: int | None,
        read_count: int,
        token: CancellationToken | None,
    ) -> None:
        hook = self.on_receive_data
        abort = bool(hook(content_length, read_count)) if hook is not None else False
        if abort or (token is not None and token.cancelled):
            raise AITransferAborted("Transfer aborted.")

    @asynccontextmanager
    async def stream(
        self,
        method: str,
        url: str,
        *,
        token: CancellationToken | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamingResponse]:
        """
        发起请求并以流方式读取响应

        httpx 的超时/网络异常会被翻译为 AITimeoutError / AITransportError。
        """
        if token is not None and token.cancelled:
            raise AITransferAborted("Transfer aborted.")

        logger.debug("HTTP {} {}", method, redact_url_for_log(url))
        try:
            async with self._client.stream(method, url, **kwargs) as response:
                yield StreamingResponse(self, response, token)
        except httpx.TimeoutException as e:
            raise AITimeoutError(str(e) or "Request timed out.") from e
        except httpx.RequestError as e:
            raise AITransportError(str(e) or e.__class__.__name__) from e

    async def request(
        self,
        method: str,
        url: str,
        *,
        token: CancellationToken | None = None,
        **kwargs: Any,
    ) -> TransportResponse:
        async with self.stream(method, url, token=token, **kwargs) as response:
            return await response.aread()

    async def post(self, url: str, **kwargs: Any) -> TransportResponse:
        return await self.request("POST", url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> TransportResponse:
        return await self.request("GET", url, **kwargs)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()


@dataclass
class HttpClientConfig:
    """
    HTTP 客户端配置（注入到 RequestEngine，而非进程级全局变量）

    Attributes:
        connect_timeout_ms: 连接超时，None 表示使用全局 config
        response_timeout_ms: 读取超时，None 表示使用全局 config
        follow_redirects: 是否跟随重定向
        headers: 所有请求附带的默认 Header
        transport: 可选的 httpx 传输（测试用 httpx.MockTransport，或代理）
        customizers: 构建客户端前依次调用的定制器
    """

    connect_timeout_ms: int | None = None
    response_timeout_ms: int | None = None
    follow_redirects: bool | None = None
    headers: dict[str, str] = field(default_factory=dict)
    transport: httpx.AsyncBaseTransport | None = None
    customizers: list[ClientCustomizer] = field(default_factory=list)

    def build_client_kwargs(self, timeout_ms: int | None = None) -> dict[str, Any]:
        connect_ms = self.connect_timeout_ms or config.connect_timeout_ms
        response_ms = self.response_timeout_ms or config.response_timeout_ms
        # 驱动参数中的 timeout 覆盖连接超时
        if timeout_ms:
            connect_ms = timeout_ms

        headers = {"User-Agent": config.user_agent}
        headers.update(self.headers)

        kwargs: dict[str, Any] = {
            "timeout": httpx.Timeout(response_ms / 1000, connect=connect_ms / 1000),
            "follow_redirects": (
                config.follow_redirects if self.follow_redirects is None else self.follow_redirects
            ),
            "headers": headers,
        }
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return kwargs

    def create_client(
        self,
        customizer: ClientCustomizer | None = None,
        timeout_ms: int | None = None,
    ) -> httpx.AsyncClient:
        kwargs = self.build_client_kwargs(timeout_ms)
        for item in self.customizers:
            item(kwargs)
        if customizer is not None:
            customizer(kwargs)
        return httpx.AsyncClient(**kwargs)

    def create_transport(
        self,
        customizer: ClientCustomizer | None = None,
        timeout_ms: int | None = None,
    ) -> Transport:
        return Transport(self.create_client(customizer, timeout_ms))


__all__ = [
    "ClientCustomizer",
    "HttpClientConfig",
    "ReceiveDataHook",
    "StreamingResponse",
    "Transport",
    "TransportResponse",
]
