"""
驱动基类 - 单一能力接口

每个供应商一个具体驱动（OpenAIDriver / ClaudeDriver / GeminiDriver / OllamaDriver），
通过 kind 与 capabilities 声明自身。未实现的能力不抛异常，而是返回 NotSupported
并把消息投递到错误通道。

一次操作的完整流程：
1. tracker.begin_request() 分配 id
2. 预检（模型 / API Key / Base URL / 提示词），失败时结束请求并同步投递错误
3. dispatcher.run() 在独立任务上执行 work(token)
4. work 完成 HTTP 交换，非 2xx 交给 ErrorClassifier，成功结果经 EventInvoker 投递
"""

from __future__ import annotations

import asyncio
import io
import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar

from aiunify.clients.http_client import StreamingResponse, Transport
from aiunify.core.constants import (
    CONNECTION_FAILED,
    DECODE_MODE_NOT_SUPPORTED,
    IMAGE_NOT_SUPPORTED,
    INVALID_JSON_ERROR,
    JSON_NOT_SUPPORTED,
    MISSING_API_KEY,
    MISSING_BASE_URL,
    MISSING_ENDPOINT,
    MISSING_MODEL,
    MISSING_PROMPT,
    MISSING_REQUEST,
    MODELS_FOUND,
    NO_MESSAGE_CONTENT,
    REQUEST_FAILED,
    STREAM_NOT_SUPPORTED,
)
from aiunify.core.enums import Capability, ImageDecodeMode, ProviderKind
from aiunify.core.exceptions import (
    AIConfigError,
    AIError,
    AIEventHandlerError,
    AIJSONError,
    AIValidationError,
)
from aiunify.core.logger import logger
from aiunify.drivers.engine import RequestEngine
from aiunify.models.callbacks import (
    ChatCallback,
    DriverEvents,
    ImageCallback,
    JSONCallback,
    StreamCallback,
)
from aiunify.models.params import DriverParams, ImageRequest
from aiunify.models.results import ImageResult, NotSupported
from aiunify.services.normalization import NormalizedResult
from aiunify.services.provider.transport import build_url, redact_url_for_log
from aiunify.services.tracking import CancellationToken, RequestHandle
from aiunify.utils.sse_parser import SSEEventParser

# work 协程：接收本请求的传输对象与取消令牌
DriverWork = Callable[[Transport, CancellationToken], Awaitable[None]]


@dataclass
class ChatExchange:
    """一次对话请求在调用线程上构建好的全部内容"""

    request_id: str
    url: str
    headers: dict[str, str]
    body: dict[str, Any]
    callback: ChatCallback
    stream: bool = False


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise AIJSONError(INVALID_JSON_ERROR % e) from e


def _is_2xx(status_code: int) -> bool:
    return 200 <= status_code <= 299


def _as_ai_error(error: Exception) -> AIError:
    if isinstance(error, AIError):
        return error
    # pydantic.ValidationError 是 ValueError 的子类
    if isinstance(error, ValueError):
        return AIValidationError(str(error))
    return AIError(str(error) or error.__class__.__name__)


class ProviderDriver(ABC):
    """供应商驱动基类"""

    kind: ClassVar[ProviderKind]
    name: ClassVar[str]
    api_name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    category: ClassVar[str] = "LLM Providers"
    capabilities: ClassVar[frozenset[Capability]] = frozenset({Capability.CHAT})
    params_class: ClassVar[type[DriverParams]] = DriverParams

    # Ollama 等本地服务不需要 API Key
    requires_api_key: ClassVar[bool] = True

    def __init__(
        self,
        params: DriverParams | None = None,
        *,
        engine: RequestEngine | None = None,
        events: DriverEvents | None = None,
    ) -> None:
        self.params = params if params is not None else self.params_class()
        self.engine = engine or RequestEngine.create()
        self.events = events
        self.engine.add_cancel_listener(self._on_request_cancelled)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.params.model!r})"

    # ------------------------------------------------------------------
    # 状态与取消
    # ------------------------------------------------------------------

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @property
    def is_running(self) -> bool:
        return self.engine.tracker.is_running

    def cancel(self, request_id: str) -> None:
        self.engine.tracker.cancel(request_id)

    def cancel_all(self) -> None:
        self.engine.tracker.cancel_all()

    def normalize(self, root: Any) -> NormalizedResult:
        """按本驱动的供应商路径归一化响应"""
        return self.engine.normalizer.extract(root, self.kind)

    def close(self) -> None:
        self.engine.remove_cancel_listener(self._on_request_cancelled)

    def _on_request_cancelled(self, request_id: str) -> None:
        events = self.events
        if events is None:
            logger.debug("[{}] {} 已取消", request_id, self.name)
            return
        try:
            self.engine.invoker.invoke_sync(lambda: events.on_cancelled(request_id))
        except AIEventHandlerError as e:
            message = e.message
            try:
                self.engine.invoker.invoke_sync(lambda: events.on_error(message))
            except AIEventHandlerError as nested:
                logger.error("[{}] {} 取消事件的错误无法投递: {}", request_id, self.name, nested.message)

    # ------------------------------------------------------------------
    # 预检与错误投递
    # ------------------------------------------------------------------

    def _check_params(
        self,
        *,
        require_model: bool = True,
        prompt: str | None = None,
        check_prompt: bool = False,
    ) -> None:
        if require_model and not self.params.model:
            raise AIConfigError(MISSING_MODEL)
        if self.requires_api_key and not self.params.api_key:
            raise AIConfigError(MISSING_API_KEY)
        if not self.params.base_url:
            raise AIConfigError(MISSING_BASE_URL)
        if check_prompt and not (prompt or "").strip():
            raise AIValidationError(MISSING_PROMPT)

    def _error_sink(self, callback: Any) -> Callable[[str], None] | None:
        if callback is not None:
            return callback.on_error
        if self.events is not None:
            return self.events.on_error
        return None

    def _deliver_error_sync(self, callback: Any, error: AIError) -> None:
        """同步路径的错误投递：callback.on_error -> events.on_error -> 抛给调用方"""
        sink = self._error_sink(callback)
        if sink is None:
            raise error
        message = error.message
        self.engine.invoker.invoke_sync(lambda: sink(message))

    def _begin(self, callback: Any, check: Callable[[], None]) -> RequestHandle | None:
        """
        开始请求并执行预检

        Returns:
            预检通过返回句柄；失败时请求已结束、错误已投递，返回 None
        """
        request_id, handle = self.engine.tracker.begin_request()
        try:
            check()
        except AIError as e:
            self.engine.tracker.end_request(request_id)
            logger.warning("[{}] {} 预检失败: {}", request_id, self.name, e.message)
            self._deliver_error_sync(callback, e)
            return None
        return handle

    def _dispatch(self, handle: RequestHandle, work: DriverWork, callback: Any) -> str:
        transport = self.engine.http_config.create_transport(timeout_ms=self.params.timeout)
        try:
            self.engine.dispatcher.run(
                handle,
                transport,
                lambda token: work(transport, token),
                on_error=self._error_sink(callback),
            )
        except RuntimeError:
            # 没有可用的事件循环，请求从未开始；客户端在临时循环上关闭
            self.engine.tracker.end_request(handle.id)
            asyncio.run(transport.aclose())
            raise
        return handle.id

    def _launch(self, handle: RequestHandle, callback: Any, build: Callable[[], DriverWork]) -> str | None:
        """
        构建请求体并调度

        build() 在调用线程上执行，失败时结束请求并同步投递错误，与预检失败一致。
        """
        try:
            work = build()
        except Exception as e:
            self.engine.tracker.end_request(handle.id)
            error = _as_ai_error(e)
            logger.warning("[{}] {} 构建请求失败: {}", handle.id, self.name, error.message)
            self._deliver_error_sync(callback, error)
            return None
        return self._dispatch(handle, work, callback)

    def _not_supported(self, capability: Capability, template: str, callback: Any) -> NotSupported:
        message = template % self.name
        logger.info("{} 不支持 {}", self.name, capability.value)
        sink = self._error_sink(callback)
        if sink is not None:
            self.engine.invoker.invoke_sync(lambda: sink(message))
        return NotSupported(operation=capability, provider=self.kind, message=message)

    async def _invoke(self, proc: Callable[[], Any]) -> Any:
        return await self.engine.invoker.invoke(proc)

    def _raise_for_response(self, response: Any) -> None:
        self.engine.classifier.raise_for_response(response)

    async def _raise_for_stream(self, response: StreamingResponse) -> None:
        """流式响应非 2xx 时读完响应体并抛出分类后的异常"""
        if _is_2xx(response.status_code):
            return
        self._raise_for_response(await response.aread())

    # ------------------------------------------------------------------
    # 供应商相关的构建/解析钩子
    # ------------------------------------------------------------------

    def _auth_headers(self) -> dict[str, str]:
        return {}

    @abstractmethod
    def _build_chat_request(self, prompt: str, stream: bool) -> tuple[str, dict[str, Any]]:
        """返回 (url, body)"""

    @abstractmethod
    def _extract_chat_text(self, obj: Any) -> str:
        """从非流式响应中提取回复文本"""

    @abstractmethod
    def _models_url(self) -> str:
        pass

    @abstractmethod
    def _parse_models(self, obj: Any) -> list[str]:
        pass

    def _json_url(self, endpoint: str) -> str:
        return build_url(self.params.base_url, endpoint)

    def _stream_url(self, endpoint: str) -> str:
        return build_url(self.params.base_url, endpoint)

    # ------------------------------------------------------------------
    # 流式读取工具
    # ------------------------------------------------------------------

    async def _iter_sse_json(self, response: StreamingResponse) -> AsyncIterator[dict[str, Any]]:
        """按 SSE 读取，逐个产出 JSON 对象，遇到 [DONE] 结束"""
        parser = SSEEventParser()
        async for line in response.aiter_lines():
            for event in parser.feed_line(line):
                if event.is_done:
                    return
                obj = _parse_json(event.data)
                if isinstance(obj, dict):
                    yield obj
        for event in parser.flush():
            if event.is_done:
                return
            obj = _parse_json(event.data)
            if isinstance(obj, dict):
                yield obj

    async def _iter_ndjson(self, response: StreamingResponse) -> AsyncIterator[dict[str, Any]]:
        """按行读取 NDJSON"""
        async for line in response.aiter_lines():
            if not line.strip():
                continue
            obj = _parse_json(line)
            if isinstance(obj, dict):
                yield obj

    # ------------------------------------------------------------------
    # 对话
    # ------------------------------------------------------------------

    def _streams_chat(self) -> bool:
        return False

    def chat(self, prompt: str, callback: ChatCallback | None = None) -> str | None:
        """
        发起对话

        Args:
            prompt: 用户提示词
            callback: 对话回调；None 时结果通过 events 投递

        Returns:
            请求 id；预检或构建失败时返回 None
        """
        handle = self._begin(callback, lambda: self._check_params(prompt=prompt, check_prompt=True))
        if handle is None:
            return None

        cb = callback or ChatCallback()

        def build() -> DriverWork:
            self.engine.invoker.invoke_sync(cb.before_request)
            stream = self._streams_chat()
            url, body = self._build_chat_request(prompt, stream)
            headers = {"Content-Type": "application/json", **self._auth_headers()}
            exchange = ChatExchange(handle.id, url, headers, body, cb, stream)
            logger.info("[{}] {} chat -> {}", handle.id, self.name, redact_url_for_log(url))

            async def work(transport: Transport, token: CancellationToken) -> None:
                await self._invoke(cb.after_request)
                await self._run_chat(transport, token, exchange)

            return work

        return self._launch(handle, callback, build)

    async def _run_chat(self, transport: Transport, token: CancellationToken, exchange: ChatExchange) -> None:
        await self._run_standard_chat(transport, token, exchange)

    async def _run_standard_chat(
        self,
        transport: Transport,
        token: CancellationToken,
        exchange: ChatExchange,
    ) -> None:
        cb = exchange.callback
        await self._invoke(cb.before_response)
        response = await transport.post(exchange.url, json=exchange.body, headers=exchange.headers, token=token)
        token.raise_if_cancelled(exchange.request_id)
        await self._invoke(cb.after_response)

        self._raise_for_response(response)
        json_text = response.text
        text = self._extract_chat_text(response.json())
        if not text:
            raise AIError(NO_MESSAGE_CONTENT)

        await self._invoke(lambda: cb.on_full_response(json_text))
        await self._invoke(lambda: cb.on_response(text))
        await self._notify_chat_success(exchange.request_id, text, json_text)

    async def _notify_chat_success(self, request_id: str, text: str, json_text: str) -> None:
        """on_response 已是终态，驱动级成功事件失败时只记录日志"""
        events = self.events
        if events is None:
            return
        try:
            await self._invoke(lambda: events.on_chat_success(text, json_text))
        except AIEventHandlerError as e:
            logger.warning("[{}] {} on_chat_success 执行失败: {}", request_id, self.name, e.message)

    # ------------------------------------------------------------------
    # 其余能力：默认不支持
    # ------------------------------------------------------------------

    def generate_image(
        self,
        request: ImageRequest | None,
        callback: ImageCallback | None = None,
    ) -> str | NotSupported | None:
        return self._not_supported(Capability.IMAGE, IMAGE_NOT_SUPPORTED, callback)

    def execute_json(
        self,
        endpoint: str,
        params: str | dict[str, Any],
        callback: JSONCallback | None = None,
    ) -> str | NotSupported | None:
        return self._not_supported(Capability.JSON, JSON_NOT_SUPPORTED, callback)

    def process_stream(
        self,
        endpoint: str,
        params: dict[str, Any] | None,
        callback: StreamCallback | None = None,
        input_file: str | Path | None = None,
    ) -> str | NotSupported | None:
        return self._not_supported(Capability.STREAM, STREAM_NOT_SUPPORTED, callback)

    # ------------------------------------------------------------------
    # 共享实现：子类在声明对应能力后调用
    # ------------------------------------------------------------------

    def _check_image_request(self, request: ImageRequest | None) -> None:
        self._check_params()
        if request is None:
            raise AIValidationError(MISSING_REQUEST)
        if not (request.prompt or "").strip():
            raise AIValidationError(MISSING_PROMPT)

    async def _deliver_images(
        self,
        cb: ImageCallback,
        images: list[ImageResult],
        json_text: str,
    ) -> None:
        mode = ImageDecodeMode(cb.decode_mode)
        if mode == ImageDecodeMode.NONE or not images:
            raise AIError(DECODE_MODE_NOT_SUPPORTED)
        await self._invoke(lambda: cb.on_success(images, json_text))

    def _execute_json(
        self,
        endpoint: str,
        params: str | dict[str, Any],
        callback: JSONCallback | None,
        *,
        require_endpoint: bool = True,
    ) -> str | None:
        def check() -> None:
            self._check_params()
            if require_endpoint and not (endpoint or "").strip():
                raise AIValidationError(MISSING_ENDPOINT)

        handle = self._begin(callback, check)
        if handle is None:
            return None

        cb = callback or JSONCallback()

        def build() -> DriverWork:
            url = self._json_url(endpoint)
            payload = params if isinstance(params, str) else json.dumps(params, ensure_ascii=False)
            headers = {"Content-Type": "application/json", **self._auth_headers()}
            logger.info("[{}] {} json -> {}", handle.id, self.name, redact_url_for_log(url))

            async def work(transport: Transport, token: CancellationToken) -> None:
                response = await transport.post(url, content=payload.encode("utf-8"), headers=headers, token=token)
                token.raise_if_cancelled(handle.id)
                self._raise_for_response(response)

                obj = response.json()
                json_text = response.text
                if await self._invoke(lambda: cb.populate_dataset(obj)):
                    await self._invoke(lambda: cb.on_success(json_text))
                else:
                    raise AIError(REQUEST_FAILED)

            return work

        return self._launch(handle, callback, build)

    def _process_stream(
        self,
        endpoint: str,
        params: dict[str, Any] | None,
        callback: StreamCallback | None,
        input_file: str | Path | None,
    ) -> str | None:
        def check() -> None:
            self._check_params()
            if not (endpoint or "").strip():
                raise AIValidationError(MISSING_ENDPOINT)
            if input_file and not Path(input_file).is_file():
                raise AIValidationError(f"Input file not found: {input_file}")

        handle = self._begin(callback, check)
        if handle is None:
            return None

        cb = callback or StreamCallback()

        def build() -> DriverWork:
            url = self._stream_url(endpoint)
            fields = dict(params or {})
            headers = self._auth_headers()
            logger.info("[{}] {} stream -> {}", handle.id, self.name, redact_url_for_log(url))

            async def work(transport: Transport, token: CancellationToken) -> None:
                request_kwargs: dict[str, Any]
                if input_file:
                    path = Path(input_file)
                    data = {"model": self.params.model}
                    data.update({key: _form_value(value) for key, value in fields.items()})
                    request_kwargs = {
                        "files": {"file": (path.name, path.read_bytes())},
                        "data": data,
                    }
                else:
                    request_kwargs = {"json": fields}

                buffer = io.BytesIO()
                async with transport.stream("POST", url, headers=headers, token=token, **request_kwargs) as response:
                    token.raise_if_cancelled(handle.id)
                    await self._raise_for_stream(response)
                    async for chunk in response.aiter_bytes():
                        buffer.write(chunk)
                        await self._invoke(lambda c=chunk: cb.on_partial(c))

                token.raise_if_cancelled(handle.id)
                buffer.seek(0)
                await self._invoke(lambda: cb.on_success(buffer))

            return work

        return self._launch(handle, callback, build)

    # ------------------------------------------------------------------
    # 模型列表与连接测试
    # ------------------------------------------------------------------

    async def list_models(self) -> list[str]:
        """获取可用模型列表，失败时抛出 AIError"""
        self._check_params(require_model=False)

        url = self._models_url()
        transport = self.engine.http_config.create_transport(timeout_ms=self.params.timeout)
        try:
            response = await transport.get(url, headers=self._auth_headers())
        finally:
            await transport.aclose()

        self._raise_for_response(response)
        models = self._parse_models(response.json())
        logger.info("{} 加载模型 {} 个", self.name, len(models))

        events = self.events
        if events is not None:
            await self._invoke(lambda: events.on_models_loaded(models))
        return models

    async def test_connection(self) -> tuple[bool, str]:
        """通过拉取模型列表测试连接"""
        try:
            models = await self.list_models()
        except AIError as e:
            logger.warning("{} 连接测试失败: {}", self.name, e.message)
            return False, e.message

        if models:
            return True, MODELS_FOUND % len(models)
        return False, CONNECTION_FAILED


class StreamingChatDriver(ProviderDriver):
    """
    支持流式对话的驱动

    params.stream 为真时以 Accept: text/event-stream 发起请求，
    每个增量依次投递到 callback.on_partial 与 events.on_partial，结束后拼接为完整回复。
    """

    @abstractmethod
    def _stream_deltas(self, response: StreamingResponse) -> AsyncIterator[str]:
        """从流式响应中逐个产出增量文本"""

    def _streams_chat(self) -> bool:
        return bool(self.params.stream)

    async def _run_chat(self, transport: Transport, token: CancellationToken, exchange: ChatExchange) -> None:
        if exchange.stream:
            await self._run_streamed_chat(transport, token, exchange)
        else:
            await self._run_standard_chat(transport, token, exchange)

    async def _run_streamed_chat(
        self,
        transport: Transport,
        token: CancellationToken,
        exchange: ChatExchange,
    ) -> None:
        cb = exchange.callback
        await self._invoke(cb.before_response)
        events = self.events
        parts: list[str] = []
        stream_headers = {**exchange.headers, "Accept": "text/event-stream"}
        async with transport.stream(
            "POST", exchange.url, json=exchange.body, headers=stream_headers, token=token
        ) as response:
            token.raise_if_cancelled(exchange.request_id)
            await self._invoke(cb.after_response)
            await self._raise_for_stream(response)

            async for delta in self._stream_deltas(response):
                if not delta:
                    continue
                parts.append(delta)
                await self._invoke(lambda d=delta: cb.on_partial(d))
                if events is not None:
                    await self._invoke(lambda d=delta: events.on_partial(d))

        token.raise_if_cancelled(exchange.request_id)
        text = "".join(parts)
        await self._invoke(lambda: cb.on_response(text))
        await self._notify_chat_success(exchange.request_id, text, "")


def _form_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


__all__ = ["ChatExchange", "DriverWork", "ProviderDriver", "StreamingChatDriver"]
