"""
OpenAI 驱动

- 对话: POST {base}/chat/completions，流式为 SSE（choices[0].delta.content，[DONE] 结束）
- 图像: POST {base}/images/generations，data[] 中的 b64_json / url / revised_prompt
- 结构化 JSON 与文件流: 直接 POST 到调用方给出的 endpoint
- 模型列表: GET {base}/models -> data[].id
- 内容审核: POST {base}/moderations -> results[]
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from aiunify.clients.http_client import StreamingResponse, Transport
from aiunify.core.constants import MISSING_INPUT, NO_MESSAGE_CONTENT
from aiunify.core.enums import Capability, ProviderKind
from aiunify.core.exceptions import AIError, AIValidationError
from aiunify.core.logger import logger
from aiunify.drivers.base import DriverWork, StreamingChatDriver
from aiunify.models.callbacks import ImageCallback, JSONCallback, StreamCallback
from aiunify.models.openai import (
    OpenAIChatRequest,
    OpenAIImageRequest,
    OpenAIMessage,
    OpenAIModerationRequest,
)
from aiunify.models.params import ImageRequest, OpenAIParams
from aiunify.models.results import ImageResult
from aiunify.services.provider.transport import build_auth_headers, build_url, redact_url_for_log
from aiunify.services.tracking import CancellationToken


class OpenAIDriver(StreamingChatDriver):
    """OpenAI Chat Completions / Images 驱动"""

    kind = ProviderKind.OPENAI
    name = "OpenAI"
    api_name = "OpenAI API"
    description = "OpenAI driver"
    capabilities = frozenset({Capability.CHAT, Capability.IMAGE, Capability.JSON, Capability.STREAM})
    params_class = OpenAIParams

    params: OpenAIParams

    def _auth_headers(self) -> dict[str, str]:
        return build_auth_headers(self.kind, self.params.api_key)

    def _build_chat_request(self, prompt: str, stream: bool) -> tuple[str, dict[str, Any]]:
        params = self.params
        request = OpenAIChatRequest(
            model=params.model,
            messages=[OpenAIMessage(role="user", content=prompt)],
            temperature=params.temperature,
            top_p=params.top_p,
            n=params.n,
            presence_penalty=params.presence_penalty,
            frequency_penalty=params.frequency_penalty,
            response_format=params.response_format,
            reasoning_effort=params.reasoning_effort,
            verbosity=params.verbosity,
            stream=True if stream else None,
        )
        if params.use_max_completion_tokens:
            request.max_completion_tokens = params.max_tokens
        else:
            request.max_tokens = params.max_tokens

        url = build_url(params.base_url, params.endpoint_chat)
        return url, request.model_dump(exclude_none=True)

    def _extract_chat_text(self, obj: Any) -> str:
        if not isinstance(obj, dict):
            return ""
        choices = obj.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message")
        if not isinstance(message, dict):
            return ""
        content = message.get("content")
        return content if isinstance(content, str) else ""

    async def _stream_deltas(self, response: StreamingResponse) -> AsyncIterator[str]:
        async for chunk in self._iter_sse_json(response):
            choices = chunk.get("choices")
            # 末尾的 usage chunk 没有 choices
            if not isinstance(choices, list) or not choices:
                continue
            delta = choices[0].get("delta") if isinstance(choices[0], dict) else None
            if isinstance(delta, dict):
                content = delta.get("content")
                if isinstance(content, str):
                    yield content

    def _models_url(self) -> str:
        return build_url(self.params.base_url, self.params.endpoint_models)

    def _parse_models(self, obj: Any) -> list[str]:
        data = obj.get("data") if isinstance(obj, dict) else None
        if not isinstance(data, list):
            return []
        return [item["id"] for item in data if isinstance(item, dict) and isinstance(item.get("id"), str)]

    # ------------------------------------------------------------------
    # 图像
    # ------------------------------------------------------------------

    def generate_image(
        self,
        request: ImageRequest | None,
        callback: ImageCallback | None = None,
    ) -> str | None:
        handle = self._begin(callback, lambda: self._check_image_request(request))
        if handle is None or request is None:
            return None

        cb = callback or ImageCallback()

        def build() -> DriverWork:
            if isinstance(request, OpenAIImageRequest):
                image_request = request.model_copy()
            else:
                image_request = OpenAIImageRequest.model_validate(request.model_dump())
            if not image_request.model:
                image_request.model = self.params.model

            url = build_url(self.params.base_url, self.params.endpoint_image)
            body = image_request.model_dump(exclude_none=True)
            headers = {"Content-Type": "application/json", **self._auth_headers()}
            logger.info("[{}] OpenAI image -> {}", handle.id, redact_url_for_log(url))

            async def work(transport: Transport, token: CancellationToken) -> None:
                response = await transport.post(url, json=body, headers=headers, token=token)
                token.raise_if_cancelled(handle.id)
                self._raise_for_response(response)
                images = _parse_image_results(response.json())
                await self._deliver_images(cb, images, response.text)

            return work

        return self._launch(handle, callback, build)

    # ------------------------------------------------------------------
    # 内容审核
    # ------------------------------------------------------------------

    async def moderate(self, text: str | list[str], model: str | None = None) -> list[dict[str, Any]]:
        """
        调用 /moderations 审核文本

        Args:
            text: 单条文本或文本列表
            model: 审核模型，None 时使用 params.moderation_model

        Returns:
            results 数组，每条输入一项（flagged / categories / category_scores）
        """
        inputs = [text] if isinstance(text, str) else list(text)
        if not any((item or "").strip() for item in inputs):
            raise AIValidationError(MISSING_INPUT)
        self._check_params(require_model=False)

        request = OpenAIModerationRequest(input=text, model=model or self.params.moderation_model or None)
        url = build_url(self.params.base_url, self.params.endpoint_moderate)
        headers = {"Content-Type": "application/json", **self._auth_headers()}
        logger.info("OpenAI moderate -> {}", redact_url_for_log(url))

        transport = self.engine.http_config.create_transport(timeout_ms=self.params.timeout)
        try:
            response = await transport.post(url, json=request.model_dump(exclude_none=True), headers=headers)
        finally:
            await transport.aclose()

        self._raise_for_response(response)
        obj = response.json()
        results = obj.get("results") if isinstance(obj, dict) else None
        if not isinstance(results, list):
            raise AIError(NO_MESSAGE_CONTENT)
        entries = [item for item in results if isinstance(item, dict)]

        events = self.events
        if events is not None:
            await self._invoke(lambda: events.on_moderation(entries))
        return entries

    def execute_json(
        self,
        endpoint: str,
        params: str | dict[str, Any],
        callback: JSONCallback | None = None,
    ) -> str | None:
        return self._execute_json(endpoint, params, callback)

    def process_stream(
        self,
        endpoint: str,
        params: dict[str, Any] | None,
        callback: StreamCallback | None = None,
        input_file: str | Path | None = None,
    ) -> str | None:
        return self._process_stream(endpoint, params, callback, input_file)


def _parse_image_results(obj: Any) -> list[ImageResult]:
    data = obj.get("data") if isinstance(obj, dict) else None
    if not isinstance(data, list):
        return []

    results: list[ImageResult] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        results.append(
            ImageResult(
                data=item.get("b64_json") or None,
                url=item.get("url") or None,
                revised_prompt=item.get("revised_prompt") or None,
            )
        )
    return results


__all__ = ["OpenAIDriver"]
