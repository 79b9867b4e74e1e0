"""
Ollama 本地模型驱动

- 对话: POST {base}/generate，无需认证
- 流式: NDJSON，每行一个 {"response": "...", "done": false}，done 为 true 时结束
- 模型列表: GET {base}/tags -> models[].name
- 模型管理: show / create / delete / pull / push，直接返回或抛出 AIError，不经过调度器
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from aiunify.clients.http_client import StreamingResponse, TransportResponse
from aiunify.core.constants import MISSING_MODELFILE, MISSING_NAME
from aiunify.core.enums import Capability, ProviderKind
from aiunify.core.exceptions import AIValidationError
from aiunify.core.logger import logger
from aiunify.drivers.base import StreamingChatDriver
from aiunify.models.ollama import (
    OllamaCreateModelRequest,
    OllamaGenerateRequest,
    OllamaModelNameRequest,
)
from aiunify.models.params import BaseModelWithExtras, OllamaParams
from aiunify.services.provider.transport import build_url, redact_url_for_log


class OllamaDriver(StreamingChatDriver):
    kind = ProviderKind.OLLAMA
    name = "Ollama"
    api_name = "Ollama API"
    description = "Ollama local model driver"
    capabilities = frozenset({Capability.CHAT})
    params_class = OllamaParams
    requires_api_key = False

    params: OllamaParams

    def _build_chat_request(self, prompt: str, stream: bool) -> tuple[str, dict[str, Any]]:
        params = self.params
        request = OllamaGenerateRequest(
            model=params.model,
            prompt=prompt,
            stream=stream,
            format=params.format or None,
            system=params.system or None,
            template=params.template or None,
            raw=params.raw or None,
            keep_alive=params.keep_alive or None,
            options=params.options or None,
        )
        url = build_url(params.base_url, params.endpoint_generate)
        return url, request.model_dump(exclude_none=True)

    def _extract_chat_text(self, obj: Any) -> str:
        if not isinstance(obj, dict):
            return ""
        text = obj.get("response")
        if isinstance(text, str) and text:
            return text
        # /api/chat 形态
        message = obj.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        return ""

    async def _stream_deltas(self, response: StreamingResponse) -> AsyncIterator[str]:
        async for chunk in self._iter_ndjson(response):
            text = chunk.get("response")
            if isinstance(text, str) and text:
                yield text
            if chunk.get("done"):
                return

    def _models_url(self) -> str:
        return build_url(self.params.base_url, self.params.endpoint_models)

    def _parse_models(self, obj: Any) -> list[str]:
        models = obj.get("models") if isinstance(obj, dict) else None
        if not isinstance(models, list):
            return []
        return [item["name"] for item in models if isinstance(item, dict) and isinstance(item.get("name"), str)]

    # ------------------------------------------------------------------
    # 模型管理
    # ------------------------------------------------------------------

    async def show_model(self, name: str) -> dict[str, Any]:
        """返回 /api/show 的模型信息（modelfile、parameters、details 等）"""
        _require_name(name)
        response = await self._model_command("POST", self.params.endpoint_show, OllamaModelNameRequest(name=name))
        info = response.json()
        return info if isinstance(info, dict) else {}

    async def create_model(self, name: str, modelfile: str) -> None:
        _require_name(name)
        if not (modelfile or "").strip():
            raise AIValidationError(MISSING_MODELFILE)
        request = OllamaCreateModelRequest(name=name, modelfile=modelfile)
        await self._model_command("POST", self.params.endpoint_create, request)

    async def delete_model(self, name: str) -> None:
        _require_name(name)
        await self._model_command("DELETE", self.params.endpoint_delete, OllamaModelNameRequest(name=name))

    async def pull_model(self, name: str) -> None:
        """从模型库拉取，等待完成后返回"""
        _require_name(name)
        request = OllamaModelNameRequest(name=name, stream=False)
        await self._model_command("POST", self.params.endpoint_pull, request)

    async def push_model(self, name: str) -> None:
        _require_name(name)
        request = OllamaModelNameRequest(name=name, stream=False)
        await self._model_command("POST", self.params.endpoint_push, request)

    async def _model_command(self, method: str, endpoint: str, request: BaseModelWithExtras) -> TransportResponse:
        """
        执行一次模型管理请求

        与对话不同，2xx 空响应体（如 /api/delete）也视为成功；非 2xx 抛出分类后的异常。
        """
        self._check_params(require_model=False)

        url = build_url(self.params.base_url, endpoint)
        logger.info("Ollama {} {}", method, redact_url_for_log(url))
        transport = self.engine.http_config.create_transport(timeout_ms=self.params.timeout)
        try:
            response = await transport.request(method, url, json=request.model_dump(exclude_none=True))
        finally:
            await transport.aclose()

        if not 200 <= response.status_code <= 299:
            self._raise_for_response(response)
        return response


def _require_name(name: str) -> None:
    if not (name or "").strip():
        raise AIValidationError(MISSING_NAME)


__all__ = ["OllamaDriver"]
