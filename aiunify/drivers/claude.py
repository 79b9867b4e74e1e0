"""
Anthropic Claude 驱动

Messages API:
- 对话: POST {base}/messages，x-api-key + anthropic-version
- 流式: SSE，content_block_delta 事件中的 delta.text
- 模型列表: GET {base}/models -> data[].id
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from aiunify.clients.http_client import StreamingResponse
from aiunify.core.enums import Capability, ProviderKind
from aiunify.drivers.base import StreamingChatDriver
from aiunify.models.callbacks import JSONCallback
from aiunify.models.claude import ClaudeMessage, ClaudeMessagesRequest
from aiunify.models.params import ClaudeParams
from aiunify.services.provider.transport import build_auth_headers, build_url


class ClaudeDriver(StreamingChatDriver):
    kind = ProviderKind.CLAUDE
    name = "Claude"
    api_name = "Claude API"
    description = "Anthropic Claude driver"
    capabilities = frozenset({Capability.CHAT, Capability.JSON})
    params_class = ClaudeParams

    params: ClaudeParams

    def _auth_headers(self) -> dict[str, str]:
        return build_auth_headers(
            self.kind,
            self.params.api_key,
            anthropic_version=self.params.anthropic_version,
        )

    def _build_chat_request(self, prompt: str, stream: bool) -> tuple[str, dict[str, Any]]:
        params = self.params
        request = ClaudeMessagesRequest(
            model=params.model,
            max_tokens=params.max_tokens,
            messages=[ClaudeMessage(role="user", content=prompt)],
            system=params.system or None,
            temperature=params.temperature,
            top_p=params.top_p,
            top_k=params.top_k,
            stream=True if stream else None,
        )
        url = build_url(params.base_url, params.endpoint_messages)
        return url, request.model_dump(exclude_none=True)

    def _extract_chat_text(self, obj: Any) -> str:
        content = obj.get("content") if isinstance(obj, dict) else None
        if not isinstance(content, list):
            return ""
        # 只拼接 text 块，tool_use / thinking 等块跳过
        texts = [
            block["text"]
            for block in content
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        ]
        return "".join(texts).strip()

    async def _stream_deltas(self, response: StreamingResponse) -> AsyncIterator[str]:
        async for event in self._iter_sse_json(response):
            event_type = event.get("type")
            if event_type == "message_stop":
                return
            if event_type != "content_block_delta":
                continue
            delta = event.get("delta")
            if isinstance(delta, dict) and isinstance(delta.get("text"), str):
                yield delta["text"]

    def _models_url(self) -> str:
        return build_url(self.params.base_url, self.params.endpoint_models)

    def _parse_models(self, obj: Any) -> list[str]:
        data = obj.get("data") if isinstance(obj, dict) else None
        if not isinstance(data, list):
            return []
        return [item["id"] for item in data if isinstance(item, dict) and isinstance(item.get("id"), str)]

    def execute_json(
        self,
        endpoint: str,
        params: str | dict[str, Any],
        callback: JSONCallback | None = None,
    ) -> str | None:
        return self._execute_json(endpoint, params, callback)


__all__ = ["ClaudeDriver"]
