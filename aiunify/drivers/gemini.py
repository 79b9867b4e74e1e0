"""
Google Gemini 驱动

认证通过 URL 查询参数 ?key=...，操作通过模型名后的动作区分：
- 对话 / JSON: {base}/{model}:generateContent
- Imagen 图像: {base}/{model}:predict
- 其余模型的图像: {base}/{model}:generateContent（responseModalities 含 IMAGE）
- 模型列表: GET {base}?key=... -> models[].name（去掉 "models/" 前缀）

Gemini 不走流式对话，params.stream 被忽略。
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from aiunify.clients.http_client import Transport
from aiunify.core.enums import Capability, ProviderKind
from aiunify.core.logger import logger
from aiunify.drivers.base import DriverWork, ProviderDriver
from aiunify.models.callbacks import ImageCallback, JSONCallback, StreamCallback
from aiunify.models.gemini import (
    GeminiContent,
    GeminiGenerationConfig,
    GeminiImageRequest,
    GeminiPredictRequest,
    GeminiRequest,
)
from aiunify.models.params import GeminiParams, ImageRequest
from aiunify.models.results import ImageResult
from aiunify.services.provider.transport import build_url, redact_url_for_log
from aiunify.services.tracking import CancellationToken

_MODELS_PREFIX = "models/"
_DEFAULT_IMAGE_MIME = "image/png"


class GeminiDriver(ProviderDriver):
    """Gemini generateContent / Imagen predict 驱动"""

    kind = ProviderKind.GEMINI
    name = "Gemini"
    api_name = "Gemini API"
    description = "Google Gemini driver"
    capabilities = frozenset({Capability.CHAT, Capability.IMAGE, Capability.JSON, Capability.STREAM})
    params_class = GeminiParams

    params: GeminiParams

    def _action_url(self, model: str, action: str) -> str:
        return build_url(self.params.base_url, f"{model}:{action}", f"?key={self.params.api_key}")

    def _build_chat_request(self, prompt: str, stream: bool) -> tuple[str, dict[str, Any]]:
        params = self.params
        generation_config = GeminiGenerationConfig(
            max_output_tokens=params.max_output_tokens,
            temperature=params.temperature,
            top_p=params.top_p,
            top_k=params.top_k,
        )
        request = GeminiRequest(
            contents=[GeminiContent(role="user", parts=[{"text": prompt}])],
            generation_config=generation_config,
        )
        body = request.model_dump(by_alias=True, exclude_none=True)
        # 全部为空时不发送 generationConfig
        if not body.get("generationConfig"):
            body.pop("generationConfig", None)

        return self._action_url(params.model, params.action_generate), body

    def _extract_chat_text(self, obj: Any) -> str:
        candidates = obj.get("candidates") if isinstance(obj, dict) else None
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return ""
        content = candidates[0].get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
            return ""
        text = parts[0].get("text")
        return text if isinstance(text, str) else ""

    def _models_url(self) -> str:
        return build_url(self.params.base_url, f"?key={self.params.api_key}")

    def _parse_models(self, obj: Any) -> list[str]:
        models = obj.get("models") if isinstance(obj, dict) else None
        if not isinstance(models, list):
            return []

        names: list[str] = []
        for item in models:
            name = item.get("name") if isinstance(item, dict) else None
            if not isinstance(name, str) or not name:
                continue
            names.append(name.removeprefix(_MODELS_PREFIX))
        return names

    def _json_url(self, endpoint: str) -> str:
        # 未指定 endpoint 时调用当前模型的 generateContent
        if not (endpoint or "").strip():
            return self._action_url(self.params.model, self.params.action_generate)
        return build_url(self.params.base_url, endpoint, f"?key={self.params.api_key}")

    def _stream_url(self, endpoint: str) -> str:
        return build_url(self.params.base_url, endpoint, f"?key={self.params.api_key}")

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
            model = request.model or self.params.model
            if _is_imagen_model(model):
                url = self._action_url(model, self.params.action_predict)
                body = self._build_predict_body(request)
                parse = _parse_predictions
            else:
                url = self._action_url(model, self.params.action_generate)
                body = GeminiRequest(
                    contents=[GeminiContent(role="user", parts=[{"text": request.prompt}])],
                    generation_config=GeminiGenerationConfig(response_modalities=["TEXT", "IMAGE"]),
                ).model_dump(by_alias=True, exclude_none=True)
                parse = _parse_inline_images

            headers = {"Content-Type": "application/json"}
            logger.info("[{}] Gemini image -> {}", handle.id, redact_url_for_log(url))

            async def work(transport: Transport, token: CancellationToken) -> None:
                response = await transport.post(url, json=body, headers=headers, token=token)
                token.raise_if_cancelled(handle.id)
                self._raise_for_response(response)
                await self._deliver_images(cb, parse(response.json()), response.text)

            return work

        return self._launch(handle, callback, build)

    def _build_predict_body(self, request: ImageRequest) -> dict[str, Any]:
        params = self.params
        if isinstance(request, GeminiImageRequest):
            sample_count = request.sample_count or params.sample_count
            aspect_ratio = request.aspect_ratio or params.aspect_ratio
            sample_image_size = request.sample_image_size or params.sample_image_size
            person_generation = request.person_generation or params.person_generation
        else:
            sample_count = params.sample_count
            aspect_ratio = params.aspect_ratio
            sample_image_size = params.sample_image_size
            person_generation = params.person_generation

        parameters: dict[str, Any] = {"sampleCount": sample_count}
        if aspect_ratio:
            parameters["aspectRatio"] = aspect_ratio
        if sample_image_size:
            parameters["sampleImageSize"] = sample_image_size
        if person_generation:
            parameters["personGeneration"] = person_generation

        return GeminiPredictRequest(
            instances=[{"prompt": request.prompt}],
            parameters=parameters,
        ).model_dump(exclude_none=True)

    def execute_json(
        self,
        endpoint: str,
        params: str | dict[str, Any],
        callback: JSONCallback | None = None,
    ) -> str | None:
        return self._execute_json(endpoint, params, callback, require_endpoint=False)

    def process_stream(
        self,
        endpoint: str,
        params: dict[str, Any] | None,
        callback: StreamCallback | None = None,
        input_file: str | Path | None = None,
    ) -> str | None:
        return self._process_stream(endpoint, params, callback, input_file)


def _is_imagen_model(model: str) -> bool:
    return "imagen" in (model or "").lower()


def _parse_predictions(obj: Any) -> list[ImageResult]:
    """
    解析 Imagen :predict 响应

    兼容三种形态:
    - predictions[].bytesBase64Encoded + mimeType
    - predictions[].image.imageBytes
    - generatedImages[].image.imageBytes
    """
    if not isinstance(obj, dict):
        return []

    results: list[ImageResult] = []
    predictions = obj.get("predictions")
    if isinstance(predictions, list):
        for item in predictions:
            if not isinstance(item, dict):
                continue
            data = item.get("bytesBase64Encoded")
            mime_type = item.get("mimeType")
            if not data and isinstance(item.get("image"), dict):
                data = item["image"].get("imageBytes")
                mime_type = mime_type or item["image"].get("mimeType")
            if data:
                results.append(ImageResult(data=data, mime_type=mime_type or _DEFAULT_IMAGE_MIME))

    generated = obj.get("generatedImages")
    if isinstance(generated, list):
        for item in generated:
            image = item.get("image") if isinstance(item, dict) else None
            if not isinstance(image, dict) or not image.get("imageBytes"):
                continue
            results.append(
                ImageResult(
                    data=image["imageBytes"],
                    mime_type=image.get("mimeType") or _DEFAULT_IMAGE_MIME,
                )
            )
    return results


def _parse_inline_images(obj: Any) -> list[ImageResult]:
    """解析 generateContent 响应中的 inlineData（snake_case 亦可）"""
    candidates = obj.get("candidates") if isinstance(obj, dict) else None
    if not isinstance(candidates, list):
        return []

    results: list[ImageResult] = []
    for candidate in candidates:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        for part in parts:
            if not isinstance(part, dict):
                continue
            inline = part.get("inlineData") or part.get("inline_data")
            if not isinstance(inline, dict) or not inline.get("data"):
                continue
            mime_type = inline.get("mimeType") or inline.get("mime_type") or _DEFAULT_IMAGE_MIME
            results.append(ImageResult(data=inline["data"], mime_type=mime_type))
    return results


__all__ = ["GeminiDriver"]
