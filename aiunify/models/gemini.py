"""
Google Gemini API 请求模型

Gemini 通过 URL 中的动作区分操作（:generateContent / :predict），请求体不含 model。
"""

from typing import Any

from pydantic import Field

from aiunify.models.params import BaseModelWithExtras, ImageRequest


class GeminiContent(BaseModelWithExtras):
    """
    Gemini 消息内容

    parts 接受任意字典列表（text / inlineData / fileData ...）
    """

    role: str | None = None
    parts: list[dict[str, Any]]


class GeminiGenerationConfig(BaseModelWithExtras):
    max_output_tokens: int | None = Field(default=None, alias="maxOutputTokens")
    temperature: float | None = None
    top_p: float | None = Field(default=None, alias="topP")
    top_k: int | None = Field(default=None, alias="topK")
    response_mime_type: str | None = Field(default=None, alias="responseMimeType")
    response_modalities: list[str] | None = Field(default=None, alias="responseModalities")


class GeminiRequest(BaseModelWithExtras):
    """generateContent 请求"""

    contents: list[GeminiContent]
    system_instruction: dict[str, Any] | None = Field(default=None, alias="systemInstruction")
    generation_config: GeminiGenerationConfig | None = Field(default=None, alias="generationConfig")
    safety_settings: list[dict[str, Any]] | None = Field(default=None, alias="safetySettings")


class GeminiImageRequest(ImageRequest):
    """图像生成请求（Imagen 模型走 :predict，其余走 :generateContent）"""

    sample_count: int | None = None
    aspect_ratio: str | None = None
    sample_image_size: str | None = None
    person_generation: str | None = None


class GeminiPredictRequest(BaseModelWithExtras):
    """Imagen :predict 请求"""

    instances: list[dict[str, Any]]
    parameters: dict[str, Any] = Field(default_factory=dict)
