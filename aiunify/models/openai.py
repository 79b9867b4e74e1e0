"""
OpenAI API 数据模型定义
"""

from typing import Any

from aiunify.models.params import BaseModelWithExtras, ImageRequest


class OpenAIMessage(BaseModelWithExtras):
    """OpenAI消息模型"""

    role: str
    content: str | list[dict[str, Any]] | None = None
    name: str | None = None


class OpenAIChatRequest(BaseModelWithExtras):
    """OpenAI Chat Completions 请求模型"""

    model: str
    messages: list[OpenAIMessage]
    max_tokens: int | None = None
    max_completion_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    stream: bool | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    response_format: dict[str, Any] | None = None
    reasoning_effort: str | None = None
    verbosity: str | None = None


class OpenAIImageRequest(ImageRequest):
    """OpenAI 图像生成请求"""

    n: int | None = None
    size: str | None = None  # 如 "1024x1024"
    quality: str | None = None
    style: str | None = None
    response_format: str | None = None  # "b64_json" 或 "url"
    user: str | None = None


class OpenAIModerationRequest(BaseModelWithExtras):
    """/moderations 请求"""

    input: str | list[str]
    model: str | None = None
