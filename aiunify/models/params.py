"""
驱动参数模型

每个供应商一个参数模型，带有供应商默认值。
timeout 单位为毫秒，0 表示使用全局配置（aiunify.config）。
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BaseModelWithExtras(BaseModel):
    """允许额外字段，新参数可以直接透传"""

    model_config = ConfigDict(extra="allow", validate_assignment=True, populate_by_name=True)


class ImageRequest(BaseModelWithExtras):
    """图像生成请求的最小契约，各供应商在此基础上扩展"""

    prompt: str
    model: str | None = None


class DriverParams(BaseModelWithExtras):
    """所有驱动共有的参数"""

    base_url: str = ""
    api_key: str = ""
    model: str = ""
    timeout: int = Field(default=0, ge=0)
    stream: bool = False


class OpenAIParams(DriverParams):
    """OpenAI 参数"""

    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-5"
    max_tokens: int = 1024
    # 推理模型（gpt-5 / o 系列）使用 max_completion_tokens
    use_max_completion_tokens: bool = False
    temperature: float | None = None
    top_p: float | None = None
    n: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    response_format: dict[str, Any] | None = None
    reasoning_effort: str | None = None  # minimal, low, medium, high
    verbosity: str | None = None  # low, medium, high
    endpoint_chat: str = "chat/completions"
    endpoint_models: str = "models"
    endpoint_image: str = "images/generations"
    endpoint_moderate: str = "moderations"
    moderation_model: str = "omni-moderation-latest"


class ClaudeParams(DriverParams):
    """Anthropic Claude 参数"""

    base_url: str = "https://api.anthropic.com/v1"
    model: str = "claude-sonnet-4-latest"
    max_tokens: int = 1024
    anthropic_version: str = "2023-06-01"
    system: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    endpoint_messages: str = "messages"
    endpoint_models: str = "models"


class GeminiParams(DriverParams):
    """Google Gemini 参数（API Key 通过 ?key= 查询参数传递）"""

    base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    model: str = "gemini-2.0-flash"
    max_output_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    # Imagen predict 参数
    sample_count: int = 1
    aspect_ratio: str = ""
    sample_image_size: str = ""
    person_generation: str = "allow_adult"
    action_generate: str = "generateContent"
    action_predict: str = "predict"


class OllamaParams(DriverParams):
    """本地 Ollama 参数（无需 API Key）"""

    base_url: str = "http://localhost:11434/api"
    model: str = "llama3.1:8b"
    system: str | None = None
    template: str | None = None
    raw: bool = False
    format: str | dict[str, Any] | None = None
    keep_alive: str | None = None
    options: dict[str, Any] | None = None
    endpoint_generate: str = "generate"
    endpoint_chat: str = "chat"
    endpoint_models: str = "tags"
    endpoint_create: str = "create"
    endpoint_delete: str = "delete"
    endpoint_pull: str = "pull"
    endpoint_push: str = "push"
    endpoint_show: str = "show"


__all__ = [
    "BaseModelWithExtras",
    "DriverParams",
    "ImageRequest",
    "OpenAIParams",
    "ClaudeParams",
    "GeminiParams",
    "OllamaParams",
]
