"""
Ollama API 请求模型
"""

from typing import Any

from aiunify.models.params import BaseModelWithExtras


class OllamaGenerateRequest(BaseModelWithExtras):
    """/api/generate 请求"""

    model: str
    prompt: str
    stream: bool = False
    format: str | dict[str, Any] | None = None
    system: str | None = None
    template: str | None = None
    raw: bool | None = None
    keep_alive: str | None = None
    options: dict[str, Any] | None = None
    images: list[str] | None = None  # base64
    context: list[int] | None = None


class OllamaModelNameRequest(BaseModelWithExtras):
    """/api/show、/api/delete、/api/pull、/api/push 请求"""

    name: str
    stream: bool | None = None


class OllamaCreateModelRequest(BaseModelWithExtras):
    """/api/create 请求"""

    name: str
    modelfile: str
    stream: bool = False
