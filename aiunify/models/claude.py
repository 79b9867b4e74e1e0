from typing import Any, Literal

from aiunify.models.params import BaseModelWithExtras


class ClaudeMessage(BaseModelWithExtras):
    role: Literal["user", "assistant"]
    # 接受字符串或任意内容块列表
    content: str | list[dict[str, Any]]


class ClaudeMessagesRequest(BaseModelWithExtras):
    model: str
    max_tokens: int
    messages: list[ClaudeMessage]
    system: str | list[dict[str, Any]] | None = None
    stop_sequences: list[str] | None = None
    stream: bool | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    metadata: dict[str, Any] | None = None
