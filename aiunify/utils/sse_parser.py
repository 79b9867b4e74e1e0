"""
流式响应的行切分与 SSE 事件解析

- LineDecoder: 把任意边界的字节块还原为完整文本行（UTF-8 多字节字符可跨块）
- SSEEventParser: 逐行喂入，输出完整的 SSE 事件
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass

DONE_MARKER = "[DONE]"


class LineDecoder:
    """增量行解码器，feed() 返回本次新完成的行（不含换行符）"""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        text = self._pending + self._decoder.decode(chunk)
        # 统一 \r\n 与 \r，末尾单独的 \r 可能是 \r\n 的前半，留到下一块
        if text.endswith("\r"):
            text, carry = text[:-1], "\r"
        else:
            carry = ""
        text = text.replace("\r\n", "\n").replace("\r", "\n")

        lines = text.split("\n")
        self._pending = lines.pop() + carry
        return lines

    def flush(self) -> list[str]:
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        text = text.rstrip("\r")
        return [text] if text else []


@dataclass
class SSEEvent:
    """一个完整的 SSE 事件"""

    data: str
    event: str | None = None
    id: str | None = None
    retry: str | None = None

    @property
    def is_done(self) -> bool:
        return self.data.strip() == DONE_MARKER


class SSEEventParser:
    """轻量SSE解析器，按行接收输入并输出完整事件。"""

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._event: str | None = None
        self._data: list[str] = []
        self._id: str | None = None
        self._retry: str | None = None

    def _finalize(self) -> SSEEvent | None:
        if not self._data:
            self._reset()
            return None
        event = SSEEvent(
            data="\n".join(self._data),
            event=self._event,
            id=self._id,
            retry=self._retry,
        )
        self._reset()
        return event

    def feed_line(self, line: str | None) -> list[SSEEvent]:
        """处理单行SSE文本，返回所有完成的事件。"""
        normalized = (line or "").rstrip("\r")
        events: list[SSEEvent] = []

        # 空行表示事件结束
        if normalized == "":
            event = self._finalize()
            if event:
                events.append(event)
            return events

        # 注释行
        if normalized.startswith(":"):
            return events

        name, sep, value = normalized.partition(":")
        if not sep:
            # 部分实现缺少 data: 前缀，视作数据
            self._data.append(normalized)
            return events
        if value.startswith(" "):
            value = value[1:]

        if name == "data":
            # 没有空行分隔的连续 data 行：每行单独成事件（OpenAI/Claude 均为单行 JSON）
            if self._data:
                event = self._finalize()
                if event:
                    events.append(event)
            self._data.append(value)
        elif name == "event":
            self._event = value.strip() or None
        elif name == "id":
            self._id = value.strip() or None
        elif name == "retry":
            self._retry = value.strip() or None

        return events

    def flush(self) -> list[SSEEvent]:
        """在流结束时调用，输出尚未完成的事件。"""
        event = self._finalize()
        return [event] if event else []


__all__ = ["DONE_MARKER", "LineDecoder", "SSEEvent", "SSEEventParser"]
