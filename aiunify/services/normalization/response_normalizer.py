"""
响应归一化器 - 在形态各异的供应商响应中定位表格数据

目标：无论响应是
- 已经是对象数组
- 在未知深度包裹着对象数组的对象
- 包含代码块/内嵌 JSON 的自由文本（文本内容本身是上面两种之一）
- 原始值数组
都输出一个规范的对象数组。

查找顺序：
1. 按供应商已知的信封路径收集文本字段，逐个尝试提取
2. 对整个响应根做深度优先查找
3. 把整个根对象包装为单行

返回 NormalizedResult(array, inner_root, owns_array)：
- array: 行数组
- inner_root: 从文本中解析出的二级根（array 可能是它的视图）
- owns_array: array 是否为新建结构（包装产生），False 表示是已有结构的视图
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, NamedTuple

from aiunify.core.enums import ProviderKind
from aiunify.core.logger import logger
from aiunify.services.normalization.text_json import (
    deep_find_array_of_objects,
    is_array_of_objects,
    text_to_json,
    wrap_primitives,
)

# 顶层数组为原始值时使用的包装键
DEFAULT_WRAP_KEY = "value"


class NormalizedResult(NamedTuple):
    """归一化结果三元组"""

    array: list[dict[str, Any]]
    inner_root: Any | None
    owns_array: bool

    @property
    def rows(self) -> list[dict[str, Any]]:
        return self.array


@dataclass
class _Candidate:
    """信封路径上发现的一个候选值"""

    text: str | None = None  # 需要从文本中解析
    value: Any = None  # 已经是解析好的 JSON（Claude input_json）

    @property
    def is_text(self) -> bool:
        return self.text is not None


def _dict_items(value: Any) -> Iterator[dict[str, Any]]:
    if isinstance(value, list):
        for item in value:
            if isinstance(item, dict):
                yield item


def _non_empty_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


# ---------- 各供应商的信封路径 ----------


def _gemini_candidates(root: dict[str, Any]) -> Iterator[_Candidate]:
    for candidate in _dict_items(root.get("candidates")):
        content = candidate.get("content")
        if isinstance(content, dict):
            # candidates[].content.parts[].text
            for part in _dict_items(content.get("parts")):
                text = _non_empty_str(part.get("text"))
                if text:
                    yield _Candidate(text=text)
        elif isinstance(content, list):
            # candidates[].content[].text
            for part in _dict_items(content):
                text = _non_empty_str(part.get("text"))
                if text:
                    yield _Candidate(text=text)


def _claude_parts(parts: Any) -> Iterator[_Candidate]:
    for part in _dict_items(parts):
        text = _non_empty_str(part.get("text"))
        if part.get("type") == "text" or text:
            if text:
                yield _Candidate(text=text)
        elif part.get("input_json") is not None:
            yield _Candidate(value=part["input_json"])


def _claude_candidates(root: dict[str, Any]) -> Iterator[_Candidate]:
    # 新版: content[]；旧版: message.content[]
    yield from _claude_parts(root.get("content"))
    message = root.get("message")
    if isinstance(message, dict):
        yield from _claude_parts(message.get("content"))


def _ollama_candidates(root: dict[str, Any]) -> Iterator[_Candidate]:
    text = _non_empty_str(root.get("response"))
    if text:
        yield _Candidate(text=text)
    message = root.get("message")
    if isinstance(message, dict):
        text = _non_empty_str(message.get("content"))
        if text:
            yield _Candidate(text=text)


def _openai_candidates(root: dict[str, Any]) -> Iterator[_Candidate]:
    # Responses API: output[].content[].text
    for item in _dict_items(root.get("output")):
        for part in _dict_items(item.get("content")):
            text = _non_empty_str(part.get("text"))
            if text:
                yield _Candidate(text=text)
    # Chat Completions: choices[].message.content
    for choice in _dict_items(root.get("choices")):
        message = choice.get("message")
        if isinstance(message, dict):
            text = _non_empty_str(message.get("content"))
            if text:
                yield _Candidate(text=text)


_STRATEGIES: dict[ProviderKind, Callable[[dict[str, Any]], Iterator[_Candidate]]] = {
    ProviderKind.GEMINI: _gemini_candidates,
    ProviderKind.CLAUDE: _claude_candidates,
    ProviderKind.OLLAMA: _ollama_candidates,
    ProviderKind.OPENAI: _openai_candidates,
}


class ResponseNormalizer:
    """响应归一化器（无状态，只读输入，需要新结构时深拷贝）"""

    def __init__(self, wrap_key: str = DEFAULT_WRAP_KEY) -> None:
        self.wrap_key = wrap_key

    def extract(self, root: Any, provider: ProviderKind | None = None) -> NormalizedResult:
        """
        从响应根中提取对象数组

        Args:
            root: 已解析的响应（通常是 dict）
            provider: 供应商类型；None 时只做通用查找

        Returns:
            NormalizedResult
        """
        if provider is not None and isinstance(root, dict):
            strategy = _STRATEGIES.get(ProviderKind(provider))
            if strategy is not None:
                for candidate in strategy(root):
                    result = self._try_candidate(candidate)
                    if result is not None:
                        logger.debug("归一化命中供应商路径: {}, rows={}", provider, len(result.array))
                        return result

        found = deep_find_array_of_objects(root)
        if found is not None:
            logger.debug("归一化命中通用深度查找: rows={}", len(found))
            return NormalizedResult(found, None, False)

        logger.debug("归一化降级为单行包装")
        return NormalizedResult([self._as_row(root)], None, True)

    def _try_candidate(self, candidate: _Candidate) -> NormalizedResult | None:
        if candidate.is_text:
            inner = text_to_json(candidate.text)
            if inner is None:
                return None
            # 从文本中解析出的值是独立的二级根
            inner_root = inner
        else:
            inner = candidate.value
            inner_root = None

        if isinstance(inner, list):
            if is_array_of_objects(inner):
                return NormalizedResult(inner, inner_root, False)
            return NormalizedResult(wrap_primitives(inner, self.wrap_key), inner_root, True)

        found = deep_find_array_of_objects(inner)
        if found is not None:
            return NormalizedResult(found, inner_root, False)

        if isinstance(inner, dict):
            for key, value in inner.items():
                if isinstance(value, list):
                    if is_array_of_objects(value):
                        return NormalizedResult(value, inner_root, False)
                    return NormalizedResult(wrap_primitives(value, key), inner_root, True)

        return None

    def _as_row(self, root: Any) -> dict[str, Any]:
        if isinstance(root, dict):
            return copy.deepcopy(root)
        return {self.wrap_key: copy.deepcopy(root)}


__all__ = ["DEFAULT_WRAP_KEY", "NormalizedResult", "ResponseNormalizer"]
