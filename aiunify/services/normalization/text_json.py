"""
从文本中提取 JSON 以及数组搜索的基础算法

模型经常把 JSON 包在 ``` 代码块里，或者夹在解释性文字中间，这里做尽力而为的提取。
"""

from __future__ import annotations

import copy
import json
from typing import Any

_FENCE = "```"


def strip_code_fences(text: str) -> str:
    """
    去除首尾的 ``` 代码块标记

    以 ``` 开头时：丢弃第一行（含语言标记），截断到最后一个 ```，再去除空白。
    """
    stripped = text.strip()
    if not stripped.startswith(_FENCE):
        return stripped

    newline = stripped.find("\n")
    if newline >= 0:
        stripped = stripped[newline + 1 :].strip()
    closing = stripped.rfind(_FENCE)
    if closing >= 0:
        stripped = stripped[:closing].strip()
    return stripped


def _carve(text: str, opener: str, closer: str) -> tuple[bool, Any]:
    """
    从第一个 opener 开始按深度扫描，截取到深度归零处并解析

    不处理字符串字面量中的括号（非完整词法分析）。

    Returns:
        (是否找到平衡的片段, 解析结果或 None)
    """
    start = text.find(opener)
    if start < 0:
        return False, None

    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                try:
                    return True, json.loads(text[start : index + 1])
                except (json.JSONDecodeError, ValueError):
                    return True, None
    return False, None


def text_to_json(text: str | None) -> Any:
    """
    从文本中解析 JSON 值

    1. 去除代码块标记
    2. 直接解析
    3. 失败则截取第一个平衡的 {...}，没有则截取第一个平衡的 [...]

    Returns:
        解析出的值；两种方式都失败时返回 None
    """
    if not text:
        return None

    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, ValueError):
        pass

    found, value = _carve(cleaned, "{", "}")
    if found:
        return value
    _, value = _carve(cleaned, "[", "]")
    return value


def is_array_of_objects(value: Any) -> bool:
    """非空且每个元素都是对象"""
    return isinstance(value, list) and len(value) > 0 and all(isinstance(item, dict) for item in value)


def deep_find_array_of_objects(value: Any) -> list[dict[str, Any]] | None:
    """
    深度优先查找第一个"全部元素为对象"的数组

    - 数组：满足条件直接返回，否则按顺序递归每个元素
    - 对象：按属性声明顺序递归每个值
    - 返回遍历顺序中的第一个匹配（并列时完全由源顺序决定）

    返回的是输入结构中的原对象（视图），不做复制。
    """
    if isinstance(value, list):
        if is_array_of_objects(value):
            return value
        for item in value:
            found = deep_find_array_of_objects(item)
            if found is not None:
                return found
    elif isinstance(value, dict):
        for item in value.values():
            found = deep_find_array_of_objects(item)
            if found is not None:
                return found
    return None


def wrap_primitives(array: list[Any], key: str) -> list[dict[str, Any]]:
    """
    把数组元素逐个包装为 {key: 元素副本}

    返回新分配的数组，元素为深拷贝，不影响输入。
    """
    return [{key: copy.deepcopy(item)} for item in array]


__all__ = [
    "strip_code_fences",
    "text_to_json",
    "is_array_of_objects",
    "deep_find_array_of_objects",
    "wrap_primitives",
]
