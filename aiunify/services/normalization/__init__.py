"""
响应归一化模块

- text_json: 文本中提取 JSON、深度查找对象数组、原始值包装
- ResponseNormalizer: 按供应商信封路径定位表格数据
- DatasetBuilder / DatasetJSONCallback: 表格数据导入
"""

from .dataset import DatasetBuilder, DatasetJSONCallback
from .response_normalizer import DEFAULT_WRAP_KEY, NormalizedResult, ResponseNormalizer
from .text_json import (
    deep_find_array_of_objects,
    is_array_of_objects,
    strip_code_fences,
    text_to_json,
    wrap_primitives,
)

__all__ = [
    "DEFAULT_WRAP_KEY",
    "DatasetBuilder",
    "DatasetJSONCallback",
    "NormalizedResult",
    "ResponseNormalizer",
    "deep_find_array_of_objects",
    "is_array_of_objects",
    "strip_code_fences",
    "text_to_json",
    "wrap_primitives",
]
