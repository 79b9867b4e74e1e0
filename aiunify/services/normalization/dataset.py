"""
JSON -> 表格数据的桥接

DatasetBuilder 是一个内存中的行集合；DatasetJSONCallback 在 execute_json 的
populate_dataset 阶段用 ResponseNormalizer 定位数组并导入。
"""

from __future__ import annotations

import copy
from typing import Any

from aiunify.core.constants import (
    DATASET_IMPORT_FAILED,
    DATASET_NIL_JSON,
    DATASET_NOT_ASSIGNED,
)
from aiunify.core.enums import ProviderKind
from aiunify.core.exceptions import AIConfigError, AIError, AIJSONError
from aiunify.core.logger import logger
from aiunify.models.callbacks import JSONCallback
from aiunify.services.normalization.response_normalizer import ResponseNormalizer


class DatasetBuilder:
    """内存行集合，列为各行键的并集（按首次出现顺序）"""

    def __init__(self) -> None:
        self.columns: list[str] = []
        self.rows: list[dict[str, Any]] = []

    def clear(self) -> None:
        self.columns = []
        self.rows = []

    def define(self, array: list[dict[str, Any]]) -> None:
        """根据数据推导列定义"""
        columns: dict[str, None] = {}
        for row in array:
            if not isinstance(row, dict):
                raise AIError(f"Row is not an object: {type(row).__name__}")
            for key in row:
                columns.setdefault(key, None)
        self.columns = list(columns)

    def append(self, array: list[dict[str, Any]]) -> None:
        """追加行（深拷贝，缺失的列补 None）"""
        for row in array:
            self.rows.append({column: copy.deepcopy(row.get(column)) for column in self.columns})

    def load(self, array: list[dict[str, Any]]) -> None:
        self.clear()
        self.define(array)
        self.append(array)

    def __len__(self) -> int:
        return len(self.rows)


class DatasetJSONCallback(JSONCallback):
    """
    将 execute_json 的结果导入 DatasetBuilder

    未设置 dataset 时 populate_dataset 抛出 AIConfigError，驱动会把它作为错误投递。
    """

    def __init__(
        self,
        dataset: DatasetBuilder | None = None,
        provider: ProviderKind | None = None,
        normalizer: ResponseNormalizer | None = None,
    ) -> None:
        self.dataset = dataset
        self.provider = provider
        self.normalizer = normalizer or ResponseNormalizer()

    def populate_dataset(self, obj: Any) -> bool:
        if self.dataset is None:
            raise AIConfigError(DATASET_NOT_ASSIGNED)
        if obj is None:
            raise AIJSONError(DATASET_NIL_JSON)

        result = self.normalizer.extract(obj, self.provider)
        try:
            self.dataset.load(result.array)
        except Exception as e:
            raise AIError(DATASET_IMPORT_FAILED % e) from e

        logger.debug("数据集已导入: rows={}, columns={}", len(self.dataset), len(self.dataset.columns))
        return len(self.dataset) > 0


__all__ = ["DatasetBuilder", "DatasetJSONCallback"]
