"""
驱动注册表 - 按名称创建驱动

注册表是普通对象，由调用方创建并注入，不提供模块级单例。
名称不区分大小写。
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from aiunify.core.constants import DRIVER_EMPTY_NAME, DRIVER_NOT_REGISTERED
from aiunify.core.exceptions import AIRegistrationError
from aiunify.core.logger import logger
from aiunify.drivers.base import ProviderDriver
from aiunify.drivers.claude import ClaudeDriver
from aiunify.drivers.engine import RequestEngine
from aiunify.drivers.gemini import GeminiDriver
from aiunify.drivers.ollama import OllamaDriver
from aiunify.drivers.openai import OpenAIDriver

DriverFactory = Callable[..., ProviderDriver]


@dataclass(frozen=True)
class DriverInfo:
    """注册时附带的驱动元数据"""

    name: str
    api_name: str = ""
    description: str = ""
    category: str = ""


@dataclass(frozen=True)
class _Entry:
    info: DriverInfo
    factory: DriverFactory


class DriverRegistry:
    """维护 名称 -> 工厂 的映射"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    @staticmethod
    def _key(name: str) -> str:
        key = (name or "").strip().lower()
        if not key:
            raise AIRegistrationError(DRIVER_EMPTY_NAME)
        return key

    def register(
        self,
        name: str,
        factory: DriverFactory,
        *,
        api_name: str = "",
        description: str = "",
        category: str = "",
    ) -> None:
        """登记驱动工厂，同名（忽略大小写）覆盖"""
        key = self._key(name)
        info = DriverInfo(name=name.strip(), api_name=api_name, description=description, category=category)
        with self._lock:
            if key in self._entries:
                logger.debug("覆盖已注册的驱动: {}", name)
            self._entries[key] = _Entry(info=info, factory=factory)

    def unregister(self, name: str) -> None:
        key = self._key(name)
        with self._lock:
            if self._entries.pop(key, None) is None:
                raise AIRegistrationError(DRIVER_NOT_REGISTERED % name)

    def _get(self, name: str) -> _Entry:
        key = self._key(name)
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            raise AIRegistrationError(DRIVER_NOT_REGISTERED % name)
        return entry

    def create(self, name: str, **kwargs: Any) -> ProviderDriver:
        """
        按名称实例化驱动

        Args:
            name: 注册名（不区分大小写）
            **kwargs: 透传给工厂，如 params / events

        Raises:
            AIRegistrationError: 名称为空或未注册
        """
        return self._get(name).factory(**kwargs)

    def metadata(self, name: str) -> DriverInfo:
        return self._get(name).info

    def names(self) -> list[str]:
        """已注册的驱动名（保持注册顺序与原始大小写）"""
        with self._lock:
            return [entry.info.name for entry in self._entries.values()]

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str) or not name.strip():
            return False
        with self._lock:
            return name.strip().lower() in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def default_registry(engine: RequestEngine | None = None) -> DriverRegistry:
    """
    创建预置四个内置驱动的注册表

    所有由该注册表创建的驱动共享同一个引擎（未提供时新建一个）。
    """
    shared = engine or RequestEngine.create()
    registry = DriverRegistry()
    for driver_cls in (OpenAIDriver, ClaudeDriver, GeminiDriver, OllamaDriver):
        registry.register(
            driver_cls.name,
            _bind_engine(driver_cls, shared),
            api_name=driver_cls.api_name,
            description=driver_cls.description,
            category=driver_cls.category,
        )
    return registry


def _bind_engine(driver_cls: type[ProviderDriver], engine: RequestEngine) -> DriverFactory:
    def factory(**kwargs: Any) -> ProviderDriver:
        kwargs.setdefault("engine", engine)
        return driver_cls(**kwargs)

    return factory


__all__ = ["DriverFactory", "DriverInfo", "DriverRegistry", "default_registry"]
