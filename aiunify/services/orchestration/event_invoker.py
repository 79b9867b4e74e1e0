"""
事件投递器 - 决定回调在哪个线程上执行

线程亲和策略通过注入的执行器显式表达，而不是检查"当前线程"加一个同步开关：
- InlineExecutor: 在调用线程上直接执行
- AffinityExecutor: 在一个专属线程上执行；调用方阻塞（或在协程中挂起）直到回调完成

回调内部抛出的异常不会被吞掉，而是包装为 AIEventHandlerError 重新抛出，
由调度器按传输失败的同一通道投递。
"""

from __future__ import annotations

import asyncio
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from aiunify.core.constants import EVENT_HANDLER_FAILED
from aiunify.core.exceptions import AIEventHandlerError
from aiunify.core.logger import logger

T = TypeVar("T")


class EventExecutor(ABC):
    """回调执行器接口"""

    @abstractmethod
    def call(self, proc: Callable[[], T]) -> T:
        """同步执行，返回前 proc 已运行完毕"""

    async def run(self, proc: Callable[[], T]) -> T:
        """在协程中执行，等待期间不阻塞事件循环"""
        return self.call(proc)

    def shutdown(self) -> None:
        """释放执行器持有的资源"""


class InlineExecutor(EventExecutor):
    """在调用线程上直接执行"""

    def call(self, proc: Callable[[], T]) -> T:
        return proc()


class AffinityExecutor(EventExecutor):
    """
    在专属线程上执行回调

    已经在亲和线程上时直接执行，避免自我等待造成死锁。
    """

    def __init__(self, name: str = "aiunify-events") -> None:
        self._name = name
        self._thread_id: int | None = None
        self._pool = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=name,
            initializer=self._bind_thread,
        )
        # 预热，确保 thread_id 在首次投递前已知
        self._pool.submit(lambda: None).result()

    def _bind_thread(self) -> None:
        self._thread_id = threading.get_ident()

    @property
    def thread_id(self) -> int | None:
        return self._thread_id

    def is_affinity_thread(self) -> bool:
        return threading.get_ident() == self._thread_id

    def call(self, proc: Callable[[], T]) -> T:
        if self.is_affinity_thread():
            return proc()
        return self._pool.submit(proc).result()

    async def run(self, proc: Callable[[], T]) -> T:
        if self.is_affinity_thread():
            return proc()
        return await asyncio.wrap_future(self._pool.submit(proc))

    def shutdown(self) -> None:
        logger.debug("关闭亲和线程执行器: {}", self._name)
        self._pool.shutdown(wait=True)


class EventInvoker:
    """按注入的执行器投递回调"""

    def __init__(self, executor: EventExecutor | None = None) -> None:
        self._executor = executor or InlineExecutor()

    @property
    def executor(self) -> EventExecutor:
        return self._executor

    async def invoke(self, proc: Callable[[], Any] | None) -> Any:
        """在协程上下文中投递回调"""
        if proc is None:
            return None
        try:
            return await self._executor.run(proc)
        except AIEventHandlerError:
            raise
        except Exception as e:
            raise _wrap_handler_error(e) from e

    def invoke_sync(self, proc: Callable[[], Any] | None) -> Any:
        """在普通线程上下文中投递回调（预检失败等同步路径）"""
        if proc is None:
            return None
        try:
            return self._executor.call(proc)
        except AIEventHandlerError:
            raise
        except Exception as e:
            raise _wrap_handler_error(e) from e


def _wrap_handler_error(error: Exception) -> AIEventHandlerError:
    message = EVENT_HANDLER_FAILED % (error.__class__.__name__, str(error))
    logger.warning("回调处理器异常: {}", message)
    return AIEventHandlerError(message, original=error)


__all__ = [
    "EventExecutor",
    "InlineExecutor",
    "AffinityExecutor",
    "EventInvoker",
]
