"""
请求引擎 - 把追踪器、调度器、投递器、分类器、归一化器和 HTTP 配置打包在一起

一个引擎可以被多个驱动共享（通过依赖注入传入），不存在进程级单例。
取消通知会广播给所有订阅的驱动，请求 id 全局唯一，订阅者自行匹配。
"""

from __future__ import annotations

import asyncio
import threading

from aiunify.clients.http_client import HttpClientConfig
from aiunify.config import config
from aiunify.core.logger import logger
from aiunify.services.normalization import ResponseNormalizer
from aiunify.services.orchestration import (
    AffinityExecutor,
    Dispatcher,
    ErrorClassifier,
    EventInvoker,
    InlineExecutor,
)
from aiunify.services.tracking import CancelListener, RequestTracker


class RequestEngine:
    """驱动运行所需的全部协作组件"""

    def __init__(
        self,
        *,
        tracker: RequestTracker | None = None,
        invoker: EventInvoker | None = None,
        classifier: ErrorClassifier | None = None,
        normalizer: ResponseNormalizer | None = None,
        http_config: HttpClientConfig | None = None,
        dispatcher: Dispatcher | None = None,
    ) -> None:
        self.tracker = tracker or RequestTracker()
        self.invoker = invoker or EventInvoker()
        self.classifier = classifier or ErrorClassifier()
        self.normalizer = normalizer or ResponseNormalizer()
        self.http_config = http_config or HttpClientConfig()
        self.dispatcher = dispatcher or Dispatcher(self.tracker, self.invoker, self.classifier)

        self._listeners_lock = threading.Lock()
        self._cancel_listeners: list[CancelListener] = []
        if self.tracker.on_cancel is None:
            self.tracker.on_cancel = self._broadcast_cancel

    @classmethod
    def create(
        cls,
        *,
        synchronize_events: bool | None = None,
        http_config: HttpClientConfig | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> RequestEngine:
        """
        按全局配置创建引擎

        Args:
            synchronize_events: True 使用 AffinityExecutor，None 时读取 AI_SYNCHRONIZE_EVENTS
            http_config: HTTP 客户端配置
            loop: 在事件循环之外调度请求时使用的循环
        """
        synchronize = config.synchronize_events if synchronize_events is None else synchronize_events
        executor = AffinityExecutor() if synchronize else InlineExecutor()
        tracker = RequestTracker()
        invoker = EventInvoker(executor)
        classifier = ErrorClassifier()
        dispatcher = Dispatcher(tracker, invoker, classifier, loop=loop)
        return cls(
            tracker=tracker,
            invoker=invoker,
            classifier=classifier,
            http_config=http_config,
            dispatcher=dispatcher,
        )

    def add_cancel_listener(self, listener: CancelListener) -> None:
        with self._listeners_lock:
            if listener not in self._cancel_listeners:
                self._cancel_listeners.append(listener)

    def remove_cancel_listener(self, listener: CancelListener) -> None:
        with self._listeners_lock:
            if listener in self._cancel_listeners:
                self._cancel_listeners.remove(listener)

    def _broadcast_cancel(self, request_id: str) -> None:
        with self._listeners_lock:
            listeners = list(self._cancel_listeners)

        if not listeners:
            logger.info("请求已取消（无监听者）: {}", request_id)
            return
        for listener in listeners:
            try:
                listener(request_id)
            except Exception as e:
                logger.exception("[{}] 取消监听者执行失败: {}", request_id, e)

    async def join(self) -> None:
        """等待所有进行中的请求结束"""
        await self.dispatcher.join()

    def shutdown(self) -> None:
        """释放执行器（亲和线程）"""
        self.invoker.executor.shutdown()


__all__ = ["RequestEngine"]
